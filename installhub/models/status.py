import enum


class ProjectStatus(str, enum.Enum):
    planning = "planning"
    equipment_waiting = "equipment_waiting"
    equipment_arrived = "equipment_arrived"
    work_scheduled = "work_scheduled"
    work_in_progress = "work_in_progress"
    work_completed = "work_completed"
    invoiced = "invoiced"
    paid = "paid"


# Canonical order, used only for suggestions; any status may follow any other
PROJECT_STATUS_ORDER = [s for s in ProjectStatus]

PROJECT_STATUS_LABELS = {
    ProjectStatus.planning: "Planning",
    ProjectStatus.equipment_waiting: "Equipment waiting",
    ProjectStatus.equipment_arrived: "Equipment arrived",
    ProjectStatus.work_scheduled: "Work scheduled",
    ProjectStatus.work_in_progress: "Work in progress",
    ProjectStatus.work_completed: "Work completed",
    ProjectStatus.invoiced: "Invoiced",
    ProjectStatus.paid: "Paid",
}


class CrewStatus(str, enum.Enum):
    active = "active"
    vacation = "vacation"
    equipment_issue = "equipment_issue"
    unavailable = "unavailable"


class MemberRole(str, enum.Enum):
    leader = "leader"
    worker = "worker"
    specialist = "specialist"


class ReclamationStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


TERMINAL_RECLAMATION_STATUSES = {ReclamationStatus.completed.value, ReclamationStatus.cancelled.value}
# Statuses in which the current crew still owns the work
ACTIVE_RECLAMATION_STATUSES = {ReclamationStatus.pending.value, ReclamationStatus.accepted.value}
# Reclamations can only be filed once the installation work is done
RECLAMATION_PROJECT_STATUSES = {
    ProjectStatus.work_completed.value,
    ProjectStatus.invoiced.value,
    ProjectStatus.paid.value,
}
