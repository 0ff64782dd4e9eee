"""
Project lifecycle controller.

Owns the project status machine and the field-level project ledger. Any
status may follow any other (jobs get re-opened, stages get skipped); only
membership in ProjectStatus is validated. suggest_next_status() offers the
canonical next stage to callers that want guidance.
"""
import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..errors import ValidationError
from ..models.models import Project
from ..models.status import PROJECT_STATUS_LABELS, PROJECT_STATUS_ORDER, ProjectStatus
from .history import compute_diff, project_ledger, serialize_value
from .lookups import coerce_enum, coerce_uuid, get_crew, get_project, optional_uuid
from .snapshots import create_snapshot


logger = structlog.get_logger(__name__)

DATE_FIELDS = (
    "equipment_expected_date",
    "equipment_arrived_date",
    "work_start_date",
    "work_end_date",
)
EQUIPMENT_FIELDS = ("equipment_notes",)
CALL_FIELDS = (
    "needs_call_for_equipment_delay",
    "needs_call_for_crew_delay",
    "needs_call_for_date_change",
)
INFO_FIELDS = (
    "client_id",
    "notes",
    "team_number",
    "installation_person_first_name",
    "installation_person_last_name",
    "installation_person_address",
    "installation_person_phone",
    "invoice_number",
    "invoice_url",
)
# Ledger entries are written in this order when one call changes several fields
UPDATABLE_FIELDS = DATE_FIELDS + EQUIPMENT_FIELDS + CALL_FIELDS + INFO_FIELDS

FIELD_LABELS = {
    "equipment_expected_date": "Expected equipment date",
    "equipment_arrived_date": "Equipment arrival date",
    "work_start_date": "Work start date",
    "work_end_date": "Work end date",
    "equipment_notes": "Equipment notes",
    "needs_call_for_equipment_delay": "equipment delay",
    "needs_call_for_crew_delay": "crew delay",
    "needs_call_for_date_change": "date change",
}


def change_type_for_field(field: str) -> str:
    if field in DATE_FIELDS:
        return "date_update"
    if field in EQUIPMENT_FIELDS:
        return "equipment_update"
    if field in CALL_FIELDS:
        return "call_update"
    return "info_update"


def suggest_next_status(status: Any) -> Optional[str]:
    """Next stage in the usual order, or None once a project is paid."""
    current = ProjectStatus(coerce_enum(ProjectStatus, status, "project"))
    index = PROJECT_STATUS_ORDER.index(current)
    if index + 1 >= len(PROJECT_STATUS_ORDER):
        return None
    return PROJECT_STATUS_ORDER[index + 1].value


def _status_label(value: Optional[str]) -> str:
    try:
        return PROJECT_STATUS_LABELS[ProjectStatus(value)]
    except ValueError:
        return str(value)


def _status_description(old: str, new: str) -> str:
    return f'Status changed from "{_status_label(old)}" to "{_status_label(new)}"'


def _coerce_field(project_id, field: str, value: Any) -> Any:
    if field in DATE_FIELDS:
        if value is None or isinstance(value, date) and not isinstance(value, datetime):
            return value
        if isinstance(value, datetime):
            return value.date()
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            raise ValidationError("project", project_id, "update", f"{field} must be an ISO date, got '{value}'")
    if field in CALL_FIELDS:
        if not isinstance(value, bool):
            raise ValidationError("project", project_id, "update", f"{field} must be a boolean")
        return value
    if field == "client_id":
        return optional_uuid(value, "project", field)
    if value is not None and not isinstance(value, str):
        raise ValidationError("project", project_id, "update", f"{field} must be a string")
    return value


def _describe_field_change(field: str, old: Any, new: Any) -> str:
    change_type = change_type_for_field(field)
    label = FIELD_LABELS.get(field, field)
    if change_type == "date_update":
        if new is None:
            return f"{label} cleared"
        return f"{label} changed to {new.isoformat()}"
    if change_type == "call_update":
        if new:
            return f"Client call required ({label})"
        return f"Client call no longer required ({label})"
    if change_type == "equipment_update":
        return f"{label} updated"
    return f'Field "{field}" changed'


def _check_date_order(project_id, start: Optional[date], end: Optional[date]):
    if start and end and end < start:
        raise ValidationError(
            "project", project_id, "update",
            f"work_end_date {end.isoformat()} precedes work_start_date {start.isoformat()}",
        )


def create_project(db: Session, payload: Dict[str, Any], actor_id: Optional[uuid.UUID] = None) -> Project:
    if not payload.get("firm_id"):
        raise ValidationError("project", None, "create", "firm_id is required")
    if payload.get("status") not in (None, ProjectStatus.planning.value, ProjectStatus.planning):
        raise ValidationError("project", None, "create", "projects are created in planning")
    if payload.get("crew_id"):
        raise ValidationError("project", None, "create", "assign a crew after creating the project")
    unknown = set(payload) - set(UPDATABLE_FIELDS) - {"firm_id", "leiter_id", "status", "crew_id"}
    if unknown:
        raise ValidationError("project", None, "create", f"Unknown fields: {', '.join(sorted(unknown))}")

    fields = {f: _coerce_field(None, f, payload[f]) for f in UPDATABLE_FIELDS if f in payload}
    _check_date_order(None, fields.get("work_start_date"), fields.get("work_end_date"))
    actor = optional_uuid(actor_id, "project", "actor_id")
    now = datetime.utcnow()
    project = Project(
        id=uuid.uuid4(),
        firm_id=coerce_uuid(payload["firm_id"], "project", "firm_id"),
        leiter_id=optional_uuid(payload.get("leiter_id"), "project", "leiter_id") or actor,
        status=ProjectStatus.planning.value,
        created_at=now,
        updated_at=now,
        **fields,
    )
    with unit_of_work(db, action="create", entity="project", entity_id=project.id):
        db.add(project)
        db.flush()
        project_ledger.append(
            db, project.id,
            user_id=actor,
            change_type="created",
            description="Project created",
        )
    db.refresh(project)
    logger.info("project_created", project_id=str(project.id), firm_id=str(project.firm_id))
    return project


def update_status(db: Session, project_id: Any, new_status: Any, actor_id: Optional[uuid.UUID] = None) -> Project:
    """
    Move a project to new_status.

    A call with the current status is a no-op and writes nothing. No
    authorization check here; the request boundary owns that.
    """
    project = get_project(db, project_id)
    status = coerce_enum(ProjectStatus, new_status, "project", project.id)
    old_status = project.status
    if status == old_status:
        return project

    with unit_of_work(db, action="update_status", entity="project", entity_id=project.id):
        project.status = status
        project.updated_at = datetime.utcnow()
        project_ledger.append(
            db, project.id,
            user_id=optional_uuid(actor_id, "project", "actor_id"),
            change_type="status_change",
            field_name="status",
            old_value=old_status,
            new_value=status,
            description=_status_description(old_status, status),
        )
    db.refresh(project)
    logger.info("project_status_changed", project_id=str(project.id), old=old_status, new=status, actor_id=str(actor_id))
    if status == ProjectStatus.work_completed.value and not project.invoice_number:
        # Invoicing is an explicit follow-up call to the billing integration
        logger.info("project_ready_for_invoicing", project_id=str(project.id))
    return project


def update_project_fields(
    db: Session,
    project_id: Any,
    partial_update: Dict[str, Any],
    actor_id: Optional[uuid.UUID] = None,
) -> Project:
    """
    Apply date/flag/descriptive fields, one ledger entry per changed field.

    Setting equipment_arrived_date while waiting for equipment advances the
    status to equipment_arrived in the same commit.
    """
    project = get_project(db, project_id)
    if "status" in partial_update:
        raise ValidationError("project", project.id, "update", "use the status operation to change status")
    if "crew_id" in partial_update:
        raise ValidationError("project", project.id, "update", "use the crew assignment operation to change crew")
    unknown = set(partial_update) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError("project", project.id, "update", f"Unknown fields: {', '.join(sorted(unknown))}")

    updates = {f: _coerce_field(project.id, f, partial_update[f]) for f in UPDATABLE_FIELDS if f in partial_update}
    _check_date_order(
        project.id,
        updates.get("work_start_date", project.work_start_date),
        updates.get("work_end_date", project.work_end_date),
    )
    before = {key: getattr(project, key) for key in updates}
    diff = compute_diff(before, updates)
    if not diff:
        return project

    actor = optional_uuid(actor_id, "project", "actor_id")
    auto_advanced = False
    with unit_of_work(db, action="update_fields", entity="project", entity_id=project.id):
        for field in UPDATABLE_FIELDS:
            if field not in diff:
                continue
            old, new = diff[field]["before"], diff[field]["after"]
            setattr(project, field, new)
            project_ledger.append(
                db, project.id,
                user_id=actor,
                change_type=change_type_for_field(field),
                field_name=field,
                old_value=serialize_value(old),
                new_value=serialize_value(new),
                description=_describe_field_change(field, old, new),
            )
        if (
            "equipment_arrived_date" in diff
            and project.equipment_arrived_date is not None
            and project.status == ProjectStatus.equipment_waiting.value
        ):
            old_status = project.status
            project.status = ProjectStatus.equipment_arrived.value
            project_ledger.append(
                db, project.id,
                user_id=actor,
                change_type="status_change",
                field_name="status",
                old_value=old_status,
                new_value=project.status,
                description=_status_description(old_status, project.status) + " (equipment arrived)",
            )
            auto_advanced = True
        project.updated_at = datetime.utcnow()
    db.refresh(project)
    logger.info(
        "project_fields_updated",
        project_id=str(project.id),
        fields=sorted(diff),
        auto_advanced=auto_advanced,
        actor_id=str(actor_id),
    )
    return project


def assign_crew(db: Session, project_id: Any, crew_id: Any, actor_id: Optional[uuid.UUID] = None):
    """
    Assign a crew and freeze its composition.

    The assignment, the snapshot and the ledger entry pointing at the
    snapshot are committed together. Every assignment event gets its own
    snapshot, even when the same crew is assigned again.

    Returns:
        (project, snapshot)
    """
    project = get_project(db, project_id)
    crew = get_crew(db, crew_id, allow_archived=False)
    if crew.firm_id != project.firm_id:
        raise ValidationError("project", project.id, "assign_crew", "crew belongs to another firm")
    actor = optional_uuid(actor_id, "project", "actor_id")
    old_crew_id = project.crew_id

    with unit_of_work(db, action="assign_crew", entity="project", entity_id=project.id):
        snapshot = create_snapshot(db, project.id, crew.id, actor)
        project.crew_id = crew.id
        project.updated_at = datetime.utcnow()
        names = [
            " ".join(p for p in [m.get("first_name") or "", m.get("last_name") or ""] if p).strip()
            for m in snapshot.members_data
        ]
        names = [n for n in names if n]
        description = f'Crew "{crew.name}" assigned'
        if names:
            description += f" (members: {', '.join(names)})"
        project_ledger.append(
            db, project.id,
            user_id=actor,
            change_type="assignment_change",
            field_name="crew_id",
            old_value=serialize_value(old_crew_id),
            new_value=serialize_value(crew.id),
            description=description,
            crew_snapshot_id=snapshot.id,
        )
    db.refresh(project)
    db.refresh(snapshot)
    logger.info(
        "project_crew_assigned",
        project_id=str(project.id),
        crew_id=str(crew.id),
        snapshot_id=str(snapshot.id),
        actor_id=str(actor_id),
    )
    return project, snapshot


def get_history(
    db: Session,
    project_id: Any,
    newest_first: bool = True,
    change_types: Optional[Iterable[str]] = None,
) -> List:
    project = get_project(db, project_id)
    return project_ledger.list_for(db, project.id, newest_first=newest_first, kinds=change_types)
