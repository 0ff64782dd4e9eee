import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    JSON,
    UniqueConstraint,
    Text,
    Index,
    Uuid,
    event,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base
from ..errors import ConflictError


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


class Crew(Base):
    __tablename__ = "crews"

    id: Mapped[uuid.UUID] = uuid_pk()
    firm_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unique_number: Mapped[str] = mapped_column(String(50), nullable=False)  # BR-0001
    leader_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    status: Mapped[str] = mapped_column(String(50), default="active", nullable=False)  # active|vacation|equipment_issue|unavailable
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    members = relationship("CrewMember", back_populates="crew", order_by="CrewMember.created_at")


class CrewMember(Base):
    __tablename__ = "crew_members"

    id: Mapped[uuid.UUID] = uuid_pk()
    crew_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("crews.id"), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500))
    unique_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)  # WRK-0001
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    member_email: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(50), default="worker", nullable=False)  # leader|worker|specialist
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    crew = relationship("Crew", back_populates="members")


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = uuid_pk()
    firm_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, index=True)
    leiter_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)  # Owning office user
    crew_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("crews.id", ondelete="SET NULL"), index=True)
    status: Mapped[str] = mapped_column(String(50), default="planning", nullable=False, index=True)
    # Equipment & work dates
    equipment_expected_date: Mapped[Optional[date]] = mapped_column(Date)
    equipment_arrived_date: Mapped[Optional[date]] = mapped_column(Date)
    work_start_date: Mapped[Optional[date]] = mapped_column(Date)
    work_end_date: Mapped[Optional[date]] = mapped_column(Date)
    equipment_notes: Mapped[Optional[str]] = mapped_column(String(2000))
    # Client must be called about a delay/change
    needs_call_for_equipment_delay: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_call_for_crew_delay: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_call_for_date_change: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Person at the installation site
    installation_person_first_name: Mapped[Optional[str]] = mapped_column(String(100))
    installation_person_last_name: Mapped[Optional[str]] = mapped_column(String(100))
    installation_person_address: Mapped[Optional[str]] = mapped_column(String(500))
    installation_person_phone: Mapped[Optional[str]] = mapped_column(String(50))
    team_number: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(String(2000))
    # Written by the invoicing integration
    invoice_number: Mapped[Optional[str]] = mapped_column(String(100))
    invoice_url: Mapped[Optional[str]] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ProjectCrewSnapshot(Base):
    """Frozen copy of a crew and its members at the moment of assignment"""
    __tablename__ = "project_crew_snapshots"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("projects.id"), nullable=False, index=True)
    # Plain identifier, not a foreign key: the crew may since have been archived or deleted
    crew_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    snapshot_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    crew_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    members_data: Mapped[list] = mapped_column(JSON, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)


class ProjectHistory(Base):
    """Append-only, field-level change log of a project"""
    __tablename__ = "project_history"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("projects.id"), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, index=True)  # NULL for system entries
    change_type: Mapped[str] = mapped_column(String(50), nullable=False)
    field_name: Mapped[Optional[str]] = mapped_column(String(100))
    old_value: Mapped[Optional[str]] = mapped_column(Text)
    new_value: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    crew_snapshot_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("project_crew_snapshots.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("project_id", "seq", name="uq_project_history_seq"),
        Index("idx_project_history_order", "project_id", "created_at", "seq"),
    )


class CrewHistory(Base):
    """Append-only change log of a crew's roster"""
    __tablename__ = "crew_history"

    id: Mapped[uuid.UUID] = uuid_pk()
    crew_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("crews.id"), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    change_type: Mapped[str] = mapped_column(String(50), nullable=False)  # crew_created|crew_updated|crew_archived|member_added|member_updated|member_removed
    member_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    member_name: Mapped[Optional[str]] = mapped_column(String(255))  # Name at the time of the change
    field_name: Mapped[Optional[str]] = mapped_column(String(100))
    old_value: Mapped[Optional[str]] = mapped_column(Text)
    new_value: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    crew_snapshot_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("crew_id", "seq", name="uq_crew_history_seq"),
    )


class Reclamation(Base):
    """Post-completion quality complaint routed between crews"""
    __tablename__ = "reclamations"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("projects.id"), nullable=False, index=True)
    firm_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    deadline: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # pending|accepted|rejected|completed|cancelled
    original_crew_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("crews.id"), nullable=False)
    current_crew_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("crews.id"), nullable=False, index=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    accepted_by_member_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejected_by_member_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    completed_by_member_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completion_notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("idx_reclamations_crew_status", "current_crew_id", "status"),
    )


class ReclamationHistory(Base):
    """Append-only log of reclamation transitions"""
    __tablename__ = "reclamation_history"

    id: Mapped[uuid.UUID] = uuid_pk()
    reclamation_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("reclamations.id"), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # created|accepted|rejected|reassigned|completed|cancelled
    action_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)  # Office user
    action_by_member: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)  # Crew member
    crew_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("reclamation_id", "seq", name="uq_reclamation_history_seq"),
    )


class Notification(Base):
    """Outbox of crew/office notifications; delivery happens outside this service"""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    firm_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, index=True)
    crew_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, index=True)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    template_key: Mapped[Optional[str]] = mapped_column(String(100))
    payload_json: Mapped[Optional[dict]] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending|sent|failed
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index("idx_notifications_created", "created_at"),
    )


# Ledger rows and snapshots are write-once
def _reject_mutation(kind: str):
    def _listener(mapper, connection, target):
        raise ConflictError(
            mapper.local_table.name, getattr(target, "id", None), kind,
            "records in this table are append-only",
        )
    return _listener


for _model in (ProjectHistory, CrewHistory, ReclamationHistory, ProjectCrewSnapshot):
    event.listen(_model, "before_update", _reject_mutation("update"))
    event.listen(_model, "before_delete", _reject_mutation("delete"))
