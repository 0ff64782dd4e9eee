"""
Crew snapshot service.

A snapshot is a denormalised copy of a crew and its active members at the
moment a crew is assigned to a project. It keeps no link to the live roster
rows, so later roster edits, archival or deletion never change it. Snapshots
are never edited: a correction is a new snapshot.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..models.models import Crew, CrewMember, ProjectCrewSnapshot
from .history import project_ledger
from .lookups import coerce_uuid, get_crew, get_project, get_snapshot, optional_uuid


logger = structlog.get_logger(__name__)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def crew_document(crew: Crew) -> Dict[str, Any]:
    return {
        "id": str(crew.id),
        "firm_id": str(crew.firm_id),
        "name": crew.name,
        "unique_number": crew.unique_number,
        "leader_name": crew.leader_name,
        "phone": crew.phone,
        "address": crew.address,
        "status": crew.status,
        "created_at": _iso(crew.created_at),
    }


def member_document(member: CrewMember) -> Dict[str, Any]:
    return {
        "id": str(member.id),
        "first_name": member.first_name,
        "last_name": member.last_name,
        "unique_number": member.unique_number,
        "role": member.role,
        "phone": member.phone,
        "member_email": member.member_email,
        "address": member.address,
        "created_at": _iso(member.created_at),
    }


def _active_members(db: Session, crew_id: uuid.UUID) -> List[CrewMember]:
    return (
        db.query(CrewMember)
        .filter(CrewMember.crew_id == crew_id, CrewMember.archived.is_(False))
        .order_by(CrewMember.created_at.asc(), CrewMember.unique_number.asc())
        .all()
    )


def _next_snapshot_date(db: Session, project_id: uuid.UUID) -> datetime:
    now = datetime.utcnow()
    latest = get_latest_snapshot(db, project_id)
    if latest is not None:
        previous = latest.snapshot_date
        if previous.tzinfo is not None:
            previous = previous.astimezone(timezone.utc).replace(tzinfo=None)
        if previous >= now:
            # Keep "latest" well defined when the clock does not advance
            now = previous + timedelta(microseconds=1)
    return now


def create_snapshot(db: Session, project_id: Any, crew_id: Any, actor_id: Optional[uuid.UUID] = None) -> ProjectCrewSnapshot:
    """
    Capture the crew and its non-archived members in the caller's transaction.

    Reads and the insert share the caller's session so the copy reflects one
    consistent view. Does not commit.
    """
    project = get_project(db, project_id)
    crew = get_crew(db, crew_id, allow_archived=False)
    members = _active_members(db, crew.id)
    snapshot = ProjectCrewSnapshot(
        id=uuid.uuid4(),
        project_id=project.id,
        crew_id=crew.id,
        snapshot_date=_next_snapshot_date(db, project.id),
        crew_data=crew_document(crew),
        members_data=[member_document(m) for m in members],
        created_by=optional_uuid(actor_id, "snapshot", "actor_id"),
    )
    db.add(snapshot)
    db.flush()
    logger.info(
        "crew_snapshot_created",
        project_id=str(project.id),
        crew_id=str(crew.id),
        snapshot_id=str(snapshot.id),
        members=len(members),
    )
    return snapshot


def capture_snapshot(db: Session, project_id: Any, crew_id: Any, actor_id: Optional[uuid.UUID] = None) -> ProjectCrewSnapshot:
    """Standalone snapshot, recorded on the project ledger in the same commit."""
    pid = coerce_uuid(project_id, "project")
    with unit_of_work(db, action="create_snapshot", entity="project", entity_id=pid):
        snapshot = create_snapshot(db, pid, crew_id, actor_id)
        project_ledger.append(
            db, snapshot.project_id,
            user_id=snapshot.created_by,
            change_type="info_update",
            field_name="crew_snapshot",
            new_value=str(snapshot.id),
            description=f'Crew composition of "{snapshot.crew_data.get("name")}" recorded',
            crew_snapshot_id=snapshot.id,
        )
    db.refresh(snapshot)
    return snapshot


def get_latest_snapshot(db: Session, project_id: Any) -> Optional[ProjectCrewSnapshot]:
    pid = coerce_uuid(project_id, "project")
    return (
        db.query(ProjectCrewSnapshot)
        .filter(ProjectCrewSnapshot.project_id == pid)
        .order_by(ProjectCrewSnapshot.snapshot_date.desc())
        .first()
    )


def list_snapshots(db: Session, project_id: Any) -> List[ProjectCrewSnapshot]:
    project = get_project(db, project_id)
    return (
        db.query(ProjectCrewSnapshot)
        .filter(ProjectCrewSnapshot.project_id == project.id)
        .order_by(ProjectCrewSnapshot.snapshot_date.asc())
        .all()
    )


def get_snapshot_by_id(db: Session, snapshot_id: Any) -> ProjectCrewSnapshot:
    return get_snapshot(db, snapshot_id)
