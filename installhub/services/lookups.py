"""
Row lookups and value coercion shared by the services.
"""
import enum
import uuid
from typing import Any, Optional, Type

from sqlalchemy.orm import Session

from ..errors import NotFound, ValidationError
from ..models.models import Crew, CrewMember, Project, ProjectCrewSnapshot, Reclamation


def coerce_uuid(value: Any, entity: str, field: str = "id") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(entity, value, None, f"Invalid {field} format")


def coerce_enum(enum_cls: Type[enum.Enum], value: Any, entity: str, entity_id: Any = None, field: str = "status") -> str:
    """Return the enum's string value or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value.value
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(entity, entity_id, None, f"Invalid {field} '{value}'. Allowed: {allowed}")


def get_project(db: Session, project_id: Any) -> Project:
    pid = coerce_uuid(project_id, "project")
    project = db.query(Project).filter(Project.id == pid).first()
    if not project:
        raise NotFound("project", pid)
    return project


def get_crew(db: Session, crew_id: Any, *, allow_archived: bool = True) -> Crew:
    cid = coerce_uuid(crew_id, "crew")
    crew = db.query(Crew).filter(Crew.id == cid).first()
    if not crew or (crew.archived and not allow_archived):
        raise NotFound("crew", cid)
    return crew


def get_member(db: Session, member_id: Any, *, allow_archived: bool = True) -> CrewMember:
    mid = coerce_uuid(member_id, "crew_member")
    member = db.query(CrewMember).filter(CrewMember.id == mid).first()
    if not member or (member.archived and not allow_archived):
        raise NotFound("crew_member", mid)
    return member


def get_snapshot(db: Session, snapshot_id: Any) -> ProjectCrewSnapshot:
    sid = coerce_uuid(snapshot_id, "snapshot")
    snapshot = db.query(ProjectCrewSnapshot).filter(ProjectCrewSnapshot.id == sid).first()
    if not snapshot:
        raise NotFound("snapshot", sid)
    return snapshot


def get_reclamation(db: Session, reclamation_id: Any) -> Reclamation:
    rid = coerce_uuid(reclamation_id, "reclamation")
    reclamation = db.query(Reclamation).filter(Reclamation.id == rid).first()
    if not reclamation:
        raise NotFound("reclamation", rid)
    return reclamation


def optional_uuid(value: Any, entity: str, field: str) -> Optional[uuid.UUID]:
    if value is None:
        return None
    return coerce_uuid(value, entity, field)
