"""
Crew roster service.
Mutable crews and members; every roster change is written to the crew ledger.
Members are never deleted, only archived, so that ledgers and snapshots
referring to them stay inspectable.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..errors import ValidationError
from ..models.models import Crew, CrewMember
from ..models.status import CrewStatus, MemberRole
from .history import compute_diff, crew_ledger, serialize_value
from .lookups import coerce_enum, coerce_uuid, get_crew, get_member, optional_uuid


logger = structlog.get_logger(__name__)

CREW_EDITABLE_FIELDS = {"name", "unique_number", "leader_name", "phone", "address", "status"}
MEMBER_EDITABLE_FIELDS = {"first_name", "last_name", "address", "unique_number", "phone", "member_email", "role"}


def member_display_name(member: CrewMember) -> str:
    return " ".join(part for part in [member.first_name or "", member.last_name or ""] if part).strip()


def _require(payload: Dict[str, Any], fields, entity: str):
    for field in fields:
        value = payload.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(entity, None, "create", f"{field} is required")


def _ensure_unique_member_number(db: Session, unique_number: str, exclude_id: Optional[uuid.UUID] = None):
    query = db.query(CrewMember).filter(CrewMember.unique_number == unique_number)
    if exclude_id:
        query = query.filter(CrewMember.id != exclude_id)
    if query.first():
        raise ValidationError("crew_member", exclude_id, None, f"unique_number '{unique_number}' is already in use")


def create_crew(db: Session, payload: Dict[str, Any], actor_id: Optional[uuid.UUID] = None) -> Crew:
    _require(payload, ("firm_id", "name", "unique_number", "leader_name"), "crew")
    status = coerce_enum(CrewStatus, payload.get("status") or CrewStatus.active, "crew")
    crew = Crew(
        firm_id=coerce_uuid(payload["firm_id"], "crew", "firm_id"),
        name=payload["name"].strip(),
        unique_number=payload["unique_number"].strip(),
        leader_name=payload["leader_name"].strip(),
        phone=payload.get("phone"),
        address=payload.get("address"),
        status=status,
        archived=False,
    )
    with unit_of_work(db, action="create", entity="crew"):
        db.add(crew)
        db.flush()
        crew_ledger.append(
            db, crew.id,
            user_id=optional_uuid(actor_id, "crew", "actor_id"),
            change_type="crew_created",
            description=f'Crew "{crew.name}" created',
        )
    db.refresh(crew)
    logger.info("crew_created", crew_id=str(crew.id), firm_id=str(crew.firm_id))
    return crew


def update_crew(db: Session, crew_id: Any, updates: Dict[str, Any], actor_id: Optional[uuid.UUID] = None) -> Crew:
    crew = get_crew(db, crew_id, allow_archived=False)
    unknown = set(updates) - CREW_EDITABLE_FIELDS
    if unknown:
        raise ValidationError("crew", crew.id, "update", f"Fields not editable: {', '.join(sorted(unknown))}")
    if "status" in updates:
        updates = dict(updates, status=coerce_enum(CrewStatus, updates["status"], "crew", crew.id))
    before = {key: getattr(crew, key) for key in updates}
    diff = compute_diff(before, updates)
    if not diff:
        return crew
    with unit_of_work(db, action="update", entity="crew", entity_id=crew.id):
        for field, change in diff.items():
            setattr(crew, field, change["after"])
            crew_ledger.append(
                db, crew.id,
                user_id=optional_uuid(actor_id, "crew", "actor_id"),
                change_type="crew_updated",
                field_name=field,
                old_value=serialize_value(change["before"]),
                new_value=serialize_value(change["after"]),
                description=f'Crew field "{field}" changed',
            )
    db.refresh(crew)
    return crew


def archive_crew(db: Session, crew_id: Any, actor_id: Optional[uuid.UUID] = None) -> Crew:
    crew = get_crew(db, crew_id)
    if crew.archived:
        return crew
    with unit_of_work(db, action="archive", entity="crew", entity_id=crew.id):
        crew.archived = True
        crew_ledger.append(
            db, crew.id,
            user_id=optional_uuid(actor_id, "crew", "actor_id"),
            change_type="crew_archived",
            field_name="archived",
            old_value="false",
            new_value="true",
            description=f'Crew "{crew.name}" archived',
        )
    db.refresh(crew)
    logger.info("crew_archived", crew_id=str(crew.id))
    return crew


def list_crews_for_firm(db: Session, firm_id: Any, include_archived: bool = False) -> List[Crew]:
    query = db.query(Crew).filter(Crew.firm_id == coerce_uuid(firm_id, "crew", "firm_id"))
    if not include_archived:
        query = query.filter(Crew.archived.is_(False))
    return query.order_by(Crew.created_at.desc()).all()


def list_members(db: Session, crew_id: Any, include_archived: bool = False) -> List[CrewMember]:
    crew = get_crew(db, crew_id)
    query = db.query(CrewMember).filter(CrewMember.crew_id == crew.id)
    if not include_archived:
        query = query.filter(CrewMember.archived.is_(False))
    return query.order_by(CrewMember.created_at.asc(), CrewMember.unique_number.asc()).all()


def add_member(db: Session, crew_id: Any, payload: Dict[str, Any], actor_id: Optional[uuid.UUID] = None) -> CrewMember:
    # Members can only join a live crew
    crew = get_crew(db, crew_id, allow_archived=False)
    _require(payload, ("first_name", "last_name", "unique_number"), "crew_member")
    role = coerce_enum(MemberRole, payload.get("role") or MemberRole.worker, "crew_member", field="role")
    unique_number = payload["unique_number"].strip()
    _ensure_unique_member_number(db, unique_number)
    member = CrewMember(
        crew_id=crew.id,
        first_name=payload["first_name"].strip(),
        last_name=payload["last_name"].strip(),
        address=payload.get("address"),
        unique_number=unique_number,
        phone=payload.get("phone"),
        member_email=payload.get("member_email"),
        role=role,
        archived=False,
        created_at=datetime.utcnow(),
    )
    with unit_of_work(db, action="add_member", entity="crew", entity_id=crew.id):
        db.add(member)
        db.flush()
        name = member_display_name(member)
        crew_ledger.append(
            db, crew.id,
            user_id=optional_uuid(actor_id, "crew", "actor_id"),
            change_type="member_added",
            member_id=member.id,
            member_name=name,
            description=f"{name} joined the crew as {role}",
        )
    db.refresh(member)
    logger.info("crew_member_added", crew_id=str(crew.id), member_id=str(member.id))
    return member


def update_member(db: Session, member_id: Any, updates: Dict[str, Any], actor_id: Optional[uuid.UUID] = None) -> CrewMember:
    member = get_member(db, member_id, allow_archived=False)
    unknown = set(updates) - MEMBER_EDITABLE_FIELDS
    if unknown:
        raise ValidationError("crew_member", member.id, "update", f"Fields not editable: {', '.join(sorted(unknown))}")
    if "role" in updates:
        updates = dict(updates, role=coerce_enum(MemberRole, updates["role"], "crew_member", member.id, "role"))
    if "unique_number" in updates and updates["unique_number"] != member.unique_number:
        _ensure_unique_member_number(db, updates["unique_number"], exclude_id=member.id)
    before = {key: getattr(member, key) for key in updates}
    diff = compute_diff(before, updates)
    if not diff:
        return member
    with unit_of_work(db, action="update_member", entity="crew", entity_id=member.crew_id):
        for field, change in diff.items():
            setattr(member, field, change["after"])
            crew_ledger.append(
                db, member.crew_id,
                user_id=optional_uuid(actor_id, "crew", "actor_id"),
                change_type="member_updated",
                member_id=member.id,
                member_name=member_display_name(member),
                field_name=field,
                old_value=serialize_value(change["before"]),
                new_value=serialize_value(change["after"]),
                description=f'Member field "{field}" changed',
            )
    db.refresh(member)
    return member


def archive_member(db: Session, member_id: Any, actor_id: Optional[uuid.UUID] = None) -> CrewMember:
    member = get_member(db, member_id)
    if member.archived:
        return member
    with unit_of_work(db, action="archive_member", entity="crew", entity_id=member.crew_id):
        member.archived = True
        name = member_display_name(member)
        since = member.created_at.date().isoformat() if member.created_at else "?"
        crew_ledger.append(
            db, member.crew_id,
            user_id=optional_uuid(actor_id, "crew", "actor_id"),
            change_type="member_removed",
            member_id=member.id,
            member_name=name,
            description=f"{name} left the crew (member since {since})",
        )
    db.refresh(member)
    logger.info("crew_member_archived", crew_id=str(member.crew_id), member_id=str(member.id))
    return member


def get_crew_history(db: Session, crew_id: Any, newest_first: bool = True):
    crew = get_crew(db, crew_id)
    return crew_ledger.list_for(db, crew.id, newest_first=newest_first)
