"""
Reclamation workflow.

pending -> accepted -> completed
pending -> rejected -> (another crew takes it over) -> pending / accepted
any state -> cancelled (administrative override)

A rejected reclamation becomes "available" to the other crews of the same
firm; any of them may pull it. Each transition and its ledger entry are
committed together; the crew notification goes out afterwards and is
fire-and-forget.
"""
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..db import unit_of_work
from ..errors import ConflictError, ValidationError
from ..models.models import Crew, CrewMember, Reclamation
from ..models.status import (
    ACTIVE_RECLAMATION_STATUSES,
    RECLAMATION_PROJECT_STATUSES,
    TERMINAL_RECLAMATION_STATUSES,
    ReclamationStatus,
)
from .history import reclamation_ledger
from .lookups import coerce_enum, coerce_uuid, get_crew, get_member, get_project, get_reclamation, optional_uuid
from .notifications import send_reclamation_notification


logger = structlog.get_logger(__name__)

PENDING = ReclamationStatus.pending.value
ACCEPTED = ReclamationStatus.accepted.value
REJECTED = ReclamationStatus.rejected.value
COMPLETED = ReclamationStatus.completed.value
CANCELLED = ReclamationStatus.cancelled.value


def _notify(db: Session, reclamation: Reclamation, event: str, extra: Optional[Dict] = None):
    try:
        send_reclamation_notification(db, reclamation, event, extra)
    except Exception as exc:
        # The transition is already committed; a lost notification must not surface as a failure
        logger.warning("reclamation_notification_failed", reclamation_id=str(reclamation.id), notification_event=event, error=str(exc))


def _parse_deadline(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("reclamation", None, "create", f"deadline must be an ISO date, got '{value}'")


def _ensure_not_terminal(reclamation: Reclamation, action: str):
    if reclamation.status in TERMINAL_RECLAMATION_STATUSES:
        raise ConflictError(
            "reclamation", reclamation.id, action,
            f"reclamation is already {reclamation.status}",
        )


def _transition_error(reclamation: Reclamation, action: str, expected: str) -> ConflictError:
    return ConflictError(
        "reclamation", reclamation.id, action,
        f"status is {reclamation.status}, expected {expected}",
    )


def _active_member(db: Session, member_id: Any) -> CrewMember:
    return get_member(db, member_id, allow_archived=False)


def _require_current_crew(reclamation: Reclamation, member: CrewMember, action: str):
    if member.crew_id != reclamation.current_crew_id:
        raise ValidationError(
            "reclamation", reclamation.id, action,
            f"member {member.id} is not in the responsible crew {reclamation.current_crew_id}",
        )


def _taking_crew(db: Session, reclamation: Reclamation, member: CrewMember, action: str) -> Crew:
    """Crew of a member pulling an available reclamation."""
    if member.crew_id == reclamation.current_crew_id:
        raise ConflictError("reclamation", reclamation.id, action, "this crew has already rejected the reclamation")
    crew = get_crew(db, member.crew_id, allow_archived=False)
    if crew.firm_id != reclamation.firm_id:
        raise ValidationError("reclamation", reclamation.id, action, "crew belongs to another firm")
    return crew


def create_reclamation(
    db: Session,
    project_id: Any,
    firm_id: Any,
    description: str,
    deadline: Any,
    crew_id: Any,
    actor_id: Optional[uuid.UUID] = None,
) -> Reclamation:
    project = get_project(db, project_id)
    firm = coerce_uuid(firm_id, "reclamation", "firm_id")
    if project.status not in RECLAMATION_PROJECT_STATUSES:
        raise ValidationError(
            "reclamation", None, "create",
            f"project must be completed, invoiced or paid, not '{project.status}'",
        )
    if not description or not description.strip():
        raise ValidationError("reclamation", None, "create", "description is required")
    if crew_id is None:
        raise ValidationError("reclamation", None, "create", "crew_id is required")
    due = _parse_deadline(deadline)
    now = datetime.utcnow()
    if due < now.date():
        raise ValidationError("reclamation", None, "create", f"deadline {due.isoformat()} is before the creation date")
    crew = get_crew(db, crew_id, allow_archived=False)
    if crew.firm_id != firm or project.firm_id != firm:
        raise ValidationError("reclamation", None, "create", "project, crew and firm do not match")

    actor = optional_uuid(actor_id, "reclamation", "actor_id")
    reclamation = Reclamation(
        id=uuid.uuid4(),
        project_id=project.id,
        firm_id=firm,
        description=description.strip(),
        deadline=due,
        status=PENDING,
        original_crew_id=crew.id,
        current_crew_id=crew.id,
        created_by=actor,
        created_at=now,
        updated_at=now,
    )
    with unit_of_work(db, action="create", entity="reclamation", entity_id=reclamation.id):
        db.add(reclamation)
        db.flush()
        reclamation_ledger.append(
            db, reclamation.id,
            action="created",
            action_by=actor,
            crew_id=crew.id,
            notes=f"Assigned to crew {crew.name}",
        )
    db.refresh(reclamation)
    logger.info("reclamation_created", reclamation_id=str(reclamation.id), project_id=str(project.id), crew_id=str(crew.id))
    _notify(db, reclamation, "created")
    return reclamation


def accept(db: Session, reclamation_id: Any, member_id: Any) -> Reclamation:
    """
    Accept a reclamation on behalf of the member's crew.

    From pending the member must belong to the current crew. From rejected
    the member's crew takes the reclamation over (hand-off) and accepts it
    in the same commit.
    """
    reclamation = get_reclamation(db, reclamation_id)
    _ensure_not_terminal(reclamation, "accept")
    member = _active_member(db, member_id)
    if reclamation.status == PENDING:
        _require_current_crew(reclamation, member, "accept")
        new_crew = None
    elif reclamation.status == REJECTED:
        new_crew = _taking_crew(db, reclamation, member, "accept")
    else:
        raise _transition_error(reclamation, "accept", "pending or rejected")

    now = datetime.utcnow()
    with unit_of_work(db, action="accept", entity="reclamation", entity_id=reclamation.id):
        if new_crew is not None:
            previous = reclamation.current_crew_id
            reclamation.current_crew_id = new_crew.id
            reclamation_ledger.append(
                db, reclamation.id,
                action="reassigned",
                action_by_member=member.id,
                crew_id=new_crew.id,
                notes=f"Taken over from crew {previous}",
            )
        reclamation.status = ACCEPTED
        reclamation.accepted_by_member_id = member.id
        reclamation.accepted_at = now
        reclamation.updated_at = now
        reclamation_ledger.append(
            db, reclamation.id,
            action="accepted",
            action_by_member=member.id,
            crew_id=reclamation.current_crew_id,
        )
    db.refresh(reclamation)
    logger.info(
        "reclamation_accepted",
        reclamation_id=str(reclamation.id),
        crew_id=str(reclamation.current_crew_id),
        handoff=new_crew is not None,
    )
    _notify(db, reclamation, "accepted")
    return reclamation


def take(db: Session, reclamation_id: Any, member_id: Any) -> Reclamation:
    """Pull an available (rejected) reclamation to the member's crew; it becomes pending again."""
    reclamation = get_reclamation(db, reclamation_id)
    _ensure_not_terminal(reclamation, "take")
    if reclamation.status != REJECTED:
        raise _transition_error(reclamation, "take", "rejected")
    member = _active_member(db, member_id)
    new_crew = _taking_crew(db, reclamation, member, "take")

    with unit_of_work(db, action="take", entity="reclamation", entity_id=reclamation.id):
        previous = reclamation.current_crew_id
        reclamation.current_crew_id = new_crew.id
        reclamation.status = PENDING
        reclamation.updated_at = datetime.utcnow()
        reclamation_ledger.append(
            db, reclamation.id,
            action="reassigned",
            action_by_member=member.id,
            crew_id=new_crew.id,
            notes=f"Taken over from crew {previous}",
        )
    db.refresh(reclamation)
    logger.info("reclamation_taken", reclamation_id=str(reclamation.id), crew_id=str(new_crew.id))
    _notify(db, reclamation, "reassigned")
    return reclamation


def reject(db: Session, reclamation_id: Any, member_id: Any, reason: Optional[str]) -> Reclamation:
    reclamation = get_reclamation(db, reclamation_id)
    _ensure_not_terminal(reclamation, "reject")
    cleaned = (reason or "").strip()
    min_chars = max(settings.reclamation_reject_reason_min_chars, 1)
    if len(cleaned) < min_chars:
        raise ValidationError(
            "reclamation", reclamation.id, "reject",
            f"a rejection reason of at least {min_chars} characters is required",
        )
    if reclamation.status != PENDING:
        raise _transition_error(reclamation, "reject", "pending")
    member = _active_member(db, member_id)
    _require_current_crew(reclamation, member, "reject")

    now = datetime.utcnow()
    with unit_of_work(db, action="reject", entity="reclamation", entity_id=reclamation.id):
        reclamation.status = REJECTED
        reclamation.rejected_by_member_id = member.id
        reclamation.rejected_at = now
        reclamation.rejection_reason = cleaned
        reclamation.updated_at = now
        reclamation_ledger.append(
            db, reclamation.id,
            action="rejected",
            action_by_member=member.id,
            crew_id=reclamation.current_crew_id,
            reason=cleaned,
        )
    db.refresh(reclamation)
    logger.info("reclamation_rejected", reclamation_id=str(reclamation.id), crew_id=str(reclamation.current_crew_id))
    _notify(db, reclamation, "rejected", {"reason": cleaned})
    return reclamation


def complete(db: Session, reclamation_id: Any, notes: Optional[str] = None, member_id: Any = None) -> Reclamation:
    reclamation = get_reclamation(db, reclamation_id)
    _ensure_not_terminal(reclamation, "complete")
    if reclamation.status != ACCEPTED:
        raise _transition_error(reclamation, "complete", "accepted")
    member = None
    if member_id is not None:
        member = _active_member(db, member_id)
        _require_current_crew(reclamation, member, "complete")
    cleaned = notes.strip() if notes and notes.strip() else None

    now = datetime.utcnow()
    with unit_of_work(db, action="complete", entity="reclamation", entity_id=reclamation.id):
        reclamation.status = COMPLETED
        reclamation.completed_at = now
        reclamation.completion_notes = cleaned
        reclamation.completed_by_member_id = member.id if member else None
        reclamation.updated_at = now
        reclamation_ledger.append(
            db, reclamation.id,
            action="completed",
            action_by_member=member.id if member else None,
            crew_id=reclamation.current_crew_id,
            notes=cleaned,
        )
    db.refresh(reclamation)
    logger.info("reclamation_completed", reclamation_id=str(reclamation.id), crew_id=str(reclamation.current_crew_id))
    _notify(db, reclamation, "completed")
    return reclamation


def cancel(db: Session, reclamation_id: Any, actor_id: Optional[uuid.UUID] = None) -> Reclamation:
    """Administrative override: cancels from whatever state the reclamation is in."""
    reclamation = get_reclamation(db, reclamation_id)
    previous = reclamation.status
    with unit_of_work(db, action="cancel", entity="reclamation", entity_id=reclamation.id):
        reclamation.status = CANCELLED
        reclamation.updated_at = datetime.utcnow()
        reclamation_ledger.append(
            db, reclamation.id,
            action="cancelled",
            action_by=optional_uuid(actor_id, "reclamation", "actor_id"),
        )
    db.refresh(reclamation)
    logger.info("reclamation_cancelled", reclamation_id=str(reclamation.id), previous_status=previous)
    _notify(db, reclamation, "cancelled")
    return reclamation


def reassign(db: Session, reclamation_id: Any, crew_id: Any, actor_id: Optional[uuid.UUID] = None) -> Reclamation:
    """Office-side reassignment to another crew; the new crew starts from pending."""
    reclamation = get_reclamation(db, reclamation_id)
    _ensure_not_terminal(reclamation, "reassign")
    crew = get_crew(db, crew_id, allow_archived=False)
    if crew.firm_id != reclamation.firm_id:
        raise ValidationError("reclamation", reclamation.id, "reassign", "crew belongs to another firm")
    if crew.id == reclamation.current_crew_id and reclamation.status == PENDING:
        return reclamation

    with unit_of_work(db, action="reassign", entity="reclamation", entity_id=reclamation.id):
        previous = reclamation.current_crew_id
        reclamation.current_crew_id = crew.id
        reclamation.status = PENDING
        reclamation.updated_at = datetime.utcnow()
        reclamation_ledger.append(
            db, reclamation.id,
            action="reassigned",
            action_by=optional_uuid(actor_id, "reclamation", "actor_id"),
            crew_id=crew.id,
            notes=f"Reassigned from crew {previous} to crew {crew.id}",
        )
    db.refresh(reclamation)
    logger.info("reclamation_reassigned", reclamation_id=str(reclamation.id), crew_id=str(crew.id))
    _notify(db, reclamation, "reassigned")
    return reclamation


def list_for_firm(db: Session, firm_id: Any, status: Optional[str] = None) -> List[Reclamation]:
    query = db.query(Reclamation).filter(Reclamation.firm_id == coerce_uuid(firm_id, "reclamation", "firm_id"))
    if status:
        query = query.filter(Reclamation.status == coerce_enum(ReclamationStatus, status, "reclamation"))
    return query.order_by(Reclamation.created_at.desc()).all()


def list_for_project(db: Session, project_id: Any) -> List[Reclamation]:
    project = get_project(db, project_id)
    return (
        db.query(Reclamation)
        .filter(Reclamation.project_id == project.id)
        .order_by(Reclamation.created_at.desc())
        .all()
    )


def list_for_crew(db: Session, crew_id: Any) -> Dict[str, List[Reclamation]]:
    """
    Work of one crew: "assigned" is what it is responsible for now,
    "available" is what other crews of the firm rejected and it may take over.
    """
    crew = get_crew(db, crew_id)
    assigned = (
        db.query(Reclamation)
        .filter(
            Reclamation.current_crew_id == crew.id,
            Reclamation.status.in_(sorted(ACTIVE_RECLAMATION_STATUSES)),
        )
        .order_by(Reclamation.deadline.asc(), Reclamation.created_at.asc())
        .all()
    )
    available = (
        db.query(Reclamation)
        .filter(
            Reclamation.firm_id == crew.firm_id,
            Reclamation.status == REJECTED,
            Reclamation.current_crew_id != crew.id,
        )
        .order_by(Reclamation.deadline.asc(), Reclamation.created_at.asc())
        .all()
    )
    return {"assigned": assigned, "available": available}


def get_history(db: Session, reclamation_id: Any, newest_first: bool = True) -> List:
    reclamation = get_reclamation(db, reclamation_id)
    return reclamation_ledger.list_for(db, reclamation.id, newest_first=newest_first)
