import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_actor
from ..db import get_db
from ..schemas.history import ReclamationHistoryResponse
from ..schemas.reclamations import (
    CompleteRequest, CrewReclamations, MemberAction, ReassignRequest,
    ReclamationResponse, RejectRequest,
)
from ..services import reclamations as reclamation_service
from ..services.lookups import get_reclamation

router = APIRouter(prefix="/reclamations", tags=["reclamations"])


@router.get("", response_model=List[ReclamationResponse])
def list_reclamations(
    firm_id: str,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_actor),
):
    return reclamation_service.list_for_firm(db, firm_id, status=status)


@router.get("/crew/{crew_id}", response_model=CrewReclamations)
def crew_reclamations(crew_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    """Reclamations the crew is responsible for, and rejected ones it may take over."""
    return reclamation_service.list_for_crew(db, crew_id)


@router.get("/{reclamation_id}", response_model=ReclamationResponse)
def read_reclamation(reclamation_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return get_reclamation(db, reclamation_id)


@router.get("/{reclamation_id}/history", response_model=List[ReclamationHistoryResponse])
def reclamation_history(
    reclamation_id: str,
    newest_first: bool = True,
    db: Session = Depends(get_db),
    _=Depends(get_current_actor),
):
    return reclamation_service.get_history(db, reclamation_id, newest_first=newest_first)


@router.post("/{reclamation_id}/accept", response_model=ReclamationResponse)
def accept(reclamation_id: str, payload: MemberAction, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return reclamation_service.accept(db, reclamation_id, payload.member_id)


@router.post("/{reclamation_id}/take", response_model=ReclamationResponse)
def take(reclamation_id: str, payload: MemberAction, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return reclamation_service.take(db, reclamation_id, payload.member_id)


@router.post("/{reclamation_id}/reject", response_model=ReclamationResponse)
def reject(reclamation_id: str, payload: RejectRequest, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return reclamation_service.reject(db, reclamation_id, payload.member_id, payload.reason)


@router.post("/{reclamation_id}/complete", response_model=ReclamationResponse)
def complete(reclamation_id: str, payload: CompleteRequest, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return reclamation_service.complete(db, reclamation_id, notes=payload.notes, member_id=payload.member_id)


@router.post("/{reclamation_id}/cancel", response_model=ReclamationResponse)
def cancel(
    reclamation_id: str,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return reclamation_service.cancel(db, reclamation_id, actor_id)


@router.post("/{reclamation_id}/reassign", response_model=ReclamationResponse)
def reassign(
    reclamation_id: str,
    payload: ReassignRequest,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return reclamation_service.reassign(db, reclamation_id, payload.crew_id, actor_id)
