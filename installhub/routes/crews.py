import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_actor
from ..db import get_db
from ..schemas.crews import (
    CrewCreate, CrewMemberCreate, CrewMemberResponse, CrewMemberUpdate,
    CrewResponse, CrewUpdate,
)
from ..schemas.history import CrewHistoryResponse
from ..schemas.projects import SnapshotResponse
from ..services import roster
from ..services.lookups import get_crew
from ..services.snapshots import get_snapshot_by_id

router = APIRouter(prefix="/crews", tags=["crews"])


@router.post("", response_model=CrewResponse, status_code=201)
def create_crew(
    payload: CrewCreate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return roster.create_crew(db, payload.model_dump(), actor_id)


@router.get("", response_model=List[CrewResponse])
def list_crews(
    firm_id: str,
    include_archived: bool = False,
    db: Session = Depends(get_db),
    _=Depends(get_current_actor),
):
    return roster.list_crews_for_firm(db, firm_id, include_archived=include_archived)


@router.get("/snapshots/{snapshot_id}", response_model=SnapshotResponse)
def read_snapshot(snapshot_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return get_snapshot_by_id(db, snapshot_id)


@router.patch("/members/{member_id}", response_model=CrewMemberResponse)
def update_member(
    member_id: str,
    payload: CrewMemberUpdate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return roster.update_member(db, member_id, payload.model_dump(exclude_unset=True), actor_id)


@router.post("/members/{member_id}/archive", response_model=CrewMemberResponse)
def archive_member(
    member_id: str,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return roster.archive_member(db, member_id, actor_id)


@router.get("/{crew_id}", response_model=CrewResponse)
def read_crew(crew_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return get_crew(db, crew_id)


@router.patch("/{crew_id}", response_model=CrewResponse)
def update_crew(
    crew_id: str,
    payload: CrewUpdate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return roster.update_crew(db, crew_id, payload.model_dump(exclude_unset=True), actor_id)


@router.post("/{crew_id}/archive", response_model=CrewResponse)
def archive_crew(
    crew_id: str,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return roster.archive_crew(db, crew_id, actor_id)


@router.get("/{crew_id}/members", response_model=List[CrewMemberResponse])
def list_members(
    crew_id: str,
    include_archived: bool = False,
    db: Session = Depends(get_db),
    _=Depends(get_current_actor),
):
    return roster.list_members(db, crew_id, include_archived=include_archived)


@router.post("/{crew_id}/members", response_model=CrewMemberResponse, status_code=201)
def add_member(
    crew_id: str,
    payload: CrewMemberCreate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return roster.add_member(db, crew_id, payload.model_dump(), actor_id)


@router.get("/{crew_id}/history", response_model=List[CrewHistoryResponse])
def crew_history(crew_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return roster.get_crew_history(db, crew_id)
