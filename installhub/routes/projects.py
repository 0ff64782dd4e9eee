import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_actor
from ..db import get_db
from ..schemas.history import ProjectHistoryResponse
from ..schemas.projects import (
    CrewAssignment, CrewAssignmentResponse, ProjectCreate, ProjectResponse,
    ProjectStatusResponse, ProjectStatusUpdate, ProjectUpdate, SnapshotResponse,
)
from ..schemas.reclamations import ReclamationCreate, ReclamationResponse
from ..services import projects as project_service
from ..services import reclamations as reclamation_service
from ..services import snapshots as snapshot_service
from ..services.lookups import get_project

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return project_service.create_project(db, payload.model_dump(exclude_unset=True), actor_id)


@router.get("/{project_id}", response_model=ProjectResponse)
def read_project(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return get_project(db, project_id)


@router.patch("/{project_id}/status", response_model=ProjectStatusResponse)
def change_status(
    project_id: str,
    payload: ProjectStatusUpdate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    """Move the project to any status; the response suggests the usual next stage."""
    project = project_service.update_status(db, project_id, payload.status, actor_id)
    response = ProjectStatusResponse.model_validate(project)
    response.suggested_next_status = project_service.suggest_next_status(project.status)
    return response


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    # Only fields present in the body are applied; an explicit null clears a date
    return project_service.update_project_fields(db, project_id, payload.model_dump(exclude_unset=True), actor_id)


@router.post("/{project_id}/crew", response_model=CrewAssignmentResponse)
def assign_crew(
    project_id: str,
    payload: CrewAssignment,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    project, snapshot = project_service.assign_crew(db, project_id, payload.crew_id, actor_id)
    return {"project": project, "snapshot": snapshot}


@router.get("/{project_id}/history", response_model=List[ProjectHistoryResponse])
def project_history(
    project_id: str,
    order: str = Query("newest", pattern="^(newest|oldest)$"),
    change_type: Optional[List[str]] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_actor),
):
    return project_service.get_history(db, project_id, newest_first=order == "newest", change_types=change_type)


@router.get("/{project_id}/snapshots", response_model=List[SnapshotResponse])
def list_snapshots(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return snapshot_service.list_snapshots(db, project_id)


@router.get("/{project_id}/snapshots/latest", response_model=Optional[SnapshotResponse])
def latest_snapshot(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    get_project(db, project_id)
    return snapshot_service.get_latest_snapshot(db, project_id)


@router.post("/{project_id}/snapshots", response_model=SnapshotResponse, status_code=201)
def capture_snapshot(
    project_id: str,
    payload: CrewAssignment,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return snapshot_service.capture_snapshot(db, project_id, payload.crew_id, actor_id)


@router.post("/{project_id}/reclamations", response_model=ReclamationResponse, status_code=201)
def create_reclamation(
    project_id: str,
    payload: ReclamationCreate,
    db: Session = Depends(get_db),
    actor_id: uuid.UUID = Depends(get_current_actor),
):
    return reclamation_service.create_reclamation(
        db,
        project_id,
        firm_id=payload.firm_id,
        description=payload.description,
        deadline=payload.deadline,
        crew_id=payload.crew_id,
        actor_id=actor_id,
    )


@router.get("/{project_id}/reclamations", response_model=List[ReclamationResponse])
def list_project_reclamations(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_actor)):
    return reclamation_service.list_for_project(db, project_id)
