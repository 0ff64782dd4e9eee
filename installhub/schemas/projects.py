import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ProjectBase(BaseModel):
    client_id: Optional[uuid.UUID] = None
    equipment_expected_date: Optional[date] = None
    equipment_arrived_date: Optional[date] = None
    work_start_date: Optional[date] = None
    work_end_date: Optional[date] = None
    equipment_notes: Optional[str] = None
    needs_call_for_equipment_delay: bool = False
    needs_call_for_crew_delay: bool = False
    needs_call_for_date_change: bool = False
    installation_person_first_name: Optional[str] = None
    installation_person_last_name: Optional[str] = None
    installation_person_address: Optional[str] = None
    installation_person_phone: Optional[str] = None
    team_number: Optional[str] = None
    notes: Optional[str] = None


class ProjectCreate(ProjectBase):
    firm_id: uuid.UUID
    leiter_id: Optional[uuid.UUID] = None


class ProjectUpdate(BaseModel):
    client_id: Optional[uuid.UUID] = None
    equipment_expected_date: Optional[date] = None
    equipment_arrived_date: Optional[date] = None
    work_start_date: Optional[date] = None
    work_end_date: Optional[date] = None
    equipment_notes: Optional[str] = None
    needs_call_for_equipment_delay: Optional[bool] = None
    needs_call_for_crew_delay: Optional[bool] = None
    needs_call_for_date_change: Optional[bool] = None
    installation_person_first_name: Optional[str] = None
    installation_person_last_name: Optional[str] = None
    installation_person_address: Optional[str] = None
    installation_person_phone: Optional[str] = None
    team_number: Optional[str] = None
    notes: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_url: Optional[str] = None


class ProjectStatusUpdate(BaseModel):
    status: str


class CrewAssignment(BaseModel):
    crew_id: uuid.UUID


class ProjectResponse(ProjectBase):
    id: uuid.UUID
    firm_id: uuid.UUID
    leiter_id: Optional[uuid.UUID] = None
    crew_id: Optional[uuid.UUID] = None
    status: str
    invoice_number: Optional[str] = None
    invoice_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True


class ProjectStatusResponse(ProjectResponse):
    suggested_next_status: Optional[str] = None


class SnapshotResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    crew_id: uuid.UUID
    snapshot_date: datetime
    crew_data: Dict[str, Any]
    members_data: List[Dict[str, Any]]
    created_by: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class CrewAssignmentResponse(BaseModel):
    project: ProjectResponse
    snapshot: SnapshotResponse
