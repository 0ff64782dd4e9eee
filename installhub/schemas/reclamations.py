import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class ReclamationCreate(BaseModel):
    firm_id: uuid.UUID
    crew_id: uuid.UUID
    description: str
    deadline: date


class MemberAction(BaseModel):
    member_id: uuid.UUID


class RejectRequest(MemberAction):
    reason: str


class CompleteRequest(BaseModel):
    member_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class ReassignRequest(BaseModel):
    crew_id: uuid.UUID


class ReclamationResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    firm_id: uuid.UUID
    description: str
    deadline: date
    status: str
    original_crew_id: uuid.UUID
    current_crew_id: uuid.UUID
    created_by: Optional[uuid.UUID] = None
    accepted_by_member_id: Optional[uuid.UUID] = None
    accepted_at: Optional[datetime] = None
    rejected_by_member_id: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    completed_by_member_id: Optional[uuid.UUID] = None
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True


class CrewReclamations(BaseModel):
    assigned: List[ReclamationResponse] = []
    available: List[ReclamationResponse] = []
