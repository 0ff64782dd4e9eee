import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ProjectHistoryResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    seq: int
    user_id: Optional[uuid.UUID] = None
    change_type: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    description: Optional[str] = None
    crew_snapshot_id: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CrewHistoryResponse(BaseModel):
    id: uuid.UUID
    crew_id: uuid.UUID
    seq: int
    user_id: Optional[uuid.UUID] = None
    change_type: str
    member_id: Optional[uuid.UUID] = None
    member_name: Optional[str] = None
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReclamationHistoryResponse(BaseModel):
    id: uuid.UUID
    reclamation_id: uuid.UUID
    seq: int
    action: str
    action_by: Optional[uuid.UUID] = None
    action_by_member: Optional[uuid.UUID] = None
    crew_id: Optional[uuid.UUID] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
