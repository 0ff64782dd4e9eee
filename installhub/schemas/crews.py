import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class CrewBase(BaseModel):
    name: str
    unique_number: str
    leader_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    status: str = "active"  # active|vacation|equipment_issue|unavailable


class CrewCreate(CrewBase):
    firm_id: uuid.UUID


class CrewUpdate(BaseModel):
    name: Optional[str] = None
    unique_number: Optional[str] = None
    leader_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None


class CrewMemberBase(BaseModel):
    first_name: str
    last_name: str
    unique_number: str
    address: Optional[str] = None
    phone: Optional[str] = None
    member_email: Optional[str] = None
    role: str = "worker"  # leader|worker|specialist


class CrewMemberCreate(CrewMemberBase):
    pass


class CrewMemberUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    unique_number: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    member_email: Optional[str] = None
    role: Optional[str] = None


class CrewMemberResponse(CrewMemberBase):
    id: uuid.UUID
    crew_id: uuid.UUID
    archived: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CrewResponse(CrewBase):
    id: uuid.UUID
    firm_id: uuid.UUID
    archived: bool
    created_at: datetime
    members: List[CrewMemberResponse] = []

    class Config:
        from_attributes = True
