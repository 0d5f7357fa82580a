"""Project 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ProjectCreate(BaseModel):
    project_name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None


class ProjectOut(BaseModel):
    project_id: int
    project_name: str
    description: Optional[str] = None
    owner_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectMemberCreate(BaseModel):
    user_id: int
    role: str = "editor"


class ProjectMemberOut(BaseModel):
    member_id: int
    project_id: int
    user_id: int
    role: str
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
