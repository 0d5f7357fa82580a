"""라이브 폴더/프로세스 파일 요청/응답 스키마입니다."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ProcessFileCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    doc_type: str = "bpmn"
    xml: str = ""
    folder_id: Optional[int] = None


class ProcessFileUpdate(BaseModel):
    name: Optional[str] = None
    xml: Optional[str] = None
    folder_id: Optional[int] = None


class ProcessFileOut(BaseModel):
    file_id: int
    project_id: int
    folder_id: Optional[int] = None
    name: str
    doc_type: str
    xml: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    parent_folder_id: Optional[int] = None


class FolderOut(BaseModel):
    folder_id: int
    project_id: int
    parent_folder_id: Optional[int] = None
    name: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FolderDeleteResult(BaseModel):
    deleted_folders: int
    deleted_files: int
