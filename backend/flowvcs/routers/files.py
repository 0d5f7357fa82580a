"""라이브 폴더/프로세스 파일 API 라우터입니다. 편집기 저장은 저장한 사용자의 draft 작업 트리에도 반영됩니다."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from flowvcs.database import get_db
from flowvcs.middleware.auth_middleware import get_current_user
from flowvcs.models.user import User
from flowvcs.schemas.file import (
    FolderCreate,
    FolderDeleteResult,
    FolderOut,
    ProcessFileCreate,
    ProcessFileOut,
    ProcessFileUpdate,
)
from flowvcs.services import file_service, project_service, working_tree_service

router = APIRouter(tags=["files"])


@router.get("/api/projects/{project_id}/files", response_model=List[ProcessFileOut])
def list_files(project_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    project_service.get_project(db, project_id, current_user)
    return file_service.list_project_files(db, project_id)


@router.post("/api/projects/{project_id}/files", response_model=ProcessFileOut)
def create_file(
    project_id: int,
    data: ProcessFileCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.get_editable_project(db, project_id, current_user)
    row = file_service.create_file(
        db,
        project_id,
        name=data.name,
        doc_type=data.doc_type,
        xml=data.xml,
        folder_id=data.folder_id,
        created_by=current_user.user_id,
    )
    db.commit()
    working_tree_service.stage_live_project(db, project_id, current_user.user_id)
    db.refresh(row)
    return row


@router.put("/api/files/{file_id}", response_model=ProcessFileOut)
def update_file(
    file_id: int,
    data: ProcessFileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_id = file_service.get_file(db, file_id).project_id
    project_service.get_editable_project(db, project_id, current_user)
    row = file_service.update_file(db, file_id, data.model_dump(exclude_unset=True))
    db.commit()
    working_tree_service.stage_live_project(db, project_id, current_user.user_id)
    db.refresh(row)
    return row


@router.delete("/api/files/{file_id}")
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_id = file_service.get_file(db, file_id).project_id
    project_service.get_editable_project(db, project_id, current_user)
    file_service.delete_file(db, file_id)
    db.commit()
    working_tree_service.stage_live_project(db, project_id, current_user.user_id)
    return {"message": "삭제되었습니다."}


@router.post("/api/projects/{project_id}/folders", response_model=FolderOut)
def create_folder(
    project_id: int,
    data: FolderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.get_editable_project(db, project_id, current_user)
    row = file_service.create_folder(db, project_id, name=data.name, parent_folder_id=data.parent_folder_id)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/api/folders/{folder_id}", response_model=FolderDeleteResult)
def delete_folder(
    folder_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_id = file_service.get_folder(db, folder_id).project_id
    project_service.get_editable_project(db, project_id, current_user)
    result = file_service.delete_folder(db, folder_id)
    db.commit()
    working_tree_service.stage_live_project(db, project_id, current_user.user_id)
    return result
