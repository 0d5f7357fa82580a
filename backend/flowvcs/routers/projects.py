from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from flowvcs.database import get_db
from flowvcs.schemas.project import ProjectCreate, ProjectOut, ProjectMemberCreate, ProjectMemberOut
from flowvcs.services import project_service
from flowvcs.middleware.auth_middleware import get_current_user
from flowvcs.models.user import User

router = APIRouter(tags=["projects"])


@router.post("/api/projects", response_model=ProjectOut)
def create_project(
    data: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return project_service.create_project(db, data, current_user)


@router.get("/api/projects/{project_id}", response_model=ProjectOut)
def get_project(project_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return project_service.get_project(db, project_id, current_user)


@router.delete("/api/projects/{project_id}")
def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.delete_project(db, project_id, current_user)
    return {"message": "삭제되었습니다."}


@router.post("/api/projects/{project_id}/members", response_model=ProjectMemberOut)
def add_member(
    project_id: int,
    data: ProjectMemberCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return project_service.add_member(db, project_id, data, current_user)
