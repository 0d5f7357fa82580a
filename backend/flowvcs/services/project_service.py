"""Project Service 도메인 서비스 레이어입니다. 프로젝트 생성 시 VCS를 초기화하고 삭제 시 VCS 데이터까지 정리합니다."""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from flowvcs.models.project import Project, ProjectMember
from flowvcs.models.user import User
from flowvcs.schemas.project import ProjectCreate, ProjectMemberCreate
from flowvcs.services import branch_service, file_service
from flowvcs.utils.permissions import MEMBER_ROLES, EDITOR, can_edit_project, can_view_project, is_admin, is_project_owner

logger = logging.getLogger(__name__)


def get_project(db: Session, project_id: int, current_user: User) -> Project:
    project = db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="프로젝트를 찾을 수 없습니다.")
    if not can_view_project(db, project, current_user):
        raise HTTPException(status_code=403, detail="이 프로젝트에 접근할 권한이 없습니다.")
    return project


def get_editable_project(db: Session, project_id: int, current_user: User) -> Project:
    project = get_project(db, project_id, current_user)
    if not can_edit_project(db, project, current_user):
        raise HTTPException(status_code=403, detail="이 프로젝트를 수정할 권한이 없습니다.")
    return project


def create_project(db: Session, data: ProjectCreate, current_user: User) -> Project:
    project = Project(
        project_name=data.project_name.strip(),
        description=data.description,
        owner_id=current_user.user_id,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    branch_service.init_project(db, project.project_id, current_user.user_id)
    logger.info("[projects] project created project_id=%s owner_id=%s", project.project_id, current_user.user_id)
    return project


def add_member(db: Session, project_id: int, data: ProjectMemberCreate, current_user: User) -> ProjectMember:
    project = get_project(db, project_id, current_user)
    if not (is_admin(current_user) or is_project_owner(project, current_user)):
        raise HTTPException(status_code=403, detail="프로젝트 소유자만 멤버를 추가할 수 있습니다.")
    if not db.get(User, data.user_id):
        raise HTTPException(status_code=404, detail="사용자를 찾을 수 없습니다.")
    role = data.role if data.role in MEMBER_ROLES else EDITOR
    member = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == data.user_id)
        .first()
    )
    if member:
        member.role = role
    else:
        member = ProjectMember(project_id=project_id, user_id=data.user_id, role=role)
        db.add(member)
    db.commit()
    db.refresh(member)
    return member


def delete_project(db: Session, project_id: int, current_user: User) -> None:
    project = get_project(db, project_id, current_user)
    if not (is_admin(current_user) or is_project_owner(project, current_user)):
        raise HTTPException(status_code=403, detail="프로젝트 소유자만 삭제할 수 있습니다.")
    branch_service.delete_project_vcs(db, project_id)
    file_service.delete_project_files(db, project_id)
    db.delete(project)
    db.commit()
    logger.info("[projects] project deleted project_id=%s", project_id)
