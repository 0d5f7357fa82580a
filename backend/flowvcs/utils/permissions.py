"""프로젝트 접근/편집 권한 판단 헬퍼입니다."""

from typing import Optional

from sqlalchemy.orm import Session

from flowvcs.models.project import Project, ProjectMember
from flowvcs.models.user import User

ADMIN = "admin"
EDITOR = "editor"
VIEWER = "viewer"

MEMBER_ROLES = (EDITOR, VIEWER)


def is_admin(user: User) -> bool:
    return user.role == ADMIN


def _membership(db: Session, project_id: int, user: User) -> Optional[ProjectMember]:
    return (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user.user_id)
        .first()
    )


def is_project_owner(project: Project, user: User) -> bool:
    return project.owner_id == user.user_id


def can_view_project(db: Session, project: Project, user: User) -> bool:
    if is_admin(user) or is_project_owner(project, user):
        return True
    return _membership(db, project.project_id, user) is not None


def can_edit_project(db: Session, project: Project, user: User) -> bool:
    if is_admin(user) or is_project_owner(project, user):
        return True
    member = _membership(db, project.project_id, user)
    return member is not None and member.role == EDITOR
