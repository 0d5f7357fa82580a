"""프로젝트 main/draft 브랜치 생성·조회와 프로젝트 단위 VCS 데이터 정리를 담당합니다."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowvcs.models.branch import Branch, BRANCH_DRAFT, BRANCH_MAIN
from flowvcs.models.commit import Commit, FileSnapshot
from flowvcs.models.file_commit_version import FileCommitVersion
from flowvcs.models.project import Project
from flowvcs.models.working_file import WorkingFile
from flowvcs.services.vcs_errors import VcsInvalidState, VcsNotFound, VcsNotInitialized

logger = logging.getLogger(__name__)

MAIN_BRANCH_NAME = "main"


def draft_branch_name(user_id: int) -> str:
    return f"draft/{int(user_id)}"


def get_branch(db: Session, branch_id: int) -> Branch:
    branch = db.get(Branch, branch_id) if branch_id is not None else None
    if not branch:
        raise VcsNotFound(f"브랜치 {branch_id}를 찾을 수 없습니다.")
    return branch


def get_main_branch(db: Session, project_id: int) -> Optional[Branch]:
    return (
        db.query(Branch)
        .filter(Branch.project_id == project_id, Branch.kind == BRANCH_MAIN)
        .first()
    )


def require_main_branch(db: Session, project_id: int) -> Branch:
    branch = get_main_branch(db, project_id)
    if not branch:
        raise VcsNotInitialized()
    return branch


def _create_branch(db: Session, project_id: int, name: str, kind: str, owner_user_id: Optional[int]) -> Branch:
    branch = Branch(project_id=project_id, name=name, kind=kind, owner_user_id=owner_user_id)
    db.add(branch)
    try:
        db.commit()
    except IntegrityError:
        # 동시 요청이 같은 브랜치를 먼저 만든 경우 그 행을 사용한다.
        db.rollback()
        existing = (
            db.query(Branch)
            .filter(Branch.project_id == project_id, Branch.name == name)
            .first()
        )
        if not existing:
            raise
        return existing
    db.refresh(branch)
    logger.info("[vcs] branch created project_id=%s name=%s branch_id=%s", project_id, name, branch.branch_id)
    return branch


def ensure_initialized(db: Session, project_id: int, user_id: Optional[int] = None) -> Branch:
    """프로젝트의 main 브랜치를 보장한다. 매 요청마다 호출해도 안전하다."""
    branch = get_main_branch(db, project_id)
    if branch:
        return branch
    if not db.get(Project, project_id):
        raise VcsNotFound(f"프로젝트 {project_id}를 찾을 수 없습니다.")
    return _create_branch(db, project_id, MAIN_BRANCH_NAME, BRANCH_MAIN, None)


def init_project(db: Session, project_id: int, user_id: int) -> Branch:
    return ensure_initialized(db, project_id, user_id)


def get_user_branch(db: Session, project_id: int, user_id: int) -> Branch:
    ensure_initialized(db, project_id, user_id)
    name = draft_branch_name(user_id)
    branch = (
        db.query(Branch)
        .filter(Branch.project_id == project_id, Branch.name == name)
        .first()
    )
    if branch:
        return branch
    return _create_branch(db, project_id, name, BRANCH_DRAFT, user_id)


def require_draft_branch(db: Session, branch_id: int, project_id: int) -> Branch:
    branch = get_branch(db, branch_id)
    if branch.project_id != project_id:
        raise VcsNotFound(f"프로젝트 {project_id}에 브랜치 {branch_id}가 없습니다.")
    if branch.kind != BRANCH_DRAFT:
        raise VcsInvalidState("draft 브랜치만 main에 병합할 수 있습니다.")
    return branch


def delete_project_vcs(db: Session, project_id: int) -> None:
    """프로젝트의 브랜치/커밋/스냅샷/작업 파일/버전 캐시를 모두 삭제한다. 커밋 삭제의 유일한 경로다."""
    commit_ids = db.query(Commit.commit_id).filter(Commit.project_id == project_id)
    db.query(FileCommitVersion).filter(FileCommitVersion.project_id == project_id).delete(synchronize_session=False)
    db.query(FileSnapshot).filter(FileSnapshot.commit_id.in_(commit_ids.scalar_subquery())).delete(
        synchronize_session=False
    )
    db.query(Branch).filter(Branch.project_id == project_id).update(
        {Branch.head_commit_id: None}, synchronize_session=False
    )
    db.query(Commit).filter(Commit.project_id == project_id).update(
        {Commit.parent_commit_id: None}, synchronize_session=False
    )
    db.query(Commit).filter(Commit.project_id == project_id).delete(synchronize_session=False)
    db.query(WorkingFile).filter(WorkingFile.project_id == project_id).delete(synchronize_session=False)
    db.query(Branch).filter(Branch.project_id == project_id).delete(synchronize_session=False)
    logger.info("[vcs] project vcs state deleted project_id=%s", project_id)
