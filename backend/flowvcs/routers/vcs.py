"""VCS API 라우터입니다. 커밋, draft 게시(병합), 커밋 이력, 복원, 미커밋 파일 조회를 제공합니다.

`/api/projects/uncommitted-status`가 `/api/projects/{project_id}`보다 먼저 매칭되도록
main.py에서 이 라우터를 projects 라우터보다 먼저 등록합니다.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from flowvcs.config import settings
from flowvcs.database import get_db
from flowvcs.middleware.auth_middleware import get_current_user
from flowvcs.models.project import Project
from flowvcs.models.user import User
from flowvcs.schemas.vcs import (
    CommitRequest,
    CommitResult,
    FileHistoryCommitOut,
    PublishResult,
    RestoreResult,
    SnapshotOut,
    UncommittedFilesOut,
    UncommittedStatusItem,
    VcsStatusOut,
)
from flowvcs.services import (
    branch_service,
    commit_service,
    diff_service,
    merge_service,
    project_service,
    restore_service,
    status_service,
    version_service,
    working_tree_service,
)
from flowvcs.utils.permissions import can_view_project

router = APIRouter(tags=["vcs"])

BRANCH_FILTERS = ("all", "main", "draft")
BASELINES = ("main", "draft")


def _parse_project_ids(raw: str) -> List[int]:
    ids = []
    for token in (raw or "").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            ids.append(int(token))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"잘못된 프로젝트 ID입니다: {token}")
    return ids


@router.get("/api/projects/uncommitted-status", response_model=Dict[str, UncommittedStatusItem])
def uncommitted_status(
    project_ids: str = Query(""),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    visible = []
    for project_id in _parse_project_ids(project_ids):
        project = db.get(Project, project_id)
        if project and can_view_project(db, project, current_user):
            visible.append(project_id)
    statuses = status_service.get_uncommitted_status(db, visible, current_user.user_id)
    return {str(pid): item for pid, item in statuses.items()}


@router.post("/api/projects/{project_id}/commit", response_model=CommitResult)
def commit_files(
    project_id: int,
    data: CommitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.get_editable_project(db, project_id, current_user)
    message = data.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="커밋 메시지를 입력해 주세요.")
    commit, count = commit_service.commit_live_files(
        db, project_id, current_user.user_id, message, file_ids=data.file_ids
    )
    return CommitResult(commit=commit_service.to_response(commit), files_committed=count)


@router.post("/api/projects/{project_id}/publish", response_model=PublishResult)
def publish(project_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    project_service.get_editable_project(db, project_id, current_user)
    draft = branch_service.get_user_branch(db, project_id, current_user.user_id)
    return merge_service.merge_to_main(db, draft.branch_id, project_id, current_user.user_id)


def _branches_for(db: Session, project_id: int, user_id: int, branch: str):
    if branch == "main":
        return [branch_service.require_main_branch(db, project_id)]
    draft = branch_service.get_user_branch(db, project_id, user_id)
    if branch == "draft":
        return [draft]
    return [draft, branch_service.require_main_branch(db, project_id)]


@router.get("/api/projects/{project_id}/commits", response_model=List[FileHistoryCommitOut])
def list_commits(
    project_id: int,
    branch: str = Query("all"),
    file_id: Optional[int] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.get_project(db, project_id, current_user)
    if branch not in BRANCH_FILTERS:
        raise HTTPException(status_code=400, detail=f"branch는 {', '.join(BRANCH_FILTERS)} 중 하나여야 합니다.")
    limit = limit or settings.VCS_HISTORY_LIMIT
    branches = _branches_for(db, project_id, current_user.user_id, branch)

    if file_id is not None:
        # 파일 이력은 파일을 소유한 한 브랜치 기준이다. all은 사용자의 draft를 본다.
        working_file = working_tree_service.find_by_source_file(db, branches[0].branch_id, file_id)
        if working_file is None:
            return []
        return version_service.list_file_history(db, project_id, working_file.working_file_id, limit=limit)

    commits = []
    for row in branches:
        commits.extend(commit_service.list_commits(db, row.branch_id, limit=limit))
    commits.sort(key=lambda c: (c.created_at, c.commit_id), reverse=True)
    return [commit_service.to_response(c) for c in commits[:limit]]


@router.get("/api/projects/{project_id}/commits/{commit_id}/files", response_model=List[SnapshotOut])
def commit_files_view(
    project_id: int,
    commit_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.get_project(db, project_id, current_user)
    commit_service.get_commit(db, commit_id, project_id=project_id)
    snapshots = commit_service.get_commit_snapshots(db, commit_id)
    return commit_service.snapshots_to_response(db, snapshots)


@router.post("/api/projects/{project_id}/commits/{commit_id}/restore", response_model=RestoreResult)
def restore(
    project_id: int,
    commit_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.get_editable_project(db, project_id, current_user)
    return restore_service.restore_commit(db, project_id, commit_id, current_user.user_id)


@router.get("/api/projects/{project_id}/uncommitted-files", response_model=UncommittedFilesOut)
def uncommitted_files(
    project_id: int,
    baseline: str = Query("draft"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project_service.get_project(db, project_id, current_user)
    if baseline not in BASELINES:
        raise HTTPException(status_code=400, detail="baseline은 main 또는 draft여야 합니다.")
    if baseline == "main":
        branch = branch_service.require_main_branch(db, project_id)
    else:
        branch = branch_service.get_user_branch(db, project_id, current_user.user_id)
    # 한 번도 커밋하지 않은 브랜치는 모든 라이브 파일을 미커밋으로 본다.
    result = diff_service.get_uncommitted_ids(
        db,
        project_id,
        baseline_commit_id=branch.head_commit_id,
        treat_no_baseline_as_all=True,
    )
    return UncommittedFilesOut(
        baseline=baseline,
        baseline_commit_id=branch.head_commit_id,
        file_ids=result["file_ids"],
        folder_ids=result["folder_ids"],
    )


@router.get("/api/projects/{project_id}/vcs-status", response_model=VcsStatusOut)
def vcs_status(project_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    project_service.get_project(db, project_id, current_user)
    return status_service.get_vcs_status(db, project_id, current_user.user_id)
