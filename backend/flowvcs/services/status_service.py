"""프로젝트 VCS 상태(초기화 여부, 미게시 커밋, 미커밋 파일 수) 조회 서비스입니다."""

import logging
from typing import Any, Dict, Iterable

from sqlalchemy.orm import Session

from flowvcs.services import branch_service, commit_service, diff_service, merge_service
from flowvcs.services.vcs_errors import VcsNotFound

logger = logging.getLogger(__name__)


def get_vcs_status(db: Session, project_id: int, user_id: int) -> Dict[str, Any]:
    main_branch = branch_service.get_main_branch(db, project_id)
    if not main_branch:
        return {
            "initialized": False,
            "has_uncommitted_changes": False,
            "has_unpublished_commits": False,
        }

    draft_branch = branch_service.get_user_branch(db, project_id, user_id)
    draft_commits = commit_service.list_commits(db, draft_branch.branch_id, limit=1)
    main_commits = commit_service.list_commits(db, main_branch.branch_id, limit=1)
    uncommitted = diff_service.get_uncommitted_ids(
        db,
        project_id,
        baseline_commit_id=draft_branch.head_commit_id,
        treat_no_baseline_as_all=False,
    )
    return {
        "initialized": True,
        "draft_branch_id": draft_branch.branch_id,
        "main_branch_id": main_branch.branch_id,
        "has_uncommitted_changes": bool(uncommitted["file_ids"]),
        "has_unpublished_commits": merge_service.has_unpublished_commits(draft_branch),
        "last_merged_commit_id": draft_branch.last_merged_commit_id,
        "last_draft_commit": commit_service.to_response(draft_commits[0]) if draft_commits else None,
        "last_main_commit": commit_service.to_response(main_commits[0]) if main_commits else None,
    }


def get_uncommitted_status(db: Session, project_ids: Iterable[int], user_id: int) -> Dict[int, Dict[str, Any]]:
    """프로젝트별 미커밋 파일 수. VCS 상태를 찾을 수 없는 프로젝트는 None(알 수 없음)으로 표시한다."""
    statuses: Dict[int, Dict[str, Any]] = {}
    for project_id in project_ids:
        try:
            draft_branch = branch_service.get_user_branch(db, project_id, user_id)
            result = diff_service.get_uncommitted_ids(
                db,
                project_id,
                baseline_commit_id=draft_branch.head_commit_id,
                treat_no_baseline_as_all=False,
            )
            count = len(result["file_ids"])
        except VcsNotFound as exc:
            db.rollback()
            logger.warning("[vcs] uncommitted status unknown project_id=%s: %s", project_id, exc.detail)
            statuses[int(project_id)] = {"has_uncommitted_changes": None, "dirty_file_count": None}
            continue
        statuses[int(project_id)] = {"has_uncommitted_changes": count > 0, "dirty_file_count": count}
    return statuses
