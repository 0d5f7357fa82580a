"""커밋 엔진 서비스입니다. 작업 트리를 전체 스냅샷으로 고정하고 낙관적 동시성으로 브랜치 head를 전진시킵니다."""

import hashlib
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from flowvcs.config import settings
from flowvcs.models.branch import Branch
from flowvcs.models.commit import (
    CHANGE_UNCHANGED,
    COMMIT_SOURCES,
    SOURCE_MANUAL,
    SOURCE_SYSTEM,
    Commit,
    FileSnapshot,
)
from flowvcs.services import branch_service, content_service, diff_service, file_service, working_tree_service
from flowvcs.services.vcs_errors import (
    RETRY_EXHAUSTED_DETAIL,
    CommitConflict,
    VcsInvalidState,
    VcsNotFound,
)
from flowvcs.utils.helpers import utcnow

logger = logging.getLogger(__name__)


def compute_commit_hash(snapshots: Iterable[FileSnapshot]) -> str:
    digest = hashlib.sha256()
    for snapshot in sorted(snapshots, key=lambda s: s.working_file_id):
        digest.update(f"{snapshot.working_file_id}:{snapshot.content_hash or '-'}\n".encode("utf-8"))
    return digest.hexdigest()


def _next_created_at(parent: Optional[Commit]):
    now = utcnow()
    if parent is not None and parent.created_at is not None and now <= parent.created_at:
        # 체인을 따라가면 created_at이 엄격히 감소하도록 보장한다.
        now = parent.created_at + timedelta(microseconds=1)
    return now


def _advance_head(db: Session, branch: Branch, expected_head_id: Optional[int], new_head_id: int) -> bool:
    q = db.query(Branch).filter(Branch.branch_id == branch.branch_id)
    if expected_head_id is None:
        q = q.filter(Branch.head_commit_id.is_(None))
    else:
        q = q.filter(Branch.head_commit_id == expected_head_id)
    updated = q.update(
        {Branch.head_commit_id: new_head_id, Branch.updated_at: utcnow()},
        synchronize_session=False,
    )
    if updated == 1:
        db.expire(branch, ["head_commit_id", "updated_at"])
    return updated == 1


def write_commit(
    db: Session,
    branch_id: int,
    author_user_id: int,
    message: str,
    *,
    source: str = SOURCE_MANUAL,
    is_remote: bool = False,
) -> Commit:
    """커밋 행과 스냅샷을 기록하고 head를 조건부로 전진시킨다. 트랜잭션 커밋은 호출자가 한다.

    head가 읽은 뒤에 바뀌었으면 트랜잭션 전체를 롤백하고 CommitConflict를 던진다.
    """
    if source not in COMMIT_SOURCES:
        raise VcsInvalidState(f"알 수 없는 커밋 출처입니다: {source}")

    branch = branch_service.get_branch(db, branch_id)
    expected_head_id = branch.head_commit_id
    parent = db.get(Commit, expected_head_id) if expected_head_id is not None else None

    previous = {s.working_file_id: s for s in diff_service.load_commit_snapshots(db, expected_head_id)}
    current = {w.working_file_id: w for w in working_tree_service.list_files(db, branch_id)}

    snapshots: List[FileSnapshot] = []
    for working_file_id in sorted(set(previous) | set(current)):
        prev = previous.get(working_file_id)
        cur = current.get(working_file_id)
        change_type = diff_service.classify_change(prev, cur)
        origin = cur if cur is not None else prev
        snapshots.append(
            FileSnapshot(
                working_file_id=working_file_id,
                name=origin.name,
                doc_type=origin.doc_type,
                folder_id=origin.folder_id,
                content_blob_id=cur.content_blob_id if cur is not None else None,
                content_hash=cur.content_hash if cur is not None else None,
                change_type=change_type,
            )
        )

    commit = Commit(
        project_id=branch.project_id,
        branch_id=branch.branch_id,
        parent_commit_id=expected_head_id,
        author_user_id=author_user_id,
        message=(message or "").strip(),
        content_hash=compute_commit_hash(snapshots),
        source=source,
        is_remote=bool(is_remote),
        created_at=_next_created_at(parent),
    )
    commit.snapshots = snapshots
    db.add(commit)
    db.flush()

    if not _advance_head(db, branch, expected_head_id, commit.commit_id):
        db.rollback()
        logger.warning("[vcs] head moved during commit branch_id=%s expected_head=%s", branch_id, expected_head_id)
        raise CommitConflict()
    return commit


def run_with_conflict_retry(db: Session, operation: Callable[[], Any], retries: Optional[int] = None):
    """head 경합 시 새로 읽어 재시도하는 호출 계층 정책. 재시도까지 실패하면 사용자용 409를 던진다."""
    attempts = (settings.VCS_CONFLICT_RETRIES if retries is None else retries) + 1
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except CommitConflict:
            db.rollback()
            if attempt >= attempts:
                logger.warning("[vcs] commit conflict persisted after %s attempts", attempts)
                raise CommitConflict(RETRY_EXHAUSTED_DETAIL)
            logger.info("[vcs] retrying after commit conflict attempt=%s", attempt)


def create_commit(
    db: Session,
    branch_id: int,
    author_user_id: int,
    message: str,
    *,
    source: str = SOURCE_MANUAL,
    is_remote: bool = False,
) -> Commit:
    """브랜치 작업 트리를 커밋한다. 경합 시 CommitConflict를 그대로 전파하므로 재시도는 호출자 몫이다."""
    created = write_commit(db, branch_id, author_user_id, message, source=source, is_remote=is_remote)
    db.commit()
    db.refresh(created)
    logger.info(
        "[vcs] commit created commit_id=%s branch_id=%s source=%s", created.commit_id, branch_id, source
    )
    return created


def create_commit_with_retry(
    db: Session,
    branch_id: int,
    author_user_id: int,
    message: str,
    *,
    source: str = SOURCE_MANUAL,
    is_remote: bool = False,
) -> Commit:
    created = run_with_conflict_retry(
        db,
        lambda: write_commit(db, branch_id, author_user_id, message, source=source, is_remote=is_remote),
    )
    db.commit()
    db.refresh(created)
    logger.info(
        "[vcs] commit created commit_id=%s branch_id=%s source=%s", created.commit_id, branch_id, source
    )
    return created


def commit_live_files(
    db: Session,
    project_id: int,
    user_id: int,
    message: str,
    file_ids: Optional[List[int]] = None,
) -> Tuple[Commit, int]:
    """라이브 파일을 사용자 draft 작업 트리에 반영한 뒤 커밋한다. file_ids가 있으면 해당 파일만 반영한다."""
    draft_id = branch_service.get_user_branch(db, project_id, user_id).branch_id
    live_files = file_service.list_project_files(db, project_id)
    if file_ids:
        wanted = {int(fid) for fid in file_ids}
        live_files = [f for f in live_files if f.file_id in wanted]
    if not live_files:
        raise HTTPException(status_code=400, detail="커밋할 파일이 없습니다.")

    def _operation():
        working_tree_service.sync_from_live_files(db, project_id, draft_id, file_ids=file_ids or None)
        return write_commit(db, draft_id, user_id, message, source=SOURCE_MANUAL)

    created = run_with_conflict_retry(db, _operation)
    db.commit()
    db.refresh(created)
    logger.info(
        "[vcs] files committed project_id=%s user_id=%s commit_id=%s file_count=%s",
        project_id,
        user_id,
        created.commit_id,
        len(live_files),
    )
    return created, len(live_files)


def checkpoint_project(
    db: Session,
    project_id: int,
    user_id: int,
    message: str,
    *,
    source: str = SOURCE_SYSTEM,
    is_remote: bool = False,
) -> Optional[Commit]:
    """원격 동기화/배포 전후에 현재 라이브 상태를 main 브랜치에 체크포인트로 남긴다."""
    main_id = branch_service.ensure_initialized(db, project_id, user_id).branch_id
    if not file_service.list_project_files(db, project_id):
        logger.debug("[vcs] no files to checkpoint project_id=%s", project_id)
        return None

    def _operation():
        working_tree_service.sync_from_live_files(db, project_id, main_id)
        return write_commit(db, main_id, user_id, message, source=source, is_remote=is_remote)

    created = run_with_conflict_retry(db, _operation)
    db.commit()
    db.refresh(created)
    logger.info(
        "[vcs] checkpoint created project_id=%s commit_id=%s source=%s", project_id, created.commit_id, source
    )
    return created


def list_commits(db: Session, branch_id: int, limit: Optional[int] = None) -> List[Commit]:
    return (
        db.query(Commit)
        .filter(Commit.branch_id == branch_id)
        .order_by(Commit.created_at.desc(), Commit.commit_id.desc())
        .limit(limit or settings.VCS_HISTORY_LIMIT)
        .all()
    )


def get_commit(db: Session, commit_id: int, project_id: Optional[int] = None) -> Commit:
    commit = db.get(Commit, commit_id) if commit_id is not None else None
    if not commit or (project_id is not None and commit.project_id != project_id):
        raise VcsNotFound(f"커밋 {commit_id}를 찾을 수 없습니다.")
    return commit


def get_commit_snapshots(db: Session, commit_id: int) -> List[FileSnapshot]:
    get_commit(db, commit_id)
    return diff_service.load_commit_snapshots(db, commit_id)


def commit_has_file(db: Session, commit_id: int, working_file_id: int) -> bool:
    row = (
        db.query(FileSnapshot.change_type)
        .filter(FileSnapshot.commit_id == commit_id, FileSnapshot.working_file_id == working_file_id)
        .first()
    )
    return row is not None and row[0] != CHANGE_UNCHANGED


def to_response(commit: Commit) -> Dict[str, Any]:
    return {
        "commit_id": commit.commit_id,
        "project_id": commit.project_id,
        "branch_id": commit.branch_id,
        "parent_commit_id": commit.parent_commit_id,
        "author_user_id": commit.author_user_id,
        "message": commit.message,
        "content_hash": commit.content_hash,
        "source": commit.source,
        "is_remote": bool(commit.is_remote),
        "created_at": commit.created_at,
    }


def snapshots_to_response(db: Session, snapshots: List[FileSnapshot]) -> List[Dict[str, Any]]:
    contents = content_service.get_contents(db, (s.content_blob_id for s in snapshots))
    return [
        {
            "snapshot_id": s.snapshot_id,
            "working_file_id": s.working_file_id,
            "name": s.name,
            "doc_type": s.doc_type,
            "folder_id": s.folder_id,
            "content": contents.get(s.content_blob_id) if s.content_blob_id is not None else None,
            "content_hash": s.content_hash,
            "change_type": s.change_type,
        }
        for s in snapshots
    ]
