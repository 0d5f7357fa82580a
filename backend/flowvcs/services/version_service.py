"""파일별 사용자용 버전 번호 캐시(FileCommitVersion)를 검증·재생성하고 파일 이력을 조회하는 서비스입니다."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from flowvcs.config import settings
from flowvcs.models.commit import AUTO_COMMIT_SOURCES, CHANGE_UNCHANGED, Commit, FileSnapshot
from flowvcs.models.file_commit_version import FileCommitVersion
from flowvcs.models.working_file import WorkingFile
from flowvcs.services import commit_service
from flowvcs.services.vcs_errors import VcsNotFound

logger = logging.getLogger(__name__)

_AUTO_SOURCES = sorted(AUTO_COMMIT_SOURCES)


def is_auto_commit(commit: Commit) -> bool:
    return commit.source in AUTO_COMMIT_SOURCES


def _get_owned_file(db: Session, project_id: int, working_file_id: int) -> WorkingFile:
    row = db.get(WorkingFile, working_file_id)
    if not row or row.project_id != project_id:
        raise VcsNotFound(f"작업 파일 {working_file_id}를 찾을 수 없습니다.")
    return row


def _touching_commits(db: Session, working_file: WorkingFile):
    return (
        db.query(Commit)
        .join(FileSnapshot, FileSnapshot.commit_id == Commit.commit_id)
        .filter(
            Commit.branch_id == working_file.branch_id,
            FileSnapshot.working_file_id == working_file.working_file_id,
            FileSnapshot.change_type != CHANGE_UNCHANGED,
        )
    )


def _cached_rows(db: Session, project_id: int, working_file_id: int):
    return db.query(FileCommitVersion).filter(
        FileCommitVersion.project_id == project_id,
        FileCommitVersion.working_file_id == working_file_id,
    )


def _cache_is_valid(db: Session, project_id: int, working_file: WorkingFile) -> bool:
    recent = (
        _touching_commits(db, working_file)
        .order_by(Commit.created_at.desc(), Commit.commit_id.desc())
        .limit(settings.VCS_VERSION_LOOKBACK)
        .all()
    )
    latest = next((c for c in recent if not is_auto_commit(c)), None)
    cached = _cached_rows(db, project_id, working_file.working_file_id)
    if latest is not None and cached.filter(FileCommitVersion.commit_id == latest.commit_id).first() is None:
        return False
    expected = _touching_commits(db, working_file).filter(Commit.source.notin_(_AUTO_SOURCES)).count()
    return cached.count() == expected


def _versioned_commits(db: Session, working_file: WorkingFile) -> List[Commit]:
    return (
        _touching_commits(db, working_file)
        .filter(Commit.source.notin_(_AUTO_SOURCES))
        .order_by(Commit.created_at.asc(), Commit.commit_id.asc())
        .all()
    )


def compute_version_numbers(db: Session, working_file: WorkingFile) -> Dict[int, int]:
    return {c.commit_id: index for index, c in enumerate(_versioned_commits(db, working_file), start=1)}


def rebuild_file_versions(db: Session, project_id: int, working_file_id: int) -> List[FileCommitVersion]:
    """비자동 커밋을 오래된 순으로 1..N 번호를 매겨 캐시 행을 트랜잭션으로 교체한다."""
    working_file = _get_owned_file(db, project_id, working_file_id)
    commits = _versioned_commits(db, working_file)
    try:
        _cached_rows(db, project_id, working_file_id).delete(synchronize_session=False)
        rows = [
            FileCommitVersion(
                project_id=project_id,
                working_file_id=working_file_id,
                commit_id=commit.commit_id,
                version_number=index,
                created_at=commit.created_at,
            )
            for index, commit in enumerate(commits, start=1)
        ]
        db.add_all(rows)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "[vcs] file versions rebuilt project_id=%s working_file_id=%s versions=%s",
        project_id,
        working_file_id,
        len(rows),
    )
    return rows


def ensure_file_versions(db: Session, project_id: int, working_file_id: int) -> bool:
    """캐시가 유효하면 쓰기 없이 반환하고, 아니면 전체 재생성한다. 재생성 여부를 돌려준다."""
    working_file = _get_owned_file(db, project_id, working_file_id)
    if _cache_is_valid(db, project_id, working_file):
        return False
    rebuild_file_versions(db, project_id, working_file_id)
    return True


def get_file_versions(db: Session, project_id: int, working_file_id: int) -> List[FileCommitVersion]:
    return (
        _cached_rows(db, project_id, working_file_id)
        .order_by(FileCommitVersion.version_number.asc())
        .all()
    )


def list_file_history(
    db: Session,
    project_id: int,
    working_file_id: int,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """파일을 변경한 커밋을 최신순으로 돌려준다. 자동 커밋에는 파일 버전 번호가 없다."""
    working_file = _get_owned_file(db, project_id, working_file_id)
    q = _touching_commits(db, working_file).order_by(Commit.created_at.desc(), Commit.commit_id.desc())
    if limit:
        q = q.limit(limit)
    commits = q.all()

    try:
        ensure_file_versions(db, project_id, working_file_id)
    except Exception as exc:
        # 캐시 재생성 실패는 이력 조회 실패로 이어지지 않는다. 아래에서 계산된 번호로 대체한다.
        db.rollback()
        logger.warning(
            "[vcs] failed to ensure file versions, falling back to computed numbering project_id=%s working_file_id=%s: %s",
            project_id,
            working_file_id,
            exc,
        )

    non_auto = [c for c in commits if not is_auto_commit(c)]
    version_map: Dict[int, int] = {}
    if non_auto:
        rows = (
            db.query(FileCommitVersion.commit_id, FileCommitVersion.version_number)
            .filter(
                FileCommitVersion.working_file_id == working_file_id,
                FileCommitVersion.commit_id.in_([c.commit_id for c in non_auto]),
            )
            .all()
        )
        version_map = {int(row[0]): int(row[1]) for row in rows}

    if len(version_map) < len(non_auto):
        # 캐시 번호와 계산 번호가 섞이지 않도록 전부 계산 번호로 바꾼다. limit과 무관하게 전체 이력 기준이다.
        version_map = compute_version_numbers(db, working_file)

    history = []
    for commit in commits:
        item = commit_service.to_response(commit)
        item["file_version_number"] = None if is_auto_commit(commit) else version_map.get(commit.commit_id)
        history.append(item)
    return history
