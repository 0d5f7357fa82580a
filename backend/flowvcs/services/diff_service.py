"""스냅샷 비교(diff)와 미커밋 변경 계산, 파일별 마지막 커밋 조회를 담당하는 Diff 엔진입니다."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from flowvcs.models.branch import Branch
from flowvcs.models.commit import (
    CHANGE_ADDED,
    CHANGE_DELETED,
    CHANGE_MODIFIED,
    CHANGE_UNCHANGED,
    Commit,
    FileSnapshot,
)
from flowvcs.models.working_file import WorkingFile
from flowvcs.services import file_service
from flowvcs.services.vcs_errors import VcsNotFound
from flowvcs.utils.helpers import hash_content, normalize_folder_id


@dataclass
class SnapshotDiff:
    """키별 분류 결과. added/modified/unchanged는 B 쪽 항목, removed는 A 쪽 항목을 담는다."""

    added: Dict[Any, Any] = field(default_factory=dict)
    modified: Dict[Any, Any] = field(default_factory=dict)
    removed: Dict[Any, Any] = field(default_factory=dict)
    unchanged: Dict[Any, Any] = field(default_factory=dict)

    @property
    def changed_count(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed)

    @property
    def is_empty(self) -> bool:
        return self.changed_count == 0


def identity_key(entry) -> int:
    return int(entry.working_file_id)


def path_key(entry) -> tuple:
    return (normalize_folder_id(entry.folder_id), str(entry.name), str(entry.doc_type))


def is_live(entry) -> bool:
    if entry is None or getattr(entry, "is_deleted", False):
        return False
    return getattr(entry, "content_blob_id", None) is not None


def entries_differ(a, b) -> bool:
    return (
        a.content_hash != b.content_hash
        or a.name != b.name
        or a.doc_type != b.doc_type
        or normalize_folder_id(a.folder_id) != normalize_folder_id(b.folder_id)
    )


def classify_change(previous, current) -> str:
    """부모 스냅샷과 현재 작업 파일을 비교해 변경 유형을 정한다. 비교는 콘텐츠 해시 기준이다."""
    was_live = is_live(previous)
    now_live = is_live(current)
    if now_live and not was_live:
        return CHANGE_ADDED
    if was_live and not now_live:
        return CHANGE_DELETED
    if not was_live and not now_live:
        return CHANGE_UNCHANGED
    return CHANGE_MODIFIED if entries_differ(previous, current) else CHANGE_UNCHANGED


def index_live(entries: Iterable[Any], key: Callable[[Any], Any]) -> Dict[Any, Any]:
    index: Dict[Any, Any] = {}
    for entry in entries:
        if not is_live(entry):
            continue
        k = key(entry)
        current = index.get(k)
        if current is None or identity_key(entry) > identity_key(current):
            index[k] = entry
    return index


def diff_snapshots(set_a: Iterable[Any], set_b: Iterable[Any], key: Callable[[Any], Any] = identity_key) -> SnapshotDiff:
    """두 스냅샷 집합을 비교하는 순수 함수. 삭제 표시(내용 없음) 항목은 없는 것으로 본다."""
    index_a = index_live(set_a, key)
    index_b = index_live(set_b, key)
    result = SnapshotDiff()
    for k, b in index_b.items():
        a = index_a.get(k)
        if a is None:
            result.added[k] = b
        elif entries_differ(a, b):
            result.modified[k] = b
        else:
            result.unchanged[k] = b
    for k, a in index_a.items():
        if k not in index_b:
            result.removed[k] = a
    return result


def load_commit_snapshots(db: Session, commit_id: Optional[int]) -> List[FileSnapshot]:
    if commit_id is None:
        return []
    return (
        db.query(FileSnapshot)
        .filter(FileSnapshot.commit_id == commit_id)
        .order_by(FileSnapshot.working_file_id)
        .all()
    )


def load_head_snapshots(db: Session, branch: Branch) -> List[FileSnapshot]:
    return load_commit_snapshots(db, branch.head_commit_id)


def get_uncommitted_ids(
    db: Session,
    project_id: int,
    *,
    baseline_commit_id: Optional[int] = None,
    treat_no_baseline_as_all: bool = False,
) -> Dict[str, List[int]]:
    """라이브 파일과 기준 커밋 스냅샷을 비교해 미커밋 파일/폴더 ID를 돌려준다. 읽기 전용이다."""
    live_files = file_service.list_project_files(db, project_id)

    if baseline_commit_id is None:
        dirty = list(live_files) if treat_no_baseline_as_all else []
    else:
        baseline = db.get(Commit, baseline_commit_id)
        if not baseline or baseline.project_id != project_id:
            raise VcsNotFound(f"기준 커밋 {baseline_commit_id}를 찾을 수 없습니다.")
        committed = index_live(load_commit_snapshots(db, baseline_commit_id), path_key)
        dirty = []
        for live in live_files:
            snapshot = committed.get(path_key(live))
            if snapshot is None or snapshot.content_hash != hash_content(live.xml):
                dirty.append(live)

    folder_ids = file_service.collect_ancestor_folder_ids(db, {f.folder_id for f in dirty})
    return {
        "file_ids": sorted(int(f.file_id) for f in dirty),
        "folder_ids": sorted(folder_ids),
    }


def iter_branch_chain(db: Session, head_commit_id: Optional[int]):
    """head부터 부모 방향으로 커밋을 순회한다. 순환이 발견되면 멈춘다."""
    seen = set()
    commit_id = head_commit_id
    while commit_id is not None and commit_id not in seen:
        seen.add(commit_id)
        commit = db.get(Commit, commit_id)
        if commit is None:
            return
        yield commit
        commit_id = commit.parent_commit_id


def get_last_commit_for_file(db: Session, project_id: int, working_file_id: int) -> Optional[Commit]:
    working_file = db.get(WorkingFile, working_file_id)
    if not working_file or working_file.project_id != project_id:
        return None
    branch = db.get(Branch, working_file.branch_id)
    if not branch:
        return None

    change_by_commit = {
        int(row[0]): row[1]
        for row in db.query(FileSnapshot.commit_id, FileSnapshot.change_type)
        .filter(FileSnapshot.working_file_id == working_file_id)
        .all()
    }
    for commit in iter_branch_chain(db, branch.head_commit_id):
        change_type = change_by_commit.get(commit.commit_id)
        if change_type is not None and change_type != CHANGE_UNCHANGED:
            return commit
    return None
