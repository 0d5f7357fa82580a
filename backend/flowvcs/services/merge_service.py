"""draft 브랜치를 main 브랜치로 병합하는 Merge 엔진입니다. draft의 이력은 절대 변경하지 않습니다."""

import logging
from typing import Callable, Dict, Iterable, Optional, Set

from sqlalchemy.orm import Session

from flowvcs.models.branch import Branch
from flowvcs.models.commit import SOURCE_SYSTEM
from flowvcs.models.working_file import WorkingFile
from flowvcs.services import branch_service, commit_service, diff_service, working_tree_service
from flowvcs.utils.helpers import utcnow

logger = logging.getLogger(__name__)


def merge_message(draft_branch_name: str) -> str:
    return f"Merge from draft {draft_branch_name}"


def lineage_key(db: Session, branch_ids: Iterable[int]) -> Callable:
    """브랜치 간에 같은 논리 파일을 잇는 키 함수를 만든다.

    라이브 파일 ID(source_file_id)는 이름 변경/이동에도 유지되고 모든 draft가 공유하므로 우선 사용한다.
    라이브 파일과 연결되지 않은 작업 파일만 경로로 짝을 짓는다.
    """
    rows = db.query(WorkingFile.working_file_id, WorkingFile.source_file_id).filter(
        WorkingFile.branch_id.in_(list(branch_ids)),
        WorkingFile.source_file_id.isnot(None),
    )
    source_by_file = {int(row[0]): int(row[1]) for row in rows.all()}

    def key(entry):
        source_file_id = source_by_file.get(int(entry.working_file_id))
        if source_file_id is not None:
            return ("source", source_file_id)
        return ("path",) + diff_service.path_key(entry)

    return key


def _tombstone_keys(snapshots, key: Callable) -> Set:
    live = {key(s) for s in snapshots if diff_service.is_live(s)}
    return {key(s) for s in snapshots if not diff_service.is_live(s)} - live


def _source_file_id(key) -> Optional[int]:
    return key[1] if key[0] == "source" else None


def _apply_draft_to_main(db: Session, main_branch_id: int, draft_branch_id: int, author_user_id: int):
    main_branch = branch_service.get_branch(db, main_branch_id)
    draft_branch = branch_service.get_branch(db, draft_branch_id)
    merged_head_id = draft_branch.head_commit_id

    main_snapshots = diff_service.load_head_snapshots(db, main_branch)
    draft_snapshots = diff_service.load_commit_snapshots(db, merged_head_id)
    key = lineage_key(db, (main_branch_id, draft_branch_id))
    diff = diff_service.diff_snapshots(main_snapshots, draft_snapshots, key=key)
    main_live = diff_service.index_live(main_snapshots, key)

    files_changed = len(diff.modified)
    for k, entry in diff.modified.items():
        # 이름 변경/이동도 main의 같은 작업 파일을 제자리에서 갱신한다.
        working_tree_service.stage_content_ref(
            db,
            main_branch_id,
            name=entry.name,
            doc_type=entry.doc_type,
            folder_id=entry.folder_id,
            content_blob_id=entry.content_blob_id,
            content_hash=entry.content_hash,
            working_file_id=main_live[k].working_file_id,
            source_file_id=_source_file_id(k),
        )

    # draft가 명시적으로 삭제한 파일만 main에서 제거한다. draft가 모르는 main 파일은 그대로 둔다.
    draft_tombstones = _tombstone_keys(draft_snapshots, key)
    for k, entry in diff.removed.items():
        if k not in draft_tombstones:
            continue
        row = db.get(WorkingFile, entry.working_file_id)
        if row is not None and not row.is_deleted:
            working_tree_service.mark_deleted(db, row)
            files_changed += 1

    for k, entry in diff.added.items():
        existing = working_tree_service.find_working_file(
            db, main_branch_id, name=entry.name, doc_type=entry.doc_type, folder_id=entry.folder_id
        )
        if existing is None or diff_service.entries_differ(existing, entry):
            files_changed += 1
        working_tree_service.stage_content_ref(
            db,
            main_branch_id,
            name=entry.name,
            doc_type=entry.doc_type,
            folder_id=entry.folder_id,
            content_blob_id=entry.content_blob_id,
            content_hash=entry.content_hash,
            source_file_id=_source_file_id(k),
        )

    merge_commit = commit_service.write_commit(
        db,
        main_branch_id,
        author_user_id,
        merge_message(draft_branch.name),
        source=SOURCE_SYSTEM,
    )
    db.query(Branch).filter(Branch.branch_id == draft_branch_id).update(
        {Branch.last_merged_commit_id: merged_head_id, Branch.updated_at: utcnow()},
        synchronize_session=False,
    )
    db.expire(draft_branch, ["last_merged_commit_id", "updated_at"])
    return merge_commit, files_changed


def merge_to_main(db: Session, draft_branch_id: int, project_id: int, author_user_id: int) -> Dict[str, int]:
    """draft head와 main head의 차이를 main 작업 트리에 반영하고 main에 병합 커밋 하나를 만든다.

    변경이 없어도 병합 커밋은 생성되며 files_changed는 0이 된다.
    draft의 커밋 체인과 head는 그대로 두고, 어디까지 병합했는지(last_merged_commit_id)만 기록한다.
    """
    main_branch_id = branch_service.require_main_branch(db, project_id).branch_id
    branch_service.require_draft_branch(db, draft_branch_id, project_id)

    merge_commit, files_changed = commit_service.run_with_conflict_retry(
        db,
        lambda: _apply_draft_to_main(db, main_branch_id, draft_branch_id, author_user_id),
    )
    db.commit()
    db.refresh(merge_commit)
    logger.info(
        "[vcs] draft merged to main project_id=%s draft_branch_id=%s merge_commit_id=%s files_changed=%s",
        project_id,
        draft_branch_id,
        merge_commit.commit_id,
        files_changed,
    )
    return {"merge_commit_id": merge_commit.commit_id, "files_changed": files_changed}


def has_unpublished_commits(branch: Branch) -> bool:
    """draft head가 마지막으로 병합된 커밋과 다르면 아직 게시되지 않은 커밋이 있다."""
    return branch.head_commit_id is not None and branch.head_commit_id != branch.last_merged_commit_id
