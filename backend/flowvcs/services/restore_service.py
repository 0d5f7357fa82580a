"""커밋 스냅샷을 라이브 파일로 되돌리고 복원 결과를 새 커밋으로 남기는 서비스입니다."""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from flowvcs.models.commit import SOURCE_RESTORE
from flowvcs.services import branch_service, commit_service, content_service, diff_service, file_service, working_tree_service
from flowvcs.services.vcs_errors import VcsNotFound

logger = logging.getLogger(__name__)


def restore_message(commit) -> str:
    return f"Restored from checkpoint {commit.content_hash[:8]}"


def restore_commit(db: Session, project_id: int, commit_id: int, user_id: int) -> Dict[str, int]:
    source_commit = commit_service.get_commit(db, commit_id, project_id=project_id)
    message = restore_message(source_commit)
    snapshots = [s for s in commit_service.get_commit_snapshots(db, commit_id) if diff_service.is_live(s)]
    if not snapshots:
        raise VcsNotFound("복원할 파일이 없습니다.")
    restore_items = [
        {
            "name": s.name,
            "doc_type": s.doc_type,
            "folder_id": s.folder_id,
            "content_blob_id": s.content_blob_id,
        }
        for s in snapshots
    ]
    draft_id = branch_service.get_user_branch(db, project_id, user_id).branch_id

    def _operation():
        for item in restore_items:
            file_service.write_file_content(
                db,
                project_id,
                name=item["name"],
                doc_type=item["doc_type"],
                folder_id=item["folder_id"],
                xml=content_service.get_content(db, item["content_blob_id"]),
                user_id=user_id,
            )
        working_tree_service.sync_from_live_files(db, project_id, draft_id)
        return commit_service.write_commit(db, draft_id, user_id, message, source=SOURCE_RESTORE)

    restored = commit_service.run_with_conflict_retry(db, _operation)
    db.commit()
    db.refresh(restored)
    logger.info(
        "[vcs] files restored project_id=%s from_commit_id=%s new_commit_id=%s files=%s",
        project_id,
        commit_id,
        restored.commit_id,
        len(restore_items),
    )
    return {"files_restored": len(restore_items), "new_commit_id": restored.commit_id}
