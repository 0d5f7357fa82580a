"""브랜치별 작업 트리(스테이징 영역) 서비스입니다. 편집기 저장이 이곳을 계속 갱신하고, 커밋이 이를 스냅샷으로 만듭니다."""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from flowvcs.models.working_file import WorkingFile
from flowvcs.services import branch_service, content_service, file_service
from flowvcs.services.vcs_errors import VcsNotFound
from flowvcs.utils.helpers import hash_content, normalize_folder_id, utcnow

logger = logging.getLogger(__name__)

_ALL_FOLDERS = object()


def _path_tuple(folder_id, name: str, doc_type: str) -> tuple:
    return (normalize_folder_id(folder_id), str(name), str(doc_type))


def find_working_file(
    db: Session,
    branch_id: int,
    *,
    name: str,
    doc_type: str,
    folder_id: Optional[int],
    include_deleted: bool = False,
) -> Optional[WorkingFile]:
    folder_id = normalize_folder_id(folder_id)
    q = db.query(WorkingFile).filter(
        WorkingFile.branch_id == branch_id,
        WorkingFile.name == name,
        WorkingFile.doc_type == doc_type,
        WorkingFile.folder_id.is_(None) if folder_id is None else WorkingFile.folder_id == folder_id,
    )
    if not include_deleted:
        q = q.filter(WorkingFile.is_deleted == False)  # noqa: E712
    return q.order_by(
        WorkingFile.is_deleted.asc(),
        WorkingFile.updated_at.desc(),
        WorkingFile.working_file_id.desc(),
    ).first()


def get_working_file(db: Session, working_file_id: int) -> WorkingFile:
    row = db.get(WorkingFile, working_file_id) if working_file_id is not None else None
    if not row:
        raise VcsNotFound(f"작업 파일 {working_file_id}를 찾을 수 없습니다.")
    return row


def find_by_source_file(db: Session, branch_id: int, source_file_id: int) -> Optional[WorkingFile]:
    return (
        db.query(WorkingFile)
        .filter(WorkingFile.branch_id == branch_id, WorkingFile.source_file_id == source_file_id)
        .order_by(WorkingFile.is_deleted.asc(), WorkingFile.working_file_id.desc())
        .first()
    )


def stage_content_ref(
    db: Session,
    branch_id: int,
    *,
    name: str,
    doc_type: str,
    folder_id: Optional[int],
    content_blob_id: int,
    content_hash: str,
    working_file_id: Optional[int] = None,
    source_file_id: Optional[int] = None,
    force_new: bool = False,
) -> WorkingFile:
    """이미 저장된 콘텐츠 참조를 작업 트리에 기록한다. 명시적 ID가 없으면 (브랜치, 이름, 유형, 폴더)로 찾거나 만든다."""
    branch = branch_service.get_branch(db, branch_id)
    folder_id = normalize_folder_id(folder_id)

    row = None
    if working_file_id is not None:
        row = get_working_file(db, working_file_id)
        if row.branch_id != branch.branch_id:
            raise VcsNotFound(f"브랜치 {branch_id}에 작업 파일 {working_file_id}가 없습니다.")
    if row is None and source_file_id is not None and not force_new:
        row = find_by_source_file(db, branch.branch_id, source_file_id)
    if row is None and not force_new:
        # 삭제 표시된 행도 되살려서 같은 논리 파일이 하나의 ID를 유지하게 한다.
        row = find_working_file(
            db, branch.branch_id, name=name, doc_type=doc_type, folder_id=folder_id, include_deleted=True
        )

    now = utcnow()
    if row is None:
        row = WorkingFile(branch_id=branch.branch_id, project_id=branch.project_id, created_at=now)
        db.add(row)

    row.name = name
    row.doc_type = doc_type
    row.folder_id = folder_id
    row.content_blob_id = content_blob_id
    row.content_hash = content_hash
    row.is_deleted = False
    row.updated_at = now
    if source_file_id is not None:
        row.source_file_id = source_file_id
    db.flush()
    return row


def stage_file(
    db: Session,
    branch_id: int,
    *,
    name: str,
    doc_type: str,
    content: str,
    folder_id: Optional[int] = None,
    working_file_id: Optional[int] = None,
    source_file_id: Optional[int] = None,
    force_new: bool = False,
) -> WorkingFile:
    blob = content_service.put_content(db, content)
    return stage_content_ref(
        db,
        branch_id,
        name=name,
        doc_type=doc_type,
        folder_id=folder_id,
        content_blob_id=blob.blob_id,
        content_hash=blob.content_hash,
        working_file_id=working_file_id,
        source_file_id=source_file_id,
        force_new=force_new,
    )


def upsert_file(
    db: Session,
    branch_id: int,
    *,
    name: str,
    doc_type: str,
    content: str,
    folder_id: Optional[int] = None,
    working_file_id: Optional[int] = None,
) -> WorkingFile:
    row = stage_file(
        db,
        branch_id,
        name=name,
        doc_type=doc_type,
        content=content,
        folder_id=folder_id,
        working_file_id=working_file_id,
    )
    db.commit()
    db.refresh(row)
    return row


def mark_deleted(db: Session, row: WorkingFile) -> WorkingFile:
    row.is_deleted = True
    row.updated_at = utcnow()
    db.flush()
    return row


def remove_file(db: Session, working_file_id: int) -> WorkingFile:
    row = mark_deleted(db, get_working_file(db, working_file_id))
    db.commit()
    db.refresh(row)
    return row


def list_files(db: Session, branch_id: int, folder_id=_ALL_FOLDERS) -> List[WorkingFile]:
    q = db.query(WorkingFile).filter(WorkingFile.branch_id == branch_id, WorkingFile.is_deleted == False)  # noqa: E712
    if folder_id is not _ALL_FOLDERS:
        folder_id = normalize_folder_id(folder_id)
        q = q.filter(WorkingFile.folder_id.is_(None) if folder_id is None else WorkingFile.folder_id == folder_id)
    return q.order_by(WorkingFile.working_file_id).all()


def _preference(row: WorkingFile):
    # 살아 있는 행, 최근 수정된 행이 뒤에 오도록 정렬해 dict 구성 시 우선권을 갖게 한다.
    return (not row.is_deleted, row.updated_at or utcnow(), row.working_file_id)


def sync_from_live_files(
    db: Session,
    project_id: int,
    branch_id: int,
    file_ids: Optional[Iterable[int]] = None,
) -> Dict[str, int]:
    """라이브 파일 저장소의 현재 상태를 브랜치 작업 트리에 반영한다. 전체 동기화일 때만 사라진 파일을 삭제 표시한다."""
    live_files = file_service.list_project_files(db, project_id)
    partial = file_ids is not None
    if partial:
        wanted = {int(fid) for fid in file_ids}
        live_files = [f for f in live_files if f.file_id in wanted]

    rows = sorted(
        db.query(WorkingFile).filter(WorkingFile.branch_id == branch_id).all(),
        key=_preference,
    )
    by_source = {row.source_file_id: row for row in rows if row.source_file_id is not None}
    by_path = {_path_tuple(row.folder_id, row.name, row.doc_type): row for row in rows}
    claimed = set()
    counts = {"inserted": 0, "updated": 0, "deleted": 0}

    # 라이브 파일 ID로 먼저 짝을 지은 뒤, 남은 파일만 경로로 찾는다.
    matches = {}
    for live in live_files:
        row = by_source.get(live.file_id)
        if row is not None and row.working_file_id not in claimed:
            matches[live.file_id] = row
            claimed.add(row.working_file_id)
    for live in live_files:
        if live.file_id in matches:
            continue
        row = by_path.get(_path_tuple(live.folder_id, live.name, live.doc_type))
        if row is not None and row.working_file_id not in claimed:
            matches[live.file_id] = row
            claimed.add(row.working_file_id)

    for live in live_files:
        key = _path_tuple(live.folder_id, live.name, live.doc_type)
        match = matches.get(live.file_id)

        content_hash = hash_content(live.xml)
        if match is not None:
            same = (
                not match.is_deleted
                and match.content_hash == content_hash
                and _path_tuple(match.folder_id, match.name, match.doc_type) == key
                and match.source_file_id == live.file_id
            )
            if same:
                continue
            counts["updated"] += 1
        else:
            counts["inserted"] += 1

        row = stage_file(
            db,
            branch_id,
            name=live.name,
            doc_type=live.doc_type,
            content=live.xml,
            folder_id=live.folder_id,
            working_file_id=match.working_file_id if match is not None else None,
            source_file_id=live.file_id,
            force_new=match is None,
        )
        claimed.add(row.working_file_id)

    if not partial:
        for row in rows:
            if row.working_file_id not in claimed and not row.is_deleted:
                mark_deleted(db, row)
                counts["deleted"] += 1

    logger.info(
        "[vcs] live files synced project_id=%s branch_id=%s inserted=%s updated=%s deleted=%s",
        project_id,
        branch_id,
        counts["inserted"],
        counts["updated"],
        counts["deleted"],
    )
    return counts


def stage_live_project(db: Session, project_id: int, user_id: int):
    """편집기 저장 직후 호출되어 사용자의 draft 작업 트리를 라이브 파일과 맞춘다."""
    draft = branch_service.get_user_branch(db, project_id, user_id)
    sync_from_live_files(db, project_id, draft.branch_id)
    db.commit()
    return draft
