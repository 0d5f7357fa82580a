"""편집기용 라이브 폴더/프로세스 파일 저장소 서비스입니다. VCS 엔진은 이 모듈을 경계 너머의 협력자로 사용합니다."""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from flowvcs.models.file import Folder, ProcessFile
from flowvcs.utils.helpers import normalize_folder_id, utcnow

logger = logging.getLogger(__name__)

ALLOWED_DOC_TYPES = {"bpmn", "dmn"}


def _normalize_doc_type(value: Optional[str]) -> str:
    text = (value or "").strip().lower()
    if text not in ALLOWED_DOC_TYPES:
        raise HTTPException(status_code=400, detail=f"지원하지 않는 문서 유형입니다: {value}")
    return text


def _folder_filter(column, folder_id: Optional[int]):
    return column.is_(None) if folder_id is None else column == folder_id


def list_project_files(db: Session, project_id: int) -> List[ProcessFile]:
    return (
        db.query(ProcessFile)
        .filter(ProcessFile.project_id == project_id)
        .order_by(ProcessFile.file_id)
        .all()
    )


def get_file(db: Session, file_id: int) -> ProcessFile:
    row = db.get(ProcessFile, file_id)
    if not row:
        raise HTTPException(status_code=404, detail="파일을 찾을 수 없습니다.")
    return row


def get_folder(db: Session, folder_id: int) -> Folder:
    row = db.get(Folder, folder_id)
    if not row:
        raise HTTPException(status_code=404, detail="폴더를 찾을 수 없습니다.")
    return row


def _validate_folder(db: Session, project_id: int, folder_id: Optional[int]) -> Optional[int]:
    folder_id = normalize_folder_id(folder_id)
    if folder_id is None:
        return None
    folder = get_folder(db, folder_id)
    if folder.project_id != project_id:
        raise HTTPException(status_code=400, detail="다른 프로젝트의 폴더입니다.")
    return folder_id


def find_file_by_path(
    db: Session,
    project_id: int,
    *,
    name: str,
    doc_type: str,
    folder_id: Optional[int],
) -> Optional[ProcessFile]:
    return (
        db.query(ProcessFile)
        .filter(
            ProcessFile.project_id == project_id,
            ProcessFile.name == name,
            ProcessFile.doc_type == doc_type,
            _folder_filter(ProcessFile.folder_id, normalize_folder_id(folder_id)),
        )
        .order_by(ProcessFile.file_id)
        .first()
    )


def _ensure_unique_path(db: Session, project_id: int, name: str, doc_type: str, folder_id: Optional[int], exclude_id=None):
    existing = find_file_by_path(db, project_id, name=name, doc_type=doc_type, folder_id=folder_id)
    if existing and existing.file_id != exclude_id:
        raise HTTPException(status_code=409, detail="같은 위치에 같은 이름의 파일이 이미 있습니다.")


def create_file(
    db: Session,
    project_id: int,
    *,
    name: str,
    doc_type: str,
    xml: str = "",
    folder_id: Optional[int] = None,
    created_by: Optional[int] = None,
) -> ProcessFile:
    doc_type = _normalize_doc_type(doc_type)
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="파일 이름을 입력해 주세요.")
    folder_id = _validate_folder(db, project_id, folder_id)
    _ensure_unique_path(db, project_id, name, doc_type, folder_id)

    row = ProcessFile(
        project_id=project_id,
        folder_id=folder_id,
        name=name,
        doc_type=doc_type,
        xml=xml or "",
        created_by=created_by,
    )
    db.add(row)
    db.flush()
    return row


def update_file(db: Session, file_id: int, payload: dict) -> ProcessFile:
    row = get_file(db, file_id)
    if "name" in payload and payload["name"] is not None:
        name = str(payload["name"]).strip()
        if not name:
            raise HTTPException(status_code=400, detail="파일 이름을 입력해 주세요.")
        row.name = name
    if "folder_id" in payload:
        row.folder_id = _validate_folder(db, row.project_id, payload["folder_id"])
    if "xml" in payload and payload["xml"] is not None:
        row.xml = payload["xml"]
    _ensure_unique_path(db, row.project_id, row.name, row.doc_type, row.folder_id, exclude_id=row.file_id)
    row.updated_at = utcnow()
    db.flush()
    return row


def write_file_content(
    db: Session,
    project_id: int,
    *,
    name: str,
    doc_type: str,
    folder_id: Optional[int],
    xml: str,
    user_id: Optional[int] = None,
) -> ProcessFile:
    """경로(폴더, 이름, 유형)가 같은 라이브 파일에 내용을 쓰고, 없으면 다시 만든다."""
    folder_id = normalize_folder_id(folder_id)
    if folder_id is not None and not db.get(Folder, folder_id):
        folder_id = None
    row = find_file_by_path(db, project_id, name=name, doc_type=doc_type, folder_id=folder_id)
    if row:
        row.xml = xml or ""
        row.updated_at = utcnow()
        db.flush()
        return row
    return create_file(
        db,
        project_id,
        name=name,
        doc_type=doc_type,
        xml=xml,
        folder_id=folder_id,
        created_by=user_id,
    )


def delete_file(db: Session, file_id: int) -> ProcessFile:
    row = get_file(db, file_id)
    db.delete(row)
    db.flush()
    return row


def create_folder(db: Session, project_id: int, *, name: str, parent_folder_id: Optional[int] = None) -> Folder:
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="폴더 이름을 입력해 주세요.")
    parent_folder_id = _validate_folder(db, project_id, parent_folder_id)
    row = Folder(project_id=project_id, name=name, parent_folder_id=parent_folder_id)
    db.add(row)
    db.flush()
    return row


def collect_folder_subtree(db: Session, root_folder_id: int) -> Tuple[List[int], List[int]]:
    """하위 폴더/파일을 명시적 스택으로 수집한다. 폴더는 부모가 자식보다 먼저 오도록 반환한다."""
    folders_out: List[int] = []
    files_out: List[int] = []
    visited: Set[int] = set()
    stack: List[int] = [int(root_folder_id)]

    while stack:
        current = stack.pop()
        if current in visited:
            logger.warning("[files] folder cycle detected at folder_id=%s", current)
            continue
        visited.add(current)
        folders_out.append(current)

        child_ids = [
            int(row[0])
            for row in db.query(Folder.folder_id).filter(Folder.parent_folder_id == current).all()
        ]
        stack.extend(child_ids)
        files_out.extend(
            int(row[0])
            for row in db.query(ProcessFile.file_id).filter(ProcessFile.folder_id == current).all()
        )

    return folders_out, files_out


def collect_ancestor_folder_ids(db: Session, folder_ids: Iterable[Optional[int]]) -> Set[int]:
    result: Set[int] = set()
    worklist = [int(fid) for fid in folder_ids if fid is not None]
    while worklist:
        current = worklist.pop()
        if current in result:
            continue
        folder = db.get(Folder, current)
        if not folder:
            continue
        result.add(current)
        if folder.parent_folder_id is not None:
            worklist.append(int(folder.parent_folder_id))
    return result


def delete_folder(db: Session, folder_id: int) -> dict:
    get_folder(db, folder_id)
    folders, files = collect_folder_subtree(db, folder_id)
    if files:
        db.query(ProcessFile).filter(ProcessFile.file_id.in_(files)).delete(synchronize_session=False)
    # 자식 폴더부터 삭제
    for fid in reversed(folders):
        db.query(Folder).filter(Folder.folder_id == fid).delete(synchronize_session=False)
    db.flush()
    logger.info("[files] folder subtree deleted folder_id=%s folders=%s files=%s", folder_id, len(folders), len(files))
    return {"deleted_folders": len(folders), "deleted_files": len(files)}


def delete_project_files(db: Session, project_id: int) -> None:
    db.query(ProcessFile).filter(ProcessFile.project_id == project_id).delete(synchronize_session=False)
    db.query(Folder).filter(Folder.project_id == project_id).update(
        {Folder.parent_folder_id: None}, synchronize_session=False
    )
    db.query(Folder).filter(Folder.project_id == project_id).delete(synchronize_session=False)
