"""파일 콘텐츠를 해시 기준으로 중복 제거하여 저장/조회하는 Content Store 서비스입니다."""

from typing import Dict, Iterable

from sqlalchemy.orm import Session

from flowvcs.models.content_blob import ContentBlob
from flowvcs.services.vcs_errors import VcsNotFound
from flowvcs.utils.helpers import hash_content


def put_content(db: Session, content: str) -> ContentBlob:
    content = content or ""
    content_hash = hash_content(content)
    existing = (
        db.query(ContentBlob)
        .filter(ContentBlob.content_hash == content_hash)
        .order_by(ContentBlob.blob_id)
        .first()
    )
    if existing:
        return existing

    blob = ContentBlob(
        content_hash=content_hash,
        content=content,
        size=len(content.encode("utf-8")),
    )
    db.add(blob)
    db.flush()
    return blob


def get_blob(db: Session, blob_id: int) -> ContentBlob:
    blob = db.get(ContentBlob, blob_id) if blob_id is not None else None
    if not blob:
        raise VcsNotFound(f"콘텐츠 참조 {blob_id}를 찾을 수 없습니다.")
    return blob


def get_content(db: Session, blob_id: int) -> str:
    return get_blob(db, blob_id).content


def get_contents(db: Session, blob_ids: Iterable[int]) -> Dict[int, str]:
    ids = {int(blob_id) for blob_id in blob_ids if blob_id is not None}
    if not ids:
        return {}
    rows = db.query(ContentBlob.blob_id, ContentBlob.content).filter(ContentBlob.blob_id.in_(ids)).all()
    found = {int(row[0]): row[1] for row in rows}
    missing = ids - set(found)
    if missing:
        raise VcsNotFound(f"콘텐츠 참조 {sorted(missing)}를 찾을 수 없습니다.")
    return found
