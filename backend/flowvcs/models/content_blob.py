"""불변 파일 콘텐츠와 해시를 저장하는 Content Store 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Index

from flowvcs.database import Base
from flowvcs.utils.helpers import utcnow


class ContentBlob(Base):
    __tablename__ = "content_blob"

    blob_id = Column(Integer, primary_key=True, autoincrement=True)
    # 중복 제거는 조회 기반의 권고 사항이므로 unique 제약을 두지 않는다.
    content_hash = Column(String(64), nullable=False)
    content = Column(Text, nullable=False)
    size = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_content_blob_hash", "content_hash"),
    )
