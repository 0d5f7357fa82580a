"""브랜치별 작업 트리(커밋 대상 스테이징 영역) 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index

from flowvcs.database import Base
from flowvcs.utils.helpers import utcnow


class WorkingFile(Base):
    __tablename__ = "vcs_working_file"

    working_file_id = Column(Integer, primary_key=True, autoincrement=True)
    branch_id = Column(Integer, ForeignKey("vcs_branch.branch_id"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    # 편집기 라이브 파일 ID. 이름 변경/이동 시에도 같은 작업 파일로 연결하는 데 사용한다.
    source_file_id = Column(Integer, nullable=True)
    folder_id = Column(Integer, nullable=True)
    name = Column(String(200), nullable=False)
    doc_type = Column(String(10), nullable=False)
    content_blob_id = Column(Integer, ForeignKey("content_blob.blob_id"), nullable=False)
    content_hash = Column(String(64), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_vcs_working_file_key", "branch_id", "doc_type", "name", "folder_id"),
    )
