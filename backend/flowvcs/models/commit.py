"""불변 커밋과 커밋별 전체 파일 스냅샷 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from flowvcs.database import Base
from flowvcs.utils.helpers import utcnow

SOURCE_MANUAL = "manual"
SOURCE_SYNC_PUSH = "sync_push"
SOURCE_SYNC_PULL = "sync_pull"
SOURCE_DEPLOY = "deploy"
SOURCE_SYSTEM = "system"
SOURCE_RESTORE = "restore"

COMMIT_SOURCES = {
    SOURCE_MANUAL,
    SOURCE_SYNC_PUSH,
    SOURCE_SYNC_PULL,
    SOURCE_DEPLOY,
    SOURCE_SYSTEM,
    SOURCE_RESTORE,
}
# 파일 버전 번호를 받지 않고 기본 파일 이력에서 숨겨지는 자동 체크포인트 출처
AUTO_COMMIT_SOURCES = {SOURCE_SYNC_PUSH, SOURCE_SYNC_PULL, SOURCE_DEPLOY, SOURCE_SYSTEM}

CHANGE_ADDED = "added"
CHANGE_MODIFIED = "modified"
CHANGE_DELETED = "deleted"
CHANGE_UNCHANGED = "unchanged"


class Commit(Base):
    __tablename__ = "vcs_commit"

    commit_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    branch_id = Column(Integer, ForeignKey("vcs_branch.branch_id"), nullable=False)
    parent_commit_id = Column(Integer, ForeignKey("vcs_commit.commit_id"), nullable=True)
    author_user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    message = Column(Text, nullable=False, default="")
    content_hash = Column(String(64), nullable=False)
    source = Column(String(20), nullable=False, default=SOURCE_MANUAL)
    is_remote = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    snapshots = relationship(
        "FileSnapshot",
        back_populates="commit",
        cascade="all, delete-orphan",
        order_by="FileSnapshot.snapshot_id",
    )

    __table_args__ = (
        Index("idx_vcs_commit_project", "project_id"),
        Index("idx_vcs_commit_branch", "branch_id", "created_at"),
        Index("idx_vcs_commit_parent", "parent_commit_id"),
    )

    @property
    def is_auto(self) -> bool:
        return self.source in AUTO_COMMIT_SOURCES


class FileSnapshot(Base):
    __tablename__ = "vcs_file_snapshot"

    snapshot_id = Column(Integer, primary_key=True, autoincrement=True)
    commit_id = Column(Integer, ForeignKey("vcs_commit.commit_id"), nullable=False)
    working_file_id = Column(Integer, ForeignKey("vcs_working_file.working_file_id"), nullable=False)
    name = Column(String(200), nullable=False)
    doc_type = Column(String(10), nullable=False)
    folder_id = Column(Integer, nullable=True)
    content_blob_id = Column(Integer, ForeignKey("content_blob.blob_id"), nullable=True)  # 삭제 시 NULL
    content_hash = Column(String(64), nullable=True)
    change_type = Column(String(20), nullable=False)  # added/modified/deleted/unchanged

    commit = relationship("Commit", back_populates="snapshots")

    __table_args__ = (
        Index("idx_vcs_snapshot_commit", "commit_id"),
        Index("idx_vcs_snapshot_file", "working_file_id", "change_type"),
    )

    @property
    def is_live(self) -> bool:
        return self.content_blob_id is not None
