"""(파일, 커밋) → 사용자용 순차 버전 번호를 담는 재생성 가능한 캐시 모델입니다."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, UniqueConstraint

from flowvcs.database import Base


class FileCommitVersion(Base):
    __tablename__ = "vcs_file_commit_version"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    working_file_id = Column(Integer, ForeignKey("vcs_working_file.working_file_id"), nullable=False)
    commit_id = Column(Integer, ForeignKey("vcs_commit.commit_id"), nullable=False)
    version_number = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("working_file_id", "commit_id", name="uq_file_commit_version"),
        Index("idx_file_commit_version_file", "project_id", "working_file_id", "version_number"),
    )
