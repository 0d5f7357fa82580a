"""프로젝트별 main/draft 브랜치 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint

from flowvcs.database import Base
from flowvcs.utils.helpers import utcnow

BRANCH_MAIN = "main"
BRANCH_DRAFT = "draft"


class Branch(Base):
    __tablename__ = "vcs_branch"

    branch_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    name = Column(String(100), nullable=False)  # main / draft/<user_id>
    kind = Column(String(10), nullable=False)  # main/draft
    owner_user_id = Column(Integer, ForeignKey("users.user_id"), nullable=True)  # draft only
    # 첫 커밋 전까지만 NULL이며, 조건부 UPDATE로만 전진한다.
    head_commit_id = Column(Integer, nullable=True)
    # draft 전용. 마지막 게시(병합) 시점의 draft head. 미게시 커밋 판정에 쓴다.
    last_merged_commit_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_vcs_branch_project_name"),
        Index("idx_vcs_branch_project_kind", "project_id", "kind"),
    )

    @property
    def is_main(self) -> bool:
        return self.kind == BRANCH_MAIN
