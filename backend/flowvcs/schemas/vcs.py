"""VCS(커밋/게시/복원/이력) 요청/응답 스키마입니다."""

from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class CommitRequest(BaseModel):
    message: str = ""
    file_ids: Optional[List[int]] = None


class CommitOut(BaseModel):
    commit_id: int
    project_id: int
    branch_id: int
    parent_commit_id: Optional[int] = None
    author_user_id: Optional[int] = None
    message: str
    content_hash: str
    source: str
    is_remote: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FileHistoryCommitOut(CommitOut):
    file_version_number: Optional[int] = None


class CommitResult(BaseModel):
    commit: CommitOut
    files_committed: int


class PublishResult(BaseModel):
    merge_commit_id: int
    files_changed: int


class SnapshotOut(BaseModel):
    snapshot_id: int
    working_file_id: int
    name: str
    doc_type: str
    folder_id: Optional[int] = None
    content: Optional[str] = None
    content_hash: Optional[str] = None
    change_type: str


class RestoreResult(BaseModel):
    files_restored: int
    new_commit_id: int


class UncommittedFilesOut(BaseModel):
    baseline: str
    baseline_commit_id: Optional[int] = None
    file_ids: List[int]
    folder_ids: List[int]


class VcsStatusOut(BaseModel):
    initialized: bool
    draft_branch_id: Optional[int] = None
    main_branch_id: Optional[int] = None
    has_uncommitted_changes: bool = False
    has_unpublished_commits: bool = False
    last_merged_commit_id: Optional[int] = None
    last_draft_commit: Optional[CommitOut] = None
    last_main_commit: Optional[CommitOut] = None


class UncommittedStatusItem(BaseModel):
    # None이면 상태를 알 수 없음
    has_uncommitted_changes: Optional[bool] = None
    dirty_file_count: Optional[int] = None
