"""SQLAlchemy 모델 패키지 초기화 모듈입니다."""

from flowvcs.models.user import User
from flowvcs.models.project import Project, ProjectMember
from flowvcs.models.file import Folder, ProcessFile
from flowvcs.models.content_blob import ContentBlob
from flowvcs.models.branch import Branch
from flowvcs.models.working_file import WorkingFile
from flowvcs.models.commit import Commit, FileSnapshot
from flowvcs.models.file_commit_version import FileCommitVersion

__all__ = [
    "User",
    "Project", "ProjectMember",
    "Folder", "ProcessFile",
    "ContentBlob",
    "Branch",
    "WorkingFile",
    "Commit", "FileSnapshot",
    "FileCommitVersion",
]
