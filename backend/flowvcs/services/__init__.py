"""서비스 레이어 패키지 초기화 모듈입니다."""

from flowvcs.services import (
    auth_service,
    project_service,
    file_service,
    # VCS 엔진
    content_service,
    branch_service,
    working_tree_service,
    diff_service,
    commit_service,
    merge_service,
    version_service,
    restore_service,
    status_service,
)
