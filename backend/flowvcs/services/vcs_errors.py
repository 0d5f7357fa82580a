"""버전 관리 엔진의 도메인 예외입니다. HTTPException을 상속하므로 라우터까지 그대로 전파됩니다."""

from typing import Optional

from fastapi import HTTPException, status


class VcsError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "버전 관리 요청을 처리할 수 없습니다."

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=type(self).status_code, detail=detail or self.default_detail)


class VcsNotFound(VcsError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "버전 관리 대상을 찾을 수 없습니다."


class VcsNotInitialized(VcsNotFound):
    default_detail = "이 프로젝트는 버전 관리가 초기화되지 않았습니다. (version control is not initialized for this project)"


class VcsInvalidState(VcsError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "현재 버전 관리 상태에서는 요청을 처리할 수 없습니다."


class CommitConflict(VcsError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "브랜치 head가 다른 커밋에 의해 변경되었습니다."


RETRY_EXHAUSTED_DETAIL = "다른 저장 작업과 충돌했습니다. 다시 시도해 주세요. (please retry, your changes may have raced with another save)"
