"""환경 변수 기반 애플리케이션 설정을 중앙에서 관리합니다."""

from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./flowvcs.db"
    SECRET_KEY: str = "change-me-to-a-random-secret-key"
    DEBUG: bool = True
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # JWT
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # Version control
    VCS_HISTORY_LIMIT: int = 50
    # 파일 버전 캐시 검증 시 최신 비자동 커밋을 찾기 위해 살펴보는 커밋 수
    VCS_VERSION_LOOKBACK: int = 10
    # head 경합(409) 발생 시 호출 계층이 자동으로 재시도하는 횟수
    VCS_CONFLICT_RETRIES: int = 1

    class Config:
        env_file = str(Path(__file__).resolve().parents[1] / ".env")


settings = Settings()
