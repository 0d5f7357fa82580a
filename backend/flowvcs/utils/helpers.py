"""공용 유틸리티 헬퍼입니다."""

import hashlib
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    # SQLite DateTime 컬럼과 비교 가능하도록 naive UTC로 맞춘다.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_content(content: str) -> str:
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()


def normalize_folder_id(folder_id) -> Optional[int]:
    if folder_id is None or folder_id == "":
        return None
    return int(folder_id)
