"""Mock SSO 로그인과 JWT 발급/검증을 담당합니다. 편집기 사용자 식별은 사번(emp_id) 기준입니다."""

from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from flowvcs.config import settings
from flowvcs.models.user import User
from flowvcs.utils.helpers import utcnow

ALGORITHM = "HS256"


def token_ttl_seconds() -> int:
    return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def create_access_token(user: User) -> str:
    issued_at = utcnow()
    payload = {
        "sub": str(user.user_id),
        "emp_id": user.emp_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=token_ttl_seconds()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> int:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    subject: Optional[str] = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return int(subject)


def find_active_user(db: Session, **criteria) -> Optional[User]:
    return db.query(User).filter_by(is_active=True, **criteria).first()


def mock_sso_login(db: Session, emp_id: str) -> User:
    user = find_active_user(db, emp_id=(emp_id or "").strip())
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"사번 '{emp_id}'에 해당하는 활성 사용자를 찾을 수 없습니다.",
        )
    return user
