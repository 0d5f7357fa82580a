"""Bearer 토큰에서 현재 편집기 사용자를 찾는 FastAPI 의존성입니다."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from flowvcs.database import get_db
from flowvcs.models.user import User
from flowvcs.services.auth_service import decode_access_token, find_active_user

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    user = find_active_user(db, user_id=decode_access_token(credentials.credentials))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user
