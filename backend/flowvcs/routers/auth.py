from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from flowvcs.database import get_db
from flowvcs.middleware.auth_middleware import get_current_user
from flowvcs.models.user import User
from flowvcs.schemas.user import LoginRequest, TokenResponse, UserOut
from flowvcs.services import auth_service

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = auth_service.mock_sso_login(db, request.emp_id)
    return TokenResponse(
        access_token=auth_service.create_access_token(user),
        expires_in=auth_service.token_ttl_seconds(),
        user=UserOut.model_validate(user),
    )


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
