from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import AuthenticationError
from ..logging import structlog
from ..models.models import User
from ..schemas.auth import LoginRequest, MeResponse, TokenResponse
from .security import authenticate, create_access_token, get_current_user


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, req.username, req.password)
    if user is None:
        logger.info("login_failed", username=req.username)
        raise AuthenticationError("Invalid credentials")
    access = create_access_token(user)
    user.last_login_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    logger.info("login_succeeded", user_id=str(user.id), role=user.role_name)
    return TokenResponse(
        access_token=access,
        expires_in=settings.jwt_ttl_seconds,
        user=MeResponse.model_validate(user),
    )


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse.model_validate(user)
