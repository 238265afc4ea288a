import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..db import get_db
from ..errors import AuthenticationError
from ..models.models import User
from ..services.permissions import Identity, check_permission


logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)

_LEGACY_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    # Accounts imported from the previous system carry bcrypt hashes
    if hashed.startswith(_LEGACY_BCRYPT_PREFIXES):
        pb = plain.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(pb, hashed.encode("utf-8"))
        except ValueError:
            return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def create_access_token(user: User) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": str(user.id),
        "role": user.role_name,
        "role_id": str(user.role_id) if user.role_id else None,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.jwt_ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def authenticate(db: Session, username: str, password: str) -> Optional[User]:
    """Return the active user matching the credentials, or None."""
    user = (
        db.query(User)
        .options(joinedload(User.role))
        .filter(User.username == username)
        .first()
    )
    if user is None or not user.active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None:
        raise AuthenticationError("Not authenticated")
    payload = decode_token(creds.credentials)
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Invalid subject")
    # Role is resolved from the database so demotions apply to live tokens
    user = (
        db.query(User)
        .options(joinedload(User.role))
        .filter(User.id == user_uuid)
        .first()
    )
    if user is None or not user.active:
        raise AuthenticationError("User not active")
    return user


def get_identity(user: User = Depends(get_current_user)) -> Identity:
    return Identity(user_id=user.id, username=user.username, role=user.role_name)


def require_permission(resource: str, action: str):
    """Dependency factory: authenticate, then check the role policy."""

    def _dep(identity: Identity = Depends(get_identity)) -> Identity:
        check_permission(identity, resource, action)
        return identity

    return _dep
