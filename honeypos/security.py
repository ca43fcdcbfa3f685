from __future__ import annotations

from datetime import timedelta, timezone
from typing import Optional
from uuid import uuid4

import bcrypt
import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from honeypos.config import settings
from honeypos.constants import ROLE_ADMIN
from honeypos.deps import get_db
from honeypos.errors import AuthenticationError, PermissionDeniedError
from honeypos.models import AdminUser
from honeypos.utils import utcnow

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: AdminUser) -> tuple[str, int]:
    """Returns the signed token and its lifetime in seconds."""
    expires_in = settings.jwt_expiry_hours * 3600
    expires_at = utcnow().replace(tzinfo=timezone.utc) + timedelta(seconds=expires_in)
    payload = {
        "sub": str(user.id),
        "name": user.display_name,
        "username": user.username,
        "role": user.role,
        "jti": uuid4().hex,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "exp": expires_at,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)
    return token, expires_in


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("invalid token") from exc


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> AdminUser:
    token = _bearer_token(request)
    if not token:
        raise AuthenticationError("not authenticated")
    claims = decode_access_token(token)
    try:
        user_id = int(claims.get("sub", ""))
    except ValueError as exc:
        raise AuthenticationError("invalid token") from exc
    user = db.get(AdminUser, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("user not found or disabled")
    return user


def require_admin(user: AdminUser = Depends(get_current_user)) -> AdminUser:
    if user.role != ROLE_ADMIN:
        raise PermissionDeniedError("admin role required")
    return user


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
