"""Bearer-token verification for dashboard users.

Tokens are issued elsewhere; this module only decodes them (HS256, `userId`
claim) and loads the matching user.
"""

from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt import ExpiredSignatureError, InvalidTokenError
from sqlalchemy.orm import Session

from baboo_api.config import settings
from baboo_api.database import get_db
from baboo_api.logging_config import get_logger
from baboo_api.models import User

logger = get_logger("auth")


class TokenValidationError(ValueError):
    pass


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> UUID:
    """Return the user id carried by a token."""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError as exc:
        raise TokenValidationError("Token has expired") from exc
    except InvalidTokenError as exc:
        raise TokenValidationError("Invalid token") from exc

    user_id = payload.get("userId")
    if not user_id:
        raise TokenValidationError("Token payload must include userId")
    try:
        return UUID(str(user_id))
    except ValueError as exc:
        raise TokenValidationError("Token userId is not a valid id") from exc


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Authentication not configured")

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")

    token = authorization.split(" ", 1)[1].strip()
    try:
        user_id = decode_token(token, settings.jwt_secret, settings.jwt_algorithm)
    except TokenValidationError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User not found")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def require_expert(user: User = Depends(get_current_user)) -> User:
    if user.role != "expert":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Expert access required")
    return user
