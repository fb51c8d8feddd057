# bakery/security.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db
from .models import User

logger = logging.getLogger("bakery.security")


def hash_password(password: str) -> str:
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # malformed hash in the users table
        return False


def create_access_token(user: User) -> str:
    settings = get_settings()
    if not settings.jwt_secret:
        logger.error("BAKERY_JWT_SECRET is not set; refusing to issue tokens")
        raise HTTPException(status_code=500, detail="Authentication configuration error")
    payload = {
        "user_id": user.id,
        "is_admin": user.is_admin,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.token_ttl_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


def _user_from_token(db: Session, token: str) -> Optional[User]:
    try:
        payload = decode_token(token)
    except jwt.PyJWTError as e:
        logger.warning("JWT verification error: %s", e)
        return None
    user_id = payload.get("user_id")
    if user_id is None:
        return None
    return db.get(User, user_id)


# ---------------------------
# FastAPI dependencies
# ---------------------------
def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    token = _bearer(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = _user_from_token(db, token)
    if user is None:
        raise HTTPException(status_code=403, detail="Invalid or expired token")
    return user


def get_optional_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    token = _bearer(authorization)
    if token is None:
        return None
    # a bad token at checkout means "guest", not an error
    return _user_from_token(db, token)


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden: Admin access required")
    return user
