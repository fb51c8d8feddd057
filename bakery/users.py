# bakery/users.py
import logging
from typing import Any, Dict, List

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from .core import LoginIn, RegisterIn, UserCreateIn, UserUpdateIn, _user_dict
from .models import User
from .security import create_access_token, hash_password, verify_password

logger = logging.getLogger("bakery.users")

MIN_PASSWORD_LENGTH = 6


def _check_new_user(payload: RegisterIn) -> None:
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")


def _email_taken(db: Session, email: str) -> bool:
    return db.scalar(select(User.id).where(User.email == email)) is not None


def _create_user(db: Session, payload: RegisterIn, is_admin: bool) -> User:
    _check_new_user(payload)
    if _email_taken(db, payload.email):
        raise HTTPException(status_code=409, detail="Email already exists")
    user = User(
        name=payload.name,
        email=payload.email,
        password=hash_password(payload.password),
        phone=payload.phone,
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    logger.info("created user %s (admin=%s)", user.id, is_admin)
    return user


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _ensure_self_or_admin(current: User, user_id: int, detail: str) -> None:
    if current.id != user_id and not current.is_admin:
        raise HTTPException(status_code=403, detail=detail)


# Auth
def register_logic(db: Session, payload: RegisterIn) -> Dict[str, Any]:
    # public registrations never get the admin flag
    return _user_dict(_create_user(db, payload, is_admin=False))


def login_logic(db: Session, payload: LoginIn) -> Dict[str, Any]:
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    user = db.scalar(select(User).where(User.email == payload.email))
    if user is None or not verify_password(payload.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {
        "token": create_access_token(user),
        "user_id": user.id,
        "name": user.name,
        "email": user.email,
        "is_admin": user.is_admin,
    }


# Users
def list_users_logic(db: Session) -> List[Dict[str, Any]]:
    return [_user_dict(u) for u in db.scalars(select(User).order_by(User.id))]


def get_user_logic(db: Session, current: User, user_id: int) -> Dict[str, Any]:
    _ensure_self_or_admin(current, user_id, "Forbidden: You can only access your own information")
    return _user_dict(_get_user_or_404(db, user_id))


def create_user_logic(db: Session, payload: UserCreateIn) -> Dict[str, Any]:
    return _user_dict(_create_user(db, payload, is_admin=payload.is_admin))


def update_user_logic(db: Session, current: User, user_id: int, payload: UserUpdateIn) -> Dict[str, Any]:
    _ensure_self_or_admin(current, user_id, "Forbidden: You can only update your own information")
    if payload.is_admin is not None and not current.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden: You cannot change admin status.")
    if payload.password and len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters long")

    user = _get_user_or_404(db, user_id)
    if payload.email is not None and payload.email != user.email and _email_taken(db, payload.email):
        raise HTTPException(status_code=409, detail="Email already exists")

    if payload.name is not None:
        user.name = payload.name
    if payload.email is not None:
        user.email = payload.email
    if payload.phone is not None:
        user.phone = payload.phone
    if payload.is_admin is not None:
        user.is_admin = payload.is_admin
    if payload.password:
        user.password = hash_password(payload.password)
    db.commit()
    return _user_dict(user)


def delete_user_logic(db: Session, current: User, user_id: int) -> None:
    _ensure_self_or_admin(
        current, user_id,
        "Forbidden: You can only delete your own account or an admin can delete any account.",
    )
    user = _get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()
    logger.info("deleted user %s", user_id)
