"""
Session-cookie authentication.

Provides:
- Password hashing (bcrypt)
- Signed session-id cookies backed by a server-side session store
- The ``get_current_user`` dependency for protected routes
- Register, login, logout and current-user endpoints
"""

from __future__ import annotations

import logging
from typing import Optional

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt

from runway.config import Settings, get_settings
from runway.db import Storage
from runway.dependencies import get_storage
from runway.errors import ConstraintViolationError
from runway.records import SessionRecord, UserRecord
from runway.schemas import LoginRequest, MessageResponse, RegisterRequest, UserResponse

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

router = APIRouter(tags=["auth"])


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash in constant time."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


# Verified against when the username is unknown.
_DUMMY_PASSWORD_HASH = hash_password("runway-unknown-user")


def encode_session_token(session: SessionRecord, secret: str) -> str:
    return jwt.encode(
        {"sub": session.sid, "exp": session.expires_at}, secret, algorithm=ALGORITHM
    )


def decode_session_token(token: str, secret: str) -> Optional[str]:
    """Return the session id from a signed cookie value, or None if invalid."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sub")
    return sid if isinstance(sid, str) else None


def start_session(
    response: Response, user: UserRecord, storage: Storage, settings: Settings
) -> SessionRecord:
    session = storage.session_store.create(user.id, settings.session_max_age_seconds)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=encode_session_token(session, settings.session_secret),
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )
    return session


def _session_id(request: Request, settings: Settings) -> Optional[str]:
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    return decode_session_token(token, settings.session_secret)


def get_current_user(
    request: Request,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> UserRecord:
    """
    Resolve the authenticated user from the session cookie.

    Raises a 401 if the cookie is missing, tampered with, expired, or points
    at a session or user that no longer exists.
    """
    sid = _session_id(request, settings)
    session = storage.session_store.get(sid) if sid else None
    user = storage.get_user(session.user_id) if session else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )
    return user


@router.post("/register", response_model=UserResponse, status_code=201)
def register(
    payload: RegisterRequest,
    response: Response,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    if storage.get_user_by_username(payload.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    try:
        user = storage.create_user(
            username=payload.username,
            password=hash_password(payload.password),
            email=payload.email,
        )
    except ConstraintViolationError:
        raise HTTPException(status_code=400, detail="Username already exists")
    start_session(response, user, storage, settings)
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=UserResponse)
def login(
    payload: LoginRequest,
    response: Response,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    user = storage.get_user_by_username(payload.username)
    hashed = user.password if user else _DUMMY_PASSWORD_HASH
    if not verify_password(payload.password, hashed) or not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    start_session(response, user, storage, settings)
    return user


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    sid = _session_id(request, settings)
    if sid:
        storage.session_store.destroy(sid)
    response.delete_cookie(settings.session_cookie_name, path="/")
    return MessageResponse(message="Logged out successfully")


@router.get("/user", response_model=UserResponse)
def current_user(user: UserRecord = Depends(get_current_user)):
    return user
