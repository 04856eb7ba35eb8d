# filedrive/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from filedrive.core.config import get_settings
from filedrive.core.errors import InvalidRequestError

PURPOSE_EMAIL_VERIFY = "email-verify"
PURPOSE_PASSWORD_RESET = "password-reset"

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def _encode(claims: dict, ttl_seconds: int) -> str:
    settings = get_settings()
    to_encode = dict(claims)
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def create_session_token(user_id: int, role: str) -> str:
    return _encode(
        {"sub": str(user_id), "role": role},
        get_settings().session_ttl_seconds,
    )


def decode_session_token(token: str) -> Optional[int]:
    """Return the user id carried by a session token, or None if it is not valid."""
    try:
        payload = _decode(token)
    except JWTError:
        return None
    if payload.get("purpose"):
        # email tokens must never open a session
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


def create_email_token(user_id: int, email: str, purpose: str) -> str:
    return _encode(
        {"sub": str(user_id), "email": email, "purpose": purpose},
        get_settings().email_token_ttl_seconds,
    )


def decode_email_token(token: str, purpose: str) -> dict:
    """Decode a verification or reset token and check what it was issued for.

    Raises:
        InvalidRequestError: if the token is expired, malformed, or issued
            for another purpose.
    """
    if not token:
        raise InvalidRequestError("Token is required")
    try:
        payload = _decode(token)
    except ExpiredSignatureError:
        raise InvalidRequestError("Token has expired")
    except JWTError:
        raise InvalidRequestError("Invalid token")
    if payload.get("purpose") != purpose:
        raise InvalidRequestError("Invalid token purpose")
    return payload
