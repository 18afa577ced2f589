"""Authentication: password hashing, user creation and bearer tokens."""

from __future__ import annotations

import hmac
from datetime import timedelta
from typing import Callable, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from jose import JWTError, jwt
from sqlmodel import Session, select

from ..config import BaseConfig
from ..errors import Unauthorized, ValidationError
from ..models.user import User
from ..timeutil import is_valid_timezone, utcnow

SessionFactory = Callable[[], Session]

_hasher = PasswordHasher()
TOKEN_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 8


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_user(
    *,
    email: str,
    password: str,
    display_name: str | None = None,
    timezone: str | None = None,
    session_factory: SessionFactory,
    default_timezone: str = "UTC",
) -> User:
    """Create a new user with a hashed password."""

    email = _normalize_email(email)
    if not email or "@" not in email:
        raise ValidationError("A valid email address is required")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    tz_name = timezone or default_timezone
    if not is_valid_timezone(tz_name):
        raise ValidationError(f"Unknown timezone: {tz_name}")

    password_hash = _hasher.hash(password)
    with session_factory() as session:
        existing = session.exec(select(User).where(User.email == email)).first()
        if existing:
            raise ValidationError("Email already registered")
        user = User(
            email=email,
            password_hash=password_hash,
            display_name=(display_name or "").strip() or None,
            timezone=tz_name,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


def authenticate(
    *,
    email: str,
    password: str,
    session_factory: SessionFactory,
) -> Optional[User]:
    """Validate credentials and return the user when correct."""

    email = _normalize_email(email)
    if not email:
        return None
    with session_factory() as session:
        user = session.exec(select(User).where(User.email == email)).first()
        if user is None:
            return None
        try:
            _hasher.verify(user.password_hash, password)
        except (VerifyMismatchError, InvalidHash, VerificationError):
            return None

        user.last_login = utcnow()
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


def update_profile(
    *,
    user_id: int,
    session_factory: SessionFactory,
    display_name: str | None = None,
    timezone: str | None = None,
) -> User:
    """Change the display name and/or home timezone."""

    if timezone is not None and not is_valid_timezone(timezone):
        raise ValidationError(f"Unknown timezone: {timezone}")
    with session_factory() as session:
        user = session.get(User, user_id)
        if user is None:
            raise Unauthorized("User not found")
        if display_name is not None:
            user.display_name = display_name.strip() or None
        if timezone is not None:
            user.timezone = timezone
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


def issue_token(user: User, config: BaseConfig) -> str:
    """Return a signed bearer token for ``user``."""

    now = utcnow()
    claims = {
        "sub": str(user.id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=config.TOKEN_TTL_HOURS)).timestamp()),
    }
    return jwt.encode(claims, config.SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def verify_token(token: str, config: BaseConfig) -> int:
    """Return the user id carried by ``token`` or raise ``Unauthorized``."""

    try:
        claims = jwt.decode(token, config.SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
        return int(claims["sub"])
    except (JWTError, KeyError, TypeError, ValueError) as exc:
        raise Unauthorized("Invalid token") from exc


def is_service_key(token: str, config: BaseConfig) -> bool:
    """True when ``token`` is the configured internal service key."""

    expected = config.SERVICE_API_KEY
    if not expected or not token:
        return False
    return hmac.compare_digest(token.encode(), expected.encode())


__all__ = [
    "authenticate",
    "create_user",
    "is_service_key",
    "issue_token",
    "update_profile",
    "verify_token",
]
