"""Authentication service - password sign-in, Google sign-in and session tokens."""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from channel_dashboard.config import settings
from channel_dashboard.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_session_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(days=settings.SESSION_MAX_AGE_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_session_token(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


async def authenticate_user(db: AsyncSession, username: str, password: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username.lower()))
    user = result.scalar_one_or_none()
    if user and user.password_hash and verify_password(password, user.password_hash):
        return user
    return None


async def upsert_google_user(db: AsyncSession, user_info: dict[str, Any]) -> User:
    """Find the account for a Google profile by email, creating it on first sign-in."""
    email = user_info.get("email")
    if not email:
        raise ValueError("No email received from Google")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(
            email=email,
            name=user_info.get("name") or "",
            picture=user_info.get("picture") or "",
        )
        db.add(user)
    else:
        user.name = user_info.get("name") or user.name
        user.picture = user_info.get("picture") or user.picture
    user.last_login_at = datetime.now(timezone.utc)
    await db.flush()
    return user
