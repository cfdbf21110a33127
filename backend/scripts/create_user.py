"""Create or update a username/password dashboard account.

Usage (from backend/ directory):
    python scripts/create_user.py --username alice --name "Alice"
    python scripts/create_user.py --username alice --reset-password

The password is read interactively (or from DASHBOARD_PASSWORD).

Prerequisites:
    - DB is running and migrated (alembic upgrade head)
"""
import argparse
import asyncio
import getpass
import os
import sys
from pathlib import Path

# Allow imports from backend/channel_dashboard/
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from channel_dashboard.config import settings
from channel_dashboard.models import User
from channel_dashboard.services.auth_service import hash_password


async def upsert_user(session: AsyncSession, username: str, password: str, name: str, reset: bool) -> None:
    username = username.lower()
    result = await session.execute(select(User).where(User.username == username))
    user: User | None = result.scalars().first()

    if user is None:
        user = User(username=username, name=name or username, password_hash=hash_password(password))
        session.add(user)
        await session.flush()
        print(f"Created user: {username} (id={user.id})")
    elif reset:
        user.password_hash = hash_password(password)
        if name:
            user.name = name
        print(f"Password reset for: {username} (id={user.id})")
    else:
        print(f"User already exists: {username} (id={user.id}); pass --reset-password to change it")

    await session.commit()


def _read_password() -> str:
    password = os.environ.get("DASHBOARD_PASSWORD")
    if password:
        return password
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        sys.exit("Passwords do not match")
    return password


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--username", required=True)
    parser.add_argument("--name", default="")
    parser.add_argument("--reset-password", action="store_true", default=False)
    args = parser.parse_args()

    password = _read_password()
    if not password:
        sys.exit("Password must not be empty")

    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        await upsert_user(session, args.username, password, args.name, args.reset_password)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
