"""SQLAlchemy ORM models."""
from channel_dashboard.models.base import Base, TimestampMixin, UUIDMixin
from channel_dashboard.models.user import User
from channel_dashboard.models.channel import Channel

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "Channel",
]
