"""Connected YouTube channel ORM model."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from channel_dashboard.models.base import Base, TimestampMixin, UUIDMixin


class Channel(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "channels"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    channel_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    channel_title: Mapped[str] = mapped_column(String(200), nullable=False, default="Unknown Channel")
    channel_thumbnail: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False, default="")
    token_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="channels")

    def token_expired(self, now: datetime | None = None) -> bool:
        """True when a stored expiry exists and lies in the past."""
        if self.token_expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        expiry = self.token_expiry
        # SQLite drops tzinfo on round-trip
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return expiry < now
