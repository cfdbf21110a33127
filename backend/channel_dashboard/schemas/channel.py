"""Channel response schemas."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class ChannelSummary(BaseModel):
    """A connected channel without its stored credentials."""

    id: UUID
    channel_id: str
    channel_title: str
    channel_thumbnail: str = ""
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
