"""Connected channel business logic."""
import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from channel_dashboard.integrations.google.oauth import OAuthTokens
from channel_dashboard.models.channel import Channel
from channel_dashboard.services.aggregation import ChannelInfo
from channel_dashboard.utils.encryption import TokenEncryptor, seal, unseal

logger = logging.getLogger(__name__)


async def list_channels(
    db: AsyncSession,
    user_id: uuid.UUID,
    channel_id: uuid.UUID | None = None,
) -> list[Channel]:
    """The user's channels, newest first; optionally narrowed to one channel."""
    query = select(Channel).where(Channel.user_id == user_id)
    if channel_id is not None:
        query = query.where(Channel.id == channel_id)
    rows = (await db.execute(query.order_by(Channel.created_at.desc()))).scalars().all()
    return list(rows)


async def delete_channel(db: AsyncSession, user_id: uuid.UUID, channel_id: uuid.UUID) -> bool:
    channel = (
        await db.execute(
            select(Channel).where(Channel.id == channel_id, Channel.user_id == user_id)
        )
    ).scalar_one_or_none()
    if channel is None:
        return False
    await db.delete(channel)
    await db.flush()
    logger.info("Disconnected channel %s (%s)", channel.channel_id, channel.channel_title)
    return True


async def upsert_from_oauth(
    db: AsyncSession,
    user_id: uuid.UUID,
    channel_data: dict[str, Any],
    tokens: OAuthTokens,
    encryptor: TokenEncryptor | None,
) -> Channel:
    """Insert or update the channel returned by ``channels?mine=true``.

    A channel already connected elsewhere moves to ``user_id``. Google only
    issues a refresh token on first consent, so an existing one is kept when
    the new grant lacks it.
    """
    snippet = channel_data.get("snippet") or {}
    thumbnail = ((snippet.get("thumbnails") or {}).get("default") or {}).get("url") or ""

    channel = (
        await db.execute(select(Channel).where(Channel.channel_id == channel_data["id"]))
    ).scalar_one_or_none()
    if channel is None:
        channel = Channel(
            channel_id=channel_data["id"],
            channel_title=snippet.get("title") or "Unknown Channel",
            channel_thumbnail=thumbnail,
            refresh_token="",
        )
        db.add(channel)
    elif thumbnail:
        channel.channel_thumbnail = thumbnail

    channel.user_id = user_id
    channel.channel_title = snippet.get("title") or channel.channel_title
    channel.access_token = seal(tokens.access_token, encryptor)
    if tokens.refresh_token:
        channel.refresh_token = seal(tokens.refresh_token, encryptor)
    channel.token_expiry = tokens.expires_at
    await db.flush()
    return channel


def access_token_for(channel: Channel, encryptor: TokenEncryptor | None) -> str:
    return unseal(channel.access_token, encryptor)


def refresh_token_for(channel: Channel, encryptor: TokenEncryptor | None) -> str:
    return unseal(channel.refresh_token, encryptor)


async def store_refreshed_tokens(
    db: AsyncSession,
    channel: Channel,
    tokens: OAuthTokens,
    encryptor: TokenEncryptor | None,
) -> None:
    channel.access_token = seal(tokens.access_token, encryptor)
    if tokens.refresh_token:
        channel.refresh_token = seal(tokens.refresh_token, encryptor)
    channel.token_expiry = tokens.expires_at
    await db.flush()


def channel_info(channel: Channel) -> ChannelInfo:
    return ChannelInfo(
        id=str(channel.id),
        youtube_id=channel.channel_id,
        title=channel.channel_title,
        thumbnail=channel.channel_thumbnail or "",
    )
