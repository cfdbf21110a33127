"""Dashboard analytics: window resolution, per-channel fetch, aggregation."""
import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import date

from cryptography.exceptions import InvalidTag
from sqlalchemy.ext.asyncio import AsyncSession

from channel_dashboard.config import settings
from channel_dashboard.integrations.google.oauth import GoogleOAuthClient, TokenRefreshError
from channel_dashboard.integrations.youtube.reports import (
    UpstreamFetchFailure,
    fetch_channel_report,
)
from channel_dashboard.middleware.error_handler import AppException
from channel_dashboard.middleware.metrics import record_channel_fetch, record_token_refresh
from channel_dashboard.models.channel import Channel
from channel_dashboard.schemas.analytics import AnalyticsResponse, DateRange, FailedChannel
from channel_dashboard.services import channel_service
from channel_dashboard.services.aggregation import AggregationOptions, ChannelReport, aggregate
from channel_dashboard.services.date_windows import DateSelection, DateWindows, resolve_windows
from channel_dashboard.utils.encryption import TokenEncryptor, get_token_encryptor
from channel_dashboard.utils.helpers import today_utc, truncate

logger = logging.getLogger(__name__)

ReportFetcher = Callable[..., Awaitable[ChannelReport]]


def resolve_selection(selection: DateSelection, today: date | None = None) -> DateWindows:
    return resolve_windows(
        selection,
        today=today or today_utc(),
        reporting_delay_days=settings.REPORTING_DELAY_DAYS,
        service_start=settings.SERVICE_START_DATE,
        default_days=settings.DEFAULT_DAYS,
    )


async def _fresh_access_token(
    db: AsyncSession,
    channel: Channel,
    oauth: GoogleOAuthClient,
    encryptor: TokenEncryptor | None,
) -> str:
    """The channel's access token, refreshed and persisted first if expired."""
    try:
        if not channel.token_expired():
            return channel_service.access_token_for(channel, encryptor)
        refresh_token = channel_service.refresh_token_for(channel, encryptor)
    except (InvalidTag, ValueError) as exc:
        raise TokenRefreshError("Stored credential cannot be decrypted") from exc

    tokens = await oauth.refresh_access_token(refresh_token)
    await channel_service.store_refreshed_tokens(db, channel, tokens, encryptor)
    record_token_refresh("success")
    logger.info("Refreshed access token for channel %s", channel.channel_id)
    return tokens.access_token


async def get_dashboard_analytics(
    db: AsyncSession,
    user_id: uuid.UUID,
    selection: DateSelection,
    channel_id: uuid.UUID | None = None,
    *,
    today: date | None = None,
    options: AggregationOptions | None = None,
    oauth_client: GoogleOAuthClient | None = None,
    fetch_report: ReportFetcher | None = None,
) -> AnalyticsResponse:
    """Aggregated analytics for the user's channels (or one of them).

    Channels whose token cannot be refreshed or whose required reports fail
    are left out of the aggregation and listed in ``failed_channels``.
    """
    windows = resolve_selection(selection, today)

    channels = await channel_service.list_channels(db, user_id, channel_id)
    if not channels:
        raise AppException(404, "No channels found", "no-channels")

    options = options or AggregationOptions.from_settings(settings)
    fetch_report = fetch_report or fetch_channel_report
    encryptor = get_token_encryptor()
    failed: list[FailedChannel] = []

    # Token refresh runs one channel at a time on the request session
    ready: list[tuple[Channel, str]] = []
    oauth = oauth_client or GoogleOAuthClient.from_settings()
    try:
        for channel in channels:
            try:
                ready.append((channel, await _fresh_access_token(db, channel, oauth, encryptor)))
            except TokenRefreshError as exc:
                record_token_refresh("failure")
                logger.error("Failed to refresh token for channel %s: %s", channel.channel_id, exc)
                failed.append(FailedChannel(
                    channel_id=str(channel.id),
                    channel_title=channel.channel_title,
                    reason=truncate(f"Token refresh failed: {exc}", 300),
                ))
    finally:
        if oauth_client is None:
            await oauth.close()

    results = await asyncio.gather(
        *(
            fetch_report(
                token,
                channel_service.channel_info(channel),
                windows,
                include_content_types=options.include_content_type_split,
                include_video_count=options.include_profit_cost,
                timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
            )
            for channel, token in ready
        ),
        return_exceptions=True,
    )

    reports: list[ChannelReport] = []
    for (channel, _token), result in zip(ready, results):
        if isinstance(result, UpstreamFetchFailure):
            record_channel_fetch("failure")
            logger.error("Failed to get analytics for channel %s: %s", channel.channel_id, result.reason)
            failed.append(FailedChannel(
                channel_id=str(channel.id),
                channel_title=channel.channel_title,
                reason=truncate(result.reason, 300),
            ))
        elif isinstance(result, BaseException):
            raise result
        else:
            record_channel_fetch("success")
            reports.append(result)

    return AnalyticsResponse(
        analytics=aggregate(reports, options),
        date_range=DateRange(start_date=windows.start_date, end_date=windows.end_date),
        previous_date_range=DateRange(
            start_date=windows.previous_start, end_date=windows.previous_end
        ),
        channel_count=len(channels),
        failed_channels=failed,
    )
