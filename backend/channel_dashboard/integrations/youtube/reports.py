"""Per-channel report collection for the dashboard."""
import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from channel_dashboard.integrations.resilience import (
    CircuitOpenError,
    get_circuit_breaker,
    retry_with_backoff,
)
from channel_dashboard.integrations.youtube.analytics import YouTubeAnalyticsClient
from channel_dashboard.integrations.youtube.client import YouTubeClient
from channel_dashboard.services.aggregation import (
    ChannelInfo,
    ChannelReport,
    ContentTypeRow,
    CountryRevenueRow,
    DailyRow,
)
from channel_dashboard.services.date_windows import DateWindows

logger = logging.getLogger(__name__)

UPSTREAM_ERRORS = (httpx.HTTPError, CircuitOpenError)
# Undecodable bodies, unexpected payload shapes and non-numeric cells
MALFORMED_ERRORS = (ValueError, TypeError, KeyError, AttributeError)
CHANNEL_ERRORS = UPSTREAM_ERRORS + MALFORMED_ERRORS


class UpstreamFetchFailure(Exception):
    """A channel's required reports could not be retrieved."""

    def __init__(self, channel_id: str, reason: str):
        super().__init__(f"Channel {channel_id}: {reason}")
        self.channel_id = channel_id
        self.reason = reason


def _describe(exc: BaseException) -> str:
    if isinstance(exc, UPSTREAM_ERRORS):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


async def _skipped() -> None:
    return None


class ChannelReportFetcher:
    """Collect and normalize the report rows of one channel.

    Current and previous daily metrics are required. Revenue by country,
    views by content type and the long-form upload count are optional: when
    they fail the report carries empty rows instead.
    """

    def __init__(self, analytics: YouTubeAnalyticsClient, data: YouTubeClient | None = None):
        self.analytics = analytics
        self.data = data
        self.analytics_breaker = get_circuit_breaker("youtube_analytics")
        self.data_breaker = get_circuit_breaker("youtube_data")

    async def _query(self, method: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        return await self.analytics_breaker.call(retry_with_backoff, method, *args)

    async def _optional(self, label: str, channel: ChannelInfo, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except CHANNEL_ERRORS as exc:
            logger.warning(
                "Optional %s report failed for channel %s: %s",
                label, channel.youtube_id, exc,
            )
            return None

    async def _long_form_uploads(self, channel: ChannelInfo, windows: DateWindows) -> int:
        return await self.data_breaker.call(
            retry_with_backoff,
            self.data.count_long_form_uploads,
            channel.youtube_id,
            windows.start_date,
            windows.end_date,
        )

    async def fetch(
        self,
        channel: ChannelInfo,
        windows: DateWindows,
        *,
        include_content_types: bool = True,
        include_video_count: bool = False,
    ) -> ChannelReport:
        yt_id = channel.youtube_id
        start, end = windows.start_date, windows.end_date

        content_call = (
            self._optional(
                "content type", channel,
                self._query(self.analytics.daily_by_content_type, yt_id, start, end),
            )
            if include_content_types
            else _skipped()
        )
        count_call = (
            self._optional("upload count", channel, self._long_form_uploads(channel, windows))
            if include_video_count and self.data is not None
            else _skipped()
        )

        current, previous, countries, content_types, video_count = await asyncio.gather(
            self._query(self.analytics.daily_metrics, yt_id, start, end),
            self._query(
                self.analytics.daily_metrics, yt_id, windows.previous_start, windows.previous_end
            ),
            self._optional(
                "country revenue", channel,
                self._query(self.analytics.revenue_by_country, yt_id, start, end),
            ),
            content_call,
            count_call,
            return_exceptions=True,
        )

        for result in (current, previous):
            if isinstance(result, CHANNEL_ERRORS):
                raise UpstreamFetchFailure(channel.id, _describe(result)) from result
        for result in (current, previous, countries, content_types, video_count):
            if isinstance(result, BaseException):
                raise result

        try:
            current_rows = [DailyRow.from_report_row(row) for row in current]
            previous_rows = [DailyRow.from_report_row(row) for row in previous]
        except MALFORMED_ERRORS as exc:
            raise UpstreamFetchFailure(channel.id, f"Malformed daily report: {_describe(exc)}") from exc

        return ChannelReport(
            channel=channel,
            current=current_rows,
            previous=previous_rows,
            country_revenue=self._normalized(
                "country revenue", channel, countries, CountryRevenueRow.from_report_row
            ),
            content_types=self._normalized(
                "content type", channel, content_types, ContentTypeRow.from_report_row
            ),
            long_form_video_count=video_count,
        )

    def _normalized(
        self,
        label: str,
        channel: ChannelInfo,
        rows: list[Any] | None,
        build: Callable[[Any], Any],
    ) -> list[Any]:
        try:
            return [build(row) for row in rows or []]
        except MALFORMED_ERRORS as exc:
            logger.warning(
                "Optional %s report malformed for channel %s: %s",
                label, channel.youtube_id, exc,
            )
            return []


async def fetch_channel_report(
    access_token: str,
    channel: ChannelInfo,
    windows: DateWindows,
    *,
    include_content_types: bool = True,
    include_video_count: bool = False,
    timeout: float = 60.0,
) -> ChannelReport:
    """Open clients for one channel's credential and fetch its report."""
    async with YouTubeAnalyticsClient(access_token, timeout=timeout) as analytics, \
            YouTubeClient(access_token, timeout=timeout) as data:
        fetcher = ChannelReportFetcher(analytics, data)
        return await fetcher.fetch(
            channel,
            windows,
            include_content_types=include_content_types,
            include_video_count=include_video_count,
        )
