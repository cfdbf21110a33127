"""Tests for the dashboard analytics service and API."""
import uuid
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from channel_dashboard.config import settings
from channel_dashboard.integrations.google.oauth import GoogleOAuthClient, OAuthTokens, TokenRefreshError
from channel_dashboard.integrations.youtube.analytics import BASE_URL, YouTubeAnalyticsClient
from channel_dashboard.integrations.youtube.reports import ChannelReportFetcher, UpstreamFetchFailure
from channel_dashboard.middleware.error_handler import AppException
from channel_dashboard.middleware.metrics import snapshot
from channel_dashboard.models import Channel
from channel_dashboard.services.aggregation import (
    AggregationOptions,
    ChannelReport,
    CountryRevenueRow,
    DailyRow,
)
from channel_dashboard.services.analytics_service import get_dashboard_analytics
from channel_dashboard.services.date_windows import DateSelection, InvalidRange
from channel_dashboard.utils.encryption import get_token_encryptor

TODAY = date(2024, 3, 15)


class FakeReports:
    """Stands in for ``fetch_channel_report``; records the tokens it was given."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.tokens: dict[str, str] = {}

    async def __call__(self, access_token, channel, windows, **_kwargs) -> ChannelReport:
        self.tokens[channel.youtube_id] = access_token
        if channel.youtube_id in self.failing:
            raise UpstreamFetchFailure(channel.id, "403 Forbidden")
        day = windows.end_date.isoformat()
        return ChannelReport(
            channel=channel,
            current=[DailyRow(day, views=1000, watch_time_minutes=120, subscribers_gained=5, estimated_revenue=4.0)],
            previous=[DailyRow(windows.previous_end.isoformat(), views=500)],
            country_revenue=[CountryRevenueRow("US", 2.0)],
        )


def _reports_handler(request: httpx.Request) -> httpx.Response:
    if request.headers["Authorization"] == "Bearer access-UC_second":
        return httpx.Response(200, text="<html>Service Unavailable</html>")
    if request.url.params["dimensions"] == "day":
        day = request.url.params["endDate"]
        return httpx.Response(200, json={"rows": [[day, 1000, 120, 5, 0, 4.0]]})
    return httpx.Response(200, json={"rows": []})


async def fetch_over_mock_transport(access_token, channel, windows, **kwargs) -> ChannelReport:
    """Real report fetching against a mocked YouTube Analytics API."""
    kwargs.pop("timeout", None)
    analytics = YouTubeAnalyticsClient(access_token)
    await analytics.close()
    analytics._client = httpx.AsyncClient(
        base_url=BASE_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        transport=httpx.MockTransport(_reports_handler),
    )
    async with analytics:
        return await ChannelReportFetcher(analytics).fetch(channel, windows, **kwargs)


def _oauth_mock(**kwargs) -> AsyncMock:
    oauth = AsyncMock()
    oauth.refresh_access_token = AsyncMock(**kwargs)
    return oauth


# ═══════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════


class TestDashboardAnalytics:
    async def test_aggregates_all_channels(self, db_session: AsyncSession, user, channels):
        fetcher = FakeReports()
        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=_oauth_mock(), fetch_report=fetcher,
        )

        assert result.channel_count == 2
        assert result.failed_channels == []
        assert result.date_range.end_date == TODAY
        assert result.previous_date_range.end_date == result.date_range.start_date - timedelta(days=1)

        summary = result.analytics.summary
        assert summary.views == 2000
        assert summary.previous_views == 1000
        assert summary.estimated_revenue == pytest.approx(8.0)
        assert summary.adjusted_revenue == pytest.approx(8.0 - 4.0 * 0.15)
        assert len(result.analytics.daily_data) == 1
        assert len(result.analytics.channel_breakdown) == 2
        assert fetcher.tokens == {"UC_main": "access-UC_main", "UC_second": "access-UC_second"}
        assert snapshot()["channel_fetch_success"] == 2

    async def test_window_includes_reporting_delay(self, db_session: AsyncSession, user, channels):
        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=_oauth_mock(), fetch_report=FakeReports(),
        )
        span = (result.date_range.end_date - result.date_range.start_date).days + 1
        assert span == 7 + settings.REPORTING_DELAY_DAYS

    async def test_single_channel(self, db_session: AsyncSession, user, channels):
        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), channels[1].id, today=TODAY,
            oauth_client=_oauth_mock(), fetch_report=FakeReports(),
        )
        assert result.channel_count == 1
        assert result.analytics.channel_breakdown[0].channel_youtube_id == "UC_second"

    async def test_no_channels(self, db_session: AsyncSession, user):
        with pytest.raises(AppException) as exc_info:
            await get_dashboard_analytics(
                db_session, user.id, DateSelection(), today=TODAY,
                oauth_client=_oauth_mock(), fetch_report=FakeReports(),
            )
        assert exc_info.value.status_code == 404

    async def test_invalid_range_before_lookup(self, db_session: AsyncSession, user):
        with pytest.raises(InvalidRange):
            await get_dashboard_analytics(
                db_session, user.id, DateSelection(year=2030), today=TODAY,
                oauth_client=_oauth_mock(), fetch_report=FakeReports(),
            )

    async def test_failed_channel_is_reported(self, db_session: AsyncSession, user, channels):
        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=_oauth_mock(), fetch_report=FakeReports(failing={"UC_second"}),
        )
        assert result.channel_count == 2
        assert [f.channel_title for f in result.failed_channels] == ["Second Channel"]
        assert result.failed_channels[0].reason == "403 Forbidden"
        assert result.analytics.summary.views == 1000
        assert snapshot()["channel_fetch_failure"] == 1

    async def test_all_channels_failed(self, db_session: AsyncSession, user, channels):
        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=_oauth_mock(),
            fetch_report=FakeReports(failing={"UC_main", "UC_second"}),
        )
        assert len(result.failed_channels) == 2
        assert result.analytics.summary.views == 0
        assert result.analytics.daily_data == []

    async def test_expired_token_is_refreshed(self, db_session: AsyncSession, user, make_channel):
        channel = await make_channel(
            user, "UC_expired", "Expired",
            token_expiry=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        new_expiry = datetime.now(timezone.utc) + timedelta(hours=1)
        oauth = _oauth_mock(return_value=OAuthTokens("fresh-token", None, new_expiry))
        fetcher = FakeReports()

        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=oauth, fetch_report=fetcher,
        )

        assert result.failed_channels == []
        oauth.refresh_access_token.assert_awaited_once_with("refresh-token")
        assert fetcher.tokens["UC_expired"] == "fresh-token"
        assert channel.access_token == "fresh-token"
        assert channel.refresh_token == "refresh-token"
        assert snapshot()["token_refresh_success"] == 1

    async def test_refresh_failure_skips_channel(self, db_session: AsyncSession, user, channels, make_channel):
        await make_channel(
            user, "UC_revoked", "Revoked",
            token_expiry=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        oauth = _oauth_mock(side_effect=TokenRefreshError("invalid_grant"))
        fetcher = FakeReports()

        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=oauth, fetch_report=fetcher,
        )

        assert result.channel_count == 3
        assert [f.channel_title for f in result.failed_channels] == ["Revoked"]
        assert "invalid_grant" in result.failed_channels[0].reason
        assert "UC_revoked" not in fetcher.tokens
        assert result.analytics.summary.views == 2000
        assert snapshot()["token_refresh_failure"] == 1

    async def test_undecryptable_credentials(self, db_session: AsyncSession, user, channels, monkeypatch):
        # Stored plaintext, then a key is configured
        monkeypatch.setattr(settings, "ENCRYPTION_KEY", "00" * 32)
        get_token_encryptor.cache_clear()

        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=_oauth_mock(), fetch_report=FakeReports(),
        )
        assert len(result.failed_channels) == 2
        assert all("decrypted" in f.reason for f in result.failed_channels)

    async def test_options_passed_through(self, db_session: AsyncSession, user, channels):
        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            options=AggregationOptions(include_us_tax_adjustment=False),
            oauth_client=_oauth_mock(), fetch_report=FakeReports(),
        )
        assert result.analytics.summary.adjusted_revenue is None

    async def test_malformed_report_body_isolated(self, db_session: AsyncSession, user, channels):
        result = await get_dashboard_analytics(
            db_session, user.id, DateSelection(days=7), today=TODAY,
            oauth_client=_oauth_mock(), fetch_report=fetch_over_mock_transport,
        )

        assert result.channel_count == 2
        assert result.analytics.summary.views == 1000
        assert [f.channel_title for f in result.failed_channels] == ["Second Channel"]
        assert "JSONDecodeError" in result.failed_channels[0].reason
        assert snapshot()["channel_fetch_failure"] == 1

    async def test_malformed_token_response_isolated(self, db_session: AsyncSession, user, channels, make_channel):
        await make_channel(
            user, "UC_expired", "Expired",
            token_expiry=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        oauth = GoogleOAuthClient("cid", "secret", "http://app/callback")
        await oauth.close()
        oauth._client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"error": "weird"})),
        )

        try:
            result = await get_dashboard_analytics(
                db_session, user.id, DateSelection(days=7), today=TODAY,
                oauth_client=oauth, fetch_report=FakeReports(),
            )
        finally:
            await oauth.close()

        assert result.channel_count == 3
        assert result.analytics.summary.views == 2000
        assert [f.channel_title for f in result.failed_channels] == ["Expired"]
        assert "Malformed token response" in result.failed_channels[0].reason
        assert snapshot()["token_refresh_failure"] == 1


# ═══════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════


async def test_analytics_requires_session(client: AsyncClient):
    resp = await client.get("/api/v1/analytics")
    assert resp.status_code == 401


async def test_analytics_endpoint(auth_client: AsyncClient, channels: list[Channel]):
    with patch(
        "channel_dashboard.services.analytics_service.fetch_channel_report",
        FakeReports(failing={"UC_second"}),
    ):
        resp = await auth_client.get("/api/v1/analytics", params={"days": 7})

    assert resp.status_code == 200
    assert resp.headers["cache-control"].startswith("no-store")
    body = resp.json()
    assert body["status"] == "success"
    data = body["data"]
    assert data["channel_count"] == 2
    assert data["analytics"]["summary"]["views"] == 1000
    assert data["failed_channels"][0]["channel_id"] == str(channels[1].id)
    assert set(data["date_range"]) == {"start_date", "end_date"}
    assert data["analytics"]["daily_data"][0]["shorts_views"] == 0


async def test_analytics_endpoint_malformed_channel(auth_client: AsyncClient, channels: list[Channel]):
    with patch(
        "channel_dashboard.services.analytics_service.fetch_channel_report",
        fetch_over_mock_transport,
    ):
        resp = await auth_client.get("/api/v1/analytics", params={"days": 7})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["analytics"]["summary"]["views"] == 1000
    assert [f["channel_title"] for f in data["failed_channels"]] == ["Second Channel"]


async def test_analytics_endpoint_single_channel(auth_client: AsyncClient, channels: list[Channel]):
    with patch("channel_dashboard.services.analytics_service.fetch_channel_report", FakeReports()):
        resp = await auth_client.get(
            "/api/v1/analytics", params={"channel_id": str(channels[0].id), "days": 28},
        )
    assert resp.status_code == 200
    assert resp.json()["data"]["channel_count"] == 1


async def test_analytics_no_channels(auth_client: AsyncClient):
    resp = await auth_client.get("/api/v1/analytics")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "No channels found"
    assert resp.json()["type"] == "no-channels"


async def test_analytics_unknown_channel(auth_client: AsyncClient, channels: list[Channel]):
    resp = await auth_client.get("/api/v1/analytics", params={"channel_id": str(uuid.uuid4())})
    assert resp.status_code == 404


async def test_analytics_bad_channel_id(auth_client: AsyncClient):
    resp = await auth_client.get("/api/v1/analytics", params={"channel_id": "UC_main"})
    assert resp.status_code == 400


async def test_analytics_invalid_range(auth_client: AsyncClient, channels: list[Channel]):
    resp = await auth_client.get(
        "/api/v1/analytics", params={"start_date": "2024-03-10", "end_date": "2024-03-01"},
    )
    assert resp.status_code == 400
    problem = resp.json()
    assert problem["type"] == "invalid-range"
    assert problem["status"] == 400


async def test_analytics_conflicting_selection(auth_client: AsyncClient, channels: list[Channel]):
    resp = await auth_client.get("/api/v1/analytics", params={"days": 7, "lifetime": "true"})
    assert resp.status_code == 400


async def test_analytics_days_validation(auth_client: AsyncClient):
    resp = await auth_client.get("/api/v1/analytics", params={"days": 0})
    assert resp.status_code == 422
