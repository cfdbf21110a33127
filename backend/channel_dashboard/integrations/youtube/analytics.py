"""YouTube Analytics API v2 client."""
import logging
from datetime import date
from typing import Any

import httpx

logger = logging.getLogger(__name__)

BASE_URL = "https://youtubeanalytics.googleapis.com/v2"

DAILY_METRICS = "views,estimatedMinutesWatched,subscribersGained,subscribersLost,estimatedRevenue"


class YouTubeAnalyticsClient:
    """Async client for channel reports of the YouTube Analytics API."""

    def __init__(self, access_token: str, timeout: float = 60.0):
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=timeout,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def query_report(
        self,
        channel_id: str,
        start_date: date,
        end_date: date,
        metrics: str,
        dimensions: str | None = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        """Run a reports.query call; returns ``{"columnHeaders": [...], "rows": [...]}``."""
        params: dict[str, Any] = {
            "ids": f"channel=={channel_id}",
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "metrics": metrics,
        }
        if dimensions:
            params["dimensions"] = dimensions
        if sort:
            params["sort"] = sort

        resp = await self._client.get("/reports", params=params)
        resp.raise_for_status()
        return resp.json()

    async def daily_metrics(self, channel_id: str, start_date: date, end_date: date) -> list[list[Any]]:
        """Rows of ``[day, views, minutes, gained, lost, revenue]``."""
        data = await self.query_report(
            channel_id, start_date, end_date, DAILY_METRICS, dimensions="day", sort="day"
        )
        return data.get("rows") or []

    async def revenue_by_country(self, channel_id: str, start_date: date, end_date: date) -> list[list[Any]]:
        """Rows of ``[country, revenue]``, highest revenue first."""
        data = await self.query_report(
            channel_id, start_date, end_date, "estimatedRevenue",
            dimensions="country", sort="-estimatedRevenue",
        )
        return data.get("rows") or []

    async def daily_by_content_type(self, channel_id: str, start_date: date, end_date: date) -> list[list[Any]]:
        """Rows of ``[day, creatorContentType, views, minutes]``."""
        data = await self.query_report(
            channel_id, start_date, end_date, "views,estimatedMinutesWatched",
            dimensions="day,creatorContentType", sort="day",
        )
        return data.get("rows") or []
