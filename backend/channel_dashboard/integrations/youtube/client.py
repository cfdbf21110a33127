"""YouTube Data API v3 client."""
import logging
from datetime import date, timedelta
from typing import Any

import httpx

logger = logging.getLogger(__name__)

BASE_URL = "https://www.googleapis.com/youtube/v3"

# Search API duration buckets: short < 4 min, medium 4-20 min, long > 20 min
LONG_FORM_DURATIONS = ("medium", "long")


def _rfc3339(day: date) -> str:
    return f"{day.isoformat()}T00:00:00Z"


class YouTubeClient:
    """Async client for YouTube Data API v3."""

    def __init__(self, access_token: str, timeout: float = 60.0):
        self.access_token = access_token
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

    # ── Channel ──

    async def get_my_channel(self) -> dict[str, Any] | None:
        """Get the authenticated user's channel, or None if the account has none."""
        resp = await self._client.get(
            "/channels",
            params={"part": "snippet,statistics", "mine": "true"},
        )
        resp.raise_for_status()
        items = resp.json().get("items", [])
        return items[0] if items else None

    # ── Uploads ──

    async def count_uploads(
        self,
        channel_id: str,
        start_date: date,
        end_date: date,
        video_duration: str = "any",
    ) -> int:
        """Number of videos the channel published within [start_date, end_date]."""
        resp = await self._client.get(
            "/search",
            params={
                "part": "id",
                "channelId": channel_id,
                "type": "video",
                "videoDuration": video_duration,
                "publishedAfter": _rfc3339(start_date),
                "publishedBefore": _rfc3339(end_date + timedelta(days=1)),
                "maxResults": 1,
            },
        )
        resp.raise_for_status()
        return int(resp.json().get("pageInfo", {}).get("totalResults", 0))

    async def count_long_form_uploads(self, channel_id: str, start_date: date, end_date: date) -> int:
        total = 0
        for duration in LONG_FORM_DURATIONS:
            total += await self.count_uploads(channel_id, start_date, end_date, duration)
        return total
