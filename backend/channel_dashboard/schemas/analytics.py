"""Analytics request/response schemas."""
from datetime import date

from pydantic import BaseModel


class DateRange(BaseModel):
    start_date: date
    end_date: date


class DailyAggregate(BaseModel):
    date: str
    views: int = 0
    watch_time_minutes: float = 0
    subscribers_gained: int = 0
    subscribers_lost: int = 0
    net_subscribers: int = 0
    estimated_revenue: float = 0.0
    rpm: float = 0.0
    # Content-type split; None when the split is disabled
    long_form_views: int | None = None
    long_form_watch_time_minutes: float | None = None
    shorts_views: int | None = None
    shorts_watch_time_minutes: float | None = None


class ChannelBreakdownEntry(BaseModel):
    channel_id: str
    channel_youtube_id: str
    channel_title: str
    channel_thumbnail: str = ""
    views: int = 0
    watch_time_minutes: float = 0
    subscribers_gained: int = 0
    subscribers_lost: int = 0
    net_subscribers: int = 0
    estimated_revenue: float = 0.0
    us_revenue: float = 0.0
    rpm: float = 0.0
    previous_views: int = 0
    previous_watch_time_minutes: float = 0
    previous_net_subscribers: int = 0
    previous_revenue: float = 0.0
    long_form_views: int | None = None
    long_form_watch_time_minutes: float | None = None
    shorts_views: int | None = None
    shorts_watch_time_minutes: float | None = None
    long_form_video_count: int | None = None
    video_cost: float | None = None
    profit: float | None = None


class SummaryResult(BaseModel):
    views: int = 0
    watch_time_minutes: float = 0
    watch_time_hours: int = 0
    subscribers_gained: int = 0
    subscribers_lost: int = 0
    net_subscribers: int = 0
    estimated_revenue: float = 0.0
    rpm: float = 0.0
    us_revenue: float = 0.0

    previous_views: int = 0
    previous_watch_time_minutes: float = 0
    previous_net_subscribers: int = 0
    previous_revenue: float = 0.0

    views_change: int = 0
    watch_time_change: int = 0  # hours
    subscribers_change: int = 0
    revenue_change: float = 0.0

    us_tax_amount: float | None = None
    adjusted_revenue: float | None = None

    long_form_views: int | None = None
    long_form_watch_time_hours: int | None = None
    shorts_views: int | None = None
    shorts_watch_time_hours: int | None = None

    long_form_video_count: int | None = None
    video_cost: float | None = None
    profit: float | None = None


class AnalyticsResult(BaseModel):
    summary: SummaryResult
    daily_data: list[DailyAggregate] = []
    channel_breakdown: list[ChannelBreakdownEntry] = []


class FailedChannel(BaseModel):
    channel_id: str
    channel_title: str
    reason: str


class AnalyticsResponse(BaseModel):
    analytics: AnalyticsResult
    date_range: DateRange
    previous_date_range: DateRange
    channel_count: int = 0
    failed_channels: list[FailedChannel] = []
