"""Multi-channel analytics aggregation.

Merges per-channel report rows (current period, previous period, revenue by
country, views by content type) into one summary, one date-ordered daily
series and one breakdown entry per channel.

Everything here is a pure function over in-memory rows. Missing numeric
values count as zero, a channel without previous-period rows contributes
zeros, and RPM is 0 whenever views are 0.
"""
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from channel_dashboard.schemas.analytics import (
    AnalyticsResult,
    ChannelBreakdownEntry,
    DailyAggregate,
    SummaryResult,
)

LONG_FORM_CONTENT_TYPES = frozenset({"VIDEO_ON_DEMAND", "LIVE_STREAM"})
SHORTS_CONTENT_TYPE = "SHORTS"
US_COUNTRY_CODE = "US"
DEFAULT_US_TAX_RATE = 0.15


def _int(value: Any) -> int:
    return int(value or 0)


def _float(value: Any) -> float:
    return float(value or 0)


def _day(value: Any) -> str:
    if value in (None, ""):
        raise ValueError("Report row has no day")
    return str(value)


def _padded(row: Sequence[Any], width: int) -> list[Any]:
    values = list(row)[:width]
    return values + [None] * (width - len(values))


def rpm(revenue: float, views: int) -> float:
    """Revenue per thousand views."""
    return revenue / views * 1000 if views > 0 else 0.0


def minutes_to_hours(minutes: float) -> int:
    """Round minutes to whole hours, halves rounding up."""
    return math.floor(minutes / 60 + 0.5)


# ── Report rows ──


@dataclass(frozen=True)
class DailyRow:
    date: str
    views: int = 0
    watch_time_minutes: float = 0
    subscribers_gained: int = 0
    subscribers_lost: int = 0
    estimated_revenue: float = 0.0

    @classmethod
    def from_report_row(cls, row: Sequence[Any]) -> "DailyRow":
        """Build from ``[day, views, minutes, gained, lost, revenue]``."""
        day, views, minutes, gained, lost, revenue = _padded(row, 6)
        return cls(
            date=_day(day),
            views=_int(views),
            watch_time_minutes=_float(minutes),
            subscribers_gained=_int(gained),
            subscribers_lost=_int(lost),
            estimated_revenue=_float(revenue),
        )


@dataclass(frozen=True)
class CountryRevenueRow:
    country: str
    revenue: float = 0.0

    @classmethod
    def from_report_row(cls, row: Sequence[Any]) -> "CountryRevenueRow":
        country, revenue = _padded(row, 2)
        return cls(country=str(country), revenue=_float(revenue))


@dataclass(frozen=True)
class ContentTypeRow:
    date: str
    content_type: str
    views: int = 0
    watch_time_minutes: float = 0

    @classmethod
    def from_report_row(cls, row: Sequence[Any]) -> "ContentTypeRow":
        """Build from ``[day, creatorContentType, views, minutes]``."""
        day, content_type, views, minutes = _padded(row, 4)
        return cls(
            date=_day(day),
            content_type=str(content_type),
            views=_int(views),
            watch_time_minutes=_float(minutes),
        )


@dataclass(frozen=True)
class ChannelInfo:
    id: str
    youtube_id: str
    title: str
    thumbnail: str = ""


@dataclass(frozen=True)
class ChannelReport:
    """Everything fetched for one channel in one dashboard request."""

    channel: ChannelInfo
    current: Sequence[DailyRow] = ()
    previous: Sequence[DailyRow] = ()
    country_revenue: Sequence[CountryRevenueRow] = ()
    content_types: Sequence[ContentTypeRow] = ()
    long_form_video_count: int | None = None


@dataclass(frozen=True)
class AggregationOptions:
    include_content_type_split: bool = True
    include_us_tax_adjustment: bool = True
    include_profit_cost: bool = False
    us_tax_rate: float = DEFAULT_US_TAX_RATE
    cost_per_video: float = 0.0

    @classmethod
    def from_settings(cls, settings) -> "AggregationOptions":
        return cls(
            include_content_type_split=settings.INCLUDE_CONTENT_TYPE_SPLIT,
            include_us_tax_adjustment=settings.INCLUDE_US_TAX_ADJUSTMENT,
            include_profit_cost=settings.INCLUDE_PROFIT_COST,
            us_tax_rate=settings.US_TAX_RATE,
            cost_per_video=settings.COST_PER_VIDEO,
        )


# ── Accumulators ──


@dataclass(frozen=True)
class MetricTotals:
    views: int = 0
    watch_time_minutes: float = 0
    subscribers_gained: int = 0
    subscribers_lost: int = 0
    estimated_revenue: float = 0.0

    @classmethod
    def of(cls, row: DailyRow) -> "MetricTotals":
        return cls(
            views=row.views or 0,
            watch_time_minutes=row.watch_time_minutes or 0,
            subscribers_gained=row.subscribers_gained or 0,
            subscribers_lost=row.subscribers_lost or 0,
            estimated_revenue=row.estimated_revenue or 0,
        )

    def __add__(self, other: "MetricTotals") -> "MetricTotals":
        return MetricTotals(
            views=self.views + other.views,
            watch_time_minutes=self.watch_time_minutes + other.watch_time_minutes,
            subscribers_gained=self.subscribers_gained + other.subscribers_gained,
            subscribers_lost=self.subscribers_lost + other.subscribers_lost,
            estimated_revenue=self.estimated_revenue + other.estimated_revenue,
        )

    @property
    def net_subscribers(self) -> int:
        return self.subscribers_gained - self.subscribers_lost

    @property
    def rpm(self) -> float:
        return rpm(self.estimated_revenue, self.views)


@dataclass(frozen=True)
class ContentSplit:
    long_form_views: int = 0
    long_form_watch_time_minutes: float = 0
    shorts_views: int = 0
    shorts_watch_time_minutes: float = 0

    @classmethod
    def of(cls, row: ContentTypeRow) -> "ContentSplit":
        # Unrecognized content types land in neither bucket
        if row.content_type in LONG_FORM_CONTENT_TYPES:
            return cls(
                long_form_views=row.views or 0,
                long_form_watch_time_minutes=row.watch_time_minutes or 0,
            )
        if row.content_type == SHORTS_CONTENT_TYPE:
            return cls(
                shorts_views=row.views or 0,
                shorts_watch_time_minutes=row.watch_time_minutes or 0,
            )
        return cls()

    def __add__(self, other: "ContentSplit") -> "ContentSplit":
        return ContentSplit(
            long_form_views=self.long_form_views + other.long_form_views,
            long_form_watch_time_minutes=(
                self.long_form_watch_time_minutes + other.long_form_watch_time_minutes
            ),
            shorts_views=self.shorts_views + other.shorts_views,
            shorts_watch_time_minutes=self.shorts_watch_time_minutes + other.shorts_watch_time_minutes,
        )


@dataclass(frozen=True)
class DayBucket:
    totals: MetricTotals = field(default_factory=MetricTotals)
    split: ContentSplit = field(default_factory=ContentSplit)

    def __add__(self, other: "DayBucket") -> "DayBucket":
        return DayBucket(self.totals + other.totals, self.split + other.split)


def sum_rows(rows: Iterable[DailyRow]) -> MetricTotals:
    total = MetricTotals()
    for row in rows:
        total = total + MetricTotals.of(row)
    return total


def sum_splits(splits: Iterable[ContentSplit]) -> ContentSplit:
    total = ContentSplit()
    for split in splits:
        total = total + split
    return total


def content_split_by_date(rows: Iterable[ContentTypeRow]) -> dict[str, ContentSplit]:
    """Long-form vs shorts views and watch time per date."""
    by_date: dict[str, ContentSplit] = {}
    for row in rows:
        by_date[row.date] = by_date.get(row.date, ContentSplit()) + ContentSplit.of(row)
    return by_date


def us_revenue(rows: Iterable[CountryRevenueRow]) -> float:
    for row in rows:
        if row.country == US_COUNTRY_CODE:
            return row.revenue or 0.0
    return 0.0


# ── Output builders ──


def _daily_aggregate(day: str, bucket: DayBucket, with_split: bool) -> DailyAggregate:
    totals = bucket.totals
    entry = DailyAggregate(
        date=day,
        views=totals.views,
        watch_time_minutes=totals.watch_time_minutes,
        subscribers_gained=totals.subscribers_gained,
        subscribers_lost=totals.subscribers_lost,
        net_subscribers=totals.net_subscribers,
        estimated_revenue=totals.estimated_revenue,
        rpm=totals.rpm,
    )
    if with_split:
        entry.long_form_views = bucket.split.long_form_views
        entry.long_form_watch_time_minutes = bucket.split.long_form_watch_time_minutes
        entry.shorts_views = bucket.split.shorts_views
        entry.shorts_watch_time_minutes = bucket.split.shorts_watch_time_minutes
    return entry


def _video_cost(video_count: int | None, options: AggregationOptions) -> float:
    return (video_count or 0) * options.cost_per_video


def _breakdown_entry(
    report: ChannelReport,
    current: MetricTotals,
    previous: MetricTotals,
    channel_us_revenue: float,
    split: ContentSplit,
    options: AggregationOptions,
) -> ChannelBreakdownEntry:
    channel = report.channel
    entry = ChannelBreakdownEntry(
        channel_id=channel.id,
        channel_youtube_id=channel.youtube_id,
        channel_title=channel.title,
        channel_thumbnail=channel.thumbnail,
        views=current.views,
        watch_time_minutes=current.watch_time_minutes,
        subscribers_gained=current.subscribers_gained,
        subscribers_lost=current.subscribers_lost,
        net_subscribers=current.net_subscribers,
        estimated_revenue=current.estimated_revenue,
        us_revenue=channel_us_revenue,
        rpm=current.rpm,
        previous_views=previous.views,
        previous_watch_time_minutes=previous.watch_time_minutes,
        previous_net_subscribers=previous.net_subscribers,
        previous_revenue=previous.estimated_revenue,
    )
    if options.include_content_type_split:
        entry.long_form_views = split.long_form_views
        entry.long_form_watch_time_minutes = split.long_form_watch_time_minutes
        entry.shorts_views = split.shorts_views
        entry.shorts_watch_time_minutes = split.shorts_watch_time_minutes
    if options.include_profit_cost:
        revenue = current.estimated_revenue
        if options.include_us_tax_adjustment:
            revenue -= channel_us_revenue * options.us_tax_rate
        entry.long_form_video_count = report.long_form_video_count or 0
        entry.video_cost = _video_cost(report.long_form_video_count, options)
        entry.profit = revenue - entry.video_cost
    return entry


def _summary(
    entries: Sequence[ChannelBreakdownEntry],
    split: ContentSplit,
    options: AggregationOptions,
) -> SummaryResult:
    views = sum(e.views for e in entries)
    watch_time = sum(e.watch_time_minutes for e in entries)
    gained = sum(e.subscribers_gained for e in entries)
    lost = sum(e.subscribers_lost for e in entries)
    revenue = sum(e.estimated_revenue for e in entries)
    total_us_revenue = sum(e.us_revenue for e in entries)

    prev_views = sum(e.previous_views for e in entries)
    prev_watch_time = sum(e.previous_watch_time_minutes for e in entries)
    prev_net = sum(e.previous_net_subscribers for e in entries)
    prev_revenue = sum(e.previous_revenue for e in entries)

    net = gained - lost
    summary = SummaryResult(
        views=views,
        watch_time_minutes=watch_time,
        watch_time_hours=minutes_to_hours(watch_time),
        subscribers_gained=gained,
        subscribers_lost=lost,
        net_subscribers=net,
        estimated_revenue=revenue,
        rpm=rpm(revenue, views),
        us_revenue=total_us_revenue,
        previous_views=prev_views,
        previous_watch_time_minutes=prev_watch_time,
        previous_net_subscribers=prev_net,
        previous_revenue=prev_revenue,
        views_change=views - prev_views,
        watch_time_change=minutes_to_hours(watch_time - prev_watch_time),
        subscribers_change=net - prev_net,
        revenue_change=revenue - prev_revenue,
    )

    net_revenue = revenue
    if options.include_us_tax_adjustment:
        # Summary-level only: per-day and per-channel revenue stay gross
        summary.us_tax_amount = total_us_revenue * options.us_tax_rate
        summary.adjusted_revenue = revenue - summary.us_tax_amount
        net_revenue = summary.adjusted_revenue

    if options.include_content_type_split:
        summary.long_form_views = split.long_form_views
        summary.long_form_watch_time_hours = minutes_to_hours(split.long_form_watch_time_minutes)
        summary.shorts_views = split.shorts_views
        summary.shorts_watch_time_hours = minutes_to_hours(split.shorts_watch_time_minutes)

    if options.include_profit_cost:
        summary.long_form_video_count = sum(e.long_form_video_count or 0 for e in entries)
        summary.video_cost = sum(e.video_cost or 0 for e in entries)
        summary.profit = net_revenue - summary.video_cost

    return summary


def aggregate(
    reports: Sequence[ChannelReport],
    options: AggregationOptions | None = None,
) -> AnalyticsResult:
    """Merge per-channel reports into summary, daily series and breakdown.

    Channels without any current-period row are left out of every output,
    including previous-period totals. An empty input yields an all-zero
    summary and empty sequences.
    """
    options = options or AggregationOptions()

    # Content-type splits per channel and date, built once. Period splits only
    # count dates the channel has current rows for, matching the daily series.
    split_index: dict[str, dict[str, ContentSplit]] = {}
    if options.include_content_type_split:
        for report in reports:
            split_index[report.channel.id] = content_split_by_date(report.content_types)

    buckets: dict[str, DayBucket] = {}
    entries: list[ChannelBreakdownEntry] = []
    period_splits: list[ContentSplit] = []

    for report in reports:
        if not report.current:
            continue
        channel_splits = split_index.get(report.channel.id, {})

        current = MetricTotals()
        split_dates: set[str] = set()
        for row in report.current:
            row_totals = MetricTotals.of(row)
            current = current + row_totals
            split = ContentSplit()
            # A channel contributes its split for a date once, however many rows it has
            if row.date not in split_dates:
                split = channel_splits.get(row.date, ContentSplit())
                split_dates.add(row.date)
            bucket = DayBucket(row_totals, split)
            if row.date in buckets:
                bucket = buckets[row.date] + bucket
            buckets[row.date] = bucket

        channel_split = sum_splits(
            channel_splits[day] for day in sorted(split_dates) if day in channel_splits
        )
        period_splits.append(channel_split)
        entries.append(
            _breakdown_entry(
                report,
                current,
                sum_rows(report.previous),
                us_revenue(report.country_revenue),
                channel_split,
                options,
            )
        )

    daily = [
        _daily_aggregate(day, buckets[day], options.include_content_type_split)
        for day in sorted(buckets)
    ]
    return AnalyticsResult(
        summary=_summary(entries, sum_splits(period_splits), options),
        daily_data=daily,
        channel_breakdown=entries,
    )
