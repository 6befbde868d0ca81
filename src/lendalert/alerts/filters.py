"""
Alert Filter Engine

Pure filtering of the live alert snapshot by type, priority, creation day
range and free-text search. All enabled criteria must match (logical AND).

Ordering of the result is not meaningful; sorting happens in grouping.py.
"""

import json
from datetime import date, datetime, time
from typing import Iterable, Optional

from lendalert.alerts.models import ALL, Alert, AlertFilter


def _day_start(day: date) -> datetime:
    """First instant of the day (00:00:00)."""
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, time.min)


def _day_end(day: date) -> datetime:
    """Last instant of the day (23:59:59.999999)."""
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, time.max)


def _comparable(created_at: datetime, bound: datetime) -> datetime:
    """Convert an aware created_at to naive local time when bounds are naive."""
    if created_at.tzinfo is not None and bound.tzinfo is None:
        return created_at.astimezone().replace(tzinfo=None)
    return created_at


def search_text(alert: Alert) -> str:
    """
    Lower-cased text searched by the free-text criterion.

    Title, description and a JSON serialization of source_data.
    """
    source = json.dumps(alert.source_data or {}, default=str, ensure_ascii=False)
    return "\n".join((alert.title or "", alert.description or "", source)).lower()


def matches_filter(
    alert: Alert,
    alert_filter: AlertFilter,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> bool:
    """
    Check a single alert against the filter.

    Args:
        alert: Alert to check
        alert_filter: Filter criteria
        start: Precomputed start bound (defaults from alert_filter.date_start)
        end: Precomputed end bound (defaults from alert_filter.date_end)

    Returns:
        True if every enabled criterion matches
    """
    if alert_filter.type and alert_filter.type != ALL:
        if alert.type.value != alert_filter.type:
            return False

    if alert_filter.priority and alert_filter.priority != ALL:
        if alert.priority.value != alert_filter.priority:
            return False

    if start is None and alert_filter.date_start is not None:
        start = _day_start(alert_filter.date_start)
    if end is None and alert_filter.date_end is not None:
        end = _day_end(alert_filter.date_end)

    if start is not None and _comparable(alert.created_at, start) < start:
        return False

    if end is not None and _comparable(alert.created_at, end) > end:
        return False

    term = (alert_filter.search_term or "").strip().lower()
    if term and term not in search_text(alert):
        return False

    return True


def apply_filters(alerts: Iterable[Alert], alert_filter: Optional[AlertFilter] = None) -> list[Alert]:
    """
    Apply filter criteria to an alert snapshot.

    Args:
        alerts: Alert snapshot (not modified)
        alert_filter: Filter criteria (None = no filtering)

    Returns:
        New list with the alerts that match every enabled criterion
    """
    if alert_filter is None:
        return list(alerts)

    start = _day_start(alert_filter.date_start) if alert_filter.date_start else None
    end = _day_end(alert_filter.date_end) if alert_filter.date_end else None

    return [a for a in alerts if matches_filter(a, alert_filter, start, end)]
