"""
Alert Statistics

Headline counters for the admin dashboard.

Key patterns:
- compute_stats() works on the UNFILTERED active snapshot, so counters show
  the whole backlog while the visible list follows the operator's filter
- compute_backlog_stats() works on every stored alert (resolved included)
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Iterable, Optional

from lendalert.alerts.models import PRIORITY_ORDER, Alert, AlertPriority


def _empty_priority_counts() -> dict[str, int]:
    return {priority.value: 0 for priority in PRIORITY_ORDER}


@dataclass(slots=True)
class AlertStats:
    """
    Counters over the active alert set.

    Attributes:
        total: Number of active alerts
        by_priority: Count per priority (all four keys present)
        by_type: Count per alert type value
    """

    total: int = 0
    by_priority: dict[str, int] = field(default_factory=_empty_priority_counts)
    by_type: dict[str, int] = field(default_factory=dict)

    @property
    def has_critical(self) -> bool:
        return self.by_priority.get(AlertPriority.CRITICAL.value, 0) > 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_priority": dict(self.by_priority),
            "by_type": dict(self.by_type),
        }


@dataclass(slots=True)
class BacklogStats:
    """
    Counters over every stored alert, resolved included.

    Attributes:
        total: All alerts ever stored
        resolved: Resolved alerts
        pending: Unresolved alerts
        by_priority: Count per priority of pending alerts
        by_type: Count per type over all alerts
        resolved_today: Alerts resolved since local midnight
        resolved_this_week: Alerts resolved in the last 7 days (from midnight)
    """

    total: int = 0
    resolved: int = 0
    pending: int = 0
    by_priority: dict[str, int] = field(default_factory=_empty_priority_counts)
    by_type: dict[str, int] = field(default_factory=dict)
    resolved_today: int = 0
    resolved_this_week: int = 0


def compute_stats(alerts: Iterable[Alert]) -> AlertStats:
    """
    Compute counters over an active snapshot.

    Args:
        alerts: Active alert snapshot (unfiltered)

    Returns:
        AlertStats
    """
    stats = AlertStats()
    types: Counter[str] = Counter()

    for alert in alerts:
        stats.total += 1
        stats.by_priority[alert.priority.value] += 1
        types[alert.type.value] += 1

    stats.by_type = dict(types)
    return stats


def compute_backlog_stats(alerts: Iterable[Alert], now: Optional[datetime] = None) -> BacklogStats:
    """
    Compute counters over the full store contents.

    Args:
        alerts: Every stored alert
        now: Reference time (default: datetime.now())

    Returns:
        BacklogStats
    """
    now = now or datetime.now()
    today_start = datetime.combine(now.date(), time.min)
    week_start = today_start - timedelta(days=7)

    stats = BacklogStats()
    types: Counter[str] = Counter()

    for alert in alerts:
        stats.total += 1
        types[alert.type.value] += 1

        if alert.is_resolved:
            stats.resolved += 1
            resolved_at = alert.resolved_at
            if resolved_at.tzinfo is not None:
                resolved_at = resolved_at.astimezone().replace(tzinfo=None)
            if resolved_at >= today_start:
                stats.resolved_today += 1
            if resolved_at >= week_start:
                stats.resolved_this_week += 1
        else:
            stats.pending += 1
            stats.by_priority[alert.priority.value] += 1

    stats.by_type = dict(types)
    return stats
