"""
Priority Grouping and Sort

Produces the presentation order of the live view:
- Primary key: priority rank (critical first)
- Tiebreak: created_at descending (newest first)

Grouping partitions alerts into the four priority buckets; every alert lands
in exactly one bucket.
"""

from typing import Iterable

from lendalert.alerts.models import PRIORITY_ORDER, Alert, AlertPriority


def sort_key(alert: Alert) -> tuple[int, float]:
    """Sort key: (priority rank, negative creation timestamp)."""
    return (alert.priority.rank, -alert.created_at.timestamp())


def sort_alerts(alerts: Iterable[Alert]) -> list[Alert]:
    """
    Sort alerts by priority, then newest first.

    Args:
        alerts: Alerts to sort (not modified)

    Returns:
        New sorted list
    """
    return sorted(alerts, key=sort_key)


def group_by_priority(alerts: Iterable[Alert]) -> dict[AlertPriority, list[Alert]]:
    """
    Partition alerts by priority.

    All four buckets are always present. Input order is preserved inside each
    bucket, so a sorted input yields newest-first buckets.

    Args:
        alerts: Alerts to group

    Returns:
        Dict keyed by AlertPriority in critical → low order
    """
    groups: dict[AlertPriority, list[Alert]] = {priority: [] for priority in PRIORITY_ORDER}

    for alert in alerts:
        groups[alert.priority].append(alert)

    return groups
