"""
Admin Alert Models and Views

This package provides the alert data model and the pure view functions
(filtering, grouping, statistics) of the admin alert engine.

Exports:
- Alert, AlertType, AlertPriority, QuickAction, QuickActionType: Alert models
- AlertFilter: Filter model for the active alert view
- ActionResult, AuditEntry: Outcome and audit records of operator actions
- apply_filters, sort_alerts, group_by_priority: View functions
- compute_stats, compute_backlog_stats: Dashboard counters

The engine itself lives in lendalert.alerts.engine (also exported as
lendalert.AlertEngine).

Example:
    ```python
    from lendalert.alerts import AlertFilter, apply_filters, group_by_priority

    visible = apply_filters(snapshot, AlertFilter(type="overdue_loan"))
    groups = group_by_priority(sort_alerts(visible))
    ```
"""

from lendalert.alerts.exceptions import (
    AlertEngineError,
    AlertNotFoundError,
    AlertStoreError,
    UnknownQuickActionError,
)
from lendalert.alerts.filters import apply_filters, matches_filter
from lendalert.alerts.grouping import group_by_priority, sort_alerts
from lendalert.alerts.models import (
    ALL,
    PRIORITY_ORDER,
    ActionResult,
    Alert,
    AlertFilter,
    AlertPriority,
    AlertType,
    AuditEntry,
    QuickAction,
    QuickActionType,
    generate_alert_id,
)
from lendalert.alerts.stats import AlertStats, BacklogStats, compute_backlog_stats, compute_stats

__all__ = [
    "ALL",
    "PRIORITY_ORDER",
    "Alert",
    "AlertType",
    "AlertPriority",
    "AlertFilter",
    "QuickAction",
    "QuickActionType",
    "ActionResult",
    "AuditEntry",
    "generate_alert_id",
    "apply_filters",
    "matches_filter",
    "sort_alerts",
    "group_by_priority",
    "AlertStats",
    "BacklogStats",
    "compute_stats",
    "compute_backlog_stats",
    "AlertEngineError",
    "AlertNotFoundError",
    "AlertStoreError",
    "UnknownQuickActionError",
]
