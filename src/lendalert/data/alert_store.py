"""
Alert Store Contract and In-Memory Store

This module defines the store the alert engine runs against and an in-memory
implementation used by tests and single-process deployments.

Key patterns:
- Protocol-based interface (AlertStore), checked at runtime
- Async I/O methods, synchronous push callbacks for subscriptions
- At-most-once resolution: write_resolution() is a conditional write guarded
  by is_resolved = false and reports whether this call won
- Snapshots are new lists of alert objects that are never mutated afterwards
  (resolution replaces the stored object instead of editing it)
"""

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Protocol, runtime_checkable

from loguru import logger

from lendalert.alerts.exceptions import AlertNotFoundError, AlertStoreError
from lendalert.alerts.models import Alert, AlertPriority, AlertType, AuditEntry

logger = logger.bind(component="AlertStore")

SnapshotCallback = Callable[[list[Alert]], None]
ErrorCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class AlertStore(Protocol):
    """Protocol for alert persistence backends."""

    async def query_active_alerts(self) -> list[Alert]:
        """Return unresolved alerts, newest first."""
        ...

    async def query_all_alerts(self) -> list[Alert]:
        """Return every stored alert, resolved included."""
        ...

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        """Return one alert, or None if it does not exist."""
        ...

    async def create_alert(self, alert: Alert) -> Alert:
        """Store a new alert (de-duplicated by source_id + type)."""
        ...

    async def write_resolution(
        self,
        alert_id: str,
        actor_id: str,
        action: str,
        resolved_at: datetime,
    ) -> bool:
        """Resolve an alert if still active; True only for the winning call."""
        ...

    async def append_audit_entry(self, entry: AuditEntry) -> None:
        """Append an operator action to the audit trail."""
        ...

    def subscribe_active_alerts(
        self,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Push the active snapshot on every change; returns an unsubscribe callable."""
        ...


def sort_newest_first(alerts: list[Alert]) -> list[Alert]:
    """Order alerts by created_at descending (store delivery order)."""
    return sorted(alerts, key=lambda a: a.created_at.timestamp(), reverse=True)


class InMemoryAlertStore:
    """
    In-memory alert store.

    **Concurrency:**
    Uses asyncio.Lock so the check-and-set in write_resolution() is atomic
    with respect to every other writer on the event loop.

    **Subscriptions:**
    Subscribers receive the current snapshot immediately on subscribe and
    again after every change to the active set.

    Attributes:
        audit_log: Recorded audit entries (oldest first)
    """

    def __init__(self, alerts: Optional[list[Alert]] = None):
        """
        Initialize store.

        Args:
            alerts: Optional alerts to preload
        """
        self._alerts: dict[str, Alert] = {}
        self._subscribers: dict[int, tuple[SnapshotCallback, ErrorCallback]] = {}
        self._subscriber_ids = itertools.count(1)
        self._lock = asyncio.Lock()
        self.audit_log: list[AuditEntry] = []
        self._failures: list[str] = []

        for alert in alerts or []:
            self._alerts[alert.alert_id] = replace(alert)

    @property
    def subscriber_count(self) -> int:
        """Number of open subscriptions."""
        return len(self._subscribers)

    def _active_snapshot(self) -> list[Alert]:
        return sort_newest_first([a for a in self._alerts.values() if not a.is_resolved])

    def _publish(self) -> None:
        """Push the current active snapshot to every subscriber."""
        snapshot = self._active_snapshot()
        for sub_id, (on_snapshot, _) in list(self._subscribers.items()):
            # Subscriber may have unsubscribed while we were iterating
            if sub_id in self._subscribers:
                on_snapshot(list(snapshot))

    def emit_error(self, message: str) -> None:
        """Report a transport failure to every subscriber."""
        for sub_id, (_, on_error) in list(self._subscribers.items()):
            if sub_id in self._subscribers:
                on_error(message)

    def fail_next(self, message: str = "Alert store unavailable", count: int = 1) -> None:
        """
        Make the next `count` store operations raise AlertStoreError.

        Used to simulate transport failures.
        """
        self._failures = [message] * count

    def _raise_pending_failure(self) -> None:
        if self._failures:
            raise AlertStoreError(self._failures.pop(0))

    async def query_active_alerts(self) -> list[Alert]:
        self._raise_pending_failure()
        return self._active_snapshot()

    async def query_all_alerts(self) -> list[Alert]:
        self._raise_pending_failure()
        return sort_newest_first(list(self._alerts.values()))

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        self._raise_pending_failure()
        return self._alerts.get(alert_id)

    async def get_alert_by_source(self, source_id: str, alert_type: AlertType) -> Optional[Alert]:
        """Find the unresolved alert raised for a source entity, if any."""
        for alert in self._alerts.values():
            if alert.source_id == source_id and alert.type == alert_type and not alert.is_resolved:
                return alert
        return None

    async def create_alert(self, alert: Alert) -> Alert:
        """
        Store a new alert.

        If an unresolved alert already exists for the same source_id and type,
        no duplicate is created: the existing alert is escalated when the new
        priority is more urgent, and returned.

        Args:
            alert: Alert to store

        Returns:
            Stored alert (new or existing)
        """
        async with self._lock:
            if alert.source_id is not None:
                existing = await self.get_alert_by_source(alert.source_id, alert.type)
                if existing is not None:
                    return self._escalate(existing, alert.priority)

            stored = replace(alert)
            self._alerts[stored.alert_id] = stored
            logger.debug(f"Stored alert {stored.alert_id[:8]}... ({stored.type.value})")
            self._publish()
            return stored

    async def escalate_priority(self, alert_id: str, priority: AlertPriority) -> Alert:
        """
        Raise an alert's priority (never lowers it).

        Raises:
            AlertNotFoundError: If alert does not exist
        """
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise AlertNotFoundError(alert_id)
            return self._escalate(alert, priority)

    def _escalate(self, alert: Alert, priority: AlertPriority) -> Alert:
        if not priority.escalates(alert.priority):
            return alert

        escalated = replace(alert, priority=priority)
        self._alerts[alert.alert_id] = escalated
        logger.info(
            f"Escalated alert {alert.alert_id[:8]}...: "
            f"{alert.priority.value} → {priority.value}"
        )
        if not escalated.is_resolved:
            self._publish()
        return escalated

    async def write_resolution(
        self,
        alert_id: str,
        actor_id: str,
        action: str,
        resolved_at: datetime,
    ) -> bool:
        """
        Resolve an alert with a single conditional write.

        Args:
            alert_id: Alert to resolve
            actor_id: Operator resolving the alert
            action: Resolution action to record
            resolved_at: Resolution timestamp

        Returns:
            True if this call resolved the alert, False if it was already resolved

        Raises:
            AlertNotFoundError: If alert does not exist
        """
        async with self._lock:
            self._raise_pending_failure()
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise AlertNotFoundError(alert_id)

            if alert.is_resolved:
                return False

            self._alerts[alert_id] = replace(
                alert,
                is_resolved=True,
                resolved_by=actor_id,
                resolved_at=resolved_at,
                resolution_action=action,
            )
            self._publish()
            return True

    async def append_audit_entry(self, entry: AuditEntry) -> None:
        self._raise_pending_failure()
        self.audit_log.append(entry)

    def subscribe_active_alerts(
        self,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """
        Subscribe to the active snapshot.

        The current snapshot is delivered before this method returns.

        Returns:
            Idempotent unsubscribe callable
        """
        sub_id = next(self._subscriber_ids)
        self._subscribers[sub_id] = (on_snapshot, on_error)
        logger.debug(f"Subscriber {sub_id} attached ({len(self._subscribers)} open)")

        on_snapshot(self._active_snapshot())

        def unsubscribe() -> None:
            if self._subscribers.pop(sub_id, None) is not None:
                logger.debug(f"Subscriber {sub_id} detached")

        return unsubscribe
