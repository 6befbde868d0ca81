"""
Alert Resolution State Machine

The only component that changes an alert's lifecycle state.

States:
    ACTIVE → RESOLVED (terminal, no reopening)

Key patterns:
- Idempotent: resolving an already-resolved alert is a successful no-op that
  keeps the first actor/action
- Single conditional store write, so no partial resolution is observable
- Explicit per-alert serialization with keyed asyncio locks
- Errors returned as ActionResult, never raised across the public contract
- Audit entry appended after each successful resolution (failures only logged)
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from loguru import logger

from lendalert.alerts.exceptions import AlertEngineError, AlertNotFoundError
from lendalert.alerts.models import ActionResult, Alert, AuditEntry
from lendalert.data.alert_store import AlertStore

logger = logger.bind(component="AlertResolver")


class AlertLocks:
    """
    Keyed asyncio locks, one per alert ID.

    Locks are dropped once no coroutine holds or waits on them.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: defaultdict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, alert_id: str) -> AsyncIterator[None]:
        """Hold the lock for alert_id for the duration of the block."""
        lock = self._locks.setdefault(alert_id, asyncio.Lock())
        self._users[alert_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[alert_id] -= 1
            if self._users[alert_id] == 0:
                del self._users[alert_id]
                self._locks.pop(alert_id, None)

    def __len__(self) -> int:
        return len(self._locks)


class AlertResolver:
    """
    Resolve alerts with at-most-once semantics.

    **Guarantees:**
    - Two resolves for the same alert never both record an action: in-process
      calls are serialized by AlertLocks, and the store's conditional write
      rejects any writer that finds is_resolved already set
    - A duplicate resolve (double click, retry) returns success with
      action_taken="ALREADY_RESOLVED"

    Attributes:
        store: AlertStore to write through
        locks: Per-alert locks (shared with the quick-action dispatcher)
    """

    def __init__(
        self,
        store: AlertStore,
        locks: Optional[AlertLocks] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize resolver.

        Args:
            store: AlertStore implementation
            locks: Optional shared AlertLocks
            clock: Source of resolution timestamps
        """
        self.store = store
        self.locks = locks or AlertLocks()
        self._clock = clock

    async def resolve(self, alert_id: str, actor_id: str, action: str) -> ActionResult:
        """
        Resolve an alert.

        Args:
            alert_id: Alert to resolve
            actor_id: Operator resolving the alert
            action: Resolution action to record (e.g. "dismissed")

        Returns:
            ActionResult: RESOLVED, ALREADY_RESOLVED, or FAILED with error_message
        """
        async with self.locks.hold(alert_id):
            return await self.resolve_held(alert_id, actor_id, action)

    async def resolve_held(self, alert_id: str, actor_id: str, action: str) -> ActionResult:
        """
        Resolve an alert while the caller already holds locks.hold(alert_id).

        Used by the quick-action dispatcher when it serializes per alert.
        """
        if not actor_id or not action:
            return ActionResult.failed("actor_id and action are required", alert_id=alert_id)

        try:
            alert = await self.store.get_alert(alert_id)
            if alert is None:
                raise AlertNotFoundError(alert_id)

            if alert.is_resolved:
                logger.debug(f"Alert {alert_id[:8]}... already resolved, no-op")
                return ActionResult(success=True, action_taken="ALREADY_RESOLVED", alert_id=alert_id)

            won = await self.store.write_resolution(alert_id, actor_id, action, self._clock())

        except (AlertEngineError, OSError) as e:
            logger.error(f"Failed to resolve alert {alert_id[:8]}...: {e}")
            return ActionResult.failed(str(e), alert_id=alert_id)

        if not won:
            logger.info(f"Alert {alert_id[:8]}... resolved concurrently elsewhere, no-op")
            return ActionResult(success=True, action_taken="ALREADY_RESOLVED", alert_id=alert_id)

        logger.info(f"✓ Resolved alert: {alert_id[:8]}... by {actor_id} ({action})")
        await self.record(alert, actor_id, action, resolved=True)

        return ActionResult(success=True, action_taken="RESOLVED", alert_id=alert_id)

    async def record(self, alert: Alert, actor_id: str, action: str, resolved: bool) -> None:
        """
        Append an audit entry for an operator action.

        Audit logging is secondary: failures are logged, not propagated.
        """
        try:
            await self.store.append_audit_entry(
                AuditEntry.for_alert(alert, actor_id, action, resolved)
            )
        except (AlertEngineError, OSError) as e:
            logger.error(f"Failed to write audit entry for {alert.alert_id[:8]}...: {e}")
