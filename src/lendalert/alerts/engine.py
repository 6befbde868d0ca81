"""
Admin Alert Engine

Facade the admin dashboard talks to.

Data flow:
    store subscription → active snapshot → filter → sort → group → view
    stats are computed from the unfiltered snapshot
    resolve / quick action → conditional store write → new snapshot pushed

Key patterns:
- Owns the subscription (start/stop, or `async with engine`)
- Views are recomputed from the latest immutable snapshot on every call
- Every mutating operation returns an ActionResult instead of raising
- action_in_flight counts running resolve/execute calls

Example:
    ```python
    from lendalert import AlertEngine
    from lendalert.alerts import AlertFilter
    from lendalert.data import InMemoryAlertStore

    async with AlertEngine(InMemoryAlertStore(), is_admin=True) as engine:
        critical = engine.get_active_alerts(AlertFilter(priority="critical"))
        result = await engine.resolve_alert(critical[0].alert_id, "admin1", "dismissed")
    ```
"""

from typing import Any, Optional, Union

from loguru import logger

from lendalert.alerts.exceptions import AlertEngineError
from lendalert.alerts.filters import apply_filters
from lendalert.alerts.grouping import group_by_priority, sort_alerts
from lendalert.alerts.models import ActionResult, Alert, AlertFilter, AlertPriority, QuickAction
from lendalert.alerts.quick_actions import QuickActionDispatcher, QuickActionSideEffects
from lendalert.alerts.resolution import AlertResolver
from lendalert.alerts.stats import AlertStats, BacklogStats, compute_backlog_stats, compute_stats
from lendalert.alerts.subscription import (
    AlertSubscriptionManager,
    ErrorCallback,
    SubscriptionHandle,
    UpdateCallback,
)
from lendalert.config.engine_config import EngineConfig
from lendalert.data.alert_store import AlertStore
from lendalert.data.delta_alert_store import DeltaLakeAlertStore

logger = logger.bind(component="AlertEngine")

NOT_AUTHORIZED = "Not authorized to act on alerts"


class AlertEngine:
    """
    Admin alert engine.

    Attributes:
        store: AlertStore the engine reads and writes
        config: EngineConfig
        subscriptions: AlertSubscriptionManager owning the live feed
        resolver: AlertResolver (sole writer of resolution state)
        dispatcher: QuickActionDispatcher
    """

    def __init__(
        self,
        store: AlertStore,
        is_admin: bool,
        config: Optional[EngineConfig] = None,
        side_effects: Optional[QuickActionSideEffects] = None,
    ):
        """
        Initialize engine.

        Args:
            store: AlertStore implementation
            is_admin: Whether the operator may see and act on alerts
            config: EngineConfig (default: EngineConfig())
            side_effects: Implementation of non-terminal quick actions
        """
        self.store = store
        self.config = config or EngineConfig()
        self.subscriptions = AlertSubscriptionManager(store, is_admin)
        self.resolver = AlertResolver(store)
        self.dispatcher = QuickActionDispatcher(
            self.resolver,
            side_effects=side_effects,
            serialize_per_alert=self.config.serialize_per_alert,
        )
        self._in_flight = 0

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        is_admin: bool,
        side_effects: Optional[QuickActionSideEffects] = None,
    ) -> "AlertEngine":
        """Build an engine backed by the Delta Lake store described in config."""
        store = DeltaLakeAlertStore(
            table_path=config.delta_lake_path,
            audit_table_path=config.audit_table_path,
            poll_interval=config.poll_interval,
        )
        return cls(store, is_admin, config=config, side_effects=side_effects)

    @property
    def is_admin(self) -> bool:
        return self.subscriptions.is_admin

    @is_admin.setter
    def is_admin(self, value: bool) -> None:
        """Update authorization; revoking it closes the live feed."""
        self.subscriptions.is_admin = value

    # Lifecycle

    def start(
        self,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> SubscriptionHandle:
        """
        Open the live alert feed.

        Args:
            on_update: Optional callback for each new active snapshot
            on_error: Optional callback for transport errors

        Returns:
            SubscriptionHandle for the feed
        """
        return self.subscriptions.subscribe(on_update, on_error)

    def stop(self) -> None:
        """Release the live alert feed."""
        self.subscriptions.close()
        logger.info("Alert feed stopped")

    async def __aenter__(self) -> "AlertEngine":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # Views

    @property
    def loading(self) -> bool:
        return self.subscriptions.loading

    @property
    def error(self) -> Optional[str]:
        return self.subscriptions.error

    @property
    def action_in_flight(self) -> int:
        """Number of resolve/execute calls currently running."""
        return self._in_flight

    @property
    def has_alerts(self) -> bool:
        return len(self.subscriptions.snapshot) > 0

    @property
    def has_critical_alerts(self) -> bool:
        return any(a.priority == AlertPriority.CRITICAL for a in self.subscriptions.snapshot)

    def get_active_alerts(self, alert_filter: Optional[AlertFilter] = None) -> list[Alert]:
        """
        Active alerts matching the filter, most urgent first.

        Args:
            alert_filter: AlertFilter (default: no filtering)

        Returns:
            Filtered alerts sorted by priority then newest first
        """
        return sort_alerts(apply_filters(self.subscriptions.snapshot, alert_filter))

    def get_grouped_alerts(self, alert_filter: Optional[AlertFilter] = None) -> dict[AlertPriority, list[Alert]]:
        """Filtered, sorted alerts partitioned by priority."""
        return group_by_priority(self.get_active_alerts(alert_filter))

    def get_stats(self) -> AlertStats:
        """Counters over the unfiltered active snapshot."""
        return compute_stats(self.subscriptions.snapshot)

    async def get_backlog_stats(self) -> Optional[BacklogStats]:
        """
        Counters over every stored alert, resolved included.

        Returns:
            BacklogStats, or None if the store cannot be read
        """
        if not self.is_admin:
            return BacklogStats()

        try:
            alerts = await self.store.query_all_alerts()
        except (AlertEngineError, OSError) as e:
            logger.error(f"Failed to load backlog stats: {e}")
            return None

        return compute_backlog_stats(alerts)

    async def refresh(self) -> None:
        """Pull the active set once (manual retry after a feed error)."""
        await self.subscriptions.refresh()

    # Actions

    async def resolve_alert(self, alert_id: str, actor_id: str, action: str) -> ActionResult:
        """
        Resolve an alert.

        Args:
            alert_id: Alert to resolve
            actor_id: Operator resolving it
            action: Resolution action to record

        Returns:
            ActionResult
        """
        if not self.is_admin:
            return ActionResult.failed(NOT_AUTHORIZED, alert_id=alert_id)

        self._in_flight += 1
        try:
            return await self.resolver.resolve(alert_id, actor_id, action)
        finally:
            self._in_flight -= 1

    async def execute_quick_action(
        self,
        alert: Alert,
        action: Union[QuickAction, dict[str, Any]],
        actor_id: str,
    ) -> ActionResult:
        """
        Execute one of the alert's quick actions.

        Args:
            alert: Alert the action belongs to
            action: QuickAction (or its dict form)
            actor_id: Operator executing it

        Returns:
            ActionResult
        """
        if not self.is_admin:
            return ActionResult.failed(NOT_AUTHORIZED, alert_id=alert.alert_id)

        self._in_flight += 1
        try:
            return await self.dispatcher.execute(alert, action, actor_id)
        finally:
            self._in_flight -= 1
