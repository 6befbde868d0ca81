"""
Alert Subscription Manager

Keeps the engine's view of the active alert set current.

Key patterns:
- Push-based: the store delivers full snapshots (newest first), no diffing
- Fail-closed authorization: non-admins get an empty, non-loading state and
  no store subscription is opened
- Owned handle: SubscriptionHandle.cancel() is idempotent and drops any
  callback that arrives after cancellation
- Transport errors surface through on_error; refresh() is the manual retry
"""

from typing import Callable, Optional

from loguru import logger

from lendalert.alerts.exceptions import AlertEngineError
from lendalert.alerts.models import Alert
from lendalert.data.alert_store import AlertStore, Unsubscribe

logger = logger.bind(component="AlertSubscription")

UpdateCallback = Callable[[list[Alert]], None]
ErrorCallback = Callable[[str], None]


def _ignore(_value) -> None:
    return None


class SubscriptionHandle:
    """
    Handle for one live alert feed.

    Usable as a context manager so the store subscription is released on
    every exit path:

        with manager.subscribe(on_update, on_error):
            ...

    Attributes:
        cancelled: True once cancel() has been called
    """

    def __init__(self, on_update: UpdateCallback, on_error: ErrorCallback):
        self.cancelled = False
        self._on_update = on_update
        self._on_error = on_error
        self._unsubscribe: Optional[Unsubscribe] = None

    def attach(self, unsubscribe: Unsubscribe) -> None:
        """Bind the store's unsubscribe callable to this handle."""
        if self.cancelled:
            unsubscribe()
        else:
            self._unsubscribe = unsubscribe

    def deliver(self, alerts: list[Alert]) -> None:
        if not self.cancelled:
            self._on_update(alerts)

    def fail(self, message: str) -> None:
        if not self.cancelled:
            self._on_error(message)

    def cancel(self) -> None:
        """Release the store subscription. Safe to call more than once."""
        if self.cancelled:
            return

        self.cancelled = True
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def __enter__(self) -> "SubscriptionHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "live"
        return f"SubscriptionHandle({state})"


class AlertSubscriptionManager:
    """
    Own the subscription to the active alert set.

    One live feed per manager: subscribing again cancels the previous handle.

    Attributes:
        store: AlertStore to subscribe to
        is_admin: Whether the current operator may see alerts
        snapshot: Last delivered active alert list
        loading: True until the first snapshot (or error) arrives
        error: Last transport error message, None when healthy
    """

    def __init__(self, store: AlertStore, is_admin: bool):
        """
        Initialize subscription manager.

        Args:
            store: AlertStore implementation
            is_admin: Operator authorization flag
        """
        self.store = store
        self._is_admin = bool(is_admin)
        self.snapshot: list[Alert] = []
        self.loading = False
        self.error: Optional[str] = None
        self._handle: Optional[SubscriptionHandle] = None

    @property
    def is_admin(self) -> bool:
        return self._is_admin

    @is_admin.setter
    def is_admin(self, value: bool) -> None:
        """
        Update the operator's authorization.

        Losing admin privilege cancels the live feed and clears the snapshot.
        Regaining it does not resubscribe; call subscribe() again.
        """
        was_admin, self._is_admin = self._is_admin, bool(value)

        if was_admin and not self._is_admin:
            self.close()
            self.snapshot = []
            self.loading = False
            self.error = None
            logger.info("Admin privilege revoked, alert feed closed")

    @property
    def handle(self) -> Optional[SubscriptionHandle]:
        """Current subscription handle, if any."""
        return self._handle

    def subscribe(
        self,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> SubscriptionHandle:
        """
        Open the active alert feed.

        Args:
            on_update: Called with the full active snapshot on every change
            on_error: Called with a readable message on transport failure

        Returns:
            SubscriptionHandle (cancel it, or use it as a context manager)
        """
        self.close()

        handle = SubscriptionHandle(on_update or _ignore, on_error or _ignore)
        self._handle = handle

        if not self.is_admin:
            logger.debug("Operator is not an admin, alert feed disabled")
            self.snapshot = []
            self.loading = False
            self.error = None
            handle.deliver([])
            return handle

        self.loading = True
        self.error = None

        unsubscribe = self.store.subscribe_active_alerts(
            lambda alerts: self._on_snapshot(handle, alerts),
            lambda message: self._on_error(handle, message),
        )
        handle.attach(unsubscribe)

        logger.info("✓ Subscribed to active alerts")
        return handle

    def close(self) -> None:
        """Cancel the current subscription, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def refresh(self) -> None:
        """
        Pull the active set once and deliver it through the current callbacks.

        Errors are reported the same way as subscription errors.
        """
        if not self.is_admin:
            self.snapshot = []
            self.loading = False
            if self._handle is not None:
                self._handle.deliver([])
            return

        handle = self._handle
        self.loading = True

        try:
            alerts = await self.store.query_active_alerts()
        except (AlertEngineError, OSError) as e:
            self._on_error(handle, f"Failed to load alerts: {e}")
            return

        self._on_snapshot(handle, alerts)

    def _on_snapshot(self, handle: Optional[SubscriptionHandle], alerts: list[Alert]) -> None:
        if not self._is_admin or (handle is not None and handle.cancelled):
            return

        self.snapshot = list(alerts)
        self.loading = False
        self.error = None
        logger.debug(f"Received {len(self.snapshot)} active alerts")

        if handle is not None:
            handle.deliver(self.snapshot)

    def _on_error(self, handle: Optional[SubscriptionHandle], message: str) -> None:
        if not self._is_admin or (handle is not None and handle.cancelled):
            return

        self.loading = False
        self.error = message
        logger.error(f"Alert feed error: {message}")

        if handle is not None:
            handle.fail(message)
