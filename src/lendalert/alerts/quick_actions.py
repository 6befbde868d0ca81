"""
Quick-Action Dispatcher

Maps the closed set of quick actions to their effects.

Dispatch table:
- DISMISS → resolve with resolution_action="dismissed"
- MARK_CONTACTED → resolve with resolution_action="mark_contacted"
- SEND_REMINDER, CANCEL_RESERVATION, EXTEND_PICKUP, CONTACT_USER, FLAG_USER
  → external side effect; the alert stays ACTIVE until resolved separately
- Anything else → FAILED result, alert untouched

Usage:
    dispatcher = QuickActionDispatcher(resolver, side_effects=MySideEffects())
    result = await dispatcher.execute(alert, alert.quick_actions[0], actor_id="admin1")
"""

from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from loguru import logger

from lendalert.alerts.exceptions import UnknownQuickActionError
from lendalert.alerts.models import ActionResult, Alert, QuickAction, QuickActionType
from lendalert.alerts.resolution import AlertResolver

logger = logger.bind(component="QuickActionDispatcher")

Handler = Callable[[Alert, QuickAction, str], Awaitable[ActionResult]]

# Resolution action recorded by each terminal quick action
RESOLUTION_ACTIONS = {
    QuickActionType.DISMISS: "dismissed",
    QuickActionType.MARK_CONTACTED: "mark_contacted",
}


@runtime_checkable
class QuickActionSideEffects(Protocol):
    """
    Protocol for the side-effecting operations behind non-terminal quick actions.

    Each method receives the alert's source_data overlaid with the quick
    action's params.
    """

    async def send_reminder(self, params: dict[str, Any]) -> None:
        """Send a return/pickup reminder to the user."""
        ...

    async def cancel_reservation(self, params: dict[str, Any]) -> None:
        """Cancel the reservation the alert refers to."""
        ...

    async def extend_pickup(self, params: dict[str, Any]) -> None:
        """Extend the pickup window of a reservation."""
        ...

    async def contact_user(self, params: dict[str, Any]) -> None:
        """Contact the user the alert refers to."""
        ...

    async def flag_user(self, params: dict[str, Any]) -> None:
        """Flag the user for review."""
        ...


class LoggingSideEffects:
    """Side effects that only log the request (default when none are wired in)."""

    async def send_reminder(self, params: dict[str, Any]) -> None:
        logger.info(f"Sending reminder: {params}")

    async def cancel_reservation(self, params: dict[str, Any]) -> None:
        logger.info(f"Cancelling reservation: {params}")

    async def extend_pickup(self, params: dict[str, Any]) -> None:
        logger.info(f"Extending pickup time: {params}")

    async def contact_user(self, params: dict[str, Any]) -> None:
        logger.info(f"Contacting user: {params}")

    async def flag_user(self, params: dict[str, Any]) -> None:
        logger.info(f"Flagging user: {params}")


class QuickActionDispatcher:
    """
    Execute quick actions against alerts.

    **Handler map:**
    One handler per QuickActionType, checked for completeness at construction,
    so a new action type without a handler fails fast instead of at dispatch.

    **Serialization:**
    With serialize_per_alert=True, actions on the same alert run one at a
    time using the resolver's AlertLocks. Otherwise callers are responsible
    for ordering concurrent actions on one alert.

    Attributes:
        resolver: AlertResolver used by terminal actions
        side_effects: Implementation of the non-terminal operations
        serialize_per_alert: Whether to hold the alert lock during execution
    """

    def __init__(
        self,
        resolver: AlertResolver,
        side_effects: Optional[QuickActionSideEffects] = None,
        serialize_per_alert: bool = False,
    ):
        """
        Initialize dispatcher.

        Args:
            resolver: AlertResolver for terminal actions
            side_effects: Side-effect implementation (default: LoggingSideEffects)
            serialize_per_alert: Serialize actions per alert ID

        Raises:
            RuntimeError: If a QuickActionType has no handler
        """
        self.resolver = resolver
        self.side_effects = side_effects or LoggingSideEffects()
        self.serialize_per_alert = serialize_per_alert

        self._handlers: dict[QuickActionType, Handler] = {
            QuickActionType.DISMISS: self._resolve,
            QuickActionType.MARK_CONTACTED: self._resolve,
            QuickActionType.SEND_REMINDER: self._side_effect,
            QuickActionType.CANCEL_RESERVATION: self._side_effect,
            QuickActionType.EXTEND_PICKUP: self._side_effect,
            QuickActionType.CONTACT_USER: self._side_effect,
            QuickActionType.FLAG_USER: self._side_effect,
        }

        missing = set(QuickActionType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for quick actions: {sorted(m.value for m in missing)}")

    async def execute(
        self,
        alert: Alert,
        action: Union[QuickAction, dict[str, Any]],
        actor_id: str,
    ) -> ActionResult:
        """
        Execute a quick action.

        Args:
            alert: Alert the action belongs to
            action: QuickAction, or a raw dict with an "action" key
            actor_id: Operator executing the action

        Returns:
            ActionResult (FAILED for unknown actions or side-effect errors)
        """
        try:
            quick_action = action if isinstance(action, QuickAction) else QuickAction.from_dict(action)
            handler = self._handlers.get(quick_action.action)
            if handler is None:
                raise UnknownQuickActionError(str(quick_action.action), alert_id=alert.alert_id)
        except UnknownQuickActionError as e:
            logger.warning(f"Rejected quick action on {alert.alert_id[:8]}...: {e}")
            return ActionResult.failed(str(e), alert_id=alert.alert_id)
        except (ValueError, TypeError) as e:
            logger.warning(f"Malformed quick action on {alert.alert_id[:8]}...: {e}")
            return ActionResult.failed(f"Invalid quick action: {e}", alert_id=alert.alert_id)

        logger.info(
            f"Executing quick action {quick_action.action.value} "
            f"on {alert.alert_id[:8]}... by {actor_id}"
        )

        if self.serialize_per_alert:
            async with self.resolver.locks.hold(alert.alert_id):
                return await handler(alert, quick_action, actor_id)

        return await handler(alert, quick_action, actor_id)

    async def _resolve(self, alert: Alert, action: QuickAction, actor_id: str) -> ActionResult:
        """Terminal actions: resolve the alert."""
        resolution_action = RESOLUTION_ACTIONS[action.action]

        if self.serialize_per_alert:
            # Lock already held by execute()
            return await self.resolver.resolve_held(alert.alert_id, actor_id, resolution_action)

        return await self.resolver.resolve(alert.alert_id, actor_id, resolution_action)

    async def _side_effect(self, alert: Alert, action: QuickAction, actor_id: str) -> ActionResult:
        """Non-terminal actions: run the external operation, leave the alert active."""
        operation = getattr(self.side_effects, action.action.value)
        params = {**alert.source_data, **action.params}

        try:
            await operation(params)
        except Exception as e:
            logger.error(f"Quick action {action.action.value} failed on {alert.alert_id[:8]}...: {e}")
            return ActionResult.failed(
                f"{action.action.value} failed: {e}",
                alert_id=alert.alert_id,
            )

        await self.resolver.record(alert, actor_id, action.action.value, resolved=False)

        return ActionResult(success=True, action_taken="SIDE_EFFECT", alert_id=alert.alert_id)
