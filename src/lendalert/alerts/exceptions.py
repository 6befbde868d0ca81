"""
Alert Engine Exceptions

Raised inside the store adapters and the dispatcher. The engine's public
methods convert them to ActionResult failures instead of letting them cross
the caller boundary.
"""

from typing import Optional


class AlertEngineError(Exception):
    """Base class for alert engine errors."""

    def __init__(self, message: str, *, alert_id: Optional[str] = None):
        """
        Initialize alert engine error.

        Args:
            message: Human-readable error message
            alert_id: Alert the error relates to, if any
        """
        self.message = message
        self.alert_id = alert_id
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return user-friendly string representation."""
        return self.message


class AlertNotFoundError(AlertEngineError):
    """Raised when an alert ID does not exist in the store."""

    def __init__(self, alert_id: str):
        super().__init__(f"Alert not found: {alert_id}", alert_id=alert_id)


class AlertStoreError(AlertEngineError):
    """
    Raised when the store cannot be reached or a read/write fails.

    Recoverable: callers retry through refresh() or by repeating the call.
    """


class UnknownQuickActionError(AlertEngineError):
    """Raised when a quick action identifier is outside the closed set."""

    def __init__(self, action: str, *, alert_id: Optional[str] = None):
        self.action = action
        super().__init__(f"Unknown quick action: {action}", alert_id=alert_id)
