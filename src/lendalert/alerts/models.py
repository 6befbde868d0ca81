"""
Alert Data Models and Enums

This module provides data models for the admin alert engine.
Uses dataclasses with slots=True for performance (internal data, validated on entry).

Key patterns:
- dataclass(slots=True) for performance
- __post_init__ validation for data integrity
- str Enums for closed vocabularies (type, priority, quick action)
- to_dict()/from_dict() for the store boundary

Alert lifecycle:
    ACTIVE (is_resolved=False) ──resolve──> RESOLVED (terminal, never reopened)
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from loguru import logger

from lendalert.alerts.exceptions import UnknownQuickActionError

# Sentinel used by AlertFilter to disable the type/priority criteria
ALL = "all"


class AlertType(str, Enum):
    """
    Alert type enum.

    Closed set of operational conditions the classifier can raise.
    """

    OVERDUE_LOAN = "overdue_loan"
    NEW_REGISTRATION = "new_registration"
    RESERVATION_CONFLICT = "reservation_conflict"
    NO_SHOW_PATTERN = "no_show_pattern"
    NO_SHOW_RESERVATION = "no_show_reservation"
    REPEAT_NO_SHOW_USER = "repeat_no_show_user"
    LATE_RETURN_RISK = "late_return_risk"
    LOW_RELIABILITY_USER = "low_reliability_user"
    HIGH_DEMAND_EQUIPMENT = "high_demand_equipment"
    DEMAND_EXCEEDS_SUPPLY = "demand_exceeds_supply"
    IDLE_EQUIPMENT = "idle_equipment"


class AlertPriority(str, Enum):
    """
    Alert priority enum.

    Ordered critical > high > medium > low (rank 0 is the most urgent).
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank (0 = critical, 3 = low)."""
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> "AlertPriority":
        """
        Parse a priority read from the store.

        Unknown or missing values fall back to MEDIUM so that grouping and
        per-priority counts stay consistent with each other.

        Args:
            value: Raw priority (enum member, string or None)

        Returns:
            AlertPriority
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            logger.warning(f"Unknown alert priority {value!r}, treating as medium")
            return cls.MEDIUM

    def escalates(self, other: "AlertPriority") -> bool:
        """True if this priority is strictly more urgent than other."""
        return self.rank < other.rank


_PRIORITY_RANK = {
    AlertPriority.CRITICAL: 0,
    AlertPriority.HIGH: 1,
    AlertPriority.MEDIUM: 2,
    AlertPriority.LOW: 3,
}

PRIORITY_ORDER: tuple[AlertPriority, ...] = (
    AlertPriority.CRITICAL,
    AlertPriority.HIGH,
    AlertPriority.MEDIUM,
    AlertPriority.LOW,
)


class QuickActionType(str, Enum):
    """
    Quick action enum.

    DISMISS and MARK_CONTACTED resolve the alert; the others perform an
    external side effect and leave the alert active.
    """

    DISMISS = "dismiss"
    MARK_CONTACTED = "mark_contacted"
    SEND_REMINDER = "send_reminder"
    CANCEL_RESERVATION = "cancel_reservation"
    EXTEND_PICKUP = "extend_pickup"
    CONTACT_USER = "contact_user"
    FLAG_USER = "flag_user"

    @property
    def is_terminal(self) -> bool:
        """Whether executing this action resolves the alert."""
        return self in (QuickActionType.DISMISS, QuickActionType.MARK_CONTACTED)


def generate_alert_id() -> str:
    """Generate a unique alert ID (UUID4)."""
    return str(uuid4())


def _to_datetime(value: Any) -> Optional[datetime]:
    """Convert a stored timestamp (datetime, ISO string or Timestamp-like) to datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime()
    raise ValueError(f"Cannot convert {value!r} to datetime")


@dataclass(slots=True)
class QuickAction:
    """
    Quick action attached to an alert.

    Attributes:
        id: Action identifier, unique within the alert
        label: Display label
        action: Action type (closed set)
        params: Context passed to the side-effecting operation
    """

    id: str
    label: str
    action: QuickActionType
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate quick action fields."""
        if not self.id or not self.id.strip():
            raise ValueError("Quick action id cannot be empty")

        if not isinstance(self.action, QuickActionType):
            raise UnknownQuickActionError(str(self.action))

        if not isinstance(self.params, dict):
            raise ValueError("Quick action params must be a dictionary")

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain dictionary."""
        return {
            "id": self.id,
            "label": self.label,
            "action": self.action.value,
            "params": dict(self.params),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuickAction":
        """
        Build a quick action from a plain dictionary.

        Raises:
            UnknownQuickActionError: If data["action"] is outside the closed set
            ValueError: If data or its params is not a dictionary
        """
        if not isinstance(data, dict):
            raise ValueError(f"Quick action must be a dictionary, got {type(data).__name__}")

        raw_action = data.get("action")
        try:
            action = QuickActionType(raw_action)
        except ValueError:
            raise UnknownQuickActionError(str(raw_action)) from None

        params = data.get("params") or {}
        if not isinstance(params, dict):
            raise ValueError("Quick action params must be a dictionary")

        return cls(
            id=data.get("id") or action.value,
            label=data.get("label", ""),
            action=action,
            params=dict(params),
        )


def _parse_quick_actions(alert_id: str, raw_actions: Any) -> list[QuickAction]:
    """
    Parse stored quick actions, dropping entries outside the closed set.

    A bad entry only removes that action; the alert itself stays readable.
    """
    if not isinstance(raw_actions, list):
        logger.warning(f"Alert {alert_id}: quick_actions is not a list, ignoring")
        return []

    parsed = []
    for raw in raw_actions:
        if isinstance(raw, QuickAction):
            parsed.append(raw)
            continue
        try:
            parsed.append(QuickAction.from_dict(raw))
        except (UnknownQuickActionError, ValueError) as e:
            logger.warning(f"Alert {alert_id}: dropping quick action {raw!r}: {e}")
    return parsed


@dataclass(slots=True)
class Alert:
    """
    Alert data model.

    Represents one classified operational condition awaiting admin attention.

    Attributes:
        alert_id: Unique identifier (UUID)
        type: Alert type
        priority: Alert priority
        title: Display title
        description: Display description
        source_id: ID of the entity the alert is about (loan, reservation, user)
        source_type: Kind of that entity
        source_data: Snapshot of the entity, used for search and quick actions
        quick_actions: Ordered quick actions available on this alert
        is_resolved: Lifecycle flag
        resolved_by: Actor who resolved the alert
        resolved_at: When the alert was resolved
        resolution_action: Action recorded at resolution
        created_at: When the alert was created

    Raises:
        ValueError: If the resolution fields are partially set
    """

    alert_id: str
    type: AlertType
    priority: AlertPriority
    title: str
    description: str = ""
    source_id: Optional[str] = None
    source_type: Optional[str] = None
    source_data: dict[str, Any] = field(default_factory=dict)
    quick_actions: list[QuickAction] = field(default_factory=list)
    is_resolved: bool = False
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_action: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """
        Validate alert fields after initialization.

        Resolution fields are all-or-nothing and must agree with is_resolved.
        """
        if not self.alert_id or not self.alert_id.strip():
            raise ValueError("Alert ID cannot be empty")

        if not isinstance(self.type, AlertType):
            raise ValueError(f"Invalid alert type: {self.type}")

        if not isinstance(self.priority, AlertPriority):
            raise ValueError(f"Invalid alert priority: {self.priority}")

        if not isinstance(self.source_data, dict):
            raise ValueError("Source data must be a dictionary")

        resolution = (self.resolved_by, self.resolved_at, self.resolution_action)
        set_count = sum(value is not None for value in resolution)

        if set_count not in (0, 3):
            raise ValueError(
                "resolved_by, resolved_at and resolution_action must be set together"
            )

        if self.is_resolved and set_count == 0:
            raise ValueError("Resolved alert must record resolved_by/resolved_at/resolution_action")

        if not self.is_resolved and set_count == 3:
            raise ValueError("Active alert cannot carry resolution fields")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for persistence (nested fields as JSON)."""
        return {
            "alert_id": self.alert_id,
            "type": self.type.value,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "source_id": self.source_id,
            "source_type": self.source_type,
            "source_data": json.dumps(self.source_data, default=str),
            "quick_actions": json.dumps([qa.to_dict() for qa in self.quick_actions]),
            "is_resolved": self.is_resolved,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at,
            "resolution_action": self.resolution_action,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """
        Build an alert from a stored row.

        Accepts source_data/quick_actions either as JSON strings or as
        already-decoded objects.

        Raises:
            ValueError: If type is unknown or resolution fields are inconsistent
        """
        source_data = data.get("source_data") or {}
        if isinstance(source_data, str):
            source_data = json.loads(source_data) if source_data else {}

        quick_actions = data.get("quick_actions") or []
        if isinstance(quick_actions, str):
            quick_actions = json.loads(quick_actions) if quick_actions else []

        return cls(
            alert_id=data["alert_id"],
            type=AlertType(data["type"]),
            priority=AlertPriority.parse(data.get("priority")),
            title=data.get("title") or "",
            description=data.get("description") or "",
            source_id=data.get("source_id"),
            source_type=data.get("source_type"),
            source_data=source_data,
            quick_actions=_parse_quick_actions(data["alert_id"], quick_actions),
            is_resolved=bool(data.get("is_resolved", False)),
            resolved_by=data.get("resolved_by"),
            resolved_at=_to_datetime(data.get("resolved_at")),
            resolution_action=data.get("resolution_action"),
            created_at=_to_datetime(data.get("created_at")) or datetime.now(),
        )

    def __repr__(self) -> str:
        """Return string representation of alert."""
        state = "resolved" if self.is_resolved else "active"
        return (
            f"Alert(id={self.alert_id[:8]}, type={self.type.value}, "
            f"priority={self.priority.value}, {state})"
        )


@dataclass(slots=True)
class AlertFilter:
    """
    Filter criteria for the live alert view.

    Every criterion is optional; enabled criteria are combined with AND.

    Attributes:
        type: Alert type to match, or "all"
        priority: Priority to match, or "all"
        date_start: Inclusive start day (compared from 00:00:00)
        date_end: Inclusive end day (compared until 23:59:59.999999)
        search_term: Case-insensitive substring over title, description, source data
    """

    type: str = ALL
    priority: str = ALL
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    search_term: str = ""

    def __post_init__(self):
        """Normalize enum members to their string values."""
        if isinstance(self.type, AlertType):
            self.type = self.type.value
        if isinstance(self.priority, AlertPriority):
            self.priority = self.priority.value
        if self.search_term is None:
            self.search_term = ""

    def merge(self, **changes: Any) -> "AlertFilter":
        """Return a new filter with the given fields replaced."""
        values = {
            "type": self.type,
            "priority": self.priority,
            "date_start": self.date_start,
            "date_end": self.date_end,
            "search_term": self.search_term,
        }
        unknown = set(changes) - set(values)
        if unknown:
            raise ValueError(f"Unknown filter fields: {sorted(unknown)}")
        values.update(changes)
        return AlertFilter(**values)


@dataclass(slots=True)
class ActionResult:
    """
    Result of a resolve or quick action call.

    Attributes:
        success: Whether the operation succeeded
        action_taken: What happened (RESOLVED, ALREADY_RESOLVED, SIDE_EFFECT, FAILED)
        alert_id: Alert the operation targeted
        error_message: Error message if operation failed
    """

    success: bool
    action_taken: str
    alert_id: Optional[str] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        """Validate result consistency."""
        if not self.action_taken or not self.action_taken.strip():
            raise ValueError("Action taken cannot be empty")

        if not self.success and not self.error_message:
            raise ValueError("Failed result must have error_message")

    @classmethod
    def failed(cls, error_message: str, alert_id: Optional[str] = None) -> "ActionResult":
        """Build a failure result."""
        return cls(
            success=False,
            action_taken="FAILED",
            alert_id=alert_id,
            error_message=error_message,
        )

    def __repr__(self) -> str:
        """Return string representation of result."""
        if self.success:
            return f"ActionResult(success=True, action={self.action_taken})"
        return f"ActionResult(success=False, error={self.error_message})"


@dataclass(slots=True)
class AuditEntry:
    """
    Audit trail entry for an operator action on an alert.

    Attributes:
        entry_id: Unique entry identifier (UUID)
        alert_id: Alert acted upon
        alert_type: Type of the alert at the time of the action
        alert_priority: Priority of the alert at the time of the action
        alert_title: Title of the alert
        source_id: Source entity ID of the alert
        source_type: Source entity kind of the alert
        actor_id: Operator who acted
        action: Action performed
        resolved: Whether the action resolved the alert
        created_at: When the entry was recorded
    """

    alert_id: str
    alert_type: str
    alert_priority: str
    alert_title: str
    actor_id: str
    action: str
    resolved: bool
    source_id: Optional[str] = None
    source_type: Optional[str] = None
    entry_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def for_alert(cls, alert: Alert, actor_id: str, action: str, resolved: bool) -> "AuditEntry":
        """Build an entry from an alert snapshot."""
        return cls(
            alert_id=alert.alert_id,
            alert_type=alert.type.value,
            alert_priority=alert.priority.value,
            alert_title=alert.title,
            actor_id=actor_id,
            action=action,
            resolved=resolved,
            source_id=alert.source_id,
            source_type=alert.source_type,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "entry_id": self.entry_id,
            "alert_id": self.alert_id,
            "alert_type": self.alert_type,
            "alert_priority": self.alert_priority,
            "alert_title": self.alert_title,
            "source_id": self.source_id,
            "source_type": self.source_type,
            "actor_id": self.actor_id,
            "action": self.action,
            "resolved": self.resolved,
            "created_at": self.created_at,
        }
