"""Shared pytest fixtures for alert engine tests."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lendalert.alerts.models import (
    Alert,
    AlertPriority,
    AlertType,
    QuickAction,
    QuickActionType,
)
from lendalert.data.alert_store import InMemoryAlertStore

BASE_TIME = datetime(2026, 3, 10, 12, 0, 0)


def _quick_action(action: QuickActionType, label: str = "", **params) -> QuickAction:
    return QuickAction(id=action.value, label=label or action.value, action=action, params=params)


@pytest.fixture
def base_time():
    """Reference time the sample alerts are created relative to."""
    return BASE_TIME


@pytest.fixture
def make_alert():
    """
    Factory for alerts with sensible defaults.

    Example:
        def test_something(make_alert):
            alert = make_alert("a1", priority=AlertPriority.CRITICAL)
    """

    def _make(
        alert_id: str,
        type: AlertType = AlertType.OVERDUE_LOAN,
        priority: AlertPriority = AlertPriority.MEDIUM,
        created_at: datetime = BASE_TIME,
        title: str = "",
        **kwargs,
    ) -> Alert:
        return Alert(
            alert_id=alert_id,
            type=type,
            priority=priority,
            title=title or f"Alert {alert_id}",
            created_at=created_at,
            **kwargs,
        )

    return _make


@pytest.fixture
def sample_alerts():
    """Five active alerts covering every priority."""
    return [
        Alert(
            alert_id="a1",
            type=AlertType.OVERDUE_LOAN,
            priority=AlertPriority.CRITICAL,
            title="Overdue loan: Canon EOS R5",
            description="Loan is 3 days overdue",
            source_id="loan-1",
            source_type="loan",
            source_data={"userName": "Jane Doe", "equipmentName": "Canon EOS R5", "daysOverdue": 3},
            quick_actions=[
                _quick_action(QuickActionType.SEND_REMINDER, "Send Reminder", loanId="loan-1"),
                _quick_action(QuickActionType.MARK_CONTACTED, "Mark Contacted"),
            ],
            created_at=BASE_TIME - timedelta(hours=1),
        ),
        Alert(
            alert_id="a2",
            type=AlertType.RESERVATION_CONFLICT,
            priority=AlertPriority.HIGH,
            title="Reservation conflict: Manfrotto Tripod",
            description="Two reservations overlap",
            source_id="res-2",
            source_type="reservation",
            source_data={"equipmentName": "Manfrotto Tripod"},
            quick_actions=[
                _quick_action(QuickActionType.CANCEL_RESERVATION, "Cancel", reservationId="res-2"),
                _quick_action(QuickActionType.DISMISS, "Dismiss"),
            ],
            created_at=BASE_TIME - timedelta(hours=2),
        ),
        Alert(
            alert_id="a3",
            type=AlertType.NEW_REGISTRATION,
            priority=AlertPriority.LOW,
            title="New registration: John Smith",
            description="Account awaiting approval",
            source_id="user-3",
            source_type="user",
            source_data={"userName": "John Smith", "email": "john@example.com"},
            quick_actions=[_quick_action(QuickActionType.DISMISS, "Dismiss")],
            created_at=BASE_TIME - timedelta(days=3),
        ),
        Alert(
            alert_id="a4",
            type=AlertType.NO_SHOW_RESERVATION,
            priority=AlertPriority.MEDIUM,
            title="No-show: GoPro Hero",
            description="Pickup window missed",
            source_id="res-4",
            source_type="reservation",
            source_data={"userName": "Alex Kim", "equipmentName": "GoPro Hero"},
            quick_actions=[
                _quick_action(QuickActionType.EXTEND_PICKUP, "Extend", hours=24),
                _quick_action(QuickActionType.DISMISS, "Dismiss"),
            ],
            created_at=BASE_TIME - timedelta(minutes=30),
        ),
        Alert(
            alert_id="a5",
            type=AlertType.IDLE_EQUIPMENT,
            priority=AlertPriority.LOW,
            title="Idle equipment: DJI Mini drone",
            source_id="eq-5",
            source_type="equipment",
            source_data={"equipmentName": "DJI Mini", "idleDays": 45},
            quick_actions=[_quick_action(QuickActionType.DISMISS, "Dismiss")],
            created_at=BASE_TIME - timedelta(days=1),
        ),
    ]


@pytest.fixture
def store(sample_alerts):
    """In-memory store preloaded with the sample alerts."""
    return InMemoryAlertStore(sample_alerts)


@pytest.fixture
def empty_store():
    """In-memory store with no alerts."""
    return InMemoryAlertStore()
