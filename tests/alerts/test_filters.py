"""
Unit tests for the alert filter engine

Tests each criterion on its own and their AND-combination.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from lendalert.alerts.filters import apply_filters, matches_filter, search_text
from lendalert.alerts.models import AlertFilter, AlertPriority, AlertType


def _ids(alerts):
    return sorted(a.alert_id for a in alerts)


def test_no_filter_returns_everything(sample_alerts):
    assert _ids(apply_filters(sample_alerts)) == ["a1", "a2", "a3", "a4", "a5"]
    assert _ids(apply_filters(sample_alerts, AlertFilter())) == ["a1", "a2", "a3", "a4", "a5"]


def test_filter_returns_new_list(sample_alerts):
    result = apply_filters(sample_alerts)
    assert result is not sample_alerts
    assert result == sample_alerts


def test_filter_by_type(sample_alerts):
    result = apply_filters(sample_alerts, AlertFilter(type="overdue_loan"))
    assert _ids(result) == ["a1"]


def test_filter_by_priority(sample_alerts):
    result = apply_filters(sample_alerts, AlertFilter(priority=AlertPriority.LOW))
    assert _ids(result) == ["a3", "a5"]


def test_filter_by_date_range_is_inclusive_by_day(sample_alerts, base_time):
    # a3 was created three days before base_time, a5 one day before
    day = (base_time - timedelta(days=1)).date()

    result = apply_filters(sample_alerts, AlertFilter(date_start=day, date_end=day))

    assert _ids(result) == ["a5"]


def test_filter_date_end_includes_last_instant_of_day(make_alert):
    late = make_alert("late", created_at=datetime(2026, 3, 9, 23, 59, 59, 999999))
    early = make_alert("early", created_at=datetime(2026, 3, 9, 0, 0, 0))
    next_day = make_alert("next", created_at=datetime(2026, 3, 10, 0, 0, 0))

    result = apply_filters(
        [late, early, next_day],
        AlertFilter(date_start=date(2026, 3, 9), date_end=date(2026, 3, 9)),
    )

    assert _ids(result) == ["early", "late"]


def test_filter_start_only(sample_alerts, base_time):
    result = apply_filters(sample_alerts, AlertFilter(date_start=base_time.date()))
    assert _ids(result) == ["a1", "a2", "a4"]


@pytest.mark.parametrize("local_time", [datetime(2026, 3, 9, 0, 30), datetime(2026, 3, 9, 23, 30)])
def test_filter_aware_created_at_uses_local_day(make_alert, local_time):
    # Same instant expressed in UTC, whatever the local offset is
    created_at = local_time.astimezone().astimezone(timezone.utc)
    alert = make_alert("tz", created_at=created_at)

    assert matches_filter(alert, AlertFilter(date_start=date(2026, 3, 9), date_end=date(2026, 3, 9)))
    assert not matches_filter(alert, AlertFilter(date_start=date(2026, 3, 10)))
    assert not matches_filter(alert, AlertFilter(date_end=date(2026, 3, 8)))


def test_search_is_case_insensitive(sample_alerts):
    result = apply_filters(sample_alerts, AlertFilter(search_term="CANON"))
    assert _ids(result) == ["a1"]


def test_search_covers_description(sample_alerts):
    result = apply_filters(sample_alerts, AlertFilter(search_term="pickup window"))
    assert _ids(result) == ["a4"]


def test_search_covers_source_data(sample_alerts):
    result = apply_filters(sample_alerts, AlertFilter(search_term="john@example.com"))
    assert _ids(result) == ["a3"]

    result = apply_filters(sample_alerts, AlertFilter(search_term="jane"))
    assert _ids(result) == ["a1"]


def test_blank_search_disables_criterion(sample_alerts):
    result = apply_filters(sample_alerts, AlertFilter(search_term="   "))
    assert len(result) == 5


def test_criteria_are_combined_with_and(sample_alerts):
    """An alert is kept only when every enabled criterion matches."""
    f = AlertFilter(priority="low", search_term="drone")
    assert _ids(apply_filters(sample_alerts, f)) == ["a5"]

    f = AlertFilter(type=AlertType.NEW_REGISTRATION, search_term="drone")
    assert apply_filters(sample_alerts, f) == []

    # Conjunction equals the intersection of the single-criterion results
    by_priority = set(_ids(apply_filters(sample_alerts, AlertFilter(priority="low"))))
    by_search = set(_ids(apply_filters(sample_alerts, AlertFilter(search_term="e"))))
    combined = set(_ids(apply_filters(sample_alerts, AlertFilter(priority="low", search_term="e"))))
    assert combined == by_priority & by_search


def test_search_text_contents(sample_alerts):
    text = search_text(sample_alerts[0])
    assert "overdue loan: canon eos r5" in text
    assert "loan is 3 days overdue" in text
    assert '"daysoverdue": 3' in text
