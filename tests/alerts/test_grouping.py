"""
Unit tests for priority grouping and sort order
"""

from datetime import timedelta

from lendalert.alerts.grouping import group_by_priority, sort_alerts, sort_key
from lendalert.alerts.models import PRIORITY_ORDER, AlertPriority


def test_sort_priority_then_newest(make_alert, base_time):
    """Critical alerts first; within a priority the newest comes first."""
    t1 = base_time
    alerts = [
        make_alert("1", priority=AlertPriority.LOW, created_at=t1),
        make_alert("2", priority=AlertPriority.CRITICAL, created_at=t1 - timedelta(hours=1)),
        make_alert("3", priority=AlertPriority.CRITICAL, created_at=t1 + timedelta(hours=1)),
    ]

    assert [a.alert_id for a in sort_alerts(alerts)] == ["3", "2", "1"]


def test_sort_invariant(sample_alerts):
    """Adjacent pairs never violate the (rank, -created_at) order."""
    ordered = sort_alerts(sample_alerts)

    for a, b in zip(ordered, ordered[1:]):
        assert a.priority.rank <= b.priority.rank
        if a.priority == b.priority:
            assert a.created_at >= b.created_at


def test_sort_does_not_mutate_input(sample_alerts):
    before = [a.alert_id for a in sample_alerts]
    sort_alerts(sample_alerts)
    assert [a.alert_id for a in sample_alerts] == before


def test_sort_is_stable_for_equal_keys(make_alert, base_time):
    alerts = [make_alert(str(i), created_at=base_time) for i in range(5)]
    assert [a.alert_id for a in sort_alerts(alerts)] == ["0", "1", "2", "3", "4"]


def test_sort_key(make_alert, base_time):
    alert = make_alert("k", priority=AlertPriority.HIGH, created_at=base_time)
    assert sort_key(alert) == (1, -base_time.timestamp())


def test_group_has_all_buckets_when_empty():
    groups = group_by_priority([])
    assert list(groups) == list(PRIORITY_ORDER)
    assert all(bucket == [] for bucket in groups.values())


def test_group_is_a_partition(sample_alerts):
    """Every alert lands in exactly one bucket, the one matching its priority."""
    groups = group_by_priority(sample_alerts)

    flattened = [a.alert_id for bucket in groups.values() for a in bucket]
    assert sorted(flattened) == sorted(a.alert_id for a in sample_alerts)
    assert len(flattened) == len(set(flattened))

    for priority, bucket in groups.items():
        assert all(a.priority == priority for a in bucket)


def test_group_preserves_sorted_order(sample_alerts):
    groups = group_by_priority(sort_alerts(sample_alerts))

    assert [a.alert_id for a in groups[AlertPriority.CRITICAL]] == ["a1"]
    assert [a.alert_id for a in groups[AlertPriority.HIGH]] == ["a2"]
    assert [a.alert_id for a in groups[AlertPriority.MEDIUM]] == ["a4"]
    # a5 (1 day old) before a3 (3 days old)
    assert [a.alert_id for a in groups[AlertPriority.LOW]] == ["a5", "a3"]
