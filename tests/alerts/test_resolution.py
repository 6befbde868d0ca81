"""
Unit tests for AlertResolver

Tests the ACTIVE → RESOLVED transition, idempotency, concurrency and audit.
"""

import asyncio
from datetime import datetime

import pytest

from lendalert.alerts.resolution import AlertLocks, AlertResolver

FIXED_NOW = datetime(2026, 3, 10, 14, 30)


@pytest.fixture
def resolver(store):
    """AlertResolver over the sample store with a fixed clock."""
    return AlertResolver(store, clock=lambda: FIXED_NOW)


@pytest.mark.asyncio
async def test_resolve_active_alert(resolver, store):
    result = await resolver.resolve("a1", "admin1", "dismissed")

    assert result.success is True
    assert result.action_taken == "RESOLVED"
    assert result.alert_id == "a1"

    alert = await store.get_alert("a1")
    assert alert.is_resolved is True
    assert alert.resolved_by == "admin1"
    assert alert.resolution_action == "dismissed"
    assert alert.resolved_at == FIXED_NOW


@pytest.mark.asyncio
async def test_resolve_is_at_most_once(resolver, store):
    """The first actor/action wins; the second call is a successful no-op."""
    first = await resolver.resolve("a2", "admin1", "dismissed")
    second = await resolver.resolve("a2", "admin2", "flagged")

    assert first.action_taken == "RESOLVED"
    assert second.success is True
    assert second.action_taken == "ALREADY_RESOLVED"

    alert = await store.get_alert("a2")
    assert alert.resolved_by == "admin1"
    assert alert.resolution_action == "dismissed"


@pytest.mark.asyncio
async def test_concurrent_resolves_record_one_action(resolver, store):
    results = await asyncio.gather(
        resolver.resolve("a3", "admin1", "dismissed"),
        resolver.resolve("a3", "admin2", "mark_contacted"),
        resolver.resolve("a3", "admin3", "dismissed"),
    )

    taken = sorted(r.action_taken for r in results)
    assert taken == ["ALREADY_RESOLVED", "ALREADY_RESOLVED", "RESOLVED"]
    assert all(r.success for r in results)

    alert = await store.get_alert("a3")
    assert alert.resolved_by == "admin1"
    assert len([e for e in store.audit_log if e.alert_id == "a3"]) == 1


@pytest.mark.asyncio
async def test_resolve_missing_alert(resolver):
    result = await resolver.resolve("missing", "admin1", "dismissed")

    assert result.success is False
    assert result.action_taken == "FAILED"
    assert "Alert not found: missing" in result.error_message


@pytest.mark.asyncio
async def test_resolve_requires_actor_and_action(resolver, store):
    result = await resolver.resolve("a1", "", "dismissed")

    assert result.success is False
    assert not (await store.get_alert("a1")).is_resolved


@pytest.mark.asyncio
async def test_store_failure_returns_failed_result(resolver, store):
    store.fail_next("connection reset")

    result = await resolver.resolve("a1", "admin1", "dismissed")

    assert result.success is False
    assert result.error_message == "connection reset"
    assert not (await store.get_alert("a1")).is_resolved


@pytest.mark.asyncio
async def test_resolution_lost_to_another_writer(resolver, store):
    """A writer outside this resolver wins between read and write."""
    original_write = store.write_resolution

    async def racing_write(alert_id, actor_id, action, resolved_at):
        await original_write(alert_id, "other-process", "dismissed", resolved_at)
        return await original_write(alert_id, actor_id, action, resolved_at)

    store.write_resolution = racing_write

    result = await resolver.resolve("a1", "admin1", "mark_contacted")

    assert result.success is True
    assert result.action_taken == "ALREADY_RESOLVED"
    assert (await store.get_alert("a1")).resolved_by == "other-process"
    assert store.audit_log == []


@pytest.mark.asyncio
async def test_resolution_writes_audit_entry(resolver, store):
    await resolver.resolve("a1", "admin1", "dismissed")

    assert len(store.audit_log) == 1
    entry = store.audit_log[0]
    assert entry.alert_id == "a1"
    assert entry.actor_id == "admin1"
    assert entry.action == "dismissed"
    assert entry.resolved is True
    assert entry.alert_priority == "critical"


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_resolution(resolver, store):
    original_append = store.append_audit_entry

    async def fail_once(entry):
        store.append_audit_entry = original_append
        store.fail_next("audit table unavailable")
        await original_append(entry)

    store.append_audit_entry = fail_once

    result = await resolver.resolve("a1", "admin1", "dismissed")

    assert result.success is True
    assert result.action_taken == "RESOLVED"
    assert store.audit_log == []


@pytest.mark.asyncio
async def test_locks_are_released():
    locks = AlertLocks()

    async with locks.hold("a1"):
        assert len(locks) == 1

    assert len(locks) == 0


@pytest.mark.asyncio
async def test_locks_serialize_same_alert():
    locks = AlertLocks()
    order = []

    async def worker(name):
        async with locks.hold("a1"):
            order.append(f"{name}-start")
            await asyncio.sleep(0)
            order.append(f"{name}-end")

    await asyncio.gather(worker("x"), worker("y"))

    assert order == ["x-start", "x-end", "y-start", "y-end"]
    assert len(locks) == 0
