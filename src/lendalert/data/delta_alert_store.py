"""
Alert Store with Delta Lake Persistence

This module provides a persistent AlertStore backed by Delta Lake tables.

Key patterns:
- Delta Lake for ACID writes and time-travel (resolved alerts are kept)
- Polars for filtering rows read from the table
- Conditional UPDATE guarded by is_resolved = false for at-most-once resolution;
  num_updated_rows tells the caller whether it won
- Polling subscription: an asyncio task re-reads the table whenever its
  version changes and pushes the full active snapshot
- Timestamps stored as ISO strings, nested fields as JSON strings

Tables:
    <table_path>        one row per alert
    <audit_table_path>  one row per operator action
"""

import asyncio
import itertools
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import polars as pl
import pyarrow as pa
from deltalake import DeltaTable, write_deltalake
from deltalake.exceptions import CommitFailedError
from loguru import logger

from lendalert.alerts.exceptions import AlertEngineError, AlertNotFoundError, AlertStoreError
from lendalert.alerts.models import Alert, AlertPriority, AlertType, AuditEntry
from lendalert.data.alert_store import (
    ErrorCallback,
    SnapshotCallback,
    Unsubscribe,
    sort_newest_first,
)

logger = logger.bind(component="DeltaLakeAlertStore")

ALERT_SCHEMA = pa.schema([
    ("alert_id", pa.string()),
    ("type", pa.string()),
    ("priority", pa.string()),
    ("title", pa.string()),
    ("description", pa.string()),
    ("source_id", pa.string()),
    ("source_type", pa.string()),
    ("source_data", pa.string()),
    ("quick_actions", pa.string()),
    ("is_resolved", pa.bool_()),
    ("resolved_by", pa.string()),
    ("resolved_at", pa.string()),
    ("resolution_action", pa.string()),
    ("created_at", pa.string()),
])

AUDIT_SCHEMA = pa.schema([
    ("entry_id", pa.string()),
    ("alert_id", pa.string()),
    ("alert_type", pa.string()),
    ("alert_priority", pa.string()),
    ("alert_title", pa.string()),
    ("source_id", pa.string()),
    ("source_type", pa.string()),
    ("actor_id", pa.string()),
    ("action", pa.string()),
    ("resolved", pa.bool_()),
    ("created_at", pa.string()),
])


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def _sql_literal(value: Any) -> str:
    """Render a Python value as a SQL literal for Delta Lake predicates/updates."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    return "'" + str(value).replace("'", "''") + "'"


class DeltaLakeAlertStore:
    """
    Alert store persisted to Delta Lake.

    **At-most-once resolution:**
    write_resolution() issues one UPDATE with predicate
    ``alert_id = <id> AND is_resolved = false``. Only the call that flips the
    flag sees num_updated_rows == 1. A commit that loses the Delta Lake
    transaction race re-reads the alert and retries; if the winning commit
    resolved it, the call reports "already resolved".

    **Subscriptions:**
    Requires a running event loop; each subscription owns one polling task.

    Attributes:
        table_path: Path to alerts Delta Lake table
        audit_table_path: Path to audit log Delta Lake table
        poll_interval: Seconds between version checks for subscriptions
    """

    MAX_COMMIT_ATTEMPTS = 3

    def __init__(
        self,
        table_path: str = "data/lake/admin_alerts",
        audit_table_path: Optional[str] = None,
        poll_interval: float = 2.0,
    ):
        """
        Initialize store.

        Args:
            table_path: Path to alerts table (default: data/lake/admin_alerts)
            audit_table_path: Path to audit table (default: <table_path>_audit)
            poll_interval: Seconds between subscription polls
        """
        self.table_path = Path(table_path)
        self.audit_table_path = Path(audit_table_path or f"{table_path}_audit")
        self.poll_interval = poll_interval

        self._lock = asyncio.Lock()
        self._initialized = False
        self._poll_tasks: dict[int, asyncio.Task] = {}
        self._subscriber_ids = itertools.count(1)

    async def initialize(self) -> None:
        """
        Create the alerts and audit tables if they don't exist.

        Raises:
            AlertStoreError: If the tables cannot be created
        """
        if self._initialized:
            return

        try:
            for path, schema in ((self.table_path, ALERT_SCHEMA), (self.audit_table_path, AUDIT_SCHEMA)):
                if DeltaTable.is_deltatable(str(path)):
                    logger.info(f"✓ Delta Lake table exists: {path}")
                    continue

                write_deltalake(str(path), pa.Table.from_pylist([], schema=schema), mode="overwrite")
                logger.info(f"✓ Created Delta Lake table: {path}")
        except Exception as e:
            raise AlertStoreError(f"Failed to initialize alert tables: {e}") from e

        self._initialized = True

    def _table(self) -> DeltaTable:
        return DeltaTable(str(self.table_path))

    def _read_frame(self, table: Optional[DeltaTable] = None) -> pl.DataFrame:
        """
        Read the alerts table into a Polars DataFrame.

        Args:
            table: DeltaTable loaded at a specific version (default: latest)
        """
        try:
            if table is None:
                table = self._table()
            return pl.from_arrow(table.to_pyarrow_table())
        except Exception as e:
            raise AlertStoreError(f"Failed to read alerts: {e}") from e

    @staticmethod
    def _rows_to_alerts(df: pl.DataFrame) -> list[Alert]:
        """Convert rows to alerts, skipping malformed records."""
        alerts = []
        for row in df.iter_rows(named=True):
            try:
                alerts.append(Alert.from_dict(row))
            except (AlertEngineError, ValueError, KeyError) as e:
                logger.warning(f"Skipping malformed alert row {row.get('alert_id')}: {e}")
        return alerts

    @staticmethod
    def _alert_row(alert: Alert) -> dict[str, Any]:
        row = alert.to_dict()
        row["created_at"] = _iso(alert.created_at)
        row["resolved_at"] = _iso(alert.resolved_at)
        return row

    def _active_snapshot(self, table: Optional[DeltaTable] = None) -> list[Alert]:
        df = self._read_frame(table).filter(pl.col("is_resolved") == False)  # noqa: E712
        return sort_newest_first(self._rows_to_alerts(df))

    async def query_active_alerts(self) -> list[Alert]:
        await self.initialize()
        return self._active_snapshot()

    async def query_all_alerts(self) -> list[Alert]:
        await self.initialize()
        return sort_newest_first(self._rows_to_alerts(self._read_frame()))

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        await self.initialize()
        df = self._read_frame().filter(pl.col("alert_id") == alert_id)
        alerts = self._rows_to_alerts(df.head(1))
        return alerts[0] if alerts else None

    async def get_alert_by_source(self, source_id: str, alert_type: AlertType) -> Optional[Alert]:
        """Find the unresolved alert raised for a source entity, if any."""
        await self.initialize()
        df = self._read_frame().filter(
            (pl.col("source_id") == source_id)
            & (pl.col("type") == alert_type.value)
            & (pl.col("is_resolved") == False)  # noqa: E712
        )
        alerts = self._rows_to_alerts(df.head(1))
        return alerts[0] if alerts else None

    async def create_alert(self, alert: Alert) -> Alert:
        """
        Append a new alert, or escalate the existing unresolved alert for the
        same source_id and type.

        Returns:
            Stored alert

        Raises:
            AlertStoreError: If the write fails
        """
        await self.initialize()

        async with self._lock:
            if alert.source_id is not None:
                existing = await self.get_alert_by_source(alert.source_id, alert.type)
                if existing is not None:
                    return self._escalate(existing, alert.priority)

            try:
                table = pa.Table.from_pylist([self._alert_row(alert)], schema=ALERT_SCHEMA)
                write_deltalake(str(self.table_path), table, mode="append")
            except Exception as e:
                raise AlertStoreError(f"Failed to write alert: {e}", alert_id=alert.alert_id) from e

            logger.info(
                f"✓ Created alert: {alert.alert_id[:8]}... "
                f"({alert.type.value}, {alert.priority.value})"
            )
            return alert

    async def escalate_priority(self, alert_id: str, priority: AlertPriority) -> Alert:
        """
        Raise an alert's priority (never lowers it).

        Raises:
            AlertNotFoundError: If alert does not exist
        """
        async with self._lock:
            alert = await self.get_alert(alert_id)
            if alert is None:
                raise AlertNotFoundError(alert_id)
            return self._escalate(alert, priority)

    def _escalate(self, alert: Alert, priority: AlertPriority) -> Alert:
        if not priority.escalates(alert.priority):
            return alert

        try:
            self._table().update(
                predicate=f"alert_id = {_sql_literal(alert.alert_id)}",
                updates={"priority": _sql_literal(priority.value)},
            )
        except Exception as e:
            raise AlertStoreError(f"Failed to escalate alert: {e}", alert_id=alert.alert_id) from e

        logger.info(
            f"Escalated alert {alert.alert_id[:8]}...: "
            f"{alert.priority.value} → {priority.value}"
        )
        alert.priority = priority
        return alert

    async def write_resolution(
        self,
        alert_id: str,
        actor_id: str,
        action: str,
        resolved_at: datetime,
    ) -> bool:
        """
        Resolve an alert with one conditional UPDATE.

        Returns:
            True if this call resolved the alert, False if it was already resolved

        Raises:
            AlertNotFoundError: If alert does not exist
            AlertStoreError: If the write fails
        """
        await self.initialize()

        async with self._lock:
            alert = await self.get_alert(alert_id)
            if alert is None:
                raise AlertNotFoundError(alert_id)

            for attempt in range(1, self.MAX_COMMIT_ATTEMPTS + 1):
                if alert.is_resolved:
                    return False

                try:
                    metrics = self._table().update(
                        predicate=(
                            f"alert_id = {_sql_literal(alert_id)} AND is_resolved = false"
                        ),
                        updates={
                            "is_resolved": "true",
                            "resolved_by": _sql_literal(actor_id),
                            "resolved_at": _sql_literal(_iso(resolved_at)),
                            "resolution_action": _sql_literal(action),
                        },
                    )
                    return int(metrics.get("num_updated_rows", 0)) > 0

                except CommitFailedError:
                    # Another process committed first; re-read and retry
                    logger.warning(
                        f"Resolution commit conflict for {alert_id[:8]}... "
                        f"(attempt {attempt}/{self.MAX_COMMIT_ATTEMPTS})"
                    )
                    alert = await self.get_alert(alert_id)
                    if alert is None:
                        raise AlertNotFoundError(alert_id)

                except Exception as e:
                    raise AlertStoreError(f"Failed to resolve alert: {e}", alert_id=alert_id) from e

            raise AlertStoreError(
                f"Failed to resolve alert after {self.MAX_COMMIT_ATTEMPTS} commit conflicts",
                alert_id=alert_id,
            )

    async def append_audit_entry(self, entry: AuditEntry) -> None:
        """
        Append an audit entry.

        Raises:
            AlertStoreError: If the write fails
        """
        await self.initialize()

        row = entry.to_dict()
        row["created_at"] = _iso(entry.created_at)

        try:
            table = pa.Table.from_pylist([row], schema=AUDIT_SCHEMA)
            write_deltalake(str(self.audit_table_path), table, mode="append")
        except Exception as e:
            raise AlertStoreError(f"Failed to write audit entry: {e}", alert_id=entry.alert_id) from e

    async def read_audit_log(self) -> list[dict[str, Any]]:
        """Read every audit entry, oldest first."""
        await self.initialize()
        df = pl.from_arrow(DeltaTable(str(self.audit_table_path)).to_pyarrow_table())
        return df.sort("created_at").to_dicts()

    def subscribe_active_alerts(
        self,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """
        Start a polling subscription on the running event loop.

        The first snapshot is delivered by the polling task on its first pass.
        A read failure is reported once through on_error and ends the task.

        Returns:
            Idempotent unsubscribe callable that cancels the polling task
        """
        sub_id = next(self._subscriber_ids)
        task = asyncio.get_running_loop().create_task(
            self._poll_loop(sub_id, on_snapshot, on_error)
        )
        self._poll_tasks[sub_id] = task

        def unsubscribe() -> None:
            poll_task = self._poll_tasks.pop(sub_id, None)
            if poll_task is not None and not poll_task.done():
                poll_task.cancel()

        return unsubscribe

    async def _poll_loop(
        self,
        sub_id: int,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        """
        Re-read the table whenever its version changes.

        Each snapshot is read from the same DeltaTable handle whose version is
        recorded, so a commit landing after the read is seen as a new version
        on the next pass.
        """
        last_version: Optional[int] = None

        while sub_id in self._poll_tasks:
            try:
                await self.initialize()
                table = self._table()
                version = table.version()
                if version != last_version:
                    snapshot = self._active_snapshot(table)
                    last_version = version
                    if sub_id in self._poll_tasks:
                        on_snapshot(snapshot)

                await asyncio.sleep(self.poll_interval)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Alert subscription {sub_id} failed: {e}")
                self._poll_tasks.pop(sub_id, None)
                on_error(f"Alert subscription failed: {e}")
                break
