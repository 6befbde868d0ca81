"""
Alert Stores

Exports:
- AlertStore: Store protocol the engine runs against
- InMemoryAlertStore: In-process store (tests, single-process use)
- DeltaLakeAlertStore: Delta Lake backed store
"""

from lendalert.data.alert_store import AlertStore, InMemoryAlertStore
from lendalert.data.delta_alert_store import DeltaLakeAlertStore

__all__ = ["AlertStore", "InMemoryAlertStore", "DeltaLakeAlertStore"]
