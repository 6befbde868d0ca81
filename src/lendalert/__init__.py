"""
Lendalert: admin alert engine for the equipment lending portal.

Example:
    ```python
    from lendalert import AlertEngine, load_config, setup_logging

    config = load_config("config/alerts.yaml")
    setup_logging(config)

    engine = AlertEngine.from_config(config, is_admin=True)
    async with engine:
        grouped = engine.get_grouped_alerts()
    ```
"""

from lendalert.alerts.engine import AlertEngine
from lendalert.alerts.quick_actions import (
    LoggingSideEffects,
    QuickActionDispatcher,
    QuickActionSideEffects,
)
from lendalert.alerts.resolution import AlertLocks, AlertResolver
from lendalert.alerts.subscription import AlertSubscriptionManager, SubscriptionHandle
from lendalert.config import EngineConfig, load_config
from lendalert.utils import setup_logging

__version__ = "0.1.0"

__all__ = [
    "AlertEngine",
    "AlertResolver",
    "AlertLocks",
    "AlertSubscriptionManager",
    "SubscriptionHandle",
    "QuickActionDispatcher",
    "QuickActionSideEffects",
    "LoggingSideEffects",
    "EngineConfig",
    "load_config",
    "setup_logging",
]
