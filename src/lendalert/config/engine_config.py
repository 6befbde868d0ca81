"""
Alert Engine Configuration

Settings for the alert engine: store location, subscription polling,
per-alert serialization and logging.

Usage:
    from lendalert.config import load_config

    config = load_config("config/alerts.yaml")
    engine = AlertEngine(store, is_admin=True, config=config)
"""

from dataclasses import dataclass
from typing import Optional

VALID_LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


@dataclass(slots=True)
class EngineConfig:
    """
    Alert engine configuration.

    Attributes:
        delta_lake_path: Delta Lake table holding alerts (audit table is a sibling)
        poll_interval: Seconds between version checks of the alert table
        serialize_per_alert: Run quick actions on the same alert one at a time
        log_level: Logging level for the stderr and file sinks
        log_file: Optional path of a rotating log file (None disables it)
        log_rotation: loguru rotation setting for the log file
    """

    # Store
    delta_lake_path: str = "data/lake/admin_alerts"
    poll_interval: float = 2.0

    # Actions
    serialize_per_alert: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_rotation: str = "10 MB"

    def __post_init__(self):
        """
        Validate configuration after initialization.

        Raises:
            ValueError: If a setting is out of range
        """
        if not self.delta_lake_path:
            raise ValueError("delta_lake_path must not be empty")

        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}")
        self.log_level = self.log_level.upper()

    @property
    def audit_table_path(self) -> str:
        return f"{self.delta_lake_path}_audit"

    def get_log_config(self) -> dict:
        """
        Get file sink configuration for loguru.

        Returns:
            Dictionary of logger.add() keyword arguments
        """
        return {
            "rotation": self.log_rotation,
            "level": self.log_level,
            "format": (
                "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
                "{extra[component]: <22} | {message}"
            ),
        }
