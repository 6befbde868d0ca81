"""
Logging Setup

Configures loguru sinks for the alert engine.

Key patterns:
- Module loggers are bound with logger.bind(component="...")
- setup_logging() replaces the default sink with a stderr sink and an
  optional rotating file sink
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from lendalert.config.engine_config import EngineConfig

STDERR_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | <level>{message}</level>"
)


def setup_logging(config: Optional[EngineConfig] = None) -> None:
    """
    Configure logging.

    Args:
        config: EngineConfig with log_level, log_file and log_rotation
            (default: EngineConfig())
    """
    config = config or EngineConfig()

    logger.remove()
    # Records logged without a bound component still render
    logger.configure(extra={"component": "lendalert"})

    logger.add(sys.stderr, level=config.log_level, format=STDERR_FORMAT)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_path, **config.get_log_config())

    logger.bind(component="Logging").debug(
        f"Logging configured: level={config.log_level}, file={config.log_file}"
    )
