from .config import ConfigurationError, WatchdogConfig, load_watchdog_config
from .logging import configure_logging

__all__ = [
    "ConfigurationError",
    "WatchdogConfig",
    "load_watchdog_config",
    "configure_logging",
]
