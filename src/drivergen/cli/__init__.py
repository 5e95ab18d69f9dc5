"""drivergen CLI – command-line interface built with Typer and Rich.

- :data:`app` – The main Typer application
- :class:`DriverGenConfig` – Configuration model
- :func:`setup_logging` – Logging infrastructure
- :class:`CLIError` – Structured error handling
"""

from drivergen.cli.app import app
from drivergen.cli.config import DriverGenConfig, load_config
from drivergen.cli.errors import CLIError, ConfigError, error_handler
from drivergen.cli.logging_setup import setup_logging

__all__ = [
    "CLIError",
    "ConfigError",
    "DriverGenConfig",
    "app",
    "error_handler",
    "load_config",
    "setup_logging",
]
