"""Allow ``python -m drivergen``."""

from drivergen.cli.app import app

app()
