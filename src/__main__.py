"""Allow ``python -m sessionpress``."""

from sessionpress.cli import app

app()
