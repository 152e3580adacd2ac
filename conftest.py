"""Test-session setup that must run before any test module is imported."""

import os

# CI runners often set FORCE_COLOR=1, which makes the CLI's rich Console
# emit ANSI codes and breaks the plain-text assertions in tests/test_cli.py.
# The Console is created at import time, so the override has to happen here.
os.environ.pop("FORCE_COLOR", None)
os.environ["NO_COLOR"] = "1"
