"""``python -m sqliteplus DB SQL [--commit] [--json]``"""
from .connection import cli_run

raise SystemExit(cli_run())
