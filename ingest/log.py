"""Timestamped stderr logging shared by the import pipeline."""

import sys
from datetime import datetime


def log_error(msg: str) -> None:
    """Log timestamped error to stderr."""
    timestamp = datetime.now().isoformat(timespec="seconds")
    print(f"[{timestamp}] ERROR {msg}", file=sys.stderr, flush=True)


def log_warning(msg: str) -> None:
    """Log timestamped warning to stderr."""
    timestamp = datetime.now().isoformat(timespec="seconds")
    print(f"[{timestamp}] WARN {msg}", file=sys.stderr, flush=True)
