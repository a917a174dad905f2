"""Timestamp and id helpers shared by the tree, session and generation code."""

import time
from datetime import datetime
from uuid import uuid4


def now_ms() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    """Opaque unique id such as ``node-3f2a...``."""
    return f"{prefix}-{uuid4()}"


def format_local_datetime(ms: int) -> str:
    """Local wall-clock rendering used in default session names."""
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
