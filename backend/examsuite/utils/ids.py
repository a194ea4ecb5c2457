"""Identifier helpers - stateless, safe under concurrent calls."""

import time
import uuid


def new_id(prefix: str, length: int = 12) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:length]}"


def new_correlation_id(prefix: str = "eval") -> str:
    """Timestamp plus random suffix; sortable by creation time."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
