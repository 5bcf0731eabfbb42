"""Identifier helpers for portfolios, photos and sessions."""

import secrets
from datetime import UTC, datetime

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def epoch_millis(at: datetime) -> int:
    """Return milliseconds since the Unix epoch."""
    return int(at.timestamp() * 1000)


def random_suffix(length: int = 9) -> str:
    """Return a random lowercase base36 string."""
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def new_photo_id(at: datetime | None = None) -> str:
    """Build a photo id from the current time plus a random suffix."""
    moment = at or datetime.now(tz=UTC)
    return f"{epoch_millis(moment)}{random_suffix()}"


def new_session_token(at: datetime | None = None) -> str:
    """Build a pseudo-random session identity."""
    moment = at or datetime.now(tz=UTC)
    return f"session_{epoch_millis(moment)}_{random_suffix()}"
