"""File-backed stand-in for browser local storage."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from frame_gallery.domain.errors import QuotaExceededError

_logger = logging.getLogger(__name__)


class LocalStorage(Protocol):
    """String key-value storage local to one device."""

    def get_item(self, key: str) -> str | None:
        """Return the stored string for a key, if present."""

    def set_item(self, key: str, value: str) -> None:
        """Store a string, raising QuotaExceededError when full."""

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""


@dataclass
class JsonFileLocalStorage(LocalStorage):
    """Local storage persisted as one JSON object on disk."""

    path: Path
    quota_bytes: int = 5 * 1024 * 1024

    @classmethod
    def create(cls, path: str, quota_bytes: int) -> "JsonFileLocalStorage":
        """Create storage at a filesystem path."""
        return cls(path=Path(path).expanduser(), quota_bytes=quota_bytes)

    def get_item(self, key: str) -> str | None:
        """Return the stored string for a key."""
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store a string if the total stays within the quota."""
        items = self._read()
        items[key] = value
        usage = _usage(items)
        if usage > self.quota_bytes:
            raise QuotaExceededError(
                f"Local storage quota exceeded ({usage} > {self.quota_bytes} bytes)"
            )
        self._write(items)

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        items = self._read()
        if items.pop(key, None) is not None:
            self._write(items)

    def usage(self) -> int:
        """Return the current usage counted as key plus value length."""
        return _usage(self._read())

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError):
            _logger.warning(
                "Local storage file is unreadable; treating it as empty",
                extra={"path": str(self.path)},
            )
            return {}
        if not isinstance(raw, dict):
            _logger.warning(
                "Local storage file is not an object; treating it as empty",
                extra={"path": str(self.path)},
            )
            return {}
        return {str(key): str(value) for key, value in raw.items()}

    def _write(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(items), encoding="utf-8")
        os.replace(tmp_path, self.path)


def _usage(items: dict[str, str]) -> int:
    return sum(len(key) + len(value) for key, value in items.items())
