"""Local-only portfolio persistence used when the cloud is unreachable."""

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from frame_gallery.adapters.local_storage import LocalStorage
from frame_gallery.domain.errors import QuotaExceededError
from frame_gallery.domain.portfolios import LoadResult, Portfolio
from frame_gallery.services.portfolio_store import PortfolioBackend

_logger = logging.getLogger(__name__)

_QUOTA_HEADROOM = 0.8


def local_portfolios_key(user_id: str) -> str:
    return f"portfolios_{user_id}"


@dataclass
class LocalPortfolioBackend(PortfolioBackend):
    """Stores each user's collection as a JSON array in local storage."""

    storage: LocalStorage
    quota_bytes: int = 5 * 1024 * 1024

    async def load(self, user_id: str) -> LoadResult:
        """Read the collection; unreadable data is reported as a failure."""
        raw = self.storage.get_item(local_portfolios_key(user_id))
        if not raw:
            return LoadResult()
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise TypeError(f"expected a list, got {type(items).__name__}")
            portfolios = [
                Portfolio.from_dict(item) for item in items if isinstance(item, dict)
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            return LoadResult.failure(f"Stored portfolios are unreadable: {exc}")
        return LoadResult(portfolios=portfolios)

    async def save(self, user_id: str, portfolios: Sequence[Portfolio]) -> None:
        """Write the collection, refusing data close to the quota."""
        data = json.dumps([portfolio.to_dict() for portfolio in portfolios])
        if len(data) > self.quota_bytes * _QUOTA_HEADROOM:
            _logger.warning(
                "Portfolio data approaching storage quota",
                extra={"user_id": user_id, "size": len(data)},
            )
            raise QuotaExceededError(
                "Portfolio data too large for storage quota. "
                "Try using fewer or smaller photos."
            )
        self.storage.set_item(local_portfolios_key(user_id), data)
