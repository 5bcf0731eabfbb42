"""Server-side portfolio collection management."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

_logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Persistence interface for JSON values keyed by string."""

    def get(self, key: str) -> object | None:
        """Return the stored value for a key, if present."""

    def set(self, key: str, value: object) -> None:
        """Store a value under a key, replacing any previous value."""

    def incr(self, key: str) -> int:
        """Increment an integer counter and return the new value."""


@dataclass(frozen=True)
class SaveOutcome:
    """Result of replacing a user's portfolio collection."""

    saved: int
    metadata: dict[str, object]


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of removing one portfolio from a collection."""

    deleted: str
    remaining: int


@dataclass(frozen=True)
class PublicPortfolio:
    """Read-only copy of a portfolio with its view count."""

    portfolio: dict[str, object]
    views: int


def portfolios_key(user_id: str) -> str:
    return f"portfolios:{user_id}"


def metadata_key(user_id: str) -> str:
    return f"metadata:{user_id}"


def views_key(user_id: str, portfolio_id: str) -> str:
    return f"views:{user_id}:{portfolio_id}"


@dataclass
class PortfolioService:
    """Application service backing the portfolio HTTP endpoints."""

    store: KeyValueStore

    def list_portfolios(self, user_id: str) -> list[dict[str, object]]:
        """Return the stored collection for a user, empty when none exists."""
        stored = self.store.get(portfolios_key(user_id))
        if not isinstance(stored, list):
            return []
        return [item for item in stored if isinstance(item, dict)]

    def save_portfolios(
        self, user_id: str, portfolios: list[dict[str, object]]
    ) -> SaveOutcome:
        """Replace the whole collection for a user and refresh its metadata."""
        self.store.set(portfolios_key(user_id), portfolios)
        metadata = _build_metadata(portfolios)
        self.store.set(metadata_key(user_id), metadata)
        _logger.info(
            "Saved portfolios",
            extra={"user_id": user_id, "count": len(portfolios)},
        )
        return SaveOutcome(saved=len(portfolios), metadata=metadata)

    def delete_portfolio(self, user_id: str, portfolio_id: str) -> DeleteOutcome:
        """Remove one portfolio by id; missing ids leave the collection as is."""
        current = self.list_portfolios(user_id)
        remaining = [item for item in current if item.get("id") != portfolio_id]
        if len(remaining) != len(current):
            self.save_portfolios(user_id, remaining)
        return DeleteOutcome(deleted=portfolio_id, remaining=len(remaining))

    def get_public_portfolio(
        self, user_id: str, portfolio_id: str
    ) -> PublicPortfolio | None:
        """Return a portfolio for public viewing and count the view."""
        portfolio = self.find_portfolio(user_id, portfolio_id)
        if portfolio is None:
            return None
        views = self.store.incr(views_key(user_id, portfolio_id))
        return PublicPortfolio(portfolio=portfolio, views=views)

    def find_portfolio(
        self, user_id: str, portfolio_id: str
    ) -> dict[str, object] | None:
        """Return a single portfolio without touching the view counter."""
        for item in self.list_portfolios(user_id):
            if item.get("id") == portfolio_id:
                return item
        return None


def _build_metadata(portfolios: list[dict[str, object]]) -> dict[str, object]:
    total_photos = 0
    for item in portfolios:
        photos = item.get("photos")
        if isinstance(photos, list):
            total_photos += len(photos)
    return {
        "portfolioCount": len(portfolios),
        "totalPhotos": total_photos,
        "lastUpdated": datetime.now(tz=UTC).isoformat(),
    }
