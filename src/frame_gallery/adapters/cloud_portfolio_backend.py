"""Portfolio persistence through the cloud API."""

from collections.abc import Sequence
from dataclasses import dataclass

from frame_gallery.adapters.cloud_storage_client import CloudStorageClient
from frame_gallery.domain.portfolios import LoadResult, Portfolio
from frame_gallery.services.portfolio_store import PortfolioBackend


@dataclass
class CloudPortfolioBackend(PortfolioBackend):
    """Delegates loads and full-collection saves to the cloud client."""

    client: CloudStorageClient

    async def load(self, user_id: str) -> LoadResult:
        """Load through the tagged cloud read."""
        return await self.client.load_portfolios_result(user_id)

    async def save(self, user_id: str, portfolios: Sequence[Portfolio]) -> None:
        """Replace the stored collection."""
        await self.client.save_portfolios(portfolios, user_id)
