"""Session start-up and cloud/local storage selection."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from frame_gallery.adapters.cloud_portfolio_backend import CloudPortfolioBackend
from frame_gallery.adapters.cloud_storage_client import CloudStorageClient
from frame_gallery.adapters.local_portfolio_backend import LocalPortfolioBackend
from frame_gallery.adapters.local_storage import LocalStorage
from frame_gallery.domain.errors import FrameGalleryError
from frame_gallery.domain.portfolios import Portfolio
from frame_gallery.services.identity import IdentityResolver, SessionIdentity
from frame_gallery.services.image_processor import ImageProcessor
from frame_gallery.services.portfolio_store import PortfolioStore, StoreLimits
from frame_gallery.services.sharing import ShareLink, build_cast_text

_logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SyncState(StrEnum):
    """Lifecycle of a portfolio session."""

    UNINITIALIZED = "UNINITIALIZED"
    PROBING = "PROBING"
    CLOUD_BACKED = "CLOUD_BACKED"
    LOCAL_FALLBACK = "LOCAL_FALLBACK"
    READY = "READY"


@dataclass
class SyncOrchestrator:
    """Owns whether the session is cloud-backed or local-only."""

    cloud_client: CloudStorageClient
    local_storage: LocalStorage
    identity_resolver: IdentityResolver
    image_processor: ImageProcessor
    limits: StoreLimits = field(default_factory=StoreLimits)
    local_quota_bytes: int = 5 * 1024 * 1024
    clock: Callable[[], datetime] = _utcnow
    on_change: Callable[[], None] | None = None
    state: SyncState = SyncState.UNINITIALIZED
    storage_mode: SyncState | None = None
    identity: SessionIdentity | None = None
    store: PortfolioStore | None = None
    init_error: Exception | None = None

    @property
    def is_cloud_backed(self) -> bool:
        return self.storage_mode == SyncState.CLOUD_BACKED

    async def initialize(self) -> PortfolioStore:
        """Resolve identity, pick the storage mode and load portfolios.

        Never raises: any failure is logged and the session still ends READY
        with an empty local-only store.
        """
        if self.store is not None and self.state == SyncState.READY:
            return self.store
        self.state = SyncState.PROBING
        try:
            self.identity = await self.identity_resolver.resolve()
            connected = await self._probe()
            self.storage_mode = (
                SyncState.CLOUD_BACKED if connected else SyncState.LOCAL_FALLBACK
            )
            self.state = self.storage_mode
            _logger.info(
                "Storage mode selected",
                extra={
                    "user_id": self.identity.user_id,
                    "storage_mode": self.storage_mode.value,
                },
            )
            self.store = self._build_store(self.identity.user_id)
            await self.store.load()
        except Exception as exc:
            _logger.exception("Failed to initialize portfolio session")
            self.init_error = exc
            self.storage_mode = SyncState.LOCAL_FALLBACK
            user_id = self.identity.user_id if self.identity else ANONYMOUS_USER
            self.store = self._build_store(user_id)
        self.state = SyncState.READY
        return self.store

    async def load_user_portfolios(self) -> list[Portfolio]:
        """Reload portfolios through the selected storage mode."""
        return await self._require_store().load()

    async def share_portfolio(self, portfolio_id: str) -> ShareLink:
        """Make sure a portfolio is in the cloud and build its share link."""
        store = self._require_store()
        portfolio = store.get_portfolio(portfolio_id)
        if portfolio is None:
            raise FrameGalleryError(f"Portfolio {portfolio_id} not found")
        pushed = True
        if self.is_cloud_backed:
            await store.backend.save(store.user_id, store.portfolios)
        else:
            try:
                await self.cloud_client.save_portfolios(store.portfolios, store.user_id)
            except FrameGalleryError:
                _logger.warning(
                    "Failed to push portfolios to the cloud for sharing",
                    extra={"portfolio_id": portfolio_id},
                )
                pushed = False
        url = self.cloud_client.get_share_url(store.user_id, portfolio_id)
        embed = portfolio.photos[0].src if portfolio.photos else None
        return ShareLink(
            url=url,
            text=build_cast_text(
                portfolio.title, portfolio.description, len(portfolio.photos), url
            ),
            embed_image=embed,
            pushed_to_cloud=pushed,
        )

    async def open_shared_portfolio(self, param: str) -> Portfolio | None:
        """Resolve a `?portfolio=` value to a portfolio, local copies first."""
        if not param:
            return None
        store = self._require_store()
        user_id, _, portfolio_id = param.rpartition("_")
        for portfolio in store.portfolios:
            if portfolio.id == portfolio_id and user_id in ("", store.user_id):
                return portfolio
        if not user_id or not portfolio_id:
            return None
        try:
            return await self.cloud_client.get_public_portfolio(user_id, portfolio_id)
        except FrameGalleryError:
            _logger.warning(
                "Shared portfolio not found",
                extra={"user_id": user_id, "portfolio_id": portfolio_id},
            )
            return None

    async def _probe(self) -> bool:
        try:
            return await self.cloud_client.test_connection()
        except Exception:
            _logger.exception("Cloud connectivity probe failed")
            return False

    def _build_store(self, user_id: str) -> PortfolioStore:
        if self.is_cloud_backed:
            backend = CloudPortfolioBackend(self.cloud_client)
            uploader = self.cloud_client
        else:
            backend = LocalPortfolioBackend(
                storage=self.local_storage, quota_bytes=self.local_quota_bytes
            )
            uploader = None
        return PortfolioStore(
            user_id=user_id,
            backend=backend,
            image_processor=self.image_processor,
            uploader=uploader,
            limits=self.limits,
            clock=self.clock,
            on_change=self.on_change,
        )

    def _require_store(self) -> PortfolioStore:
        if self.store is None:
            raise FrameGalleryError("Portfolio session is not initialized")
        return self.store
