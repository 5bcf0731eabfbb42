"""Tests for session start-up, identity resolution and sharing."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime

from frame_gallery.adapters.cloud_portfolio_backend import CloudPortfolioBackend
from frame_gallery.adapters.local_portfolio_backend import LocalPortfolioBackend
from frame_gallery.domain.errors import NetworkError
from frame_gallery.domain.portfolios import Portfolio
from frame_gallery.services.identity import (
    SESSION_KEY,
    IdentityResolver,
    StaticIdentityProvider,
)
from frame_gallery.services.sync import ANONYMOUS_USER, SyncOrchestrator, SyncState
from tests.conftest import (
    FakeCloudStorageClient,
    InMemoryLocalStorage,
    SteppingClock,
    StubImageProcessor,
    make_photo,
)


@dataclass
class SlowIdentityProvider:
    delay: float = 1.0

    async def get_context(self) -> dict[str, object] | None:
        await asyncio.sleep(self.delay)
        return {"user": {"fid": 1}}


class BrokenIdentityProvider:
    async def get_context(self) -> dict[str, object] | None:
        raise RuntimeError("host SDK unavailable")


class BrokenLocalStorage(InMemoryLocalStorage):
    def get_item(self, key: str) -> str | None:
        raise RuntimeError("storage disabled")


def _portfolio(portfolio_id: str, title: str = "Street") -> Portfolio:
    created = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    return Portfolio(
        id=portfolio_id,
        title=title,
        description="City walks",
        photos=[make_photo("p1")],
        created_at=created,
        updated_at=created,
    )


def _orchestrator(
    cloud: FakeCloudStorageClient,
    storage: InMemoryLocalStorage | None = None,
    provider=None,  # type: ignore[no-untyped-def]
) -> SyncOrchestrator:
    local_storage = storage if storage is not None else InMemoryLocalStorage()
    return SyncOrchestrator(
        cloud_client=cloud,
        local_storage=local_storage,
        identity_resolver=IdentityResolver(
            provider=provider,
            storage=local_storage,
            timeout_seconds=0.05,
            token_factory=lambda: "session_1714564800000_abcdefghi",
        ),
        image_processor=StubImageProcessor(),
        clock=SteppingClock(),
    )


def test_identity_prefers_provider_fid() -> None:
    storage = InMemoryLocalStorage()
    resolver = IdentityResolver(
        provider=StaticIdentityProvider({"user": {"fid": 4242, "username": "ana"}}),
        storage=storage,
    )

    identity = asyncio.run(resolver.resolve())

    assert identity.user_id == "4242"
    assert identity.is_external
    assert identity.profile == {"fid": 4242, "username": "ana"}
    assert storage.items == {}


def test_identity_timeout_falls_back_to_stored_token() -> None:
    storage = InMemoryLocalStorage(items={SESSION_KEY: "session_1_storedtok"})
    resolver = IdentityResolver(
        provider=SlowIdentityProvider(), storage=storage, timeout_seconds=0.01
    )

    identity = asyncio.run(resolver.resolve())

    assert identity.user_id == "session_1_storedtok"
    assert identity.source == "stored"


def test_identity_generates_and_persists_token() -> None:
    storage = InMemoryLocalStorage()
    resolver = IdentityResolver(
        provider=BrokenIdentityProvider(),
        storage=storage,
        token_factory=lambda: "session_5_zzzzzzzzz",
    )

    first = asyncio.run(resolver.resolve())
    second = asyncio.run(resolver.resolve())

    assert first.source == "generated"
    assert storage.items[SESSION_KEY] == "session_5_zzzzzzzzz"
    assert second.user_id == first.user_id
    assert second.source == "stored"


def test_identity_ignores_context_without_fid() -> None:
    resolver = IdentityResolver(
        provider=StaticIdentityProvider({"user": {"username": "nofid"}}),
        storage=InMemoryLocalStorage(),
        token_factory=lambda: "session_9_aaaaaaaaa",
    )

    assert asyncio.run(resolver.resolve()).user_id == "session_9_aaaaaaaaa"


def test_unreachable_cloud_uses_local_fallback_only() -> None:
    cloud = FakeCloudStorageClient(connected=False)
    orchestrator = _orchestrator(cloud)

    store = asyncio.run(orchestrator.initialize())
    asyncio.run(orchestrator.load_user_portfolios())
    asyncio.run(store.create_portfolio("Offline"))

    assert orchestrator.state == SyncState.READY
    assert orchestrator.storage_mode == SyncState.LOCAL_FALLBACK
    assert isinstance(store.backend, LocalPortfolioBackend)
    assert store.uploader is None
    assert cloud.load_calls == []
    assert cloud.save_calls == []
    assert "portfolios_session_1714564800000_abcdefghi" in (
        orchestrator.local_storage.items  # type: ignore[attr-defined]
    )


def test_reachable_cloud_loads_remote_portfolios() -> None:
    cloud = FakeCloudStorageClient(portfolios={"77": [_portfolio("1")]})
    orchestrator = _orchestrator(
        cloud, provider=StaticIdentityProvider({"user": {"fid": 77}})
    )

    store = asyncio.run(orchestrator.initialize())

    assert orchestrator.is_cloud_backed
    assert isinstance(store.backend, CloudPortfolioBackend)
    assert store.uploader is cloud
    assert [item.id for item in store.portfolios] == ["1"]
    assert cloud.load_calls == ["77"]


def test_initialize_never_raises() -> None:
    cloud = FakeCloudStorageClient()
    orchestrator = _orchestrator(cloud, storage=BrokenLocalStorage())

    store = asyncio.run(orchestrator.initialize())

    assert orchestrator.state == SyncState.READY
    assert orchestrator.storage_mode == SyncState.LOCAL_FALLBACK
    assert isinstance(orchestrator.init_error, RuntimeError)
    assert store.user_id == ANONYMOUS_USER
    assert store.portfolios == []


def test_share_in_cloud_mode_saves_and_builds_cast() -> None:
    cloud = FakeCloudStorageClient(portfolios={"77": [_portfolio("1")]})
    orchestrator = _orchestrator(
        cloud, provider=StaticIdentityProvider({"user": {"fid": 77}})
    )
    asyncio.run(orchestrator.initialize())

    link = asyncio.run(orchestrator.share_portfolio("1"))

    assert link.url == "https://api.example.com/api/share/77/1"
    assert link.pushed_to_cloud is True
    assert link.embed_image == "https://cdn.example.com/p1.jpg"
    assert '📸 "Street"' in link.text
    assert "1 photo •" in link.text
    assert cloud.save_calls == ["77"]


def test_share_in_local_mode_reports_failed_push() -> None:
    cloud = FakeCloudStorageClient(
        connected=False, save_error=NetworkError("Save failed")
    )
    orchestrator = _orchestrator(cloud)
    store = asyncio.run(orchestrator.initialize())
    portfolio = asyncio.run(store.create_portfolio("Offline"))

    link = asyncio.run(orchestrator.share_portfolio(portfolio.id))

    assert link.pushed_to_cloud is False
    assert link.embed_image is None
    assert portfolio.id in link.url


def test_open_shared_portfolio_prefers_local_then_remote() -> None:
    cloud = FakeCloudStorageClient(
        portfolios={
            "77": [_portfolio("1", title="Mine")],
            "owner_1": [_portfolio("1700000000000", title="Theirs")],
        }
    )
    orchestrator = _orchestrator(
        cloud, provider=StaticIdentityProvider({"user": {"fid": 77}})
    )
    asyncio.run(orchestrator.initialize())

    local = asyncio.run(orchestrator.open_shared_portfolio("77_1"))
    remote = asyncio.run(orchestrator.open_shared_portfolio("owner_1_1700000000000"))
    missing = asyncio.run(orchestrator.open_shared_portfolio("owner_1_999"))

    assert local is not None
    assert local.title == "Mine"
    assert remote is not None
    assert remote.title == "Theirs"
    assert missing is None
