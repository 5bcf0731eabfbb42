"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from frame_gallery.adapters.cloud_storage_client import HttpxCloudStorageClient
from frame_gallery.adapters.local_storage import JsonFileLocalStorage
from frame_gallery.adapters.supabase_blob_store import SupabaseBlobStore
from frame_gallery.adapters.supabase_kv_store import SupabaseKeyValueStore
from frame_gallery.config import ClientSettings, Settings
from frame_gallery.services.identity import IdentityProvider, IdentityResolver
from frame_gallery.services.image_processor import ImageProcessor
from frame_gallery.services.portfolio_store import StoreLimits
from frame_gallery.services.portfolios import PortfolioService
from frame_gallery.services.sync import SyncOrchestrator
from frame_gallery.services.uploads import ImageUploadService


@dataclass
class AppContainer:
    """Holds server-wide dependencies."""

    settings: Settings
    portfolio_service: PortfolioService
    upload_service: ImageUploadService
    close_resources: Callable[[], Awaitable[None]]


@dataclass
class ClientContainer:
    """Holds the dependencies of one portfolio client session."""

    settings: ClientSettings
    cloud_client: HttpxCloudStorageClient
    orchestrator: SyncOrchestrator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default server container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    kv_store = SupabaseKeyValueStore(supabase_client, table=resolved_settings.kv_table)
    blob_store = SupabaseBlobStore(supabase_client, bucket=resolved_settings.storage_bucket)

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        portfolio_service=PortfolioService(kv_store),
        upload_service=ImageUploadService(
            blob_store=blob_store,
            max_upload_bytes=resolved_settings.max_upload_bytes,
        ),
        close_resources=close_resources,
    )


def build_client_container(
    settings: ClientSettings | None = None,
    identity_provider: IdentityProvider | None = None,
) -> ClientContainer:
    """Create a client session container talking to the configured API."""
    resolved_settings = settings or ClientSettings()
    cloud_client = HttpxCloudStorageClient.create(resolved_settings.api_base_url)
    local_storage = JsonFileLocalStorage.create(
        resolved_settings.local_storage_path,
        quota_bytes=resolved_settings.local_storage_quota_bytes,
    )
    orchestrator = SyncOrchestrator(
        cloud_client=cloud_client,
        local_storage=local_storage,
        identity_resolver=IdentityResolver(
            provider=identity_provider,
            storage=local_storage,
            timeout_seconds=resolved_settings.identity_timeout_seconds,
        ),
        image_processor=ImageProcessor(),
        limits=StoreLimits(
            max_portfolios=resolved_settings.max_portfolios,
            max_photos_per_portfolio=resolved_settings.max_photos_per_portfolio,
            max_file_size=resolved_settings.max_file_size_bytes,
        ),
        local_quota_bytes=resolved_settings.local_storage_quota_bytes,
    )

    async def close_resources() -> None:
        await cloud_client.close()

    return ClientContainer(
        settings=resolved_settings,
        cloud_client=cloud_client,
        orchestrator=orchestrator,
        close_resources=close_resources,
    )
