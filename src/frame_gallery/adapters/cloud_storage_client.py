"""HTTP client for the portfolio cloud API."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from frame_gallery.domain.errors import NetworkError, UploadError
from frame_gallery.domain.identifiers import new_photo_id
from frame_gallery.domain.portfolios import (
    ImageFile,
    LoadResult,
    Photo,
    Portfolio,
    UploadFailure,
)
from frame_gallery.services.sharing import share_endpoint_url

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class CloudStorageClient(Protocol):
    """Interface for the remote portfolio and image API."""

    async def upload_image(self, file: ImageFile, user_id: str) -> Photo:
        """Upload one image and return it as a photo."""

    async def upload_images(
        self,
        files: Sequence[ImageFile],
        user_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[Photo | UploadFailure]:
        """Upload images one at a time, isolating per-file failures."""

    async def save_portfolios(
        self, portfolios: Sequence[Portfolio], user_id: str
    ) -> dict[str, object]:
        """Replace the stored collection for a user."""

    async def load_portfolios_result(self, user_id: str) -> LoadResult:
        """Load the stored collection as a tagged result."""

    async def load_portfolios(self, user_id: str) -> list[Portfolio]:
        """Load the stored collection, empty on failure."""

    async def delete_portfolio(
        self, portfolio_id: str, user_id: str
    ) -> dict[str, object]:
        """Remove one portfolio from the stored collection."""

    async def get_public_portfolio(self, user_id: str, portfolio_id: str) -> Portfolio:
        """Fetch another user's portfolio for read-only viewing."""

    def get_share_url(self, user_id: str, portfolio_id: str) -> str:
        """Return the public share URL of a portfolio."""

    async def test_connection(self) -> bool:
        """Return true when the API answers."""


@dataclass
class HttpxCloudStorageClient(CloudStorageClient):
    """Cloud storage client implemented with httpx."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxCloudStorageClient":
        """Create a client with a managed httpx session and no request deadline."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(timeout=None),
        )

    async def upload_image(self, file: ImageFile, user_id: str) -> Photo:
        """Upload one image through the multipart upload endpoint."""
        url = f"{self.base_url}/api/upload-image"
        try:
            response = await self.http_client.post(
                url,
                data={"userId": user_id},
                files={"file": (file.name, file.content, file.content_type)},
            )
        except httpx.HTTPError as exc:
            raise UploadError(f"Upload failed: {exc}") from exc
        if response.is_error:
            raise UploadError(_error_message(response, "Upload failed"))
        try:
            payload = response.json()
            remote_url = str(payload["url"])
            uploaded_at = payload.get("uploadedAt")
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise UploadError(f"Upload failed: unexpected response ({exc})") from exc
        return Photo(
            id=new_photo_id(),
            src=remote_url,
            name=file.name,
            size=file.size,
            type=file.content_type,
            cloud_url=remote_url,
            uploaded_at=uploaded_at,
        )

    async def upload_images(
        self,
        files: Sequence[ImageFile],
        user_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[Photo | UploadFailure]:
        """Upload images sequentially; failures are recorded, not raised."""
        results: list[Photo | UploadFailure] = []
        total = len(files)
        for index, file in enumerate(files):
            if on_progress:
                on_progress(index, total, file.name)
            try:
                results.append(await self.upload_image(file, user_id))
            except UploadError as exc:
                _logger.warning(
                    "Image upload failed",
                    extra={"file_name": file.name, "error": str(exc)},
                )
                results.append(UploadFailure(name=file.name, message=str(exc)))
        if on_progress:
            on_progress(total, total, "Complete")
        return results

    async def save_portfolios(
        self, portfolios: Sequence[Portfolio], user_id: str
    ) -> dict[str, object]:
        """Replace the stored collection for a user."""
        url = f"{self.base_url}/api/portfolios"
        payload = {
            "userId": user_id,
            "portfolios": [portfolio.to_dict() for portfolio in portfolios],
        }
        try:
            response = await self.http_client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Save failed: {exc}") from exc
        if response.is_error:
            raise NetworkError(_error_message(response, "Save failed"))
        return response.json()

    async def load_portfolios_result(self, user_id: str) -> LoadResult:
        """Load the stored collection, tagging failures instead of raising."""
        url = f"{self.base_url}/api/portfolios"
        try:
            response = await self.http_client.get(url, params={"userId": user_id})
            if response.is_error:
                return LoadResult.failure(_error_message(response, "Load failed"))
            raw = response.json().get("portfolios") or []
            portfolios = [Portfolio.from_dict(item) for item in raw]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            return LoadResult.failure(f"Load failed: {exc}")
        return LoadResult(portfolios=portfolios)

    async def load_portfolios(self, user_id: str) -> list[Portfolio]:
        """Load the stored collection; any failure reads as empty."""
        result = await self.load_portfolios_result(user_id)
        if not result.ok:
            _logger.warning(
                "Portfolio load failed", extra={"user_id": user_id, "error": result.error}
            )
        return result.portfolios

    async def delete_portfolio(
        self, portfolio_id: str, user_id: str
    ) -> dict[str, object]:
        """Ask the API to drop one portfolio."""
        url = f"{self.base_url}/api/portfolios"
        try:
            response = await self.http_client.delete(
                url, params={"userId": user_id, "portfolioId": portfolio_id}
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Delete failed: {exc}") from exc
        if response.is_error:
            raise NetworkError(_error_message(response, "Delete failed"))
        return response.json()

    async def get_public_portfolio(self, user_id: str, portfolio_id: str) -> Portfolio:
        """Fetch a shared portfolio by owner and id."""
        url = (
            f"{self.base_url}/api/portfolio/"
            f"{quote(user_id, safe='')}/{quote(portfolio_id, safe='')}"
        )
        try:
            response = await self.http_client.get(url)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Portfolio fetch failed: {exc}") from exc
        if response.is_error:
            raise NetworkError(_error_message(response, "Portfolio not found"))
        return Portfolio.from_dict(response.json()["portfolio"])

    def get_share_url(self, user_id: str, portfolio_id: str) -> str:
        """Return the share URL that serves social previews."""
        return share_endpoint_url(self.base_url, user_id, portfolio_id)

    async def test_connection(self) -> bool:
        """Probe the portfolio endpoint; any error means unreachable."""
        try:
            response = await self.http_client.get(
                f"{self.base_url}/api/portfolios", params={"userId": "test"}
            )
        except Exception:
            return False
        return response.is_success

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Return the server-provided error message, if any."""
    try:
        payload = response.json()
    except ValueError:
        return fallback
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return fallback
