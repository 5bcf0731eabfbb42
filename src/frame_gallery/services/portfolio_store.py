"""In-memory portfolio collection with limits and persistence."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol

from frame_gallery.config import (
    MAX_FILE_SIZE_BYTES,
    MAX_PHOTOS_PER_PORTFOLIO,
    MAX_PORTFOLIOS,
)
from frame_gallery.domain.errors import (
    ProcessingError,
    QuotaExceededError,
    ValidationError,
)
from frame_gallery.domain.identifiers import epoch_millis
from frame_gallery.domain.portfolios import (
    ImageFile,
    LoadResult,
    Photo,
    Portfolio,
    UploadFailure,
)
from frame_gallery.services.image_processor import ImageProcessor

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

COMPRESS_THRESHOLD_CHARS = 500_000
COMPRESS_QUALITY = 0.5
_ONE_MILLISECOND = timedelta(milliseconds=1)


class PortfolioBackend(Protocol):
    """Persistence interface for one user's portfolio collection."""

    async def load(self, user_id: str) -> LoadResult:
        """Load the collection as a tagged result."""

    async def save(self, user_id: str, portfolios: Sequence[Portfolio]) -> None:
        """Replace the stored collection."""


class PhotoUploader(Protocol):
    """Uploads selected files to durable remote storage."""

    async def upload_images(
        self,
        files: Sequence[ImageFile],
        user_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[Photo | UploadFailure]:
        """Upload files one at a time, isolating per-file failures."""


@dataclass(frozen=True)
class StoreLimits:
    """Capacity and file acceptance rules."""

    max_portfolios: int = MAX_PORTFOLIOS
    max_photos_per_portfolio: int = MAX_PHOTOS_PER_PORTFOLIO
    max_file_size: int = MAX_FILE_SIZE_BYTES
    allowed_types: frozenset[str] = frozenset(
        {"image/jpeg", "image/png", "image/webp"}
    )


@dataclass(frozen=True)
class RejectedFile:
    """A file refused before any upload or processing."""

    name: str
    reason: str


@dataclass(frozen=True)
class IngestReport:
    """Outcome of turning selected files into photos."""

    accepted: list[Photo] = field(default_factory=list)
    rejected: list[RejectedFile] = field(default_factory=list)
    failed: list[UploadFailure] = field(default_factory=list)
    dropped: int = 0


@dataclass(frozen=True)
class PendingChange:
    """A collection that could not be saved because local storage is full."""

    portfolios: list[Portfolio]
    clears_staging: bool = False


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class PortfolioStore:
    """Holds the active user's portfolios and the staging buffer.

    Every mutation builds the next collection, persists it through the
    backend and only then replaces the in-memory state. A failed save leaves
    the collection and the staging buffer exactly as they were.
    """

    user_id: str
    backend: PortfolioBackend
    image_processor: ImageProcessor
    uploader: PhotoUploader | None = None
    limits: StoreLimits = field(default_factory=StoreLimits)
    clock: Callable[[], datetime] = _utcnow
    on_change: Callable[[], None] | None = None
    portfolios: list[Portfolio] = field(default_factory=list)
    temp_photos: list[Photo] = field(default_factory=list)
    last_load_error: str | None = None
    pending_change: PendingChange | None = None

    async def load(self) -> list[Portfolio]:
        """Load the collection; a failed read leaves it empty."""
        result = await self.backend.load(self.user_id)
        if not result.ok:
            _logger.warning(
                "Failed to load portfolios",
                extra={"user_id": self.user_id, "error": result.error},
            )
        self.last_load_error = result.error
        self.portfolios = list(result.portfolios)
        self._notify()
        return self.portfolios

    def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        """Return a portfolio by id, if present."""
        for portfolio in self.portfolios:
            if portfolio.id == portfolio_id:
                return portfolio
        return None

    def total_photo_count(self) -> int:
        """Return the number of photos across all portfolios."""
        return sum(len(portfolio.photos) for portfolio in self.portfolios)

    async def stage_files(
        self,
        files: Sequence[ImageFile],
        on_progress: ProgressCallback | None = None,
    ) -> IngestReport:
        """Turn selected files into staged photos for a new portfolio."""
        remaining = self.limits.max_photos_per_portfolio - len(self.temp_photos)
        to_process, dropped = _take_capacity(files, remaining)
        report = await self._ingest(to_process, on_progress, dropped)
        if report.accepted:
            self.temp_photos = [*self.temp_photos, *report.accepted]
            self._notify()
        return report

    def remove_staged_photo(self, photo_id: str) -> None:
        """Drop a staged photo; unknown ids are ignored."""
        remaining = [photo for photo in self.temp_photos if photo.id != photo_id]
        if len(remaining) != len(self.temp_photos):
            self.temp_photos = remaining
            self._notify()

    def clear_staging(self) -> None:
        """Empty the staging buffer."""
        self.temp_photos = []
        self._notify()

    async def create_portfolio(
        self,
        title: str,
        description: str = "",
        staged_photos: Sequence[Photo] | None = None,
    ) -> Portfolio:
        """Create a portfolio from the staged photos and persist it."""
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValidationError("Please enter a portfolio title")
        if len(self.portfolios) >= self.limits.max_portfolios:
            raise ValidationError(
                f"You can only create up to {self.limits.max_portfolios} portfolios. "
                "Delete an existing portfolio to create a new one."
            )
        source = self.temp_photos if staged_photos is None else staged_photos
        if len(source) > self.limits.max_photos_per_portfolio:
            raise ValidationError(
                f"A portfolio holds at most "
                f"{self.limits.max_photos_per_portfolio} photos."
            )
        now = self._now()
        portfolio = Portfolio(
            id=self._new_portfolio_id(now),
            title=cleaned_title,
            description=description.strip(),
            photos=list(source),
            created_at=now,
            updated_at=now,
        )
        await self._persist([*self.portfolios, portfolio], clears_staging=True)
        _logger.info(
            "Portfolio created",
            extra={"portfolio_id": portfolio.id, "photo_count": len(portfolio.photos)},
        )
        return portfolio

    async def add_photos_to_portfolio(
        self,
        portfolio_id: str,
        files: Sequence[ImageFile],
        on_progress: ProgressCallback | None = None,
    ) -> IngestReport:
        """Add files to an existing portfolio up to its remaining capacity."""
        portfolio = self._require(portfolio_id)
        remaining = self.limits.max_photos_per_portfolio - len(portfolio.photos)
        to_process, dropped = _take_capacity(files, remaining)
        report = await self._ingest(to_process, on_progress, dropped)
        if not report.accepted:
            return report
        # Other mutations may have committed while files were uploading.
        current = self._require(portfolio_id)
        capacity = max(
            0, self.limits.max_photos_per_portfolio - len(current.photos)
        )
        accepted = report.accepted[:capacity]
        report = replace(
            report,
            accepted=accepted,
            dropped=report.dropped + len(report.accepted) - len(accepted),
        )
        if accepted:
            updated = replace(
                current,
                photos=[*current.photos, *accepted],
                updated_at=self._touch(current),
            )
            await self._persist(self._with_portfolio(updated))
        return report

    async def remove_photo(self, portfolio_id: str, photo_id: str) -> None:
        """Remove a photo; missing portfolios or photos are a no-op."""
        portfolio = self.get_portfolio(portfolio_id)
        if portfolio is None:
            return
        photos = [photo for photo in portfolio.photos if photo.id != photo_id]
        if len(photos) == len(portfolio.photos):
            return
        updated = replace(portfolio, photos=photos, updated_at=self._touch(portfolio))
        await self._persist(self._with_portfolio(updated))

    async def clear_portfolio(self, portfolio_id: str) -> None:
        """Remove every photo from a portfolio."""
        portfolio = self._require(portfolio_id)
        if not portfolio.photos:
            return
        updated = replace(portfolio, photos=[], updated_at=self._touch(portfolio))
        await self._persist(self._with_portfolio(updated))

    async def delete_portfolio(self, portfolio_id: str) -> None:
        """Delete a portfolio; deleting a missing one is a no-op."""
        remaining = [item for item in self.portfolios if item.id != portfolio_id]
        if len(remaining) == len(self.portfolios):
            return
        await self._persist(remaining)

    async def edit_portfolio(
        self, portfolio_id: str, title: str, description: str = ""
    ) -> Portfolio:
        """Update a portfolio's title and description."""
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValidationError("Please enter a portfolio title")
        portfolio = self._require(portfolio_id)
        updated = replace(
            portfolio,
            title=cleaned_title,
            description=description.strip(),
            updated_at=self._touch(portfolio),
        )
        await self._persist(self._with_portfolio(updated))
        return updated

    async def compress_portfolios(
        self,
        quality: float = COMPRESS_QUALITY,
        threshold: int = COMPRESS_THRESHOLD_CHARS,
    ) -> None:
        """Recompress large inline photos, then retry the pending save.

        Without a pending change the current collection is compressed and
        saved instead.
        """
        pending = self.pending_change
        source = pending.portfolios if pending else self.portfolios
        clears_staging = pending.clears_staging if pending else False
        compressed = [
            self._compress_portfolio(portfolio, quality, threshold)
            for portfolio in source
        ]
        await self._persist(compressed, clears_staging=clears_staging)

    def discard_pending_change(self) -> bool:
        """Forget the change that did not fit into local storage."""
        had_pending = self.pending_change is not None
        self.pending_change = None
        return had_pending

    async def _ingest(
        self,
        files: Sequence[ImageFile],
        on_progress: ProgressCallback | None,
        dropped: int,
    ) -> IngestReport:
        valid: list[ImageFile] = []
        rejected: list[RejectedFile] = []
        for file in files:
            reason = self._rejection_reason(file)
            if reason:
                rejected.append(RejectedFile(name=file.name, reason=reason))
            else:
                valid.append(file)

        accepted: list[Photo] = []
        failed: list[UploadFailure] = []
        if valid and self.uploader is not None:
            results = await self.uploader.upload_images(
                valid, self.user_id, on_progress
            )
            for result in results:
                if isinstance(result, UploadFailure):
                    failed.append(result)
                else:
                    accepted.append(result)
        elif valid:
            total = len(valid)
            for index, file in enumerate(valid):
                if on_progress:
                    on_progress(index, total, file.name)
                try:
                    accepted.append(self.image_processor.process(file))
                except ProcessingError as exc:
                    _logger.warning(
                        "Failed to process image",
                        extra={"file_name": file.name, "error": str(exc)},
                    )
                    failed.append(UploadFailure(name=file.name, message=str(exc)))
            if on_progress:
                on_progress(total, total, "Complete")

        if dropped:
            _logger.info(
                "Dropped files over portfolio capacity",
                extra={"user_id": self.user_id, "dropped": dropped},
            )
        return IngestReport(
            accepted=accepted, rejected=rejected, failed=failed, dropped=dropped
        )

    def _rejection_reason(self, file: ImageFile) -> str | None:
        if file.content_type not in self.limits.allowed_types:
            return f"{file.name} is not a supported image format."
        if file.size > self.limits.max_file_size:
            max_mb = self.limits.max_file_size / (1024 * 1024)
            return f"{file.name} is too large. Maximum file size is {max_mb:.0f}MB."
        return None

    async def _persist(
        self, candidate: list[Portfolio], clears_staging: bool = False
    ) -> None:
        try:
            await self.backend.save(self.user_id, candidate)
        except QuotaExceededError:
            _logger.warning(
                "Storage quota exceeded; change kept pending",
                extra={"user_id": self.user_id},
            )
            self.pending_change = PendingChange(
                portfolios=candidate, clears_staging=clears_staging
            )
            raise
        except Exception:
            _logger.exception(
                "Failed to save portfolios", extra={"user_id": self.user_id}
            )
            raise
        self.portfolios = candidate
        if clears_staging:
            self.temp_photos = []
        self.pending_change = None
        self._notify()

    def _compress_portfolio(
        self, portfolio: Portfolio, quality: float, threshold: int
    ) -> Portfolio:
        photos: list[Photo] = []
        for photo in portfolio.photos:
            if photo.src.startswith("data:") and len(photo.src) > threshold:
                try:
                    src = self.image_processor.recompress_data_url(photo.src, quality)
                except ProcessingError:
                    _logger.exception(
                        "Failed to recompress photo", extra={"photo_id": photo.id}
                    )
                else:
                    photo = replace(photo, src=src, compressed_size=len(src))
            photos.append(photo)
        return replace(portfolio, photos=photos)

    def _require(self, portfolio_id: str) -> Portfolio:
        portfolio = self.get_portfolio(portfolio_id)
        if portfolio is None:
            raise ValidationError(f"Portfolio {portfolio_id} not found")
        return portfolio

    def _with_portfolio(self, updated: Portfolio) -> list[Portfolio]:
        return [updated if item.id == updated.id else item for item in self.portfolios]

    def _now(self) -> datetime:
        """Read the clock at the millisecond precision timestamps are stored in."""
        now = self.clock()
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    def _touch(self, portfolio: Portfolio) -> datetime:
        return max(self._now(), portfolio.updated_at + _ONE_MILLISECOND)

    def _new_portfolio_id(self, now: datetime) -> str:
        existing = {portfolio.id for portfolio in self.portfolios}
        candidate = epoch_millis(now)
        while str(candidate) in existing:
            candidate += 1
        return str(candidate)

    def _notify(self) -> None:
        if self.on_change:
            self.on_change()


def _take_capacity(
    files: Sequence[ImageFile], remaining: int
) -> tuple[list[ImageFile], int]:
    """Split files into those that fit and a count of those dropped."""
    accepted = list(files[: max(0, remaining)])
    return accepted, len(files) - len(accepted)
