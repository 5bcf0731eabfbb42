"""Domain models for portfolios and photos."""

from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(frozen=True)
class PhotoDimensions:
    """Pixel size of a processed photo."""

    width: int
    height: int


@dataclass(frozen=True)
class Photo:
    """A single image belonging to a portfolio or the staging buffer."""

    id: str
    src: str
    name: str
    size: int
    type: str
    dimensions: PhotoDimensions | None = None
    compressed_size: int | None = None
    original_type: str | None = None
    cloud_url: str | None = None
    uploaded_at: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize using the camelCase wire format."""
        payload: dict[str, object] = {
            "id": self.id,
            "src": self.src,
            "name": self.name,
            "size": self.size,
            "type": self.type,
        }
        if self.dimensions is not None:
            payload["dimensions"] = {
                "width": self.dimensions.width,
                "height": self.dimensions.height,
            }
        if self.compressed_size is not None:
            payload["compressedSize"] = self.compressed_size
        if self.original_type is not None:
            payload["originalType"] = self.original_type
        if self.cloud_url is not None:
            payload["cloudUrl"] = self.cloud_url
        if self.uploaded_at is not None:
            payload["uploadedAt"] = self.uploaded_at
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "Photo":
        """Build a photo from its wire format."""
        dimensions = payload.get("dimensions")
        return cls(
            id=str(payload["id"]),
            src=str(payload.get("src", "")),
            name=str(payload.get("name", "")),
            size=int(payload.get("size") or 0),
            type=str(payload.get("type", "")),
            dimensions=(
                PhotoDimensions(
                    width=int(dimensions["width"]), height=int(dimensions["height"])
                )
                if isinstance(dimensions, dict)
                else None
            ),
            compressed_size=_optional_int(payload.get("compressedSize")),
            original_type=_optional_str(payload.get("originalType")),
            cloud_url=_optional_str(payload.get("cloudUrl")),
            uploaded_at=_optional_str(payload.get("uploadedAt")),
        )


@dataclass(frozen=True)
class Portfolio:
    """A named, ordered collection of photos owned by one user."""

    id: str
    title: str
    description: str
    photos: list[Photo]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Serialize using the camelCase wire format."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "photos": [photo.to_dict() for photo in self.photos],
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "Portfolio":
        """Build a portfolio from its wire format."""
        photos = payload.get("photos") or []
        created_at = _parse_timestamp(payload.get("createdAt"))
        updated_at = _parse_timestamp(payload.get("updatedAt"), default=created_at)
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title", "")),
            description=str(payload.get("description") or ""),
            photos=[Photo.from_dict(photo) for photo in photos if isinstance(photo, dict)],
            created_at=created_at,
            updated_at=updated_at,
        )


@dataclass(frozen=True)
class ImageFile:
    """An image selected by the user, before upload or processing."""

    name: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        """Size of the raw file in bytes."""
        return len(self.content)


@dataclass(frozen=True)
class UploadFailure:
    """Per-file failure entry inside a batch upload result."""

    name: str
    message: str
    error: bool = True


@dataclass(frozen=True)
class LoadResult:
    """Tagged result of a portfolio load."""

    portfolios: list[Portfolio] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Return true when the load reached the backend successfully."""
        return self.error is None

    @classmethod
    def failure(cls, reason: str) -> "LoadResult":
        """Build a failed load result."""
        return cls(portfolios=[], error=reason)


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _parse_timestamp(raw: object, default: datetime | None = None) -> datetime:
    if isinstance(raw, str) and raw:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
    return default or datetime.now(tz=UTC)


def _optional_int(value: object) -> int | None:
    if isinstance(value, int | float):
        return int(value)
    return None


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)
