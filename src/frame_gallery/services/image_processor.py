"""Resize and re-encode images into persistable photos."""

import base64
import binascii
import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps

from frame_gallery.domain.errors import ProcessingError
from frame_gallery.domain.identifiers import new_photo_id
from frame_gallery.domain.portfolios import ImageFile, Photo, PhotoDimensions

_logger = logging.getLogger(__name__)

OUTPUT_TYPE = "image/jpeg"
_PILLOW_MAX_JPEG_QUALITY = 95


@dataclass(frozen=True)
class EncodedImage:
    """JPEG bytes with their pixel size."""

    data: bytes
    width: int
    height: int

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{OUTPUT_TYPE};base64,{encoded}"


class ImageProcessor:
    """Scales images down to a bounded canvas and re-encodes them as JPEG."""

    def process(
        self,
        file: ImageFile,
        max_width: int = 1200,
        max_height: int = 800,
        quality: float = 0.8,
    ) -> Photo:
        """Return a photo holding the resized image as a JPEG data URL."""
        if not file.content:
            raise ProcessingError(f"Failed to read file {file.name}")
        encoded = _reencode(file.content, quality, bounds=(max_width, max_height))
        data_url = encoded.to_data_url()
        _logger.info(
            "Image processed",
            extra={
                "file_name": file.name,
                "original_size": file.size,
                "compressed_size": len(data_url),
            },
        )
        return Photo(
            id=new_photo_id(),
            src=data_url,
            name=file.name,
            size=file.size,
            type=OUTPUT_TYPE,
            dimensions=PhotoDimensions(width=encoded.width, height=encoded.height),
            compressed_size=len(data_url),
            original_type=file.content_type,
        )

    def recompress_data_url(self, data_url: str, quality: float = 0.5) -> str:
        """Re-encode an existing data URL at a lower JPEG quality."""
        return _reencode(_decode_data_url(data_url), quality).to_data_url()


def fit_within(
    width: int, height: int, max_width: int, max_height: int
) -> tuple[int, int]:
    """Scale a size down, keeping the aspect ratio, so both bounds hold."""
    scale = min(1.0, max_width / width, max_height / height)
    if scale >= 1.0:
        return width, height
    return max(1, round(width * scale)), max(1, round(height * scale))


def to_pillow_quality(quality: float) -> int:
    """Map a 0-1 quality onto Pillow's JPEG quality scale."""
    return max(1, min(_PILLOW_MAX_JPEG_QUALITY, round(quality * 100)))


def _reencode(
    content: bytes, quality: float, bounds: tuple[int, int] | None = None
) -> EncodedImage:
    try:
        with Image.open(io.BytesIO(content)) as opened:
            image = ImageOps.exif_transpose(opened)
            image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ProcessingError("Failed to load image") from exc

    if bounds is not None:
        size = fit_within(image.width, image.height, *bounds)
        if size != image.size:
            image = image.resize(size, Image.Resampling.LANCZOS)

    image = _flatten(image)
    buffer = io.BytesIO()
    try:
        image.save(
            buffer, format="JPEG", quality=to_pillow_quality(quality), optimize=True
        )
    except (OSError, ValueError) as exc:
        raise ProcessingError("Failed to encode image") from exc
    return EncodedImage(data=buffer.getvalue(), width=image.width, height=image.height)


def _flatten(image: Image.Image) -> Image.Image:
    """Drop transparency onto white, since JPEG has no alpha channel."""
    if image.mode in {"RGBA", "LA"} or (
        image.mode == "P" and "transparency" in image.info
    ):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _decode_data_url(data_url: str) -> bytes:
    header, _, payload = data_url.partition(",")
    if not header.startswith("data:") or ";base64" not in header or not payload:
        raise ProcessingError("Failed to recompress image: not a base64 data URL")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ProcessingError("Failed to recompress image") from exc
