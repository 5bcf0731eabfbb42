"""Error taxonomy for portfolio operations."""


class FrameGalleryError(Exception):
    """Base error for the application."""


class ValidationError(FrameGalleryError):
    """Bad user input or a limit that would be exceeded."""


class NetworkError(FrameGalleryError):
    """Backend unreachable or answered with a non-success status."""


class UploadError(NetworkError):
    """Image upload rejected or failed in transit."""


class ProcessingError(FrameGalleryError):
    """Image could not be read, decoded or re-encoded."""


class QuotaExceededError(FrameGalleryError):
    """Local storage cannot hold the data being written."""
