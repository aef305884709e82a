"""Application exception types."""


class ImagePipelineError(Exception):
    """Base class for errors raised by the processing pipeline."""


class TableValidationError(ImagePipelineError):
    """Uploaded CSV is malformed or has an invalid row."""


class PersistenceError(ImagePipelineError):
    """A job store operation failed."""


class RequestNotFoundError(ImagePipelineError):
    """No request exists for the supplied identifier."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id} not found")


class InvalidTransitionError(ImagePipelineError):
    """Attempted a status change the request lifecycle does not allow."""

    def __init__(self, current: str, attempted: str) -> None:
        self.current = current
        self.attempted = attempted
        super().__init__(f"Cannot move request from {current} to {attempted}")


class FetchError(ImagePipelineError):
    """Downloading a source image failed."""


class EncodeError(ImagePipelineError):
    """Decoding or re-encoding a source image failed."""


class NotifyError(ImagePipelineError):
    """Completion webhook could not be delivered."""


__all__ = [
    "EncodeError",
    "FetchError",
    "ImagePipelineError",
    "InvalidTransitionError",
    "NotifyError",
    "PersistenceError",
    "RequestNotFoundError",
    "TableValidationError",
]
