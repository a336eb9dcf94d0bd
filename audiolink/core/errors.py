"""Error taxonomy for the audio storage core.

Each error carries the HTTP status the API layer answers with and a message
that is safe to hand back to the caller.
"""


class AudioLinkError(Exception):
    status_code: int = 500
    default_message: str = "An internal server error occurred."

    def __init__(self, message: str | None = None, *, headers: dict[str, str] | None = None):
        self.message = message or self.default_message
        self.headers = headers or {}
        super().__init__(self.message)


class ValidationError(AudioLinkError):
    status_code = 400
    default_message = "Invalid audio file metadata"


class NotFoundError(AudioLinkError):
    status_code = 404
    default_message = "File not found"


class BlobNotFoundError(NotFoundError):
    """Raised by blob stores when a key has no stored bytes."""


class ConflictError(AudioLinkError):
    status_code = 409
    default_message = "Audio file already exists"


class SizeLimitError(AudioLinkError):
    status_code = 413
    default_message = "File too large"


class AdmissionError(AudioLinkError):
    status_code = 415
    default_message = "Only audio files are allowed"


class RangeNotSatisfiableError(AudioLinkError):
    status_code = 416
    default_message = "Requested range not satisfiable"

    def __init__(self, size: int, message: str | None = None):
        super().__init__(message, headers={"Content-Range": f"bytes */{size}"})
        self.size = size


class StorageError(AudioLinkError):
    status_code = 500
    default_message = "Storage operation failed"

    def public_message(self, expose_details: bool) -> str:
        return self.message if expose_details else self.default_message
