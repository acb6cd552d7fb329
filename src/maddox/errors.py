"""Custom voice exceptions.

Server-side errors carry the HTTP status the API reports for them, so
route handlers can raise and let the application's exception handler build
the ``{success: false, message}`` envelope.
"""


class VoiceError(Exception):
    """Base exception for voice-related errors."""

    status_code: int = 500

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def to_payload(self) -> dict:
        """Return the JSON body reported to API callers."""
        return {"success": False, "message": self.message}


class InvalidRequestError(VoiceError):
    """Exception raised for missing or malformed client input."""

    status_code = 400


class NoSpeechError(VoiceError):
    """Exception raised when recognition finds no speech in the audio."""

    status_code = 422


class AudioNotFoundError(VoiceError):
    """Exception raised when a cached audio file does not exist."""

    status_code = 404


class RangeNotSatisfiableError(VoiceError):
    """Exception raised for a Range header outside the file size."""

    status_code = 416

    def __init__(self, message: str, size: int) -> None:
        super().__init__(message)
        self.size = size


class ProviderAuthError(VoiceError):
    """Exception raised for provider authentication failures.

    This typically occurs when:
    - API key or credentials file is missing
    - API key is invalid or revoked
    - Account has insufficient quota
    """

    pass


class ProviderAPIError(VoiceError):
    """Exception raised for provider communication errors.

    This typically occurs when:
    - Provider is unavailable (5xx errors)
    - Rate limits are exceeded (429 error)
    - Request was rejected (malformed audio, text too long)
    - Network connectivity issues
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.upstream_status = status_code
        self.detail = detail

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.detail is not None:
            payload["error"] = self.detail
        if self.upstream_status is not None:
            payload["statusCode"] = self.upstream_status
        return payload


class VoiceClientError(Exception):
    """Exception raised by the HTTP client when the server reports failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TranscriptionError(Exception):
    """Exception raised when no recognizer produced a transcript."""

    pass


class PlaybackError(RuntimeError):
    """Exception raised when audio cannot be played."""

    pass
