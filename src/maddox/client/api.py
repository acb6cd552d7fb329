"""HTTP client for the voice API."""

import logging
from typing import Any

import httpx

from ..conversation import ChatTurn
from ..errors import VoiceClientError

logger = logging.getLogger(__name__)

TRANSCRIBE_TIMEOUT = 30.0
SYNTHESIZE_TIMEOUT = 60.0
DEFAULT_TIMEOUT = 30.0


class VoiceApiClient:
    """Thin async wrapper over the /api/voice endpoints.

    Every method raises VoiceClientError when the server answers with
    ``success: false``; transport failures surface as ``httpx.HTTPError``.

    Example:
        async with VoiceApiClient("http://localhost:5000") as api:
            text = await api.transcribe(wav_bytes, "recording.wav", "audio/wav")
            reply = await api.chat(text)
            url = await api.synthesize(reply)
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server root, e.g. ``http://localhost:5000``
            http_client: Pre-built client (tests pass one with a mock
                transport); the API client owns clients it creates itself
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url, timeout=DEFAULT_TIMEOUT
        )

    async def __aenter__(self) -> "VoiceApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def absolute_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    @staticmethod
    def _parse(response: httpx.Response, default_message: str) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            raise VoiceClientError(
                f"{default_message} (HTTP {response.status_code})",
                response.status_code,
            ) from None

        if not payload.get("success"):
            raise VoiceClientError(
                payload.get("message") or default_message, response.status_code
            )
        return payload

    async def transcribe(self, audio: bytes, filename: str, mime_type: str) -> str:
        """Upload a recording and return its transcript."""
        logger.debug(f"Sending audio to server ({len(audio)} bytes, type: {mime_type})")
        response = await self._http.post(
            self.absolute_url("/api/voice/transcribe"),
            files={"audio": (filename, audio, mime_type)},
            timeout=TRANSCRIBE_TIMEOUT,
        )
        payload = self._parse(response, "Transcription failed")
        return payload.get("transcript", "")

    async def chat(self, message: str, history: list[ChatTurn] | None = None) -> str:
        """Return the assistant's reply."""
        body: dict[str, Any] = {"message": message}
        if history is not None:
            body["history"] = history
        response = await self._http.post(self.absolute_url("/api/voice/chat"), json=body)
        payload = self._parse(response, "Failed to get AI response")
        if not payload.get("response"):
            raise VoiceClientError("Failed to get AI response", response.status_code)
        return payload["response"]

    async def synthesize(
        self,
        text: str,
        voice_id: str | None = None,
        stability: float | None = None,
        similarity_boost: float | None = None,
    ) -> str:
        """Request synthesis and return the audio URL path."""
        body: dict[str, Any] = {"text": text}
        if voice_id is not None:
            body["voiceId"] = voice_id
        if stability is not None:
            body["stability"] = stability
        if similarity_boost is not None:
            body["similarity_boost"] = similarity_boost

        response = await self._http.post(
            self.absolute_url("/api/voice/synthesize"),
            json=body,
            timeout=SYNTHESIZE_TIMEOUT,
        )
        payload = self._parse(response, "Unknown error occurred")
        if not payload.get("audioUrl"):
            raise VoiceClientError("Unknown error occurred", response.status_code)
        return payload["audioUrl"]

    async def fetch_audio(self, audio_url: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
        """Download audio from a URL returned by synthesize."""
        response = await self._http.get(self.absolute_url(audio_url), timeout=timeout)
        response.raise_for_status()
        return response.content
