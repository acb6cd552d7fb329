"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import logging
from dataclasses import dataclass

from elevenlabs.client import ElevenLabs

from ..errors import ProviderAPIError, ProviderAuthError
from .base import SpeechSynthesizer

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "eleven_monolingual_v1"


@dataclass
class VoiceSettings:
    """Voice generation settings.

    Args:
        stability: Voice stability (0.0-1.0)
        similarity_boost: Voice similarity boost (0.0-1.0)
    """

    stability: float = 0.5
    similarity_boost: float = 0.75

    def __post_init__(self) -> None:
        """Validate voice settings."""
        if not 0.0 <= self.stability <= 1.0:
            raise ValueError("stability must be between 0.0 and 1.0")
        if not 0.0 <= self.similarity_boost <= 1.0:
            raise ValueError("similarity_boost must be between 0.0 and 1.0")

    def to_dict(self) -> dict[str, float]:
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
        }


def _map_error(e: Exception) -> Exception:
    status = getattr(e, "status_code", None)
    text = str(e)
    if status == 401 or "unauthorized" in text.lower() or "401" in text:
        return ProviderAuthError(f"Authentication failed: {e}", e)
    if status == 429 or "429" in text:
        return ProviderAPIError(
            "Error calling voice service API", 429, e, detail=f"Rate limit exceeded: {e}"
        )
    return ProviderAPIError("Error calling voice service API", status, e, detail=text)


class ElevenLabsSynthesizer(SpeechSynthesizer):
    """ElevenLabs TTS provider.

    The SDK client is created on first use so a server without a key can
    still answer cache hits.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_id: str = DEFAULT_MODEL_ID,
        client: ElevenLabs | None = None,
    ) -> None:
        """Initialize ElevenLabs provider.

        Args:
            api_key: ElevenLabs API key
            model_id: ElevenLabs model ID to use
            client: Pre-built SDK client (tests)
        """
        self._api_key = api_key
        self._model_id = model_id
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> ElevenLabs:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise ProviderAuthError("ElevenLabs API Key is not configured")
        try:
            self._client = ElevenLabs(api_key=self._api_key)
        except Exception as e:
            raise ProviderAuthError(f"Failed to initialize ElevenLabs client: {e}", e) from e
        return self._client

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        stability: float = 0.5,
        similarity_boost: float = 0.75,
    ) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            text: Text to convert to speech
            voice_id: Voice ID to use for synthesis
            stability: Voice stability setting
            similarity_boost: Voice similarity setting

        Returns:
            Audio data as bytes (MP3 format)

        Raises:
            ProviderAPIError: If API call fails or returns no audio
            ProviderAuthError: If the key is missing or rejected
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        client = self._get_client()
        voice_settings = VoiceSettings(
            stability=stability, similarity_boost=similarity_boost
        )

        # Run synchronous ElevenLabs client in thread to avoid blocking event loop
        def _sync_convert() -> bytes:
            audio_generator = client.text_to_speech.convert(
                text=text,
                voice_id=voice_id,
                model_id=self._model_id,
                output_format="mp3_44100_128",
                voice_settings=voice_settings.to_dict(),
            )
            # Collect all audio chunks
            return b"".join(audio_generator)

        logger.debug(f"Requesting ElevenLabs synthesis with voice {voice_id}")
        try:
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except Exception as e:
            logger.error(f"ElevenLabs API error: {e}")
            raise _map_error(e) from e

        if not audio_bytes:
            raise ProviderAPIError("Received empty audio data from voice service")

        logger.debug(f"Received audio data: {len(audio_bytes)} bytes")
        return audio_bytes
