"""Text-to-speech client service with preload verification and retries."""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from ..config import DEFAULT_VOICE_ID
from ..errors import VoiceClientError
from .api import VoiceApiClient
from .retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)

PRELOAD_TIMEOUT = 10.0
NETWORK_RETRY_DELAY = 1.0
TRUNCATE_MIN_LENGTH = 200
TRUNCATE_RATIO = 0.75


class PreloadError(Exception):
    """Raised when synthesized audio cannot be downloaded or decoded."""

    pass


class _Rejected(Exception):
    """Server-reported synthesis failure, retryable with shorter text."""

    def __init__(self, message: str, retryable: bool) -> None:
        super().__init__(message)
        self.retryable = retryable


@dataclass
class SynthesisResult:
    """Outcome of text_to_speech.

    Attributes:
        success: Whether playable audio was produced
        audio_url: URL path returned by the server
        audio: Preloaded audio bytes
        error: Failure description when success is False
    """

    success: bool
    audio_url: str | None = None
    audio: bytes | None = None
    error: str | None = None


def looks_like_audio(data: bytes) -> bool:
    """Check for an MP3 (ID3 tag or MPEG frame sync) or WAV header."""
    if len(data) < 4:
        return False
    if data[:3] == b"ID3" or data[:4] == b"RIFF":
        return True
    return data[0] == 0xFF and (data[1] & 0xE0) == 0xE0


class VoiceClient:
    """Wraps the synthesize endpoint for the chat session.

    Synthesis is attempted up to three times. A preload failure retries
    straight away, a transport error retries after one second, and a
    server-reported failure retries only for text longer than 200
    characters, with the text cut to 75% of its length.
    """

    def __init__(
        self,
        api: VoiceApiClient,
        voice_id: str = DEFAULT_VOICE_ID,
        stability: float = 0.75,
        similarity_boost: float = 0.75,
        policy: RetryPolicy | None = None,
        preload_timeout: float = PRELOAD_TIMEOUT,
    ) -> None:
        self.api = api
        self.voice_id = voice_id
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.policy = policy or RetryPolicy(max_attempts=3, delay=NETWORK_RETRY_DELAY)
        self.preload_timeout = preload_timeout

    async def preload_audio(self, audio_url: str) -> bytes:
        """Download audio and verify it decodes, within the preload timeout.

        Raises:
            PreloadError: If the download fails, times out or is not audio
        """
        try:
            data = await asyncio.wait_for(
                self.api.fetch_audio(audio_url, timeout=self.preload_timeout),
                timeout=self.preload_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise PreloadError("Audio preload timed out") from e
        except httpx.HTTPError as e:
            raise PreloadError(f"Audio preload failed: {e}") from e

        if not looks_like_audio(data):
            raise PreloadError("Audio preload failed: response is not playable audio")

        logger.debug(f"Audio preloaded successfully ({len(data)} bytes)")
        return data

    async def text_to_speech(self, text: str) -> SynthesisResult:
        """Convert text to speech and preload the result.

        Args:
            text: Text to synthesize

        Returns:
            SynthesisResult; failures are reported in the result, not raised
        """
        current = text

        async def attempt(number: int) -> SynthesisResult:
            nonlocal current
            logger.info(
                f"Sending text to speech conversion request (attempt {number}): "
                f"{current[:50]}..."
            )
            try:
                audio_url = await self.api.synthesize(
                    current,
                    voice_id=self.voice_id,
                    stability=self.stability,
                    similarity_boost=self.similarity_boost,
                )
            except VoiceClientError as e:
                logger.error(f"Voice synthesis failed: {e}")
                if len(current) > TRUNCATE_MIN_LENGTH:
                    current = current[: int(len(current) * TRUNCATE_RATIO)]
                    logger.info("Text might be too long, trying with a shorter version...")
                    raise _Rejected(str(e), retryable=True) from e
                raise _Rejected(str(e), retryable=False) from e

            audio = await self.preload_audio(audio_url)
            return SynthesisResult(success=True, audio_url=audio_url, audio=audio)

        def should_retry(e: Exception) -> bool:
            if isinstance(e, _Rejected):
                return e.retryable
            return isinstance(e, (PreloadError, httpx.HTTPError))

        def delay_for(e: Exception, retry: int) -> float:
            if isinstance(e, httpx.HTTPError):
                return self.policy.delay_before(retry)
            return 0.0

        def on_retry(e: Exception, retry: int) -> None:
            logger.info(f"Retrying text-to-speech (attempt {retry + 1}) after: {e}")

        try:
            return await retry_async(
                attempt,
                self.policy,
                should_retry=should_retry,
                delay_for=delay_for,
                on_retry=on_retry,
            )
        except PreloadError as e:
            logger.error(f"Voice audio preload failed: {e}")
            return SynthesisResult(
                success=False, error="Failed to preload audio after multiple attempts"
            )
        except _Rejected as e:
            return SynthesisResult(success=False, error=str(e) or "Unknown error occurred")
        except httpx.HTTPError as e:
            logger.error(f"Voice synthesis error: {e}")
            return SynthesisResult(
                success=False, error=str(e) or "Failed to synthesize speech"
            )
