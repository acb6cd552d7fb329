"""Google Cloud Speech-to-Text provider implementation."""

import asyncio
import logging
from pathlib import Path

from google.cloud import speech

from ..errors import NoSpeechError, ProviderAPIError, ProviderAuthError
from .base import SpeechTranscriber

logger = logging.getLogger(__name__)

AudioEncoding = speech.RecognitionConfig.AudioEncoding

PRIMARY_SAMPLE_RATE = 48000
FALLBACK_SAMPLE_RATE = 16000


def encoding_for(mime_type: str) -> "speech.RecognitionConfig.AudioEncoding":
    """Guess the recognition encoding from an upload's MIME type.

    MP3 has no usable encoding in the v1 API, so OGG_OPUS is sent instead.
    """
    mime_type = (mime_type or "").lower()
    if "wav" in mime_type:
        return AudioEncoding.LINEAR16
    if "mp3" in mime_type or "mpeg" in mime_type:
        return AudioEncoding.OGG_OPUS
    return AudioEncoding.WEBM_OPUS


def join_transcript(response: "speech.RecognizeResponse") -> str:
    """Concatenate the top alternative of every result."""
    parts = []
    for result in response.results:
        if result.alternatives:
            parts.append(result.alternatives[0].transcript)
    return " ".join(parts).strip()


class GoogleSpeechTranscriber(SpeechTranscriber):
    """Google Speech-to-Text provider.

    A failed recognition call is retried once with WEBM_OPUS at 16 kHz. A
    call that succeeds with no results is reported as no speech straight
    away.
    """

    def __init__(
        self,
        credentials_file: Path | None = None,
        language_code: str = "en-US",
        client: speech.SpeechClient | None = None,
    ) -> None:
        """Initialize the transcriber.

        Args:
            credentials_file: Service account JSON; application default
                credentials are used when omitted
            language_code: BCP-47 language of the speech
            client: Pre-built SDK client (tests)
        """
        self._credentials_file = credentials_file
        self._language_code = language_code
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or (
            self._credentials_file is not None and self._credentials_file.exists()
        )

    def _get_client(self) -> speech.SpeechClient:
        if self._client is not None:
            return self._client
        try:
            if self._credentials_file is not None:
                self._client = speech.SpeechClient.from_service_account_file(
                    str(self._credentials_file)
                )
            else:
                self._client = speech.SpeechClient()
        except Exception as e:
            raise ProviderAuthError(
                f"Failed to initialize Google Speech client: {e}", e
            ) from e
        return self._client

    def primary_config(self, mime_type: str) -> speech.RecognitionConfig:
        return speech.RecognitionConfig(
            encoding=encoding_for(mime_type),
            sample_rate_hertz=PRIMARY_SAMPLE_RATE,
            language_code=self._language_code,
            model="default",
            enable_automatic_punctuation=True,
            use_enhanced=True,
            audio_channel_count=1,
        )

    def fallback_config(self) -> speech.RecognitionConfig:
        return speech.RecognitionConfig(
            encoding=AudioEncoding.WEBM_OPUS,
            sample_rate_hertz=FALLBACK_SAMPLE_RATE,
            language_code=self._language_code,
            model="default",
            enable_automatic_punctuation=True,
        )

    async def _recognize(
        self, config: speech.RecognitionConfig, audio: bytes
    ) -> speech.RecognizeResponse:
        client = self._get_client()
        recognition_audio = speech.RecognitionAudio(content=audio)
        return await asyncio.to_thread(
            client.recognize, config=config, audio=recognition_audio
        )

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        """Transcribe uploaded audio.

        Args:
            audio: Encoded audio bytes
            mime_type: Upload MIME type used to pick the encoding

        Returns:
            Transcript text

        Raises:
            NoSpeechError: If no speech was recognized
            ProviderAuthError: If the client cannot be created
            ProviderAPIError: If both recognition attempts fail
        """
        config = self.primary_config(mime_type)
        logger.info(
            f"Sending {len(audio)} bytes to Google Speech API "
            f"(mimetype: {mime_type}, encoding: {encoding_for(mime_type).name})"
        )

        try:
            response = await self._recognize(config, audio)
        except ProviderAuthError:
            raise
        except Exception as speech_error:
            logger.error(f"Google Speech API error: {speech_error}")
            return await self._transcribe_fallback(audio, speech_error)

        transcript = join_transcript(response)
        if not transcript:
            logger.info("Google Speech API returned no transcription")
            raise NoSpeechError("No speech detected in the audio")

        logger.info(f"Google Speech API returned transcription: {transcript}")
        return transcript

    async def _transcribe_fallback(
        self, audio: bytes, speech_error: Exception
    ) -> str:
        logger.info("Trying fallback Google Speech API request at 16 kHz")
        try:
            response = await self._recognize(self.fallback_config(), audio)
            transcript = join_transcript(response)
        except Exception as fallback_error:
            logger.error(f"Fallback Google Speech API error: {fallback_error}")
            transcript = ""

        if transcript:
            logger.info(f"Fallback Google Speech API returned transcription: {transcript}")
            return transcript

        # The original error is the one worth reporting
        if "unauthenticated" in str(speech_error).lower() or "401" in str(speech_error):
            raise ProviderAuthError(
                f"Authentication failed: {speech_error}", speech_error
            ) from speech_error
        raise ProviderAPIError(
            str(speech_error) or "Failed to transcribe audio",
            original_error=speech_error,
        ) from speech_error
