"""Speech recognition strategies for recorded utterances.

Two implementations sit behind SpeechRecognizer: the server-proxied
recognizer (primary) and local in-process recognition (fallback).
RecognitionStrategy decides which one runs.
"""

import asyncio
import importlib.util
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..errors import TranscriptionError
from .api import VoiceApiClient

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "base.en"


@dataclass(frozen=True)
class RecordedAudio:
    """One captured utterance, encoded for upload."""

    data: bytes
    mime_type: str = "audio/wav"
    filename: str = "recording.wav"
    sample_rate: int = 48000

    @property
    def size(self) -> int:
        return len(self.data)


class SpeechRecognizer(ABC):
    """Turns a recorded utterance into text."""

    name: str = "recognizer"

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def recognize(self, audio: RecordedAudio) -> str:
        """Return the transcript of the utterance.

        Raises:
            Exception: Any failure; the strategy decides what happens next
        """
        pass


class ServerRecognizer(SpeechRecognizer):
    """Recognition through the server's /transcribe endpoint."""

    name = "server"

    def __init__(self, api: VoiceApiClient) -> None:
        self.api = api

    async def recognize(self, audio: RecordedAudio) -> str:
        return await self.api.transcribe(audio.data, audio.filename, audio.mime_type)


class LocalRecognizer(SpeechRecognizer):
    """In-process recognition with faster-whisper.

    The model is loaded on first use. The recognizer reports itself
    unavailable when faster-whisper is not installed.
    """

    name = "local"

    def __init__(
        self,
        model_size: str = DEFAULT_LOCAL_MODEL,
        device: str = "cpu",
        compute_type: str = "int8",
    ) -> None:
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self._model: Any | None = None

    @property
    def available(self) -> bool:
        return importlib.util.find_spec("faster_whisper") is not None

    def _load_model(self) -> Any:
        if self._model is None:
            from faster_whisper import WhisperModel

            logger.info(f"Loading local recognition model {self.model_size}")
            self._model = WhisperModel(
                self.model_size, device=self.device, compute_type=self.compute_type
            )
        return self._model

    async def recognize(self, audio: RecordedAudio) -> str:
        def _sync_transcribe() -> str:
            model = self._load_model()
            segments, _info = model.transcribe(io.BytesIO(audio.data), language="en")
            return " ".join(segment.text.strip() for segment in segments).strip()

        return await asyncio.to_thread(_sync_transcribe)


class RecognitionStrategy:
    """Primary recognizer with a single fallback attempt.

    The fallback runs once per utterance, only after the primary failed and
    only when the fallback reports itself available.
    """

    def __init__(
        self,
        primary: SpeechRecognizer,
        fallback: SpeechRecognizer | None = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback

    async def recognize(self, audio: RecordedAudio) -> str:
        """Transcribe with the primary recognizer, falling back once.

        Returns:
            Transcript, possibly empty when no speech was found

        Raises:
            TranscriptionError: If every usable recognizer failed
        """
        try:
            return await self.primary.recognize(audio)
        except asyncio.CancelledError:
            raise
        except Exception as primary_error:
            logger.error(f"{self.primary.name} recognition failed: {primary_error}")
            if self.fallback is None or not self.fallback.available:
                raise TranscriptionError(
                    f"Failed to transcribe audio: {primary_error}"
                ) from primary_error

            logger.info(f"Falling back to {self.fallback.name} recognition")
            try:
                return await self.fallback.recognize(audio)
            except asyncio.CancelledError:
                raise
            except Exception as fallback_error:
                logger.error(
                    f"{self.fallback.name} recognition failed: {fallback_error}"
                )
                raise TranscriptionError(
                    f"Failed to transcribe audio: {primary_error}"
                ) from fallback_error
