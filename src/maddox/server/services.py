"""Service objects shared by the voice routes.

One VoiceServices instance is built per application and stored on
``app.state``; route handlers never reach for module-level clients.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..cache import AudioCache
from ..config import MaddoxConfig
from ..conversation import ChatTurn, build_chat_messages
from ..errors import InvalidRequestError, ProviderAPIError
from ..providers import (
    ElevenLabsSynthesizer,
    GoogleSpeechTranscriber,
    OpenAIChatResponder,
)
from ..providers.base import ChatResponder, SpeechSynthesizer, SpeechTranscriber

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
MIN_AUDIO_BYTES = 1000


@dataclass
class VoiceServices:
    """Provider adapters, audio cache and defaults used by the routes."""

    transcriber: SpeechTranscriber
    chat: ChatResponder
    synthesizer: SpeechSynthesizer
    cache: AudioCache
    default_voice_id: str

    @classmethod
    def from_config(cls, config: MaddoxConfig) -> "VoiceServices":
        """Build production services from configuration."""
        credentials = config.credentials
        return cls(
            transcriber=GoogleSpeechTranscriber(
                credentials_file=credentials.google_credentials
            ),
            chat=OpenAIChatResponder(api_key=credentials.openai_api_key),
            synthesizer=ElevenLabsSynthesizer(api_key=credentials.elevenlabs_api_key),
            cache=AudioCache(Path(config.cache.dir)),
            default_voice_id=config.voice.voice_id,
        )

    def log_status(self) -> None:
        logger.info("Voice services initialized with:")
        logger.info(
            f"- ElevenLabs API Key: {'Present' if self.synthesizer.configured else 'Missing'}"
        )
        logger.info(f"- Default Voice ID: {self.default_voice_id}")
        logger.info(
            f"- OpenAI API Key: {'Present' if self.chat.configured else 'Missing'}"
        )
        logger.info(
            "- Google Speech API credentials: "
            f"{'Present' if self.transcriber.configured else 'Missing'}"
        )
        logger.info(f"- Audio cache: {self.cache.cache_dir}")

    def provider_status(self) -> dict[str, bool]:
        return {
            "speech": self.transcriber.configured,
            "chat": self.chat.configured,
            "synthesis": self.synthesizer.configured,
        }

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        """Validate an upload and transcribe it.

        Raises:
            InvalidRequestError: If the upload is too large or too small
            NoSpeechError: If no speech was recognized
            ProviderAPIError: If recognition failed
        """
        if len(audio) > MAX_UPLOAD_BYTES:
            raise InvalidRequestError("Audio file exceeds the 5MB upload limit")
        if len(audio) < MIN_AUDIO_BYTES:
            logger.info("Audio file too small, likely contains no speech")
            raise InvalidRequestError("Audio file too small, likely contains no speech")
        return await self.transcriber.transcribe(audio, mime_type)

    async def reply(self, message: str, history: list[ChatTurn] | None) -> str:
        messages = build_chat_messages(message, history)
        return await self.chat.respond(messages)

    async def synthesize(
        self,
        text: str,
        voice_id: str | None = None,
        stability: float | None = None,
        similarity_boost: float | None = None,
    ) -> tuple[str, bool]:
        """Return the audio URL for text, synthesizing on a cache miss.

        Returns:
            Tuple of (audio URL, whether it was a cache hit)

        Raises:
            ProviderAuthError: If synthesis is needed but not configured
            ProviderAPIError: If synthesis or saving the file failed
        """
        entry = self.cache.lookup(text)
        if entry is not None:
            logger.info(f"Using cached audio file: {entry.path}")
            return entry.url, True

        voice = voice_id or self.default_voice_id
        logger.info(f"Synthesizing speech with voice {voice}: {text[:50]}...")
        audio = await self.synthesizer.synthesize(
            text,
            voice,
            stability=stability if stability is not None else 0.5,
            similarity_boost=similarity_boost if similarity_boost is not None else 0.75,
        )

        try:
            entry = self.cache.store(text, audio)
        except OSError as e:
            logger.error(f"Error saving audio file: {e}")
            raise ProviderAPIError("Error saving audio file", None, e, detail=str(e)) from e

        return entry.url, False
