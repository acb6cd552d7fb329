"""Abstract base classes for the hosted AI services.

Route handlers only talk to these interfaces, so tests and alternative
deployments can substitute their own implementations.
"""

from abc import ABC, abstractmethod

from ..conversation import ChatTurn


class SpeechTranscriber(ABC):
    """Speech-to-text service."""

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        """Convert recorded speech to text.

        Args:
            audio: Encoded audio as uploaded by the client
            mime_type: MIME type reported for the upload

        Returns:
            Non-empty transcript

        Raises:
            NoSpeechError: If the service found no speech
            ProviderAPIError: If the service call failed
        """
        pass

    @property
    def configured(self) -> bool:
        return True


class ChatResponder(ABC):
    """Chat completion service."""

    @abstractmethod
    async def respond(self, messages: list[ChatTurn]) -> str:
        """Generate the assistant's reply to a conversation.

        Args:
            messages: Conversation including the system prompt

        Returns:
            Reply text

        Raises:
            ProviderAuthError: If the service is not configured
            ProviderAPIError: If the service call failed
        """
        pass

    @property
    def configured(self) -> bool:
        return True


class SpeechSynthesizer(ABC):
    """Text-to-speech service."""

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        voice_id: str,
        stability: float = 0.5,
        similarity_boost: float = 0.75,
    ) -> bytes:
        """Convert text to MP3 audio bytes.

        Raises:
            ProviderAuthError: If the service is not configured
            ProviderAPIError: If the service call failed
        """
        pass

    @property
    def configured(self) -> bool:
        return True
