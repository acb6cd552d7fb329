"""Voice chat client: capture, recognition, synthesis and the chat loop."""

from .api import VoiceApiClient
from .recognition import (
    LocalRecognizer,
    RecognitionStrategy,
    RecordedAudio,
    ServerRecognizer,
    SpeechRecognizer,
)
from .recorder import RecorderState, VoiceRecorder
from .retry import RetryPolicy, retry_async
from .session import ChatSession
from .voice_service import SynthesisResult, VoiceClient

__all__ = [
    "ChatSession",
    "LocalRecognizer",
    "RecognitionStrategy",
    "RecordedAudio",
    "RecorderState",
    "RetryPolicy",
    "ServerRecognizer",
    "SpeechRecognizer",
    "SynthesisResult",
    "VoiceApiClient",
    "VoiceClient",
    "VoiceRecorder",
    "retry_async",
]
