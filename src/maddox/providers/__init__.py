"""Adapters for the hosted speech, chat and synthesis services."""

from .base import ChatResponder, SpeechSynthesizer, SpeechTranscriber
from .elevenlabs import ElevenLabsSynthesizer
from .google_speech import GoogleSpeechTranscriber
from .openai_chat import OpenAIChatResponder

__all__ = [
    "ChatResponder",
    "ElevenLabsSynthesizer",
    "GoogleSpeechTranscriber",
    "OpenAIChatResponder",
    "SpeechSynthesizer",
    "SpeechTranscriber",
]
