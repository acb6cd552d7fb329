"""FastAPI voice proxy server."""

from .app import create_app
from .services import VoiceServices

__all__ = ["VoiceServices", "create_app"]
