"""Audio playback package for maddox.

This package provides cross-platform audio playback functionality using pygame.
"""

from .player import AudioPlayer

__all__ = ["AudioPlayer"]
