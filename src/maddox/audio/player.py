"""Audio player for cross-platform audio playback using pygame."""

# ruff: noqa: E402
import os

# Suppress pygame's welcome message BEFORE any pygame import
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import warnings

# Suppress pygame's pkg_resources deprecation warning spam
warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import asyncio
import io
import logging
from pathlib import Path

import pygame

from ..errors import PlaybackError

logger = logging.getLogger(__name__)


class AudioPlayer:
    """Cross-platform audio player using pygame.

    The mixer is the playback context: ``ensure_ready`` opens it (once), and
    ``close`` releases it. Playback can be halted from the event loop while
    ``play_bytes_async`` is waiting in its worker thread.
    """

    def __init__(self) -> None:
        self._initialized = False
        self._stopped = False

    @property
    def is_ready(self) -> bool:
        return self._initialized

    def ensure_ready(self) -> None:
        """Initialize the pygame mixer if it is not running yet.

        Raises:
            PlaybackError: If pygame mixer fails to initialize.
        """
        if self._initialized:
            return
        try:
            pygame.mixer.init()
        except pygame.error as e:
            raise PlaybackError(f"Failed to initialize pygame audio mixer: {e}") from e
        self._initialized = True
        logger.debug("Audio mixer initialized")

    async def play_bytes_async(self, audio_data: bytes) -> bool:
        """Play audio from bytes through system speakers (async).

        Args:
            audio_data: Audio data in MP3 or WAV format.

        Returns:
            True if playback ran to the end, False if it was stopped.

        Raises:
            ValueError: If no audio data provided.
            PlaybackError: If audio playback fails.
        """
        if not audio_data:
            raise ValueError("No audio data provided")

        self.ensure_ready()
        self._stopped = False

        def _play_audio() -> None:
            """Synchronous audio playback in thread."""
            try:
                # Load and play audio from an in-memory file-like object
                pygame.mixer.music.load(io.BytesIO(audio_data))
                pygame.mixer.music.play()

                # Wait for playback to complete or be stopped
                clock = pygame.time.Clock()
                while pygame.mixer.music.get_busy() and not self._stopped:
                    clock.tick(10)

            except pygame.error as e:
                raise PlaybackError(f"Failed to play audio: {e}") from e

        # Run pygame operations in thread to avoid blocking event loop
        await asyncio.to_thread(_play_audio)
        return not self._stopped

    def stop(self) -> None:
        """Halt current playback."""
        self._stopped = True
        if self._initialized:
            try:
                pygame.mixer.music.stop()
            except pygame.error as e:
                logger.error(f"Error stopping playback: {e}")

    def close(self) -> None:
        """Stop playback and release the mixer."""
        self.stop()
        if self._initialized:
            pygame.mixer.quit()
            self._initialized = False
            logger.debug("Audio mixer released")

    def save_to_file(self, audio_data: bytes, filepath: str | Path) -> None:
        """Save audio bytes to a file.

        Args:
            audio_data: Audio data to save.
            filepath: Path where the audio file should be saved.

        Raises:
            ValueError: If no audio data provided.
            OSError: If file cannot be written.
        """
        if not audio_data:
            raise ValueError("No audio data provided")

        # Convert to Path object if string
        filepath = Path(filepath)

        try:
            # Create parent directories if they don't exist
            filepath.parent.mkdir(parents=True, exist_ok=True)

            # Write audio data to file
            filepath.write_bytes(audio_data)

        except OSError as e:
            raise OSError(f"Failed to save audio to {filepath}: {e}") from e
