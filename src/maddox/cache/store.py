"""Content-addressed audio storage."""

import hashlib
import logging
import os
import tempfile
from pathlib import Path, PurePosixPath, PureWindowsPath

from .models import CacheEntry

logger = logging.getLogger(__name__)

AUDIO_SUFFIX = ".mp3"


def cache_key(text: str) -> str:
    """Return the hex MD5 digest used as the cache key for text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def sanitize_filename(filename: str) -> str:
    """Reduce a requested filename to its base name.

    Both separators are stripped so ``..\\..\\x`` is handled the same as
    ``../../x`` regardless of platform.
    """
    name = PureWindowsPath(PurePosixPath(filename).name).name
    if name in ("", ".", ".."):
        return ""
    return name


class AudioCache:
    """Filesystem cache mapping text to synthesized MP3 files.

    Files are named ``<md5(text)>.mp3`` and never expire. Writes go through a
    temporary file and an atomic rename, so concurrent misses for the same
    text both produce the same complete file.

    Example:
        cache = AudioCache(Path("cache/audio"))

        entry = cache.lookup("Hello there")
        if entry is None:
            audio = await synthesizer.synthesize("Hello there", voice_id)
            entry = cache.store("Hello there", audio)
        return entry.url
    """

    def __init__(self, cache_dir: Path) -> None:
        """Initialize the cache, creating its directory if needed.

        Args:
            cache_dir: Directory holding the cached audio files
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Audio cache at {self.cache_dir}")

    def entry_for(self, text: str) -> CacheEntry:
        key = cache_key(text)
        return CacheEntry(key=key, path=self.cache_dir / f"{key}{AUDIO_SUFFIX}")

    def lookup(self, text: str) -> CacheEntry | None:
        """Return the cached entry for text, or None on a cache miss."""
        entry = self.entry_for(text)
        if entry.path.is_file():
            logger.debug(f"Cache hit for {entry.filename}")
            return entry
        logger.debug(f"Cache miss for {entry.filename}")
        return None

    def store(self, text: str, audio: bytes) -> CacheEntry:
        """Persist synthesized audio for text.

        Args:
            text: Text the audio was synthesized from
            audio: MP3 bytes

        Returns:
            The stored cache entry

        Raises:
            ValueError: If audio is empty
            OSError: If the file cannot be written
        """
        if not audio:
            raise ValueError("No audio data provided")

        entry = self.entry_for(text)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.cache_dir, prefix=f".{entry.key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio)
            os.replace(tmp_name, entry.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(f"Cached {len(audio)} bytes of audio as {entry.filename}")
        return entry

    def resolve(self, filename: str) -> Path | None:
        """Map a requested filename to a file inside the cache directory.

        Only the base name of the request is used, so traversal attempts
        like ``../../etc/passwd`` can only ever name a file in the cache.

        Returns:
            Path to the file, or None if it does not exist
        """
        name = sanitize_filename(filename)
        if not name or name.startswith("."):
            return None

        path = self.cache_dir / name
        if not path.is_file():
            return None
        return path
