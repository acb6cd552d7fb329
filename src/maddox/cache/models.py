"""Data models for the audio cache."""

from dataclasses import dataclass
from pathlib import Path

AUDIO_URL_PREFIX = "/api/voice/audio"


@dataclass(frozen=True)
class CacheEntry:
    """Cached synthesis result.

    Attributes:
        key: Hex MD5 digest of the synthesized text
        path: Location of the MP3 file on disk
    """

    key: str
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def url(self) -> str:
        return f"{AUDIO_URL_PREFIX}/{self.filename}"
