"""Flat filesystem cache for synthesized audio."""

from .models import CacheEntry
from .store import AudioCache

__all__ = ["AudioCache", "CacheEntry"]
