"""
Process-wide cache of completed segment translations.

Keys are (segment text, target language code), so the same text is never
served across languages. Only non-empty translations are stored.
"""
import logging
import threading
from collections import OrderedDict
from typing import Dict, Optional, Tuple

from epub_translator.config import TRANSLATION_CACHE_MAX_ENTRIES

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


class TranslationCache:
    """
    Unbounded translation cache.

    Thread-safe so that concurrent jobs of the web server, each on its own
    event loop, can share one instance.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, str] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(content: str, language: str) -> CacheKey:
        return (content, language)

    def get(self, content: str, language: str) -> Optional[str]:
        """Return the cached translation, or None on a miss."""
        key = self.make_key(content, language)
        with self._lock:
            translation = self._lookup(key)
            if translation is None:
                self.misses += 1
            else:
                self.hits += 1
            return translation

    def set(self, content: str, language: str, translation: str) -> None:
        """Store a translation. Empty translations are ignored."""
        if not translation:
            return
        key = self.make_key(content, language)
        with self._lock:
            self._store(key, translation)

    def _lookup(self, key: CacheKey) -> Optional[str]:
        return self._entries.get(key)

    def _store(self, key: CacheKey, translation: str) -> None:
        self._entries[key] = translation

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def get_stats(self) -> dict:
        with self._lock:
            return {
                'entries': len(self._entries),
                'hits': self.hits,
                'misses': self.misses,
            }


class BoundedTranslationCache(TranslationCache):
    """Translation cache evicting the least recently used entry past ``max_entries``."""

    def __init__(self, max_entries: int):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        super().__init__()
        self.max_entries = max_entries
        self._entries: 'OrderedDict[CacheKey, str]' = OrderedDict()

    def _lookup(self, key: CacheKey) -> Optional[str]:
        translation = self._entries.get(key)
        if translation is not None:
            self._entries.move_to_end(key)
        return translation

    def _store(self, key: CacheKey, translation: str) -> None:
        self._entries[key] = translation
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)


def create_translation_cache(max_entries: int = TRANSLATION_CACHE_MAX_ENTRIES) -> TranslationCache:
    """Build an unbounded cache for ``max_entries <= 0``, otherwise an LRU cache."""
    if max_entries and max_entries > 0:
        return BoundedTranslationCache(max_entries)
    return TranslationCache()


_translation_cache: Optional[TranslationCache] = None
_translation_cache_lock = threading.Lock()


def get_translation_cache() -> TranslationCache:
    """Return the process-wide translation cache, creating it on first use."""
    global _translation_cache
    with _translation_cache_lock:
        if _translation_cache is None:
            _translation_cache = create_translation_cache()
            logger.debug("Created process-wide translation cache (max entries: %s)",
                         TRANSLATION_CACHE_MAX_ENTRIES or "unbounded")
        return _translation_cache
