from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import av

log = logging.getLogger(__name__)


def find_decoder(name: str) -> Optional[av.Codec]:
    """Look ``name`` up in FFmpeg's decoder registry; ``None`` when absent."""
    if not name:
        return None
    try:
        return av.Codec(name, "r")
    except ValueError:
        # UnknownCodecError derives from ValueError
        return None


@dataclass
class CodecCacheEntry:
    codec: Any
    last_used: float
    hits: int = 0


class CodecCache:
    """Codec name -> decoder descriptor, shared by every extraction.

    Descriptors are read-only, so a found entry can be handed to any number of
    concurrent decodes. Only the lookup-and-insert step is locked.
    """

    def __init__(self, lookup: Callable[[str], Any] = find_decoder):
        self._lookup = lookup
        self._entries: Dict[str, CodecCacheEntry] = {}
        self._lock = threading.Lock()
        self.lookups = 0

    def resolve(self, name: str):
        with self._lock:
            entry = self._entries.get(name)
            if entry is not None:
                entry.last_used = time.monotonic()
                entry.hits += 1
                log.debug("codec cache hit: %s (%d hits)", name, entry.hits)
                return entry.codec
            self.lookups += 1
            codec = self._lookup(name)
            if codec is None:
                log.debug("no decoder for codec %r", name)
                return None
            self._entries[name] = CodecCacheEntry(codec=codec, last_used=time.monotonic())
            log.debug("codec cache miss: %s resolved and cached", name)
            return codec

    def clear(self) -> None:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
        if n:
            log.info("Cleared %d cached decoder(s)", n)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def stats(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {
                k: {"hits": e.hits, "last_used": e.last_used}
                for k, e in self._entries.items()
            }
