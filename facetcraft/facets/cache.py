"""
Per-process memoization of synthesized artifacts.

Entries are keyed structurally by ``(facet type, artifact kind[, argument])``
and are derived from that single facet declaration only. Once stored an
entry is never mutated; clearing the table only forces a rebuild.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Hashable, Tuple

logger = logging.getLogger("facetcraft.facets.cache")

__all__ = ["SynthesisCache", "synthesis_cache"]


class SynthesisCache:
    def __init__(self):
        self._entries: Dict[Tuple[Hashable, ...], Any] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get_or_build(self, key: Tuple[Hashable, ...], builder: Callable[[], Any]) -> Any:
        """
        Return the entry for ``key``, building it on first request.

        The lock is re-entrant: building one facet's artifact may build the
        artifacts of the facets it nests.
        """
        try:
            value = self._entries[key]
            self.hits += 1
            return value
        except KeyError:
            pass

        with self._lock:
            if key in self._entries:
                self.hits += 1
                return self._entries[key]
            self.misses += 1
            value = builder()
            self._entries[key] = value
            logger.debug("Cached %s for %s", key[1], getattr(key[0], "__qualname__", key[0]))
            return value

    def discard(self, facet_type: type) -> None:
        """Drop every artifact of one facet type."""
        with self._lock:
            for key in [k for k in self._entries if k[0] is facet_type]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __contains__(self, key: Tuple[Hashable, ...]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


synthesis_cache = SynthesisCache()
