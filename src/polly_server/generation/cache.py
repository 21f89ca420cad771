"""Process-local resource cache for vocabulary banks and level rules.

``ResourceCache`` replaces ambient module-level dictionaries with an
explicit object owned by :class:`~polly_server.generation.service.NPCDialogueService`
and handed to both stores.  It provides:

- **Bounded size** — least-recently-used eviction once ``max_entries`` is
  reached (``0`` disables the bound).
- **Explicit invalidation** — ``invalidate(key)`` and ``clear()``.
- **Single-flight loading** — concurrent ``get_or_load`` calls for the
  same cold key share one in-flight task instead of issuing duplicate
  fetches.  A failed load is never cached; the exception is re-raised to
  every waiter and the next call retries.

Cached values are treated as immutable.  Callers store ``VocabularyBank``
or read-only ``LevelRuleTable`` objects and build new ones instead of
mutating entries.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from functools import partial
from typing import Any

logger = logging.getLogger(__name__)


class ResourceCache:
    """Bounded LRU cache with per-key single-flight loading.

    Attributes:
        _max_entries: Maximum number of stored entries (``0`` = unbounded).
        _entries:     Ordered storage; most recently used entries at the end.
        _inflight:    Key → task currently loading that key.
        hits:         Number of ``get_or_load`` calls served from storage.
        misses:       Number of loads actually started.
    """

    def __init__(self, max_entries: int = 0) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self._max_entries = max_entries
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._inflight: dict[Hashable, asyncio.Future[Any]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return a stored value without loading, refreshing its recency."""
        if key not in self._entries:
            return default
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, key: Hashable, value: Any) -> None:
        """Store ``value`` under ``key`` (last write wins), evicting if full."""
        self._entries[key] = value
        self._entries.move_to_end(key)
        if self._max_entries and len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("ResourceCache: evicted %r", evicted)

    def invalidate(self, key: Hashable) -> bool:
        """Drop ``key``; returns ``True`` if it was stored."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every stored entry and reset the counters."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key``, loading it at most once.

        If another coroutine is already loading ``key`` this call awaits
        the same task.  The shared task is shielded so that cancelling one
        waiter does not abort the load for the others.

        Args:
            key:    Cache key.
            loader: Zero-argument coroutine function producing the value.

        Returns:
            The cached or freshly loaded value.

        Raises:
            Whatever ``loader`` raises; nothing is cached in that case.
        """
        if key in self._entries:
            self.hits += 1
            return self.get(key)

        task = self._inflight.get(key)
        if task is None:
            self.misses += 1
            logger.debug("ResourceCache: loading %r", key)
            task = asyncio.ensure_future(loader())
            self._inflight[key] = task
            task.add_done_callback(partial(self._settle, key))
        return await asyncio.shield(task)

    def stats(self) -> dict[str, int]:
        """Return counters for diagnostics (``/health``)."""
        return {
            "entries": len(self._entries),
            "max_entries": self._max_entries,
            "inflight": len(self._inflight),
            "hits": self.hits,
            "misses": self.misses,
        }

    def _settle(self, key: Hashable, task: asyncio.Future[Any]) -> None:
        # Runs before any waiter resumes: the callback was registered
        # before asyncio.shield attached its own.
        self._inflight.pop(key, None)
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.debug("ResourceCache: load of %r failed; not cached", key)
            return
        self.put(key, task.result())
