"""
Answer Cache

Memoizes answers per (workspace, normalized question), bounded in size
(least recently used entries evicted first) and in age (TTL). Entries for a
workspace are dropped when one of its documents changes.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from ..common.clock import Clock, utc_now

logger = logging.getLogger("insightops.retriever.answer_cache")


def cache_key(workspace_id: str, question: str) -> str:
    return f"{workspace_id}:{question.strip().lower()}"


@dataclass
class _Entry:
    value: Any
    stored_at: datetime


class AnswerCache:
    """In-process LRU + TTL cache of answer results."""

    def __init__(
        self,
        max_entries: int = 512,
        ttl: Optional[timedelta] = timedelta(hours=1),
        clock: Clock = utc_now,
    ):
        self._max_entries = max(1, max_entries)
        self._ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: _Entry) -> bool:
        return self._ttl is not None and self._clock() - entry.stored_at >= self._ttl

    def get(self, workspace_id: str, question: str) -> Optional[Any]:
        key = cache_key(workspace_id, question)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.value

    def put(self, workspace_id: str, question: str, value: Any) -> None:
        key = cache_key(workspace_id, question)
        self._entries[key] = _Entry(value=value, stored_at=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def invalidate_workspace(self, workspace_id: str) -> int:
        """Drop every entry for a workspace. Returns the number removed."""
        prefix = f"{workspace_id}:"
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.info("Invalidated %d cached answers for workspace %s", len(stale), workspace_id)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
