"""Bookkeeping of engine-initiated group writes."""

from __future__ import annotations

import time
from typing import Callable, Literal, Optional

WriteKind = Literal["title", "color"]


class WriteLedger:
    """Remember title and color values the engine wrote to groups.

    Hosts echo every group update back as an event. An echo that matches a
    recorded write is consumed and must not be treated as a user edit.
    Entries expire after ``ttl`` seconds so a lost echo cannot mask a later
    user edit forever.
    """

    def __init__(self, *, ttl: float = 30.0, clock: Callable[[], float] = time.time) -> None:
        self._ttl = ttl
        self._clock = clock
        self._pending: dict[tuple[int, WriteKind], list[tuple[str, float]]] = {}

    def record(self, group_id: int, *, title: Optional[str] = None, color: Optional[str] = None) -> None:
        now = self._clock()
        self._prune(now)
        expires = now + self._ttl
        if title is not None:
            self._pending.setdefault((group_id, "title"), []).append((title, expires))
        if color is not None:
            self._pending.setdefault((group_id, "color"), []).append((color, expires))

    def consume(self, group_id: int, kind: WriteKind, value: str) -> bool:
        """Return whether ``value`` matches a pending write, dropping the match."""
        self._prune(self._clock())
        key = (group_id, kind)
        entries = self._pending.get(key, [])
        for position, (recorded, _) in enumerate(entries):
            if recorded == value:
                del entries[position]
                if not entries:
                    del self._pending[key]
                return True
        return False

    def _prune(self, now: float) -> None:
        for key in list(self._pending):
            live = [entry for entry in self._pending[key] if entry[1] > now]
            if live:
                self._pending[key] = live
            else:
                del self._pending[key]

    def forget(self, group_id: int) -> None:
        for kind in ("title", "color"):
            self._pending.pop((group_id, kind), None)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._pending.values())


__all__ = ["WriteLedger", "WriteKind"]
