#!/usr/bin/env python3
"""
Property Edit Debouncer

Trailing per-item debounce for property edits.

Edits submitted within an item's debounce window are merged into one pending change set
(later values win, insertion order follows the edits) and released once the window
has passed without a further edit. Nothing is applied out of order: an item has at most
one pending change set, and flushing releases it whole.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from composer.core import get_logger

log = get_logger("debounce")


@dataclass
class PendingEdit:
    changes: Dict[str, Any] = field(default_factory=dict)
    deadline: float = 0.0
    edits: int = 0


class PropertyDebouncer:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._pending: Dict[str, PendingEdit] = {}

    def submit(self, item_id: str, changes: Mapping[str, Any], interval_ms: int, now: Optional[float] = None) -> PendingEdit:
        """Record an edit and (re)start the item's window."""
        now = self.clock() if now is None else now
        pending = self._pending.setdefault(item_id, PendingEdit())
        for key, value in changes.items():
            # Re-inserting moves the key to the end: merged order follows the edits
            pending.changes.pop(key, None)
            pending.changes[key] = value
        pending.deadline = now + max(0, interval_ms) / 1000.0
        pending.edits += 1
        return pending

    def pending(self, item_id: str) -> Optional[Dict[str, Any]]:
        entry = self._pending.get(item_id)
        return dict(entry.changes) if entry else None

    def __len__(self) -> int:
        return len(self._pending)

    def due(self, now: Optional[float] = None) -> List[Tuple[str, Dict[str, Any]]]:
        """Release every change set whose window has elapsed, oldest deadline first."""
        now = self.clock() if now is None else now
        ready = sorted(
            (entry.deadline, item_id) for item_id, entry in self._pending.items() if entry.deadline <= now
        )
        released = []
        for _, item_id in ready:
            entry = self._pending.pop(item_id)
            if entry.edits > 1:
                log.debug(f"[{item_id}] coalesced {entry.edits} edits")
            released.append((item_id, entry.changes))
        return released

    def flush(self, item_id: Optional[str] = None) -> List[Tuple[str, Dict[str, Any]]]:
        """Release pending change sets immediately (all, or one item's)."""
        if item_id is not None:
            entry = self._pending.pop(item_id, None)
            return [(item_id, entry.changes)] if entry else []
        released = [(i, e.changes) for i, e in sorted(self._pending.items(), key=lambda kv: kv[1].deadline)]
        self._pending.clear()
        return released

    def cancel(self, item_id: str) -> bool:
        return self._pending.pop(item_id, None) is not None
