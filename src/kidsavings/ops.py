"""Operational utilities for KidSavings."""

from __future__ import annotations

import json
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Deque, Optional


class StructuredLogger:
    """Write JSON lines log entries for parent-side inspection."""

    def __init__(self, *, path: Path | None = None, max_entries: int = 1000) -> None:
        self.path = path
        self._entries: Deque[dict] = deque(maxlen=max_entries)

    def log(self, event_type: str, **fields: object) -> dict:
        entry = {"timestamp": datetime.now(timezone.utc).isoformat(), "event": event_type, **fields}
        self._entries.append(entry)
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, default=str, ensure_ascii=False) + "\n")
        return entry

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        if limit <= 0:
            return tuple()
        return tuple(self._entries)[-limit:]

    def events(self, event_type: Optional[str] = None) -> tuple[dict, ...]:
        if event_type is None:
            return tuple(self._entries)
        return tuple(entry for entry in self._entries if entry["event"] == event_type)


__all__ = ["StructuredLogger"]
