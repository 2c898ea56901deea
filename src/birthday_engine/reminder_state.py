from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from birthday_engine.timing import Timing

LOG_RETENTION_DAYS = 400


@dataclass
class ReminderLog:
    sent_keys: set[str] = field(default_factory=set)
    last_pruned: str | None = None

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> ReminderLog:
        if not data:
            return cls()
        sent_keys = {str(value) for value in data.get("sentKeys", [])}
        last_pruned = data.get("lastPruned")
        return cls(sent_keys=sent_keys, last_pruned=str(last_pruned) if last_pruned else None)

    def to_document(self) -> dict[str, Any]:
        return {"sentKeys": sorted(self.sent_keys), "lastPruned": self.last_pruned}


def dedupe_key(send_date: date, person_id: str, timing: Timing) -> str:
    return f"{send_date.isoformat()}|{person_id}|{timing.value}"


def prune_old_keys(log: ReminderLog, today: date, *, retention_days: int = LOG_RETENTION_DAYS) -> bool:
    if log.last_pruned == today.isoformat():
        return False

    cutoff = today - timedelta(days=retention_days)
    retained: set[str] = set()

    for key in log.sent_keys:
        send_date_str, _, _ = key.partition("|")
        try:
            send_date = date.fromisoformat(send_date_str)
        except ValueError:
            continue

        if send_date >= cutoff:
            retained.add(key)

    log.sent_keys = retained
    log.last_pruned = today.isoformat()
    return True
