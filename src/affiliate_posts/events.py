from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List


LEVELS = ("success", "info", "error")


@dataclass(frozen=True)
class Notice:
    level: str
    message: str
    created_at: str

    def as_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "message": self.message, "createdAt": self.created_at}


class NoticeBoard:
    """Bounded queue of user-facing notices.

    Business code posts notices; the presentation layer drains and renders
    them. Oldest notices are dropped once `capacity` is reached.
    """

    def __init__(self, capacity: int = 50) -> None:
        self._items: Deque[Notice] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def post(self, level: str, message: str) -> Notice:
        if level not in LEVELS:
            level = "info"
        notice = Notice(
            level=level,
            message=message,
            created_at=datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        )
        with self._lock:
            self._items.append(notice)
        return notice

    def success(self, message: str) -> Notice:
        return self.post("success", message)

    def info(self, message: str) -> Notice:
        return self.post("info", message)

    def error(self, message: str) -> Notice:
        return self.post("error", message)

    def drain(self) -> List[Notice]:
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    def __len__(self) -> int:
        return len(self._items)
