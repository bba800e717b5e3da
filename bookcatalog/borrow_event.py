from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BorrowAction(str, Enum):
    BORROW = "borrow"
    RETURN = "return"


@dataclass(frozen=True)
class BorrowEvent:
    """One borrow or return transition. Never mutated once recorded."""

    book_id: int
    user_id: str
    action: BorrowAction
    timestamp_utc: datetime

    def to_dict(self) -> dict:
        return {
            "book_id": self.book_id,
            "user_id": self.user_id,
            "action": self.action.value,
            "timestamp_utc": self.timestamp_utc.isoformat(),
        }

    @staticmethod
    def from_dict(data: dict) -> "BorrowEvent":
        timestamp = data["timestamp_utc"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return BorrowEvent(
            book_id=int(data["book_id"]),
            user_id=data["user_id"],
            action=BorrowAction(data["action"]),
            timestamp_utc=timestamp,
        )
