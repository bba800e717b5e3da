from typing import List, Optional

from bookcatalog.borrow_event import BorrowEvent
from bookcatalog.database import get_db_connection, get_database_file, initialize_database


class SQLiteEventStore:
    """Durable append-only log of borrow events.

    Rows are only ever inserted. ``seq`` keeps insertion order, so ``load``
    returns events exactly as they were appended.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or get_database_file()
        initialize_database(self.db_file)

    def append(self, event: BorrowEvent) -> None:
        conn = get_db_connection(self.db_file)
        try:
            conn.execute(
                "INSERT INTO borrow_events (book_id, user_id, action, timestamp_utc) VALUES (?, ?, ?, ?)",
                (event.book_id, event.user_id, event.action.value, event.timestamp_utc.isoformat())
            )
            conn.commit()
        finally:
            conn.close()

    def load(self) -> List[BorrowEvent]:
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                "SELECT book_id, user_id, action, timestamp_utc FROM borrow_events ORDER BY seq"
            )
            return [BorrowEvent.from_dict(dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    def history_for_book(self, book_id: int) -> List[BorrowEvent]:
        """Events for one book, read straight from storage (used by the CLI)."""
        return [e for e in self.load() if e.book_id == book_id]
