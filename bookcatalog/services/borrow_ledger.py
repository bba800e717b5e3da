"""Borrowing/return state machine with an append-only history log.

Each book is either available or borrowed by exactly one user. The ledger
keeps three structures in step under one lock:

- the event log (append-only, insertion ordered)
- the current-holder mapping ``book_id -> user_id``
- the per-user holdings index ``normalized user_id -> {book_id}``

When an event store is supplied, the log is restored from it at start-up
and every new event is written to it before memory is touched.
"""

import logging
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Set, Tuple

from bookcatalog.book import Book
from bookcatalog.borrow_event import BorrowAction, BorrowEvent
from bookcatalog.catalog import CatalogLookup
from bookcatalog.outcome import FailureReason, InvalidIdentityError, Outcome, normalize_user_id

logger = logging.getLogger(__name__)


class EventStore(Protocol):
    def append(self, event: BorrowEvent) -> None: ...

    def load(self) -> List[BorrowEvent]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def replay_holders(events: Iterable[BorrowEvent]) -> Dict[int, str]:
    """Rebuild the current-holder mapping from events in insertion order."""
    holders: Dict[int, str] = {}
    for event in events:
        if event.action is BorrowAction.BORROW:
            holders[event.book_id] = event.user_id
        else:
            holders.pop(event.book_id, None)
    return holders


class BorrowLedger:
    """Mediates borrowing and returning of single-copy catalog items."""

    def __init__(self, catalog: CatalogLookup, event_store: Optional[EventStore] = None,
                 clock: Callable[[], datetime] = _utcnow) -> None:
        self._catalog = catalog
        self._store = event_store
        self._clock = clock
        self._lock = RLock()

        self._events: List[BorrowEvent] = []
        self._borrowed_by_book: Dict[int, str] = {}
        self._books_by_user: Dict[str, Set[int]] = {}

        if event_store is not None:
            self._restore(event_store.load())

    # ------------------------- Commands ------------------------- #
    def borrow(self, user_id: str, book_id: int) -> Outcome:
        try:
            key = normalize_user_id(user_id)
        except InvalidIdentityError as e:
            return Outcome.failure(FailureReason.INVALID_STATE, str(e))

        with self._lock:
            if not self._catalog.exists(book_id):
                return Outcome.failure(FailureReason.NOT_FOUND, "Book not found.")
            if book_id in self._borrowed_by_book:
                return Outcome.failure(FailureReason.CONFLICT, "Book is already borrowed.")

            self._record(BorrowEvent(book_id, user_id, BorrowAction.BORROW, self._clock()))
            self._borrowed_by_book[book_id] = user_id
            self._books_by_user.setdefault(key, set()).add(book_id)

        logger.info(f"Book borrowed {book_id} by {user_id}")
        return Outcome.success()

    def return_book(self, user_id: str, book_id: int) -> Outcome:
        try:
            key = normalize_user_id(user_id)
        except InvalidIdentityError as e:
            return Outcome.failure(FailureReason.INVALID_STATE, str(e))

        with self._lock:
            if not self._catalog.exists(book_id):
                return Outcome.failure(FailureReason.NOT_FOUND, "Book not found.")

            borrower = self._borrowed_by_book.get(book_id)
            if borrower is None:
                return Outcome.failure(FailureReason.CONFLICT, "Book is not currently borrowed.")
            # Only the borrower may return; there is no admin override.
            if normalize_user_id(borrower) != key:
                return Outcome.failure(FailureReason.FORBIDDEN, "Only the borrower can return this book.")

            self._record(BorrowEvent(book_id, user_id, BorrowAction.RETURN, self._clock()))
            del self._borrowed_by_book[book_id]
            self._discard_holding(key, book_id)

        logger.info(f"Book returned {book_id} by {user_id}")
        return Outcome.success()

    # ------------------------- Queries ------------------------- #
    def history_for_book(self, book_id: int) -> List[BorrowEvent]:
        with self._lock:
            events = [e for e in self._events if e.book_id == book_id]
        return sorted(events, key=lambda e: e.timestamp_utc)

    def history_for_user(self, user_id: str) -> List[BorrowEvent]:
        key = normalize_user_id(user_id)
        with self._lock:
            events = [e for e in self._events if normalize_user_id(e.user_id) == key]
        return sorted(events, key=lambda e: e.timestamp_utc)

    def currently_held_by(self, user_id: str) -> List[Book]:
        """Books the user holds right now, sorted by title. Deleted books are skipped."""
        key = normalize_user_id(user_id)
        with self._lock:
            ids = list(self._books_by_user.get(key, ()))
        books = [self._catalog.get(book_id) for book_id in ids]
        return sorted((b for b in books if b is not None), key=lambda b: b.title)

    def holder_of(self, book_id: int) -> Optional[str]:
        with self._lock:
            return self._borrowed_by_book.get(book_id)

    def current_holders(self) -> Dict[int, str]:
        with self._lock:
            return dict(self._borrowed_by_book)

    def events(self) -> Tuple[BorrowEvent, ...]:
        with self._lock:
            return tuple(self._events)

    # ------------------------- Helpers ------------------------- #
    def _record(self, event: BorrowEvent) -> None:
        # Durable append first: a storage error leaves memory untouched.
        if self._store is not None:
            self._store.append(event)
        self._events.append(event)

    def _discard_holding(self, key: str, book_id: int) -> None:
        held = self._books_by_user.get(key)
        if held is None:
            return
        held.discard(book_id)
        if not held:
            del self._books_by_user[key]

    def _restore(self, events: List[BorrowEvent]) -> None:
        self._events = list(events)
        self._borrowed_by_book = replay_holders(self._events)
        self._books_by_user = {}
        for book_id, holder in self._borrowed_by_book.items():
            self._books_by_user.setdefault(normalize_user_id(holder), set()).add(book_id)
        if events:
            logger.info(f"Restored {len(events)} borrow event(s); {len(self._borrowed_by_book)} book(s) on loan")
