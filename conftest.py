from datetime import datetime, timedelta, timezone

import pytest

from bookcatalog.book import Book
from bookcatalog.catalog import Catalog
from bookcatalog.services.borrow_ledger import BorrowLedger
from bookcatalog.services.event_store import SQLiteEventStore
from bookcatalog.services.user_lists import UserListsService

SAMPLE_BOOKS = [
    Book("Dune", "Frank Herbert", "Science Fiction", 1965, 15.75, book_id=7),
    Book("Neuromancer", "William Gibson", "Science Fiction", 1984, 13.20, book_id=8),
    Book("Foundation", "Isaac Asimov", "Science Fiction", 1951, 8.99, book_id=9),
    Book("Emma", "Jane Austen", "Romance", 1815, 6.50, book_id=3),
]


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def db_file(tmp_path, request):
    # Unique database file per test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def catalog(db_file):
    cat = Catalog(db_file=db_file)
    cat.import_books(Book.from_dict(b.to_dict()) for b in SAMPLE_BOOKS)
    yield cat
    cat.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(catalog, clock):
    return BorrowLedger(catalog, clock=clock)


@pytest.fixture
def persistent_ledger(catalog, clock, db_file):
    return BorrowLedger(catalog, event_store=SQLiteEventStore(db_file), clock=clock)


@pytest.fixture
def user_lists(catalog):
    return UserListsService(catalog)
