import logging
import sqlite3
from threading import RLock
from typing import Iterable, List, Optional, Protocol

from bookcatalog.book import Book
from bookcatalog.database import get_db_connection, get_database_file, initialize_database, read_books_csv

logger = logging.getLogger(__name__)


class CatalogLookup(Protocol):
    """What the borrowing and list services need from the catalog."""

    def exists(self, book_id: int) -> bool: ...

    def get(self, book_id: int) -> Optional[Book]: ...


class Catalog:
    """Manages the collection of books and data persistence."""

    def __init__(self, db_file: Optional[str] = None, seed_csv: Optional[str] = None) -> None:
        self.db_file = db_file or get_database_file()
        self._lock = RLock()
        initialize_database(self.db_file)  # Ensure DB and tables exist
        self.books: List[Book] = self._load_books_from_db()
        if not self.books and seed_csv:
            imported = self.import_books(read_books_csv(seed_csv))
            logger.info(f"Seeded catalog with {imported} book(s) from {seed_csv}")

    # ------------------------- Lookup ------------------------- #
    def get(self, book_id: int) -> Optional[Book]:
        with self._lock:
            for book in self.books:
                if book.book_id == book_id:
                    return book
            return None

    def exists(self, book_id: int) -> bool:
        return self.get(book_id) is not None

    def list_books(self) -> List[Book]:
        with self._lock:
            return list(self.books)

    def get_all(self, author: Optional[str] = None, genre: Optional[str] = None, year: Optional[int] = None,
                page: int = 1, page_size: int = 10) -> List[Book]:
        """Filter by exact (case-insensitive) author/genre and year, order by price, then page."""
        with self._lock:
            query = list(self.books)

        if author and author.strip():
            query = [b for b in query if b.author.lower() == author.strip().lower()]
        if genre and genre.strip():
            query = [b for b in query if b.genre.lower() == genre.strip().lower()]
        if year is not None:
            query = [b for b in query if b.published_year == year]

        query.sort(key=lambda b: b.price)

        if page < 1:
            page = 1
        if page_size < 1:
            page_size = 10

        start = (page - 1) * page_size
        return query[start:start + page_size]

    def search_by_title(self, keyword: Optional[str]) -> List[Book]:
        """Case-insensitive substring search on title, ordered by price."""
        if keyword is None or not keyword.strip():
            return []
        needle = keyword.strip().lower()
        with self._lock:
            matches = [b for b in self.books if needle in b.title.lower()]
        return sorted(matches, key=lambda b: b.price)

    # ------------------------- Mutations ------------------------- #
    def add(self, book: Book) -> Book:
        """Insert a new book. The catalog assigns its id."""
        if not self._is_valid(book):
            raise ValueError("Invalid book data.")

        with self._lock:
            conn = get_db_connection(self.db_file)
            try:
                cursor = conn.execute(
                    "INSERT INTO books (title, author, genre, published_year, price) VALUES (?, ?, ?, ?, ?)",
                    (book.title, book.author, book.genre, book.published_year, book.price)
                )
                conn.commit()
                book.book_id = cursor.lastrowid
                self.books.append(book)  # Also update in-memory list
            finally:
                conn.close()
        logger.info(f"Book added {book.book_id} '{book.title}'")
        return book

    def update(self, book_id: int, updated: Book) -> Optional[Book]:
        """Replace the fields of an existing book. Returns None if it does not exist."""
        if not self._is_valid(updated):
            raise ValueError("Invalid book data.")

        with self._lock:
            existing = self.get(book_id)
            if existing is None:
                return None

            conn = get_db_connection(self.db_file)
            try:
                conn.execute(
                    "UPDATE books SET title = ?, author = ?, genre = ?, published_year = ?, price = ? WHERE book_id = ?",
                    (updated.title, updated.author, updated.genre, updated.published_year, updated.price, book_id)
                )
                conn.commit()
            finally:
                conn.close()

            existing.title = updated.title
            existing.author = updated.author
            existing.genre = updated.genre
            existing.published_year = updated.published_year
            existing.price = updated.price
        logger.info(f"Book updated {book_id}")
        return existing

    def delete(self, book_id: int) -> bool:
        with self._lock:
            if self.get(book_id) is None:
                return False

            conn = get_db_connection(self.db_file)
            try:
                cursor = conn.execute("DELETE FROM books WHERE book_id = ?", (book_id,))
                conn.commit()
                if cursor.rowcount == 0:
                    return False
                self.books = [b for b in self.books if b.book_id != book_id]
            finally:
                conn.close()
        logger.info(f"Book deleted {book_id}")
        return True

    def import_books(self, books: Iterable[Book]) -> int:
        """Insert books keeping their ids. Invalid books and duplicate ids are skipped."""
        imported = 0
        with self._lock:
            conn = get_db_connection(self.db_file)
            try:
                for book in books:
                    if not self._is_valid(book):
                        logger.warning(f"Skipping invalid book row: {book.to_dict()}")
                        continue
                    try:
                        cursor = conn.execute(
                            "INSERT INTO books (book_id, title, author, genre, published_year, price) VALUES (?, ?, ?, ?, ?, ?)",
                            (book.book_id, book.title, book.author, book.genre, book.published_year, book.price)
                        )
                    except sqlite3.IntegrityError:
                        logger.warning(f"Skipping duplicate book id {book.book_id}")
                        continue
                    book.book_id = cursor.lastrowid
                    self.books.append(book)
                    imported += 1
                conn.commit()
            finally:
                conn.close()
        return imported

    # ------------------------- Persistence ------------------------- #
    def _load_books_from_db(self) -> List[Book]:
        """Load all books from the SQLite database into memory."""
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                "SELECT book_id, title, author, genre, published_year, price FROM books ORDER BY book_id"
            )
            return [Book.from_dict(dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    # ------------------------- Utilities ------------------------- #
    @staticmethod
    def _is_valid(book: Book) -> bool:
        return (bool(book.title) and bool(book.author) and bool(book.genre)
                and book.published_year > 0 and book.price >= 0)

    def close(self) -> None:
        """Compatibility helper for tests.

        Connections are opened per operation, so there is nothing to release.
        """
        return None
