import csv
import logging
import os
import sqlite3
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from dotenv import load_dotenv

from bookcatalog.book import Book
from bookcatalog.config import settings

# Make sure .env is loaded before the database path is resolved.
load_dotenv()

logger = logging.getLogger(__name__)

CSV_HEADER = ["BookID", "Title", "Author", "Genre", "PublishedYear", "Price"]


def get_database_file() -> str:
    """Resolve the SQLite file to use.

    Precedence:
    1) BOOKCATALOG_DB_FILE from the environment (read on every call so tests can override it)
    2) settings.database_file
    """
    return os.environ.get("BOOKCATALOG_DB_FILE") or settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database."""
    conn = sqlite3.connect(db_file or get_database_file())
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the required tables if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                book_id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                genre TEXT NOT NULL,
                published_year INTEGER NOT NULL,
                price REAL NOT NULL
            )
        """)

        # Append-only borrow/return log; seq preserves insertion order
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS borrow_events (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                action TEXT NOT NULL CHECK(action IN ('borrow', 'return')),
                timestamp_utc TEXT NOT NULL
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author ON books(author)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrow_events_book_id ON borrow_events(book_id)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating tables when needed."""
    create_tables(db_file)


def read_books_csv(path: str) -> List[Book]:
    """Parse a catalog CSV file.

    The first line is a header. Rows with too few columns or unparseable
    numbers are skipped with a warning. A missing file yields an empty list.
    """
    if not os.path.exists(path):
        logger.warning(f"CSV not found at '{path}'. Starting with an empty catalog.")
        return []

    books: List[Book] = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            if not row or not any(cell.strip() for cell in row):
                continue
            parts = [cell.strip() for cell in row]
            if len(parts) < 6:
                logger.warning(f"Skipping line with insufficient columns: {row}")
                continue
            try:
                book_id = int(parts[0])
            except ValueError:
                logger.warning(f"Bad Id in line: {row}")
                continue
            try:
                year = int(parts[4])
            except ValueError:
                logger.warning(f"Bad Year in line: {row}")
                continue
            try:
                price = float(Decimal(parts[5]))
            except InvalidOperation:
                logger.warning(f"Bad Price in line: {row}")
                continue
            books.append(Book(parts[1], parts[2], parts[3], year, price, book_id=book_id))
    return books


def write_books_csv(path: str, books: Iterable[Book]) -> int:
    """Write books to a CSV file using the import header. Returns the row count."""
    count = 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for b in books:
            writer.writerow([b.book_id, b.title, b.author, b.genre, b.published_year, b.price])
            count += 1
    return count
