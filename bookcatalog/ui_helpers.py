import json
import os
from typing import List

from rich.console import Console
from rich.table import Table

from bookcatalog.book import Book
from bookcatalog.borrow_event import BorrowEvent

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "BOOKCATALOG_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_list_result(books: List[Book]) -> None:
    """Print books according to the current output mode.
    - plain: 'ID - Title by Author (Year) $Price' lines, or 'No books in catalog.'
    - json: JSON array of book dicts
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in catalog.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Genre", style="white")
        table.add_column("Year", justify="right")
        table.add_column("Price", justify="right")
        for b in books:
            table.add_row(str(b.book_id), b.title, b.author, b.genre, str(b.published_year), f"{b.price:.2f}")
        _console.print(table)
    else:
        for b in books:
            print(f"{b.book_id} - {b.title} by {b.author} ({b.published_year}) ${b.price:.2f}")

def print_history_result(events: List[BorrowEvent]) -> None:
    mode = get_output_mode()

    if not events:
        print("No borrow history.")
        return

    if mode == "json":
        print(json.dumps([e.to_dict() for e in events], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Borrow history", header_style="bold cyan")
        table.add_column("When (UTC)", no_wrap=True)
        table.add_column("Action")
        table.add_column("User")
        for e in events:
            table.add_row(e.timestamp_utc.isoformat(), e.action.value, e.user_id)
        _console.print(table)
    else:
        for e in events:
            print(f"{e.timestamp_utc.isoformat()} {e.action.value} {e.user_id}")
