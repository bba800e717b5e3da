import os
import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

from bookcatalog.catalog import Catalog
from bookcatalog.config import settings
from bookcatalog.database import read_books_csv, write_books_csv
from bookcatalog.logging_config import setup_logging
from bookcatalog.services.event_store import SQLiteEventStore
from bookcatalog.ui_helpers import print_history_result, print_list_result, set_output_mode

console = Console()

app = typer.Typer(help="Book Catalog CLI")


def _get_catalog() -> Catalog:
    return Catalog(seed_csv=os.getenv("BOOKCATALOG_SEED_CSV", settings.seed_csv))


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output mode: plain, json or rich"
    ),
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level"),
):
    setup_logging(log_level)
    if output:
        set_output_mode(output)


@app.command("list")
def cli_list(
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Filter by author"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Filter by genre"),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Filter by published year"),
    page: int = typer.Option(1, "--page", help="Page number"),
    page_size: int = typer.Option(settings.default_page_size, "--page-size", help="Books per page"),
):
    """List books ordered by price."""
    catalog = _get_catalog()
    print_list_result(catalog.get_all(author=author, genre=genre, year=year, page=page, page_size=page_size))


@app.command("search")
def cli_search(title: str = typer.Argument(..., help="Title keyword")):
    """Search books by title keyword."""
    if not title.strip():
        console.print("[bold red]A non-empty title keyword is required.[/]")
        raise typer.Exit(code=1)
    results = _get_catalog().search_by_title(title)
    if not results:
        print("No books matched the title keyword.")
        return
    print_list_result(results)


@app.command("find")
def cli_find(book_id: int):
    """Show a single book."""
    book = _get_catalog().get(book_id)
    if book is None:
        print(f"Book with ID {book_id} not found.")
        return
    print("Book Found")
    print(f"Title: {book.title}")
    print(f"Author: {book.author}")
    print(f"Genre: {book.genre}")
    print(f"Year: {book.published_year}")
    print(f"Price: {book.price:.2f}")


@app.command("history")
def cli_history(book_id: int):
    """Show the persisted borrow/return history of a book."""
    catalog = _get_catalog()
    store = SQLiteEventStore(catalog.db_file)
    events = sorted(store.history_for_book(book_id), key=lambda e: e.timestamp_utc)
    print_history_result(events)


@app.command("import-csv")
def cli_import_csv(path: str):
    """Import books from a CSV file (BookID,Title,Author,Genre,PublishedYear,Price)."""
    if not os.path.exists(path):
        console.print(f"[bold red]File not found: {path}[/]")
        raise typer.Exit(code=1)
    imported = _get_catalog().import_books(read_books_csv(path))
    print(f"Imported {imported} book(s).")


@app.command("export-csv")
def cli_export_csv(path: str):
    """Export the catalog to a CSV file."""
    count = write_books_csv(path, _get_catalog().list_books())
    print(f"Exported {count} book(s) to {path}.")


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host", help="Bind address"),
    port: int = typer.Option(settings.api_port, "--port", help="Bind port"),
):
    """Run the HTTP API with uvicorn."""
    print(f"Starting API on http://{host}:{port}")
    cmd = [sys.executable, "-m", "uvicorn", "bookcatalog.api:app", "--host", host, "--port", str(port)]
    try:
        subprocess.run(cmd, check=False)
    except KeyboardInterrupt:
        print("Server stopped.")


if __name__ == "__main__":
    app()
