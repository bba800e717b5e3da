import pytest

from bookcatalog.book import Book
from bookcatalog.catalog import Catalog
from bookcatalog.database import read_books_csv, write_books_csv


def test_get_and_exists(catalog):
    assert catalog.exists(7)
    assert catalog.get(7).title == "Dune"
    assert not catalog.exists(999)
    assert catalog.get(999) is None


def test_add_assigns_new_id_and_persists(catalog, db_file):
    created = catalog.add(Book("Hyperion", "Dan Simmons", "Science Fiction", 1989, 12.0))
    assert created.book_id == 10  # one past the highest imported id

    reopened = Catalog(db_file=db_file)
    assert reopened.get(created.book_id).title == "Hyperion"


def test_add_invalid_book_raises(catalog):
    with pytest.raises(ValueError, match="Invalid book data."):
        catalog.add(Book("   ", "Someone", "Genre", 2000, 1.0))
    with pytest.raises(ValueError):
        catalog.add(Book("Title", "Someone", "Genre", 2000, -1.0))


def test_update_book(catalog, db_file):
    updated = catalog.update(7, Book("Dune Messiah", "Frank Herbert", "Science Fiction", 1969, 11.0))
    assert updated.book_id == 7
    assert updated.title == "Dune Messiah"

    reopened = Catalog(db_file=db_file)
    assert reopened.get(7).published_year == 1969


def test_update_missing_returns_none(catalog):
    assert catalog.update(999, Book("X", "Y", "Z", 2000, 1.0)) is None


def test_delete(catalog):
    assert catalog.delete(7) is True
    assert catalog.delete(7) is False
    assert not catalog.exists(7)


def test_get_all_filters_sorts_and_pages(catalog):
    books = catalog.get_all(genre="science fiction")
    assert [b.title for b in books] == ["Foundation", "Neuromancer", "Dune"]  # by price

    assert [b.title for b in catalog.get_all(author="JANE AUSTEN")] == ["Emma"]
    assert [b.title for b in catalog.get_all(year=1965)] == ["Dune"]

    assert [b.title for b in catalog.get_all(page=2, page_size=2)] == ["Neuromancer", "Dune"]
    # Non-positive paging values fall back to defaults
    assert len(catalog.get_all(page=0, page_size=0)) == 4


def test_search_by_title(catalog):
    assert [b.title for b in catalog.search_by_title("UN")] == ["Foundation", "Dune"]
    assert catalog.search_by_title("   ") == []
    assert catalog.search_by_title(None) == []


def test_seed_from_csv_only_when_empty(tmp_path):
    csv_file = tmp_path / "book.csv"
    csv_file.write_text(
        "BookID,Title,Author,Genre,PublishedYear,Price\n"
        "1,Dune,Frank Herbert,Science Fiction,1965,15.75\n"
        "two,Bad Id,Nobody,None,2000,1.00\n"
        "3,Short,Row\n"
        "4,Bad Year,Someone,Genre,abc,1.00\n"
        "5,Bad Price,Someone,Genre,2000,cheap\n"
        "\n"
        "6,Emma,Jane Austen,Romance,1815,6.50\n",
        encoding="utf-8",
    )
    db = str(tmp_path / "seed.db")

    seeded = Catalog(db_file=db, seed_csv=str(csv_file))
    assert [b.book_id for b in seeded.list_books()] == [1, 6]

    seeded.delete(6)
    again = Catalog(db_file=db, seed_csv=str(csv_file))
    assert [b.book_id for b in again.list_books()] == [1]


def test_missing_seed_csv_gives_empty_catalog(tmp_path):
    cat = Catalog(db_file=str(tmp_path / "empty.db"), seed_csv=str(tmp_path / "nope.csv"))
    assert cat.list_books() == []


def test_csv_export_then_import(catalog, tmp_path):
    out = tmp_path / "export.csv"
    assert write_books_csv(str(out), catalog.list_books()) == 4

    books = read_books_csv(str(out))
    assert sorted(b.book_id for b in books) == [3, 7, 8, 9]

    fresh = Catalog(db_file=str(tmp_path / "fresh.db"))
    assert fresh.import_books(books) == 4
    # Importing the same ids again skips duplicates
    assert fresh.import_books(read_books_csv(str(out))) == 0
