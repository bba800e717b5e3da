from __future__ import annotations


class Book:
    """Represents a single item in the catalog."""

    def __init__(self, title: str, author: str, genre: str, published_year: int, price: float,
                 book_id: int | None = None) -> None:
        self.book_id = book_id
        self.title = title.strip()
        self.author = author.strip()
        self.genre = genre.strip()
        self.published_year = published_year
        self.price = price

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.published_year})"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(book_id={self.book_id!r}, title={self.title!r})"

    def to_dict(self) -> dict:
        return {
            "book_id": self.book_id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "published_year": self.published_year,
            "price": self.price,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            book_id=data.get("book_id"),
            title=data["title"],
            author=data["author"],
            genre=data["genre"],
            published_year=int(data["published_year"]),
            price=float(data["price"]),
        )
