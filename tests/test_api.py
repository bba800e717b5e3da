import importlib
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from bookcatalog.config import settings

SEED_CSV = (
    "BookID,Title,Author,Genre,PublishedYear,Price\n"
    "7,Dune,Frank Herbert,Science Fiction,1965,15.75\n"
    "8,Neuromancer,William Gibson,Science Fiction,1984,13.20\n"
    "9,Foundation,Isaac Asimov,Science Fiction,1951,8.99\n"
    "3,Emma,Jane Austen,Romance,1815,6.50\n"
)


@pytest.fixture
def api(tmp_path, monkeypatch, request):
    # Create a unique per-test DB and seed file, then reload the api module so
    # its module-level services pick them up.
    seed = tmp_path / "book.csv"
    seed.write_text(SEED_CSV, encoding="utf-8")
    monkeypatch.setenv("BOOKCATALOG_DB_FILE", str(tmp_path / f"api_test_{request.node.name}.db"))
    monkeypatch.setenv("BOOKCATALOG_SEED_CSV", str(seed))

    import bookcatalog.api as api_module
    return importlib.reload(api_module)


@pytest.fixture
def client(api):
    with TestClient(api.app) as test_client:
        yield test_client


def _auth(api, username, role="User"):
    return {"Authorization": f"Bearer {api.token_service.create(username, role)}"}


# --- Health & auth ---

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["total_books"] == 4
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_login_success(client):
    response = client.post("/api/auth/login", json={"username": settings.admin_username,
                                                    "password": settings.admin_password})
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "Admin"
    assert body["username"] == settings.admin_username
    assert body["token"]


def test_login_invalid_credentials(client):
    response = client.post("/api/auth/login", json={"username": settings.user_username, "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid username or password"


def test_missing_or_bad_token_is_unauthorized(client, api):
    assert client.get("/api/users/alice/favorites").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/api/users/alice/favorites", headers=bad).status_code == 401

    expired = api.token_service.create("alice", "User", expires_delta=timedelta(seconds=-5))
    response = client.get("/api/users/alice/favorites", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401


# --- Books ---

def test_list_books_filters_and_pages(client):
    response = client.get("/api/books", params={"genre": "science fiction"})
    assert response.status_code == 200
    assert [b["title"] for b in response.json()] == ["Foundation", "Neuromancer", "Dune"]

    response = client.get("/api/books", params={"page": 2, "pageSize": 3})
    assert [b["title"] for b in response.json()] == ["Dune"]


def test_get_book(client):
    assert client.get("/api/books/7").json()["title"] == "Dune"
    response = client.get("/api/books/999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Book not found."


def test_search_books(client):
    assert client.get("/api/books/search").status_code == 400
    assert client.get("/api/books/search", params={"title": "  "}).status_code == 400
    assert client.get("/api/books/search", params={"title": "zzz"}).status_code == 404

    response = client.get("/api/books/search", params={"title": "un"})
    assert [b["title"] for b in response.json()] == ["Foundation", "Dune"]


def test_admin_crud(client, api):
    admin = _auth(api, "admin@example.com", "Admin")
    payload = {"title": "Hyperion", "author": "Dan Simmons", "genre": "Science Fiction",
               "published_year": 1989, "price": 12.5}

    created = client.post("/api/books", json=payload, headers=admin)
    assert created.status_code == 201
    book_id = created.json()["book_id"]
    assert created.headers["Location"] == f"/api/books/{book_id}"

    payload["price"] = 9.5
    updated = client.put(f"/api/books/{book_id}", json=payload, headers=admin)
    assert updated.status_code == 200
    assert updated.json()["price"] == 9.5

    assert client.put("/api/books/999", json=payload, headers=admin).status_code == 404

    assert client.delete(f"/api/books/{book_id}", headers=admin).status_code == 204
    assert client.delete(f"/api/books/{book_id}", headers=admin).status_code == 404


def test_catalog_mutations_require_admin(client, api):
    payload = {"title": "X", "author": "Y", "genre": "Z", "published_year": 2000, "price": 1.0}
    assert client.post("/api/books", json=payload).status_code == 401
    assert client.post("/api/books", json=payload, headers=_auth(api, "alice")).status_code == 403
    assert client.delete("/api/books/7", headers=_auth(api, "alice")).status_code == 403


@pytest.mark.parametrize("field,value", [
    ("title", "x" * 201),
    ("author", ""),
    ("genre", "g" * 51),
    ("published_year", 1200),
    ("published_year", 2030),
    ("price", 0),
])
def test_book_validation(client, api, field, value):
    payload = {"title": "T", "author": "A", "genre": "G", "published_year": 2000, "price": 1.0}
    payload[field] = value
    response = client.post("/api/books", json=payload, headers=_auth(api, "admin@example.com", "Admin"))
    assert response.status_code == 422


# --- Borrowing ---

def test_borrow_return_flow(client, api):
    alice = _auth(api, "alice")
    bob = _auth(api, "bob")

    assert client.post("/api/books/7/borrow", headers=alice).status_code == 204

    conflict = client.post("/api/books/7/borrow", headers=bob)
    assert conflict.status_code == 409
    assert conflict.json()["detail"] == "Book is already borrowed."

    assert client.post("/api/books/7/return", headers=bob).status_code == 403
    assert client.post("/api/books/7/return", headers=alice).status_code == 204
    assert client.post("/api/books/7/return", headers=alice).status_code == 409
    assert client.post("/api/books/999/borrow", headers=alice).status_code == 404

    history = client.get("/api/books/7/history", headers=bob).json()
    assert [e["action"] for e in history] == ["borrow", "return"]
    assert {e["user_id"] for e in history} == {"alice"}


def test_borrowed_and_user_history(client, api):
    alice = _auth(api, "Alice")
    client.post("/api/books/8/borrow", headers=alice)
    client.post("/api/books/7/borrow", headers=alice)

    borrowed = client.get("/api/users/alice/borrowed", headers=alice)
    assert borrowed.status_code == 200
    assert [b["title"] for b in borrowed.json()] == ["Dune", "Neuromancer"]

    history = client.get("/api/users/ALICE/history", headers=alice).json()
    assert [e["book_id"] for e in history] == [8, 7]


def test_book_history_unknown_book(client, api):
    assert client.get("/api/books/999/history", headers=_auth(api, "alice")).status_code == 404


def test_borrow_state_survives_restart(client, api):
    client.post("/api/books/7/borrow", headers=_auth(api, "alice"))

    restarted = importlib.reload(api)
    assert restarted.borrow_ledger.holder_of(7) == "alice"


# --- Lists ---

def test_favorites_endpoints(client, api):
    alice = _auth(api, "alice")

    assert client.post("/api/users/alice/favorites/7", headers=alice).status_code == 204
    dup = client.post("/api/users/alice/favorites/7", headers=alice)
    assert dup.status_code == 409
    assert dup.json()["detail"] == "Book is already in favorites."
    assert client.post("/api/users/alice/favorites/99", headers=alice).status_code == 404

    favorites = client.get("/api/users/alice/favorites", headers=alice).json()
    assert [b["book_id"] for b in favorites] == [7]

    assert client.delete("/api/users/alice/favorites/7", headers=alice).status_code == 204
    assert client.delete("/api/users/alice/favorites/7", headers=alice).status_code == 404


def test_wishlist_and_move(client, api):
    alice = _auth(api, "alice")

    assert client.post("/api/users/alice/wishlist/99", headers=alice).status_code == 404
    assert client.get("/api/users/alice/wishlist", headers=alice).json() == []

    assert client.post("/api/users/alice/wishlist/8", headers=alice).status_code == 204
    assert client.post("/api/users/alice/wishlist/8", headers=alice).status_code == 409

    move = client.post("/api/users/alice/wishlist/7/move-to-favorites", headers=alice)
    assert move.status_code == 404
    assert move.json()["detail"] == "Book not in wishlist."

    assert client.post("/api/users/alice/wishlist/8/move-to-favorites", headers=alice).status_code == 204
    assert client.get("/api/users/alice/wishlist", headers=alice).json() == []
    assert [b["book_id"] for b in client.get("/api/users/alice/favorites", headers=alice).json()] == [8]

    missing_book = client.post("/api/users/alice/wishlist/99/move-to-favorites", headers=alice)
    assert missing_book.json()["detail"] == "Book not found."


def test_lists_are_self_or_admin(client, api):
    bob = _auth(api, "bob")
    admin = _auth(api, "admin@example.com", "Admin")

    response = client.get("/api/users/alice/favorites", headers=bob)
    assert response.status_code == 403
    assert client.post("/api/users/alice/wishlist/7", headers=bob).status_code == 403
    assert client.get("/api/users/alice/borrowed", headers=bob).status_code == 403

    assert client.post("/api/users/alice/favorites/7", headers=admin).status_code == 204
    assert [b["book_id"] for b in client.get("/api/users/ALICE/favorites", headers=_auth(api, "Alice")).json()] == [7]
