import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from bookcatalog.book import Book
from bookcatalog.borrow_event import BorrowEvent
from bookcatalog.catalog import Catalog
from bookcatalog.config import settings
from bookcatalog.logging_config import setup_logging
from bookcatalog.outcome import FailureReason, Outcome
from bookcatalog.security import ROLE_ADMIN, TokenService, UserStore
from bookcatalog.services.borrow_ledger import BorrowLedger
from bookcatalog.services.event_store import SQLiteEventStore
from bookcatalog.services.user_lists import UserListsService

logger = logging.getLogger(__name__)

# The database path and seed file are read from the environment at import so
# tests can point a reloaded module at a fresh database.
catalog = Catalog(seed_csv=os.getenv("BOOKCATALOG_SEED_CSV", settings.seed_csv))
borrow_ledger = BorrowLedger(catalog, event_store=SQLiteEventStore(catalog.db_file))
user_lists = UserListsService(catalog)
user_store = UserStore.with_defaults()
token_service = TokenService()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    logger.info(f"{settings.app_name} starting with {len(catalog.list_books())} book(s) in {catalog.db_file}")
    yield
    logger.info(f"{settings.app_name} shutting down")

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response

# --- Error handling ---
_STATUS_BY_REASON = {
    FailureReason.NOT_FOUND: 404,
    FailureReason.CONFLICT: 409,
    FailureReason.FORBIDDEN: 403,
    FailureReason.INVALID_STATE: 400,
}

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"Bad request for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.exception_handler(LookupError)
async def lookup_error_handler(request: Request, exc: LookupError):
    logger.warning(f"Not found for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found."})

def _raise_for_outcome(outcome: Outcome) -> None:
    if not outcome:
        raise HTTPException(status_code=_STATUS_BY_REASON[outcome.reason], detail=outcome.message)

# --- Security ---
bearer_scheme = HTTPBearer(auto_error=False)

@dataclass(frozen=True)
class CurrentUser:
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> CurrentUser:
    """Dependency resolving the acting user from the bearer token."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})
    payload = token_service.decode(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token", headers={"WWW-Authenticate": "Bearer"})
    return CurrentUser(username=payload["sub"], role=payload["role"])

def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required.")
    return user

def _ensure_self_or_admin(user: CurrentUser, user_id: str) -> None:
    if user.is_admin or user.username.lower() == user_id.lower():
        return
    raise HTTPException(status_code=403, detail="You can only access your own lists unless you are an Admin.")

def _ensure_book_exists(book_id: int) -> None:
    if not catalog.exists(book_id):
        raise HTTPException(status_code=404, detail="Book not found.")

# --- Models ---
class BookModel(BaseModel):
    book_id: int
    title: str
    author: str
    genre: str
    published_year: int
    price: float

class BookCreateModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200, description="Title cannot exceed 200 characters.")
    author: str = Field(..., min_length=1, max_length=100, description="Author name cannot exceed 100 characters.")
    genre: str = Field(..., min_length=1, max_length=50, description="Genre cannot exceed 50 characters.")
    published_year: int = Field(..., ge=1450, le=2025, description="Published year must be between 1450 and 2025.")
    price: float = Field(..., gt=0, description="Price must be a positive value.")

class BorrowEventModel(BaseModel):
    book_id: int
    user_id: str
    action: str
    timestamp_utc: datetime

class LoginModel(BaseModel):
    username: str
    password: str

class TokenModel(BaseModel):
    token: str
    role: str
    username: str

def _book_model(book: Book) -> BookModel:
    return BookModel(**book.to_dict())

def _event_models(events: List[BorrowEvent]) -> List[BorrowEventModel]:
    return [BorrowEventModel(**e.to_dict()) for e in events]

def _map_to_book(payload: BookCreateModel) -> Book:
    return Book(payload.title, payload.author, payload.genre, payload.published_year, payload.price)

# --- Health ---
@app.get("/health")
def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total_books": len(catalog.list_books()),
        "books_on_loan": len(borrow_ledger.current_holders()),
    }

# --- Auth ---
@app.post("/api/auth/login", response_model=TokenModel)
def login(payload: LoginModel):
    user = user_store.authenticate(payload.username, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    token = token_service.create(user.username, user.role)
    return TokenModel(token=token, role=user.role, username=user.username)

# --- Books ---
@app.get("/api/books", response_model=List[BookModel])
def get_books(
    author: Optional[str] = None,
    genre: Optional[str] = None,
    year: Optional[int] = None,
    page: int = 1,
    page_size: int = Query(settings.default_page_size, alias="pageSize"),
):
    books = catalog.get_all(author=author, genre=genre, year=year, page=page, page_size=page_size)
    return [_book_model(b) for b in books]

@app.get("/api/books/search", response_model=List[BookModel])
def search_books(title: Optional[str] = None):
    if title is None or not title.strip():
        raise HTTPException(status_code=400, detail="A non-empty 'title' query is required.")
    results = catalog.search_by_title(title)
    if not results:
        raise HTTPException(status_code=404, detail="No books matched the title keyword.")
    return [_book_model(b) for b in results]

@app.get("/api/books/{book_id}", response_model=BookModel)
def get_book(book_id: int):
    book = catalog.get(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found.")
    return _book_model(book)

@app.post("/api/books", response_model=BookModel, status_code=201, dependencies=[Depends(require_admin)])
def create_book(payload: BookCreateModel, response: Response):
    created = catalog.add(_map_to_book(payload))
    response.headers["Location"] = f"/api/books/{created.book_id}"
    return _book_model(created)

@app.put("/api/books/{book_id}", response_model=BookModel, dependencies=[Depends(require_admin)])
def update_book(book_id: int, payload: BookCreateModel):
    updated = catalog.update(book_id, _map_to_book(payload))
    if updated is None:
        raise HTTPException(status_code=404, detail="Book not found.")
    return _book_model(updated)

@app.delete("/api/books/{book_id}", status_code=204, response_class=Response, dependencies=[Depends(require_admin)])
def delete_book(book_id: int):
    if not catalog.delete(book_id):
        raise HTTPException(status_code=404, detail="Book not found.")
    return Response(status_code=204)

# --- Borrowing ---
@app.post("/api/books/{book_id}/borrow", status_code=204, response_class=Response)
def borrow_book(book_id: int, user: CurrentUser = Depends(get_current_user)):
    _raise_for_outcome(borrow_ledger.borrow(user.username, book_id))
    return Response(status_code=204)

@app.post("/api/books/{book_id}/return", status_code=204, response_class=Response)
def return_book(book_id: int, user: CurrentUser = Depends(get_current_user)):
    _raise_for_outcome(borrow_ledger.return_book(user.username, book_id))
    return Response(status_code=204)

@app.get("/api/books/{book_id}/history", response_model=List[BorrowEventModel])
def get_book_history(book_id: int, user: CurrentUser = Depends(get_current_user)):
    _ensure_book_exists(book_id)
    return _event_models(borrow_ledger.history_for_book(book_id))

# --- Favorites ---
@app.post("/api/users/{user_id}/favorites/{book_id}", status_code=204, response_class=Response)
def add_favorite(user_id: str, book_id: int, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    _ensure_book_exists(book_id)
    if not user_lists.add_favorite(user_id, book_id):
        raise HTTPException(status_code=409, detail="Book is already in favorites.")
    logger.info(f"Favorite added {user_id} {book_id}")
    return Response(status_code=204)

@app.get("/api/users/{user_id}/favorites", response_model=List[BookModel])
def get_favorites(user_id: str, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    return [_book_model(b) for b in user_lists.get_favorites(user_id)]

@app.delete("/api/users/{user_id}/favorites/{book_id}", status_code=204, response_class=Response)
def remove_favorite(user_id: str, book_id: int, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    if not user_lists.remove_favorite(user_id, book_id):
        raise HTTPException(status_code=404, detail="Book not in favorites.")
    logger.info(f"Favorite removed {user_id} {book_id}")
    return Response(status_code=204)

# --- Wishlist ---
@app.post("/api/users/{user_id}/wishlist/{book_id}", status_code=204, response_class=Response)
def add_to_wishlist(user_id: str, book_id: int, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    _ensure_book_exists(book_id)
    if not user_lists.add_to_wishlist(user_id, book_id):
        raise HTTPException(status_code=409, detail="Book is already in wishlist.")
    logger.info(f"Wishlist added {user_id} {book_id}")
    return Response(status_code=204)

@app.get("/api/users/{user_id}/wishlist", response_model=List[BookModel])
def get_wishlist(user_id: str, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    return [_book_model(b) for b in user_lists.get_wishlist(user_id)]

@app.delete("/api/users/{user_id}/wishlist/{book_id}", status_code=204, response_class=Response)
def remove_from_wishlist(user_id: str, book_id: int, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    if not user_lists.remove_from_wishlist(user_id, book_id):
        raise HTTPException(status_code=404, detail="Book not in wishlist.")
    logger.info(f"Wishlist removed {user_id} {book_id}")
    return Response(status_code=204)

@app.post("/api/users/{user_id}/wishlist/{book_id}/move-to-favorites", status_code=204, response_class=Response)
def move_wishlist_to_favorites(user_id: str, book_id: int, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    # The list service trusts this check and does not repeat it.
    _ensure_book_exists(book_id)
    if not user_lists.move_wishlist_to_favorites(user_id, book_id):
        raise HTTPException(status_code=404, detail="Book not in wishlist.")
    logger.info(f"Wishlist -> Favorites moved {user_id} {book_id}")
    return Response(status_code=204)

# --- Borrowed books and history per user ---
@app.get("/api/users/{user_id}/borrowed", response_model=List[BookModel])
def get_user_borrowed(user_id: str, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    return [_book_model(b) for b in borrow_ledger.currently_held_by(user_id)]

@app.get("/api/users/{user_id}/history", response_model=List[BorrowEventModel])
def get_user_history(user_id: str, user: CurrentUser = Depends(get_current_user)):
    _ensure_self_or_admin(user, user_id)
    return _event_models(borrow_ledger.history_for_user(user_id))
