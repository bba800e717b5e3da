from threading import RLock
from typing import Dict, Iterable, List, Set

from bookcatalog.book import Book
from bookcatalog.catalog import CatalogLookup
from bookcatalog.outcome import normalize_user_id


class UserListsService:
    """Per-user favorites and wishlist sets.

    Both lists are keyed by the normalized user id. Add operations check
    that the book exists; remove operations only check membership.
    """

    def __init__(self, catalog: CatalogLookup) -> None:
        self._catalog = catalog
        self._lock = RLock()
        self._favorites_by_user: Dict[str, Set[int]] = {}
        self._wishlist_by_user: Dict[str, Set[int]] = {}

    # ------------------------- Favorites ------------------------- #
    def add_favorite(self, user_id: str, book_id: int) -> bool:
        return self._add(self._favorites_by_user, user_id, book_id)

    def remove_favorite(self, user_id: str, book_id: int) -> bool:
        return self._remove(self._favorites_by_user, user_id, book_id)

    def get_favorites(self, user_id: str) -> List[Book]:
        return self._project(self._favorites_by_user, user_id)

    # ------------------------- Wishlist ------------------------- #
    def add_to_wishlist(self, user_id: str, book_id: int) -> bool:
        return self._add(self._wishlist_by_user, user_id, book_id)

    def remove_from_wishlist(self, user_id: str, book_id: int) -> bool:
        return self._remove(self._wishlist_by_user, user_id, book_id)

    def get_wishlist(self, user_id: str) -> List[Book]:
        return self._project(self._wishlist_by_user, user_id)

    # ------------------------- Move wishlist -> favorites ------------------------- #
    def move_wishlist_to_favorites(self, user_id: str, book_id: int) -> bool:
        """Move one book from the wishlist to favorites.

        Unlike the add operations this does not check the catalog; callers
        verify the book exists before calling.
        """
        key = normalize_user_id(user_id)
        with self._lock:
            wish = self._wishlist_by_user.get(key)
            if not wish or book_id not in wish:
                return False
            wish.discard(book_id)
            self._favorites_by_user.setdefault(key, set()).add(book_id)  # no-op if already a favorite
        return True

    # ------------------------- Helpers ------------------------- #
    def _add(self, store: Dict[str, Set[int]], user_id: str, book_id: int) -> bool:
        key = normalize_user_id(user_id)
        with self._lock:
            if not self._catalog.exists(book_id):
                return False
            members = store.setdefault(key, set())
            if book_id in members:
                return False
            members.add(book_id)
        return True

    def _remove(self, store: Dict[str, Set[int]], user_id: str, book_id: int) -> bool:
        key = normalize_user_id(user_id)
        with self._lock:
            members = store.get(key)
            if not members or book_id not in members:
                return False
            members.discard(book_id)
        return True

    def _project(self, store: Dict[str, Set[int]], user_id: str) -> List[Book]:
        key = normalize_user_id(user_id)
        with self._lock:
            ids: Iterable[int] = list(store.get(key, ()))
        books = [self._catalog.get(book_id) for book_id in ids]
        return sorted((b for b in books if b is not None), key=lambda b: b.title)
