"""Book Catalog - Core Application Package

This package contains the core application modules including:
- API endpoints (api.py)
- Catalog management logic (catalog.py)
- CLI interface (main.py)
- Data models (book.py, borrow_event.py)
- Database layer (database.py)
- Authentication helpers (security.py)
"""

__version__ = "1.0.0"
