"""Book Catalog - Services Package

This package contains the per-user state services:
- Borrow ledger (borrowing/return state machine and history)
- User lists (favorites and wishlist)
- SQLite-backed borrow event store
"""
