"""Watchly: movie catalog backend (uploads, media host, catalog CRUD, health)."""

__version__ = "1.0.0"
