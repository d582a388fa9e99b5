from watchly.db.models.movie import Movie

__all__ = ["Movie"]
