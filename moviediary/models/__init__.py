"""
Import all models to ensure they are registered with SQLAlchemy
"""
from moviediary.models.movie import Movie

__all__ = [
    "Movie",
]
