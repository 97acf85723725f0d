from sqlalchemy import Column, Integer, String, Float, JSON, DateTime, Date, Text
from sqlalchemy.sql import func
from moviediary.database import Base


class Movie(Base):
    """
    Local copy of a catalog movie.

    Rows are only created by catalog hydration. Everything except `popularity`
    is treated as immutable once stored.
    """
    __tablename__ = "movies"
    __table_args__ = {"sqlite_autoincrement": True}  # ids are never handed out twice

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    external_id = Column(String(64), unique=True, nullable=False, index=True)
    title = Column(String(500), nullable=False)
    release_date = Column(Date, nullable=True)
    rating = Column(Float, nullable=True)
    genres = Column(JSON, default=list)  # Catalog genre ids [28, 12]
    overview = Column(Text, default="")
    poster_url = Column(String(300))
    backdrop_url = Column(String(300))
    popularity = Column(Float, default=0.0, index=True)
    vote_count = Column(Integer, default=0)
    trailer_url = Column(String(300), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Movie(id={self.id}, external_id='{self.external_id}', title='{self.title}')>"
