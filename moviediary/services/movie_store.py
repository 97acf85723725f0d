"""
Movie Store - query shapes over the movies table
"""
from typing import Iterable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from moviediary.models.movie import Movie
import logging

logger = logging.getLogger(__name__)


class StoreInsertError(Exception):
    """Bulk insert rejected; nothing from the batch was persisted"""


class MovieStore:
    """
    Persistence collaborator for Movie rows, bound to one session.

    Usage:
        store = MovieStore(db)
        page = store.find_after(cursor=0, limit=10)
    """

    def __init__(self, db: Session):
        self.db = db

    def find_after(self, cursor: int, limit: int) -> List[Movie]:
        """Movies with id > cursor, ascending by id. cursor=0 starts from the beginning."""
        return (
            self.db.query(Movie)
            .filter(Movie.id > cursor)
            .order_by(Movie.id.asc())
            .limit(limit)
            .all()
        )

    def find_by_ids(self, ids: Iterable[int]) -> List[Movie]:
        """Unordered lookup; unknown ids are simply missing from the result."""
        ids = list(ids)
        if not ids:
            return []
        return self.db.query(Movie).filter(Movie.id.in_(ids)).all()

    def find_by_id(self, movie_id: int) -> Optional[Movie]:
        return self.db.get(Movie, movie_id)

    def find_top_by_popularity(self, limit: int) -> List[Movie]:
        return (
            self.db.query(Movie)
            .order_by(Movie.popularity.desc(), Movie.id.asc())
            .limit(limit)
            .all()
        )

    def find_external_ids_in(self, external_ids: Iterable[str]) -> List[str]:
        """Subset of the given external ids that are already stored."""
        external_ids = list(external_ids)
        if not external_ids:
            return []
        rows = self.db.query(Movie.external_id).filter(Movie.external_id.in_(external_ids)).all()
        return [row[0] for row in rows]

    def insert_all(self, records: List[Movie]) -> List[Movie]:
        """
        Insert all records in a single transaction.

        Raises:
            StoreInsertError: on a uniqueness violation; the whole batch is rolled back
        """
        if not records:
            return []
        try:
            self.db.add_all(records)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Bulk insert of {len(records)} movies rejected: {str(e.orig)}")
            raise StoreInsertError(str(e.orig)) from e
        for record in records:
            self.db.refresh(record)
        return records

    def update_popularity(self, external_id: str, popularity: float) -> bool:
        """Refresh the stored popularity of an existing movie. Returns False if absent."""
        updated = (
            self.db.query(Movie)
            .filter(Movie.external_id == external_id)
            .update({Movie.popularity: popularity}, synchronize_session=False)
        )
        return updated > 0

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
