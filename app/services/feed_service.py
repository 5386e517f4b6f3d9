"""Business logic for the community feed and the home-page digest."""
import logging
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError
from .aggregation import DIGEST_SIZE, compute_feed_stats, recent_digest
from .presentation import serialize_feed_entry


class FeedService:
    """Builds the cross-user views, delegating persistence to the
    ``database`` module's helper functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    """

    def __init__(self, db_module) -> None:
        """
        Args:
            db_module: The imported ``database`` module (or any object that
                exposes ``get_all_user_games``).
        """
        self._db = db_module
        self._log = logging.getLogger('playlog.service.feed')

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _load(self, db, limit: int = None) -> List[Dict]:
        try:
            rows = self._db.get_all_user_games(db, limit=limit)
            return [serialize_feed_entry(ug) for ug in rows]
        except SQLAlchemyError as e:
            self._log.error("Error fetching all users' games: %s", e)
            raise StorageError('Oh no! The feed failed to load. Try again later.') from e

    def get_feed(self, db) -> Dict:
        """Return every logged entry (newest first) plus feed statistics.

        Returns:
            Dict with ``games``, ``total``, ``unique_users`` and ``stats``.
        """
        games = self._load(db)
        stats = compute_feed_stats(games)
        self._log.info("Fetched feed: %d games from %d users",
                       stats['total_games'], stats['unique_users'])
        return {
            'games': games,
            'total': stats['total_games'],
            'unique_users': stats['unique_users'],
            'stats': stats,
        }

    def get_digest(self, db, limit: int = DIGEST_SIZE) -> List[Dict]:
        """Return the *limit* most recently logged entries across all users."""
        return recent_digest(self._load(db, limit=limit), limit)
