"""Business logic for logging games into a user's collection."""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import DuplicateError, NotFoundError, StorageError, ValidationError
from .ordering import SORT_MODES, parse_timestamp, sort_collection
from .presentation import MAX_RATING, serialize_entry
from .user_service import UserService, principal_email

UNKNOWN_PLATFORM = 'Unknown Platform'
# Largest value a signed 64-bit INTEGER column can hold
MAX_EXTERNAL_ID = 2 ** 63 - 1


def normalize_platform(platform) -> str:
    """Return *platform*, or ``'Unknown Platform'`` when missing/blank."""
    if platform is None:
        return UNKNOWN_PLATFORM
    platform = str(platform).strip()
    return platform or UNKNOWN_PLATFORM


def normalize_rating(rating) -> Optional[int]:
    """Return an integer rating in 1..5, or ``None`` for unrated.

    Integral strings such as ``"4"`` are accepted.  ``0``, negatives, values
    above 5, fractions, booleans and non-numeric input are all unrated.
    """
    if rating is None or isinstance(rating, bool):
        return None
    if isinstance(rating, float):
        if not rating.is_integer():
            return None
        rating = int(rating)
    elif not isinstance(rating, int):
        try:
            rating = int(str(rating).strip())
        except ValueError:
            return None
    return rating if 1 <= rating <= MAX_RATING else None


def normalize_external_id(game_id) -> int:
    """Return the catalog id as an int or raise ``ValidationError``."""
    if game_id is None or isinstance(game_id, bool) or str(game_id).strip() == '':
        raise ValidationError('Missing required game data: game_id', field='game_id')
    try:
        external_id = int(str(game_id).strip())
    except ValueError:
        raise ValidationError('game_id must be an integer', field='game_id')
    if not 1 <= external_id <= MAX_EXTERNAL_ID:
        raise ValidationError('game_id is out of range', field='game_id')
    return external_id


def normalize_played_at(played_at) -> Optional[datetime]:
    """Parse the optional played-at date or raise ``ValidationError``."""
    try:
        return parse_timestamp(played_at)
    except (TypeError, ValueError):
        raise ValidationError('played_at must be an ISO-8601 date', field='played_at')


class CollectionService:
    """Adds games to collections and lists them, delegating persistence to
    the ``database`` module's helper functions.

    Rules
    -----
    * ``game_id`` and ``title`` are required.
    * A missing platform is stored as ``'Unknown Platform'``.
    * ``rating`` outside **1–5** is stored as unrated (``NULL``).
    * A game row is created the first time anyone logs it; after that the
      stored row is canonical and later title/platform/image are ignored.
    * A user can log a given game once; a second attempt raises
      :class:`~app.errors.DuplicateError` and writes nothing.
    """

    def __init__(self, db_module, user_service: UserService = None) -> None:
        """
        Args:
            db_module:    The imported ``database`` module.
            user_service: Resolves the signed-in user; built from
                *db_module* when omitted.
        """
        self._db = db_module
        self._users = user_service or UserService(db_module)
        self._log = logging.getLogger('playlog.service.collection')

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_game(self, db, principal: Dict, game_id, title,
                 platform=None, release_date=None, image_url=None,
                 played_at=None, rating=None) -> Dict:
        """Log a game for the signed-in user.

        Returns:
            The serialized entry (see
            :func:`~app.services.presentation.serialize_entry`).

        Raises:
            AuthenticationError: no principal e-mail.
            ValidationError:     missing game id/title or bad played_at.
            DuplicateError:      the game is already in the collection.
            StorageError:        the store failed.
        """
        email = principal_email(principal)
        external_id = normalize_external_id(game_id)
        if not title or not str(title).strip():
            raise ValidationError('Missing required game data: title', field='title')
        title = str(title).strip()
        platform = normalize_platform(platform)
        played = normalize_played_at(played_at)
        rating = normalize_rating(rating)

        user = self._users.get_or_create(db, principal)
        game = self._get_or_create_game(db, external_id, title, platform,
                                        release_date, image_url)

        try:
            if self._db.get_user_game(db, user.id, game.id):
                raise DuplicateError('Game already in collection')
            entry = self._db.create_user_game(
                db, user.id, game.id, played_at=played, rating=rating)
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same pair.
            self._log.info("Duplicate insert for %s / %s rejected by store", email, external_id)
            raise DuplicateError('Game already in collection') from e
        except SQLAlchemyError as e:
            self._log.error("Error adding game %s for %s: %s", external_id, email, e)
            raise StorageError('Failed to add game to collection') from e

        self._log.info("Added game %s (%s) to collection of %s",
                       external_id, game.title, email)
        return serialize_entry(entry)

    def _get_or_create_game(self, db, external_id: int, title: str, platform: str,
                            release_date, image_url):
        try:
            game = self._db.get_game_by_external_id(db, external_id)
            if game:
                return game
            try:
                return self._db.create_game(
                    db, external_id, title, platform,
                    release_date=str(release_date) if release_date else None,
                    image_url=image_url or None)
            except IntegrityError:
                self._log.info("Game %s created concurrently; re-fetching", external_id)
                game = self._db.get_game_by_external_id(db, external_id)
                if game is None:
                    raise StorageError('Failed to create game')
                return game
        except SQLAlchemyError as e:
            self._log.error("Error resolving game %s: %s", external_id, e)
            raise StorageError('Failed to add game to collection') from e

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def list_collection(self, db, email: str, sort: str = None) -> List[Dict]:
        """Return *email*'s collection in the requested sort mode.

        Raises:
            ValidationError: unknown sort mode.
            NotFoundError:   the user has no record yet.
        """
        if sort and sort not in SORT_MODES:
            raise ValidationError(
                f"Unknown sort mode '{sort}'; expected one of {', '.join(SORT_MODES)}",
                field='sort')
        try:
            user = self._db.get_user_by_email(db, email)
            if not user:
                raise NotFoundError('User not found')
            entries = [serialize_entry(ug) for ug in self._db.get_user_games(db, user.id)]
        except SQLAlchemyError as e:
            self._log.error("Error fetching collection for %s: %s", email, e)
            raise StorageError('Failed to fetch collection') from e
        return sort_collection(entries, sort)
