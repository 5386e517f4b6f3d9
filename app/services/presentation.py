"""Turn ORM rows into the JSON-ready dicts the views consume."""
from datetime import date, datetime
from typing import Dict, Optional

MAX_RATING = 5
ANONYMOUS = 'Anonymous'

_FILLED_STAR = '★'
_EMPTY_STAR = '☆'


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def format_rating(rating: Optional[int], max_rating: int = MAX_RATING) -> Optional[str]:
    """Render *rating* as a star string, e.g. ``3`` -> ``"★★★☆☆"``.

    Unrated entries (``None`` or anything outside 1..max_rating) return
    ``None`` so they are never shown as a zero-star rating.
    """
    if not isinstance(rating, int) or isinstance(rating, bool):
        return None
    if not 1 <= rating <= max_rating:
        return None
    return _FILLED_STAR * rating + _EMPTY_STAR * (max_rating - rating)


def public_name(user) -> str:
    """Name shown next to a user's entries in the community views."""
    return user.display_name or user.name or ANONYMOUS


def serialize_entry(user_game) -> Dict:
    """Serialize a logged entry together with its game."""
    game = user_game.game
    return {
        'id': game.id,
        'game_id': game.external_id,
        'title': game.title,
        'platform': game.platform,
        'release_date': game.release_date,
        'image_url': game.image_url,
        'added_at': _iso(user_game.added_at),
        'played_at': _iso(user_game.played_at),
        'rating': user_game.rating,
        'rating_display': format_rating(user_game.rating),
    }


def serialize_feed_entry(user_game) -> Dict:
    """Serialize a logged entry for the community feed (adds the owner)."""
    entry = serialize_entry(user_game)
    entry['user'] = {
        'display_name': public_name(user_game.user),
        'email': user_game.user.email,
    }
    return entry
