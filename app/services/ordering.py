"""Sort modes for a user's collection.

All functions take a list of entry dicts (as produced by
:func:`~app.services.presentation.serialize_entry`) and return a *new*
list; the input is never mutated.  Python's sort is stable, so entries that
compare equal keep their incoming relative order.
"""
import unicodedata
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from ..errors import ValidationError

SORT_ADDED = 'added'
SORT_TITLE = 'title'
SORT_PLAYED = 'played'
SORT_MODES = (SORT_ADDED, SORT_TITLE, SORT_PLAYED)


def parse_timestamp(value) -> Optional[datetime]:
    """Coerce a ``datetime``/``date``/ISO-8601 string into a naive datetime.

    Returns ``None`` for empty values.  Raises ``ValueError`` for strings
    that are not ISO-8601.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        # Store and compare in naive UTC, like the added_at column.
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def title_key(title: str) -> str:
    """Comparison key ignoring case and accents ("Élan" == "elan")."""
    decomposed = unicodedata.normalize('NFKD', title or '')
    stripped = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.casefold()


def sort_games_by_added(games: List[Dict]) -> List[Dict]:
    """Most recently logged first."""
    return sorted(games, key=lambda g: parse_timestamp(g.get('added_at')) or datetime.min,
                  reverse=True)


def sort_games_by_title(games: List[Dict]) -> List[Dict]:
    """Ascending by title, case-insensitive."""
    return sorted(games, key=lambda g: title_key(g.get('title', '')))


def sort_games_by_date_played(games: List[Dict]) -> List[Dict]:
    """Most recently played first; never-played entries go last."""
    dated = []
    undated = []
    for game in games:
        played = parse_timestamp(game.get('played_at'))
        if played is None:
            undated.append(game)
        else:
            dated.append((played, game))
    # reverse=True keeps equal keys in their original order
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [game for _, game in dated] + undated


_SORTERS = {
    SORT_ADDED: sort_games_by_added,
    SORT_TITLE: sort_games_by_title,
    SORT_PLAYED: sort_games_by_date_played,
}


def sort_collection(games: List[Dict], mode: Optional[str] = None) -> List[Dict]:
    """Apply the sort *mode* (``'added'`` when ``None``)."""
    mode = mode or SORT_ADDED
    sorter = _SORTERS.get(mode)
    if sorter is None:
        raise ValidationError(
            f"Unknown sort mode '{mode}'; expected one of {', '.join(SORT_MODES)}",
            field='sort')
    return sorter(games)
