"""Community-feed statistics and the home-page digest."""
from typing import Dict, List

DIGEST_SIZE = 10


def round_half_up_ratio(numerator: int, denominator: int) -> int:
    """Round ``numerator / denominator`` half-up using integer arithmetic."""
    return (2 * numerator + denominator) // (2 * denominator)


def compute_feed_stats(games: List[Dict]) -> Dict[str, int]:
    """Summarise feed entries (dicts carrying ``user.email``).

    Returns:
        Dict with ``total_games``, ``unique_users`` and
        ``average_games_per_user`` (0 when nobody has logged anything).
    """
    total_games = len(games)
    unique_users = len({g['user']['email'] for g in games})
    if unique_users == 0:
        average = 0
    else:
        average = round_half_up_ratio(total_games, unique_users)
    return {
        'total_games': total_games,
        'unique_users': unique_users,
        'average_games_per_user': average,
    }


def recent_digest(games: List[Dict], limit: int = DIGEST_SIZE) -> List[Dict]:
    """First *limit* entries of an already newest-first feed."""
    return list(games[:limit])
