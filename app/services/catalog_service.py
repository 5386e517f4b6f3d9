"""Business logic for catalog search."""
import logging
from typing import Dict, List

from catalog_client import DEFAULT_LIMIT, CatalogAPIError, CatalogConfigError

from ..errors import UpstreamError, ValidationError


class CatalogService:
    """Validates search input and translates catalog-client failures into
    :class:`~app.errors.UpstreamError`.  Never touches the store, so a
    failed search cannot leave a partial write behind.
    """

    def __init__(self, client) -> None:
        """
        Args:
            client: A :class:`catalog_client.MobyGamesClient` (or any object
                exposing ``search_games(query, limit)``).
        """
        self._client = client
        self._log = logging.getLogger('playlog.service.catalog')

    def search(self, query, limit=None) -> List[Dict]:
        """Search the catalog.

        Raises:
            ValidationError: blank query or non-integer limit.
            UpstreamError:   the catalog is unconfigured or failing.
        """
        if not query or not str(query).strip():
            raise ValidationError('Query parameter is required', field='q')
        if limit in (None, ''):
            limit = DEFAULT_LIMIT
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError('limit must be an integer', field='limit')

        try:
            return self._client.search_games(str(query).strip(), limit=limit)
        except CatalogConfigError as e:
            self._log.warning("Catalog search unavailable: %s", e)
            raise UpstreamError('MobyGames API key not configured') from e
        except CatalogAPIError as e:
            self._log.error("MobyGames API error: %s", e)
            raise UpstreamError('Failed to fetch games from MobyGames') from e
