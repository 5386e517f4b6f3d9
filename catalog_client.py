"""
catalog_client.py
=================
Lightweight wrapper around the MobyGames v1 API used by PlayLog to let users
find a game before logging it.

Authentication
--------------
MobyGames uses a per-account API key passed as the ``api_key`` query
parameter.  Request one at https://www.mobygames.com/info/api/.

Usage
-----
::

    from catalog_client import MobyGamesClient

    client = MobyGamesClient(api_key="abc")
    client.search_games("chrono trigger", limit=5)
    # [{"game_id": 4501, "title": "Chrono Trigger", "platform": "SNES",
    #   "release_date": "1995-03-11", "image_url": "https://..."}, ...]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger('playlog.catalog')

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_BASE_URL = "https://api.mobygames.com/v1"
_DEFAULT_TIMEOUT = 10  # seconds
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
UNKNOWN_PLATFORM = "Unknown Platform"


class CatalogConfigError(Exception):
    """Raised when no usable MobyGames API key is configured."""


class CatalogAPIError(Exception):
    """Raised when the MobyGames API is unreachable or returns an error."""


class MobyGamesClient:
    """Minimal MobyGames API client for title search."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout: int = _DEFAULT_TIMEOUT,
        base_url: str = _BASE_URL,
    ) -> None:
        """
        Args:
            api_key:  MobyGames API key (may be empty; searches then raise
                      :class:`CatalogConfigError`).
            timeout:  HTTP request timeout in seconds.
            base_url: API root, overridable for testing.
        """
        self._api_key  = api_key or ''
        self._timeout  = timeout
        self._base_url = base_url.rstrip('/')

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def search_games(self, query: str, limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
        """Search MobyGames by title.

        Each entry contains::

            {
              "game_id":      4501,
              "title":        "Chrono Trigger",
              "platform":     "SNES",          # first listed platform
              "release_date": "1995-03-11",    # that platform's first release
              "image_url":    "https://...",   # sample cover, may be None
            }

        Args:
            query: Free-text title query.
            limit: Maximum number of results (clamped to 1–100).

        Returns:
            List of game dicts in the order MobyGames returned them.

        Raises:
            CatalogConfigError: No API key configured.
            CatalogAPIError:    Network failure or non-2xx response.
        """
        if not self.is_configured:
            raise CatalogConfigError("MobyGames API key not configured")
        limit = max(1, min(int(limit), MAX_LIMIT))

        data = self._get("/games", params={"title": query, "limit": limit})
        if not isinstance(data, dict):
            raise CatalogAPIError("MobyGames API returned an unexpected payload")
        games = [self._transform(raw) for raw in data.get("games") or []]
        logger.debug("MobyGames search %r returned %d games", query, len(games))
        return games

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _transform(raw: Dict[str, Any]) -> Dict[str, Any]:
        platforms = raw.get("platforms") or []
        first = (platforms[0] if platforms else None) or {}
        cover = raw.get("sample_cover") or {}
        return {
            "game_id":      raw.get("game_id"),
            "title":        raw.get("title", ""),
            "platform":     first.get("platform_name") or UNKNOWN_PLATFORM,
            "release_date": first.get("first_release_date") or None,
            "image_url":    cover.get("image") or None,
        }

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Perform a GET request against the MobyGames API and return parsed JSON."""
        query = dict(params or {})
        query["api_key"] = self._api_key
        url = self._base_url + path
        try:
            resp = requests.get(url, params=query, timeout=self._timeout)
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise CatalogAPIError(
                f"MobyGames API error {resp.status_code} for {path}"
            ) from exc
        except requests.RequestException as exc:
            raise CatalogAPIError(f"Network error calling MobyGames API: {exc}") from exc

        try:
            return resp.json()
        except ValueError as exc:
            raise CatalogAPIError("MobyGames API returned invalid JSON") from exc
