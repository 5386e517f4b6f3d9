#!/usr/bin/env python3
"""
PlayLog - Social Game Collection Tracker
Log the games you have played, rate them, and see what everyone else is playing.
"""

import json
import logging
import os
import sys
from typing import Dict, Optional

from colorama import init, Fore

import database
from catalog_client import MobyGamesClient
from identity_client import GoogleOAuthClient
from app.services import CatalogService, CollectionService, FeedService, UserService

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root PlayLog logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('playlog')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


# Module-level logger used throughout playlog.py
logger = setup_logging()


_PLACEHOLDER_VALUES = {'DEMO_MODE', 'DEMO_KEY', 'YOUR_MOBYGAMES_API_KEY_HERE',
                       'YOUR_GOOGLE_CLIENT_ID', 'YOUR_GOOGLE_CLIENT_SECRET', 'change-me'}


def is_placeholder_value(value: str) -> bool:
    """Check if a value is a placeholder sentinel that should not be used for real API calls."""
    if not value or not isinstance(value, str):
        return True
    return value.startswith('YOUR_') or value in _PLACEHOLDER_VALUES


# Environment variable -> config key
_ENV_OVERRIDES = {
    'MOBYGAMES_API_KEY': 'mobygames_api_key',
    'GOOGLE_CLIENT_ID': 'google_client_id',
    'GOOGLE_CLIENT_SECRET': 'google_client_secret',
    'GOOGLE_REDIRECT_URI': 'google_redirect_uri',
    'PLAYLOG_SECRET_KEY': 'secret_key',
    'PLAYLOG_LOG_LEVEL': 'log_level',
}


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from an optional JSON file with environment variable support

    Environment variables take precedence over config file values:
    - MOBYGAMES_API_KEY overrides mobygames_api_key
    - GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET / GOOGLE_REDIRECT_URI
    - PLAYLOG_SECRET_KEY overrides secret_key
    - PLAYLOG_LOG_LEVEL overrides log_level
    """
    config: Dict = {}
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            print(f"{Fore.RED}Error parsing config file: {e}")
            sys.exit(1)

    for env_name, key in _ENV_OVERRIDES.items():
        if os.getenv(env_name):
            config[key] = os.getenv(env_name)
    return config


class PlayLog:
    """Main application object.

    Builds the catalog and identity clients from configuration and exposes
    the domain services as public attributes (``tracker.collection_service``
    and friends) so route handlers never talk to the ``database`` module
    directly.
    """

    DEFAULT_API_TIMEOUT = 10

    def __init__(self, config: Optional[Dict] = None, config_path: str = 'config.json',
                 db_module=database):
        self._log = logging.getLogger('playlog.app')
        self.config = config if config is not None else load_config(config_path)

        # Re-apply log level from config (allows "log_level": "DEBUG" in config.json)
        if self.config.get('log_level'):
            setup_logging(self.config['log_level'])

        self.API_TIMEOUT = int(self.config.get('api_timeout_seconds', self.DEFAULT_API_TIMEOUT))

        api_key = self.config.get('mobygames_api_key', '')
        if is_placeholder_value(api_key):
            self._log.warning("MobyGames API key not configured; catalog search is disabled")
            api_key = ''
        self.catalog_client = MobyGamesClient(api_key, timeout=self.API_TIMEOUT)

        self.identity_client: Optional[GoogleOAuthClient] = None
        client_id = self.config.get('google_client_id', '')
        client_secret = self.config.get('google_client_secret', '')
        if not is_placeholder_value(client_id) and not is_placeholder_value(client_secret):
            self.identity_client = GoogleOAuthClient(
                client_id, client_secret, timeout=self.API_TIMEOUT)
        else:
            self._log.warning("Google OAuth not configured; sign-in is disabled")

        self.user_service = UserService(db_module)
        self.collection_service = CollectionService(db_module, self.user_service)
        self.feed_service = FeedService(db_module)
        self.catalog_service = CatalogService(self.catalog_client)
