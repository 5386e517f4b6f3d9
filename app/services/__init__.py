"""Services package — expose all concrete services from one import."""
from .user_service import UserService
from .collection_service import CollectionService
from .feed_service import FeedService
from .catalog_service import CatalogService

__all__ = [
    'UserService',
    'CollectionService',
    'FeedService',
    'CatalogService',
]
