# frame_explorer/services/__init__.py
"""
Initializes the services package and provides easy access to the singleton
service instances.

This pattern allows other parts of the application to import services with a
clean syntax, like so:
from frame_explorer.services import search_service, keyword_service

All singletons share one FrameApiClient. Tests build their own instances
around a fake client instead.
"""
# config_service must be first: it configures logging for everything below.
from .config_service import config
from ..frame_api import FrameApiClient
from .batch_scheduler import BatchSchedule, BatchScheduler
from .keyword_service import KeywordService
from .frame_service import FrameService
from .album_service import AlbumService
from .search_service import SearchService

api_client = FrameApiClient.from_config(config)
keyword_service = KeywordService(api_client)
frame_service = FrameService(api_client, keyword_service)
album_service = AlbumService(api_client)
search_service = SearchService(keyword_service, frame_service, album_service)

__all__ = [
    "config",
    "api_client",
    "keyword_service",
    "frame_service",
    "album_service",
    "search_service",
    "BatchSchedule",
    "BatchScheduler",
    "KeywordService",
    "FrameService",
    "AlbumService",
    "SearchService",
]
