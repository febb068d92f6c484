"""
Service Factory for dependency injection.

This module builds the backend, storage, feed manager and services of one
client with their dependencies injected. No module-level client exists; every
view receives what it needs from a factory instance.
"""
import asyncio
import logging
import os
from typing import Optional

from ..models.feed_state import RetryPolicy
from ..utils.constants import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_STORAGE_DIR
from .backend import CollectionBackend, FileStorage, MemoryBackend
from .commands import CommandManager
from .feeds import FeedManager
from .methodology_service import MethodologyService
from .rest_backend import RestBackend
from .rules_service import RulesService
from .storage_service import LocalFileStorage
from .subscription import LocalCollection, Sleeper
from .zone_editor import ZonePitchEditor
from .zone_validator import ZoneEditErrorHandler, ZoneValidationService

logger = logging.getLogger(__name__)

BACKEND_URL_ENV = "COACHDESK_BACKEND_URL"
API_KEY_ENV = "COACHDESK_API_KEY"


def backend_from_env(environ=None) -> CollectionBackend:
    """
    Choose a backend from the environment.

    ``COACHDESK_BACKEND_URL`` selects the HTTP backend (authenticated with
    ``COACHDESK_API_KEY``); without it an in-memory backend is used.
    """
    environ = os.environ if environ is None else environ
    url = environ.get(BACKEND_URL_ENV)
    if url:
        logger.info("Using REST backend at %s", url)
        return RestBackend(url, api_key=environ.get(API_KEY_ENV),
                           poll_interval=DEFAULT_POLL_INTERVAL_SECONDS)
    logger.info("%s not set, using in-memory backend", BACKEND_URL_ENV)
    return MemoryBackend()


class ServiceFactory:
    """
    Factory for creating service instances with proper dependency injection.

    Args:
        backend: Persistence and change feed (in-memory by default)
        storage_dir: Root directory of the local file storage
        retry_policy: Retry policy of every feed subscription
        sleep: Delay function of every feed subscription
    """

    def __init__(self, backend: Optional[CollectionBackend] = None,
                 storage_dir: str = DEFAULT_STORAGE_DIR,
                 retry_policy: Optional[RetryPolicy] = None,
                 sleep: Sleeper = asyncio.sleep):
        self.backend = backend or MemoryBackend()
        self.storage_dir = storage_dir
        self.retry_policy = retry_policy or RetryPolicy()
        self.sleep = sleep
        self._feed_manager: Optional[FeedManager] = None
        self._storage: Optional[FileStorage] = None
        self._validator: Optional[ZoneValidationService] = None

    def create_feed_manager(self) -> FeedManager:
        """Get the feed manager shared by this factory's views."""
        if self._feed_manager is None:
            self._feed_manager = FeedManager(self.backend, self.retry_policy, self.sleep)
        return self._feed_manager

    def create_rules_service(self, collection: LocalCollection,
                             club_id: Optional[str] = None,
                             team_id: Optional[str] = None,
                             coach_id: Optional[str] = None,
                             commands: Optional[CommandManager] = None) -> RulesService:
        """
        Create RulesService bound to a rule list.

        Args:
            collection: Local list kept in sync by the rules feed
            club_id: Club of a club-wide list
            team_id: Team of a team list
            coach_id: Author of club-wide rules
            commands: Optional shared command history

        Returns:
            Configured RulesService instance
        """
        return RulesService(self.backend, collection, club_id=club_id, team_id=team_id,
                            coach_id=coach_id, commands=commands)

    def create_methodology_service(self) -> MethodologyService:
        return MethodologyService(self.backend, validator=self._get_validator())

    def create_zone_editor(self, initial_zones=None, on_zones_change=None,
                           read_only: bool = False, canvas=None) -> ZonePitchEditor:
        return ZonePitchEditor(initial_zones=initial_zones, on_zones_change=on_zones_change,
                               read_only=read_only, canvas=canvas)

    def create_error_handler(self) -> ZoneEditErrorHandler:
        return ZoneEditErrorHandler()

    def get_storage(self) -> FileStorage:
        """Get singleton file storage."""
        if self._storage is None:
            self._storage = LocalFileStorage(self.storage_dir)
        return self._storage

    def _get_validator(self) -> ZoneValidationService:
        """Get singleton zone validator."""
        if self._validator is None:
            self._validator = ZoneValidationService()
        return self._validator

    def configure_custom_storage(self, storage: FileStorage) -> None:
        self._storage = storage

    def configure_custom_validator(self, validator: ZoneValidationService) -> None:
        self._validator = validator
