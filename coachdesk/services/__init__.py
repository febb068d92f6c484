"""
Services package for CoachDesk.

This package contains the zone geometry engine and editor, the realtime sync
layer and the foreground services built on it. A factory wires them together.
"""
from .backend import (
    BackendError, CollectionBackend, ChangeChannel, FileStorage, FetchResult,
    WriteResult, UploadResult, MemoryBackend, guarded_call
)
from .zone_geometry import ZoneValidationError, CanvasSize
from .zone_validator import ValidationResult, ZoneValidationService, ZoneEditErrorHandler
from .zone_editor import EditorMode, ZonePitchEditor, ZoneEditModal
from .subscription import LocalCollection, ResilientSubscription, reconcile
from .feeds import Feed, FeedManager, feed_filter
from .commands import ActionResult, CommandManager
from .rules_service import RulesService
from .methodology_service import MethodologyService
from .storage_service import LocalFileStorage
from .rest_backend import RestBackend
from .service_factory import ServiceFactory, backend_from_env

__all__ = [
    "BackendError", "CollectionBackend", "ChangeChannel", "FileStorage", "FetchResult",
    "WriteResult", "UploadResult", "MemoryBackend", "guarded_call",
    "ZoneValidationError", "CanvasSize", "ValidationResult", "ZoneValidationService",
    "ZoneEditErrorHandler", "EditorMode", "ZonePitchEditor", "ZoneEditModal",
    "LocalCollection", "ResilientSubscription", "reconcile", "Feed", "FeedManager",
    "feed_filter", "ActionResult", "CommandManager", "RulesService",
    "MethodologyService", "LocalFileStorage", "RestBackend", "ServiceFactory",
    "backend_from_env"
]
