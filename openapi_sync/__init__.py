"""Keep generated TypeScript artifacts in sync with OpenAPI documents."""

from .config import SyncConfig, load_config
from .errors import (
    ConfigError,
    NameCollisionError,
    SpecParseError,
    SpecUnreachableError,
    SyncError,
    UnresolvedReferenceError,
    WriteError,
)
from .models import EndpointInfo, SyncResult
from .registry import EndpointRegistry
from .scheduler import SchedulerState, SyncScheduler, init
from .sync import generate_client, sync_api

__all__ = [
    "ConfigError",
    "EndpointInfo",
    "EndpointRegistry",
    "NameCollisionError",
    "SchedulerState",
    "SpecParseError",
    "SpecUnreachableError",
    "SyncConfig",
    "SyncError",
    "SyncResult",
    "SyncScheduler",
    "UnresolvedReferenceError",
    "WriteError",
    "generate_client",
    "init",
    "load_config",
    "sync_api",
]
