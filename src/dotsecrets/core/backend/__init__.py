"""Backend module for encrypted payload storage."""

from dotsecrets.core.backend.base import StorageBackend
from dotsecrets.core.backend.factory import (
    get_backend,
    get_config,
    get_registry,
    save_config,
)
from dotsecrets.core.backend.kv import KVBackend
from dotsecrets.core.backend.local import LocalBackend
from dotsecrets.core.backend.notes import NoteBackend

__all__ = [
    "StorageBackend",
    "KVBackend",
    "LocalBackend",
    "NoteBackend",
    "get_backend",
    "get_config",
    "get_registry",
    "save_config",
]
