from __future__ import annotations

from .file_store import FilePreferenceStore
from .interface import PreferenceStore
from .memory import InMemoryPreferenceStore
from .redis_store import RedisPreferenceStore

__all__ = [
    "FilePreferenceStore",
    "InMemoryPreferenceStore",
    "PreferenceStore",
    "RedisPreferenceStore",
]
