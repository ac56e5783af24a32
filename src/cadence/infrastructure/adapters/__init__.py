# Infrastructure Adapters Package
from .file_store import FileScheduleRepository
from .http_store import HttpScheduleRepository
from .local_fallback import JsonFallbackStore
from .memory_store import InMemoryScheduleRepository

__all__ = [
    "FileScheduleRepository",
    "HttpScheduleRepository",
    "InMemoryScheduleRepository",
    "JsonFallbackStore",
]
