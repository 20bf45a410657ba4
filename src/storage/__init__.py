"""Key-value stores backing phase persistence and the shared snapshot."""

from .json_file import JsonFileStore
from .memory import MemoryStore

__all__ = ["JsonFileStore", "MemoryStore"]
