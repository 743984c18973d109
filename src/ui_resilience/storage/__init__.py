"""
Durable local stores.
"""

from .local_store import JsonFileStore, MemoryStore

__all__ = ["JsonFileStore", "MemoryStore"]
