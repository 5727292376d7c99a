from .locks import KeyedLocks
from .memory_store import MemoryCounterStore
from .sqlite_store import SQLiteCounterStore


def build_store(config):
    """Pick the store backend named by STORE_BACKEND."""
    if config.store_backend == "sqlite":
        return SQLiteCounterStore(config.sqlite_path)
    if config.store_backend == "memory":
        return MemoryCounterStore()
    raise ValueError(f"unknown store backend: {config.store_backend}")


__all__ = ["KeyedLocks", "MemoryCounterStore", "SQLiteCounterStore", "build_store"]
