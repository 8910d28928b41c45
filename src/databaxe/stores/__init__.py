"""Key/value stores used by the cache adapter."""

from databaxe.stores.base import Store
from databaxe.stores.memory import MemoryStore

__all__ = ["MemoryStore", "Store"]
