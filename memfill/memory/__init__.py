"""Memory knowledge base access."""
from .store import InMemoryStore, MemoryEntry, MemoryMetadata, MemoryStore, YamlMemoryStore

__all__ = ["MemoryEntry", "MemoryMetadata", "MemoryStore", "YamlMemoryStore", "InMemoryStore"]
