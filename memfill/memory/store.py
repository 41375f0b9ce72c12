"""Read-only memory knowledge base."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional, Protocol

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MemoryCategory = Literal["contact", "general", "location", "work", "personal", "education"]
MemorySource = Literal["manual", "import", "autofill"]

ALLOWED_CATEGORIES: tuple[str, ...] = (
    "contact", "general", "location", "work", "personal", "education",
)


class MemoryMetadata(BaseModel):
    """Provenance of a memory entry."""
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    source: MemorySource = "manual"


class MemoryEntry(BaseModel):
    """A stored personal fact used as fill source material."""
    id: str
    question: Optional[str] = None
    answer: str
    category: MemoryCategory = "general"
    tags: list[str] = []
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    metadata: MemoryMetadata = MemoryMetadata()

    model_config = {"frozen": True}


class MemoryStore(Protocol):
    """Anything that can hand out a snapshot of the knowledge base."""

    def list_memories(self) -> list[MemoryEntry]: ...


class YamlMemoryStore:
    """Memory store backed by a YAML list of entries.

    Entries without an ``id`` get a positional one (``mem-<n>``).
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def list_memories(self) -> list[MemoryEntry]:
        """Load every memory entry from disk.

        Returns:
            List of entries, empty if the file does not exist.
        """
        if not self._path.exists():
            logger.warning(f"Memory file not found: {self._path}")
            return []

        logger.info(f"Loading memories from {self._path}")
        with open(self._path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or []

        if isinstance(data, dict):
            data = data.get("memories", [])

        entries = []
        for position, raw in enumerate(data, start=1):
            raw = dict(raw)
            raw.setdefault("id", f"mem-{position}")
            entries.append(MemoryEntry(**raw))
        return entries


class InMemoryStore:
    """Memory store over a fixed list, for embedding and tests."""

    def __init__(self, memories: list[MemoryEntry]) -> None:
        self._memories = list(memories)

    def list_memories(self) -> list[MemoryEntry]:
        return list(self._memories)
