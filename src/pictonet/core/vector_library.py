"""Library of structured SVG pictograms.

Structured vector artifacts are large and only needed by a few operations,
so they live under their own storage key instead of inside the rows. At
most one artifact exists per source row.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pictonet.contracts.failure import PersistenceWarning
from pictonet.core.storage import KeyValueStorage

__all__ = ['StructuredPictogram', 'VectorLibrary', 'LIBRARY_KEY']

logger = logging.getLogger(__name__)

LIBRARY_KEY = "pictonet_svg_lib"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StructuredPictogram(BaseModel):
    """A self-contained structured SVG with its provenance."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    utterance: str
    svg: str
    created_at: str = Field(default_factory=_now, alias="createdAt")
    source_row_id: str = Field(alias="sourceRowId")
    score: float = Field(0.0, alias="vcsciScore")
    lang: Optional[str] = None

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VectorLibrary:
    """Persisted collection of :class:`StructuredPictogram`.

    Every mutation writes the whole library back to storage. Write failures
    are logged and the in-memory library stays authoritative.
    """

    def __init__(self, storage: KeyValueStorage, key: str = LIBRARY_KEY):
        self.storage = storage
        self.key = key
        self._items: list[StructuredPictogram] = self._load()

    def _load(self) -> list[StructuredPictogram]:
        raw = self.storage.get(self.key)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError("library is not a list")
            return [StructuredPictogram.model_validate(item) for item in items]
        except (ValueError, ValidationError) as e:
            logger.warning("Stored vector library is malformed, starting empty: %s", e)
            return []

    def _persist(self) -> None:
        value = json.dumps([item.to_document() for item in self._items], ensure_ascii=False)
        try:
            self.storage.set(self.key, value)
        except PersistenceWarning as e:
            logger.warning("Vector library not persisted: %s", e)

    def add(self, pictogram: StructuredPictogram) -> None:
        """Store ``pictogram``, replacing any artifact of the same source row."""
        self._items = [p for p in self._items if p.source_row_id != pictogram.source_row_id]
        self._items.append(pictogram)
        self._persist()
        logger.info("Vector artifact %s stored for row %s", pictogram.id, pictogram.source_row_id)

    def remove(self, pictogram_id: str) -> bool:
        before = len(self._items)
        self._items = [p for p in self._items if p.id != pictogram_id]
        if len(self._items) == before:
            return False
        self._persist()
        return True

    def remove_for_row(self, row_id: str) -> bool:
        before = len(self._items)
        self._items = [p for p in self._items if p.source_row_id != row_id]
        if len(self._items) == before:
            return False
        self._persist()
        logger.info("Vector artifact for row %s removed", row_id)
        return True

    def get(self, pictogram_id: str) -> Optional[StructuredPictogram]:
        for p in self._items:
            if p.id == pictogram_id:
                return p.model_copy()
        return None

    def get_by_row(self, row_id: str) -> Optional[StructuredPictogram]:
        for p in self._items:
            if p.source_row_id == row_id:
                return p.model_copy()
        return None

    def has_row(self, row_id: str) -> bool:
        return any(p.source_row_id == row_id for p in self._items)

    def all(self) -> list[StructuredPictogram]:
        return [p.model_copy() for p in self._items]

    def clear(self) -> None:
        self._items = []
        self._persist()

    def export_all(self) -> str:
        """JSON array of every artifact, in insertion order."""
        return json.dumps([item.to_document() for item in self._items], ensure_ascii=False, indent=2)

    def __len__(self) -> int:
        return len(self._items)
