"""Ordered, persisted collection of pipeline rows.

The row store is the single mutation surface for rows. Every mutation
serializes the full row collection and the studio configuration through
the key-value storage collaborator. Loading happens once, at construction,
and never fails: absent or malformed data yields an empty store.
"""

import json
import logging
import secrets
import time
from enum import Enum
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError

from pictonet.contracts.failure import ImportFormatError, PersistenceWarning
from pictonet.core.exchange import parse_phrase_list
from pictonet.core.storage import KeyValueStorage
from pictonet.pipeline.eligibility import check_eligibility
from pictonet.pipeline.invalidation import edit_updates
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.evaluation import SUBMITTED, Evaluation
from pictonet.schemas.row import (
    GENERATION_STAGES,
    PLACEHOLDER_UTTERANCE,
    STATUS_FIELD,
    Row,
    StepStatus,
)

__all__ = ['RowStore', 'SortKey', 'ROWS_KEY', 'CONFIG_KEY']

logger = logging.getLogger(__name__)

ROWS_KEY = "pictonet_v19_storage"
CONFIG_KEY = "pictonet_v19_config"


class SortKey(str, Enum):
    ALPHABETICAL = "alphabetical"
    COMPLETENESS = "completeness"
    EVALUATION = "evaluation"


def completeness(row: Row) -> int:
    """Number of generation stages that are completed with their payload present."""
    return sum(
        1 for stage in GENERATION_STAGES
        if row.status_of(stage) == StepStatus.COMPLETED and row.has_payload(stage)
    )


def evaluation_score(row: Row) -> int:
    return row.evaluation.total if row.evaluation is not None else 0


class RowStore:
    """Owns the ordered list of rows and their persistence.

    **Identity:**

    Identities are ``{prefix}_{epoch_ms}_{6 hex chars}``; prefixes are
    ``R_MANUAL`` for rows added by hand and ``R_PHRASE`` for phrase-list
    imports. They never change after creation.

    **Update semantics:**

    ``update`` merges a partial mapping of field names into the row and is
    a silent no-op for an unknown identity. Concurrent updates to the same
    row are last-write-wins per field. ``edit`` is ``update`` plus cascade
    invalidation, for manual changes to payloads.

    **Persistence:**

    Storage failures are logged as warnings; the in-memory state stays
    authoritative for the session.

    Typical usage::

        store = RowStore(SQLiteKeyValueStorage("studio.db"))
        row_id = store.create("Quiero agua")
        store.edit(row_id, {"spatial_prompt": "vaso a la derecha"})
        for row in store.list(filter_text="agua", sort_key="completeness"):
            print(row.id, row.status)
    """

    def __init__(self, storage: KeyValueStorage, *,
                 rows_key: str = ROWS_KEY, config_key: str = CONFIG_KEY):
        self.storage = storage
        self.rows_key = rows_key
        self.config_key = config_key

        self._rows: List[Row] = []
        self._config = GlobalConfig()

        self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read rows and configuration from storage, tolerating bad data."""
        self._rows = self._load_rows()
        self._config = self._load_config()
        logger.info("Row store loaded: %d rows", len(self._rows))

    def _load_rows(self) -> List[Row]:
        raw = self.storage.get(self.rows_key)
        if raw is None:
            return []

        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Stored rows are not valid JSON, starting empty: %s", e)
            return []
        if not isinstance(items, list):
            logger.warning("Stored rows are not a list, starting empty")
            return []

        rows = []
        seen = set()
        for position, item in enumerate(items):
            try:
                row = Row.model_validate(item)
            except ValidationError as e:
                logger.warning("Skipping malformed stored row #%d: %s", position, e.errors()[0]["msg"])
                continue
            if row.id in seen:
                logger.warning("Skipping duplicate stored row %s", row.id)
                continue
            seen.add(row.id)
            rows.append(_reset_in_flight(row))
        return rows

    def _load_config(self) -> GlobalConfig:
        raw = self.storage.get(self.config_key)
        if raw is None:
            return GlobalConfig()
        try:
            return GlobalConfig.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Stored configuration is malformed, using defaults: %s", e)
            return GlobalConfig()

    def _persist(self) -> None:
        rows_doc = json.dumps([row.to_document() for row in self._rows], ensure_ascii=False)
        config_doc = json.dumps(self._config.to_document(), ensure_ascii=False)
        for key, value in ((self.rows_key, rows_doc), (self.config_key, config_doc)):
            try:
                self.storage.set(key, value)
            except PersistenceWarning as e:
                logger.warning("Persistence failed, keeping in-memory state: %s", e)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> GlobalConfig:
        return self._config.model_copy(deep=True)

    def set_config(self, config: Union[GlobalConfig, dict]) -> None:
        if not isinstance(config, GlobalConfig):
            config = GlobalConfig.model_validate(config)
        self._config = config.model_copy(deep=True)
        self._persist()
        logger.info("Configuration updated (lang=%s, aspect=%s, model=%s)",
                    config.lang, config.aspect_ratio, config.image_model)

    # ------------------------------------------------------------------
    # Row lifecycle
    # ------------------------------------------------------------------

    def _new_id(self, prefix: str) -> str:
        while True:
            identity = f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
            if self._index(identity) is None:
                return identity

    def create(self, utterance: str, *, prefix: str = "R_MANUAL") -> str:
        """Append a new row with every stage idle and return its identity."""
        text = (utterance or "").strip() or PLACEHOLDER_UTTERANCE
        row = Row(id=self._new_id(prefix), utterance=text)
        self._rows.append(row)
        self._persist()
        logger.info("Created row %s: %r", row.id, text[:50])
        return row.id

    def import_phrases(self, text: str) -> List[str]:
        """Create one row per non-blank line of ``text``.

        Raises
        ------
        ImportFormatError
            If the text holds no phrase. Nothing is created.
        """
        phrases = parse_phrase_list(text)
        new_rows = [Row(id=self._new_id("R_PHRASE"), utterance=phrase) for phrase in phrases]
        self._rows.extend(new_rows)
        self._persist()
        logger.info("Imported %d phrases", len(new_rows))
        return [row.id for row in new_rows]

    def _index(self, identity: str) -> Optional[int]:
        for i, row in enumerate(self._rows):
            if row.id == identity:
                return i
        return None

    def get(self, identity: str) -> Optional[Row]:
        """Snapshot of a row; mutating it does not affect the store."""
        i = self._index(identity)
        if i is None:
            return None
        return self._rows[i].model_copy(deep=True)

    def update(self, identity: str, partial: dict) -> None:
        """Merge ``partial`` (field names) into the row. No-op if absent.

        Raises
        ------
        ValueError
            If ``partial`` names an unknown field or tries to change the
            row identity.
        ValidationError
            If a value does not validate; the row is left unchanged.
        """
        unknown = set(partial) - set(Row.model_fields)
        if unknown:
            raise ValueError(f"Unknown row fields: {sorted(unknown)}")
        if "id" in partial and partial["id"] != identity:
            raise ValueError("Row identity is immutable")

        i = self._index(identity)
        if i is None:
            logger.debug("Update for unknown row %s ignored", identity)
            return

        self._rows[i] = Row.model_validate({**self._rows[i].model_dump(), **partial})
        self._persist()

    def edit(self, identity: str, partial: dict) -> None:
        """Apply a manual edit together with the downstream invalidation it implies."""
        i = self._index(identity)
        if i is None:
            logger.debug("Edit for unknown row %s ignored", identity)
            return
        if partial.get("evaluation") is not None:
            partial = {**partial, "evaluation": Evaluation.submitted(partial["evaluation"])}
        self.update(identity, edit_updates(self._rows[i], partial))

    def delete(self, identity: str) -> bool:
        """Remove a row. Artifacts kept elsewhere are the caller's concern."""
        i = self._index(identity)
        if i is None:
            return False
        del self._rows[i]
        self._persist()
        logger.info("Deleted row %s", identity)
        return True

    def clear(self) -> None:
        self._rows = []
        self._persist()

    def replace_all(self, rows: Iterable[Union[Row, dict]]) -> None:
        """Replace the whole collection, validating every element first.

        Each element needs at least an identity and an utterance; stage
        statuses default to ``idle``. On any error nothing is replaced.

        Raises
        ------
        ImportFormatError
            If an element is malformed or identities repeat.
        """
        validated = []
        seen = set()
        for position, item in enumerate(rows):
            if isinstance(item, Row):
                row = item.model_copy(deep=True)
            else:
                if not isinstance(item, dict):
                    raise ImportFormatError(f"Row #{position} is not an object")
                if not item.get("id"):
                    raise ImportFormatError(f"Row #{position} has no identity")
                if "utterance" not in item and "UTTERANCE" not in item:
                    raise ImportFormatError(f"Row #{position} ({item['id']}) has no utterance")
                try:
                    row = Row.model_validate(item, context=SUBMITTED)
                except ValidationError as e:
                    raise ImportFormatError(f"Row #{position} ({item['id']}) is malformed: {e}") from e
            if row.id in seen:
                raise ImportFormatError(f"Duplicate row identity {row.id}")
            seen.add(row.id)
            validated.append(_reset_in_flight(row))

        self._rows = validated
        self._persist()
        logger.info("Replaced row collection: %d rows", len(validated))

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def list(self, filter_text: Optional[str] = None,
             sort_key: Union[SortKey, str] = SortKey.ALPHABETICAL) -> List[Row]:
        """Filtered, sorted snapshot of the rows.

        Parameters
        ----------
        filter_text : str, optional
            Case-insensitive substring that the utterance must contain.
        sort_key : str
            ``alphabetical`` (case-folded utterance), ``completeness``
            (most completed stages first) or ``evaluation`` (highest
            evaluation total first, unevaluated rows count as 0).

        Raises
        ------
        ValueError
            If ``sort_key`` is not one of the above.
        """
        key = SortKey(sort_key)
        rows = self._rows
        if filter_text:
            needle = filter_text.casefold()
            rows = [row for row in rows if needle in row.utterance.casefold()]

        if key == SortKey.ALPHABETICAL:
            ordered = sorted(rows, key=lambda r: r.utterance.casefold())
        elif key == SortKey.COMPLETENESS:
            ordered = sorted(rows, key=completeness, reverse=True)
        else:
            ordered = sorted(rows, key=evaluation_score, reverse=True)

        return [row.model_copy(deep=True) for row in ordered]

    def ids(self) -> List[str]:
        return [row.id for row in self._rows]

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, identity: str) -> bool:
        return self._index(identity) is not None

    def statistics(self) -> dict:
        """Summary counts.

        Returns
        -------
        dict
            - `total`: number of rows
            - `idle`, `processing`, `completed`, `error`: rows by overall status
            - `evaluated`: rows with a committed evaluation
            - `eligible`: rows that pass the vector structuring gate
        """
        stats = {"total": len(self._rows), "idle": 0, "processing": 0,
                 "completed": 0, "error": 0, "evaluated": 0, "eligible": 0}
        for row in self._rows:
            stats[row.status] += 1
            if row.evaluation is not None:
                stats["evaluated"] += 1
            if check_eligibility(row):
                stats["eligible"] += 1
        return stats


def _reset_in_flight(row: Row) -> Row:
    """A status saved mid-run cannot resume; bring it back to idle."""
    stuck = {
        field: StepStatus.IDLE.value
        for field in STATUS_FIELD.values()
        if getattr(row, field) == StepStatus.PROCESSING
    }
    if not stuck:
        return row
    logger.info("Row %s had in-flight stages on load, reset to idle", row.id)
    return Row.model_validate({**row.model_dump(), **stuck})
