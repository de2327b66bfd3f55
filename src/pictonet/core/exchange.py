"""Project import and export.

Two formats are understood:

- phrase lists: plain text, one utterance per line, blank lines ignored
- project documents: JSON ``{version, type, timestamp, config, rows}``,
  or the legacy form that is just the bare array of rows

Exported documents use the legacy row keys (``UTTERANCE``, ``NLU`` ...)
so older clients can still open them.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import ValidationError

from pictonet.contracts.failure import ImportFormatError
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.row import Row

__all__ = [
    'APP_VERSION',
    'DOCUMENT_TYPE',
    'ProjectDocument',
    'parse_phrase_list',
    'export_document',
    'dumps_document',
    'load_document',
]

logger = logging.getLogger(__name__)

APP_VERSION = "2.6"
DOCUMENT_TYPE = "pictonet_graph_dump"


@dataclass
class ProjectDocument:
    """Contents of an imported project file.

    ``rows`` are plain mappings; the row store validates them when they
    replace the working set. ``config`` is None for legacy documents.
    """
    rows: list
    config: Optional[GlobalConfig] = None
    version: Optional[str] = None
    legacy: bool = False


def parse_phrase_list(text: str) -> list[str]:
    """Split a phrase list into trimmed, non-blank utterances.

    Raises
    ------
    ImportFormatError
        If no line holds a phrase.
    """
    phrases = [line.strip() for line in (text or "").splitlines()]
    phrases = [p for p in phrases if p]
    if not phrases:
        raise ImportFormatError("Phrase list is empty")
    return phrases


def export_document(rows: Iterable[Row], config: GlobalConfig) -> dict:
    """Full working set as a project document mapping."""
    return {
        "version": APP_VERSION,
        "type": DOCUMENT_TYPE,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "config": config.to_document(),
        "rows": [row.to_document() for row in rows],
    }


def dumps_document(rows: Iterable[Row], config: GlobalConfig) -> str:
    return json.dumps(export_document(rows, config), ensure_ascii=False, indent=2)


def load_document(text: str) -> ProjectDocument:
    """Parse a project document in the current or the legacy format.

    Parameters
    ----------
    text : str
        JSON text as read from an export file.

    Returns
    -------
    ProjectDocument
        Rows still unvalidated; configuration validated when present.

    Raises
    ------
    ImportFormatError
        If the text is not JSON, has neither shape, or carries an invalid
        configuration block.
    """
    try:
        parsed = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise ImportFormatError(f"Project file is not valid JSON: {e}") from e

    if isinstance(parsed, list):
        logger.info("Legacy project document: %d rows", len(parsed))
        return ProjectDocument(rows=parsed, legacy=True)

    if not isinstance(parsed, dict) or not isinstance(parsed.get("rows"), list):
        raise ImportFormatError("Unrecognized project file format")

    config = None
    if parsed.get("config") is not None:
        try:
            config = GlobalConfig.model_validate(parsed["config"])
        except ValidationError as e:
            raise ImportFormatError(f"Project configuration is invalid: {e}") from e

    version = parsed.get("version")
    if version is not None and str(version) != APP_VERSION:
        logger.info("Project document version %s (current %s)", version, APP_VERSION)

    return ProjectDocument(rows=parsed["rows"], config=config,
                           version=None if version is None else str(version))
