"""Core infrastructure for the PICTONET studio.

Storage, project exchange, the vector artifact library, the reference
dataset and logging. Tabular reports live in ``pictonet.core.reporting``.
"""

from pictonet.core.storage import KeyValueStorage, SQLiteKeyValueStorage, MemoryKeyValueStorage
from pictonet.core.exchange import ProjectDocument, parse_phrase_list, export_document, load_document
from pictonet.core.vector_library import StructuredPictogram, VectorLibrary
from pictonet.core.canonical import canonical_rows
from pictonet.core.activity_log import ActivityLog, LogEntry, setup_logging

__all__ = [
    'KeyValueStorage',
    'SQLiteKeyValueStorage',
    'MemoryKeyValueStorage',
    'ProjectDocument',
    'parse_phrase_list',
    'export_document',
    'load_document',
    'StructuredPictogram',
    'VectorLibrary',
    'canonical_rows',
    'ActivityLog',
    'LogEntry',
    'setup_logging',
]
