"""
Directory setup for the pictogram studio.

One base directory holds everything a CLI session writes:
- data: the SQLite key-value store
- exports: project documents (``{author}_graph_YYYY-MM-DD.json``)
- svg: structured SVG artifacts, one file per utterance
- logs: session log files
"""

import re
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

__all__ = [
    'setup_workspace_directories',
    'sanitize_filename',
    'get_db_path',
    'get_export_path',
    'get_svg_path',
    'get_log_path',
]

MAX_NAME_LENGTH = 30


def setup_workspace_directories(base_dir: Optional[Union[str, Path]] = None) -> dict:
    """
    Create the workspace directory structure.

    Parameters
    ----------
    base_dir : str or Path, optional
        Base directory. Defaults to ``./pictonet_output``.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'data', 'exports', 'svg', 'logs'
    """
    if base_dir is None:
        base_dir = Path.cwd() / "pictonet_output"
    base_dir = Path(base_dir).expanduser().resolve()

    directories = {
        "base": base_dir,
        "data": base_dir / "data",
        "exports": base_dir / "exports",
        "svg": base_dir / "svg",
        "logs": base_dir / "logs",
    }
    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    return directories


def sanitize_filename(text: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """
    Lower-case ASCII slug suitable for a file name.

    Accents are stripped, every run of other characters becomes a single
    underscore and the result is trimmed to ``max_length``.

    Example
    -------
    >>> sanitize_filename("Quiero beber agua, ¡ya!")
    'quiero_beber_agua_ya'
    """
    decomposed = unicodedata.normalize("NFD", text or "")
    ascii_text = "".join(c for c in decomposed if not unicodedata.combining(c))
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", ascii_text).strip("_").lower()
    return slug[:max_length].rstrip("_") or "untitled"


def get_db_path(output_dirs: dict, filename: str = "pictonet.db") -> Path:
    return output_dirs["data"] / filename


def get_export_path(output_dirs: dict, author: str, date: Optional[datetime] = None) -> Path:
    """
    Path of a project export.

    Parameters
    ----------
    output_dirs : dict
        Output directories from setup_workspace_directories()
    author : str
        Project author; sanitized into the file name.
    date : datetime, optional
        Export date. Defaults to today (UTC).

    Returns
    -------
    Path
        Full path: exports/{author}_graph_YYYY-MM-DD.json

    Example
    -------
    >>> get_export_path(dirs, 'PICTOS.NET')
    Path('output/exports/pictos_net_graph_2026-10-19.json')
    """
    if date is None:
        date = datetime.now(timezone.utc)
    filename = f"{sanitize_filename(author)}_graph_{date.strftime('%Y-%m-%d')}.json"
    return output_dirs["exports"] / filename


def get_svg_path(output_dirs: dict, utterance: str) -> Path:
    """Path of a structured SVG file named after its utterance."""
    return output_dirs["svg"] / f"{sanitize_filename(utterance)}.svg"


def get_log_path(output_dirs: dict) -> Path:
    """Timestamped session log file."""
    log_dir = output_dirs["logs"]
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return log_dir / f"studio_{timestamp}.log"
