"""Tabular summaries of the working set."""

import logging
from typing import Iterable

import pandas as pd

from pictonet.pipeline.eligibility import check_eligibility
from pictonet.schemas.evaluation import AXES
from pictonet.schemas.row import Row

__all__ = ['rows_frame', 'evaluation_frame', 'evaluation_summary', 'log_evaluation_statistics']

logger = logging.getLogger(__name__)

ROW_COLUMNS = [
    "id", "utterance", "status", "analysis_status", "composition_status",
    "rendering_status", "evaluation_status", "analysis_duration",
    "composition_duration", "rendering_duration",
]


def rows_frame(rows: Iterable[Row]) -> pd.DataFrame:
    """One line per row with statuses and stage durations."""
    records = [{col: getattr(row, col) for col in ROW_COLUMNS} for row in rows]
    return pd.DataFrame(records, columns=ROW_COLUMNS)


def evaluation_frame(rows: Iterable[Row]) -> pd.DataFrame:
    """Axis scores of every evaluated row.

    Returns
    -------
    pd.DataFrame
        Columns: ``id``, ``utterance``, the six axes, ``total``, ``average``
        and ``eligible``. Rows without an evaluation are left out.
    """
    records = []
    for row in rows:
        if row.evaluation is None:
            continue
        record = {"id": row.id, "utterance": row.utterance}
        record.update(row.evaluation.scores())
        record["total"] = row.evaluation.total
        record["average"] = row.evaluation.average
        record["eligible"] = check_eligibility(row).eligible
        records.append(record)

    columns = ["id", "utterance", *AXES, "total", "average", "eligible"]
    return pd.DataFrame(records, columns=columns)


def evaluation_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Per-axis mean, min and max over an :func:`evaluation_frame`."""
    if df.empty:
        return pd.DataFrame(columns=["mean", "min", "max"])
    numeric = df[[*AXES, "average"]]
    return pd.DataFrame({
        "mean": numeric.mean(),
        "min": numeric.min(),
        "max": numeric.max(),
    })


def log_evaluation_statistics(df: pd.DataFrame) -> None:
    if df.empty:
        logger.info("No evaluated rows")
        return

    stats_parts = [f"Evaluated: {len(df)}"]
    stats_parts.append(
        f"Average - min={df['average'].min():.2f}, "
        f"max={df['average'].max():.2f}, "
        f"mean={df['average'].mean():.2f}"
    )
    stats_parts.append(f"Eligible: {int(df['eligible'].sum())}")
    logger.info("Evaluation Statistics: %s", " | ".join(stats_parts))
