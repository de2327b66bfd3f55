"""Cascade invalidation of downstream stage results.

When a stage's payload changes, every later generation stage that has
already produced something becomes ``outdated``. Payloads are kept; only
the status flag downgrades. A stage that never ran stays ``idle`` since it
has nothing to go stale. The evaluation is always cleared back to
``idle`` because it scored an image that no longer matches its inputs.

The same rules apply whether the change came from a stage run or from a
manual edit, so both paths go through :func:`downstream_updates`.
"""

import logging
from typing import Optional

from pictonet.schemas.row import (
    GENERATION_STAGES,
    STATUS_FIELD,
    Row,
    Stage,
    StepStatus,
)

__all__ = [
    'PAYLOAD_STAGE',
    'downstream_updates',
    'invalidate_downstream',
    'edit_updates',
]

logger = logging.getLogger(__name__)

# Which stage a user-editable field belongs to. None means "before analysis".
PAYLOAD_STAGE = {
    "utterance": None,
    "analysis": Stage.ANALYSIS,
    "elements": Stage.COMPOSITION,
    "spatial_prompt": Stage.COMPOSITION,
    "bitmap": Stage.RENDERING,
}


def _later_stages(stage: Optional[Stage]) -> tuple:
    if stage is None:
        return GENERATION_STAGES
    return GENERATION_STAGES[GENERATION_STAGES.index(Stage(stage)) + 1:]


def downstream_updates(row: Row, stage: Optional[Stage]) -> dict:
    """Field updates that invalidate everything after ``stage``.

    Parameters
    ----------
    row : Row
        Current row snapshot.
    stage : Stage or None
        The stage whose payload just changed. None stands for the
        utterance, i.e. a change before analysis.

    Returns
    -------
    dict
        Partial update for the row store. Empty for the evaluation stage,
        which has nothing downstream.
    """
    if stage is not None and Stage(stage) == Stage.EVALUATION:
        return {}

    updates = {}
    for later in _later_stages(stage):
        current = row.status_of(later)
        # A run in flight will commit its own status
        if current in (StepStatus.IDLE, StepStatus.PROCESSING):
            continue
        updates[STATUS_FIELD[later]] = StepStatus.OUTDATED.value

    updates["evaluation"] = None
    updates["evaluation_status"] = StepStatus.IDLE.value
    return updates


def invalidate_downstream(row: Row, stage: Optional[Stage]) -> Row:
    """Pure form of :func:`downstream_updates`: a new row, input untouched."""
    updates = downstream_updates(row, stage)
    if not updates:
        return row.model_copy(deep=True)
    return Row.model_validate({**row.model_dump(), **updates})


def edit_updates(row: Row, partial: dict) -> dict:
    """Merge a manual edit with the invalidation it implies.

    The earliest stage touched by ``partial`` decides the cascade. Fields
    outside :data:`PAYLOAD_STAGE` (evaluation scores and rationale, raw
    vector markup) invalidate nothing.
    """
    touched = [PAYLOAD_STAGE[name] for name in partial if name in PAYLOAD_STAGE]
    if not touched:
        return dict(partial)

    if None in touched:
        earliest = None
    else:
        earliest = min(touched, key=GENERATION_STAGES.index)

    invalidation = downstream_updates(row, earliest)
    logger.debug("Edit of %s on %s invalidates %s",
                 sorted(partial), row.id, sorted(k for k in invalidation if k.endswith("_status")))
    return {**invalidation, **partial}
