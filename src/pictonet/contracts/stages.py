"""Stage precondition contracts.

Called by the stage processor before a collaborator is invoked. A failing
precondition is a user-data problem, so these raise StageValidationError
and the stage is marked ``error``. The cascade transition guard is a
pipeline invariant and raises ContractViolation.
"""

import json

from pydantic import ValidationError

from pictonet.contracts.base import require
from pictonet.contracts.failure import StageValidationError
from pictonet.schemas.analysis import (
    AnalysisRecord,
    ParsedAnalysis,
    RawAnalysis,
    extract_json_text,
)
from pictonet.schemas.row import Row, Stage, StepStatus


def assert_analysis_parsed(row: Row) -> ParsedAnalysis:
    """Normalize the row's analysis payload to its parsed form.

    Parameters
    ----------
    row : Row
        Row about to enter composition.

    Returns
    -------
    ParsedAnalysis
        The parsed variant; raw text is decoded and validated.

    Raises
    ------
    StageValidationError
        If the payload is missing or the raw text is not a JSON object.
    """
    require(
        row.analysis is not None,
        "Composition requires an analysis payload",
        StageValidationError,
    )
    if isinstance(row.analysis, ParsedAnalysis):
        return row.analysis

    text = row.analysis.text if isinstance(row.analysis, RawAnalysis) else ""
    require(
        bool(text.strip()),
        "Composition requires an analysis payload",
        StageValidationError,
    )
    try:
        data = json.loads(extract_json_text(text))
    except json.JSONDecodeError as e:
        raise StageValidationError(f"Analysis payload is not valid JSON: {e}") from e

    require(
        isinstance(data, dict),
        f"Analysis payload must be a JSON object, got {type(data).__name__}",
        StageValidationError,
    )
    try:
        record = AnalysisRecord.model_validate(data)
    except ValidationError as e:
        raise StageValidationError(f"Analysis payload is malformed: {e}") from e
    return ParsedAnalysis(record=record)


def assert_composition_ready(row: Row) -> None:
    """Enforce that rendering has an element tree and a spatial prompt."""
    require(
        row.elements is not None and not row.elements.is_empty(),
        "Rendering requires a non-empty element tree",
        StageValidationError,
    )
    require(
        bool(row.spatial_prompt),
        "Rendering requires a spatial prompt",
        StageValidationError,
    )


def assert_stage_completed(row: Row, stage: Stage) -> None:
    """Cascade transition guard: the previous stage must have completed."""
    require(
        row.status_of(stage) == StepStatus.COMPLETED,
        f"Cascade contract violated: {Stage(stage).value} is "
        f"'{row.status_of(stage).value}', expected 'completed'",
    )
