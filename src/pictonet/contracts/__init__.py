"""Pipeline contracts and the error taxonomy.

Key principle:
- Pydantic validates config and document correctness
- Stage contracts validate stage inputs (StageValidationError)
- Pipeline contracts validate pipeline correctness (ContractViolation)
"""

from pictonet.contracts.failure import (
    CancellationSignal,
    CollaboratorError,
    ContractViolation,
    ImportFormatError,
    PersistenceWarning,
    PictonetError,
    StageValidationError,
)
from pictonet.contracts.base import require
from pictonet.contracts.stages import (
    assert_analysis_parsed,
    assert_composition_ready,
    assert_stage_completed,
)

__all__ = [
    "CancellationSignal",
    "CollaboratorError",
    "ContractViolation",
    "ImportFormatError",
    "PersistenceWarning",
    "PictonetError",
    "StageValidationError",
    "require",
    "assert_analysis_parsed",
    "assert_composition_ready",
    "assert_stage_completed",
]
