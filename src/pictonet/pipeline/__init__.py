"""Pipeline modules.

- row_store: ordered, persisted collection of rows
- invalidation: cascade invalidation of downstream stages
- eligibility: gate for vector structuring
- cancellation: per-row stop flags
- processor: runs one stage for one row
- cascade: runs the three generation stages in order
- vectorize: optional vector structuring stage
- orchestrator: wires everything for a front end
"""

from pictonet.pipeline.row_store import RowStore, SortKey
from pictonet.pipeline.invalidation import downstream_updates, invalidate_downstream, edit_updates
from pictonet.pipeline.eligibility import Eligibility, check_eligibility
from pictonet.pipeline.cancellation import CancellationRegistry
from pictonet.pipeline.processor import StageProcessor, StageOutcome, StageResult
from pictonet.pipeline.cascade import CascadeRunner, CascadeResult, CascadeState
from pictonet.pipeline.vectorize import VectorStructuringStage, StructuringOutcome, StructuringState
from pictonet.pipeline.orchestrator import StudioOrchestrator

__all__ = [
    "RowStore",
    "SortKey",
    "downstream_updates",
    "invalidate_downstream",
    "edit_updates",
    "Eligibility",
    "check_eligibility",
    "CancellationRegistry",
    "StageProcessor",
    "StageOutcome",
    "StageResult",
    "CascadeRunner",
    "CascadeResult",
    "CascadeState",
    "VectorStructuringStage",
    "StructuringOutcome",
    "StructuringState",
    "StudioOrchestrator",
]
