"""Cascade runner: analysis -> composition -> rendering for one row.

The runner owns the row's cancellation flag for the whole cascade and
drives the stage processor stage by stage. It never caches payloads: the
processor is the single writer, so the row is re-read before each stage.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pictonet.contracts import assert_stage_completed
from pictonet.pipeline.cancellation import CancellationRegistry
from pictonet.pipeline.processor import StageOutcome, StageProcessor, StageResult
from pictonet.pipeline.row_store import RowStore
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.row import GENERATION_STAGES, STATUS_FIELD, Stage, StepStatus

__all__ = ['CascadeRunner', 'CascadeState', 'CascadeResult']

logger = logging.getLogger(__name__)


class CascadeState(str, Enum):
    IDLE = "idle"
    RUNNING_ANALYSIS = "running_analysis"
    RUNNING_COMPOSITION = "running_composition"
    RUNNING_RENDERING = "running_rendering"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


RUNNING_STATE = {
    Stage.ANALYSIS: CascadeState.RUNNING_ANALYSIS,
    Stage.COMPOSITION: CascadeState.RUNNING_COMPOSITION,
    Stage.RENDERING: CascadeState.RUNNING_RENDERING,
}

RUNNING_STATES = frozenset(RUNNING_STATE.values())


@dataclass
class CascadeResult:
    """Final state of one cascade.

    ``stage`` is the stage that failed or was stopped; None on completion.
    """
    identity: str
    state: CascadeState
    stage: Optional[Stage] = None
    error: Optional[str] = None
    outcomes: list[StageOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == CascadeState.COMPLETED


class CascadeRunner:
    """Runs the three generation stages in dependency order.

    **States** (per row, transient, never persisted)::

        idle -> running_analysis -> running_composition -> running_rendering -> completed
                       |                    |                     |
                       +---- failed / stopped (at that stage) ----+

    Entry to a running state requires the previous stage to be
    ``completed`` on the row; a violation is a pipeline bug and raises
    ContractViolation. Evaluation is never run automatically.

    Example usage::

        runner = CascadeRunner(store, processor, registry)
        result = await runner.run(row_id, store.config)
        if result.state == CascadeState.FAILED:
            print(f"{result.stage.value} failed: {result.error}")
    """

    def __init__(self, store: RowStore, processor: StageProcessor,
                 cancellation: Optional[CancellationRegistry] = None):
        self.store = store
        self.processor = processor
        self.cancellation = cancellation if cancellation is not None else processor.cancellation
        self._states: dict[str, CascadeState] = {}

    def state_of(self, identity: str) -> CascadeState:
        return self._states.get(identity, CascadeState.IDLE)

    def is_running(self, identity: str) -> bool:
        return self.state_of(identity) in RUNNING_STATES

    def forget(self, identity: str) -> None:
        self._states.pop(identity, None)

    async def run(self, identity: str, config: GlobalConfig) -> CascadeResult:
        """Run the full cascade for one row.

        Returns
        -------
        CascadeResult
            ``completed``, ``failed`` with the failing stage and message,
            or ``stopped`` with the stage that was running.
        """
        row = self.store.get(identity)
        if row is None:
            logger.warning("Cascade requested for unknown row %s", identity)
            return CascadeResult(identity, CascadeState.FAILED, error="row not found")
        if self.is_running(identity):
            logger.warning("Cascade already running for %s", identity)
            return CascadeResult(identity, self.state_of(identity), error="cascade already running")

        logger.info("Starting cascade for %r", row.utterance)
        self.cancellation.clear(identity)
        self.store.update(identity, {
            STATUS_FIELD[Stage.COMPOSITION]: StepStatus.IDLE.value,
            STATUS_FIELD[Stage.RENDERING]: StepStatus.IDLE.value,
            STATUS_FIELD[Stage.EVALUATION]: StepStatus.IDLE.value,
        })

        result = CascadeResult(identity, CascadeState.IDLE)
        # A stop is seen by the processor once the running stage's call returns
        for position, stage in enumerate(GENERATION_STAGES):
            if position > 0:
                row = self.store.get(identity)
                if row is None:
                    return self._finish(result, CascadeState.STOPPED, stage, error="row deleted")
                assert_stage_completed(row, GENERATION_STAGES[position - 1])

            self._states[identity] = RUNNING_STATE[stage]
            outcome = await self.processor.process(identity, stage, config, reset_cancellation=False)
            result.outcomes.append(outcome)

            if outcome.result == StageResult.CANCELLED:
                # Never committed by this cascade, so nothing is stale
                self.store.update(identity, {STATUS_FIELD[stage]: StepStatus.IDLE.value})
                logger.info("Cascade stopped at %s for %s", stage.value, identity)
                return self._finish(result, CascadeState.STOPPED, stage)

            if outcome.result == StageResult.FAILED:
                logger.error("Cascade failed at %s for %s: %s", stage.value, identity, outcome.error)
                return self._finish(result, CascadeState.FAILED, stage, error=outcome.error)

        self.store.update(identity, {STATUS_FIELD[Stage.EVALUATION]: StepStatus.IDLE.value})
        logger.info("Cascade completed for %s", identity)
        return self._finish(result, CascadeState.COMPLETED)

    def _finish(self, result: CascadeResult, state: CascadeState,
                stage: Optional[Stage] = None, error: Optional[str] = None) -> CascadeResult:
        result.state = state
        result.stage = stage
        result.error = error
        self._states[result.identity] = state
        return result
