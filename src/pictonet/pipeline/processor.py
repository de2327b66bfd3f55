"""Stage processor: one stage, one row.

Runs a single named stage by delegating to the generation collaborator,
times it, and commits the outcome to the row store. Every stage-level
failure is caught here and turned into a row status plus a logged
message, so nothing escapes to the store or the caller as an exception.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from pictonet.collaborators.base import Composition, GenerationCollaborator
from pictonet.contracts import (
    CancellationSignal,
    CollaboratorError,
    ContractViolation,
    StageValidationError,
    assert_analysis_parsed,
    assert_composition_ready,
)
from pictonet.pipeline.cancellation import CancellationRegistry
from pictonet.pipeline.invalidation import downstream_updates
from pictonet.pipeline.row_store import RowStore
from pictonet.schemas.analysis import RawAnalysis, coerce_analysis
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.evaluation import Evaluation
from pictonet.schemas.row import DURATION_FIELD, STATUS_FIELD, Row, Stage, StepStatus

__all__ = ['StageProcessor', 'StageOutcome', 'StageResult']

logger = logging.getLogger(__name__)


class StageResult(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class StageOutcome:
    """What happened to one stage invocation.

    ``error_kind`` is ``validation`` for malformed stage input and
    ``collaborator`` for failures of the external call.
    """
    identity: str
    stage: Stage
    result: StageResult
    duration: Optional[float] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result == StageResult.COMPLETED


class StageProcessor:
    """Executes analysis, composition, rendering or evaluation for a row.

    **Transitions:**

    - before the call: stage status ``processing``
    - success: payload stored, status ``completed``, duration recorded,
      downstream invalidation applied in the same update
    - stop requested while the call was in flight: result discarded,
      status back to ``completed``/``error`` if it was one of those,
      ``idle`` otherwise; downstream untouched
    - failure: status ``error``, payloads unchanged, no cascade

    The evaluation stage has no collaborator: it commits the given scores
    synchronously.

    Example usage::

        processor = StageProcessor(store, GeminiGenerator(api_key), registry)
        outcome = await processor.process(row_id, Stage.ANALYSIS, store.config)
        if not outcome.ok:
            print(outcome.error)
    """

    def __init__(self, store: RowStore, generator: GenerationCollaborator,
                 cancellation: Optional[CancellationRegistry] = None):
        self.store = store
        self.generator = generator
        self.cancellation = cancellation if cancellation is not None else CancellationRegistry()

    async def process(self, identity: str, stage: Union[Stage, str], config: GlobalConfig, *,
                      evaluation: Union[Evaluation, dict, None] = None,
                      reset_cancellation: bool = True) -> StageOutcome:
        """Run ``stage`` for the row ``identity``.

        Parameters
        ----------
        identity : str
            Row identity.
        stage : Stage or str
            Stage to run.
        config : GlobalConfig
            Studio configuration for the collaborator request.
        evaluation : Evaluation or dict, optional
            Scores to commit for the evaluation stage. Defaults to the
            row's current evaluation, or neutral scores.
        reset_cancellation : bool
            Clear the row's stop flag first. The cascade runner passes
            False because it owns the flag for the whole cascade.

        Returns
        -------
        StageOutcome
        """
        stage = Stage(stage)
        if stage == Stage.EVALUATION:
            return self.commit_evaluation(identity, evaluation)

        row = self.store.get(identity)
        if row is None:
            logger.warning("[%s] Row %s not found", stage.value, identity)
            return StageOutcome(identity, stage, StageResult.FAILED, error="row not found")

        if reset_cancellation:
            self.cancellation.clear(identity)

        status_field = STATUS_FIELD[stage]
        previous = row.status_of(stage)

        try:
            row = self._check_preconditions(row, stage)
        except StageValidationError as e:
            self.store.update(identity, {status_field: StepStatus.ERROR.value})
            logger.error("[%s] Invalid input for %r: %s", stage.value, row.utterance, e)
            return StageOutcome(identity, stage, StageResult.FAILED,
                                error=str(e), error_kind="validation")

        self.store.update(identity, {status_field: StepStatus.PROCESSING.value})
        logger.info("[%s] %s: %s -> processing", stage.value, identity, previous.value)
        start = time.perf_counter()

        try:
            payload = await self._call_collaborator(row, stage, config)
        except ContractViolation:
            raise
        except CancellationSignal:
            return self._revert(identity, stage, previous, time.perf_counter() - start)
        except Exception as e:
            duration = time.perf_counter() - start
            kind = "validation" if isinstance(e, (StageValidationError, ValidationError)) else "collaborator"
            message = str(e) or type(e).__name__
            self.store.update(identity, {status_field: StepStatus.ERROR.value})
            logger.error("[%s] Error for %r: %s", stage.value, row.utterance, message)
            return StageOutcome(identity, stage, StageResult.FAILED, duration=duration,
                                error=message, error_kind=kind)

        duration = time.perf_counter() - start

        if self.cancellation.is_stop_requested(identity):
            return self._revert(identity, stage, previous, duration)

        current = self.store.get(identity)
        if current is None:
            logger.info("[%s] Row %s deleted while running, result discarded", stage.value, identity)
            return StageOutcome(identity, stage, StageResult.CANCELLED, duration=duration)

        updates = downstream_updates(current, stage)
        updates.update(payload)
        updates[status_field] = StepStatus.COMPLETED.value
        updates[DURATION_FIELD[stage]] = duration
        self.store.update(identity, updates)

        logger.info("[%s] Completed in %.1fs for %r", stage.value, duration, row.utterance)
        return StageOutcome(identity, stage, StageResult.COMPLETED, duration=duration)

    def _check_preconditions(self, row: Row, stage: Stage) -> Row:
        if stage == Stage.COMPOSITION:
            parsed = assert_analysis_parsed(row)
            if isinstance(row.analysis, RawAnalysis):
                # Normalizing the same content is not an edit: no invalidation
                self.store.update(row.id, {"analysis": parsed})
                row = self.store.get(row.id) or row
        elif stage == Stage.RENDERING:
            assert_composition_ready(row)
        return row

    async def _call_collaborator(self, row: Row, stage: Stage, config: GlobalConfig) -> dict:
        """Invoke the collaborator and return the validated payload fields."""
        if stage == Stage.ANALYSIS:
            result = await self.generator.analyze(row.utterance, config)
            if not result:
                raise CollaboratorError("Analysis returned no data")
            return {"analysis": coerce_analysis(result)}

        if stage == Stage.COMPOSITION:
            composition = await self.generator.compose(row.parsed_analysis.record, config)
            if isinstance(composition, dict):
                composition = Composition(elements=composition.get("elements") or [],
                                          spatial_prompt=composition.get("prompt") or "")
            return {"elements": composition.elements, "spatial_prompt": composition.spatial_prompt}

        bitmap = await self.generator.render(row.elements, row.spatial_prompt, row, config)
        if not isinstance(bitmap, str) or not bitmap:
            raise CollaboratorError("No image generated.")
        return {"bitmap": bitmap}

    def _revert(self, identity: str, stage: Stage, previous: StepStatus, duration: float) -> StageOutcome:
        restored = previous if previous in (StepStatus.COMPLETED, StepStatus.ERROR) else StepStatus.IDLE
        self.store.update(identity, {STATUS_FIELD[stage]: restored.value})
        logger.info("[%s] Stopped for %s, status back to %s", stage.value, identity, restored.value)
        return StageOutcome(identity, stage, StageResult.CANCELLED, duration=duration)

    def commit_evaluation(self, identity: str,
                          evaluation: Union[Evaluation, dict, None] = None) -> StageOutcome:
        """Save manual scores and mark the evaluation ``completed``."""
        row = self.store.get(identity)
        if row is None:
            logger.warning("[evaluation] Row %s not found", identity)
            return StageOutcome(identity, Stage.EVALUATION, StageResult.FAILED, error="row not found")

        start = time.perf_counter()
        try:
            if evaluation is None:
                evaluation = row.evaluation or Evaluation()
            else:
                evaluation = Evaluation.submitted(evaluation)
        except ValidationError as e:
            logger.error("[evaluation] Invalid scores for %r: %s", row.utterance, e)
            return StageOutcome(row.id, Stage.EVALUATION, StageResult.FAILED,
                                error=str(e), error_kind="validation")

        duration = time.perf_counter() - start
        self.store.update(row.id, {
            "evaluation": evaluation,
            "evaluation_status": StepStatus.COMPLETED.value,
            "evaluation_duration": duration,
        })
        logger.info("[evaluation] Saved for %r (average %.2f)", row.utterance, evaluation.average)
        return StageOutcome(row.id, Stage.EVALUATION, StageResult.COMPLETED, duration=duration)
