"""Stage processor: transitions, payload commits and failure handling."""

import logging

import pytest

from pictonet.contracts.failure import CancellationSignal, CollaboratorError, ContractViolation
from pictonet.pipeline.processor import StageProcessor, StageResult
from pictonet.schemas.analysis import ParsedAnalysis
from pictonet.schemas.evaluation import AXES, Evaluation
from pictonet.schemas.row import Stage, StepStatus
from tests.helpers.fake_collaborators import BITMAP, SAMPLE_PROMPT

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


class TestSuccess:

    @pytest.mark.asyncio
    async def test_analysis_stores_parsed_payload(self, store, processor, make_row, studio_config):
        identity = make_row()

        outcome = await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert outcome.ok
        assert outcome.duration is not None and outcome.duration >= 0
        row = store.get(identity)
        assert isinstance(row.analysis, ParsedAnalysis)
        assert row.parsed_analysis.record.metadata["intent"] == "desire"
        assert row.status_of(Stage.ANALYSIS) == StepStatus.COMPLETED
        assert row.analysis_duration == outcome.duration

    @pytest.mark.asyncio
    async def test_composition_stores_elements_and_prompt_together(
            self, store, processor, make_row, studio_config):
        identity = make_row(analysis={"lang": "es"}, analysis_status="completed")

        outcome = await processor.process(identity, "composition", studio_config)

        assert outcome.ok
        row = store.get(identity)
        assert row.elements.labels() == ["pictograma", "persona", "vaso", "agua"]
        assert row.spatial_prompt == SAMPLE_PROMPT
        assert row.status_of(Stage.COMPOSITION) == StepStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_rendering_stores_bitmap(self, store, processor, completed_row, studio_config):
        store.update(completed_row, {"bitmap": None, "rendering_status": "idle"})

        outcome = await processor.process(completed_row, Stage.RENDERING, studio_config)

        assert outcome.ok
        assert store.get(completed_row).bitmap == BITMAP

    @pytest.mark.asyncio
    async def test_config_is_passed_to_collaborator(self, processor, generator, make_row, make_config):
        identity = make_row()
        config = make_config(LANG="en", ASPECT_RATIO="16:9").studio

        await processor.process(identity, Stage.ANALYSIS, config)

        assert generator.configs[0].aspect_ratio == "16:9"

    @pytest.mark.asyncio
    async def test_status_is_processing_while_in_flight(self, store, processor, generator,
                                                        make_row, studio_config):
        identity = make_row()
        seen = []
        generator.hooks["analysis"] = lambda: seen.append(store.get(identity).analysis_status)

        await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert seen == ["processing"]


class TestInvalidationOnSuccess:

    @pytest.mark.asyncio
    async def test_rerunning_analysis_outdates_downstream(self, store, processor, eligible_row, studio_config):
        outcome = await processor.process(eligible_row, Stage.ANALYSIS, studio_config)

        assert outcome.ok
        row = store.get(eligible_row)
        assert row.status_of(Stage.ANALYSIS) == StepStatus.COMPLETED
        assert row.status_of(Stage.COMPOSITION) == StepStatus.OUTDATED
        assert row.status_of(Stage.RENDERING) == StepStatus.OUTDATED
        assert row.evaluation is None
        assert row.status_of(Stage.EVALUATION) == StepStatus.IDLE
        # payloads survive invalidation
        assert row.bitmap == BITMAP
        assert row.elements is not None

    @pytest.mark.asyncio
    async def test_rerunning_rendering_clears_evaluation(self, store, processor, eligible_row, studio_config):
        await processor.process(eligible_row, Stage.RENDERING, studio_config)

        row = store.get(eligible_row)
        assert row.status_of(Stage.COMPOSITION) == StepStatus.COMPLETED
        assert row.evaluation is None


class TestFailures:

    @pytest.mark.asyncio
    async def test_collaborator_error_marks_stage_error(self, store, processor, generator,
                                                        completed_row, studio_config, caplog):
        generator.fail["rendering"] = CollaboratorError("No image generated.")

        with caplog.at_level(logging.ERROR):
            outcome = await processor.process(completed_row, Stage.RENDERING, studio_config)

        assert outcome.result == StageResult.FAILED
        assert outcome.error == "No image generated."
        assert outcome.error_kind == "collaborator"
        row = store.get(completed_row)
        assert row.status_of(Stage.RENDERING) == StepStatus.ERROR
        assert row.bitmap == BITMAP
        assert "No image generated." in caplog.text

    @pytest.mark.asyncio
    async def test_failure_does_not_cascade(self, store, processor, generator, eligible_row, studio_config):
        generator.fail["analysis"] = RuntimeError("quota exceeded")

        await processor.process(eligible_row, Stage.ANALYSIS, studio_config)

        row = store.get(eligible_row)
        assert row.status_of(Stage.ANALYSIS) == StepStatus.ERROR
        assert row.status_of(Stage.COMPOSITION) == StepStatus.COMPLETED
        assert row.evaluation is not None

    @pytest.mark.asyncio
    async def test_empty_analysis_is_an_error(self, store, processor, generator, make_row, studio_config):
        generator.analysis = {}
        identity = make_row()

        outcome = await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert outcome.result == StageResult.FAILED
        assert store.get(identity).analysis is None

    @pytest.mark.asyncio
    async def test_empty_bitmap_is_an_error(self, store, processor, generator, completed_row, studio_config):
        generator.bitmap = ""

        outcome = await processor.process(completed_row, Stage.RENDERING, studio_config)

        assert outcome.result == StageResult.FAILED
        assert outcome.error == "No image generated."

    @pytest.mark.asyncio
    async def test_unknown_row(self, processor, studio_config):
        outcome = await processor.process("R_missing", Stage.ANALYSIS, studio_config)

        assert outcome.result == StageResult.FAILED
        assert outcome.error == "row not found"

    @pytest.mark.asyncio
    async def test_contract_violation_propagates(self, processor, generator, make_row, studio_config):
        generator.fail["analysis"] = ContractViolation("bug")
        identity = make_row()

        with pytest.raises(ContractViolation):
            await processor.process(identity, Stage.ANALYSIS, studio_config)


class TestPreconditions:

    @pytest.mark.asyncio
    async def test_raw_analysis_is_normalized_before_composition(
            self, store, processor, make_row, studio_config):
        identity = make_row(analysis='```json\n{"lang": "es", "metadata": {"intent": "x"}}\n```',
                            analysis_status="completed")

        outcome = await processor.process(identity, Stage.COMPOSITION, studio_config)

        assert outcome.ok
        row = store.get(identity)
        assert row.parsed_analysis.record.metadata == {"intent": "x"}
        assert row.status_of(Stage.ANALYSIS) == StepStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unparseable_analysis_fails_composition(
            self, store, processor, generator, make_row, studio_config):
        identity = make_row(analysis="not json at all", analysis_status="completed")

        outcome = await processor.process(identity, Stage.COMPOSITION, studio_config)

        assert outcome.result == StageResult.FAILED
        assert outcome.error_kind == "validation"
        assert store.get(identity).status_of(Stage.COMPOSITION) == StepStatus.ERROR
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_missing_analysis_fails_composition(self, store, processor, make_row, studio_config):
        identity = make_row()

        outcome = await processor.process(identity, Stage.COMPOSITION, studio_config)

        assert outcome.error_kind == "validation"
        assert "analysis" in outcome.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fields", [
        {"elements": []},
        {"spatial_prompt": ""},
    ])
    async def test_rendering_needs_composition(self, store, processor, generator,
                                               completed_row, studio_config, fields):
        store.update(completed_row, fields)

        outcome = await processor.process(completed_row, Stage.RENDERING, studio_config)

        assert outcome.result == StageResult.FAILED
        assert outcome.error_kind == "validation"
        assert generator.calls == []


class TestCancellation:

    @pytest.mark.asyncio
    async def test_stop_while_in_flight_discards_result(
            self, store, processor, generator, registry, make_row, studio_config):
        identity = make_row()
        generator.hooks["analysis"] = lambda: registry.request_stop(identity)

        outcome = await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert outcome.result == StageResult.CANCELLED
        row = store.get(identity)
        assert row.analysis is None
        assert row.status_of(Stage.ANALYSIS) == StepStatus.IDLE

    @pytest.mark.asyncio
    async def test_stop_restores_completed_status(
            self, store, processor, generator, registry, eligible_row, studio_config):
        generator.hooks["rendering"] = lambda: registry.request_stop(eligible_row)
        generator.bitmap = "data:image/png;base64,QkJC"

        outcome = await processor.process(eligible_row, Stage.RENDERING, studio_config)

        assert outcome.result == StageResult.CANCELLED
        row = store.get(eligible_row)
        assert row.status_of(Stage.RENDERING) == StepStatus.COMPLETED
        assert row.bitmap == BITMAP
        # downstream untouched
        assert row.evaluation is not None

    @pytest.mark.asyncio
    async def test_stop_restores_error_status(
            self, store, processor, generator, registry, make_row, studio_config):
        identity = make_row(analysis_status="error")
        generator.hooks["analysis"] = lambda: registry.request_stop(identity)

        await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert store.get(identity).status_of(Stage.ANALYSIS) == StepStatus.ERROR

    @pytest.mark.asyncio
    async def test_stop_from_outdated_goes_idle(
            self, store, processor, generator, registry, completed_row, studio_config):
        store.update(completed_row, {"rendering_status": "outdated"})
        generator.hooks["rendering"] = lambda: registry.request_stop(completed_row)

        await processor.process(completed_row, Stage.RENDERING, studio_config)

        assert store.get(completed_row).status_of(Stage.RENDERING) == StepStatus.IDLE

    @pytest.mark.asyncio
    async def test_cancellation_signal_reverts(self, store, processor, generator, make_row, studio_config):
        identity = make_row()
        generator.fail["analysis"] = CancellationSignal("stopped")

        outcome = await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert outcome.result == StageResult.CANCELLED
        assert store.get(identity).status_of(Stage.ANALYSIS) == StepStatus.IDLE

    @pytest.mark.asyncio
    async def test_stale_flag_is_cleared_at_start(self, store, processor, registry, make_row, studio_config):
        identity = make_row()
        registry.request_stop(identity)

        outcome = await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert outcome.ok

    @pytest.mark.asyncio
    async def test_row_deleted_while_in_flight(self, store, processor, generator, make_row, studio_config):
        identity = make_row()
        generator.hooks["analysis"] = lambda: store.delete(identity)

        outcome = await processor.process(identity, Stage.ANALYSIS, studio_config)

        assert outcome.result == StageResult.CANCELLED
        assert store.get(identity) is None
        assert len(store) == 0


class TestEvaluation:

    def test_commit_scores(self, store, processor, completed_row):
        scores = {"semantics": 5, "syntactics": 4, "pragmatics": 4, "clarity": 4,
                  "universality": 3, "aesthetics": 2, "reasoning": "legible"}

        outcome = processor.commit_evaluation(completed_row, scores)

        assert outcome.ok
        row = store.get(completed_row)
        assert row.evaluation.semantics == 5
        assert row.evaluation.aesthetics == 2
        assert row.evaluation.reasoning == "legible"
        assert row.status_of(Stage.EVALUATION) == StepStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_evaluation_through_process(self, store, processor, generator, completed_row, studio_config):
        outcome = await processor.process(completed_row, Stage.EVALUATION, studio_config,
                                          evaluation=Evaluation.from_scores([4] * 6))

        assert outcome.ok
        assert store.get(completed_row).evaluation.average == 4.0
        assert generator.calls == []

    def test_default_scores_are_neutral(self, store, processor, completed_row):
        processor.commit_evaluation(completed_row)

        assert store.get(completed_row).evaluation.average == 3.0

    def test_partial_scores_are_rejected(self, store, processor, completed_row):
        outcome = processor.commit_evaluation(completed_row, {"semantics": 5, "reasoning": "x"})

        assert outcome.result == StageResult.FAILED
        assert outcome.error_kind == "validation"
        assert "syntactics" in outcome.error
        row = store.get(completed_row)
        assert row.evaluation is None
        assert row.status_of(Stage.EVALUATION) == StepStatus.IDLE

    def test_out_of_range_scores_are_rejected(self, store, processor, completed_row):
        scores = {**dict.fromkeys(AXES, 4), "semantics": 9}

        outcome = processor.commit_evaluation(completed_row, scores)

        assert outcome.result == StageResult.FAILED
        assert outcome.error_kind == "validation"
        row = store.get(completed_row)
        assert row.evaluation is None
        assert row.status_of(Stage.EVALUATION) == StepStatus.IDLE

    def test_editing_evaluation_leaves_other_stages(self, store, processor, completed_row):
        processor.commit_evaluation(completed_row, Evaluation.from_scores([2] * 6))

        row = store.get(completed_row)
        for stage in (Stage.ANALYSIS, Stage.COMPOSITION, Stage.RENDERING):
            assert row.status_of(stage) == StepStatus.COMPLETED


class TestRerun:

    @staticmethod
    def _snapshot(row):
        return [row.status_of(s) for s in Stage], row.evaluation

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage", [Stage.ANALYSIS, Stage.COMPOSITION, Stage.RENDERING])
    async def test_second_run_leaves_the_same_statuses(self, store, processor, eligible_row,
                                                       studio_config, stage):
        await processor.process(eligible_row, stage, studio_config)
        once = self._snapshot(store.get(eligible_row))

        outcome = await processor.process(eligible_row, stage, studio_config)

        assert outcome.ok
        assert self._snapshot(store.get(eligible_row)) == once
        assert once[0][list(Stage).index(stage)] == StepStatus.COMPLETED
        assert once[1] is None


def test_processor_creates_its_own_registry(store, generator):
    processor = StageProcessor(store, generator)

    assert processor.cancellation.is_stop_requested("R_1") is False
