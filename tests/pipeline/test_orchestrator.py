"""Studio orchestrator: wiring, bulk runs, import/export and row lifecycle."""

import asyncio
import json
import logging

import pytest

from pictonet.contracts.failure import ContractViolation, ImportFormatError
from pictonet.core.activity_log import ActivityLog
from pictonet.core.vector_library import StructuredPictogram
from pictonet.pipeline.cascade import CascadeState
from pictonet.pipeline.orchestrator import StudioOrchestrator
from pictonet.pipeline.processor import StageResult
from pictonet.pipeline.row_store import RowStore
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.evaluation import AXES
from pictonet.schemas.row import Stage, StepStatus

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


@pytest.fixture
def studio(store, generator, vectorizer, structurer, library, registry):
    return StudioOrchestrator(store, generator, vectorizer=vectorizer, structurer=structurer,
                              library=library, cancellation=registry, activity_log=ActivityLog())


def test_orchestrator_initialization(studio, store, registry):
    """Components share the store and the cancellation registry."""
    assert studio.processor.store is store
    assert studio.runner.processor is studio.processor
    assert studio.processor.cancellation is registry
    assert studio.structuring.cancellation is registry


def test_structuring_needs_both_collaborators(store, generator):
    studio = StudioOrchestrator(store, generator)

    assert studio.structuring is None


class TestRunning:

    @pytest.mark.asyncio
    async def test_run_cascade_uses_persisted_config(self, studio, store, generator):
        store.set_config(GlobalConfig(aspect_ratio="16:9"))
        identity = studio.create_row("Quiero agua")

        result = await studio.run_cascade(identity)

        assert result.ok
        assert all(c.aspect_ratio == "16:9" for c in generator.configs)

    @pytest.mark.asyncio
    async def test_run_stage(self, studio, store):
        identity = studio.create_row("Quiero agua")

        outcome = await studio.run_stage(identity, "analysis")

        assert outcome.ok
        assert store.get(identity).status_of(Stage.ANALYSIS) == StepStatus.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [None, 1, 2])
    async def test_run_cascades_keeps_order(self, studio, concurrency):
        ids = studio.import_phrases("uno\ndos\ntres")

        results = await studio.run_cascades(ids, concurrency=concurrency)

        assert [r.identity for r in results] == ids
        assert all(r.state == CascadeState.COMPLETED for r in results)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [None, 2])
    async def test_contract_violation_waits_for_other_cascades(self, studio, store, generator,
                                                              concurrency):
        ids = studio.import_phrases("uno\ndos")
        analyze = generator.analyze

        async def broken_for_first(utterance, config):
            if utterance == "uno":
                raise ContractViolation("analysis broke its contract")
            await asyncio.sleep(0)
            return await analyze(utterance, config)

        generator.analyze = broken_for_first

        with pytest.raises(ContractViolation, match="broke its contract"):
            await studio.run_cascades(ids, concurrency=concurrency)

        assert store.get(ids[1]).status == "completed"

    @pytest.mark.asyncio
    async def test_run_cascades_rejects_bad_concurrency(self, studio):
        ids = studio.import_phrases("uno")

        with pytest.raises(ValueError, match="concurrency"):
            await studio.run_cascades(ids, concurrency=0)

    @pytest.mark.asyncio
    async def test_generation_without_generator(self, store):
        studio = StudioOrchestrator(store)
        identity = studio.create_row("Quiero agua")

        with pytest.raises(RuntimeError, match="generator"):
            await studio.run_cascade(identity)

    def test_evaluate(self, studio, store, completed_row):
        scores = {**dict.fromkeys(AXES, 2), "semantics": 5, "reasoning": "ok"}

        outcome = studio.evaluate(completed_row, scores)

        assert outcome.result == StageResult.COMPLETED
        assert store.get(completed_row).evaluation.semantics == 5
        assert not studio.eligibility(completed_row)

    def test_eligibility_of_unknown_row(self, studio):
        assert studio.eligibility("R_missing").reason == "row not found"

    def test_stop_sets_the_flag(self, studio, registry):
        studio.stop("R_1")

        assert registry.is_stop_requested("R_1")


class TestSpatialPrompt:

    @pytest.mark.asyncio
    async def test_regenerated_prompt_is_an_edit(self, studio, store, eligible_row):
        text = await studio.regenerate_spatial_prompt(eligible_row)

        assert text == "nuevo: pictograma, persona, vaso, agua"
        row = store.get(eligible_row)
        assert row.spatial_prompt == text
        assert row.status_of(Stage.RENDERING) == StepStatus.OUTDATED
        assert row.evaluation is None

    @pytest.mark.asyncio
    async def test_needs_analysis_and_elements(self, studio, make_row):
        identity = make_row()

        assert await studio.regenerate_spatial_prompt(identity) is None


class TestVectorGeneration:

    @pytest.mark.asyncio
    async def test_generate_vector(self, studio, library, eligible_row):
        outcome = await studio.generate_vector(eligible_row)

        assert outcome.ok
        assert library.has_row(eligible_row)

    @pytest.mark.asyncio
    async def test_generate_vector_not_configured(self, store, generator, eligible_row):
        studio = StudioOrchestrator(store, generator)

        with pytest.raises(RuntimeError, match="vectorizer"):
            await studio.generate_vector(eligible_row)


class TestRowLifecycle:

    def test_delete_row_drops_artifact_and_flag(self, studio, library, registry, eligible_row):
        library.add(StructuredPictogram(id="svg-1", utterance="x", svg="<svg/>",
                                        source_row_id=eligible_row))
        registry.request_stop(eligible_row)

        assert studio.delete_row(eligible_row) is True

        assert not library.has_row(eligible_row)
        assert eligible_row not in registry
        assert studio.delete_row(eligible_row) is False

    def test_clear_all(self, studio, store, registry):
        ids = studio.import_phrases("uno\ndos")
        registry.request_stop(ids[0])
        studio.activity_log.handle(logging.makeLogRecord(
            {"msg": "before clear", "levelno": logging.INFO, "levelname": "INFO"}))

        studio.clear_all()

        assert len(store) == 0
        assert registry.pending() == []
        assert len(studio.activity_log) == 0

    def test_load_canonical_replaces_working_set(self, studio, store, make_row):
        make_row("temporal")

        count = studio.load_canonical()

        assert count == len(store) == 2
        assert store.get("C_001").status_of(Stage.COMPOSITION) == StepStatus.COMPLETED


class TestImportExport:

    def test_round_trip_restores_rows_and_config(self, studio, store, storage, eligible_row):
        store.set_config(GlobalConfig(lang="en", author="Tester"))
        text = studio.export_project()

        other = StudioOrchestrator(RowStore(type(storage)()))
        document = other.import_project(text)

        assert not document.legacy
        assert other.store.ids() == [eligible_row]
        restored = other.store.get(eligible_row)
        original = store.get(eligible_row)
        assert restored.elements.to_nested() == original.elements.to_nested()
        assert restored.evaluation == original.evaluation
        assert restored.status == original.status
        assert other.store.config.author == "Tester"

    def test_round_trip_keeps_mixed_statuses_but_not_in_flight_work(self, studio, store, storage,
                                                                    make_row):
        # A stage that was processing when exported cannot still be running
        # after import, so it comes back idle; every other status survives.
        identity = make_row("mezcla", analysis_status="completed", composition_status="outdated",
                            rendering_status="error")
        in_flight = make_row("en curso", analysis_status="processing")
        text = studio.export_project()

        other = StudioOrchestrator(RowStore(type(storage)()))
        other.import_project(text)

        restored = other.store.get(identity)
        assert [restored.status_of(s) for s in Stage] == [
            StepStatus.COMPLETED, StepStatus.OUTDATED, StepStatus.ERROR, StepStatus.IDLE]
        assert other.store.get(in_flight).status_of(Stage.ANALYSIS) == StepStatus.IDLE

    def test_export_document_shape(self, studio, make_row):
        make_row("Hola")

        document = json.loads(studio.export_project())

        assert document["type"] == "pictonet_graph_dump"
        assert document["version"] == "2.6"
        assert document["rows"][0]["UTTERANCE"] == "Hola"
        assert "aspectRatio" in document["config"]

    def test_legacy_import_keeps_config(self, studio, store):
        store.set_config(GlobalConfig(lang="en"))

        document = studio.import_project(json.dumps([{"id": "R_1", "UTTERANCE": "Hola"}]))

        assert document.legacy
        assert store.ids() == ["R_1"]
        assert store.config.lang == "en"

    def test_bad_import_changes_nothing(self, studio, store, make_row):
        identity = make_row("keep")

        with pytest.raises(ImportFormatError):
            studio.import_project(json.dumps({"rows": [{"id": "R_1"}]}))

        assert store.ids() == [identity]


def test_log_statistics(studio, eligible_row, caplog):
    with caplog.at_level(logging.INFO):
        stats = studio.log_statistics()

    assert stats["eligible"] == 1
    assert "1 eligible" in caplog.text
