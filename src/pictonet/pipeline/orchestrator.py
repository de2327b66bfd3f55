"""Studio orchestrator.

The single entry point a front end drives. It wires the row store, the
cancellation registry, the stage processor, the cascade runner, the
vector structuring stage, the vector library and the activity log, and it
keeps them consistent with each other (deleting a row also drops its
vector artifact and its stop flag).
"""

import asyncio
import logging
from typing import Iterable, Optional, Union

from pictonet.collaborators.base import (
    GenerationCollaborator,
    ProgressCallback,
    StatusCallback,
    StructuringCollaborator,
    VectorizationCollaborator,
)
from pictonet.core.activity_log import ActivityLog
from pictonet.core.canonical import canonical_rows
from pictonet.core.exchange import ProjectDocument, dumps_document, load_document
from pictonet.core.vector_library import VectorLibrary
from pictonet.pipeline.cancellation import CancellationRegistry
from pictonet.pipeline.cascade import CascadeResult, CascadeRunner
from pictonet.pipeline.eligibility import Eligibility, check_eligibility
from pictonet.pipeline.processor import StageOutcome, StageProcessor
from pictonet.pipeline.row_store import RowStore
from pictonet.pipeline.vectorize import StructuringOutcome, VectorStructuringStage
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.evaluation import Evaluation
from pictonet.schemas.row import Stage

__all__ = ['StudioOrchestrator']

logger = logging.getLogger(__name__)


class StudioOrchestrator:
    """Coordinates pipeline operations over one working set.

    Parameters
    ----------
    store : RowStore
        The working set; its persisted configuration is used for every
        stage call unless one is passed explicitly.
    generator : GenerationCollaborator, optional
        Analysis, composition and rendering. Offline sessions (listing,
        editing, import and export) can leave it out.
    vectorizer, structurer : optional
        Needed only for :meth:`generate_vector`.
    library : VectorLibrary, optional
        Structured SVG artifacts; created on the store's storage if absent.
    cancellation : CancellationRegistry, optional
        Shared by every component.
    activity_log : ActivityLog, optional
        Exposed for front ends; attach it with ``setup_logging``.

    Example usage::

        storage = SQLiteKeyValueStorage("studio.db")
        studio = StudioOrchestrator(RowStore(storage), GeminiGenerator(api_key))
        row_id = studio.create_row("Quiero agua")
        result = asyncio.run(studio.run_cascade(row_id))
    """

    def __init__(self, store: RowStore, generator: Optional[GenerationCollaborator] = None, *,
                 vectorizer: Optional[VectorizationCollaborator] = None,
                 structurer: Optional[StructuringCollaborator] = None,
                 library: Optional[VectorLibrary] = None,
                 cancellation: Optional[CancellationRegistry] = None,
                 activity_log: Optional[ActivityLog] = None):
        self.store = store
        self.generator = generator
        self.cancellation = cancellation if cancellation is not None else CancellationRegistry()
        self.library = library if library is not None else VectorLibrary(store.storage)
        self.activity_log = activity_log

        self.processor = StageProcessor(store, generator, self.cancellation)
        self.runner = CascadeRunner(store, self.processor, self.cancellation)
        self.structuring = None
        if vectorizer is not None and structurer is not None:
            self.structuring = VectorStructuringStage(
                store, vectorizer, structurer, self.library, self.cancellation
            )

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def create_row(self, utterance: str = "") -> str:
        return self.store.create(utterance)

    def import_phrases(self, text: str) -> list[str]:
        return self.store.import_phrases(text)

    def edit_row(self, identity: str, partial: dict) -> None:
        self.store.edit(identity, partial)

    def delete_row(self, identity: str) -> bool:
        """Remove a row together with its vector artifact and stop flag."""
        removed = self.store.delete(identity)
        self.library.remove_for_row(identity)
        self.cancellation.discard(identity)
        self.runner.forget(identity)
        return removed

    def clear_all(self) -> None:
        for identity in self.store.ids():
            self.cancellation.discard(identity)
            self.runner.forget(identity)
        self.store.clear()
        if self.activity_log is not None:
            self.activity_log.clear()
        logger.info("Working set cleared")

    def eligibility(self, identity: str) -> Eligibility:
        row = self.store.get(identity)
        if row is None:
            return Eligibility(False, "row not found")
        return check_eligibility(row)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _config(self, config: Optional[GlobalConfig]) -> GlobalConfig:
        return config if config is not None else self.store.config

    def _require_generator(self) -> None:
        if self.generator is None:
            raise RuntimeError("Generation needs a generator collaborator")

    async def run_stage(self, identity: str, stage: Union[Stage, str],
                        config: Optional[GlobalConfig] = None) -> StageOutcome:
        if Stage(stage) != Stage.EVALUATION:
            self._require_generator()
        return await self.processor.process(identity, stage, self._config(config))

    async def run_cascade(self, identity: str, config: Optional[GlobalConfig] = None) -> CascadeResult:
        self._require_generator()
        return await self.runner.run(identity, self._config(config))

    async def run_cascades(self, identities: Iterable[str], concurrency: Optional[int] = None,
                           config: Optional[GlobalConfig] = None) -> list[CascadeResult]:
        """Run cascades for several rows; results in the order given.

        Rows are independent. Without ``concurrency`` every cascade starts
        at once; with it, at most that many run at the same time. An
        exception from one cascade (a ContractViolation) is re-raised only
        after every other cascade has finished.
        """
        self._require_generator()
        config = self._config(config)
        identities = list(identities)
        if concurrency is None:
            cascades = [self.runner.run(i, config) for i in identities]
        else:
            if concurrency < 1:
                raise ValueError(f"concurrency must be >= 1, got {concurrency}")
            semaphore = asyncio.Semaphore(concurrency)

            async def bounded(identity: str) -> CascadeResult:
                async with semaphore:
                    return await self.runner.run(identity, config)

            cascades = [bounded(i) for i in identities]

        results = await asyncio.gather(*cascades, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    def stop(self, identity: str) -> None:
        self.cancellation.request_stop(identity)

    def evaluate(self, identity: str, evaluation: Union[Evaluation, dict, None] = None) -> StageOutcome:
        """Commit manual scores. Synchronous: no collaborator is involved."""
        return self.processor.commit_evaluation(identity, evaluation)

    async def regenerate_spatial_prompt(self, identity: str,
                                        config: Optional[GlobalConfig] = None) -> Optional[str]:
        """Ask the generator for a new spatial prompt for the current elements.

        The new prompt is applied as a manual edit, so rendering and
        evaluation are invalidated as for any composition change. Returns
        None when the generator cannot do this or the row is not ready.
        """
        spatial_prompt = getattr(self.generator, "spatial_prompt", None)
        row = self.store.get(identity)
        if spatial_prompt is None or row is None:
            return None
        if row.parsed_analysis is None or row.elements is None or row.elements.is_empty():
            logger.warning("Spatial prompt needs a parsed analysis and elements (%s)", identity)
            return None
        text = await spatial_prompt(row.parsed_analysis.record, row.elements, self._config(config))
        self.store.edit(identity, {"spatial_prompt": text})
        return text

    async def generate_vector(self, identity: str, config: Optional[GlobalConfig] = None, *,
                              on_progress: Optional[ProgressCallback] = None,
                              on_status: Optional[StatusCallback] = None) -> StructuringOutcome:
        if self.structuring is None:
            raise RuntimeError("Vector structuring needs a vectorizer and a structurer")
        return await self.structuring.run(identity, self._config(config),
                                          on_progress=on_progress, on_status=on_status)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_project(self) -> str:
        """The whole working set and configuration as JSON text."""
        rows = [self.store.get(identity) for identity in self.store.ids()]
        text = dumps_document(rows, self.store.config)
        logger.info("Project exported: %d rows", len(rows))
        return text

    def import_project(self, text: str) -> ProjectDocument:
        """Replace the working set with an exported project.

        Raises
        ------
        ImportFormatError
            If the document or any row is malformed; nothing changes.
        """
        document = load_document(text)
        self.store.replace_all(document.rows)
        if document.config is not None:
            self.store.set_config(document.config)
            logger.info("Global configuration restored")
        self._forget_all()
        logger.info("Project restored: %d rows%s", len(document.rows),
                    " (legacy format)" if document.legacy else "")
        return document

    def load_canonical(self) -> int:
        """Replace the working set with the built-in reference rows."""
        rows = canonical_rows()
        if len(self.store):
            logger.warning("Replacing %d rows with the canonical dataset", len(self.store))
        self.store.replace_all(rows)
        self._forget_all()
        return len(rows)

    def _forget_all(self) -> None:
        for identity in self.cancellation.pending():
            self.cancellation.discard(identity)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def log_statistics(self) -> dict:
        stats = self.store.statistics()
        logger.info(
            "Rows: %d total | %d completed | %d processing | %d error | %d idle | "
            "%d evaluated | %d eligible | %d vector artifacts",
            stats["total"], stats["completed"], stats["processing"], stats["error"],
            stats["idle"], stats["evaluated"], stats["eligible"], len(self.library),
        )
        return stats
