"""Optional vector structuring stage.

Gated by eligibility. Traces the rendered bitmap into raw SVG, has the
structuring collaborator turn it into annotated SVG, and files the result
in the vector library. Progress is not part of the row's stage statuses;
it is reported through callbacks only.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pictonet.collaborators.base import (
    ProgressCallback,
    StatusCallback,
    StructuringCollaborator,
    StructuringRequest,
    VectorizationCollaborator,
)
from pictonet.contracts.failure import CancellationSignal, ContractViolation
from pictonet.core.data_url import decode_data_url
from pictonet.core.vector_library import StructuredPictogram, VectorLibrary
from pictonet.pipeline.cancellation import CancellationRegistry
from pictonet.pipeline.eligibility import check_eligibility
from pictonet.pipeline.row_store import RowStore
from pictonet.schemas.config import GlobalConfig

__all__ = ['VectorStructuringStage', 'StructuringOutcome', 'StructuringState']

logger = logging.getLogger(__name__)


class StructuringState(str, Enum):
    COMPLETED = "completed"
    INELIGIBLE = "ineligible"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class StructuringOutcome:
    identity: str
    state: StructuringState
    pictogram: Optional[StructuredPictogram] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == StructuringState.COMPLETED


class VectorStructuringStage:
    """Vectorize, structure and store one row's pictogram.

    Parameters
    ----------
    store : RowStore
        Source of the row payloads; receives the raw traced SVG.
    vectorizer : VectorizationCollaborator
        Bitmap tracer.
    structurer : StructuringCollaborator
        Raw SVG to structured SVG.
    library : VectorLibrary
        Destination of the structured artifact.
    cancellation : CancellationRegistry, optional
        Shared with the stage processor so one stop request covers both.
    """

    def __init__(self, store: RowStore, vectorizer: VectorizationCollaborator,
                 structurer: StructuringCollaborator, library: VectorLibrary,
                 cancellation: Optional[CancellationRegistry] = None):
        self.store = store
        self.vectorizer = vectorizer
        self.structurer = structurer
        self.library = library
        self.cancellation = cancellation if cancellation is not None else CancellationRegistry()

    async def run(self, identity: str, config: GlobalConfig, *,
                  on_progress: Optional[ProgressCallback] = None,
                  on_status: Optional[StatusCallback] = None) -> StructuringOutcome:
        row = self.store.get(identity)
        if row is None:
            return StructuringOutcome(identity, StructuringState.FAILED, reason="row not found")

        eligibility = check_eligibility(row)
        if not eligibility:
            logger.info("Row %s not eligible for vector structuring: %s", identity, eligibility.reason)
            return StructuringOutcome(identity, StructuringState.INELIGIBLE, reason=eligibility.reason)

        self.cancellation.clear(identity)
        try:
            image_bytes, _mime = decode_data_url(row.bitmap)

            logger.info("Vectorizing %r", row.utterance)
            raw_svg = await self.vectorizer.vectorize(image_bytes, on_progress)
            if self.cancellation.is_stop_requested(identity):
                return self._cancelled(identity)
            self.store.update(identity, {"raw_svg": raw_svg})

            logger.info("Structuring SVG for %r", row.utterance)
            request = StructuringRequest(
                raw_svg=raw_svg,
                image_bytes=image_bytes,
                analysis=row.parsed_analysis.record,
                elements=row.elements,
                evaluation=row.evaluation,
                utterance=row.utterance,
                config=config,
            )
            result = await self.structurer.structure(request, on_status)
        except ContractViolation:
            raise
        except CancellationSignal:
            return self._cancelled(identity)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Vector structuring failed for %r: %s", row.utterance, message)
            return StructuringOutcome(identity, StructuringState.FAILED, reason=message)

        if self.cancellation.is_stop_requested(identity):
            return self._cancelled(identity)

        if not result.success:
            reason = result.error or "structuring failed"
            logger.error("Vector structuring failed for %r: %s", row.utterance, reason)
            return StructuringOutcome(identity, StructuringState.FAILED, reason=reason)

        if identity not in self.store:
            return self._cancelled(identity)

        pictogram = StructuredPictogram(
            id=f"svg-{uuid.uuid4().hex[:12]}",
            utterance=row.utterance,
            svg=result.svg,
            source_row_id=identity,
            score=round(row.evaluation.average, 2),
            lang=row.parsed_analysis.record.lang or config.lang,
        )
        self.library.add(pictogram)
        logger.info("Structured SVG stored for %r", row.utterance)
        return StructuringOutcome(identity, StructuringState.COMPLETED, pictogram=pictogram)

    def _cancelled(self, identity: str) -> StructuringOutcome:
        logger.info("Vector structuring stopped for %s", identity)
        return StructuringOutcome(identity, StructuringState.CANCELLED)
