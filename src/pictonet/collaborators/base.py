"""Collaborator contracts.

The pipeline core talks to the outside world only through these
protocols. Each call either returns a payload or raises; the stage
processor turns anything raised into a stage error.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable

from pictonet.core.storage import KeyValueStorage
from pictonet.schemas.analysis import AnalysisRecord
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.elements import ElementTree
from pictonet.schemas.evaluation import Evaluation
from pictonet.schemas.row import Row

__all__ = [
    'Composition',
    'StructuringRequest',
    'StructuringResult',
    'GenerationCollaborator',
    'VectorizationCollaborator',
    'StructuringCollaborator',
    'KeyValueStorage',
    'ProgressCallback',
    'StatusCallback',
]

ProgressCallback = Callable[[int], None]
StatusCallback = Callable[[str], None]


@dataclass
class Composition:
    """Result of the composition stage.

    ``elements`` may be given in the nested list form a generator returns;
    it is normalized to an :class:`ElementTree`.
    """
    elements: Union[ElementTree, list]
    spatial_prompt: str

    def __post_init__(self):
        if not isinstance(self.elements, ElementTree):
            self.elements = ElementTree.model_validate(self.elements or [])


@dataclass
class StructuringRequest:
    raw_svg: str
    image_bytes: bytes
    analysis: AnalysisRecord
    elements: ElementTree
    evaluation: Evaluation
    utterance: str
    config: GlobalConfig


@dataclass
class StructuringResult:
    svg: str = ""
    success: bool = False
    error: Optional[str] = None


@runtime_checkable
class GenerationCollaborator(Protocol):
    """Produces the payloads of the three generation stages."""

    async def analyze(self, utterance: str, config: GlobalConfig) -> dict[str, Any]: ...

    async def compose(self, record: AnalysisRecord, config: GlobalConfig) -> Composition: ...

    async def render(self, elements: ElementTree, spatial_prompt: str,
                     row: Row, config: GlobalConfig) -> str: ...


@runtime_checkable
class VectorizationCollaborator(Protocol):
    """Traces a bitmap into raw vector markup, reporting progress 0-100."""

    async def vectorize(self, image_bytes: bytes,
                        on_progress: Optional[ProgressCallback] = None) -> str: ...


@runtime_checkable
class StructuringCollaborator(Protocol):
    """Turns raw vector markup into structured, annotated SVG.

    Reports coarse status through ``on_status``: ``sending``,
    ``receiving``, ``sanitizing``.
    """

    async def structure(self, request: StructuringRequest,
                        on_status: Optional[StatusCallback] = None) -> StructuringResult: ...
