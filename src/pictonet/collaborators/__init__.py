"""External collaborators of the pipeline core.

- base: collaborator protocols and request/result types
- gemini: Gemini generation and structuring
- vtracer_adapter: bitmap tracing
- svg_schema: stylesheet, metadata and cleanup for structured SVG
"""

from pictonet.collaborators.base import (
    Composition,
    GenerationCollaborator,
    StructuringCollaborator,
    StructuringRequest,
    StructuringResult,
    VectorizationCollaborator,
)

__all__ = [
    "Composition",
    "GenerationCollaborator",
    "StructuringCollaborator",
    "StructuringRequest",
    "StructuringResult",
    "VectorizationCollaborator",
]
