"""Bitmap tracing with ``vtracer``.

Pictograms are flat black-on-white images, so tracing runs in binary
colour mode with parameters tuned for clean, long path segments. Spline
fitting is tried first; if it fails the image is traced again with
polygons.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, replace
from typing import Literal, Optional

import vtracer

from pictonet.collaborators.base import ProgressCallback
from pictonet.contracts.failure import CollaboratorError

__all__ = ['TracerParams', 'VtracerVectorizer', 'sniff_image_format']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TracerParams:
    mode: Literal["spline", "polygon", "none"] = "spline"
    filter_speckle: int = 8
    corner_threshold: int = 70
    length_threshold: float = 6.0
    max_iterations: int = 15
    splice_threshold: int = 50
    path_precision: int = 2


def sniff_image_format(data: bytes) -> str:
    """Short format name vtracer understands, from the file signature."""
    if data.startswith(b"\x89PNG"):
        return "png"
    if data.startswith(b"\xff\xd8"):
        return "jpg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if data.startswith(b"BM"):
        return "bmp"
    return "png"


class VtracerVectorizer:
    """Vectorization collaborator.

    Tracing is CPU-bound and runs in a worker thread. Progress is coarse:
    0 when tracing starts, 100 when markup is available.

    Parameters
    ----------
    params : TracerParams, optional
        Tracing parameters; defaults suit flat pictograms.
    """

    def __init__(self, params: Optional[TracerParams] = None):
        self.params = params or TracerParams()

    def trace(self, image_bytes: bytes, params: TracerParams) -> str:
        return vtracer.convert_raw_image_to_svg(
            image_bytes,
            img_format=sniff_image_format(image_bytes),
            colormode="binary",
            **asdict(params),
        )

    async def vectorize(self, image_bytes: bytes,
                        on_progress: Optional[ProgressCallback] = None) -> str:
        if not image_bytes:
            raise CollaboratorError("No image data to vectorize")

        if on_progress is not None:
            on_progress(0)

        try:
            svg = await asyncio.to_thread(self.trace, image_bytes, self.params)
        except Exception as e:
            if self.params.mode != "spline":
                raise CollaboratorError(f"Vectorization failed: {e}") from e
            logger.warning("Spline tracing failed (%s), retrying with polygons", e)
            try:
                svg = await asyncio.to_thread(self.trace, image_bytes, replace(self.params, mode="polygon"))
            except Exception as e2:
                raise CollaboratorError(f"Vectorization failed: {e2}") from e2

        if not svg or "<svg" not in svg:
            raise CollaboratorError("Vectorizer returned no SVG markup")

        if on_progress is not None:
            on_progress(100)
        logger.info("Vectorized image: %d chars of SVG", len(svg))
        return svg
