"""Google Gemini collaborators.

``GeminiGenerator`` produces the analysis, composition and rendering
payloads; ``GeminiStructurer`` restructures traced SVG into annotated,
class-styled markup. Both use the asynchronous client of ``google-genai``
so stage calls suspend the event loop instead of blocking it.

The client is created from the API key unless one is injected, which is
how tests substitute a mock.
"""

import json
import logging
from typing import Any, Optional

from google import genai
from google.genai import types

from pictonet.collaborators.base import (
    Composition,
    StatusCallback,
    StructuringRequest,
    StructuringResult,
)
from pictonet.collaborators.svg_schema import (
    ROOT_ELEMENT,
    build_metadata,
    clean_svg_response,
    generate_stylesheet,
    sanitize_svg,
)
from pictonet.contracts.failure import CollaboratorError
from pictonet.core.data_url import encode_data_url
from pictonet.schemas.analysis import AnalysisRecord, extract_json_text
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.elements import ElementTree
from pictonet.schemas.row import Row

__all__ = ['GeminiGenerator', 'GeminiStructurer', 'create_client', 'render_prompt']

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MODEL = "gemini-3-pro-preview"
DEFAULT_TIMEOUT_MS = 300_000
PROGRESS_REPORT_CHARS = 500

ANALYSIS_INSTRUCTION = """You are the NLU Schema Engine of a pictogram pipeline.
Map the communicative intent in UTTERANCE to a JSON object with the keys
utterance, lang, metadata {speech_act, intent}, frames (FrameNet frames with
frame_name, lexical_unit and roles), nsm_explications (KEY_CONCEPT -> text
using only NSM semantic primes), logical_form {event, modality}, pragmatics
{politeness, formality, expected_response} and visual_guidelines
{focus_actor, action_core, object_core, context, temporal}.
Return only the JSON object."""

COMPOSITION_INSTRUCTION = """You are the Visual Topology Node of a pictogram pipeline.
Translate the semantic analysis into a JSON object with two keys:
"elements": a recursive list of {{"id": noun, "children": [...]}} nodes whose
root is always "{root}", ids are simple nouns in {lang} (snake_case for
compounds);
"prompt": a description in {lang} of the spatial relations between the
elements (position, size, connections), referencing ids in single quotes.
Describe topology and composition only, never style."""

SPATIAL_INSTRUCTION = """You are the Spatial Articulation Node of a pictogram pipeline.
Write, in {lang}, a description of how the given visual elements are arranged:
relative positions, size relations, visual metaphors. Reference element ids in
single quotes. Plain text, not JSON. Topology and composition only, never style."""

STRUCTURING_INSTRUCTION = """You are an SVG restructuring agent.
Convert the raw traced SVG into a semantically structured SVG:
1. <svg> root with id="pictogram", xmlns, a viewBox, role="img",
   aria-labelledby="title desc", lang="{lang}", tabindex="0".
2. <title id="title"> with the utterance.
3. <desc id="desc"> with the visual description from the metadata.
4. <metadata id="mf-accessibility"> containing exactly this JSON:
{metadata}
5. <defs><style> containing exactly this CSS:
{stylesheet}
6. One <g role="group" tabindex="0" data-concept="Role" aria-label="..."> per
   concept with an id, class="k" for Agents and class="f" otherwise.
Element hierarchy:
{elements}
Preserve all path geometry. Every path goes inside a group. Remove inline
fill and stroke attributes. Output only the SVG."""


def create_client(api_key: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> genai.Client:
    if not api_key:
        raise CollaboratorError("GEMINI_API_KEY is not set")
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=timeout_ms),
    )


def _analysis_context(row: Row) -> str:
    parsed = row.parsed_analysis
    if parsed is None:
        return ""
    record = parsed.record
    guidelines = record.visual_guidelines
    return (
        "SEMANTIC CONTEXT:\n"
        f"Utterance: \"{record.utterance or row.utterance}\"\n"
        f"Intent: {record.metadata.get('intent') or 'N/A'}\n"
        f"Speech Act: {record.metadata.get('speech_act') or 'N/A'}\n"
        f"Focus: {guidelines.get('focus_actor') or 'N/A'}\n"
        f"Core Action: {guidelines.get('action_core') or 'N/A'}\n"
        f"Core Object: {guidelines.get('object_core') or 'N/A'}\n"
    )


def render_prompt(elements: ElementTree, spatial_prompt: str, row: Row, config: GlobalConfig) -> str:
    """Full image request built from every upstream payload."""
    return (
        "Create a pictogram image based on these instructions.\n\n"
        f"Original communicative intent: \"{row.utterance}\"\n"
        f"{_analysis_context(row)}\n"
        f"HIERARCHICAL ELEMENTS:\n{elements.outline()}\n\n"
        f"SPATIAL COMPOSITION:\n{spatial_prompt}\n\n"
        f"GRAPHIC STYLE:\n{config.visual_style_prompt}\n\n"
        "CONSTRAINTS:\n"
        "1. Every element of the hierarchy is visually present\n"
        "2. Layout follows the spatial composition\n"
        "3. No text of any kind (labels, signatures, watermarks)\n"
        "4. Flat design suited to vectorization: solid colors, distinct shapes\n"
        "5. Plain white background\n"
    )


def _parse_json_object(text: Optional[str], what: str) -> dict[str, Any]:
    try:
        data = json.loads(extract_json_text(text or ""))
    except json.JSONDecodeError as e:
        raise CollaboratorError(f"{what} response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise CollaboratorError(f"{what} response must be a JSON object, got {type(data).__name__}")
    return data


class GeminiGenerator:
    """Generation collaborator backed by Gemini text and image models.

    Parameters
    ----------
    api_key : str, optional
        Used to build a client when ``client`` is not given.
    client : genai.Client, optional
        Pre-built client.
    text_model : str
        Model for analysis and composition.
    timeout_ms : int
        HTTP timeout of the created client.
    """

    def __init__(self, api_key: Optional[str] = None, *, client: Optional[genai.Client] = None,
                 text_model: str = DEFAULT_TEXT_MODEL, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.client = client if client is not None else create_client(api_key or "", timeout_ms)
        self.text_model = text_model

    async def analyze(self, utterance: str, config: GlobalConfig) -> dict[str, Any]:
        logger.info("[NLU] Analyzing %r", utterance[:50])
        response = await self.client.aio.models.generate_content(
            model=self.text_model,
            contents=f'UTTERANCE: "{utterance}"',
            config=types.GenerateContentConfig(
                system_instruction=ANALYSIS_INSTRUCTION,
                response_mime_type="application/json",
            ),
        )
        result = _parse_json_object(response.text, "Analysis")
        logger.info("[NLU] Done, intent: %s", result.get("metadata", {}).get("intent", "N/A"))
        return result

    async def compose(self, record: AnalysisRecord, config: GlobalConfig) -> Composition:
        lang = record.lang or config.lang or "en"
        logger.info("[VISUAL] Composing blueprint (lang=%s)", lang)
        response = await self.client.aio.models.generate_content(
            model=self.text_model,
            contents=f"NLU Semantics: {json.dumps(record.to_payload(), ensure_ascii=False)}",
            config=types.GenerateContentConfig(
                system_instruction=COMPOSITION_INSTRUCTION.format(root=ROOT_ELEMENT, lang=lang),
                response_mime_type="application/json",
            ),
        )
        result = _parse_json_object(response.text, "Composition")

        elements = result.get("elements")
        if not isinstance(elements, list):
            logger.error("[VISUAL] 'elements' is not a list (got %s), using an empty tree",
                         type(elements).__name__)
            elements = []
        composition = Composition(elements=elements, spatial_prompt=str(result.get("prompt") or ""))
        logger.info("[VISUAL] Done, %d elements", len(composition.elements))
        return composition

    async def spatial_prompt(self, record: AnalysisRecord, elements: ElementTree,
                             config: GlobalConfig) -> str:
        """Describe the arrangement of an existing element tree."""
        lang = record.lang or config.lang or "en"
        response = await self.client.aio.models.generate_content(
            model=self.text_model,
            contents=(
                f"NLU SEMANTIC CONTEXT:\n{json.dumps(record.to_payload(), ensure_ascii=False, indent=2)}\n\n"
                f"VISUAL ELEMENTS HIERARCHY:\n{elements.outline()}"
            ),
            config=types.GenerateContentConfig(system_instruction=SPATIAL_INSTRUCTION.format(lang=lang)),
        )
        text = (response.text or "").strip()
        if not text:
            raise CollaboratorError("Spatial prompt response is empty")
        return text

    async def render(self, elements: ElementTree, spatial_prompt: str,
                     row: Row, config: GlobalConfig) -> str:
        model = config.image_model_name
        logger.info("[BITMAP] Rendering %d elements with %s (%s)", len(elements), model, config.aspect_ratio)
        response = await self.client.aio.models.generate_content(
            model=model,
            contents=render_prompt(elements, spatial_prompt, row, config),
            config=types.GenerateContentConfig(
                response_modalities=[types.Modality.TEXT, types.Modality.IMAGE],
                image_config=types.ImageConfig(aspect_ratio=config.aspect_ratio),
            ),
        )

        candidates = response.candidates or []
        parts = candidates[0].content.parts if candidates and candidates[0].content else None
        for part in parts or []:
            if part.inline_data and part.inline_data.data:
                mime = part.inline_data.mime_type or "image/png"
                logger.info("[BITMAP] Image generated (%s)", mime)
                return encode_data_url(part.inline_data.data, mime)

        raise CollaboratorError("No image generated.")


class GeminiStructurer:
    """Structuring collaborator streaming from a Gemini text model."""

    def __init__(self, api_key: Optional[str] = None, *, client: Optional[genai.Client] = None,
                 model: str = DEFAULT_TEXT_MODEL, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.client = client if client is not None else create_client(api_key or "", timeout_ms)
        self.model = model

    def system_instruction(self, request: StructuringRequest) -> str:
        metadata = build_metadata(request.analysis, request.elements, request.evaluation,
                                  request.utterance, request.config)
        lang = request.analysis.lang or request.config.lang or "en"
        return STRUCTURING_INSTRUCTION.format(
            lang=lang,
            metadata=json.dumps(metadata, ensure_ascii=False, indent=2),
            stylesheet=generate_stylesheet(request.config),
            elements=json.dumps(request.elements.to_nested(), ensure_ascii=False, indent=2),
        )

    async def structure(self, request: StructuringRequest,
                        on_status: Optional[StatusCallback] = None) -> StructuringResult:
        def status(value: str) -> None:
            if on_status is not None:
                on_status(value)

        try:
            status("sending")
            stream = await self.client.aio.models.generate_content_stream(
                model=self.model,
                contents=f"Here is the raw SVG to restructure:\n\n{request.raw_svg}",
                config=types.GenerateContentConfig(system_instruction=self.system_instruction(request)),
            )

            text = ""
            last_report = 0
            receiving = False
            async for chunk in stream:
                if not receiving:
                    status("receiving")
                    receiving = True
                text += chunk.text or ""
                if len(text) - last_report > PROGRESS_REPORT_CHARS:
                    logger.debug("Receiving structured SVG (%.1f KB)", len(text) / 1024)
                    last_report = len(text)
        except Exception as e:
            logger.error("SVG structuring request failed: %s", e)
            return StructuringResult(error=str(e) or "Unknown error during SVG structuring")

        status("sanitizing")
        svg = sanitize_svg(clean_svg_response(text))
        if not svg or "<svg" not in svg:
            return StructuringResult(error="Gemini did not return valid SVG")
        return StructuringResult(svg=svg, success=True)
