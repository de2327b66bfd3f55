"""Gemini collaborators against a mocked asynchronous client."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from pictonet.collaborators.base import StructuringRequest
from pictonet.collaborators.gemini import GeminiGenerator, GeminiStructurer, create_client, render_prompt
from pictonet.contracts.failure import CollaboratorError
from pictonet.schemas.analysis import AnalysisRecord
from pictonet.schemas.config import GlobalConfig
from pictonet.schemas.elements import ElementTree
from pictonet.schemas.evaluation import Evaluation
from pictonet.schemas.row import Row
from tests.helpers.fake_collaborators import (
    RAW_SVG,
    SAMPLE_ANALYSIS,
    SAMPLE_ELEMENTS,
    SAMPLE_PROMPT,
)

pytestmark = [pytest.mark.unit, pytest.mark.collaborators]


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture
def client():
    mock = MagicMock()
    mock.aio.models.generate_content = AsyncMock()
    mock.aio.models.generate_content_stream = AsyncMock()
    return mock


@pytest.fixture
def generator(client):
    return GeminiGenerator(client=client, text_model="test-model")


@pytest.fixture
def record():
    return AnalysisRecord.model_validate(SAMPLE_ANALYSIS)


@pytest.fixture
def elements():
    return ElementTree.from_nested(SAMPLE_ELEMENTS)


def text_response(text):
    return SimpleNamespace(text=text)


def image_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


async def stream_of(*texts):
    for text in texts:
        yield SimpleNamespace(text=text)


def test_client_needs_api_key():
    with pytest.raises(CollaboratorError, match="GEMINI_API_KEY"):
        create_client("")


def test_generator_without_key_or_client():
    with pytest.raises(CollaboratorError):
        GeminiGenerator()


# =========================================================================
# Test: Generation
# =========================================================================


class TestGenerator:

    @pytest.mark.asyncio
    async def test_analyze_parses_fenced_json(self, generator, client):
        client.aio.models.generate_content.return_value = text_response(
            "```json\n" + json.dumps(SAMPLE_ANALYSIS) + "\n```")

        result = await generator.analyze("Quiero beber agua", GlobalConfig())

        assert result["metadata"]["intent"] == "desire"
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "Quiero beber agua" in kwargs["contents"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["not json at all", "[1, 2]"])
    async def test_analyze_bad_reply(self, generator, client, text):
        client.aio.models.generate_content.return_value = text_response(text)

        with pytest.raises(CollaboratorError, match="Analysis response"):
            await generator.analyze("Hola", GlobalConfig())

    @pytest.mark.asyncio
    async def test_compose(self, generator, client, record):
        client.aio.models.generate_content.return_value = text_response(
            json.dumps({"elements": SAMPLE_ELEMENTS, "prompt": SAMPLE_PROMPT}))

        composition = await generator.compose(record, GlobalConfig())

        assert composition.elements.to_nested() == SAMPLE_ELEMENTS
        assert composition.spatial_prompt == SAMPLE_PROMPT

    @pytest.mark.asyncio
    async def test_compose_without_element_list(self, generator, client, record):
        client.aio.models.generate_content.return_value = text_response('{"elements": "vaso"}')

        composition = await generator.compose(record, GlobalConfig())

        assert composition.elements.is_empty()
        assert composition.spatial_prompt == ""

    @pytest.mark.asyncio
    async def test_spatial_prompt(self, generator, client, record, elements):
        client.aio.models.generate_content.return_value = text_response("  'persona' a la izquierda \n")

        text = await generator.spatial_prompt(record, elements, GlobalConfig())

        assert text == "'persona' a la izquierda"
        assert "- pictograma" in client.aio.models.generate_content.call_args.kwargs["contents"]

    @pytest.mark.asyncio
    async def test_spatial_prompt_empty(self, generator, client, record, elements):
        client.aio.models.generate_content.return_value = text_response("")

        with pytest.raises(CollaboratorError, match="empty"):
            await generator.spatial_prompt(record, elements, GlobalConfig())

    @pytest.mark.asyncio
    async def test_render_returns_data_url(self, generator, client, elements):
        client.aio.models.generate_content.return_value = image_response(
            SimpleNamespace(inline_data=None),
            SimpleNamespace(inline_data=SimpleNamespace(data=b"abc", mime_type="image/jpeg")),
        )
        row = Row(id="R_1", utterance="Quiero beber agua")

        bitmap = await generator.render(elements, SAMPLE_PROMPT, row, GlobalConfig(image_model="pro"))

        assert bitmap == "data:image/jpeg;base64,YWJj"
        assert client.aio.models.generate_content.call_args.kwargs["model"] == "gemini-3-pro-image-preview"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        SimpleNamespace(candidates=None),
        SimpleNamespace(candidates=[SimpleNamespace(content=None)]),
        image_response(SimpleNamespace(inline_data=SimpleNamespace(data=b"", mime_type=None))),
    ])
    async def test_render_without_image(self, generator, client, elements, response):
        client.aio.models.generate_content.return_value = response

        with pytest.raises(CollaboratorError, match="No image generated"):
            await generator.render(elements, SAMPLE_PROMPT, Row(id="R_1", utterance="x"), GlobalConfig())

    def test_render_prompt_carries_every_payload(self, elements):
        row = Row(id="R_1", utterance="Quiero beber agua", analysis=SAMPLE_ANALYSIS)
        config = GlobalConfig(visual_style_prompt="Trazo grueso")

        prompt = render_prompt(elements, SAMPLE_PROMPT, row, config)

        assert '"Quiero beber agua"' in prompt
        assert "Intent: desire" in prompt
        assert "  - vaso" in prompt
        assert SAMPLE_PROMPT in prompt
        assert "Trazo grueso" in prompt


# =========================================================================
# Test: Structuring
# =========================================================================


class TestStructurer:

    @pytest.fixture
    def structurer(self, client):
        return GeminiStructurer(client=client, model="test-model")

    @pytest.fixture
    def request_(self, record, elements):
        return StructuringRequest(raw_svg=RAW_SVG, image_bytes=b"png", analysis=record,
                                  elements=elements, evaluation=Evaluation.from_scores([5] * 6),
                                  utterance="Quiero beber agua", config=GlobalConfig())

    @pytest.mark.asyncio
    async def test_streamed_reply_is_cleaned(self, structurer, client, request_):
        client.aio.models.generate_content_stream.return_value = stream_of(
            "```svg\n<svg id=\"pictogram\">", '<g class="f"><path fill="#000" d="M0 0"/></g>', "</svg>\n```")
        statuses = []

        result = await structurer.structure(request_, on_status=statuses.append)

        assert result.success
        assert result.svg == '<svg id="pictogram"><g class="f"><path d="M0 0"/></g></svg>'
        assert statuses == ["sending", "receiving", "sanitizing"]
        kwargs = client.aio.models.generate_content_stream.call_args.kwargs
        assert RAW_SVG in kwargs["contents"]

    @pytest.mark.asyncio
    async def test_reply_without_svg(self, structurer, client, request_):
        client.aio.models.generate_content_stream.return_value = stream_of("I cannot do that")

        result = await structurer.structure(request_)

        assert not result.success
        assert result.error == "Gemini did not return valid SVG"

    @pytest.mark.asyncio
    async def test_request_failure_is_reported(self, structurer, client, request_):
        client.aio.models.generate_content_stream.side_effect = RuntimeError("quota exhausted")

        result = await structurer.structure(request_)

        assert not result.success
        assert result.error == "quota exhausted"

    def test_instruction_embeds_metadata_and_styles(self, structurer, request_):
        instruction = structurer.system_instruction(request_)

        assert '"utterance": "Quiero beber agua"' in instruction
        assert ".f {" in instruction
        assert 'lang="es"' in instruction
        assert '"id": "pictograma"' in instruction
