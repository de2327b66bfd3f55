"""Root-level pytest fixtures for the PICTONET test suite.

Rows are always created through the row store, and collaborators are the
in-process fakes from ``tests/helpers``. Nothing here touches the network.
"""

import copy

import pytest

from pictonet.core.storage import MemoryKeyValueStorage
from pictonet.core.vector_library import VectorLibrary
from pictonet.pipeline.cancellation import CancellationRegistry
from pictonet.pipeline.cascade import CascadeRunner
from pictonet.pipeline.processor import StageProcessor
from pictonet.pipeline.row_store import RowStore
from pictonet.schemas import GlobalConfig, resolve_config
from pictonet.schemas.evaluation import Evaluation
from tests.helpers.fake_collaborators import (
    BITMAP,
    SAMPLE_ANALYSIS,
    SAMPLE_ELEMENTS,
    SAMPLE_PROMPT,
    FakeGenerator,
    FakeStructurer,
    FakeVectorizer,
)


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def studio_config() -> GlobalConfig:
    """Studio configuration with all defaults."""
    return GlobalConfig()


@pytest.fixture
def make_config():
    """Factory fixture for resolved configs with user overrides.

    Examples
    --------
    >>> def test_lang(make_config):
    ...     config = make_config(LANG="en")
    ...     assert config.studio.lang == "en"
    """
    def _make(**user_overrides):
        return resolve_config(None, user_overrides or None, None)

    return _make


# =============================================================================
# Storage and pipeline Fixtures
# =============================================================================

@pytest.fixture
def storage():
    return MemoryKeyValueStorage()


@pytest.fixture
def store(storage) -> RowStore:
    return RowStore(storage)


@pytest.fixture
def registry() -> CancellationRegistry:
    return CancellationRegistry()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def vectorizer() -> FakeVectorizer:
    return FakeVectorizer()


@pytest.fixture
def structurer() -> FakeStructurer:
    return FakeStructurer()


@pytest.fixture
def library(storage) -> VectorLibrary:
    return VectorLibrary(storage)


@pytest.fixture
def processor(store, generator, registry) -> StageProcessor:
    return StageProcessor(store, generator, registry)


@pytest.fixture
def runner(store, processor, registry) -> CascadeRunner:
    return CascadeRunner(store, processor, registry)


# =============================================================================
# Row Fixtures
# =============================================================================

@pytest.fixture
def make_row(store):
    """Create a row and apply raw field updates (no invalidation)."""
    def _make(utterance: str = "Quiero beber agua", **fields) -> str:
        identity = store.create(utterance)
        if fields:
            store.update(identity, fields)
        return identity

    return _make


@pytest.fixture
def completed_row(make_row) -> str:
    """Row with analysis, composition and rendering completed."""
    return make_row(
        analysis=copy.deepcopy(SAMPLE_ANALYSIS),
        elements=copy.deepcopy(SAMPLE_ELEMENTS),
        spatial_prompt=SAMPLE_PROMPT,
        bitmap=BITMAP,
        analysis_status="completed",
        composition_status="completed",
        rendering_status="completed",
    )


@pytest.fixture
def eligible_row(store, completed_row) -> str:
    """Completed row with an evaluation averaging 4.5."""
    store.update(completed_row, {
        "evaluation": Evaluation.from_scores([5, 4, 5, 4, 4, 5], "clear"),
        "evaluation_status": "completed",
    })
    return completed_row
