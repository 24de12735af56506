"""Pytest configuration and shared fixtures.

Provides:
- Markers for unit and integration tests
- The bundled knowledge corpus
- Initialized model handles around a scripted FakeEngine
"""

import pytest

from surviveai.core.knowledge_retriever import KnowledgeRetriever
from surviveai.core.model_lifecycle import ModelHandle
from surviveai.models.model_config import ModelConfig
from surviveai.storage.knowledge_store import KnowledgeCorpus, load_default_corpus
from tests.fakes import FakeEngine


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


@pytest.fixture(scope="session")
def corpus() -> KnowledgeCorpus:
    """The bundled knowledge corpus."""
    return load_default_corpus()


@pytest.fixture
def retriever(corpus) -> KnowledgeRetriever:
    return KnowledgeRetriever(corpus)


@pytest.fixture
def make_handle():
    """Factory for an initialized ModelHandle around a FakeEngine."""

    async def _make(script=None, tool_calling=False, vision=False, delay=0.0) -> ModelHandle:
        config = ModelConfig(
            model_id="fake:1b",
            model_name="Fake 1B",
            supports_tool_calling=tool_calling,
            supports_vision=vision,
        )
        handle = ModelHandle(FakeEngine(script, model_config=config, delay=delay))
        await handle.initialize()
        return handle

    return _make
