from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from service import app
from service.data_sources import get_pipeline
from service.ingestion import IngestionPipeline


@pytest.fixture
def test_client():
    """Fixture to create a FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def pipeline(genai_client, configured_store, scratch_dir, catalog_db):
    """Route uploads through a pipeline wired to the fake client."""
    instance = IngestionPipeline(
        client=genai_client, store_name=configured_store, scratch_root=scratch_dir
    )
    app.dependency_overrides[get_pipeline] = lambda: instance
    yield instance
    app.dependency_overrides.pop(get_pipeline, None)


@pytest.fixture
def patched_genai(genai_client, configured_store):
    """Make every request-time client lookup return the fake client."""
    with (
        patch("service.data_sources.get_genai_client", return_value=genai_client),
        patch("service.service.get_genai_client", return_value=genai_client),
    ):
        yield genai_client


@pytest.fixture
def mock_httpx(test_client):
    """Patch httpx module-level calls to use the test client."""

    def _path(url: str) -> str:
        return url.replace("http://0.0.0.0:8080", "")

    def mock_stream(method: str, url: str, **kwargs):
        kwargs.pop("timeout", None)
        return test_client.stream(method, _path(url), **kwargs)

    def mock_request(method: str):
        def call(url: str, **kwargs):
            kwargs.pop("timeout", None)
            return test_client.request(method, _path(url), **kwargs)

        return call

    with (
        patch("httpx.stream", mock_stream),
        patch("httpx.get", mock_request("GET")),
        patch("httpx.post", mock_request("POST")),
        patch("httpx.delete", mock_request("DELETE")),
        patch("httpx.patch", mock_request("PATCH")),
    ):
        yield
