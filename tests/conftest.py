import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest
from pydantic import SecretStr

from core import settings
from service import catalog

TEST_STORE = "fileSearchStores/test-store"


@pytest.fixture
def mock_env():
    """Fixture to ensure environment is clean for each test."""
    defaults = {
        "GOOGLE_GENERATIVE_AI_API_KEY": "test-google-key",
        "FILE_SEARCH_STORE_NAME": TEST_STORE,
        "LANGFUSE_PUBLIC_KEY": "test-langfuse-public",
        "LANGFUSE_SECRET_KEY": "test-langfuse-secret",
    }
    with patch.dict(os.environ, defaults, clear=True):
        yield


@pytest.fixture
def configured_store(monkeypatch):
    """Point the shared settings at a fake key and store."""
    monkeypatch.setattr(settings, "GOOGLE_GENERATIVE_AI_API_KEY", SecretStr("test-google-key"))
    monkeypatch.setattr(settings, "FILE_SEARCH_STORE_NAME", TEST_STORE)
    return TEST_STORE


@pytest.fixture
def catalog_db(tmp_path, monkeypatch):
    """A fresh sqlite catalog per test."""
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite:///{tmp_path / 'catalog.db'}")
    catalog.get_engine.cache_clear()
    catalog.init()
    yield catalog
    catalog.get_engine().dispose()
    catalog.get_engine.cache_clear()


@pytest.fixture
def scratch_dir(tmp_path, monkeypatch):
    path = tmp_path / "scratch"
    path.mkdir()
    monkeypatch.setattr(settings, "SCRATCH_DIR", str(path))
    return path


def make_operation(document_id: str | None = "doc-1", *, done: bool = True, error=None, name="operations/op-1"):
    document_name = f"{TEST_STORE}/documents/{document_id}" if document_id else None
    return SimpleNamespace(
        name=name,
        done=done,
        error=error,
        response=SimpleNamespace(document_name=document_name),
    )


@pytest.fixture
def genai_client():
    """A stand-in for ``genai.Client`` exposing only the async surface the service uses."""
    client = Mock()
    client.aio.file_search_stores.upload_to_file_search_store = AsyncMock(
        return_value=make_operation()
    )
    client.aio.file_search_stores.documents.delete = AsyncMock(return_value=None)
    client.aio.operations.get = AsyncMock(return_value=make_operation())
    client.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(text="- A cat sitting on a mat")
    )
    client.aio.models.generate_content_stream = AsyncMock()
    return client


@pytest.fixture
def operation_factory():
    return make_operation
