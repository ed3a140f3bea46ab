from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
import sys

import fitz
import pytest
from fastapi.testclient import TestClient

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from docvault.api import create_app  # noqa: E402
from docvault.config import (  # noqa: E402
    DOCX_MIME_TYPE,
    PDF_MIME_TYPE,
    AuthConfig,
    DatabaseConfig,
    DocVaultConfig,
    LoggingConfig,
)
from docvault.extraction import PDFTextExtractor, TextExtractor  # noqa: E402


def make_pdf(text: str) -> bytes:
    """Single-page PDF carrying ``text``."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class FakeDocxConverter:
    """Treats the DOCX payload as UTF-8 text and renders it to a PDF."""

    def __init__(self):
        self.calls = []

    def convert_to_pdf(self, data: bytes, filename: str) -> bytes:
        self.calls.append(filename)
        return make_pdf(data.decode("utf-8"))


class FakeCompletions:
    def __init__(self, chunks=None, error=None):
        self.chunks = chunks if chunks is not None else ["The total ", "is 42."]
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return iter(
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=chunk))])
            for chunk in self.chunks
        )


class FakeLLMClient:
    """Stands in for the Groq client: ``client.chat.completions.create``."""

    def __init__(self, chunks=None, error=None):
        self.completions = FakeCompletions(chunks, error)
        self.chat = SimpleNamespace(completions=self.completions)


class FakeStorage:
    """In-memory object store with the S3Storage surface."""

    def __init__(self):
        self.objects = {}
        self.deleted = []

    def upload_file(self, key, data, content_type, owner_id, filename):
        self.objects[key] = data
        return key

    def delete_file(self, key):
        self.objects.pop(key, None)
        self.deleted.append(key)
        return True

    def get_presigned_url(self, key, expiration=3600):
        return f"https://bucket.example/{key}?expires={expiration}"


def build_config(**auth_overrides) -> DocVaultConfig:
    return DocVaultConfig(
        database=DatabaseConfig(url="sqlite://"),
        auth=AuthConfig(secret_key="test-secret", **auth_overrides),
        logging=LoggingConfig(level="WARNING", format="text"),
    )


@pytest.fixture
def docx_converter():
    return FakeDocxConverter()


@pytest.fixture
def llm():
    return FakeLLMClient()


@pytest.fixture
def make_client(docx_converter, llm):
    """Factory for a TestClient over a fresh in-memory app."""
    clients = []

    def _make(config: DocVaultConfig | None = None, **overrides):
        overrides.setdefault("llm_client", llm)
        app = create_app(
            config or build_config(),
            extractor=TextExtractor(PDFTextExtractor(), docx_converter),
            **overrides,
        )
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


def register_and_login(client: TestClient, username: str = "alice", password: str = "StrongPass123") -> dict:
    """Register ``username`` and return Authorization headers for it."""
    response = client.post("/api/register", json={"username": username, "password": password})
    assert response.status_code == 201
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def upload(client: TestClient, headers: dict, filename: str, text: str, content_type: str = PDF_MIME_TYPE):
    if content_type == DOCX_MIME_TYPE:
        data = text.encode("utf-8")
    else:
        data = make_pdf(text)
    return client.post("/upload", headers=headers, files={"file": (filename, data, content_type)})


@pytest.fixture
def alice(client):
    return register_and_login(client, "alice")


@pytest.fixture
def bob(client):
    return register_and_login(client, "bob")
