from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from docvault.config import DOCX_MIME_TYPE, PDF_MIME_TYPE, DocVaultConfig, UploadConfig
from docvault.database import Document, DocumentCRUD

from conftest import FakeStorage, build_config, make_pdf, register_and_login, upload


def _documents(client: TestClient):
    db = client.app.state.database.session()
    try:
        return db.query(Document).all()
    finally:
        db.close()


def test_upload_pdf_stores_extracted_text(client: TestClient, alice):
    response = upload(client, alice, "invoice.pdf", "Invoice total 42 EUR")
    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "PDF uploaded and indexed!"

    docs = client.get("/search", headers=alice).json()
    assert len(docs) == 1
    assert docs[0]["id"] == payload["id"]
    assert docs[0]["filename"] == "invoice.pdf"
    assert docs[0]["content"] == "Invoice total 42 EUR"
    assert docs[0]["title"] == "Untitled PDF"
    assert docs[0]["content_type"] == PDF_MIME_TYPE


def test_duplicate_filename_is_rejected(client: TestClient, alice):
    assert upload(client, alice, "report.pdf", "first").status_code == 200

    response = upload(client, alice, "report.pdf", "second")
    assert response.status_code == 409
    assert response.json()["error"] == "A file with this filename already exists."

    docs = _documents(client)
    assert len(docs) == 1
    assert docs[0].content == "first"


def test_same_filename_for_different_users(client: TestClient, alice, bob):
    assert upload(client, alice, "notes.pdf", "alice notes").status_code == 200
    assert upload(client, bob, "notes.pdf", "bob notes").status_code == 200
    assert len(_documents(client)) == 2


def test_unsupported_type_is_rejected(client: TestClient, alice):
    response = client.post(
        "/upload",
        headers=alice,
        files={"file": ("notes.txt", b"plain text", "text/plain")},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported file type"
    assert _documents(client) == []


def test_missing_file_is_rejected(client: TestClient, alice):
    response = client.post("/upload", headers=alice, data={"something": "else"})
    assert response.status_code == 400
    assert response.json()["error"] == "No file uploaded."


def test_docx_goes_through_converter(client: TestClient, alice, docx_converter):
    response = upload(client, alice, "letter.docx", "Dear reader", content_type=DOCX_MIME_TYPE)
    assert response.status_code == 200
    assert docx_converter.calls == ["letter.docx"]

    docs = client.get("/search", headers=alice).json()
    assert docs[0]["content"] == "Dear reader"
    assert docs[0]["content_type"] == DOCX_MIME_TYPE


def test_duplicate_is_detected_before_conversion(client: TestClient, alice, docx_converter):
    upload(client, alice, "letter.docx", "one", content_type=DOCX_MIME_TYPE)
    response = upload(client, alice, "letter.docx", "two", content_type=DOCX_MIME_TYPE)
    assert response.status_code == 409
    assert docx_converter.calls == ["letter.docx"]


def test_corrupt_pdf_is_processing_error(client: TestClient, alice):
    response = client.post(
        "/upload",
        headers=alice,
        files={"file": ("broken.pdf", b"this is not a pdf", PDF_MIME_TYPE)},
    )
    assert response.status_code == 500
    assert response.json()["error"] == "Failed to process PDF"
    assert _documents(client) == []


def test_oversized_upload_is_rejected(make_client):
    config = build_config()
    config.upload = UploadConfig(max_file_size=100)
    client = make_client(config)
    headers = register_and_login(client)

    response = upload(client, headers, "big.pdf", "x" * 50)
    assert response.status_code == 413


def test_upload_archives_original_when_storage_configured(make_client):
    storage = FakeStorage()
    client = make_client(storage=storage)
    headers = register_and_login(client)

    response = upload(client, headers, "contract.pdf", "signed")
    assert response.status_code == 200

    doc = _documents(client)[0]
    assert doc.storage_key in storage.objects
    assert doc.storage_key.startswith(f"users/{doc.owner_id}/")
    assert doc.storage_key.endswith("_contract.pdf")


def test_default_config_has_no_storage():
    assert DocVaultConfig().storage.enabled is False


def test_pdf_helper_produces_readable_pdf():
    assert make_pdf("hello").startswith(b"%PDF")


def test_concurrent_duplicate_hits_unique_constraint(make_client, monkeypatch):
    storage = FakeStorage()
    client = make_client(storage=storage)
    headers = register_and_login(client)
    # Both uploads pass the pre-check, as two racing requests would
    monkeypatch.setattr(DocumentCRUD, "get_by_owner_and_filename", staticmethod(lambda db, owner_id, filename: None))

    assert upload(client, headers, "r.pdf", "first").status_code == 200
    response = upload(client, headers, "r.pdf", "second")

    assert response.status_code == 409
    assert response.json() == {"error": "A file with this filename already exists."}
    docs = _documents(client)
    assert len(docs) == 1
    assert list(storage.objects) == [docs[0].storage_key]
    assert len(storage.deleted) == 1


def test_persistence_failure_discards_archived_original(make_client, monkeypatch):
    storage = FakeStorage()
    client = make_client(storage=storage)
    headers = register_and_login(client)

    def _fail(db, owner_id, filename, content, **fields):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(DocumentCRUD, "create", staticmethod(_fail))

    response = upload(client, headers, "lost.pdf", "body")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to save document"}
    assert storage.objects == {}
    assert len(storage.deleted) == 1
