"""Tests for the /documents endpoints."""

import pytest

from mygpa.api import documents
from mygpa.core.config import settings
from mygpa.core.dependencies import get_storage_client
from mygpa.core.errors import StorageError
from mygpa.main import app


def upload(client, headers, name="transcript.pdf", content=b"%PDF-1.4 test", content_type="application/pdf", **form):
    return client.post(
        "/documents",
        headers=headers,
        files={"file": (name, content, content_type)},
        data=form,
    )


class TestUpload:
    def test_upload_stores_metadata_and_object(self, client, register, storage_root):
        headers, body = register()
        response = upload(client, headers)
        assert response.status_code == 200
        doc = response.json()
        assert doc["file_name"] == "transcript.pdf"
        assert doc["file_type"] == "application/pdf"
        assert doc["file_size"] == len(b"%PDF-1.4 test")
        assert doc["file_size_display"] == "13 Bytes"
        assert doc["storage_path"].startswith(f"{body['user_id']}/")
        assert (storage_root / "user-documents" / doc["storage_path"]).is_file()

    def test_custom_display_name(self, client, auth_headers):
        response = upload(client, auth_headers, file_name="Semester 1 Results")
        assert response.status_code == 200
        assert response.json()["file_name"] == "Semester 1 Results"
        assert response.json()["storage_path"].endswith("_Semester 1 Results")


class TestListAndDownload:
    def test_list_is_newest_first_and_per_user(self, client, register):
        headers, _ = register()
        other_headers, _ = register()
        upload(client, headers, name="first.pdf")
        upload(client, headers, name="second.pdf")
        upload(client, other_headers, name="not-mine.pdf")

        response = client.get("/documents", headers=headers)
        assert response.status_code == 200
        names = [doc["file_name"] for doc in response.json()]
        assert names == ["second.pdf", "first.pdf"]

    def test_download(self, client, auth_headers):
        doc = upload(client, auth_headers, name="cv.txt", content=b"my cv", content_type="text/plain").json()

        response = client.get(f"/documents/{doc['id']}/download", headers=auth_headers)
        assert response.status_code == 200
        assert response.content == b"my cv"
        assert response.headers["content-type"].startswith("text/plain")
        assert "cv.txt" in response.headers["content-disposition"]

    def test_other_users_document_is_not_found(self, client, register):
        headers, _ = register()
        other_headers, _ = register()
        doc = upload(client, headers).json()

        assert client.get(f"/documents/{doc['id']}/download", headers=other_headers).status_code == 404
        assert client.delete(f"/documents/{doc['id']}", headers=other_headers).status_code == 404


class TestRenameAndDelete:
    def test_rename(self, client, auth_headers):
        doc = upload(client, auth_headers).json()
        response = client.put(f"/documents/{doc['id']}", headers=auth_headers, json={"file_name": "Final transcript"})
        assert response.status_code == 200
        assert response.json()["file_name"] == "Final transcript"
        assert response.json()["storage_path"] == doc["storage_path"]

    def test_rename_requires_a_name(self, client, auth_headers):
        doc = upload(client, auth_headers).json()
        response = client.put(f"/documents/{doc['id']}", headers=auth_headers, json={"file_name": "   "})
        assert response.status_code == 400

    def test_delete_removes_row_and_object(self, client, auth_headers, storage_root):
        doc = upload(client, auth_headers).json()
        stored = storage_root / "user-documents" / doc["storage_path"]
        assert stored.is_file()

        response = client.delete(f"/documents/{doc['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert not stored.exists()
        assert client.get("/documents", headers=auth_headers).json() == []


class RecordingStorage:
    """In-memory storage that records calls and can be told to fail removals."""

    def __init__(self):
        self.objects = {}
        self.removed = []
        self.fail_remove = False

    def upload(self, bucket, path, data, content_type, upsert=False):
        self.objects[(bucket, path)] = data
        return path

    def download(self, bucket, path):
        try:
            return self.objects[(bucket, path)]
        except KeyError:
            raise StorageError(f"Object not found: {path}")

    def remove(self, bucket, paths):
        if self.fail_remove:
            raise StorageError("bucket unavailable")
        for path in paths:
            self.removed.append((bucket, path))
            self.objects.pop((bucket, path), None)

    def public_url(self, bucket, path):
        return f"http://files.test/{bucket}/{path}"


@pytest.fixture
def fake_storage(client):
    storage = RecordingStorage()
    app.dependency_overrides[get_storage_client] = lambda: storage
    return storage


class TestStorageFailures:
    def test_object_removed_when_metadata_insert_fails(self, client, auth_headers, fake_storage, monkeypatch):
        # Same storage path twice trips the unique constraint on the second insert
        monkeypatch.setattr(documents, "build_storage_path", lambda user_id, name: "someone/1_dup.pdf")

        assert upload(client, auth_headers, name="dup.pdf").status_code == 200
        response = upload(client, auth_headers, name="dup.pdf")
        assert response.status_code == 500
        assert response.json()["detail"] == "Error saving document"
        assert fake_storage.removed == [("user-documents", "someone/1_dup.pdf")]

        listed = client.get("/documents", headers=auth_headers).json()
        assert len(listed) == 1

    def test_failed_storage_removal_keeps_the_row(self, client, auth_headers, fake_storage):
        doc = upload(client, auth_headers).json()
        fake_storage.fail_remove = True

        response = client.delete(f"/documents/{doc['id']}", headers=auth_headers)
        assert response.status_code == 500
        assert "Storage deletion error" in response.json()["detail"]

        listed = client.get("/documents", headers=auth_headers).json()
        assert [d["id"] for d in listed] == [doc["id"]]
        assert ("user-documents", doc["storage_path"]) in fake_storage.objects

    def test_oversized_upload_is_rejected(self, client, auth_headers, fake_storage, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 4)

        response = upload(client, auth_headers, content=b"more than four bytes")
        assert response.status_code == 413
        assert response.json()["detail"] == "File is too large."
        assert fake_storage.objects == {}
        assert client.get("/documents", headers=auth_headers).json() == []
