"""
Resume CRUD, uploads, downloads and ownership.
"""

import copy
import inspect
import os

from fastapi.testclient import TestClient

import resumes
from conftest import RESUME_CONTENT, create_resume
from config import get_settings
from models import Resume


def upload(client, headers, name="cv.txt", data=b"Grace Hopper\nCOBOL, leadership", mime="text/plain", title=None):
    form = {"title": title} if title else {}
    return client.post("/api/resumes/upload", files={"resume": (name, data, mime)}, data=form, headers=headers)


def test_form_resume_round_trips_content(client, auth_headers):
    created = create_resume(client, auth_headers)
    fetched = client.get(f"/api/resumes/{created['id']}", headers=auth_headers).json()["data"]
    assert fetched["content"] == RESUME_CONTENT
    assert fetched["type"] == "form"
    assert fetched["isActive"] is True


def test_form_resume_names_missing_experience_field(client, auth_headers, db_session):
    content = copy.deepcopy(RESUME_CONTENT)
    del content["experience"][0]["description"]
    response = client.post(
        "/api/resumes", json={"title": "Broken", "type": "form", "content": content}, headers=auth_headers
    )
    assert response.status_code == 400
    assert "content.experience.0.description" in response.json()["error"]
    assert db_session.query(Resume).count() == 0


def test_form_resume_requires_content(client, auth_headers):
    response = client.post("/api/resumes", json={"title": "Empty", "type": "form"}, headers=auth_headers)
    assert response.status_code == 400
    assert "content.name" in response.json()["error"]


def test_file_type_create_normalizes_content(client, auth_headers):
    response = client.post(
        "/api/resumes",
        json={"title": "Imported", "type": "file", "content": {"name": "Grace", "skills": ["COBOL", "Fortran"]}},
        headers=auth_headers,
    )
    assert response.status_code == 201
    content = response.json()["data"]["content"]
    assert content["skills"] == "COBOL, Fortran"
    assert content["education"] == []
    assert content["experience"] == []


def test_partial_update_keeps_other_fields(client, auth_headers):
    created = create_resume(client, auth_headers)
    client.patch(f"/api/resumes/{created['id']}", json={"isActive": False}, headers=auth_headers)

    response = client.patch(f"/api/resumes/{created['id']}", json={"title": "X"}, headers=auth_headers)
    data = response.json()["data"]
    assert data["title"] == "X"
    assert data["content"] == RESUME_CONTENT
    assert data["type"] == "form"
    assert data["isActive"] is False


def test_foreign_resume_is_not_found(client, auth_headers, other_headers):
    created = create_resume(client, auth_headers)
    for method in ("get", "patch", "delete"):
        kwargs = {"json": {"title": "Stolen"}} if method == "patch" else {}
        response = getattr(client, method)(f"/api/resumes/{created['id']}", headers=other_headers, **kwargs)
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Resume not found"}
    assert client.get(f"/api/resumes/{created['id']}", headers=auth_headers).status_code == 200


def test_list_searches_titles(client, auth_headers):
    create_resume(client, auth_headers, title="Backend resume")
    create_resume(client, auth_headers, title="Design portfolio")
    data = client.get("/api/resumes?search=BACKEND", headers=auth_headers).json()["data"]
    assert [item["title"] for item in data["items"]] == ["Backend resume"]
    assert data["pagination"]["total"] == 1


def test_upload_parses_document_without_education(client, auth_headers, upload_root, fake_model):
    response = upload(client, auth_headers, title="Grace CV")
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["title"] == "Grace CV"
    assert data["type"] == "file"
    assert data["fileName"] == "cv.txt"
    assert data["content"]["education"] == []
    assert data["content"]["experience"][0]["description"] == ""
    assert data["content"]["skills"] == "COBOL, Leadership"
    assert len(os.listdir(upload_root)) == 1


def test_upload_rejects_unsupported_type(client, auth_headers, upload_root):
    response = upload(client, auth_headers, name="cv.png", data=b"\x89PNG", mime="image/png")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid file type. Only PDF, DOC, DOCX, and TXT files are allowed."
    assert os.listdir(upload_root) == []


def test_upload_rejects_oversized_file(client, auth_headers, upload_root, monkeypatch):
    monkeypatch.setattr(get_settings(), "MAX_FILE_SIZE", 8)
    response = upload(client, auth_headers, data=b"x" * 32)
    assert response.status_code == 400
    assert response.json()["error"].startswith("File size too large")
    assert os.listdir(upload_root) == []


def test_upload_removes_file_when_ai_fails(client, auth_headers, upload_root, fake_model, db_session):
    from errors import AppError, ErrorKind

    fake_model.error = AppError("Too many requests. Please try again later.", ErrorKind.UPSTREAM_RATE_LIMITED)
    response = upload(client, auth_headers)
    assert response.status_code == 429
    assert os.listdir(upload_root) == []
    assert db_session.query(Resume).count() == 0


def test_upload_rejects_empty_text(client, auth_headers, upload_root, fake_model):
    response = upload(client, auth_headers, data=b"   \n  ")
    assert response.status_code == 400
    assert os.listdir(upload_root) == []
    assert fake_model.calls == []


def test_delete_removes_stored_file(client, auth_headers, upload_root):
    created = upload(client, auth_headers).json()["data"]
    assert len(os.listdir(upload_root)) == 1

    response = client.delete(f"/api/resumes/{created['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert os.listdir(upload_root) == []
    assert client.get(f"/api/resumes/{created['id']}", headers=auth_headers).status_code == 404


def test_delete_without_file_succeeds(client, auth_headers):
    created = create_resume(client, auth_headers)
    response = client.delete(f"/api/resumes/{created['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Resume deleted successfully"}


def test_download_and_replace_file(client, auth_headers, upload_root):
    created = create_resume(client, auth_headers)
    missing = client.get(f"/api/resumes/{created['id']}/download", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["error"] == "No file associated with this resume"

    first = client.post(
        f"/api/resumes/{created['id']}/upload",
        files={"resume": ("first.txt", b"first version", "text/plain")},
        headers=auth_headers,
    )
    assert first.status_code == 200
    second = client.post(
        f"/api/resumes/{created['id']}/upload",
        files={"resume": ("second.txt", b"second version", "text/plain")},
        headers=auth_headers,
    )
    assert second.json()["data"]["fileName"] == "second.txt"
    assert len(os.listdir(upload_root)) == 1

    download = client.get(f"/api/resumes/{created['id']}/download", headers=auth_headers)
    assert download.status_code == 200
    assert download.content == b"second version"


def test_duplicate_copies_content_without_file(client, auth_headers):
    created = create_resume(client, auth_headers, title="Main")
    response = client.post(f"/api/resumes/{created['id']}/duplicate", headers=auth_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["title"] == "Main (Copy)"
    assert data["content"] == RESUME_CONTENT
    assert data["fileName"] is None


def test_requests_without_token_are_rejected(client: TestClient):
    response = client.get("/api/resumes")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_search_treats_wildcards_literally(client, auth_headers):
    create_resume(client, auth_headers, title="Backend resume")
    create_resume(client, auth_headers, title="Design portfolio")
    for term in ("_", "%"):
        data = client.get("/api/resumes", params={"search": term}, headers=auth_headers).json()["data"]
        assert data["pagination"]["total"] == 0, term

    create_resume(client, auth_headers, title="100% remote_ready")
    for term in ("_", "%", "0% R"):
        data = client.get("/api/resumes", params={"search": term}, headers=auth_headers).json()["data"]
        assert [item["title"] for item in data["items"]] == ["100% remote_ready"], term


def test_patch_rejects_incomplete_form_content(client, auth_headers):
    created = create_resume(client, auth_headers)
    response = client.patch(f"/api/resumes/{created['id']}", json={"content": {"name": "x"}}, headers=auth_headers)
    assert response.status_code == 400
    error = response.json()["error"]
    assert "content.email: Field required" in error
    assert "content.experience: Field required" in error

    fetched = client.get(f"/api/resumes/{created['id']}", headers=auth_headers).json()["data"]
    assert fetched["content"] == RESUME_CONTENT


def test_patch_replaces_complete_form_content(client, auth_headers):
    created = create_resume(client, auth_headers)
    content = copy.deepcopy(RESUME_CONTENT)
    content["skills"] = "Python, Rust"
    response = client.patch(f"/api/resumes/{created['id']}", json={"content": content}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["content"] == content


def test_patch_normalizes_file_content(client, auth_headers):
    created = upload(client, auth_headers).json()["data"]
    response = client.patch(f"/api/resumes/{created['id']}", json={"content": {"name": "x"}}, headers=auth_headers)
    assert response.status_code == 200
    content = response.json()["data"]["content"]
    assert set(content) == {"name", "email", "phone", "summary", "skills", "experience", "education"}
    assert content["name"] == "x"
    assert content["education"] == []


def test_upload_field_is_named_resume(client, auth_headers, upload_root):
    response = client.post(
        "/api/resumes/upload", files={"file": ("cv.txt", b"Ada", "text/plain")}, headers=auth_headers
    )
    assert response.status_code == 400
    assert "resume: Field required" in response.json()["error"]
    assert os.listdir(upload_root) == []


def test_upload_routes_run_in_worker_threads():
    assert not inspect.iscoroutinefunction(resumes.upload_resume)
    assert not inspect.iscoroutinefunction(resumes.attach_file)
    assert not inspect.iscoroutinefunction(resumes.store_upload)
