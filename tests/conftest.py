"""
Shared fixtures: an in-memory database, a temporary uploads directory and a scripted AI model.
"""

import json
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="resume-analyzer-tests-")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["SUPABASE_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import mailer
import resume_analyzer
from config import get_settings
from database import Base, enable_sqlite_foreign_keys, get_db
from main import app

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

REAL_COMPLETE = resume_analyzer.complete

RESUME_CONTENT = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "phone": "+44 20 7946 0000",
    "summary": "Backend engineer who enjoys data-heavy systems.",
    "experience": [
        {
            "company": "Analytical Engines Ltd",
            "position": "Backend Engineer",
            "duration": "2019 - 2024",
            "description": "Built Python APIs on PostgreSQL.",
        }
    ],
    "education": [{"institution": "University of London", "degree": "BSc Mathematics", "year": "2018"}],
    "skills": "Python, FastAPI, PostgreSQL",
}

JOB_DESCRIPTION = (
    "Senior Backend Engineer\n\n"
    "Requirements:\n"
    "• 5 years experience building Python services\n"
    "• PostgreSQL and Docker"
)


class FakeModel:
    """Stands in for ``resume_analyzer.complete`` and answers by prompt kind."""

    def __init__(self):
        self.calls = []
        self.error = None
        self.analysis = {
            "overallScore": 72,
            "keywordMatch": 65,
            "skillsMatch": 80,
            "experienceMatch": 70,
            "formatScore": 90,
            "jobTitle": "Senior Backend Engineer",
            "strengths": ["Strong Python background"],
            "improvements": ["Mention Docker experience"],
            "missingKeywords": ["Docker"],
            "keywordData": [{"category": "Technical Skills", "matched": 3, "total": 5, "percentage": 60}],
            "detailedAnalysis": {"overallFit": "Good"},
            "recommendations": {"resumeImprovements": ["Quantify impact"]},
        }
        self.parsed = {
            "name": "Grace Hopper",
            "email": "grace@example.com",
            "phone": "555-0100",
            "summary": "Compiler pioneer.",
            "experience": [{"company": "Navy", "position": "Rear Admiral", "duration": "1943 - 1986"}],
            "skills": ["COBOL", "Leadership"],
        }
        self.optimization = {"atsOptimization": {"keywordSuggestions": ["Docker"]}}

    def __call__(self, system, prompt, temperature, max_tokens, fallback_message):
        self.calls.append(system)
        if self.error is not None:
            raise self.error
        if system == resume_analyzer.PARSING_SYSTEM:
            return json.dumps(self.parsed)
        if system == resume_analyzer.OPTIMIZATION_SYSTEM:
            return json.dumps(self.optimization)
        return "Here is the analysis:\n" + json.dumps(self.analysis)


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def upload_root(tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "UPLOAD_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    sent = []
    monkeypatch.setattr(mailer, "send_email", lambda to, subject, html: sent.append((to, subject, html)))
    return sent


@pytest.fixture(autouse=True)
def fake_model(monkeypatch):
    model = FakeModel()
    monkeypatch.setattr(resume_analyzer, "complete", model)
    return model


@pytest.fixture
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email="ada@example.com", password="secret123", name="Ada"):
    response = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


@pytest.fixture
def auth_headers(client):
    return register(client)


@pytest.fixture
def other_headers(client):
    return register(client, email="mallory@example.com", name="Mallory")


def create_resume(client, headers, title="Main resume", content=None):
    body = {"title": title, "type": "form", "content": content or RESUME_CONTENT}
    response = client.post("/api/resumes", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_job(client, headers, description=JOB_DESCRIPTION, title=None):
    body = {"description": description}
    if title:
        body["title"] = title
    response = client.post("/api/jobs", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_analysis(client, headers):
    resume = create_resume(client, headers)
    job = create_job(client, headers)
    response = client.post(
        "/api/analysis", json={"resumeId": resume["id"], "jobDescId": job["id"]}, headers=headers
    )
    assert response.status_code == 201, response.text
    return resume, job, response.json()["data"]
