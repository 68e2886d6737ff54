"""
Job descriptions: title heuristic, CRUD, pagination and stats.
"""

import pytest

from conftest import JOB_DESCRIPTION, create_job
from jobs import DEFAULT_JOB_TITLE, extract_title, find_title

FILLER = " We build reliable services for millions of users every single day."


@pytest.mark.parametrize(
    "description, expected",
    [
        ("Senior Backend Engineer\n\nRequirements:\n• 5 years exp", "Senior Backend Engineer"),
        ("", DEFAULT_JOB_TITLE),
        ("• bullet only\n- dash only\nab", DEFAULT_JOB_TITLE),
        ("Data Engineer at Acme Corp\nMore text", "Data Engineer"),
        ("Data Engineer AT Scale", "Data Engineer AT Scale"),
        ("Chief Of Staff At HQ", "Chief Of Staff At HQ"),
        ("Hi\nBackend Developer @ Startup", "Backend Developer"),
        ("Platform Engineer - Remote", DEFAULT_JOB_TITLE),
        ("Requirements first\nStaff Engineer", "Staff Engineer"),
        ("Data Scientist\n", "Data Scientist"),
    ],
)
def test_extract_title(description, expected):
    assert extract_title(description) == expected


def test_find_title_skips_overlong_lines():
    assert find_title("x" * 100 + "\nQA Lead") == "QA Lead"


def test_create_without_title_uses_heuristic(client, auth_headers):
    job = create_job(client, auth_headers)
    assert job["title"] == "Senior Backend Engineer"
    assert job["description"] == JOB_DESCRIPTION


def test_create_rejects_short_description(client, auth_headers):
    response = client.post("/api/jobs", json={"description": "Too short"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"].startswith("description:")


def test_update_description_retitles_unless_title_given(client, auth_headers):
    job = create_job(client, auth_headers)

    renamed = client.patch(
        f"/api/jobs/{job['id']}",
        json={"description": "Machine Learning Engineer at Lab\n" + FILLER},
        headers=auth_headers,
    ).json()["data"]
    assert renamed["title"] == "Machine Learning Engineer"

    kept = client.patch(
        f"/api/jobs/{job['id']}",
        json={"description": "• only bullets here" + FILLER},
        headers=auth_headers,
    ).json()["data"]
    assert kept["title"] == "Machine Learning Engineer"

    explicit = client.patch(
        f"/api/jobs/{job['id']}",
        json={"title": "Chosen", "description": "Machine Learning Engineer\n" + FILLER},
        headers=auth_headers,
    ).json()["data"]
    assert explicit["title"] == "Chosen"


def test_pagination_over_twelve_jobs(client, auth_headers):
    for n in range(12):
        create_job(client, auth_headers, title=f"Job {n}")

    second = client.get("/api/jobs?page=2&limit=5", headers=auth_headers).json()["data"]
    assert len(second["items"]) == 5
    assert second["pagination"] == {"total": 12, "page": 2, "limit": 5, "totalPages": 3}

    last = client.get("/api/jobs?page=3&limit=5", headers=auth_headers).json()["data"]
    assert len(last["items"]) == 2


def test_non_numeric_paging_falls_back_to_defaults(client, auth_headers):
    create_job(client, auth_headers)
    pagination = client.get("/api/jobs?page=abc&limit=-3", headers=auth_headers).json()["data"]["pagination"]
    assert pagination["page"] == 1
    assert pagination["limit"] == 10


def test_foreign_job_is_not_found(client, auth_headers, other_headers):
    job = create_job(client, auth_headers)
    response = client.get(f"/api/jobs/{job['id']}", headers=other_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Job description not found"
    assert client.delete(f"/api/jobs/{job['id']}", headers=other_headers).status_code == 404


def test_duplicate_and_stats(client, auth_headers):
    job = create_job(client, auth_headers)
    copy = client.post(f"/api/jobs/{job['id']}/duplicate", headers=auth_headers).json()["data"]
    assert copy["title"] == "Senior Backend Engineer (Copy)"

    client.patch(f"/api/jobs/{job['id']}", json={"isActive": False}, headers=auth_headers)
    stats = client.get("/api/jobs/stats/overview", headers=auth_headers).json()["data"]
    assert stats == {"totalJobs": 2, "activeJobs": 1, "recentJobs": 2}


def test_delete_job(client, auth_headers):
    job = create_job(client, auth_headers)
    assert client.delete(f"/api/jobs/{job['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/jobs/{job['id']}", headers=auth_headers).status_code == 404
