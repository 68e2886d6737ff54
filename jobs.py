"""
jobs.py — Job-description CRUD routes and the title heuristic used when no title is given.
"""

import re
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from auth import get_current_user
from crud import get_owned, list_owned, owned_query
from database import get_db
from models import JobDescription, User, utcnow
from schemas import ApiResponse, JobCreate, JobOut, JobStats, JobUpdate, MessageOut, Page
from utils import logger

router = APIRouter(prefix="/api/jobs", tags=["jobs"])

DEFAULT_JOB_TITLE = "Job Position"
TITLE_PATTERN = re.compile(r"^(.+?)(?: - | at | @ |$)")


def find_title(description: str) -> Optional[str]:
    """First line that looks like a job title, cut before ' - ', ' at ' or ' @ '."""
    for line in (description or "").split("\n"):
        trimmed = line.strip()
        if not 3 < len(trimmed) < 100:
            continue
        if "•" in trimmed or "-" in trimmed or trimmed.startswith("Requirements"):
            continue
        match = TITLE_PATTERN.match(trimmed)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def extract_title(description: str) -> str:
    return find_title(description) or DEFAULT_JOB_TITLE


@router.get("", response_model=ApiResponse[Page[JobOut]])
def list_jobs(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, meta = list_owned(db, JobDescription, current_user.id, page, limit, search, JobDescription.title)
    return {"success": True, "data": {"items": items, "pagination": meta}}


@router.get("/stats/overview", response_model=ApiResponse[JobStats])
def job_stats(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    query = owned_query(db, JobDescription, current_user.id)
    since = utcnow() - timedelta(days=30)
    return {
        "success": True,
        "data": {
            "total_jobs": query.count(),
            "active_jobs": query.filter(JobDescription.is_active.is_(True)).count(),
            "recent_jobs": query.filter(JobDescription.created_at >= since).count(),
        },
    }


@router.get("/{job_id}", response_model=ApiResponse[JobOut])
def get_job(job_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": get_owned(db, JobDescription, current_user.id, job_id, "Job description")}


@router.post("", response_model=ApiResponse[JobOut], status_code=status.HTTP_201_CREATED)
def create_job(payload: JobCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    title = payload.title or extract_title(payload.description)
    logger.info("Creating job description '%s' for user: %s", title, current_user.id)
    job = JobDescription(user_id=current_user.id, title=title, description=payload.description)
    db.add(job)
    db.commit()
    db.refresh(job)
    return {"success": True, "data": job}


@router.patch("/{job_id}", response_model=ApiResponse[JobOut])
def update_job(
    job_id: str,
    payload: JobUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    job = get_owned(db, JobDescription, current_user.id, job_id, "Job description")
    if payload.description is not None:
        job.description = payload.description
        job.title = payload.title or find_title(payload.description) or job.title
    elif payload.title is not None:
        job.title = payload.title
    if payload.is_active is not None:
        job.is_active = payload.is_active
    db.commit()
    db.refresh(job)
    logger.info("Job description updated (id=%s)", job.id)
    return {"success": True, "data": job}


@router.delete("/{job_id}", response_model=MessageOut)
def delete_job(job_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    job = get_owned(db, JobDescription, current_user.id, job_id, "Job description")
    db.delete(job)
    db.commit()
    logger.info("Job description deleted (id=%s)", job_id)
    return {"success": True, "message": "Job description deleted successfully"}


@router.post("/{job_id}/duplicate", response_model=ApiResponse[JobOut], status_code=status.HTTP_201_CREATED)
def duplicate_job(job_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    original = get_owned(db, JobDescription, current_user.id, job_id, "Job description")
    duplicate = JobDescription(
        user_id=current_user.id,
        title=f"{original.title[:193]} (Copy)",
        description=original.description,
    )
    db.add(duplicate)
    db.commit()
    db.refresh(duplicate)
    return {"success": True, "data": duplicate}
