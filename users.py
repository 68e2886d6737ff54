"""
users.py — Per-user aggregate views (dashboard, activity feed, profile, export) and account deletion.
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from auth import get_current_user, verify_password
from crud import coerce_positive_int, owned_query, page_params, pagination
from database import get_db
from errors import AppError, ErrorKind
from models import Analysis, JobDescription, Resume, User, utcnow
from schemas import (
    AccountDelete,
    ActivityItem,
    ApiResponse,
    DashboardOut,
    ExportOut,
    MessageOut,
    Page,
    ProfileOut,
)
from utils import logger, remove_stored_file

router = APIRouter(prefix="/api/users", tags=["users"])

DEFAULT_ACTIVITY_DAYS = 30
DEFAULT_ACTIVITY_LIMIT = 20


def _average_score(db: Session, user_id: str) -> float:
    average = db.query(func.avg(Analysis.overall_score)).filter(Analysis.user_id == user_id).scalar()
    return round(average or 0, 2)


def _recent_analyses(db: Session, user_id: str, count: int = 5):
    return owned_query(db, Analysis, user_id).order_by(Analysis.created_at.desc()).limit(count).all()


@router.get("/dashboard", response_model=ApiResponse[DashboardOut])
def dashboard(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    logger.info("Dashboard requested by user: %s", current_user.id)
    resumes = owned_query(db, Resume, current_user.id)
    jobs = owned_query(db, JobDescription, current_user.id)
    return {
        "success": True,
        "data": {
            "stats": {
                "resumes": {"total": resumes.count(), "active": resumes.filter(Resume.is_active.is_(True)).count()},
                "jobs": {"total": jobs.count(), "active": jobs.filter(JobDescription.is_active.is_(True)).count()},
                "analyses": {
                    "total": owned_query(db, Analysis, current_user.id).count(),
                    "avg_overall_score": _average_score(db, current_user.id),
                },
            },
            "recent_activities": _recent_analyses(db, current_user.id),
        },
    }


@router.get("/activity", response_model=ApiResponse[Page[ActivityItem]])
def activity(
    days: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Resume, job and analysis events of the last ``days`` days, newest first."""
    page, limit = page_params(page, limit, DEFAULT_ACTIVITY_LIMIT)
    since = utcnow() - timedelta(days=coerce_positive_int(days, DEFAULT_ACTIVITY_DAYS))

    events = []
    for resume in owned_query(db, Resume, current_user.id).filter(Resume.created_at >= since):
        events.append({"id": resume.id, "type": "resume", "title": resume.title, "created_at": resume.created_at})
    for job in owned_query(db, JobDescription, current_user.id).filter(JobDescription.created_at >= since):
        events.append({"id": job.id, "type": "job", "title": job.title, "created_at": job.created_at})
    for analysis in owned_query(db, Analysis, current_user.id).filter(Analysis.created_at >= since):
        events.append({
            "id": analysis.id,
            "type": "analysis",
            "title": analysis.job_title or analysis.job_description.title,
            "overall_score": analysis.overall_score,
            "resume": analysis.resume,
            "job_description": analysis.job_description,
            "created_at": analysis.created_at,
        })

    events.sort(key=lambda event: (event["created_at"], event["id"]), reverse=True)
    start = (page - 1) * limit
    return {
        "success": True,
        "data": {"items": events[start:start + limit], "pagination": pagination(len(events), page, limit)},
    }


@router.get("/profile", response_model=ApiResponse[ProfileOut])
def profile(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    analyses = owned_query(db, Analysis, current_user.id)
    best = analyses.order_by(Analysis.overall_score.desc()).first()
    statistics = {
        "total_resumes": owned_query(db, Resume, current_user.id).count(),
        "total_jobs": owned_query(db, JobDescription, current_user.id).count(),
        "total_analyses": analyses.count(),
        "best_match_score": best.overall_score if best else 0,
        "best_match": best,
        "recent_analyses": _recent_analyses(db, current_user.id),
    }
    data = {
        "id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "avatar_url": current_user.avatar_url,
        "created_at": current_user.created_at,
        "updated_at": current_user.updated_at,
        "statistics": statistics,
    }
    return {"success": True, "data": data}


@router.get("/export", response_model=ApiResponse[ExportOut])
def export(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    logger.info("Data export for user: %s", current_user.id)
    return {
        "success": True,
        "data": {
            "user": current_user,
            "resumes": owned_query(db, Resume, current_user.id).order_by(Resume.created_at).all(),
            "job_descriptions": owned_query(db, JobDescription, current_user.id).order_by(JobDescription.created_at).all(),
            "analyses": owned_query(db, Analysis, current_user.id).order_by(Analysis.created_at).all(),
            "export_date": utcnow(),
        },
    }


@router.delete("/account", response_model=MessageOut)
def delete_account(
    body: Optional[AccountDelete] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete the account and everything it owns, stored files included."""
    if body is None or not body.confirm_password:
        raise AppError("Password confirmation is required", ErrorKind.BAD_REQUEST)
    if not verify_password(body.confirm_password, current_user.hashed_password):
        logger.warning("Account deletion refused for user %s: wrong password", current_user.id)
        raise AppError("Invalid password", ErrorKind.UNAUTHENTICATED)

    stored_names = [resume.file_path for resume in current_user.resumes if resume.file_path]
    user_id = current_user.id
    db.delete(current_user)
    db.commit()

    for stored_name in stored_names:
        try:
            remove_stored_file(stored_name)
        except OSError as e:
            logger.error("Orphaned upload %s after deleting user %s: %s", stored_name, user_id, e)

    logger.info("Account deleted (id=%s)", user_id)
    return {"success": True, "message": "Account deleted successfully"}
