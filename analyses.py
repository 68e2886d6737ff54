"""
analyses.py — Resume-vs-job analysis routes: create, reanalyze, history, optimize and stats.

At most one analysis exists per (user, resume, job). The database unique
constraint decides; the pre-check only avoids paying for a doomed AI call.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import resume_analyzer
from auth import get_current_user
from crud import get_owned, list_owned, owned_query
from database import get_db
from errors import AppError, ErrorKind
from models import Analysis, AnalysisRevision, JobDescription, Resume, User, utcnow
from schemas import (
    AnalysisCreate,
    AnalysisDetail,
    AnalysisOut,
    AnalysisRevisionOut,
    AnalysisStats,
    ApiResponse,
    MessageOut,
    Page,
)
from utils import logger

router = APIRouter(prefix="/api/analysis", tags=["analysis"])

DUPLICATE_MESSAGE = "Analysis already exists for this resume and job combination"

SNAPSHOT_FIELDS = (
    "overall_score",
    "keyword_match",
    "skills_match",
    "experience_match",
    "format_score",
    "strengths",
    "improvements",
    "missing_keywords",
    "ai_response",
)


def _owned_pair(db: Session, user_id: str, payload: AnalysisCreate):
    resume = get_owned(db, Resume, user_id, str(payload.resume_id), "Resume")
    job = get_owned(db, JobDescription, user_id, str(payload.job_desc_id), "Job description")
    return resume, job


def _run_analysis(resume: Resume, job: JobDescription) -> Dict[str, Any]:
    result = resume_analyzer.analyze_resume(resume.content, job.title, job.description)
    return resume_analyzer.normalize_analysis(result)


@router.get("", response_model=ApiResponse[Page[AnalysisOut]])
def list_analyses(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, meta = list_owned(db, Analysis, current_user.id, page, limit, search, Analysis.job_title)
    return {"success": True, "data": {"items": items, "pagination": meta}}


@router.get("/stats/overview", response_model=ApiResponse[AnalysisStats])
def analysis_stats(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    query = owned_query(db, Analysis, current_user.id)
    average = (
        db.query(func.avg(Analysis.overall_score)).filter(Analysis.user_id == current_user.id).scalar()
    )
    since = utcnow() - timedelta(days=30)
    return {
        "success": True,
        "data": {
            "total_analyses": query.count(),
            "avg_overall_score": round(average or 0, 2),
            "recent_analyses": query.filter(Analysis.created_at >= since).count(),
            "top_analyses": query.order_by(Analysis.overall_score.desc()).limit(5).all(),
        },
    }


@router.post("/optimize", response_model=ApiResponse[Dict[str, Any]])
def optimize(payload: AnalysisCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """One-shot rewrite suggestions; nothing is stored."""
    resume, job = _owned_pair(db, current_user.id, payload)
    logger.info("Optimization requested by %s for resume %s / job %s", current_user.id, resume.id, job.id)
    return {"success": True, "data": resume_analyzer.optimize_resume(resume.content, job.title, job.description)}


@router.get("/{analysis_id}", response_model=ApiResponse[AnalysisDetail])
def get_analysis(analysis_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": get_owned(db, Analysis, current_user.id, analysis_id, "Analysis")}


@router.post("", response_model=ApiResponse[AnalysisOut], status_code=status.HTTP_201_CREATED)
def create_analysis(
    payload: AnalysisCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    resume, job = _owned_pair(db, current_user.id, payload)
    logger.info("Analysis requested by %s for resume %s / job %s", current_user.id, resume.id, job.id)

    exists = (
        owned_query(db, Analysis, current_user.id)
        .filter(Analysis.resume_id == resume.id, Analysis.job_desc_id == job.id)
        .first()
    )
    if exists:
        raise AppError(DUPLICATE_MESSAGE, ErrorKind.CONFLICT)

    fields = _run_analysis(resume, job)
    analysis = Analysis(user_id=current_user.id, resume_id=resume.id, job_desc_id=job.id, **fields)
    db.add(analysis)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Concurrent duplicate analysis rejected for resume %s / job %s", resume.id, job.id)
        raise AppError(DUPLICATE_MESSAGE, ErrorKind.CONFLICT)
    db.refresh(analysis)
    logger.info("Analysis stored (id=%s, overall=%.1f)", analysis.id, analysis.overall_score)
    return {"success": True, "data": analysis}


@router.post("/{analysis_id}/reanalyze", response_model=ApiResponse[AnalysisOut])
def reanalyze(analysis_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Re-run the AI call and overwrite the analysis in place, keeping a snapshot of the old result."""
    analysis = get_owned(db, Analysis, current_user.id, analysis_id, "Analysis")
    fields = _run_analysis(analysis.resume, analysis.job_description)

    snapshot = {name: getattr(analysis, name) for name in SNAPSHOT_FIELDS}
    db.add(AnalysisRevision(analysis_id=analysis.id, analyzed_at=analysis.updated_at, **snapshot))
    for name, value in fields.items():
        setattr(analysis, name, value)
    analysis.updated_at = utcnow()
    db.commit()
    db.refresh(analysis)
    logger.info("Analysis re-run (id=%s, overall=%.1f)", analysis.id, analysis.overall_score)
    return {"success": True, "data": analysis}


@router.get("/{analysis_id}/history", response_model=ApiResponse[List[AnalysisRevisionOut]])
def analysis_history(analysis_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    analysis = get_owned(db, Analysis, current_user.id, analysis_id, "Analysis")
    return {"success": True, "data": analysis.revisions}


@router.delete("/{analysis_id}", response_model=MessageOut)
def delete_analysis(analysis_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    analysis = get_owned(db, Analysis, current_user.id, analysis_id, "Analysis")
    db.delete(analysis)
    db.commit()
    logger.info("Analysis deleted (id=%s)", analysis_id)
    return {"success": True, "message": "Analysis deleted successfully"}
