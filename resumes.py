"""
resumes.py — Resume CRUD, file upload with AI parsing, download and duplication routes.
"""

import copy
import mimetypes
import os
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

import resume_analyzer
from auth import get_current_user
from config import get_settings
from crud import apply_changes, get_owned, list_owned
from database import get_db
from errors import AppError, ErrorKind, not_found
from extractor import ensure_supported, extract_text
from models import Resume, User
from schemas import (
    ApiResponse,
    MessageOut,
    Page,
    ResumeCreate,
    ResumeOut,
    ResumeSummary,
    ResumeUpdate,
    form_content_violations,
)
from utils import logger, remove_stored_file, stored_file_path, unique_upload_name

router = APIRouter(prefix="/api/resumes", tags=["resumes"])

CHUNK_SIZE = 1024 * 1024


def store_upload(file: UploadFile) -> Tuple[str, int]:
    """Validate the MIME type, then stream the upload to a fresh stored name."""
    ensure_supported(file.content_type)
    max_size = get_settings().MAX_FILE_SIZE
    stored_name = unique_upload_name(file.filename)
    path = stored_file_path(stored_name)
    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = file.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_size:
                    raise AppError(
                        f"File size too large. Maximum size is {max_size // (1024 * 1024)}MB.",
                        ErrorKind.VALIDATION,
                    )
                out.write(chunk)
    except AppError:
        remove_stored_file(stored_name)
        raise
    except OSError as e:
        logger.error("Failed to save upload %s: %s", file.filename, e)
        remove_stored_file(stored_name)
        raise AppError("Failed to save uploaded file", ErrorKind.STORAGE_ERROR) from e
    logger.info("File saved: %s (%d bytes)", path, size)
    return stored_name, size


def _default_title(filename: Optional[str]) -> str:
    stem = os.path.splitext(os.path.basename(filename or ""))[0].strip()
    return (stem or "Uploaded Resume")[:100]


# ── CRUD ──────────────────────────────────────────────

@router.get("", response_model=ApiResponse[Page[ResumeSummary]])
def list_resumes(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, meta = list_owned(db, Resume, current_user.id, page, limit, search, Resume.title)
    return {"success": True, "data": {"items": items, "pagination": meta}}


@router.post("/upload", response_model=ApiResponse[ResumeOut], status_code=status.HTTP_201_CREATED)
def upload_resume(
    file: UploadFile = File(..., alias="resume"),
    title: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Store a resume file, extract its text, parse it with AI and save the result."""
    logger.info("Resume upload by user '%s': %s (%s)", current_user.id, file.filename, file.content_type)
    stored_name, size = store_upload(file)
    try:
        text = extract_text(stored_file_path(stored_name), file.content_type)
        if not text.strip():
            raise AppError("No readable text found in the uploaded file", ErrorKind.BAD_REQUEST)

        content = resume_analyzer.parse_resume_text(text)

        resume = Resume(
            user_id=current_user.id,
            title=(title or "").strip()[:100] or _default_title(file.filename),
            type="file",
            content=content,
            file_name=file.filename,
            file_path=stored_name,
            file_size=size,
        )
        db.add(resume)
        db.commit()
        db.refresh(resume)
    except Exception:
        db.rollback()
        logger.warning("Upload processing failed, removing %s", stored_name)
        remove_stored_file(stored_name)
        raise

    logger.info("Resume created from upload (id=%s)", resume.id)
    return {"success": True, "data": resume}


@router.get("/{resume_id}", response_model=ApiResponse[ResumeOut])
def get_resume(resume_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": get_owned(db, Resume, current_user.id, resume_id, "Resume")}


@router.post("", response_model=ApiResponse[ResumeOut], status_code=status.HTTP_201_CREATED)
def create_resume(
    payload: ResumeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logger.info("Creating %s resume for user: %s", payload.type, current_user.id)
    if payload.type == "form":
        content = payload.content
    else:
        content = resume_analyzer.normalize_resume_content(payload.content)

    resume = Resume(user_id=current_user.id, title=payload.title, type=payload.type, content=content)
    db.add(resume)
    db.commit()
    db.refresh(resume)
    return {"success": True, "data": resume}


@router.patch("/{resume_id}", response_model=ApiResponse[ResumeOut])
def update_resume(
    resume_id: str,
    payload: ResumeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    resume = get_owned(db, Resume, current_user.id, resume_id, "Resume")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("content") is not None:
        if (changes.get("type") or resume.type) == "form":
            detail = form_content_violations(changes["content"])
            if detail:
                raise AppError(detail, ErrorKind.VALIDATION)
        else:
            changes["content"] = resume_analyzer.normalize_resume_content(changes["content"])
    apply_changes(resume, changes)
    db.commit()
    db.refresh(resume)
    logger.info("Resume updated (id=%s)", resume.id)
    return {"success": True, "data": resume}


@router.delete("/{resume_id}", response_model=MessageOut)
def delete_resume(resume_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    resume = get_owned(db, Resume, current_user.id, resume_id, "Resume")
    stored_name = resume.file_path
    db.delete(resume)
    db.flush()
    try:
        remove_stored_file(stored_name)
    except OSError as e:
        db.rollback()
        logger.error("Could not remove stored file %s: %s", stored_name, e)
        raise AppError("Failed to delete resume file", ErrorKind.STORAGE_ERROR) from e
    db.commit()
    logger.info("Resume deleted (id=%s)", resume_id)
    return {"success": True, "message": "Resume deleted successfully"}


# ── Files ─────────────────────────────────────────────

@router.post("/{resume_id}/upload", response_model=ApiResponse[ResumeOut])
def attach_file(
    resume_id: str,
    file: UploadFile = File(..., alias="resume"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Attach a file to an existing resume, replacing any previous one."""
    resume = get_owned(db, Resume, current_user.id, resume_id, "Resume")
    stored_name, size = store_upload(file)
    previous = resume.file_path
    try:
        resume.file_name = file.filename
        resume.file_path = stored_name
        resume.file_size = size
        db.commit()
        db.refresh(resume)
    except Exception:
        db.rollback()
        remove_stored_file(stored_name)
        raise
    remove_stored_file(previous)
    return {"success": True, "data": resume}


@router.get("/{resume_id}/download")
def download_resume(resume_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    resume = get_owned(db, Resume, current_user.id, resume_id, "Resume")
    if not resume.file_path:
        raise AppError("No file associated with this resume", ErrorKind.NOT_FOUND)

    path = stored_file_path(resume.file_path)
    if not os.path.isfile(path):
        raise not_found("File")

    filename = resume.file_name or resume.file_path
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return FileResponse(path=path, filename=filename, media_type=media_type)


@router.post("/{resume_id}/duplicate", response_model=ApiResponse[ResumeOut], status_code=status.HTTP_201_CREATED)
def duplicate_resume(resume_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    original = get_owned(db, Resume, current_user.id, resume_id, "Resume")
    duplicate = Resume(
        user_id=current_user.id,
        title=f"{original.title[:93]} (Copy)",
        type=original.type,
        content=copy.deepcopy(original.content),
    )
    db.add(duplicate)
    db.commit()
    db.refresh(duplicate)
    return {"success": True, "data": duplicate}
