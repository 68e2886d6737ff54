"""
main.py — FastAPI application for the Resume Analyzer API: resumes, job descriptions and AI match analyses.
"""

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

import accounts
import analyses
import jobs
import resumes
import users
from config import get_settings
from database import Base, engine
from errors import register_error_handlers
from models import utcnow
from utils import logger, upload_dir

settings = get_settings()

# ── App setup ─────────────────────────────────────────

app = FastAPI(
    title="Resume Analyzer API",
    description="Store resumes and job descriptions, and score how well they match using an AI model.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(accounts.router)
app.include_router(resumes.router)
app.include_router(jobs.router)
app.include_router(analyses.router)
app.include_router(users.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# ── Startup event ─────────────────────────────────────

@app.on_event("startup")
def on_startup():
    """Create database tables and ensure the uploads directory exists."""
    Base.metadata.create_all(bind=engine)
    path = upload_dir()
    logger.info("Application started: tables created, uploads dir ready at %s", path)


@app.get("/health")
def health():
    return {"status": "OK", "timestamp": utcnow().isoformat()}
