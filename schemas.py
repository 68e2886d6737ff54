"""
schemas.py — Pydantic models for request validation and response shaping.

JSON bodies use camelCase keys; Python code uses the snake_case field names.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError
from typing_extensions import Annotated

T = TypeVar("T")

NonEmptyStr = Annotated[str, Field(min_length=1)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ── Envelope ──────────────────────────────────────────

class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: Pagination


class MessageOut(BaseModel):
    success: bool = True
    message: str


# ── Auth / users ──────────────────────────────────────

class UserRegister(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)


class UserLogin(CamelModel):
    email: NonEmptyStr
    password: NonEmptyStr


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    avatar_url: Optional[HttpUrl] = None


class PasswordChange(CamelModel):
    current_password: NonEmptyStr
    new_password: str = Field(min_length=6)


class ForgotPassword(CamelModel):
    email: EmailStr


class PasswordReset(CamelModel):
    token: NonEmptyStr
    new_password: str = Field(min_length=6)


class AccountDelete(CamelModel):
    confirm_password: Optional[str] = None


class UserOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AuthOut(CamelModel):
    token: str
    user: UserOut


# ── Resumes ───────────────────────────────────────────

class ExperienceEntry(CamelModel):
    company: NonEmptyStr
    position: NonEmptyStr
    duration: NonEmptyStr
    description: NonEmptyStr


class EducationEntry(CamelModel):
    institution: NonEmptyStr
    degree: NonEmptyStr
    year: NonEmptyStr
    gpa: Optional[str] = None


class ResumeContentIn(CamelModel):
    """Shape a form-entered resume must have before it is stored."""

    name: NonEmptyStr
    email: EmailStr
    phone: NonEmptyStr
    summary: NonEmptyStr
    experience: List[ExperienceEntry] = Field(min_length=1)
    education: List[EducationEntry] = Field(min_length=1)
    skills: NonEmptyStr


def form_content_violations(value: Any) -> Optional[str]:
    """Joined ``content.<path>: <message>`` list for a form resume, or None when it is complete."""
    try:
        ResumeContentIn.model_validate(value or {})
    except ValidationError as exc:
        parts = []
        for err in exc.errors():
            path = ".".join(str(p) for p in ("content",) + tuple(err["loc"]))
            parts.append(f"{path}: {err['msg']}")
        return ", ".join(parts)
    return None


class ResumeCreate(CamelModel):
    title: str = Field(min_length=1, max_length=100)
    type: Literal["form", "file"]
    content: Optional[Dict[str, Any]] = Field(default=None, validate_default=True)

    @field_validator("content")
    @classmethod
    def check_form_content(cls, value, info: ValidationInfo):
        # file resumes get their content later from extraction + parsing
        if info.data.get("type") != "form":
            return value
        detail = form_content_violations(value)
        if detail:
            raise PydanticCustomError("resume_content", "{detail}", {"detail": detail})
        return value


class ResumeUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[Literal["form", "file"]] = None
    content: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class ResumeRef(CamelModel):
    id: str
    title: str


class ResumeSummary(CamelModel):
    id: str
    title: str
    type: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ResumeOut(ResumeSummary):
    content: Dict[str, Any]


class ResumeWithContent(ResumeRef):
    content: Dict[str, Any]


# ── Job descriptions ──────────────────────────────────

class JobCreate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: str = Field(min_length=50)


class JobUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=50)
    is_active: Optional[bool] = None


class JobRef(CamelModel):
    id: str
    title: str


class JobOut(CamelModel):
    id: str
    title: str
    description: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class JobWithText(JobRef):
    description: str


class JobStats(CamelModel):
    total_jobs: int
    active_jobs: int
    recent_jobs: int


# ── Analyses ──────────────────────────────────────────

class AnalysisCreate(CamelModel):
    resume_id: UUID
    job_desc_id: UUID


class KeywordCategory(CamelModel):
    category: str = ""
    matched: float = 0
    total: float = 0
    percentage: float = 0


class AnalysisOut(CamelModel):
    id: str
    resume_id: str
    job_desc_id: str
    overall_score: float
    keyword_match: float
    skills_match: float
    experience_match: float
    format_score: float
    job_title: Optional[str] = None
    strengths: List[str]
    improvements: List[str]
    missing_keywords: List[str]
    keyword_data: List[KeywordCategory]
    detailed_analysis: Optional[Dict[str, Any]] = None
    recommendations: Optional[Dict[str, Any]] = None
    ai_response: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    resume: ResumeRef
    job_description: JobRef


class AnalysisDetail(AnalysisOut):
    resume: ResumeWithContent
    job_description: JobWithText


class AnalysisBrief(CamelModel):
    id: str
    overall_score: float
    created_at: datetime


class AnalysisRevisionOut(CamelModel):
    id: str
    analysis_id: str
    overall_score: float
    keyword_match: float
    skills_match: float
    experience_match: float
    format_score: float
    strengths: List[str]
    improvements: List[str]
    missing_keywords: List[str]
    analyzed_at: Optional[datetime] = None
    created_at: datetime


class AnalysisStats(CamelModel):
    total_analyses: int
    avg_overall_score: float
    recent_analyses: int
    top_analyses: List[AnalysisOut]


# ── User aggregates ───────────────────────────────────

class CountPair(CamelModel):
    total: int
    active: int


class AnalysisTotals(CamelModel):
    total: int
    avg_overall_score: float


class DashboardStats(CamelModel):
    resumes: CountPair
    jobs: CountPair
    analyses: AnalysisTotals


class DashboardOut(CamelModel):
    stats: DashboardStats
    recent_activities: List[AnalysisOut]


class ActivityItem(CamelModel):
    id: str
    type: Literal["resume", "job", "analysis"]
    title: Optional[str] = None
    overall_score: Optional[float] = None
    resume: Optional[ResumeRef] = None
    job_description: Optional[JobRef] = None
    created_at: datetime


class ProfileStatistics(CamelModel):
    total_resumes: int
    total_jobs: int
    total_analyses: int
    best_match_score: float
    best_match: Optional[AnalysisOut] = None
    recent_analyses: List[AnalysisBrief]


class ProfileOut(UserOut):
    statistics: ProfileStatistics


class ExportOut(CamelModel):
    user: UserOut
    resumes: List[ResumeOut]
    job_descriptions: List[JobOut]
    analyses: List[AnalysisOut]
    export_date: datetime
