"""
resume_analyzer.py — OpenAI-backed resume scoring, optimization and parsing.

Three modes share one completion call:
  analyze   resume content + job description → match scores and feedback
  optimize  resume content + job description → rewrite suggestions (not stored)
  parse     raw extracted document text     → structured resume content

Model output is untrusted text. It is parsed as JSON directly, then by
recovering the outermost ``{...}`` block; anything else is rejected.
Normalization into stored fields reads each field independently:
canonical name → legacy name → nested ``aiResponse`` → zero / empty.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

import openai
from openai import OpenAI

from config import get_settings
from errors import AppError, ErrorKind
from utils import logger

JSON_BLOCK_PATTERN = re.compile(r"\{[\s\S]*\}")

SCORE_FIELDS: List[Tuple[str, str, Optional[str]]] = [
    # (column, canonical key, legacy key)
    ("overall_score", "overallScore", "matchScore"),
    ("keyword_match", "keywordMatch", "keywordScore"),
    ("skills_match", "skillsMatch", "skillsScore"),
    ("experience_match", "experienceMatch", "experienceScore"),
    ("format_score", "formatScore", "atsScore"),
]

LIST_FIELDS: List[Tuple[str, str, Optional[str]]] = [
    ("strengths", "strengths", None),
    ("improvements", "improvements", "weaknesses"),
    ("missing_keywords", "missingKeywords", "missingSkills"),
]

EXPERIENCE_KEYS = ("company", "position", "duration", "description")
EDUCATION_KEYS = ("institution", "degree", "year", "gpa")
RESUME_SCALAR_KEYS = ("name", "email", "phone", "summary", "skills")

_MISSING = object()


# ── Prompts ───────────────────────────────────────────

ANALYSIS_SYSTEM = (
    "You are an expert ATS and HR consultant. "
    "Provide detailed, actionable resume analysis in valid JSON format."
)
OPTIMIZATION_SYSTEM = (
    "You are an expert resume writer and ATS optimization specialist. "
    "Provide specific optimization recommendations in valid JSON format."
)
PARSING_SYSTEM = (
    "You are an expert resume parser. Extract resume information into the exact "
    "JSON format specified. Return only valid JSON."
)


def build_analysis_prompt(resume_content: Dict[str, Any], job_title: str, job_description: str) -> str:
    return f"""
Analyze the following resume against the job description and provide a comprehensive evaluation.

**RESUME DATA:**
{json.dumps(resume_content, indent=2, sort_keys=True)}

**JOB DESCRIPTION:**
Title: {job_title}
{job_description}

**RESPONSE FORMAT:**
Return ONLY valid JSON with exactly this structure:

{{
  "overallScore": <number 0-100, weighted average of the other scores>,
  "keywordMatch": <number 0-100>,
  "skillsMatch": <number 0-100>,
  "experienceMatch": <number 0-100>,
  "formatScore": <number 0-100, ATS-friendliness of the resume>,
  "jobTitle": "<title of the role being applied for>",
  "strengths": [3-5 specific strengths],
  "improvements": [3-5 specific areas for improvement],
  "missingKeywords": [5-10 important job keywords missing from the resume],
  "keywordData": [
    {{"category": "Technical Skills", "matched": <n>, "total": <n>, "percentage": <n>}},
    {{"category": "Soft Skills", "matched": <n>, "total": <n>, "percentage": <n>}},
    {{"category": "Tools & Technologies", "matched": <n>, "total": <n>, "percentage": <n>}},
    {{"category": "Methodologies", "matched": <n>, "total": <n>, "percentage": <n>}}
  ],
  "detailedAnalysis": {{
    "experienceMatch": "<experience alignment>",
    "skillsMatch": "<skills alignment>",
    "educationMatch": "<education alignment>",
    "overallFit": "<overall assessment>"
  }},
  "recommendations": {{
    "resumeImprovements": [specific resume improvements],
    "skillDevelopment": [skills to develop],
    "experienceGaps": [experience gaps to address]
  }}
}}

Count actual keywords and skills from the job description, calculate percentages from
real matches, and keep every recommendation concrete.
"""


def build_optimization_prompt(resume_content: Dict[str, Any], job_title: str, job_description: str) -> str:
    job = {"title": job_title, "description": job_description}
    return f"""
Analyze the resume and provide specific optimization recommendations for the given job description.

**RESUME DATA:**
{json.dumps(resume_content, indent=2, sort_keys=True)}

**JOB DESCRIPTION:**
{json.dumps(job, indent=2)}

**RESPONSE FORMAT:**
{{
  "atsOptimization": {{
    "keywordSuggestions": [keywords to include],
    "formattingTips": [formatting improvements],
    "sectionRecommendations": [section improvements]
  }},
  "contentOptimization": {{
    "summaryImprovement": "<improved summary>",
    "experienceEnhancements": [experience section improvements],
    "skillsAlignment": [skills to emphasize or add],
    "achievementHighlights": [achievements to emphasize]
  }},
  "strategicRecommendations": {{
    "priorityChanges": [most important changes],
    "industrySpecificTips": [industry-specific recommendations],
    "competitiveAdvantage": [ways to stand out]
  }}
}}
"""


def build_parsing_prompt(resume_text: str) -> str:
    return f"""
Extract and structure the following resume text into a standardized JSON format.

**RESUME TEXT:**
{resume_text}

**REQUIRED JSON FORMAT:**
{{
  "name": "<full name>",
  "email": "<email address>",
  "phone": "<phone number>",
  "summary": "<professional summary; write a 2-3 sentence one if none exists>",
  "experience": [
    {{"company": "", "position": "", "duration": "", "description": ""}}
  ],
  "education": [
    {{"institution": "", "degree": "", "year": "", "gpa": ""}}
  ],
  "skills": "<comma-separated list of every skill mentioned>"
}}

List jobs in reverse chronological order. Only include a GPA when it is stated.
If a field is missing use "" for strings and [] for arrays. Return ONLY valid JSON.
"""


# ── Completion call ───────────────────────────────────

def _client() -> OpenAI:
    settings = get_settings()
    if not settings.OPENAI_API_KEY:
        raise AppError("OpenAI API key is not configured", ErrorKind.UPSTREAM_UNAVAILABLE)
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
        max_retries=1,
    )


def classify_upstream_error(exc: Exception, fallback_message: str) -> AppError:
    """Translate an OpenAI SDK exception into an application error."""
    code = getattr(exc, "code", None)
    if code == "insufficient_quota":
        return AppError("OpenAI quota exceeded. Please try again later.", ErrorKind.UPSTREAM_QUOTA_EXCEEDED)
    if code == "rate_limit_exceeded" or isinstance(exc, openai.RateLimitError):
        return AppError("Too many requests. Please try again later.", ErrorKind.UPSTREAM_RATE_LIMITED)
    if isinstance(exc, openai.APITimeoutError):
        return AppError("The AI service timed out. Please try again.", ErrorKind.UPSTREAM_TIMEOUT)
    if isinstance(exc, (openai.APIConnectionError, openai.AuthenticationError)):
        return AppError("The AI service is currently unavailable.", ErrorKind.UPSTREAM_UNAVAILABLE)
    return AppError(fallback_message, ErrorKind.UPSTREAM_UNAVAILABLE)


def complete(system: str, prompt: str, temperature: float, max_tokens: int, fallback_message: str) -> str:
    """Run one chat completion and return the raw text of the first choice."""
    client = _client()
    settings = get_settings()
    try:
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except openai.OpenAIError as e:
        logger.warning("OpenAI call failed: %s", e)
        raise classify_upstream_error(e, fallback_message) from e
    return response.choices[0].message.content or ""


# ── Response parsing ──────────────────────────────────

def parse_json_response(text: str) -> Dict[str, Any]:
    """Parse model output as a JSON object, recovering an embedded ``{...}`` block."""
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        match = JSON_BLOCK_PATTERN.search(text or "")
        if not match:
            raise AppError("Invalid response format from OpenAI", ErrorKind.UPSTREAM_MALFORMED_RESPONSE)
        try:
            parsed = json.loads(match.group(0))
        except ValueError as e:
            raise AppError("Invalid response format from OpenAI", ErrorKind.UPSTREAM_MALFORMED_RESPONSE) from e
    if not isinstance(parsed, dict):
        raise AppError("Invalid response format from OpenAI", ErrorKind.UPSTREAM_MALFORMED_RESPONSE)
    return parsed


def ensure_complete_analysis(analysis: Dict[str, Any]) -> None:
    """An analysis must carry an overall score and both feedback lists."""
    has_score = "overallScore" in analysis or "matchScore" in analysis
    has_strengths = isinstance(analysis.get("strengths"), list)
    has_improvements = isinstance(analysis.get("improvements", analysis.get("weaknesses")), list)
    if not (has_score and has_strengths and has_improvements):
        logger.warning("Incomplete analysis response, keys: %s", sorted(analysis))
        raise AppError("Incomplete analysis response from OpenAI", ErrorKind.UPSTREAM_MALFORMED_RESPONSE)


# ── Normalization ─────────────────────────────────────

def _lookup(result: Dict[str, Any], canonical: str, legacy: Optional[str]):
    nested = result.get("aiResponse")
    nested = nested if isinstance(nested, dict) else {}
    for source, key in ((result, canonical), (result, legacy), (nested, canonical), (nested, legacy)):
        if key and source.get(key) is not None:
            return source[key]
    return _MISSING


def _number(value) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def _score(value) -> float:
    return max(0.0, min(100.0, _number(value)))


def _string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else json.dumps(item) for item in value if item is not None]


def _keyword_data(value) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    rows = []
    for item in value:
        if not isinstance(item, dict):
            continue
        rows.append({
            "category": str(item.get("category") or ""),
            "matched": max(0.0, _number(item.get("matched"))),
            "total": max(0.0, _number(item.get("total"))),
            "percentage": _score(item.get("percentage")),
        })
    return rows


def normalize_analysis(result: Dict[str, Any]) -> Dict[str, Any]:
    """Map an analysis result onto Analysis column values, one field at a time."""
    fields: Dict[str, Any] = {}
    for column, canonical, legacy in SCORE_FIELDS:
        value = _lookup(result, canonical, legacy)
        fields[column] = 0.0 if value is _MISSING else _score(value)

    for column, canonical, legacy in LIST_FIELDS:
        value = _lookup(result, canonical, legacy)
        fields[column] = [] if value is _MISSING else _string_list(value)

    keyword_data = _lookup(result, "keywordData", None)
    fields["keyword_data"] = [] if keyword_data is _MISSING else _keyword_data(keyword_data)

    for column, key in (("detailed_analysis", "detailedAnalysis"), ("recommendations", "recommendations")):
        value = _lookup(result, key, None)
        fields[column] = value if isinstance(value, dict) else None

    job_title = _lookup(result, "jobTitle", None)
    fields["job_title"] = str(job_title)[:200] if job_title is not _MISSING and job_title != "" else None

    raw = result.get("aiResponse")
    fields["ai_response"] = raw if isinstance(raw, dict) else None
    return fields


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ", ".join(_as_text(v) for v in value if v is not None)
    return str(value)


def _reshape(entry, keys) -> Dict[str, str]:
    entry = entry if isinstance(entry, dict) else {}
    return {key: _as_text(entry.get(key)) for key in keys}


def normalize_resume_content(parsed: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Guarantee the seven resume-content fields and every entry's sub-fields exist."""
    parsed = parsed if isinstance(parsed, dict) else {}
    missing = [key for key in RESUME_SCALAR_KEYS + ("experience", "education") if key not in parsed]
    if missing:
        logger.info("Parsed resume missing fields, defaulting: %s", missing)

    content: Dict[str, Any] = {key: _as_text(parsed.get(key)) for key in RESUME_SCALAR_KEYS}
    experience = parsed.get("experience")
    education = parsed.get("education")
    content["experience"] = [_reshape(e, EXPERIENCE_KEYS) for e in experience] if isinstance(experience, list) else []
    content["education"] = [_reshape(e, EDUCATION_KEYS) for e in education] if isinstance(education, list) else []
    return content


# ── Public operations ─────────────────────────────────

def analyze_resume(resume_content: Dict[str, Any], job_title: str, job_description: str) -> Dict[str, Any]:
    """Score a resume against a job. Returns legacy summary keys plus the full ``aiResponse``."""
    logger.info("Requesting resume analysis for job: %s", job_title)
    text = complete(
        ANALYSIS_SYSTEM,
        build_analysis_prompt(resume_content, job_title, job_description),
        temperature=0.7,
        max_tokens=2000,
        fallback_message="Failed to analyze resume. Please try again.",
    )
    analysis = parse_json_response(text)
    ensure_complete_analysis(analysis)

    recommendations = analysis.get("recommendations")
    result: Dict[str, Any] = {"aiResponse": analysis}
    legacy = {
        "matchScore": analysis.get("overallScore", analysis.get("matchScore")),
        "strengths": analysis.get("strengths"),
        "weaknesses": analysis.get("improvements", analysis.get("weaknesses")),
        "missingSkills": analysis.get("missingKeywords"),
        "suggestions": recommendations.get("resumeImprovements") if isinstance(recommendations, dict) else None,
    }
    result.update({key: value for key, value in legacy.items() if value is not None})
    return result


def optimize_resume(resume_content: Dict[str, Any], job_title: str, job_description: str) -> Dict[str, Any]:
    logger.info("Requesting optimization suggestions for job: %s", job_title)
    text = complete(
        OPTIMIZATION_SYSTEM,
        build_optimization_prompt(resume_content, job_title, job_description),
        temperature=0.7,
        max_tokens=1500,
        fallback_message="Failed to optimize resume. Please try again.",
    )
    return parse_json_response(text)


def parse_resume_text(resume_text: str) -> Dict[str, Any]:
    """Turn raw document text into normalized resume content."""
    logger.info("Requesting resume parsing (%d chars)", len(resume_text))
    text = complete(
        PARSING_SYSTEM,
        build_parsing_prompt(resume_text),
        temperature=0.3,
        max_tokens=2000,
        fallback_message="Failed to parse resume. Please try again.",
    )
    return normalize_resume_content(parse_json_response(text))
