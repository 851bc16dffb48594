import asyncio
import functools
import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from eduplan.core.config import config
from eduplan.models.lesson_plan_model import LessonPlan
from eduplan.utils.ai_client import AIClientError, call_ai_model, cleanup_ai_text


# -------------------------
# Logging
# -------------------------
logger = logging.getLogger("lesson_plan_generator")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


# -------------------------
# Retry Decorator
# -------------------------
def retry_on_ai_error(max_retries: int = config.max_retries, backoff_base: float = 1.0):
    """Retry the wrapped call; after the last failure return the skeleton plan instead."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(subject, grade, strand, sub_strand, *args, **kwargs):
            last_exception = None
            for attempt in range(max_retries + 1):
                try:
                    return await func(subject, grade, strand, sub_strand, *args, **kwargs)
                except (AIClientError, ValidationError) as e:
                    last_exception = e
                    if attempt < max_retries:
                        wait = backoff_base * (2 ** attempt)
                        logger.warning(
                            f"Attempt {attempt+1}/{max_retries+1} for lesson plan '{sub_strand}' failed: {e}. Retrying in {wait}s..."
                        )
                        await asyncio.sleep(wait)

            logger.error(f"All retries failed for lesson plan '{sub_strand}'. Using fallback. Last error: {last_exception}")
            return _safe_skeleton_plan(subject, grade, strand, sub_strand)
        return wrapper
    return decorator


# -------------------------
# Prompt & Fallback Builder
# -------------------------
def _build_lesson_plan_prompt(subject, grade, strand, sub_strand, school_name=None, context_text=None):
    return f"""
You are an experienced Kenyan teacher writing a detailed CBE (Competency Based Education) lesson plan.
Return **only a valid JSON object**, no explanations, commentary, or markdown.

Subject: {subject} | Grade: {grade} | Strand: {strand} | Sub-strand: {sub_strand}
School: {school_name or '-'}
Context: {context_text or 'Standard CBE'}

MANDATORY: Provide detailed teacher and learner activities for the introduction,
exactly 3 lesson development steps, and the conclusion. No placeholders.

Return strictly valid JSON using this structure:

{{
  "outcomes": ["3-4 specific learning outcomes starting 'By the end of the lesson, the learner should be able to...'"],
  "introduction": "How the lesson opens (5 minutes).",
  "lessonDevelopment": ["Step 1 ...", "Step 2 ...", "Step 3 ..."],
  "conclusion": "How the lesson is wrapped up.",
  "extendedLearning": "Activity learners do beyond the lesson."
}}
"""


def _safe_skeleton_plan(subject, grade, strand, sub_strand) -> LessonPlan:
    return LessonPlan(
        grade=grade,
        subject=subject,
        strand=strand,
        sub_strand=sub_strand,
        outcomes=[
            f"By the end of the lesson, the learner should be able to explain {sub_strand}.",
            f"By the end of the lesson, the learner should be able to give examples of {sub_strand} in daily life.",
        ],
        introduction=f"Review the previous lesson and ask learners what they already know about {sub_strand}.",
        lesson_development=[
            f"Step 1: Learners discuss in groups the meaning of {sub_strand}.",
            f"Step 2: Teacher guides learners through worked examples of {sub_strand}.",
            f"Step 3: Learners carry out a short activity applying {sub_strand}.",
        ],
        conclusion=f"Summarize the key points of {sub_strand} and ask learners to share one thing they learned.",
        extended_learning=f"Learners find an example of {sub_strand} at home and share it next lesson.",
        fallback_used=True,
    )


def _as_text_list(value) -> List[str]:
    if isinstance(value, list):
        return [cleanup_ai_text(str(v)) for v in value if str(v).strip()]
    if isinstance(value, str) and value.strip():
        return [cleanup_ai_text(value)]
    return []


# -------------------------
# Main AI Generation Logic
# -------------------------
@retry_on_ai_error(max_retries=config.max_retries)
async def generate_lesson_plan(
    subject: str,
    grade: str,
    strand: str,
    sub_strand: str,
    school_name: Optional[str] = None,
    context_text: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> LessonPlan:
    prompt = _build_lesson_plan_prompt(subject, grade, strand, sub_strand, school_name, context_text)
    parsed = await call_ai_model(
        prompt,
        api_url=config.api_url,
        api_key=config.api_key,
        model=config.model,
        timeout=config.timeout,
        max_retries=0,  # retries are handled by the decorator
        client=client,
    )
    if not isinstance(parsed, dict):
        raise AIClientError("AI output is not a JSON object")

    plan = LessonPlan.model_validate({
        "grade": grade,
        "subject": subject,
        "strand": strand,
        "sub_strand": sub_strand,
        "outcomes": _as_text_list(parsed.get("outcomes")),
        "introduction": cleanup_ai_text(parsed.get("introduction") or ""),
        "lesson_development": _as_text_list(parsed.get("lessonDevelopment") or parsed.get("lesson_development")),
        "conclusion": cleanup_ai_text(parsed.get("conclusion") or ""),
        "extended_learning": cleanup_ai_text(parsed.get("extendedLearning") or parsed.get("extended_learning") or ""),
    })
    logger.info(f"Lesson plan generated for {subject} {grade}: {sub_strand}")
    return plan


async def generate_lesson_notes(
    subject: str,
    grade: str,
    topic: str,
    custom_context: Optional[str] = None,
    context_text: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Markdown study notes for one topic."""
    prompt = (
        f"Generate comprehensive Markdown study notes for {subject} {grade} on the topic of {topic}.\n"
        f"Teacher instructions: {custom_context or '-'}\n"
        f"Context: {context_text or 'Standard CBE'}"
    )
    return await call_ai_model(
        prompt,
        api_url=config.api_url,
        api_key=config.api_key,
        model=config.model,
        timeout=config.timeout,
        parse_json=False,
        client=client,
    )


async def generate_note_summary(notes: str, *, client: Optional[httpx.AsyncClient] = None) -> str:
    """A short revision summary (Markdown bullet points) of existing notes."""
    prompt = (
        "Summarize the following lesson notes into concise Markdown revision bullet points "
        "a learner can copy from the board:\n\n" + notes
    )
    return await call_ai_model(
        prompt,
        api_url=config.api_url,
        api_key=config.api_key,
        model=config.model,
        timeout=config.timeout,
        parse_json=False,
        client=client,
    )
