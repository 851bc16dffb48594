import logging
import time
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from eduplan.core.config import DEFAULT_LESSONS_PER_WEEK, config
from eduplan.models.sow_model import (
    RawLessonRecord,
    ScheduleSlot,
    SchemeMeta,
    SowGenerationRequest,
    SowGenerationResult,
    SowProgress,
    SowRow,
)
from eduplan.services.coverage import coverage_stats
from eduplan.services.week_sanitizer import (
    insert_half_term_break,
    reset_completion,
    sanitize_weeks,
    shift_for_display,
)
from eduplan.utils.ai_client import AIDataIntegrityError, call_ai_model, cleanup_ai_text
from eduplan.utils.date_utils import lesson_slots_for, map_lesson_dates

logger = logging.getLogger(__name__)

# Week ranges requested from the model, one call each, in this order
SOW_CHUNKS: Tuple[Tuple[int, int], ...] = ((1, 3), (4, 6), (7, 9), (10, 13))

ChunkGenerator = Callable[..., Awaitable[List[SowRow]]]


class SOWConfigurationError(ValueError):
    pass


# -------------------------
# Remote content generator
# -------------------------
def _build_sow_prompt(subject, grade, term, start_week, end_week, lessons_per_week, context_text=None):
    return f"""
Generate a KICD Rationalized Schemes of Work for {subject}, {grade}, Term {term}, Weeks {start_week} to {end_week}.
There are {lessons_per_week} lessons per week. Number lessons from 1 within each week.
Context: {context_text or 'Standard CBE'}

Respond ONLY with JSON matching:
{{
  "lessons": [
    {{
      "week": number,
      "lesson": number,
      "strand": "str",
      "subStrand": "str",
      "learningOutcomes": "str",
      "teachingExperiences": "str",
      "keyInquiryQuestions": "str",
      "learningResources": "str",
      "assessmentMethods": "str",
      "reflection": "str"
    }}
  ]
}}
"""


def parse_sow_lessons(payload) -> List[SowRow]:
    """Validate the generator payload ({"lessons": [...]} or a bare list) into rows."""
    if isinstance(payload, dict):
        payload = payload.get("lessons")
    if not isinstance(payload, list):
        raise AIDataIntegrityError("expected a list of lessons")

    rows = []
    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            raise AIDataIntegrityError(f"lesson {i} is not an object")
        cleaned = {k: cleanup_ai_text(v) for k, v in item.items()}
        try:
            record = RawLessonRecord.model_validate(cleaned)
        except ValidationError as e:
            raise AIDataIntegrityError(f"lesson {i} is malformed: {e.errors(include_url=False)}")
        rows.append(record.to_row())
    return rows


async def generate_sow_chunk(
    subject: str,
    grade: str,
    term: int,
    start_week: int,
    end_week: int,
    lessons_per_week: int,
    context_text: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[SowRow]:
    """One generator call for weeks start_week..end_week. Raw (unsanitized) rows."""
    prompt = _build_sow_prompt(subject, grade, term, start_week, end_week, lessons_per_week, context_text)
    return await call_ai_model(
        prompt,
        api_url=config.api_url,
        api_key=config.api_key,
        model=config.model,
        timeout=config.timeout,
        schema_parser=parse_sow_lessons,
        max_retries=0,
        client=client,
    )


# -------------------------
# Views over the accumulated rows
# -------------------------
def build_intermediate_view(rows: Iterable[SowRow], meta: SchemeMeta, slots: Sequence[ScheduleSlot]) -> List[SowRow]:
    shifted = shift_for_display(reset_completion(sanitize_weeks(rows)))
    return map_lesson_dates(shifted, meta.term_start, slots, meta.subject, meta.grade)


def build_final_view(rows: Iterable[SowRow], meta: SchemeMeta, slots: Sequence[ScheduleSlot]) -> List[SowRow]:
    finalized = insert_half_term_break(shift_for_display(reset_completion(sanitize_weeks(rows))))
    return map_lesson_dates(finalized, meta.term_start, slots, meta.subject, meta.grade)


def lessons_per_week_for(slots: Iterable[ScheduleSlot], subject: str, grade: str) -> int:
    count = len(lesson_slots_for(slots, subject, grade))
    return count or DEFAULT_LESSONS_PER_WEEK


class GenerationMetrics:
    def __init__(self):
        self.start_time = None
        self.chunks_completed = 0
        self.rows_generated = 0

    def start(self):
        self.start_time = time.time()

    def record_chunk(self, row_count: int):
        self.chunks_completed += 1
        self.rows_generated += row_count

    def get_metrics(self) -> dict:
        duration = (time.time() - self.start_time) if self.start_time else 0
        return {
            "generation_time_seconds": round(duration, 2),
            "chunks_completed": self.chunks_completed,
            "rows_generated": self.rows_generated,
        }


# -------------------------
# Chunk orchestrator
# -------------------------
def validate_request(request: SowGenerationRequest) -> None:
    if not request.subject.strip() or not request.grade.strip():
        raise SOWConfigurationError("Select a subject and grade first.")


async def iter_scheme_generation(
    request: SowGenerationRequest,
    slots: Sequence[ScheduleSlot],
    *,
    generator: Optional[ChunkGenerator] = None,
    meta: Optional[SchemeMeta] = None,
) -> AsyncIterator[SowProgress]:
    """
    Generate a scheme chunk by chunk.

    Yields a non-final, dated view after every chunk and a final view (with the
    half-term break) at the end. Chunks run strictly one after another; the first
    failing chunk ends the run and its exception propagates.
    """
    validate_request(request)
    generator = generator or generate_sow_chunk
    meta = meta or request.to_meta()
    slots = list(slots)
    lessons_per_week = lessons_per_week_for(slots, meta.subject, meta.grade)

    logger.info(
        "Generating term %d scheme for %s %s (%d lessons/week)", meta.term, meta.subject, meta.grade, lessons_per_week
    )
    metrics = GenerationMetrics()
    metrics.start()

    accumulated: Tuple[SowRow, ...] = ()
    chunk_count = len(SOW_CHUNKS)
    for index, (start_week, end_week) in enumerate(SOW_CHUNKS, start=1):
        try:
            chunk_rows = await generator(
                meta.subject,
                meta.grade,
                meta.term,
                start_week,
                end_week,
                lessons_per_week,
                request.context_text,
            )
        except Exception as e:
            logger.error("Chunk %d (weeks %d-%d) failed: %s", index, start_week, end_week, e)
            raise

        accumulated = accumulated + tuple(chunk_rows)
        metrics.record_chunk(len(chunk_rows))
        yield SowProgress(
            chunk_index=index,
            chunk_count=chunk_count,
            start_week=start_week,
            end_week=end_week,
            rows=build_intermediate_view(accumulated, meta, slots),
        )

    logger.info("Scheme of work generated: %s", metrics.get_metrics())
    yield SowProgress(
        chunk_index=chunk_count,
        chunk_count=chunk_count,
        start_week=SOW_CHUNKS[0][0],
        end_week=SOW_CHUNKS[-1][1],
        rows=build_final_view(accumulated, meta, slots),
        is_final=True,
    )


async def generate_scheme_of_work(
    request: SowGenerationRequest,
    slots: Sequence[ScheduleSlot],
    *,
    generator: Optional[ChunkGenerator] = None,
    progress_callback: Optional[Callable[[SowProgress], None]] = None,
) -> SowGenerationResult:
    """Run every chunk and return the finalized scheme; progress goes to the callback."""
    meta = request.to_meta()
    final_rows: List[SowRow] = []
    async for progress in iter_scheme_generation(request, slots, generator=generator, meta=meta):
        if progress.is_final:
            final_rows = progress.rows
        elif progress_callback:
            progress_callback(progress)

    return SowGenerationResult(
        meta=meta,
        rows=final_rows,
        lessons_per_week=lessons_per_week_for(slots, meta.subject, meta.grade),
        coverage=coverage_stats(final_rows),
    )
