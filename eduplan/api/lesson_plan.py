from fastapi import APIRouter, HTTPException, Depends
import logging
from eduplan.services import ai_lesson_plan_generator
from eduplan.models.lesson_plan_model import (
    LessonFromSowRequest,
    LessonNotesRequest,
    LessonPlan,
    LessonPlanRequest,
    MarkdownResponse,
    NoteSummaryRequest,
)
from eduplan.core.security import get_current_user
from eduplan.services.workspace_service import WorkspaceService, get_workspace_service
from eduplan.utils.ai_client import AIClientError

router = APIRouter()

# -------------------------
# Logging Configuration
# -------------------------
logger = logging.getLogger("lesson_plan_api")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


# -------------------------
# Protected Endpoints
# -------------------------
@router.post("/lesson-plan", response_model=LessonPlan, summary="Generate AI-powered CBE lesson plan")
async def create_lesson_plan(req: LessonPlanRequest, username: str = Depends(get_current_user)):
    """
    Generate a lesson plan for one sub-strand.
    Falls back to a skeleton plan (fallbackUsed=true) when the AI keeps failing.
    """
    try:
        plan = await ai_lesson_plan_generator.generate_lesson_plan(
            req.subject, req.grade, req.strand, req.sub_strand, req.school_name, req.context_text
        )
    except Exception as e:
        logger.exception("Failed to generate lesson plan")
        raise HTTPException(status_code=500, detail=f"Lesson plan generation failed: {str(e)}")

    logger.info(f"Lesson plan generated for {req.subject} ({req.grade}) by {username}. Fallback: {plan.fallback_used}")
    return plan


@router.post("/lesson-plan/from-sow/{index}", response_model=LessonPlan, summary="Lesson plan for a scheme of work row")
async def create_lesson_plan_from_sow(
    index: int,
    req: LessonFromSowRequest,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    draft = await workspace.get_draft(username)
    if draft.meta is None or not 0 <= index < len(draft.rows):
        raise HTTPException(status_code=404, detail=f"No row {index} in the scheme of work draft")
    row = draft.rows[index]
    if row.is_break:
        raise HTTPException(status_code=400, detail="Cannot plan a lesson for the half-term break")

    return await create_lesson_plan(
        LessonPlanRequest(
            subject=draft.meta.subject,
            grade=draft.meta.grade,
            strand=row.strand,
            sub_strand=row.sub_strand,
            school_name=req.school_name,
            context_text=req.context_text,
        ),
        username=username,
    )


@router.post("/lesson-notes", response_model=MarkdownResponse)
async def create_lesson_notes(req: LessonNotesRequest, username: str = Depends(get_current_user)):
    try:
        content = await ai_lesson_plan_generator.generate_lesson_notes(
            req.subject, req.grade, req.topic, req.custom_context, req.context_text
        )
    except AIClientError as e:
        logger.error(f"Lesson notes generation failed: {e}")
        raise HTTPException(status_code=502, detail=f"Lesson notes generation failed: {e}")
    return MarkdownResponse(content=content)


@router.post("/lesson-notes/summary", response_model=MarkdownResponse)
async def create_note_summary(req: NoteSummaryRequest, username: str = Depends(get_current_user)):
    try:
        content = await ai_lesson_plan_generator.generate_note_summary(req.notes)
    except AIClientError as e:
        logger.error(f"Note summary generation failed: {e}")
        raise HTTPException(status_code=502, detail=f"Note summary generation failed: {e}")
    return MarkdownResponse(content=content)
