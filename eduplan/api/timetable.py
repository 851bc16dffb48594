from typing import List

from fastapi import APIRouter, Depends

from eduplan.core.security import get_current_user
from eduplan.models.sow_model import CamelModel, ScheduleSlot
from eduplan.services.ai_sow_generator import lessons_per_week_for
from eduplan.services.workspace_service import WorkspaceService, get_workspace_service

router = APIRouter()


class LessonsPerWeekResponse(CamelModel):
    subject: str
    grade: str
    lessons_per_week: int


@router.get("", response_model=List[ScheduleSlot])
async def read_timetable(
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    return await workspace.get_slots(username)


@router.put("", response_model=List[ScheduleSlot])
async def replace_timetable(
    slots: List[ScheduleSlot],
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    """Replace the teacher's timetable. Dates on the current draft are re-derived."""
    return await workspace.set_slots(username, slots)


@router.get("/lessons-per-week", response_model=LessonsPerWeekResponse)
async def read_lessons_per_week(
    subject: str,
    grade: str,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    slots = await workspace.get_slots(username)
    return LessonsPerWeekResponse(subject=subject, grade=grade, lessons_per_week=lessons_per_week_for(slots, subject, grade))
