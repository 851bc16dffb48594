from typing import List, Optional
from pydantic import Field

from eduplan.models.sow_model import CamelModel


class LessonPlan(CamelModel):
    grade: str
    subject: str
    strand: str
    sub_strand: str
    outcomes: List[str] = Field(default_factory=list, description="Specific learning outcomes for the lesson.")
    introduction: str = ""
    lesson_development: List[str] = Field(
        default_factory=list,
        description="Teacher and learner activities, one entry per development step.",
    )
    conclusion: str = ""
    extended_learning: str = ""
    fallback_used: bool = False


class LessonPlanRequest(CamelModel):
    subject: str
    grade: str
    strand: str
    sub_strand: str
    school_name: Optional[str] = None
    context_text: Optional[str] = None


class LessonFromSowRequest(CamelModel):
    school_name: Optional[str] = None
    context_text: Optional[str] = None


class LessonNotesRequest(CamelModel):
    subject: str
    grade: str
    topic: str
    custom_context: Optional[str] = None
    context_text: Optional[str] = None


class NoteSummaryRequest(CamelModel):
    notes: str = Field(..., min_length=1)


class MarkdownResponse(CamelModel):
    content: str
