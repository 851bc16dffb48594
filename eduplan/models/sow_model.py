import uuid
from datetime import date, datetime, timezone
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: camelCase JSON keys, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------------
# Timetable
# -------------------------
class ScheduleSlot(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    day: str
    start_time: str = ""
    end_time: str = ""
    subject: str
    grade: str
    # The web client historically sends this as "type"
    kind: Literal["lesson", "break", "activity"] = Field(
        default="lesson", validation_alias=AliasChoices("kind", "type")
    )

    @field_validator("day")
    @classmethod
    def known_weekday(cls, v: str) -> str:
        # date_utils imports this module
        from eduplan.utils.date_utils import weekday_index

        if weekday_index(v) is None:
            raise ValueError(f"unknown day of week: {v!r}")
        return v.strip()


# -------------------------
# Scheme of work rows
# -------------------------
class SowRow(CamelModel):
    week: int = Field(..., ge=1)
    lesson: int = Field(..., ge=0, description="0 is reserved for break markers.")
    strand: str = ""
    sub_strand: str = ""
    learning_outcomes: str = ""
    teaching_experiences: str = ""
    key_inquiry_questions: str = ""
    learning_resources: str = ""
    assessment_methods: str = ""
    reflection: str = ""
    date: Optional[str] = None
    selected_day: Optional[str] = None
    is_completed: bool = False
    is_break: bool = False


# Fields a teacher may edit on a generated row
EDITABLE_ROW_FIELDS = frozenset({
    "strand",
    "sub_strand",
    "learning_outcomes",
    "teaching_experiences",
    "key_inquiry_questions",
    "learning_resources",
    "assessment_methods",
    "reflection",
    "is_completed",
})


class RawLessonRecord(CamelModel):
    """A lesson record exactly as the generator reported it, before sanitizing."""

    week: int = Field(..., ge=1)
    lesson: int = Field(..., ge=0)
    strand: str
    sub_strand: str
    learning_outcomes: str
    teaching_experiences: str = ""
    key_inquiry_questions: str = ""
    learning_resources: str = ""
    assessment_methods: str = ""
    reflection: str = ""

    @field_validator("strand", "sub_strand", "learning_outcomes")
    @classmethod
    def require_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator(
        "teaching_experiences",
        "key_inquiry_questions",
        "learning_resources",
        "assessment_methods",
        "reflection",
        mode="before",
    )
    @classmethod
    def coerce_optional_text(cls, v):
        # Models sometimes answer with a list of bullet points
        if v is None:
            return ""
        if isinstance(v, list):
            return "; ".join(str(item).strip() for item in v if str(item).strip())
        return str(v).strip()

    def to_row(self) -> SowRow:
        return SowRow(**self.model_dump())


# -------------------------
# Scheme metadata and archive entries
# -------------------------
class SchemeMeta(CamelModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    subject: str
    grade: str
    term: int = Field(..., ge=1, le=3)
    year: int
    term_start: date
    term_end: Optional[date] = None
    half_term_start: Optional[date] = None
    half_term_end: Optional[date] = None


class SavedScheme(SchemeMeta):
    date_created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    rows: List[SowRow] = Field(default_factory=list)

    @property
    def meta(self) -> SchemeMeta:
        return SchemeMeta.model_validate(self.model_dump(exclude={"date_created", "rows"}))


class SchemeDraft(CamelModel):
    """The teacher's working scheme: what the generator last produced plus edits."""

    meta: Optional[SchemeMeta] = None
    rows: List[SowRow] = Field(default_factory=list)


# -------------------------
# Generation
# -------------------------
class CoverageStats(CamelModel):
    percentage: int = 0
    total: int = 0
    completed: int = 0


class SowGenerationRequest(CamelModel):
    subject: str = ""
    grade: str = ""
    term: int = Field(1, ge=1, le=3)
    year: Optional[int] = None
    term_start: date
    term_end: Optional[date] = None
    half_term_start: Optional[date] = None
    half_term_end: Optional[date] = None
    context_text: Optional[str] = None
    scheme_id: Optional[str] = None

    def to_meta(self) -> SchemeMeta:
        payload = {
            "subject": self.subject.strip(),
            "grade": self.grade.strip(),
            "term": self.term,
            "year": self.year or self.term_start.year,
            "term_start": self.term_start,
            "term_end": self.term_end,
            "half_term_start": self.half_term_start,
            "half_term_end": self.half_term_end,
        }
        if self.scheme_id:
            payload["id"] = self.scheme_id
        return SchemeMeta(**payload)


class SowProgress(CamelModel):
    chunk_index: int
    chunk_count: int
    start_week: int
    end_week: int
    rows: List[SowRow]
    is_final: bool = False


class SowGenerationResult(CamelModel):
    meta: SchemeMeta
    rows: List[SowRow]
    lessons_per_week: int
    coverage: CoverageStats


class DateMappingRequest(CamelModel):
    rows: List[SowRow]
    meta: SchemeMeta
    slots: List[ScheduleSlot] = Field(default_factory=list)


# -------------------------
# Partial updates
# -------------------------
class SchemeMetaUpdate(CamelModel):
    subject: Optional[str] = None
    grade: Optional[str] = None
    term: Optional[int] = Field(None, ge=1, le=3)
    year: Optional[int] = None
    term_start: Optional[date] = None
    term_end: Optional[date] = None
    half_term_start: Optional[date] = None
    half_term_end: Optional[date] = None

    @field_validator("subject", "grade", "term", "year", "term_start")
    @classmethod
    def not_null(cls, v):
        # Omit a field to keep it; only the optional term dates may be cleared
        if v is None:
            raise ValueError("cannot be cleared")
        return v


class SowRowUpdate(CamelModel):
    strand: Optional[str] = None
    sub_strand: Optional[str] = None
    learning_outcomes: Optional[str] = None
    teaching_experiences: Optional[str] = None
    key_inquiry_questions: Optional[str] = None
    learning_resources: Optional[str] = None
    assessment_methods: Optional[str] = None
    reflection: Optional[str] = None
    is_completed: Optional[bool] = None
