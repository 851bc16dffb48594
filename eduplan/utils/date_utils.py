# utils/date_utils.py
import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

from eduplan.models.sow_model import ScheduleSlot, SowRow

logger = logging.getLogger(__name__)

DAYS_OF_WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_DAY_PREFIXES = {name[:3].lower(): i for i, name in enumerate(DAYS_OF_WEEK)}


def weekday_index(day: Optional[str]) -> Optional[int]:
    """Monday=0 .. Sunday=6. Accepts full or three-letter names; None if unknown."""
    if not day:
        return None
    key = day.strip().lower()
    idx = _DAY_PREFIXES.get(key[:3])
    if idx is None or not DAYS_OF_WEEK[idx].lower().startswith(key):
        return None
    return idx


def lesson_slots_for(slots: Iterable[ScheduleSlot], subject: str, grade: str) -> List[ScheduleSlot]:
    """Lesson slots for one subject/grade, ordered Monday → Sunday (stable within a day)."""
    mine = [
        s for s in slots
        if s.subject == subject and s.grade == grade and s.kind == "lesson"
    ]
    return sorted(mine, key=lambda s: weekday_index(s.day))


def format_date(value: date) -> str:
    """DD/MM/YYYY, the day-month-year convention used on Kenyan school documents."""
    return value.strftime("%d/%m/%Y")


def clamp_to_year(value: date, year: int) -> date:
    """Force `value` back into `year` when it has run past it."""
    if value.year <= year:
        return value
    try:
        return value.replace(year=year)
    except ValueError:
        # 29 February in a non-leap target year
        return value.replace(year=year, day=28)


def lesson_date(term_start: date, week: int, weekday: int, clamp_to_start_year: bool = True) -> date:
    days_offset = (week - 1) * 7 + weekday
    result = term_start + timedelta(days=days_offset)
    if clamp_to_start_year and result.year > term_start.year:
        logger.warning(
            "Week %d lands on %s, past %d; clamping to the term start year", week, result.isoformat(), term_start.year
        )
        result = clamp_to_year(result, term_start.year)
    return result


def map_lesson_dates(
    rows: Iterable[SowRow],
    term_start: Optional[date],
    slots: Iterable[ScheduleSlot],
    subject: str,
    grade: str,
    clamp_to_start_year: bool = True,
) -> List[SowRow]:
    """
    Stamp each lesson row with the calendar date of its timetable slot.

    The n-th lesson of a week goes to the n-th slot (Monday first) the teacher has
    for this subject/grade, wrapping when the generator numbers past the slot count.
    Break rows are returned as they are. With no
    matching slots (or no term start) the rows come back undated.
    """
    rows = list(rows)
    if term_start is None:
        return rows

    my_lessons = lesson_slots_for(slots, subject, grade)
    if not my_lessons:
        logger.info("No timetable slots for %s %s; leaving scheme undated", subject, grade)
        return rows

    n = len(my_lessons)
    mapped = []
    for row in rows:
        if row.is_break:
            mapped.append(row)
            continue

        # Python's % is non-negative for n > 0, so lesson 0 wraps to the last slot
        slot = my_lessons[(row.lesson - 1) % n]
        weekday = weekday_index(slot.day)
        when = lesson_date(term_start, row.week, weekday, clamp_to_start_year)
        mapped.append(row.model_copy(update={"date": format_date(when), "selected_day": DAYS_OF_WEEK[weekday]}))
    return mapped
