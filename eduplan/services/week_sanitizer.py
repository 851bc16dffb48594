"""
Week repair and half-term handling for generated schemes of work.

Each stage is a pure function over a row sequence and returns new rows:

    sanitize_weeks          fold runaway week numbers back into the term
    shift_for_display       push weeks 7+ down by one, freeing week 7
    insert_half_term_break  put the single break row into week 7
"""

from typing import Iterable, List

from eduplan.models.sow_model import SowRow

MAX_TERM_WEEK = 15
HALF_TERM_WEEK = 7


def sanitize_week(week: int) -> int:
    if week > MAX_TERM_WEEK:
        return ((week - 1) % MAX_TERM_WEEK) + 1
    return week


def sanitize_weeks(rows: Iterable[SowRow]) -> List[SowRow]:
    out = []
    for row in rows:
        week = sanitize_week(row.week)
        out.append(row if week == row.week else row.model_copy(update={"week": week}))
    return out


def _order_key(row: SowRow):
    return (row.week, row.lesson)


def shift_for_display(rows: Iterable[SowRow]) -> List[SowRow]:
    shifted = []
    for row in rows:
        if not row.is_break and row.week >= HALF_TERM_WEEK:
            row = row.model_copy(update={"week": row.week + 1})
        shifted.append(row)
    return sorted(shifted, key=_order_key)


def half_term_break_row() -> SowRow:
    return SowRow(
        week=HALF_TERM_WEEK,
        lesson=0,
        strand="HALF TERM BREAK",
        sub_strand="-",
        learning_outcomes="Academic Review & Assessment",
        teaching_experiences="Learner reflection and remedial activities",
        key_inquiry_questions="-",
        learning_resources="-",
        assessment_methods="-",
        reflection="-",
        is_break=True,
    )


def insert_half_term_break(rows: Iterable[SowRow]) -> List[SowRow]:
    """Insert the break row before the first row past week 7; no-op if one is already there."""
    rows = list(rows)
    if any(r.is_break for r in rows):
        return rows

    out = []
    inserted = False
    for row in rows:
        if not inserted and row.week > HALF_TERM_WEEK:
            out.append(half_term_break_row())
            inserted = True
        out.append(row)
    return out


def reset_completion(rows: Iterable[SowRow]) -> List[SowRow]:
    return [r if not r.is_completed else r.model_copy(update={"is_completed": False}) for r in rows]
