import math
from typing import Iterable

from eduplan.models.sow_model import CoverageStats, SowRow


def coverage_stats(rows: Iterable[SowRow]) -> CoverageStats:
    """Share of lesson rows (break rows excluded) marked completed, rounded half up."""
    lessons = [r for r in rows if not r.is_break]
    total = len(lessons)
    completed = sum(1 for r in lessons if r.is_completed)
    percentage = math.floor(completed * 100 / total + 0.5) if total else 0
    return CoverageStats(percentage=percentage, total=total, completed=completed)
