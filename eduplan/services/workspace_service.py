# services/workspace_service.py
"""
Workspace Service

Holds, per teacher:
- the weekly timetable (ScheduleSlot list), read by the date mapper
- the working scheme-of-work draft (meta + rows) the teacher is editing

Dates on the draft are always derived, never patched: any change to the
timetable or to the draft's term start re-runs the date mapper over every row.

State lives in memory; durable copies go to the archive (archive_service).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eduplan.models.sow_model import EDITABLE_ROW_FIELDS, ScheduleSlot, SchemeDraft, SchemeMeta, SowRow
from eduplan.utils.date_utils import map_lesson_dates

logger = logging.getLogger(__name__)


def redate_rows(rows: List[SowRow], meta: Optional[SchemeMeta], slots: List[ScheduleSlot]) -> List[SowRow]:
    """Recompute every row's date from scratch."""
    if meta is None:
        return list(rows)
    cleared = [r if r.is_break else r.model_copy(update={"date": None, "selected_day": None}) for r in rows]
    return map_lesson_dates(cleared, meta.term_start, slots, meta.subject, meta.grade)


@dataclass
class WorkspaceService:
    _slots: Dict[str, List[ScheduleSlot]] = field(default_factory=dict)
    _drafts: Dict[str, SchemeDraft] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    # -------------------------
    # Timetable
    # -------------------------
    async def get_slots(self, owner: str) -> List[ScheduleSlot]:
        return list(self._slots.get(owner, []))

    async def set_slots(self, owner: str, slots: List[ScheduleSlot]) -> List[ScheduleSlot]:
        async with self._lock:
            self._slots[owner] = list(slots)
            draft = self._drafts.get(owner)
            if draft and draft.meta:
                self._drafts[owner] = SchemeDraft(meta=draft.meta, rows=redate_rows(draft.rows, draft.meta, slots))
            logger.info("Timetable for %s replaced (%d slots)", owner, len(slots))
            return list(slots)

    # -------------------------
    # Draft
    # -------------------------
    async def get_draft(self, owner: str) -> SchemeDraft:
        return self._drafts.get(owner) or SchemeDraft()

    async def set_draft(self, owner: str, meta: Optional[SchemeMeta], rows: List[SowRow]) -> SchemeDraft:
        async with self._lock:
            draft = SchemeDraft(meta=meta, rows=list(rows))
            self._drafts[owner] = draft
            return draft

    async def update_meta(self, owner: str, changes: Dict[str, Any]) -> SchemeDraft:
        """Apply meta changes (term start, dates, ...) and re-derive all row dates."""
        async with self._lock:
            draft = self._drafts.get(owner)
            if not draft or not draft.meta:
                raise LookupError("No scheme of work draft to update")
            changes = {k: v for k, v in changes.items() if k != "id"}
            meta = SchemeMeta.model_validate({**draft.meta.model_dump(), **changes})
            rows = redate_rows(draft.rows, meta, self._slots.get(owner, []))
            self._drafts[owner] = SchemeDraft(meta=meta, rows=rows)
            return self._drafts[owner]

    async def edit_row(self, owner: str, index: int, changes: Dict[str, Any]) -> SowRow:
        unknown = set(changes) - EDITABLE_ROW_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
        async with self._lock:
            draft = self._drafts.get(owner)
            if not draft or not 0 <= index < len(draft.rows):
                raise IndexError(f"No row {index} in the draft")
            rows = list(draft.rows)
            if rows[index].is_break and "is_completed" in changes:
                raise ValueError("Break rows cannot be marked completed")
            rows[index] = SowRow.model_validate({**rows[index].model_dump(), **changes})
            self._drafts[owner] = SchemeDraft(meta=draft.meta, rows=rows)
            return rows[index]

    async def toggle_completion(self, owner: str, index: int) -> SowRow:
        async with self._lock:
            draft = self._drafts.get(owner)
            if not draft or not 0 <= index < len(draft.rows):
                raise IndexError(f"No row {index} in the draft")
            rows = list(draft.rows)
            row = rows[index]
            if row.is_break:
                raise ValueError("Break rows cannot be marked completed")
            rows[index] = row.model_copy(update={"is_completed": not row.is_completed})
            self._drafts[owner] = SchemeDraft(meta=draft.meta, rows=rows)
            return rows[index]


# Module-level single instance (convenience)
workspace_service = WorkspaceService()


def get_workspace_service() -> WorkspaceService:
    return workspace_service
