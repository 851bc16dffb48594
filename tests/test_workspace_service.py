import asyncio
from datetime import date

import pytest

from eduplan.services.week_sanitizer import half_term_break_row
from eduplan.services.workspace_service import WorkspaceService, redate_rows
from tests.factories import make_meta, make_row, make_slot

OWNER = "teacher-1"


def _seed(workspace: WorkspaceService, rows=None, slots=None):
    rows = rows if rows is not None else [make_row(1, 1), make_row(1, 2), half_term_break_row(), make_row(8, 1)]
    slots = slots if slots is not None else [make_slot("Monday"), make_slot("Thursday")]

    async def run():
        await workspace.set_slots(OWNER, slots)
        await workspace.set_draft(OWNER, make_meta(), redate_rows(rows, make_meta(), slots))

    asyncio.run(run())


def test_redate_rows_without_meta_is_a_no_op() -> None:
    rows = [make_row(1, 1, date="01/01/2026")]

    assert redate_rows(rows, None, [make_slot("Monday")]) == rows


def test_redate_rows_clears_stale_dates() -> None:
    rows = [make_row(1, 1, date="01/01/2020", selected_day="Friday")]

    redated = redate_rows(rows, make_meta(), [make_slot("Monday", subject="English")])

    assert redated[0].date is None
    assert redated[0].selected_day is None


def test_empty_workspace() -> None:
    workspace = WorkspaceService()

    draft = asyncio.run(workspace.get_draft(OWNER))

    assert draft.meta is None and draft.rows == []
    assert asyncio.run(workspace.get_slots(OWNER)) == []


def test_replacing_timetable_redates_the_draft(workspace: WorkspaceService) -> None:
    _seed(workspace)
    assert asyncio.run(workspace.get_draft(OWNER)).rows[1].date == "08/01/2026"

    asyncio.run(workspace.set_slots(OWNER, [make_slot("Tuesday"), make_slot("Wednesday")]))
    rows = asyncio.run(workspace.get_draft(OWNER)).rows

    assert [r.date for r in rows] == ["06/01/2026", "07/01/2026", None, "24/02/2026"]


def test_clearing_timetable_leaves_rows_undated(workspace: WorkspaceService) -> None:
    _seed(workspace)

    asyncio.run(workspace.set_slots(OWNER, []))

    assert all(r.date is None for r in asyncio.run(workspace.get_draft(OWNER)).rows)


def test_changing_term_start_redates_every_row(workspace: WorkspaceService) -> None:
    _seed(workspace)

    draft = asyncio.run(workspace.update_meta(OWNER, {"term_start": date(2026, 1, 12), "id": "ignored"}))

    assert draft.meta.id == "scheme-1"
    assert draft.meta.term_start == date(2026, 1, 12)
    assert [r.date for r in draft.rows] == ["12/01/2026", "15/01/2026", None, "02/03/2026"]


def test_update_meta_without_draft(workspace: WorkspaceService) -> None:
    with pytest.raises(LookupError):
        asyncio.run(workspace.update_meta(OWNER, {"term": 2}))


def test_edit_row_changes_content_only(workspace: WorkspaceService) -> None:
    _seed(workspace)

    row = asyncio.run(workspace.edit_row(OWNER, 0, {"reflection": "Went well"}))

    assert row.reflection == "Went well"
    assert row.date == "05/01/2026"
    assert asyncio.run(workspace.get_draft(OWNER)).rows[0].reflection == "Went well"


def test_edit_row_rejects_derived_fields(workspace: WorkspaceService) -> None:
    _seed(workspace)

    with pytest.raises(ValueError, match="date"):
        asyncio.run(workspace.edit_row(OWNER, 0, {"date": "01/01/2026"}))
    with pytest.raises(ValueError, match="week"):
        asyncio.run(workspace.edit_row(OWNER, 0, {"week": 3}))


def test_edit_row_out_of_range(workspace: WorkspaceService) -> None:
    _seed(workspace)

    with pytest.raises(IndexError):
        asyncio.run(workspace.edit_row(OWNER, 10, {"reflection": "x"}))


def test_toggle_completion_flips_the_flag(workspace: WorkspaceService) -> None:
    _seed(workspace)

    assert asyncio.run(workspace.toggle_completion(OWNER, 0)).is_completed is True
    assert asyncio.run(workspace.toggle_completion(OWNER, 0)).is_completed is False


def test_break_rows_cannot_be_completed(workspace: WorkspaceService) -> None:
    _seed(workspace)

    with pytest.raises(ValueError):
        asyncio.run(workspace.toggle_completion(OWNER, 2))


def test_owners_are_isolated(workspace: WorkspaceService) -> None:
    _seed(workspace)

    assert asyncio.run(workspace.get_draft("teacher-2")).rows == []
    assert asyncio.run(workspace.get_slots("teacher-2")) == []


def test_edit_row_cannot_complete_a_break_row(workspace: WorkspaceService) -> None:
    _seed(workspace)

    with pytest.raises(ValueError):
        asyncio.run(workspace.edit_row(OWNER, 2, {"is_completed": True}))
    assert asyncio.run(workspace.get_draft(OWNER)).rows[2].is_completed is False

    # other fields of a break row stay editable
    assert asyncio.run(workspace.edit_row(OWNER, 2, {"reflection": "CAT week"})).reflection == "CAT week"
