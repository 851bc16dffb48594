import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from eduplan.api.sow import get_chunk_generator
from eduplan.main import app
from eduplan.models.lesson_plan_model import LessonPlan
from eduplan.services import ai_lesson_plan_generator
from eduplan.utils.ai_client import AIClientError
from tests.factories import FakeChunkGenerator

PLAN_JSON = {
    "outcomes": ["By the end of the lesson, the learner should be able to **add** fractions."],
    "introduction": "Learners share pizza slices.",
    "lessonDevelopment": ["Step 1: Discuss", "Step 2: Practise", "Step 3: Present"],
    "conclusion": "Recap.",
    "extendedLearning": "Measure ingredients at home.",
}


def _gemini(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.fixture()
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list:
    waits = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    monkeypatch.setattr(ai_lesson_plan_generator.asyncio, "sleep", fake_sleep)
    return waits


def _run_with_transport(handler, coro_factory):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)

    return asyncio.run(run())


# -------------------------
# Generator
# -------------------------
def test_lesson_plan_from_model_output(ai_settings) -> None:
    prompts = []

    def handler(request: httpx.Request) -> httpx.Response:
        prompts.append(json.loads(request.content)["contents"][0]["parts"][0]["text"])
        return _gemini("```json\n" + json.dumps(PLAN_JSON) + "\n```")

    plan = _run_with_transport(
        handler,
        lambda client: ai_lesson_plan_generator.generate_lesson_plan(
            "Mathematics", "Grade 7", "Numbers", "Fractions", "Hill School", client=client
        ),
    )

    assert plan.fallback_used is False
    assert plan.sub_strand == "Fractions"
    assert plan.outcomes == ["By the end of the lesson, the learner should be able to add fractions."]
    assert len(plan.lesson_development) == 3
    assert plan.extended_learning == "Measure ingredients at home."
    assert "Sub-strand: Fractions" in prompts[0]
    assert "School: Hill School" in prompts[0]


def test_lesson_plan_falls_back_after_retries(ai_settings, no_sleep) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, text="boom")

    plan = _run_with_transport(
        handler,
        lambda client: ai_lesson_plan_generator.generate_lesson_plan(
            "Science", "Grade 8", "Living things", "Cells", client=client
        ),
    )

    assert plan.fallback_used is True
    assert plan.sub_strand == "Cells"
    assert len(plan.lesson_development) == 3
    assert len(calls) == ai_settings.max_retries + 1
    assert no_sleep == [1.0 * 2 ** i for i in range(ai_settings.max_retries)]


def test_lesson_plan_recovers_on_retry(ai_settings, no_sleep) -> None:
    responses = iter([_gemini("not json at all"), _gemini(json.dumps(PLAN_JSON))])

    plan = _run_with_transport(
        lambda request: next(responses),
        lambda client: ai_lesson_plan_generator.generate_lesson_plan(
            "Mathematics", "Grade 7", "Numbers", "Fractions", client=client
        ),
    )

    assert plan.fallback_used is False
    assert len(no_sleep) == 1


def test_lesson_notes_are_returned_as_markdown(ai_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert "topic of Photosynthesis" in json.loads(request.content)["contents"][0]["parts"][0]["text"]
        return _gemini("# Photosynthesis\n\nPlants make food.\n")

    notes = _run_with_transport(
        handler,
        lambda client: ai_lesson_plan_generator.generate_lesson_notes(
            "Science", "Grade 8", "Photosynthesis", client=client
        ),
    )

    assert notes == "# Photosynthesis\n\nPlants make food."


def test_note_summary_does_not_retry(ai_settings) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    with pytest.raises(AIClientError):
        _run_with_transport(handler, lambda client: ai_lesson_plan_generator.generate_note_summary("notes", client=client))
    assert len(calls) == 1


# -------------------------
# Endpoints
# -------------------------
def _stub_plan(calls: list):
    async def fake_generate_lesson_plan(subject, grade, strand, sub_strand, school_name=None, context_text=None):
        calls.append((subject, grade, strand, sub_strand, school_name, context_text))
        return LessonPlan(subject=subject, grade=grade, strand=strand, sub_strand=sub_strand, outcomes=["x"])

    return fake_generate_lesson_plan


def test_lesson_plan_endpoint(client: TestClient, auth_headers: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(ai_lesson_plan_generator, "generate_lesson_plan", _stub_plan(calls))

    resp = client.post(
        "/api/lesson-plan",
        json={"subject": "Mathematics", "grade": "Grade 7", "strand": "Numbers", "subStrand": "Fractions"},
        headers=auth_headers,
    )

    assert resp.status_code == 200
    assert resp.json()["subStrand"] == "Fractions"
    assert resp.json()["fallbackUsed"] is False
    assert calls == [("Mathematics", "Grade 7", "Numbers", "Fractions", None, None)]


def test_lesson_plan_from_sow_row(client: TestClient, auth_headers: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(ai_lesson_plan_generator, "generate_lesson_plan", _stub_plan(calls))
    app.dependency_overrides[get_chunk_generator] = lambda: FakeChunkGenerator()
    client.put(
        "/timetable",
        json=[{"day": "Monday", "subject": "Mathematics", "grade": "Grade 7"}],
        headers=auth_headers,
    )
    client.post(
        "/sow/generate",
        json={"subject": "Mathematics", "grade": "Grade 7", "term": 1, "termStart": "2026-01-05"},
        headers=auth_headers,
    )

    ok = client.post("/api/lesson-plan/from-sow/0", json={"schoolName": "Hill School"}, headers=auth_headers)
    on_break = client.post("/api/lesson-plan/from-sow/6", json={}, headers=auth_headers)
    missing = client.post("/api/lesson-plan/from-sow/40", json={}, headers=auth_headers)

    assert ok.status_code == 200
    assert calls == [("Mathematics", "Grade 7", "Strand W1", "Sub-strand W1L1", "Hill School", None)]
    assert on_break.status_code == 400
    assert missing.status_code == 404


def test_lesson_plan_from_sow_without_draft(client: TestClient, auth_headers: dict) -> None:
    resp = client.post("/api/lesson-plan/from-sow/0", json={}, headers=auth_headers)

    assert resp.status_code == 404


def test_lesson_notes_endpoint_maps_provider_failure(client: TestClient, auth_headers: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_notes(*args, **kwargs):
        raise AIClientError("AI provider returned status 503")

    monkeypatch.setattr(ai_lesson_plan_generator, "generate_lesson_notes", failing_notes)

    resp = client.post(
        "/api/lesson-notes",
        json={"subject": "Science", "grade": "Grade 8", "topic": "Cells"},
        headers=auth_headers,
    )

    assert resp.status_code == 502
    assert "503" in resp.json()["detail"]


def test_note_summary_endpoint(client: TestClient, auth_headers: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    async def summary(notes, *, client=None):
        return "- " + notes

    monkeypatch.setattr(ai_lesson_plan_generator, "generate_note_summary", summary)

    ok = client.post("/api/lesson-notes/summary", json={"notes": "Cells are small"}, headers=auth_headers)
    empty = client.post("/api/lesson-notes/summary", json={"notes": ""}, headers=auth_headers)

    assert ok.json() == {"content": "- Cells are small"}
    assert empty.status_code == 422


def test_lesson_plan_falls_back_when_provider_sends_html(ai_settings, no_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    plan = _run_with_transport(
        handler,
        lambda client: ai_lesson_plan_generator.generate_lesson_plan(
            "Mathematics", "Grade 7", "Numbers", "Fractions", client=client
        ),
    )

    assert plan.fallback_used is True
    assert plan.sub_strand == "Fractions"
