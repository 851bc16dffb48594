from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from eduplan.core.config import config
from eduplan.core.security import create_access_token
from eduplan.main import app
from eduplan.services.archive_service import ArchiveService, get_archive_service
from eduplan.services.workspace_service import WorkspaceService, get_workspace_service


@pytest.fixture()
def workspace() -> WorkspaceService:
    return WorkspaceService()


@pytest.fixture()
def archive(tmp_path: Path) -> ArchiveService:
    return ArchiveService(tmp_path / "archive")


@pytest.fixture()
def auth_headers() -> dict:
    token = create_access_token({"sub": "teacher-1"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def ai_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config, "api_key", "test-key")
    monkeypatch.setattr(config, "api_url", "https://generativelanguage.googleapis.com/v1beta/models/test:generateContent")
    return config


@pytest.fixture()
def client(workspace: WorkspaceService, archive: ArchiveService) -> Iterator[TestClient]:
    app.dependency_overrides[get_workspace_service] = lambda: workspace
    app.dependency_overrides[get_archive_service] = lambda: archive
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
