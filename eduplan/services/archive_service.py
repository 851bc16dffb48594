# services/archive_service.py
"""
Archive Service

Saved schemes of work, one JSON file per teacher:

    <ARCHIVE_DIR>/<owner>.json  ->  [SavedScheme, ...]   (newest first)

- save_scheme replaces the entry with the same id, or puts a new one first.
- Every write rewrites the whole file through a temp file + os.replace, so a
  reader never sees a half-written archive.
- An asyncio.Lock serializes writers inside this process.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from eduplan.core.config import ARCHIVE_DIR
from eduplan.models.sow_model import SavedScheme, SchemeMeta, SowRow

logger = logging.getLogger(__name__)

_saved_list = TypeAdapter(List[SavedScheme])


class ArchiveError(Exception):
    pass


def _filename_for(owner: str) -> str:
    """Deterministic, filesystem-safe file name for a teacher id."""
    return re.sub(r"[^A-Za-z0-9_.-]", "_", owner) + ".json"


@dataclass
class ArchiveService:
    directory: Path = field(default_factory=lambda: Path(ARCHIVE_DIR))
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def __post_init__(self):
        self.directory = Path(self.directory)

    def _path_for(self, owner: str) -> Path:
        return self.directory / _filename_for(owner)

    def _read(self, owner: str) -> List[SavedScheme]:
        path = self._path_for(owner)
        if not path.exists():
            return []
        try:
            return _saved_list.validate_json(path.read_bytes())
        except ValidationError as e:
            logger.exception("Archive file %s is corrupt", path)
            raise ArchiveError(f"Archive for {owner} could not be read: {e}")

    def _write(self, owner: str, schemes: List[SavedScheme]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(owner)
        tmp = path.with_suffix(".json.tmp")
        payload = [s.model_dump(mode="json", by_alias=True) for s in schemes]
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    async def list_schemes(self, owner: str) -> List[SavedScheme]:
        return self._read(owner)

    async def get_scheme(self, owner: str, scheme_id: str) -> Optional[SavedScheme]:
        for scheme in self._read(owner):
            if scheme.id == scheme_id:
                return scheme
        return None

    async def save_scheme(self, owner: str, meta: SchemeMeta, rows: List[SowRow]) -> SavedScheme:
        async with self._lock:
            schemes = self._read(owner)
            for i, existing in enumerate(schemes):
                if existing.id == meta.id:
                    entry = SavedScheme(**meta.model_dump(), date_created=existing.date_created, rows=list(rows))
                    schemes[i] = entry
                    logger.info("Replaced archived scheme %s for %s", meta.id, owner)
                    break
            else:
                entry = SavedScheme(**meta.model_dump(), rows=list(rows))
                schemes.insert(0, entry)
                logger.info("Archived new scheme %s for %s", meta.id, owner)
            self._write(owner, schemes)
            return entry

    async def delete_scheme(self, owner: str, scheme_id: str) -> bool:
        async with self._lock:
            schemes = self._read(owner)
            remaining = [s for s in schemes if s.id != scheme_id]
            if len(remaining) == len(schemes):
                return False
            self._write(owner, remaining)
            logger.info("Deleted archived scheme %s for %s", scheme_id, owner)
            return True


# Module-level single instance (convenience)
archive_service = ArchiveService()


def get_archive_service() -> ArchiveService:
    return archive_service
