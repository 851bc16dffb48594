import json
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import StreamingResponse

from eduplan.core.security import get_current_user
from eduplan.models.sow_model import (
    CoverageStats,
    DateMappingRequest,
    SavedScheme,
    SchemeDraft,
    SchemeMetaUpdate,
    SowGenerationRequest,
    SowGenerationResult,
    SowRow,
    SowRowUpdate,
)
from eduplan.services.archive_service import ArchiveError, ArchiveService, get_archive_service
from eduplan.services.ai_sow_generator import (
    ChunkGenerator,
    SOWConfigurationError,
    generate_scheme_of_work,
    generate_sow_chunk,
    iter_scheme_generation,
    validate_request,
)
from eduplan.services.coverage import coverage_stats
from eduplan.services.workspace_service import WorkspaceService, get_workspace_service, redate_rows
from eduplan.utils.ai_client import AIClientError

router = APIRouter()

# -------------------------
# Logging Configuration
# -------------------------
logger = logging.getLogger("sow_api")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def get_chunk_generator() -> ChunkGenerator:
    return generate_sow_chunk


# -------------------------
# Generation
# -------------------------
@router.post("/generate", response_model=SowGenerationResult, summary="Generate a term's scheme of work")
async def create_scheme_of_work(
    req: SowGenerationRequest,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
    generator: ChunkGenerator = Depends(get_chunk_generator),
):
    """
    Generate the whole term chunk by chunk and make it the teacher's draft.
    The draft is only replaced when every chunk succeeded.
    """
    slots = await workspace.get_slots(username)
    try:
        result = await generate_scheme_of_work(req, slots, generator=generator)
    except SOWConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AIClientError as e:
        logger.error(f"Scheme of work generation failed for {username}: {e}")
        raise HTTPException(status_code=502, detail=f"Scheme of work generation failed: {e}")
    except Exception as e:
        logger.exception("Failed to generate scheme of work")
        raise HTTPException(status_code=500, detail=f"Scheme of work generation failed: {str(e)}")

    await workspace.set_draft(username, result.meta, result.rows)
    logger.info(
        f"Scheme of work generated for {result.meta.subject} ({result.meta.grade}) by {username}: {len(result.rows)} rows"
    )
    return result


@router.post("/generate/stream", summary="Generate a scheme of work, streaming progress as NDJSON")
async def stream_scheme_of_work(
    req: SowGenerationRequest,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
    generator: ChunkGenerator = Depends(get_chunk_generator),
):
    """
    One JSON line per finished chunk (isFinal false), then the final scheme
    (isFinal true). A failure ends the stream with an {"error": ...} line.
    """
    try:
        validate_request(req)
    except SOWConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    slots = await workspace.get_slots(username)
    meta = req.to_meta()

    async def event_stream():
        try:
            async for progress in iter_scheme_generation(req, slots, generator=generator, meta=meta):
                if progress.is_final:
                    await workspace.set_draft(username, meta, progress.rows)
                yield progress.model_dump_json(by_alias=True) + "\n"
        except Exception as e:
            logger.exception("Streaming scheme of work generation failed")
            yield json.dumps({"error": str(e)}) + "\n"

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")


# -------------------------
# Stateless helpers
# -------------------------
@router.post("/dates", response_model=List[SowRow], summary="Re-derive lesson dates")
def map_dates(req: DateMappingRequest, username: str = Depends(get_current_user)):
    return redate_rows(req.rows, req.meta, req.slots)


@router.post("/coverage", response_model=CoverageStats)
def compute_coverage(rows: List[SowRow], username: str = Depends(get_current_user)):
    return coverage_stats(rows)


# -------------------------
# Draft
# -------------------------
@router.get("/draft", response_model=SchemeDraft)
async def read_draft(
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    return await workspace.get_draft(username)


@router.patch("/draft/meta", response_model=SchemeDraft)
async def update_draft_meta(
    changes: SchemeMetaUpdate,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    try:
        return await workspace.update_meta(username, changes.model_dump(exclude_unset=True))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/draft/rows/{index}", response_model=SowRow)
async def edit_draft_row(
    index: int,
    changes: SowRowUpdate,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    try:
        return await workspace.edit_row(username, index, changes.model_dump(exclude_unset=True))
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/draft/rows/{index}/toggle", response_model=SowRow)
async def toggle_draft_row(
    index: int,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    try:
        return await workspace.toggle_completion(username, index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/draft/coverage", response_model=CoverageStats)
async def draft_coverage(
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
):
    draft = await workspace.get_draft(username)
    return coverage_stats(draft.rows)


# -------------------------
# Archive
# -------------------------
@router.get("/archive", response_model=List[SavedScheme])
async def list_archive(
    username: str = Depends(get_current_user),
    archive: ArchiveService = Depends(get_archive_service),
):
    try:
        return await archive.list_schemes(username)
    except ArchiveError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/archive", response_model=SavedScheme, status_code=status.HTTP_201_CREATED)
async def save_draft_to_archive(
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
    archive: ArchiveService = Depends(get_archive_service),
):
    draft = await workspace.get_draft(username)
    if draft.meta is None or not draft.rows:
        raise HTTPException(status_code=400, detail="Generate a scheme of work before saving.")
    try:
        return await archive.save_scheme(username, draft.meta, draft.rows)
    except ArchiveError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/archive/{scheme_id}", response_model=SavedScheme)
async def read_archived_scheme(
    scheme_id: str,
    username: str = Depends(get_current_user),
    archive: ArchiveService = Depends(get_archive_service),
):
    scheme = await archive.get_scheme(username, scheme_id)
    if scheme is None:
        raise HTTPException(status_code=404, detail=f"Scheme {scheme_id} not found")
    return scheme


@router.post("/archive/{scheme_id}/load", response_model=SchemeDraft)
async def load_archived_scheme(
    scheme_id: str,
    username: str = Depends(get_current_user),
    workspace: WorkspaceService = Depends(get_workspace_service),
    archive: ArchiveService = Depends(get_archive_service),
):
    scheme = await archive.get_scheme(username, scheme_id)
    if scheme is None:
        raise HTTPException(status_code=404, detail=f"Scheme {scheme_id} not found")
    return await workspace.set_draft(username, scheme.meta, scheme.rows)


@router.delete("/archive/{scheme_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_archived_scheme(
    scheme_id: str,
    username: str = Depends(get_current_user),
    archive: ArchiveService = Depends(get_archive_service),
):
    if not await archive.delete_scheme(username, scheme_id):
        raise HTTPException(status_code=404, detail=f"Scheme {scheme_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
