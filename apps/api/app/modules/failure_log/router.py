from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Query

from app.core.clock import to_iso
from app.modules.artifacts.schemas import StatusOut

from .schemas import AutopsyCreateIn, AutopsyOut, SkippedBlockIn, SkippedBlockOut
from .service import create_autopsy, get_autopsies, get_skipped_blocks, log_skipped_block

router = APIRouter(tags=["failure_log"])


@router.post("/artifacts/{artifact_id}/autopsy", response_model=AutopsyOut)
def api_create_autopsy(artifact_id: str, body: AutopsyCreateIn) -> AutopsyOut:
    return AutopsyOut(**create_autopsy(artifact_id, body.model_dump()))


@router.get("/autopsies", response_model=List[AutopsyOut])
def api_list_autopsies(artifact_id: Optional[str] = Query(None)) -> List[AutopsyOut]:
    return [AutopsyOut(**a) for a in get_autopsies(artifact_id)]


@router.post("/blocks/skip", response_model=StatusOut)
def api_log_skipped_block(body: SkippedBlockIn) -> StatusOut:
    log_skipped_block(body.artifact_id, to_iso(body.scheduled_time), body.reason)
    return StatusOut(message="Failure logged permanently.")


@router.get("/blocks/skipped", response_model=List[SkippedBlockOut])
def api_list_skipped_blocks(artifact_id: Optional[str] = Query(None)) -> List[SkippedBlockOut]:
    return [SkippedBlockOut(**s) for s in get_skipped_blocks(artifact_id)]
