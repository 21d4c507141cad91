from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter

from .schemas import BlockEndIn, BlockOut, BlockStartIn, BlockStatsOut, BlockSweepIn, BlockSweepOut
from .service import (
    auto_expire_sweep,
    end_block,
    get_block_history,
    get_block_stats,
    get_running_block,
    start_block,
)

router = APIRouter(prefix="/blocks", tags=["blocks"])


@router.get("/running", response_model=Optional[BlockOut])
def api_running_block() -> Optional[BlockOut]:
    b = get_running_block()
    return BlockOut(**b) if b is not None else None


@router.post("/start", response_model=BlockOut)
def api_start_block(body: BlockStartIn) -> BlockOut:
    return BlockOut(**start_block(body.artifact_id, body.expected_diff_type, body.content_before))


@router.post("/sweep", response_model=BlockSweepOut)
def api_sweep(body: Optional[BlockSweepIn] = None) -> BlockSweepOut:
    ended = auto_expire_sweep(body.current_content if body is not None else None)
    return BlockSweepOut(ended=[BlockOut(**b) for b in ended])


@router.post("/{block_id}/end", response_model=BlockOut)
def api_end_block(block_id: str, body: BlockEndIn) -> BlockOut:
    return BlockOut(**end_block(block_id, body.content_after))


@router.get("/history/{artifact_id}", response_model=List[BlockOut])
def api_block_history(artifact_id: str) -> List[BlockOut]:
    return [BlockOut(**b) for b in get_block_history(artifact_id)]


@router.get("/stats/{artifact_id}", response_model=BlockStatsOut)
def api_block_stats(artifact_id: str) -> BlockStatsOut:
    return BlockStatsOut(**get_block_stats(artifact_id))
