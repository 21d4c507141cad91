from __future__ import annotations

from typing import List

from fastapi import APIRouter

from .schemas import CheckpointOut
from .service import evaluate_checkpoint, list_checkpoints

router = APIRouter(tags=["checkpoints"])


@router.get("/artifacts/{artifact_id}/checkpoints", response_model=List[CheckpointOut])
def api_list_checkpoints(artifact_id: str) -> List[CheckpointOut]:
    return [CheckpointOut(**c) for c in list_checkpoints(artifact_id)]


@router.post("/checkpoints/{checkpoint_id}/evaluate", response_model=CheckpointOut)
def api_evaluate_checkpoint(checkpoint_id: str) -> CheckpointOut:
    return CheckpointOut(**evaluate_checkpoint(checkpoint_id))
