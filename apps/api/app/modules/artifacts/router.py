from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter

from .schemas import ArtifactCreateIn, ArtifactOut, ContentUpdateIn, ShippingProofIn, StatusOut
from .service import (
    abandon_artifact,
    create_artifact,
    get_active_artifact,
    get_artifact,
    list_artifacts,
    mark_done_criteria_met,
    ship_artifact,
    submit_shipping_proof,
    update_content,
)

router = APIRouter(prefix="/artifacts", tags=["artifacts"])


@router.get("/active", response_model=Optional[ArtifactOut])
def api_get_active() -> Optional[ArtifactOut]:
    a = get_active_artifact()
    return ArtifactOut(**a) if a is not None else None


@router.get("", response_model=List[ArtifactOut])
def api_list_artifacts() -> List[ArtifactOut]:
    return [ArtifactOut(**a) for a in list_artifacts()]


@router.post("", response_model=ArtifactOut)
def api_create_artifact(body: ArtifactCreateIn) -> ArtifactOut:
    a = create_artifact(
        name=body.name,
        type=body.type,
        ship_days=body.ship_days,
        done_criteria=body.done_criteria,
        external_recipient=body.external_recipient,
        max_word_count=body.max_word_count,
    )
    return ArtifactOut(**a)


@router.get("/{artifact_id}", response_model=ArtifactOut)
def api_get_artifact(artifact_id: str) -> ArtifactOut:
    return ArtifactOut(**get_artifact(artifact_id))


@router.put("/{artifact_id}/content", response_model=StatusOut)
def api_update_content(artifact_id: str, body: ContentUpdateIn) -> StatusOut:
    update_content(artifact_id, body.content)
    return StatusOut()


@router.post("/{artifact_id}/done", response_model=StatusOut)
def api_mark_done(artifact_id: str) -> StatusOut:
    mark_done_criteria_met(artifact_id)
    return StatusOut(message="Edit lock activated. Ship or archive only.")


@router.post("/{artifact_id}/proof", response_model=StatusOut)
def api_submit_proof(artifact_id: str, body: ShippingProofIn) -> StatusOut:
    submit_shipping_proof(artifact_id, body.proof_url)
    return StatusOut(message="Shipping proof submitted. You may now ship.")


@router.post("/{artifact_id}/ship", response_model=ArtifactOut)
def api_ship(artifact_id: str) -> ArtifactOut:
    return ArtifactOut(**ship_artifact(artifact_id))


@router.post("/{artifact_id}/abandon", response_model=ArtifactOut)
def api_abandon(artifact_id: str) -> ArtifactOut:
    return ArtifactOut(**abandon_artifact(artifact_id))
