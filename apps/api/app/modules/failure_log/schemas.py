from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class AutopsyCreateIn(BaseModel):
    shipped_on_time: bool
    scope_respected: bool
    external_feedback_received: bool
    one_clear_takeaway: bool
    repeat_artifact_class: bool


class AutopsyOut(BaseModel):
    id: str
    artifact_id: str
    created_at: str
    shipped_on_time: bool
    scope_respected: bool
    external_feedback_received: bool
    one_clear_takeaway: bool
    repeat_artifact_class: bool


class SkippedBlockIn(BaseModel):
    artifact_id: str
    scheduled_time: datetime
    reason: Optional[str] = None


class SkippedBlockOut(BaseModel):
    id: str
    artifact_id: str
    scheduled_time: str
    skipped_at: str
    reason: Optional[str] = None
