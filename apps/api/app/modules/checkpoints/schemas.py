from __future__ import annotations

from typing import Optional
from pydantic import BaseModel


class CheckpointOut(BaseModel):
    id: str
    artifact_id: str
    checkpoint_date: str
    required_completion_pct: float
    actual_completion_pct: Optional[float] = None
    passed: bool
    evaluated_at: Optional[str] = None
