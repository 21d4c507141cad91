from __future__ import annotations

from pydantic import BaseModel


class WeekMetricsOut(BaseModel):
    week_start: str
    blocks_scheduled: int
    blocks_completed: int
    blocks_with_diff: int
    artifacts_shipped_on_time: int
    artifacts_failed: int
    # weighted completion / diff / on-time rate, 0..1
    reliability_score: float
