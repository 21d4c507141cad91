from __future__ import annotations

from typing import List

from fastapi import APIRouter

from .schemas import WeekMetricsOut
from .service import get_week_metrics, list_week_metrics

router = APIRouter(prefix="/reliability", tags=["reliability"])


@router.get("/weeks", response_model=List[WeekMetricsOut])
def api_list_weeks() -> List[WeekMetricsOut]:
    return [WeekMetricsOut(**m) for m in list_week_metrics()]


@router.get("/weeks/current", response_model=WeekMetricsOut)
def api_current_week() -> WeekMetricsOut:
    return WeekMetricsOut(**get_week_metrics())
