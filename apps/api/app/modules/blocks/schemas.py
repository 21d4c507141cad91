from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel

DiffType = Literal["paragraph", "section", "slide", "figure", "commit"]
BlockStatus = Literal["running", "completed", "failed"]


class BlockStartIn(BaseModel):
    artifact_id: str
    expected_diff_type: DiffType
    content_before: str = ""


class BlockEndIn(BaseModel):
    content_after: str


class BlockSweepIn(BaseModel):
    # None -> each block's artifact content is used
    current_content: Optional[str] = None


class BlockOut(BaseModel):
    id: str
    artifact_id: str
    expected_diff_type: DiffType
    start_time: str
    end_time: Optional[str] = None
    content_before: str
    content_after: Optional[str] = None
    has_diff: bool
    status: BlockStatus


class BlockSweepOut(BaseModel):
    ended: List[BlockOut]


class BlockStatsOut(BaseModel):
    total: int
    completed: int
    with_diff: int
    failed: int
