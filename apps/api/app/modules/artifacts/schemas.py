from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field

ArtifactStatusLit = Literal["active", "locked", "shipped", "archived"]


class ArtifactCreateIn(BaseModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    # upper bounds are enforcement rules (checked by the service, not here)
    ship_days: int = Field(ge=0)
    done_criteria: List[str] = Field(default_factory=list)
    external_recipient: str = Field(min_length=1)
    max_word_count: int = Field(gt=0)


class ContentUpdateIn(BaseModel):
    content: str


class ShippingProofIn(BaseModel):
    proof_url: str = Field(min_length=1)


class ArtifactOut(BaseModel):
    id: str
    name: str
    type: str
    content: str
    ship_date: str
    created_at: str
    status: ArtifactStatusLit
    shipped_at: Optional[str] = None
    shipped_on_time: Optional[bool] = None
    version: int
    done_criteria: List[str] = Field(default_factory=list)
    external_recipient: str
    max_word_count: int
    current_word_count: int
    done_criteria_met: bool
    edit_locked: bool
    shipping_proof_url: Optional[str] = None
    shipping_proof_submitted: bool


class StatusOut(BaseModel):
    status: str = "ok"
    message: Optional[str] = None
