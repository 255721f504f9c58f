"""
API request / response schemas
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.clock import normalize_identity
from core.deadline import MAX_BLOCK


class GameCreate(BaseModel):
    # 未提供時使用 settings.default_deadline_window / settings.allow_self_pass
    # 範圍檢查交給 PotatoGame.create（回傳 InvalidDeadline）
    deadline_window: Optional[int] = None
    allow_self_pass: Optional[bool] = None


class TransferRequest(BaseModel):
    to: str = Field(..., min_length=1)

    @field_validator("to")
    @classmethod
    def normalize_target(cls, value: str) -> str:
        # 與 X-Caller-Id 同一套正規化
        target = normalize_identity(value)
        if target is None:
            raise ValueError("target identity must not be blank")
        return target


class GameResponse(BaseModel):
    game_id: str
    current_holder: Optional[str]
    active: bool
    deadline_window: int
    remaining: int
    starter: Optional[str]
    last_transfer_time: int
    allow_self_pass: bool


class EventResponse(BaseModel):
    event_type: str
    block: Optional[int]
    actor: Optional[str]
    data: Dict[str, Any]


class TransitionResponse(BaseModel):
    status: str = "ok"
    events: List[EventResponse] = []


class DeadlineCheckResponse(BaseModel):
    eliminated: bool
    eliminated_holder: Optional[str] = None
    events: List[EventResponse] = []


class HolderResponse(BaseModel):
    holder: Optional[str]


class ActiveResponse(BaseModel):
    active: bool


class DeadlineWindowResponse(BaseModel):
    deadline_window: int


class RemainingResponse(BaseModel):
    remaining: int


class StarterResponse(BaseModel):
    starter: Optional[str]


class BlockResponse(BaseModel):
    block_height: int


class AdvanceRequest(BaseModel):
    blocks: int = Field(1, ge=0, le=MAX_BLOCK)
