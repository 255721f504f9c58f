"""
遊戲事件：狀態轉換成功後回傳給宿主的待送通知

核心只負責產生事件，不負責送出；要寫入 EventLog、推播或丟棄由宿主決定。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class EventType(str, Enum):
    GAME_STARTED = "GAME_STARTED"
    POTATO_PASSED = "POTATO_PASSED"
    HOLDER_ELIMINATED = "HOLDER_ELIMINATED"
    GAME_ENDED = "GAME_ENDED"


@dataclass(frozen=True)
class GameEvent:
    event_type: EventType
    block: Optional[int]
    actor: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "block": self.block,
            "actor": self.actor,
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class TransitionResult:
    """
    狀態轉換的結果

    - events: 待送出的通知（失敗的操作不會產生結果，所以不會有事件）
    - eliminated: 只有 check_deadline 會設定；True 表示持有者被淘汰
    - eliminated_holder: 被淘汰的身分
    """
    events: List[GameEvent] = field(default_factory=list)
    eliminated: bool = False
    eliminated_holder: Optional[str] = None
