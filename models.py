"""
資料庫模型

- Game：遊戲狀態（欄位與 core.state_machine.PotatoGame 一一對應）
  version 是樂觀鎖：UPDATE 帶 WHERE version = :v，被別人先改過就丟 StaleDataError
- EventLog：狀態轉換產生的事件
- LedgerState：模擬宿主的區塊高度（邏輯時鐘）
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String

from core.state_machine import PotatoGame
from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    deadline_window = Column(Integer, nullable=False)
    allow_self_pass = Column(Boolean, nullable=False, default=True)
    current_holder = Column(String, nullable=True)
    last_transfer_time = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=False)
    starter = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_state(self) -> PotatoGame:
        """取出可供狀態機操作的物件（與 ORM row 分離）"""
        return PotatoGame(
            deadline_window=self.deadline_window,
            allow_self_pass=self.allow_self_pass,
            current_holder=self.current_holder,
            last_transfer_time=self.last_transfer_time,
            active=self.active,
            starter=self.starter,
        )

    def apply_state(self, state: PotatoGame) -> None:
        """把狀態機的結果寫回 row（deadline_window 不可變，不寫回）"""
        self.current_holder = state.current_holder
        self.last_transfer_time = state.last_transfer_time
        self.active = state.active
        self.starter = state.starter


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    block = Column(Integer, nullable=True)  # GAME_ENDED 不帶區塊
    actor = Column(String, nullable=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class LedgerState(Base):
    __tablename__ = "ledger_state"

    id = Column(Integer, primary_key=True)
    block_height = Column(Integer, nullable=False, default=0)
