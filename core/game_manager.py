"""
Game Manager：管理 Game 的完整生命週期

職責：
1. 建立 Game（固定 deadline_window）
2. 把每個操作包成一個 transaction：鎖定 -> 狀態機 -> 寫回 -> 記錄事件
3. 查詢 Game 資訊

原則：
- 單一職責：規則全在 PotatoGame，這裡只負責載入、寫回與事件落地
- 狀態機丟出異常時 @transactional 會 rollback，row 與 EventLog 都不會改變
- 寫回時 version 不符（被其他請求插隊）丟出 ConcurrentUpdate，同樣整筆 rollback
"""
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from typing import Any, Dict
import logging

from models import Game, EventLog
from core.clock import CallContext, Clock
from core.events import TransitionResult
from core.state_machine import PotatoGame
from core.locks import with_game_lock
from core.exceptions import ConcurrentUpdate, GameNotFound
from services.event_service import record_events
from database import transactional

logger = logging.getLogger(__name__)


class GameManager:
    """Game 生命週期管理器"""

    @staticmethod
    @transactional
    def create_game(
        db: Session,
        deadline_window: int,
        allow_self_pass: bool = True,
        created_at_block: int = 0
    ) -> Game:
        """
        建立新遊戲（初始狀態 Inactive）

        流程：
        1. 透過 PotatoGame.create 驗證 deadline_window
        2. 建立 Game row
        3. 記錄 GAME_CREATED 事件

        參數：
            db: SQLAlchemy Session
            deadline_window: 每次持有的期限（區塊數）
            allow_self_pass: 是否允許傳給自己
            created_at_block: 建立時的區塊高度（只寫進事件）

        返回：
            新建立的 Game

        異常：
            InvalidDeadline: deadline_window 不是正整數（不會建立任何 row）
        """
        state = PotatoGame.create(deadline_window, allow_self_pass=allow_self_pass)

        game = Game(
            deadline_window=state.deadline_window,
            allow_self_pass=state.allow_self_pass,
            current_holder=state.current_holder,
            last_transfer_time=state.last_transfer_time,
            active=state.active,
            starter=state.starter,
        )
        db.add(game)
        db.flush()  # 取得 game.id

        logger.info(
            f"Created game {game.id} with deadline window {deadline_window} "
            f"(allow_self_pass={allow_self_pass})"
        )

        db.add(EventLog(
            game_id=game.id,
            event_type="GAME_CREATED",
            block=created_at_block,
            data={"deadline_window": deadline_window, "allow_self_pass": allow_self_pass}
        ))

        return game

    @staticmethod
    def _apply(db: Session, game_id: str, operation) -> TransitionResult:
        """鎖定 Game，執行狀態機操作，成功才寫回並記錄事件"""
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)

        state = game.to_state()
        result = operation(state)

        game.apply_state(state)
        try:
            db.flush()
        except StaleDataError:
            logger.warning(f"Game {game_id} changed between read and write-back")
            raise ConcurrentUpdate(game_id)
        record_events(db, game_id, result.events)
        return result

    @staticmethod
    @transactional
    def start_game(db: Session, game_id: str, ctx: CallContext, to: str) -> TransitionResult:
        """
        開始遊戲（Inactive -> Active）

        異常：
            GameNotFound: Game 不存在
            AlreadyActive: 遊戲已經在進行中
        """
        return GameManager._apply(db, game_id, lambda state: state.start_game(ctx, to))

    @staticmethod
    @transactional
    def pass_potato(db: Session, game_id: str, ctx: CallContext, to: str) -> TransitionResult:
        """
        傳遞馬鈴薯

        異常：
            GameNotFound: Game 不存在
            NotActive / NotHolder / DeadlinePassed / InvalidTarget / SelfPassNotAllowed
            ConcurrentUpdate: 寫回前被其他請求修改
        """
        return GameManager._apply(db, game_id, lambda state: state.pass_potato(ctx, to))

    @staticmethod
    @transactional
    def check_deadline(db: Session, game_id: str, ctx: CallContext) -> TransitionResult:
        """
        檢查期限，到期就淘汰持有者

        異常：
            GameNotFound: Game 不存在
            NotActive: 遊戲未進行
        """
        return GameManager._apply(db, game_id, lambda state: state.check_deadline(ctx))

    @staticmethod
    @transactional
    def end_game(db: Session, game_id: str, ctx: CallContext) -> TransitionResult:
        """
        手動結束遊戲（只有開局者）

        異常：
            GameNotFound: Game 不存在
            NotStarter: 呼叫者不是開局者
        """
        return GameManager._apply(db, game_id, lambda state: state.end_game(ctx))

    @staticmethod
    def get_game_by_id(db: Session, game_id: str) -> Game:
        """
        透過 UUID 取得 Game

        異常：
            GameNotFound: Game 不存在
        """
        game = db.query(Game).filter(Game.id == game_id).first()
        if not game:
            raise GameNotFound(game_id)
        return game

    @staticmethod
    def get_state(db: Session, game_id: str) -> PotatoGame:
        """取得唯讀用的狀態物件（查詢不需要鎖）"""
        return GameManager.get_game_by_id(db, game_id).to_state()

    @staticmethod
    def describe(db: Session, game_id: str, clock: Clock) -> Dict[str, Any]:
        """
        一次取得所有查詢欄位

        返回：
            dict，包含 holder / active / deadline_window / remaining / starter 等
        """
        state = GameManager.get_state(db, game_id)
        return {
            "game_id": game_id,
            "current_holder": state.get_holder(),
            "active": state.is_active(),
            "deadline_window": state.get_deadline_window(),
            "remaining": state.get_remaining(clock),
            "starter": state.get_starter(),
            "last_transfer_time": state.get_last_transfer_time(),
            "allow_self_pass": state.allow_self_pass,
        }
