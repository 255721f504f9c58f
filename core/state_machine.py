"""
狀態機：集中管理馬鈴薯遊戲的所有狀態轉換

狀態圖：
    Inactive --start_game--> Active
    Active --pass_potato（期限內）--> Active
    Active --check_deadline（已到期）--> Inactive（持有者淘汰）
    Active --end_game（開局者）--> Inactive
    Inactive --end_game（開局者）--> Inactive（no-op）

原則：
- 先驗證所有前置條件，全部通過才修改欄位；失敗的操作不留下任何變更
- 每個修改點都同時維護 current_holder 與 active，兩者永遠一致
- 時鐘每次操作最多讀一次（end_game 不讀）
- 接收者身分與呼叫者身分用同一套正規化（去前後空白），才能互相比對
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional
import logging

from core.clock import CallContext, Clock, normalize_identity
from core.events import EventType, GameEvent, TransitionResult
from core.exceptions import (
    AlreadyActive,
    ClockRegression,
    DeadlinePassed,
    InvalidDeadline,
    InvalidTarget,
    NotActive,
    NotHolder,
    NotStarter,
    SelfPassNotAllowed,
)
from core.deadline import MAX_BLOCK, is_expired, remaining_blocks

logger = logging.getLogger(__name__)


@dataclass
class PotatoGame:
    """單一遊戲的權威狀態"""
    deadline_window: int
    allow_self_pass: bool = True
    current_holder: Optional[str] = None
    last_transfer_time: int = 0
    active: bool = False
    starter: Optional[str] = None

    @classmethod
    def create(cls, deadline_window: int, allow_self_pass: bool = True) -> "PotatoGame":
        """
        建立新遊戲（初始狀態 Inactive）

        參數：
            deadline_window: 每次持有的期限（區塊數），1 到 MAX_BLOCK
            allow_self_pass: 是否允許持有者把馬鈴薯傳給自己

        異常：
            InvalidDeadline: deadline_window 不是範圍內的整數
        """
        if (
            isinstance(deadline_window, bool)
            or not isinstance(deadline_window, int)
            or deadline_window <= 0
            or deadline_window > MAX_BLOCK
        ):
            raise InvalidDeadline(deadline_window)
        return cls(deadline_window=deadline_window, allow_self_pass=allow_self_pass)

    # ============ 狀態轉換 ============

    def start_game(self, ctx: CallContext, to: str) -> TransitionResult:
        """
        開局（Inactive -> Active）

        任何人都可以開局；開局者只用來授權之後的 end_game。

        異常：
            AlreadyActive: 遊戲已經在進行中
            InvalidTarget: 接收者身分是空的
        """
        caller = ctx.caller()
        if self.active:
            raise AlreadyActive("Game is already active")
        to = self._target(to)
        now = ctx.now()
        if now < self.last_transfer_time:
            raise ClockRegression(now, self.last_transfer_time)

        self.current_holder = to
        self.starter = caller
        self.active = True
        self.last_transfer_time = now

        logger.info(f"Game started by {caller}, potato goes to {to} at block {now}")
        return TransitionResult(events=[
            GameEvent(EventType.GAME_STARTED, now, actor=caller, data={"holder": to}),
        ])

    def pass_potato(self, ctx: CallContext, to: str) -> TransitionResult:
        """
        傳遞馬鈴薯（Active -> Active）

        檢查順序：
        1. 遊戲進行中（NotActive）
        2. 呼叫者是目前持有者（NotHolder）
        3. 尚未到期（DeadlinePassed）：到期的持有者只能等著被 check_deadline 淘汰
        4. 接收者身分不是空的（InvalidTarget）
        5. 傳給自己是否允許（SelfPassNotAllowed）
        """
        caller = ctx.caller()
        if not self.active:
            raise NotActive("Game is not active")
        if caller != self.current_holder:
            raise NotHolder(caller)

        now = ctx.now()
        if is_expired(now, self.last_transfer_time, self.deadline_window):
            raise DeadlinePassed(now - self.last_transfer_time, self.deadline_window)
        to = self._target(to)
        if to == caller and not self.allow_self_pass:
            raise SelfPassNotAllowed(f"{caller} cannot pass the potato to themselves")

        self.current_holder = to
        self.last_transfer_time = now

        logger.info(f"Potato passed from {caller} to {to} at block {now}")
        return TransitionResult(events=[
            GameEvent(EventType.POTATO_PASSED, now, actor=caller, data={"from": caller, "to": to}),
        ])

    def check_deadline(self, ctx: CallContext) -> TransitionResult:
        """
        檢查期限（任何人都可以呼叫）

        - 已到期：淘汰持有者，Active -> Inactive，保留 starter 供查詢
        - 未到期：no-op，eliminated=False

        異常：
            NotActive: 遊戲未進行（淘汰後再呼叫也一樣）
        """
        if not self.active:
            raise NotActive("Game is not active")

        now = ctx.now()
        if not is_expired(now, self.last_transfer_time, self.deadline_window):
            return TransitionResult(eliminated=False)

        loser = self.current_holder
        elapsed = now - self.last_transfer_time
        self.active = False
        self.current_holder = None

        logger.info(f"Holder {loser} eliminated at block {now} after holding for {elapsed} blocks")
        return TransitionResult(
            events=[
                GameEvent(
                    EventType.HOLDER_ELIMINATED,
                    now,
                    actor=loser,
                    data={"eliminated": loser, "elapsed": elapsed},
                ),
            ],
            eliminated=True,
            eliminated_holder=loser,
        )

    def end_game(self, ctx: CallContext) -> TransitionResult:
        """
        手動結束遊戲（只有開局者可以）

        不要求遊戲進行中：對已結束的遊戲呼叫是安全的 no-op。
        starter 與 deadline_window 保留，下一次 start_game 才會覆寫 starter。
        不讀時鐘：時鐘故障時開局者仍然可以重置。GAME_ENDED 事件的 block 為 None。

        異常：
            NotStarter: 呼叫者不是開局者（從未開局時也一樣）
        """
        caller = ctx.caller()
        if self.starter is None or caller != self.starter:
            raise NotStarter(caller)

        was_active = self.active
        last_holder = self.current_holder
        self.active = False
        self.current_holder = None

        logger.info(f"Game ended by starter {caller} (was_active={was_active})")
        return TransitionResult(events=[
            GameEvent(
                EventType.GAME_ENDED,
                None,
                actor=caller,
                data={"was_active": was_active, "last_holder": last_holder},
            ),
        ])

    @staticmethod
    def _target(to: Optional[str]) -> str:
        target = normalize_identity(to)
        if target is None:
            raise InvalidTarget(to)
        return target

    # ============ 查詢 ============

    def get_holder(self) -> Optional[str]:
        return self.current_holder

    def is_active(self) -> bool:
        return self.active

    def get_deadline_window(self) -> int:
        return self.deadline_window

    def get_starter(self) -> Optional[str]:
        return self.starter

    def get_last_transfer_time(self) -> int:
        return self.last_transfer_time

    def get_remaining(self, clock: Clock) -> int:
        """剩餘區塊數；遊戲未進行時為 0"""
        if not self.active:
            return 0
        return remaining_blocks(clock.now(), self.last_transfer_time, self.deadline_window)

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)
