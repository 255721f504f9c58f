"""
宿主介面：邏輯時鐘與呼叫者身分

核心不持有任何全域狀態，每次操作都透過 CallContext 取得：
- Clock：宿主提供的單調遞增計數器（例如區塊高度）
- CallerIdentity：宿主驗證過的呼叫者身分

測試時可以直接替換成 ManualClock / FixedCaller。
"""
from dataclasses import dataclass
from typing import Optional, Protocol
import time

from core.exceptions import ClockUnavailable, IdentityUnresolvable


class Clock(Protocol):
    def now(self) -> int:
        """回傳目前的邏輯時間（非負整數）"""
        ...


class CallerIdentity(Protocol):
    def resolve(self) -> str:
        """回傳呼叫者身分，無法解析時丟出 IdentityUnresolvable"""
        ...


class ManualClock:
    """手動推進的時鐘（測試用，也可作為模擬宿主）"""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f"Clock cannot start below zero, got {start}")
        self._value = start

    def now(self) -> int:
        return self._value

    def set(self, value: int) -> None:
        self._value = value

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError(f"Cannot advance by a negative amount: {blocks}")
        self._value += blocks
        return self._value


class WallClock:
    """以 Unix 秒數作為邏輯時間"""

    def now(self) -> int:
        try:
            return int(time.time())
        except OSError as e:
            raise ClockUnavailable(f"System clock unavailable: {e}") from e


def normalize_identity(identity: Optional[str]) -> Optional[str]:
    """去掉前後空白；空字串視為沒有身分（回傳 None）"""
    if identity is None:
        return None
    identity = identity.strip()
    return identity or None


class FixedCaller:
    """固定身分（例如從 request header 解析而來）"""

    def __init__(self, identity: Optional[str]):
        self._identity = normalize_identity(identity)

    def resolve(self) -> str:
        if self._identity is None:
            raise IdentityUnresolvable("Caller identity is missing")
        return self._identity


@dataclass(frozen=True)
class CallContext:
    """單次操作的執行環境：誰在呼叫、現在幾點"""
    identity: CallerIdentity
    clock: Optional[Clock] = None

    def caller(self) -> str:
        return self.identity.resolve()

    def now(self) -> int:
        if self.clock is None:
            raise ClockUnavailable("No clock attached to this call")
        value = self.clock.now()
        if not isinstance(value, int) or value < 0:
            raise ClockUnavailable(f"Clock returned an invalid value: {value!r}")
        return value
