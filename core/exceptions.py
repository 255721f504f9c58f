"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

兩個獨立的繼承樹：
- HotPotatoException：遊戲規則層面的錯誤（呼叫者可預期、可恢復）
- HostCollaboratorError：宿主環境的錯誤（時鐘、身分），不可與遊戲錯誤混用
"""


class HotPotatoException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ Game 相關異常 ============

class GameNotFound(HotPotatoException):
    """遊戲不存在"""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class InvalidDeadline(HotPotatoException):
    """期限區間必須是 1 到 MAX_BLOCK 之間的整數"""
    def __init__(self, deadline_window):
        self.deadline_window = deadline_window
        super().__init__(
            f"Deadline window must be a positive 64-bit integer, got {deadline_window!r}"
        )


# ============ 狀態轉換異常 ============

class AlreadyActive(HotPotatoException):
    """遊戲已經在進行中"""
    pass


class NotActive(HotPotatoException):
    """遊戲尚未開始（或已經結束）"""
    pass


# ============ 權限相關異常 ============

class NotHolder(HotPotatoException):
    """只有目前持有者可以傳遞馬鈴薯"""
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"{caller} is not the current holder")


class NotStarter(HotPotatoException):
    """只有開局者可以手動結束遊戲"""
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"{caller} is not the game starter")


# ============ 期限相關異常 ============

class DeadlinePassed(HotPotatoException):
    """持有時間已達期限，不能再傳遞（應改呼叫 check_deadline）"""
    def __init__(self, elapsed, deadline_window):
        self.elapsed = elapsed
        self.deadline_window = deadline_window
        super().__init__(
            f"Deadline passed: held for {elapsed} blocks, window is {deadline_window}"
        )


class SelfPassNotAllowed(HotPotatoException):
    """此遊戲不允許傳給自己（allow_self_pass=False）"""
    pass


class InvalidTarget(HotPotatoException):
    """接收者身分是空的"""
    def __init__(self, target):
        self.target = target
        super().__init__(f"Target identity must not be blank, got {target!r}")


# ============ 並發相關異常 ============

class ConcurrentUpdate(HotPotatoException):
    """讀取後、寫回前，遊戲已被其他請求修改（version 不符）"""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} was modified by another request, retry")


# ============ 宿主環境異常 ============

class HostCollaboratorError(Exception):
    """宿主環境（時鐘、身分解析）故障的基類，與遊戲異常分開處理"""
    pass


class ClockUnavailable(HostCollaboratorError):
    """無法讀取宿主時鐘"""
    pass


class ClockRegression(HostCollaboratorError):
    """宿主時鐘倒退（小於上次傳遞的時間）"""
    def __init__(self, now, last_transfer_time):
        self.now = now
        self.last_transfer_time = last_transfer_time
        super().__init__(
            f"Clock went backwards: now={now}, last transfer at {last_transfer_time}"
        )


class IdentityUnresolvable(HostCollaboratorError):
    """無法解析呼叫者身分"""
    pass
