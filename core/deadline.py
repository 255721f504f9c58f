"""
期限計算：持有時間與剩餘時間

純計算邏輯，不涉及狀態轉換
"""
from core.exceptions import ClockRegression

# 區塊高度與期限都存進 64-bit INTEGER 欄位
MAX_BLOCK = 2 ** 63 - 1


def elapsed_blocks(now: int, last_transfer_time: int) -> int:
    """
    計算自上次傳遞以來經過的時間

    參數：
        now: 目前的邏輯時間
        last_transfer_time: 上次開局或傳遞的時間

    返回：
        經過的區塊數

    異常：
        ClockRegression: 時鐘倒退（now < last_transfer_time）
    """
    if now < last_transfer_time:
        raise ClockRegression(now, last_transfer_time)
    return now - last_transfer_time


def is_expired(now: int, last_transfer_time: int, deadline_window: int) -> bool:
    """
    持有時間是否已達期限

    規則：elapsed >= deadline_window 即視為到期。
    pass_potato 拒絕與 check_deadline 淘汰都用同一個判斷，兩者不會出現空窗。

    範例：
        is_expired(15, 5, 10) -> True
        is_expired(14, 5, 10) -> False
    """
    return elapsed_blocks(now, last_transfer_time) >= deadline_window


def remaining_blocks(now: int, last_transfer_time: int, deadline_window: int) -> int:
    """
    距離期限還剩多少時間，最小為 0

    查詢用，不丟出 ClockRegression：時鐘若落後上次傳遞時間，視為尚未經過任何時間。

    範例：
        remaining_blocks(12, 5, 10) -> 3
        remaining_blocks(20, 5, 10) -> 0
    """
    elapsed = max(0, now - last_transfer_time)
    return max(0, deadline_window - elapsed)
