"""
並發控制工具

提供 Database-level 的鎖定機制，讓同一局遊戲的操作一次只執行一個

兩層保護：
- PostgreSQL：SELECT ... FOR UPDATE 悲觀鎖（Pessimistic Locking），第二個請求會等第一個 commit
- 所有資料庫：Game.version 樂觀鎖。SQLite 不支援 FOR UPDATE（SQLAlchemy 會略過），
  pysqlite 也要到第一次寫入才開始 transaction，所以「讀取 -> 驗證 -> 寫回」之間可能被插隊；
  寫回時 UPDATE ... WHERE version = :v 影響 0 列就代表被插隊，由 GameManager 轉成 ConcurrentUpdate
"""
from sqlalchemy.orm import Session, Query

from models import Game, LedgerState


def with_game_lock(game_id: str, db: Session) -> Query:
    """
    鎖定一局 Game（行級鎖）

    使用場景：
    - start / pass / check_deadline / end 任何會修改遊戲狀態的操作
    - 需要確保「讀取狀態 -> 驗證 -> 寫回」之間沒有其他請求插入

    範例：
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        state = game.to_state()
        state.pass_potato(ctx, to)
        game.apply_state(state)

    參數：
        game_id: Game 的 UUID 字串
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - populate_existing：Session 裡已經載入過的 Game 也會用資料庫最新值覆蓋，
          避免拿舊的 identity map 狀態做驗證
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Game).filter(
        Game.id == game_id
    ).populate_existing().with_for_update(nowait=False)


def with_ledger_lock(db: Session) -> Query:
    """
    鎖定區塊高度（推進區塊時使用，避免兩個請求同時 +n）

    返回：
        Query object（呼叫 .first() 取得 LedgerState）
    """
    return db.query(LedgerState).filter(
        LedgerState.id == 1
    ).with_for_update(nowait=False)
