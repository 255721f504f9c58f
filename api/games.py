"""
Game API Endpoints

職責：
1. 建立遊戲、開局、傳遞、檢查期限、結束
2. 查詢遊戲狀態與事件紀錄

呼叫者身分由 X-Caller-Id header 提供；時鐘由 settings.clock_source 決定
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db, get_settings
from schemas import (
    GameCreate,
    GameResponse,
    TransferRequest,
    TransitionResponse,
    DeadlineCheckResponse,
    EventResponse,
    HolderResponse,
    ActiveResponse,
    DeadlineWindowResponse,
    RemainingResponse,
    StarterResponse,
)
from core.clock import CallContext, FixedCaller
from core.events import TransitionResult
from core.game_manager import GameManager
from core.exceptions import (
    HotPotatoException,
    HostCollaboratorError,
    GameNotFound,
    InvalidDeadline,
    AlreadyActive,
    NotActive,
    NotHolder,
    NotStarter,
    DeadlinePassed,
    SelfPassNotAllowed,
    InvalidTarget,
    ConcurrentUpdate,
    IdentityUnresolvable,
)
from services.event_service import get_game_events
from services.ledger_service import get_clock

router = APIRouter(prefix="/api/games", tags=["games"])
logger = logging.getLogger(__name__)

# 由上往下比對，第一個符合的類別決定 status code
ERROR_STATUS = [
    (GameNotFound, 404),
    (InvalidDeadline, 400),
    (SelfPassNotAllowed, 400),
    (InvalidTarget, 400),
    (ConcurrentUpdate, 409),
    (AlreadyActive, 409),
    (NotActive, 409),
    (DeadlinePassed, 409),
    (NotHolder, 403),
    (NotStarter, 403),
    (IdentityUnresolvable, 401),
    (HostCollaboratorError, 503),
    (HotPotatoException, 400),
]


def to_http_exception(e: Exception) -> HTTPException:
    """把遊戲異常 / 宿主異常轉成 HTTPException"""
    for error_class, status_code in ERROR_STATUS:
        if isinstance(e, error_class):
            return HTTPException(
                status_code=status_code,
                detail={"code": type(e).__name__, "message": str(e)}
            )
    return HTTPException(status_code=500, detail="Internal error")


def _events(result: TransitionResult):
    return [EventResponse(**event.to_dict()) for event in result.events]


def _context(x_caller_id: Optional[str], db: Session) -> CallContext:
    return CallContext(identity=FixedCaller(x_caller_id), clock=get_clock(db))


@router.post("", response_model=GameResponse)
def create_game(game_data: GameCreate, db: Session = Depends(get_db)):
    """
    建立新遊戲

    參數：
        deadline_window: 每次持有的期限（未提供則用 settings.default_deadline_window）
        allow_self_pass: 是否允許傳給自己（未提供則用 settings.allow_self_pass）

    返回：
        遊戲完整狀態（active=False）
    """
    settings = get_settings()
    deadline_window = game_data.deadline_window
    if deadline_window is None:
        deadline_window = settings.default_deadline_window
    allow_self_pass = game_data.allow_self_pass
    if allow_self_pass is None:
        allow_self_pass = settings.allow_self_pass

    try:
        clock = get_clock(db)
        game = GameManager.create_game(
            db,
            deadline_window,
            allow_self_pass=allow_self_pass,
            created_at_block=clock.now()
        )
        return GameResponse(**GameManager.describe(db, game.id, clock))

    except (HotPotatoException, HostCollaboratorError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/start", response_model=TransitionResponse)
def start_game(
    game_id: str,
    transfer: TransferRequest,
    x_caller_id: Optional[str] = Header(None, alias="X-Caller-Id"),
    db: Session = Depends(get_db)
):
    """
    開局：把馬鈴薯交給 transfer.to

    前置條件：
    - 遊戲尚未進行（否則 409 AlreadyActive）

    效果：
    - 呼叫者成為開局者（之後只有他能 end）
    """
    try:
        ctx = _context(x_caller_id, db)
        result = GameManager.start_game(db, game_id, ctx, transfer.to)
        return TransitionResponse(events=_events(result))

    except (HotPotatoException, HostCollaboratorError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/pass", response_model=TransitionResponse)
def pass_potato(
    game_id: str,
    transfer: TransferRequest,
    x_caller_id: Optional[str] = Header(None, alias="X-Caller-Id"),
    db: Session = Depends(get_db)
):
    """
    傳遞馬鈴薯（只有目前持有者）

    錯誤：
    - 409 NotActive：遊戲未進行
    - 403 NotHolder：呼叫者不是持有者
    - 409 DeadlinePassed：已到期，請改呼叫 check-deadline
    - 400 SelfPassNotAllowed：此遊戲不允許傳給自己
    - 409 ConcurrentUpdate：同時有其他請求修改了這局，重試即可
    """
    try:
        ctx = _context(x_caller_id, db)
        result = GameManager.pass_potato(db, game_id, ctx, transfer.to)
        return TransitionResponse(events=_events(result))

    except (HotPotatoException, HostCollaboratorError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to pass potato: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/check-deadline", response_model=DeadlineCheckResponse)
def check_deadline(
    game_id: str,
    x_caller_id: Optional[str] = Header(None, alias="X-Caller-Id"),
    db: Session = Depends(get_db)
):
    """
    檢查期限（任何人都可以呼叫，不需要 X-Caller-Id）

    返回：
        - eliminated: 是否淘汰了持有者
        - eliminated_holder: 被淘汰的身分
    """
    try:
        ctx = _context(x_caller_id, db)
        result = GameManager.check_deadline(db, game_id, ctx)
        return DeadlineCheckResponse(
            eliminated=result.eliminated,
            eliminated_holder=result.eliminated_holder,
            events=_events(result)
        )

    except (HotPotatoException, HostCollaboratorError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to check deadline: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/end", response_model=TransitionResponse)
def end_game(
    game_id: str,
    x_caller_id: Optional[str] = Header(None, alias="X-Caller-Id"),
    db: Session = Depends(get_db)
):
    """
    手動結束遊戲（只有開局者；遊戲已結束時也可呼叫）

    不需要時鐘：clock_source 故障時仍可結束
    """
    try:
        ctx = CallContext(identity=FixedCaller(x_caller_id))
        result = GameManager.end_game(db, game_id, ctx)
        return TransitionResponse(events=_events(result))

    except (HotPotatoException, HostCollaboratorError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to end game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


# ============ 查詢 ============

@router.get("/{game_id}", response_model=GameResponse)
def get_game(game_id: str, db: Session = Depends(get_db)):
    """取得遊戲完整狀態"""
    try:
        return GameResponse(**GameManager.describe(db, game_id, get_clock(db)))
    except (HotPotatoException, HostCollaboratorError) as e:
        raise to_http_exception(e)


@router.get("/{game_id}/holder", response_model=HolderResponse)
def get_holder(game_id: str, db: Session = Depends(get_db)):
    try:
        return HolderResponse(holder=GameManager.get_state(db, game_id).get_holder())
    except GameNotFound as e:
        raise to_http_exception(e)


@router.get("/{game_id}/active", response_model=ActiveResponse)
def is_active(game_id: str, db: Session = Depends(get_db)):
    try:
        return ActiveResponse(active=GameManager.get_state(db, game_id).is_active())
    except GameNotFound as e:
        raise to_http_exception(e)


@router.get("/{game_id}/deadline-window", response_model=DeadlineWindowResponse)
def get_deadline_window(game_id: str, db: Session = Depends(get_db)):
    try:
        state = GameManager.get_state(db, game_id)
        return DeadlineWindowResponse(deadline_window=state.get_deadline_window())
    except GameNotFound as e:
        raise to_http_exception(e)


@router.get("/{game_id}/remaining", response_model=RemainingResponse)
def get_remaining(game_id: str, db: Session = Depends(get_db)):
    """剩餘區塊數；遊戲未進行時為 0"""
    try:
        state = GameManager.get_state(db, game_id)
        return RemainingResponse(remaining=state.get_remaining(get_clock(db)))
    except (HotPotatoException, HostCollaboratorError) as e:
        raise to_http_exception(e)


@router.get("/{game_id}/starter", response_model=StarterResponse)
def get_starter(game_id: str, db: Session = Depends(get_db)):
    try:
        return StarterResponse(starter=GameManager.get_state(db, game_id).get_starter())
    except GameNotFound as e:
        raise to_http_exception(e)


@router.get("/{game_id}/events", response_model=list[EventResponse])
def get_events(game_id: str, db: Session = Depends(get_db)):
    """
    取得遊戲事件紀錄（依發生順序）

    包含 GAME_CREATED 與所有成功的狀態轉換
    """
    try:
        GameManager.get_game_by_id(db, game_id)
        return [EventResponse(**event) for event in get_game_events(db, game_id)]
    except GameNotFound as e:
        raise to_http_exception(e)
