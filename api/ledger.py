"""
Ledger API Endpoints

模擬宿主的區塊計數器：只有 advance 會讓時間前進
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import AdvanceRequest, BlockResponse
from services.ledger_service import advance_blocks, get_block_height

router = APIRouter(prefix="/api/ledger", tags=["ledger"])
logger = logging.getLogger(__name__)


@router.get("/block", response_model=BlockResponse)
def get_block(db: Session = Depends(get_db)):
    """取得目前區塊高度"""
    return BlockResponse(block_height=get_block_height(db))


@router.post("/advance", response_model=BlockResponse)
def advance(request: AdvanceRequest, db: Session = Depends(get_db)):
    """
    推進區塊高度

    參數：
        blocks: 要前進的區塊數（>= 0）

    返回：
        - block_height: 推進後的區塊高度
    """
    try:
        height = advance_blocks(db, request.blocks)
        return BlockResponse(block_height=height)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to advance ledger: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
