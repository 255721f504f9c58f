"""
Ledger service.

Simulates the host's logical clock: a single block counter stored in the
database. Games read it through LedgerClock; only POST /api/ledger/advance
moves it forward, so the counter never decreases.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.clock import WallClock
from core.deadline import MAX_BLOCK
from core.exceptions import ClockUnavailable
from core.locks import with_ledger_lock
from database import get_settings, transactional
from models import LedgerState

logger = logging.getLogger(__name__)


def get_block_height(db: Session) -> int:
    """Current block height, 0 before the first advance."""
    ledger = db.query(LedgerState).filter(LedgerState.id == 1).first()
    return ledger.block_height if ledger else 0


@transactional
def advance_blocks(db: Session, blocks: int = 1) -> int:
    """
    Move the counter forward by `blocks` and return the new height.

    Raises ValueError for a negative amount or when the height would leave
    the 64-bit INTEGER column range.
    """
    if blocks < 0:
        raise ValueError(f"Cannot advance by a negative amount: {blocks}")

    ledger = with_ledger_lock(db).first()
    if not ledger:
        ledger = LedgerState(id=1, block_height=0)
        db.add(ledger)

    if ledger.block_height + blocks > MAX_BLOCK:
        raise ValueError(
            f"Cannot advance block {ledger.block_height} by {blocks}: exceeds {MAX_BLOCK}"
        )

    ledger.block_height += blocks
    logger.info(f"Ledger advanced by {blocks} to block {ledger.block_height}")
    return ledger.block_height


class LedgerClock:
    """Clock adapter backed by the ledger_state row."""

    def __init__(self, db: Session):
        self._db = db

    def now(self) -> int:
        try:
            return get_block_height(self._db)
        except SQLAlchemyError as e:
            raise ClockUnavailable(f"Ledger block height unavailable: {e}") from e


def get_clock(db: Session):
    """Pick the clock adapter configured by settings.clock_source."""
    source = get_settings().clock_source
    if source == "wallclock":
        return WallClock()
    if source == "ledger":
        return LedgerClock(db)
    raise ClockUnavailable(f"Unknown clock source: {source}")
