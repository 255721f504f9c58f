"""
Game event service.

Delivers the pending notifications returned by the state machine into the
event_logs table, and reads them back so clients can replay a game's history
(start, passes, elimination, manual end) straight from the server.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from core.events import GameEvent
from models import EventLog


def record_events(db: Session, game_id: str, events: List[GameEvent]) -> None:
    """Add one EventLog row per event; the caller's transaction commits them."""
    for event in events:
        db.add(EventLog(
            game_id=game_id,
            event_type=event.event_type.value,
            block=event.block,
            actor=event.actor,
            data=dict(event.data),
        ))


def get_game_events(db: Session, game_id: str) -> List[Dict[str, Any]]:
    """
    Return the game's events in the order they happened.

    GAME_CREATED is written by the manager at construction and has no
    counterpart in the state machine.
    """
    rows = (
        db.query(EventLog)
        .filter(EventLog.game_id == game_id)
        .order_by(EventLog.id)
        .all()
    )

    return [
        {
            "event_type": row.event_type,
            "block": row.block,
            "actor": row.actor,
            "data": row.data or {},
        }
        for row in rows
    ]
