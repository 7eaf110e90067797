"""
Event sink for lottery transitions.

Every state transition writes one EventLog row in the same transaction as
the transition itself, so an aborted operation leaves no event behind.
"""
from typing import Any, Dict, List
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from models import EventLog

logger = logging.getLogger(__name__)

LOTTERY_CREATED = "LOTTERY_CREATED"
TICKET_BOUGHT = "TICKET_BOUGHT"
LOTTERY_RESOLVED = "LOTTERY_RESOLVED"
PRIZE_CLAIMED = "PRIZE_CLAIMED"
PROCEEDS_WITHDRAWN = "PROCEEDS_WITHDRAWN"
LOTTERY_CANCELLED = "LOTTERY_CANCELLED"
TICKET_REFUNDED = "TICKET_REFUNDED"
PRIZE_RETURNED = "PRIZE_RETURNED"
TICKET_BURNED = "TICKET_BURNED"
TOKEN_TRANSFERRED = "TOKEN_TRANSFERRED"


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    return value


def record_event(db: Session, lottery_id: UUID, event_type: str, **data: Any) -> EventLog:
    """
    Add an event row to the current transaction (flush/commit is left to the caller).
    """
    event = EventLog(
        lottery_id=lottery_id,
        event_type=event_type,
        data={key: _jsonable(value) for key, value in data.items()},
    )
    db.add(event)
    logger.info(f"[{lottery_id}] {event_type} {event.data}")
    return event


def list_events(db: Session, lottery_id: UUID) -> List[Dict[str, Any]]:
    rows = (
        db.query(EventLog)
        .filter(EventLog.lottery_id == lottery_id)
        .order_by(EventLog.id)
        .all()
    )
    return [
        {"event_type": row.event_type, "data": row.data, "created_at": row.created_at}
        for row in rows
    ]
