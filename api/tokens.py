"""
Token API Endpoints

職責：
1. 查詢票券 / Capability
2. 轉讓憑證給新持有人
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import TicketResponse, CapabilityResponse, TokenTransfer
from core.lottery_manager import LotteryManager
from core.exceptions import LotteryException
from api.dependencies import to_http_exception

router = APIRouter(prefix="/api", tags=["tokens"])
logger = logging.getLogger(__name__)


def _ticket_response(ticket) -> TicketResponse:
    return TicketResponse(
        ticket_id=ticket.id,
        lottery_id=ticket.lottery_id,
        ticket_number=ticket.ticket_number,
        owner=ticket.owner,
    )


def _capability_response(capability) -> CapabilityResponse:
    return CapabilityResponse(
        capability_id=capability.id,
        lottery_id=capability.lottery_id,
        owner=capability.owner,
    )


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: UUID, db: Session = Depends(get_db)):
    try:
        return _ticket_response(LotteryManager.get_ticket(db, ticket_id))
    except LotteryException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get ticket {ticket_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/tickets/{ticket_id}/transfer", response_model=TicketResponse)
def transfer_ticket(ticket_id: UUID, data: TokenTransfer, db: Session = Depends(get_db)):
    try:
        lottery_id = LotteryManager.get_ticket(db, ticket_id).lottery_id
        ticket = LotteryManager.transfer_ticket(
            db, lottery_id, ticket_id, holder=data.holder, new_owner=data.new_owner
        )
        logger.info(f"Ticket {ticket_id} transferred to {data.new_owner}")
        return _ticket_response(ticket)

    except LotteryException as e:
        logger.warning(f"Rejected transfer of ticket {ticket_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to transfer ticket: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/capabilities/{capability_id}", response_model=CapabilityResponse)
def get_capability(capability_id: UUID, db: Session = Depends(get_db)):
    try:
        return _capability_response(LotteryManager.find_capability(db, capability_id))
    except LotteryException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get capability {capability_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/capabilities/{capability_id}/transfer", response_model=CapabilityResponse)
def transfer_capability(capability_id: UUID, data: TokenTransfer, db: Session = Depends(get_db)):
    try:
        lottery_id = LotteryManager.find_capability(db, capability_id).lottery_id
        capability = LotteryManager.transfer_capability(
            db, lottery_id, capability_id, holder=data.holder, new_owner=data.new_owner
        )
        logger.info(f"Capability {capability_id} transferred to {data.new_owner}")
        return _capability_response(capability)

    except LotteryException as e:
        logger.warning(f"Rejected transfer of capability {capability_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to transfer capability: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
