"""
Lottery API Endpoints

職責：
1. 建立彩券、查詢狀態與事件
2. 售票、開獎
3. 領獎、提款、退款、退回獎品、銷毀票券

所有業務邏輯集中在 LotteryManager，這裡只負責轉換輸入輸出與錯誤碼
"""
from uuid import UUID
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    LotteryCreate,
    LotteryCreated,
    LotteryResponse,
    RunResponse,
    EventResponse,
    TicketPurchase,
    PurchaseResponse,
    TicketAction,
    CapabilityAction,
    PrizeResponse,
    AmountResponse,
)
from core.lottery_manager import LotteryManager
from core.state_machine import LotteryStateMachine
from core.exceptions import LotteryException
from services.assets import Balance, PrizeAsset
from services.event_service import list_events
from api.dependencies import get_clock, get_oracle, to_http_exception

router = APIRouter(prefix="/api/lotteries", tags=["lotteries"])
logger = logging.getLogger(__name__)


def _snapshot(db: Session, lottery_id: UUID) -> LotteryResponse:
    lottery = LotteryManager.get_lottery(db, lottery_id)
    sold = LotteryManager.get_sold_numbers(db, lottery_id)
    return LotteryResponse(
        lottery_id=lottery.id,
        state=LotteryStateMachine.state_of(lottery, len(sold)),
        prize_id=lottery.prize_id,
        min_participants=lottery.min_participants,
        ticket_price=lottery.ticket_price,
        proceeds=lottery.proceeds,
        number_range=lottery.number_range,
        winning_number=lottery.winning_number,
        start_time=lottery.start_time,
        end_time=lottery.end_time,
        grace_period=lottery.grace_period,
        return_change=lottery.return_change,
        enforce_min_participants=lottery.enforce_min_participants,
        cancelled=lottery.cancelled,
        sold_numbers=sold,
    )


@router.post("", response_model=LotteryCreated, status_code=201)
def create_lottery(
    data: LotteryCreate,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """
    建立彩券（託管獎品，發行 Capability 給 recipient）
    """
    try:
        lottery, capability = LotteryManager.create(
            db,
            prize=PrizeAsset(id=data.prize_id, payload=data.prize_payload),
            min_participants=data.min_participants,
            ticket_price=data.ticket_price,
            number_range=data.number_range,
            start_time=data.start_time,
            end_time=data.end_time,
            recipient=data.recipient,
            now=clock.now(),
            return_change=data.return_change,
            enforce_min_participants=data.enforce_min_participants,
        )
        return LotteryCreated(lottery_id=lottery.id, capability_id=capability.id)

    except LotteryException as e:
        logger.warning(f"Rejected lottery creation: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create lottery: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{lottery_id}", response_model=LotteryResponse)
def get_lottery(lottery_id: UUID, db: Session = Depends(get_db)):
    try:
        return _snapshot(db, lottery_id)
    except LotteryException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get lottery {lottery_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{lottery_id}/events", response_model=List[EventResponse])
def get_lottery_events(lottery_id: UUID, db: Session = Depends(get_db)):
    try:
        LotteryManager.get_lottery(db, lottery_id)
        return list_events(db, lottery_id)
    except LotteryException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to list events for {lottery_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lottery_id}/tickets", response_model=PurchaseResponse, status_code=201)
def buy_ticket(
    lottery_id: UUID,
    data: TicketPurchase,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """
    購買彩券

    流程：
    1. 把付款包成 Balance
    2. LotteryManager.buy()（號碼被搶走時回 409）
    3. 回傳票券與找零
    """
    try:
        ticket, change = LotteryManager.buy(
            db,
            lottery_id,
            ticket_number=data.ticket_number,
            payment=Balance(data.payment),
            recipient=data.recipient,
            now=clock.now(),
        )
        return PurchaseResponse(
            ticket_id=ticket.id,
            lottery_id=ticket.lottery_id,
            ticket_number=ticket.ticket_number,
            owner=ticket.owner,
            change=change.value_of(),
        )

    except LotteryException as e:
        logger.warning(f"Rejected purchase of #{data.ticket_number} in {lottery_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to buy ticket: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lottery_id}/run", response_model=RunResponse)
def run_lottery(
    lottery_id: UUID,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    oracle=Depends(get_oracle),
):
    """
    開獎（銷售期結束後任何人都可以呼叫，重複呼叫回 409）
    """
    try:
        winning_number = LotteryManager.run(db, lottery_id, now=clock.now(), oracle=oracle)
        return RunResponse(winning_number=winning_number)

    except LotteryException as e:
        logger.warning(f"Rejected draw for {lottery_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to run lottery: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lottery_id}/claim", response_model=PrizeResponse)
def claim_prize(lottery_id: UUID, data: TicketAction, db: Session = Depends(get_db)):
    try:
        prize = LotteryManager.claim_prize(
            db, lottery_id, data.ticket_id, holder=data.holder, recipient=data.recipient
        )
        return PrizeResponse(prize_id=prize.id, prize_payload=prize.payload, recipient=data.recipient)

    except LotteryException as e:
        logger.warning(f"Rejected claim in {lottery_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to claim prize: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lottery_id}/withdraw", response_model=AmountResponse)
def withdraw(lottery_id: UUID, data: CapabilityAction, db: Session = Depends(get_db)):
    try:
        amount = LotteryManager.withdraw(
            db, lottery_id, data.capability_id, holder=data.holder, recipient=data.recipient
        )
        return AmountResponse(amount=amount.value_of(), recipient=data.recipient)

    except LotteryException as e:
        logger.warning(f"Rejected withdrawal in {lottery_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to withdraw: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lottery_id}/refund", response_model=AmountResponse)
def refund(
    lottery_id: UUID,
    data: TicketAction,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    try:
        amount = LotteryManager.refund(
            db, lottery_id, data.ticket_id,
            holder=data.holder, recipient=data.recipient, now=clock.now()
        )
        return AmountResponse(amount=amount.value_of(), recipient=data.recipient)

    except LotteryException as e:
        logger.warning(f"Rejected refund in {lottery_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to refund: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lottery_id}/return-prize", response_model=PrizeResponse)
def return_prize(
    lottery_id: UUID,
    data: CapabilityAction,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    try:
        prize = LotteryManager.return_prize(
            db, lottery_id, data.capability_id,
            holder=data.holder, recipient=data.recipient, now=clock.now()
        )
        return PrizeResponse(prize_id=prize.id, prize_payload=prize.payload, recipient=data.recipient)

    except LotteryException as e:
        logger.warning(f"Rejected prize return in {lottery_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to return prize: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{lottery_id}/tickets/{ticket_id}", status_code=204)
def burn_ticket(
    lottery_id: UUID,
    ticket_id: UUID,
    holder: str = Query(...),
    db: Session = Depends(get_db),
):
    try:
        LotteryManager.burn_ticket(db, lottery_id, ticket_id, holder=holder)

    except LotteryException as e:
        logger.warning(f"Rejected burn of ticket {ticket_id}: {e}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to burn ticket: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
