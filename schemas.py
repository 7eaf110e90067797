"""
API request / response schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from models import LotteryState


# ============ Lottery ============

class LotteryCreate(BaseModel):
    prize_id: str = Field(..., min_length=1)
    prize_payload: Dict[str, Any] = Field(default_factory=dict)
    min_participants: int
    ticket_price: int
    number_range: int
    start_time: int
    end_time: int
    recipient: str = Field(..., min_length=1, description="Capability 持有人")
    return_change: Optional[bool] = None
    enforce_min_participants: Optional[bool] = None


class LotteryCreated(BaseModel):
    lottery_id: UUID
    capability_id: UUID


class LotteryResponse(BaseModel):
    lottery_id: UUID
    state: LotteryState
    prize_id: Optional[str]
    min_participants: int
    ticket_price: int
    proceeds: int
    number_range: int
    winning_number: Optional[int]
    start_time: int
    end_time: int
    grace_period: int
    return_change: bool
    enforce_min_participants: bool
    cancelled: bool
    sold_numbers: List[int]


class RunResponse(BaseModel):
    winning_number: int


class EventResponse(BaseModel):
    event_type: str
    data: Dict[str, Any]
    created_at: Optional[datetime] = None


# ============ Tickets / Capabilities ============

class TicketPurchase(BaseModel):
    ticket_number: int
    payment: int = Field(..., ge=0)
    recipient: str = Field(..., min_length=1)


class TicketResponse(BaseModel):
    ticket_id: UUID
    lottery_id: UUID
    ticket_number: int
    owner: str


class PurchaseResponse(TicketResponse):
    change: int


class TicketAction(BaseModel):
    """claim / refund 共用：呈交票券並指定收款人"""
    ticket_id: UUID
    holder: str
    recipient: str


class CapabilityAction(BaseModel):
    """withdraw / return-prize 共用：呈交 Capability 並指定收款人"""
    capability_id: UUID
    holder: str
    recipient: str


class TokenTransfer(BaseModel):
    holder: str
    new_owner: str = Field(..., min_length=1)


class CapabilityResponse(BaseModel):
    capability_id: UUID
    lottery_id: UUID
    owner: str


class PrizeResponse(BaseModel):
    prize_id: str
    prize_payload: Dict[str, Any]
    recipient: str


class AmountResponse(BaseModel):
    amount: int
    recipient: str
