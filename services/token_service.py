"""
憑證服務：Capability / Ticket 的發行、驗證、銷毀與轉讓

憑證是不記名的：持有（owner 相符）加上 lottery_id 相符就是唯一的授權檢查
只有這個模組會建立或刪除憑證，其他地方無法偽造
"""
from uuid import UUID

from sqlalchemy.orm import Session

from models import Capability, Ticket
from core.exceptions import AuthorizationMismatch, RecordNotFound


def mint_capability(db: Session, lottery_id: UUID, owner: str) -> Capability:
    capability = Capability(lottery_id=lottery_id, owner=owner)
    db.add(capability)
    db.flush()  # 取得 capability.id
    return capability


def mint_ticket(db: Session, lottery_id: UUID, ticket_number: int, owner: str) -> Ticket:
    ticket = Ticket(lottery_id=lottery_id, ticket_number=ticket_number, owner=owner)
    db.add(ticket)
    db.flush()  # 取得 ticket.id
    return ticket


def present_ticket(db: Session, ticket_id: UUID, lottery_id: UUID, holder: str) -> Ticket:
    """
    驗證呈交的 Ticket

    參數：
        ticket_id: Ticket UUID
        lottery_id: 要操作的彩券
        holder: 呈交者

    返回：
        Ticket object

    異常：
        RecordNotFound: Ticket 不存在（已被退款或銷毀）
        AuthorizationMismatch: Ticket 屬於別的彩券，或呈交者不是持有人
    """
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
    if not ticket:
        raise RecordNotFound(f"Ticket {ticket_id} not found")
    if ticket.lottery_id != lottery_id:
        raise AuthorizationMismatch(
            f"Ticket {ticket_id} belongs to lottery {ticket.lottery_id}, not {lottery_id}"
        )
    if ticket.owner != holder:
        raise AuthorizationMismatch(f"Ticket {ticket_id} is not held by {holder}")
    return ticket


def present_capability(db: Session, capability_id: UUID, lottery_id: UUID, holder: str) -> Capability:
    """
    驗證呈交的 Capability

    異常：
        RecordNotFound: Capability 不存在（已在 return_prize 時被消耗）
        AuthorizationMismatch: Capability 屬於別的彩券，或呈交者不是持有人
    """
    capability = db.query(Capability).filter(Capability.id == capability_id).first()
    if not capability:
        raise RecordNotFound(f"Capability {capability_id} not found")
    if capability.lottery_id != lottery_id:
        raise AuthorizationMismatch(
            f"Capability {capability_id} does not authorize lottery {lottery_id}"
        )
    if capability.owner != holder:
        raise AuthorizationMismatch(f"Capability {capability_id} is not held by {holder}")
    return capability


def destroy(db: Session, token) -> None:
    db.delete(token)
    db.flush()


def transfer(db: Session, token, holder: str, new_owner: str):
    """
    轉讓憑證給新持有人

    異常：
        AuthorizationMismatch: 呈交者不是目前持有人
    """
    if token.owner != holder:
        raise AuthorizationMismatch(f"Token {token.id} is not held by {holder}")
    token.owner = new_owner
    db.flush()
    return token
