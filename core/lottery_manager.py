"""
Lottery Manager：管理彩券託管的完整生命週期

職責：
1. 建立彩券（含發行唯一的 Capability）
2. 售票、開獎
3. 領獎、提款
4. 逾期未開獎時的退款流程（退票、退回獎品）
5. 銷毀 / 轉讓憑證

原則：
- 每個操作都是不可分割的一步：@record_serialized + @transactional，
  任何 guard 失敗都會 rollback，不留下部分修改
- 所有狀態判斷與轉換經過 LotteryStateMachine
- 失敗的操作不會吃掉呼叫者手上的 Balance
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional, Tuple
import logging

from models import Lottery, SoldNumber, Ticket, Capability, LotteryState
from core.state_machine import LotteryStateMachine
from core.locks import with_lottery_lock, record_serialized
from core.exceptions import (
    InvalidConfiguration,
    InsufficientPayment,
    NumberUnavailable,
    NothingToClaim,
    NotYetEligible,
    RecordNotFound,
)
from services.assets import Balance, PrizeAsset
from services.randomness import SystemRandomOracle
from services import event_service as events
from services import token_service
from database import transactional, get_settings

logger = logging.getLogger(__name__)

MIN_NUMBER_RANGE = 100


def _load_lottery(db: Session, lottery_id: UUID, lock: bool = True) -> Lottery:
    if lock:
        lottery = with_lottery_lock(lottery_id, db).first()
    else:
        lottery = db.query(Lottery).filter(Lottery.id == lottery_id).first()
    if not lottery:
        raise RecordNotFound(f"Lottery {lottery_id} not found")
    return lottery


def _find_sold(db: Session, lottery_id: UUID, number: int) -> Optional[SoldNumber]:
    return db.query(SoldNumber).filter(
        SoldNumber.lottery_id == lottery_id,
        SoldNumber.number == number
    ).first()


def _sold_count(db: Session, lottery_id: UUID) -> int:
    return db.query(SoldNumber).filter(SoldNumber.lottery_id == lottery_id).count()


def _take_prize(lottery: Lottery) -> PrizeAsset:
    prize = PrizeAsset(id=lottery.prize_id, payload=lottery.prize_payload or {})
    lottery.prize_id = None
    lottery.prize_payload = None
    return prize


class LotteryManager:
    """Lottery 生命週期管理器"""

    @staticmethod
    @transactional
    def create(
        db: Session,
        prize: PrizeAsset,
        min_participants: int,
        ticket_price: int,
        number_range: int,
        start_time: int,
        end_time: int,
        recipient: str,
        now: int,
        return_change: Optional[bool] = None,
        enforce_min_participants: Optional[bool] = None,
        grace_period: Optional[int] = None,
    ) -> Tuple[Lottery, Capability]:
        """
        建立新彩券（含唯一的 Capability）

        前置條件：
        1. min_participants >= 1
        2. ticket_price > 0
        3. number_range > 100
        4. start_time < end_time，且 start_time >= now

        參數：
            prize: 託管的獎品
            recipient: Capability 的持有人
            return_change / enforce_min_participants / grace_period:
                本彩券的政策，未指定時取自 Settings，建立後不可更改

        返回：
            (Lottery, Capability) tuple

        異常：
            InvalidConfiguration: 任一參數不合法
        """
        settings = get_settings()

        if prize is None:
            raise InvalidConfiguration("A lottery needs a prize")
        if min_participants < 1:
            raise InvalidConfiguration(
                f"min_participants must be at least 1, got {min_participants}"
            )
        if ticket_price <= 0:
            raise InvalidConfiguration(f"ticket_price must be positive, got {ticket_price}")
        if number_range <= MIN_NUMBER_RANGE:
            raise InvalidConfiguration(
                f"number_range must be greater than {MIN_NUMBER_RANGE}, got {number_range}"
            )
        if start_time >= end_time:
            raise InvalidConfiguration(
                f"start_time {start_time} must be before end_time {end_time}"
            )
        if start_time < now:
            raise InvalidConfiguration(f"start_time {start_time} is in the past (now {now})")

        if grace_period is None:
            grace_period = settings.grace_period
        if grace_period < 0:
            raise InvalidConfiguration(f"grace_period cannot be negative, got {grace_period}")

        lottery = Lottery(
            prize_id=prize.id,
            prize_payload=dict(prize.payload),
            min_participants=min_participants,
            ticket_price=ticket_price,
            proceeds=0,
            number_range=number_range,
            start_time=start_time,
            end_time=end_time,
            grace_period=grace_period,
            return_change=settings.return_change if return_change is None else return_change,
            enforce_min_participants=(
                settings.enforce_min_participants
                if enforce_min_participants is None else enforce_min_participants
            ),
            cancelled=False,
        )
        db.add(lottery)
        db.flush()  # 取得 lottery.id

        capability = token_service.mint_capability(db, lottery.id, recipient)

        events.record_event(
            db, lottery.id, events.LOTTERY_CREATED,
            prize_id=prize.id,
            ticket_price=ticket_price,
            number_range=number_range,
            start_time=start_time,
            end_time=end_time,
            capability_id=capability.id,
            recipient=recipient,
        )
        logger.info(f"Created lottery {lottery.id} with capability {capability.id} for {recipient}")

        return lottery, capability

    @staticmethod
    def buy(
        db: Session,
        lottery_id: UUID,
        ticket_number: int,
        payment: Balance,
        recipient: str,
        now: int,
    ) -> Tuple[Ticket, Balance]:
        """
        購買一張指定號碼的彩券

        前置條件：
        1. 未取消、未開獎、在銷售期內
        2. payment >= ticket_price
        3. 0 <= ticket_number <= number_range（含上界）
        4. 號碼尚未售出

        付款處理（依本彩券的 return_change 政策）：
            - True：只收 ticket_price，其餘當作找零返回
            - False：整筆付款都進 proceeds，找零為 0

        流程：
        1. _record_purchase 在一個 transaction 內寫入號碼、票券與 proceeds
        2. commit 成功後才從 payment 扣款；任何失敗（含 commit）payment 原封不動

        返回：
            (Ticket, change) tuple；payment 會被清空

        異常：
            AlreadyCancelled / AlreadyResolved / NotYetEligible / SalesClosed
            InsufficientPayment: 付款不足
            NumberUnavailable: 號碼超出範圍或已售出
        """
        ticket, kept = LotteryManager._record_purchase(
            db, lottery_id, ticket_number, payment.value_of(), recipient, now
        )

        # kept 已記入 lottery.proceeds
        payment.split(kept)
        change = payment.split(payment.value_of())
        return ticket, change

    @staticmethod
    @record_serialized
    @transactional
    def _record_purchase(
        db: Session,
        lottery_id: UUID,
        ticket_number: int,
        paid: int,
        recipient: str,
        now: int,
    ) -> Tuple[Ticket, int]:
        """
        buy 的資料庫部分，只處理金額數字，不碰呼叫者的 Balance

        返回：
            (Ticket, 記入 proceeds 的金額)
        """
        lottery = _load_lottery(db, lottery_id)
        LotteryStateMachine.ensure_on_sale(lottery, now)

        if paid < lottery.ticket_price:
            raise InsufficientPayment(paid, lottery.ticket_price)

        if ticket_number < 0 or ticket_number > lottery.number_range:
            raise NumberUnavailable(
                ticket_number, f"outside [0, {lottery.number_range}]"
            )
        if _find_sold(db, lottery_id, ticket_number):
            raise NumberUnavailable(ticket_number, "already sold")

        kept = lottery.ticket_price if lottery.return_change else paid

        db.add(SoldNumber(lottery_id=lottery_id, number=ticket_number))
        try:
            db.flush()
        except IntegrityError as e:
            # 另一個 process 搶先寫入同一個號碼
            raise NumberUnavailable(ticket_number, "already sold") from e

        lottery.proceeds = lottery.proceeds + kept
        ticket = token_service.mint_ticket(db, lottery_id, ticket_number, recipient)
        events.record_event(
            db, lottery_id, events.TICKET_BOUGHT,
            ticket_id=ticket.id,
            ticket_number=ticket_number,
            amount=kept,
            recipient=recipient,
        )
        db.flush()

        return ticket, kept

    @staticmethod
    @record_serialized
    @transactional
    def run(db: Session, lottery_id: UUID, now: int, oracle=None) -> int:
        """
        開獎

        前置條件：
        1. 未取消、未開獎（重複呼叫會得到 AlreadyResolved）
        2. end_time < now（銷售期已完全結束）
        3. 若 enforce_min_participants，售出張數 >= min_participants

        參數：
            oracle: 亂數來源，draw(number_range) 回傳 [0, number_range]；
                    未指定時使用 SystemRandomOracle

        返回：
            中獎號碼

        異常：
            AlreadyCancelled / AlreadyResolved / NotYetEligible
            InvalidDraw: oracle 回傳範圍外的號碼
        """
        lottery = _load_lottery(db, lottery_id)
        sold_count = _sold_count(db, lottery_id)
        LotteryStateMachine.ensure_drawable(lottery, now, sold_count)

        oracle = oracle or SystemRandomOracle()
        winning_number = oracle.draw(lottery.number_range)
        LotteryStateMachine.resolve(lottery, winning_number)

        events.record_event(
            db, lottery_id, events.LOTTERY_RESOLVED,
            winning_number=winning_number,
            tickets_sold=sold_count,
            min_participants=lottery.min_participants,
        )
        if sold_count < lottery.min_participants:
            logger.warning(
                f"Lottery {lottery_id} resolved with {sold_count} tickets "
                f"(min_participants={lottery.min_participants})"
            )

        return winning_number

    @staticmethod
    @record_serialized
    @transactional
    def claim_prize(
        db: Session,
        lottery_id: UUID,
        ticket_id: UUID,
        holder: str,
        recipient: str,
    ) -> PrizeAsset:
        """
        以中獎票券領取獎品

        前置條件：
        1. Ticket 屬於這個彩券且由 holder 持有
        2. 獎品仍在、已開獎、票券號碼等於中獎號碼

        注意：
            - 不會銷毀票券（由持有人另外呼叫 burn_ticket）
            - 第二次領獎會得到 NothingToClaim（獎品已不在）

        返回：
            PrizeAsset（交給 recipient）

        異常：
            RecordNotFound / AuthorizationMismatch
            NothingToClaim: 沒有獎品、尚未開獎，或不是中獎號碼
        """
        lottery = _load_lottery(db, lottery_id)
        ticket = token_service.present_ticket(db, ticket_id, lottery_id, holder)

        if not lottery.has_prize:
            raise NothingToClaim(f"Lottery {lottery_id} no longer holds a prize")
        if not lottery.is_resolved:
            raise NothingToClaim(f"Lottery {lottery_id} has not been drawn yet")
        if ticket.ticket_number != lottery.winning_number:
            raise NothingToClaim(
                f"Ticket #{ticket.ticket_number} is not the winning number"
            )

        prize = _take_prize(lottery)
        events.record_event(
            db, lottery_id, events.PRIZE_CLAIMED,
            prize_id=prize.id,
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            recipient=recipient,
        )
        db.flush()

        logger.info(f"Lottery {lottery_id}: RESOLVED -> PRIZE_CLAIMED by {recipient}")
        return prize

    @staticmethod
    @record_serialized
    @transactional
    def withdraw(
        db: Session,
        lottery_id: UUID,
        capability_id: UUID,
        holder: str,
        recipient: str,
    ) -> Balance:
        """
        提領售票收入（只有開獎後才可以）

        返回：
            Balance（全部 proceeds，交給 recipient）

        異常：
            RecordNotFound: Capability 已被消耗
            AuthorizationMismatch: Capability 不屬於這個彩券或 holder
            AlreadyCancelled: 彩券已取消
            NotYetEligible: 尚未開獎
        """
        lottery = _load_lottery(db, lottery_id)
        token_service.present_capability(db, capability_id, lottery_id, holder)
        LotteryStateMachine.ensure_not_cancelled(lottery)
        if not lottery.is_resolved:
            raise NotYetEligible(f"Lottery {lottery_id} must be drawn before withdrawal")

        pool = Balance(lottery.proceeds)
        withdrawn = pool.split(pool.value_of())
        lottery.proceeds = pool.value_of()

        events.record_event(
            db, lottery_id, events.PROCEEDS_WITHDRAWN,
            amount=withdrawn.value_of(),
            recipient=recipient,
        )
        db.flush()
        return withdrawn

    @staticmethod
    @record_serialized
    @transactional
    def refund(
        db: Session,
        lottery_id: UUID,
        ticket_id: UUID,
        holder: str,
        recipient: str,
        now: int,
    ) -> Balance:
        """
        逾期未開獎時退票

        前置條件：
        1. Ticket 屬於這個彩券且由 holder 持有
        2. 尚未開獎，且 end_time + grace_period < now
        3. 號碼仍在已售集合中

        副作用：
            - 彩券被標記為 cancelled（若尚未取消）
            - 號碼從已售集合移除，票券被銷毀

        返回：
            Balance（剛好 ticket_price，交給 recipient）

        異常：
            RecordNotFound: 票券已退款 / 銷毀，或號碼不在已售集合
            AuthorizationMismatch / AlreadyResolved / NotYetEligible
        """
        lottery = _load_lottery(db, lottery_id)
        ticket = token_service.present_ticket(db, ticket_id, lottery_id, holder)
        LotteryStateMachine.ensure_unwindable(lottery, now)

        sold = _find_sold(db, lottery_id, ticket.ticket_number)
        if not sold:
            raise RecordNotFound(
                f"Ticket #{ticket.ticket_number} is not among the sold numbers"
            )

        if LotteryStateMachine.cancel(lottery):
            events.record_event(db, lottery_id, events.LOTTERY_CANCELLED, triggered_by="refund")

        ticket_number = ticket.ticket_number
        db.delete(sold)
        token_service.destroy(db, ticket)

        pool = Balance(lottery.proceeds)
        refunded = pool.split(lottery.ticket_price)
        lottery.proceeds = pool.value_of()

        events.record_event(
            db, lottery_id, events.TICKET_REFUNDED,
            ticket_id=ticket_id,
            ticket_number=ticket_number,
            amount=refunded.value_of(),
            recipient=recipient,
        )
        db.flush()
        return refunded

    @staticmethod
    @record_serialized
    @transactional
    def return_prize(
        db: Session,
        lottery_id: UUID,
        capability_id: UUID,
        holder: str,
        recipient: str,
        now: int,
    ) -> PrizeAsset:
        """
        逾期未開獎時退回獎品（消耗 Capability）

        前置條件：
        1. Capability 屬於這個彩券且由 holder 持有
        2. 尚未開獎，且 end_time + grace_period < now
        3. 獎品仍在

        副作用：
            - 彩券被標記為 cancelled（若尚未取消）
            - Capability 永久銷毀，之後無法再提款

        異常：
            RecordNotFound / AuthorizationMismatch / AlreadyResolved / NotYetEligible
            NothingToClaim: 獎品已不在
        """
        lottery = _load_lottery(db, lottery_id)
        capability = token_service.present_capability(db, capability_id, lottery_id, holder)
        LotteryStateMachine.ensure_unwindable(lottery, now)
        if not lottery.has_prize:
            raise NothingToClaim(f"Lottery {lottery_id} no longer holds a prize")

        if LotteryStateMachine.cancel(lottery):
            events.record_event(db, lottery_id, events.LOTTERY_CANCELLED, triggered_by="return_prize")

        token_service.destroy(db, capability)
        prize = _take_prize(lottery)

        events.record_event(
            db, lottery_id, events.PRIZE_RETURNED,
            prize_id=prize.id,
            capability_id=capability_id,
            recipient=recipient,
        )
        db.flush()
        return prize

    @staticmethod
    @record_serialized
    @transactional
    def burn_ticket(db: Session, lottery_id: UUID, ticket_id: UUID, holder: str) -> None:
        """
        銷毀票券並把號碼移出已售集合（通常在領獎之後使用）

        異常：
            RecordNotFound: 票券不存在，或號碼不在已售集合
            AuthorizationMismatch: 票券不屬於這個彩券或 holder
        """
        _load_lottery(db, lottery_id)
        ticket = token_service.present_ticket(db, ticket_id, lottery_id, holder)
        sold = _find_sold(db, lottery_id, ticket.ticket_number)
        if not sold:
            raise RecordNotFound(
                f"Ticket #{ticket.ticket_number} is not among the sold numbers"
            )

        ticket_number = ticket.ticket_number
        db.delete(sold)
        token_service.destroy(db, ticket)

        events.record_event(
            db, lottery_id, events.TICKET_BURNED,
            ticket_id=ticket_id,
            ticket_number=ticket_number,
        )
        db.flush()

    @staticmethod
    @record_serialized
    @transactional
    def transfer_ticket(
        db: Session, lottery_id: UUID, ticket_id: UUID, holder: str, new_owner: str
    ) -> Ticket:
        ticket = token_service.present_ticket(db, ticket_id, lottery_id, holder)
        token_service.transfer(db, ticket, holder, new_owner)
        events.record_event(
            db, lottery_id, events.TOKEN_TRANSFERRED,
            token="ticket", token_id=ticket_id, to=new_owner,
        )
        return ticket

    @staticmethod
    @record_serialized
    @transactional
    def transfer_capability(
        db: Session, lottery_id: UUID, capability_id: UUID, holder: str, new_owner: str
    ) -> Capability:
        capability = token_service.present_capability(db, capability_id, lottery_id, holder)
        token_service.transfer(db, capability, holder, new_owner)
        events.record_event(
            db, lottery_id, events.TOKEN_TRANSFERRED,
            token="capability", token_id=capability_id, to=new_owner,
        )
        return capability

    # ============ 查詢 ============

    @staticmethod
    def get_lottery(db: Session, lottery_id: UUID) -> Lottery:
        """
        異常：
            RecordNotFound: Lottery 不存在
        """
        return _load_lottery(db, lottery_id, lock=False)

    @staticmethod
    def get_sold_numbers(db: Session, lottery_id: UUID) -> List[int]:
        rows = db.query(SoldNumber.number).filter(
            SoldNumber.lottery_id == lottery_id
        ).order_by(SoldNumber.number).all()
        return [number for (number,) in rows]

    @staticmethod
    def get_state(db: Session, lottery_id: UUID) -> LotteryState:
        lottery = _load_lottery(db, lottery_id, lock=False)
        return LotteryStateMachine.state_of(lottery, _sold_count(db, lottery_id))

    @staticmethod
    def get_ticket(db: Session, ticket_id: UUID) -> Ticket:
        ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
        if not ticket:
            raise RecordNotFound(f"Ticket {ticket_id} not found")
        return ticket

    @staticmethod
    def find_capability(db: Session, capability_id: UUID) -> Capability:
        capability = db.query(Capability).filter(Capability.id == capability_id).first()
        if not capability:
            raise RecordNotFound(f"Capability {capability_id} not found")
        return capability
