"""
彩券狀態機：集中管理所有狀態判斷與轉換

狀態（由欄位推導，不另外儲存）：

    OPEN ──run──> RESOLVED ──claim_prize──> PRIZE_CLAIMED
      │
      └──(寬限期後任何 unwind 操作)──> CANCELLED ──(獎品退回且票券清空)──> UNWOUND

規則：
- winning_number 與 cancelled 互斥，一旦其中一個成立，另一個永遠不能成立
- cancelled 是黏著旗標（soft latch）：refund / return_prize 在寬限期過後
  自行翻轉它，不需要另外的 cancel 呼叫，任何一方都能啟動退款流程
"""
import logging

from models import Lottery, LotteryState
from core.exceptions import (
    AlreadyCancelled,
    AlreadyResolved,
    NotYetEligible,
    SalesClosed,
    InvalidDraw,
)

logger = logging.getLogger(__name__)


class LotteryStateMachine:
    """Lottery 狀態機"""

    @staticmethod
    def state_of(lottery: Lottery, sold_count: int) -> LotteryState:
        if lottery.cancelled:
            if not lottery.has_prize and sold_count == 0:
                return LotteryState.UNWOUND
            return LotteryState.CANCELLED
        if lottery.is_resolved:
            if not lottery.has_prize:
                return LotteryState.PRIZE_CLAIMED
            return LotteryState.RESOLVED
        return LotteryState.OPEN

    # ============ Guards ============

    @staticmethod
    def ensure_not_cancelled(lottery: Lottery) -> None:
        if lottery.cancelled:
            raise AlreadyCancelled(lottery.id)

    @staticmethod
    def ensure_unresolved(lottery: Lottery) -> None:
        if lottery.is_resolved:
            raise AlreadyResolved(lottery.id)

    @staticmethod
    def ensure_on_sale(lottery: Lottery, now: int) -> None:
        """
        購買前置條件：未取消、未開獎、在銷售期內（start_time <= now <= end_time）
        """
        LotteryStateMachine.ensure_not_cancelled(lottery)
        LotteryStateMachine.ensure_unresolved(lottery)
        if now < lottery.start_time:
            raise NotYetEligible(
                f"Lottery {lottery.id} opens at {lottery.start_time}, now is {now}"
            )
        if now > lottery.end_time:
            raise SalesClosed(
                f"Lottery {lottery.id} stopped selling at {lottery.end_time}, now is {now}"
            )

    @staticmethod
    def ensure_drawable(lottery: Lottery, now: int, sold_count: int) -> None:
        """
        開獎前置條件：未取消、未開獎（防止重複開獎）、銷售期已完全結束
        若設定 enforce_min_participants，售出張數必須達到 min_participants
        """
        LotteryStateMachine.ensure_not_cancelled(lottery)
        LotteryStateMachine.ensure_unresolved(lottery)
        if not lottery.end_time < now:
            raise NotYetEligible(
                f"Lottery {lottery.id} sale window ends at {lottery.end_time}, now is {now}"
            )
        if lottery.enforce_min_participants and sold_count < lottery.min_participants:
            raise NotYetEligible(
                f"Lottery {lottery.id} sold {sold_count} tickets, "
                f"needs {lottery.min_participants} to draw"
            )

    @staticmethod
    def ensure_unwindable(lottery: Lottery, now: int) -> None:
        """
        退款 / 退回獎品的前置條件：未開獎，且 end_time + grace_period < now
        """
        LotteryStateMachine.ensure_unresolved(lottery)
        deadline = lottery.end_time + lottery.grace_period
        if not deadline < now:
            raise NotYetEligible(
                f"Lottery {lottery.id} can be unwound after {deadline}, now is {now}"
            )

    # ============ Transitions ============

    @staticmethod
    def resolve(lottery: Lottery, winning_number: int) -> None:
        """OPEN -> RESOLVED"""
        LotteryStateMachine.ensure_not_cancelled(lottery)
        LotteryStateMachine.ensure_unresolved(lottery)
        if not 0 <= winning_number <= lottery.number_range:
            raise InvalidDraw(
                f"Draw {winning_number} is outside [0, {lottery.number_range}]"
            )
        lottery.winning_number = winning_number
        logger.info(f"Lottery {lottery.id}: OPEN -> RESOLVED (winning number {winning_number})")

    @staticmethod
    def cancel(lottery: Lottery) -> bool:
        """
        翻轉 cancelled 旗標（黏著，可重複呼叫）

        返回：
            True 如果這次呼叫才把彩券轉成 CANCELLED，False 如果原本就已取消
        """
        LotteryStateMachine.ensure_unresolved(lottery)
        if lottery.cancelled:
            return False
        lottery.cancelled = True
        logger.info(f"Lottery {lottery.id}: OPEN -> CANCELLED")
        return True
