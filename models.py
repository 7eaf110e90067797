"""
資料模型

- Lottery：共享的彩券紀錄（狀態機本體）
- SoldNumber：已售號碼集合，(lottery_id, number) 為主鍵，天生不可重複
- Capability：提款憑證，每張彩券建立時發行一張，永不補發
- Ticket：購票憑證，每次購買發行一張
- EventLog：每次狀態轉換的事件紀錄
"""
import enum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, BigInteger, Boolean, DateTime, JSON, ForeignKey, Uuid, func
)

from database import Base


class LotteryState(str, enum.Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
    PRIZE_CLAIMED = "PRIZE_CLAIMED"
    CANCELLED = "CANCELLED"
    UNWOUND = "UNWOUND"


class Lottery(Base):
    __tablename__ = "lotteries"

    id = Column(Uuid, primary_key=True, default=uuid4)

    # 獎品：只保存識別碼與不透明內容，從不解讀
    prize_id = Column(String(128), nullable=True)
    prize_payload = Column(JSON, nullable=True)

    min_participants = Column(Integer, nullable=False)
    ticket_price = Column(BigInteger, nullable=False)
    proceeds = Column(BigInteger, nullable=False, default=0)
    number_range = Column(BigInteger, nullable=False)
    winning_number = Column(BigInteger, nullable=True)

    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=False)
    grace_period = Column(BigInteger, nullable=False)

    return_change = Column(Boolean, nullable=False, default=True)
    enforce_min_participants = Column(Boolean, nullable=False, default=False)

    cancelled = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    __mapper_args__ = {"version_id_col": version}

    @property
    def has_prize(self) -> bool:
        return self.prize_id is not None

    @property
    def is_resolved(self) -> bool:
        return self.winning_number is not None


class SoldNumber(Base):
    __tablename__ = "sold_numbers"

    lottery_id = Column(Uuid, ForeignKey("lotteries.id"), primary_key=True)
    number = Column(BigInteger, primary_key=True, autoincrement=False)


class Capability(Base):
    __tablename__ = "capabilities"

    id = Column(Uuid, primary_key=True, default=uuid4)
    lottery_id = Column(Uuid, ForeignKey("lotteries.id"), nullable=False, unique=True)
    owner = Column(String(128), nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Uuid, primary_key=True, default=uuid4)
    lottery_id = Column(Uuid, ForeignKey("lotteries.id"), nullable=False, index=True)
    ticket_number = Column(BigInteger, nullable=False)
    owner = Column(String(128), nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lottery_id = Column(Uuid, nullable=False, index=True)
    event_type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, server_default=func.now())
