"""
並發控制工具

同一筆彩券可能同時被許多呼叫者操作，這裡提供兩層鎖：

1. record_serialized：同一個 process 內，以彩券 id 為單位串行化操作
   （每筆彩券一把鎖，相當於 actor-per-record）
2. with_lottery_lock：Database-level 的行級鎖（SELECT ... FOR UPDATE），
   多個 process 共用同一個 PostgreSQL 時生效

再加上 Lottery.version 的樂觀鎖與 sold_numbers 的主鍵，
兩個人搶買同一個號碼時只會有一個成功
"""
from functools import wraps
from uuid import UUID
import threading
import weakref

from sqlalchemy.orm import Session, Query

from models import Lottery

_registry_lock = threading.Lock()
# 沒有人持有時自動移除，registry 不會隨彩券數量無限成長
_record_locks: "weakref.WeakValueDictionary[UUID, _RecordLock]" = weakref.WeakValueDictionary()


class _RecordLock:
    """包一層 threading.Lock（原生 lock 無法被 weakref 引用）"""

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()


def _lock_for(lottery_id: UUID) -> _RecordLock:
    if not isinstance(lottery_id, UUID):
        lottery_id = UUID(str(lottery_id))
    with _registry_lock:
        lock = _record_locks.get(lottery_id)
        if lock is None:
            lock = _RecordLock()
            _record_locks[lottery_id] = lock
        return lock


def record_serialized(func):
    """
    以彩券為單位串行化的 decorator

    使用方式：
        @staticmethod
        @record_serialized
        @transactional
        def buy(db: Session, lottery_id: UUID, ...):
            ...

    注意：
        - 必須放在 @transactional 外層，鎖要涵蓋 commit
        - 第二個參數（或 kwargs['lottery_id']）必須是彩券 UUID
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        lottery_id = kwargs.get('lottery_id')
        if lottery_id is None:
            if len(args) < 2:
                raise ValueError(
                    f"@record_serialized requires 'lottery_id' as second argument of {func.__name__}"
                )
            lottery_id = args[1]

        with _lock_for(lottery_id):
            return func(*args, **kwargs)

    return wrapper


def with_lottery_lock(lottery_id: UUID, db: Session) -> Query:
    """
    鎖定一筆 Lottery（行級鎖）

    範例：
        lottery = with_lottery_lock(lottery_id, db).first()
        if not lottery:
            raise RecordNotFound(...)

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - SQLite 不支援 FOR UPDATE，會被忽略（由 record_serialized 負責）
        - 必須在 transaction 內使用
        - populate_existing：鎖定後一定以資料庫中的最新值覆蓋 session 內的物件
    """
    return db.query(Lottery).filter(
        Lottery.id == lottery_id
    ).populate_existing().with_for_update(nowait=False)
