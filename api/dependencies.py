"""
API 共用工具

1. 時間來源、亂數來源的 FastAPI dependency（測試時可用 dependency_overrides 替換）
2. 業務異常 -> HTTP status code 的統一對照
"""
from fastapi import HTTPException

from core.exceptions import (
    LotteryException,
    InvalidConfiguration,
    AuthorizationMismatch,
    AlreadyResolved,
    AlreadyCancelled,
    NotYetEligible,
    InsufficientPayment,
    NumberUnavailable,
    NothingToClaim,
    RecordNotFound,
    InvalidDraw,
    ConcurrentModification,
)
from services.clock import SystemClock
from services.randomness import SystemRandomOracle

_clock = SystemClock()
_oracle = SystemRandomOracle()

# 依 MRO 找第一個符合的類別，SalesClosed 會落在 NotYetEligible
STATUS_CODES = {
    InvalidConfiguration: 400,
    InsufficientPayment: 400,
    AuthorizationMismatch: 403,
    RecordNotFound: 404,
    AlreadyResolved: 409,
    AlreadyCancelled: 409,
    NotYetEligible: 409,
    NumberUnavailable: 409,
    NothingToClaim: 409,
    ConcurrentModification: 409,
    InvalidDraw: 502,
}


def get_clock():
    return _clock


def get_oracle():
    return _oracle


def to_http_exception(error: LotteryException) -> HTTPException:
    for cls in type(error).__mro__:
        if cls in STATUS_CODES:
            return HTTPException(
                status_code=STATUS_CODES[cls],
                detail={"error": type(error).__name__, "message": str(error)},
            )
    return HTTPException(status_code=400, detail={"error": type(error).__name__, "message": str(error)})
