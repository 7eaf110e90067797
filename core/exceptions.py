"""
自定義異常類別

集中管理所有彩券託管的業務邏輯異常，方便 API 層統一處理

所有異常都會讓整個操作 rollback，不會留下部分修改
"""


class LotteryException(Exception):
    """所有彩券異常的基類"""
    pass


# ============ 建立相關異常 ============

class InvalidConfiguration(LotteryException):
    """建立參數不合法（號碼範圍、最少參與人數、時間順序）"""
    pass


# ============ 權限相關異常 ============

class AuthorizationMismatch(LotteryException):
    """憑證（Capability / Ticket）不屬於這個彩券，或呈交者不是持有人"""
    pass


# ============ 狀態相關異常 ============

class AlreadyResolved(LotteryException):
    """彩券已開獎，無法執行此操作"""
    def __init__(self, lottery_id):
        self.lottery_id = lottery_id
        super().__init__(f"Lottery {lottery_id} is already resolved")


class AlreadyCancelled(LotteryException):
    """彩券已取消，無法執行此操作"""
    def __init__(self, lottery_id):
        self.lottery_id = lottery_id
        super().__init__(f"Lottery {lottery_id} is cancelled")


class NotYetEligible(LotteryException):
    """時間條件未滿足（銷售期未結束、寬限期未過、尚未開賣）"""
    pass


class SalesClosed(NotYetEligible):
    """銷售期已結束，不再接受購買"""
    pass


# ============ 購買相關異常 ============

class InsufficientPayment(LotteryException):
    """付款金額低於票價"""
    def __init__(self, paid, price):
        self.paid = paid
        self.price = price
        super().__init__(f"Payment {paid} is below ticket price {price}")


class NumberUnavailable(LotteryException):
    """號碼超出範圍或已售出"""
    def __init__(self, ticket_number, reason):
        self.ticket_number = ticket_number
        super().__init__(f"Ticket number {ticket_number} unavailable: {reason}")


# ============ 領獎相關異常 ============

class NothingToClaim(LotteryException):
    """沒有獎品、尚未開獎，或不是中獎號碼"""
    pass


class InvalidDraw(LotteryException):
    """亂數來源回傳了範圍外的號碼"""
    pass


# ============ 資料相關異常 ============

class RecordNotFound(LotteryException):
    """找不到彩券、憑證，或號碼不在已售集合中"""
    pass


class ConcurrentModification(LotteryException):
    """同一筆彩券被其他 transaction 搶先修改（版本衝突）"""
    pass
