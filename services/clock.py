"""
時間來源

引擎只讀取時間，從不推進時間；每次操作由呼叫者提供當下時間
"""
import time


class SystemClock:
    """以秒為單位的系統時鐘"""

    def now(self) -> int:
        return int(time.time())


class FixedClock:
    """
    固定時鐘（測試與重播用）

    範例：
        clock = FixedClock(150)
        clock.now()        -> 150
        clock.advance(100)
        clock.now()        -> 250
    """

    def __init__(self, current: int):
        self.current = current

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self.current += seconds
