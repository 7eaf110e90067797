"""
亂數來源（開獎用）

draw(upper_bound) 回傳 [0, upper_bound] 之間的整數（含上界）
"""
import random


class SystemRandomOracle:
    """使用作業系統亂數源的 oracle"""

    def __init__(self):
        self._rng = random.SystemRandom()

    def draw(self, upper_bound: int) -> int:
        return self._rng.randint(0, upper_bound)


class FixedOracle:
    """固定結果的 oracle（測試用），記錄每次被要求的上界"""

    def __init__(self, number: int):
        self.number = number
        self.requested_bounds = []

    def draw(self, upper_bound: int) -> int:
        self.requested_bounds.append(upper_bound)
        return self.number
