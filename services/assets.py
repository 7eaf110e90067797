"""
Value containers and prize handles moved in and out of the escrow.

Balance is the fungible side: value only ever moves between containers
(split/join), so a purchase or payout can never create or destroy value.
PrizeAsset is the opaque non-fungible side; the escrow stores and hands it
back without looking inside.
"""
from dataclasses import dataclass, field
from typing import Any, Dict


class Balance:
    """A fungible amount that can be split and joined but never minted."""

    def __init__(self, value: int = 0):
        if value < 0:
            raise ValueError(f"Balance cannot be negative, got {value}")
        self._value = int(value)

    @classmethod
    def zero(cls) -> "Balance":
        return cls(0)

    @property
    def value(self) -> int:
        return self._value

    def value_of(self) -> int:
        return self._value

    def split(self, amount: int) -> "Balance":
        """Take `amount` out of this container into a new one."""
        if amount < 0:
            raise ValueError(f"Cannot split a negative amount: {amount}")
        if amount > self._value:
            raise ValueError(f"Cannot split {amount} from a balance of {self._value}")
        self._value -= amount
        return Balance(amount)

    def join(self, other: "Balance") -> "Balance":
        """Absorb `other` entirely; `other` is left empty."""
        if other is self:
            raise ValueError("Cannot join a balance with itself")
        self._value += other._value
        other._value = 0
        return self

    def __eq__(self, other):
        if not isinstance(other, Balance):
            return NotImplemented
        return self._value == other._value

    def __repr__(self):
        return f"Balance({self._value})"


@dataclass(frozen=True)
class PrizeAsset:
    id: str
    payload: Dict[str, Any] = field(default_factory=dict)
