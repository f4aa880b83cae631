"""Exact integer money values in a currency's minor unit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class CurrencyMismatchError(ValueError):
    """Raised when arithmetic mixes two different currencies."""


def normalize_currency(value: Any) -> str:
    """Return the canonical upper-case code for a currency."""
    if not isinstance(value, str) or value.strip() == "":
        raise ValueError(f"Invalid currency code: {value!r}")
    return value.strip().upper()


@dataclass(frozen=True)
class Money:
    """An amount in minor units (for example cents) of a single currency."""

    amount: int
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"Money amount must be an integer number of minor units, got {self.amount!r}")
        object.__setattr__(self, "currency", normalize_currency(self.currency))

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(0, currency)

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"Cannot combine {self.currency} with {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def compare(self, other: "Money") -> int:
        """Return -1, 0 or 1 as this value is below, equal to or above ``other``."""
        self._check_currency(other)
        return (self.amount > other.amount) - (self.amount < other.amount)

    def __lt__(self, other: "Money") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "Money") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "Money") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "Money") -> bool:
        return self.compare(other) >= 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
