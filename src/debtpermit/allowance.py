"""Borrow allowances granted by delegators to delegatees."""

from __future__ import annotations

from .errors import InsufficientAllowanceError
from .typed_data import normalize_address, validate_uint256


class AllowanceLedger:
    """
    Tracks how much each delegatee may still borrow on a delegator's behalf.

    Authorization overwrites an entry (``set_absolute``); borrowing draws it
    down (``consume``). The two are kept apart on purpose: a new permit is
    never added on top of what is left.
    """

    def __init__(self):
        self._allowances: dict[tuple[str, str], int] = {}

    def _key(self, delegator: str, delegatee: str) -> tuple[str, str]:
        return normalize_address(delegator), normalize_address(delegatee)

    def get(self, delegator: str, delegatee: str) -> int:
        return self._allowances.get(self._key(delegator, delegatee), 0)

    def set_absolute(self, delegator: str, delegatee: str, amount: int) -> None:
        validate_uint256(amount, "amount")
        self._allowances[self._key(delegator, delegatee)] = amount

    def consume(self, delegator: str, delegatee: str, amount: int) -> int:
        """Decrease the allowance by ``amount`` and return what remains."""
        validate_uint256(amount, "amount")
        key = self._key(delegator, delegatee)
        current = self._allowances.get(key, 0)
        if amount > current:
            raise InsufficientAllowanceError(key[0], key[1], amount, current)
        self._allowances[key] = current - amount
        return current - amount
