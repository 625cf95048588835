"""
Per-account nonce counters for replay protection.

Policy is strict sequential nonces: each permit embeds the nonce it expects
to consume, and the counter only ever moves forward by one.

Fingerprints of the signatures that consumed nonces are kept for the most
recent ``spent_window`` nonces of each account, so memory grows with the
number of accounts rather than the number of permits. A replay older than
the window no longer matches a fingerprint; it still fails recovery against
the current nonce and is rejected as an invalid signature.
"""

from __future__ import annotations

from collections import deque

from .errors import InvalidNonceError
from .typed_data import normalize_address


SPENT_WINDOW = 64


class NonceRegistry:
    """Mutable mapping: account -> next nonce to consume."""

    def __init__(self, spent_window: int = SPENT_WINDOW):
        if spent_window < 1:
            raise ValueError("spent_window must be >= 1")
        self.spent_window = spent_window
        self._nonces: dict[str, int] = {}
        self._spent: dict[str, deque[str]] = {}

    def current_nonce(self, account: str) -> int:
        return self._nonces.get(normalize_address(account), 0)

    def consume(self, account: str, expected_nonce: int) -> int:
        """Advance the counter if ``expected_nonce`` is current; return the new value."""
        key = normalize_address(account)
        current = self._nonces.get(key, 0)
        if expected_nonce != current:
            raise InvalidNonceError(key, expected_nonce, current)
        self._nonces[key] = current + 1
        return current + 1

    def mark_spent(self, account: str, fingerprint: str) -> None:
        """Remember a signature that consumed one of ``account``'s nonces."""
        key = normalize_address(account)
        if key not in self._spent:
            self._spent[key] = deque(maxlen=self.spent_window)
        self._spent[key].append(fingerprint)

    def is_spent(self, account: str, fingerprint: str) -> bool:
        return fingerprint in self._spent.get(normalize_address(account), ())
