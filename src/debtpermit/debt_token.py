"""
Debt token with delegated borrowing.

Flow of a signature-based delegation (``permit_delegation``):
1. Reject the zero delegator
2. Reject an expired deadline
3. Rebuild the PermitDelegation with the delegator's current nonce
4. Recover the signer and compare with the delegator
5. Consume the nonce, then set the allowance

The borrow path (``mint``) draws the allowance down before crediting debt.
Every state-mutating call runs under one lock, so calls are totally ordered
and each one either commits completely or changes nothing.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .allowance import AllowanceLedger
from .audit import AuditTrail, EventType
from .config import DebtKind, TokenConfig
from .errors import (
    DebtPermitError,
    InsufficientDebtError,
    InvalidDelegatorError,
    InvalidExpirationError,
    InvalidNonceError,
    InvalidSignatureError,
)
from .nonces import NonceRegistry
from .signature import recover_signer, signature_fingerprint
from .typed_data import (
    EIP712_REVISION,
    EIP712Domain,
    PermitDelegation,
    ZERO_ADDRESS,
    hash_domain,
    normalize_address,
    signing_digest,
    validate_uint256,
)

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(time.time())


class DebtToken:
    """Debt ledger for one asset, with signature-based borrow delegation."""

    EIP712_REVISION = EIP712_REVISION

    def __init__(
        self,
        name: str,
        chain_id: int,
        address: str,
        *,
        symbol: Optional[str] = None,
        decimals: int = 18,
        clock: Optional[Callable[[], int]] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self.name = name
        self.symbol = symbol or name
        self.decimals = decimals
        self.address = normalize_address(address)
        self.domain = EIP712Domain(
            name=name,
            chain_id=chain_id,
            verifying_contract=self.address,
            version=EIP712_REVISION,
        )
        self._domain_separator = hash_domain(self.domain)
        self._clock = clock or _now
        self.audit = audit

        self._nonces = NonceRegistry()
        self._allowances = AllowanceLedger()
        self._balances: dict[str, int] = {}
        self._total_supply = 0
        self._lock = threading.Lock()

    @classmethod
    def for_asset(
        cls,
        kind: DebtKind,
        symbol: str,
        chain_id: int,
        address: str,
        **kwargs,
    ) -> DebtToken:
        kind = DebtKind(kind)
        return cls(
            kind.token_name(symbol),
            chain_id,
            address,
            symbol=kind.token_symbol(symbol),
            **kwargs,
        )

    @classmethod
    def from_config(cls, config: TokenConfig, **kwargs) -> DebtToken:
        return cls.for_asset(
            config.kind,
            config.symbol,
            config.chain_id,
            config.verifying_contract,
            decimals=config.decimals,
            **kwargs,
        )

    # ── Read-only views ───────────────────────────────────────────

    @property
    def DOMAIN_SEPARATOR(self) -> bytes:
        return self._domain_separator

    def domain_separator_hex(self) -> str:
        return "0x" + self._domain_separator.hex()

    def nonces(self, account: str) -> int:
        return self._nonces.current_nonce(account)

    def borrow_allowance(self, delegator: str, delegatee: str) -> int:
        return self._allowances.get(delegator, delegatee)

    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_address(account), 0)

    @property
    def total_supply(self) -> int:
        return self._total_supply

    # ── Delegation ────────────────────────────────────────────────

    def permit_delegation(
        self,
        delegator: str,
        delegatee: str,
        value: int,
        deadline: int,
        v: int,
        r: int,
        s: int,
        *,
        nonce: Optional[int] = None,
    ) -> None:
        """Set ``delegatee``'s borrow allowance from a delegator's signature.

        ``nonce`` is optional: when given it must equal the delegator's
        current nonce. Raises a ``DelegationError`` subclass on rejection,
        leaving nonces and allowances untouched.
        """
        delegator = normalize_address(delegator)
        delegatee = normalize_address(delegatee)
        validate_uint256(value, "value")
        validate_uint256(deadline, "deadline")
        for field_name, component in (("v", v), ("r", r), ("s", s)):
            if isinstance(component, bool) or not isinstance(component, int):
                raise ValueError(f"{field_name} must be an integer")

        with self._lock:
            try:
                if delegator == ZERO_ADDRESS:
                    raise InvalidDelegatorError()

                now = self._clock()
                if now > deadline:
                    raise InvalidExpirationError(deadline, now)

                current_nonce = self._nonces.current_nonce(delegator)
                if nonce is not None and nonce != current_nonce:
                    raise InvalidNonceError(delegator, nonce, current_nonce)

                message = PermitDelegation(
                    delegator=delegator,
                    delegatee=delegatee,
                    value=value,
                    nonce=current_nonce,
                    deadline=deadline,
                )
                digest = signing_digest(self.domain, message)
                recovered = recover_signer(digest, v, r, s)
                fingerprint = signature_fingerprint(v, r, s)
                if recovered is None or normalize_address(recovered) != delegator:
                    if self._nonces.is_spent(delegator, fingerprint):
                        raise InvalidNonceError(delegator, current_nonce - 1, current_nonce)
                    raise InvalidSignatureError()

                self._nonces.consume(delegator, current_nonce)
                self._nonces.mark_spent(delegator, fingerprint)
                self._allowances.set_absolute(delegator, delegatee, value)
            except DebtPermitError as e:
                logger.warning(
                    "Delegation permit rejected (%s): %s -> %s on %s",
                    e.code, delegator, delegatee, self.symbol,
                )
                self._audit(
                    EventType.DELEGATION_REJECTED,
                    delegator=delegator,
                    delegatee=delegatee,
                    amount=value,
                    success=False,
                    reason=e.code,
                )
                raise

            logger.info(
                "Borrow allowance delegated by permit: %s -> %s, %d %s (nonce %d)",
                delegator, delegatee, value, self.symbol, current_nonce,
            )
            self._audit(
                EventType.DELEGATION_PERMITTED,
                delegator=delegator,
                delegatee=delegatee,
                amount=value,
                nonce=current_nonce,
            )

    def approve_delegation(self, caller: str, delegatee: str, amount: int) -> None:
        """Let ``caller`` set a delegatee's allowance directly, no signature."""
        caller = normalize_address(caller)
        delegatee = normalize_address(delegatee)
        validate_uint256(amount, "amount")
        with self._lock:
            self._allowances.set_absolute(caller, delegatee, amount)
            logger.info(
                "Borrow allowance delegated: %s -> %s, %d %s",
                caller, delegatee, amount, self.symbol,
            )
            self._audit(
                EventType.DELEGATION_APPROVED,
                delegator=caller,
                delegatee=delegatee,
                amount=amount,
            )

    def consume_allowance(self, delegator: str, delegatee: str, amount: int) -> int:
        """Draw down a delegatee's allowance; a self-borrow leaves it untouched.

        Returns the remaining allowance.
        """
        delegator = normalize_address(delegator)
        delegatee = normalize_address(delegatee)
        validate_uint256(amount, "amount")
        with self._lock:
            return self._consume_allowance(delegator, delegatee, amount)

    def _consume_allowance(self, delegator: str, delegatee: str, amount: int) -> int:
        if delegatee == delegator:
            return self._allowances.get(delegator, delegatee)
        try:
            remaining = self._allowances.consume(delegator, delegatee, amount)
        except DebtPermitError as e:
            logger.warning(
                "Allowance consumption denied (%s): %s -> %s, %d %s",
                e.code, delegator, delegatee, amount, self.symbol,
            )
            self._audit(
                EventType.ALLOWANCE_DENIED,
                delegator=delegator,
                delegatee=delegatee,
                amount=amount,
                success=False,
                reason=e.code,
            )
            raise

        logger.info(
            "Borrow allowance consumed: %s -> %s, %d %s (remaining %d)",
            delegator, delegatee, amount, self.symbol, remaining,
        )
        self._audit(
            EventType.ALLOWANCE_CONSUMED,
            delegator=delegator,
            delegatee=delegatee,
            amount=amount,
            details={"remaining": str(remaining)},
        )
        return remaining

    # ── Debt ledger ───────────────────────────────────────────────

    def mint(self, user: str, on_behalf_of: str, amount: int) -> int:
        """Record a borrow of ``amount`` by ``user`` against ``on_behalf_of``.

        Borrowing for someone else consumes their delegated allowance first;
        if that fails, no debt is minted. Returns the new debt balance.
        """
        user = normalize_address(user)
        on_behalf_of = normalize_address(on_behalf_of)
        validate_uint256(amount, "amount")
        if amount == 0:
            raise ValueError("amount must be > 0")

        with self._lock:
            self._consume_allowance(on_behalf_of, user, amount)
            balance = self._balances.get(on_behalf_of, 0) + amount
            self._balances[on_behalf_of] = balance
            self._total_supply += amount
            self._audit(
                EventType.DEBT_MINTED,
                delegator=on_behalf_of,
                delegatee=user,
                amount=amount,
            )
        return balance

    def burn(self, account: str, amount: int) -> int:
        """Repay ``amount`` of ``account``'s debt. Returns the new balance."""
        account = normalize_address(account)
        validate_uint256(amount, "amount")
        if amount == 0:
            raise ValueError("amount must be > 0")

        with self._lock:
            balance = self._balances.get(account, 0)
            if amount > balance:
                raise InsufficientDebtError(account, amount, balance)
            self._balances[account] = balance - amount
            self._total_supply -= amount
            self._audit(EventType.DEBT_BURNED, delegator=account, amount=amount)
        return balance - amount

    def _audit(self, event_type: EventType, **kwargs) -> None:
        # Callers hold self._lock, so the trail sees this token's events in commit order.
        if self.audit is None:
            return
        self.audit.log(event_type, token=self.address, **kwargs)
