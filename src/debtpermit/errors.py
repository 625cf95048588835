"""
debtpermit error types.

Every failure carries a stable string ``code`` so callers can tell the
reasons apart without parsing messages (re-fetch nonce, re-sign, abort, ...).
"""


class DebtPermitError(Exception):
    """Base error for all debtpermit operations."""

    code = "DEBTPERMIT_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)


# Delegation errors
class DelegationError(DebtPermitError):
    """Base error for rejected delegation permits."""
    pass


class InvalidDelegatorError(DelegationError):
    """Delegator is the zero address."""

    code = "INVALID_DELEGATOR"


class InvalidExpirationError(DelegationError):
    """Permit deadline is in the past."""

    code = "INVALID_EXPIRATION"

    def __init__(self, deadline: int, now: int):
        self.deadline = deadline
        self.now = now
        super().__init__(f"{self.code}: deadline {deadline} is before {now}")


class InvalidSignatureError(DelegationError):
    """Signature does not recover to the claimed delegator."""

    code = "INVALID_SIGNATURE"


class InvalidNonceError(DelegationError):
    """Nonce is stale (already consumed) or does not match the stored counter."""

    code = "INVALID_NONCE"

    def __init__(self, account: str, expected: int, current: int):
        self.account = account
        self.expected = expected
        self.current = current
        super().__init__(
            f"{self.code}: nonce {expected} for {account} does not match current {current}"
        )


# Allowance errors
class AllowanceError(DebtPermitError):
    """Base error for borrow allowance violations."""
    pass


class InsufficientAllowanceError(AllowanceError):
    """Consumption would drive the allowance below zero."""

    code = "BORROW_ALLOWANCE_NOT_ENOUGH"

    def __init__(self, delegator: str, delegatee: str, amount: int, allowance: int):
        self.delegator = delegator
        self.delegatee = delegatee
        self.amount = amount
        self.allowance = allowance
        super().__init__(
            f"{self.code}: {delegatee} cannot borrow {amount} on behalf of "
            f"{delegator} (allowance {allowance})"
        )


# Ledger errors
class LedgerError(DebtPermitError):
    """Base error for debt ledger issues."""
    pass


class InsufficientDebtError(LedgerError):
    """Repayment exceeds the outstanding debt."""

    code = "NOT_ENOUGH_DEBT"

    def __init__(self, account: str, amount: int, balance: int):
        self.account = account
        self.amount = amount
        self.balance = balance
        super().__init__(f"{self.code}: cannot burn {amount} from {account} (debt {balance})")
