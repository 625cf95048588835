"""
debtpermit — Delegated borrowing for debt tokens.

Signature-based credit delegation:
Delegator signs an EIP-712 permit → Delegatee borrows against it → Full audit trail.
"""

__version__ = "0.1.0"

from .typed_data import (
    EIP712_REVISION,
    MAX_UINT256,
    ZERO_ADDRESS,
    DelegationSignature,
    EIP712Domain,
    PermitDelegation,
    build_permit_delegation_params,
    hash_domain,
    hash_permit_delegation,
    sign_permit_delegation,
    signing_digest,
)
from .signature import recover_signer
from .nonces import NonceRegistry
from .allowance import AllowanceLedger
from .config import DebtKind, TokenConfig
from .debt_token import DebtToken
from .audit import AuditTrail, EventType
from .errors import (
    DebtPermitError,
    DelegationError,
    InsufficientAllowanceError,
    InsufficientDebtError,
    InvalidDelegatorError,
    InvalidExpirationError,
    InvalidNonceError,
    InvalidSignatureError,
)

__all__ = [
    "EIP712_REVISION", "MAX_UINT256", "ZERO_ADDRESS",
    "EIP712Domain", "PermitDelegation", "DelegationSignature",
    "hash_domain", "hash_permit_delegation", "signing_digest",
    "build_permit_delegation_params", "sign_permit_delegation", "recover_signer",
    "NonceRegistry", "AllowanceLedger", "DebtKind", "TokenConfig", "DebtToken",
    "AuditTrail", "EventType",
    "DebtPermitError", "DelegationError", "InvalidDelegatorError", "InvalidExpirationError",
    "InvalidSignatureError", "InvalidNonceError", "InsufficientAllowanceError",
    "InsufficientDebtError",
]
