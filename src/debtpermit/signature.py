"""ECDSA signer recovery for EIP-712 digests."""

from __future__ import annotations

import logging
from typing import Optional

from eth_account import Account

from .typed_data import ZERO_ADDRESS, normalize_address

logger = logging.getLogger(__name__)

# Order of the secp256k1 group.
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def recover_signer(digest: bytes, v: int, r: int, s: int) -> Optional[str]:
    """Recover the address that signed ``digest``, or None if there is none.

    ``v`` may be the raw recovery id (0/1) or the Ethereum form (27/28).
    """
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
        return None
    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        return None
    if not 0 < r < SECP256K1_N or not 0 < s < SECP256K1_N:
        return None

    try:
        recovered = Account._recover_hash(bytes(digest), vrs=(v, r, s))
    except Exception as e:
        logger.debug("Signature recovery failed: %s", e)
        return None

    if normalize_address(recovered) == ZERO_ADDRESS:
        return None
    return recovered


def signature_fingerprint(v: int, r: int, s: int) -> str:
    """Identity of a signature that survives s-malleation.

    (r, s, v) and (r, n - s, v ^ 1) verify the same digest, so both map to
    the same fingerprint.
    """
    low_s = min(s, SECP256K1_N - s)
    return f"{r:064x}:{low_s:064x}"
