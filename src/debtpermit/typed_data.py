"""
EIP-712 encoding for delegation permits.

A PermitDelegation is the structured message a delegator signs off-chain to
let a delegatee borrow on its behalf. Hashing follows EIP-712 exactly so
signatures produced by any conformant signer (eth_account, ethers, wallets)
verify against ``signing_digest``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from eth_abi import encode
from eth_account import Account
from eth_utils import keccak, to_checksum_address


EIP712_REVISION = "1"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1

DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
PERMIT_DELEGATION_TYPE = (
    "PermitDelegation(address delegator,address delegatee,uint256 value,"
    "uint256 nonce,uint256 deadline)"
)
DOMAIN_TYPEHASH = keccak(text=DOMAIN_TYPE)
PERMIT_DELEGATION_TYPEHASH = keccak(text=PERMIT_DELEGATION_TYPE)

PERMIT_DELEGATION_FIELDS = [
    {"name": "delegator", "type": "address"},
    {"name": "delegatee", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def normalize_address(address: str) -> str:
    """Normalize Ethereum addresses to lower-case hex."""
    if not isinstance(address, str):
        raise ValueError(f"Invalid Ethereum address: {address!r}")
    candidate = address.strip()
    if candidate.startswith("0X"):
        candidate = "0x" + candidate[2:]
    if not _ADDRESS_RE.match(candidate):
        raise ValueError(f"Invalid Ethereum address: {address}")
    return "0x" + candidate[2:].lower()


def is_zero_address(address: str) -> bool:
    return normalize_address(address) == ZERO_ADDRESS


def validate_uint256(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"{field_name} must fit in uint256")
    return value


@dataclass(frozen=True)
class EIP712Domain:
    """Domain descriptor binding signatures to one token on one chain."""

    name: str
    chain_id: int
    verifying_contract: str
    version: str = EIP712_REVISION

    def __post_init__(self):
        object.__setattr__(self, "verifying_contract", normalize_address(self.verifying_contract))
        validate_uint256(self.chain_id, "chain_id")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": to_checksum_address(self.verifying_contract),
        }


@dataclass(frozen=True)
class PermitDelegation:
    """The message a delegator signs. Never persisted."""

    delegator: str
    delegatee: str
    value: int
    nonce: int
    deadline: int

    def __post_init__(self):
        object.__setattr__(self, "delegator", normalize_address(self.delegator))
        object.__setattr__(self, "delegatee", normalize_address(self.delegatee))
        validate_uint256(self.value, "value")
        validate_uint256(self.nonce, "nonce")
        validate_uint256(self.deadline, "deadline")

    def to_dict(self) -> dict[str, Any]:
        return {
            "delegator": to_checksum_address(self.delegator),
            "delegatee": to_checksum_address(self.delegatee),
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


@dataclass(frozen=True)
class DelegationSignature:
    v: int
    r: int
    s: int

    def to_dict(self) -> dict[str, Any]:
        return {"v": self.v, "r": _hex32(self.r), "s": _hex32(self.s)}

    @classmethod
    def from_dict(cls, d: dict) -> DelegationSignature:
        return cls(v=int(d["v"]), r=_parse_int(d["r"]), s=_parse_int(d["s"]))


def hash_domain(domain: EIP712Domain) -> bytes:
    """Domain separator: hashStruct(EIP712Domain)."""
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                DOMAIN_TYPEHASH,
                keccak(text=domain.name),
                keccak(text=domain.version),
                domain.chain_id,
                domain.verifying_contract,
            ],
        )
    )


def hash_permit_delegation(message: PermitDelegation) -> bytes:
    """hashStruct(PermitDelegation), fields in declaration order."""
    return keccak(
        encode(
            ["bytes32", "address", "address", "uint256", "uint256", "uint256"],
            [
                PERMIT_DELEGATION_TYPEHASH,
                message.delegator,
                message.delegatee,
                message.value,
                message.nonce,
                message.deadline,
            ],
        )
    )


def signing_digest(domain: EIP712Domain, message: PermitDelegation) -> bytes:
    """Final EIP-712 digest: keccak(0x19 0x01 || domainSeparator || structHash)."""
    return keccak(b"\x19\x01" + hash_domain(domain) + hash_permit_delegation(message))


def build_permit_delegation_params(
    domain: EIP712Domain, message: PermitDelegation
) -> dict[str, Any]:
    """Typed data for external signers (wallets, eth_account)."""
    return {
        "types": {"PermitDelegation": list(PERMIT_DELEGATION_FIELDS)},
        "primaryType": "PermitDelegation",
        "domain": domain.to_dict(),
        "message": message.to_dict(),
    }


def sign_permit_delegation(
    private_key: str | bytes, domain: EIP712Domain, message: PermitDelegation
) -> DelegationSignature:
    """Sign a permit the way an off-chain client would."""
    typed_data = build_permit_delegation_params(domain, message)
    signed = Account.sign_typed_data(
        private_key,
        typed_data["domain"],
        typed_data["types"],
        typed_data["message"],
    )
    return DelegationSignature(v=signed.v, r=signed.r, s=signed.s)


def _hex32(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def _parse_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)
