"""
Audit trail for delegation and borrow operations.

Every JSONL line carries an HMAC-SHA256 over the previous line's hash and its
own canonical payload. Editing, dropping or reordering a line breaks the chain
on the next read.

Addresses (token, delegator, delegatee) are stored in normalized form, so
filters match regardless of how a caller spells an address.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import secrets
import threading
import time
from collections import Counter
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

from .storage import DEBTPERMIT_DIR, SECRETS_DIR, ensure_private_dir, ensure_private_file
from .typed_data import normalize_address


DEFAULT_AUDIT_PATH = DEBTPERMIT_DIR / "audit.jsonl"
DEFAULT_AUDIT_KEY_PATH = SECRETS_DIR / "audit_hmac.key"
AUDIT_KEY_ENV = "DEBTPERMIT_AUDIT_HMAC_KEY"
AUDIT_PATH_ENV = "DEBTPERMIT_AUDIT_PATH"
AUDIT_KEY_PATH_ENV = "DEBTPERMIT_AUDIT_KEY_PATH"

ADDRESS_FIELDS = ("token", "delegator", "delegatee")
CHAIN_FIELDS = frozenset({"prev_hash", "event_hash"})


class EventType(str, Enum):
    DELEGATION_PERMITTED = "delegation_permitted"
    DELEGATION_REJECTED = "delegation_rejected"
    DELEGATION_APPROVED = "delegation_approved"
    ALLOWANCE_CONSUMED = "allowance_consumed"
    ALLOWANCE_DENIED = "allowance_denied"
    DEBT_MINTED = "debt_minted"
    DEBT_BURNED = "debt_burned"


@dataclass
class AuditEvent:
    """A single audit trail entry."""

    event_type: str
    timestamp: float
    token: Optional[str] = None
    delegator: Optional[str] = None
    delegatee: Optional[str] = None
    amount: Optional[str] = None
    nonce: Optional[int] = None
    success: bool = True
    reason: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    prev_hash: Optional[str] = None
    event_hash: Optional[str] = None

    def to_json(self) -> str:
        d = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(d, separators=(",", ":"))

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> AuditEvent:
        return cls(**{k: v for k, v in record.items() if k in cls.__dataclass_fields__})

    def matches(self, event_type: Optional[EventType] = None, **addresses: str) -> bool:
        if event_type is not None and self.event_type != event_type.value:
            return False
        return all(getattr(self, field) == address for field, address in addresses.items())


def _load_key(key_path: Path) -> bytes:
    env_key = os.getenv(AUDIT_KEY_ENV)
    if env_key:
        return env_key.encode()
    stored = key_path.read_bytes().strip()
    if stored:
        return stored
    key = secrets.token_hex(32).encode()
    key_path.write_bytes(key)
    ensure_private_file(key_path)
    return key


def _address_filters(**addresses: Optional[str]) -> dict[str, str]:
    return {
        field: normalize_address(address)
        for field, address in addresses.items()
        if address is not None
    }


class AuditTrail:
    """Tamper-evident append-only audit log.

    One trail can be shared by several tokens and threads: appends and reads
    are serialized, and each append chains onto the line written before it.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        key_path: Optional[Path] = None,
    ):
        self.path = path or DEFAULT_AUDIT_PATH
        self.key_path = key_path or DEFAULT_AUDIT_KEY_PATH

        for file_path in (self.path, self.key_path):
            ensure_private_dir(file_path.parent)
            ensure_private_file(file_path)

        self._hmac_key = _load_key(self.key_path)
        self._lock = threading.Lock()
        self._head = self._tail_hash()

    def _tail_hash(self) -> str:
        last_line = ""
        with open(self.path, "r") as f:
            for line in f:
                if line.strip():
                    last_line = line
        if not last_line:
            return ""
        return json.loads(last_line).get("event_hash", "")

    def _chain_hash(self, record: dict[str, Any], prev_hash: str) -> str:
        canonical = json.dumps(record, sort_keys=True, separators=(",", ":"))
        digest = hmac.new(self._hmac_key, f"{prev_hash}|{canonical}".encode(), hashlib.sha256)
        return digest.hexdigest()

    def log(
        self,
        event_type: EventType,
        token: Optional[str] = None,
        delegator: Optional[str] = None,
        delegatee: Optional[str] = None,
        amount: Optional[int] = None,
        nonce: Optional[int] = None,
        success: bool = True,
        reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        addresses = _address_filters(token=token, delegator=delegator, delegatee=delegatee)
        fields = {
            **addresses,
            # uint256 amounts overflow JSON number precision in most readers.
            "amount": None if amount is None else str(amount),
            "nonce": nonce,
            "success": success,
            "reason": reason,
            "details": details,
        }

        with self._lock:
            record = {"event_type": event_type.value, "timestamp": time.time()}
            record.update((k, v) for k, v in fields.items() if v is not None)
            event_hash = self._chain_hash(record, self._head)
            event = AuditEvent.from_record(
                {**record, "prev_hash": self._head or None, "event_hash": event_hash}
            )
            with open(self.path, "a") as f:
                f.write(event.to_json() + "\n")
                f.flush()
                os.fsync(f.fileno())
            self._head = event_hash
        return event

    def _verified_events(self) -> Iterator[AuditEvent]:
        expected_prev = ""
        with open(self.path, "r") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                raw = json.loads(line)
                prev_hash = raw.get("prev_hash") or ""
                if prev_hash != expected_prev:
                    raise RuntimeError(
                        f"Audit chain broken: previous hash mismatch at line {lineno}"
                    )
                record = {k: v for k, v in raw.items() if k not in CHAIN_FIELDS}
                event_hash = raw.get("event_hash") or ""
                if not hmac.compare_digest(self._chain_hash(record, prev_hash), event_hash):
                    raise RuntimeError(
                        f"Audit chain broken: event hash mismatch at line {lineno}"
                    )
                expected_prev = event_hash
                yield AuditEvent.from_record(raw)

    def read_events(
        self,
        token: Optional[str] = None,
        delegator: Optional[str] = None,
        delegatee: Optional[str] = None,
        event_type: Optional[EventType] = None,
        limit: Optional[int] = 100,
    ) -> list[AuditEvent]:
        """Verify the whole chain, then return the last ``limit`` matching events.

        Raises ``RuntimeError`` if any line fails verification, even one the
        filters would have skipped.
        """
        addresses = _address_filters(token=token, delegator=delegator, delegatee=delegatee)
        with self._lock:
            events = [e for e in self._verified_events() if e.matches(event_type, **addresses)]
        return events if limit is None else events[-limit:]

    def summary(self, token: Optional[str] = None, delegator: Optional[str] = None) -> dict:
        events = self.read_events(token=token, delegator=delegator, limit=None)
        rejected = [e for e in events if not e.success]
        return {
            "total_events": len(events),
            "by_type": dict(Counter(e.event_type for e in events)),
            "failures": len(rejected),
            "rejections_by_reason": dict(Counter(e.reason or "UNKNOWN" for e in rejected)),
            "borrowed": str(sum(
                int(e.amount) for e in events if e.event_type == EventType.DEBT_MINTED.value
            )),
            "repaid": str(sum(
                int(e.amount) for e in events if e.event_type == EventType.DEBT_BURNED.value
            )),
        }
