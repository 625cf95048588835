"""Tests for tamper-evident audit trail behavior."""

import json

import pytest
from eth_account import Account

from debtpermit.audit import AuditTrail, EventType


TOKEN_A = "0x00000000000000000000000000000000000000A1"
TOKEN_B = "0x00000000000000000000000000000000000000B2"


def _trail(tmp_path):
    return AuditTrail(
        path=tmp_path / "audit.jsonl",
        key_path=tmp_path / "secret" / "audit_hmac.key",
    )


@pytest.fixture
def alice():
    return Account.create().address


@pytest.fixture
def bob():
    return Account.create().address


def test_audit_hash_chain_detects_tampering(tmp_path, alice, bob):
    trail = _trail(tmp_path)
    trail.log(EventType.DELEGATION_PERMITTED, delegator=alice, delegatee=bob, amount=333)
    trail.log(EventType.ALLOWANCE_CONSUMED, delegator=alice, delegatee=bob, amount=100)

    lines = (tmp_path / "audit.jsonl").read_text().splitlines()
    first = json.loads(lines[0])
    first["amount"] = "999999"
    lines[0] = json.dumps(first, separators=(",", ":"))
    (tmp_path / "audit.jsonl").write_text("\n".join(lines) + "\n")

    with pytest.raises(RuntimeError, match="Audit chain broken"):
        trail.read_events()


def test_dropped_line_detected(tmp_path, alice):
    trail = _trail(tmp_path)
    for amount in (1, 2, 3):
        trail.log(EventType.DEBT_MINTED, delegator=alice, amount=amount)

    lines = (tmp_path / "audit.jsonl").read_text().splitlines()
    (tmp_path / "audit.jsonl").write_text("\n".join([lines[0], lines[2]]) + "\n")

    with pytest.raises(RuntimeError, match="previous hash mismatch at line 2"):
        trail.read_events()


def test_chain_survives_reopen(tmp_path, alice):
    trail = _trail(tmp_path)
    trail.log(EventType.DELEGATION_APPROVED, delegator=alice, amount=1)

    reopened = _trail(tmp_path)
    reopened.log(EventType.DEBT_MINTED, delegator=alice, amount=1)

    events = reopened.read_events()
    assert len(events) == 2
    assert events[1].prev_hash == events[0].event_hash


def test_addresses_stored_normalized(tmp_path, alice):
    trail = _trail(tmp_path)
    event = trail.log(EventType.DEBT_BURNED, token=TOKEN_A, delegator=alice, amount=1)
    assert event.token == TOKEN_A.lower()
    assert event.delegator == alice.lower()


def test_filters_by_token_delegator_and_delegatee(tmp_path, alice, bob):
    trail = _trail(tmp_path)
    trail.log(EventType.DELEGATION_PERMITTED, token=TOKEN_A, delegator=alice, delegatee=bob, amount=5, nonce=0)
    trail.log(EventType.DELEGATION_PERMITTED, token=TOKEN_B, delegator=alice, delegatee=bob, amount=6, nonce=0)
    trail.log(EventType.DELEGATION_APPROVED, token=TOKEN_A, delegator=bob, delegatee=alice, amount=7)

    assert len(trail.read_events(delegator=alice.lower())) == 2
    assert [e.amount for e in trail.read_events(token=TOKEN_A.lower())] == ["5", "7"]
    assert [e.amount for e in trail.read_events(delegatee=alice)] == ["7"]
    assert [e.amount for e in trail.read_events(token=TOKEN_B, delegator=alice)] == ["6"]
    assert trail.read_events(token=TOKEN_B, delegatee=alice) == []


def test_bad_filter_address_rejected(tmp_path):
    with pytest.raises(ValueError):
        _trail(tmp_path).read_events(delegator="0xnope")


def test_event_type_filter_and_limit(tmp_path, alice):
    trail = _trail(tmp_path)
    for amount in range(5):
        trail.log(EventType.DEBT_MINTED, delegator=alice, amount=amount)
    trail.log(EventType.DEBT_BURNED, delegator=alice, amount=1)

    minted = trail.read_events(event_type=EventType.DEBT_MINTED, limit=2)
    assert [e.amount for e in minted] == ["3", "4"]
    assert len(trail.read_events(limit=None)) == 6


def test_summary_counts_rejections_by_reason(tmp_path, alice, bob):
    trail = _trail(tmp_path)
    trail.log(EventType.DELEGATION_PERMITTED, delegator=alice, delegatee=bob, amount=50, nonce=0)
    trail.log(EventType.DELEGATION_REJECTED, delegator=alice, success=False, reason="INVALID_NONCE")
    trail.log(EventType.DELEGATION_REJECTED, delegator=alice, success=False, reason="INVALID_NONCE")
    trail.log(EventType.DELEGATION_REJECTED, delegator=alice, success=False, reason="INVALID_EXPIRATION")
    trail.log(
        EventType.ALLOWANCE_DENIED, delegator=alice, delegatee=bob, amount=80,
        success=False, reason="BORROW_ALLOWANCE_NOT_ENOUGH",
    )
    trail.log(EventType.DEBT_MINTED, delegator=alice, delegatee=bob, amount=30)
    trail.log(EventType.DEBT_BURNED, delegator=alice, amount=10)
    trail.log(EventType.DELEGATION_PERMITTED, delegator=bob, amount=7, nonce=0)

    summary = trail.summary(delegator=alice)
    assert summary["total_events"] == 7
    assert summary["failures"] == 4
    assert summary["rejections_by_reason"] == {
        "INVALID_NONCE": 2,
        "INVALID_EXPIRATION": 1,
        "BORROW_ALLOWANCE_NOT_ENOUGH": 1,
    }
    assert summary["by_type"]["delegation_rejected"] == 3
    assert summary["borrowed"] == "30"
    assert summary["repaid"] == "10"
    assert trail.summary()["total_events"] == 8


def test_large_amounts_stored_as_strings(tmp_path):
    trail = _trail(tmp_path)
    event = trail.log(EventType.DELEGATION_PERMITTED, amount=2**256 - 1)
    assert event.amount == str(2**256 - 1)
    assert trail.summary()["borrowed"] == "0"
