"""Tests for the sequential nonce registry."""

import pytest
from eth_account import Account

from debtpermit.errors import InvalidNonceError
from debtpermit.nonces import NonceRegistry


@pytest.fixture
def account():
    return Account.create().address


class TestNonceRegistry:
    def test_starts_at_zero(self, account):
        assert NonceRegistry().current_nonce(account) == 0

    def test_consume_advances_by_one(self, account):
        registry = NonceRegistry()
        assert registry.consume(account, 0) == 1
        assert registry.consume(account, 1) == 2
        assert registry.current_nonce(account) == 2

    def test_stale_nonce_rejected(self, account):
        registry = NonceRegistry()
        registry.consume(account, 0)
        with pytest.raises(InvalidNonceError) as exc:
            registry.consume(account, 0)
        assert exc.value.code == "INVALID_NONCE"
        assert exc.value.current == 1
        assert registry.current_nonce(account) == 1

    def test_skipped_nonce_rejected(self, account):
        registry = NonceRegistry()
        with pytest.raises(InvalidNonceError):
            registry.consume(account, 1)
        assert registry.current_nonce(account) == 0

    def test_accounts_independent(self, account):
        registry = NonceRegistry()
        other = Account.create().address
        registry.consume(account, 0)
        assert registry.current_nonce(other) == 0

    def test_address_case_shares_counter(self, account):
        registry = NonceRegistry()
        registry.consume(account.lower(), 0)
        assert registry.current_nonce(account) == 1

    def test_spent_fingerprints(self, account):
        registry = NonceRegistry()
        assert not registry.is_spent(account, "abc")
        registry.mark_spent(account, "abc")
        assert registry.is_spent(account.lower(), "abc")
        assert not registry.is_spent(Account.create().address, "abc")

    def test_spent_fingerprints_bounded_per_account(self, account):
        registry = NonceRegistry(spent_window=3)
        for i in range(5):
            registry.mark_spent(account, f"sig-{i}")

        assert not registry.is_spent(account, "sig-0")
        assert not registry.is_spent(account, "sig-1")
        assert all(registry.is_spent(account, f"sig-{i}") for i in range(2, 5))

    def test_spent_window_must_be_positive(self):
        with pytest.raises(ValueError):
            NonceRegistry(spent_window=0)
