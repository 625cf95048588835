"""Token configuration, with environment variable overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from .typed_data import normalize_address


DEFAULT_CHAIN_ID = 31337
DEFAULT_SYMBOL = "DAI"
DEFAULT_VERIFYING_CONTRACT = "0x0000000000000000000000000000000000000001"

SYMBOL_ENV = "DEBTPERMIT_SYMBOL"
DEBT_KIND_ENV = "DEBTPERMIT_DEBT_KIND"
CHAIN_ID_ENV = "DEBTPERMIT_CHAIN_ID"
VERIFYING_CONTRACT_ENV = "DEBTPERMIT_VERIFYING_CONTRACT"
DECIMALS_ENV = "DEBTPERMIT_DECIMALS"


class DebtKind(str, Enum):
    VARIABLE = "variable"
    STABLE = "stable"

    def token_name(self, symbol: str) -> str:
        return f"{self.value.capitalize()} debt bearing {symbol}"

    def token_symbol(self, symbol: str) -> str:
        return f"{self.value}Debt{symbol}"


@dataclass
class TokenConfig:
    """Immutable inputs of one debt token's domain."""

    symbol: str = DEFAULT_SYMBOL
    kind: DebtKind = DebtKind.VARIABLE
    chain_id: int = DEFAULT_CHAIN_ID
    verifying_contract: str = DEFAULT_VERIFYING_CONTRACT
    decimals: int = 18

    def __post_init__(self):
        self.kind = DebtKind(self.kind)
        self.verifying_contract = normalize_address(self.verifying_contract)
        if self.chain_id < 0:
            raise ValueError("chain_id must be >= 0")
        if self.decimals < 0:
            raise ValueError("decimals must be >= 0")

    @property
    def name(self) -> str:
        return self.kind.token_name(self.symbol)

    @classmethod
    def from_env(cls) -> TokenConfig:
        return cls(
            symbol=os.getenv(SYMBOL_ENV, DEFAULT_SYMBOL),
            kind=DebtKind(os.getenv(DEBT_KIND_ENV, DebtKind.VARIABLE.value).lower()),
            chain_id=int(os.getenv(CHAIN_ID_ENV, str(DEFAULT_CHAIN_ID))),
            verifying_contract=os.getenv(VERIFYING_CONTRACT_ENV, DEFAULT_VERIFYING_CONTRACT),
            decimals=int(os.getenv(DECIMALS_ENV, "18")),
        )
