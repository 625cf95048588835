"""
debtpermit CLI — off-chain borrow delegation tooling.

Commands:
    debtpermit domain    Print a debt token's EIP-712 domain separator
    debtpermit sign      Sign a PermitDelegation as the delegator
    debtpermit verify    Recover the signer of a signed permit
    debtpermit audit     View the audit trail
"""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path
from typing import Optional

import click
from click.core import ParameterSource
from eth_account import Account

from .audit import AUDIT_KEY_PATH_ENV, AUDIT_PATH_ENV, AuditTrail, EventType
from .config import (
    CHAIN_ID_ENV,
    DEBT_KIND_ENV,
    DECIMALS_ENV,
    DEFAULT_CHAIN_ID,
    DEFAULT_SYMBOL,
    DEFAULT_VERIFYING_CONTRACT,
    DebtKind,
    SYMBOL_ENV,
    TokenConfig,
    VERIFYING_CONTRACT_ENV,
)
from .signature import recover_signer
from .typed_data import (
    MAX_UINT256,
    DelegationSignature,
    EIP712Domain,
    PermitDelegation,
    hash_domain,
    normalize_address,
    sign_permit_delegation,
    signing_digest,
)
from .units import format_units, to_base_units


def _token_options(func):
    """Options that identify the debt token (and so the signing domain)."""
    options = [
        click.option("--symbol", envvar=SYMBOL_ENV, default=DEFAULT_SYMBOL, show_default=True,
                     help="Underlying asset symbol"),
        click.option("--kind", envvar=DEBT_KIND_ENV,
                     type=click.Choice([k.value for k in DebtKind], case_sensitive=False),
                     default=DebtKind.VARIABLE.value, show_default=True,
                     help="Debt kind"),
        click.option("--chain-id", envvar=CHAIN_ID_ENV, type=int, default=DEFAULT_CHAIN_ID,
                     show_default=True, help="Chain id"),
        click.option("--verifying-contract", envvar=VERIFYING_CONTRACT_ENV,
                     default=DEFAULT_VERIFYING_CONTRACT, show_default=True,
                     help="Debt token address"),
        click.option("--decimals", envvar=DECIMALS_ENV, type=int, default=18,
                     show_default=True, help="Token decimals"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _config(symbol: str, kind: str, chain_id: int, verifying_contract: str, decimals: int) -> TokenConfig:
    return TokenConfig(
        symbol=symbol,
        kind=DebtKind(kind.lower()),
        chain_id=chain_id,
        verifying_contract=verifying_contract,
        decimals=decimals,
    )


def _domain(config: TokenConfig) -> EIP712Domain:
    return EIP712Domain(
        name=config.name,
        chain_id=config.chain_id,
        verifying_contract=config.verifying_contract,
    )


def _parse_deadline(value: str) -> int:
    raw = value.strip().lower()
    if raw in {"max", "never"}:
        return MAX_UINT256
    if raw.startswith("+"):
        units = {"s": 1, "m": 60, "h": 3600, "d": 86400}
        body = raw[1:]
        if len(body) < 2 or body[-1] not in units or not body[:-1].isdigit():
            raise ValueError(f"Invalid deadline: {value} (expected +72h, +30d, max or a timestamp)")
        return int(time.time()) + int(body[:-1]) * units[body[-1]]
    if not raw.isdigit():
        raise ValueError(f"Invalid deadline: {value} (expected +72h, +30d, max or a timestamp)")
    return int(raw)


# ── CLI ───────────────────────────────────────────────────────────

@click.group()
@click.version_option(version="0.1.0")
def main():
    """debtpermit — signature-based borrow delegation for debt tokens."""
    pass


@main.command()
@_token_options
def domain(symbol: str, kind: str, chain_id: int, verifying_contract: str, decimals: int):
    """Print the EIP-712 domain and its separator."""
    try:
        config = _config(symbol, kind, chain_id, verifying_contract, decimals)
        token_domain = _domain(config)
    except ValueError as e:
        click.echo(f"❌ Invalid token configuration: {e}", err=True)
        sys.exit(1)

    click.echo(f"   Name:      {token_domain.name}")
    click.echo(f"   Version:   {token_domain.version}")
    click.echo(f"   Chain id:  {token_domain.chain_id}")
    click.echo(f"   Contract:  {token_domain.to_dict()['verifyingContract']}")
    click.echo(f"DOMAIN_SEPARATOR 0x{hash_domain(token_domain).hex()}")


@main.command()
@_token_options
@click.option("--delegator-key", prompt=True, hide_input=True,
              help="Delegator's Ethereum private key (hex)")
@click.option(
    "--unsafe-allow-key-arg",
    is_flag=True,
    default=False,
    help="Allow passing --delegator-key via argv (unsafe; can leak in shell/process history).",
)
@click.option("--delegatee", required=True, help="Address allowed to borrow")
@click.option("--amount", required=True, help="Allowance in whole tokens, e.g. 333.5")
@click.option("--nonce", type=int, required=True, help="Delegator's current nonce on the token")
@click.option("--deadline", default="+1d", show_default=True,
              help="Unix timestamp, relative (+72h, +30d) or 'max'")
@click.option("--output", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Write the signed permit JSON to this file")
def sign(
    symbol: str,
    kind: str,
    chain_id: int,
    verifying_contract: str,
    decimals: int,
    delegator_key: str,
    unsafe_allow_key_arg: bool,
    delegatee: str,
    amount: str,
    nonce: int,
    deadline: str,
    output_path: Optional[Path],
):
    """Sign a PermitDelegation for a delegatee."""
    ctx = click.get_current_context(silent=True)
    key_from_argv = (
        ctx is not None
        and ctx.get_parameter_source("delegator_key") == ParameterSource.COMMANDLINE
    )
    if key_from_argv and not unsafe_allow_key_arg:
        click.echo(
            "❌ Refusing --delegator-key from argv. Re-run with prompt input or pass "
            "--unsafe-allow-key-arg to acknowledge the risk.",
            err=True,
        )
        sys.exit(1)

    try:
        config = _config(symbol, kind, chain_id, verifying_contract, decimals)
        token_domain = _domain(config)
        account = Account.from_key(delegator_key)
        message = PermitDelegation(
            delegator=account.address,
            delegatee=delegatee,
            value=to_base_units(amount, config.decimals),
            nonce=nonce,
            deadline=_parse_deadline(deadline),
        )
        signature = sign_permit_delegation(account.key, token_domain, message)
    except Exception as e:
        click.echo(f"❌ Failed to sign permit: {e}", err=True)
        sys.exit(1)

    payload = {
        **message.to_dict(),
        "value": str(message.value),
        "deadline": str(message.deadline),
        **signature.to_dict(),
        "digest": "0x" + signing_digest(token_domain, message).hex(),
    }
    rendered = json.dumps(payload, indent=2)
    if output_path is not None:
        output_path.write_text(rendered + "\n")
        click.echo(f"✅ Permit signed by {account.address}", err=True)
        click.echo(f"   Delegatee: {message.delegatee}", err=True)
        click.echo(f"   Allowance: {format_units(message.value, config.decimals)} {symbol}", err=True)
        click.echo(f"   Saved to:  {output_path}", err=True)
    else:
        click.echo(rendered)


@main.command()
@_token_options
@click.argument("permit_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify(
    symbol: str,
    kind: str,
    chain_id: int,
    verifying_contract: str,
    decimals: int,
    permit_file: Path,
):
    """Check that a signed permit recovers to its delegator."""
    try:
        config = _config(symbol, kind, chain_id, verifying_contract, decimals)
        token_domain = _domain(config)
        raw = json.loads(permit_file.read_text())
        message = PermitDelegation(
            delegator=raw["delegator"],
            delegatee=raw["delegatee"],
            value=int(raw["value"]),
            nonce=int(raw["nonce"]),
            deadline=int(raw["deadline"]),
        )
        signature = DelegationSignature.from_dict(raw)
    except (ValueError, KeyError, json.JSONDecodeError) as e:
        click.echo(f"❌ Malformed permit: {e}", err=True)
        sys.exit(1)

    recovered = recover_signer(
        signing_digest(token_domain, message), signature.v, signature.r, signature.s
    )
    if recovered is None:
        click.echo("❌ Permit is invalid: no signer could be recovered")
        sys.exit(1)
    if normalize_address(recovered) != message.delegator:
        click.echo(f"❌ Permit is invalid: signer {recovered} is not delegator {raw['delegator']}")
        sys.exit(1)

    click.echo(f"✅ Permit is valid for {token_domain.name}")
    click.echo(f"   Delegator: {recovered}")
    click.echo(f"   Delegatee: {raw['delegatee']}")
    click.echo(f"   Allowance: {format_units(message.value, config.decimals)} {symbol}")
    click.echo(f"   Nonce:     {message.nonce}")


@main.command()
@click.option("--audit-path", envvar=AUDIT_PATH_ENV, default=None,
              type=click.Path(dir_okay=False, path_type=Path),
              help="Audit log file (default ~/.debtpermit/audit.jsonl)")
@click.option("--audit-key-path", envvar=AUDIT_KEY_PATH_ENV, default=None,
              type=click.Path(dir_okay=False, path_type=Path),
              help="HMAC key file (default ~/.debtpermit-secrets/audit_hmac.key)")
@click.option("--token", default=None, help="Only show events for this debt token address")
@click.option("--delegator", default=None, help="Only show events for this delegator")
@click.option("--delegatee", default=None, help="Only show events for this delegatee (ignored by --summary)")
@click.option("--event-type", type=click.Choice([e.value for e in EventType]), default=None)
@click.option("--limit", type=int, default=20, show_default=True)
@click.option("--summary", "show_summary", is_flag=True, default=False,
              help="Print counts, rejection reasons and borrowed totals instead of events")
def audit(
    audit_path: Optional[Path],
    audit_key_path: Optional[Path],
    token: Optional[str],
    delegator: Optional[str],
    delegatee: Optional[str],
    event_type: Optional[str],
    limit: int,
    show_summary: bool,
):
    """View the audit trail."""
    trail = AuditTrail(path=audit_path, key_path=audit_key_path)
    try:
        if show_summary:
            click.echo(json.dumps(trail.summary(token=token, delegator=delegator), indent=2))
            return
        events = trail.read_events(
            token=token,
            delegator=delegator,
            delegatee=delegatee,
            event_type=EventType(event_type) if event_type else None,
            limit=limit,
        )
    except ValueError as e:
        click.echo(f"❌ Cannot read audit trail: {e}", err=True)
        sys.exit(1)
    except RuntimeError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if not events:
        click.echo("No audit events.")
        return
    for event in events:
        status = "✅" if event.success else "❌"
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(event.timestamp))
        line = f"{status} {stamp} {event.event_type}"
        if event.delegator:
            line += f" {event.delegator}"
        if event.delegatee:
            line += f" -> {event.delegatee}"
        if event.amount is not None:
            line += f" {event.amount}"
        if event.reason:
            line += f" ({event.reason})"
        click.echo(line)


if __name__ == "__main__":
    main()
