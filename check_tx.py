#!/usr/bin/env python3
"""
check_tx.py — XMR transfer proof checker

Features
- Asks an XMR proof service (onion-monero-blockchain-explorer) to prove that
  a transaction paid the expected amount to an address, using the tx key
- Repeats every 90 sec while the tx is unconfirmed, gives up after 12 hours
- Optional SOCKS5 proxy (Tor), skipped for local/private service addresses
- Clear CLI output

Environment (.env)
  XMR_PROOF_SERVICE=xmrblocks.bisq.services
  XMR_PROOF_SOCKS5_PROXY=socks5h://127.0.0.1:9050
  XMR_PROOF_CONFIRMATIONS=10

Usage
  python check_tx.py TX_HASH ADDRESS TX_KEY --amount 1.25 [--service HOST] [--trade-date ISO]
"""

from __future__ import annotations

import logging
import sys
import threading
import time
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import click

from txproof.config import load_settings
from txproof.models import Outcome, Tag, VerificationRequest
from txproof.request import XmrTxProofRequest

PICONERO_PER_XMR = 10**12
EXIT_CODES = {Tag.SUCCESS: 0, Tag.FAILED: 1, Tag.ERROR: 2}


# --------------------------
# Utilities
# --------------------------


def parse_amount(value: str) -> int:
    """XMR decimal string -> piconero."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"Not a number: {value}")
    if not amount.is_finite() or amount <= 0:
        raise click.BadParameter("Amount must be positive")
    if amount.as_tuple().exponent < -12:
        raise click.BadParameter("XMR has at most 12 decimal places")
    return int(amount * PICONERO_PER_XMR)


def parse_trade_date(value: Optional[str]) -> float:
    """Epoch seconds or ISO 8601; defaults to now."""
    if not value:
        return time.time()
    try:
        return float(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).timestamp()
    except ValueError:
        raise click.BadParameter(f"Not an epoch or ISO date: {value}")


def print_outcome(outcome: Outcome) -> None:
    icon = {Tag.PENDING: "⏳", Tag.SUCCESS: "✅", Tag.FAILED: "🚫", Tag.ERROR: "⚠️"}[outcome.tag]
    stamp = datetime.now().strftime("%H:%M:%S")
    print(f"{icon} [{stamp}] {outcome}")


# --------------------------
# CLI
# --------------------------


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("tx_hash")
@click.argument("address")
@click.argument("tx_key")
@click.option("--amount", required=True, help="Expected amount in XMR.")
@click.option("--service", help="Proof service address (host[:port]).")
@click.option("--trade-id", help="Identifier used in logs.")
@click.option("--trade-date", help="Trade date as epoch seconds or ISO 8601 (default: now).")
@click.option("--confirmations", type=int, help="Required confirmations.")
@click.option("--no-proxy", is_flag=True, help="Connect directly, ignoring XMR_PROOF_SOCKS5_PROXY.")
@click.option("-v", "--verbose", is_flag=True, help="Log requests and responses.")
def main(
    tx_hash: str,
    address: str,
    tx_key: str,
    amount: str,
    service: Optional[str],
    trade_id: Optional[str],
    trade_date: Optional[str],
    confirmations: Optional[int],
    no_proxy: bool,
    verbose: bool,
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    settings = load_settings()
    proxy = None if no_proxy else settings.socks5_proxy

    request = VerificationRequest(
        tx_hash=tx_hash,
        recipient_address=address,
        tx_key=tx_key,
        service_address=service or settings.service_address,
        trade_id=trade_id or str(uuid.uuid4()),
        amount=parse_amount(amount),
        trade_date=parse_trade_date(trade_date),
        num_required_confirmations=(
            confirmations if confirmations is not None else settings.num_required_confirmations
        ),
    )
    verifier = XmrTxProofRequest(
        request,
        proxy_provider=lambda: proxy,
        user_agent=settings.user_agent,
    )

    done = threading.Event()

    def on_result(outcome: Outcome) -> None:
        print_outcome(outcome)
        if outcome.is_terminal:
            done.set()

    def on_fault(message: str, cause: BaseException) -> None:
        print(f"   note: {message}")

    print("\n================ XMR Tx Proof =================")
    print(f"🧾 Tx hash:         {request.tx_hash}")
    print(f"📮 Address:         {request.recipient_address}")
    print(f"💰 Amount:          {Decimal(request.amount) / PICONERO_PER_XMR} XMR")
    print(f"🛰  Service:         {request.service_address}")
    print(f"🔢 Confirmations:   {request.num_required_confirmations}")
    print("===============================================\n")

    verifier.start(on_result, on_fault)
    try:
        while not done.wait(1.0):
            pass
    except KeyboardInterrupt:
        verifier.terminate()
        print("\n❌ Interrupted")
        sys.exit(130)

    final = verifier.outcome
    assert final is not None
    print(f"\n💡 Verdict: {final.tag.value}")
    sys.exit(EXIT_CODES[final.tag])


if __name__ == "__main__":
    main()
