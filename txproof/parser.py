"""Classify the proof service's /api/outputs JSON into an Outcome."""

import json
import logging
from typing import Any, Dict

from .cryptonote import raw_spend_and_view_key
from .models import CryptoNoteError, Detail, DetailKind, Outcome, VerificationRequest

logger = logging.getLogger(__name__)

# tx may predate the trade by this much (clock skew)
MAX_DATE_TOLERANCE_SEC = 2 * 60 * 60


def _missing(field_name: str) -> Outcome:
    return Outcome.error(DetailKind.API_INVALID, f"Missing {field_name} field")


def parse_proof_response(request: VerificationRequest, text: str) -> Outcome:
    """Map raw service output to exactly one Outcome. Never raises."""
    try:
        payload = json.loads(text)
    except ValueError as e:
        return Outcome.error(DetailKind.API_INVALID, f"Invalid json: {e}")
    if not isinstance(payload, dict):
        return Outcome.error(DetailKind.API_INVALID, "Empty json")

    try:
        return _parse_payload(request, payload)
    except (TypeError, ValueError, AttributeError, KeyError) as e:
        return Outcome.error(DetailKind.API_INVALID, repr(e))


def _parse_payload(request: VerificationRequest, payload: Dict[str, Any]) -> Outcome:
    data = payload.get("data")
    status = payload.get("status")
    if data is None or status is None:
        return Outcome.error(DetailKind.API_INVALID, "Missing data / status fields")

    # "fail" covers both a tx not in the mempool yet and bad request data
    if status == "fail":
        return Outcome.pending(Detail(DetailKind.TX_NOT_FOUND))
    if status != "success":
        return Outcome.error(DetailKind.API_FAILURE, "Unhandled status value")

    address = data.get("address")
    if address is None:
        return _missing("address")
    try:
        expected_address_hex = raw_spend_and_view_key(request.recipient_address)
    except CryptoNoteError as e:
        logger.warning("Cannot decode recipient address for %s: %s", request.trade_id, e)
        return Outcome.failed(DetailKind.ADDRESS_INVALID)
    if str(address).lower() != expected_address_hex:
        return Outcome.failed(DetailKind.ADDRESS_INVALID)

    tx_hash = data.get("tx_hash")
    if tx_hash is None:
        return _missing("tx_hash")
    if str(tx_hash).lower() != request.tx_hash.lower():
        return Outcome.failed(DetailKind.TX_HASH_INVALID)

    viewkey = data.get("viewkey")
    if viewkey is None:
        return _missing("viewkey")
    if str(viewkey).lower() != request.tx_key.lower():
        return Outcome.failed(DetailKind.TX_KEY_INVALID)

    tx_timestamp = data.get("tx_timestamp")
    if tx_timestamp is None:
        return _missing("tx_timestamp")
    if int(request.trade_date) - int(tx_timestamp) > MAX_DATE_TOLERANCE_SEC:
        return Outcome.failed(DetailKind.TRADE_DATE_NOT_MATCHING)

    tx_confirmations = data.get("tx_confirmations")
    if tx_confirmations is None:
        return _missing("tx_confirmations")
    confirmations = int(tx_confirmations)
    logger.info("Confirmations: %s, xmr txHash: %s", confirmations, request.tx_hash)

    # One of the outputs has to be flagged as ours and carry the expected amount.
    any_match_found = False
    amount_matches = False
    for out in data.get("outputs") or []:
        if out.get("match") is True:
            any_match_found = True
            if int(out.get("amount")) == request.amount:
                amount_matches = True
                break

    if not any_match_found:
        return Outcome.failed(DetailKind.NO_MATCH_FOUND)
    if not amount_matches:
        return Outcome.failed(DetailKind.AMOUNT_NOT_MATCHING)

    if confirmations < request.num_required_confirmations:
        return Outcome.pending(Detail.confirmations(confirmations))
    return Outcome.success()
