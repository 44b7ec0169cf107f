"""QR code payloads exchanged between merchants and clients.

Three kinds of payload are recognised when a code is scanned:
- a BNPL credit proposal generated by a merchant (JSON, type "bnpl_proposal")
- a merchant payment code (JSON carrying "shid", optional amount and reason)
- anything else, taken verbatim as the recipient alias
"""
import json
import math
from dataclasses import dataclass
from typing import Optional

from paytik.exceptions import MalformedQrPayloadError

PROPOSAL_TYPE = "bnpl_proposal"


@dataclass
class CreditProposal:
    merchant_alias: str
    client_alias: str
    amount: float
    repayment_frequency: str
    installments_count: int
    first_installment_date: str
    down_payment: float = 0.0
    margin_rate: Optional[float] = None


@dataclass
class MerchantPaymentCode:
    recipient_alias: str
    amount: Optional[float] = None
    reason: Optional[str] = None


@dataclass
class RawAlias:
    recipient_alias: str


def _number(data, key, required=True):
    value = data.get(key)
    if value is None:
        if required:
            raise MalformedQrPayloadError(f"Missing '{key}' in QR payload", {'field': key})
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedQrPayloadError(f"'{key}' must be a number", {'field': key, 'value': value})
    if not math.isfinite(value):
        raise MalformedQrPayloadError(f"'{key}' must be a finite number", {'field': key, 'value': value})
    return value


def _text(data, key):
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedQrPayloadError(f"Missing '{key}' in credit proposal", {'field': key})
    return value


def parse_payload(text):
    """Decode a scanned QR payload.

    Returns:
        CreditProposal, MerchantPaymentCode or RawAlias.

    Raises:
        MalformedQrPayloadError: If a credit proposal lacks a field, or a
            proposal or merchant code carries a field of the wrong type or a
            non-finite number.
    """
    text = (text or "").strip()
    try:
        data = json.loads(text)
    except ValueError:
        return RawAlias(text)
    if not isinstance(data, dict):
        return RawAlias(text)

    if data.get("type") == PROPOSAL_TYPE:
        count = _number(data, "installmentsCount")
        if int(count) != count or count <= 0:
            raise MalformedQrPayloadError("'installmentsCount' must be a positive integer",
                                          {'field': 'installmentsCount', 'value': count})
        return CreditProposal(
            merchant_alias=_text(data, "merchantAlias"),
            client_alias=_text(data, "clientAlias"),
            amount=_number(data, "amount"),
            repayment_frequency=_text(data, "repaymentFrequency"),
            installments_count=int(count),
            first_installment_date=_text(data, "firstInstallmentDate"),
            down_payment=_number(data, "downPayment", required=False) or 0.0,
            margin_rate=_number(data, "marginRate", required=False),
        )

    if data.get("shid"):
        reason = data.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise MalformedQrPayloadError("'reason' must be text", {'field': 'reason', 'value': reason})
        return MerchantPaymentCode(
            recipient_alias=str(data["shid"]),
            amount=_number(data, "amount", required=False),
            reason=reason,
        )
    return RawAlias(text)


def encode_credit_proposal(proposal):
    """Serialize a CreditProposal into the JSON a merchant displays as a QR code."""
    payload = {
        "type": PROPOSAL_TYPE,
        "merchantAlias": proposal.merchant_alias,
        "clientAlias": proposal.client_alias,
        "amount": proposal.amount,
        "downPayment": proposal.down_payment,
        "repaymentFrequency": proposal.repayment_frequency,
        "installmentsCount": proposal.installments_count,
        "firstInstallmentDate": proposal.first_installment_date,
    }
    if proposal.margin_rate is not None:
        payload["marginRate"] = proposal.margin_rate
    return json.dumps(payload)


def encode_merchant_code(alias, amount=None, reason=None):
    payload = {"shid": alias}
    if amount is not None:
        payload["amount"] = amount
    if reason:
        payload["reason"] = reason
    return json.dumps(payload)
