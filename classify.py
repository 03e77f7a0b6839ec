"""
classify.py - Sign-based dispatch and keyword overrides.

Two deterministic rule sets sit around the invoice matcher:

1. Income (amount > 0) never goes through invoice matching. Purchase
   invoices cannot explain incoming money; the only thing we detect is a
   refund keyword.
2. Payments (amount < 0) go through match.match_invoice. If that produced
   no significant invoice and the booking text mentions rent, the result
   is replaced by a Rent Payment.
"""

from __future__ import annotations

from typing import Sequence

from logging_config import get_logger
from match import match_invoice
from models import BankTransaction, Invoice, InvoiceMatch, MatchStatus
from normalize import build_haystack, contains_any

logger = get_logger(__name__)

REFUND_KEYWORDS = ("rückzahlung", "refund")
RENT_KEYWORDS = ("miete", "rent")


def is_significant(result: InvoiceMatch) -> bool:
    """Whether an invoice result is strong enough to block keyword overrides.

    Only Matched results count. Every Suspect, whatever its confidence, can
    be replaced by a keyword outcome.
    """
    return result.status is MatchStatus.MATCHED


def classify_income(transaction: BankTransaction) -> InvoiceMatch:
    """Classify an incoming (or zero) amount without looking at invoices."""
    haystack = build_haystack(transaction.description, transaction.recipient_or_payer)

    if transaction.is_income and contains_any(haystack, REFUND_KEYWORDS):
        logger.info("classify | tx=%s | status=%s", transaction.id, MatchStatus.REFUND.value)
        return InvoiceMatch(
            status=MatchStatus.REFUND,
            evidence=("Incoming amount with refund keyword in booking text",),
        )

    logger.debug("classify | tx=%s | status=%s | reason=income", transaction.id, MatchStatus.UNMATCHED.value)
    return InvoiceMatch(
        status=MatchStatus.UNMATCHED,
        confidence=0.0,
        evidence=("Incoming amount; income is not reconciled against purchase invoices",),
    )


def detect_special_case(transaction: BankTransaction, result: InvoiceMatch) -> InvoiceMatch:
    """Apply the rent override to a payment's invoice result."""
    if is_significant(result):
        return result

    haystack = build_haystack(transaction.description, transaction.recipient_or_payer)
    if not contains_any(haystack, RENT_KEYWORDS):
        return result

    if result.invoice is not None:
        logger.info(
            "special_case | tx=%s | override=%s | discarded_invoice=%r | discarded_confidence=%.2f",
            transaction.id,
            MatchStatus.RENT_PAYMENT.value,
            result.invoice.invoice_number,
            result.confidence or 0.0,
        )
    else:
        logger.info("special_case | tx=%s | override=%s", transaction.id, MatchStatus.RENT_PAYMENT.value)

    evidence = ["Rent keyword in booking text and no significant invoice match"]
    if result.invoice is not None:
        evidence.append(
            f"Discarded {result.status.value.lower()} invoice at {result.confidence:.2f}"
        )
    return InvoiceMatch(status=MatchStatus.RENT_PAYMENT, evidence=tuple(evidence))


def classify_transaction(
    transaction: BankTransaction,
    invoices: Sequence[Invoice],
) -> InvoiceMatch:
    """Dispatch one transaction by the sign of its amount."""
    if not transaction.is_payment:
        return classify_income(transaction)

    result = match_invoice(transaction, invoices)
    return detect_special_case(transaction, result)
