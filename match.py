"""
match.py - Signal extraction, confidence scoring and invoice selection.

This module evaluates every invoice as a potential explanation for a single
outgoing bank payment using four boolean signals:
- amount within one cent of the invoice gross total
- booking date within three days of the invoice date
- supplier name found in the booking text
- invoice number found in the booking text

The signals map to a score through a fixed priority table (first rule
wins, nothing is added up). The best-scoring invoice is then resolved to
Matched / Suspect / Unmatched with evidence strings that explain why.

Scale: every payment rescans every invoice, O(transactions x invoices).
Fine for hundreds of invoices per run; callers with far more should
pre-filter the invoice collection.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from logging_config import get_logger
from models import BankTransaction, Invoice, InvoiceMatch, MatchSignals, MatchStatus
from normalize import build_haystack, contains_key

logger = get_logger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
DATE_TOLERANCE_DAYS = 3

MATCHED_THRESHOLD = 0.80
SUSPECT_THRESHOLD = 0.40
MAX_CONFIDENCE = 1.0

# Priority cascade. Order matters: the first row whose required signals
# are all present decides the score.
SCORE_TABLE: tuple[tuple[tuple[str, ...], float], ...] = (
    (("invoice_number_in_transaction", "amount_matches"), 0.95),
    (("amount_matches", "date_matches", "supplier_name_in_transaction"), 0.85),
    (("amount_matches", "date_matches"), 0.75),
    (("amount_matches", "supplier_name_in_transaction"), 0.70),
    (("amount_matches",), 0.50),
    (("supplier_name_in_transaction", "date_matches"), 0.40),
    (("supplier_name_in_transaction",), 0.30),
    (("date_matches",), 0.10),
)


def extract_signals(
    transaction: BankTransaction,
    invoice: Invoice,
    haystack: str | None = None,
) -> MatchSignals:
    """Compare one transaction with one invoice.

    `haystack` may be passed in when the caller already built it for the
    transaction; it must come from normalize.build_haystack.
    """
    if haystack is None:
        haystack = build_haystack(transaction.description, transaction.recipient_or_payer)

    amount_matches = False
    if invoice.gross_total is not None:
        amount_matches = abs(abs(transaction.amount) - invoice.gross_total) <= AMOUNT_TOLERANCE

    date_matches = False
    if invoice.date is not None:
        date_matches = abs((transaction.date - invoice.date).days) <= DATE_TOLERANCE_DAYS

    signals = MatchSignals(
        amount_matches=amount_matches,
        date_matches=date_matches,
        supplier_name_in_transaction=contains_key(haystack, invoice.supplier_name),
        invoice_number_in_transaction=contains_key(haystack, invoice.invoice_number),
    )
    logger.debug(
        "signals | tx=%s | invoice=%r | amount=%s | date=%s | supplier=%s | number=%s",
        transaction.id,
        invoice.invoice_number,
        signals.amount_matches,
        signals.date_matches,
        signals.supplier_name_in_transaction,
        signals.invoice_number_in_transaction,
    )
    return signals


def score_confidence(signals: MatchSignals) -> float:
    """Map signals to a confidence score in [0, 1] via the priority table."""
    for required, score in SCORE_TABLE:
        if all(getattr(signals, name) for name in required):
            return min(score, MAX_CONFIDENCE)
    return 0.0


def resolve_status(score: float) -> MatchStatus:
    """Translate the best invoice score into a match status."""
    if score >= MATCHED_THRESHOLD:
        return MatchStatus.MATCHED
    if score >= SUSPECT_THRESHOLD:
        return MatchStatus.SUSPECT
    return MatchStatus.UNMATCHED


def describe_signals(invoice: Invoice, signals: MatchSignals) -> list[str]:
    """Evidence lines for a chosen invoice."""
    label = invoice.invoice_number or invoice.supplier_name or "invoice without number"
    evidence: list[str] = []
    if signals.invoice_number_in_transaction:
        evidence.append(f"Invoice number '{invoice.invoice_number}' found in booking text")
    if signals.amount_matches:
        evidence.append(f"Amount matches gross total {invoice.gross_total} of '{label}'")
    if signals.date_matches:
        evidence.append(
            f"Booking date within {DATE_TOLERANCE_DAYS} days of invoice date {invoice.date}"
        )
    if signals.supplier_name_in_transaction:
        evidence.append(f"Supplier '{invoice.supplier_name}' found in booking text")
    return evidence


def match_invoice(
    transaction: BankTransaction,
    invoices: Sequence[Invoice],
) -> InvoiceMatch:
    """Pick the best invoice for an outgoing payment.

    The invoice collection is only read. Ties keep the invoice that comes
    first in `invoices`, so the outcome is deterministic for a given input
    order.
    """
    haystack = build_haystack(transaction.description, transaction.recipient_or_payer)

    best_invoice: Invoice | None = None
    best_signals: MatchSignals | None = None
    best_score = 0.0
    tied = 0
    skipped = 0

    for invoice in invoices:
        if not invoice.is_usable:
            skipped += 1
            continue

        signals = extract_signals(transaction, invoice, haystack)
        score = score_confidence(signals)

        if score > best_score:
            best_invoice = invoice
            best_signals = signals
            best_score = score
            tied = 1
        elif best_invoice is not None and score == best_score:
            tied += 1

    if skipped:
        logger.debug(
            "invoice_scan | tx=%s | skipped_unusable=%s | reason='missing gross total or date'",
            transaction.id,
            skipped,
        )

    status = resolve_status(best_score)
    if status is MatchStatus.UNMATCHED or best_invoice is None or best_signals is None:
        logger.info(
            "invoice_match | tx=%s | status=%s | best_score=%.2f | invoices=%s",
            transaction.id,
            MatchStatus.UNMATCHED.value,
            best_score,
            len(invoices),
        )
        reason = (
            f"No invoice reached {SUSPECT_THRESHOLD:.2f} (best score {best_score:.2f})"
            if best_invoice is not None
            else "No invoice shares any signal with this payment"
        )
        return InvoiceMatch(status=MatchStatus.UNMATCHED, confidence=0.0, evidence=(reason,))

    evidence = describe_signals(best_invoice, best_signals)
    if tied > 1:
        evidence.append(
            f"{tied} invoices tied at {best_score:.2f}; kept the first in input order"
        )

    logger.info(
        "invoice_match | tx=%s | status=%s | score=%.2f | invoice=%r | tied=%s",
        transaction.id,
        status.value,
        best_score,
        best_invoice.invoice_number,
        tied,
    )
    return InvoiceMatch(
        status=status,
        invoice=best_invoice,
        confidence=best_score,
        evidence=tuple(evidence),
    )
