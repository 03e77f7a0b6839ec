"""
reconcile.py - Engine entry point.

    match(transactions, invoices) -> list[MatchedTransaction]

One result per transaction, in input order. The invoice collection is read
but never modified or consumed, so one invoice may back several payments.
Callers that need exactly-once allocation must reserve invoices
themselves around this call.
"""

from __future__ import annotations

import datetime as dt
import time
from collections import Counter
from decimal import Decimal
from typing import Iterable, Sequence

from classify import classify_transaction
from logging_config import get_logger
from models import BankTransaction, Invoice, MatchedTransaction, PreconditionViolation

logger = get_logger(__name__)


def check_transaction(transaction: BankTransaction) -> None:
    """Raise PreconditionViolation unless the transaction has a real date and finite amount."""
    transaction_id = str(getattr(transaction, "id", "?"))

    date = getattr(transaction, "date", None)
    if not isinstance(date, dt.date) or isinstance(date, dt.datetime):
        raise PreconditionViolation(transaction_id, f"invalid booking date {date!r}")

    amount = getattr(transaction, "amount", None)
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise PreconditionViolation(transaction_id, f"non-finite or missing amount {amount!r}")


def match(
    transactions: Iterable[BankTransaction],
    invoices: Sequence[Invoice],
) -> list[MatchedTransaction]:
    """Classify every bank transaction against the invoice collection.

    Raises:
        PreconditionViolation: a transaction has an invalid date or a
            non-finite amount. Nothing is returned for the batch.
    """
    transactions = list(transactions)
    invoices = tuple(invoices)
    start = time.time()

    for transaction in transactions:
        check_transaction(transaction)

    results: list[MatchedTransaction] = []
    for transaction in transactions:
        outcome = classify_transaction(transaction, invoices)
        results.append(
            MatchedTransaction(
                transaction=transaction,
                matched_invoice=outcome.invoice,
                status=outcome.status,
                confidence=outcome.confidence,
                evidence=outcome.evidence,
            )
        )

    counts = Counter(result.status.value for result in results)
    logger.info(
        "reconcile_complete | transactions=%s | invoices=%s | statuses=%s | duration_s=%.3f",
        len(transactions),
        len(invoices),
        dict(counts),
        time.time() - start,
    )
    return results
