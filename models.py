"""
models.py - Data Models for the Reconciliation Engine

This file defines ALL data structures used across the engine.
Every module in the pipeline communicates exclusively through these models:

    statements.py ->  list[BankTransaction], list[Invoice]
    match.py      ->  MatchSignals, InvoiceMatch
    classify.py   ->  InvoiceMatch (reclassified)
    reconcile.py  ->  list[MatchedTransaction]
    explain.py    ->  str / rows (uses MatchedTransaction as input)

Design principles:
1. Inputs are immutable: the engine never mutates a transaction or invoice
2. Outputs reference their inputs instead of copying them
3. Results carry evidence strings so every status is traceable
4. Field aliases accept the camelCase names upstream collaborators emit

Schema relationships:
    BankTransaction --used by--> MatchedTransaction.transaction
    Invoice         --used by--> MatchedTransaction.matched_invoice
    MatchStatus     --used by--> InvoiceMatch.status, MatchedTransaction.status
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PreconditionViolation(ValueError):
    """A transaction reached the engine without a valid date or finite amount.

    Validation of bank records is an upstream responsibility. The engine
    refuses to guess (no sentinel dates, no zero amounts) and fails the
    whole call instead.
    """

    def __init__(self, transaction_id: str, reason: str) -> None:
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(f"Transaction {transaction_id!r} rejected: {reason}")


class MatchStatus(str, Enum):
    """Closed set of outcomes for one bank transaction."""

    # Best invoice scored 0.80 or higher. Safe to book without review.
    MATCHED = "Matched"

    # Best invoice scored between 0.40 and 0.80. The invoice is attached
    # but a human must confirm it; never promoted automatically.
    SUSPECT = "Suspect"

    # No invoice reached 0.40, or the transaction is income that is not
    # a refund. No invoice attached.
    UNMATCHED = "Unmatched"

    # Incoming money whose text mentions a refund ("Rückzahlung", "refund").
    REFUND = "Refund"

    # Outgoing payment mentioning rent ("Miete", "rent") with no
    # significant invoice behind it.
    RENT_PAYMENT = "Rent Payment"


class BankTransaction(BaseModel):
    """Single booking line from a bank statement.

    Produced by the statement-parsing collaborator (statements.py or an
    external extractor) with dates already normalized to ISO and amounts
    already converted from German notation ("1.234,56") to decimals.

    The sign of `amount` drives classification: negative amounts are
    payments we try to explain with an invoice, positive amounts are
    income and are only checked for refunds.
    """

    id: str = Field(
        ...,
        description="Opaque identifier, unique within one statement import.",
    )
    date: dt.date = Field(
        ...,
        description="Booking date. ISO strings ('2024-03-10') are accepted.",
    )
    description: str = Field(
        default="",
        description=(
            "Free-text booking text (Buchungstext / Verwendungszweck). "
            "Searched for invoice numbers, supplier names and keywords."
        ),
    )
    amount: Decimal = Field(
        ...,
        description=(
            "Signed amount in the account currency. Negative = debit/payment, "
            "positive = credit/income."
        ),
    )
    currency: Optional[str] = Field(
        default=None,
        description="ISO 4217 code as reported by the bank, e.g. 'EUR'.",
    )
    recipient_or_payer: Optional[str] = Field(
        default=None,
        alias="recipientOrPayer",
        description="Counterparty name (Empfänger/Zahlungspflichtiger).",
    )

    @property
    def is_payment(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "tx-001",
                    "date": "2024-03-10",
                    "description": "RE123 Zahlung",
                    "amount": "-150.00",
                    "currency": "EUR",
                    "recipientOrPayer": "Acme GmbH",
                }
            ]
        },
    )


class Invoice(BaseModel):
    """Incoming (purchase) invoice as delivered by the extraction collaborator.

    Every field is optional because extraction is imperfect. An invoice
    without `gross_total` or `date` is simply not considered by the
    matcher; it is never an error.
    """

    invoice_number: Optional[str] = Field(
        default=None,
        alias="invoiceNumber",
        description="Invoice number as printed (Rechnungsnummer), e.g. 'RE123'.",
    )
    date: Optional[dt.date] = Field(
        default=None,
        description="Invoice date (Rechnungsdatum).",
    )
    supplier_name: Optional[str] = Field(
        default=None,
        alias="supplierName",
        description="Supplier as printed on the invoice (Lieferant).",
    )
    gross_total: Optional[Decimal] = Field(
        default=None,
        alias="grossTotal",
        description="Full invoice amount including tax (Bruttobetrag).",
    )
    currency: Optional[str] = Field(
        default=None,
        description="Invoice currency. Exported only, never converted.",
    )
    pdf_file_name: Optional[str] = Field(
        default=None,
        alias="pdfFileName",
        description="Source document name. Exported only.",
    )

    @property
    def is_usable(self) -> bool:
        """Whether the invoice carries the fields scoring depends on."""
        return self.gross_total is not None and self.date is not None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class MatchSignals(BaseModel):
    """The four boolean signals compared for one (transaction, invoice) pair."""

    model_config = ConfigDict(frozen=True)

    amount_matches: bool = False
    date_matches: bool = False
    supplier_name_in_transaction: bool = False
    invoice_number_in_transaction: bool = False


class InvoiceMatch(BaseModel):
    """Outcome of the invoice scan (and any special-case override) for one payment."""

    model_config = ConfigDict(frozen=True)

    status: MatchStatus
    invoice: Optional[Invoice] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    evidence: tuple[str, ...] = ()


class MatchedTransaction(BaseModel):
    """Final classification of one bank transaction.

    Created once by reconcile.match() and never re-evaluated. The
    `transaction` and `matched_invoice` fields hold the caller's own
    objects, not copies.

    `confidence` is the invoice score for invoice-based outcomes
    (Matched, Suspect, Unmatched payments and non-refund income) and None
    for keyword outcomes (Refund, Rent Payment).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction: BankTransaction
    matched_invoice: Optional[Invoice] = Field(default=None, alias="matchedInvoice")
    status: MatchStatus
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    evidence: tuple[str, ...] = Field(
        default=(),
        description="Human-readable reasons behind the status, in decision order.",
    )

    @property
    def needs_review(self) -> bool:
        """Whether a bookkeeper has to look at this line before booking."""
        return self.status in {
            MatchStatus.SUSPECT,
            MatchStatus.REFUND,
            MatchStatus.RENT_PAYMENT,
        }
