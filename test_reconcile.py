"""
test_reconcile.py - Engine entry point tests

Covers reconcile.match():
- one result per transaction, same order
- the five reference scenarios
- shared (non-consumed) invoices
- precondition violations for malformed transactions

Usage: python test_reconcile.py
"""

from __future__ import annotations

import os
import sys
from datetime import date
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import BankTransaction, Invoice, MatchStatus, PreconditionViolation
from reconcile import match


def _symbols() -> tuple[str, str, str]:
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        pass

    try:
        "✓✗═".encode(sys.stdout.encoding or "utf-8")
        return "✓", "✗", "═"
    except Exception:
        return "[OK]", "[FAIL]", "="


PASS, FAIL, LINE = _symbols()


def _tx(tx_id: str, amount: str, day: str, description: str) -> BankTransaction:
    return BankTransaction(
        id=tx_id,
        date=date.fromisoformat(day),
        description=description,
        amount=Decimal(amount),
    )


def main() -> int:
    passed = 0
    failed = 0

    def check(name: str, condition: bool) -> None:
        nonlocal passed, failed
        if condition:
            passed += 1
            print(f"    {PASS} {name}")
        else:
            failed += 1
            print(f"    {FAIL} {name}")

    print(LINE * 62)
    print("  Reconciliation Tests")
    print(LINE * 62)

    inv_a = Invoice(invoice_number="RE123", gross_total=Decimal("150.00"), date=date(2024, 3, 8))
    inv_b = Invoice(supplier_name="Acme GmbH", gross_total=Decimal("50.00"), date=date(2024, 3, 20))
    invoices = [inv_a, inv_b]

    transactions = [
        _tx("A", "-150.00", "2024-03-10", "RE123 Zahlung"),
        _tx("B", "-50.00", "2024-03-10", "Überweisung"),
        _tx("C", "25.00", "2024-03-11", "Rückzahlung Bestellung"),
        _tx("D", "-800.00", "2024-03-01", "Miete Januar"),
        _tx("E", "-10.00", "2024-02-01", "Kaffee"),
        _tx("F", "1200.00", "2024-03-12", "Zahlungseingang Kunde"),
    ]

    results = match(transactions, invoices)
    by_id = {result.transaction.id: result for result in results}

    # Category 1: shape
    print("\n  Output shape:")
    check("One result per transaction", len(results) == len(transactions))
    check("Order preserved", [r.transaction.id for r in results] == [t.id for t in transactions])
    check(
        "Results reference the input transactions",
        all(result.transaction is tx for result, tx in zip(results, transactions)),
    )
    check("Empty input -> empty output", match([], invoices) == [])

    # Category 2: reference scenarios
    print("\n  Scenarios:")
    a = by_id["A"]
    check(
        "A: invoice number + amount -> Matched 0.95",
        a.status is MatchStatus.MATCHED and a.confidence == 0.95 and a.matched_invoice is inv_a,
    )
    b = by_id["B"]
    check(
        "B: amount only -> Suspect 0.50",
        b.status is MatchStatus.SUSPECT and b.confidence == 0.50 and b.matched_invoice is inv_b,
    )
    c = by_id["C"]
    check(
        "C: Rückzahlung -> Refund",
        c.status is MatchStatus.REFUND and c.matched_invoice is None and c.confidence is None,
    )
    d = by_id["D"]
    check(
        "D: Miete without invoice in tolerance -> Rent Payment",
        d.status is MatchStatus.RENT_PAYMENT and d.matched_invoice is None and d.confidence is None,
    )
    e = by_id["E"]
    check(
        "E: no signal -> Unmatched 0",
        e.status is MatchStatus.UNMATCHED and e.confidence == 0.0 and e.matched_invoice is None,
    )
    f = by_id["F"]
    check("Income -> Unmatched 0", f.status is MatchStatus.UNMATCHED and f.confidence == 0.0)
    check("Suspect, refund and rent need review", b.needs_review and c.needs_review and d.needs_review)
    check("Matched and Unmatched do not", not a.needs_review and not e.needs_review)
    check("Every result carries evidence", all(result.evidence for result in results))

    # Category 3: rent overrides suspect
    print("\n  Rent override:")
    rent_invoice = Invoice(invoice_number="HV-1", gross_total=Decimal("800.00"), date=date(2024, 1, 2))
    rent_results = match([_tx("R", "-800.00", "2024-03-01", "Miete März")], [rent_invoice])
    check(
        "Suspect invoice (0.50) overridden by 'Miete'",
        rent_results[0].status is MatchStatus.RENT_PAYMENT and rent_results[0].matched_invoice is None,
    )
    matched_rent = match([_tx("R2", "-800.00", "2024-01-03", "Miete HV-1")], [rent_invoice])
    check(
        "Matched invoice survives 'Miete' keyword",
        matched_rent[0].status is MatchStatus.MATCHED and matched_rent[0].matched_invoice is rent_invoice,
    )

    # Category 4: shared invoices
    print("\n  Shared invoices:")
    twice = match(
        [_tx("P1", "-150.00", "2024-03-10", "RE123"), _tx("P2", "-150.00", "2024-03-09", "RE123 erneut")],
        invoices,
    )
    check(
        "Same invoice may back two payments",
        twice[0].matched_invoice is inv_a and twice[1].matched_invoice is inv_a,
    )
    check("Invoice list untouched", invoices == [inv_a, inv_b])

    # Category 5: preconditions
    print("\n  Preconditions:")
    bad_date = BankTransaction.model_construct(
        id="bad-date", date="not a date", description="x", amount=Decimal("-1.00")
    )
    try:
        match([transactions[0], bad_date], invoices)
        check("Invalid date raises PreconditionViolation", False)
    except PreconditionViolation as exc:
        check("Invalid date raises PreconditionViolation", exc.transaction_id == "bad-date")

    bad_amount = BankTransaction.model_construct(
        id="bad-amount", date=date(2024, 3, 10), description="x", amount=Decimal("NaN")
    )
    try:
        match([bad_amount], invoices)
        check("NaN amount raises PreconditionViolation", False)
    except PreconditionViolation as exc:
        check("NaN amount raises PreconditionViolation", "bad-amount" in str(exc))

    infinite = BankTransaction.model_construct(
        id="inf", date=date(2024, 3, 10), description="x", amount=Decimal("-Infinity")
    )
    try:
        match([infinite], invoices)
        check("Infinite amount raises PreconditionViolation", False)
    except PreconditionViolation:
        check("Infinite amount raises PreconditionViolation", True)

    check("PreconditionViolation is a ValueError", issubclass(PreconditionViolation, ValueError))

    print(f"\n{LINE * 62}")
    print(f"  Results: {passed}/{passed + failed} passed")
    print(f"{LINE * 62}")
    return failed


def test_reconcile() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
