"""
test_statements.py - Statement and invoice loader tests

Usage:
    python test_statements.py
"""

from __future__ import annotations

import io
import json
import os
import sys
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import MatchStatus
from reconcile import match
from statements import invoice_from_record, load_bank_statement, load_invoices


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
    print("  Statement Loader Tests")
    print(LINE * 62)

    base_dir = Path(__file__).resolve().parent
    statement_path = base_dir / "test_data" / "statement.csv"
    invoices_path = base_dir / "test_data" / "invoices.json"

    # Category 1: German statement CSV
    print("\n  load_bank_statement:")
    transactions = load_bank_statement(statement_path)
    check("Invalid row skipped (7 of 8 rows kept)", len(transactions) == 7)
    first = transactions[0]
    check("German date parsed", first.date == date(2024, 3, 10))
    check("German amount parsed", first.amount == Decimal("-150.00"))
    check("Description mapped from Buchungstext", first.description == "RE123 Zahlung")
    check("Currency mapped from Währung", first.currency == "EUR")
    check("Party mapped from Empfänger/Zahlungspflichtiger", first.recipient_or_payer == "Acme GmbH")
    check("Empty party becomes None", transactions[1].recipient_or_payer is None)
    check("Thousands separator handled", transactions[5].amount == Decimal("3200.00"))
    check("Generated ids are unique", len({tx.id for tx in transactions}) == len(transactions))

    english_csv = (
        "ID,Date,Description,Amount,Currency,Name\n"
        "t1,2024-03-10,Invoice INV-9 paid,-99.50,USD,Initech\n"
        "t2,2024-03-11,Refund,12.00,USD,Initech\n"
    ).encode("utf-8")
    english = load_bank_statement(english_csv)
    check("English headers and comma separator", len(english) == 2 and english[0].amount == Decimal("-99.50"))
    check("ID column kept", english[0].id == "t1" and english[1].id == "t2")

    latin1 = "Datum;Buchungstext;Betrag\n01.03.2024;Miete März;-800,00\n".encode("latin-1")
    latin = load_bank_statement(io.BytesIO(latin1))
    check("Latin-1 fallback decodes umlauts", len(latin) == 1 and latin[0].description == "Miete März")

    partial = load_bank_statement(
        b"Datum;Buchungstext;Betrag\n15;Miete;-800,00\n10.03.2024;Miete;-800,00\n"
    )
    check("Row dated only by day is skipped", len(partial) == 1 and partial[0].date == date(2024, 3, 10))

    try:
        load_bank_statement(b"Foo;Bar\n1;2\n")
        check("Missing columns raises ValueError", False)
    except ValueError:
        check("Missing columns raises ValueError", True)

    try:
        load_bank_statement(b"   \n")
        check("Empty statement raises ValueError", False)
    except ValueError:
        check("Empty statement raises ValueError", True)

    try:
        load_bank_statement(base_dir / "test_data" / "does_not_exist.csv")
        check("Missing file raises FileNotFoundError", False)
    except FileNotFoundError:
        check("Missing file raises FileNotFoundError", True)

    # Category 2: invoices JSON
    print("\n  load_invoices:")
    invoices = load_invoices(invoices_path)
    check("All invoices loaded, incomplete ones included", len(invoices) == 5)
    check("German keys mapped", invoices[0].invoice_number == "RE123" and invoices[0].supplier_name == "Acme GmbH")
    check("Gross total parsed", invoices[0].gross_total == Decimal("150.0"))
    check("German date on invoice parsed", invoices[3].date == date(2024, 3, 14))
    check("German amount string on invoice parsed", invoices[3].gross_total == Decimal("1234.56"))
    check("Currency and pdf kept", invoices[0].currency == "EUR" and invoices[0].pdf_file_name == "re123.pdf")
    check("Incomplete invoice flagged unusable", not invoices[4].is_usable)

    wrapped = load_invoices(json.dumps({"invoices": [{"invoiceNumber": "A-1", "grossTotal": 10}]}).encode())
    check("Wrapped {'invoices': [...]} accepted", len(wrapped) == 1 and wrapped[0].invoice_number == "A-1")

    garbage = invoice_from_record({"gesamtbetrag": "abc", "datum": "irgendwann"})
    check("Unparseable invoice fields become None", garbage.gross_total is None and garbage.date is None)

    for payload, label in ((b"{not json", "invalid JSON"), (b'{"a": 1}', "non-array"), (b"[1, 2]", "non-object items")):
        try:
            load_invoices(payload)
            check(f"{label} raises ValueError", False)
        except ValueError:
            check(f"{label} raises ValueError", True)

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "invoices.json"
        path.write_text("[]", encoding="utf-8")
        check("Empty array loads as empty list", load_invoices(str(path)) == [])

    # Category 3: end to end with fixture files
    print("\n  Fixture reconciliation:")
    results = match(transactions, invoices)
    statuses = [result.status for result in results]
    check(
        "Fixture statuses in order",
        statuses
        == [
            MatchStatus.MATCHED,
            MatchStatus.SUSPECT,
            MatchStatus.REFUND,
            MatchStatus.RENT_PAYMENT,
            MatchStatus.UNMATCHED,
            MatchStatus.UNMATCHED,
            MatchStatus.MATCHED,
        ],
    )
    check("Bürobedarf matched to B-9 at 0.85", results[6].matched_invoice is invoices[3] and results[6].confidence == 0.85)

    print(f"\n{LINE * 62}")
    print(f"  Results: {passed}/{passed + failed} passed")
    print(f"{LINE * 62}")
    return failed


def test_statement_loaders() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
