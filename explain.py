"""
explain.py - Human-readable and export formatting for reconciliation results.

This module converts `MatchedTransaction` lists into:
- terminal-friendly text output for CLI usage
- CSV / TSV / JSON exports for spreadsheets, ERPs and APIs
"""

from __future__ import annotations

import csv
import io
import json
from collections import Counter
from typing import Any, Sequence

from logging_config import get_logger
from models import MatchedTransaction, MatchStatus

logger = get_logger(__name__)

EXPORT_HEADERS = [
    "Tx Date",
    "Tx Description",
    "Tx Amount",
    "Tx Currency",
    "Tx Payer/Recipient",
    "Match Status",
    "Match Confidence",
    "Matched Invoice PDF",
    "Matched Invoice No",
    "Matched Invoice Supplier",
    "Matched Invoice Date",
    "Matched Invoice Total",
    "Matched Invoice Currency",
]

STATUS_ICONS: dict[MatchStatus, str] = {
    MatchStatus.MATCHED: "✓",
    MatchStatus.SUSPECT: "?",
    MatchStatus.UNMATCHED: "✗",
    MatchStatus.REFUND: "↩",
    MatchStatus.RENT_PAYMENT: "⌂",
}

OUTPUT_WIDTH = 72
SEPARATOR = "=" * OUTPUT_WIDTH


def format_confidence(confidence: float | None) -> str:
    if confidence is None:
        return "N/A"
    return f"{confidence * 100:.0f}%"


def result_row(result: MatchedTransaction) -> dict[str, Any]:
    """Flatten one result into the export column layout."""
    tx = result.transaction
    invoice = result.matched_invoice
    return {
        "Tx Date": tx.date.isoformat(),
        "Tx Description": tx.description,
        "Tx Amount": str(tx.amount),
        "Tx Currency": tx.currency,
        "Tx Payer/Recipient": tx.recipient_or_payer,
        "Match Status": result.status.value,
        "Match Confidence": format_confidence(result.confidence),
        "Matched Invoice PDF": invoice.pdf_file_name if invoice else None,
        "Matched Invoice No": invoice.invoice_number if invoice else None,
        "Matched Invoice Supplier": invoice.supplier_name if invoice else None,
        "Matched Invoice Date": invoice.date.isoformat() if invoice and invoice.date else None,
        "Matched Invoice Total": (
            str(invoice.gross_total) if invoice and invoice.gross_total is not None else None
        ),
        "Matched Invoice Currency": invoice.currency if invoice else None,
    }


def to_csv(results: Sequence[MatchedTransaction]) -> str:
    """Comma-separated export with a header row; empty string for no results."""
    if not results:
        return ""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for result in results:
        row = result_row(result)
        writer.writerow(["" if row[h] is None else row[h] for h in EXPORT_HEADERS])
    return buffer.getvalue().rstrip("\n")


def _tsv_field(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("\t", " ").replace("\r", " ").replace("\n", " ")


def to_tsv(results: Sequence[MatchedTransaction]) -> str:
    """Tab-separated export; tabs and line breaks inside fields become spaces."""
    if not results:
        return ""
    lines = ["\t".join(EXPORT_HEADERS)]
    for result in results:
        row = result_row(result)
        lines.append("\t".join(_tsv_field(row[h]) for h in EXPORT_HEADERS))
    return "\n".join(lines)


def json_key(header: str) -> str:
    return "_".join(header.split()).lower()


def to_records(results: Sequence[MatchedTransaction]) -> list[dict[str, Any]]:
    """Export rows keyed by snake_cased header names."""
    records = []
    for result in results:
        row = result_row(result)
        records.append({json_key(header): row[header] for header in EXPORT_HEADERS})
    return records


def to_json(results: Sequence[MatchedTransaction]) -> str:
    return json.dumps(to_records(results), indent=2, ensure_ascii=False)


def summarize(results: Sequence[MatchedTransaction]) -> dict[str, int]:
    """Count results per status. Every status is present, zero or not."""
    counts = Counter(result.status for result in results)
    summary = {status.value: counts.get(status, 0) for status in MatchStatus}
    summary["Needs Review"] = sum(1 for result in results if result.needs_review)
    summary["Total"] = len(results)
    return summary


def format_summary(results: Sequence[MatchedTransaction]) -> str:
    """Format results into a terminal report: one line per transaction plus totals."""
    lines: list[str] = ["", SEPARATOR, f"  Reconciliation - {len(results)} transaction(s)", SEPARATOR, ""]

    if not results:
        lines.append("  (no transactions)")
    for result in results:
        tx = result.transaction
        icon = STATUS_ICONS.get(result.status, " ")
        description = tx.description if len(tx.description) <= 30 else tx.description[:28] + ".."
        invoice = result.matched_invoice
        target = ""
        if invoice is not None:
            target = f" -> {invoice.invoice_number or invoice.supplier_name or 'invoice'}"
        lines.append(
            f"  {icon} {tx.date.isoformat()}  {str(tx.amount):>10}  {description:<30}  "
            f"{result.status.value:<12} {format_confidence(result.confidence):>4}{target}"
        )

    summary = summarize(results)
    lines.append("")
    lines.append("  " + "  |  ".join(f"{status.value}: {summary[status.value]}" for status in MatchStatus))
    lines.append(f"  Needs review: {summary['Needs Review']}")
    lines.append(SEPARATOR)
    text = "\n".join(lines)
    logger.debug("explain_summary | lines=%s", len(lines))
    return text
