"""
statements.py - Bank statement CSV and invoice JSON loaders.

These are the upstream collaborators the CLI and HTTP layer use to turn
files into engine inputs:

    load_bank_statement(source) -> list[BankTransaction]
    load_invoices(source)       -> list[Invoice]

German bank exports are the primary target ("Datum;Buchungstext;Betrag"
with "18.01.2025" and "-1.234,56"), English headers are accepted too.
"""

from __future__ import annotations

import csv
import io
import json
import os
import uuid
from pathlib import Path
from typing import IO, Any, Union

import pandas as pd

from logging_config import get_logger
from models import BankTransaction, Invoice
from normalize import parse_amount, parse_date

logger = get_logger(__name__)

Source = Union[str, Path, bytes, IO[bytes], IO[str]]

DATE_COLUMNS = ["datum", "date", "buchungstag", "valuta"]
AMOUNT_COLUMNS = ["betrag", "amount"]
DESCRIPTION_COLUMNS = ["buchungstext", "description", "verwendungszweck"]
CURRENCY_COLUMNS = ["währung", "waehrung", "currency"]
PARTY_COLUMNS = [
    "empfänger/zahlungspflichtiger",
    "auftraggeber/empfänger",
    "name",
    "recipient",
    "payer",
]
ID_COLUMNS = ["id", "transaction_id"]

INVOICE_KEYS: dict[str, list[str]] = {
    "invoice_number": ["invoice_number", "invoiceNumber", "rechnungsnummer"],
    "date": ["date", "datum", "rechnungsdatum"],
    "supplier_name": ["supplier_name", "supplierName", "lieferantName", "lieferant"],
    "gross_total": ["gross_total", "grossTotal", "gesamtbetrag", "bruttoBetrag"],
    "currency": ["currency", "wahrung", "waehrung", "währung"],
    "pdf_file_name": ["pdf_file_name", "pdfFileName"],
}


def _read_raw(source: Source) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, (str, Path)):
        path = str(source).strip()
        if not path:
            raise ValueError("source path cannot be empty")
        if not os.path.exists(path):
            raise FileNotFoundError(f"File not found: {path}")
        return Path(path).read_bytes()

    data = source.read()
    return data.encode("utf-8") if isinstance(data, str) else data


def _decode(raw: bytes, label: str) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning(
            "encoding_warning | source=%s | reason='utf-8 decode failed' | fallback=latin-1",
            label,
        )
        return raw.decode("latin-1")


def _first_column(columns: list[str], candidates: list[str]) -> str | None:
    for candidate in candidates:
        if candidate in columns:
            return candidate
    return None


def _cell(row: pd.Series, column: str | None) -> str | None:
    if column is None:
        return None
    value = str(row[column]).strip()
    return value or None


def load_bank_statement(source: Source) -> list[BankTransaction]:
    """Parse a bank statement CSV into transactions.

    Rows without a parseable date or amount are skipped with a warning;
    they never reach the engine.

    Raises:
        FileNotFoundError: `source` is a path that does not exist.
        ValueError: the file is empty, unreadable, or lacks date/amount columns.
    """
    label = str(source) if isinstance(source, (str, Path)) else "<upload>"
    text = _decode(_read_raw(source), label)
    if not text.strip():
        raise ValueError(f"Bank statement is empty: {label}")

    header = text.lstrip().splitlines()[0]
    separator = max((";", ",", "\t"), key=header.count)

    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=separator,
            dtype=str,
            keep_default_na=False,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
        raise ValueError(f"Failed to read bank statement '{label}': {exc}") from exc

    df.columns = [str(col).strip().lower() for col in df.columns]
    columns = list(df.columns)

    date_col = _first_column(columns, DATE_COLUMNS)
    amount_col = _first_column(columns, AMOUNT_COLUMNS)
    if date_col is None or amount_col is None:
        raise ValueError(
            f"Bank statement missing required columns.\n"
            f"Need one of {DATE_COLUMNS} and one of {AMOUNT_COLUMNS}\n"
            f"Found: {columns}"
        )
    description_col = _first_column(columns, DESCRIPTION_COLUMNS)
    currency_col = _first_column(columns, CURRENCY_COLUMNS)
    party_col = _first_column(columns, PARTY_COLUMNS)
    id_col = _first_column(columns, ID_COLUMNS)

    transactions: list[BankTransaction] = []
    skipped = 0
    for index, row in df.iterrows():
        booking_date = parse_date(row[date_col])
        amount = parse_amount(row[amount_col])
        if booking_date is None or amount is None:
            skipped += 1
            logger.warning(
                "statement_row_skipped | row=%s | date=%r | amount=%r | reason='invalid date or amount'",
                int(index) + 2,
                row[date_col],
                row[amount_col],
            )
            continue

        transactions.append(
            BankTransaction(
                id=_cell(row, id_col) or str(uuid.uuid4()),
                date=booking_date,
                description=_cell(row, description_col) or "",
                amount=amount,
                currency=_cell(row, currency_col),
                recipient_or_payer=_cell(row, party_col),
            )
        )

    logger.info(
        "statement_loaded | source=%s | rows=%s | transactions=%s | skipped=%s",
        label,
        len(df),
        len(transactions),
        skipped,
    )
    return transactions


def _pick(record: dict[str, Any], keys: list[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def invoice_from_record(record: dict[str, Any]) -> Invoice:
    """Build an Invoice from an extractor record, tolerating German keys and bad values."""
    number = _pick(record, INVOICE_KEYS["invoice_number"])
    supplier = _pick(record, INVOICE_KEYS["supplier_name"])
    currency = _pick(record, INVOICE_KEYS["currency"])
    pdf_name = _pick(record, INVOICE_KEYS["pdf_file_name"])
    return Invoice(
        invoice_number=str(number).strip() if number is not None else None,
        date=parse_date(_pick(record, INVOICE_KEYS["date"])),
        supplier_name=str(supplier).strip() if supplier is not None else None,
        gross_total=parse_amount(_pick(record, INVOICE_KEYS["gross_total"])),
        currency=str(currency).strip() if currency is not None else None,
        pdf_file_name=str(pdf_name) if pdf_name is not None else None,
    )


def load_invoices(source: Source) -> list[Invoice]:
    """Load invoice records from a JSON array (or {"invoices": [...]}).

    Raises:
        FileNotFoundError: `source` is a path that does not exist.
        ValueError: the content is not JSON or not a list of objects.
    """
    label = str(source) if isinstance(source, (str, Path)) else "<upload>"
    text = _decode(_read_raw(source), label)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invoices file is not valid JSON '{label}': {exc}") from exc

    if isinstance(payload, dict) and isinstance(payload.get("invoices"), list):
        payload = payload["invoices"]
    if not isinstance(payload, list):
        raise ValueError(f"Invoices file must contain a JSON array: {label}")

    invoices: list[Invoice] = []
    for position, record in enumerate(payload):
        if not isinstance(record, dict):
            raise ValueError(f"Invoice #{position} is not a JSON object: {record!r}")
        invoice = invoice_from_record(record)
        if not invoice.is_usable:
            logger.warning(
                "invoice_incomplete | position=%s | invoice=%r | reason='missing gross total or date' | effect='ignored by matcher'",
                position,
                invoice.invoice_number,
            )
        invoices.append(invoice)

    logger.info("invoices_loaded | source=%s | invoices=%s", label, len(invoices))
    return invoices
