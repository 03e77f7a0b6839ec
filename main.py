"""
main.py - CLI orchestration for the reconciliation engine.

This module is orchestration-only:
1. load bank statement CSV
2. load invoices JSON
3. reconcile
4. format / export
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from explain import format_summary, to_csv, to_json, to_tsv
from logging_config import get_logger, setup_logging
from models import MatchedTransaction, PreconditionViolation
from reconcile import match
from statements import load_bank_statement, load_invoices

logger = get_logger("reconcile-cli")

FORMATTERS = {
    "text": format_summary,
    "csv": to_csv,
    "tsv": to_tsv,
    "json": to_json,
}


def _configure_output() -> None:
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, ValueError):
        pass


def run_pipeline(statement_path: str, invoices_path: str) -> list[MatchedTransaction]:
    """Load both inputs and reconcile them."""
    pipeline_start = time.time()

    stage_start = time.time()
    logger.info("pipeline_stage | stage=1/3 | name=load_statement | status=start")
    transactions = load_bank_statement(statement_path)
    load_time = time.time() - stage_start

    stage_start = time.time()
    logger.info("pipeline_stage | stage=2/3 | name=load_invoices | status=start")
    invoices = load_invoices(invoices_path)
    invoices_time = time.time() - stage_start

    stage_start = time.time()
    logger.info("pipeline_stage | stage=3/3 | name=reconcile | status=start")
    results = match(transactions, invoices)
    match_time = time.time() - stage_start

    logger.info(
        "pipeline_complete | total_duration_s=%.2f | statement_s=%.2f | invoices_s=%.2f | match_s=%.2f",
        time.time() - pipeline_start,
        load_time,
        invoices_time,
        match_time,
    )
    return results


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    load_dotenv()
    parser = argparse.ArgumentParser(
        prog="reconcile",
        description=(
            "Bank Reconciliation\n"
            "Matches bank statement payments to extracted invoices and flags "
            "suspects, refunds and rent payments for review."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --statement konto.csv --invoices invoices.json\n"
            "  %(prog)s -s konto.csv -i invoices.json --format csv --output matches.csv\n"
        ),
    )
    parser.add_argument("--statement", "-s", type=str, required=True, help="Bank statement CSV")
    parser.add_argument("--invoices", "-i", type=str, required=True, help="Invoices JSON array")
    parser.add_argument(
        "--format",
        "-f",
        choices=sorted(FORMATTERS),
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument("--output", "-o", type=str, help="Write output to this file instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-json", action="store_true", help="Output logs as JSON lines")

    args = parser.parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else None,
        json_format=True if args.log_json else None,
    )
    _configure_output()

    try:
        results = run_pipeline(args.statement, args.invoices)
        rendered = FORMATTERS[args.format](results)
        if args.output:
            Path(args.output).write_text(rendered + "\n", encoding="utf-8")
            logger.info("output_written | path=%s | format=%s", args.output, args.format)
        else:
            print(rendered)
    except OSError as exc:
        logger.error("cli_error | type=%s | error=%s", type(exc).__name__, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except PreconditionViolation as exc:
        logger.error("cli_error | type=PreconditionViolation | transaction=%s | error=%s", exc.transaction_id, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except ValueError as exc:
        logger.error("cli_error | type=ValueError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("\nInterrupted.")
        raise SystemExit(130)


if __name__ == "__main__":
    main()
