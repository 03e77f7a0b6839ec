"""
api.py - FastAPI HTTP layer for the reconciliation engine.

Endpoints:
  - GET  /health
  - POST /match          JSON transactions + invoices
  - POST /match/upload   statement CSV + invoices JSON as multipart files

No matching logic is implemented here.
"""

from __future__ import annotations

import os
from typing import Any

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from explain import summarize
from logging_config import get_logger, setup_logging
from models import BankTransaction, MatchedTransaction, PreconditionViolation
from reconcile import match
from statements import invoice_from_record, load_bank_statement, load_invoices

logger = get_logger("reconcile-api")

app = FastAPI(
    title="Bank Reconciliation API",
    version="1.0.0",
)

# Allows local UI use from file:// or another local host/port.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class MatchRequest(BaseModel):
    """Request body for POST /match."""

    transactions: list[BankTransaction] = Field(default_factory=list)
    invoices: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Invoice records; English or extractor (German) keys accepted.",
    )


def _result_payload(results: list[MatchedTransaction]) -> dict[str, Any]:
    return {
        "results": [result.model_dump(mode="json", by_alias=True) for result in results],
        "summary": summarize(results),
    }


def _reconcile(transactions: list[BankTransaction], invoices: list[Any]) -> dict[str, Any]:
    try:
        results = match(transactions, invoices)
    except PreconditionViolation as exc:
        logger.warning("api_precondition_violation | transaction=%s | reason=%s", exc.transaction_id, exc.reason)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _result_payload(results)


@app.get("/health")
def health() -> dict[str, str]:
    """Service health check."""
    return {"status": "ok"}


@app.post("/match")
def match_endpoint(request: MatchRequest) -> dict[str, Any]:
    """Reconcile JSON-posted transactions against JSON-posted invoices."""
    invoices = [invoice_from_record(record) for record in request.invoices]
    logger.info(
        "api_match | transactions=%s | invoices=%s",
        len(request.transactions),
        len(invoices),
    )
    return _reconcile(request.transactions, invoices)


@app.post("/match/upload")
async def match_upload_endpoint(
    statement: UploadFile = File(...),
    invoices: UploadFile = File(...),
) -> dict[str, Any]:
    """Parse an uploaded bank statement CSV and invoices JSON, then reconcile."""
    try:
        statement_bytes = await statement.read()
        invoices_bytes = await invoices.read()
    finally:
        await statement.close()
        await invoices.close()

    try:
        transactions = load_bank_statement(statement_bytes)
        invoice_list = load_invoices(invoices_bytes)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.info(
        "api_match_upload | statement=%s | transactions=%s | invoices=%s",
        statement.filename,
        len(transactions),
        len(invoice_list),
    )
    return _reconcile(transactions, invoice_list)


if __name__ == "__main__":
    load_dotenv()
    setup_logging()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("api:app", host="0.0.0.0", port=port, reload=False)
