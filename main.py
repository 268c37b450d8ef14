"""
Cosigner Gateway
HTTP trigger for the AI co-signer. One POST /vote runs one batch:
every pending proposal for the target account is evaluated by the oracle,
signed if approved, and recorded.

Configuration is read from the environment (see cosigner/settings.py);
a missing secret fails the service at startup.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cosigner.domain import DomainResolver
from cosigner.evaluator import Evaluator
from cosigner.pipeline import SigningPipeline
from cosigner.settings import Settings
from cosigner.signing import LocalAccountSigner
from cosigner.store import Database, ProposalSource, ResultStore
from cosigner.validators import ValidatorRegistry

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("cosigner.gateway")

_pipeline: SigningPipeline | None = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ProposalOutcome(BaseModel):
    hash: str
    status: str                     # success | rejected | error
    vote: bool | None = None
    reason: str | None = None
    signature: str | None = None
    error: str | None = None
    error_code: str | None = None
    duplicate: bool = False


class VoteResponse(BaseModel):
    message: str
    total: int
    counts: dict[str, int]
    results: list[ProposalOutcome]


class ErrorResponse(BaseModel):
    error: str
    details: str


def open_database(settings: Settings) -> Database:
    return Database(
        settings.database_url,
        max_connections=settings.db_pool_max,
        connect_timeout=settings.db_connect_timeout_seconds,
        statement_timeout_ms=settings.db_statement_timeout_ms,
    )


def build_pipeline(settings: Settings, db: Database | None = None) -> SigningPipeline:
    if db is None:
        db = open_database(settings)
    registry = ValidatorRegistry.from_file(settings.validator_registry_path)
    logger.info("Loaded %d validator modules", len(registry))
    return SigningPipeline(
        source=ProposalSource(db),
        evaluator=Evaluator(
            settings.oracle_url,
            settings.oracle_api_key,
            timeout=settings.oracle_timeout_seconds,
        ),
        resolver=DomainResolver(
            registry,
            rpc_urls=settings.rpc_urls,
            timeout=settings.rpc_timeout_seconds,
        ),
        signer=LocalAccountSigner(settings.credentials),
        store=ResultStore(db),
        target_account=settings.target_sender,
        window=timedelta(hours=settings.window_hours),
    )


def get_pipeline() -> SigningPipeline:
    global _pipeline
    if _pipeline is None:
        settings = Settings.from_env()
        db = open_database(settings)
        # ON CONFLICT (signer, hash) needs the unique index in place
        db.ensure_schema()
        _pipeline = build_pipeline(settings, db)
        logger.info("ACCOUNT: %s", _pipeline.signer.address)
    return _pipeline


def close_pipeline() -> None:
    global _pipeline
    if _pipeline is not None:
        _pipeline.close()
        _pipeline = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_pipeline()
    yield
    close_pipeline()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Cosigner Gateway",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
def health():
    return {"status": "operational", "service": "cosigner"}


@app.post("/vote")
def vote():
    """
    Run one signing batch.

    Returns 200 with per-proposal results even when individual proposals
    fail; returns 500 only when the batch itself could not run.
    """
    try:
        report = get_pipeline().run()
    except Exception as exc:
        logger.exception("Batch run failed")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Internal Server Error", details=str(exc)).model_dump(),
        )

    response_body = VoteResponse(**report.to_dict())
    return JSONResponse(status_code=200, content=response_body.model_dump(exclude_none=True))
