"""
Signing Pipeline
Runs one batch: fetch the backlog, ask the oracle about each proposal,
sign approved ones, and record every decision.

Proposals are processed one at a time in creation order, because
operations from the same sender share a nonce space. A failure while
processing one proposal becomes that proposal's ``error`` result and
never stops the rest of the batch; that includes a backlog row that
cannot be parsed. Only configuration and backlog retrieval failures
abort the run.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Optional

from cosigner.domain import DomainResolver
from cosigner.errors import classify
from cosigner.evaluator import Evaluator
from cosigner.models import Proposal
from cosigner.signing import Signer, sign_proposal
from cosigner.store import ProposalSource, ResultStore

logger = logging.getLogger(__name__)


class Status(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass
class ProposalResult:
    hash: str
    status: Status
    vote: Optional[bool] = None
    reason: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    duplicate: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class BatchReport:
    total: int
    results: list[ProposalResult] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Processed {self.total} proposals"

    def counts(self) -> dict[str, int]:
        tally = Counter(r.status.value for r in self.results)
        return {s.value: tally.get(s.value, 0) for s in Status}

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "total": self.total,
            "counts": self.counts(),
            "results": [r.to_dict() for r in self.results],
        }


class SigningPipeline:
    def __init__(
        self,
        source: ProposalSource,
        evaluator: Evaluator,
        resolver: DomainResolver,
        signer: Signer,
        store: ResultStore,
        target_account: str,
        window: timedelta = timedelta(hours=24),
    ):
        self.source = source
        self.evaluator = evaluator
        self.resolver = resolver
        self.signer = signer
        self.store = store
        self.target_account = target_account
        self.window = window

    def close(self) -> None:
        """Release the oracle client and the connection pool."""
        self.evaluator.close()
        self.store.close()

    def process(self, proposal: Proposal) -> ProposalResult:
        """Evaluate, sign if approved, and record one proposal."""
        op_hash = proposal.user_op_hash
        logger.info("Processing proposal with hash: %s", op_hash)

        decision = self.evaluator.get_vote(proposal.content)
        logger.info("Vote for %s: %s", op_hash, decision.vote)

        if decision.vote:
            signature = sign_proposal(self.signer, self.resolver, proposal)
            logger.info("Signature for %s: %s", op_hash, signature)
            status = Status.SUCCESS
        else:
            signature = ""
            status = Status.REJECTED

        stored = self.store.record_outcome(
            signer=self.signer.address,
            account=proposal.sender,
            hash=op_hash,
            signature=signature,
            reason=decision.reason,
        )
        return ProposalResult(
            hash=op_hash,
            status=status,
            vote=decision.vote,
            reason=decision.reason,
            signature=signature or None,
            duplicate=stored is None,
        )

    def run(self) -> BatchReport:
        """Run one batch. Raises only for batch-level failures."""
        rows = self.source.fetch_pending(
            self.target_account, self.signer.address, self.window,
        )
        logger.info("Found %d proposals to process", len(rows))

        report = BatchReport(total=len(rows))
        for row in rows:
            op_hash = str(row.get("userOpHash") or "")
            try:
                result = self.process(Proposal.from_row(row))
            except Exception as exc:
                logger.exception("Error processing proposal %s", op_hash)
                result = ProposalResult(
                    hash=op_hash,
                    status=Status.ERROR,
                    error=str(exc),
                    error_code=classify(exc),
                )
            report.results.append(result)

        logger.info("Batch finished: %s", report.counts())
        return report
