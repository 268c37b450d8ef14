"""
Proposal Evaluator
Asks the reasoning oracle whether a proposal should be approved.

The oracle is a free-text model, so a well-formed answer is not
guaranteed. Each attempt uses the next prompt variant in PROMPT_VARIANTS,
each stricter about JSON-only output, and stops at the first response
body that parses as JSON.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from cosigner.errors import EvaluationFormatError, OracleUnavailableError
from cosigner.models import VoteDecision

logger = logging.getLogger(__name__)

BASE_INSTRUCTION = (
    "You are NANI, an AI member of the DAO. You must carefully evaluate whether "
    "the following proposal is in the best interest of the DAO. Analyze the "
    "proposal and determine if it should be approved. Your response must be in "
    "JSON format with 'vote' being true or false and include a 'reason' "
    "explaining your decision. Format: {\"vote\":true/false,\"reason\":\"explanation\"}."
)

PROMPT_VARIANTS: tuple[str, ...] = (
    "",
    "You must respond with ONLY valid JSON, no other text or explanation.",
    'CRITICAL: Respond with ONLY a JSON object in the exact format '
    '{"vote": boolean, "reason": "string"} - no other text whatsoever.',
)


@dataclass
class EvaluationFailure:
    attempts: int
    last_body: str = ""


EvaluationOutcome = Union[VoteDecision, EvaluationFailure]


def build_prompt(content: str, extra_instruction: str = "") -> str:
    return f"{BASE_INSTRUCTION} {extra_instruction} Here is the proposal to evaluate: {content}"


class Evaluator:
    """Client for the oracle chat endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
        variants: tuple[str, ...] = PROMPT_VARIANTS,
    ):
        """
        Args:
            url: Oracle chat endpoint
            api_key: Sent as the ``x-api-key`` header
            timeout: Per-request timeout in seconds
            client: Pre-built httpx client (tests pass one with a MockTransport)
            variants: Extra instructions, one per attempt, in order
        """
        self.url = url
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)
        self._variants = variants

    def _request(self, content: str, extra_instruction: str) -> str:
        try:
            resp = self._client.post(
                self.url,
                headers={"content-type": "application/json", "x-api-key": self._api_key},
                json={
                    "messages": [
                        {"role": "system", "content": build_prompt(content, extra_instruction)},
                    ],
                },
            )
        except httpx.HTTPError as exc:
            raise OracleUnavailableError(f"Oracle request failed: {exc}") from exc
        return resp.text

    def evaluate(self, content: str) -> EvaluationOutcome:
        """Try each prompt variant until a response parses as JSON."""
        body = ""
        for attempt, extra in enumerate(self._variants, start=1):
            body = self._request(content, extra)
            logger.debug("Oracle response (attempt %d): %s", attempt, body)
            try:
                payload: Any = json.loads(body)
            except ValueError:
                logger.warning("Oracle attempt %d returned non-JSON body", attempt)
                continue
            return VoteDecision.from_payload(payload)
        return EvaluationFailure(attempts=len(self._variants), last_body=body)

    def get_vote(self, content: str) -> VoteDecision:
        outcome = self.evaluate(content)
        if isinstance(outcome, EvaluationFailure):
            raise EvaluationFormatError(
                f"Failed to get valid JSON response after {outcome.attempts} attempts",
                attempts=outcome.attempts,
                last_body=outcome.last_body,
            )
        return outcome

    def close(self) -> None:
        self._client.close()
