"""
Error Taxonomy
Every failure the signing pipeline can raise, with a stable ``code``.

Batch-level errors (configuration, backlog retrieval) abort a run.
Everything else is raised while processing one proposal and is caught
by the pipeline, which reports it as that proposal's ``error`` status.
"""

from __future__ import annotations


class CosignerError(Exception):
    code = "COSIGNER_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


# ---------------------------------------------------------------------------
# Batch-level
# ---------------------------------------------------------------------------

class ConfigurationError(CosignerError):
    """Raised at startup when a required option is missing or invalid."""
    code = "CONFIGURATION_ERROR"


class TransientQueryError(CosignerError):
    """Raised when the backlog query keeps failing after all retries."""
    code = "TRANSIENT_QUERY_ERROR"

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


# ---------------------------------------------------------------------------
# Per-proposal
# ---------------------------------------------------------------------------

class EvaluationFormatError(CosignerError):
    """The oracle never returned a body that parses as JSON."""
    code = "EVALUATION_FORMAT_ERROR"

    def __init__(self, message: str, *, attempts: int, last_body: str = "") -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_body = last_body


class OracleUnavailableError(CosignerError):
    """Transport failure or timeout talking to the oracle."""
    code = "ORACLE_UNAVAILABLE"


class UnsupportedChainError(CosignerError):
    code = "UNSUPPORTED_CHAIN"

    def __init__(self, chain: object) -> None:
        super().__init__(f"Unsupported chain: {chain!r}")
        self.chain = chain


class DomainResolutionError(CosignerError):
    """The account's eip712Domain() could not be read."""
    code = "DOMAIN_RESOLUTION_ERROR"


class EncodingError(CosignerError):
    """A field cannot be represented in its packed wire form."""
    code = "ENCODING_ERROR"


class SigningError(CosignerError):
    """Wraps whatever the external signing capability raised."""
    code = "SIGNING_ERROR"


class OutcomeStoreError(CosignerError):
    code = "OUTCOME_STORE_ERROR"


def classify(exc: BaseException) -> str:
    """Return the stable error code for ``exc``."""
    if isinstance(exc, CosignerError):
        return exc.code
    return "INTERNAL_ERROR"
