"""
Proposal Backlog and Outcome Store
PostgreSQL access for the pending-proposal query and the signatures
ledger.

The signatures table carries a unique index on (signer, hash). Recording
the same outcome twice is a no-op, so two overlapping runs can never
leave two rows for one proposal even if both read it as pending.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Iterator, Optional

import psycopg2
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from cosigner.errors import OutcomeStoreError, TransientQueryError
from cosigner.models import SignedOutcome

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS signatures (
    id          BIGSERIAL PRIMARY KEY,
    signer      TEXT NOT NULL,
    account     TEXT,
    hash        TEXT NOT NULL,
    signature   TEXT NOT NULL DEFAULT '',
    content     TEXT,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE UNIQUE INDEX IF NOT EXISTS signatures_signer_hash_key
    ON signatures (signer, hash);
"""

PENDING_PROPOSALS_SQL = """
SELECT p.*
FROM proposals p
WHERE p.created_at >= NOW() - make_interval(secs => %s)
  AND p.sender = %s
  AND NOT EXISTS (
      SELECT 1 FROM signatures s
      WHERE s.signer = %s
        AND s.hash = lower(p."userOpHash")
  )
ORDER BY p.created_at ASC
"""

INSERT_OUTCOME_SQL = """
INSERT INTO signatures (signer, account, hash, signature, content)
VALUES (%s, %s, %s, %s, %s)
ON CONFLICT (signer, hash) DO NOTHING
RETURNING signer, account, hash, signature, content
"""

TRANSIENT_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


class Database:
    """Lazily created, size-bounded connection pool."""

    def __init__(
        self,
        dsn: str,
        max_connections: int = 20,
        connect_timeout: int = 10,
        statement_timeout_ms: int = 30000,
        pool: Any = None,
    ):
        self._dsn = dsn
        self._max_connections = max_connections
        self._connect_timeout = connect_timeout
        self._statement_timeout_ms = statement_timeout_ms
        self._pool = pool

    def _get_pool(self):
        if self._pool is None:
            self._pool = ThreadedConnectionPool(
                1,
                self._max_connections,
                self._dsn,
                connect_timeout=self._connect_timeout,
                options=f"-c statement_timeout={self._statement_timeout_ms}",
            )
        return self._pool

    @contextmanager
    def connection(self) -> Iterator[Any]:
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            pool.putconn(conn, close=bool(conn.closed))

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    def ensure_schema(self) -> None:
        """Create the signatures table and its uniqueness constraint."""
        with self.connection() as conn:
            cur = conn.cursor()
            cur.execute(SCHEMA_SQL)
            cur.close()


class ProposalSource:
    """Reads the not-yet-processed backlog for one target account."""

    def __init__(
        self,
        db: Database,
        retries: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._db = db
        self._retries = retries
        self._backoff = backoff_seconds
        self._sleep = sleep

    def _query(self, target_account: str, signer_address: str, window: timedelta) -> list[dict]:
        with self._db.connection() as conn:
            cur = conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            cur.execute(
                PENDING_PROPOSALS_SQL,
                (window.total_seconds(), target_account.lower(), signer_address.lower()),
            )
            rows = cur.fetchall()
            cur.close()
        return rows

    def fetch_pending(
        self,
        target_account: str,
        signer_address: str,
        window: timedelta = timedelta(hours=24),
    ) -> list[dict]:
        """
        Raw ``proposals`` rows for ``target_account`` created within
        ``window`` that ``signer_address`` has not yet signed or rejected,
        oldest first. Rows are left unparsed so a malformed one fails alone.

        Retries transient database errors with linear backoff; raises
        TransientQueryError once all attempts fail.
        """
        for attempt in range(1, self._retries + 1):
            try:
                rows = self._query(target_account, signer_address, window)
                break
            except TRANSIENT_ERRORS as exc:
                logger.warning("Proposal query attempt %d failed: %s", attempt, exc)
                if attempt == self._retries:
                    raise TransientQueryError(
                        f"Proposal query failed after {attempt} attempts: {exc}",
                        attempts=attempt,
                    ) from exc
                self._sleep(self._backoff * attempt)

        logger.info("Found %d proposals for sender %s", len(rows), target_account)
        return rows


class ResultStore:
    """Append-only writer for the signatures ledger."""

    def __init__(self, db: Database):
        self._db = db

    def close(self) -> None:
        self._db.close()

    def record_outcome(
        self,
        signer: str,
        account: Optional[str],
        hash: str,
        signature: str,
        reason: str,
    ) -> Optional[SignedOutcome]:
        """
        Insert one outcome row. An empty ``signature`` records a rejection.

        Returns the stored outcome, or None when (signer, hash) was
        already recorded.
        """
        try:
            with self._db.connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    INSERT_OUTCOME_SQL,
                    (
                        signer.lower(),
                        account.lower() if account else None,
                        hash.lower(),
                        signature,
                        reason,
                    ),
                )
                row = cur.fetchone()
                cur.close()
        except psycopg2.Error as exc:
            raise OutcomeStoreError(f"Failed to record outcome for {hash}: {exc}") from exc

        if row is None:
            logger.warning("Outcome for %s by %s already recorded", hash, signer)
            return None
        return SignedOutcome(
            signer=row[0],
            account=row[1],
            hash=row[2],
            signature=row[3],
            reason=row[4],
        )
