"""Vote ledger: one stored vote per (project, judge), plus a best-effort writer.

Ledger writes are never on the path that returns an evaluation result. The
service hands finished votes to a LedgerWriter, which persists them from a
background task and reports failures on its own error channel.
"""

import asyncio
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path

from council.errors import PersistenceError
from council.models import Vote

logger = logging.getLogger(__name__)


class VoteLedger(ABC):
    """Idempotent storage of judge votes keyed by (project_id, judge_id)."""

    @abstractmethod
    def upsert(
        self,
        project_id: str,
        judge_id: str,
        judge_name: str,
        approve: bool,
        reasoning: str,
        provider_kind: str,
        timestamp: datetime | None = None,
    ) -> None:
        """Insert or replace the vote for (project_id, judge_id).

        Raises:
            PersistenceError: If the write fails.
        """
        ...

    @abstractmethod
    def get_votes(self, project_id: str) -> list[Vote]:
        """Return every stored vote for a project, ordered by judge_id.

        Raises:
            PersistenceError: If the read fails.
        """
        ...

    def record(self, project_id: str, votes: list[Vote]) -> None:
        for vote in votes:
            self.upsert(
                project_id,
                vote.judge_id,
                vote.judge_name,
                vote.approve,
                vote.reasoning,
                vote.provider_kind,
                timestamp=vote.timestamp,
            )


class InMemoryVoteLedger(VoteLedger):
    """Process-local ledger. Useful for tests and one-shot CLI runs."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], Vote] = {}

    def upsert(
        self,
        project_id: str,
        judge_id: str,
        judge_name: str,
        approve: bool,
        reasoning: str,
        provider_kind: str,
        timestamp: datetime | None = None,
    ) -> None:
        self._rows[(project_id, judge_id)] = Vote(
            judge_id=judge_id,
            judge_name=judge_name,
            provider_kind=provider_kind,
            approve=approve,
            reasoning=reasoning,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    def get_votes(self, project_id: str) -> list[Vote]:
        return [
            vote
            for (pid, _), vote in sorted(self._rows.items())
            if pid == project_id
        ]


class SqliteVoteLedger(VoteLedger):
    """SQLite-backed ledger mirroring the council_votes table.

    Each operation opens its own connection so the ledger can be used from
    worker threads.

    Example:
        ledger = SqliteVoteLedger("./data/council_votes.db")
        ledger.init_schema()
        ledger.upsert("p-1", "code-validator", "CODE-VALIDATOR", True, "Solid.", "openai")
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS council_votes (
        project_id TEXT NOT NULL,
        judge_id TEXT NOT NULL,
        judge_name TEXT,
        vote INTEGER NOT NULL,
        reason TEXT,
        ai_provider TEXT,
        timestamp TEXT NOT NULL,
        UNIQUE (project_id, judge_id)
    );

    CREATE INDEX IF NOT EXISTS idx_council_votes_project ON council_votes(project_id);
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        return conn

    def init_schema(self) -> None:
        """Create the council_votes table (and parent directory) if missing."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn:
                conn.executescript(self.SCHEMA)
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Failed to initialise vote ledger at {self.path}: {exc}") from exc

    def upsert(
        self,
        project_id: str,
        judge_id: str,
        judge_name: str,
        approve: bool,
        reasoning: str,
        provider_kind: str,
        timestamp: datetime | None = None,
    ) -> None:
        ts = (timestamp or datetime.now(timezone.utc)).isoformat()
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    """
                    INSERT INTO council_votes (
                        project_id, judge_id, judge_name, vote, reason, ai_provider, timestamp
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (project_id, judge_id) DO UPDATE SET
                        judge_name = excluded.judge_name,
                        vote = excluded.vote,
                        reason = excluded.reason,
                        ai_provider = excluded.ai_provider,
                        timestamp = excluded.timestamp
                    """,
                    (project_id, judge_id, judge_name, int(approve), reasoning, provider_kind, ts),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to store vote {project_id}/{judge_id}: {exc}",
                details={"project_id": project_id, "judge_id": judge_id},
            ) from exc

    def get_votes(self, project_id: str) -> list[Vote]:
        try:
            with closing(self._connect()) as conn:
                cursor = conn.execute(
                    """
                    SELECT judge_id, judge_name, vote, reason, ai_provider, timestamp
                    FROM council_votes WHERE project_id = ? ORDER BY judge_id
                    """,
                    (project_id,),
                )
                rows = cursor.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read votes for {project_id}: {exc}") from exc

        return [
            Vote(
                judge_id=row["judge_id"],
                judge_name=row["judge_name"] or row["judge_id"],
                provider_kind=row["ai_provider"] or "",
                approve=bool(row["vote"]),
                reasoning=row["reason"] or "",
                timestamp=datetime.fromisoformat(row["timestamp"]),
            )
            for row in rows
        ]


class LedgerWriter:
    """Persist votes from a background task fed by an asyncio queue.

    `submit` never blocks and never raises on storage problems; failures are
    logged, appended to `errors` and passed to `on_error` if given.
    """

    def __init__(
        self,
        ledger: VoteLedger,
        on_error: Callable[[PersistenceError], None] | None = None,
    ) -> None:
        self._ledger = ledger
        self._on_error = on_error
        self._queue: asyncio.Queue[tuple[str, list[Vote]]] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self.errors: list[PersistenceError] = []

    def submit(self, project_id: str, votes: list[Vote]) -> None:
        """Queue a project's votes for storage. Requires a running event loop."""
        if not votes:
            return
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run(), name="ledger-writer")
        self._queue.put_nowait((project_id, list(votes)))

    async def _run(self) -> None:
        while True:
            project_id, votes = await self._queue.get()
            try:
                await asyncio.to_thread(self._ledger.record, project_id, votes)
                logger.info("Saved %d votes for project %s", len(votes), project_id)
            except Exception as exc:
                err = exc if isinstance(exc, PersistenceError) else PersistenceError(
                    f"Failed to save votes for {project_id}: {exc}"
                )
                logger.error("Error saving votes for project %s: %s", project_id, err)
                self.errors.append(err)
                if self._on_error:
                    self._on_error(err)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued write has been attempted."""
        await self._queue.join()

    async def close(self) -> None:
        await self.drain()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
