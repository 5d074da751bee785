"""SQLite-backed store for proposals awaiting a user's confirmation, with TTL."""

import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path

import structlog

from db import wal_connect

from .models import CandidateFact, ConflictAction, ConflictCheck, ConflictType, FactCategory, FactSource

logger = structlog.get_logger()

DEFAULT_PENDING_TTL = 3600


@dataclass
class PendingProposal:
    """A candidate fact parked until the user answers a conflict question."""

    key: str
    team_id: str
    candidate: CandidateFact
    check: ConflictCheck
    source_type: FactSource = FactSource.CONVERSATION
    source_id: str | None = None
    created_by: str | None = None
    source_question: str | None = None
    created_at: float = field(default_factory=time.time)

    def to_json(self) -> str:
        data = asdict(self)
        data["candidate"]["category"] = self.candidate.category.value
        data["check"]["action"] = self.check.action.value
        data["check"]["conflict_type"] = self.check.conflict_type.value
        data["source_type"] = self.source_type.value
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "PendingProposal":
        data = json.loads(raw)
        cand = data["candidate"]
        cand["category"] = FactCategory(cand.get("category") or "general")
        chk = data["check"]
        return cls(
            key=data["key"],
            team_id=data["team_id"],
            candidate=CandidateFact(**cand),
            check=ConflictCheck(
                action=ConflictAction(chk["action"]),
                reason=chk.get("reason", ""),
                conflict_type=ConflictType(chk.get("conflict_type", "none")),
                related_fact_id=chk.get("related_fact_id"),
            ),
            source_type=FactSource(data.get("source_type", "conversation")),
            source_id=data.get("source_id"),
            created_by=data.get("created_by"),
            source_question=data.get("source_question"),
            created_at=data.get("created_at", time.time()),
        )


class PendingConfirmationStore:
    """Keeps one pending proposal per conversation key until answered or expired."""

    def __init__(self, db_path, ttl_seconds: int = DEFAULT_PENDING_TTL):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """CREATE TABLE IF NOT EXISTS pending_confirmations (
                    key TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at REAL NOT NULL
                )"""
            )

    def put(self, proposal: PendingProposal) -> None:
        """Upsert; a newer proposal under the same key replaces the older one."""
        proposal.created_at = time.time()
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO pending_confirmations (key, team_id, payload, created_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET team_id=excluded.team_id,
                       payload=excluded.payload, created_at=excluded.created_at""",
                (proposal.key, proposal.team_id, proposal.to_json(), proposal.created_at),
            )
        logger.debug("pending.stored", key=proposal.key, team_id=proposal.team_id)

    def get(self, key: str) -> PendingProposal | None:
        """Return the proposal if present and not expired, else None."""
        with wal_connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT payload, created_at FROM pending_confirmations WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        payload, created_at = row
        if time.time() - created_at > self.ttl_seconds:
            self.discard(key)
            logger.debug("pending.expired", key=key)
            return None
        return PendingProposal.from_json(payload)

    def pop(self, key: str) -> PendingProposal | None:
        """Claim the proposal: read and delete it in one write transaction.

        Of several concurrent callers for the same key exactly one gets the
        proposal; the others see None.
        """
        with wal_connect(self.db_path) as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT payload, created_at FROM pending_confirmations WHERE key = ?",
                (key,),
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM pending_confirmations WHERE key = ?", (key,))

        payload, created_at = row
        if time.time() - created_at > self.ttl_seconds:
            logger.debug("pending.expired", key=key)
            return None
        logger.debug("pending.claimed", key=key)
        return PendingProposal.from_json(payload)

    def discard(self, key: str) -> None:
        with wal_connect(self.db_path) as conn:
            conn.execute("DELETE FROM pending_confirmations WHERE key = ?", (key,))

    def list_keys(self, team_id: str) -> list[str]:
        """Unexpired keys for a team, oldest first."""
        cutoff = time.time() - self.ttl_seconds
        with wal_connect(self.db_path) as conn:
            rows = conn.execute(
                """SELECT key FROM pending_confirmations
                   WHERE team_id = ? AND created_at >= ? ORDER BY created_at""",
                (team_id, cutoff),
            ).fetchall()
        return [r[0] for r in rows]

    def clear_expired(self) -> int:
        """Delete entries older than TTL. Returns the number removed."""
        cutoff = time.time() - self.ttl_seconds
        with wal_connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM pending_confirmations WHERE created_at < ?", (cutoff,))
        return cur.rowcount
