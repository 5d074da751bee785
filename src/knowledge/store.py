"""Persistent storage for team facts and decisions: SQLite rows, JSON-encoded vectors."""

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path

import structlog

from db import wal_connect

from .errors import FactNotFoundError, FactValidationError, StaleFactError
from .models import (
    AtomicFactBatch,
    CandidateFact,
    Decision,
    Fact,
    FactCategory,
    FactSource,
    utcnow,
)

logger = structlog.get_logger()

DEFAULT_MIN_CONFIDENCE = 0.6
EMBEDDING_DIMENSIONS_KEY = "embedding_dimensions"


def coerce_category(category: FactCategory | str | None, strict: bool = True) -> FactCategory:
    """Map a category value to FactCategory.

    Unknown values raise FactValidationError when strict, else become GENERAL.
    """
    if category is None or category == "":
        return FactCategory.GENERAL
    if isinstance(category, FactCategory):
        return category
    try:
        return FactCategory(str(category).strip().lower())
    except ValueError:
        if strict:
            valid = ", ".join(c.value for c in FactCategory)
            raise FactValidationError(f"Unknown category: {category}. Valid: {valid}")
        return FactCategory.GENERAL


def _coerce_source(source_type: FactSource | str) -> FactSource:
    if isinstance(source_type, FactSource):
        return source_type
    try:
        return FactSource(source_type)
    except ValueError:
        raise FactValidationError(f"Unknown source type: {source_type}")


def _like_escape(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class FactStore:
    """SQLite persistence for team-scoped, temporally-versioned facts.

    Every read and write is scoped to one team. Facts are never hard-deleted:
    invalidation sets ``valid_until`` and optionally ``superseded_by``.
    """

    def __init__(
        self,
        db_path: str | Path,
        embedder=None,
        extractor=None,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        reembed_on_edit: bool = False,
    ):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.embedder = embedder
        self._extractor = extractor
        self.min_confidence = min_confidence
        self.reembed_on_edit = reembed_on_edit
        self._embedding_dimensions: int | None = None
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS facts (
                    id TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'general',
                    entity_type TEXT,
                    entity_name TEXT,
                    attribute TEXT,
                    value TEXT,
                    confidence_score REAL,
                    source_type TEXT NOT NULL,
                    source_id TEXT,
                    created_by TEXT,
                    metadata TEXT,
                    embedding TEXT,
                    valid_from TEXT NOT NULL,
                    valid_until TEXT,
                    superseded_by TEXT REFERENCES facts(id),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_facts_team_active
                ON facts(team_id, valid_until)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_facts_team_category
                ON facts(team_id, category)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_facts_superseded
                ON facts(superseded_by)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS decisions (
                    id TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    what TEXT NOT NULL,
                    why TEXT,
                    alternatives TEXT NOT NULL DEFAULT '[]',
                    made_by TEXT,
                    source_id TEXT,
                    related_facts TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_decisions_team
                ON decisions(team_id, created_at)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

    # ------------------------------------------------------------------ #
    # Facts: writes
    # ------------------------------------------------------------------ #

    def _embed(self, text: str) -> list[float] | None:
        """Best-effort embedding. Never raises; None means "not embedded"."""
        if self.embedder is None:
            return None
        try:
            vector = self.embedder.embed(text)
        except Exception as e:
            logger.warning("embedding_failed", error=str(e))
            return None
        return self._accept_embedding(vector)

    @property
    def embedding_dimensions(self) -> int | None:
        """Vector length this database is pinned to, or None before the first embedding."""
        if self._embedding_dimensions is None:
            with wal_connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM store_meta WHERE key = ?", (EMBEDDING_DIMENSIONS_KEY,)
                ).fetchone()
            if row is not None:
                self._embedding_dimensions = int(row[0])
        return self._embedding_dimensions

    def _accept_embedding(self, vector: list[float] | None) -> list[float] | None:
        """Pin the database to the first vector length stored; drop vectors of any other length.

        Vectors from different providers (OpenAI 1536-d, local 384-d) are not
        comparable, so a database holds one length only.
        """
        if not vector:
            return None
        if self.embedding_dimensions is None:
            with wal_connect(self.db_path) as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO store_meta (key, value) VALUES (?, ?)",
                    (EMBEDDING_DIMENSIONS_KEY, str(len(vector))),
                )
        if len(vector) != self.embedding_dimensions:
            logger.warning(
                "embedding_dimension_mismatch",
                expected=self.embedding_dimensions,
                got=len(vector),
            )
            return None
        return vector

    def _build_fact(
        self,
        team_id: str,
        content: str,
        category: FactCategory | str | None,
        source_type: FactSource | str,
        source_id: str | None,
        created_by: str | None,
        metadata: dict | None,
        confidence_score: float | None,
        entity_type: str | None,
        entity_name: str | None,
        attribute: str | None,
        value: str | None,
        embedding: list[float] | None,
    ) -> Fact:
        if not team_id:
            raise FactValidationError("team_id is required")
        text = (content or "").strip()
        if not text:
            raise FactValidationError("Fact content must be non-empty")
        if confidence_score is not None and not 0.0 <= confidence_score <= 1.0:
            raise FactValidationError(f"confidence_score must be 0-1, got {confidence_score}")

        fact = Fact(
            id=uuid.uuid4().hex,
            team_id=team_id,
            content=text,
            category=coerce_category(category),
            entity_type=entity_type,
            entity_name=entity_name,
            attribute=attribute,
            value=value,
            confidence_score=confidence_score,
            source_type=_coerce_source(source_type),
            source_id=source_id,
            created_by=created_by,
            metadata=dict(metadata or {}),
        )
        # Embedding is computed after validation and before any DB work
        fact.embedding = (
            self._accept_embedding(embedding) if embedding is not None else self._embed(text)
        )
        now = utcnow()
        fact.valid_from = fact.created_at = fact.updated_at = now
        return fact

    @staticmethod
    def _insert(conn: sqlite3.Connection, fact: Fact) -> None:
        conn.execute(
            """INSERT INTO facts
               (id, team_id, content, category, entity_type, entity_name, attribute, value,
                confidence_score, source_type, source_id, created_by, metadata, embedding,
                valid_from, valid_until, superseded_by, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL, ?, ?)""",
            (
                fact.id,
                fact.team_id,
                fact.content,
                fact.category.value,
                fact.entity_type,
                fact.entity_name,
                fact.attribute,
                fact.value,
                fact.confidence_score,
                fact.source_type.value,
                fact.source_id,
                fact.created_by,
                json.dumps(fact.metadata) if fact.metadata else None,
                json.dumps(fact.embedding) if fact.embedding is not None else None,
                fact.valid_from.isoformat(),
                fact.created_at.isoformat(),
                fact.updated_at.isoformat(),
            ),
        )

    def create_fact(
        self,
        team_id: str,
        content: str,
        category: FactCategory | str | None = FactCategory.GENERAL,
        source_type: FactSource | str = FactSource.MANUAL,
        source_id: str | None = None,
        created_by: str | None = None,
        metadata: dict | None = None,
        embedding: list[float] | None = None,
        confidence_score: float | None = None,
        entity_type: str | None = None,
        entity_name: str | None = None,
        attribute: str | None = None,
        value: str | None = None,
    ) -> Fact:
        """Persist a new active fact.

        If no embedding is supplied one is requested from the embedder; on
        failure the fact is stored with ``embedding = None``.

        Raises:
            FactValidationError: empty content, unknown category or source.
        """
        fact = self._build_fact(
            team_id, content, category, source_type, source_id, created_by, metadata,
            confidence_score, entity_type, entity_name, attribute, value, embedding,
        )
        with wal_connect(self.db_path) as conn:
            self._insert(conn, fact)

        logger.info(
            "fact.created",
            team_id=team_id,
            fact_id=fact.id,
            category=fact.category.value,
            embedded=fact.embedding is not None,
        )
        return fact

    def update_fact(
        self,
        fact_id: str,
        content: str | None = None,
        category: FactCategory | str | None = None,
    ) -> Fact:
        """In-place edit of content and/or category.

        Validity is untouched. The embedding is only recomputed when
        ``reembed_on_edit`` is enabled; otherwise a content edit leaves the
        previous vector in place.
        """
        if content is None and category is None:
            raise FactValidationError("Nothing to update: pass content and/or category")
        if content is not None and not content.strip():
            raise FactValidationError("Fact content must be non-empty")
        cat = coerce_category(category) if category is not None else None

        existing = self.get_fact(fact_id)
        if existing is None:
            raise FactNotFoundError(f"Fact not found: {fact_id}")
        if not existing.is_active:
            raise FactValidationError(
                f"Fact {fact_id} is invalidated and cannot be edited; add a correction instead"
            )

        new_content = content.strip() if content is not None else None
        new_embedding = None
        if new_content is not None and self.reembed_on_edit and new_content != existing.content:
            new_embedding = self._embed(new_content)

        now = utcnow()
        sets = ["updated_at = ?"]
        params: list = [now.isoformat()]
        if new_content is not None:
            sets.append("content = ?")
            params.append(new_content)
        if cat is not None:
            sets.append("category = ?")
            params.append(cat.value)
        if new_embedding is not None:
            sets.append("embedding = ?")
            params.append(json.dumps(new_embedding))
        params.append(fact_id)

        with wal_connect(self.db_path) as conn:
            conn.execute(f"UPDATE facts SET {', '.join(sets)} WHERE id = ?", params)

        logger.info("fact.updated", fact_id=fact_id, reembedded=new_embedding is not None)
        return self.get_fact(fact_id)

    def invalidate_fact(self, fact_id: str, superseded_by: str | None = None) -> Fact:
        """Mark a fact inactive, optionally linking its replacement.

        Idempotent: an already-inactive fact is returned unchanged.

        Raises:
            FactNotFoundError: fact_id does not exist.
            FactValidationError: superseded_by is unknown, the fact itself,
                or belongs to another team.
        """
        fact = self.get_fact(fact_id)
        if fact is None:
            raise FactNotFoundError(f"Fact not found: {fact_id}")
        if not fact.is_active:
            logger.debug("fact.already_invalid", fact_id=fact_id)
            return fact

        if superseded_by is not None:
            self._check_successor(fact, superseded_by)

        now = utcnow().isoformat()
        with wal_connect(self.db_path) as conn:
            # valid_until IS NULL guard: never overwrite a concurrent invalidation
            conn.execute(
                """UPDATE facts SET valid_until = ?, superseded_by = ?, updated_at = ?
                   WHERE id = ? AND valid_until IS NULL""",
                (now, superseded_by, now, fact_id),
            )

        logger.info("fact.invalidated", fact_id=fact_id, superseded_by=superseded_by)
        return self.get_fact(fact_id)

    def _check_successor(self, fact: Fact, successor_id: str) -> None:
        if successor_id == fact.id:
            raise FactValidationError("A fact cannot supersede itself")
        successor = self.get_fact(successor_id)
        if successor is None or successor.team_id != fact.team_id:
            raise FactValidationError(
                f"superseded_by must reference a fact in team {fact.team_id}: {successor_id}"
            )

    def supersede_fact(
        self,
        old_fact_id: str,
        content: str,
        category: FactCategory | str | None = None,
        source_type: FactSource | str = FactSource.CONVERSATION,
        source_id: str | None = None,
        created_by: str | None = None,
        metadata: dict | None = None,
        confidence_score: float | None = None,
        entity_type: str | None = None,
        entity_name: str | None = None,
        attribute: str | None = None,
        value: str | None = None,
    ) -> tuple[Fact, Fact]:
        """Replace an active fact: insert the new row and invalidate the old one.

        Both writes happen in one transaction, so readers never observe the old
        fact inactive without its replacement. The replacement inherits the old
        category when none is given.

        Returns:
            (old_fact, new_fact)

        Raises:
            FactNotFoundError: old_fact_id does not exist.
            StaleFactError: the old fact is already inactive; nothing is written.
        """
        old = self.get_fact(old_fact_id)
        if old is None:
            raise FactNotFoundError(f"Fact not found: {old_fact_id}")
        if not old.is_active:
            raise StaleFactError(f"Fact {old_fact_id} is no longer active")

        new = self._build_fact(
            old.team_id, content, category or old.category, source_type, source_id, created_by,
            {**(metadata or {}), "supersedes": old.id}, confidence_score,
            entity_type or old.entity_type, entity_name or old.entity_name,
            attribute or old.attribute, value, None,
        )

        with wal_connect(self.db_path) as conn:
            conn.execute("BEGIN IMMEDIATE")
            self._insert(conn, new)
            now = utcnow().isoformat()
            cur = conn.execute(
                """UPDATE facts SET valid_until = ?, superseded_by = ?, updated_at = ?
                   WHERE id = ? AND valid_until IS NULL""",
                (now, new.id, now, old.id),
            )
            if cur.rowcount == 0:
                # Invalidated since it was read; the insert is rolled back
                logger.warning("fact.supersede_target_inactive", old_fact_id=old.id)
                raise StaleFactError(f"Fact {old.id} is no longer active")

        logger.info("fact.superseded", team_id=old.team_id, old_fact_id=old.id, new_fact_id=new.id)
        return self.get_fact(old.id), new

    # ------------------------------------------------------------------ #
    # Facts: reads
    # ------------------------------------------------------------------ #

    def get_fact(self, fact_id: str) -> Fact | None:
        """Get a single fact by ID, active or not."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute("SELECT * FROM facts WHERE id = ?", (fact_id,)).fetchone()
        return self._row_to_fact(row) if row else None

    def find_ids_by_prefix(self, team_id: str, prefix: str, limit: int = 5) -> list[str]:
        """Ids of the team's facts starting with prefix (for short ids typed at the CLI)."""
        if not prefix:
            return []
        with wal_connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT id FROM facts WHERE team_id = ? AND id LIKE ? ESCAPE '\\' LIMIT ?",
                (team_id, f"{_like_escape(prefix)}%", limit),
            ).fetchall()
        return [r[0] for r in rows]

    def get_facts(
        self,
        team_id: str,
        category: FactCategory | str | None = None,
        limit: int = 50,
        include_invalid: bool = False,
    ) -> list[Fact]:
        """Facts for a team, newest first. Inactive facts only with include_invalid."""
        sql = "SELECT * FROM facts WHERE team_id = ?"
        params: list = [team_id]
        if not include_invalid:
            sql += " AND valid_until IS NULL"
        if category:
            sql += " AND category = ?"
            params.append(coerce_category(category).value)
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(limit)

        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_fact(r) for r in rows]

    def get_embedded_facts(self, team_id: str) -> list[Fact]:
        """All active facts in the team that carry an embedding."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT * FROM facts
                   WHERE team_id = ? AND valid_until IS NULL AND embedding IS NOT NULL
                   ORDER BY created_at DESC, rowid DESC""",
                (team_id,),
            ).fetchall()
        return [self._row_to_fact(r) for r in rows]

    def search_by_keyword(self, team_id: str, terms: list[str], limit: int = 20) -> list[Fact]:
        """Active facts whose content contains any term (case-insensitive), newest first."""
        if not terms:
            return []
        clauses = " OR ".join("LOWER(content) LIKE ? ESCAPE '\\'" for _ in terms)
        params: list = [team_id, *(f"%{_like_escape(t.lower())}%" for t in terms), limit]
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                f"""SELECT * FROM facts
                    WHERE team_id = ? AND valid_until IS NULL AND ({clauses})
                    ORDER BY created_at DESC, rowid DESC LIMIT ?""",
                params,
            ).fetchall()
        return [self._row_to_fact(r) for r in rows]

    def get_history(self, fact_id: str) -> list[Fact]:
        """Return the full supersession chain containing a fact, oldest first."""
        fact = self.get_fact(fact_id)
        if fact is None:
            return []

        # Walk back to the root of the chain
        seen = {fact.id}
        root = fact
        with wal_connect(self.db_path, row_factory=True) as conn:
            while True:
                row = conn.execute(
                    "SELECT * FROM facts WHERE superseded_by = ?", (root.id,)
                ).fetchone()
                if row is None or row["id"] in seen:
                    break
                root = self._row_to_fact(row)
                seen.add(root.id)

        # Then forward to the newest version
        chain = [root]
        visited = {root.id}
        current = root
        while current.superseded_by and current.superseded_by not in visited:
            nxt = self.get_fact(current.superseded_by)
            if nxt is None:
                break
            chain.append(nxt)
            visited.add(nxt.id)
            current = nxt
        return chain

    def get_stats(self, team_id: str) -> dict:
        """Get fact counts by category and total for a team."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT category, COUNT(*) AS cnt FROM facts
                   WHERE team_id = ? AND valid_until IS NULL GROUP BY category""",
                (team_id,),
            ).fetchall()
            by_category = {r["category"]: r["cnt"] for r in rows}

            active = conn.execute(
                "SELECT COUNT(*) FROM facts WHERE team_id = ? AND valid_until IS NULL",
                (team_id,),
            ).fetchone()[0]
            invalid = conn.execute(
                "SELECT COUNT(*) FROM facts WHERE team_id = ? AND valid_until IS NOT NULL",
                (team_id,),
            ).fetchone()[0]
            unembedded = conn.execute(
                """SELECT COUNT(*) FROM facts
                   WHERE team_id = ? AND valid_until IS NULL AND embedding IS NULL""",
                (team_id,),
            ).fetchone()[0]

        return {
            "total_active": active,
            "total_invalid": invalid,
            "unembedded": unembedded,
            "by_category": by_category,
        }

    # ------------------------------------------------------------------ #
    # Atomic extraction
    # ------------------------------------------------------------------ #

    def get_extractor(self):
        if self._extractor is None:
            from .extractor import AtomicFactExtractor

            self._extractor = AtomicFactExtractor()
        return self._extractor

    def create_atomic_facts(
        self,
        team_id: str,
        text: str,
        source_type: FactSource | str = FactSource.TEAM_ANSWER,
        source_id: str | None = None,
        created_by: str | None = None,
        source_question: str | None = None,
    ) -> AtomicFactBatch:
        """Split text into atomic facts and persist those above min_confidence.

        Each candidate is created independently; a failing candidate is
        recorded in ``errors`` and the rest of the batch continues.
        """
        candidates = self.get_extractor().extract(text, question=source_question)
        batch = AtomicFactBatch()

        for candidate in candidates:
            if candidate.confidence < self.min_confidence:
                batch.dropped += 1
                continue
            try:
                batch.facts.append(
                    self.create_fact(team_id, **self.candidate_fields(candidate, source_question),
                                     source_type=source_type, source_id=source_id,
                                     created_by=created_by)
                )
            except Exception as e:
                logger.warning(
                    "atomic_fact_create_failed",
                    team_id=team_id,
                    statement=candidate.statement[:80],
                    error=str(e),
                )
                batch.errors.append(f"{candidate.statement[:80]}: {e}")

        logger.info(
            "fact.atomic_batch",
            team_id=team_id,
            extracted=len(candidates),
            created=len(batch.facts),
            dropped=batch.dropped,
            failed=len(batch.errors),
        )
        return batch

    @staticmethod
    def candidate_fields(candidate: CandidateFact, source_question: str | None = None) -> dict:
        """Keyword arguments for create_fact/supersede_fact from an extractor candidate."""
        metadata: dict = {}
        if candidate.entities:
            metadata["entities"] = list(candidate.entities)
        if source_question:
            metadata["sourceQuestion"] = source_question
        return {
            "content": candidate.statement,
            "category": coerce_category(candidate.category, strict=False),
            "metadata": metadata or None,
            "confidence_score": min(1.0, max(0.0, candidate.confidence)),
            "entity_type": candidate.entity_type,
            "entity_name": candidate.entity_name,
            "attribute": candidate.attribute,
            "value": candidate.value,
        }

    # ------------------------------------------------------------------ #
    # Decisions
    # ------------------------------------------------------------------ #

    def create_decision(
        self,
        team_id: str,
        what: str,
        why: str | None = None,
        alternatives: list[str] | None = None,
        made_by: str | None = None,
        source_id: str | None = None,
        related_facts: list[str] | None = None,
    ) -> Decision:
        """Record a decision with its rationale."""
        if not team_id:
            raise FactValidationError("team_id is required")
        if not what or not what.strip():
            raise FactValidationError("Decision 'what' must be non-empty")

        decision = Decision(
            id=uuid.uuid4().hex,
            team_id=team_id,
            what=what.strip(),
            why=why,
            alternatives=list(alternatives or []),
            made_by=made_by,
            source_id=source_id,
            related_facts=list(related_facts or []),
        )
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO decisions
                   (id, team_id, what, why, alternatives, made_by, source_id, related_facts, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    decision.id,
                    decision.team_id,
                    decision.what,
                    decision.why,
                    json.dumps(decision.alternatives),
                    decision.made_by,
                    decision.source_id,
                    json.dumps(decision.related_facts),
                    decision.created_at.isoformat(),
                ),
            )
        logger.info("decision.created", team_id=team_id, decision_id=decision.id)
        return decision

    def get_decisions(self, team_id: str, limit: int = 50) -> list[Decision]:
        """Decisions for a team, newest first."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT * FROM decisions WHERE team_id = ?
                   ORDER BY created_at DESC, rowid DESC LIMIT ?""",
                (team_id, limit),
            ).fetchall()
        return [self._row_to_decision(r) for r in rows]

    def search_decisions(self, team_id: str, terms: list[str], limit: int = 10) -> list[Decision]:
        """Decisions whose what/why contains any term, newest first."""
        if not terms:
            return []
        clause = "(LOWER(what) LIKE ? ESCAPE '\\' OR LOWER(COALESCE(why, '')) LIKE ? ESCAPE '\\')"
        clauses = " OR ".join(clause for _ in terms)
        params: list = [team_id]
        for t in terms:
            pattern = f"%{_like_escape(t.lower())}%"
            params.extend([pattern, pattern])
        params.append(limit)
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                f"""SELECT * FROM decisions WHERE team_id = ? AND ({clauses})
                    ORDER BY created_at DESC, rowid DESC LIMIT ?""",
                params,
            ).fetchall()
        return [self._row_to_decision(r) for r in rows]

    # ------------------------------------------------------------------ #
    # Row mapping
    # ------------------------------------------------------------------ #

    @staticmethod
    def _row_to_fact(row: sqlite3.Row) -> Fact:
        d = dict(row)
        valid_until = d.get("valid_until")
        return Fact(
            id=d["id"],
            team_id=d["team_id"],
            content=d["content"],
            category=coerce_category(d["category"], strict=False),
            entity_type=d.get("entity_type"),
            entity_name=d.get("entity_name"),
            attribute=d.get("attribute"),
            value=d.get("value"),
            confidence_score=d.get("confidence_score"),
            source_type=FactSource(d["source_type"]),
            source_id=d.get("source_id"),
            created_by=d.get("created_by"),
            metadata=json.loads(d["metadata"]) if d.get("metadata") else {},
            embedding=json.loads(d["embedding"]) if d.get("embedding") else None,
            valid_from=datetime.fromisoformat(d["valid_from"]),
            valid_until=datetime.fromisoformat(valid_until) if valid_until else None,
            superseded_by=d.get("superseded_by"),
            created_at=datetime.fromisoformat(d["created_at"]),
            updated_at=datetime.fromisoformat(d["updated_at"]),
        )

    @staticmethod
    def _row_to_decision(row: sqlite3.Row) -> Decision:
        d = dict(row)
        return Decision(
            id=d["id"],
            team_id=d["team_id"],
            what=d["what"],
            why=d.get("why"),
            alternatives=json.loads(d["alternatives"]) if d.get("alternatives") else [],
            made_by=d.get("made_by"),
            source_id=d.get("source_id"),
            related_facts=json.loads(d["related_facts"]) if d.get("related_facts") else [],
            created_at=datetime.fromisoformat(d["created_at"]),
        )
