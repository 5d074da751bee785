"""Data models for the team knowledge fact store."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FactCategory(str, Enum):
    PRODUCT = "product"
    MANUFACTURING = "manufacturing"
    MARKETING = "marketing"
    SALES = "sales"
    FINANCE = "finance"
    PEOPLE = "people"
    FAQ = "faq"
    GENERAL = "general"
    COMPANY = "company"
    PROCESS = "process"
    DECISION = "decision"


class FactSource(str, Enum):
    MANUAL = "manual"
    CONVERSATION = "conversation"
    TEAM_ANSWER = "team_answer"
    INTEGRATION = "integration"
    USER_STATEMENT = "user_statement"
    DOCUMENT = "document"


class ConflictAction(str, Enum):
    SAVE = "save"
    UPDATE = "update"
    ASK_CONFIRMATION = "ask_confirmation"


class ConflictType(str, Enum):
    DUPLICATE = "duplicate"
    CONTRADICTION = "contradiction"
    UPDATE = "update"
    NONE = "none"


@dataclass
class Fact:
    """One atomic, temporally-versioned statement owned by a team.

    A fact is active while ``valid_until`` is None. Invalidation sets
    ``valid_until`` (and optionally ``superseded_by``) and is terminal.
    """

    id: str
    team_id: str
    content: str
    category: FactCategory = FactCategory.GENERAL
    entity_type: str | None = None
    entity_name: str | None = None
    attribute: str | None = None
    value: str | None = None
    confidence_score: float | None = None
    source_type: FactSource = FactSource.MANUAL
    source_id: str | None = None
    created_by: str | None = None
    metadata: dict = field(default_factory=dict)
    embedding: list[float] | None = None
    valid_from: datetime = field(default_factory=utcnow)
    valid_until: datetime | None = None
    superseded_by: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.valid_until is None


@dataclass
class ScoredFact:
    """A search hit. ``similarity`` is None for keyword-path results."""

    fact: Fact
    similarity: float | None = None


@dataclass
class Decision:
    """What was decided and why. Joinable context for retrieval, not versioned."""

    id: str
    team_id: str
    what: str
    why: str | None = None
    alternatives: list[str] = field(default_factory=list)
    made_by: str | None = None
    source_id: str | None = None
    related_facts: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class CandidateFact:
    """An extractor output, or a proposed fact awaiting conflict resolution."""

    statement: str
    category: FactCategory = FactCategory.GENERAL
    entities: list[str] = field(default_factory=list)
    confidence: float = 0.7
    entity_type: str | None = None
    entity_name: str | None = None
    attribute: str | None = None
    value: str | None = None


@dataclass
class ConflictCheck:
    """Outcome of comparing a new fact against existing knowledge."""

    action: ConflictAction
    reason: str
    conflict_type: ConflictType = ConflictType.NONE
    related_fact_id: str | None = None


@dataclass
class AtomicFactBatch:
    """Result of create_atomic_facts: persisted facts plus per-candidate errors."""

    facts: list[Fact] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    dropped: int = 0


@dataclass
class KnowledgeResults:
    """Facts and decisions for a query, side by side (never fused)."""

    facts: list[ScoredFact] = field(default_factory=list)
    decisions: list[Decision] = field(default_factory=list)

    def format_for_prompt(self, max_chars: int = 4000) -> str:
        """Render as a bounded text block for LLM prompting."""
        if not self.facts and not self.decisions:
            return "No relevant team knowledge found."

        lines: list[str] = []
        if self.facts:
            lines.append("KNOWN FACTS:")
            for hit in self.facts:
                f = hit.fact
                lines.append(f"- {f.content} [{f.category.value}]")
        if self.decisions:
            if lines:
                lines.append("")
            lines.append("DECISIONS:")
            for d in self.decisions:
                why = f" (why: {d.why})" if d.why else ""
                lines.append(f"- {d.what}{why}")

        out: list[str] = []
        total = 0
        for line in lines:
            if total + len(line) + 1 > max_chars:
                out.append("...[truncated]")
                break
            out.append(line)
            total += len(line) + 1
        return "\n".join(out)
