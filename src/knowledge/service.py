"""Knowledge service: the operations callers use, plus the fact proposal flow.

A proposed fact goes through the conflict resolver before anything is written:

    save              -> create_fact            -> "saved"
    update            -> supersede_fact         -> "updated"
    ask_confirmation  -> parked in pending store -> "awaiting_user"

A parked proposal is resolved later with resolve_pending().
"""

import re
from dataclasses import dataclass
from pathlib import Path

import structlog

from .errors import FactNotFoundError, FactValidationError, PendingNotFoundError, StaleFactError
from .extractor import AtomicFactExtractor
from .models import (
    AtomicFactBatch,
    CandidateFact,
    ConflictAction,
    ConflictCheck,
    Decision,
    Fact,
    FactCategory,
    FactSource,
    KnowledgeResults,
    ScoredFact,
)
from .pending import DEFAULT_PENDING_TTL, PendingConfirmationStore, PendingProposal
from .resolver import ConflictResolver, HeuristicConflictJudge, LLMConflictJudge
from .retrieval import DEFAULT_SEARCH_LIMIT, HybridRetriever
from .store import FactStore, coerce_category

logger = structlog.get_logger()

CONFIRM_UPDATE = "confirm_update"
SAVE_ANYWAY = "save_anyway"
CANCEL = "cancel"
CHOICES = (CONFIRM_UPDATE, SAVE_ANYWAY, CANCEL)

_CONFIRM_RE = re.compile(r"^(yes|yeah|yep|y|update|yes,? update( it)?|confirm|replace( it)?)\b")
_SAVE_ANYWAY_RE = re.compile(r"\b(save anyway|save both|keep both|both)\b")
_CANCEL_RE = re.compile(r"^(no|nope|n|cancel|nevermind|never mind|forget it|skip)\b")


def parse_confirmation_reply(reply: str) -> str | None:
    """Map a free-text reply to a pending-confirmation choice, or None."""
    if not reply:
        return None
    text = reply.strip().lower().rstrip(".!")
    if _SAVE_ANYWAY_RE.search(text):
        return SAVE_ANYWAY
    if _CANCEL_RE.match(text):
        return CANCEL
    if _CONFIRM_RE.match(text):
        return CONFIRM_UPDATE
    return None


@dataclass
class ProposalOutcome:
    """What happened to a proposed fact."""

    status: str  # saved | updated | awaiting_user | cancelled
    check: ConflictCheck
    fact: Fact | None = None
    replaced: Fact | None = None
    related: Fact | None = None
    conversation_key: str | None = None

    @property
    def needs_confirmation(self) -> bool:
        return self.status == "awaiting_user"

    def question(self) -> str:
        """A prompt to show the user while awaiting confirmation."""
        if not self.needs_confirmation:
            return ""
        lines = [f"This may conflict with what I already know ({self.check.reason})."]
        if self.related is not None:
            lines.append(f'Existing: "{self.related.content}"')
            lines.append("Reply 'yes' to update it, 'save anyway' to keep both, or 'cancel'.")
        else:
            lines.append("Reply 'save anyway' to keep it, or 'cancel'.")
        return "\n".join(lines)


class KnowledgeService:
    """Team knowledge operations over one SQLite database."""

    def __init__(
        self,
        store: FactStore,
        retriever: HybridRetriever | None = None,
        resolver: ConflictResolver | None = None,
        pending: PendingConfirmationStore | None = None,
        conflict_candidates: int = 5,
        conflict_similarity_floor: float = 0.7,
        default_search_limit: int = DEFAULT_SEARCH_LIMIT,
        max_context_chars: int = 4000,
    ):
        self.store = store
        self.retriever = retriever or HybridRetriever(store, store.embedder)
        self.resolver = resolver or ConflictResolver(HeuristicConflictJudge())
        self.pending = pending or PendingConfirmationStore(store.db_path, DEFAULT_PENDING_TTL)
        self.conflict_candidates = conflict_candidates
        self.conflict_similarity_floor = conflict_similarity_floor
        self.default_search_limit = default_search_limit
        self.max_context_chars = max_context_chars

    @classmethod
    def from_config(cls, config, provider=None, embedder=None) -> "KnowledgeService":
        """Build the full service from a FactStoreConfig.

        ``provider`` and ``embedder`` override the configured collaborators
        (tests pass fakes here). Without an LLM key the heuristic judge is
        used and extraction falls back to whole-text candidates.
        """
        from llm.errors import LLMError
        from llm.embeddings import create_embedding_provider
        from llm.factory import create_provider

        kc = config.knowledge
        db_path = Path(config.paths.db_path).expanduser()

        if embedder is None:
            try:
                embedder = create_embedding_provider(
                    provider=config.embeddings.provider,
                    api_key=config.embeddings.api_key,
                    model=config.embeddings.model,
                    timeout=config.embeddings.timeout_seconds,
                )
            except LLMError as e:
                logger.warning("embeddings_unavailable", error=str(e))

        if provider is None:
            try:
                provider = create_provider(config.llm)
            except LLMError as e:
                logger.warning("llm_unavailable", error=str(e))

        if kc.judge == "llm" and provider is not None:
            judge = LLMConflictJudge(provider)
        else:
            judge = HeuristicConflictJudge()

        extractor = AtomicFactExtractor(
            provider, retry_config=config.retry, fallback_confidence=kc.fallback_confidence
        )
        store = FactStore(
            db_path,
            embedder=embedder,
            extractor=extractor,
            min_confidence=kc.min_confidence,
            reembed_on_edit=kc.reembed_on_edit,
        )
        return cls(
            store,
            retriever=HybridRetriever(store, embedder),
            resolver=ConflictResolver(judge),
            pending=PendingConfirmationStore(db_path, ttl_seconds=kc.pending_ttl_seconds),
            conflict_candidates=kc.conflict_candidates,
            conflict_similarity_floor=kc.conflict_similarity_floor,
            default_search_limit=kc.default_search_limit,
            max_context_chars=kc.max_context_chars,
        )

    # ------------------------------------------------------------------ #
    # Direct operations
    # ------------------------------------------------------------------ #

    def create_fact(self, team_id: str, content: str, **kwargs) -> Fact:
        return self.store.create_fact(team_id, content, **kwargs)

    def create_atomic_facts(self, team_id: str, text: str, **kwargs) -> AtomicFactBatch:
        return self.store.create_atomic_facts(team_id, text, **kwargs)

    def update_fact(self, fact_id: str, content: str | None = None, category=None) -> Fact:
        return self.store.update_fact(fact_id, content=content, category=category)

    def invalidate_fact(self, fact_id: str, superseded_by: str | None = None) -> Fact:
        return self.store.invalidate_fact(fact_id, superseded_by=superseded_by)

    def get_facts(self, team_id: str, category=None, limit: int = 50, include_invalid: bool = False) -> list[Fact]:
        return self.store.get_facts(team_id, category=category, limit=limit, include_invalid=include_invalid)

    def get_history(self, fact_id: str) -> list[Fact]:
        if self.store.get_fact(fact_id) is None:
            raise FactNotFoundError(f"Fact not found: {fact_id}")
        return self.store.get_history(fact_id)

    def get_stats(self, team_id: str) -> dict:
        stats = self.store.get_stats(team_id)
        stats["pending"] = len(self.pending.list_keys(team_id))
        return stats

    def search_facts(self, team_id: str, query: str, limit: int | None = None) -> list[ScoredFact]:
        return self.retriever.search(team_id, query, limit=limit or self.default_search_limit)

    def search_knowledge(self, team_id: str, query: str) -> KnowledgeResults:
        return self.retriever.search_knowledge(team_id, query)

    def get_knowledge_context(self, team_id: str, query: str) -> tuple[KnowledgeResults, str]:
        """search_knowledge plus a prompt-ready rendering bounded by max_context_chars."""
        results = self.search_knowledge(team_id, query)
        return results, results.format_for_prompt(max_chars=self.max_context_chars)

    def create_decision(self, team_id: str, what: str, **kwargs) -> Decision:
        return self.store.create_decision(team_id, what, **kwargs)

    def get_decisions(self, team_id: str, limit: int = 50) -> list[Decision]:
        return self.store.get_decisions(team_id, limit=limit)

    # ------------------------------------------------------------------ #
    # Proposal flow
    # ------------------------------------------------------------------ #

    def find_conflict_candidates(self, team_id: str, content: str) -> list[Fact]:
        """The most relevant active facts to compare a proposal against.

        Vector hits below the similarity floor are left out; keyword and
        recency hits carry no score and are always kept.
        """
        hits = self.retriever.search(team_id, content, limit=self.conflict_candidates)
        return [
            h.fact
            for h in hits
            if h.similarity is None or h.similarity >= self.conflict_similarity_floor
        ]

    def propose_fact(
        self,
        team_id: str,
        content: str,
        category: FactCategory | str | None = None,
        source_type: FactSource | str = FactSource.CONVERSATION,
        source_id: str | None = None,
        created_by: str | None = None,
        conversation_key: str | None = None,
        confidence: float | None = None,
        source_question: str | None = None,
    ) -> ProposalOutcome:
        """Run a new statement through conflict resolution and act on the result."""
        if not content or not content.strip():
            raise FactValidationError("Fact content must be non-empty")
        candidate = CandidateFact(
            statement=content.strip(),
            category=coerce_category(category),
            confidence=1.0 if confidence is None else confidence,
        )
        return self._propose(
            team_id, candidate, source_type, source_id, created_by, conversation_key, source_question
        )

    def _propose(
        self,
        team_id: str,
        candidate: CandidateFact,
        source_type,
        source_id,
        created_by,
        conversation_key,
        source_question,
    ) -> ProposalOutcome:
        existing = self.find_conflict_candidates(team_id, candidate.statement)
        check = self.resolver.check_fact_conflict(candidate, existing)
        related = self.store.get_fact(check.related_fact_id) if check.related_fact_id else None

        if check.action == ConflictAction.ASK_CONFIRMATION:
            key = conversation_key or f"{team_id}:{candidate.statement[:64]}"
            self.pending.put(
                PendingProposal(
                    key=key,
                    team_id=team_id,
                    candidate=candidate,
                    check=check,
                    source_type=FactSource(source_type),
                    source_id=source_id,
                    created_by=created_by,
                    source_question=source_question,
                )
            )
            logger.info("fact.awaiting_user", team_id=team_id, key=key, related_fact_id=check.related_fact_id)
            return ProposalOutcome(
                status="awaiting_user", check=check, related=related, conversation_key=key
            )

        fields = dict(
            FactStore.candidate_fields(candidate, source_question),
            source_type=source_type,
            source_id=source_id,
            created_by=created_by,
        )
        if check.action == ConflictAction.UPDATE and related is not None:
            replaced = self._supersede(related, fields)
            if replaced is not None:
                old, new = replaced
                return ProposalOutcome(status="updated", check=check, fact=new, replaced=old, related=related)

        fact = self.store.create_fact(team_id, **fields)
        return ProposalOutcome(status="saved", check=check, fact=fact, related=related)

    def _supersede(self, related: Fact, fields: dict) -> tuple[Fact, Fact] | None:
        """Replace related with a new fact; None when related went inactive meanwhile.

        The caller then saves the candidate as a plain new fact.
        """
        try:
            return self.store.supersede_fact(related.id, **fields)
        except StaleFactError:
            logger.warning("fact.supersede_fell_back_to_save", related_fact_id=related.id)
            return None

    def resolve_pending(self, conversation_key: str, choice: str) -> ProposalOutcome:
        """Apply the user's answer to a parked proposal and remove it.

        Raises:
            PendingNotFoundError: no unexpired proposal under conversation_key.
            FactValidationError: choice is not one of CHOICES.
        """
        if choice not in CHOICES:
            raise FactValidationError(f"Unknown choice: {choice}. Use: {', '.join(CHOICES)}")
        proposal = self.pending.pop(conversation_key)
        if proposal is None:
            raise PendingNotFoundError(f"No pending confirmation for: {conversation_key}")

        check = proposal.check
        logger.info("pending.resolved", key=conversation_key, team_id=proposal.team_id, choice=choice)
        if choice == CANCEL:
            return ProposalOutcome(status="cancelled", check=check, conversation_key=conversation_key)

        fields = dict(
            FactStore.candidate_fields(proposal.candidate, proposal.source_question),
            source_type=proposal.source_type,
            source_id=proposal.source_id,
            created_by=proposal.created_by,
        )
        related = self.store.get_fact(check.related_fact_id) if check.related_fact_id else None
        if choice == CONFIRM_UPDATE and related is not None and related.is_active:
            replaced = self._supersede(related, fields)
            if replaced is not None:
                old, new = replaced
                return ProposalOutcome(
                    status="updated", check=check, fact=new, replaced=old, related=related,
                    conversation_key=conversation_key,
                )

        fact = self.store.create_fact(proposal.team_id, **fields)
        return ProposalOutcome(
            status="saved", check=check, fact=fact, related=related, conversation_key=conversation_key
        )

    def remember(
        self,
        team_id: str,
        text: str,
        source_type: FactSource | str = FactSource.USER_STATEMENT,
        source_id: str | None = None,
        created_by: str | None = None,
        conversation_key: str | None = None,
        source_question: str | None = None,
    ) -> list[ProposalOutcome]:
        """Extract atomic facts from text and propose each one above min_confidence."""
        candidates = self.store.get_extractor().extract(text, question=source_question)
        base_key = conversation_key or f"{team_id}:{source_id or text[:48]}"

        outcomes = []
        for i, candidate in enumerate(candidates):
            if candidate.confidence < self.store.min_confidence:
                logger.debug("remember.dropped", confidence=candidate.confidence)
                continue
            key = base_key if len(candidates) == 1 else f"{base_key}#{i}"
            outcomes.append(
                self._propose(
                    team_id, candidate, source_type, source_id, created_by, key, source_question
                )
            )
        return outcomes
