"""Team knowledge fact store: temporally-versioned facts, hybrid retrieval, conflict resolution."""

from .errors import (
    FactNotFoundError,
    FactValidationError,
    KnowledgeError,
    PendingNotFoundError,
    StaleFactError,
)
from .extractor import AtomicFactExtractor
from .models import (
    AtomicFactBatch,
    CandidateFact,
    ConflictAction,
    ConflictCheck,
    ConflictType,
    Decision,
    Fact,
    FactCategory,
    FactSource,
    KnowledgeResults,
    ScoredFact,
)
from .pending import PendingConfirmationStore, PendingProposal
from .resolver import ConflictResolver, HeuristicConflictJudge, LLMConflictJudge
from .retrieval import HybridRetriever
from .service import KnowledgeService, ProposalOutcome, parse_confirmation_reply
from .similarity import cosine_similarity, keyword_terms
from .store import FactStore

__all__ = [
    "AtomicFactBatch",
    "AtomicFactExtractor",
    "CandidateFact",
    "ConflictAction",
    "ConflictCheck",
    "ConflictResolver",
    "ConflictType",
    "Decision",
    "Fact",
    "FactCategory",
    "FactNotFoundError",
    "FactSource",
    "FactStore",
    "FactValidationError",
    "HeuristicConflictJudge",
    "HybridRetriever",
    "KnowledgeError",
    "KnowledgeResults",
    "KnowledgeService",
    "LLMConflictJudge",
    "PendingConfirmationStore",
    "PendingNotFoundError",
    "PendingProposal",
    "ProposalOutcome",
    "ScoredFact",
    "StaleFactError",
    "cosine_similarity",
    "keyword_terms",
]
