"""Hybrid retrieval: vector similarity first, keyword match second, recency last."""

import structlog

from .models import Decision, KnowledgeResults, ScoredFact
from .similarity import cosine_similarity, keyword_terms
from .store import FactStore

logger = structlog.get_logger()

DEFAULT_SEARCH_LIMIT = 20
KNOWLEDGE_FACT_LIMIT = 10
KNOWLEDGE_DECISION_LIMIT = 5


class HybridRetriever:
    """Ranks a team's active facts against a query.

    1. Embed the query and rank embedded facts of the same vector length by
       cosine similarity.
    2. If there is no query vector or no comparable facts, match keyword terms
       against content, newest first.
    3. If the query has no usable terms either, return the newest facts.
    """

    def __init__(self, store: FactStore, embedder=None):
        self.store = store
        self.embedder = embedder

    def _embed_query(self, query: str) -> list[float] | None:
        if self.embedder is None:
            return None
        try:
            return self.embedder.embed(query)
        except Exception as e:
            logger.warning("query_embedding_failed", error=str(e))
            return None

    def vector_search(self, team_id: str, vector: list[float], limit: int) -> list[ScoredFact]:
        scored = []
        skipped = 0
        for f in self.store.get_embedded_facts(team_id):
            # Vectors of another length come from another model and are not comparable
            if len(f.embedding) != len(vector):
                skipped += 1
                continue
            scored.append(ScoredFact(fact=f, similarity=cosine_similarity(vector, f.embedding)))
        if skipped:
            logger.warning(
                "search.dimension_mismatch", team_id=team_id, skipped=skipped, dimensions=len(vector)
            )
        # sorted() is stable, so ties keep newest-first order from the store
        scored = sorted(scored, key=lambda s: s.similarity, reverse=True)
        return scored[:limit]

    def search(self, team_id: str, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[ScoredFact]:
        """Return up to ``limit`` active facts for query, best first."""
        if limit <= 0:
            return []

        vector = self._embed_query(query) if query and query.strip() else None
        if vector:
            hits = self.vector_search(team_id, vector, limit)
            if hits:
                logger.debug("search.vector", team_id=team_id, hits=len(hits))
                return hits

        terms = keyword_terms(query or "")
        if terms:
            facts = self.store.search_by_keyword(team_id, terms, limit=limit)
            logger.debug("search.keyword", team_id=team_id, terms=terms, hits=len(facts))
            return [ScoredFact(fact=f) for f in facts]

        facts = self.store.get_facts(team_id, limit=limit)
        logger.debug("search.recent", team_id=team_id, hits=len(facts))
        return [ScoredFact(fact=f) for f in facts]

    def search_decisions(self, team_id: str, query: str, limit: int = KNOWLEDGE_DECISION_LIMIT) -> list[Decision]:
        """Keyword search over decision what/why; recent decisions when no terms."""
        terms = keyword_terms(query or "")
        if not terms:
            return self.store.get_decisions(team_id, limit=limit)
        return self.store.search_decisions(team_id, terms, limit=limit)

    def search_knowledge(
        self,
        team_id: str,
        query: str,
        fact_limit: int = KNOWLEDGE_FACT_LIMIT,
        decision_limit: int = KNOWLEDGE_DECISION_LIMIT,
    ) -> KnowledgeResults:
        """Facts and decisions side by side; the two lists are not merged."""
        return KnowledgeResults(
            facts=self.search(team_id, query, limit=fact_limit),
            decisions=self.search_decisions(team_id, query, limit=decision_limit),
        )
