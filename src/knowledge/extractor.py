"""LLM-powered atomic fact extraction from answers, messages and documents."""

import structlog

from cli.retry import retry_from_config
from llm.errors import LLMRateLimitError

from .models import CandidateFact
from .schemas import ExtractedEntity, ExtractedFact, parse_extraction
from .store import coerce_category

logger = structlog.get_logger()

FALLBACK_CONFIDENCE = 0.5
FALLBACK_MAX_CHARS = 500
MAX_INPUT_CHARS = 6000

_EXTRACTION_SYSTEM = """You extract atomic facts from text. Each atomic fact should be:
1. A single, complete statement that can stand alone
2. Self-contained (includes necessary context like company name, not just "they" or "it")
3. Factual and objective (not opinions unless clearly attributed)
4. Concise but complete

Examples of good atomic facts:
- "Full Uproar Games, Inc. is a tabletop games company"
- "Dungeon Crawlers launches on 2025-03-22"

Examples of BAD atomic facts (too vague or incomplete):
- "They make games" (who is "they"?)
- "It's fun" (what is "it"?)

Return a JSON object with:
{
  "facts": [
    {
      "statement": "The atomic fact statement",
      "category": "product|manufacturing|marketing|sales|finance|people|faq|company|process|decision|general",
      "entities": [{"type": "product", "name": "Dungeon Crawlers"}],
      "attribute": "launch date (optional)",
      "value": "2025-03-22 (optional)",
      "confidence": 0.0-1.0
    }
  ],
  "sourceQuestion": "The original question if this is a Q&A (optional)"
}

Extract ALL distinct facts from the text. Aim for 3-10 facts depending on content richness.
Return ONLY valid JSON."""


class AtomicFactExtractor:
    """Splits free text into candidate atomic facts using an LLM.

    On any failure (provider error, timeout, malformed reply) the whole text
    is returned as a single low-confidence ``general`` candidate.
    """

    def __init__(
        self,
        provider=None,
        max_tokens: int = 1000,
        retry_config=None,
        fallback_confidence: float = FALLBACK_CONFIDENCE,
    ):
        self._provider = provider
        self.max_tokens = max_tokens
        self.fallback_confidence = fallback_confidence
        self._generate = retry_from_config(retry_config, exceptions=(LLMRateLimitError,))(
            self._call
        )

    def _get_provider(self):
        if self._provider:
            return self._provider
        from llm.factory import create_provider

        self._provider = create_provider()
        return self._provider

    def extract(self, text: str, question: str | None = None) -> list[CandidateFact]:
        """Extract ordered candidates from text."""
        if not text or not text.strip():
            return []

        body = text[:MAX_INPUT_CHARS]
        if question:
            prompt = f"Question: {question}\n\nAnswer to extract facts from:\n{body}"
        else:
            prompt = f"Text to extract facts from:\n{body}"

        try:
            response = self._generate(prompt)
            items = parse_extraction(response)
        except Exception as e:
            logger.warning("fact_extraction_failed", error=str(e))
            return [self.fallback_candidate(text, self.fallback_confidence)]

        candidates = [self._to_candidate(item) for item in items]
        logger.debug("fact_extraction_done", candidates=len(candidates))
        return candidates

    def _call(self, prompt: str) -> str:
        return self._get_provider().generate(
            messages=[{"role": "user", "content": prompt}],
            system=_EXTRACTION_SYSTEM,
            max_tokens=self.max_tokens,
        )

    @staticmethod
    def fallback_candidate(text: str, confidence: float = FALLBACK_CONFIDENCE) -> CandidateFact:
        """The conservative whole-text candidate used when extraction fails."""
        return CandidateFact(
            statement=text.strip()[:FALLBACK_MAX_CHARS],
            confidence=confidence,
        )

    @staticmethod
    def _to_candidate(item: ExtractedFact) -> CandidateFact:
        names: list[str] = []
        entity_type = entity_name = None
        for entity in item.entities:
            if isinstance(entity, ExtractedEntity):
                names.append(entity.name)
                if entity_type is None and entity.type:
                    entity_type, entity_name = entity.type, entity.name
            else:
                names.append(entity)

        return CandidateFact(
            statement=item.statement,
            category=coerce_category(item.category, strict=False),
            entities=names,
            confidence=item.confidence,
            entity_type=entity_type,
            entity_name=entity_name,
            attribute=item.attribute,
            value=item.value,
        )
