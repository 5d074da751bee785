"""Conflict resolution for a proposed fact against a team's existing facts."""

import re
from abc import ABC, abstractmethod
from difflib import SequenceMatcher

import structlog

from .models import CandidateFact, ConflictAction, ConflictCheck, ConflictType, Fact
from .schemas import JudgmentResponse, parse_judgment
from .similarity import STOP_WORDS

logger = structlog.get_logger()

FAIL_OPEN_REASON = "could not check conflicts"

_JUDGMENT_SYSTEM = """You detect CONFLICTS between a new fact and existing facts. Be STRICT about contradictions.

Return JSON:
{
  "action": "save" | "update" | "ask_confirmation",
  "reason": "brief explanation",
  "relatedFactId": "ID of related fact if any, null otherwise",
  "conflictType": "duplicate" | "contradiction" | "update" | "none"
}

CONTRADICTION EXAMPLES (use ask_confirmation):
- "There are 7 dwarfs" vs "There are 6 dwarfs" -> CONTRADICTION (different numbers)
- "Fugly is a cat" vs "Fugly is a dog" -> CONTRADICTION (same entity, different type)
- "Launch date is March 25" vs "Launch date is April 1" -> CONTRADICTION (different dates)
- "CEO is John" vs "CEO is Mary" -> CONTRADICTION (different values for same role)
- "We use Slack" vs "We use Teams" -> Could be both true, so SAVE

Decision rules:
1. ask_confirmation: Same subject with DIFFERENT values (numbers, dates, types, names)
   - This is the MOST IMPORTANT check. When in doubt, ask_confirmation.
2. save: Genuinely different topics, OR additive information
3. update: ONLY if the new fact explicitly says "update", "change", "actually", "correction"
4. duplicate: the same claim is already stored

Return ONLY valid JSON."""


def _content_of(fact: Fact | CandidateFact | str) -> str:
    if isinstance(fact, str):
        return fact
    if isinstance(fact, CandidateFact):
        return fact.statement
    return fact.content


def _category_of(fact: Fact | CandidateFact | str) -> str:
    category = getattr(fact, "category", None)
    return category.value if category is not None else "general"


class ConflictJudge(ABC):
    """Compares a new fact to existing ones and reports a raw judgment.

    Implementations may raise; the resolver treats any exception (or a
    reply that fails validation) as an indeterminate check.
    """

    @abstractmethod
    def judge(self, new_fact: Fact | CandidateFact | str, existing: list[Fact]) -> JudgmentResponse:
        ...


class LLMConflictJudge(ConflictJudge):
    """Delegates the comparison to a language model."""

    def __init__(self, provider=None, max_tokens: int = 300):
        self._provider = provider
        self.max_tokens = max_tokens

    def _get_provider(self):
        if self._provider:
            return self._provider
        from llm.factory import create_provider

        self._provider = create_provider()
        return self._provider

    def judge(self, new_fact, existing: list[Fact]) -> JudgmentResponse:
        lines = ["EXISTING FACTS:"]
        for f in existing:
            lines.append(f'- ID: {f.id} | "{f.content}" [{f.category.value}]')
        lines.append("")
        lines.append(f'NEW FACT TO SAVE: "{_content_of(new_fact)}" [{_category_of(new_fact)}]')
        lines.append("")
        lines.append("Analyze for conflicts.")

        response = self._get_provider().generate(
            messages=[{"role": "user", "content": "\n".join(lines)}],
            system=_JUDGMENT_SYSTEM,
            max_tokens=self.max_tokens,
        )
        return parse_judgment(response)


_CORRECTION_RE = re.compile(
    r"\b(actually|correction|correct(?:ed|ion)?|update[ds]?|chang(?:e|ed|es)|no longer|instead|"
    r"not anymore|rather than)\b",
    re.IGNORECASE,
)
_VALUE_RE = re.compile(r"^\d+(?:[.,:/-]\d+)*(?:st|nd|rd|th|%|k|m)?$")
_MONTHS = {
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december",
    "jan", "feb", "mar", "apr", "jun", "jul", "aug", "sep", "sept", "oct", "nov", "dec",
}
_CORRECTION_WORDS = {"actually", "correction", "update", "updated", "change", "changed", "instead"}


def _split(text: str) -> tuple[set[str], set[str]]:
    """(subject words, value tokens) for a statement."""
    words, values = set(), set()
    for raw in text.lower().split():
        token = re.sub(r"^[^\w$%]+|[^\w%]+$", "", raw).lstrip("$")
        if not token:
            continue
        if _VALUE_RE.match(token) or token in _MONTHS:
            values.add(token)
        elif len(token) > 2 and token not in STOP_WORDS and token not in _CORRECTION_WORDS:
            words.add(token)
    return words, values


class HeuristicConflictJudge(ConflictJudge):
    """Deterministic offline judge, used when no LLM is configured.

    Shared subject words with differing numbers, dates or months is a
    contradiction; correction phrasing over a shared subject is an update;
    near-identical text is a duplicate. Everything else is additive.
    """

    def __init__(self, overlap_threshold: float = 0.5, duplicate_threshold: float = 0.9):
        self.overlap_threshold = overlap_threshold
        self.duplicate_threshold = duplicate_threshold

    def judge(self, new_fact, existing: list[Fact]) -> JudgmentResponse:
        new_text = _content_of(new_fact)
        new_words, new_values = _split(new_text)
        is_correction = bool(_CORRECTION_RE.search(new_text))

        best_update: tuple[float, Fact] | None = None
        for fact in existing:
            old_words, old_values = _split(fact.content)
            if not new_words or not old_words:
                continue
            overlap = len(new_words & old_words) / min(len(new_words), len(old_words))
            if overlap < self.overlap_threshold:
                continue

            if is_correction:
                if best_update is None or overlap > best_update[0]:
                    best_update = (overlap, fact)
                continue

            if new_values and old_values and not new_values >= old_values and new_values != old_values:
                return JudgmentResponse(
                    action=ConflictAction.ASK_CONFIRMATION,
                    conflict_type=ConflictType.CONTRADICTION,
                    related_fact_id=fact.id,
                    reason=f'Same subject with different values: "{fact.content}"',
                )

        if best_update is not None:
            fact = best_update[1]
            return JudgmentResponse(
                action=ConflictAction.UPDATE,
                conflict_type=ConflictType.UPDATE,
                related_fact_id=fact.id,
                reason=f'Explicit correction of "{fact.content}"',
            )

        new_lower = new_text.strip().lower()
        for fact in existing:
            ratio = SequenceMatcher(None, new_lower, fact.content.strip().lower()).ratio()
            if ratio >= self.duplicate_threshold:
                return JudgmentResponse(
                    action=ConflictAction.ASK_CONFIRMATION,
                    conflict_type=ConflictType.DUPLICATE,
                    related_fact_id=fact.id,
                    reason=f'Already stored: "{fact.content}"',
                )

        return JudgmentResponse(
            action=ConflictAction.SAVE,
            conflict_type=ConflictType.NONE,
            reason="Additive information",
        )


class ConflictResolver:
    """Decides save / update / ask_confirmation for a proposed fact.

    The judge's raw opinion is normalized so that the outcome always honours
    these rules: contradictions ask the user, duplicates are never silently
    saved, and an update must name one of the supplied facts.
    """

    def __init__(self, judge: ConflictJudge | None = None):
        self.judge = judge or LLMConflictJudge()

    def check_fact_conflict(
        self, new_fact: Fact | CandidateFact | str, existing_facts: list[Fact]
    ) -> ConflictCheck:
        """Classify new_fact against the supplied existing facts. Never raises."""
        active = [f for f in existing_facts if f.is_active]
        if not active:
            return ConflictCheck(action=ConflictAction.SAVE, reason="No existing facts to compare")

        try:
            judgment = self.judge.judge(new_fact, active)
        except Exception as e:
            logger.warning("conflict_check_failed", error=str(e), compared=len(active))
            return ConflictCheck(action=ConflictAction.SAVE, reason=FAIL_OPEN_REASON)

        check = self._normalize(judgment, _content_of(new_fact), {f.id: f for f in active})
        logger.info(
            "conflict_check",
            team_id=active[0].team_id,
            action=check.action.value,
            conflict_type=check.conflict_type.value,
            related_fact_id=check.related_fact_id,
            compared=len(active),
            reason=check.reason,
        )
        return check

    @staticmethod
    def _normalize(
        judgment: JudgmentResponse, new_content: str, existing: dict[str, Fact]
    ) -> ConflictCheck:
        related_id = judgment.related_fact_id
        if related_id is not None and related_id not in existing:
            logger.debug("conflict_unknown_related_id", related_fact_id=related_id)
            related_id = None

        ctype = judgment.conflict_type
        reason = judgment.reason or ctype.value

        if ctype == ConflictType.CONTRADICTION:
            action = ConflictAction.ASK_CONFIRMATION
        elif ctype == ConflictType.DUPLICATE:
            if related_id and existing[related_id].content == new_content.strip():
                action = ConflictAction.UPDATE
            else:
                action = ConflictAction.ASK_CONFIRMATION
        elif ctype == ConflictType.UPDATE or judgment.action == ConflictAction.UPDATE:
            action = ConflictAction.UPDATE if related_id else ConflictAction.ASK_CONFIRMATION
        elif judgment.action == ConflictAction.ASK_CONFIRMATION:
            action = ConflictAction.ASK_CONFIRMATION
        else:
            action = ConflictAction.SAVE

        return ConflictCheck(
            action=action,
            reason=reason,
            conflict_type=ctype,
            related_fact_id=related_id,
        )
