"""Tests for KnowledgeService: proposal flow, pending resolution, remember."""

import json
from unittest.mock import MagicMock

import pytest

from cli.config_models import FactStoreConfig
from knowledge.errors import FactNotFoundError, FactValidationError, PendingNotFoundError
from knowledge.models import CandidateFact, ConflictType, FactSource
from knowledge.resolver import ConflictResolver, HeuristicConflictJudge, LLMConflictJudge
from knowledge.service import (
    CANCEL,
    CONFIRM_UPDATE,
    SAVE_ANYWAY,
    KnowledgeService,
    parse_confirmation_reply,
)
from knowledge.store import FactStore


@pytest.fixture
def service(store):
    return KnowledgeService(store, resolver=ConflictResolver(HeuristicConflictJudge()))


class TestProposeFact:
    def test_first_fact_saved(self, service):
        outcome = service.propose_fact("t1", "Launch date is March 22")
        assert outcome.status == "saved"
        assert outcome.fact.source_type == FactSource.CONVERSATION
        assert [f.content for f in service.get_facts("t1")] == ["Launch date is March 22"]

    def test_additive_saved(self, service):
        service.propose_fact("t1", "We use Slack")
        outcome = service.propose_fact("t1", "We use Teams")
        assert outcome.status == "saved"
        assert len(service.get_facts("t1")) == 2

    def test_contradiction_waits_without_writing(self, service):
        existing = service.propose_fact("t1", "There are 7 dwarfs").fact
        outcome = service.propose_fact("t1", "There are 6 dwarfs", conversation_key="c1")
        assert outcome.status == "awaiting_user"
        assert outcome.needs_confirmation
        assert outcome.conversation_key == "c1"
        assert outcome.related.id == existing.id
        assert "There are 7 dwarfs" in outcome.question()
        assert [f.id for f in service.get_facts("t1", include_invalid=True)] == [existing.id]

    def test_correction_supersedes(self, service):
        old = service.propose_fact("t1", "Launch date is March 22").fact
        outcome = service.propose_fact("t1", "actually the launch date is March 25, not March 22")
        assert outcome.status == "updated"
        assert outcome.replaced.id == old.id
        assert outcome.replaced.superseded_by == outcome.fact.id
        active = service.get_facts("t1")
        assert [f.id for f in active] == [outcome.fact.id]

    def test_mixed_embedding_lengths_fall_back_to_keywords(self, tmp_path, make_embedder):
        db = tmp_path / "facts.db"
        FactStore(db, embedder=make_embedder(384)).create_fact("t1", "There are 7 dwarfs")

        store = FactStore(db, embedder=make_embedder(1536))
        svc = KnowledgeService(store, resolver=ConflictResolver(HeuristicConflictJudge()))
        outcome = svc.propose_fact("t1", "There are 6 dwarfs", conversation_key="c1")
        assert outcome.status == "awaiting_user"
        assert outcome.related.content == "There are 7 dwarfs"
        assert len(svc.get_facts("t1")) == 1

    def test_teams_are_isolated(self, service):
        service.propose_fact("t1", "There are 7 dwarfs")
        assert service.propose_fact("t2", "There are 6 dwarfs").status == "saved"

    def test_empty_content_rejected(self, service):
        with pytest.raises(FactValidationError):
            service.propose_fact("t1", " ")

    def test_judge_failure_fails_open(self, store):
        provider = MagicMock()
        provider.generate.side_effect = RuntimeError("LLM down")
        svc = KnowledgeService(store, resolver=ConflictResolver(LLMConflictJudge(provider)))
        svc.propose_fact("t1", "There are 7 dwarfs")
        outcome = svc.propose_fact("t1", "There are 6 dwarfs")
        assert outcome.status == "saved"
        assert outcome.check.reason == "could not check conflicts"

    def test_similarity_floor_filters_vector_candidates(self, embedded_store, fake_embedder):
        judge = MagicMock()
        svc = KnowledgeService(
            embedded_store,
            resolver=ConflictResolver(judge),
            conflict_similarity_floor=0.99,
        )
        embedded_store.create_fact("t1", "Our printer is in Shenzhen")
        outcome = svc.propose_fact("t1", "There are 6 dwarfs")
        assert outcome.status == "saved"
        judge.judge.assert_not_called()


class TestResolvePending:
    @pytest.fixture
    def parked(self, service):
        existing = service.propose_fact("t1", "There are 7 dwarfs").fact
        outcome = service.propose_fact("t1", "There are 6 dwarfs", conversation_key="c1")
        assert outcome.status == "awaiting_user"
        return existing

    def test_confirm_update_supersedes(self, service, parked):
        outcome = service.resolve_pending("c1", CONFIRM_UPDATE)
        assert outcome.status == "updated"
        assert outcome.fact.content == "There are 6 dwarfs"
        assert not service.store.get_fact(parked.id).is_active
        assert service.store.get_fact(parked.id).superseded_by == outcome.fact.id

    def test_save_anyway_keeps_both(self, service, parked):
        outcome = service.resolve_pending("c1", SAVE_ANYWAY)
        assert outcome.status == "saved"
        assert {f.content for f in service.get_facts("t1")} == {
            "There are 7 dwarfs",
            "There are 6 dwarfs",
        }

    def test_cancel_discards(self, service, parked):
        outcome = service.resolve_pending("c1", CANCEL)
        assert outcome.status == "cancelled"
        assert [f.id for f in service.get_facts("t1")] == [parked.id]

    def test_pending_removed_after_resolution(self, service, parked):
        service.resolve_pending("c1", CANCEL)
        with pytest.raises(PendingNotFoundError):
            service.resolve_pending("c1", SAVE_ANYWAY)

    def test_unknown_key(self, service):
        with pytest.raises(PendingNotFoundError):
            service.resolve_pending("missing", CONFIRM_UPDATE)

    def test_unknown_choice(self, service, parked):
        with pytest.raises(FactValidationError):
            service.resolve_pending("c1", "maybe")

    def test_confirm_without_related_saves(self, store):
        judge = MagicMock()
        judge.judge.return_value = MagicMock(
            action="ask_confirmation",
            conflict_type=ConflictType.CONTRADICTION,
            related_fact_id=None,
            reason="unsure",
        )
        svc = KnowledgeService(store, resolver=ConflictResolver(judge))
        store.create_fact("t1", "There are 7 dwarfs")
        assert svc.propose_fact("t1", "There are 6 dwarfs", conversation_key="k").needs_confirmation
        assert svc.resolve_pending("k", CONFIRM_UPDATE).status == "saved"
        assert len(svc.get_facts("t1")) == 2

    def test_pending_counted_in_stats(self, service, parked):
        assert service.get_stats("t1")["pending"] == 1

    def test_double_resolution_saves_once(self, service, parked):
        # Both callers saw the proposal before either resolved it
        assert service.pending.get("c1") is not None
        assert service.pending.get("c1") is not None
        first = service.resolve_pending("c1", SAVE_ANYWAY)
        with pytest.raises(PendingNotFoundError):
            service.resolve_pending("c1", SAVE_ANYWAY)
        assert first.status == "saved"
        contents = [f.content for f in service.get_facts("t1", include_invalid=True)]
        assert contents.count("There are 6 dwarfs") == 1

    def test_confirm_falls_back_to_save_when_target_invalidated(self, service, parked, monkeypatch):
        supersede = service.store.supersede_fact

        def invalidated_meanwhile(old_id, **fields):
            service.store.invalidate_fact(old_id)
            return supersede(old_id, **fields)

        monkeypatch.setattr(service.store, "supersede_fact", invalidated_meanwhile)
        outcome = service.resolve_pending("c1", CONFIRM_UPDATE)
        assert outcome.status == "saved"
        assert outcome.replaced is None
        assert [f.content for f in service.get_facts("t1")] == ["There are 6 dwarfs"]
        assert service.store.get_fact(parked.id).superseded_by is None


class TestRemember:
    def _service(self, tmp_path, candidates):
        extractor = MagicMock()
        extractor.extract.return_value = candidates
        store = FactStore(tmp_path / "f.db", extractor=extractor)
        return KnowledgeService(store, resolver=ConflictResolver(HeuristicConflictJudge()))

    def test_proposes_each_confident_candidate(self, tmp_path):
        svc = self._service(
            tmp_path,
            [
                CandidateFact(statement="We use Slack", confidence=0.9),
                CandidateFact(statement="Maybe we use Zoom", confidence=0.3),
                CandidateFact(statement="Launch date is March 22", confidence=0.8),
            ],
        )
        outcomes = svc.remember("t1", "text", conversation_key="c")
        assert [o.status for o in outcomes] == ["saved", "saved"]
        assert outcomes[0].fact.source_type == FactSource.USER_STATEMENT

    def test_conflicting_candidate_keyed_per_candidate(self, tmp_path):
        svc = self._service(
            tmp_path,
            [
                CandidateFact(statement="We use Slack", confidence=0.9),
                CandidateFact(statement="There are 6 dwarfs", confidence=0.9),
            ],
        )
        svc.store.create_fact("t1", "There are 7 dwarfs")
        outcomes = svc.remember("t1", "text", conversation_key="c")
        assert outcomes[1].status == "awaiting_user"
        assert outcomes[1].conversation_key == "c#1"
        assert svc.pending.get("c#1") is not None


class TestDirectOperations:
    def test_history_unknown(self, service):
        with pytest.raises(FactNotFoundError):
            service.get_history("missing")

    def test_knowledge_context(self, service):
        service.create_fact("t1", "Launch is in March")
        service.create_decision("t1", "Launch at the March convention")
        results, text = service.get_knowledge_context("t1", "launch")
        assert len(results.facts) == 1
        assert "KNOWN FACTS:" in text
        assert "DECISIONS:" in text

    def test_search_facts_default_limit(self, store):
        svc = KnowledgeService(store, default_search_limit=2)
        for i in range(4):
            svc.create_fact("t1", f"launch fact {i}")
        assert len(svc.search_facts("t1", "launch")) == 2


class TestParseReply:
    @pytest.mark.parametrize(
        "reply,expected",
        [
            ("yes", CONFIRM_UPDATE),
            ("Yes, update", CONFIRM_UPDATE),
            ("save anyway", SAVE_ANYWAY),
            ("Save both!", SAVE_ANYWAY),
            ("keep both", SAVE_ANYWAY),
            ("no", CANCEL),
            ("nope", CANCEL),
            ("Cancel.", CANCEL),
            ("nevermind", CANCEL),
            ("what's the weather", None),
            ("", None),
        ],
    )
    def test_mapping(self, reply, expected):
        assert parse_confirmation_reply(reply) == expected


class TestFromConfig:
    def test_builds_offline_service(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = FactStoreConfig.from_dict(
            {
                "paths": {"db_path": str(tmp_path / "facts.db")},
                "embeddings": {"provider": "none"},
                "knowledge": {"judge": "llm", "min_confidence": 0.7, "pending_ttl_seconds": 10},
            }
        )
        svc = KnowledgeService.from_config(config)
        assert isinstance(svc.resolver.judge, HeuristicConflictJudge)
        assert svc.store.embedder is None
        assert svc.store.min_confidence == 0.7
        assert svc.pending.ttl_seconds == 10
        assert svc.propose_fact("t1", "We use Slack").status == "saved"

    def test_uses_llm_judge_with_provider(self, tmp_path):
        config = FactStoreConfig.from_dict(
            {"paths": {"db_path": str(tmp_path / "facts.db")}, "embeddings": {"provider": "none"}}
        )
        provider = MagicMock()
        provider.generate.return_value = json.dumps({"facts": []})
        svc = KnowledgeService.from_config(config, provider=provider)
        assert isinstance(svc.resolver.judge, LLMConflictJudge)
        assert svc.remember("t1", "nothing useful") == []
