"""Tests for LLM reply validation."""

import json

import pytest

from knowledge.models import ConflictAction, ConflictType
from knowledge.schemas import (
    ExtractedEntity,
    ResponseFormatError,
    parse_extraction,
    parse_json_payload,
    parse_judgment,
)


class TestParseJsonPayload:
    def test_plain(self):
        assert parse_json_payload('{"a": 1}') == {"a": 1}

    def test_strips_markdown_fence(self):
        assert parse_json_payload('```json\n{"a": 1}\n```') == {"a": 1}

    def test_invalid(self):
        with pytest.raises(ResponseFormatError):
            parse_json_payload("not json")

    def test_none(self):
        with pytest.raises(ResponseFormatError):
            parse_json_payload(None)


class TestParseExtraction:
    def test_valid_items(self):
        reply = json.dumps(
            {
                "facts": [
                    {
                        "statement": " Full Uproar Games is a tabletop games company ",
                        "category": "company",
                        "entities": [{"type": "company", "name": "Full Uproar Games"}, "tabletop"],
                        "confidence": 0.9,
                    }
                ],
                "sourceQuestion": "Who are we?",
            }
        )
        items = parse_extraction(reply)
        assert len(items) == 1
        assert items[0].statement == "Full Uproar Games is a tabletop games company"
        assert isinstance(items[0].entities[0], ExtractedEntity)
        assert items[0].entities[1] == "tabletop"

    def test_bad_items_skipped_individually(self):
        reply = json.dumps(
            {
                "facts": [
                    {"statement": "", "confidence": 0.9},
                    {"statement": "ok", "confidence": 7},
                    "not an object",
                    {"statement": "Price is $40", "confidence": 0.8, "value": 40},
                ]
            }
        )
        items = parse_extraction(reply)
        assert [i.statement for i in items] == ["Price is $40"]
        assert items[0].value == "40"

    def test_bare_list_accepted(self):
        items = parse_extraction('[{"statement": "We use Slack"}]')
        assert items[0].category == "general"
        assert items[0].confidence == 0.7

    def test_missing_facts_key(self):
        with pytest.raises(ResponseFormatError):
            parse_extraction('{"result": []}')


class TestParseJudgment:
    def test_valid(self):
        j = parse_judgment(
            '{"action": "ASK_CONFIRMATION", "conflictType": "Contradiction", '
            '"relatedFactId": "f1", "reason": "different numbers"}'
        )
        assert j.action == ConflictAction.ASK_CONFIRMATION
        assert j.conflict_type == ConflictType.CONTRADICTION
        assert j.related_fact_id == "f1"

    def test_null_string_related_id(self):
        j = parse_judgment('{"action": "save", "conflictType": "none", "relatedFactId": "null"}')
        assert j.related_fact_id is None

    def test_unknown_action_rejected(self):
        with pytest.raises(ResponseFormatError):
            parse_judgment('{"action": "merge", "conflictType": "none"}')

    def test_missing_conflict_type_rejected(self):
        with pytest.raises(ResponseFormatError):
            parse_judgment('{"action": "save"}')

    def test_array_rejected(self):
        with pytest.raises(ResponseFormatError):
            parse_judgment("[]")
