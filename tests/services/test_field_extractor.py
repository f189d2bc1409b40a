"""
Tests for FieldExtractor: rule layer first, completion fallback for the rest.
"""
import asyncio
import pytest

from src.models.conversation import ConversationTurn, TurnRole
from src.models.extraction import FIELD_DOMAINS, FieldCategory, FieldName, FieldValue, ValueSource
from src.services.field_extractor import (
    FieldExtractor,
    build_schema_prompt,
    merge_extractions,
    parse_completion_fields,
)
from tests.conftest import FakeCompleter


def turns(*user_texts, assistant=None):
    history = []
    for text in user_texts:
        if assistant:
            history.append(ConversationTurn(role=TurnRole.ASSISTANT, text=assistant))
        history.append(ConversationTurn(role=TurnRole.USER, text=text))
    return history


@pytest.mark.asyncio
class TestRuleLayer:

    async def test_no_completer_uses_rules_only(self):
        extractor = FieldExtractor()

        extraction = await extractor.extract(turns("We are a hospital with $200k approved"))

        assert extraction.value(FieldName.INDUSTRY) == "healthcare"
        assert extraction.get(FieldName.INDUSTRY).source == ValueSource.RULE
        assert extraction.category(FieldName.PROBLEM_TYPE) == FieldCategory.UNKNOWN
        assert len(extraction.fields) == len(FieldName)

    async def test_assistant_turns_are_ignored(self):
        extractor = FieldExtractor()

        extraction = await extractor.extract(
            turns("Just the two of us here", assistant="Are you in construction or retail?")
        )

        assert extraction.value(FieldName.INDUSTRY) is None

    async def test_rules_only_is_deterministic(self):
        extractor = FieldExtractor()
        history = turns("I'm the CTO of a software company, we need it asap")

        assert extractor.extract_rules_only(history) == extractor.extract_rules_only(history)


@pytest.mark.asyncio
class TestCompletionFallback:

    async def test_fills_unknown_fields(self):
        completer = FakeCompleter({
            "problem_type": {"value": "document_processing", "category": "CLEAR"},
            "industry": {"value": "finance", "category": "CLEAR"},
        })
        extractor = FieldExtractor(completer=completer)

        extraction = await extractor.extract(turns("We are a hospital drowning in intake forms"))

        assert extraction.value(FieldName.PROBLEM_TYPE) == "document_processing"
        assert extraction.get(FieldName.PROBLEM_TYPE).source == ValueSource.COMPLETION
        # Industry was CLEAR from the rules, so it was never even requested
        assert extraction.value(FieldName.INDUSTRY) == "healthcare"
        prompt = completer.calls[0][0].text
        assert '"problem_type"' in prompt
        assert '"industry"' not in prompt

    async def test_only_called_when_something_is_unknown(self):
        completer = FakeCompleter("{}")
        extractor = FieldExtractor(completer=completer)

        await extractor.extract([])

        assert completer.call_count == 0

    async def test_failure_degrades_to_rule_results(self):
        completer = FakeCompleter(RuntimeError("provider down"))
        extractor = FieldExtractor(completer=completer)

        extraction = await extractor.extract(turns("We run three clinics"))

        assert extraction.value(FieldName.INDUSTRY) == "healthcare"
        assert extraction.category(FieldName.BUDGET_STATUS) == FieldCategory.UNKNOWN

    async def test_unparseable_reply_degrades(self):
        extractor = FieldExtractor(completer=FakeCompleter("Sure! Here is what I found."))

        extraction = await extractor.extract(turns("We run three clinics"))

        assert extraction.category(FieldName.PROBLEM_TYPE) == FieldCategory.UNKNOWN

    async def test_timeout_degrades(self):
        completer = FakeCompleter({"problem_type": {"value": "other", "category": "CLEAR"}}, delay=1.0)
        extractor = FieldExtractor(completer=completer, timeout_seconds=0.01)

        extraction = await extractor.extract(turns("We run three clinics"))

        assert extraction.value(FieldName.PROBLEM_TYPE) is None

    async def test_full_transcript_never_overrides_clear(self):
        completer = FakeCompleter({
            "industry": {"value": "retail", "category": "CLEAR"},
            "problem_type": {"value": "hiring_recruitment", "category": "CLEAR"},
        })
        extractor = FieldExtractor(completer=completer)

        extraction = await extractor.extract(
            turns("Our clinics need help with support tickets"), full_transcript=True
        )

        assert extraction.value(FieldName.INDUSTRY) == "healthcare"
        assert extraction.value(FieldName.PROBLEM_TYPE) == "customer_support"


class TestParsing:

    def test_out_of_domain_values_dropped(self):
        parsed = parse_completion_fields(
            {"industry": {"value": "space mining", "category": "CLEAR"}},
            [FieldName.INDUSTRY],
        )
        assert parsed == {}

    def test_unknown_category_dropped(self):
        parsed = parse_completion_fields(
            {"industry": {"value": "retail", "category": "UNKNOWN"}},
            [FieldName.INDUSTRY],
        )
        assert parsed == {}

    def test_numeric_values_coerced(self):
        parsed = parse_completion_fields(
            {
                "budget_amount": {"value": "$75,000", "category": "CLEAR"},
                "team_size": {"value": 0, "category": "CLEAR"},
            },
            [FieldName.BUDGET_AMOUNT, FieldName.TEAM_SIZE],
        )
        assert parsed[FieldName.BUDGET_AMOUNT].value == "75000"
        assert FieldName.TEAM_SIZE not in parsed

    def test_bare_value_is_vague(self):
        parsed = parse_completion_fields({"industry": "Retail"}, [FieldName.INDUSTRY])
        assert parsed[FieldName.INDUSTRY].value == "retail"
        assert parsed[FieldName.INDUSTRY].category == FieldCategory.VAGUE

    def test_unrequested_fields_ignored(self):
        parsed = parse_completion_fields(
            {"industry": {"value": "retail", "category": "CLEAR"}},
            [FieldName.PROBLEM_TYPE],
        )
        assert parsed == {}

    def test_schema_prompt_lists_domain(self):
        prompt = build_schema_prompt([FieldName.TECH_CAPABILITY, FieldName.TEAM_SIZE])
        for value in FIELD_DOMAINS[FieldName.TECH_CAPABILITY]:
            assert value in prompt
        assert "integer head count" in prompt


class TestMerge:

    def _value(self, value, category, source=ValueSource.RULE):
        return FieldValue(value=value, category=category, source=source)

    def test_vague_yields_only_to_clear(self):
        rule_fields = {
            FieldName.INDUSTRY: self._value("technology", FieldCategory.VAGUE),
            FieldName.PROBLEM_TYPE: self._value("customer_support", FieldCategory.VAGUE),
        }
        completed = {
            FieldName.INDUSTRY: self._value("finance", FieldCategory.CLEAR, ValueSource.COMPLETION),
            FieldName.PROBLEM_TYPE: self._value("other", FieldCategory.VAGUE, ValueSource.COMPLETION),
        }

        merged = merge_extractions(rule_fields, completed)

        assert merged[FieldName.INDUSTRY].value == "finance"
        assert merged[FieldName.PROBLEM_TYPE].value == "customer_support"

    def test_clear_never_overridden(self):
        rule_fields = {FieldName.INDUSTRY: self._value("retail", FieldCategory.CLEAR)}
        completed = {FieldName.INDUSTRY: self._value("finance", FieldCategory.CLEAR, ValueSource.COMPLETION)}

        assert merge_extractions(rule_fields, completed)[FieldName.INDUSTRY].value == "retail"
