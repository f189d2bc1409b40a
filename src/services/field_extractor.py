"""
Field Extractor
Turns a conversation into a FieldExtraction in two layers: the ordered
rule table first, then the text-completion collaborator for whatever the
rules could not settle.
"""
import asyncio
from typing import Dict, Iterable, Optional, Sequence, Tuple

from loguru import logger

from src.agents.completion_agent import TextCompleter, parse_json_reply
from src.config import settings
from src.models.conversation import ConversationTurn, TurnRole, format_transcript, user_text
from src.models.extraction import (
    FIELD_DOMAINS,
    NUMERIC_FIELDS,
    FieldCategory,
    FieldExtraction,
    FieldName,
    FieldValue,
    ValueSource,
    is_valid_value,
)
from src.services.extraction_rules import RULE_TABLE, Rule, extract_with_rules

_NUMERIC_HINTS = {
    FieldName.BUDGET_AMOUNT: "integer number of US dollars",
    FieldName.TEAM_SIZE: "integer head count",
}


def build_schema_prompt(fields: Iterable[FieldName]) -> str:
    """Fixed JSON-schema instructions for the requested fields."""
    lines = []
    for name in fields:
        if name in NUMERIC_FIELDS:
            allowed = _NUMERIC_HINTS[name]
        else:
            allowed = " | ".join(sorted(FIELD_DOMAINS[name]))
        lines.append(f'  "{name.value}": {{"value": {allowed} | null, "category": CLEAR | VAGUE | UNKNOWN}}')

    return (
        "You extract qualification data from a B2B prospect conversation.\n"
        "Use only what the USER said. Reply with a single JSON object and nothing else:\n"
        "{\n" + ",\n".join(lines) + "\n}\n"
        "CLEAR means the user stated it explicitly. VAGUE means it is implied or hedged. "
        "Use null with UNKNOWN when the conversation does not say."
    )


def _coerce_value(name: FieldName, raw) -> Optional[str]:
    if raw is None:
        return None
    if name in NUMERIC_FIELDS:
        if isinstance(raw, bool):
            return None
        try:
            number = int(float(str(raw).replace(",", "").replace("$", "").strip()))
        except ValueError:
            return None
        value = str(number)
    else:
        value = str(raw).strip().lower()
    if value in ("", "unknown", "null", "none"):
        return None
    return value if is_valid_value(name, value) else None


def parse_completion_fields(data: Dict, requested: Iterable[FieldName]) -> Dict[FieldName, FieldValue]:
    """
    Keep only requested fields whose value and category are inside their domains.
    Anything malformed is dropped, leaving that field to its rule-layer result.
    """
    parsed: Dict[FieldName, FieldValue] = {}
    for name in requested:
        entry = data.get(name.value)
        if isinstance(entry, dict):
            raw_value, raw_category = entry.get("value"), entry.get("category")
        else:
            raw_value, raw_category = entry, FieldCategory.VAGUE.value

        value = _coerce_value(name, raw_value)
        if value is None:
            continue
        try:
            category = FieldCategory(str(raw_category).upper())
        except ValueError:
            continue
        if category == FieldCategory.UNKNOWN:
            continue

        parsed[name] = FieldValue(value=value, category=category, source=ValueSource.COMPLETION)
    return parsed


def merge_extractions(
    rule_fields: Dict[FieldName, FieldValue],
    completed: Dict[FieldName, FieldValue],
) -> Dict[FieldName, FieldValue]:
    """
    Rule results win unless they are weaker:
    UNKNOWN takes any completion value, VAGUE only yields to a CLEAR completion,
    CLEAR is never overridden.
    """
    merged = dict(rule_fields)
    for name, candidate in completed.items():
        current = merged.get(name, FieldValue())
        if current.category == FieldCategory.UNKNOWN:
            merged[name] = candidate
        elif current.category == FieldCategory.VAGUE and candidate.category == FieldCategory.CLEAR:
            merged[name] = candidate
    return merged


class FieldExtractor:
    """
    Conversation -> FieldExtraction.

    Same transcript in, same extraction out as far as the rule layer is
    concerned. The completion layer is best effort: a timeout, a transport
    error or an unparseable reply leaves the fields it was asked about at
    their rule-layer result (UNKNOWN if the rules found nothing).

    Usage:
        >>> extractor = FieldExtractor(completer=CompletionAgent())
        >>> extraction = await extractor.extract(conversation.turns)
    """

    def __init__(
        self,
        completer: TextCompleter | None = None,
        timeout_seconds: float | None = None,
        rules: Dict[FieldName, Tuple[Rule, ...]] | None = None,
    ):
        self.completer = completer
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds
        self.rules = rules or RULE_TABLE

    def extract_rules_only(self, conversation: Sequence[ConversationTurn]) -> FieldExtraction:
        """Rule layer alone, no collaborator call."""
        return FieldExtraction(fields=self._rule_fields(user_text(conversation)))

    async def extract(
        self,
        conversation: Sequence[ConversationTurn],
        full_transcript: bool = False,
    ) -> FieldExtraction:
        """
        Extract every field from the conversation.

        Args:
            conversation: Ordered turns; only user turns feed the rule layer
            full_transcript: Ask the collaborator for all fields at once rather
                than only those the rules left UNKNOWN

        Returns:
            FieldExtraction carrying every FieldName
        """
        text = user_text(conversation)
        fields = self._rule_fields(text)

        if full_transcript:
            requested = list(FieldName)
        else:
            requested = [name for name in FieldName if fields[name].category == FieldCategory.UNKNOWN]

        if not requested or self.completer is None or not text.strip():
            return FieldExtraction(fields=fields)

        completed = await self._complete(conversation, requested)
        return FieldExtraction(fields=merge_extractions(fields, completed))

    def _rule_fields(self, text: str) -> Dict[FieldName, FieldValue]:
        matches = extract_with_rules(text, self.rules)
        fields = {name: FieldValue() for name in FieldName}
        for name, match in matches.items():
            fields[name] = FieldValue(value=match.value, category=match.category, source=ValueSource.RULE)
        return fields

    async def _complete(
        self,
        conversation: Sequence[ConversationTurn],
        requested: Sequence[FieldName],
    ) -> Dict[FieldName, FieldValue]:
        messages = [
            ConversationTurn(role=TurnRole.SYSTEM, text=build_schema_prompt(requested)),
            ConversationTurn(role=TurnRole.USER, text=format_transcript(conversation)),
        ]
        try:
            reply = await asyncio.wait_for(self.completer.complete(messages), timeout=self.timeout_seconds)
            completed = parse_completion_fields(parse_json_reply(reply), requested)
        except asyncio.TimeoutError:
            logger.warning(
                f"⏱️ Extraction fallback timed out after {self.timeout_seconds}s, "
                f"{len(requested)} fields stay at rule results"
            )
            return {}
        except Exception as e:
            logger.warning(f"⚠️ Extraction fallback failed, {len(requested)} fields stay at rule results: {e}")
            return {}

        logger.debug(f"Extraction fallback filled {len(completed)}/{len(requested)} fields")
        return completed
