"""Rule parsing, matching, and placeholder extraction (core domain)."""

from __future__ import annotations

import functools
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from hookrelay.core.config import config_bool
from hookrelay.core.models import (
    Condition,
    Event,
    Extractor,
    Matched,
    MatchResult,
    Rule,
    Unmatched,
)

LOGGER = logging.getLogger(__name__)

# "matches" is the operator name written by the original mobile config UI.
OPERATOR_ALIASES = {"matches": "matchesRegex"}

DEFAULT_GROUP_INDEX = 1

# Stands in for a rule list that was configured but could not be parsed, so
# the source matches nothing instead of falling back to forward-everything.
UNPARSEABLE_RULES = Rule(id="unparseable", name="unparseable filter rules", enabled=False)


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    # Rules are reloaded per event, so compiled patterns are cached by source text.
    return re.compile(pattern)


def _require_str(entry: Dict[str, Any], *keys: str) -> str:
    # Scalars are read as text, so "id": 1 or "value": 5 still load.
    for key in keys:
        value = entry.get(key)
        if value is None:
            continue
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (str, int, float)):
            return str(value)
        raise ValueError(f"{key} must be a string")
    raise ValueError(f"missing required key: {keys[0]}")


def _parse_condition(entry: Dict[str, Any]) -> Condition:
    return Condition(
        field=_require_str(entry, "field"),
        operator=_require_str(entry, "operator"),
        value=_require_str(entry, "value"),
    )


def _parse_extractor(entry: Dict[str, Any]) -> Extractor:
    raw_group = entry.get("group", DEFAULT_GROUP_INDEX)
    if isinstance(raw_group, bool) or not isinstance(raw_group, int):
        raise ValueError("group must be an integer")
    return Extractor(
        output_name=_require_str(entry, "name", "output_name"),
        source_field=_require_str(entry, "source_field", "sourceField"),
        pattern=_require_str(entry, "pattern"),
        group_index=max(raw_group, 0),
    )


def _parse_rule(entry: Dict[str, Any]) -> Rule:
    if not isinstance(entry, dict):
        raise ValueError("rule must be an object")
    raw_conditions = entry.get("conditions") or []
    raw_extractors = entry.get("extractors") or []
    if not isinstance(raw_conditions, list) or not isinstance(raw_extractors, list):
        raise ValueError("conditions and extractors must be lists")
    return Rule(
        id=_require_str(entry, "id"),
        name=_require_str(entry, "name"),
        enabled=config_bool(entry.get("enabled"), True),
        conditions=tuple(_parse_condition(item) for item in raw_conditions),
        extractors=tuple(_parse_extractor(item) for item in raw_extractors),
    )


def parse_rules(raw_rules: Any) -> List[Rule]:
    """Build rules from config dicts, skipping malformed entries.

    One broken rule never hides the others: each entry is parsed on its own and
    failures are logged with the entry's position in the list. Only an absent
    or empty list yields ``[]`` (forward everything); a configured list that
    produced no usable rule yields ``[UNPARSEABLE_RULES]``, which matches
    nothing.
    """

    if raw_rules is None:
        return []
    if not isinstance(raw_rules, list):
        LOGGER.error("Filter rules must be a list, got %s", type(raw_rules).__name__)
        return [UNPARSEABLE_RULES]

    rules: List[Rule] = []
    for index, entry in enumerate(raw_rules):
        try:
            rules.append(_parse_rule(entry))
        except (ValueError, TypeError, AttributeError) as exc:
            LOGGER.error("Skipping filter rule at index %s: %s", index, exc)
    if raw_rules and not rules:
        LOGGER.error("No filter rule could be parsed, events will be filtered")
        return [UNPARSEABLE_RULES]
    return rules


def match_condition(event: Event, condition: Condition) -> bool:
    """Evaluate one condition; configuration or pattern errors yield False."""

    field_value = event.field_value(condition.field)
    if field_value is None:
        LOGGER.warning("Unknown field in condition: %s", condition.field)
        return False

    operator = OPERATOR_ALIASES.get(condition.operator, condition.operator)
    target = condition.value

    if operator == "contains":
        return target in field_value
    if operator == "notContains":
        return target not in field_value
    if operator == "equals":
        return field_value == target
    if operator == "notEquals":
        return field_value != target
    if operator == "startsWith":
        return field_value.startswith(target)
    if operator == "endsWith":
        return field_value.endswith(target)
    if operator == "matchesRegex":
        try:
            return _compile(target).fullmatch(field_value) is not None
        except re.error:
            LOGGER.exception("Invalid regex pattern in condition: %s", target)
            return False

    LOGGER.warning("Unknown operator in condition: %s", condition.operator)
    return False


def _extract_one(event: Event, extractor: Extractor) -> Optional[str]:
    source_value = event.field_value(extractor.source_field)
    if source_value is None:
        LOGGER.warning(
            "Unknown source field %s for extractor %s",
            extractor.source_field,
            extractor.output_name,
        )
        return None

    found = _compile(extractor.pattern).search(source_value)
    if found is None:
        LOGGER.debug("No match found for extractor: %s", extractor.output_name)
        return None

    group_index = min(max(extractor.group_index, 0), found.re.groups)
    # A group that did not take part in the match extracts as an empty string.
    return found.group(group_index) or ""


def extract_fields(event: Event, extractors: Iterable[Extractor]) -> Dict[str, str]:
    """Run every extractor independently and collect the values that matched."""

    result: Dict[str, str] = {}
    for extractor in extractors:
        try:
            value = _extract_one(event, extractor)
        except re.error:
            LOGGER.exception("Invalid regex pattern in extractor: %s", extractor.output_name)
            continue
        if value is not None:
            result[extractor.output_name] = value
    return result


def evaluate(event: Event, rules: Iterable[Rule]) -> MatchResult:
    """Return the match result for an event against an ordered rule list.

    Matching logic:
    - No rules at all means every event is forwarded.
    - Disabled rules are skipped.
    - The first rule whose conditions all hold wins; its extractors run.
    - Otherwise the event is unmatched.
    """

    rules = list(rules)
    if not rules:
        return Matched({})

    for rule in rules:
        if not rule.enabled:
            continue
        # Evaluate every condition so each invalid one is reported.
        results = [match_condition(event, condition) for condition in rule.conditions]
        if all(results):
            extracted = extract_fields(event, rule.extractors)
            LOGGER.debug("Event matched rule %s, extracted: %s", rule.name, extracted)
            return Matched(extracted, rule_id=rule.id)

    LOGGER.debug("Event from %s did not match any rules", event.source_id)
    return Unmatched()
