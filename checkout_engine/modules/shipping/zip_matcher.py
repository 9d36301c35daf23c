"""
ZIP / postal code rules.

A rule text holds one rule per line:
    10000...20000   range, compared as strings
    SW1*            wildcard, * matches any run of characters
    90210           exact

Rules and the input are lowercased and stripped of all whitespace before
comparison. A blank rule text carries no constraint: callers check
has_zip_rules() first and must not read a False from matches_zip_code() as
"outside the zone" in that case.
"""
import re
from typing import List, Optional

RANGE_SEPARATOR = "..."
WILDCARD = "*"

_WHITESPACE = re.compile(r"\s")


def normalize_zip(value: str) -> str:
    return _WHITESPACE.sub("", value).lower()


def parse_zip_rules(rule_text: Optional[str]) -> List[str]:
    """Normalized, non-blank rules."""
    if not rule_text:
        return []
    rules = []
    for line in rule_text.split("\n"):
        rule = normalize_zip(line)
        if rule:
            rules.append(rule)
    return rules


def has_zip_rules(rule_text: Optional[str]) -> bool:
    return bool(parse_zip_rules(rule_text))


def _wildcard_pattern(rule: str) -> "re.Pattern[str]":
    return re.compile(".*".join(re.escape(part) for part in rule.split(WILDCARD)))


def _rule_matches(zip_code: str, rule: str) -> bool:
    if RANGE_SEPARATOR in rule:
        start, _, end = rule.partition(RANGE_SEPARATOR)
        return start <= zip_code <= end
    if WILDCARD in rule:
        return _wildcard_pattern(rule).fullmatch(zip_code) is not None
    return zip_code == rule


def matches_zip_code(zip_code: Optional[str], rule_text: Optional[str]) -> bool:
    """True if any rule in rule_text matches zip_code."""
    normalized = normalize_zip(zip_code or "")
    return any(_rule_matches(normalized, rule) for rule in parse_zip_rules(rule_text))
