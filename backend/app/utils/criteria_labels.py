"""
Display label helpers for scoring criteria.
Raw keys come from the score sheet structure (e.g. "field_3_2.Routine_Marching")
and are turned into labels shown in reports (e.g. "3. Routine Marching").
"""

import re
from enum import Enum
from typing import Iterable, List, Optional, Tuple

_WORD_START = re.compile(r'\b\w', re.ASCII)
_LEADING_NUMBER = re.compile(r'^(\d+)\.')


class LabelRule(Enum):
    """Formatting rules, matched top-down."""
    NUMBERED = re.compile(r'^field_(\d+)_(\d+)\.(.*)$', re.DOTALL)
    PENALTY = re.compile(r'^field_(\d+)_(.*)$', re.DOTALL)
    FALLBACK = None

    def match(self, raw_key: str) -> Optional[re.Match]:
        if self.value is None:
            return None
        return self.value.match(raw_key)


def humanize(text: str) -> str:
    return text.replace('_', ' ')


def title_case(text: str) -> str:
    # Only the first letter of each word changes; '&' and '/' act as word breaks
    return _WORD_START.sub(lambda m: m.group(0).upper(), text)


def format_criterion_label(raw_key: str) -> str:
    """
    Convert a raw key path into a display label.

    - field_<N>_<M>.<description> -> "<N>. Description"
    - field_<N>_<description>     -> "Description"
    - anything else               -> humanized, title-cased key
    """
    for rule in LabelRule:
        match = rule.match(raw_key)
        if rule is LabelRule.NUMBERED and match:
            description = match.group(3)
            if description.startswith('_'):
                description = description[1:]
            return f"{match.group(1)}. {title_case(humanize(description))}"
        if rule is LabelRule.PENALTY and match:
            return title_case(humanize(match.group(2)))
    return title_case(humanize(raw_key))


def leading_number(label: str) -> Optional[int]:
    match = _LEADING_NUMBER.match(label)
    return int(match.group(1)) if match else None


def criterion_sort_key(label: str) -> Tuple[int, int, str, str]:
    # Numbered labels first (by number), then the rest alphabetically
    number = leading_number(label)
    if number is None:
        return (1, 0, label.casefold(), label)
    return (0, number, label.casefold(), label)


def sort_criteria(labels: Iterable[str]) -> List[str]:
    return sorted(labels, key=criterion_sort_key)
