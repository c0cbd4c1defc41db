# ============================================================================
# SCORE SHEET FIELD EXTRACTION
# ============================================================================


import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from app.utils.criteria_labels import format_criterion_label, sort_criteria

logger = logging.getLogger(__name__)

JsonScalar = Union[int, float, str, bool, None]
JsonValue = Union[JsonScalar, List['JsonValue'], Dict[str, 'JsonValue']]


class ScoreSheetExtractor:
    """
    Finds numeric score fields in a schema-less score sheet.

    Handles:
    - Direct numbers: 8, 7.5
    - Numeric strings: "8", " 7.5 "
    - Nested objects: {"field_3_2": {"Routine_Marching": "8.5"}}
    - Arrays, booleans, nulls and free text: skipped
    """

    # Sheets may wrap their fields one level deeper under this key
    WRAPPER_KEY = 'scores'

    @staticmethod
    def parse_numeric(value: JsonValue) -> Optional[float]:
        """Return the numeric value of a score leaf, or None if it carries no score."""
        # bool is an int subclass but never a score
        if isinstance(value, bool):
            return None

        if isinstance(value, (int, float)):
            number = float(value)
            return number if math.isfinite(number) else None

        if isinstance(value, str):
            text = value.strip()
            if not text or '_' in text:
                return None
            try:
                number = float(text)
            except ValueError:
                return None
            return number if math.isfinite(number) else None

        return None

    @staticmethod
    def unwrap(score_sheet: Any) -> Optional[Dict[str, JsonValue]]:
        """Return the field container of a score sheet, or None for malformed input."""
        if isinstance(score_sheet, str):
            # Manually edited sheets can arrive as JSON text
            try:
                score_sheet = json.loads(score_sheet)
            except ValueError:
                logger.debug("Ignoring score sheet with unparseable JSON text")
                return None

        if not isinstance(score_sheet, dict):
            return None

        wrapped = score_sheet.get(ScoreSheetExtractor.WRAPPER_KEY)
        if isinstance(wrapped, dict):
            return wrapped
        return score_sheet

    @staticmethod
    def extract(score_sheet: Any) -> Dict[str, float]:
        """
        Extract every numeric leaf of a score sheet keyed by its dotted path.

        Args:
            score_sheet: Score sheet JSON (dict, JSON text, or anything else)

        Returns:
            Dict of raw key -> numeric value; empty for missing or malformed sheets
        """
        container = ScoreSheetExtractor.unwrap(score_sheet)
        if container is None:
            return {}

        values: Dict[str, float] = {}
        ScoreSheetExtractor._visit(container, '', values)
        return values

    @staticmethod
    def _visit(node: Dict[str, JsonValue], prefix: str, values: Dict[str, float]) -> None:
        for key, value in node.items():
            raw_key = f"{prefix}.{key}" if prefix else str(key)

            if isinstance(value, dict):
                ScoreSheetExtractor._visit(value, raw_key, values)
                continue

            number = ScoreSheetExtractor.parse_numeric(value)
            if number is not None:
                values[raw_key] = number


@dataclass
class CriterionRegistry:
    """Criteria observed across one batch of records."""
    raw_to_display: Dict[str, str] = field(default_factory=dict)
    display_labels: Set[str] = field(default_factory=set)

    def add(self, raw_key: str) -> str:
        label = self.raw_to_display.get(raw_key)
        if label is None:
            label = format_criterion_label(raw_key)
            self.raw_to_display[raw_key] = label
            self.display_labels.add(label)
        return label

    def sorted_labels(self) -> List[str]:
        return sort_criteria(self.display_labels)


def build_registry(records: Iterable[Any]) -> CriterionRegistry:
    """Collect raw keys and their display labels from every record's score sheet."""
    registry = CriterionRegistry()
    for record in records:
        for raw_key in ScoreSheetExtractor.extract(getattr(record, 'score_sheet', None)):
            registry.add(raw_key)
    return registry
