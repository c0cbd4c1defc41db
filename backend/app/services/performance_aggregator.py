# ============================================================================
# PERFORMANCE AGGREGATION
# ============================================================================


import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_DOWN, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from app.services.score_sheet_extractor import ScoreSheetExtractor
from app.utils.criteria_labels import criterion_sort_key

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


@dataclass(frozen=True)
class AggregatedPoint:
    """Average score of one criterion on one competition date."""
    date: date
    criterion: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'criterion': self.criterion,
            'value': self.value
        }


class PerformanceAggregator:
    """
    Turns score records into a date-ordered series of per-criterion averages.

    Every value whose raw key maps to the same final label on the same date is
    pooled (several judges, several score sheet revisions). A criterion with
    no values on a date is simply absent from that date's row.
    """

    @staticmethod
    def round_score(value: float) -> float:
        """
        Round to two decimals with ties going towards positive infinity.

        Penalty means are negative, so -1.125 becomes -1.12 while 1.125 becomes 1.13.
        """
        amount = Decimal(str(value))
        rounding = ROUND_HALF_UP if amount >= 0 else ROUND_HALF_DOWN
        return float(amount.quantize(TWO_PLACES, rounding=rounding))

    @staticmethod
    def record_date(record: Any) -> Optional[date]:
        value = getattr(record, 'competition_date', None)
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str) and value:
            try:
                return date.fromisoformat(value[:10])
            except ValueError:
                return None
        return None

    @staticmethod
    def bucket_scores(records: Iterable[Any], raw_to_final: Dict[str, str]) -> Dict[date, Dict[str, List[float]]]:
        buckets: Dict[date, Dict[str, List[float]]] = defaultdict(lambda: defaultdict(list))
        skipped = 0

        for record in records:
            record_date = PerformanceAggregator.record_date(record)
            if record_date is None:
                skipped += 1
                continue

            for raw_key, value in ScoreSheetExtractor.extract(getattr(record, 'score_sheet', None)).items():
                label = raw_to_final.get(raw_key)
                if label is None:
                    continue
                buckets[record_date][label].append(value)

        if skipped:
            logger.debug("Skipped %d score records without a competition date", skipped)
        return buckets

    @staticmethod
    def aggregate_points(records: Iterable[Any], raw_to_final: Dict[str, str]) -> List[AggregatedPoint]:
        buckets = PerformanceAggregator.bucket_scores(records, raw_to_final)

        points = []
        for record_date in sorted(buckets):
            by_label = buckets[record_date]
            for label in sorted(by_label, key=criterion_sort_key):
                values = by_label[label]
                if not values:
                    continue
                mean = float(np.mean(values))
                points.append(AggregatedPoint(
                    date=record_date,
                    criterion=label,
                    value=PerformanceAggregator.round_score(mean)
                ))
        return points

    @staticmethod
    def to_series(points: Iterable[AggregatedPoint]) -> List[Dict[str, Any]]:
        """
        Group points into chart rows.

        Returns:
            [{'date': '2024-03-02', '1. Posture': 8.5, ...}, ...] sorted by date
        """
        rows: Dict[date, Dict[str, Any]] = {}
        for point in sorted(points, key=lambda p: (p.date, criterion_sort_key(p.criterion))):
            row = rows.setdefault(point.date, {'date': point.date.isoformat()})
            row[point.criterion] = point.value
        return [rows[key] for key in sorted(rows)]

    @staticmethod
    def aggregate(records: Iterable[Any], raw_to_final: Dict[str, str]) -> List[Dict[str, Any]]:
        return PerformanceAggregator.to_series(
            PerformanceAggregator.aggregate_points(records, raw_to_final)
        )
