"""Shared test doubles for the reporting tests."""

import time

from app.services.criteria_suggestion_service import SimilarityCandidate


class FakeSimilarityFinder:
    """Stands in for the database similarity function."""

    def __init__(self):
        self.responses = {}
        self.failures = set()
        self.delays = {}
        self.calls = []

    def __call__(self, criterion_label, event_type):
        self.calls.append((criterion_label, event_type))
        if criterion_label in self.delays:
            time.sleep(self.delays[criterion_label])
        if criterion_label in self.failures:
            raise RuntimeError("similarity backend unavailable")
        return self.responses.get(criterion_label, [])


def candidate(display_name, score, mapping_id=None, usage_count=1, original=None):
    return SimilarityCandidate(
        mapping_id=mapping_id,
        display_name=display_name,
        original_criteria=original or [display_name],
        usage_count=usage_count,
        similarity_score=score
    )
