"""
Criteria Suggestion Service

Looks up existing mappings that resemble newly observed criteria. The
similarity search itself lives in the database (find_similar_criteria);
this module decides which candidates reach the user.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app, has_app_context
from sqlalchemy import text

from app import db

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityCandidate:
    """An existing mapping suggested for a criterion."""

    mapping_id: Any
    display_name: str
    original_criteria: List[str] = field(default_factory=list)
    usage_count: int = 1
    similarity_score: float = 0.0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'SimilarityCandidate':
        original = row.get('original_criteria') or []
        if isinstance(original, str):
            original = json.loads(original)
        if not isinstance(original, list):
            original = []
        return cls(
            mapping_id=row.get('mapping_id', row.get('id')),
            display_name=row.get('display_name') or '',
            original_criteria=[str(item) for item in original],
            usage_count=int(row.get('usage_count') or 1),
            similarity_score=float(row.get('similarity_score') or 0.0)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mapping_id': self.mapping_id,
            'display_name': self.display_name,
            'original_criteria': list(self.original_criteria),
            'usage_count': self.usage_count,
            'similarity_score': self.similarity_score
        }


SimilarityFinder = Callable[[str, str], Optional[Iterable[SimilarityCandidate]]]


class DatabaseSimilarityFinder:
    """Calls the database's trigram similarity function."""

    QUERY = text(
        'SELECT * FROM find_similar_criteria(:criteria_text, :event_type_param)'
    )

    def __call__(self, criterion_label: str, event_type: str) -> List[SimilarityCandidate]:
        result = db.session.execute(self.QUERY, {
            'criteria_text': criterion_label,
            'event_type_param': event_type
        })
        return [SimilarityCandidate.from_row(dict(row._mapping)) for row in result]


class CriteriaSuggestionService:
    """
    Suggestion policy on top of a similarity finder.

    - Candidates at or below `min_score` are never shown
    - Scanning many criteria keeps the `top_n` best candidates per criterion
    - A failing or slow lookup only costs that criterion its suggestions
    """

    def __init__(self, finder: SimilarityFinder, min_score: float = 0.1, top_n: int = 3,
                 timeout: float = 5.0, max_workers: int = 8):
        self.finder = finder
        self.min_score = min_score
        self.top_n = top_n
        self.timeout = timeout
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_app(cls, app=None) -> 'CriteriaSuggestionService':
        app = app or current_app
        return cls(
            finder=app.extensions['criteria_similarity_finder'],
            min_score=app.config.get('SUGGESTION_MIN_SCORE', 0.1),
            top_n=app.config.get('SUGGESTION_TOP_N', 3),
            timeout=app.config.get('SUGGESTION_TIMEOUT_SECONDS', 5.0),
            max_workers=app.config.get('SUGGESTION_MAX_WORKERS', 8)
        )

    def filter_candidates(self, candidates: Iterable[SimilarityCandidate]) -> List[SimilarityCandidate]:
        """Keep candidates scoring above the threshold, in the order given."""
        return [c for c in candidates or [] if c.similarity_score > self.min_score]

    def get_suggestions(self, criterion: str, event_type: str) -> List[SimilarityCandidate]:
        if not criterion or not event_type:
            return []

        try:
            candidates = self.finder(criterion, event_type)
        except Exception as e:
            logger.warning("Similarity lookup failed for %r: %s", criterion, e)
            return []

        if candidates is None:
            return []
        return self.filter_candidates(candidates)

    def get_all_suggestions(self, criteria: Iterable[str], event_type: str) -> Dict[str, List[SimilarityCandidate]]:
        """
        Look up suggestions for many criteria at once.

        Args:
            criteria: Criterion labels, typically the unmapped ones
            event_type: Event type the criteria belong to

        Returns:
            Dict of criterion -> best candidates (highest score first); criteria
            without candidates are left out
        """
        labels = []
        for criterion in criteria or []:
            if criterion and criterion not in labels:
                labels.append(criterion)
        if not labels or not event_type:
            return {}

        app = current_app._get_current_object() if has_app_context() else None
        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(labels)))
        try:
            futures = {
                executor.submit(self._lookup, app, label, event_type): label
                for label in labels
            }
            done, not_done = wait(futures, timeout=self.timeout)

            for future in not_done:
                future.cancel()
                logger.warning(
                    "Similarity lookup for %r timed out after %.1fs", futures[future], self.timeout
                )

            found: Dict[str, List[SimilarityCandidate]] = {}
            for future in done:
                try:
                    candidates = future.result()
                except Exception as e:
                    logger.warning("Similarity worker failed for %r: %s", futures[future], e)
                    continue
                ranked = sorted(candidates, key=lambda c: c.similarity_score, reverse=True)
                if ranked:
                    found[futures[future]] = ranked[:self.top_n]
        finally:
            # Queued lookups are cancelled; ones already running finish in the
            # background (at most max_workers threads, each with its own app
            # context and session) and their results are discarded.
            executor.shutdown(wait=False, cancel_futures=True)

        return {label: found[label] for label in labels if label in found}

    def _lookup(self, app, criterion: str, event_type: str) -> List[SimilarityCandidate]:
        if app is None:
            return self.get_suggestions(criterion, event_type)
        with app.app_context():
            return self.get_suggestions(criterion, event_type)


class SuggestionReview:
    """Pending suggestions awaiting an explicit accept or reject."""

    def __init__(self, pending: Optional[Dict[str, List[SimilarityCandidate]]] = None):
        self._pending = dict(pending or {})

    @property
    def pending(self) -> Dict[str, List[SimilarityCandidate]]:
        return dict(self._pending)

    def accept(self, criterion: str, candidate: SimilarityCandidate) -> Dict[str, Any]:
        """Turn a candidate into a single-criterion mapping and clear the criterion."""
        if criterion not in self._pending:
            raise ValueError(f"No pending suggestions for '{criterion}'")
        self._pending.pop(criterion)
        return {
            'display_name': candidate.display_name,
            'original_criteria': [criterion],
            'usage_count': 1
        }

    def reject(self, criterion: str) -> None:
        self._pending.pop(criterion, None)
