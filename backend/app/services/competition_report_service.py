import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import ReportStorageError
from app.models.competition_event_score import CompetitionEventScore
from app.models.criteria_mapping import CriteriaMapping
from app.services.criteria_mapping_service import CriteriaMappingService
from app.services.criteria_suggestion_service import (
    CriteriaSuggestionService,
    SimilarityCandidate,
    SuggestionReview
)
from app.services.performance_aggregator import PerformanceAggregator
from app.services.score_sheet_extractor import CriterionRegistry, build_registry
from app.utils.criteria_labels import sort_criteria

logger = logging.getLogger(__name__)

RecordFetcher = Callable[[str, str, Optional[List[str]]], List[Any]]


class CompetitionReportService:
    """
    Read path for competition performance reports, plus the mapping and
    suggestion operations the report screen drives.

    Pipeline: score records -> criterion registry -> mappings -> aggregation
    """

    def __init__(self, suggestion_service: Optional[CriteriaSuggestionService] = None,
                 record_fetcher: Optional[RecordFetcher] = None,
                 mapping_service=CriteriaMappingService):
        self.suggestion_service = suggestion_service
        self.fetch_records = record_fetcher or CompetitionReportService.query_score_records
        self.mapping_service = mapping_service

    @classmethod
    def from_app(cls, app=None) -> 'CompetitionReportService':
        return cls(suggestion_service=CriteriaSuggestionService.from_app(app or current_app))

    # ------------------------------------------------------------------
    # Record store

    @staticmethod
    def query_score_records(event_type: str, school_id: str,
                            competition_ids: Optional[List[str]] = None) -> List[CompetitionEventScore]:
        """Fetch the school's score records for an event type, oldest first."""
        try:
            query = CompetitionEventScore.query.filter_by(
                school_id=school_id,
                event_type=event_type
            )
            if competition_ids:
                query = query.filter(CompetitionEventScore.competition_id.in_(competition_ids))
            return query.order_by(
                CompetitionEventScore.competition_date.asc(),
                CompetitionEventScore.id.asc()
            ).all()
        except SQLAlchemyError as e:
            logger.exception("Failed to load score records for event '%s'", event_type)
            raise ReportStorageError("Failed to load report data", operation='records') from e

    def available_events(self, school_id: Optional[str]) -> List[str]:
        """Event types the school has recorded scores for."""
        if not school_id:
            return []
        try:
            rows = CompetitionEventScore.query.with_entities(
                CompetitionEventScore.event_type
            ).filter_by(school_id=school_id).distinct().all()
        except SQLAlchemyError as e:
            logger.exception("Failed to load available events")
            raise ReportStorageError("Failed to load available events", operation='events') from e
        return sorted({row.event_type for row in rows if row.event_type})

    def available_competitions(self, school_id: Optional[str], event_type: Optional[str]) -> List[Dict[str, Any]]:
        """Competitions with scores for the event, newest first, one entry per competition."""
        if not school_id or not event_type:
            return []
        try:
            rows = CompetitionEventScore.query.with_entities(
                CompetitionEventScore.competition_id,
                CompetitionEventScore.competition_name,
                CompetitionEventScore.competition_date
            ).filter_by(school_id=school_id, event_type=event_type).all()
        except SQLAlchemyError as e:
            logger.exception("Failed to load available competitions")
            raise ReportStorageError("Failed to load available competitions", operation='competitions') from e

        competitions: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            if not row.competition_id or row.competition_id in competitions:
                continue
            competitions[row.competition_id] = {
                'id': row.competition_id,
                'name': row.competition_name or 'Unknown',
                'competition_date': row.competition_date.isoformat() if row.competition_date else ''
            }

        return sorted(
            competitions.values(),
            key=lambda c: c['competition_date'] or date.min.isoformat(),
            reverse=True
        )

    # ------------------------------------------------------------------
    # Reports

    def discover_criteria(self, event_type: str, school_id: str,
                          competition_ids: Optional[List[str]] = None) -> CriterionRegistry:
        records = self.fetch_records(event_type, school_id, competition_ids)
        return build_registry(records)

    def build_report(self, event_type: Optional[str], school_id: Optional[str],
                     competition_ids: Optional[List[str]] = None,
                     criteria: Optional[Iterable[str]] = None) -> Dict[str, List]:
        """
        Build the performance time series for an event type.

        Args:
            event_type: Event type name
            school_id: School whose records and mappings are used
            competition_ids: None for every competition; an empty list means
                none were selected and yields an empty report
            criteria: Optional subset of final criterion labels to keep

        Returns:
            {'series': [{'date': ..., criterion: average, ...}], 'criteria': [...]}
        """
        empty = {'series': [], 'criteria': []}
        if competition_ids is not None and len(competition_ids) == 0:
            return empty
        if not event_type or not school_id:
            return empty

        records = list(self.fetch_records(event_type, school_id, competition_ids))
        registry = build_registry(records)
        mappings = self.mapping_service.load_mappings(event_type, school_id)
        raw_to_final = self.mapping_service.apply_to_registry(mappings, registry.raw_to_display)

        if criteria:
            wanted = set(criteria)
            raw_to_final = {raw: label for raw, label in raw_to_final.items() if label in wanted}

        series = PerformanceAggregator.aggregate(records, raw_to_final)
        # Only labels with at least one dated point; dateless records never reach the series
        final_criteria = sort_criteria({label for row in series for label in row if label != 'date'})

        logger.info(
            "Built report for event '%s': %d records, %d criteria, %d dates",
            event_type, len(records), len(final_criteria), len(series)
        )
        return {'series': series, 'criteria': final_criteria}

    # ------------------------------------------------------------------
    # Mappings

    def load_mappings(self, event_type: str, school_id: Optional[str]) -> List[CriteriaMapping]:
        return self.mapping_service.load_mappings(event_type, school_id)

    def save_mappings(self, event_type: str, school_id: str, mappings: List[Dict[str, Any]],
                      created_by: Optional[str] = None) -> List[CriteriaMapping]:
        return self.mapping_service.save_mappings(event_type, school_id, mappings, created_by=created_by)

    def criteria_overview(self, event_type: str, school_id: Optional[str]) -> Dict[str, Any]:
        """Mappings in scope together with the criteria they produce and leave unmapped."""
        if not school_id or not event_type:
            return {'mappings': [], 'available_criteria': [], 'mapped_criteria': [], 'unmapped_criteria': []}

        registry = self.discover_criteria(event_type, school_id)
        mappings = self.mapping_service.load_mappings(event_type, school_id)
        return {
            'mappings': mappings,
            'available_criteria': registry.sorted_labels(),
            'mapped_criteria': self.mapping_service.mapped_criteria_list(mappings, registry.display_labels),
            'unmapped_criteria': self.mapping_service.unmapped_criteria(mappings, registry.display_labels)
        }

    def unmapped_criteria(self, event_type: str, school_id: str) -> List[str]:
        registry = self.discover_criteria(event_type, school_id)
        mappings = self.mapping_service.load_mappings(event_type, school_id)
        return self.mapping_service.unmapped_criteria(mappings, registry.display_labels)

    # ------------------------------------------------------------------
    # Suggestions

    def _require_suggestions(self) -> CriteriaSuggestionService:
        if self.suggestion_service is None:
            raise RuntimeError("No suggestion service configured")
        return self.suggestion_service

    def get_suggestions(self, criterion: str, event_type: str) -> List[SimilarityCandidate]:
        return self._require_suggestions().get_suggestions(criterion, event_type)

    def get_all_suggestions(self, event_type: str, school_id: Optional[str],
                            criteria: Optional[List[str]] = None) -> Dict[str, List[SimilarityCandidate]]:
        """Suggestions for the given criteria, or for every unmapped criterion."""
        if not school_id or not event_type:
            return {}
        if criteria is None:
            criteria = self.unmapped_criteria(event_type, school_id)
        return self._require_suggestions().get_all_suggestions(criteria, event_type)

    def accept_suggestion(self, event_type: str, school_id: str, criterion: str,
                          candidate: SimilarityCandidate,
                          created_by: Optional[str] = None) -> CriteriaMapping:
        """
        Store an accepted suggestion as a new mapping owned by the school.

        The usage bump on the suggested mapping and the mapping save are
        committed together; a failed save leaves both untouched.
        """
        review = SuggestionReview({criterion: [candidate]})
        new_mapping = review.accept(criterion, candidate)

        try:
            if candidate.mapping_id is not None:
                self.mapping_service.record_usage(candidate.mapping_id, school_id, commit=False)

            existing = [
                mapping.to_dict()
                for mapping in self.mapping_service.load_mappings(event_type, school_id)
                if not mapping.is_global and mapping.school_id == school_id
            ]
            saved = self.mapping_service.save_mappings(
                event_type, school_id, existing + [new_mapping], created_by=created_by
            )
        except (ReportStorageError, ValueError):
            db.session.rollback()
            raise

        logger.info("Accepted suggestion '%s' for criterion '%s'", candidate.display_name, criterion)
        return saved[-1]
