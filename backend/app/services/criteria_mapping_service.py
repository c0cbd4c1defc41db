import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import ReportStorageError
from app.models.criteria_mapping import CriteriaMapping
from app.utils.criteria_labels import criterion_sort_key, sort_criteria

logger = logging.getLogger(__name__)


def _mapping_fields(mapping: Any) -> Tuple[str, List[str]]:
    """Read display name and absorbed criteria from a model row or a plain dict."""
    if isinstance(mapping, dict):
        return mapping.get('display_name') or '', list(mapping.get('original_criteria') or [])
    return mapping.display_name or '', list(mapping.original_criteria or [])


class CriteriaMappingService:
    """
    Persisted criteria mappings plus the pure helpers that apply them.

    Scope rules:
    - A school sees its own mappings and every global mapping for the event type
    - Saving only ever replaces the school's own (non-global) mappings
    - Global mappings are read-only for schools
    """

    # ------------------------------------------------------------------
    # Persistence

    @staticmethod
    def load_mappings(event_type: str, school_id: Optional[str]) -> List[CriteriaMapping]:
        """Return school and global mappings for an event type, most used first."""
        if not school_id or not event_type:
            return []

        try:
            return CriteriaMapping.query.filter(
                CriteriaMapping.event_type == event_type,
                or_(
                    CriteriaMapping.school_id == school_id,
                    CriteriaMapping.is_global.is_(True)
                )
            ).order_by(
                CriteriaMapping.usage_count.desc(),
                CriteriaMapping.id.asc()
            ).all()
        except SQLAlchemyError as e:
            logger.exception("Failed to load criteria mappings for event '%s'", event_type)
            raise ReportStorageError("Failed to load criteria mappings", operation='load') from e

    @staticmethod
    def save_mappings(event_type: str, school_id: str, mappings: List[Dict[str, Any]],
                      created_by: Optional[str] = None) -> List[CriteriaMapping]:
        """
        Replace the school's own mappings for an event type.

        Args:
            event_type: Event type the mappings belong to
            school_id: Owning school
            mappings: Validated mapping dicts (display_name, original_criteria, usage_count)
            created_by: Id of the user saving the mappings

        Returns:
            The newly inserted rows
        """
        if not school_id:
            raise ValueError("A school is required to save criteria mappings")

        normalized = CriteriaMappingService.normalize_mappings(mappings)

        try:
            CriteriaMapping.query.filter_by(
                event_type=event_type,
                school_id=school_id,
                is_global=False
            ).delete(synchronize_session=False)

            rows = [
                CriteriaMapping(
                    event_type=event_type,
                    display_name=mapping['display_name'],
                    original_criteria=mapping['original_criteria'],
                    school_id=school_id,
                    is_global=False,
                    usage_count=mapping.get('usage_count') or 1,
                    created_by=created_by
                )
                for mapping in normalized
            ]
            db.session.add_all(rows)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to save criteria mappings for event '%s'", event_type)
            raise ReportStorageError("Failed to save criteria mappings", operation='save') from e

        logger.info(
            "Saved %d criteria mappings for school %s, event '%s'",
            len(rows), school_id, event_type
        )
        return rows

    @staticmethod
    def rename_mapping(mapping_id: int, school_id: str, display_name: str) -> CriteriaMapping:
        display_name = (display_name or '').strip()
        if not display_name:
            raise ValueError("Display name cannot be empty")

        mapping = CriteriaMappingService._get_owned_mapping(mapping_id, school_id)
        try:
            mapping.display_name = display_name
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise ReportStorageError("Failed to rename criteria mapping", operation='rename') from e
        return mapping

    @staticmethod
    def delete_mapping(mapping_id: int, school_id: str) -> None:
        mapping = CriteriaMappingService._get_owned_mapping(mapping_id, school_id)
        try:
            db.session.delete(mapping)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise ReportStorageError("Failed to delete criteria mapping", operation='delete') from e
        logger.info("Deleted criteria mapping %s for school %s", mapping_id, school_id)

    @staticmethod
    def record_usage(mapping_id: int, school_id: str, commit: bool = True) -> Optional[CriteriaMapping]:
        """
        Bump the usage counter of a mapping that was reused through a suggestion.

        Only mappings the school can see (its own or global ones) are counted;
        any other id is ignored. With commit=False the change stays in the
        session so the caller can commit it together with a save.
        """
        try:
            mapping = CriteriaMapping.query.filter(
                CriteriaMapping.id == mapping_id,
                or_(
                    CriteriaMapping.school_id == school_id,
                    CriteriaMapping.is_global.is_(True)
                )
            ).first()
            if not mapping:
                return None
            mapping.usage_count = (mapping.usage_count or 0) + 1
            if commit:
                db.session.commit()
            return mapping
        except SQLAlchemyError as e:
            db.session.rollback()
            raise ReportStorageError("Failed to update mapping usage", operation='usage') from e

    @staticmethod
    def _get_owned_mapping(mapping_id: int, school_id: str) -> CriteriaMapping:
        mapping = CriteriaMapping.query.filter_by(
            id=mapping_id,
            school_id=school_id,
            is_global=False
        ).first()
        if not mapping:
            raise ValueError("Criteria mapping not found")
        return mapping

    # ------------------------------------------------------------------
    # Pure helpers

    @staticmethod
    def normalize_mappings(mappings: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Enforce that each criterion belongs to one mapping.

        The last mapping naming a criterion keeps it; mappings left without
        criteria are dropped.
        """
        mappings = list(mappings or [])
        owner: Dict[str, int] = {}
        for index, mapping in enumerate(mappings):
            for criterion in _mapping_fields(mapping)[1]:
                owner[criterion] = index

        normalized = []
        for index, mapping in enumerate(mappings):
            display_name, criteria = _mapping_fields(mapping)
            kept = []
            for criterion in criteria:
                if owner.get(criterion) == index and criterion not in kept:
                    kept.append(criterion)
            if not kept:
                continue
            entry = dict(mapping) if isinstance(mapping, dict) else {'usage_count': mapping.usage_count}
            entry['display_name'] = display_name.strip()
            entry['original_criteria'] = kept
            normalized.append(entry)
        return normalized

    @staticmethod
    def build_alias_index(mappings: Iterable[Any]) -> Dict[str, str]:
        """Map each absorbed criterion to its mapping's display name (last write wins)."""
        alias: Dict[str, str] = {}
        for mapping in mappings or []:
            display_name, criteria = _mapping_fields(mapping)
            if not display_name:
                continue
            for criterion in criteria:
                alias[criterion] = display_name
        return alias

    @staticmethod
    def resolve_label(label: str, alias: Dict[str, str]) -> str:
        """Follow mapping aliases until a label no mapping absorbs."""
        path: List[str] = []
        seen: Dict[str, int] = {}
        current = label
        while current in alias and current not in seen:
            seen[current] = len(path)
            path.append(current)
            current = alias[current]

        if current in seen:
            # Mappings that absorb each other settle on one stable member
            return min(path[seen[current]:], key=criterion_sort_key)
        return current

    @staticmethod
    def apply_to_registry(mappings: Iterable[Any], raw_to_display: Dict[str, str]) -> Dict[str, str]:
        """Translate every raw key's display label through the mappings."""
        alias = CriteriaMappingService.build_alias_index(mappings)
        if not alias:
            return dict(raw_to_display)

        return {
            raw_key: CriteriaMappingService.resolve_label(label, alias)
            for raw_key, label in raw_to_display.items()
        }

    @staticmethod
    def absorbed_criteria(mappings: Iterable[Any]) -> set:
        absorbed = set()
        for mapping in mappings or []:
            absorbed.update(_mapping_fields(mapping)[1])
        return absorbed

    @staticmethod
    def mapped_criteria_list(mappings: Iterable[Any], all_display_labels: Iterable[str]) -> List[str]:
        """Mapping display names plus every label no mapping absorbs, in report order."""
        mappings = list(mappings or [])
        absorbed = CriteriaMappingService.absorbed_criteria(mappings)

        criteria = set()
        for mapping in mappings:
            display_name = _mapping_fields(mapping)[0]
            if display_name:
                criteria.add(display_name)
        criteria.update(label for label in all_display_labels if label not in absorbed)
        return sort_criteria(criteria)

    @staticmethod
    def unmapped_criteria(mappings: Iterable[Any], all_display_labels: Iterable[str]) -> List[str]:
        absorbed = CriteriaMappingService.absorbed_criteria(mappings)
        return sort_criteria({label for label in all_display_labels if label not in absorbed})
