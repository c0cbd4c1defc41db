"""Utility functions and helpers for the competition reporting service."""

from .criteria_labels import (
    format_criterion_label,
    criterion_sort_key,
    sort_criteria,
    leading_number
)

__all__ = [
    'format_criterion_label',
    'criterion_sort_key',
    'sort_criteria',
    'leading_number'
]
