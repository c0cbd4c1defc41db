"""Tests for criteria mapping persistence and application."""

import pytest
from sqlalchemy.exc import OperationalError

from app import db
from app.errors import ReportStorageError
from app.models import CriteriaMapping
from app.services.criteria_mapping_service import CriteriaMappingService


RAW_TO_DISPLAY = {
    "field_6_1.Routine_Marching": "6. Routine Marching",
    "field_6_4.Routine_Marching/Movement": "6. Routine Marching/Movement",
    "field_1_1.Posture": "1. Posture",
}


# ------------------------------
# Pure helpers

def test_apply_to_registry_replaces_absorbed_labels():
    mappings = [{"display_name": "6. Routine Marching",
                 "original_criteria": ["6. Routine Marching", "6. Routine Marching/Movement"]}]

    result = CriteriaMappingService.apply_to_registry(mappings, RAW_TO_DISPLAY)

    assert result == {
        "field_6_1.Routine_Marching": "6. Routine Marching",
        "field_6_4.Routine_Marching/Movement": "6. Routine Marching",
        "field_1_1.Posture": "1. Posture",
    }


def test_apply_to_registry_is_idempotent():
    mappings = [
        {"display_name": "Marching", "original_criteria": ["6. Routine Marching/Movement"]},
        {"display_name": "6. Routine Marching", "original_criteria": ["Marching"]},
        {"display_name": "Stance", "original_criteria": ["1. Posture"]},
        {"display_name": "1. Posture", "original_criteria": ["Stance"]},
    ]

    once = CriteriaMappingService.apply_to_registry(mappings, RAW_TO_DISPLAY)
    twice = CriteriaMappingService.apply_to_registry(mappings, once)

    assert once == twice
    assert once["field_6_4.Routine_Marching/Movement"] == "6. Routine Marching"
    assert once["field_1_1.Posture"] == "1. Posture"


def test_apply_to_registry_without_mappings_copies_input():
    result = CriteriaMappingService.apply_to_registry([], RAW_TO_DISPLAY)
    assert result == RAW_TO_DISPLAY
    assert result is not RAW_TO_DISPLAY


def test_last_mapping_wins_for_shared_criterion():
    mappings = [
        {"display_name": "Marching A", "original_criteria": ["6. Routine Marching"]},
        {"display_name": "Marching B", "original_criteria": ["6. Routine Marching"]},
    ]
    result = CriteriaMappingService.apply_to_registry(mappings, RAW_TO_DISPLAY)
    assert result["field_6_1.Routine_Marching"] == "Marching B"


def test_normalize_mappings_moves_criteria_to_last_owner():
    normalized = CriteriaMappingService.normalize_mappings([
        {"display_name": " First ", "original_criteria": ["a", "b", "e"], "usage_count": 4},
        {"display_name": "Second", "original_criteria": ["b", "c", "c"]},
        {"display_name": "Third", "original_criteria": ["a"]},
    ])

    assert [(m["display_name"], m["original_criteria"]) for m in normalized] == [
        ("First", ["e"]),
        ("Second", ["b", "c"]),
        ("Third", ["a"]),
    ]
    assert normalized[0]["usage_count"] == 4


def test_mapped_criteria_list_merges_names_and_unmapped_labels():
    mappings = [{"display_name": "6. Routine Marching",
                 "original_criteria": ["6. Routine Marching/Movement", "6. Routine Marching"]}]
    labels = {"6. Routine Marching", "6. Routine Marching/Movement", "Uniform", "2. Footwork"}

    assert CriteriaMappingService.mapped_criteria_list(mappings, labels) == [
        "2. Footwork", "6. Routine Marching", "Uniform"
    ]
    assert CriteriaMappingService.unmapped_criteria(mappings, labels) == ["2. Footwork", "Uniform"]


def test_mapped_criteria_list_without_mappings_sorts_labels():
    assert CriteriaMappingService.mapped_criteria_list([], ["2. Footwork", "Uniform", "1. Posture"]) == [
        "1. Posture", "2. Footwork", "Uniform"
    ]


# ------------------------------
# Persistence

def test_load_returns_own_and_global_mappings_by_usage(make_mapping):
    make_mapping("Own rarely used", ["x"], usage_count=1)
    make_mapping("Shared", ["y"], is_global=True, usage_count=9)
    make_mapping("Own popular", ["z"], usage_count=5)
    make_mapping("Other school", ["w"], school_id="school-b", usage_count=20)
    make_mapping("Other event", ["v"], event_type="Color Guard", usage_count=30)

    mappings = CriteriaMappingService.load_mappings("Armed Exhibition", "school-a")

    assert [m.display_name for m in mappings] == ["Shared", "Own popular", "Own rarely used"]


def test_load_without_school_fails_closed(make_mapping):
    make_mapping("Shared", ["y"], is_global=True)
    assert CriteriaMappingService.load_mappings("Armed Exhibition", None) == []


def test_save_replaces_only_own_non_global_mappings(make_mapping):
    make_mapping("Old own", ["a"])
    shared = make_mapping("Shared", ["b"], is_global=True)
    other = make_mapping("Other school", ["c"], school_id="school-b")

    saved = CriteriaMappingService.save_mappings("Armed Exhibition", "school-a", [
        {"display_name": "New own", "original_criteria": ["a", "d"], "usage_count": 3}
    ], created_by="user-1")

    assert [m.display_name for m in saved] == ["New own"]
    rows = CriteriaMapping.query.order_by(CriteriaMapping.id).all()
    assert {m.display_name for m in rows} == {"Shared", "Other school", "New own"}

    db.session.refresh(shared)
    db.session.refresh(other)
    assert shared.original_criteria == ["b"] and shared.is_global
    assert other.school_id == "school-b"

    new_row = CriteriaMapping.query.filter_by(display_name="New own").one()
    assert new_row.school_id == "school-a"
    assert new_row.usage_count == 3
    assert new_row.created_by == "user-1"
    assert new_row.is_global is False


def test_save_with_empty_list_clears_scope(make_mapping):
    make_mapping("Old own", ["a"])
    make_mapping("Shared", ["b"], is_global=True)

    assert CriteriaMappingService.save_mappings("Armed Exhibition", "school-a", []) == []

    remaining = CriteriaMappingService.load_mappings("Armed Exhibition", "school-a")
    assert [m.display_name for m in remaining] == ["Shared"]


def test_save_rolls_back_and_raises_storage_error(make_mapping, monkeypatch):
    make_mapping("Old own", ["a"])

    def failing_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", failing_commit)

    with pytest.raises(ReportStorageError):
        CriteriaMappingService.save_mappings("Armed Exhibition", "school-a", [
            {"display_name": "New", "original_criteria": ["b"]}
        ])

    monkeypatch.undo()
    assert [m.display_name for m in CriteriaMappingService.load_mappings("Armed Exhibition", "school-a")] == ["Old own"]


def test_rename_and_delete_require_ownership(make_mapping):
    own = make_mapping("Own", ["a"])
    shared = make_mapping("Shared", ["b"], is_global=True)
    other = make_mapping("Other", ["c"], school_id="school-b")

    renamed = CriteriaMappingService.rename_mapping(own.id, "school-a", "  Renamed ")
    assert renamed.display_name == "Renamed"

    for mapping_id in (shared.id, other.id):
        with pytest.raises(ValueError):
            CriteriaMappingService.rename_mapping(mapping_id, "school-a", "Nope")
        with pytest.raises(ValueError):
            CriteriaMappingService.delete_mapping(mapping_id, "school-a")

    CriteriaMappingService.delete_mapping(own.id, "school-a")
    assert db.session.get(CriteriaMapping, own.id) is None


def test_record_usage_increments_counter(make_mapping):
    shared = make_mapping("Shared", ["b"], is_global=True, usage_count=2)

    CriteriaMappingService.record_usage(shared.id, "school-a")

    assert db.session.get(CriteriaMapping, shared.id).usage_count == 3
    assert CriteriaMappingService.record_usage(9999, "school-a") is None


def test_record_usage_ignores_other_schools_mappings(make_mapping):
    private = make_mapping("Theirs", ["b"], school_id="school-b")

    assert CriteriaMappingService.record_usage(private.id, "school-a") is None
    assert db.session.get(CriteriaMapping, private.id).usage_count == 1


def test_record_usage_without_commit_can_be_rolled_back(make_mapping):
    own = make_mapping("Own", ["a"], usage_count=4)

    CriteriaMappingService.record_usage(own.id, "school-a", commit=False)
    db.session.rollback()

    assert db.session.get(CriteriaMapping, own.id).usage_count == 4
