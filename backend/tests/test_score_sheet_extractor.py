"""Tests for score sheet field extraction and the criterion registry."""

from datetime import date

from app.models import CompetitionEventScore
from app.services.score_sheet_extractor import ScoreSheetExtractor, build_registry


def test_only_numeric_leaves_reachable_through_objects():
    sheet = {"a": {"b": "12.5", "c": "n/a", "d": [1, 2]}}
    assert ScoreSheetExtractor.extract(sheet) == {"a.b": 12.5}


def test_unwraps_scores_container():
    sheet = {"scores": {"field_1_1": {"Posture": 9}}, "judge": "J. Smith", "total": 40}
    assert ScoreSheetExtractor.extract(sheet) == {"field_1_1.Posture": 9.0}


def test_scores_key_that_is_not_an_object_is_a_regular_field():
    sheet = {"scores": "7", "field_5_Uniform_Violation": -2}
    assert ScoreSheetExtractor.extract(sheet) == {"scores": 7.0, "field_5_Uniform_Violation": -2.0}


def test_deep_nesting_builds_dotted_paths():
    sheet = {"field_2_1": {"Footwork": {"judge_1": 8, "judge_2": "7.5"}}}
    assert ScoreSheetExtractor.extract(sheet) == {
        "field_2_1.Footwork.judge_1": 8.0,
        "field_2_1.Footwork.judge_2": 7.5,
    }


def test_skips_booleans_nulls_blanks_and_non_finite_values():
    sheet = {
        "flag": True,
        "missing": None,
        "blank": "   ",
        "nan": "nan",
        "inf": float("inf"),
        "underscored": "1_000",
        "padded": " 4 ",
        "exponent": "1e1",
    }
    assert ScoreSheetExtractor.extract(sheet) == {"padded": 4.0, "exponent": 10.0}


def test_malformed_sheets_yield_no_fields():
    assert ScoreSheetExtractor.extract(None) == {}
    assert ScoreSheetExtractor.extract([1, 2, 3]) == {}
    assert ScoreSheetExtractor.extract(42) == {}
    assert ScoreSheetExtractor.extract("{not json") == {}


def test_json_text_sheet_is_parsed():
    assert ScoreSheetExtractor.extract('{"scores": {"x": 3}}') == {"x": 3.0}


def test_build_registry_maps_raw_keys_to_labels():
    records = [
        CompetitionEventScore(competition_date=date(2024, 1, 1), score_sheet={
            "scores": {"field_6_1": {"Routine_Marching": 8}, "field_9_Late_Entry": -1}
        }),
        CompetitionEventScore(competition_date=date(2024, 2, 1), score_sheet={
            "scores": {"field_6_4": {"Routine_Marching/Movement": 7}}
        }),
        CompetitionEventScore(competition_date=date(2024, 3, 1), score_sheet=None),
    ]

    registry = build_registry(records)

    assert registry.raw_to_display == {
        "field_6_1.Routine_Marching": "6. Routine Marching",
        "field_9_Late_Entry": "Late Entry",
        "field_6_4.Routine_Marching/Movement": "6. Routine Marching/Movement",
    }
    assert registry.sorted_labels() == [
        "6. Routine Marching",
        "6. Routine Marching/Movement",
        "Late Entry",
    ]
