import pytest
from timeline import (
    estimate_timeline,
    expected_graduation,
    format_academic_year,
    is_at_least_one_term_after,
    next_term,
    parse_origin,
    remaining_credits,
    term_index,
    term_key,
)


class TestTermArithmetic:
    def test_term_index(self):
        assert term_index("Term 1") == 0
        assert term_index("t3") == 2

    def test_next_term_same_year(self):
        assert next_term(2025, "Term 1") == (2025, "Term 2")

    def test_next_term_rolls_year(self):
        assert next_term(2025, "Term 3") == (2026, "Term 1")

    def test_term_key_orders_chronologically(self):
        keys = [term_key(2026, "Term 1"), term_key(2025, "Term 3"), term_key(2025, "Term 1")]
        assert sorted(keys) == [(2025, 0), (2025, 2), (2026, 0)]

    def test_one_term_gap(self):
        assert is_at_least_one_term_after(2025, "Term 2", 2025, "Term 1") is True
        assert is_at_least_one_term_after(2026, "Term 1", 2025, "Term 3") is True

    def test_same_term_is_not_after(self):
        assert is_at_least_one_term_after(2025, "Term 2", 2025, "Term 2") is False

    def test_earlier_is_not_after(self):
        assert is_at_least_one_term_after(2025, "Term 1", 2025, "Term 3") is False


class TestParseOrigin:
    def test_valid(self):
        assert parse_origin(2025, "term 2") == (2025, "Term 2")

    def test_string_year(self):
        assert parse_origin(" 2025 ", "Term 1") == (2025, "Term 1")

    @pytest.mark.parametrize("year", [None, "abc", 0, -1, True, 2025.5])
    def test_invalid_year(self, year):
        with pytest.raises(ValueError):
            parse_origin(year, "Term 1")

    def test_invalid_term(self):
        with pytest.raises(ValueError):
            parse_origin(2025, "Summer")


class TestSummary:
    PLAN = [
        {"year": 2025, "term": "Term 2", "courses": [], "total_credits": 0},
        {"year": 2025, "term": "Term 3", "courses": [], "total_credits": 0},
    ]

    def test_format_calendar_year(self):
        assert format_academic_year(2025) == "S.Y 2025-2026"

    def test_format_curriculum_year(self):
        assert format_academic_year(2, start_year=2025) == "S.Y 2026-2027"

    def test_expected_graduation_is_term_after_last(self):
        grad = expected_graduation(self.PLAN)
        assert (grad["year"], grad["term"]) == (2026, "Term 1")
        assert grad["label"] == "S.Y 2026-2027 Term 1"

    def test_expected_graduation_empty(self):
        assert expected_graduation([]) is None

    def test_remaining_credits_counts_pending_only(self):
        courses = [
            {"status": "pending", "credits": 3},
            {"status": "pending", "credits": 4},
            {"status": "active", "credits": 3},
            {"status": "passed", "credits": 3},
        ]
        assert remaining_credits(courses) == 7

    def test_estimate_timeline(self):
        out = estimate_timeline(self.PLAN, [{"status": "pending", "credits": 3}])
        assert out["terms_planned"] == 2
        assert out["remaining_credits"] == 3
        assert out["expected_graduation"]["year"] == 2026
        assert "Recommendation only" in out["disclaimer"]
