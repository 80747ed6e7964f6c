import threading

import pytest
from plan_editor import (
    PlanStore,
    add_course_to_term,
    available_terms_for_move,
    change_section,
    find_course,
    move_course,
    remove_course,
)


def _course(cid, credits=3, status="pending", prereqs=()):
    return {
        "id": cid,
        "code": cid,
        "name": f"Course {cid}",
        "credits": credits,
        "status": status,
        "prerequisites": list(prereqs),
        "year": 1,
        "term": "Term 1",
    }


SECTION_S1 = {
    "course_code": "A",
    "section": "S1",
    "class_size": "40",
    "remaining_slots": "10",
    "meeting_days": "MW",
    "meeting_time": "07:30-09:00",
    "room": "F1103",
    "has_slots": True,
}


@pytest.fixture
def plan():
    return [
        {"year": 2025, "term": "Term 1", "courses": [
            {**_course("A"), "needs_petition": False, "recommended_section": dict(SECTION_S1)},
            {**_course("C"), "needs_petition": True, "recommended_section": None},
        ], "total_credits": 6},
        {"year": 2025, "term": "Term 2", "courses": [
            {**_course("B", prereqs=["A"]), "needs_petition": True, "recommended_section": None},
        ], "total_credits": 3},
    ]


class TestRemoveCourse:
    def test_removes_and_refreshes_total(self, plan):
        assert remove_course(plan, "C") is True
        assert find_course(plan, "C") == (None, None)
        assert plan[0]["total_credits"] == 3

    def test_empty_bucket_dropped(self, plan):
        remove_course(plan, "B")
        assert [(b["year"], b["term"]) for b in plan] == [(2025, "Term 1")]

    def test_unknown_course_is_noop(self, plan):
        assert remove_course(plan, "ZZZ") is False
        assert len(plan) == 2

    def test_dependents_stay(self, plan):
        remove_course(plan, "A")
        assert find_course(plan, "B")[1] is not None


class TestChangeSection:
    def test_replaces_only_section(self, plan):
        new = {**SECTION_S1, "section": "S2", "room": "F2001"}
        assert change_section(plan, "A", new) is True
        _, course = find_course(plan, "A")
        assert course["recommended_section"]["section"] == "S2"
        assert course["needs_petition"] is False
        assert course["credits"] == 3
        assert [c["id"] for c in plan[0]["courses"]] == ["A", "C"]

    def test_unknown_course(self, plan):
        assert change_section(plan, "ZZZ", SECTION_S1) is False

    def test_section_is_copied(self, plan):
        new = dict(SECTION_S1)
        change_section(plan, "A", new)
        new["room"] = "elsewhere"
        assert find_course(plan, "A")[1]["recommended_section"]["room"] == "F1103"


class TestMoveAndAdd:
    def test_move_to_new_term_creates_bucket_in_order(self, plan):
        assert move_course(plan, "C", 2025, "Term 3") is True
        assert [(b["year"], b["term"]) for b in plan] == [
            (2025, "Term 1"), (2025, "Term 2"), (2025, "Term 3"),
        ]
        assert plan[0]["total_credits"] == 3

    def test_move_to_same_term_is_noop(self, plan):
        assert move_course(plan, "A", 2025, "Term 1") is False

    def test_add_course_annotates(self, plan):
        added = add_course_to_term(plan, _course("D"), [{**SECTION_S1, "course_code": "D"}], 2024, "Term 3")
        assert added is True
        bucket, course = find_course(plan, "D")
        assert (bucket["year"], bucket["term"]) == (2024, "Term 3")
        assert plan[0] is bucket
        assert course["needs_petition"] is False

    def test_add_existing_course_refused(self, plan):
        assert add_course_to_term(plan, _course("A"), [], 2025, "Term 3") is False


class TestAvailableTermsForMove:
    def test_respects_prereq_gap(self, plan):
        courses_by_id = {c["id"]: c for b in plan for c in b["courses"]}
        terms = available_terms_for_move(plan, courses_by_id["B"], courses_by_id, 2025, "Term 1", years_ahead=1)
        assert [(t["year"], t["term"]) for t in terms] == [(2025, "Term 2"), (2025, "Term 3")]
        assert terms[0]["label"] == "S.Y 2025-2026 - Term 2"

    def test_course_without_prereqs_fits_everywhere(self, plan):
        courses_by_id = {c["id"]: c for b in plan for c in b["courses"]}
        terms = available_terms_for_move(plan, courses_by_id["C"], courses_by_id, 2025, "Term 1", years_ahead=2)
        assert len(terms) == 6


class TestPlanStore:
    @pytest.fixture
    def store(self):
        s = PlanStore(history_limit=3)
        s.regenerate([_course("A"), _course("B", prereqs=["A"]), _course("E")], [SECTION_S1], 2025, "Term 1")
        return s

    def test_empty_store(self):
        s = PlanStore()
        assert s.snapshot() is None
        assert s.remove_course("A") == (False, None)

    def test_snapshot_is_copy(self, store):
        snap = store.snapshot()
        snap["plan"].clear()
        assert store.snapshot()["plan"]

    def test_remove_records_history(self, store):
        changed, result = store.remove_course("E")
        assert changed is True
        assert find_course(result["plan"], "E") == (None, None)
        entry = store.history()[-1]
        assert entry["description"] == "Removed E"
        assert entry["changes"] == [{"course_id": "E", "from": (2025, "Term 1"), "to": None}]

    def test_failed_edit_not_recorded(self, store):
        changed, _ = store.remove_course("ZZZ")
        assert changed is False
        assert store.history() == []

    def test_change_section_normalizes_feed_spelling(self, store):
        changed, result = store.change_section("A", {"courseCode": "a", "section": "S9", "remainingSlots": "4"})
        assert changed is True
        section = find_course(result["plan"], "A")[1]["recommended_section"]
        assert section["course_code"] == "A"
        assert section["has_slots"] is True
        assert store.history()[-1]["type"] == "section"

    def test_move_and_add(self, store):
        store.remove_course("E")
        changed, result = store.add_course("E", 2026, "Term 1")
        assert changed is True
        assert find_course(result["plan"], "E")[0]["year"] == 2026
        changed, result = store.move_course("E", 2025, "Term 3")
        assert changed is True
        assert store.history()[-1]["changes"][0]["to"] == (2025, "Term 3")

    def test_add_unknown_course(self, store):
        assert store.add_course("NOPE", 2025, "Term 1")[0] is False

    def test_history_bounded(self, store):
        for term in ("Term 2", "Term 3", "Term 1", "Term 2"):
            year = 2026 if term == "Term 1" else 2025
            store.move_course("E", year, term)
        assert len(store.history()) == 3

    def test_regenerate_clears_history(self, store):
        store.remove_course("E")
        store.regenerate([_course("A")], [], 2025, "Term 1")
        assert store.history() == []
        assert set(store.courses_by_id()) == {"A"}

    def test_change_section_without_code_rejected(self, store):
        with pytest.raises(ValueError):
            store.change_section("A", {"section": "X9"})
        assert store.history() == []
        assert find_course(store.snapshot()["plan"], "A")[1]["recommended_section"]["section"] == "S1"


def _assert_consistent(result):
    ids = [c["id"] for b in result["plan"] for c in b["courses"]]
    assert len(ids) == len(set(ids))
    assert set(ids) <= {"A", "B", "E"}
    for bucket in result["plan"]:
        assert bucket["courses"]
        assert bucket["total_credits"] == sum(c["credits"] for c in bucket["courses"])


class TestPlanStoreConcurrency:
    COURSES = [_course("A"), _course("B", prereqs=["A"]), _course("E")]

    def test_edits_interleaved_with_regenerate(self):
        store = PlanStore(history_limit=5)
        store.regenerate(self.COURSES, [SECTION_S1], 2025, "Term 1")
        rounds = 20
        barrier = threading.Barrier(3)
        results = {"regenerate": [], "remove": [], "section": []}
        errors = []

        def run(kind, fn):
            try:
                barrier.wait()
                for _ in range(rounds):
                    results[kind].append(fn())
            except Exception as exc:
                errors.append(exc)

        workers = [
            threading.Thread(target=run, args=(
                "regenerate", lambda: store.regenerate(self.COURSES, [SECTION_S1], 2025, "Term 1"))),
            threading.Thread(target=run, args=("remove", lambda: store.remove_course("E"))),
            threading.Thread(target=run, args=(
                "section", lambda: store.change_section("A", {"courseCode": "A", "section": "S9"}))),
        ]
        for w in workers:
            w.start()
        for w in workers:
            w.join()

        assert errors == []
        for result in results["regenerate"]:
            _assert_consistent(result)
            assert {c["id"] for b in result["plan"] for c in b["courses"]} == {"A", "B", "E"}
        for changed, result in results["remove"]:
            _assert_consistent(result)
            if changed:
                assert find_course(result["plan"], "E") == (None, None)
        for changed, result in results["section"]:
            _assert_consistent(result)
            if changed:
                assert find_course(result["plan"], "A")[1]["recommended_section"]["section"] == "S9"
        _assert_consistent(store.snapshot())
        assert len(store.history()) <= 5
