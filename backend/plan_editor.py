"""
Post-generation plan edits.

Edits work on an already generated plan (a list of term-bucket dicts) and
never re-run allocation. Removing or moving a course does not re-check the
prerequisite gap of its dependents; use validators.detect_conflicts or a full
regeneration when consistency matters.
"""

import copy
import threading
import time
from collections import deque

from availability import annotate_course, build_section_index
from data_loader import course_records, normalize_section_record, section_records
from planner_config import MOVE_HISTORY_LIMIT, STATUS_PASSED, TERM_LABELS
from plan_generator import generate_plan
from timeline import format_academic_year, is_at_least_one_term_after, next_term, term_key


def _refresh_totals(bucket: dict) -> None:
    bucket["total_credits"] = sum(int(c.get("credits") or 0) for c in bucket["courses"])


def _drop_empty_buckets(plan: list[dict]) -> None:
    plan[:] = [b for b in plan if b["courses"]]


def find_course(plan: list[dict], course_id: str) -> tuple[dict, dict] | tuple[None, None]:
    """Return (bucket, course) holding course_id, or (None, None)."""
    for bucket in plan:
        for course in bucket["courses"]:
            if course["id"] == course_id:
                return bucket, course
    return None, None


def placements_of(plan: list[dict]) -> dict[str, tuple[int, str]]:
    return {
        c["id"]: (bucket["year"], bucket["term"])
        for bucket in plan
        for c in bucket["courses"]
    }


def find_or_create_bucket(plan: list[dict], year: int, term: str) -> dict:
    """Return the bucket for (year, term), inserting an empty one chronologically if absent."""
    for bucket in plan:
        if bucket["year"] == year and bucket["term"] == term:
            return bucket
    new_bucket = {"year": year, "term": term, "courses": [], "total_credits": 0}
    insert_at = len(plan)
    for i, bucket in enumerate(plan):
        if term_key(bucket["year"], bucket["term"]) > term_key(year, term):
            insert_at = i
            break
    plan.insert(insert_at, new_bucket)
    return new_bucket


def remove_course(plan: list[dict], course_id: str) -> bool:
    """Drop course_id from whichever bucket holds it; empty buckets disappear."""
    changed = False
    for bucket in plan:
        kept = [c for c in bucket["courses"] if c["id"] != course_id]
        if len(kept) != len(bucket["courses"]):
            bucket["courses"] = kept
            _refresh_totals(bucket)
            changed = True
    _drop_empty_buckets(plan)
    return changed


def change_section(plan: list[dict], course_id: str, new_section: dict) -> bool:
    """Replace only the recommended_section of course_id. Credits, order and petition flag stay."""
    _, course = find_course(plan, course_id)
    if course is None:
        return False
    course["recommended_section"] = dict(new_section) if new_section else None
    return True


def add_course_to_term(plan: list[dict], course: dict, sections: list[dict], year: int, term: str) -> bool:
    """Annotate a catalog course and add it to (year, term). A planned course is never duplicated."""
    _, existing = find_course(plan, course["id"])
    if existing is not None:
        return False
    bucket = find_or_create_bucket(plan, year, term)
    bucket["courses"].append(annotate_course(course, build_section_index(sections)))
    _refresh_totals(bucket)
    return True


def move_course(plan: list[dict], course_id: str, year: int, term: str) -> bool:
    source, course = find_course(plan, course_id)
    if course is None:
        return False
    if source["year"] == year and source["term"] == term:
        return False
    source["courses"] = [c for c in source["courses"] if c["id"] != course_id]
    _refresh_totals(source)
    target = find_or_create_bucket(plan, year, term)
    target["courses"].append(course)
    _refresh_totals(target)
    _drop_empty_buckets(plan)
    return True


def can_schedule_in_term(
    course: dict,
    year: int,
    term: str,
    placements: dict[str, tuple[int, str]],
    courses_by_id: dict[str, dict],
) -> bool:
    """Every prerequisite is passed or planned at least one term before (year, term)."""
    for prereq_id in course.get("prerequisites") or []:
        placed = placements.get(prereq_id)
        if placed is not None:
            if not is_at_least_one_term_after(year, term, placed[0], placed[1]):
                return False
            continue
        prereq = courses_by_id.get(prereq_id)
        if prereq is None or prereq.get("status") != STATUS_PASSED:
            return False
    return True


def available_terms_for_move(
    plan: list[dict],
    course: dict,
    courses_by_id: dict[str, dict],
    origin_year: int,
    origin_term: str,
    years_ahead: int = 5,
) -> list[dict]:
    """Terms from the origin forward where `course` would satisfy its prerequisite gap."""
    placements = placements_of(plan)
    placements.pop(course["id"], None)
    terms = []
    year, term = origin_year, origin_term
    for _ in range(years_ahead * len(TERM_LABELS)):
        if can_schedule_in_term(course, year, term, placements, courses_by_id):
            terms.append({
                "year": year,
                "term": term,
                "label": f"{format_academic_year(year)} - {term}",
            })
        year, term = next_term(year, term)
    return terms


class PlanStore:
    """
    Holds the latest generated plan and serializes every change to it.

    A regeneration replaces the plan wholesale and clears the edit history;
    edits and regenerations share one lock so neither can interleave with
    the other. Readers always get deep copies.
    """

    def __init__(self, history_limit: int = MOVE_HISTORY_LIMIT):
        self._lock = threading.Lock()
        self._result: dict | None = None
        self._courses: list[dict] = []
        self._sections: list[dict] = []
        self._history: deque = deque(maxlen=max(1, int(history_limit)))

    def regenerate(self, courses, sections, current_year, current_term, **kwargs) -> dict:
        course_snapshot = course_records(courses)
        section_snapshot = section_records(sections)
        with self._lock:
            result = generate_plan(course_snapshot, section_snapshot, current_year, current_term, **kwargs)
            self._result = result
            self._courses = course_snapshot
            self._sections = section_snapshot
            self._history.clear()
            return copy.deepcopy(result)

    def snapshot(self) -> dict | None:
        with self._lock:
            return copy.deepcopy(self._result)

    def history(self) -> list[dict]:
        with self._lock:
            return list(copy.deepcopy(self._history))

    def courses_by_id(self) -> dict[str, dict]:
        with self._lock:
            return {c["id"]: dict(c) for c in self._courses}

    def apply(self, edit_fn, description: str, edit_type: str = "single") -> tuple[bool, dict | None]:
        """
        Run edit_fn(plan) under the lock. edit_fn mutates the plan and returns
        True when it changed something. Returns (changed, plan result copy).
        """
        with self._lock:
            if self._result is None:
                return False, None
            plan = self._result["plan"]
            before = placements_of(plan)
            changed = bool(edit_fn(plan))
            if changed:
                after = placements_of(plan)
                changes = [
                    {"course_id": cid, "from": before.get(cid), "to": after.get(cid)}
                    for cid in list(dict.fromkeys(list(before) + list(after)))
                    if before.get(cid) != after.get(cid)
                ]
                self._history.append({
                    "type": edit_type,
                    "description": description,
                    "timestamp": time.time(),
                    "changes": changes,
                })
            return changed, copy.deepcopy(self._result)

    def remove_course(self, course_id: str) -> tuple[bool, dict | None]:
        return self.apply(lambda plan: remove_course(plan, course_id), f"Removed {course_id}")

    def change_section(self, course_id: str, section: dict) -> tuple[bool, dict | None]:
        """Raises ValueError when the section carries no course code."""
        normalized = normalize_section_record(section) if section else None
        if normalized is None:
            raise ValueError("Section must include a course code.")
        return self.apply(
            lambda plan: change_section(plan, course_id, normalized),
            f"Changed section of {course_id}",
            edit_type="section",
        )

    def move_course(self, course_id: str, year: int, term: str) -> tuple[bool, dict | None]:
        return self.apply(
            lambda plan: move_course(plan, course_id, year, term),
            f"Moved {course_id} to {year} {term}",
        )

    def add_course(self, course_id: str, year: int, term: str) -> tuple[bool, dict | None]:
        def _add(plan: list[dict]) -> bool:
            # runs under the store lock, so catalog and feed match the plan
            course = next((c for c in self._courses if c["id"] == course_id), None)
            if course is None:
                return False
            return add_course_to_term(plan, course, self._sections, year, term)

        return self.apply(_add, f"Added {course_id} to {year} {term}")
