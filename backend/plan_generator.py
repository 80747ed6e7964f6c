from allocator import allocate_terms
from availability import annotate_course, build_section_index
from data_loader import course_records, section_records
from normalizer import safe_term
from planner_config import (
    MAX_CREDITS_PER_TERM,
    MAX_PASSES,
    STATUS_ACTIVE,
    STATUS_PASSED,
    STATUS_PENDING,
    TERM_LABELS,
)
from ranker import rank_candidates, rank_factors
from sequencer import topological_order
from timeline import parse_origin, term_key

REASON_GAP_UNMET = "prerequisite_gap_unmet"
REASON_OVER_CAP = "exceeds_credit_cap"

_PROJECTION_NOTE = (
    "Plan assumes every scheduled course is passed in the term it is placed."
)


def _empty_result(origin: dict | None, mode: str, notes: list[str]) -> dict:
    return {
        "origin": origin,
        "mode": mode,
        "plan": [],
        "unscheduled": [],
        "passes": 0,
        "cycle_edges": [],
        "notes": notes,
    }


def _unscheduled_entry(course: dict, reason: str, blocked_by: list[str]) -> dict:
    return {**course, "reason": reason, "blocked_by": blocked_by}


def _build_curriculum_order_plan(
    candidates: list[dict],
    section_index: dict[str, list[dict]],
    start_year: int,
) -> list[dict]:
    """
    Group courses by their catalog (year, term) placement.

    Catalog years are 1-based curriculum years, translated to calendar years
    relative to start_year.
    """
    grouped: dict[tuple[int, str], list[dict]] = {}
    for course in candidates:
        curriculum_year = course.get("year") or 1
        year = curriculum_year if curriculum_year >= 1900 else start_year + max(1, curriculum_year) - 1
        term = safe_term(course.get("term"), default=TERM_LABELS[0])
        grouped.setdefault((year, term), []).append(annotate_course(course, section_index))

    plan = []
    for (year, term) in sorted(grouped, key=lambda k: term_key(k[0], k[1])):
        courses = grouped[(year, term)]
        plan.append({
            "year": year,
            "term": term,
            "courses": courses,
            "total_credits": sum(int(c.get("credits") or 0) for c in courses),
        })
    return plan


def _build_debug_trace(
    ranked: list[dict],
    placements: dict[str, tuple[int, str]],
    skip_reasons: dict[str, str],
    current_term: str,
    courses_by_id: dict[str, dict],
    debug_limit: int = 100,
) -> list[dict]:
    """Build human-readable debug trace for each ranked candidate."""
    trace = []
    for rank, c in enumerate(ranked[:debug_limit], start=1):
        placed = placements.get(c["id"])
        trace.append({
            "rank": rank,
            "course_id": c["id"],
            "course_code": c["code"],
            "group": c["status"],
            **rank_factors(c, current_term, courses_by_id),
            "placed": {"year": placed[0], "term": placed[1]} if placed else None,
            "skip_reason": skip_reasons.get(c["id"]),
        })
    return trace


def generate_plan(
    courses,
    sections,
    current_year,
    current_term,
    debug: bool = False,
    debug_limit: int = 100,
    curriculum_order: bool = False,
    start_year: int | None = None,
    max_credits: int = MAX_CREDITS_PER_TERM,
    max_passes: int = MAX_PASSES,
) -> dict:
    """
    Run the full plan generation pipeline.

    `courses` and `sections` may be DataFrames or lists of dicts; both are
    copied into fresh snapshots before anything else happens, so later edits
    to the caller's data cannot leak into this pass.

    Never raises on bad data: an invalid origin or an empty catalog returns
    an empty plan with an explanatory note.
    """
    try:
        year, term = parse_origin(current_year, current_term)
    except ValueError as exc:
        return _empty_result(None, "empty", [f"Invalid scheduling origin: {exc}"])
    origin = {"year": year, "term": term}

    course_snapshot = course_records(courses)
    section_snapshot = section_records(sections)
    if not course_snapshot:
        return _empty_result(origin, "empty", ["No courses supplied."])

    courses_by_id = {c["id"]: c for c in course_snapshot}
    passed_ids = {c["id"] for c in course_snapshot if c["status"] == STATUS_PASSED}
    active = [c for c in course_snapshot if c["status"] == STATUS_ACTIVE]
    pending = [c for c in course_snapshot if c["status"] == STATUS_PENDING]
    if not active and not pending:
        return _empty_result(origin, "empty", ["Nothing left to schedule."])

    section_index = build_section_index(section_snapshot)
    notes: list[str] = []
    if not section_snapshot:
        notes.append("No section availability data; every course is flagged for petition.")

    if curriculum_order and not active and not passed_ids:
        plan = _build_curriculum_order_plan(pending, section_index, start_year or year)
        over_cap = [b for b in plan if b["total_credits"] > max_credits]
        if over_cap:
            notes.append(
                f"{len(over_cap)} term(s) exceed the {max_credits}-credit limit; "
                "curriculum order does not enforce it."
            )
        before_origin = [b for b in plan if term_key(b["year"], b["term"]) < term_key(year, term)]
        if before_origin:
            notes.append(
                f"{len(before_origin)} term(s) fall before {year} {term}; "
                "curriculum order follows catalog placement, not the starting term."
            )
        result = _empty_result(origin, "curriculum_order", notes + [_PROJECTION_NOTE])
        result["plan"] = plan
        return result

    # Ordering is per status group; cycle breaking runs over both groups so a
    # cycle spanning active and pending courses is still broken.
    active_order, _ = topological_order(active)
    pending_order, _ = topological_order(pending)
    _, cycle_edges = topological_order(active + pending)
    if cycle_edges:
        notes.append(
            f"{len(cycle_edges)} prerequisite cycle link(s) ignored: "
            + ", ".join(f"{c} -> {p}" for c, p in sorted(cycle_edges))
        )

    unscheduled: list[dict] = []
    skip_reasons: dict[str, str] = {}

    def _annotate_group(ordered: list[dict]) -> list[dict]:
        out = []
        for course in ordered:
            annotated = annotate_course(course, section_index)
            if int(course.get("credits") or 0) > max_credits:
                unscheduled.append(_unscheduled_entry(annotated, REASON_OVER_CAP, []))
                skip_reasons[course["id"]] = REASON_OVER_CAP
                continue
            out.append(annotated)
        return out

    ranked = rank_candidates(
        _annotate_group(active_order),
        _annotate_group(pending_order),
        term,
        courses_by_id,
    )

    allocation = allocate_terms(
        ranked,
        year,
        term,
        passed_ids=passed_ids,
        ignored_edges=cycle_edges,
        max_credits=max_credits,
        max_passes=max_passes,
    )

    placements = allocation["placements"]
    for course in allocation["unplaced"]:
        blocked_by = [
            p for p in course.get("prerequisites") or []
            if (course["id"], p) not in cycle_edges and p not in placements and p not in passed_ids
        ]
        unscheduled.append(_unscheduled_entry(course, REASON_GAP_UNMET, blocked_by))
        skip_reasons[course["id"]] = REASON_GAP_UNMET
    if unscheduled:
        notes.append(f"{len(unscheduled)} course(s) could not be scheduled.")

    result = {
        "origin": origin,
        "mode": "allocated",
        "plan": allocation["plan"],
        "unscheduled": unscheduled,
        "passes": allocation["passes"],
        "cycle_edges": [list(edge) for edge in sorted(cycle_edges)],
        "notes": notes + [_PROJECTION_NOTE],
    }
    if debug:
        result["debug"] = _build_debug_trace(
            ranked,
            placements,
            skip_reasons,
            term,
            courses_by_id,
            debug_limit=debug_limit,
        )
    return result
