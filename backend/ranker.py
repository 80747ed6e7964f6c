from planner_config import STATUS_PASSED


def prereqs_all_passed(course: dict, courses_by_id: dict[str, dict]) -> bool:
    """True when every prerequisite exists in the catalog and is passed."""
    for prereq_id in course.get("prerequisites") or []:
        prereq = courses_by_id.get(prereq_id)
        if prereq is None or prereq.get("status") != STATUS_PASSED:
            return False
    return True


def _active_key(candidate: dict, current_term: str) -> tuple:
    return (
        1 if candidate.get("needs_petition") else 0,
        0 if candidate.get("term") == current_term else 1,
        -len(candidate.get("available_sections") or []),
    )


def _pending_key(candidate: dict, current_term: str, courses_by_id: dict[str, dict]) -> tuple:
    return (0 if prereqs_all_passed(candidate, courses_by_id) else 1,) + _active_key(candidate, current_term)


def rank_candidates(
    active: list[dict],
    pending: list[dict],
    current_term: str,
    courses_by_id: dict[str, dict],
) -> list[dict]:
    """
    Priority order used by the allocator.

    Active courses always come first, pending second; the groups are sorted
    independently and never interleave. Sorting is stable, so the incoming
    (topological) order decides ties.

    Active:  no petition → catalog term == current term → more open sections
    Pending: prerequisites all passed, then the active criteria
    """
    ranked_active = sorted(active, key=lambda c: _active_key(c, current_term))
    ranked_pending = sorted(pending, key=lambda c: _pending_key(c, current_term, courses_by_id))
    return ranked_active + ranked_pending


def rank_factors(candidate: dict, current_term: str, courses_by_id: dict[str, dict]) -> dict:
    """Human-readable breakdown of the ranking criteria for debug traces."""
    return {
        "prereqs_passed": prereqs_all_passed(candidate, courses_by_id),
        "needs_petition": bool(candidate.get("needs_petition")),
        "current_term_match": candidate.get("term") == current_term,
        "open_section_count": len(candidate.get("available_sections") or []),
    }
