"""
Dependency graph and topological sequencer.

Orders a course set so that every prerequisite that is also in the set comes
before its dependent. Prerequisites outside the set are ignored for ordering
(they are expected to be passed already).

Malformed data never raises: a prerequisite cycle is broken at the edge that
closes it, and that edge is reported back so callers can tell which ordering
constraint was dropped. Iteration follows snapshot order, so the same cycle
always breaks the same way.
"""

from enum import Enum


class VisitState(Enum):
    UNVISITED = "unvisited"
    IN_PROGRESS = "in_progress"
    DONE = "done"


def topological_order(courses: list[dict]) -> tuple[list[dict], set[tuple[str, str]]]:
    """
    Depth-first emission over `courses`.

    Returns:
        (ordered_courses, broken_edges)

    ordered_courses contains each input course exactly once.
    broken_edges holds (course_id, prereq_id) pairs skipped because visiting
    the prerequisite would have closed a cycle.
    """
    by_id: dict[str, dict] = {}
    for course in courses:
        by_id.setdefault(course["id"], course)

    state = {cid: VisitState.UNVISITED for cid in by_id}
    ordered: list[dict] = []
    broken: set[tuple[str, str]] = set()

    def _visit(course_id: str) -> None:
        if state[course_id] is not VisitState.UNVISITED:
            return
        state[course_id] = VisitState.IN_PROGRESS
        for prereq_id in by_id[course_id].get("prerequisites") or []:
            if prereq_id not in by_id:
                continue
            if state[prereq_id] is VisitState.IN_PROGRESS:
                broken.add((course_id, prereq_id))  # cycle guard
                continue
            _visit(prereq_id)
        state[course_id] = VisitState.DONE
        ordered.append(by_id[course_id])

    for course_id in by_id:
        if state[course_id] is VisitState.UNVISITED:
            _visit(course_id)

    return ordered, broken
