from planner_config import MAX_CREDITS_PER_TERM, MAX_PASSES
from timeline import is_at_least_one_term_after, next_term


class _AllocationState:
    """Single-pass cursor: current (year, term), the open bucket, and the schedule map."""

    def __init__(self, year: int, term: str):
        self.year = year
        self.term = term
        self.bucket: list[dict] = []
        self.credits = 0
        self.schedule_map: dict[str, tuple[int, str]] = {}
        self.plan: list[dict] = []

    def place(self, course: dict) -> None:
        self.bucket.append(course)
        self.credits += int(course.get("credits") or 0)
        self.schedule_map[course["id"]] = (self.year, self.term)

    def close_bucket(self) -> None:
        if self.bucket:
            self.plan.append({
                "year": self.year,
                "term": self.term,
                "courses": self.bucket,
                "total_credits": self.credits,
            })
        self.bucket = []
        self.credits = 0

    def advance(self) -> None:
        self.close_bucket()
        self.year, self.term = next_term(self.year, self.term)


def unmet_prereqs(
    course: dict,
    year: int,
    term: str,
    schedule_map: dict[str, tuple[int, str]],
    passed_ids: set[str],
    ignored_edges: set[tuple[str, str]],
) -> list[str]:
    """
    Prerequisites that block `course` from (year, term).

    A prerequisite is met when it is passed, or when it was placed at least
    one full term earlier. Dangling ids are never met.
    """
    blocked = []
    for prereq_id in course.get("prerequisites") or []:
        if (course["id"], prereq_id) in ignored_edges:
            continue
        placed = schedule_map.get(prereq_id)
        if placed is not None:
            if not is_at_least_one_term_after(year, term, placed[0], placed[1]):
                blocked.append(prereq_id)
        elif prereq_id not in passed_ids:
            blocked.append(prereq_id)
    return blocked


def allocate_terms(
    ranked: list[dict],
    start_year: int,
    start_term: str,
    passed_ids: set[str] | None = None,
    ignored_edges: set[tuple[str, str]] | None = None,
    max_credits: int = MAX_CREDITS_PER_TERM,
    max_passes: int = MAX_PASSES,
) -> dict:
    """
    Pack ranked candidates into consecutive term buckets.

    Each pass scans the remaining candidates from the back of the ranked list
    so entries can be deleted in place. A candidate whose prerequisite gap
    fails is left for a later pass. When the open bucket cannot take a
    candidate's credits, the bucket is closed and the cursor moves to the next
    term. A pass that places nothing forces the cursor forward. The loop stops
    when nothing remains or after `max_passes` passes.

    Candidates must individually fit under `max_credits`.

    Returns:
        {
          "plan": [{"year", "term", "courses", "total_credits"}, ...],
          "unplaced": [candidate, ...],      # still blocked when passes ran out
          "passes": int,
          "placements": {course_id: (year, term)},
        }
    """
    passed_ids = passed_ids or set()
    ignored_edges = ignored_edges or set()
    state = _AllocationState(start_year, start_term)
    remaining = list(ranked)
    passes = 0

    def _blocked(course: dict) -> bool:
        return bool(unmet_prereqs(course, state.year, state.term, state.schedule_map, passed_ids, ignored_edges))

    while remaining and passes < max_passes:
        passes += 1
        placed_this_pass = 0

        for i in range(len(remaining) - 1, -1, -1):
            course = remaining[i]
            if _blocked(course):
                continue

            if state.credits + int(course.get("credits") or 0) > max_credits:
                state.advance()
                if _blocked(course):
                    continue

            state.place(course)
            del remaining[i]
            placed_this_pass += 1

        if placed_this_pass == 0 and remaining:
            state.advance()

    state.close_bucket()
    return {
        "plan": state.plan,
        "unplaced": remaining,
        "passes": passes,
        "placements": dict(state.schedule_map),
    }
