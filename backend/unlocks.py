def build_reverse_prereq_map(courses: list[dict]) -> dict[str, list[str]]:
    """
    Builds a reverse prerequisite map: for each course id, which course ids
    directly list it as a prerequisite.

    Returns: {"CPE101": ["CPE102", "CPE201"], ...}

    Only direct prerequisites (one level deep). No transitive graph traversal.
    """
    reverse: dict[str, list[str]] = {}

    for course in courses:
        for prereq_id in course.get("prerequisites") or []:
            reverse.setdefault(prereq_id, [])
            if course["id"] not in reverse[prereq_id]:
                reverse[prereq_id].append(course["id"])

    return reverse


def get_direct_unlocks(
    course_id: str,
    reverse_map: dict[str, list[str]],
    limit: int | None = None,
) -> list[str]:
    """
    Returns courses directly unlocked by completing `course_id`, up to `limit`
    when one is given.
    """
    unlocked = reverse_map.get(course_id, [])
    return unlocked if limit is None else unlocked[:limit]


def planned_dependents(course_id: str, plan: list[dict], reverse_map: dict[str, list[str]]) -> list[str]:
    """Ids of planned courses that list `course_id` as a direct prerequisite."""
    dependents = set(get_direct_unlocks(course_id, reverse_map))
    if not dependents:
        return []
    return [
        c["id"]
        for bucket in plan
        for c in bucket.get("courses", [])
        if c["id"] in dependents
    ]
