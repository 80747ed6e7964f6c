"""
Pure plan-validation helpers.
No Flask or data-loader imports.
"""

from typing import Dict, List

from planner_config import MAX_CREDITS_PER_TERM, STATUS_ACTIVE, STATUS_PASSED, STATUS_PENDING, TBD
from timeline import format_academic_year, is_at_least_one_term_after


def parse_days(days: str) -> List[str]:
    """'MWF' → ['M', 'W', 'F']; 'TTh' → ['T', 'Th']. 'Th' is one token."""
    out: List[str] = []
    s = str(days or "").strip()
    i = 0
    while i < len(s):
        if s[i:i + 2] == "Th":
            out.append("Th")
            i += 2
        elif s[i].isspace():
            i += 1
        else:
            out.append(s[i])
            i += 1
    return out


def _bucket_label(bucket: dict) -> str:
    return f"{format_academic_year(bucket['year'])} {bucket['term']}"


def _credit_conflicts(bucket: dict, max_credits: int) -> List[dict]:
    total = sum(int(c.get("credits") or 0) for c in bucket.get("courses", []))
    if total <= max_credits:
        return []
    return [{
        "type": "credit_limit",
        "severity": "warning",
        "message": (
            f"{_bucket_label(bucket)} has {total} credits "
            f"(exceeds the {max_credits} credit limit)"
        ),
        "affected_courses": [c["id"] for c in bucket.get("courses", [])],
    }]


def _schedule_conflicts(bucket: dict) -> List[dict]:
    """Recommended sections meeting at the same time on a shared day."""
    timed = []
    for course in bucket.get("courses", []):
        section = course.get("recommended_section")
        if not section:
            continue
        time = str(section.get("meeting_time") or "").strip()
        if not time or time.upper() == TBD:
            continue
        timed.append((course, set(parse_days(section.get("meeting_days"))), time))

    conflicts: List[dict] = []
    reported: set = set()
    for i, (course_a, days_a, time_a) in enumerate(timed):
        if course_a["id"] in reported:
            continue
        clash = [course_a] + [
            course_b for course_b, days_b, time_b in timed[i + 1:]
            if course_b["id"] not in reported and time_b == time_a and days_a & days_b
        ]
        if len(clash) > 1:
            reported.update(c["id"] for c in clash)
            conflicts.append({
                "type": "schedule",
                "severity": "error",
                "message": (
                    f"Schedule conflict in {_bucket_label(bucket)}: "
                    f"{', '.join(c['code'] for c in clash)} have overlapping time slots"
                ),
                "affected_courses": [c["id"] for c in clash],
            })
    return conflicts


def _prerequisite_conflicts(
    bucket: dict,
    placements: Dict[str, tuple],
    courses_by_id: Dict[str, dict],
) -> List[dict]:
    conflicts: List[dict] = []
    for course in bucket.get("courses", []):
        for prereq_id in course.get("prerequisites") or []:
            prereq = courses_by_id.get(prereq_id)
            if prereq is not None and prereq.get("status") == STATUS_PASSED:
                continue
            prereq_code = prereq["code"] if prereq else prereq_id
            placed = placements.get(prereq_id)
            if placed is None:
                conflicts.append({
                    "type": "prerequisite",
                    "severity": "error",
                    "message": f"{course['code']} requires {prereq_code} but it's not scheduled in the plan",
                    "affected_courses": [course["id"], prereq_id],
                })
            elif not is_at_least_one_term_after(bucket["year"], bucket["term"], placed[0], placed[1]):
                conflicts.append({
                    "type": "prerequisite",
                    "severity": "error",
                    "message": (
                        f"{course['code']} requires {prereq_code} to be completed at least "
                        f"one term before {bucket['year']} {bucket['term']}"
                    ),
                    "affected_courses": [course["id"], prereq_id],
                })
    return conflicts


def detect_conflicts(
    plan: List[dict],
    courses_by_id: Dict[str, dict],
    max_credits: int = MAX_CREDITS_PER_TERM,
) -> List[dict]:
    """
    Check a (possibly hand-edited) plan for problems.

    Each item:
      {"type": "credit_limit" | "prerequisite" | "schedule",
       "severity": "warning" | "error",
       "message": str,
       "affected_courses": List[str]}
    """
    placements = {
        c["id"]: (bucket["year"], bucket["term"])
        for bucket in plan
        for c in bucket.get("courses", [])
    }
    conflicts: List[dict] = []
    for bucket in plan:
        conflicts.extend(_credit_conflicts(bucket, max_credits))
        conflicts.extend(_prerequisite_conflicts(bucket, placements, courses_by_id))
        conflicts.extend(_schedule_conflicts(bucket))
    return conflicts


def find_inconsistent_statuses(courses: List[dict]) -> List[dict]:
    """
    Return passed courses whose direct prerequisites are still pending/active.

    Each item:
      {"course_id": str, "prereqs_not_passed": List[str]}
    """
    by_id = {c["id"]: c for c in courses}
    issues: List[dict] = []
    for course in courses:
        if course.get("status") != STATUS_PASSED:
            continue
        not_passed = sorted(
            p for p in course.get("prerequisites") or []
            if p in by_id and by_id[p].get("status") in (STATUS_PENDING, STATUS_ACTIVE)
        )
        if not_passed:
            issues.append({"course_id": course["id"], "prereqs_not_passed": not_passed})
    return issues
