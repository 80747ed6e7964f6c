"""
Generate a graduation plan from the data files and print it term by term.

Usage:
    python scripts/simulate_plan.py
    python scripts/simulate_plan.py --year 2025 --term "Term 2"
    python scripts/simulate_plan.py --reset --curriculum-order
    python scripts/simulate_plan.py --passed "COE0007, COE0009" --export plan.xlsx
"""

import argparse
import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from data_loader import course_records, load_data, section_records  # noqa: E402
from normalizer import normalize_input  # noqa: E402
from plan_export import export_plan  # noqa: E402
from plan_generator import generate_plan  # noqa: E402
from planner_config import STATUS_PASSED, STATUS_PENDING, TBD, env_str  # noqa: E402
from timeline import estimate_timeline, format_academic_year  # noqa: E402

DEFAULT_DATA_PATH = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", env_str("DATA_PATH", "data"))
)


def apply_overrides(courses: list[dict], passed: str | None, reset: bool) -> list[dict]:
    """Return a copy of courses with --reset / --passed applied, in that order."""
    out = [dict(c) for c in courses]
    if reset:
        for c in out:
            c["status"] = STATUS_PENDING
    if passed:
        parsed = normalize_input(passed, {c["id"] for c in out})
        if parsed["not_in_catalog"]:
            print(f"[WARN] Not in catalog, ignored: {', '.join(parsed['not_in_catalog'])}", file=sys.stderr)
        marked = set(parsed["valid"])
        for c in out:
            if c["id"] in marked:
                c["status"] = STATUS_PASSED
    return out


def print_plan(result: dict, courses: list[dict]) -> None:
    print(f"Graduation plan ({result['mode']}):")
    for bucket in result["plan"]:
        print(
            f"\n{format_academic_year(bucket['year'])} {bucket['term']} "
            f"({bucket['total_credits']} credits)"
        )
        for c in bucket["courses"]:
            section = (c.get("recommended_section") or {}).get("section") or TBD
            flag = "  [PETITION]" if c.get("needs_petition") else ""
            print(f"  {c['code']:<10} {c['credits']:>2}  {section:<6} {c['name']}{flag}")

    if result["unscheduled"]:
        print("\nUnscheduled:")
        for c in result["unscheduled"]:
            blocked = f" (blocked by {', '.join(c['blocked_by'])})" if c["blocked_by"] else ""
            print(f"  {c['code']:<10} {c['reason']}{blocked}")

    for note in result["notes"]:
        print(f"[INFO] {note}")

    summary = estimate_timeline(result["plan"], courses)
    graduation = summary["expected_graduation"]
    print(f"\nRemaining credits: {summary['remaining_credits']}")
    print(f"Expected graduation: {graduation['label'] if graduation else 'n/a'}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Simulate graduation plan generation.")
    parser.add_argument("--path", default=DEFAULT_DATA_PATH, help="Data directory, workbook or csv")
    parser.add_argument("--year", type=int, default=datetime.now().year, help="Starting calendar year")
    parser.add_argument("--term", default="Term 1", help="Starting term (Term 1/2/3)")
    parser.add_argument("--passed", default=None, help="Comma-separated course ids to mark as passed")
    parser.add_argument("--reset", action="store_true", help="Treat every course as pending first")
    parser.add_argument(
        "--curriculum-order",
        action="store_true",
        help="Lay out a fresh student's plan by catalog year/term",
    )
    parser.add_argument("--export", default=None, help="Write the plan to a .csv or .xlsx file")
    args = parser.parse_args(argv)

    try:
        data = load_data(args.path)
    except (FileNotFoundError, ValueError) as exc:
        sys.exit(f"[FATAL] Failed to load data from {args.path}: {exc}")

    courses = apply_overrides(course_records(data["courses_df"]), args.passed, args.reset)
    result = generate_plan(
        courses,
        section_records(data["sections_df"]),
        args.year,
        args.term,
        curriculum_order=args.curriculum_order,
    )
    if result["origin"] is None:
        sys.exit(f"[FATAL] {result['notes'][0]}")

    print_plan(result, courses)
    if args.export:
        try:
            path = export_plan(result["plan"], args.export)
        except ValueError as exc:
            sys.exit(f"[FATAL] {exc}")
        print(f"[DONE] Plan written to: {path}")


if __name__ == "__main__":
    main()
