from normalizer import normalize_term
from planner_config import STATUS_PENDING, TERM_LABELS


def term_index(term: str) -> int:
    """'Term 1' → 0, 'Term 3' → 2. Raises ValueError on an unknown label."""
    return TERM_LABELS.index(normalize_term(term))


def next_term(year: int, term: str) -> tuple[int, str]:
    """Term 1 → Term 2 → Term 3 → next year's Term 1."""
    idx = term_index(term)
    if idx + 1 < len(TERM_LABELS):
        return year, TERM_LABELS[idx + 1]
    return year + 1, TERM_LABELS[0]


def term_key(year: int, term: str) -> tuple[int, int]:
    """Sort key for chronological ordering of (year, term)."""
    return int(year), term_index(term)


def is_at_least_one_term_after(later_year: int, later_term: str, earlier_year: int, earlier_term: str) -> bool:
    """True when (later_year, later_term) is strictly after (earlier_year, earlier_term)."""
    return term_key(later_year, later_term) > term_key(earlier_year, earlier_term)


def parse_origin(current_year, current_term) -> tuple[int, str]:
    """
    Validate a scheduling origin.

    Returns (year, canonical term label). Raises ValueError when the year is
    not a positive integer or the term cannot be read.
    """
    if isinstance(current_year, bool):
        raise ValueError(f"Invalid year: {current_year!r}")
    if isinstance(current_year, float) and not current_year.is_integer():
        raise ValueError(f"Invalid year: {current_year!r}")
    try:
        year = int(current_year.strip()) if isinstance(current_year, str) else int(current_year)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"Invalid year: {current_year!r}") from None
    if year <= 0:
        raise ValueError(f"Invalid year: {current_year!r}")
    return year, normalize_term(current_term)


def format_academic_year(year: int, start_year: int | None = None) -> str:
    """
    2025 → 'S.Y 2025-2026'.

    Small values are curriculum years (1-based) and are converted relative to
    start_year when one is given.
    """
    if year is None:
        return ""
    year = int(year)
    if year < 1900 and start_year is not None:
        year = int(start_year) + max(1, year) - 1
    return f"S.Y {year}-{year + 1}"


def expected_graduation(plan: list[dict]) -> dict | None:
    """Graduation is the term after the last planned bucket. None for an empty plan."""
    if not plan:
        return None
    last = plan[-1]
    year, term = next_term(last["year"], last["term"])
    return {"year": year, "term": term, "label": f"{format_academic_year(year)} {term}"}


def remaining_credits(courses: list[dict]) -> int:
    return sum(int(c.get("credits") or 0) for c in courses if c.get("status") == STATUS_PENDING)


def estimate_timeline(plan: list[dict], courses: list[dict]) -> dict:
    """
    Summary block shown next to a generated plan.

    Returns:
        {
          "terms_planned": 4,
          "remaining_credits": 78,
          "expected_graduation": {"year": 2027, "term": "Term 2", "label": "..."},
          "disclaimer": "..."
        }
    """
    return {
        "terms_planned": len(plan),
        "remaining_credits": remaining_credits(courses),
        "expected_graduation": expected_graduation(plan),
        "disclaimer": (
            "Recommendation only. Assumes every planned course is passed on the "
            "first attempt and that petitions are approved; no seats are reserved."
        ),
    }
