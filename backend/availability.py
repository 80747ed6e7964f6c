"""
Section availability resolver.

Sections are keyed by normalized course code, never by course id: one course
maps to zero or more sections. An empty section feed means "availability
unknown" and every course is treated as petition-required.
"""

import pandas as pd

from normalizer import normalize_code


def parse_slots(raw) -> int:
    """'12' → 12. Anything unparsable (None, 'N/A', '', NaN) counts as 0 slots."""
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        if pd.isna(raw):
            return 0
    except (TypeError, ValueError):
        pass
    try:
        return int(float(str(raw).strip()))
    except (TypeError, ValueError, OverflowError):
        return 0


def build_section_index(sections: list[dict]) -> dict[str, list[dict]]:
    """Group sections by normalized course code, preserving feed order."""
    index: dict[str, list[dict]] = {}
    for section in sections:
        code = normalize_code(section.get("course_code"))
        if not code:
            continue
        index.setdefault(code, []).append(section)
    return index


def get_available_sections(course_code: str, section_index: dict[str, list[dict]]) -> list[dict]:
    """Sections for the code that still have open slots."""
    code = normalize_code(course_code)
    return [s for s in section_index.get(code, []) if s.get("has_slots")]


def needs_petition(course_code: str, section_index: dict[str, list[dict]]) -> bool:
    # "not offered" and "offered but full" give the same answer
    if not section_index:
        return True
    return len(get_available_sections(course_code, section_index)) == 0


def find_best_section(course_code: str, section_index: dict[str, list[dict]]) -> dict | None:
    """Open section with the most remaining slots; first seen wins ties."""
    best = None
    best_slots = None
    for section in get_available_sections(course_code, section_index):
        slots = parse_slots(section.get("remaining_slots"))
        if best is None or slots > best_slots:
            best = section
            best_slots = slots
    return best


def annotate_course(course: dict, section_index: dict[str, list[dict]]) -> dict:
    """Return a scheduled-course dict: the course plus availability annotations."""
    available = get_available_sections(course["code"], section_index)
    best = find_best_section(course["code"], section_index)
    return {
        **course,
        "available_sections": [dict(s) for s in available],
        "needs_petition": needs_petition(course["code"], section_index),
        "recommended_section": dict(best) if best is not None else None,
    }
