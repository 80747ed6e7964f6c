import re

import pandas as pd

from normalizer import normalize_code

# Separators accepted between prerequisite ids: , ; | / and the word "and".
PREREQ_SPLIT = re.compile(r'\s*(?:[,;|/]|\band\b)\s*', re.IGNORECASE)

# Regex to strip parenthetical annotation clauses, e.g. "(may be concurrent)"
ANNOTATION_RE = re.compile(r'\s*\([^)]*\)')

NONE_VALUES = {"none", "none listed", "n/a", "na", "nan", "-", ""}


def _is_none_prereq(raw_val) -> bool:
    if raw_val is None:
        return True
    if isinstance(raw_val, float) and pd.isna(raw_val):
        return True
    return str(raw_val).strip().lower() in NONE_VALUES


def parse_prereq_ids(raw) -> list[str]:
    """
    Parse a prerequisite cell into an ordered list of normalized course ids.

    Accepts a list (already split) or a string such as
    "COE0001; COE0003", "CPE101 and MATH201", "none".
    Order is first-seen, duplicates are dropped.
    """
    if isinstance(raw, (list, tuple)):
        tokens = [str(t) for t in raw if not _is_none_prereq(t)]
    elif _is_none_prereq(raw):
        return []
    else:
        cleaned = ANNOTATION_RE.sub("", str(raw)).strip()
        tokens = PREREQ_SPLIT.split(cleaned)

    ids = []
    for token in tokens:
        if _is_none_prereq(token):
            continue
        norm = normalize_code(token)
        if norm:
            ids.append(norm)
    return list(dict.fromkeys(ids))


def find_dangling_prereqs(courses: list[dict]) -> dict[str, list[str]]:
    """Return {course id: [prereq ids missing from the catalog]} for non-empty cases."""
    catalog_ids = {c["id"] for c in courses}
    out: dict[str, list[str]] = {}
    for c in courses:
        missing = [p for p in c.get("prerequisites") or [] if p not in catalog_ids]
        if missing:
            out[c["id"]] = missing
    return out
