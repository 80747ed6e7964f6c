import os
import sys

import pandas as pd

from availability import parse_slots
from normalizer import normalize_code, safe_term
from planner_config import COURSE_STATUSES, STATUS_PENDING
from prereq_parser import parse_prereq_ids, find_dangling_prereqs


_BOOL_TRUTHY = {"true", "1", "yes", "y"}

COURSE_COLUMNS = ["id", "code", "name", "credits", "status", "prerequisites", "year", "term"]
SECTION_COLUMNS = [
    "course_code",
    "section",
    "class_size",
    "remaining_slots",
    "meeting_days",
    "meeting_time",
    "room",
    "has_slots",
]

# Feed / workbook spellings → internal column names.
_COURSE_RENAMES = {
    "course_id": "id",
    "course_code": "code",
    "course_name": "name",
    "units": "credits",
    "prereqs": "prerequisites",
    "prereq_ids": "prerequisites",
}
_SECTION_RENAMES = {
    "courseCode": "course_code",
    "code": "course_code",
    "classSize": "class_size",
    "remainingSlots": "remaining_slots",
    "meetingDays": "meeting_days",
    "meetingTime": "meeting_time",
    "hasSlots": "has_slots",
}


def _is_missing(val) -> bool:
    if val is None:
        return True
    if isinstance(val, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def _safe_int(val, default=None):
    try:
        if _is_missing(val):
            return default
        return int(float(val))
    except (TypeError, ValueError, OverflowError):
        return default


def _safe_str(val, default: str = "") -> str:
    if _is_missing(val):
        return default
    return str(val).strip()


def _coerce_bool(x) -> bool:
    """Python bool, Excel int/float (1/0), or TRUE/false/yes/no strings. NaN → False."""
    if _is_missing(x):
        return False
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, float)):
        return bool(x)
    return str(x).strip().lower() in _BOOL_TRUTHY


def _rows(snapshot) -> list[dict]:
    """DataFrame or iterable of mappings → list of independent plain dicts."""
    if snapshot is None:
        return []
    if isinstance(snapshot, pd.DataFrame):
        if len(snapshot) == 0:
            return []
        df = snapshot.astype(object).where(pd.notna(snapshot), None)
        return [dict(r) for r in df.to_dict(orient="records")]
    return [dict(r) for r in snapshot if isinstance(r, dict)]


def _renamed(row: dict, renames: dict[str, str]) -> dict:
    out = dict(row)
    for src, dst in renames.items():
        if src in out and dst not in out:
            out[dst] = out.pop(src)
    return out


def normalize_course_record(row: dict) -> dict | None:
    """Normalize one catalog row. Returns None when the row has no usable id/code."""
    row = _renamed(row, _COURSE_RENAMES)
    course_id = normalize_code(row.get("id")) or normalize_code(row.get("code"))
    if not course_id:
        return None
    code = normalize_code(row.get("code")) or course_id

    status = _safe_str(row.get("status")).lower()
    if status not in COURSE_STATUSES:
        status = STATUS_PENDING

    raw_term = row.get("term")
    return {
        "id": course_id,
        "code": code,
        "name": _safe_str(row.get("name")),
        "credits": max(0, _safe_int(row.get("credits"), 0)),
        "status": status,
        "prerequisites": parse_prereq_ids(row.get("prerequisites")),
        "year": _safe_int(row.get("year")),
        "term": safe_term(raw_term, default=_safe_str(raw_term)),
    }


def normalize_section_record(row: dict) -> dict | None:
    """Normalize one section-feed row. Returns None when the row has no course code."""
    row = _renamed(row, _SECTION_RENAMES)
    code = normalize_code(row.get("course_code"))
    if not code:
        return None
    remaining = _safe_str(row.get("remaining_slots"), "0")
    has_slots_raw = row.get("has_slots")
    if _is_missing(has_slots_raw) or (isinstance(has_slots_raw, str) and not has_slots_raw.strip()):
        has_slots = parse_slots(remaining) > 0
    else:
        has_slots = _coerce_bool(has_slots_raw)
    return {
        "course_code": code,
        "section": _safe_str(row.get("section")),
        "class_size": _safe_str(row.get("class_size"), "0"),
        "remaining_slots": remaining,
        "meeting_days": _safe_str(row.get("meeting_days")),
        "meeting_time": _safe_str(row.get("meeting_time")),
        "room": _safe_str(row.get("room")),
        "has_slots": has_slots,
    }


def course_records(snapshot) -> list[dict]:
    """
    Immutable catalog snapshot for one generation pass.

    Rows without an id are skipped; a repeated id keeps its first row.
    """
    out = []
    seen: set[str] = set()
    for row in _rows(snapshot):
        course = normalize_course_record(row)
        if course is None or course["id"] in seen:
            continue
        seen.add(course["id"])
        out.append(course)
    return out


def section_records(snapshot) -> list[dict]:
    """Immutable section-feed snapshot for one generation pass."""
    out = []
    for row in _rows(snapshot):
        section = normalize_section_record(row)
        if section is not None:
            out.append(section)
    return out


def courses_to_frame(courses: list[dict]) -> pd.DataFrame:
    rows = [{**c, "prerequisites": ";".join(c.get("prerequisites") or [])} for c in courses]
    return pd.DataFrame(rows, columns=COURSE_COLUMNS)


def sections_to_frame(sections: list[dict]) -> pd.DataFrame:
    return pd.DataFrame(sections, columns=SECTION_COLUMNS)


def _read_tables(data_path: str) -> tuple[pd.DataFrame, pd.DataFrame | None]:
    if os.path.isdir(data_path):
        courses_path = os.path.join(data_path, "courses.csv")
        sections_path = os.path.join(data_path, "sections.csv")
        if not os.path.isfile(courses_path):
            raise FileNotFoundError(courses_path)
        courses_df = pd.read_csv(courses_path, dtype=str, keep_default_na=False)
        sections_df = (
            pd.read_csv(sections_path, dtype=str, keep_default_na=False)
            if os.path.isfile(sections_path)
            else None
        )
        return courses_df, sections_df

    if not os.path.isfile(data_path):
        raise FileNotFoundError(data_path)
    if data_path.lower().endswith((".xlsx", ".xlsm")):
        xl = pd.ExcelFile(data_path)
        courses_df = xl.parse("courses", dtype=str)
        sections_df = xl.parse("sections", dtype=str) if "sections" in xl.sheet_names else None
        return courses_df, sections_df
    return pd.read_csv(data_path, dtype=str, keep_default_na=False), None


def load_data(data_path: str) -> dict:
    """Load the course catalog and section feed. Raises on file/schema errors."""
    raw_courses, raw_sections = _read_tables(data_path)
    if "id" not in raw_courses.columns and "code" not in raw_courses.columns \
            and "course_code" not in raw_courses.columns:
        raise ValueError("courses table needs an 'id' or 'code' column")

    raw_count = len(raw_courses)
    courses = course_records(raw_courses)
    sections = section_records(raw_sections)
    if raw_sections is None:
        print("[INFO] No sections table found; every course will be flagged for petition.")

    # ── Startup data integrity checks ──────────────────────────────────────
    skipped = raw_count - len(courses)
    if skipped:
        print(f"[WARN] {skipped} course row(s) skipped (missing id or duplicate id).", file=sys.stderr)

    dangling = find_dangling_prereqs(courses)
    if dangling:
        print(
            f"[WARN] {len(dangling)} course(s) reference prerequisites not in the catalog: "
            f"{sorted(dangling)}",
            file=sys.stderr,
        )

    catalog_codes = {c["code"] for c in courses}
    orphan_sections = sorted({s["course_code"] for s in sections} - catalog_codes)
    if orphan_sections:
        print(
            f"[WARN] {len(orphan_sections)} section course code(s) match no catalog course: {orphan_sections}",
            file=sys.stderr,
        )

    bad_slots = [
        f"{s['course_code']}/{s['section']}" for s in sections
        if s["remaining_slots"] and not str(s["remaining_slots"]).strip().lstrip("-").replace(".", "", 1).isdigit()
    ]
    if bad_slots:
        print(f"[WARN] {len(bad_slots)} section(s) have non-numeric remaining slots (treated as 0): {bad_slots}",
              file=sys.stderr)

    return {
        "courses_df": courses_to_frame(courses),
        "sections_df": sections_to_frame(sections),
        "catalog_ids": {c["id"] for c in courses},
        "dangling_prereqs": dangling,
    }
