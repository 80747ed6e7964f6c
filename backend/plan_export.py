import io
import os

import pandas as pd

from planner_config import TBD

EXPORT_COLUMNS = [
    "year",
    "term",
    "course_code",
    "course_name",
    "credits",
    "section",
    "schedule",
    "room",
    "needs_petition",
]


def _schedule_text(section: dict | None) -> str:
    if not section:
        return TBD
    text = f"{section.get('meeting_days', '')} {section.get('meeting_time', '')}".strip()
    return text or TBD


def plan_to_frame(plan: list[dict]) -> pd.DataFrame:
    """One row per planned course, in plan order."""
    rows = []
    for bucket in plan:
        for course in bucket.get("courses", []):
            section = course.get("recommended_section")
            rows.append({
                "year": bucket["year"],
                "term": bucket["term"],
                "course_code": course.get("code", ""),
                "course_name": course.get("name", ""),
                "credits": int(course.get("credits") or 0),
                "section": (section or {}).get("section") or TBD,
                "schedule": _schedule_text(section),
                "room": (section or {}).get("room") or TBD,
                "needs_petition": bool(course.get("needs_petition")),
            })
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_plan(plan: list[dict], path: str) -> str:
    """Write the plan to .csv or .xlsx (by extension). Returns the path written."""
    df = plan_to_frame(plan)
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        df.to_csv(path, index=False)
    elif ext == ".xlsx":
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="plan", index=False)
    else:
        raise ValueError(f"Unsupported export format: {ext or path!r}")
    return path


def plan_to_bytes(plan: list[dict], fmt: str) -> tuple[bytes, str]:
    """In-memory export for HTTP downloads. Returns (payload, mimetype)."""
    df = plan_to_frame(plan)
    fmt = str(fmt or "").strip().lower()
    if fmt == "csv":
        return df.to_csv(index=False).encode("utf-8"), "text/csv"
    if fmt == "xlsx":
        buf = io.BytesIO()
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="plan", index=False)
        return buf.getvalue(), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    raise ValueError(f"Unsupported export format: {fmt!r}")
