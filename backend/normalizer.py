import re

from planner_config import TERM_LABELS

# Matches: "Term 1", "term1", "T1", "1", "Term-2", etc.
TERM_RE = re.compile(r'^(?:term|t)?\s*[-_]?\s*([1-3])$', re.IGNORECASE)


def normalize_code(raw) -> str:
    """
    Normalizes a course code or course id to its join key.
    Handles: 'cpe101', 'CPE 101', 'CPE-101', ' Cpe101 '
    Returns "" for empty / missing values.
    """
    if raw is None:
        return ""
    s = str(raw).strip()
    if not s or s.lower() == "nan":
        return ""
    return re.sub(r'[\s\-]+', "", s).upper()


def normalize_term(raw) -> str:
    """
    Normalizes a term label to one of TERM_LABELS.
    'Term 1' → 'Term 1', '2' → 'Term 2', 't3' → 'Term 3'.
    Raises ValueError when the value cannot be read as a term.
    """
    if isinstance(raw, bool):
        raise ValueError(f"Cannot parse term from: {raw!r}")
    if isinstance(raw, (int, float)):
        raw = str(int(raw)) if float(raw).is_integer() else str(raw)
    m = TERM_RE.match(str(raw or "").strip())
    if not m:
        raise ValueError(f"Cannot parse term from: {raw!r}")
    return TERM_LABELS[int(m.group(1)) - 1]


def safe_term(raw, default: str | None = None) -> str | None:
    try:
        return normalize_term(raw)
    except ValueError:
        return default


def normalize_input(raw_str: str, catalog_ids: set) -> dict:
    """
    Splits comma/newline/semicolon-separated input and normalizes each id.

    Returns:
      {
        "valid":          ["CPE101", "MATH201"],   # normalized + found in catalog
        "invalid":        [""],                    # nothing left after normalizing
        "not_in_catalog": ["CPE999"]               # unknown course id
      }
    """
    if not raw_str or not str(raw_str).strip():
        return {"valid": [], "invalid": [], "not_in_catalog": []}

    tokens = re.split(r'[,\n;]+', str(raw_str))
    valid = []
    invalid = []
    not_in_catalog = []
    seen: set[str] = set()

    for token in tokens:
        token = token.strip()
        if not token:
            continue
        normalized = normalize_code(token)
        if not normalized:
            if token not in seen:
                invalid.append(token)
                seen.add(token)
        elif normalized in seen:
            pass  # deduplicate silently
        elif normalized not in catalog_ids:
            not_in_catalog.append(normalized)
            seen.add(normalized)
        else:
            valid.append(normalized)
            seen.add(normalized)

    return {"valid": valid, "invalid": invalid, "not_in_catalog": not_in_catalog}
