import os

# Hard credit ceiling for a single term bucket.
MAX_CREDITS_PER_TERM = 21

# Safety bound on allocator passes; guarantees termination on cyclic input.
MAX_PASSES = 50

# Three terms per academic year, in chronological order.
TERM_LABELS = ("Term 1", "Term 2", "Term 3")

STATUS_PASSED = "passed"
STATUS_ACTIVE = "active"
STATUS_PENDING = "pending"
COURSE_STATUSES = {STATUS_PASSED, STATUS_ACTIVE, STATUS_PENDING}

# Placeholder text used wherever a course has no recommended section.
TBD = "TBD"

# Bounded edit history kept by PlanStore.
MOVE_HISTORY_LIMIT = 50


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


def env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip()
