import os
import sys
import time
import threading
import hashlib
import json
from collections import defaultdict
from datetime import datetime

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, Response, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from data_loader import course_records, load_data, section_records
from normalizer import normalize_code, safe_term
from plan_editor import PlanStore, available_terms_for_move
from plan_export import plan_to_bytes
from planner_config import env_float, env_int, env_str
from timeline import estimate_timeline, parse_origin
from unlocks import build_reverse_prereq_map, planned_dependents
from validators import detect_conflicts, find_inconsistent_statuses

load_dotenv()

app = Flask(__name__)

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_data_lock = threading.Lock()
_data_mtime = None

# -- Rate limiting (manual token bucket per IP) ------------------------------
_RATE_LIMIT_MAX = env_int("RATE_LIMIT_MAX", 30)
_RATE_LIMIT_WINDOW = 60  # seconds
_rate_limit_lock = threading.Lock()
_rate_limit_tracker: dict[str, list[float]] = defaultdict(list)

_SLOW_REQUEST_LOG_MS = env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
DEFAULT_START_YEAR = env_int("PLAN_START_YEAR", datetime.now().year)
DEFAULT_START_TERM = safe_term(env_str("PLAN_START_TERM", "Term 1"), default="Term 1")

_SECTION_STRING_FIELDS = (
    "courseCode",
    "section",
    "classSize",
    "remainingSlots",
    "meetingDays",
    "meetingTime",
    "room",
)

_plan_store = PlanStore()


def _stable_payload_hash(payload) -> str:
    normalized = payload if payload is not None else []
    encoded = json.dumps(
        normalized,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _check_rate_limit(ip: str) -> bool:
    """Return True if request is allowed, False if rate-limited."""
    now = time.time()
    with _rate_limit_lock:
        timestamps = _rate_limit_tracker[ip]
        _rate_limit_tracker[ip] = [t for t in timestamps if now - t < _RATE_LIMIT_WINDOW]
        if len(_rate_limit_tracker[ip]) >= _RATE_LIMIT_MAX:
            return False
        _rate_limit_tracker[ip].append(now)
        return True


def _data_file_mtime(path: str):
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


def _feed_from(data: dict) -> dict:
    sections = section_records(data.get("sections_df"))
    return {
        "sections": sections,
        "updated_at": time.time(),
        "hash": _stable_payload_hash(sections),
    }


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['catalog_ids'])} courses from {DATA_PATH}")
except FileNotFoundError:
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default data directory ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['catalog_ids'])} courses from {DATA_PATH}")
    else:
        print(f"[FATAL] Data file not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
    sys.exit(1)

# Section feed: seeded from the data files, replaced wholesale by POST /sections.
_feed = _feed_from(_data)


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload file-backed catalog data when DATA_PATH changes on disk.

    The section feed is reseeded from the files as well. Returns True when a
    reload occurred, else False.
    """
    global _data, _feed, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
        except Exception as exc:
            print(f"[WARN] Data reload failed; keeping previous dataset: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _feed = _feed_from(new_data)
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        print(f"[OK] Reloaded {len(new_data['catalog_ids'])} courses from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Data reload check failed: {exc}", file=sys.stderr)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


def _error(error_code: str, message: str, status: int):
    return jsonify({
        "mode": "error",
        "error": {"error_code": error_code, "message": message},
    }), status


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return _error("NOT_FOUND" if e.code == 404 else "HTTP_ERROR", e.description or e.name, e.code)
    print(f"[WARN] Unhandled error on {request.path}: {e!r}", file=sys.stderr)
    return _error("SERVER_ERROR", "An unexpected server error occurred.", 500)


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": "1.0.0",
        "courses_loaded": len(_data.get("catalog_ids", [])),
        "sections_loaded": len(_feed["sections"]),
    })


# -- Input validation ------------------------------------------------------
def _validate_section_feed(body):
    """Returns (error_code, message) on invalid input, (None, None) on success."""
    if not isinstance(body, list):
        return "INVALID_INPUT", "Request body must be an array"
    for item in body:
        if not isinstance(item, dict):
            return "INVALID_INPUT", "Each section must be an object."
        if not all(isinstance(item.get(f), str) for f in _SECTION_STRING_FIELDS) \
                or not isinstance(item.get("hasSlots"), bool):
            return (
                "INVALID_INPUT",
                "Each course must have courseCode, section, classSize, remainingSlots, "
                "meetingDays, meetingTime, room, and hasSlots properties",
            )
    return None, None


def _validate_plan_body(body):
    """Returns (error_code, message) on invalid input, (None, None) on success."""
    if body is None:
        return "INVALID_INPUT", "Request body must be valid JSON."
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be a JSON object."
    for field in ("courses", "sections"):
        val = body.get(field)
        if val is not None and not isinstance(val, list):
            return "INVALID_INPUT", f"'{field}' must be a list of objects."
    year = body.get("current_year", DEFAULT_START_YEAR)
    term = body.get("current_term", DEFAULT_START_TERM)
    try:
        parse_origin(year, term)
    except ValueError as exc:
        return "INVALID_INPUT", f"Invalid scheduling origin: {exc}"
    return None, None


def _term_args(body):
    """(year, term) from an edit request body, or raises ValueError."""
    return parse_origin(body.get("year"), body.get("term"))


def _plan_payload(result: dict | None, **extra):
    if result is None:
        return _error("NOT_FOUND", "No plan has been generated yet.", 404)
    courses = list(_plan_store.courses_by_id().values())
    by_id = {c["id"]: c for c in courses}
    return jsonify({
        "mode": "plan",
        **result,
        "conflicts": detect_conflicts(result["plan"], by_id),
        "summary": estimate_timeline(result["plan"], courses),
        "status_issues": find_inconsistent_statuses(courses),
        **extra,
    })


# ── Routes ─────────────────────────────────────────────────────────────────────
@app.route("/courses", methods=["GET"])
def get_courses():
    _refresh_data_if_needed()
    return jsonify({"courses": course_records(_data["courses_df"])})


@app.route("/sections", methods=["GET"])
def get_sections():
    _refresh_data_if_needed()
    feed = _feed
    return jsonify({
        "success": True,
        "data": feed["sections"],
        "updated_at": feed["updated_at"],
    })


@app.route("/sections", methods=["POST"])
def receive_sections():
    global _feed
    body = request.get_json(force=True, silent=True)
    err_code, err_msg = _validate_section_feed(body)
    if err_code:
        return _error(err_code, err_msg, 400)

    sections = section_records(body)
    incoming_hash = _stable_payload_hash(sections)
    with _data_lock:
        has_changed = incoming_hash != _feed["hash"]
        _feed = {"sections": sections, "updated_at": time.time(), "hash": incoming_hash}
    print(f"[OK] Section feed updated: {len(sections)} section(s), changed={has_changed}")
    return jsonify({
        "success": True,
        "message": "Course data received successfully.",
        "lastUpdated": _feed["updated_at"],
        "hasChanged": has_changed,
    })


@app.route("/plan", methods=["POST"])
def create_plan():
    client_ip = request.headers.get("X-Forwarded-For", request.remote_addr or "").split(",")[0].strip()
    if not app.config.get("TESTING") and not _check_rate_limit(client_ip):
        return _error("RATE_LIMITED", "Too many requests. Please wait before submitting again.", 429)
    _refresh_data_if_needed()

    body = request.get_json(force=True, silent=True)
    err_code, err_msg = _validate_plan_body(body)
    if err_code:
        return _error(err_code, err_msg, 400)

    courses = body.get("courses")
    sections = body.get("sections")
    result = _plan_store.regenerate(
        courses if courses is not None else _data["courses_df"],
        sections if sections is not None else _feed["sections"],
        body.get("current_year", DEFAULT_START_YEAR),
        body.get("current_term", DEFAULT_START_TERM),
        debug=bool(body.get("debug", False)),
        curriculum_order=bool(body.get("curriculum_order", False)),
    )
    return _plan_payload(result)


@app.route("/plan", methods=["GET"])
def get_plan():
    return _plan_payload(_plan_store.snapshot())


@app.route("/plan/history", methods=["GET"])
def get_plan_history():
    return jsonify({"history": _plan_store.history()})


def _edit_body():
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        return None, "Request body must be a JSON object."
    course_id = normalize_code(body.get("course_id"))
    if not course_id:
        return None, "'course_id' is required."
    body["course_id"] = course_id
    return body, None


def _edit_response(changed: bool, result: dict | None, course_id: str, **extra):
    if result is None:
        return _error("NOT_FOUND", "No plan has been generated yet.", 404)
    if not changed:
        return _error("NOT_FOUND", f"'{course_id}' could not be changed in the current plan.", 404)
    return _plan_payload(result, **extra)


@app.route("/plan/remove-course", methods=["POST"])
def plan_remove_course():
    body, err = _edit_body()
    if err:
        return _error("INVALID_INPUT", err, 400)
    course_id = body["course_id"]
    changed, result = _plan_store.remove_course(course_id)
    if not changed or result is None:
        return _edit_response(changed, result, course_id)
    # dependents still planned after removal now have an unmet prerequisite
    reverse_map = build_reverse_prereq_map(list(_plan_store.courses_by_id().values()))
    return _edit_response(
        changed,
        result,
        course_id,
        stale_dependents=planned_dependents(course_id, result["plan"], reverse_map),
    )


@app.route("/plan/change-section", methods=["POST"])
def plan_change_section():
    body, err = _edit_body()
    if err:
        return _error("INVALID_INPUT", err, 400)
    section = body.get("section")
    if not isinstance(section, dict):
        return _error("INVALID_INPUT", "'section' must be a section object.", 400)
    try:
        changed, result = _plan_store.change_section(body["course_id"], section)
    except ValueError as exc:
        return _error("INVALID_INPUT", str(exc), 400)
    return _edit_response(changed, result, body["course_id"])


@app.route("/plan/move-course", methods=["POST"])
def plan_move_course():
    body, err = _edit_body()
    if err:
        return _error("INVALID_INPUT", err, 400)
    try:
        year, term = _term_args(body)
    except ValueError as exc:
        return _error("INVALID_INPUT", str(exc), 400)
    changed, result = _plan_store.move_course(body["course_id"], year, term)
    return _edit_response(changed, result, body["course_id"])


@app.route("/plan/add-course", methods=["POST"])
def plan_add_course():
    body, err = _edit_body()
    if err:
        return _error("INVALID_INPUT", err, 400)
    try:
        year, term = _term_args(body)
    except ValueError as exc:
        return _error("INVALID_INPUT", str(exc), 400)
    changed, result = _plan_store.add_course(body["course_id"], year, term)
    return _edit_response(changed, result, body["course_id"])


@app.route("/plan/move-options", methods=["GET"])
def plan_move_options():
    course_id = normalize_code(request.args.get("course_id"))
    result = _plan_store.snapshot()
    if result is None:
        return _error("NOT_FOUND", "No plan has been generated yet.", 404)
    courses_by_id = _plan_store.courses_by_id()
    course = courses_by_id.get(course_id)
    if course is None:
        return _error("NOT_FOUND", f"Unknown course '{course_id}'.", 404)
    origin = result.get("origin") or {"year": DEFAULT_START_YEAR, "term": DEFAULT_START_TERM}
    terms = available_terms_for_move(result["plan"], course, courses_by_id, origin["year"], origin["term"])
    return jsonify({"course_id": course_id, "terms": terms})


@app.route("/plan/export", methods=["GET"])
def plan_export():
    result = _plan_store.snapshot()
    if result is None:
        return _error("NOT_FOUND", "No plan has been generated yet.", 404)
    fmt = request.args.get("format", "csv")
    try:
        payload, mimetype = plan_to_bytes(result["plan"], fmt)
    except ValueError as exc:
        return _error("INVALID_INPUT", str(exc), 400)
    return Response(
        payload,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename=graduation-plan.{fmt.lower()}"},
    )


if __name__ == "__main__":
    port = env_int("PORT", 5000)
    app.run(host="0.0.0.0", port=port, debug=env_str("FLASK_DEBUG", "0") == "1")
