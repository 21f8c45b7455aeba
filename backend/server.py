import os
import sys
import time
import threading
import hashlib
import hmac
import json
from collections import OrderedDict

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from data_loader import CatalogValidationError, load_catalog, load_catalog_from_text
from normalizer import normalize_selection_rows
from planner import plan_bids
from priority import categories_with_scores
from selections import create_selection

load_dotenv()

app = Flask(__name__)

APP_VERSION = "1.0.0"

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")


def _resolve_data_path(raw) -> str:
    if not raw:
        return _DEFAULT_DATA_PATH
    if not os.path.isabs(raw):
        return os.path.join(PROJECT_ROOT, raw)
    return raw


DATA_PATH = _resolve_data_path(os.environ.get("DATA_PATH"))
ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "")


def _env_number(name: str, default, minimum, cast):
    try:
        return max(minimum, cast(os.environ.get(name, "")))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_number("SLOW_REQUEST_LOG_MS", 750.0, 0.0, float)
_REQUEST_CACHE_SIZE = _env_number("REQUEST_CACHE_SIZE", 128, 1, int)
MAX_SELECTIONS = _env_number("MAX_SELECTIONS", 40, 1, int)


def _data_file_mtime(path: str):
    """Newest mtime of the history file, or of the CSVs in a history folder."""
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


# ── Catalog snapshot ──────────────────────────────────────────────────────────
class _CatalogState:
    """
    The history catalog currently served, with the file mtime it was read at.

    version increases on every swap (file reload or admin upload). Requests
    take one (catalog, version) snapshot and compute and cache against it.
    """

    def __init__(self, catalog, mtime=None, version: int = 0):
        self._lock = threading.Lock()
        self._reload_lock = threading.Lock()
        self.catalog = catalog
        self.mtime = mtime
        self.version = version

    def snapshot(self):
        with self._lock:
            return self.catalog, self.version

    def swap(self, catalog, mtime=None):
        with self._lock:
            self.catalog = catalog
            if mtime is not None:
                self.mtime = mtime
            self.version += 1
        _clear_request_caches()
        return catalog

    def _is_stale(self, mtime) -> bool:
        return mtime is not None and (self.mtime is None or mtime > self.mtime)

    def reload_if_changed(self, path: str, force: bool = False):
        """
        Re-read the catalog from path when its files are newer than the
        loaded snapshot.

        Returns the newly served catalog, or None when nothing was swapped.
        A failed reload keeps the previous catalog.
        """
        if not force and not self._is_stale(_data_file_mtime(path)):
            return None
        with self._reload_lock:
            latest_mtime = _data_file_mtime(path)
            if not force and not self._is_stale(latest_mtime):
                return None
            try:
                fresh = load_catalog(path)
            except Exception as exc:
                print(f"[WARN] Data reload failed; keeping previous dataset: {exc}", file=sys.stderr)
                return None
            self.swap(fresh, latest_mtime)
        print(f"[OK] Reloaded {len(fresh)} class offerings from {path}")
        return fresh


def _load_startup_state() -> _CatalogState:
    global DATA_PATH
    try:
        catalog = load_catalog(DATA_PATH)
    except FileNotFoundError:
        # Stale DATA_PATH env var: fall back to the repo dataset.
        if DATA_PATH == _DEFAULT_DATA_PATH or not os.path.exists(_DEFAULT_DATA_PATH):
            print(f"[FATAL] Data file not found: {DATA_PATH}", file=sys.stderr)
            sys.exit(1)
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default dataset ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        return _load_startup_state()
    except Exception as exc:
        print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"[OK] Loaded {len(catalog)} class offerings from {DATA_PATH}")
    return _CatalogState(catalog, _data_file_mtime(DATA_PATH))


# ── Response cache ────────────────────────────────────────────────────────────
class _LruResponseCache:
    """Thread-safe bounded cache of plan responses, keyed per catalog version."""

    def __init__(self, max_size: int):
        self.max_size = max(1, int(max_size))
        self._lock = threading.Lock()
        self._items: OrderedDict[str, dict] = OrderedDict()

    def get(self, key: str):
        with self._lock:
            value = self._items.get(key)
            if value is not None:
                self._items.move_to_end(key)
            return value

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            self._items[key] = value
            self._items.move_to_end(key)
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


_rank_response_cache = _LruResponseCache(_REQUEST_CACHE_SIZE)
_bid_order_response_cache = _LruResponseCache(_REQUEST_CACHE_SIZE)


def _cache_enabled() -> bool:
    return not app.config.get("TESTING", False)


def _clear_request_caches() -> None:
    _rank_response_cache.clear()
    _bid_order_response_cache.clear()


def _selection_cache_key(prefix: str, catalog_version: int, rows) -> str:
    """Key on the normalized rows so 'acc-1701' and 'ACC1701' share an entry."""
    encoded = json.dumps(rows, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return f"{prefix}:{catalog_version}:{hashlib.sha256(encoded).hexdigest()}"


# -- Rate limiting (sliding window per client IP) ---------------------------
class _RateLimiter:
    """Allows max_requests per window seconds for each client."""

    def __init__(self, max_requests: int = 10, window: float = 60.0):
        self.max_requests = max_requests
        self.window = window
        self._lock = threading.Lock()
        self._hits: dict[str, list[float]] = {}

    def allow(self, client: str, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        with self._lock:
            # Forget clients whose requests have all aged out.
            for key in list(self._hits):
                recent = [t for t in self._hits[key] if now - t < self.window]
                if recent:
                    self._hits[key] = recent
                else:
                    del self._hits[key]
            hits = self._hits.setdefault(client, [])
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def reset(self, client: str | None = None) -> None:
        with self._lock:
            if client is None:
                self._hits.clear()
            else:
                self._hits.pop(client, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)


_rate_limiter = _RateLimiter(max_requests=10, window=60.0)


def _client_ip() -> str:
    return request.headers.get("X-Forwarded-For", request.remote_addr or "").split(",")[0].strip()


# ── Startup data load ──────────────────────────────────────────────────────────
_state = _load_startup_state()


def _current_snapshot():
    """Pick up on-disk changes, then return the (catalog, version) to serve."""
    try:
        _state.reload_if_changed(DATA_PATH)
    except Exception as exc:
        print(f"[WARN] Data reload check failed: {exc}", file=sys.stderr)
    return _state.snapshot()


def _error_response(error_code: str, message: str, status: int):
    return jsonify({
        "mode": "error",
        "error": {"error_code": error_code, "message": message},
    }), status


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


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    catalog, _version = _state.snapshot()
    return jsonify({
        "status": "ok",
        "version": APP_VERSION,
        "records": len(catalog),
    })


# -- Input validation ------------------------------------------------------
def _validate_selection_body(body):
    """Returns (error_code, message, rows) with rows=None on invalid input."""
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be valid JSON.", None
    raw_rows = body.get("selections")
    if not isinstance(raw_rows, list):
        return "INVALID_INPUT", "'selections' must be a list of course selections.", None
    if len(raw_rows) > MAX_SELECTIONS:
        return "INVALID_INPUT", f"At most {MAX_SELECTIONS} selections are allowed.", None
    result = normalize_selection_rows(raw_rows)
    if result["invalid"]:
        first = result["invalid"][0]
        return "INVALID_INPUT", f"Selection {first['index'] + 1}: {first['reason']}", None
    return None, None, result["valid"]


def _build_selections(rows):
    return [
        create_selection(
            row["course_code"],
            row["class_code"],
            row["category"],
            # Positional fallback keeps cached and fresh responses identical.
            entry_id=row["id"] or f"sel-{idx + 1}",
        )
        for idx, row in enumerate(rows)
    ]


def _run_plan(prefix: str, cache: _LruResponseCache, shape_response):
    if not app.config.get("TESTING") and not _rate_limiter.allow(_client_ip()):
        return _error_response(
            "RATE_LIMITED", "Too many requests. Please wait before submitting again.", 429
        )

    body = request.get_json(force=True, silent=True)
    err_code, err_msg, rows = _validate_selection_body(body)
    if err_code:
        return _error_response(err_code, err_msg, 400)

    catalog, version = _current_snapshot()
    cache_key = _selection_cache_key(prefix, version, rows)
    if _cache_enabled():
        cached = cache.get(cache_key)
        if cached is not None:
            return jsonify(cached)

    plan = plan_bids(_build_selections(rows), catalog)
    response = shape_response(plan)
    if plan["matched_count"] == 0:
        response["message"] = "No matching course data found."
    elif plan["unmatched"]:
        response["message"] = (
            f"{len(plan['unmatched'])} of {plan['selection_count']} "
            "selected courses have no historical data."
        )
    if _cache_enabled():
        cache.set(cache_key, response)
    return jsonify(response)


# ── 500 handler ────────────────────────────────────────────────────────────────
@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    return _error_response("SERVER_ERROR", "An unexpected server error occurred.", 500)


# ── Routes ─────────────────────────────────────────────────────────────────────
@app.route("/catalog", methods=["GET"])
def get_catalog():
    """Course picker data: course -> class codes, plus the category list."""
    catalog, _version = _current_snapshot()
    return jsonify({
        "course_classes": catalog.course_class_map,
        "categories": categories_with_scores(),
        "records": len(catalog),
        "source": catalog.source,
    })


@app.route("/catalog/upload", methods=["POST"])
def upload_catalog():
    """Replace the in-memory catalog with an uploaded CSV (admin only)."""
    supplied = request.headers.get("X-Admin-Token", "")
    if not ADMIN_TOKEN or not hmac.compare_digest(supplied, ADMIN_TOKEN):
        return _error_response("FORBIDDEN", "Admin token required.", 403)

    upload = request.files.get("file")
    if upload is not None:
        if not str(upload.filename or "").lower().endswith(".csv"):
            return _error_response("INVALID_CATALOG", "Please upload a CSV file.", 400)
        raw = upload.read()
        source = upload.filename
    else:
        raw = request.get_data()
        source = "upload"
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return _error_response("INVALID_CATALOG", "History file must be UTF-8 encoded.", 400)

    try:
        new_catalog = load_catalog_from_text(text, source=source)
    except CatalogValidationError as exc:
        return _error_response("INVALID_CATALOG", str(exc), 400)

    # The file mtime is kept so an unchanged DATA_PATH does not overwrite the upload.
    _state.swap(new_catalog)
    print(f"[OK] Uploaded {len(new_catalog)} class offerings from {source}")
    return jsonify({
        "status": "ok",
        "records": len(new_catalog),
        "courses": len(new_catalog.course_class_map),
        "message": "Course data updated successfully!",
    })


@app.route("/rank", methods=["POST"])
def rank_endpoint():
    """Sorted risk table for the submitted selections."""
    return _run_plan(
        "rank",
        _rank_response_cache,
        lambda plan: {
            "mode": "ranking",
            "risk_table": plan["risk_table"],
            "unmatched": plan["unmatched"],
            "matched_count": plan["matched_count"],
            "selection_count": plan["selection_count"],
        },
    )


@app.route("/bid-order", methods=["POST"])
def bid_order_endpoint():
    """Recommended bidding round for every matched selection."""
    return _run_plan(
        "bid_order",
        _bid_order_response_cache,
        lambda plan: {"mode": "bid_order", **plan},
    )


# -- Canonical API routes ------------------------------------------------
app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])
app.add_url_rule("/api/catalog", endpoint="api_catalog", view_func=get_catalog, methods=["GET"])
app.add_url_rule("/api/catalog/upload", endpoint="api_catalog_upload", view_func=upload_catalog, methods=["POST"])
app.add_url_rule("/api/rank", endpoint="api_rank", view_func=rank_endpoint, methods=["POST"])
app.add_url_rule("/api/bid-order", endpoint="api_bid_order", view_func=bid_order_endpoint, methods=["POST"])


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return jsonify({"error": f"/api/{rest} not found"}), 404


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
