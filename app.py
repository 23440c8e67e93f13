import os
import logging
import uuid

from flask import Flask, request, jsonify, g
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv

from aggregator import MultiLevelAggregator
from location_service import InvalidRequest, LocationScoringService, request_from_dict
from models import LocationResultCache, init_db, save_snapshot, get_snapshot
from scoring_version import (
    CURRENT_SCORING_VERSION,
    MIN_COMPATIBLE_VERSION,
    changelog_dict,
)
from trace_context import TraceContext, get_trace, set_trace, clear_trace

load_dotenv()

# ---------------------------------------------------------------------------
# Sentry error tracking, gated on SENTRY_DSN; silent when unset (local dev)
# ---------------------------------------------------------------------------
_sentry_dsn = os.environ.get("SENTRY_DSN")
if _sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration

    def _sentry_before_send(event, hint):
        """Demote malformed request bodies to breadcrumbs; only unexpected errors become events."""
        exc_info = hint.get("exc_info")
        if exc_info:
            exc_type, exc_value, _ = exc_info
            if exc_type is not None and issubclass(exc_type, InvalidRequest):
                sentry_sdk.add_breadcrumb(
                    category="request",
                    message=str(exc_value),
                    level="warning",
                )
                return None
        return event

    sentry_sdk.init(
        dsn=_sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.0,
        release=os.environ.get("BUURTSCORE_RELEASE"),
        environment=os.environ.get("BUURTSCORE_ENVIRONMENT", "production"),
        before_send=_sentry_before_send,
    )

app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'buurtscore-dev-key')

# Behind a reverse proxy; remote_addr must be the client for rate limiting.
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Rate limiting.  In-memory storage is per-process.
# ---------------------------------------------------------------------------
RATE_LIMIT_DEFAULT = os.environ.get("RATE_LIMIT_DEFAULT", "60/minute")
RATE_LIMIT_EVAL = os.environ.get("RATE_LIMIT_EVAL", "30/minute")

limiter = Limiter(
    get_remote_address,
    app=app,
    default_limits=[RATE_LIMIT_DEFAULT],
    storage_uri="memory://",
)
logging.getLogger("flask-limiter").setLevel(logging.WARNING)

cache = LocationResultCache()
service = LocationScoringService(MultiLevelAggregator(), cache=cache)


# ---------------------------------------------------------------------------
# Request ID + trace middleware
# ---------------------------------------------------------------------------
def _generate_request_id():
    return uuid.uuid4().hex[:10]


@app.before_request
def _set_request_context():
    g.request_id = _generate_request_id()
    set_trace(TraceContext(trace_id=g.request_id))


@app.teardown_request
def _clear_request_context(exc):
    trace = get_trace()
    if trace is not None:
        trace.log_summary()
    clear_trace()


def _error(message, status=400):
    return jsonify({"error": message, "request_id": getattr(g, "request_id", "unknown")}), status


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

@app.route("/api/evaluate", methods=["POST"])
@limiter.limit(RATE_LIMIT_EVAL)
def evaluate():
    """Aggregate, score and rank one location.

    Body: {location, demographics, health, livability, safety, amenities,
    reference_houses, use_cache, save_snapshot}.
    """
    request_id = g.request_id
    payload = request.get_json(silent=True)
    if payload is None:
        return _error("Request body must be JSON")

    try:
        eval_request = request_from_dict(payload)
    except InvalidRequest as e:
        logger.info("[%s] Rejected evaluation request: %s", request_id, e)
        return _error(str(e))

    use_cache = bool(payload.get("use_cache", True))
    logger.info("[%s] Evaluating %s (use_cache=%s)", request_id, eval_request.location.address, use_cache)

    result = service.evaluate(eval_request, use_cache=use_cache)
    body = result.to_dict()

    if payload.get("save_snapshot"):
        body["snapshot_id"] = save_snapshot(
            eval_request.location.address,
            body["bundle"],
            persona_scores=body["persona_scores"],
            grades=body["grades"],
        )
        logger.info("[%s] Saved snapshot %s", request_id, body["snapshot_id"])

    body["request_id"] = request_id
    body["trace"] = get_trace().summary_dict()
    return jsonify(body)


@app.route("/api/snapshots/<snapshot_id>")
def view_snapshot(snapshot_id):
    snapshot = get_snapshot(snapshot_id)
    if not snapshot:
        return _error("Snapshot not found", 404)
    return jsonify({
        "snapshot_id": snapshot["snapshot_id"],
        "address": snapshot["address"],
        "created_at": snapshot["created_at"],
        "scoring_version": snapshot["scoring_version"],
        "overall_grade": snapshot["overall_grade"],
        "compatibility": snapshot["compatibility"].to_dict(),
        "result": snapshot["result"],
    })


@app.route("/api/cached/<path:address>")
def cached_bundle(address):
    """Cached bundle for an address, without re-scoring."""
    bundle = cache.get(address)
    if bundle is None:
        return _error("Not cached", 404)
    return jsonify({"address": address, "bundle": bundle})


# ---------------------------------------------------------------------------
# Cache maintenance
# ---------------------------------------------------------------------------

@app.route("/api/cache/stats")
@limiter.exempt
def cache_stats():
    return jsonify(cache.get_stats())


@app.route("/api/cache/cleanup", methods=["POST"])
def cache_cleanup():
    removed = cache.cleanup_expired()
    logger.info("[%s] Cache cleanup removed %d entries", g.request_id, removed)
    return jsonify({"removed": removed})


@app.route("/api/cache", methods=["DELETE"])
def cache_clear():
    removed = cache.clear_all()
    logger.info("[%s] Cache cleared (%d entries)", g.request_id, removed)
    return jsonify({"removed": removed})


@app.route("/api/cache/<path:address>", methods=["DELETE"])
def cache_remove(address):
    return jsonify({"removed": cache.remove(address)})


# ---------------------------------------------------------------------------
# Scoring version
# ---------------------------------------------------------------------------

@app.route("/api/scoring/version")
@limiter.exempt
def scoring_version():
    return jsonify({
        "current_version": CURRENT_SCORING_VERSION,
        "min_compatible_version": MIN_COMPATIBLE_VERSION,
        "changelog": changelog_dict(),
    })


@app.route("/healthz")
@limiter.exempt
def healthz():
    """Lightweight health-check endpoint for monitoring."""
    return jsonify({"status": "ok", "scoring_version": CURRENT_SCORING_VERSION})


init_db()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5001))
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG") == "1")
