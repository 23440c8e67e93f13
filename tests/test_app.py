"""Integration tests for the Flask JSON API in app.py."""

import sqlite3
from unittest.mock import patch

from scoring_version import CURRENT_SCORING_VERSION, MIN_COMPATIBLE_VERSION


def _evaluate(client, payload):
    return client.post("/api/evaluate", json=payload)


# =========================================================================
# POST /api/evaluate
# =========================================================================

class TestEvaluateEndpoint:
    def test_success(self, client, evaluation_payload):
        resp = _evaluate(client, evaluation_payload)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["from_cache"] is False
        assert len(body["persona_scores"]) == 27
        assert body["persona_scores"][0]["r_rank_position"] == 1
        assert body["grades"]["overall"] == 5.6
        assert body["scoring_metadata"]["scoring_algorithm_version"] == CURRENT_SCORING_VERSION
        assert len(body["request_id"]) == 10
        assert body["trace"]["final_outcome"] == "success"
        assert "snapshot_id" not in body

    def test_second_request_hits_cache(self, client, evaluation_payload):
        _evaluate(client, evaluation_payload)
        body = _evaluate(client, evaluation_payload).get_json()
        assert body["from_cache"] is True
        assert body["version_check"]["compatible"] is True
        assert "hit" in body["trace"]["cache_events"]

    def test_use_cache_false(self, client, evaluation_payload):
        _evaluate(client, evaluation_payload)
        evaluation_payload["use_cache"] = False
        assert _evaluate(client, evaluation_payload).get_json()["from_cache"] is False

    def test_save_snapshot(self, client, evaluation_payload):
        evaluation_payload["save_snapshot"] = True
        body = _evaluate(client, evaluation_payload).get_json()
        sid = body["snapshot_id"]
        snap = client.get(f"/api/snapshots/{sid}").get_json()
        assert snap["address"] == "Domplein 1, Utrecht"
        assert snap["overall_grade"] == 5.6
        assert snap["compatibility"]["message"] == "Snapshot uses current scoring version"
        assert snap["result"]["grades"]["overall"] == 5.6

    def test_non_json_body(self, client):
        resp = client.post("/api/evaluate", data="not json", content_type="text/plain")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Request body must be JSON"

    def test_missing_location(self, client):
        resp = _evaluate(client, {"health": {}})
        assert resp.status_code == 400
        body = resp.get_json()
        assert "location.address" in body["error"]
        assert body["request_id"]

    def test_unknown_level_rejected(self, client, evaluation_payload):
        evaluation_payload["health"]["provincie"] = {"raw": {}}
        assert _evaluate(client, evaluation_payload).status_code == 400

    def test_non_numeric_house_field_rejected(self, client, evaluation_payload):
        evaluation_payload["reference_houses"][0]["inner_surface_area"] = "80"
        resp = _evaluate(client, evaluation_payload)
        assert resp.status_code == 400
        assert "inner_surface_area" in resp.get_json()["error"]


# =========================================================================
# Snapshots and cached bundles
# =========================================================================

class TestReadEndpoints:
    def test_snapshot_not_found(self, client):
        resp = client.get("/api/snapshots/nope1234")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Snapshot not found"

    def test_cached_bundle(self, client, evaluation_payload):
        _evaluate(client, evaluation_payload)
        resp = client.get("/api/cached/Domplein 1, Utrecht")
        assert resp.status_code == 200
        assert resp.get_json()["bundle"]["location"]["address"] == "Domplein 1, Utrecht"

    def test_cached_bundle_missing(self, client):
        resp = client.get("/api/cached/Nergensstraat 1")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Not cached"


# =========================================================================
# Cache maintenance
# =========================================================================

class TestCacheEndpoints:
    def test_stats(self, client, evaluation_payload):
        _evaluate(client, evaluation_payload)
        stats = client.get("/api/cache/stats").get_json()
        assert stats["total_entries"] == 1
        assert stats["cached_addresses"] == ["Domplein 1, Utrecht"]

    def test_cleanup(self, client):
        assert client.post("/api/cache/cleanup").get_json() == {"removed": 0}

    def test_clear(self, client, evaluation_payload):
        _evaluate(client, evaluation_payload)
        assert client.delete("/api/cache").get_json() == {"removed": 1}
        assert client.get("/api/cache/stats").get_json()["total_entries"] == 0

    def test_remove_address(self, client, evaluation_payload):
        _evaluate(client, evaluation_payload)
        assert client.delete("/api/cache/Domplein 1, Utrecht").get_json() == {"removed": True}
        assert client.delete("/api/cache/Domplein 1, Utrecht").get_json() == {"removed": False}

    def test_cache_failure_degrades(self, client, evaluation_payload):
        with patch("models._get_db", side_effect=sqlite3.OperationalError("locked")):
            evaluation_payload["save_snapshot"] = False
            resp = _evaluate(client, evaluation_payload)
        assert resp.status_code == 200
        assert resp.get_json()["grades"]["overall"] == 5.6


# =========================================================================
# Version and health
# =========================================================================

class TestMetaEndpoints:
    def test_scoring_version(self, client):
        body = client.get("/api/scoring/version").get_json()
        assert body["current_version"] == CURRENT_SCORING_VERSION
        assert body["min_compatible_version"] == MIN_COMPATIBLE_VERSION
        assert CURRENT_SCORING_VERSION in body["changelog"]

    def test_healthz(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "scoring_version": CURRENT_SCORING_VERSION}
