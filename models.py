"""
SQLite persistence for BuurtScore: the location result cache and snapshots.

No ORM, just raw sqlite3.  The cache is best-effort: every storage failure
is logged and degrades to a miss / no-op, so a broken or full database
never stops a location from being scored.
"""

import json
import logging
import os
import re
import sqlite3
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from scoring_version import create_scoring_metadata, is_version_compatible

logger = logging.getLogger(__name__)

DB_PATH = os.environ.get("BUURTSCORE_DB_PATH", "buurtscore.db")
CACHE_TTL_SECONDS = int(os.environ.get("BUURTSCORE_CACHE_TTL_SECONDS", "86400"))
CACHE_MAX_BYTES = int(os.environ.get("BUURTSCORE_CACHE_MAX_BYTES", str(5 * 1024 * 1024)))
CACHE_EVICT_BATCH = int(os.environ.get("BUURTSCORE_CACHE_EVICT_BATCH", "5"))

CACHE_KEY_PREFIX = "buurtscore_location_"


def _get_db(db_path: Optional[str] = None):
    """Get a sqlite3 connection with WAL mode for concurrent reads."""
    conn = sqlite3.connect(db_path or DB_PATH, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db(db_path: Optional[str] = None):
    """Create tables if they don't exist. Safe to call on every startup."""
    conn = _get_db(db_path)
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS location_cache (
            cache_key       TEXT PRIMARY KEY,
            address         TEXT NOT NULL,
            entry_json      TEXT NOT NULL,
            size_bytes      INTEGER NOT NULL,
            cached_at_ms    REAL NOT NULL,
            ttl_ms          REAL NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_location_cache_cached ON location_cache(cached_at_ms);

        CREATE TABLE IF NOT EXISTS snapshots (
            snapshot_id     TEXT PRIMARY KEY,
            address         TEXT NOT NULL,
            address_norm    TEXT,
            created_at      TEXT NOT NULL,
            scoring_version TEXT,
            overall_grade   REAL,
            result_json     TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_snapshots_created ON snapshots(created_at);
    """)
    conn.commit()
    conn.close()


# ---------------------------------------------------------------------------
# Location result cache
# ---------------------------------------------------------------------------

def normalize_address(address: str) -> str:
    """"Hoofdstraat 1, Amsterdam" -> "hoofdstraat_1_amsterdam"."""
    text = str(address or "").lower().strip()
    text = re.sub(r"[^\w\s]", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text.replace(" ", "_")


def cache_key(address: str) -> str:
    return CACHE_KEY_PREFIX + normalize_address(address)


class CorruptEntry(ValueError):
    """A stored cache entry that cannot be decoded."""


@dataclass
class CacheEntry:
    address: str
    data: Dict[str, Any]
    amenities: Optional[Any]
    cached_at_ms: float
    ttl_ms: float
    scoring_version: Optional[str] = None

    def is_expired(self, now_ms: float) -> bool:
        return now_ms - self.cached_at_ms > self.ttl_ms


def _decode_entry(row) -> CacheEntry:
    try:
        payload = json.loads(row["entry_json"])
    except (json.JSONDecodeError, TypeError) as e:
        raise CorruptEntry(str(e)) from e
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise CorruptEntry("entry has no data object")
    return CacheEntry(
        address=payload.get("address") or row["address"],
        data=payload["data"],
        amenities=payload.get("amenities"),
        cached_at_ms=float(row["cached_at_ms"]),
        ttl_ms=float(row["ttl_ms"]),
        scoring_version=payload.get("scoring_version"),
    )


def _empty_stats() -> Dict[str, Any]:
    return {
        "total_entries": 0,
        "valid_entries": 0,
        "expired_entries": 0,
        "cache_size_bytes": 0,
        "cached_addresses": [],
    }


class LocationResultCache:
    """TTL- and size-bounded cache of scored location bundles.

    Keyed by normalized address.  Concurrent writers for the same address
    are last-write-wins.  ``clock`` returns seconds (time.time) and is
    injectable for tests.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        default_ttl_ms: Optional[float] = None,
        max_size_bytes: Optional[int] = None,
        evict_batch: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path
        self.default_ttl_ms = default_ttl_ms if default_ttl_ms is not None else CACHE_TTL_SECONDS * 1000
        self.max_size_bytes = max_size_bytes if max_size_bytes is not None else CACHE_MAX_BYTES
        self.evict_batch = evict_batch if evict_batch is not None else CACHE_EVICT_BATCH
        self._clock = clock

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _conn(self):
        return _get_db(self.db_path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_entry(self, address: str) -> Optional[CacheEntry]:
        """Valid entry for *address*, or None.  Expired/corrupt rows are deleted."""
        key = cache_key(address)
        try:
            conn = self._conn()
            try:
                row = conn.execute(
                    "SELECT * FROM location_cache WHERE cache_key = ?", (key,)
                ).fetchone()
                if not row:
                    return None
                try:
                    entry = _decode_entry(row)
                except CorruptEntry:
                    logger.warning("Dropping corrupt cache entry %s", key, exc_info=True)
                    conn.execute("DELETE FROM location_cache WHERE cache_key = ?", (key,))
                    conn.commit()
                    return None
                if entry.is_expired(self._now_ms()):
                    conn.execute("DELETE FROM location_cache WHERE cache_key = ?", (key,))
                    conn.commit()
                    return None
                return entry
            finally:
                conn.close()
        except Exception:
            logger.warning("Location cache lookup failed", exc_info=True)
            return None

    def get(self, address: str) -> Optional[Dict[str, Any]]:
        entry = self.get_entry(address)
        return entry.data if entry else None

    def has(self, address: str) -> bool:
        return self.get_entry(address) is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _total_size(self, conn, exclude_key: str = "") -> int:
        row = conn.execute(
            "SELECT COALESCE(SUM(size_bytes), 0) AS total FROM location_cache WHERE cache_key != ?",
            (exclude_key,),
        ).fetchone()
        return int(row["total"])

    def set(
        self,
        address: str,
        bundle: Dict[str, Any],
        amenities: Optional[Any] = None,
        ttl_ms: Optional[float] = None,
        scoring_version: Optional[str] = None,
    ) -> bool:
        """Store *bundle* for *address*.  Returns False when it could not be stored."""
        key = cache_key(address)
        ttl = ttl_ms if ttl_ms is not None else self.default_ttl_ms
        now = self._now_ms()
        try:
            payload = json.dumps({
                "address": address,
                "data": bundle,
                "amenities": amenities,
                "timestamp": now,
                "ttl": ttl,
                "scoring_version": scoring_version,
            }, default=str)
            size = len(payload.encode("utf-8"))
            if size > self.max_size_bytes:
                logger.warning("Cache entry for %s is %d bytes, over the %d byte limit", key, size, self.max_size_bytes)
                return False

            conn = self._conn()
            try:
                if self._total_size(conn, key) + size > self.max_size_bytes:
                    self._evict_oldest(conn, self.evict_batch)
                    if self._total_size(conn, key) + size > self.max_size_bytes:
                        logger.warning("Cache full after evicting %d entries; not storing %s", self.evict_batch, key)
                        return False
                conn.execute(
                    """INSERT OR REPLACE INTO location_cache
                       (cache_key, address, entry_json, size_bytes, cached_at_ms, ttl_ms)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (key, address, payload, size, now, ttl),
                )
                conn.commit()
            finally:
                conn.close()
            return True
        except Exception:
            logger.warning("Location cache write failed", exc_info=True)
            return False

    def remove(self, address: str) -> bool:
        try:
            conn = self._conn()
            try:
                cur = conn.execute("DELETE FROM location_cache WHERE cache_key = ?", (cache_key(address),))
                conn.commit()
                return cur.rowcount > 0
            finally:
                conn.close()
        except Exception:
            logger.warning("Location cache remove failed", exc_info=True)
            return False

    def clear_all(self) -> int:
        try:
            conn = self._conn()
            try:
                cur = conn.execute("DELETE FROM location_cache")
                conn.commit()
                return cur.rowcount
            finally:
                conn.close()
        except Exception:
            logger.warning("Location cache clear failed", exc_info=True)
            return 0

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    @staticmethod
    def _evict_oldest(conn, count: int) -> int:
        cur = conn.execute(
            """DELETE FROM location_cache WHERE cache_key IN (
                   SELECT cache_key FROM location_cache ORDER BY cached_at_ms ASC LIMIT ?
               )""",
            (count,),
        )
        conn.commit()
        return cur.rowcount

    def cleanup_oldest(self, count: Optional[int] = None) -> int:
        try:
            conn = self._conn()
            try:
                return self._evict_oldest(conn, count if count is not None else self.evict_batch)
            finally:
                conn.close()
        except Exception:
            logger.warning("Location cache eviction failed", exc_info=True)
            return 0

    def _scan(self, conn):
        """(key, entry or None) for every stored row; None marks corrupt rows."""
        for row in conn.execute("SELECT * FROM location_cache").fetchall():
            try:
                yield row, _decode_entry(row)
            except CorruptEntry:
                yield row, None

    def cleanup_expired(self) -> int:
        """Delete expired and corrupt entries.  Returns how many were removed."""
        try:
            conn = self._conn()
            try:
                now = self._now_ms()
                doomed = [
                    row["cache_key"]
                    for row, entry in self._scan(conn)
                    if entry is None or entry.is_expired(now)
                ]
                conn.executemany("DELETE FROM location_cache WHERE cache_key = ?", [(k,) for k in doomed])
                conn.commit()
            finally:
                conn.close()
            if doomed:
                logger.info("Removed %d expired or corrupt cache entries", len(doomed))
            return len(doomed)
        except Exception:
            logger.warning("Location cache cleanup failed", exc_info=True)
            return 0

    def get_stats(self) -> Dict[str, Any]:
        stats = _empty_stats()
        try:
            conn = self._conn()
            try:
                now = self._now_ms()
                for row, entry in self._scan(conn):
                    stats["total_entries"] += 1
                    stats["cache_size_bytes"] += int(row["size_bytes"])
                    if entry is None or entry.is_expired(now):
                        stats["expired_entries"] += 1
                    else:
                        stats["valid_entries"] += 1
                        stats["cached_addresses"].append(entry.address)
            finally:
                conn.close()
        except Exception:
            logger.warning("Location cache stats failed", exc_info=True)
            return _empty_stats()
        return stats


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def generate_snapshot_id():
    """Short, URL-safe snapshot ID (8 chars)."""
    return uuid.uuid4().hex[:8]


def save_snapshot(
    address: str,
    bundle_dict: Dict[str, Any],
    persona_scores: Optional[List[Dict[str, Any]]] = None,
    grades: Optional[Dict[str, Any]] = None,
    db_path: Optional[str] = None,
) -> str:
    """Persist a scored bundle with its scoring metadata. Returns the snapshot_id."""
    snapshot_id = generate_snapshot_id()
    metadata = create_scoring_metadata()
    result = {
        "bundle": bundle_dict,
        "persona_scores": persona_scores or [],
        "grades": grades,
        "scoring_metadata": metadata,
    }

    conn = _get_db(db_path)
    conn.execute(
        """INSERT INTO snapshots
           (snapshot_id, address, address_norm, created_at, scoring_version, overall_grade, result_json)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            snapshot_id,
            address,
            normalize_address(address),
            datetime.now(timezone.utc).isoformat(),
            metadata["scoring_algorithm_version"],
            (grades or {}).get("overall"),
            json.dumps(result, default=str),
        ),
    )
    conn.commit()
    conn.close()
    return snapshot_id


def get_snapshot(snapshot_id: str, db_path: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Load a snapshot by ID.  Returns its metadata, the parsed result and the
    VersionCompatibility of the stored scoring version, or None if missing.
    """
    conn = _get_db(db_path)
    row = conn.execute(
        "SELECT * FROM snapshots WHERE snapshot_id = ?", (snapshot_id,)
    ).fetchone()
    conn.close()

    if not row:
        return None

    data = dict(row)
    try:
        data["result"] = json.loads(data.pop("result_json"))
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("Corrupted result_json for snapshot %s: %s", snapshot_id, e)
        return None
    data["compatibility"] = is_version_compatible(data.get("scoring_version"))
    return data
