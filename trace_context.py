"""
Request-scoped tracing for location scoring.

A thread-local TraceContext records:
  - Per-stage timing (parse, aggregate, score, rank, grade, cache_read,
    cache_write) with row counts and errors
  - Cache events (hit, miss, stale, stored, rejected)
  - An end-of-request summary (total elapsed, outcome)

Usage:
    from trace_context import TraceContext, get_trace, set_trace, clear_trace

    ctx = TraceContext(trace_id=request_id)
    set_trace(ctx)
    ...
    ctx.log_summary()
    clear_trace()

    # inside the service
    trace = get_trace()
    if trace:
        with trace.stage("aggregate") as rec:
            bundle = aggregator.aggregate(...)
            rec.rows = len(...)
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

STAGE_PARSE = "parse"
STAGE_AGGREGATE = "aggregate"
STAGE_SCORE = "score"
STAGE_RANK = "rank"
STAGE_GRADE = "grade"
STAGE_CACHE_READ = "cache_read"
STAGE_CACHE_WRITE = "cache_write"


# =============================================================================
# Records
# =============================================================================

@dataclass
class StageRecord:
    stage_name: str
    start_ts: float = 0.0
    end_ts: float = 0.0
    elapsed_ms: int = 0
    rows: int = 0
    skipped: bool = False
    error_class: str = ""
    error_message: str = ""


@dataclass
class CacheEvent:
    event: str        # "hit" | "miss" | "stale" | "rejected" | "stored"
    key: str
    detail: str = ""


# =============================================================================
# Trace context
# =============================================================================

@dataclass
class TraceContext:
    """Accumulates timing data for a single scoring request."""
    trace_id: str
    clock: Callable[[], float] = time.time
    request_start: float = 0.0
    stages: List[StageRecord] = field(default_factory=list)
    cache_events: List[CacheEvent] = field(default_factory=list)
    scoring_version: str = ""

    def __post_init__(self):
        if not self.request_start:
            self.request_start = self.clock()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def record_stage(
        self,
        stage_name: str,
        start_ts: float,
        end_ts: float,
        rows: int = 0,
        skipped: bool = False,
        error_class: str = "",
        error_message: str = "",
    ) -> StageRecord:
        rec = StageRecord(
            stage_name=stage_name,
            start_ts=start_ts,
            end_ts=end_ts,
            elapsed_ms=int((end_ts - start_ts) * 1000),
            rows=rows,
            skipped=skipped,
            error_class=error_class,
            error_message=error_message,
        )
        self.stages.append(rec)

        status = "SKIP" if skipped else ("ERR" if error_class else "OK")
        err_info = f" err={error_class}: {error_message}" if error_class else ""
        logger.info(
            "  [stage] trace=%s %s %s %dms rows=%d%s",
            self.trace_id, stage_name, status, rec.elapsed_ms, rows, err_info,
        )
        return rec

    @contextmanager
    def stage(self, stage_name: str) -> Iterator[StageRecord]:
        """Time a block; exceptions are recorded and re-raised."""
        pending = StageRecord(stage_name=stage_name)
        start = self.clock()
        try:
            yield pending
        except Exception as e:
            self.record_stage(
                stage_name, start, self.clock(), rows=pending.rows,
                error_class=type(e).__name__, error_message=str(e),
            )
            raise
        self.record_stage(stage_name, start, self.clock(), rows=pending.rows, skipped=pending.skipped)

    def skip_stage(self, stage_name: str) -> None:
        now = self.clock()
        self.record_stage(stage_name, now, now, skipped=True)

    # ------------------------------------------------------------------
    # Cache events
    # ------------------------------------------------------------------

    def record_cache_event(self, event: str, key: str, detail: str = "") -> None:
        self.cache_events.append(CacheEvent(event, key, detail))
        logger.info("  [cache] trace=%s %s key=%s %s", self.trace_id, event, key, detail)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _stage_counts(self) -> Dict[str, int]:
        counts = {"ok": 0, "skipped": 0, "errored": 0}
        for s in self.stages:
            if s.skipped:
                counts["skipped"] += 1
            elif s.error_class:
                counts["errored"] += 1
            else:
                counts["ok"] += 1
        return counts

    @staticmethod
    def _outcome(ok: int, errored: int) -> str:
        if errored:
            return "partial" if ok else "error"
        return "success" if ok else "empty"

    def summary_dict(self) -> Dict[str, Any]:
        counts = self._stage_counts()
        result = {
            "trace_id": self.trace_id,
            "total_elapsed_ms": int((self.clock() - self.request_start) * 1000),
            "stages_completed": counts["ok"],
            "stages_skipped": counts["skipped"],
            "stages_errored": counts["errored"],
            "final_outcome": self._outcome(counts["ok"], counts["errored"]),
            "cache_events": [e.event for e in self.cache_events],
            "stages": self.stages_to_list(),
        }
        if self.scoring_version:
            result["scoring_version"] = self.scoring_version
        return result

    def log_summary(self) -> None:
        s = self.summary_dict()
        logger.info(
            "[trace-summary] trace=%s total_ms=%d completed=%d skipped=%d errored=%d cache=%s outcome=%s",
            s["trace_id"],
            s["total_elapsed_ms"],
            s["stages_completed"],
            s["stages_skipped"],
            s["stages_errored"],
            ",".join(s["cache_events"]) or "-",
            s["final_outcome"],
        )

    def stages_to_list(self) -> List[Dict[str, Any]]:
        return [
            {
                "stage": s.stage_name,
                "elapsed_ms": s.elapsed_ms,
                "rows": s.rows,
                "skipped": s.skipped,
                "error": f"{s.error_class}: {s.error_message}" if s.error_class else None,
            }
            for s in self.stages
        ]


# =============================================================================
# Thread-local storage
# =============================================================================

_trace_local = threading.local()


def get_trace() -> Optional[TraceContext]:
    """Get the current request's trace context, or None."""
    return getattr(_trace_local, "ctx", None)


def set_trace(ctx: Optional[TraceContext]):
    _trace_local.ctx = ctx


def clear_trace():
    _trace_local.ctx = None


@contextmanager
def traced_stage(stage_name: str) -> Iterator[StageRecord]:
    """trace.stage() when a trace is active, a throwaway record otherwise."""
    ctx = get_trace()
    if ctx is None:
        yield StageRecord(stage_name=stage_name)
        return
    with ctx.stage(stage_name) as rec:
        yield rec
