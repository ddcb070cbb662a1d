"""
Metrics Collection for the Connector

Collects in-memory metrics for:
- Remote reads (queries, pages, records, point lookups, probes)
- Session lifecycle (authentications by method, failures, reconnects)
- Processing times per stage (average, p95)

Nothing is persisted; the host decides whether to export a snapshot.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class ReadMetrics:
    """Counters for remote read operations."""
    queries: int = 0
    pages: int = 0
    records: int = 0
    lookups: int = 0
    probes: int = 0
    failures: int = 0

    # By object type
    by_object: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"queries": 0, "records": 0, "lookups": 0})
    )


@dataclass
class SessionMetrics:
    """Counters for authentication and re-authentication."""
    authentications: int = 0
    auth_failures: int = 0
    reconnects: int = 0

    # By auth method
    by_method: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"authentications": 0, "failures": 0})
    )


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: Optional[str] = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: Optional[str] = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: Optional[str] = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the connector.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_query("Account")
        metrics.record_authentication("jwt")
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.reads = ReadMetrics()
        self.sessions = SessionMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Read Metrics
    # =========================================================================

    def record_query(self, object_type: Optional[str] = None):
        with self._lock:
            self.reads.queries += 1
            if object_type:
                self.reads.by_object[object_type]["queries"] += 1

    def record_page(self, record_count: int, object_type: Optional[str] = None):
        """Record one fetched page and the records it carried."""
        with self._lock:
            self.reads.pages += 1
            self.reads.records += record_count
            if object_type:
                self.reads.by_object[object_type]["records"] += record_count

    def record_lookup(self, object_type: Optional[str] = None):
        with self._lock:
            self.reads.lookups += 1
            if object_type:
                self.reads.by_object[object_type]["lookups"] += 1

    def record_probe(self):
        with self._lock:
            self.reads.probes += 1

    def record_read_failure(self):
        with self._lock:
            self.reads.failures += 1

    # =========================================================================
    # Session Metrics
    # =========================================================================

    def record_authentication(self, method: str):
        with self._lock:
            self.sessions.authentications += 1
            self.sessions.by_method[method]["authentications"] += 1

    def record_auth_failure(self, method: str):
        with self._lock:
            self.sessions.auth_failures += 1
            self.sessions.by_method[method]["failures"] += 1

    def record_reconnect(self):
        with self._lock:
            self.sessions.reconnects += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: Optional[str] = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "reads": {
                    "queries": self.reads.queries,
                    "pages": self.reads.pages,
                    "records": self.reads.records,
                    "lookups": self.reads.lookups,
                    "probes": self.reads.probes,
                    "failures": self.reads.failures,
                    "by_object": {k: dict(v) for k, v in self.reads.by_object.items()},
                },
                "sessions": {
                    "authentications": self.sessions.authentications,
                    "auth_failures": self.sessions.auth_failures,
                    "reconnects": self.sessions.reconnects,
                    "by_method": {k: dict(v) for k, v in self.sessions.by_method.items()},
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_processing_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_processing_time(stage, duration_ms)
