"""Monitoring module for the task engine."""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .logging_ import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class HealthStatus:
    """Health status information."""
    status: str
    version: str
    uptime_seconds: float
    components: Dict[str, Dict[str, Any]]
    timestamp: datetime


@dataclass
class Metric:
    """A single metric."""
    name: str
    value: float
    labels: Dict[str, str]
    timestamp: datetime
    metric_type: str


class MetricsCollector:
    """Collects application metrics.

    Worker threads record into the same collector, so every read and write
    goes through one lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, float] = {}
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, List[float]] = {}

    def counter(self, name: str, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        """Set a gauge value."""
        key = self._make_key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        """Record a histogram value."""
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms.setdefault(key, []).append(value)

    def _make_key(self, name: str, labels: Optional[Dict[str, str]] = None) -> str:
        """Create a unique key for a metric."""
        if labels:
            label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
            return f"{name}{{{label_str}}}"
        return name

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Get a counter value."""
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def get_gauge(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Get a gauge value."""
        key = self._make_key(name, labels)
        with self._lock:
            return self._gauges.get(key, 0)

    def get_histogram_percentile(
        self, name: str, percentile: float, labels: Optional[Dict[str, str]] = None
    ) -> float:
        """Get a histogram percentile value."""
        key = self._make_key(name, labels)
        with self._lock:
            values = sorted(self._histograms.get(key, []))
        if not values:
            return 0.0

        index = int(len(values) * percentile / 100)
        return values[min(index, len(values) - 1)]

    def get_all_metrics(self) -> List[Metric]:
        """Snapshot every metric."""
        now = utcnow()
        with self._lock:
            counters = list(self._counters.items())
            gauges = list(self._gauges.items())
            histograms = [(k, list(v)) for k, v in self._histograms.items()]

        metrics = []
        for key, value in counters:
            name, labels = self._parse_key(key)
            metrics.append(Metric(name, value, labels, now, "counter"))

        for key, value in gauges:
            name, labels = self._parse_key(key)
            metrics.append(Metric(name, value, labels, now, "gauge"))

        for key, values in histograms:
            name, labels = self._parse_key(key)
            metrics.append(Metric(name, sum(values) / len(values), labels, now, "histogram"))

        return metrics

    def _parse_key(self, key: str) -> tuple:
        """Parse a metric key into name and labels."""
        if "{" in key:
            name, label_str = key.split("{", 1)
            labels = {}
            for part in label_str.rstrip("}").split(","):
                if "=" in part:
                    k, v = part.split("=", 1)
                    labels[k] = v
            return name, labels
        return key, {}

    def format_prometheus(self) -> str:
        """Format metrics for Prometheus."""
        lines = ["# Task Engine Metrics", f"# Generated: {utcnow().isoformat()}", ""]

        for metric in self.get_all_metrics():
            labels_str = self._format_labels(metric.labels)
            if metric.metric_type == "histogram":
                lines.append(f"# TYPE {metric.name} summary")
                key = self._make_key(metric.name, metric.labels)
                with self._lock:
                    values = list(self._histograms.get(key, []))
                lines.append(f"{metric.name}_count{labels_str} {len(values)}")
                lines.append(f"{metric.name}_sum{labels_str} {sum(values)}")
            else:
                lines.append(f"# TYPE {metric.name} {metric.metric_type}")
                lines.append(f"{metric.name}{labels_str} {metric.value}")

        return "\n".join(lines)

    def _format_labels(self, labels: Dict[str, str]) -> str:
        """Format labels for Prometheus."""
        if not labels:
            return ""
        return "{" + ",".join(f'{k}="{v}"' for k, v in sorted(labels.items())) + "}"

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()


class HealthChecker:
    """Checks health of application components."""

    def __init__(self):
        self._start_time = time.time()
        self._component_status: Dict[str, Dict[str, Any]] = {}

    def register_component(
        self,
        name: str,
        check_func: Callable[[], Awaitable[Dict[str, Any]]],
        critical: bool = True,
    ) -> None:
        """Register a component for health checks."""
        self._component_status[name] = {
            "check_func": check_func,
            "critical": critical,
            "last_check": None,
            "status": "unknown",
            "details": {},
        }

    async def check_all(self) -> Dict[str, Dict[str, Any]]:
        """Run all health checks."""
        results = {}

        for name, component in self._component_status.items():
            try:
                result = await component["check_func"]()
                component["status"] = "healthy" if result.get("healthy", True) else "unhealthy"
                component["details"] = result
            except Exception as e:
                logger.warning(f"Health check {name} raised: {e}")
                component["status"] = "error"
                component["details"] = {"error": str(e)}

            component["last_check"] = utcnow()
            results[name] = {k: v for k, v in component.items() if k != "check_func"}

        return results

    def get_overall_status(self, results: Dict[str, Dict[str, Any]]) -> str:
        """Determine overall health status."""
        unhealthy = [
            result for result in results.values()
            if result.get("status") in ["unhealthy", "error"]
        ]

        if any(result.get("critical") for result in unhealthy):
            return "unhealthy"

        if unhealthy:
            return "degraded"

        return "healthy"

    async def get_health_status(self, version: str) -> HealthStatus:
        """Get complete health status."""
        results = await self.check_all()

        return HealthStatus(
            status=self.get_overall_status(results),
            version=version,
            uptime_seconds=time.time() - self._start_time,
            components=results,
            timestamp=utcnow(),
        )
