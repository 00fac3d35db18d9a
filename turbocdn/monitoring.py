"""Recording, aggregation and display of per-download performance metrics."""

from __future__ import annotations

import json
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field, replace
from statistics import fmean
from typing import Optional

DASHBOARD_RECENT = 5


def _unix_now() -> int:
    return int(time.time())


@dataclass
class DownloadMetrics:
    """Measurements for one download; ``timestamp`` is Unix seconds, ``download_time`` seconds."""

    timestamp: int = field(default_factory=_unix_now, kw_only=True)
    url: str
    file_size: int = 0
    download_time: float = 0.0
    speed_mbps: float = 0.0
    chunks_used: int = 0
    chunk_size: int = 0
    cdn_optimized: bool = False
    resume_count: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        """True when the download finished without an error."""
        return self.error is None


@dataclass
class PerformanceStats:
    """Aggregate figures over the recorded downloads; rates are percentages."""

    total_downloads: int = 0
    successful_downloads: int = 0
    failed_downloads: int = 0
    total_bytes: int = 0
    total_time: float = 0.0
    average_speed: float = 0.0
    peak_speed: float = 0.0
    cdn_optimization_rate: float = 0.0
    error_rate: float = 0.0


class PerformanceMonitor:
    """Keeps a bounded history of download metrics and summarises it."""

    def __init__(self, max_history: int) -> None:
        self._lock = threading.Lock()
        self._metrics: deque[DownloadMetrics] = deque(maxlen=max_history)

    def record_download(self, metric: DownloadMetrics) -> None:
        """Append a metric, dropping the oldest once the history is full."""
        with self._lock:
            self._metrics.append(metric)

    def stats(self) -> PerformanceStats:
        """Aggregate statistics over the stored history."""
        with self._lock:
            metrics = list(self._metrics)

        if not metrics:
            return PerformanceStats()

        total = len(metrics)
        successful = [m for m in metrics if m.succeeded]
        failed = total - len(successful)
        speeds = [m.speed_mbps for m in successful]
        optimized = sum(1 for m in metrics if m.cdn_optimized)

        return PerformanceStats(
            total_downloads=total,
            successful_downloads=len(successful),
            failed_downloads=failed,
            total_bytes=sum(m.file_size for m in successful),
            total_time=sum(m.download_time for m in successful),
            average_speed=fmean(speeds) if speeds else 0.0,
            peak_speed=max(speeds, default=0.0) if speeds and max(speeds) > 0.0 else 0.0,
            cdn_optimization_rate=optimized / total * 100.0,
            error_rate=failed / total * 100.0,
        )

    def recent_metrics(self, count: int) -> list[DownloadMetrics]:
        """Copies of the ``count`` most recent metrics, newest first."""
        with self._lock:
            newest_first = list(reversed(self._metrics))
        return [replace(m) for m in newest_first[:count]]

    def metrics_in_range(self, start_time: int, end_time: int) -> list[DownloadMetrics]:
        """Copies of metrics whose timestamp lies within ``start_time..end_time`` inclusive."""
        with self._lock:
            return [
                replace(m) for m in self._metrics if start_time <= m.timestamp <= end_time
            ]

    def export_metrics(self) -> str:
        """The stored history as a pretty-printed JSON array, oldest first."""
        with self._lock:
            records = [asdict(m) for m in self._metrics]
        return json.dumps(records, indent=2, ensure_ascii=False)

    def clear_metrics(self) -> None:
        """Forget all stored metrics."""
        with self._lock:
            self._metrics.clear()


def render_dashboard(monitor: PerformanceMonitor) -> str:
    """Text dashboard with overall figures and the most recent downloads."""
    stats = monitor.stats()
    recent = monitor.recent_metrics(DASHBOARD_RECENT)

    success_pct = (
        stats.successful_downloads / stats.total_downloads * 100.0
        if stats.total_downloads > 0
        else 0.0
    )

    lines = [
        "📊 Turbo CDN Performance Dashboard",
        "==================================",
        "",
        "📈 Overall Statistics:",
        f"   📋 Total downloads: {stats.total_downloads}",
        f"   ✅ Successful: {stats.successful_downloads} ({success_pct:.1f}%)",
        f"   ❌ Failed: {stats.failed_downloads} ({stats.error_rate:.1f}%)",
        f"   📦 Total data: {stats.total_bytes / 1_000_000.0:.2f} MB",
        f"   ⏱️  Total time: {stats.total_time:.2f}s",
        "",
        "⚡ Performance Metrics:",
        f"   📊 Average speed: {stats.average_speed:.2f} MB/s",
        f"   🚀 Peak speed: {stats.peak_speed:.2f} MB/s",
        f"   🌐 CDN optimization rate: {stats.cdn_optimization_rate:.1f}%",
    ]

    if recent:
        lines += ["", "📋 Recent Downloads:"]
        for position, metric in enumerate(recent, start=1):
            status = "✅" if metric.succeeded else "❌"
            cdn_status = "🚀" if metric.cdn_optimized else "📡"
            name = metric.url.rsplit("/", 1)[-1]
            suffix = f"({metric.error})" if metric.error is not None else ""
            lines.append(
                f"   {position}. {status} {cdn_status} {metric.speed_mbps:.2f} MB/s - "
                f"{name} {suffix}"
            )

    lines.append("==================================")
    return "\n".join(lines)