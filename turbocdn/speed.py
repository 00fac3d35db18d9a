"""Real-time speed tracking and adaptive tuning of download parameters."""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from statistics import fmean
from time import monotonic
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

KIB = 1024
MIB = 1024 * 1024

MAX_SAMPLES = 100
MIN_SAMPLES_FOR_ADAPTATION = 5
ADAPTATION_INTERVAL = 10.0
RECENT_WINDOW = 10
CURRENT_SPEED_WINDOW = 5


def _now() -> float:
    return monotonic()


@dataclass
class SpeedSample:
    """One speed measurement; ``speed`` is bytes per second, ``duration`` seconds."""

    speed: float
    bytes: int
    duration: float
    concurrent_connections: int
    chunk_size: int
    server_url: str
    timestamp: float = field(default_factory=lambda: monotonic())


class NetworkCondition(Enum):
    """Network quality classified by throughput in MB/s."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    VERY_POOR = "very_poor"

    @classmethod
    def from_speed(cls, speed_mbps: float) -> "NetworkCondition":
        """Classify a speed given in MB/s."""
        if speed_mbps >= 50.0:
            return cls.EXCELLENT
        if speed_mbps >= 10.0:
            return cls.GOOD
        if speed_mbps >= 1.0:
            return cls.FAIR
        if speed_mbps >= 0.1:
            return cls.POOR
        return cls.VERY_POOR

    def recommended_concurrency(self) -> int:
        """Suggested number of concurrent connections."""
        return _CONCURRENCY[self]

    def recommended_chunk_size(self) -> int:
        """Suggested chunk size in bytes."""
        return _CHUNK_SIZE[self]


_CONCURRENCY = {
    NetworkCondition.EXCELLENT: 64,
    NetworkCondition.GOOD: 32,
    NetworkCondition.FAIR: 16,
    NetworkCondition.POOR: 8,
    NetworkCondition.VERY_POOR: 4,
}

_CHUNK_SIZE = {
    NetworkCondition.EXCELLENT: 8 * MIB,
    NetworkCondition.GOOD: 4 * MIB,
    NetworkCondition.FAIR: 2 * MIB,
    NetworkCondition.POOR: 1 * MIB,
    NetworkCondition.VERY_POOR: 512 * KIB,
}


@dataclass
class AdaptiveParams:
    """Current tuned download parameters; ``timeout`` is in seconds."""

    concurrent_connections: int = 16
    chunk_size: int = 2 * MIB
    timeout: float = 30.0
    retry_attempts: int = 3
    network_condition: NetworkCondition = NetworkCondition.FAIR
    confidence: float = 0.5
    last_adjusted: float = field(default_factory=lambda: monotonic())


class SpeedTrend(Enum):
    """Direction in which speed is moving across a sample window."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


def analyze_trend(samples: Sequence[SpeedSample]) -> SpeedTrend:
    """Compare the mean speed of the second half of ``samples`` with the first half."""
    if len(samples) < 3:
        return SpeedTrend.STABLE

    speeds = [s.speed for s in samples]
    middle = len(speeds) // 2
    first = fmean(speeds[:middle])
    second = fmean(speeds[middle:])

    if first == 0:
        if second > 0:
            return SpeedTrend.IMPROVING
        if second < 0:
            return SpeedTrend.DECLINING
        return SpeedTrend.STABLE

    change_ratio = (second - first) / first
    if change_ratio > 0.1:
        return SpeedTrend.IMPROVING
    if change_ratio < -0.1:
        return SpeedTrend.DECLINING
    return SpeedTrend.STABLE


@dataclass
class SpeedStats:
    """Summary of the recorded speeds in bytes per second."""

    min_speed: float = 0.0
    max_speed: float = 0.0
    avg_speed: float = 0.0
    sample_count: int = 0
    latest_speed: Optional[float] = None


def _best_by_mean_speed(samples: Iterable[SpeedSample], key, default: int) -> int:
    groups: dict[int, list[float]] = {}
    for sample in samples:
        groups.setdefault(key(sample), []).append(sample.speed)

    best, best_speed = default, 0.0
    for value, speeds in groups.items():
        avg = fmean(speeds)
        if avg > best_speed:
            best, best_speed = value, avg
    return best


def _confidence(samples: Sequence[SpeedSample]) -> float:
    if len(samples) < 3:
        return 0.3
    speeds = [s.speed for s in samples]
    mean = fmean(speeds)
    if mean == 0:
        return 0.1
    variance = fmean((s - mean) ** 2 for s in speeds)
    cv = math.sqrt(variance) / mean
    return max(1.0 - min(cv, 1.0), 0.1)


class AdaptiveSpeedController:
    """Collects speed samples and retunes download parameters from them."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._samples: deque[SpeedSample] = deque(maxlen=MAX_SAMPLES)
        self._params = AdaptiveParams()

    def record_sample(self, sample: SpeedSample) -> None:
        """Store a sample and adapt parameters when enough time and data have accrued."""
        with self._lock:
            self._samples.append(sample)
            logger.debug(
                "Recorded speed sample: %.2f MB/s (%d bytes in %.3fs)",
                sample.speed / MIB,
                sample.bytes,
                sample.duration,
            )
            if (
                len(self._samples) >= MIN_SAMPLES_FOR_ADAPTATION
                and _now() - self._params.last_adjusted >= ADAPTATION_INTERVAL
            ):
                self._adapt()

    def _adapt(self) -> None:
        if len(self._samples) < MIN_SAMPLES_FOR_ADAPTATION:
            return

        recent = list(reversed(self._samples))[:RECENT_WINDOW]
        speed_mbps = fmean(s.speed for s in recent) / MIB
        trend = analyze_trend(recent)
        old = replace(self._params)
        params = self._params

        params.network_condition = NetworkCondition.from_speed(speed_mbps)

        best_concurrency = _best_by_mean_speed(
            recent, lambda s: s.concurrent_connections, 16
        )
        if trend is SpeedTrend.IMPROVING:
            best_concurrency = int(best_concurrency * 1.2)
        elif trend is SpeedTrend.DECLINING:
            best_concurrency = int(best_concurrency * 0.8)
        params.concurrent_connections = min(max(best_concurrency, 4), 128)

        best_chunk = _best_by_mean_speed(recent, lambda s: s.chunk_size, 2 * MIB)
        blended = (best_chunk + params.network_condition.recommended_chunk_size()) // 2
        params.chunk_size = min(max(blended, 128 * KIB), 16 * MIB)

        avg_response_ms = fmean(int(s.duration * 1000) for s in recent)
        params.timeout = max(int(avg_response_ms * 3.0) / 1000.0, 10.0)

        params.confidence = _confidence(recent)
        params.last_adjusted = _now()

        logger.info(
            "Adapted parameters: concurrency %d -> %d, chunk_size %dKB -> %dKB, "
            "condition %s, confidence %.2f",
            old.concurrent_connections,
            params.concurrent_connections,
            old.chunk_size // 1024,
            params.chunk_size // 1024,
            params.network_condition.name,
            params.confidence,
        )

    def params(self) -> AdaptiveParams:
        """A copy of the current adaptive parameters."""
        with self._lock:
            return replace(self._params)

    def current_speed(self) -> Optional[float]:
        """Mean speed of the five most recent samples, or None without samples."""
        with self._lock:
            if not self._samples:
                return None
            recent = list(reversed(self._samples))[:CURRENT_SPEED_WINDOW]
            return fmean(s.speed for s in recent)

    def speed_stats(self) -> SpeedStats:
        """Minimum, maximum, mean and latest speed over all stored samples."""
        with self._lock:
            if not self._samples:
                return SpeedStats()
            speeds = [s.speed for s in self._samples]
            return SpeedStats(
                min_speed=min(speeds),
                max_speed=max(speeds),
                avg_speed=fmean(speeds),
                sample_count=len(speeds),
                latest_speed=speeds[-1],
            )

    def reset(self) -> None:
        """Drop all samples and restore default parameters."""
        with self._lock:
            self._samples.clear()
            self._params = AdaptiveParams()
        logger.info("Adaptive speed controller reset")