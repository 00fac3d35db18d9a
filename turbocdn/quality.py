"""CDN quality assessment: latency, bandwidth and availability scoring."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from time import perf_counter
from typing import Iterable, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
NEUTRAL_SCORE = 50.0
MAX_LATENCY_MS = 500.0
REFERENCE_BANDWIDTH = 10.0 * MIB
FAILED_LATENCY_MS = 5000.0
FAILED_BANDWIDTH = 512.0 * 1024
DEFAULT_BANDWIDTH = 1.0 * MIB
EMA_ALPHA = 0.3
ASSESSMENT_PAUSE = 0.1

GITHUB_PROBE_URL = "https://raw.githubusercontent.com/octocat/Hello-World/master/README"
JSDELIVR_PROBE_URL = "https://cdn.jsdelivr.net/npm/lodash@4.17.21/package.json"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CdnMetrics:
    """Measured performance of one CDN endpoint.

    ``latency_ms`` is in milliseconds, ``bandwidth_bps`` in bytes per second,
    ``success_rate`` and ``availability`` in 0.0..1.0 and ``quality_score``
    in 0.0..100.0.
    """

    latency_ms: float = 0.0
    bandwidth_bps: float = 0.0
    success_rate: float = 1.0
    availability: float = 1.0
    quality_score: float = NEUTRAL_SCORE
    last_updated: datetime = field(default_factory=_utcnow)
    test_count: int = 0


def calculate_quality_score(latency: float, bandwidth: float, availability: float) -> float:
    """Combine latency (40%), bandwidth (40%) and availability (20%) into 0..100."""
    latency_score = max((MAX_LATENCY_MS - min(latency, MAX_LATENCY_MS)) / MAX_LATENCY_MS * 100.0, 0.0)
    bandwidth_score = max(min(bandwidth / REFERENCE_BANDWIDTH, 1.0) * 100.0, 0.0)
    availability_score = availability * 100.0
    score = latency_score * 0.4 + bandwidth_score * 0.4 + availability_score * 0.2
    return min(max(score, 0.0), 100.0)


def _elapsed_ms(start: float) -> int:
    return int((perf_counter() - start) * 1000)


class CdnQualityAssessor:
    """Probes CDN endpoints and keeps smoothed quality metrics for each."""

    def __init__(self, timeout: float = 30.0, test_urls: Iterable[str] = ()) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._test_urls = list(test_urls)
        self._metrics: dict[str, CdnMetrics] = {}

    def __repr__(self) -> str:
        return f"CdnQualityAssessor(test_urls={self._test_urls!r})"

    async def __aenter__(self) -> "CdnQualityAssessor":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def assess_cdn_quality(self, cdn_url: str) -> CdnMetrics:
        """Probe ``cdn_url``, fold the result into stored metrics and return the fresh measurement."""
        logger.info("Assessing CDN quality for: %s", cdn_url)
        start = perf_counter()

        latency = await self._test_latency(cdn_url)
        bandwidth = await self._test_bandwidth(cdn_url)
        availability = await self._test_availability(cdn_url)
        score = calculate_quality_score(latency, bandwidth, availability)

        metrics = CdnMetrics(
            latency_ms=latency,
            bandwidth_bps=bandwidth,
            success_rate=1.0 if availability > 0.0 else 0.0,
            availability=availability,
            quality_score=score,
            last_updated=_utcnow(),
            test_count=1,
        )
        self._update_metrics(cdn_url, metrics)

        logger.debug(
            "CDN assessment completed in %.2fs: %s (score: %.1f)",
            perf_counter() - start,
            cdn_url,
            score,
        )
        return metrics

    async def _test_latency(self, url: str) -> float:
        start = perf_counter()
        try:
            response = await self._client.head(url)
        except httpx.HTTPError:
            return FAILED_LATENCY_MS
        latency = float(_elapsed_ms(start))
        # A 404 on HEAD is normal for some CDNs.
        if response.status_code in (200, 404):
            return latency
        return latency * 2.0

    async def _test_bandwidth(self, base_url: str) -> float:
        if "github.com" in base_url:
            probe_url = GITHUB_PROBE_URL
        elif "jsdelivr.net" in base_url:
            probe_url = JSDELIVR_PROBE_URL
        else:
            return await self._estimate_bandwidth_from_latency(base_url)

        start = perf_counter()
        try:
            response = await self._client.get(probe_url)
        except httpx.HTTPError:
            return FAILED_BANDWIDTH
        elapsed = perf_counter() - start
        size = float(len(response.content))
        if int(elapsed * 1000) > 0 and size > 0.0:
            return size / elapsed
        return DEFAULT_BANDWIDTH

    async def _estimate_bandwidth_from_latency(self, url: str) -> float:
        latency = await self._test_latency(url)
        if latency < 50.0:
            return 10.0 * MIB
        if latency < 100.0:
            return 5.0 * MIB
        if latency < 200.0:
            return 2.0 * MIB
        return 1.0 * MIB

    async def _test_availability(self, url: str) -> float:
        try:
            response = await self._client.head(url)
        except httpx.HTTPError:
            return 0.0
        if 200 <= response.status_code < 500:
            return 1.0
        return 0.5

    def _update_metrics(self, cdn_url: str, new: CdnMetrics) -> None:
        existing = self._metrics.get(cdn_url)
        if existing is None:
            self._metrics[cdn_url] = replace(new)
            return

        keep = 1.0 - EMA_ALPHA
        existing.latency_ms = existing.latency_ms * keep + new.latency_ms * EMA_ALPHA
        existing.bandwidth_bps = existing.bandwidth_bps * keep + new.bandwidth_bps * EMA_ALPHA
        existing.availability = existing.availability * keep + new.availability * EMA_ALPHA
        existing.quality_score = calculate_quality_score(
            existing.latency_ms, existing.bandwidth_bps, existing.availability
        )
        existing.last_updated = _utcnow()
        existing.test_count += 1

    def metrics_for(self, cdn_url: str) -> Optional[CdnMetrics]:
        """A copy of the stored metrics for ``cdn_url``, or None if never assessed."""
        metrics = self._metrics.get(cdn_url)
        return replace(metrics) if metrics is not None else None

    def all_metrics_sorted(self) -> list[tuple[str, CdnMetrics]]:
        """All stored metrics, best quality score first."""
        items = [(url, replace(m)) for url, m in self._metrics.items()]
        items.sort(key=lambda item: item[1].quality_score, reverse=True)
        return items

    def sort_urls_by_quality(self, urls: Sequence[str]) -> list[str]:
        """Order ``urls`` by stored score, best first; unknown URLs count as neutral."""
        def score(url: str) -> float:
            metrics = self._metrics.get(url)
            return metrics.quality_score if metrics is not None else NEUTRAL_SCORE

        return sorted(urls, key=score, reverse=True)

    async def background_assessment(self) -> None:
        """Assess every configured test URL in turn, pausing briefly between them."""
        logger.info("Starting background CDN quality assessment")
        for url in self._test_urls:
            try:
                await self.assess_cdn_quality(url)
            except Exception as exc:  # one bad endpoint must not stop the sweep
                logger.warning("Failed to assess CDN quality for %s: %s", url, exc)
            await asyncio.sleep(ASSESSMENT_PAUSE)
        logger.info("Background CDN quality assessment completed")

    def assessment_summary(self) -> dict[str, float]:
        """Quality score of every assessed URL."""
        return {url: m.quality_score for url, m in self._metrics.items()}