import httpx
import pytest
import respx

from turbocdn.quality import (
    CdnMetrics,
    CdnQualityAssessor,
    calculate_quality_score,
)

GOOD = "https://good.example.com/file"
BAD = "https://bad.example.com/file"
ERR = "https://err.example.com/file"
UNKNOWN = "https://unknown.example.com/file"


def _mock_good(router):
    router.head(GOOD).mock(return_value=httpx.Response(200))


def _mock_bad(router):
    router.head(BAD).mock(side_effect=httpx.ConnectError("unreachable"))


def test_default_metrics_are_neutral():
    metrics = CdnMetrics()
    assert metrics.quality_score == 50.0
    assert metrics.success_rate == 1.0
    assert metrics.availability == 1.0
    assert metrics.test_count == 0


def test_quality_score_bounds():
    assert calculate_quality_score(0.0, 10 * 1024 * 1024, 1.0) == pytest.approx(100.0)
    assert calculate_quality_score(10_000.0, 0.0, 0.0) == pytest.approx(0.0)


@pytest.mark.parametrize("latency", [0.0, 100.0, 300.0, 499.0, 2000.0])
def test_quality_score_in_range_and_monotonic(latency):
    score = calculate_quality_score(latency, 2 * 1024 * 1024, 0.5)
    assert 0.0 <= score <= 100.0
    assert calculate_quality_score(latency + 50.0, 2 * 1024 * 1024, 0.5) <= score
    assert calculate_quality_score(latency, 4 * 1024 * 1024, 0.5) >= score
    assert calculate_quality_score(latency, 2 * 1024 * 1024, 1.0) > score


def test_bandwidth_is_capped():
    capped = calculate_quality_score(100.0, 10 * 1024 * 1024, 1.0)
    assert calculate_quality_score(100.0, 1000 * 1024 * 1024, 1.0) == pytest.approx(capped)


@pytest.mark.asyncio
async def test_assess_successful_cdn():
    with respx.mock(assert_all_called=False) as router:
        _mock_good(router)
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            metrics = await assessor.assess_cdn_quality(GOOD)
            stored = assessor.metrics_for(GOOD)

    assert metrics.availability == 1.0
    assert metrics.success_rate == 1.0
    assert metrics.test_count == 1
    assert metrics.bandwidth_bps in (
        10 * 1024 * 1024,
        5 * 1024 * 1024,
        2 * 1024 * 1024,
        1024 * 1024,
    )
    assert metrics.quality_score == pytest.approx(
        calculate_quality_score(metrics.latency_ms, metrics.bandwidth_bps, metrics.availability)
    )
    assert stored == metrics


@pytest.mark.asyncio
async def test_assess_unreachable_cdn():
    with respx.mock(assert_all_called=False) as router:
        _mock_bad(router)
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            metrics = await assessor.assess_cdn_quality(BAD)

    assert metrics.latency_ms == 5000.0
    assert metrics.availability == 0.0
    assert metrics.success_rate == 0.0
    assert metrics.bandwidth_bps == 1024 * 1024
    assert metrics.quality_score == pytest.approx(
        calculate_quality_score(5000.0, 1024 * 1024, 0.0)
    )


@pytest.mark.asyncio
async def test_server_error_is_partially_available():
    with respx.mock(assert_all_called=False) as router:
        router.head(ERR).mock(return_value=httpx.Response(503))
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            metrics = await assessor.assess_cdn_quality(ERR)

    assert metrics.availability == 0.5
    assert metrics.success_rate == 1.0


@pytest.mark.asyncio
async def test_github_bandwidth_probe_failure_penalty():
    url = "https://github.com/owner/repo/releases/download/v1/tool.zip"
    with respx.mock(assert_all_called=False) as router:
        router.head(url).mock(return_value=httpx.Response(200))
        router.get(
            "https://raw.githubusercontent.com/octocat/Hello-World/master/README"
        ).mock(side_effect=httpx.ConnectError("down"))
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            metrics = await assessor.assess_cdn_quality(url)

    assert metrics.bandwidth_bps == 512 * 1024
    assert metrics.availability == 1.0


@pytest.mark.asyncio
async def test_jsdelivr_bandwidth_probe_success():
    url = "https://cdn.jsdelivr.net/gh/owner/repo/file.js"
    with respx.mock(assert_all_called=False) as router:
        router.head(url).mock(return_value=httpx.Response(200))
        probe = router.get(
            "https://cdn.jsdelivr.net/npm/lodash@4.17.21/package.json"
        ).mock(return_value=httpx.Response(200, content=b'{"name": "lodash"}'))
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            metrics = await assessor.assess_cdn_quality(url)

    assert probe.called
    assert metrics.bandwidth_bps > 0.0


@pytest.mark.asyncio
async def test_repeated_assessment_smooths_metrics():
    with respx.mock(assert_all_called=False) as router:
        route = router.head(GOOD)
        route.mock(return_value=httpx.Response(200))
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            first = await assessor.assess_cdn_quality(GOOD)
            route.mock(side_effect=httpx.ConnectError("gone"))
            second = await assessor.assess_cdn_quality(GOOD)
            stored = assessor.metrics_for(GOOD)

    assert second.availability == 0.0
    assert stored.test_count == 2
    assert stored.availability == pytest.approx(0.7)
    assert first.latency_ms < stored.latency_ms < second.latency_ms
    assert stored.quality_score == pytest.approx(
        calculate_quality_score(stored.latency_ms, stored.bandwidth_bps, stored.availability)
    )


@pytest.mark.asyncio
async def test_unknown_url_has_no_metrics():
    async with CdnQualityAssessor() as assessor:
        assert assessor.metrics_for(UNKNOWN) is None
        assert assessor.all_metrics_sorted() == []
        assert assessor.assessment_summary() == {}


@pytest.mark.asyncio
async def test_sorting_by_quality():
    with respx.mock(assert_all_called=False) as router:
        _mock_good(router)
        _mock_bad(router)
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            await assessor.assess_cdn_quality(BAD)
            await assessor.assess_cdn_quality(GOOD)
            ordered = assessor.sort_urls_by_quality([BAD, UNKNOWN, GOOD])
            ranked = assessor.all_metrics_sorted()

    assert ordered == [GOOD, UNKNOWN, BAD]
    assert [url for url, _ in ranked] == [GOOD, BAD]
    assert ranked[0][1].quality_score >= ranked[1][1].quality_score


@pytest.mark.asyncio
async def test_background_assessment_covers_all_test_urls():
    with respx.mock(assert_all_called=False) as router:
        _mock_good(router)
        _mock_bad(router)
        async with CdnQualityAssessor(timeout=5.0, test_urls=[GOOD, BAD]) as assessor:
            await assessor.background_assessment()
            summary = assessor.assessment_summary()
            good = assessor.metrics_for(GOOD)
            bad = assessor.metrics_for(BAD)

    assert set(summary) == {GOOD, BAD}
    assert summary[GOOD] == good.quality_score
    assert summary[BAD] == bad.quality_score
    assert summary[GOOD] > summary[BAD]


@pytest.mark.asyncio
async def test_returned_metrics_are_copies():
    with respx.mock(assert_all_called=False) as router:
        _mock_good(router)
        async with CdnQualityAssessor(timeout=5.0) as assessor:
            await assessor.assess_cdn_quality(GOOD)
            copy = assessor.metrics_for(GOOD)
            copy.quality_score = -1.0
            assert assessor.metrics_for(GOOD).quality_score >= 0.0