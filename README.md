# turbocdn

Building blocks for tuning and observing downloads:

- `turbocdn.speed` adapts concurrency, chunk size and timeout to observed download speeds.
- `turbocdn.quality` scores CDN endpoints by latency, bandwidth and availability.
- `turbocdn.monitoring` records per-download metrics and summarises them.
- `turbocdn.options` describes download settings, validates them and offers presets.

## Installation

```
pip install turbocdn
```

You need Python 3.10 or later. The only runtime dependency is `httpx`, and only `turbocdn.quality` uses it.

## `turbocdn.speed`: adaptive speed control

A `SpeedSample` holds one measurement:

- `speed` in bytes per second,
- `bytes`,
- `duration` in seconds,
- `concurrent_connections`,
- `chunk_size`,
- `server_url`.

`AdaptiveSpeedController` keeps the 100 most recent samples and is safe to share between threads. On every `record_sample` call it checks two conditions: at least five samples are stored, and ten seconds have passed since the parameters were last adjusted (counting from when the controller was created). When both hold, it retunes its `AdaptiveParams` from the ten most recent samples:

- **network condition**: from their mean speed.
- **concurrent connections**: the connection count with the best mean speed, raised by 20% for an improving trend or lowered by 20% for a declining one, kept within 4..128.
- **chunk size**: the average of the best-performing chunk size and the size the condition recommends, kept within 128 KiB..16 MiB.
- **timeout**: three times the mean sample duration, at least 10 seconds.
- **confidence**: taken from how stable the speeds are.

Other methods:

- `params()` returns a copy of the current parameters.
- `current_speed()` returns the mean of the last five samples, or `None` if there are none.
- `speed_stats()` returns a `SpeedStats` with min, max, mean, count and latest speed.
- `reset()` drops all samples and restores the default parameters.

`NetworkCondition.from_speed(mbps)` classifies a speed given in MB/s:

| Condition | Speed | `recommended_concurrency()` | `recommended_chunk_size()` |
|---|---|---|---|
| `EXCELLENT` | ≥ 50 | 64 | 8 MiB |
| `GOOD` | ≥ 10 | 32 | 4 MiB |
| `FAIR` | ≥ 1 | 16 | 2 MiB |
| `POOR` | ≥ 0.1 | 8 | 1 MiB |
| `VERY_POOR` | below 0.1 | 4 | 512 KiB |

`analyze_trend(samples)` compares the mean speed of the second half of the samples with the first half. It returns a `SpeedTrend`:

- `IMPROVING` when the change is more than +10%,
- `DECLINING` when the change is less than −10%,
- `STABLE` otherwise, and always when there are fewer than three samples.

```python
from turbocdn.speed import AdaptiveSpeedController, NetworkCondition, SpeedSample

controller = AdaptiveSpeedController()
controller.record_sample(SpeedSample(
    speed=10 * 1024 * 1024,
    bytes=1024 * 1024,
    duration=0.1,
    concurrent_connections=16,
    chunk_size=2 * 1024 * 1024,
    server_url="https://example.com",
))
stats = controller.speed_stats()
print(stats.sample_count, stats.avg_speed)

print(NetworkCondition.from_speed(20.0))  # NetworkCondition.GOOD
```

## `turbocdn.quality`: CDN quality assessment

`CdnQualityAssessor(timeout=30.0, test_urls=())` wraps an `httpx.AsyncClient` that follows redirects. Use it as an async context manager, or call `aclose()` when you are done.

`await assess_cdn_quality(url)` measures three things:

- **latency**: the time of a HEAD request in milliseconds. It is doubled for any status other than 200 or 404, and set to 5000 ms if the request fails.
- **bandwidth**: for URLs containing `github.com` or `jsdelivr.net`, the assessor downloads a small probe file and measures its rate. It falls back to 512 KiB/s if that request fails. For any other URL, bandwidth is estimated from latency.
- **availability**: 1.0 for statuses 200–499, 0.5 for other statuses, 0.0 if the request fails.

The call returns the new `CdnMetrics` and also folds it into the stored record for that URL. Repeated measurements are blended with an exponential moving average (weight 0.3 for the new value).

`calculate_quality_score(latency, bandwidth, availability)` gives a score from 0 to 100:

- 40% latency, where 500 ms or more scores zero,
- 40% bandwidth, where 10 MiB/s or more scores full,
- 20% availability.

Reading the stored records:

- `metrics_for(url)` returns a copy of one record, or `None`.
- `all_metrics_sorted()` returns every record, best score first.
- `sort_urls_by_quality(urls)` orders candidate URLs best first. A URL that has not been assessed gets the neutral score of 50.
- `assessment_summary()` maps each URL to its score.

`await background_assessment()` assesses every configured test URL in turn, with a 0.1 s pause between them. It logs failures instead of raising them.

```python
import asyncio
from turbocdn.quality import CdnQualityAssessor

async def main():
    async with CdnQualityAssessor(timeout=30, test_urls=["https://cdn.example.com/"]) as assessor:
        await assessor.background_assessment()
        print(assessor.assessment_summary())

asyncio.run(main())
```

## `turbocdn.monitoring`: download metrics

A `DownloadMetrics` record describes one download:

- `url`,
- `file_size`,
- `download_time` in seconds,
- `speed_mbps`,
- `chunks_used` and `chunk_size`,
- `cdn_optimized`,
- `resume_count`,
- `error`, which is `None` when the download succeeded,
- `timestamp` in Unix seconds, filled in automatically.

`PerformanceMonitor(max_history)` keeps the newest `max_history` records and is thread-safe. Its methods:

- `stats()` returns a `PerformanceStats`. It holds counts, and totals, average speed and peak speed over the successful downloads, plus the CDN optimisation rate and error rate as percentages.
- `recent_metrics(count)` returns the most recent records, newest first.
- `metrics_in_range(start, end)` filters records by timestamp, inclusive.
- `export_metrics()` returns the history as pretty-printed JSON, oldest first.
- `clear_metrics()` empties the history.

`render_dashboard(monitor)` returns a text report: overall statistics, performance figures and the five most recent downloads.

## `turbocdn.options`: download options

`DownloadOptions` holds the settings for one download:

- `max_concurrent_chunks`,
- `chunk_size`,
- `enable_resume`,
- `custom_headers`,
- `timeout_override` in seconds,
- `verify_integrity`,
- `expected_size`,
- `progress_callback`.

`validate_download_options(options)` raises `InvalidOptionsError`, a subclass of `ValueError`, when a set value is out of range:

- the chunk count is 0 or more than 64,
- the chunk size is below 1 KiB or above 32 MiB,
- the timeout, in whole seconds, is below 5 or above 3600.

Presets:

| Function | Chunks | Chunk size | Timeout | Integrity check |
|---|---|---|---|---|
| `valid_options()` | 4 | 1 MiB | 60 s | on |
| `high_performance_options()` | 32 | 16 MiB | 300 s | off |
| `low_bandwidth_options()` | 1 | 128 KiB | 180 s | on |

`network_adaptive_options(bandwidth_mbps=50.0)` picks settings from a speed in Mbit/s, always with a 120 s timeout:

| Speed | Chunks | Chunk size |
|---|---|---|
| above 100 Mbit/s | 16 | 4 MiB |
| above 25 Mbit/s | 8 | 2 MiB |
| otherwise | 4 | 1 MiB |

`file_type_configurations()` returns presets keyed `"Large Binary"`, `"Source Code"` and `"Small Tools"`.

`environment_options(environ=None)` reads three variables from `os.environ` or from the mapping you pass:

| Variable | Default |
|---|---|
| `TURBO_CDN_MAX_CHUNKS` | 4 |
| `TURBO_CDN_CHUNK_SIZE` | 1 MiB |
| `TURBO_CDN_TIMEOUT` | 60 s |

Missing or non-numeric values fall back to the defaults.

## What this package does not do

- It does not download files. `DownloadOptions`, the speed controller and the monitor describe, tune and record downloads that your own code performs.
- It has no command-line tool.
- Metrics are kept in memory only. Use `export_metrics()` if you need to persist them.
- The only network access is the probing done by `CdnQualityAssessor`.

## Running the tests

```
pip install -e ".[test]"
pytest
```