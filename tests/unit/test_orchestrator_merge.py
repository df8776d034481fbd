from fetchbench.orchestrator import _aggregate_runs, _merge_result
from fetchbench.utils.profiler import ProfileStats

# The executor's own timing wins; the profiler contributes memory and CPU.
EXPECTED_DURATION = 1.0
EXPECTED_THROUGHPUT = 100.0  # 100 rows / 1.0 seconds
EXPECTED_PEAK_RSS = 123
EXPECTED_CPU = 12.3  # rounded to 1 decimal


def _stats() -> ProfileStats:
    return ProfileStats(
        label="test",
        start_ts=1.0,
        end_ts=3.0,
        duration_seconds=2.0,
        peak_rss_bytes=123,
        peak_traced_bytes=456,
        cpu_percent=12.34,
    )


def test_merge_result_keeps_executor_timing_and_takes_profiler_memory():
    result = {
        "rows": 100,
        "duration_seconds": 1.0,
        "throughput_rows_per_sec": 3.0,
        "peak_rss_bytes": 999,
        "cpu_percent": 99.9,
    }

    merged = _merge_result(result, _stats())

    assert merged["duration_seconds"] == EXPECTED_DURATION
    assert merged["throughput_rows_per_sec"] == EXPECTED_THROUGHPUT
    assert merged["peak_rss_bytes"] == EXPECTED_PEAK_RSS
    assert merged["peak_traced_bytes"] == 456
    assert merged["cpu_percent"] == EXPECTED_CPU
    assert merged["profile"] == {"label": "test", "duration_seconds": 2.0}


def test_merge_result_falls_back_to_profiler_duration_for_failed_runs():
    merged = _merge_result({"error": "InvalidRequestError: nope"}, _stats())

    assert merged["rows"] == 0
    assert merged["duration_seconds"] == 2.0
    assert merged["throughput_rows_per_sec"] == 0.0
    assert merged["error"] == "InvalidRequestError: nope"


def test_aggregate_runs_summarizes_successful_runs():
    runs = [
        {"rows": 10, "duration_seconds": 0.1, "round_trips": 11, "secondary_round_trips": 10,
         "peak_rows_in_memory": 10, "peak_rss_bytes": 100},
        {"rows": 10, "duration_seconds": 0.3, "round_trips": 11, "secondary_round_trips": 10,
         "peak_rows_in_memory": 10, "peak_rss_bytes": 300},
        {"error": "OperationalError: gone", "rows": 0, "round_trips": 0},
    ]

    aggregated = _aggregate_runs(runs)

    assert aggregated["failed_runs"] == 1
    assert aggregated["rows"] == 10
    assert aggregated["duration_seconds"]["median"] == 0.2
    assert aggregated["duration_seconds"]["min"] == 0.1
    assert aggregated["round_trips"]["median"] == 11.0
    assert aggregated["secondary_round_trips"]["stddev"] == 0.0
    assert aggregated["peak_rss_bytes"] == {"median": 200, "max": 300}


def test_aggregate_runs_reports_error_when_every_run_failed():
    aggregated = _aggregate_runs([{"error": "A"}, {"error": "B"}])
    assert aggregated == {"failed_runs": 2, "error": "B"}
