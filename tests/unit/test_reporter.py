from io import StringIO

from rich.console import Console

from fetchbench.reporter import print_results


def _render(results) -> str:
    buffer = StringIO()
    print_results(results, console=Console(file=buffer, width=240, color_system=None))
    return buffer.getvalue()


def test_print_results_sorts_by_duration_and_puts_errors_last():
    output = _render(
        [
            {"strategy": "projection_fetch", "mode": "fetch", "rows": 1000, "duration_seconds": 0.5,
             "round_trips": 1001, "secondary_round_trips": 1000, "peak_rows_in_memory": 1000,
             "peak_rss_bytes": 50 * 1024 * 1024},
            {"strategy": "flat_list_fetch", "error": "InvalidRequestError: needs exactly one field"},
            {"strategy": "mapping_fetch", "mode": "fetch", "rows": 1000, "duration_seconds": 0.01,
             "round_trips": 1, "secondary_round_trips": 0, "peak_rows_in_memory": 1000},
        ]
    )

    assert "Fetch Strategy Comparison" in output
    assert output.index("mapping_fetch") < output.index("projection_fetch") < output.index("flat_list_fetch")
    assert "1,001" in output
    assert "500.00" in output
    assert "50.00" in output
    assert "InvalidRequestError" in output


def test_print_results_shows_value_for_count_mode_and_medians():
    output = _render(
        [
            {"strategy": "mapping_fetch", "mode": "count", "value": 7, "runs": 3,
             "duration_seconds": {"median": 0.002, "mean": 0.003},
             "round_trips": {"median": 1.0}, "secondary_round_trips": {"median": 0.0}},
        ]
    )

    assert "medians over runs" in output
    assert "count" in output
    assert "2.00" in output


def test_print_results_handles_empty_list():
    assert "No results to display." in _render([])
