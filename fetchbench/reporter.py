from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table


def _median(value: Any) -> Any:
    """Aggregated results nest statistics; single runs carry plain numbers."""
    if isinstance(value, dict):
        return value.get("median")
    return value


def _format_ms(seconds: Optional[float]) -> str:
    if seconds is None:
        return "N/A"
    return f"{seconds * 1000:,.2f}"


def _format_mb(num_bytes: Any) -> str:
    num_bytes = _median(num_bytes)
    if not num_bytes:
        return "N/A"
    return f"{num_bytes / (1024 * 1024):.2f}"


def _format_count(value: Any) -> str:
    value = _median(value)
    if value is None:
        return "N/A"
    return f"{int(value):,}"


def _sort_key(res: Dict[str, Any]) -> tuple:
    duration = _median(res.get("duration_seconds"))
    return (bool(res.get("error")), duration if duration is not None else float("inf"))


def print_results(results: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render benchmark results as a rich table, fastest first.

    Handles both single-run results and aggregated multi-run results
    (durations and round-trips shown as medians).
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    aggregated = any(isinstance(r.get("runs"), int) and r["runs"] > 1 for r in results)
    table = Table(
        title="Fetch Strategy Comparison",
        box=box.ROUNDED,
        caption="Sorted by duration (ascending)" + (" | medians over runs" if aggregated else ""),
    )
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Mode", style="blue")
    table.add_column("Rows / Value", justify="right", style="magenta")
    table.add_column("Duration (ms)", justify="right", style="bold green")
    table.add_column("Round-trips", justify="right", style="yellow")
    table.add_column("Secondary", justify="right", style="yellow")
    table.add_column("Peak Rows Held", justify="right")
    table.add_column("Peak Memory (MB)", justify="right", style="red")
    table.add_column("Error", style="red")

    for res in sorted(results, key=_sort_key):
        mode = res.get("mode", "fetch")
        if mode == "fetch":
            rows = _format_count(res.get("rows"))
        else:
            rows = str(res.get("value"))
        error = res.get("error") or ""
        table.add_row(
            res.get("strategy", "Unknown"),
            mode,
            rows,
            "" if error else _format_ms(_median(res.get("duration_seconds"))),
            _format_count(res.get("round_trips")),
            _format_count(res.get("secondary_round_trips")),
            _format_count(res.get("peak_rows_in_memory")),
            _format_mb(res.get("peak_rss_bytes")),
            error,
        )

    console.print(table)


__all__ = ["print_results"]
