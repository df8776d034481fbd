"""
Orchestrator for running fetch strategies, profiling execution, and persisting results.

Usage (example from CLI):
    from fetchbench.orchestrator import run_strategies

    results = run_strategies(
        strategy_names=["projection_fetch", "mapping_fetch"],
        where=Eq("client_id", 7),
        touch=("data",),
    )

Outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import statistics
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from psycopg import Connection

from fetchbench.config import get_settings
from fetchbench.domain.predicates import Predicate
from fetchbench.domain.query import FetchMode, FetchRequest
from fetchbench.domain.schema import benchmark_schema
from fetchbench.executor import Executor
from fetchbench.infrastructure.db_factory import get_sync_connection
from fetchbench.infrastructure.tracking import TrackedConnection
from fetchbench.strategies import (
    ChunkedIterationStrategy,
    ClientDistinctFetchStrategy,
    DatabaseDistinctFetchStrategy,
    ExclusionFetchStrategy,
    FlatListFetchStrategy,
    MappingFetchStrategy,
    ProjectionFetchStrategy,
)
from fetchbench.strategies.abstract import FetchStrategy, StrategyResult
from fetchbench.utils.logging import get_logger
from fetchbench.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)

# query timings are often sub-millisecond
_DECIMALS = 4


def _round_float(value: float, decimals: int = _DECIMALS) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _summary(values: List[float], decimals: int = _DECIMALS) -> Dict[str, float]:
    return {
        "median": _round_float(statistics.median(values), decimals),
        "mean": _round_float(statistics.mean(values), decimals),
        "stddev": _round_float(statistics.stdev(values), decimals) if len(values) > 1 else 0.0,
        "min": _round_float(min(values), decimals),
        "max": _round_float(max(values), decimals),
    }


def _aggregate_runs(run_results: List[dict]) -> dict:
    """
    Aggregate multiple runs of one strategy into a statistical summary.

    Failed runs are left out of the statistics but counted in `failed_runs`.
    """
    ok = [r for r in run_results if not r.get("error")]
    aggregated: Dict[str, Any] = {"failed_runs": len(run_results) - len(ok)}
    if not ok:
        aggregated["error"] = run_results[-1].get("error")
        return aggregated

    aggregated["rows"] = ok[0].get("rows", 0)
    aggregated["value"] = ok[0].get("value")
    aggregated["duration_seconds"] = _summary([r["duration_seconds"] for r in ok])
    aggregated["round_trips"] = _summary([float(r["round_trips"]) for r in ok], decimals=1)
    aggregated["secondary_round_trips"] = _summary(
        [float(r.get("secondary_round_trips", 0)) for r in ok], decimals=1
    )
    aggregated["peak_rows_in_memory"] = max(r.get("peak_rows_in_memory") or 0 for r in ok)

    peak_rss_values = [r["peak_rss_bytes"] for r in ok if r.get("peak_rss_bytes")]
    if peak_rss_values:
        aggregated["peak_rss_bytes"] = {
            "median": int(statistics.median(peak_rss_values)),
            "max": max(peak_rss_values),
        }
    return aggregated


def _strategy_factories(page_size: Optional[int] = None) -> Dict[str, Callable[[], FetchStrategy]]:
    """Registry of available strategies."""
    return {
        "projection_fetch": lambda: ProjectionFetchStrategy(),
        "exclusion_fetch": lambda: ExclusionFetchStrategy(),
        "mapping_fetch": lambda: MappingFetchStrategy(),
        "flat_list_fetch": lambda: FlatListFetchStrategy(),
        "database_distinct_fetch": lambda: DatabaseDistinctFetchStrategy(),
        "client_distinct_fetch": lambda: ClientDistinctFetchStrategy(),
        "chunked_iteration": lambda: ChunkedIterationStrategy(page_size=page_size),
    }


def available_strategies() -> List[str]:
    """List available strategy names."""
    return sorted(_strategy_factories().keys())


def resolve_strategy(name: str, page_size: Optional[int] = None) -> FetchStrategy:
    factories = _strategy_factories(page_size)
    if name not in factories:
        raise ValueError(f"Unknown strategy '{name}'. Available: {', '.join(sorted(factories))}")
    return factories[name]()


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True, default=str)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def _profiled_execute(
    executor: Executor,
    strategy: FetchStrategy,
    request: FetchRequest,
    mode: FetchMode,
    touch: Sequence[str],
) -> dict:
    log.info(f"[STRATEGY START] {strategy.name}", extra={"strategy": strategy.name})
    with profile_block(strategy.name) as stats:
        try:
            result = executor.run(strategy, request, mode=mode, touch=touch).to_result()
            log.info(
                f"[STRATEGY SUCCESS] {strategy.name}",
                extra={"strategy": strategy.name, "rows": result["rows"]},
            )
        except Exception as exc:  # noqa: BLE001 - recorded as a failed run, batch continues
            log.exception(f"[STRATEGY FAILED] {strategy.name}", extra={"strategy": strategy.name})
            result = StrategyResult(
                strategy=strategy.name,
                mode=mode.value,
                error=f"{type(exc).__name__}: {exc}",
                rows=0,
                round_trips=0,
            )

    return _merge_result(result, stats)


def _merge_result(result: StrategyResult, stats: ProfileStats) -> dict:
    """Merge a strategy result with profiler stats, rounding floats for readability."""
    merged: Dict[str, Any] = dict(result)
    merged.setdefault("rows", 0)
    merged.setdefault("duration_seconds", stats.duration_seconds)
    merged["duration_seconds"] = _round_float(merged["duration_seconds"])
    merged["throughput_rows_per_sec"] = (
        _round_float(merged["rows"] / merged["duration_seconds"], 2)
        if merged["duration_seconds"]
        else 0.0
    )
    merged["peak_rss_bytes"] = stats.peak_rss_bytes
    merged["peak_traced_bytes"] = stats.peak_traced_bytes
    merged["cpu_percent"] = _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None
    merged["profile"] = {
        "label": stats.label,
        "duration_seconds": _round_float(stats.duration_seconds),
    }
    return merged


def run_strategies(
    strategy_names: Optional[Iterable[str]] = None,
    *,
    fields: Optional[Sequence[str]] = None,
    where: Optional[Predicate] = None,
    mode: FetchMode | str = FetchMode.FETCH,
    touch: Sequence[str] = (),
    limit: Optional[int] = None,
    page_size: Optional[int] = None,
    table: Optional[str] = None,
    results_dir: Path | str = "results",
    persist: bool = True,
    warmup: bool = False,
    runs: int = 1,
    dsn_override: Optional[str] = None,
    connection: Optional[Connection] = None,
) -> List[dict]:
    """
    Run one or more strategies against the same request and optionally persist results.

    Parameters
    ----------
    strategy_names : iterable[str] | None
        Strategy names to execute. If None or ["all"], executes all available.
    fields : sequence[str] | None
        Fields handed to every strategy; None lets each use its defaults.
    where : Predicate | None
        Filter applied by every strategy.
    mode : FetchMode | str
        fetch, exists or count.
    touch : sequence[str]
        Fields read on every fetched item (drives secondary round-trips).
    limit, page_size : int | None
        Row cap and chunk size; default from settings.
    runs : int
        Measurement runs per strategy; more than one adds aggregated statistics.
    connection : psycopg.Connection | None
        Use this connection instead of opening one; it is left open.

    Returns
    -------
    List[dict]
        One result dictionary per strategy.
    """
    settings = get_settings()
    schema = benchmark_schema(table or settings.benchmark_table)
    mode = FetchMode(mode)
    request = FetchRequest(
        table=schema.name,
        fields=tuple(fields or ()),
        where=where,
        limit=limit if limit is not None else settings.benchmark_limit,
        page_size=page_size or settings.benchmark_page_size,
    )

    names = list(strategy_names) if strategy_names is not None else ["all"]
    if len(names) == 1 and names[0] == "all":
        names = available_strategies()
    for name in names:
        resolve_strategy(name)

    owns_connection = connection is None
    raw_conn = connection if connection is not None else get_sync_connection(dsn_override)
    total_global_runs = len(names) * runs
    current_run = 0
    results: List[dict] = []
    try:
        for name in names:
            log.info(f"[STRATEGY] {name.upper()}", extra={"strategy": name})

            if warmup:
                log.info(f"[WARMUP] {name}", extra={"strategy": name})
                try:
                    Executor(TrackedConnection(raw_conn), schema).run(
                        resolve_strategy(name, page_size), request, mode=mode
                    )
                except Exception as exc:  # noqa: BLE001 - warmup failures surface in measured runs
                    log.warning(f"[WARMUP] Failed for {name}", extra={"error": str(exc)})

            run_results: List[dict] = []
            for run_num in range(1, runs + 1):
                current_run += 1
                log.info(
                    f"[RUN {current_run}/{total_global_runs}] {name}",
                    extra={"strategy": name, "run": run_num, "mode": mode.value},
                )
                executor = Executor(TrackedConnection(raw_conn), schema)
                result = _profiled_execute(
                    executor, resolve_strategy(name, page_size), request, mode, touch
                )
                result["strategy"] = name
                result["run"] = run_num
                run_results.append(result)

            if runs > 1:
                aggregated = _aggregate_runs(run_results)
                aggregated["strategy"] = name
                aggregated["mode"] = mode.value
                aggregated["runs"] = runs
                aggregated["individual_runs"] = run_results
                results.append(aggregated)
            else:
                results.extend(run_results)
    finally:
        if owns_connection:
            raw_conn.close()

    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "table": schema.name,
        "mode": mode.value,
        "fields": list(request.fields),
        "touch": list(touch),
        "limit": request.limit,
        "page_size": request.page_size,
        "strategies": names,
        "results": results,
    }
    if persist:
        _persist_results(payload, Path(results_dir))

    log.info(
        f"[ORCHESTRATOR COMPLETE] {len(names)} strategy/strategies executed",
        extra={"strategies": names},
    )
    return results


__all__ = [
    "available_strategies",
    "resolve_strategy",
    "run_strategies",
]
