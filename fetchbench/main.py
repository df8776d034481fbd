from __future__ import annotations

import json
import re
import sys
from datetime import timedelta
from typing import List, Optional, Union

import psycopg
import typer

from fetchbench.config import get_settings
from fetchbench.domain.errors import FetchBenchError
from fetchbench.domain.expressions import F
from fetchbench.domain.predicates import And, Not, Predicate, parse_equality
from fetchbench.domain.query import FetchMode
from fetchbench.domain.schema import TableSchema, benchmark_schema
from fetchbench.executor import Executor
from fetchbench.infrastructure import bootstrap
from fetchbench.infrastructure.db_factory import get_sync_connection
from fetchbench.infrastructure.tracking import TrackedConnection
from fetchbench.orchestrator import available_strategies, run_strategies
from fetchbench.reporter import print_results
from fetchbench.utils.logging import configure_logging

app = typer.Typer(help="Compare ORM-style fetch strategies against one flat PostgreSQL table.")
index_app = typer.Typer(help="Create or drop the optional benchmark indexes.")
app.add_typer(index_app, name="index")

_INTERVAL = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(d|day|days|h|hour|hours|m|min|minutes)\s*$")
_INTERVAL_UNITS = {"d": "days", "h": "hours", "m": "minutes", "min": "minutes"}


def _parse_offset(text: str) -> Union[timedelta, int, float]:
    """`10d`, `3 hours` -> timedelta; a bare number stays numeric."""
    match = _INTERVAL.match(text)
    if match:
        amount, unit = float(match.group(1)), match.group(2)
        unit = _INTERVAL_UNITS.get(unit, unit if unit.endswith("s") else unit + "s")
        return timedelta(**{unit: amount})
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise typer.BadParameter(f"Not a number or interval: {text!r}") from None


def _build_where(
    schema: TableSchema, where: Optional[List[str]], exclude: Optional[List[str]]
) -> Optional[Predicate]:
    clauses: List[Predicate] = [parse_equality(text, schema) for text in where or []]
    clauses += [Not(parse_equality(text, schema)) for text in exclude or []]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return And(tuple(clauses))


def _split(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _setup(table: Optional[str]) -> TableSchema:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return benchmark_schema(table or settings.benchmark_table)


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"table={settings.benchmark_table} page_size={settings.benchmark_page_size} "
        f"limit={settings.benchmark_limit} runs={settings.benchmark_runs}"
    )


@app.command("list")
def list_strategies() -> None:
    """
    List registered fetch strategies.
    """
    typer.echo("Available strategies: " + ", ".join(available_strategies()))


@app.command("init-db")
def init_db(
    table: Optional[str] = typer.Option(None, "--table", help="Override the benchmark table."),
) -> None:
    """
    Create the benchmark table (primary key only, no secondary indexes).
    """
    try:
        schema = _setup(table)
        conn = TrackedConnection(get_sync_connection())
        try:
            bootstrap.create_table(conn, schema)
        finally:
            conn.close()
    except (FetchBenchError, psycopg.Error) as exc:
        raise _fail(exc) from exc
    typer.echo(f"Table {schema.name} ready.")


@index_app.command("create")
def create_index(
    columns: str = typer.Option(..., "--columns", "-c", help="Comma-separated indexed columns."),
    table: Optional[str] = typer.Option(None, "--table"),
) -> None:
    """Create one of the declared optional indexes."""
    try:
        schema = _setup(table)
        schema.find_index(_split(columns))
        conn = TrackedConnection(get_sync_connection())
        try:
            name = bootstrap.create_index(conn, schema, _split(columns))
        finally:
            conn.close()
    except (FetchBenchError, psycopg.Error) as exc:
        raise _fail(exc) from exc
    typer.echo(f"Index {name} created.")


@index_app.command("drop")
def drop_index(
    columns: str = typer.Option(..., "--columns", "-c", help="Comma-separated indexed columns."),
    table: Optional[str] = typer.Option(None, "--table"),
) -> None:
    """Drop one of the declared optional indexes."""
    try:
        schema = _setup(table)
        schema.find_index(_split(columns))
        conn = TrackedConnection(get_sync_connection())
        try:
            name = bootstrap.drop_index(conn, schema, _split(columns))
        finally:
            conn.close()
    except (FetchBenchError, psycopg.Error) as exc:
        raise _fail(exc) from exc
    typer.echo(f"Index {name} dropped.")


@app.command()
def run(
    strategy: str = typer.Option(
        "all",
        "--strategy",
        "--strategies",
        "-s",
        help="Comma-separated strategy names, or 'all'.",
    ),
    fields: Optional[str] = typer.Option(
        None, "--fields", "-f", help="Comma-separated fields (meaning depends on strategy)."
    ),
    where: Optional[List[str]] = typer.Option(
        None, "--where", "-w", help="column=value equality filter; repeat to AND."
    ),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-x", help="column=value rows to leave out; repeat to AND NOT."
    ),
    mode: FetchMode = typer.Option(FetchMode.FETCH, "--mode", "-m", help="fetch, exists or count."),
    touch: Optional[str] = typer.Option(
        None, "--touch", "-t", help="Comma-separated fields read on every fetched item."
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Row cap per strategy."),
    page_size: Optional[int] = typer.Option(None, "--page-size", "-p", help="Chunk size."),
    runs: Optional[int] = typer.Option(None, "--runs", "-r", help="Measurement runs."),
    warmup: bool = typer.Option(False, "--warmup", help="Run each strategy once unmeasured."),
    table: Optional[str] = typer.Option(None, "--table"),
    no_persist: bool = typer.Option(False, "--no-persist", help="Skip writing results/."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON instead of a table."),
) -> None:
    """
    Run one or all strategies via the orchestrator and report the comparison.
    """
    settings = get_settings()
    names = ["all"] if strategy == "all" else _split(strategy)
    try:
        schema = _setup(table)
        predicate = _build_where(schema, where, exclude)
        results = run_strategies(
            strategy_names=names,
            fields=_split(fields),
            where=predicate,
            mode=mode,
            touch=_split(touch),
            limit=limit,
            page_size=page_size,
            table=schema.name,
            persist=not no_persist,
            warmup=warmup,
            runs=runs or settings.benchmark_runs,
        )
    except (FetchBenchError, ValueError, psycopg.Error) as exc:
        raise _fail(exc) from exc

    if as_json:
        typer.echo(json.dumps(results, indent=2, default=str))
    else:
        print_results(results)


@app.command()
def update(
    target: str = typer.Option("knowledge_end_date", "--target", help="Column to write."),
    source: str = typer.Option("knowledge_begin_date", "--source", help="Column read per row."),
    offset: str = typer.Option("10d", "--offset", help="Interval (10d, 6h) or number."),
    where: Optional[List[str]] = typer.Option(None, "--where", "-w", help="column=value; AND."),
    table: Optional[str] = typer.Option(None, "--table"),
) -> None:
    """
    Set TARGET = SOURCE + OFFSET inside the database for the matching rows.
    """
    amount = _parse_offset(offset)
    try:
        schema = _setup(table)
        predicate = _build_where(schema, where, None)
        conn = TrackedConnection(get_sync_connection())
        try:
            report = Executor(conn, schema).update({target: F(source) + amount}, where=predicate)
        finally:
            conn.close()
    except (FetchBenchError, psycopg.Error) as exc:
        raise _fail(exc) from exc
    typer.echo(
        f"Updated {report.rows_updated:,} rows in {report.duration_seconds * 1000:.1f} ms "
        f"({report.round_trips} round-trips)."
    )


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
