"""
Data generation and loading script for fetchbench.

Generates deterministic pseudo-random benchmark rows, writes them as CSV and
loads them with Postgres COPY. Rows draw their databook / datasheet ids from a
small pool so DISTINCT on those columns returns a handful of values out of
many rows.
"""

from __future__ import annotations

import csv
import json
import random
import sys
import tempfile
import time
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Iterator, List

import psycopg
import typer

from fetchbench.domain.models import BenchmarkRecord
from fetchbench.domain.schema import TableSchema, benchmark_schema
from fetchbench.infrastructure.db_factory import build_dsn

app = typer.Typer(help="Generate synthetic benchmark rows and load them into Postgres (CSV + COPY).")

CSV_COLUMNS = [
    "knowledge_begin_date",
    "knowledge_end_date",
    "client_id",
    "databook_id",
    "datasheet_id",
    "data",
]


def _id_pool(rng: random.Random, size: int) -> List[uuid.UUID]:
    return [uuid.UUID(int=rng.getrandbits(128), version=4) for _ in range(size)]


def generate_records(
    rows: int,
    seed: int,
    clients: int = 50,
    databooks: int = 20,
    datasheets: int = 200,
) -> Iterator[BenchmarkRecord]:
    """Yield `rows` deterministic records; knowledge_end_date is always left null."""
    rng = random.Random(seed)
    databook_ids = _id_pool(rng, databooks)
    datasheet_ids = _id_pool(rng, datasheets)
    epoch = datetime(2024, 1, 1, tzinfo=UTC)

    for _ in range(rows):
        yield BenchmarkRecord(
            knowledge_begin_date=epoch + timedelta(minutes=rng.randint(0, 525_600)),
            client_id=rng.randint(1, clients),
            databook_id=rng.choice(databook_ids),
            datasheet_id=rng.choice(datasheet_ids),
            data={
                "row_key": rng.randint(1, 1_000_000),
                "status": rng.choice(["draft", "active", "archived"]),
                "amount": round(rng.uniform(1, 10_000), 2),
            },
        )


def _generate_rows_csv(csv_path: Path, rows: int, batch_size: int, seed: int) -> None:
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)

        buffer: list[list[str]] = []
        for record in generate_records(rows, seed):
            buffer.append(
                [
                    record.knowledge_begin_date.isoformat(),
                    "",
                    str(record.client_id),
                    str(record.databook_id),
                    str(record.datasheet_id),
                    json.dumps(record.data),
                ]
            )
            if len(buffer) >= batch_size:
                writer.writerows(buffer)
                buffer.clear()
        if buffer:
            writer.writerows(buffer)


def _copy_into_db(dsn: str, csv_path: Path, schema: TableSchema, create_table: bool = False) -> int:
    """COPY the CSV into the table; empty knowledge_end_date cells load as NULL."""
    columns = ", ".join(f'"{name}"' for name in CSV_COLUMNS)
    lines = 0
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            if create_table:
                cur.execute(schema.create_table_sql())
            with cur.copy(
                f"COPY {schema.qualified_name} ({columns}) FROM STDIN WITH (FORMAT csv, HEADER TRUE)"
            ) as copy:
                with csv_path.open("r", encoding="utf-8") as f:
                    for lines, line in enumerate(f):
                        copy.write(line)
        conn.commit()
    # first line is the CSV header
    return lines


@app.command()
def main(
    rows: int = typer.Option(100_000, "--rows", "-r", help="Number of rows to generate."),
    batch_size: int = typer.Option(
        10_000, "--batch-size", "-b", help="Batch size for CSV buffering during generation."
    ),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Optional CSV output path (temp file when omitted)."
    ),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    table: str | None = typer.Option(None, "--table", help="Target table."),
    create_table: bool = typer.Option(
        False, "--create-table", help="Create the table first if it does not exist."
    ),
    no_load: bool = typer.Option(False, "--no-load", help="Only generate CSV; skip loading."),
) -> None:
    """
    Generate synthetic rows and optionally load them into Postgres using COPY.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        csv_path = Path(tempfile.mkdtemp(prefix="fetchbench_csv_")) / "benchmark_records.csv"

    typer.echo(f"Generating {rows:,} rows -> {csv_path} (batch={batch_size}, seed={seed})")
    _generate_rows_csv(csv_path, rows=rows, batch_size=batch_size, seed=seed)
    typer.echo(f"CSV generation completed in {time.perf_counter() - start:.2f}s")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    load_start = time.perf_counter()
    schema = benchmark_schema(table)
    typer.echo(f"Loading CSV into {schema.name} via COPY...")
    loaded = _copy_into_db(dsn or build_dsn(), csv_path, schema, create_table=create_table)
    typer.echo(f"Loaded {loaded:,} rows in {time.perf_counter() - load_start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
