"""
Schema setup and seeding script for the tablemap demo database.

Applies ``db/init.sql`` and loads deterministic fruit rows with Postgres COPY.
Runs synchronously through psycopg so it can be used from shell scripts and CI
before any async code is involved.
"""

from __future__ import annotations

import random
import sys
import time
from pathlib import Path
from typing import Iterator

import psycopg
import typer

from tablemap.config import get_settings
from tablemap.infrastructure.db_factory import redact_dsn

app = typer.Typer(help="Create the demo schema and load fixture rows into Postgres.")

INIT_SQL = Path(__file__).resolve().parent.parent / "db" / "init.sql"

_FRUITS = [
    "apple",
    "apricot",
    "banana",
    "cherry",
    "fig",
    "grape",
    "kiwi",
    "lemon",
    "mango",
    "melon",
    "orange",
    "peach",
    "pear",
    "plum",
]


def _build_dsn(dsn_override: str | None) -> str:
    if dsn_override:
        return dsn_override
    return get_settings().dsn()


def _fruit_names(rows: int, seed: int) -> Iterator[str]:
    """Unique fruit names: a random base name plus a running suffix."""
    rng = random.Random(seed)
    for index in range(rows):
        yield f"{rng.choice(_FRUITS)}-{index:07d}"


def _apply_schema(dsn: str, sql_path: Path = INIT_SQL) -> None:
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(sql_path.read_text(encoding="utf-8"))
        conn.commit()


def _copy_fruits(dsn: str, rows: int, seed: int) -> int:
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            with cur.copy("COPY public.fruits (name) FROM STDIN") as copy:
                for name in _fruit_names(rows, seed):
                    copy.write_row((name,))
        conn.commit()
    return rows


@app.command()
def init(
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
) -> None:
    """
    Create the demo tables (idempotent).
    """
    conn_dsn = _build_dsn(dsn)
    typer.echo(f"Applying {INIT_SQL.name} to {redact_dsn(conn_dsn)}")
    _apply_schema(conn_dsn)
    typer.echo("Schema ready.")


@app.command()
def seed(
    rows: int = typer.Option(1_000, "--rows", "-r", help="Number of fruit rows to load."),
    seed_value: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    truncate: bool = typer.Option(
        False, "--truncate", help="Empty the fruits table (and reset its id) first."
    ),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
) -> None:
    """
    Load fruit rows into the demo schema using COPY.
    """
    conn_dsn = _build_dsn(dsn)
    if truncate:
        with psycopg.connect(conn_dsn) as conn:
            conn.execute("TRUNCATE TABLE public.fruits RESTART IDENTITY CASCADE")
            conn.commit()

    start = time.perf_counter()
    loaded = _copy_fruits(conn_dsn, rows=rows, seed=seed_value)
    duration = time.perf_counter() - start
    typer.echo(f"Loaded {loaded:,} fruits in {duration:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
