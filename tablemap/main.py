from __future__ import annotations

import asyncio
import importlib
import sys
from typing import Optional

import typer

from tablemap.config import Settings, get_settings
from tablemap.connection import Connection
from tablemap.domain.schema import describe
from tablemap.exceptions import ConfigurationError, ConnectionError
from tablemap.infrastructure.db_factory import redact_dsn
from tablemap.statements import sql_templates
from tablemap.utils.logging import configure_logging

app = typer.Typer(help="tablemap CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DSN={redact_dsn(settings.dsn())} | "
        f"connect_timeout={settings.connect_timeout}s attempts={settings.connect_attempts} | "
        f"batch={settings.batch_size} prefetch={settings.stream_prefetch}"
    )


async def _server_version(uri: Optional[str], settings: Settings) -> str:
    conn = await Connection.connect(uri, settings)
    async with conn:
        return await conn.query_value("SELECT version()")


@app.command()
def ping(
    uri: Optional[str] = typer.Option(
        None,
        "--uri",
        "-u",
        help="Connection URI (default: built from DB_* settings or DATABASE_URL).",
    ),
) -> None:
    """
    Connect to the database and print the server version.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        version = asyncio.run(_server_version(uri, settings))
    except ConnectionError as exc:
        typer.echo(f"Connection failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(version)


def _load_record_type(target: str) -> type:
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise typer.BadParameter("expected 'package.module:ClassName'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"cannot import {module_name}: {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise typer.BadParameter(f"{module_name} has no attribute {attr}") from exc


@app.command()
def sql(
    target: str = typer.Argument(..., help="Registered record type as 'package.module:ClassName'."),
) -> None:
    """
    Print the SQL generated for each single-record operation of a record type.
    """
    record_type = _load_record_type(target)
    try:
        descriptor = describe(record_type)
    except ConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"-- {descriptor.type_name} -> {descriptor.table}")
    for operation, text in sql_templates(descriptor).items():
        typer.echo(f"-- {operation}\n{text};")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
