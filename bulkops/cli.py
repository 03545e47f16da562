"""bulkops CLI - inspect configuration and bulk operation plans."""

import importlib
import os
import sys
from enum import Enum
from typing import Any

import typer
from typing_extensions import Annotated

from bulkops import __version__
from bulkops.core.config import load_config
from bulkops.core.dialect import StreamTarget
from bulkops.core.schema import require_primary_key, resolve_table
from bulkops.exceptions import BulkOpsError
from bulkops.operators import get_dialect

app = typer.Typer(
    name="bulkops",
    help="bulkops - dialect-aware bulk insert, update and upsert",
    add_completion=True,
)


class DialectName(str, Enum):
    postgresql = "postgresql"
    mssql = "mssql"
    sqlite = "sqlite"


class OperationName(str, Enum):
    insert = "insert"
    update = "update"
    upsert = "upsert"


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"bulkops version {__version__}")
        raise typer.Exit()


def _load_model(target: str) -> Any:
    """Import ``module:attribute`` and return the attribute."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter("expected MODULE:CLASS, e.g. myapp.models:Order")
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"cannot import {module_name}: {e}") from e
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise typer.BadParameter(f"{module_name} has no attribute {attribute}") from e


def _section(title: str) -> None:
    typer.secho(f"\n-- {title}", fg=typer.colors.CYAN, bold=True)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """bulkops - Bulk-load, update and upsert records through staging tables."""
    pass


@app.command()
def config() -> None:
    """Print the effective configuration (from BULKOPS_* environment variables)."""
    try:
        cfg = load_config()
    except ValueError as e:
        typer.secho(f"Configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    for key, value in cfg.as_dict().items():
        typer.echo(f"{key}: {value}")


@app.command()
def plan(
    model: Annotated[
        str,
        typer.Argument(help="Mapped class to plan for, as MODULE:CLASS"),
    ],
    dialect: Annotated[
        DialectName,
        typer.Option("--dialect", "-d", help="Target database dialect"),
    ] = DialectName.postgresql,
    operation: Annotated[
        OperationName,
        typer.Option("--operation", "-o", help="Bulk operation to plan"),
    ] = OperationName.upsert,
    keep_identity: Annotated[
        bool,
        typer.Option("--keep-identity", help="Write explicit values into identity columns"),
    ] = False,
) -> None:
    """Show the SQL a bulk operation would run, without connecting."""
    record_type = _load_model(model)

    try:
        bulk_dialect = get_dialect(dialect.value)
        descriptor = resolve_table(record_type, bulk_dialect)
        if operation is not OperationName.insert:
            require_primary_key(descriptor, operation.value)
    except BulkOpsError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Table: {descriptor.full_name}")
    typer.echo(f"Primary key: {', '.join(descriptor.primary_key_fields) or '(none)'}")
    typer.echo(f"Identity: {', '.join(descriptor.identity_fields) or '(none)'}")
    typer.echo("Columns:")
    for column in descriptor.columns:
        flags = [
            flag
            for flag, enabled in (("pk", column.primary_key), ("identity", column.identity))
            if enabled
        ]
        suffix = f" ({', '.join(flags)})" if flags else ""
        typer.echo(f"  {column.name} -> {column.column_name}{suffix}")

    if operation is OperationName.insert:
        target = StreamTarget.TARGET
    else:
        target = StreamTarget.STAGING
        _section("Staging")
        typer.echo(bulk_dialect.drop_staging_sql(descriptor))
        for statement in bulk_dialect.create_staging_sql(descriptor):
            typer.echo(statement)

    _section("Transfer")
    columns = bulk_dialect.stream_columns(descriptor, target, keep_identity)
    table = bulk_dialect.stream_table(descriptor, target)
    typer.echo(bulk_dialect.transfer_statement(table, columns))

    if operation is OperationName.update:
        _section("Merge")
        statement = bulk_dialect.build_update(descriptor)
        typer.echo(statement or "(no updatable columns; merge skipped)")
    elif operation is OperationName.upsert:
        pair = bulk_dialect.build_split_merge(descriptor)
        _section("Merge: keyed upsert")
        typer.echo(pair.upsert_statement)
        _section("Merge: insert new rows")
        typer.echo(pair.insert_statement)

    if target is StreamTarget.STAGING:
        _section("Cleanup")
        typer.echo(bulk_dialect.drop_staging_sql(descriptor))


if __name__ == "__main__":
    app()
