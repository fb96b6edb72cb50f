"""
CLI commands for MySQL ORM migrations and scaffolding.

Uses click for command-line argument parsing. Commands that touch the
database need ``--connection module:factory``: ``factory`` is called with
the ``ConnectionConfig`` and returns an awaitable ``BaseConnection``.
"""

import asyncio
import importlib
import inspect
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, NoReturn

import click

from ..adapter import Database
from ..config import ConnectionConfig, read_env_file
from ..connection import BaseConnection

ConnectionFactory = Callable[[ConnectionConfig], Awaitable[BaseConnection]]


def run_async(coro: Any) -> Any:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def load_object(path: str) -> Any:
    """
    Import ``module:attribute``.

    Raises:
        click.BadParameter: If the path is malformed or cannot be imported
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected module:name, got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name}: {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError:
        raise click.BadParameter(f"{module_name} has no attribute {attr}") from None


async def _close(connection: Any) -> None:
    close = getattr(connection, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result


def _migrator_call(ctx: click.Context, action: Callable[[Any], Awaitable[Any]]) -> Any:
    """Open a connection, build a ``Migrator`` and run ``action`` with it."""
    from ..migrations import MigrationRegistry, Migrator

    config: ConnectionConfig = ctx.obj["config"]
    factory_path: str | None = ctx.obj["connection"]
    if not factory_path:
        raise click.UsageError("--connection module:factory is required for this command")
    factory: ConnectionFactory = load_object(factory_path)

    async def run() -> Any:
        registry = MigrationRegistry.from_path(config.migrations_dir)
        connection = await factory(config)
        try:
            db = Database.from_config(connection, config)
            return await action(Migrator(db, registry))
        finally:
            await _close(connection)

    return run_async(run())


def _fail(message: str) -> NoReturn:
    click.echo(message, err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--connection",
    "-c",
    envvar="MYSQL_ORM_CONNECTION",
    help="Connection factory as module:callable",
)
@click.option(
    "--env-file",
    "-e",
    type=click.Path(dir_okay=False),
    help="Read MYSQL_* settings from a dotenv file instead of the environment",
)
@click.option("--debug", "-d", is_flag=True, help="Log every SQL statement")
@click.pass_context
def cli(ctx: click.Context, connection: str | None, env_file: str | None, debug: bool) -> None:
    """MySQL ORM migration management tool."""
    ctx.ensure_object(dict)
    try:
        config = read_env_file(env_file) if env_file else ConnectionConfig.from_env()
    except FileNotFoundError as e:
        raise click.UsageError(str(e)) from e
    if debug:
        config = replace(config, debug=True)
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ctx.obj["config"] = config
    ctx.obj["connection"] = connection


@cli.command()
@click.option("--exec-default", is_flag=True, help="Also apply the default schema migration")
@click.pass_context
def up(ctx: click.Context, exec_default: bool) -> None:
    """Apply pending migrations."""
    try:
        installed = _migrator_call(ctx, lambda m: m.update_schema(exec_default=exec_default))
    except click.ClickException:
        raise
    except Exception as e:
        _fail(f"Migration failed: {e}")
    if installed:
        click.echo(f"Applied {len(installed)} migration(s):")
        for version in installed:
            click.echo(f"  - {version}")
    else:
        click.echo("Schema is up to date.")


@cli.command()
@click.option("--exec-default", is_flag=True, help="Apply the default schema migration when initializing")
@click.pass_context
def init(ctx: click.Context, exec_default: bool) -> None:
    """Create the migration bookkeeping tables."""
    try:
        created = _migrator_call(ctx, lambda m: m.init_schema(exec_default=exec_default))
    except click.ClickException:
        raise
    except Exception as e:
        _fail(f"Init failed: {e}")
    if created:
        click.echo("Schema versioning is now initialized. Run `mysql-orm status` for info.")
    else:
        click.echo("Schema versioning tables already exist.")


@cli.command(name="exec")
@click.argument("version")
@click.option("--force", is_flag=True, help="Run the migration even if it is already applied")
@click.pass_context
def exec_migration(ctx: click.Context, version: str, force: bool) -> None:
    """Execute migration VERSION ("default" for the default schema)."""
    try:
        executed = _migrator_call(ctx, lambda m: m.execute_migration(version, force=force))
    except click.ClickException:
        raise
    except Exception as e:
        _fail(f"Execute failed: {e}")
    if executed:
        click.echo(f"Executed migration {version}.")
    else:
        click.echo(f"Migration {version} is already applied, use --force to run it again.")


@cli.command()
@click.argument("version", required=False)
@click.pass_context
def rollback(ctx: click.Context, version: str | None) -> None:
    """Rollback VERSION, or the latest applied migration."""

    async def action(migrator: Any) -> str | None:
        if version:
            await migrator.rollback(version)
            return version
        return await migrator.rollback_latest()

    try:
        rolled_back = _migrator_call(ctx, action)
    except click.ClickException:
        raise
    except Exception as e:
        _fail(f"Rollback failed: {e}")
    if rolled_back:
        click.echo(f"Rolled back migration {rolled_back}.")
    else:
        click.echo("Nothing to rollback.")


@cli.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Forget every applied migration (tables are left untouched)."""
    try:
        _migrator_call(ctx, lambda m: m.reset())
    except click.ClickException:
        raise
    except Exception as e:
        _fail(f"Reset failed: {e}")
    click.echo("Migration data has been reset.")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the latest migration logs and applied versions."""
    try:
        info = _migrator_call(ctx, lambda m: m.status())
    except click.ClickException:
        raise
    except Exception as e:
        _fail(f"Status failed: {e}")

    click.echo("-" * 50)
    click.echo("Last schema change logs")
    click.echo("-" * 50)
    for log in info.logs:
        flag = "ok" if log.success else "failed"
        version = f" [{log.version}]" if log.version else ""
        click.echo(f"{log.created:%Y-%m-%d %H:%M:%S} {log.action}{version} {log.message} ({flag})")

    click.echo("-" * 50)
    click.echo("Latest migrations info")
    click.echo("-" * 50)
    if not info.migrations:
        click.echo("No migrations so far")
    for migration in reversed(info.migrations):
        click.echo(migration.version)
    click.echo("-" * 50)


@cli.command(name="new-migration")
@click.option("--default", "default", is_flag=True, help="Create the default schema migration")
@click.pass_context
def new_migration_command(ctx: click.Context, default: bool) -> None:
    """Create empty up/down SQL files for a new migration version."""
    from ..migrations import new_migration

    config: ConnectionConfig = ctx.obj["config"]
    try:
        up_path, down_path = new_migration(config.migrations_dir, default=default)
    except Exception as e:
        _fail(f"Error: {e}")
    click.echo(f"Created migration: {up_path}")
    click.echo(f"Created rollback: {down_path}")


@cli.group()
def gen() -> None:
    """Generate model scaffolding."""


@gen.command(name="init")
@click.argument("class_name")
@click.argument("short_name")
def gen_init(class_name: str, short_name: str) -> None:
    """Print a stub module for a new model CLASS_NAME."""
    from ..schema import generate_init

    click.echo(generate_init(class_name, short_name))


@gen.command(name="schema")
@click.argument("model_path")
def gen_schema(model_path: str) -> None:
    """Print the CREATE TABLE statement for MODULE:CLASS."""
    from ..schema import generate_schema

    model_cls = load_object(model_path)
    try:
        click.echo(generate_schema(model_cls))
    except Exception as e:
        _fail(f"Error: {e}")


@gen.command(name="model")
@click.argument("model_path")
@click.argument("short_name")
def gen_model(model_path: str, short_name: str) -> None:
    """Print accessor functions and a test for MODULE:CLASS."""
    from ..schema import generate_model_code, generate_model_test

    model_cls = load_object(model_path)
    try:
        click.echo(generate_model_code(model_cls, short_name))
        click.echo(generate_model_test(model_cls, short_name))
    except Exception as e:
        _fail(f"Error: {e}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
