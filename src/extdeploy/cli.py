"""
Click-based CLI for extdeploy.
"""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from . import __version__
from .application import (
    ApplyFileService,
    ApplyService,
    BuildService,
    ComposeService,
    UnregisterService,
)
from .config import ApplyOptions, BuildSpec, ComposeOptions, ConnectionCredentials, load_credentials
from .core.compiler import ScriptCompiler
from .core.composer import DEFAULT_WIPE_SCRIPT, ExtensionComposer
from .database.adhoc import AdHocExecutor
from .database.client import PsycopgQueryClient, SubprocessRunner
from .database.provisioner import DatabaseProvisioner
from .domain.errors import ExtDeployError
from .domain.results import CommandResult
from .logging import configure_logging

console = Console()


def _fail(err: ExtDeployError, prefix: str = "Error", json_output: bool = False) -> NoReturn:
    if json_output:
        click.echo(CommandResult.from_error(err).to_json())
    else:
        console.print(f"[red]✗ {prefix}:[/red] {escape(str(err))}")
    sys.exit(1)


def _credentials(ctx: click.Context, database: str) -> ConnectionCredentials:
    settings = ctx.obj
    return load_credentials(
        settings["config"],
        username=settings["username"],
        hostname=settings["hostname"],
        port=settings["port"],
        password=settings["password"],
        database=database,
    )


def compose_flags(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that composes extension bundles."""
    options = [
        click.option("--foundation", is_flag=True, help="Prepend foundation manifest scripts"),
        click.option(
            "--frozen", is_flag=True, help="Prepend frozen (first registration only) scripts"
        ),
        click.option(
            "--register/--no-register",
            default=False,
            help="Prepend extension registration SQL",
        ),
        click.option("--js-init", is_flag=True, help="Prepend a one-time initializer call"),
        click.option("--wipe-views", is_flag=True, help="Prepend the view wipe script"),
        click.option(
            "--wipe-script",
            type=click.Path(dir_okay=False, path_type=Path),
            help="Script that deletes system views (default: found under --root)",
        ),
        click.option(
            "--root",
            type=click.Path(exists=True, file_okay=False, path_type=Path),
            default=".",
            help="Checkout root holding the view wipe script and, for build, the extensions",
        ),
        click.option("--location", help="Location recorded when registering the extension"),
        click.option(
            "--lenient",
            is_flag=True,
            help="Warn instead of failing on scripts without a trailing semicolon",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _compose_options(flags: dict[str, Any]) -> ComposeOptions:
    return ComposeOptions(
        use_foundation_scripts=flags["foundation"],
        use_frozen_scripts=flags["frozen"],
        register_extension=flags["register"],
        run_js_init=flags["js_init"],
        wipe_views=flags["wipe_views"],
        extension_location=flags["location"],
    )


def _composer(flags: dict[str, Any], root: Path) -> ExtensionComposer:
    compiler = ScriptCompiler(on_format_error="warn" if flags["lenient"] else "raise")
    wipe_script = flags["wipe_script"] or root / DEFAULT_WIPE_SCRIPT
    return ExtensionComposer(compiler=compiler, wipe_script=wipe_script)


@click.group()
@click.version_option(version=__version__, prog_name="extdeploy")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON config file with a databaseServer section",
)
@click.option("--username", "-U", envvar="PGUSER", help="Database user")
@click.option("--hostname", "-H", envvar="PGHOST", help="Database server host")
@click.option("--port", "-p", envvar="PGPORT", type=int, help="Database server port")
@click.option("--password", envvar="PGPASSWORD", help="Database password")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[Path],
    username: Optional[str],
    hostname: Optional[str],
    port: Optional[int],
    password: Optional[str],
    verbose: bool,
) -> None:
    """Build, register and maintain database extensions"""
    configure_logging(verbose)
    ctx.obj = {
        "config": config_path,
        "username": username,
        "hostname": hostname,
        "port": port,
        "password": password,
    }


@cli.command()
@click.argument("extension", type=click.Path(exists=True, file_okay=False, path_type=Path))
@compose_flags
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file path (default: stdout)",
)
def compose(extension: Path, output: Optional[Path], **flags: Any) -> None:
    """Compose an extension's SQL bundle"""

    try:
        result = ComposeService(composer=_composer(flags, flags["root"])).run(
            extension=extension,
            options=_compose_options(flags),
            output=output,
        )
    except ExtDeployError as e:
        _fail(e)

    if output:
        console.print(f"[green]✓[/green] SQL written to {output}")
    elif console.is_terminal:
        console.print(Syntax(result.data["sql"], "sql", theme="monokai", line_numbers=False))
    else:
        click.echo(result.data["sql"], nl=False)


@cli.command()
@click.argument(
    "extensions",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--database", "-d", required=True, help="Target database")
@compose_flags
@click.option("--keep-sql", is_flag=True, help="Keep the temporary SQL file")
@click.option(
    "--sql-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for temporary SQL files",
)
@click.pass_context
def apply(
    ctx: click.Context,
    extensions: tuple[Path, ...],
    database: str,
    keep_sql: bool,
    sql_dir: Optional[Path],
    **flags: Any,
) -> None:
    """Compose extensions and apply them to a database"""

    try:
        service = ApplyService(
            composer=_composer(flags, flags["root"]),
            executor=AdHocExecutor(SubprocessRunner()),
        )
        result = service.run(
            extensions=list(extensions),
            credentials=_credentials(ctx, database),
            options=_compose_options(flags),
            apply_options=ApplyOptions(keep_sql=keep_sql, sql_dir=sql_dir),
        )
    except ExtDeployError as e:
        _fail(e, "Apply failed")

    for name in result.data["extensions"]:
        console.print(f"  [green]✓[/green] {name}")
    console.print(f"[green]✓[/green] {result.message}")


@cli.command("apply-file")
@click.argument("sql_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--database", "-d", required=True, help="Target database")
@click.option("--keep-sql", is_flag=True, help="Keep the temporary SQL file")
@click.pass_context
def apply_file(ctx: click.Context, sql_file: Path, database: str, keep_sql: bool) -> None:
    """Apply a SQL file to a database in a single transaction"""

    try:
        result = ApplyFileService(executor=AdHocExecutor(SubprocessRunner())).run(
            sql_file=sql_file,
            credentials=_credentials(ctx, database),
            apply_options=ApplyOptions(keep_sql=keep_sql),
        )
    except ExtDeployError as e:
        _fail(e, "Apply failed")

    console.print(f"[green]✓[/green] {result.message}")


@cli.command()
@click.option("--database", "-d", required=True, help="Target database")
@click.option(
    "--source",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Schema + seed SQL file to build the database from",
)
@click.option(
    "--backup",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Binary backup to restore the database from",
)
@click.option(
    "--extension",
    "-e",
    "extensions",
    multiple=True,
    help="Extension to build (ignored when restoring a backup)",
)
@compose_flags
@click.option("--keep-sql", is_flag=True, help="Keep the temporary SQL files")
@click.option("--strict-restore", is_flag=True, help="Fail when pg_restore reports an error")
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.pass_context
def build(
    ctx: click.Context,
    database: str,
    source: Optional[Path],
    backup: Optional[Path],
    extensions: tuple[str, ...],
    root: Path,
    keep_sql: bool,
    strict_restore: bool,
    json_output: bool,
    **flags: Any,
) -> None:
    """Initialize a database from source or backup and build extensions"""

    if source and backup:
        console.print("[red]✗ Error:[/red] --source and --backup are mutually exclusive")
        sys.exit(1)

    try:
        credentials = _credentials(ctx, database)
        runner = SubprocessRunner()
        service = BuildService(
            provisioner=DatabaseProvisioner(
                PsycopgQueryClient(), runner, strict_restore=strict_restore
            ),
            composer=_composer(flags, root),
            executor=AdHocExecutor(runner),
        )
        result = service.run(
            spec=BuildSpec(
                database=database, source=source, backup=backup, extensions=list(extensions)
            ),
            credentials=credentials,
            options=_compose_options(flags),
            apply_options=ApplyOptions(keep_sql=keep_sql),
            root=root,
        )
    except ExtDeployError as e:
        _fail(e, "Build failed", json_output)

    if json_output:
        click.echo(result.to_json())
        return

    provision = result.data.get("provision")
    if provision and provision.get("restore_error"):
        console.print("[yellow]⚠️  Restore reported errors (ignored)[/yellow]")
    console.print(f"[green]✓[/green] {result.message}")


@cli.command()
@click.argument("extension")
@click.option(
    "--database", "-d", "databases", multiple=True, required=True, help="Target database(s)"
)
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.pass_context
def unregister(
    ctx: click.Context, extension: str, databases: tuple[str, ...], json_output: bool
) -> None:
    """Remove an extension's registration from one or more databases"""

    try:
        result = UnregisterService().run(
            extension=extension,
            databases=list(databases),
            credentials=_credentials(ctx, databases[0]),
        )
    except ExtDeployError as e:
        _fail(e, "Unregister failed", json_output)

    if json_output:
        click.echo(result.to_json())
        return

    console.print(f"[green]✓[/green] {result.message}")


if __name__ == "__main__":
    cli()
