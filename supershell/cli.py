from __future__ import annotations

import getpass
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from .models import AuthMethod, Record, RecordPatch
from .ssh import connect
from .storage import RecordNotFoundError, Store, StoreError


def default_user() -> str:
    """Return the invoking OS user."""
    return getpass.getuser()


def default_key_path() -> str:
    return str(Path.home() / ".ssh" / "id_rsa")


class OrderCommands(typer.core.TyperGroup):
    """Custom group to sort commands alphabetically in help."""

    def list_commands(self, ctx):
        return sorted(super().list_commands(ctx))


app = typer.Typer(
    help="Supershell: saved SSH connection profiles.",
    cls=OrderCommands,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()
err_console = Console(stderr=True)


def _fail(message: str, code: int = 1) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)
    return typer.Exit(code)


def _usage_error(message: str) -> typer.Exit:
    return _fail(message, code=2)


def _require(value: str, flag: str, verb: str) -> str:
    if not value:
        raise _usage_error(f"{verb} requires {flag}")
    return value


def _resolve_user(user: str | None) -> str:
    if user:
        return user
    try:
        return default_user()
    except (KeyError, OSError) as e:
        raise _usage_error("cannot determine current user; pass --user") from e


def _store(ctx: typer.Context) -> Store:
    store = ctx.obj
    if store is None:
        try:
            store = Store.open(ctx.meta.get("config_dir"))
        except StoreError as e:
            raise _fail(str(e)) from e
        ctx.obj = store
    return store


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None,
        "--config-dir",
        envvar="SUPERSHELL_CONFIG_DIR",
        help="Directory holding connections.json",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
):
    """Supershell: saved SSH connection profiles."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    ctx.meta["config_dir"] = config_dir


@app.command("add", help="Add a connection. Alias: a")
@app.command("a", hidden=True)
def add_record(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Nickname for the connection"),
    host: str = typer.Option(..., "--host", help="Host or IP"),
    port: int = typer.Option(22, "--port", min=1, max=65535, help="SSH port"),
    user: str | None = typer.Option(None, "--user", help="SSH username (default: current OS user)"),
    auth: AuthMethod = typer.Option(AuthMethod.KEY, "--auth", case_sensitive=False, help="Auth method"),
    key: str | None = typer.Option(None, "--key", help="Path to private key (default: ~/.ssh/id_rsa)"),
    password: str | None = typer.Option(None, "--password", help="SSH password (stored in plaintext)"),
):
    """Add a connection."""
    _require(name, "--name", "add")
    _require(host, "--host", "add")
    if auth is AuthMethod.KEY:
        key = default_key_path() if key is None else key
        if not key:
            raise _usage_error("--key required when --auth=key")
    if auth is AuthMethod.PASSWORD and not password:
        raise _usage_error("--password required when --auth=password")

    try:
        record = Record(
            nickname=name,
            host=host,
            port=port,
            user=_resolve_user(user),
            auth_method=auth,
            key_path=key or None,
            password=password or None,
        )
    except ValidationError as e:
        raise _usage_error(str(e)) from e

    try:
        _store(ctx).add(record)
    except StoreError as e:
        raise _fail(str(e)) from e
    console.print(f"[green]Added:[/green] {escape(record.summary())}", highlight=False)


@app.command("update", help="Update fields of a connection. Alias: u")
@app.command("u", hidden=True)
def update_record(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Nickname of the connection"),
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port", min=0, max=65535, help="SSH port (0 leaves it unchanged)"),
    user: str | None = typer.Option(None, "--user"),
    auth: AuthMethod | None = typer.Option(None, "--auth", case_sensitive=False),
    key: str | None = typer.Option(None, "--key"),
    password: str | None = typer.Option(None, "--password"),
):
    """Overwrite the given fields; fields left out or empty stay as they are."""
    _require(name, "--name", "update")
    patch = RecordPatch(host=host, port=port, user=user, auth_method=auth, key_path=key, password=password)
    try:
        record = _store(ctx).update(name, patch)
    except StoreError as e:
        raise _fail(str(e)) from e
    console.print(f"[green]Updated:[/green] {escape(record.summary())}", highlight=False)


@app.command("delete", help="Delete a connection. Alias: rm")
@app.command("rm", hidden=True)
def delete_record(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Nickname to delete"),
):
    """Delete a connection."""
    _require(name, "--name", "delete")
    try:
        _store(ctx).delete(name)
    except StoreError as e:
        raise _fail(str(e)) from e
    console.print(f"[green]Deleted:[/green] {escape(name)}", highlight=False)


@app.command("list", help="List connections. Alias: ls")
@app.command("ls", hidden=True)
def list_records(ctx: typer.Context):
    """List connections sorted by nickname."""
    records = _store(ctx).list()
    if not records:
        console.print("[yellow]No connections saved.[/yellow]")
        return
    for record in records:
        typer.echo(record.summary())


@app.command("get", help="Show a connection. Alias: g")
@app.command("g", hidden=True)
def get_record(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Nickname to show"),
):
    """Show a connection; passwords are masked."""
    _require(name, "--name", "get")
    try:
        record = _store(ctx).get(name)
    except RecordNotFoundError as e:
        raise _fail(str(e)) from e
    typer.echo(record.summary())
    if record.auth_method is AuthMethod.KEY and record.key_path:
        typer.echo(f"key:\t{record.key_path}")
    elif record.auth_method is AuthMethod.PASSWORD and record.password:
        typer.echo(f"password:\t{record.masked_password}")


@app.command("connect", help="Open an SSH session. Alias: c")
@app.command("c", hidden=True)
def connect_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Nickname to connect to"),
    no_copy: bool = typer.Option(False, "--no-copy", help="Don't copy password to clipboard"),
):
    """Open an interactive SSH session; exits with the session's exit code."""
    _require(name, "--name", "connect")
    try:
        record = _store(ctx).get(name)
    except RecordNotFoundError as e:
        raise _fail(str(e)) from e
    rc = connect(record, copy_password=not no_copy)
    raise typer.Exit(rc)


def main():
    app()


if __name__ == "__main__":
    main()
