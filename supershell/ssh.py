from __future__ import annotations

import logging
import platform
import shutil
import subprocess

import pyperclip
from rich.console import Console
from rich.markup import escape

from .models import AuthMethod, Record

SSH_BINARY = "ssh"

console = Console()
logger = logging.getLogger(__name__)


def has_ssh() -> bool:
    """Check if SSH client is available."""
    return shutil.which(SSH_BINARY) is not None


def build_command(record: Record) -> list[str]:
    """Return the ssh argument list for a record."""
    cmd = [SSH_BINARY, "-p", str(record.port)]
    if record.auth_method is AuthMethod.KEY and record.key_path:
        cmd += ["-i", record.key_path]
    cmd.append(record.target)
    return cmd


INSTALL_HINTS = {
    "Windows": "winget install --id Microsoft.OpenSSH.Client -e",
    "Darwin": "brew install openssh",
}


def _install_hint() -> str:
    return INSTALL_HINTS.get(platform.system(), "your package manager, e.g. sudo apt install openssh-client")


def connect(record: Record, copy_password: bool = True) -> int:
    """Run an interactive ssh session for record. Returns exit code."""
    if not has_ssh():
        console.print("[red]SSH client not found.[/red]")
        console.print(f"Install an OpenSSH client: [cyan]{_install_hint()}[/cyan]")
        return 127

    if copy_password and record.auth_method is AuthMethod.PASSWORD and record.password:
        try:
            pyperclip.copy(record.password)
            console.print("[green]Password copied to clipboard.[/green] When prompted for Password: paste it.")
        except pyperclip.PyperclipException as e:
            console.print(f"[yellow]Failed to copy password: {e}[/yellow]")

    cmd = build_command(record)
    console.print(f"[cyan]SSH: {escape(' '.join(cmd))}[/cyan]")
    logger.debug("spawning %s", cmd)
    try:
        return subprocess.call(cmd)  # noqa: S603
    except KeyboardInterrupt:
        return 130
    except OSError as e:
        console.print(f"[red]SSH execution error: {e}[/red]")
        return 1
