"""
FastMemos CLI - Terminal front end for logging in and capturing memos.
"""
from __future__ import annotations

import asyncio
import json
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_config_path
from .errors import MemosError
from .logging import configure_logging
from .models import MemoDraft, Visibility
from .secret_store import get_secret_store
from .session import SessionController

app = typer.Typer(no_args_is_help=True, help="Capture short notes and send them to a Memos server.")
console = Console()


def get_controller() -> SessionController:
    return SessionController(secrets=get_secret_store())


def parse_visibility(value: Optional[str]) -> Optional[Visibility]:
    if value is None:
        return None
    try:
        return Visibility.parse(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def print_error(error: MemosError) -> None:
    console.print(f"[bold red]Error:[/bold red] {error.message}")
    if error.is_auth_failure:
        console.print("[dim]Run 'fastmemos login' to connect again.[/dim]")
    elif error.is_retryable:
        console.print("[dim]The server may be temporarily unavailable; try sending it again.[/dim]")


def print_unsent_draft(content: str) -> None:
    console.print(Panel(content, title="Memo not sent", border_style="yellow"))


def submit(controller: SessionController, draft: MemoDraft) -> None:
    """Send one draft, echoing it back if it fails."""
    visibility = draft.visibility
    try:
        with console.status("[bold cyan]Sending...[/bold cyan]", spinner="dots"):
            snapshot = asyncio.run(controller.submit_draft(draft))
    except MemosError as e:
        print_error(e)
        if not draft.is_empty:
            print_unsent_draft(draft.content)
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Memo sent ({visibility.display_name}) to {snapshot.server_url}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    configure_logging(verbose=verbose)


@app.command()
def login(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Memos server URL"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Access token"),
):
    """
    Connect to a Memos server with an access token.
    """
    controller = get_controller()

    if server is None:
        server = typer.prompt("Server URL", default=controller.session.server_url or None)
    if token is None:
        token = typer.prompt("Access token", hide_input=True)

    try:
        with console.status("[bold cyan]Connecting...[/bold cyan]", spinner="dots"):
            snapshot = asyncio.run(controller.connect(server, token))
    except MemosError as e:
        console.print(f"[bold red]Login failed:[/bold red] {e.message}")
        raise typer.Exit(code=1)

    who = f" as {snapshot.username}" if snapshot.username else ""
    console.print(f"[green]✓[/green] Connected to {snapshot.server_url}{who}")


@app.command()
def logout():
    """
    Forget the stored token and server.
    """
    get_controller().logout()
    console.print("[green]✓[/green] Logged out")


@app.command()
def status(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show the current session.
    """
    snapshot = get_controller().session

    if json_output:
        print(json.dumps(snapshot.to_dict(), indent=2))
        return

    if snapshot.is_authenticated:
        console.print(f"[green]●[/green] Connected to {snapshot.server_url}")
        if snapshot.username:
            console.print(f"[dim]User: {snapshot.username}[/dim]")
    else:
        console.print("[red]●[/red] Not connected")
    console.print(f"[dim]Default visibility: {snapshot.default_visibility.display_name}[/dim]")


@app.command()
def post(
    content: Optional[List[str]] = typer.Argument(None, help="Memo text (reads stdin if omitted)"),
    visibility: Optional[str] = typer.Option(None, "--visibility", "-V", help="private, protected or public"),
):
    """
    Send a memo.
    """
    chosen = parse_visibility(visibility)
    controller = get_controller()

    draft = controller.new_draft(" ".join(content) if content else sys.stdin.read())
    if chosen:
        draft.visibility = chosen
    submit(controller, draft)


@app.command()
def capture(
    visibility: Optional[str] = typer.Option(None, "--visibility", "-V", help="private, protected or public"),
):
    """
    Compose a multi-line memo interactively.
    End with a line containing only '.' or Ctrl-D.
    """
    chosen = parse_visibility(visibility)
    controller = get_controller()

    if not controller.is_authenticated:
        console.print("[bold red]Error:[/bold red] Please log in first")
        console.print("[dim]Run 'fastmemos login' to connect.[/dim]")
        raise typer.Exit(code=1)

    draft = controller.new_draft()
    if chosen:
        draft.visibility = chosen

    console.print(
        f"[bold cyan]New memo[/bold cyan] [dim]({draft.visibility.display_name}: "
        f"{draft.visibility.description}). Finish with '.' or Ctrl-D.[/dim]"
    )

    lines = []
    while True:
        try:
            line = input()
        except EOFError:
            break
        except KeyboardInterrupt:
            console.print("\n[red]Discarded[/red]")
            raise typer.Exit(code=1)
        if line == ".":
            break
        lines.append(line)

    draft.content = "\n".join(lines)
    if draft.is_empty:
        console.print("[dim]Nothing to send[/dim]")
        return

    console.print(f"[dim]{draft.word_count} words, {draft.char_count} characters[/dim]")
    submit(controller, draft)


@app.command()
def config(
    default_visibility: Optional[str] = typer.Option(
        None, "--default-visibility", "-d", help="Set the default visibility"
    ),
):
    """
    Show or change settings.
    """
    controller = get_controller()

    if default_visibility is not None:
        controller.set_default_visibility(parse_visibility(default_visibility))

    snapshot = controller.session
    table = Table(title="FastMemos Configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("server_url", snapshot.server_url or "[dim]not set[/dim]")
    table.add_row("default_visibility", snapshot.default_visibility.value)
    table.add_row("config_file", str(get_config_path()))
    console.print(table)
