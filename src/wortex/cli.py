"""CLI entry point for wortex."""

import json
import logging
import sys
from typing import Optional
from uuid import UUID

import click
from rich.console import Console
from rich.table import Table

from wortex.config import Config, load_config
from wortex.core.orchestrator import CreateRequest, Orchestrator
from wortex.core.reconciler import Reconciler
from wortex.core.store import JsonStateStore
from wortex.core.supervisor import RunSupervisor
from wortex.core.tmux_manager import TmuxManager
from wortex.core.tool_log import HOOK_TYPES, ToolCallLog
from wortex.core.worktree import WorktreeManager
from wortex.exceptions import (
    EntryNotFoundError,
    StateNotInitializedError,
    WortexError,
)
from wortex.models.entry import AgentInvocation, EntryState, ExitPolicy, RawInvocation

console = Console()

STATE_STYLES = {
    EntryState.PENDING: "[yellow]pending[/yellow]",
    EntryState.RUNNING: "[green]running[/green]",
    EntryState.EXITED: "[blue]exited[/blue]",
}


def get_store(config: Config) -> JsonStateStore:
    return JsonStateStore(config.state.directory)


def get_orchestrator(config: Config) -> Orchestrator:
    """Build an Orchestrator for the repository containing the current directory."""
    return Orchestrator(
        store=get_store(config),
        git=WorktreeManager(),
        tmux=TmuxManager(),
        config=config,
    )


def parse_entry_id(value: str) -> UUID:
    """
    Parse an entry id given on the command line.

    Raises:
        EntryNotFoundError: If the value is not a valid id.
    """
    try:
        return UUID(value)
    except ValueError as e:
        raise EntryNotFoundError(value) from e


@click.group()
@click.version_option(package_name="wortex")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to a config file.",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Optional[str]) -> None:
    """wortex - run commands in git worktrees, one tmux window each.

    Every pairing of branch, worktree, tmux window and command is tracked in
    a ledger shared by all wortex processes.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = load_config(config_path)


@main.command("init")
@click.pass_obj
def init_state(config: Config) -> None:
    """Create the state directory.

    Safe to run more than once.
    """
    store = get_store(config)
    try:
        store.initialize()
    except OSError as e:
        raise click.ClickException(f"Cannot create {store.state_dir}: {e}") from e

    console.print(f"[green]Initialized state directory:[/green] {store.state_dir}")


@main.command("new")
@click.argument("branch")
@click.option("-p", "--prompt", help="Prompt for the coding agent.")
@click.option("-a", "--agent", help="Agent identifier passed to the agent binary.")
@click.option("--cmd", help="Shell command to run instead of the agent.")
@click.option(
    "--exit-kill",
    is_flag=False,
    flag_value="0",
    default=None,
    metavar="[CODES|any]",
    help="Tear the pairing down when the command exits with one of CODES "
         "(comma separated, default 0) or with any code.",
)
@click.option("-r", "--remote", help="Remote to branch from (default: origin).")
@click.option("-b", "--base", help="Base branch on the remote (default: main).")
@click.pass_obj
def new_entry(
    config: Config,
    branch: str,
    prompt: Optional[str],
    agent: Optional[str],
    cmd: Optional[str],
    exit_kill: Optional[str],
    remote: Optional[str],
    base: Optional[str],
) -> None:
    """Create a worktree for BRANCH and run a command in a new tmux window.

    Example:
        wortex new feature/login --prompt "Add a login form"
        wortex new fix/flaky --cmd "make test" --exit-kill
        wortex new chore/deps --cmd "./upgrade.sh" --exit-kill any
    """
    if (prompt is None) == (cmd is None):
        raise click.UsageError("Pass exactly one of --prompt or --cmd.")
    if agent and cmd is not None:
        raise click.UsageError("--agent can only be used with --prompt.")

    if prompt is not None:
        command = AgentInvocation(prompt=prompt, agent=agent)
    else:
        command = RawInvocation(cmd=cmd)

    request = CreateRequest(
        branch=branch,
        command=command,
        exit_policy=ExitPolicy.parse(exit_kill),
        remote=remote,
        base=base,
    )

    try:
        with console.status(f"[bold blue]Creating worktree for '{branch}'..."):
            entry = get_orchestrator(config).create(request)
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    console.print()
    console.print("[bold green]Worktree created successfully!")
    console.print()
    console.print(f"[bold]Branch:[/bold]  {entry.branch}")
    console.print(f"[bold]Path:[/bold]    {entry.path}")
    console.print(f"[bold]Window:[/bold]  {entry.tmux_target}")
    if entry.exit_policy:
        console.print(f"[bold]Exit kill:[/bold] {entry.exit_policy.describe()}")
    console.print()


@main.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output the ledger as JSON.")
@click.pass_obj
def list_entries(config: Config, as_json: bool) -> None:
    """List tracked pairings and their state.

    Example:
        wortex list
        wortex list --json
    """
    try:
        ledger = get_store(config).snapshot()
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(ledger.model_dump_json(indent=2))
        return

    if not ledger.entries:
        console.print("[yellow]No entries.[/yellow]")
        return

    tmux_manager = TmuxManager()

    table = Table(title="wortex", show_header=True, header_style="bold cyan")
    table.add_column("Branch", style="bold")
    table.add_column("State", justify="center")
    table.add_column("Command")
    table.add_column("Exit kill", justify="center")
    table.add_column("Exit", justify="center")
    table.add_column("Path", style="dim")

    for entry in ledger.entries:
        alive = tmux_manager.window_exists(entry.tmux_session, entry.tmux_window)
        command = entry.command
        if isinstance(command, AgentInvocation):
            description = f"claude: {command.prompt}"
        else:
            description = command.cmd

        table.add_row(
            entry.branch,
            STATE_STYLES[entry.state(alive)],
            description,
            entry.exit_policy.describe() if entry.exit_policy else "-",
            "-" if entry.exit_code is None else str(entry.exit_code),
            str(entry.path),
        )

    console.print()
    console.print(table)
    console.print()


@main.command("switch")
@click.argument("branch")
@click.pass_obj
def switch_entry(config: Config, branch: str) -> None:
    """Focus the tmux window of BRANCH."""
    orchestrator = get_orchestrator(config)
    try:
        orchestrator.switch(branch)
    except WortexError as e:
        raise click.ClickException(str(e)) from e


@main.command("kill")
@click.argument("branch")
@click.option(
    "--keep-worktree",
    is_flag=True,
    help="Keep the worktree directory on disk.",
)
@click.pass_obj
def kill_entry(config: Config, branch: str, keep_worktree: bool) -> None:
    """Kill the window of BRANCH, remove its worktree and forget it.

    The local branch is deleted as well.

    Example:
        wortex kill feature/login
        wortex kill feature/login --keep-worktree
    """
    try:
        with console.status(f"[bold red]Tearing down '{branch}'..."):
            entry = get_orchestrator(config).terminate(branch, keep_worktree=keep_worktree)
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[bold green]Killed:[/bold green] {entry.branch}")
    if keep_worktree:
        console.print(f"[dim]Worktree kept at {entry.path}[/dim]")


@main.command("cleanup")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show stale entries without removing them.",
)
@click.pass_obj
def cleanup_entries(config: Config, dry_run: bool) -> None:
    """Remove entries whose worktree or tmux window is gone.

    Example:
        wortex cleanup --dry-run
        wortex cleanup
    """
    reconciler = Reconciler(get_store(config), TmuxManager())
    try:
        report = reconciler.scan(dry_run=dry_run)
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    if not report.stale:
        console.print(f"[green]No stale entries ({report.entries_scanned} scanned).[/green]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Branch", style="bold")
    table.add_column("Id", style="dim")
    table.add_column("Reasons")

    for item in report.stale:
        table.add_row(item.branch, str(item.id), ", ".join(item.reasons))

    console.print()
    console.print(table)
    console.print()

    if dry_run:
        console.print("[blue]This is a dry run. No entries were removed.[/blue]")
        return

    console.print(f"[bold green]Removed {len(report.removed_ids)} stale entr"
                  f"{'y' if len(report.removed_ids) == 1 else 'ies'}.[/bold green]")


main.add_command(cleanup_entries, "clean")


@main.command("status")
@click.pass_obj
def show_status(config: Config) -> None:
    """Show `git status -s` for every tracked worktree."""
    orchestrator = get_orchestrator(config)
    try:
        statuses = orchestrator.working_copy_status()
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    if not statuses:
        console.print("[yellow]No entries.[/yellow]")
        return

    for item in statuses:
        console.print(f"[bold]{item.entry.branch}[/bold] [dim]{item.entry.path}[/dim]")
        if item.missing:
            console.print("  [red]worktree missing[/red]")
        elif item.clean:
            console.print("  [green]clean[/green]")
        else:
            for line in item.status.splitlines():
                console.print(f"  {line}", markup=False, highlight=False)


@main.command("tools")
@click.argument("branch", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--hook-type",
    type=click.Choice(HOOK_TYPES),
    help="Only show calls from this hook.",
)
@click.option("-l", "--limit", type=int, help="Maximum number of calls to show.")
@click.pass_obj
def show_tools(
    config: Config,
    branch: Optional[str],
    as_json: bool,
    hook_type: Optional[str],
    limit: Optional[int],
) -> None:
    """Show agent tool calls, for BRANCH or across all entries.

    Calls for one branch are listed oldest first; all calls newest first.

    Example:
        wortex tools feature/login
        wortex tools --hook-type pre -l 20
    """
    store = get_store(config)
    try:
        if not store.is_initialized():
            raise StateNotInitializedError(store.state_dir)

        session_id = None
        if branch:
            entry = store.find_by_branch(branch)
            if entry is None:
                raise EntryNotFoundError(branch)
            session_id = entry.id
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    try:
        calls = ToolCallLog(store.state_dir).query(session_id, hook_type, limit)
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps([c.model_dump(mode="json") for c in calls], indent=2))
        return

    if not calls:
        console.print("[yellow]No tool calls logged.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Time", style="dim")
    table.add_column("Hook", justify="center")
    table.add_column("Tool", style="bold")
    table.add_column("Session", style="dim")
    table.add_column("Input")

    for call in calls:
        table.add_row(
            call.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            call.hook_type,
            call.tool_name,
            str(call.session_id)[:8],
            call.input,
        )

    console.print(table)


@main.command("__run", hidden=True)
@click.argument("entry_id")
@click.pass_obj
def run_entry(config: Config, entry_id: str) -> None:
    """Run the command of an entry inside its window."""
    supervisor = RunSupervisor(get_store(config), TmuxManager(), config)
    try:
        code = supervisor.run(parse_entry_id(entry_id))
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    sys.exit(code)


@main.command("__log-tool", hidden=True)
@click.argument("entry_id")
@click.argument("hook_type")
@click.pass_obj
def log_tool(config: Config, entry_id: str, hook_type: str) -> None:
    """Record one agent tool call read from stdin."""
    if hook_type not in HOOK_TYPES:
        raise click.UsageError(f"Invalid hook type: {hook_type}")

    store = get_store(config)
    try:
        session_id = parse_entry_id(entry_id)
        if not store.is_initialized():
            raise StateNotInitializedError(store.state_dir)
    except WortexError as e:
        raise click.ClickException(str(e)) from e

    payload = click.get_text_stream("stdin").read()
    try:
        ToolCallLog(store.state_dir).record_hook_payload(session_id, hook_type, payload)
    except (ValueError, KeyError) as e:
        raise click.ClickException(f"Invalid hook payload: {e}") from e
    except WortexError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    main()
