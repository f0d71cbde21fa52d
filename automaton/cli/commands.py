"""CLI commands for automaton."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from automaton import __logo__, __version__

app = typer.Typer(
    name="automaton",
    help=f"{__logo__} automaton - self-funding autonomous agent runtime",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} automaton v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """automaton - self-funding autonomous agent runtime."""
    pass


# ============================================================================
# Shared helpers
# ============================================================================


def _load_config_or_exit():
    from automaton.config.loader import load_config
    from automaton.errors import ConfigError

    try:
        return load_config()
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _open_store(config):
    from automaton.errors import StateStoreError
    from automaton.state.database import StateStore

    try:
        return StateStore(config.db_file)
    except StateStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def init(
    name: str = typer.Option("automaton", "--name", "-n", help="Automaton name"),
    genesis: str = typer.Option("", "--genesis", "-g", help="Genesis prompt from the creator"),
    creator: str = typer.Option("", "--creator", help="Creator's address"),
):
    """Write a default config, heartbeat schedule and workspace."""
    from automaton.config.loader import get_config_path, save_config
    from automaton.config.schema import Config
    from automaton.heartbeat.config import write_default_heartbeat_config
    from automaton.utils.helpers import ensure_dir

    config_path = get_config_path()
    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config(name=name, genesis_prompt=genesis, creator_address=creator)
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")

    workspace = ensure_dir(config.workspace_path)
    console.print(f"[green]✓[/green] Created workspace at {workspace}")

    if write_default_heartbeat_config(config.heartbeat_config_file):
        console.print(f"[green]✓[/green] Created heartbeat schedule at {config.heartbeat_config_file}")

    console.print(f"\n{__logo__} automaton is ready!")
    console.print("\nNext steps:")
    console.print(f"  1. Add an inference API key to [cyan]{config_path}[/cyan]")
    console.print("  2. Configure a funding source (funding.credits_api_url)")
    console.print("  3. Start it: [cyan]automaton run[/cyan]")


@app.command()
def run(
    log_file: str = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """Run the automaton until interrupted."""
    from automaton.logging_config import setup_logging
    from automaton.runtime import AutomatonRuntime

    config = _load_config_or_exit()
    setup_logging(config.log_level, log_file)

    runtime = AutomatonRuntime(config, store=_open_store(config))
    console.print(f"{__logo__} Starting [bold]{config.name}[/bold] (model {config.inference.model})")
    asyncio.run(runtime.run_forever())


@app.command()
def status():
    """Show config, agent state and recent activity."""
    from automaton.config.loader import get_config_path

    config_path = get_config_path()
    config = _load_config_or_exit()

    console.print(f"{__logo__} automaton Status\n")
    console.print(
        f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}"
    )
    console.print(
        f"Workspace: {config.workspace_path} "
        f"{'[green]✓[/green]' if config.workspace_path.exists() else '[red]✗[/red]'}"
    )
    console.print(f"Model: {config.inference.model} (low-compute: {config.inference.low_compute_model})")
    console.print(f"Inference API key: {'[green]✓[/green]' if config.inference.api_key else '[dim]not set[/dim]'}")

    if not config.db_file.exists():
        console.print(f"State: [dim]no database at {config.db_file}[/dim]")
        return

    store = _open_store(config)
    console.print(f"State: [bold]{store.get_agent_state().value}[/bold]")
    console.print(f"Tier: {store.get_kv('current_tier') or '[dim]unknown[/dim]'}")
    console.print(f"Turns: {store.get_turn_count()}")
    sleep_until = store.get_sleep_until()
    if sleep_until:
        console.print(f"Sleeping until: {sleep_until}")
    wake = store.get_wake_request()
    if wake:
        console.print(f"Pending wake request: [yellow]{wake}[/yellow]")
    last_ping = store.get_kv("last_heartbeat_ping")
    console.print(f"Last heartbeat ping: {last_ping or '[dim]never[/dim]'}")


@app.command()
def logs(
    tail: int = typer.Option(20, "--tail", "-n", help="Number of recent turns to show"),
):
    """Print recent turns and their tool calls."""
    config = _load_config_or_exit()
    store = _open_store(config)
    turns = store.get_recent_turns(tail)
    if not turns:
        console.print("No turns recorded yet.")
        return

    for turn in turns:
        console.print(
            f"[cyan]{turn.timestamp}[/cyan] [dim]{turn.id}[/dim] "
            f"({turn.input_source or 'self'}, {turn.token_usage.total_tokens} tokens)"
        )
        if turn.thinking:
            console.print(f"  {turn.thinking[:300]}{'...' if len(turn.thinking) > 300 else ''}")
        for tc in turn.tool_calls:
            mark = "[green]✓[/green]" if tc.ok else "[red]✗[/red]"
            console.print(f"  {mark} {tc.name} ({tc.duration_ms}ms): {tc.observation[:200]}")


# ============================================================================
# Heartbeat Commands
# ============================================================================


heartbeat_app = typer.Typer(help="Inspect and trigger heartbeat entries")
app.add_typer(heartbeat_app, name="heartbeat")


@heartbeat_app.command("list")
def heartbeat_list():
    """List heartbeat entries and their last run."""
    from automaton.heartbeat import last_run_key, load_heartbeat_config

    config = _load_config_or_exit()
    store = _open_store(config)
    entries = store.get_heartbeat_entries() or load_heartbeat_config(config.heartbeat_config_file)

    table = Table(title="Heartbeat Entries")
    table.add_column("Name", style="cyan")
    table.add_column("Schedule")
    table.add_column("Task")
    table.add_column("Status")
    table.add_column("Last Run")

    for entry in entries:
        status = "[green]enabled[/green]" if entry.enabled else "[dim]disabled[/dim]"
        table.add_row(
            entry.name, entry.schedule, entry.task, status, store.get_kv(last_run_key(entry.name)) or ""
        )

    console.print(table)


@heartbeat_app.command("tick")
def heartbeat_tick():
    """Run one heartbeat tick now (due entries only)."""
    from automaton.heartbeat import HeartbeatDaemon, load_heartbeat_config, sync_heartbeat_to_store
    from automaton.survival.funding import create_funding_source

    config = _load_config_or_exit()
    store = _open_store(config)
    sync_heartbeat_to_store(load_heartbeat_config(config.heartbeat_config_file), store)
    daemon = HeartbeatDaemon(store, create_funding_source(config), config)
    executed = asyncio.run(daemon.tick())

    if executed:
        console.print(f"[green]✓[/green] Ran: {', '.join(executed)}")
    else:
        console.print("Nothing due.")
    wake = store.get_wake_request()
    if wake:
        console.print(f"Wake request raised: [yellow]{wake}[/yellow]")


if __name__ == "__main__":
    app()
