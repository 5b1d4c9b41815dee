"""
Agent Lifecycle CLI

Command-line interface for the agent lifecycle service.
"""

import sys
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, List, Any

import click
import httpx
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from . import __version__
from .config import load_config, create_default_config


console = Console()

DEFAULT_PORT = 8767


def _base_url(port: int) -> str:
    return f"http://localhost:{port}/v1/agents"


def _fail(message: str):
    console.print(f"[red]✗[/red] {message}")
    sys.exit(1)


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json().get("detail", response.text)
    except ValueError:
        return response.text


# =============================================================================
# Formatting
# =============================================================================

def format_timestamp(ms: Optional[int]) -> str:
    """Render a ms-since-epoch timestamp, or 'Never'."""
    if ms is None:
        return "Never"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def truncate(value: Optional[str], max_length: int) -> str:
    if not value:
        return "-"
    if len(value) <= max_length:
        return value
    return value[:max_length - 3] + "..."


def format_agent_table(agents: List[Dict[str, Any]]) -> Table:
    """Build a rich table for a list of serialized agents."""
    table = Table(title="Agents")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Model")
    table.add_column("Type")
    table.add_column("Registered", style="dim")

    for agent in agents:
        table.add_row(
            agent["id"],
            truncate(agent.get("name"), 20),
            agent.get("status") or "-",
            agent.get("model") or "-",
            agent.get("type") or "-",
            format_timestamp(agent.get("registered_at")),
        )
    return table


def format_agent_details(agent: Dict[str, Any]) -> str:
    """Multi-line description of one agent, including its history."""
    lines = [
        f"Agent: {agent['id']}",
        f"Name: {agent.get('name') or '-'}",
        f"Status: {agent.get('status') or '-'}",
        f"Model: {agent.get('model') or '-'}",
        f"Type: {agent.get('type') or '-'}",
        f"Registered: {format_timestamp(agent.get('registered_at'))}",
        f"Last activity: {format_timestamp(agent.get('last_activity'))}",
    ]
    if agent.get("grace_period") is not None:
        lines.append(f"Grace period: {agent['grace_period']}ms")

    metadata = agent.get("metadata") or {}
    if metadata:
        lines.append("")
        lines.append("Metadata:")
        for key, value in metadata.items():
            lines.append(f"  {key}: {value}")

    history = agent.get("history") or []
    if history:
        lines.append("")
        lines.append("State History:")
        for entry in history:
            reason = (entry.get("context") or {}).get("reason")
            suffix = f" ({reason})" if reason else ""
            lines.append(f"  {format_timestamp(entry.get('timestamp'))}: {entry['state']}{suffix}")

    return "\n".join(lines)


def format_cleanup_result(result: Dict[str, Any], stats: Dict[str, Any]) -> str:
    """Summary of one cleanup pass plus the running totals."""
    cleaned = result.get("cleaned", [])
    errors = result.get("errors", [])

    lines = [
        "Cleanup Results:",
        f"  Cleaned this run: {len(cleaned)}",
        f"  Errors: {len(errors)}",
        "",
        "Overall Stats:",
        f"  Total cleaned: {stats.get('total_cleaned', 0)}",
        f"  Cleanup runs: {stats.get('cleanup_runs', 0)}",
        f"  Last cleanup: {format_timestamp(stats.get('last_cleanup_at'))}",
    ]

    if cleaned:
        lines.append("")
        lines.append("Cleaned agents:")
        lines.extend(f"  - {agent['id']}" for agent in cleaned)

    if errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  - {err['id']} [{err['type']}]: {err['error']}" for err in errors)

    return "\n".join(lines)


# =============================================================================
# Root
# =============================================================================

@click.group()
@click.version_option(__version__, prog_name="agent-lifecycle")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to config file")
@click.pass_context
def cli(ctx, config_path: str):
    """Agent Lifecycle - registry, hooks and orphan reclamation"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to")
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Start the agent lifecycle server."""
    config_path = ctx.obj.get("config_path")
    if config_path and not Path(config_path).exists():
        _fail(f"Config file not found: {config_path}")

    if config_path:
        config = load_config(config_path)
        console.print(f"[green]✓[/green] Loaded config from {config_path}")
        host = host or config.server.host
        port = port or config.server.port

    console.print(Panel(
        f"[bold]Agent Lifecycle v{__version__}[/bold]\n"
        f"Starting server on [cyan]http://{host or '127.0.0.1'}:{port or DEFAULT_PORT}[/cyan]",
        title="🚀 Starting"
    ))

    from .server import main as server_main
    server_main(config_path, host=host, port=port)


@cli.command()
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Server port")
def status(port: int):
    """Show server status."""
    try:
        data = httpx.get(f"http://localhost:{port}/").json()
    except httpx.HTTPError as e:
        _fail(f"Server not running: {e}")

    by_status = data.get("by_status", {})
    cleanup = data.get("cleanup", {})
    console.print(Panel(
        f"[bold green]Running[/bold green]\n\n"
        f"Version: {data.get('version', 'unknown')}\n"
        f"Agents: {data.get('agents', 0)} "
        f"({', '.join(f'{k}: {v}' for k, v in by_status.items())})\n"
        f"Cleanup: {'scheduled' if data.get('cleanup_scheduled') else 'stopped'}, "
        f"{cleanup.get('total_cleaned', 0)} cleaned in {cleanup.get('cleanup_runs', 0)} run(s)",
        title="📊 Agent Lifecycle Status"
    ))


@cli.command()
@click.option("--path", "config_path", default="agents.yaml", type=click.Path(), help="File to create")
def init(config_path: str):
    """Initialize a new configuration file."""
    path = Path(config_path)

    if path.exists():
        if not click.confirm(f"{path} already exists. Overwrite?"):
            return

    path.write_text(create_default_config())
    console.print(f"[green]✓[/green] Created {path}")
    console.print("\nEdit the file, then run:")
    console.print(f"  [cyan]agent-lifecycle -c {path} serve[/cyan]")


# =============================================================================
# Agent Commands
# =============================================================================

@cli.group()
def agents():
    """Inspect and manage tracked agents."""
    pass


@agents.command("list")
@click.option("--status", "-s", help="Filter by status (pending, running, completed, failed, cancelled)")
@click.option("--model", "-m", help="Filter by model")
@click.option("--type", "-t", "agent_type", help="Filter by agent type")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Server port")
def agents_list(status: str, model: str, agent_type: str, as_json: bool, port: int):
    """List agents."""
    params = {}
    if status:
        params["status"] = status
    if model:
        params["model"] = model
    if agent_type:
        params["type"] = agent_type

    try:
        response = httpx.get(_base_url(port), params=params)
    except httpx.HTTPError as e:
        _fail(f"Failed to list agents: {e}")

    if response.status_code != 200:
        _fail(_error_detail(response))

    data = response.json()
    if as_json:
        click.echo(json.dumps(data["agents"], indent=2))
        return

    if not data.get("agents"):
        console.print("[yellow]No agents found.[/yellow]")
        return

    console.print(format_agent_table(data["agents"]))


@agents.command("get")
@click.argument("agent_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Server port")
def agents_get(agent_id: str, as_json: bool, port: int):
    """Show agent details."""
    try:
        response = httpx.get(f"{_base_url(port)}/{agent_id}")
    except httpx.HTTPError as e:
        _fail(f"Failed to get agent: {e}")

    if response.status_code != 200:
        _fail(_error_detail(response))

    agent = response.json()
    if as_json:
        click.echo(json.dumps(agent, indent=2))
    else:
        click.echo(format_agent_details(agent))


@agents.command("cancel")
@click.argument("agent_id")
@click.option("--reason", "-r", default=None, help="Cancellation reason")
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Server port")
def agents_cancel(agent_id: str, reason: Optional[str], port: int):
    """Cancel a pending or running agent."""
    try:
        response = httpx.post(
            f"{_base_url(port)}/{agent_id}/cancel",
            json={"reason": reason} if reason else None,
        )
    except httpx.HTTPError as e:
        _fail(f"Failed to cancel agent: {e}")

    if response.status_code != 200:
        _fail(_error_detail(response))

    failed_hooks = [h for h in response.json().get("hooks", []) if not h["ok"]]
    console.print(f"[green]✓[/green] Agent '{agent_id}' cancelled successfully")
    for hook in failed_hooks:
        console.print(f"  [yellow]![/yellow] onCancel handler failed: {hook['error']}")


@agents.command("cleanup")
@click.option("--timeout", type=int, default=None, help="Timeout override (ms)")
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Server port")
def agents_cleanup(timeout: Optional[int], port: int):
    """Run cleanup for orphaned agents."""
    try:
        response = httpx.post(
            f"{_base_url(port)}/cleanup",
            json={"timeout": timeout} if timeout is not None else None,
        )
    except httpx.HTTPError as e:
        _fail(f"Cleanup failed: {e}")

    if response.status_code != 200:
        _fail(_error_detail(response))

    data = response.json()
    click.echo(format_cleanup_result(data, data.get("stats", {})))


@agents.command("stats")
@click.option("--port", "-p", default=DEFAULT_PORT, type=int, help="Server port")
def agents_stats(port: int):
    """Show cleanup statistics."""
    try:
        response = httpx.get(f"{_base_url(port)}/cleanup/stats")
    except httpx.HTTPError as e:
        _fail(f"Failed to get stats: {e}")

    if response.status_code != 200:
        _fail(_error_detail(response))

    data = response.json()
    console.print(Panel(
        f"Total cleaned: {data.get('total_cleaned', 0)}\n"
        f"Cleanup runs: {data.get('cleanup_runs', 0)}\n"
        f"Last cleanup: {format_timestamp(data.get('last_cleanup_at'))}\n"
        f"Schedule: {'running' if data.get('scheduled') else 'stopped'}",
        title="🧹 Cleanup Stats"
    ))


# =============================================================================
# Main
# =============================================================================

def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
