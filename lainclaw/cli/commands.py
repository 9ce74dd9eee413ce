"""CLI commands for lainclaw."""

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from lainclaw import __version__, __logo__

app = typer.Typer(
    name="lainclaw",
    help=f"{__logo__} lainclaw - Chat gateway for LLM agents",
    no_args_is_help=True,
)

console = Console()

PAIRING_CHANNELS = ("feishu", "local")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} lainclaw v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """lainclaw - Chat gateway for LLM agents."""
    pass


# ============================================================================
# Pairing Commands
# ============================================================================

pairing_app = typer.Typer(help="Approve or revoke channel senders")
app.add_typer(pairing_app, name="pairing")


def _resolve_channel(channel: str) -> str:
    normalized = channel.strip().lower() or "feishu"
    if normalized not in PAIRING_CHANNELS:
        console.print(f"[red]Invalid channel: {channel}. Use 'feishu' or 'local'[/red]")
        raise typer.Exit(1)
    return normalized


def _pairing_stores():
    """Build ledger and registry over the configured state file."""
    from lainclaw.config.loader import load_config
    from lainclaw.pairing import AllowFromRegistry, PairingLedger, PairingStateStore

    config = load_config()
    store = PairingStateStore(config.state_path)
    return config, PairingLedger(store), AllowFromRegistry(store)


@pairing_app.command("list")
def pairing_list(
    channel: str = typer.Option("feishu", "--channel", "-c", help="Channel (feishu, local)"),
    account: str = typer.Option("", "--account", "-a", help="Account scope"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List pending pairing requests."""
    channel = _resolve_channel(channel)
    config, ledger, _ = _pairing_stores()
    limits = config.channels.get_pairing(channel).limits()

    requests = asyncio.run(ledger.list_requests(channel, account or None, limits))

    if json_output:
        data = [r.to_dict() for r in requests]
        typer.echo(json.dumps({"channel": channel, "requests": data}, indent=2))
        return

    if not requests:
        console.print(f"[dim]No pending {channel} pairing requests.[/dim]")
        return

    table = Table(title=f"Pending {channel.title()} Pairing Requests")
    table.add_column("Code", style="cyan")
    table.add_column("Sender ID")
    table.add_column("Meta")
    table.add_column("Requested")

    for r in requests:
        meta_str = ", ".join(f"{k}={v}" for k, v in r.meta.items()) if r.meta else ""
        table.add_row(r.code, r.id, meta_str, r.created_at[:19])

    console.print(table)


@pairing_app.command("approve")
def pairing_approve(
    code: str = typer.Argument(..., help="Pairing code"),
    channel: str = typer.Option("feishu", "--channel", "-c", help="Channel (feishu, local)"),
    account: str = typer.Option("", "--account", "-a", help="Account scope"),
):
    """Approve a pairing code."""
    channel = _resolve_channel(channel)
    config, ledger, _ = _pairing_stores()
    limits = config.channels.get_pairing(channel).limits()

    approved = asyncio.run(ledger.approve(channel, code, account or None, limits))

    if not approved:
        console.print(f"[red]No pending pairing request found for code: {code}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Approved {channel} sender [cyan]{approved.id}[/cyan]")

    if approved.entry.meta:
        meta_str = ", ".join(f"{k}={v}" for k, v in approved.entry.meta.items())
        console.print(f"  [dim]({meta_str})[/dim]")


@pairing_app.command("revoke")
def pairing_revoke(
    entry: str = typer.Argument(..., help="Sender ID to revoke"),
    channel: str = typer.Option("feishu", "--channel", "-c", help="Channel (feishu, local)"),
    account: str = typer.Option("", "--account", "-a", help="Account scope"),
):
    """Revoke access for a sender."""
    channel = _resolve_channel(channel)
    _, _, registry = _pairing_stores()

    update = asyncio.run(registry.remove_entry(channel, entry, account or None))

    if update.changed:
        console.print(f"[green]✓[/green] Revoked {entry} on {channel}")
        console.print(f"[dim]Current allow-from entries: {len(update.allow_from)}[/dim]")
    else:
        console.print(f"[yellow]No matching allow entry found for {entry} on {channel}[/yellow]")


@pairing_app.command("allowed")
def pairing_allowed(
    channel: str = typer.Option("feishu", "--channel", "-c", help="Channel (feishu, local)"),
    account: str = typer.Option("", "--account", "-a", help="Account scope"),
):
    """List senders allowed through pairing."""
    channel = _resolve_channel(channel)
    config, _, registry = _pairing_stores()

    allowed = asyncio.run(registry.read(channel, account or None))

    if not allowed:
        console.print(f"[dim]No senders in {channel} pairing store.[/dim]")
        console.print("[dim]Senders can also be allowed via config.json allowFrom list.[/dim]")
        return

    console.print(f"[bold]{channel.title()} Allowed Senders (from pairing):[/bold]")
    for sender_id in allowed:
        console.print(f"  • {sender_id}")

    policy = config.channels.get_pairing(channel).policy
    if policy in ("open", "disabled"):
        console.print(f"[yellow]Note: {channel} policy is '{policy}', the allow-list is not consulted.[/yellow]")


# ============================================================================
# Status Commands
# ============================================================================


@app.command()
def status():
    """Show lainclaw status."""
    from lainclaw.config.loader import load_config, get_config_path

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} lainclaw Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"State: {config.state_path} {'[green]✓[/green]' if config.state_path.exists() else '[dim]not created[/dim]'}")

    for name, pairing in config.channels.pairing_by_channel().items():
        console.print(
            f"{name}: policy={pairing.policy}, static allow-from={len(pairing.allow_from)}, "
            f"max pending={pairing.pending_max}"
        )


if __name__ == "__main__":
    app()
