"""CLI commands for replygate."""

import asyncio
import time
from typing import Any, Awaitable, Callable

import typer
from rich.console import Console
from rich.table import Table

from replygate import __logo__, __version__
from replygate.errors import PauseAllError, StoreUnavailable

app = typer.Typer(
    name="replygate",
    help=f"{__logo__} replygate - auto-reply gating and context pipeline",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} replygate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """replygate - auto-reply gating and context pipeline."""
    pass


@app.command()
def init():
    """Write the default configuration file."""
    from replygate.config.loader import get_config_path, save_config
    from replygate.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config())
    console.print(f"[green]✓[/green] Created config at {config_path}")

    console.print(f"\n{__logo__} replygate is ready!")
    console.print("\nNext steps:")
    console.print(f"  1. Add your provider API key to [cyan]{config_path}[/cyan]")
    console.print("  2. Point [cyan]store.redis_url[/cyan] at a shared Redis for multi-process use")
    console.print("  3. Check the gate: [cyan]replygate status[/cyan]")


# ============================================================================
# Helpers
# ============================================================================


def _open_store(config):
    from replygate.store import create_store
    return create_store(config.store)


def _with_store(action: Callable[[Any, Any], Awaitable[Any]], writes: bool = False) -> Any:
    """
    Run an async action against the configured store; store errors exit non-zero.

    Actions that write state refuse the memory backend, whose state is
    gone as soon as the command exits.
    """
    from replygate.config.loader import load_config

    config = load_config()
    if writes and config.store.backend == "memory":
        console.print("[red]The memory store does not persist between commands.[/red]")
        console.print("  Set store.backend to redis (or REPLYGATE_STORE__BACKEND=redis) to change stored state")
        raise typer.Exit(1)

    async def run():
        store = _open_store(config)
        try:
            return await action(store, config)
        finally:
            await store.close()

    try:
        return asyncio.run(run())
    except PauseAllError as e:
        console.print(f"[red]Pause-all aborted, global pause left in place: {e}[/red]")
        if e.total is not None:
            console.print(f"  Paused {e.paused} of {e.total} contacts")
        raise typer.Exit(1)
    except StoreUnavailable as e:
        console.print(f"[red]Store unavailable: {e}[/red]")
        raise typer.Exit(1)


def _with_gate(action: Callable[[Any], Awaitable[Any]], writes: bool = False) -> Any:
    """Run an async action against a GateEngine."""
    from replygate.gating.engine import GateEngine

    return _with_store(lambda store, config: action(GateEngine(store, config.gate)), writes)


def _format_until(until: float | None) -> str:
    import math

    if until is None:
        return "-"
    if math.isinf(until):
        return "indefinite"
    return time.strftime("%Y-%m-%d %H:%M", time.localtime(until))


# ============================================================================
# Gate Commands
# ============================================================================


@app.command()
def status():
    """Show gate status."""
    from replygate.config.loader import get_config_path

    async def collect(gate):
        return (
            await gate.get_status(),
            await gate.list_contact_pauses(),
            await gate.get_sleep_hours(),
        )

    gate_status, pauses, sleep = _with_gate(collect)
    config_path = get_config_path()

    console.print(f"{__logo__} replygate Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")

    if gate_status.enabled:
        console.print(f"Global pause: [red]active[/red] until {_format_until(gate_status.until)}")
    else:
        console.print("Global pause: [green]off[/green]")
    console.print(f"Deferred messages: {gate_status.deferred_count}")

    sleep_state = "[green]enabled[/green]" if sleep.enabled else "[dim]disabled[/dim]"
    console.print(f"Sleep hours: {sleep.describe()} (UTC{sleep.timezone_offset:+g}) {sleep_state}")

    if pauses:
        table = Table(title="Paused Contacts")
        table.add_column("Contact", style="cyan")
        table.add_column("Until")
        table.add_column("Reason")
        for pause in pauses:
            table.add_row(pause.contact_id, _format_until(pause.expires_at), pause.reason or "")
        console.print(table)


@app.command()
def pause(
    contact: str = typer.Option(None, "--contact", "-c", help="Pause one contact instead of everyone"),
    duration: int = typer.Option(0, "--duration", "-d", help="Seconds; 0 means indefinite"),
    reason: str = typer.Option(None, "--reason", "-r", help="Reason for a contact pause"),
):
    """Pause automated replies."""
    if duration < 0:
        console.print("[red]Duration must be >= 0[/red]")
        raise typer.Exit(1)

    if contact:
        result = _with_gate(lambda gate: gate.set_contact_pause(contact, duration, reason), writes=True)
        console.print(f"[green]✓[/green] Paused {contact} until {_format_until(result.expires_at)}")
    else:
        until = _with_gate(lambda gate: gate.set_global_pause(duration), writes=True)
        console.print(f"[green]✓[/green] Global pause active until {_format_until(until)}")


@app.command()
def resume(
    contact: str = typer.Option(None, "--contact", "-c", help="Resume one contact"),
):
    """
    Resume automated replies.

    Without --contact the global pause is lifted and every known contact
    is individually paused; resume each contact explicitly afterwards.
    """
    if contact:
        removed = _with_gate(lambda gate: gate.clear_contact_pause(contact), writes=True)
        if removed:
            console.print(f"[green]✓[/green] Resumed {contact}")
        else:
            console.print(f"[yellow]{contact} was not paused[/yellow]")
        return

    report = _with_gate(lambda gate: gate.clear_global_pause(), writes=True)
    console.print("[green]✓[/green] Global pause lifted")
    console.print(f"  {report.paused} contacts paused until {_format_until(report.expires_at)}")
    console.print("  Resume contacts with [cyan]replygate resume --contact ID[/cyan]")


@app.command("reset-deferred")
def reset_deferred():
    """Reset the deferred message counter."""
    async def reset(gate):
        count = await gate.get_deferred_count()
        await gate.reset_deferred_count()
        return count

    count = _with_gate(reset, writes=True)
    console.print(f"[green]✓[/green] Deferred counter reset ({count} messages)")


# ============================================================================
# Sleep Hours Commands
# ============================================================================

sleep_app = typer.Typer(help="Manage sleep hours")
app.add_typer(sleep_app, name="sleep")


def _print_sleep(config) -> None:
    from replygate.gating.sleep import check_sleep_hours

    state = "[green]enabled[/green]" if config.enabled else "[dim]disabled[/dim]"
    console.print(f"Sleep hours: {config.describe()} (UTC{config.timezone_offset:+g}) {state}")
    check = check_sleep_hours(config, time.time())
    if check.is_sleeping:
        console.print(f"  Sleeping now, wakes in {check.minutes_until_wake_up} minutes")


def _parse_hhmm(value: str) -> tuple[int, int]:
    try:
        hour, minute = value.split(":")
        return int(hour), int(minute)
    except ValueError:
        raise typer.BadParameter(f"Expected HH:MM, got '{value}'")


@sleep_app.command("show")
def sleep_show():
    """Show sleep hours."""
    _print_sleep(_with_gate(lambda gate: gate.get_sleep_hours()))


@sleep_app.command("set")
def sleep_set(
    start: str = typer.Option(None, "--start", "-s", help="Window start, HH:MM"),
    end: str = typer.Option(None, "--end", "-e", help="Window end, HH:MM"),
    timezone_offset: float = typer.Option(None, "--tz", help="Hours from UTC"),
):
    """Enable sleep hours, optionally changing the window."""
    changes: dict[str, Any] = {"enabled": True}
    if start:
        changes["start_hour"], changes["start_minute"] = _parse_hhmm(start)
    if end:
        changes["end_hour"], changes["end_minute"] = _parse_hhmm(end)
    if timezone_offset is not None:
        changes["timezone_offset"] = timezone_offset

    try:
        config = _with_gate(lambda gate: gate.set_sleep_hours(**changes), writes=True)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    _print_sleep(config)


@sleep_app.command("disable")
def sleep_disable():
    """Disable sleep hours."""
    _print_sleep(_with_gate(lambda gate: gate.set_sleep_hours(enabled=False), writes=True))


# ============================================================================
# Skill Commands
# ============================================================================

skills_app = typer.Typer(help="Inspect skills")
app.add_typer(skills_app, name="skills")


@skills_app.command("list")
def skills_list():
    """List registered skills."""
    from replygate.config.loader import load_config
    from replygate.skills.builtin import create_builtin_skills
    from replygate.skills.registry import SkillRegistry

    config = load_config()

    async def collect():
        store = _open_store(config)
        try:
            registry = SkillRegistry(
                store=store,
                granted_permissions=config.skills.granted_permissions,
                timeout_seconds=config.skills.timeout_seconds,
                disabled=config.skills.disabled,
                config_overrides=config.skills.config,
            )
            for skill in create_builtin_skills():
                await registry.register(skill)
            await registry.load_state()
            return registry.list_skills()
        finally:
            await store.close()

    try:
        infos = asyncio.run(collect())
    except StoreUnavailable as e:
        console.print(f"[red]Store unavailable: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Skills")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Permissions")
    table.add_column("Status")

    for info in infos:
        if info.refused_reason:
            state = "[red]refused[/red]"
        elif info.enabled:
            state = "[green]enabled[/green]"
        else:
            state = "[dim]disabled[/dim]"
        table.add_row(info.id, info.name, info.version, ", ".join(info.permissions), state)

    console.print(table)


# ============================================================================
# Pipeline Commands
# ============================================================================


@app.command()
def process(
    contact: str = typer.Argument(..., help="Contact ID"),
    text: str = typer.Argument(..., help="Message text"),
):
    """Run one message through the gate, classifier and skills."""
    from replygate.pipeline.coordinator import InboundMessage
    from replygate.pipeline.factory import create_pipeline

    async def run(store, config):
        coordinator = await create_pipeline(config, store=store)
        try:
            result = await coordinator.process(InboundMessage(contact, text))
        finally:
            await coordinator.registry.shutdown()
        return result, coordinator.registry.get_statistics(), coordinator.classifier.get_statistics()

    result, skill_stats, classifier_stats = _with_store(run)

    console.print(f"\n{__logo__} [bold]{result.state.value}[/bold] ({result.latency_ms:.0f}ms)\n")
    if result.denied:
        console.print(f"Denied: {result.permit.reason.value} {result.permit.detail}")
        if result.error:
            console.print(f"[red]{result.error}[/red]")
        return

    console.print(f"Classifier: {', '.join(f'{k}={v}' for k, v in classifier_stats.items())}")
    if result.simple_response:
        console.print(f"Reply: {result.simple_response.response}", markup=False)
        return

    table = Table(title="Skills")
    table.add_column("ID", style="cyan")
    table.add_column("Runs")
    table.add_column("Failures")
    table.add_column("Timeouts")
    table.add_column("Health")
    for skill_id, stats in skill_stats.items():
        table.add_row(
            skill_id, str(stats["runs"]), str(stats["failures"]), str(stats["timeouts"]), stats["health"]
        )
    console.print(table)
    if result.context:
        console.print(result.context, markup=False)
    else:
        console.print("[dim]No context[/dim]")


# ============================================================================
# History Commands
# ============================================================================


@app.command()
def history(
    contact: str = typer.Argument(..., help="Contact ID"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of recent messages to show"),
    clear: bool = typer.Option(False, "--clear", help="Delete the contact's history"),
):
    """Show or clear a contact's conversation history."""
    from replygate.history.store import HistoryStore

    if clear:
        removed = _with_store(lambda store, config: HistoryStore(store).clear(contact), writes=True)
        if removed:
            console.print(f"[green]✓[/green] Cleared history for {contact}")
        else:
            console.print(f"[yellow]No history for {contact}[/yellow]")
        return

    async def collect(store, config):
        history_store = HistoryStore(store)
        return await history_store.count(contact), await history_store.get_messages(contact, limit=limit)

    total, messages = _with_store(collect)
    console.print(f"{__logo__} History for [cyan]{contact}[/cyan]: {total} messages\n")

    if messages:
        table = Table()
        table.add_column("Time")
        table.add_column("Speaker", style="cyan")
        table.add_column("Message")
        for message in messages:
            table.add_row(_format_until(message.timestamp), message.speaker, message.content[:80])
        console.print(table)


# ============================================================================
# Classifier Commands
# ============================================================================


@app.command()
def classify(
    text: str = typer.Argument(..., help="Message to classify"),
    heuristics_only: bool = typer.Option(False, "--heuristics-only", help="Skip the model call"),
):
    """Classify a message as phatic or substantive."""
    from replygate.config.loader import load_config
    from replygate.pipeline.factory import create_provider
    from replygate.routing.classifier import MessageClassifier, quick_classify

    if heuristics_only:
        label = quick_classify(text)
        console.print(f"Classification: [cyan]{label.value if label else 'undecided'}[/cyan]")
        return

    config = load_config()
    classifier = MessageClassifier(create_provider(config), config.classifier)
    result = asyncio.run(classifier.classify_detailed(text))

    console.print(f"\n{__logo__} [bold]Classification[/bold]\n")
    console.print(f"Message: {text[:100]}{'...' if len(text) > 100 else ''}")
    console.print(f"Label: [cyan]{result.classification.value}[/cyan]")
    console.print(f"Method: {result.method} ({result.latency_ms:.0f}ms, {result.tokens_used} tokens)")
    if result.error:
        console.print(f"[yellow]Fallback: {result.error}[/yellow]")


if __name__ == "__main__":
    app()
