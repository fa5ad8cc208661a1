"""CLI interface for tasky."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from tasky import __version__
from tasky.config import CONFIG_FILE, StoreConfig, TaskyConfig
from tasky.errors import PersistenceError
from tasky.logging_setup import setup_logging
from tasky.models import Task, TaskDraft
from tasky.ordering import Direction, EngineStatus, OrderingEngine
from tasky.stores import HttpTaskStore, create_store

console = Console()

SHORT_ID = 8

Gesture = Callable[[OrderingEngine], Awaitable[str | None]]


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="tasky")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: .tasky/config.json)",
)
@click.option("--verbose", "-v", count=True, help="Log more (-v info, -vv debug)")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: int) -> None:
    """tasky - personal tasks, ordered the way you want.

    \b
    Quick start:
      tasky add "Write report" -i    # Add an important task on top
      tasky ls                       # Show important, regular, completed
      tasky up 3f2a                  # Move a task up within its group
      tasky drag 3f2a 9c1d           # Drop one task onto another
    """
    ctx.ensure_object(dict)
    config_path = config_path or CONFIG_FILE
    config = TaskyConfig.load(config_path)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path

    level = config.logging.level
    if verbose == 1:
        level = "INFO"
    elif verbose > 1:
        level = "DEBUG"
    setup_logging(level, config.logging.file)

    # If no subcommand, show help
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.option("--http", "api_url", default=None, help="Use the hosted API at this URL")
@click.option("--force", "-f", is_flag=True, help="Overwrite existing config")
@click.pass_context
def init(ctx: click.Context, api_url: str | None, force: bool) -> None:
    """Create a tasky configuration in the current directory."""
    config_path: Path = ctx.obj["config_path"]

    if config_path.exists() and not force:
        console.print(
            "[yellow]tasky already initialized.[/yellow] Use --force to reconfigure."
        )
        return

    if api_url:
        config = TaskyConfig(store=StoreConfig(type="http", api_url=api_url))
    else:
        config = TaskyConfig()
    config.save(config_path)

    where = config.store.api_url if config.store.type == "http" else config.store.path
    console.print(
        Panel.fit(
            "[green]Configuration saved![/green]\n\n"
            f"Config: [cyan]{config_path}[/cyan]\n"
            f"Store: [cyan]{config.store.type}[/cyan] ({where})",
            title="tasky",
        )
    )


@main.command()
@click.password_option(confirmation_prompt=False)
@click.pass_context
def login(ctx: click.Context, password: str) -> None:
    """Log in to the hosted API and remember the session token."""
    config: TaskyConfig = ctx.obj["config"]

    if config.store.type != "http" or not config.store.api_url:
        console.print("[red]Login needs an http store.[/red] Run [cyan]tasky init --http URL[/cyan].")
        ctx.exit(1)

    async def _login() -> str:
        async with HttpTaskStore(config.store.api_url) as store:  # type: ignore[arg-type]
            return await store.login(password)

    try:
        token = asyncio.run(_login())
    except PersistenceError as e:
        console.print(f"[red]Login failed:[/red] {e}")
        ctx.exit(1)

    config.store.token = token
    config.save(ctx.obj["config_path"])
    console.print("[green]✓[/green] Logged in.")


@main.command("ls")
@click.option("--list", "list_id", default=None, help="Only show tasks in this list")
@click.option("--date", default=None, help="Only show tasks created on YYYY-MM-DD")
@click.pass_context
def list_command(ctx: click.Context, list_id: str | None, date: str | None) -> None:
    """Show tasks grouped as important, regular and completed."""

    async def gesture(engine: OrderingEngine) -> str | None:
        return None

    _run(ctx, gesture, list_id=list_id, date=date)


@main.command()
@click.argument("text")
@click.option("--description", "-d", default="", help="Longer description")
@click.option("--important", "-i", is_flag=True, help="Mark as important")
@click.option("--list", "list_id", default=None, help="List to add the task to")
@click.pass_context
def add(
    ctx: click.Context,
    text: str,
    description: str,
    important: bool,
    list_id: str | None,
) -> None:
    """Add a task on top of the list."""
    config: TaskyConfig = ctx.obj["config"]
    list_id = list_id or config.default_list

    try:
        draft = TaskDraft(text=text, description=description, important=important, list_id=list_id)
    except ValueError:
        raise click.BadParameter("task text must not be empty", param_hint="TEXT") from None

    async def gesture(engine: OrderingEngine) -> str | None:
        try:
            task = await engine.insert(draft)
        except PersistenceError:
            return None
        return f"Added [cyan]{_short(task)}[/cyan] {escape(task.text)}"

    _run(ctx, gesture, list_id=list_id)


@main.command()
@click.argument("ref")
@click.pass_context
def up(ctx: click.Context, ref: str) -> None:
    """Move a task up within its group."""
    _run(ctx, _move_gesture(ref, Direction.UP))


@main.command()
@click.argument("ref")
@click.pass_context
def down(ctx: click.Context, ref: str) -> None:
    """Move a task down within its group."""
    _run(ctx, _move_gesture(ref, Direction.DOWN))


@main.command()
@click.argument("source")
@click.argument("target")
@click.pass_context
def drag(ctx: click.Context, source: str, target: str) -> None:
    """Drop SOURCE onto TARGET (both must be in the same group)."""

    async def gesture(engine: OrderingEngine) -> str | None:
        source_task = _resolve(engine, source)
        target_task = _resolve(engine, target)
        if engine.drag_move(source_task.id, target_task.id) is None:
            return "[dim]Drop ignored: tasks are in different groups.[/dim]"
        return f"Moved [cyan]{_short(source_task)}[/cyan] before [cyan]{_short(target_task)}[/cyan]"

    _run(ctx, gesture)


@main.command()
@click.argument("ref")
@click.pass_context
def star(ctx: click.Context, ref: str) -> None:
    """Toggle a task's important flag."""

    async def gesture(engine: OrderingEngine) -> str | None:
        task = _resolve(engine, ref)
        engine.toggle_important(task.id)
        state = "important" if not task.important else "not important"
        return f"Marked [cyan]{_short(task)}[/cyan] {state}"

    _run(ctx, gesture)


@main.command()
@click.argument("ref")
@click.pass_context
def done(ctx: click.Context, ref: str) -> None:
    """Toggle a task's completed flag."""

    async def gesture(engine: OrderingEngine) -> str | None:
        task = _resolve(engine, ref)
        engine.toggle_completed(task.id)
        state = "completed" if not task.completed else "active"
        return f"Marked [cyan]{_short(task)}[/cyan] {state}"

    _run(ctx, gesture)


@main.command()
@click.argument("ref")
@click.option("--text", default=None, help="New task text")
@click.option("--description", "-d", default=None, help="New description")
@click.option("--important/--not-important", default=None, help="Set the important flag")
@click.pass_context
def edit(
    ctx: click.Context,
    ref: str,
    text: str | None,
    description: str | None,
    important: bool | None,
) -> None:
    """Edit a task's text, description or important flag."""

    async def gesture(engine: OrderingEngine) -> str | None:
        task = _resolve(engine, ref)
        try:
            handle = engine.edit(task.id, text=text, description=description, important=important)
        except ValueError:
            raise click.BadParameter("task text must not be empty", param_hint="--text") from None
        if handle is None:
            return "[dim]Nothing to change.[/dim]"
        return f"Updated [cyan]{_short(task)}[/cyan]"

    _run(ctx, gesture)


@main.command()
@click.argument("ref")
@click.pass_context
def rm(ctx: click.Context, ref: str) -> None:
    """Delete a task."""

    async def gesture(engine: OrderingEngine) -> str | None:
        task = _resolve(engine, ref)
        engine.delete(task.id)
        return f"Deleted [cyan]{_short(task)}[/cyan] {escape(task.text)}"

    _run(ctx, gesture)


def _move_gesture(ref: str, direction: Direction) -> Gesture:
    async def gesture(engine: OrderingEngine) -> str | None:
        task = _resolve(engine, ref)
        if engine.move(task.id, direction) is None:
            return f"[dim]Already at the {'top' if direction is Direction.UP else 'bottom'} of its group.[/dim]"
        return f"Moved [cyan]{_short(task)}[/cyan] {direction.value}"

    return gesture


def _run(
    ctx: click.Context,
    gesture: Gesture,
    list_id: str | None = None,
    date: str | None = None,
) -> None:
    """Load, apply one gesture, wait for persistence, then render."""
    config: TaskyConfig = ctx.obj["config"]
    list_id = list_id or config.default_list

    try:
        store = create_store(config.store)
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        ctx.exit(1)

    async def session() -> tuple[OrderingEngine, str | None]:
        engine = OrderingEngine(store)
        try:
            await engine.load(list_id=list_id, date=date)
            if engine.status is EngineStatus.ERROR:
                return engine, None
            message = await gesture(engine)
            await engine.drain()
            return engine, message
        finally:
            await store.close()

    engine, message = asyncio.run(session())

    if message:
        console.print(message)
    _render(engine)

    if engine.status is EngineStatus.ERROR:
        ctx.exit(1)


def _resolve(engine: OrderingEngine, ref: str) -> Task:
    """Find a task by ID or unique ID prefix."""
    task = engine.get(ref)
    if task is not None:
        return task

    matches = [t for t in engine.tasks if t.id.startswith(ref)]
    if not matches:
        raise click.ClickException(f"No task matches '{ref}'")
    if len(matches) > 1:
        raise click.ClickException(f"'{ref}' matches {len(matches)} tasks, use a longer prefix")
    return matches[0]


def _short(task: Task) -> str:
    return task.id[:SHORT_ID]


def _render(engine: OrderingEngine) -> None:
    """Print the three groups and the status line."""
    groups = engine.groups

    if not len(groups):
        console.print("[dim]No tasks.[/dim] Add one with [cyan]tasky add \"...\"[/cyan]")
    else:
        sections = [
            ("Important", "yellow", groups.important),
            ("Tasks", "white", groups.regular),
            ("Completed", "dim", groups.completed),
        ]
        for title, style, tasks in sections:
            if not tasks:
                continue

            table = Table(title=f"{title} ({len(tasks)})", show_header=True, title_justify="left")
            table.add_column("ID", style="cyan", no_wrap=True)
            table.add_column("Task", style=style)
            table.add_column("Description", style="dim")

            for task in tasks:
                text = escape(task.text)
                if task.completed:
                    text = f"[strike]{text}[/strike]"
                if task.important and task.completed:
                    text = f"⭐ {text}"
                table.add_row(_short(task), text, escape(task.description))

            console.print(table)

    if engine.status is EngineStatus.ERROR:
        console.print(f"[red]{engine.error}[/red]")
