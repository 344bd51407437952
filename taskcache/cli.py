"""taskcache CLI - inspect the local cache and create task documents."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from taskcache import __version__, keys
from taskcache.chat import ChatSessionCache
from taskcache.checkpoints import CheckpointLog
from taskcache.codec import decode_record
from taskcache.config import CacheConfig, get_home, get_store_dir
from taskcache.drafts import DraftCache
from taskcache.errors import StorageFailure, TaskCacheError, format_error
from taskcache.git import GitRemoteStore
from taskcache.resolver import CollisionResolver
from taskcache.scheduler import PersistenceScheduler
from taskcache.store import FileKVStore
from taskcache.tasks import TaskService

console = Console()


def _open_store() -> tuple[FileKVStore, CacheConfig]:
    return FileKVStore(get_store_dir()), CacheConfig.load()


def _draft_cache() -> DraftCache:
    store, cfg = _open_store()
    return DraftCache(store, PersistenceScheduler(store), cfg)


def _task_service(repo: str) -> TaskService:
    cfg = CacheConfig.load()
    remote = GitRemoteStore(Path(repo))
    return TaskService(remote, CollisionResolver(remote, cfg.max_collision_suffix), cfg)


def _format_age(seconds: float) -> str:
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return f"{int(seconds // 86400)}d ago"


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose):
    """taskcache: local-first drafts, checkpoints and chat for task documents."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# =============================================================================
# Config
# =============================================================================


@main.group()
def config():
    """Manage configuration (~/.taskcache/config.yaml)."""
    pass


@config.command("list")
def config_list():
    """Show current configuration.

    Examples:
        taskcache config list
    """
    cfg = CacheConfig.load()
    defaults = CacheConfig()

    console.print(f"[bold]Configuration[/bold] [dim]({get_home() / 'config.yaml'})[/dim]")
    console.print()
    for key, value in cfg.to_dict().items():
        default = getattr(defaults, key)
        if value != default:
            console.print(f"  {key}: [cyan]{value}[/cyan] [dim](default: {default})[/dim]")
        else:
            console.print(f"  {key}: {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set a configuration value.

    Examples:
        taskcache config set checkpoint_cap 50
        taskcache config set folder notes
    """
    key = key.replace("-", "_")
    try:
        updated = CacheConfig.load().with_value(key, value)
    except KeyError:
        console.print(f"[red]Unknown config key: {key}[/red]")
        console.print(f"[dim]Keys: {', '.join(CacheConfig().to_dict())}[/dim]")
        sys.exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid value for {key}: {e}[/red]")
        sys.exit(1)

    try:
        updated.save()
    except StorageFailure as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]✓[/green] Set {key} = {getattr(updated, key)}")


@config.command("reset")
def config_reset():
    """Reset configuration to defaults."""
    try:
        CacheConfig().save()
    except StorageFailure as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print("[green]✓[/green] Reset config to defaults")


# =============================================================================
# Drafts
# =============================================================================


@main.group()
def drafts():
    """Inspect unsaved drafts."""
    pass


@drafts.command("list")
def drafts_list():
    """List stored drafts."""
    store, _ = _open_store()
    try:
        draft_keys = store.keys(keys.prefix_for(keys.DRAFT))
    except StorageFailure as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not draft_keys:
        console.print("[dim]No drafts stored.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Task")
    table.add_column("Path")
    table.add_column("Saved")

    now = time.time()
    for key in draft_keys:
        try:
            raw = store.read(key)
        except StorageFailure as e:
            console.print(f"[yellow]Skipping {key}: {e}[/yellow]")
            continue
        data = decode_record(keys.DRAFT, raw)
        if not isinstance(data, dict):
            continue
        saved = data.get("timestamp")
        age = _format_age(now - saved) if isinstance(saved, (int, float)) else "?"
        table.add_row(str(data.get("task_identity", "")), str(data.get("path", "")), age)

    console.print(table)


@drafts.command("show")
@click.argument("identity")
@click.argument("path")
@click.option("--view", is_flag=True, help="Show the view content instead of the edit content")
def drafts_show(identity: str, path: str, view: bool):
    """Print a draft's content."""
    draft = _draft_cache().restore(identity, path)
    if draft is None:
        console.print(f"[yellow]No draft for {path}[/yellow]")
        sys.exit(1)
    click.echo(draft.view_content if view else draft.edit_content)


@drafts.command("clear")
@click.argument("identity")
@click.argument("path")
def drafts_clear(identity: str, path: str):
    """Delete a draft."""
    _draft_cache().clear(identity, path)
    console.print(f"[green]✓[/green] Cleared draft for {path}")


# =============================================================================
# Checkpoints
# =============================================================================


@main.group()
def checkpoints():
    """Inspect assistant checkpoints."""
    pass


@checkpoints.command("list")
@click.argument("identity")
def checkpoints_list(identity: str):
    """List checkpoints for a task, newest first."""
    store, cfg = _open_store()
    entries = CheckpointLog(store, cfg).list(identity)
    if not entries:
        console.print(f"[dim]No checkpoints for {identity}.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Description")
    for cp in entries:
        table.add_row(cp.id, cp.timestamp[:19].replace("T", " "), cp.description)
    console.print(table)


@checkpoints.command("clear")
@click.argument("identity")
def checkpoints_clear(identity: str):
    """Delete every checkpoint for a task."""
    store, cfg = _open_store()
    CheckpointLog(store, cfg).clear(identity)
    console.print(f"[green]✓[/green] Cleared checkpoints for {identity}")


# =============================================================================
# Chat
# =============================================================================


@main.group()
def chat():
    """Manage stored assistant conversations."""
    pass


@chat.command("clear")
@click.argument("identity")
@click.argument("path")
def chat_clear(identity: str, path: str):
    """Delete a conversation and its task's checkpoints."""
    store, cfg = _open_store()
    chats = ChatSessionCache(store, PersistenceScheduler(store), cfg, checkpoints=CheckpointLog(store, cfg))
    chats.clear(identity, path)
    console.print(f"[green]✓[/green] Cleared chat for {path}")


# =============================================================================
# Tasks
# =============================================================================


@main.command()
@click.argument("title")
@click.option("--repo", required=True, type=click.Path(exists=True, file_okay=False), help="Git working tree")
@click.option("--content-file", type=click.Path(exists=True, dir_okay=False), help="Initial markdown")
@click.option("--date", "day", help="Date stamp (YYYY-MM-DD, default today)")
def new(title: str, repo: str, content_file: str | None, day: str | None):
    """Create a task document, never overwriting an existing one.

    Examples:
        taskcache new "Write release notes" --repo ~/notes
    """
    if content_file:
        content = Path(content_file).read_text(encoding="utf-8")
    else:
        content = f"# {title}\n"

    service = _task_service(repo)
    try:
        created = asyncio.run(service.create_task(title, content, date=day))
    except (TaskCacheError, ValueError) as e:
        console.print(f"[red]{format_error(e)}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] Created {created.path} [dim]({created.sha[:7]})[/dim]")


@main.command("list")
@click.option("--repo", required=True, type=click.Path(exists=True, file_okay=False), help="Git working tree")
def list_cmd(repo: str):
    """List task documents in the configured folder."""
    service = _task_service(repo)
    try:
        paths = asyncio.run(service.list_tasks())
    except TaskCacheError as e:
        console.print(f"[red]{format_error(e)}[/red]")
        sys.exit(1)

    if not paths:
        console.print(f"[dim]No tasks in {service.config.folder}/[/dim]")
        return
    for path in paths:
        console.print(path)


if __name__ == "__main__":
    main()
