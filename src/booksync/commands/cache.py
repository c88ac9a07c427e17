"""Cache command implementations."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from booksync.cache.manager import CacheManager
from booksync.commands.analyze import format_ids
from booksync.models.source import SourceProfile


def execute_cache_status(
    temp_directory: Path, book_identity: str, profile: SourceProfile, console: Console
) -> bool:
    """Print the manifest of a book's working cache."""
    cache = CacheManager(temp_directory, book_identity, profile)
    if not cache.exists():
        console.print(f"[yellow]No cache found at {cache.cache_root}[/]")
        return False

    state = cache.get_state()
    if state is None:
        console.print(f"[red]Cache manifest is unreadable: {cache.manifest_path}[/]")
        return False

    cached = sorted(state.cached_chapter_ids, key=str)
    failed = sorted(state.failed_chapter_ids, key=str)
    lines = [
        f"[bold]{state.title or state.book_identity}[/]",
        "",
        f"[dim]Location:[/] {cache.cache_root}",
        f"[dim]TOC hash:[/] {state.toc_hash}",
        f"[dim]Created:[/] {state.created_at:%Y-%m-%d %H:%M:%S}",
        f"[dim]Updated:[/] {state.updated_at:%Y-%m-%d %H:%M:%S}",
        f"[dim]Cached:[/] {len(cached)}  [dim]{format_ids(cached)}[/]",
        f"[dim]Failed:[/] {len(failed)}  [dim]{format_ids(failed)}[/]",
        f"[dim]Images:[/] {len(cache.list_image_ids())}",
    ]
    if state.locked_chapter_ids:
        locked = sorted(state.locked_chapter_ids, key=str)
        lines.append(f"[dim]Locked:[/] {len(locked)}  [dim]{format_ids(locked)}[/]")

    console.print(Panel("\n".join(lines), title="Working Cache", border_style="green"))
    return True


def execute_cache_clear(
    temp_directory: Path, book_identity: str, profile: SourceProfile, console: Console
) -> bool:
    """Remove a book's working cache."""
    cache = CacheManager(temp_directory, book_identity, profile)
    if not cache.cache_root.exists():
        console.print("[dim]Cache is already empty.[/]")
        return False

    if cache.cleanup():
        console.print(f"[green]Removed cache {cache.cache_root}[/]")
        return True

    console.print(f"[yellow]Could not fully remove {cache.cache_root}[/]")
    return False
