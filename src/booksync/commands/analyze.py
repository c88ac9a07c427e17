"""Analyze and chapter command implementations."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from booksync.core.epub_analyzer import EpubStateAnalyzer
from booksync.models.epub import EpubSyncState
from booksync.models.source import SourceProfile


def format_ids(ids: list, limit: int = 20) -> str:
    """Render an identity list, truncated for display."""
    if not ids:
        return "-"
    shown = ", ".join(str(i) for i in ids[:limit])
    if len(ids) > limit:
        shown += f", ... (+{len(ids) - limit})"
    return shown


def display_state(state: EpubSyncState, profile: SourceProfile, console: Console) -> None:
    """Print a recovered EPUB state."""
    info_lines = [
        f"[bold]{state.title or 'Untitled'}[/]",
        "",
        f"[dim]Source:[/] {profile.namespace}",
        f"[dim]Book:[/] {state.book_identity}",
        f"[dim]Author:[/] {state.author or 'Unknown'}",
        f"[dim]Last sync:[/] {state.last_sync_time or 'Unknown'}",
        f"[dim]TOC hash:[/] {state.toc_hash or 'None'}",
    ]
    for key, value in state.descriptors.items():
        info_lines.append(f"[dim]{key}:[/] {value}")

    console.print()
    console.print(Panel("\n".join(info_lines), title="Sync State", border_style="green"))

    table = Table(title="Chapters", show_header=True, header_style="bold cyan")
    table.add_column("Status", style="white")
    table.add_column("Count", justify="right", style="green")
    table.add_column("Chapters", style="dim")
    table.add_row(
        "Downloaded",
        str(len(state.downloaded_chapter_ids)),
        format_ids(state.downloaded_chapter_ids),
    )
    table.add_row(
        "[red]Failed[/]",
        str(len(state.failed_chapter_ids)),
        format_ids(state.failed_chapter_ids),
    )
    if state.locked_chapter_ids:
        table.add_row(
            "[yellow]Locked[/]",
            str(len(state.locked_chapter_ids)),
            format_ids(state.locked_chapter_ids),
        )
    console.print(table)
    console.print()


def execute_analyze(epub_path: Path, profile: SourceProfile, console: Console) -> EpubSyncState | None:
    """Execute the analyze command."""
    analyzer = EpubStateAnalyzer(profile)
    state = analyzer.analyze(epub_path)
    if state is None:
        console.print(
            f"[yellow]No {profile.namespace} sync metadata found in {epub_path.name}[/]"
        )
        return None

    display_state(state, profile, console)
    return state


def execute_chapter(
    epub_path: Path, identity: str, profile: SourceProfile, console: Console
) -> bool:
    """Execute the chapter command. Returns False if the chapter was not found."""
    chapter_identity = profile.coerce_identity(identity)
    if chapter_identity is None:
        console.print(f"[red]Invalid chapter identity: {identity}[/]")
        return False

    analyzer = EpubStateAnalyzer(profile)
    chapter = analyzer.read_chapter_content(epub_path, chapter_identity)
    if chapter is None:
        console.print(f"[yellow]Chapter {identity} not found in {epub_path.name}[/]")
        return False

    console.print(Panel(Text(chapter.body_content), title=f"Chapter {identity}", border_style="blue"))
    if chapter.images:
        table = Table(title="Images", show_header=True, header_style="bold cyan")
        table.add_column("Id", style="white")
        table.add_column("Type", style="dim")
        table.add_column("Bytes", justify="right", style="green")
        for image in chapter.images:
            table.add_row(image.id, image.media_type, f"{len(image.data):,}")
        console.print(table)
    return True
