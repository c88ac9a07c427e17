"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from booksync.commands.analyze import execute_analyze, execute_chapter
from booksync.commands.cache import execute_cache_clear, execute_cache_status
from booksync.core.fingerprint import compute_identity_hash
from booksync.models.source import PROFILES, SourceProfile, get_profile

app = typer.Typer(
    name="booksync",
    help="Inspect resumable book sync state in caches and generated EPUBs.",
    add_completion=False,
)

console = Console()

# Cache subcommand group
cache_app = typer.Typer(help="Working cache commands")
app.add_typer(cache_app, name="cache")

SourceOption = Annotated[
    str,
    typer.Option(
        "--source",
        "-s",
        help=f"Content source: {', '.join(sorted(PROFILES))}",
    ),
]


def resolve_profile(source: str) -> SourceProfile:
    try:
        return get_profile(source)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Inspect resumable book sync state in caches and generated EPUBs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def analyze(
    epub_path: Annotated[
        Path,
        typer.Argument(
            help="Path to a previously generated EPUB",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    source: SourceOption = "legado",
) -> None:
    """Show the sync state embedded in an EPUB."""
    profile = resolve_profile(source)
    try:
        state = execute_analyze(epub_path, profile, console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    if state is None:
        raise typer.Exit(1)


@app.command()
def chapter(
    epub_path: Annotated[
        Path,
        typer.Argument(
            help="Path to a previously generated EPUB",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    identity: Annotated[str, typer.Argument(help="Chapter id or index")],
    source: SourceOption = "legado",
) -> None:
    """Print one chapter's content recovered from an EPUB."""
    profile = resolve_profile(source)
    try:
        found = execute_chapter(epub_path, identity, profile, console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    if not found:
        raise typer.Exit(1)


@app.command()
def fingerprint(
    toc_file: Annotated[
        Path,
        typer.Argument(
            help="Text file with one chapter identity per line, in TOC order",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
) -> None:
    """Compute the TOC fingerprint for a list of chapter identities."""
    try:
        lines = toc_file.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    identities = [line.strip() for line in lines if line.strip()]
    console.print(compute_identity_hash(identities))


@cache_app.command("status")
def cache_status(
    temp_directory: Annotated[
        Path,
        typer.Argument(help="Temp directory holding sync caches", file_okay=False),
    ],
    book: Annotated[str, typer.Argument(help="Book id or URL")],
    source: SourceOption = "legado",
) -> None:
    """Show a book's working cache manifest."""
    profile = resolve_profile(source)
    try:
        found = execute_cache_status(temp_directory, book, profile, console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    if not found:
        raise typer.Exit(1)


@cache_app.command("clear")
def cache_clear(
    temp_directory: Annotated[
        Path,
        typer.Argument(help="Temp directory holding sync caches", file_okay=False),
    ],
    book: Annotated[str, typer.Argument(help="Book id or URL")],
    source: SourceOption = "legado",
) -> None:
    """Delete a book's working cache."""
    profile = resolve_profile(source)
    execute_cache_clear(temp_directory, book, profile, console)


if __name__ == "__main__":
    app()
