"""Glossa Command Line Interface.

Provides gloss inspection, situation download into the local cache, and the
API server.
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table
from rich.tree import Tree

from glossa.core.config import get_settings
from glossa.core.logging import configure_logging, get_logger
from glossa.errors import GlossaError
from glossa.graph.glossary import GlossGraph
from glossa.graph.models import (
    LANGUAGES,
    LATERAL_RELATIONS,
    HydratedGloss,
    LanguageCode,
    parse_languages,
)
from glossa.sync import ClosureFetcher, GlossApiClient, LocalStore, SituationDownloader

app = typer.Typer(
    name="glossa",
    help="Glossa - multilingual gloss graph, situations and offline download",
    add_completion=False,
)
console = Console()
logger = get_logger("glossa.cli")


def _get_graph() -> GlossGraph:
    """Get configured gloss graph instance."""
    settings = get_settings()
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    return GlossGraph(str(settings.db_path))


def _label(gloss: HydratedGloss) -> str:
    text = f"[bold]{gloss.content}[/bold] [dim]{gloss.language.value} {gloss.id}[/dim]"
    if gloss.is_paraphrased:
        text += " [italic](paraphrase)[/italic]"
    return text


def _add_children(branch: Tree, gloss: HydratedGloss, path: frozenset[str]) -> None:
    """Render containment recursively; an ancestor reappearing is marked, not expanded."""
    for kind in LATERAL_RELATIONS:
        targets = gloss.relations(kind)
        if targets:
            names = ", ".join(f"{t.content} ({t.language.value})" for t in targets)
            branch.add(f"[cyan]{kind.value}[/cyan]: {names}")
    for child in gloss.contains:
        if child.id in path:
            branch.add(f"{_label(child)} [yellow]↺ cycle[/yellow]")
            continue
        _add_children(branch.add(_label(child)), child, path | {child.id})


def _make_downloader(client: GlossApiClient, local: LocalStore) -> SituationDownloader:
    settings = get_settings()
    fetcher = ClosureFetcher(
        client,
        max_fetches=settings.closure_max_fetches,
        concurrency=settings.closure_concurrency,
    )
    return SituationDownloader(client, local, fetcher)


def _parse_natives(native: Optional[str]) -> Optional[list[LanguageCode]]:
    try:
        return parse_languages(native)
    except ValueError:
        console.print(f"[red]Unknown language in {native!r}[/red]")
        raise typer.Exit(1)


@app.command()
def show(
    gloss_id: str = typer.Argument(..., help="Gloss ID to resolve"),
):
    """Show a gloss with its resolved containment tree.

    Examples:
        glossa show 3f1c...          # Print the tree rooted at the gloss
    """
    try:
        gloss = _get_graph().resolve_gloss(gloss_id)
    except GlossaError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)

    tree = Tree(_label(gloss))
    _add_children(tree, gloss, frozenset({gloss.id}))
    console.print(tree)

    for note in gloss.notes:
        console.print(f"  [dim]{note.note_type}:[/dim] {note.content}")


@app.command()
def download(
    identifier: str = typer.Argument(..., help="Situation identifier"),
    native: Optional[str] = typer.Option(
        None, "--native", "-n", help="Native languages, comma-separated (e.g. eng,deu)"
    ),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Remote API base URL (default: GLOSSA_API_BASE_URL)"
    ),
):
    """Download one situation with all referenced glosses into the local cache.

    Examples:
        glossa download greeting-basic -n eng
    """
    configure_logging()
    settings = get_settings()
    native_languages = _parse_natives(native)

    async def run():
        async with GlossApiClient(api_url or settings.api_base_url, settings.http_timeout) as client:
            with LocalStore(settings.local_db_path) as local:
                return await _make_downloader(client, local).download_situation(
                    identifier, native_languages
                )

    try:
        report = asyncio.run(run())
    except GlossaError as e:
        logger.debug(f"Download of {identifier} failed: {e!r}")
        console.print(f"[red]Download failed: {e.message}[/red]")
        raise typer.Exit(1)

    stats = Table(show_header=False, box=None, padding=(0, 2))
    stats.add_column("Label", style="dim")
    stats.add_column("Value")
    stats.add_row("Glosses stored", str(report.glosses_stored))
    stats.add_row("Fetch waves", str(report.closure.waves))
    stats.add_row("Failed", str(len(report.closure.failed)))
    console.print(Panel(stats, title=f"Situation {identifier}", border_style="blue"))

    if report.closure.truncated:
        console.print("[yellow]Closure hit the fetch ceiling; the cache is incomplete.[/yellow]")
    for gloss_id, message in report.closure.failed.items():
        console.print(f"  [red]✗[/red] {gloss_id}: {message}")


@app.command("download-all")
def download_all(
    target: str = typer.Argument(..., help="Target language code (e.g. spa)"),
    native: Optional[str] = typer.Option(
        None, "--native", "-n", help="Native languages, comma-separated (e.g. eng,deu)"
    ),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Remote API base URL (default: GLOSSA_API_BASE_URL)"
    ),
):
    """Download every situation of a target language.

    Examples:
        glossa download-all spa -n eng
    """
    configure_logging(quiet=True)
    settings = get_settings()
    native_languages = _parse_natives(native)
    try:
        target_language = LanguageCode(target)
    except ValueError:
        console.print(f"[red]Unknown language {target!r}[/red]")
        raise typer.Exit(1)

    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Downloading situations", total=None)

        def on_progress(current: int, total: int) -> None:
            progress.update(task, completed=current, total=total)

        async def run():
            async with GlossApiClient(api_url or settings.api_base_url, settings.http_timeout) as client:
                with LocalStore(settings.local_db_path) as local:
                    return await _make_downloader(client, local).download_all(
                        target_language, native_languages, on_progress
                    )

        try:
            report = asyncio.run(run())
        except GlossaError as e:
            console.print(f"[red]Download failed: {e.message}[/red]")
            raise typer.Exit(1)

    console.print(
        f"[green]Downloaded {report.count} situations, "
        f"{report.glosses_stored} glosses stored.[/green]"
    )


@app.command()
def cache(
    target: Optional[str] = typer.Option(
        None, "--target", "-t", help="Only situations of this target language"
    ),
    clear: bool = typer.Option(False, "--clear", help="Delete everything in the local cache"),
):
    """List situations in the local cache, or empty it with --clear."""
    settings = get_settings()
    try:
        target_language = LanguageCode(target) if target else None
    except ValueError:
        console.print(f"[red]Unknown language {target!r}[/red]")
        raise typer.Exit(1)
    with LocalStore(settings.local_db_path) as local:
        if clear:
            local.clear_situations()
            local.clear_glosses()
            console.print("[green]Local cache cleared.[/green]")
            return
        situations = local.list_situations(target_language)
        total_glosses = local.count_glosses()

    if not situations:
        console.print("[dim]No situations downloaded yet.[/dim]")
        return

    table = Table(title=f"Local cache ({total_glosses} glosses)")
    table.add_column("Identifier", style="bold")
    table.add_column("Target")
    table.add_column("Expression", justify="right")
    table.add_column("Understanding", justify="right")
    table.add_column("Synced", style="dim")
    for situation in situations:
        table.add_row(
            situation.identifier,
            LANGUAGES[situation.target_language]["name"],
            str(len(situation.challenges_of_expression)),
            str(len(situation.challenges_of_understanding_text)),
            situation.last_synced_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the Glossa API server."""
    import uvicorn

    configure_logging()
    uvicorn.run("glossa.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
