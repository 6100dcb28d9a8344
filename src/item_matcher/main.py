import asyncio
import logging
from pathlib import Path
from typing import Annotated

from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from typer import Exit, Option, Typer

from .config import MatcherConfig
from .embeddings import EmbeddingProvider
from .errors import ProviderError
from .models import ItemKind, ItemPayload, MatchResult
from .service import MatchingService

app = Typer()

logger = logging.getLogger(__name__)

_REPORTS = TypeAdapter(list[ItemPayload])


def load_reports(path: Path) -> list[ItemPayload]:
    return _REPORTS.validate_json(path.read_bytes())


async def run_match(
    reports: list[ItemPayload],
    query: str,
    target: ItemKind,
    threshold: float | None,
    limit: int | None,
    category: str | None,
) -> list[MatchResult]:
    service = MatchingService(EmbeddingProvider(), MatcherConfig.from_env())
    try:
        result = await service.rebuild(report.to_item() for report in reports)
        for item_id, error in result.failed.items():
            logger.warning("Skipped %s: %s", item_id, error)
        return await service.find_matches(
            query, target, threshold=threshold, limit=limit, category=category
        )
    finally:
        stats = service.cache.stats()
        logger.debug(
            "Embedding cache: %d entries, %d provider calls, hit rate %.0f%%",
            stats.entries,
            stats.provider_calls,
            stats.hit_rate * 100,
        )
        service.close()


def render_matches(console: Console, matches: list[MatchResult]) -> None:
    table = Table(title="Matching reports", title_justify="left")
    table.add_column("Score", justify="right", style="bold green")
    table.add_column("ID")
    table.add_column("Description")
    table.add_column("Category")
    table.add_column("Location")
    table.add_column("Reported")
    for match in matches:
        item = match.item
        table.add_row(
            f"{match.score:.3f}",
            item.id,
            item.description,
            item.category or "-",
            item.location or "-",
            item.reported_at.isoformat(sep=" ", timespec="minutes"),
        )
    console.print(table)


@app.command()
def main(
    items: Annotated[
        Path,
        Option(
            "--items",
            "-i",
            help="JSON file with the exported lost and found reports.",
            exists=True,
            dir_okay=False,
        ),
    ],
    query: Annotated[
        str,
        Option("--query", "-q", help="Description of the item you are looking for."),
    ],
    target: Annotated[
        ItemKind,
        Option("--target", "-t", help="Collection to search."),
    ] = ItemKind.FOUND,
    threshold: Annotated[
        float | None,
        Option("--threshold", help="Minimum cosine similarity, defaults to 0.5."),
    ] = None,
    limit: Annotated[
        int | None,
        Option("--limit", "-n", help="Maximum number of matches to show."),
    ] = None,
    category: Annotated[
        str | None,
        Option("--category", "-c", help="Only consider reports in this category."),
    ] = None,
    verbose: Annotated[
        bool,
        Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    console = Console()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        reports = load_reports(items)
    except ValidationError as exc:
        console.print(
            Panel(str(exc), title="Invalid reports file", border_style="bold red")
        )
        raise Exit(code=1)

    try:
        with console.status(status="Matching reports..."):
            matches = asyncio.run(
                run_match(reports, query, target, threshold, limit, category)
            )
    except ValueError as exc:
        console.print(Panel(str(exc), title="Invalid request", border_style="bold red"))
        raise Exit(code=1)
    except ProviderError as exc:
        console.print(
            Panel(
                f"{exc}\n\nMatching is unavailable right now; please retry later.",
                title="Embedding provider unavailable",
                border_style="bold red",
            )
        )
        raise Exit(code=2)

    if not matches:
        console.print("[bold yellow]No matching reports above the threshold.[/]")
        return None
    render_matches(console, matches)
    return None
