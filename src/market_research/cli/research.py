"""Research commands: run, history, show."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from market_research.cli.db import open_cache
from market_research.cli.utils import console, run_async, write_json_output
from market_research.constants import DEFAULT_HISTORY_LIMIT
from market_research.paths import DEFAULT_DB_PATH
from market_research.schemas import FinalVerdict

if TYPE_CHECKING:
    from market_research.research.cache import CacheEntry
    from market_research.schemas import MarketResearchResult, ResearchHistoryPage

DEFAULT_USER_ENV = "MARKET_RESEARCH_USER"

_VERDICT_STYLES = {
    FinalVerdict.YES: "green",
    FinalVerdict.NO: "red",
    FinalVerdict.UNCERTAIN: "yellow",
}
_GRADE_STYLES = {"A": "green", "B": "cyan", "C": "yellow", "D": "red"}

UserOption = Annotated[
    str | None,
    typer.Option(
        "--user",
        "-u",
        help="User id that owns cached results (default: MARKET_RESEARCH_USER or 'local').",
        show_default=False,
    ),
]
DbOption = Annotated[Path, typer.Option("--db", help="Path to SQLite database file.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def _resolve_user(user: str | None) -> str:
    return (user or os.getenv(DEFAULT_USER_ENV) or "local").strip()


def run(
    market_id: Annotated[str, typer.Argument(help="Polymarket market id, slug or condition id")],
    user: UserOption = None,
    force_refresh: Annotated[
        bool, typer.Option("--force-refresh", help="Ignore a fresh cached result")
    ] = False,
    no_intermediate: Annotated[
        bool, typer.Option("--no-intermediate", help="Omit per-pass analysis outputs")
    ] = False,
    output_json: JsonOption = False,
    output_file: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write JSON result to a file")
    ] = None,
    db_path: DbOption = DEFAULT_DB_PATH,
) -> None:
    """Research a market and print a YES/NO/UNCERTAIN verdict."""
    from market_research.agents import MockAgentAnalyzer, get_analyzer
    from market_research.catalog import CatalogConfig, PolymarketCatalog
    from market_research.exceptions import ResearchError
    from market_research.research import ResearchOrchestrator, SearchEvidenceGatherer
    from market_research.retrieval import ExaSearchClient
    from market_research.schemas import ResearchRequest

    user_id = _resolve_user(user)

    try:
        analyzer = get_analyzer()
        catalog_config = CatalogConfig.from_env()
        search = ExaSearchClient.from_env()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if isinstance(analyzer, MockAgentAnalyzer) and not output_json:
        console.print(
            "[yellow]Warning:[/yellow] Using MockAgentAnalyzer. "
            "Set MARKET_RESEARCH_ANALYZER_BACKEND=anthropic for real analysis."
        )

    async def _run() -> MarketResearchResult:
        async with (
            open_cache(db_path) as cache,
            PolymarketCatalog(catalog_config) as catalog,
            search,
        ):
            orchestrator = ResearchOrchestrator(
                catalog=catalog,
                gatherer=SearchEvidenceGatherer(search),
                analyzer=analyzer,
                cache=cache,
            )
            return await orchestrator.run(
                user_id,
                ResearchRequest(
                    market_id=market_id,
                    force_refresh=force_refresh,
                    include_intermediate=not no_intermediate,
                ),
            )

    try:
        result = run_async(_run())
    except ResearchError as e:
        console.print(f"[red]Error ({e.kind.value}):[/red] {e.message}")
        raise typer.Exit(1) from None

    payload = result.model_dump(mode="json")
    if output_json:
        write_json_output(payload, output_file)
        return

    _render_result(result)
    if output_file:
        write_json_output(payload, output_file)


def history(
    user: UserOption = None,
    market_id: Annotated[
        str | None, typer.Option("--market", "-m", help="Only runs for this market")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Page size")] = (
        DEFAULT_HISTORY_LIMIT
    ),
    offset: Annotated[int, typer.Option("--offset", min=0, help="Rows to skip")] = 0,
    output_json: JsonOption = False,
    db_path: DbOption = DEFAULT_DB_PATH,
) -> None:
    """List stored research runs, newest first."""
    user_id = _resolve_user(user)

    async def _history() -> ResearchHistoryPage:
        async with open_cache(db_path) as cache:
            return await cache.history(user_id, market_id=market_id, limit=limit, offset=offset)

    page = run_async(_history())

    if output_json:
        write_json_output(page.model_dump(mode="json"), None)
        return

    if not page.results:
        console.print("[yellow]No research runs found.[/yellow]")
        return

    table = Table(title=f"Research History ({page.total} total)")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Market", style="cyan")
    table.add_column("Question", style="white")
    table.add_column("Verdict", justify="center")
    table.add_column("Confidence", justify="right")
    table.add_column("Created", style="dim")

    for item in page.results:
        style = _VERDICT_STYLES[item.verdict]
        question = item.market_question
        if len(question) > 60:
            question = question[:57] + "..."
        table.add_row(
            item.id,
            item.market_id,
            question,
            f"[{style}]{item.verdict.value}[/{style}]",
            f"{item.confidence:.0%}",
            item.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    shown_to = page.offset + len(page.results)
    if shown_to < page.total:
        console.print(
            f"[dim]Showing {page.offset + 1}-{shown_to} of {page.total}. "
            f"Use --offset {shown_to} for more.[/dim]"
        )


def show(
    research_id: Annotated[str, typer.Argument(help="Research run id (from history)")],
    user: UserOption = None,
    no_intermediate: Annotated[
        bool, typer.Option("--no-intermediate", help="Omit per-pass analysis outputs")
    ] = False,
    output_json: JsonOption = False,
    db_path: DbOption = DEFAULT_DB_PATH,
) -> None:
    """Show a stored research run."""
    user_id = _resolve_user(user)

    async def _get() -> CacheEntry | None:
        async with open_cache(db_path) as cache:
            return await cache.get(user_id, research_id)

    entry = run_async(_get())
    if entry is None:
        console.print(f"[red]Error:[/red] Research not found: {research_id}")
        raise typer.Exit(1)

    result = entry.result
    if not no_intermediate and entry.intermediate is not None:
        result = result.model_copy(update={"intermediate": entry.intermediate})

    if output_json:
        write_json_output(result.model_dump(mode="json"), None)
        return

    _render_result(result)
    console.print(f"[dim]Stored {entry.created_at.isoformat()}[/dim]")


def _render_result(result: MarketResearchResult) -> None:
    style = _VERDICT_STYLES[result.verdict]
    probs = result.bayesian_result.probabilities

    console.print(
        Panel(
            f"[bold]{result.market_question}[/bold]\n"
            f"Market: {result.market_id}\n"
            f"Verdict: [bold {style}]{result.verdict.value}[/bold {style}] "
            f"(confidence {result.confidence:.0%})\n"
            f"P(yes) {probs.yes:.1%} | P(no) {probs.no:.1%} | "
            f"P(uncertain) {probs.uncertain:.1%}",
            title="Market Research",
        )
    )

    if result.graded_sources:
        table = Table(title="Sources", show_lines=False)
        table.add_column("Grade", justify="center", width=5)
        table.add_column("Title", style="white")
        table.add_column("Domain", style="blue")

        for gs in result.graded_sources[:10]:
            grade_style = _GRADE_STYLES[gs.grade.value]
            title = gs.source.title or gs.source.url
            if len(title) > 80:
                title = title[:77] + "..."
            table.add_row(
                f"[{grade_style}]{gs.grade.value}[/{grade_style}]",
                title,
                gs.source.domain or "",
            )
        console.print(table)

    console.print(f"\n[bold]Synthesis:[/bold] {result.analysis_result.aggregator.output}")
    console.print(f"[dim]{result.bayesian_result.explanation}[/dim]")
    if result.analysis_result.cost_usd is not None:
        console.print(f"[dim]Analysis cost: ${result.analysis_result.cost_usd:.4f}[/dim]")

    if result.intermediate:
        console.print("\n[bold]Analysis passes:[/bold]")
        for output in result.intermediate:
            console.print(
                f"- [cyan]{output.pass_name}[/cyan] ({output.confidence:.2f}): {output.conclusion}"
            )

    if result.research_id:
        console.print(f"[dim]Research id: {result.research_id}[/dim]")
