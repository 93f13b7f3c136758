"""
CLI application for the market research engine.

Provides commands to run research, browse history and inspect stored runs.
"""

from __future__ import annotations

import typer
from dotenv import find_dotenv, load_dotenv

from market_research.cli.research import history, run, show
from market_research.cli.utils import console

app = typer.Typer(
    name="market-research",
    help="Market research CLI - evidence-graded verdicts for prediction markets.",
    add_completion=False,
)

app.command()(run)
app.command()(history)
app.command()(show)


@app.callback()
def main() -> None:
    """Market research CLI."""
    load_dotenv(find_dotenv(usecwd=True))


@app.command()
def version() -> None:
    """Show version information."""
    from market_research import __version__

    console.print(f"market-research v{__version__}")


if __name__ == "__main__":
    app()
