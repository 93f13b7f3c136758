"""Shared utilities for CLI commands (console output, async helpers)."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import typer
from rich.console import Console

if TYPE_CHECKING:
    from collections.abc import Coroutine

console = Console()

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T]) -> T:
    """Run a coroutine from a sync CLI command.

    Raises:
        typer.Exit: With code 130 on KeyboardInterrupt (standard SIGINT exit code).
    """
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(130) from None


def write_json_output(data: object, output_file: Path | None) -> None:
    """Write JSON output to stdout or file."""
    json_output = json.dumps(data, indent=2, default=str)
    if output_file:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with Path(output_file).open("w", encoding="utf-8") as f:
            f.write(json_output)
        console.print(f"[green]✓[/green] Results written to {output_file}")
    else:
        typer.echo(json_output)
