"""
CLI interface for notebook-live with Rich output.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from notebook_live import Notebook, NotebookConfig, NotebookSession
from notebook_live.notebook import RunState
from notebook_live.render import render_page
from notebook_live.utils import truncate_text


console = Console()


def _session(no_js: bool = False, **overrides) -> NotebookSession:
    if no_js:
        overrides["execute_javascript"] = False
    return NotebookSession(NotebookConfig.from_env(**overrides))


def _read_document(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _summary_table(notebook: Notebook, source: str) -> Table:
    table = Table(title=notebook.title or source, border_style="blue", show_lines=True)
    table.add_column("#", style="bold cyan", justify="right")
    table.add_column("Type", style="white")
    table.add_column("Prompt", justify="right", style="green")
    table.add_column("Source", style="dim")

    for i, cell in enumerate(notebook.cells()):
        table.add_row(
            str(i),
            cell.cell_type,
            "" if cell.number is None else str(cell.number),
            truncate_text(cell.source.replace("\n", " "), 60),
        )
    return table


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose: bool):
    """notebook-live: render notebooks and re-run their code cells."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), default=None, help="Output HTML file")
@click.option("--no-js", is_flag=True, help="Do not execute inline JavaScript outputs")
def render(path: str, output: Optional[str], no_js: bool):
    """Render a notebook to a standalone HTML page."""
    session = _session(no_js)
    notebook = session.load(_read_document(path))
    if not notebook.title:
        notebook.title = Path(path).stem
    page = render_page(session, notebook, interactive=False)

    output = output or str(Path(path).with_suffix(".html"))
    Path(output).write_text(page, encoding="utf-8")
    console.print(f"[green]Rendered:[/green] {output}")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--no-js", is_flag=True, help="Do not execute inline JavaScript outputs")
def run(path: str, no_js: bool):
    """Run every code cell of a notebook in order."""
    session = _session(no_js)
    notebook = session.load(_read_document(path))
    session.render(notebook)

    nb_name = notebook.title or Path(path).stem
    console.print(Panel(
        f"[bold]{nb_name}[/bold]  [dim]{path}[/dim]",
        title="[bold blue]notebook-live[/bold blue]",
        border_style="blue",
    ))
    console.print()

    if not session.run_codes:
        console.print("[yellow]No code cells to execute[/yellow]")
        return

    results = asyncio.run(session.run_all())
    language = notebook.language or session.config.default_language

    success_count = 0
    for handler, result in zip(session.run_codes, results):
        cell = handler.args[0]
        console.print(Panel(
            Syntax(cell.input.source, language, theme="monokai", line_numbers=True),
            title=f"In [{cell.number}]",
            title_align="left",
            border_style="dim",
        ))
        failed = cell.input.run_control.state == RunState.FAILED
        console.print(Panel(
            Text(cell.outputs[0].text or ""),
            title=f"[red]Error [{cell.number}][/red]" if failed else f"[blue]Out [{cell.number}][/blue]",
            title_align="left",
            border_style="red" if failed else "blue",
        ))
        if result.success:
            success_count += 1

    total = len(results)
    if success_count == total:
        console.print(f"[green]All {total} cells executed successfully[/green]")
    else:
        console.print(f"[yellow]Executed {success_count}/{total} cells successfully[/yellow]")


@main.command()
@click.argument("identifier")
@click.option("--base-url", default=None, help="Server that hosts the notebooks")
@click.option("--namespace", default=None, help="Path segment the notebooks live under")
def fetch(identifier: str, base_url: Optional[str], namespace: Optional[str]):
    """Fetch a notebook by identifier and summarize it."""
    overrides = {}
    if base_url:
        overrides["base_url"] = base_url
    if namespace:
        overrides["namespace"] = namespace
    session = _session(**overrides)

    notebook = asyncio.run(session.fetch(identifier))
    console.print(_summary_table(notebook, identifier))


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--host", default="0.0.0.0", help="Interface to bind")
@click.option("--port", "-p", default=7860, type=int, help="Port to listen on")
def web(directory: str, host: str, port: int):
    """Serve the notebooks in DIRECTORY with runnable code cells."""
    try:
        from notebook_live.web import launch_web
        launch_web(Path(directory), host=host, port=port)
    except ImportError:
        console.print("[red]Web interface requires flask. Install with: pip install flask[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
