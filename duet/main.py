"""Duet CLI — run buffers and poke at sessions from a terminal.

Commands:
    duet run        — Execute a file through the dispatcher
    duet languages  — List the language registry
    duet demo       — Two participants editing one session, then a run
    duet version    — Show Duet version
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from duet.utils import setup_logging

# Initialize logging on import
setup_logging()

app = typer.Typer(
    name="duet",
    help="👥 Duet — shared code sessions with sandboxed execution",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


def _print_result(result) -> None:  # noqa: ANN001
    """Render an ExecutionResult as output / error panels."""
    if result.output:
        console.print(Panel(result.output, title="[bold green]Output[/]", border_style="green"))
    if result.error:
        kind = result.error_kind.value if result.error_kind else "error"
        console.print(Panel(result.error, title=f"[bold red]✖ {kind}[/]", border_style="red"))
    console.print(f"[dim]{result.language or '?'} · {result.duration_ms:.0f} ms[/]")


# ── duet run ──────────────────────────────────────────────────


@app.command()
def run(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to execute"),
    language: str = typer.Option(None, "--language", "-l", help="Language id (default: from extension)"),
    timeout_ms: int = typer.Option(None, "--timeout-ms", "-t", help="Override the execution budget"),
):
    """▶ Execute a file the same way a session's Run button does."""
    from duet.execution.languages import language_for_extension

    lang = language or language_for_extension(path.suffix)
    if not lang:
        console.print(f"[red]Cannot infer a language from '{path.suffix}'. Use --language.[/]")
        raise typer.Exit(1)

    result = asyncio.run(_run(path.read_text(encoding="utf-8"), lang, timeout_ms))
    _print_result(result)
    if not result.ok:
        raise typer.Exit(1)


async def _run(code: str, language: str, timeout_ms: int | None):
    from duet.execution.dispatcher import ExecutionDispatcher

    dispatcher = ExecutionDispatcher(timeout_ms=timeout_ms)
    return await dispatcher.execute(code, language)


# ── duet languages ────────────────────────────────────────────


@app.command()
def languages():
    """📋 List every language the picker knows and how it runs."""
    from duet.execution.languages import LANGUAGES, ExecutionPath

    table = Table(title="Languages")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Runs", style="green")
    table.add_column("Extensions", style="dim")

    labels = {
        ExecutionPath.DIRECT: "✅ in-host",
        ExecutionPath.HOSTED: "✅ hosted (lazy load)",
        ExecutionPath.UNSUPPORTED: "[red]✖ unsupported[/]",
    }
    for spec in LANGUAGES.values():
        table.add_row(spec.id, spec.name, labels[spec.path], " ".join(spec.extensions))

    console.print(table)


# ── duet demo ─────────────────────────────────────────────────


@app.command()
def demo(
    language: str = typer.Option("python", "--language", "-l", help="Language to switch the session to"),
):
    """🎬 Create a session, join a guest, edit together, run the buffer."""
    asyncio.run(_demo(language))


_DEMO_CODE = {
    "python": 'print("hello from the shared buffer")\nsum(range(10))\n',
    "cython": "cdef int total = 0\nfor i in range(10):\n    total += i\ntotal\n",
    "javascript": 'console.log("hello from the shared buffer");\n[1, 2, 3].map(x => x * 2)\n',
}


async def _demo(language: str):
    from duet.app import DuetApp

    duet_app = DuetApp()
    session = await duet_app.create_session("Demo interview", "Host")
    console.print(f"[bold cyan]Session[/] {session.id} — {session.title}")

    def on_change(snapshot) -> None:  # noqa: ANN001
        names = ", ".join(p.name for p in snapshot.participants)
        console.print(f"  [dim]↻ {snapshot.language} · {len(snapshot.code)} chars · [{names}][/]")

    unsubscribe = duet_app.subscribe(session.id, on_change)
    try:
        guest = await duet_app.join_session(session.id, "Guest")
        await duet_app.update_language(session.id, language)
        await duet_app.update_code(session.id, _DEMO_CODE.get(language, ""))

        hint = duet_app.runtime_hint(language)
        if hint:
            console.print(f"[yellow]{hint}[/]")

        current = await duet_app.get_session(session.id)
        _print_result(await duet_app.execute(current.code, current.language))

        if guest is not None:
            await duet_app.leave_session(session.id, guest.id)
    finally:
        unsubscribe()
        await duet_app.close()


# ── duet version ──────────────────────────────────────────────


@app.command()
def version():
    """📦 Show Duet version."""
    from duet import __version__
    console.print(f"[bold cyan]👥 Duet[/] v{__version__}")


# ── Entry point ───────────────────────────────────────────────

if __name__ == "__main__":
    app()
