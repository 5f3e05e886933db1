"""screenpilot command line interface."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from screenpilot.config import Settings, load_settings
from screenpilot.conversation import Origin, Turn
from screenpilot.device import ClickMarker
from screenpilot.engine.loop import AgentLoop, InstructionOutcome, LoopLimits, fixed_delay
from screenpilot.errors import ScreenPilotError
from screenpilot.knowledge.records import load_corpus
from screenpilot.knowledge.retriever import KnowledgeRetriever
from screenpilot.loader import build_device
from screenpilot.logging_utils import configure_logging
from screenpilot.planning.decomposer import InstructionDecomposer
from screenpilot.planning.oracle import OpenAIReasoningOracle, ReasoningOracle
from screenpilot.progress import AgentStatus, ProgressSnapshot
from screenpilot.vlm import OpenAIVisionModel, VisionLanguageModel

EXIT_FAILURE = 1
EXIT_MAX_LOOP = 2

app = typer.Typer(
    name="screenpilot",
    help="Drive a device toward a goal with a vision-language model.",
    add_completion=False,
)
kb_app = typer.Typer(help="Inspect the instruction knowledge corpus.")
app.add_typer(kb_app, name="kb")

console = Console()

_STATUS_STYLES = {
    AgentStatus.INIT: "dim",
    AgentStatus.RUNNING: "cyan",
    AgentStatus.END: "green",
    AgentStatus.MAX_LOOP: "red",
}


def _build_oracle(settings: Settings) -> ReasoningOracle:
    return OpenAIReasoningOracle(settings)


def _build_vlm(settings: Settings) -> VisionLanguageModel:
    return OpenAIVisionModel(settings)


def _build_retriever(corpus: Path | None) -> KnowledgeRetriever | None:
    if corpus is None:
        return None
    return KnowledgeRetriever(load_corpus(corpus))


def _build_decomposer(settings: Settings) -> InstructionDecomposer:
    return InstructionDecomposer(
        _build_oracle(settings),
        _build_retriever(settings.knowledge_corpus),
        max_attempts=settings.oracle_max_attempts,
        initial_delay=settings.oracle_initial_delay_seconds,
    )


def _fail(exc: ScreenPilotError) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", soft_wrap=True)
    return typer.Exit(EXIT_FAILURE)


def _render_turn(turn: Turn) -> None:
    if turn.is_screenshot:
        shot = turn.screenshot
        size = f"{shot.width}x{shot.height}" if shot is not None else "?"
        console.print(f"[dim]screenshot {size}[/dim]")
    elif turn.origin == Origin.AGENT:
        console.print(f"[bold yellow]Agent:[/bold yellow] {escape(turn.value)}")
        for action in turn.actions:
            console.print(f"  [magenta]{action.action_type.value}[/magenta] {escape(str(action.action_inputs))}")
    else:
        console.print(f"[bold cyan]Instruction:[/bold cyan] {escape(turn.value)}")


def render_snapshot(snapshot: ProgressSnapshot) -> None:
    """Print the turns a snapshot delivers, plus status changes and errors."""
    for turn in snapshot.turns:
        _render_turn(turn)
    style = _STATUS_STYLES.get(snapshot.status, "white")
    if snapshot.error_message:
        console.print(f"[{style}]{snapshot.status.value}[/{style}] {escape(snapshot.error_message)}")
    elif not snapshot.turns:
        console.print(f"[{style}]status {snapshot.status.value}[/{style}]")


async def _run_loop(agent: AgentLoop) -> list[InstructionOutcome]:
    loop = asyncio.get_running_loop()
    installed = False
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, agent.abort.set)
        installed = True
    try:
        return await agent.run()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def run(
    goal: str = typer.Argument(..., help="What the agent should accomplish"),
    device: str = typer.Option(..., "--device", "-d", help="Device factory as module:attr"),
    corpus: Path | None = typer.Option(None, "--corpus", "-c", help="YAML knowledge corpus"),  # noqa: B008
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
) -> None:
    """Decompose GOAL and drive DEVICE through every instruction."""

    settings = load_settings(knowledge_corpus=corpus, log_level=log_level)
    configure_logging(profile="cli", level=settings.log_level)
    try:
        target = build_device(device, settings)
        vlm = _build_vlm(settings)
        agent = AgentLoop(
            goal=goal,
            device=target,
            vlm=vlm,
            decomposer=_build_decomposer(settings),
            system_prompt=settings.system_prompt,
            observer=render_snapshot,
            annotator=ClickMarker(),
            model_name=vlm.model_name,
            limits=LoopLimits.from_settings(settings),
            action_delay=fixed_delay(settings.action_wait_ms / 1000),
        )
        outcomes = asyncio.run(_run_loop(agent))
    except ScreenPilotError as exc:
        raise _fail(exc) from exc

    for outcome in outcomes:
        console.print(
            f"[dim]{outcome.status.value}[/dim] {escape(outcome.instruction)} ({outcome.loops} loops)", soft_wrap=True
        )
    if any(outcome.status == AgentStatus.MAX_LOOP for outcome in outcomes):
        raise typer.Exit(EXIT_MAX_LOOP)


@app.command()
def plan(
    goal: str = typer.Argument(..., help="Goal to decompose"),
    corpus: Path | None = typer.Option(None, "--corpus", "-c", help="YAML knowledge corpus"),  # noqa: B008
) -> None:
    """Print the instructions GOAL decomposes into."""

    settings = load_settings(knowledge_corpus=corpus)
    configure_logging(profile="cli", level=settings.log_level)
    try:
        instructions = asyncio.run(_build_decomposer(settings).decompose(goal))
    except ScreenPilotError as exc:
        raise _fail(exc) from exc
    for index, instruction in enumerate(instructions, start=1):
        console.print(f"{index:>2}. {instruction}", markup=False, soft_wrap=True)


@kb_app.command("search")
def kb_search(
    query: str = typer.Argument(..., help="Goal text to match"),
    corpus: Path = typer.Option(..., "--corpus", "-c", help="YAML knowledge corpus"),  # noqa: B008
) -> None:
    """Score every record against QUERY and show the match."""

    if not query.strip():
        console.print("[bold red]Error:[/bold red] A query is required to search the corpus.")
        raise typer.Exit(EXIT_FAILURE)
    try:
        retriever = KnowledgeRetriever(load_corpus(corpus))
    except ScreenPilotError as exc:
        raise _fail(exc) from exc

    table = Table("Score", "Id", "Name")
    for record, points in retriever.rank(query):
        table.add_row(str(points), record.id, record.name)
    console.print(table)

    match = retriever.find(query)
    if match is None:
        console.print("[dim]No record passes the relevance threshold.[/dim]")
    else:
        console.print(f"[green]Match:[/green] {match.name}")


@kb_app.command("list")
def kb_list(
    corpus: Path = typer.Option(..., "--corpus", "-c", help="YAML knowledge corpus"),  # noqa: B008
) -> None:
    """List the records in the corpus."""

    try:
        records = load_corpus(corpus)
    except ScreenPilotError as exc:
        raise _fail(exc) from exc
    if not records:
        console.print("(no records)")
        return

    table = Table("Id", "Name", "Tags", "Steps")
    for record in records:
        table.add_row(record.id, record.name, ", ".join(record.tags), str(len(record.instructions)))
    console.print(table)
