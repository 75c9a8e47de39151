"""
Phrase Drill CLI - flashcard sessions in the terminal.

Usage:
    drill study            # User-paced session (resumes a saved one)
    drill study --fresh    # Start over
    drill listen           # Hands-free auto-play with narration
    drill status           # Deck and saved-session progress
    drill reset            # Forget the saved session
    drill deck list        # Show the deck
    drill deck add "Good morning" "Buenos días"
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

# Local imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))
from config import Settings, get_settings
from src.drill import (
    AutoPlayPresentation,
    CompletionResult,
    DeckStore,
    DrillEngine,
    DrillError,
    EngineEvent,
    ManualPhase,
    ManualPresentation,
    Session,
    SessionPersistence,
    SessionView,
    create_store,
    default_cards,
)

T = TypeVar("T")

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="drill",
    help="Phrase Drill - flashcard sessions with narration",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
deck_app = typer.Typer(help="Manage the phrase deck", no_args_is_help=True)
app.add_typer(deck_app, name="deck")

console = Console()

PHASE_LABELS = {
    "source": "[red]Listen[/red]",
    "target-first": "[yellow]Answer[/yellow]",
    "target-repeat": "[green]Repeat[/green]",
}


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="1 MB", retention=3)


def build_engine(settings: Settings, fresh: bool = False) -> DrillEngine:
    """Open the configured store and create an engine over its deck."""
    store = create_store(settings.storage_backend, settings.get_storage_path())
    deck = DeckStore.load(store, settings.deck_id)
    persistence = SessionPersistence(store, settings.deck_id)
    if fresh:
        persistence.clear()
    return DrillEngine(deck, persistence=persistence, settings=settings)


def with_engine(action: Callable[[DrillEngine], T]) -> T:
    """Run `action` against an engine inside an event loop."""

    async def _run() -> T:
        return action(build_engine(get_settings()))

    return asyncio.run(_run())


# =============================================================================
# Display Helpers
# =============================================================================


def display_front(view: SessionView) -> None:
    card = view.current_card
    if card is None:
        return
    header = (
        f"Card {len(view.answered_correctly) + 1}/{view.deck_size}  |  "
        f"asked {view.asked_percentage:.0f}%  |  correct {view.correct_percentage:.0f}%"
    )
    console.print()
    console.print(
        Panel(card.front, title=header, title_align="left", border_style="cyan", padding=(1, 2))
    )


def display_back(view: SessionView) -> None:
    card = view.current_card
    if card is None:
        return
    console.print(Panel(card.back, border_style="green", padding=(1, 2)))


def display_summary(result: CompletionResult) -> None:
    table = Table(title="Session Complete")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Cards", str(result.total_cards))
    table.add_row("Answered correctly", str(result.correct_answers))
    table.add_row("Accuracy", f"{result.accuracy:.1f}%")
    console.print()
    console.print(table)


async def _wait_any(*events: asyncio.Event) -> None:
    waiters = [asyncio.ensure_future(event.wait()) for event in events]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()


# =============================================================================
# Study Commands
# =============================================================================


async def run_study(engine: DrillEngine) -> CompletionResult | None:
    """Drive a manual session from the terminal until it completes or the user quits."""
    revealed = asyncio.Event()
    finished = asyncio.Event()
    results: list[CompletionResult] = []
    last_countdown: list[int | None] = [None]

    def on_event(event: EngineEvent, view: SessionView) -> None:
        if event == EngineEvent.CARD_PRESENTED:
            revealed.clear()
            last_countdown[0] = None
            display_front(view)
        elif event == EngineEvent.FLIP:
            revealed.set()
        elif event in (EngineEvent.COMPLETED, EngineEvent.RESET):
            finished.set()
        elif event == EngineEvent.CHANGED:
            p = view.presentation
            if isinstance(p, ManualPresentation) and p.phase == ManualPhase.COUNTING_DOWN:
                if p.countdown != last_countdown[0]:
                    last_countdown[0] = p.countdown
                    console.print(f"[dim]{p.countdown}…[/dim]", end=" ")

    engine.on_complete = results.append
    unsubscribe = engine.subscribe(on_event)
    try:
        if engine.restored and engine.session.active:
            engine.stop_auto_play()
            display_front(engine.snapshot())
            engine.resume()
            if engine.snapshot().revealed:
                revealed.set()
        else:
            engine.start()

        while not finished.is_set():
            await _wait_any(revealed, finished)
            if finished.is_set():
                break
            revealed.clear()
            console.print()
            display_back(engine.snapshot())

            choice = "r"
            while choice == "r":
                choice = await asyncio.to_thread(
                    Prompt.ask,
                    "Did you know it? [dim](y)es (n)o (r)epeat (q)uit[/dim]",
                    choices=["y", "n", "r", "q"],
                    default="y",
                    console=console,
                )
                if choice == "r":
                    engine.repeat_narration()

            if choice == "q":
                console.print("[yellow]Session saved. Run 'drill study' to continue.[/yellow]")
                return None
            engine.record_answer(choice == "y")
    finally:
        unsubscribe()

    return results[0] if results else None


async def run_listen(engine: DrillEngine) -> CompletionResult | None:
    """Auto-play until the pass completes; cancellation stops auto-play cleanly."""
    finished = asyncio.Event()
    results: list[CompletionResult] = []
    last_phase: list[str | None] = [None]

    def on_event(event: EngineEvent, view: SessionView) -> None:
        if event == EngineEvent.CARD_PRESENTED:
            last_phase[0] = None
            display_front(view)
        elif event == EngineEvent.FLIP:
            display_back(view)
        elif event in (EngineEvent.COMPLETED, EngineEvent.RESET):
            finished.set()
        elif event == EngineEvent.CHANGED:
            p = view.presentation
            if isinstance(p, AutoPlayPresentation) and p.phase.value != last_phase[0]:
                last_phase[0] = p.phase.value
                console.print(PHASE_LABELS[p.phase.value])

    engine.on_complete = results.append
    unsubscribe = engine.subscribe(on_event)
    try:
        if engine.restored and engine.session.auto_play_active:
            display_front(engine.snapshot())
            engine.resume()
        else:
            engine.start_auto_play()
        await finished.wait()
    except asyncio.CancelledError:
        engine.stop_auto_play()
        raise
    finally:
        unsubscribe()

    return results[0] if results else None


@app.command()
def study(
    fresh: Annotated[
        bool, typer.Option("--fresh", help="Discard any saved session and start over")
    ] = False,
) -> None:
    """Study the deck at your own pace."""
    settings = get_settings()

    async def _run() -> CompletionResult | None:
        return await run_study(build_engine(settings, fresh=fresh))

    try:
        result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. Run 'drill study' to continue.[/yellow]")
        raise typer.Exit(code=130)
    if result is not None:
        display_summary(result)


@app.command()
def listen(
    fresh: Annotated[
        bool, typer.Option("--fresh", help="Discard any saved session and start over")
    ] = False,
) -> None:
    """Play the deck hands-free. Press Ctrl-C to stop."""
    settings = get_settings()

    async def _run() -> CompletionResult | None:
        return await run_listen(build_engine(settings, fresh=fresh))

    try:
        result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Auto-play stopped. Run 'drill study' to continue.[/yellow]")
        raise typer.Exit(code=130)
    if result is not None:
        display_summary(result)


# =============================================================================
# Status Commands
# =============================================================================


@app.command()
def status() -> None:
    """Show the deck and any saved session."""
    settings = get_settings()
    store = create_store(settings.storage_backend, settings.get_storage_path())
    deck = DeckStore.load(store, settings.deck_id)
    snapshot = SessionPersistence(store, settings.deck_id).load()

    table = Table(title="Phrase Drill Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Deck", settings.deck_id)
    table.add_row("Cards", str(len(deck)))
    table.add_row("Storage", f"{settings.storage_backend} ({settings.get_storage_path()})")

    if snapshot is None:
        table.add_row("Saved session", "None")
    else:
        session = Session()
        snapshot.apply_to(session)
        view = SessionView.of(session, len(deck))
        table.add_row("Saved session", "Auto-play" if view.auto_play_active else "Manual")
        table.add_row("Answered correctly", f"{len(view.answered_correctly)}/{view.deck_size}")
        table.add_row("Asked", f"{view.asked_percentage:.0f}%")
        table.add_row("Correct", f"{view.correct_percentage:.0f}%")
        table.add_row("Queued", str(len(view.queue_ids)))
        if snapshot.saved_at:
            table.add_row("Saved at", snapshot.saved_at.strftime("%Y-%m-%d %H:%M"))

    console.print(table)


@app.command()
def reset() -> None:
    """Forget the saved session."""
    with_engine(lambda engine: engine.reset())
    console.print("[green]Session cleared.[/green]")


# =============================================================================
# Deck Commands
# =============================================================================


@deck_app.command("list")
def deck_list() -> None:
    """List every card in the deck."""
    settings = get_settings()
    store = create_store(settings.storage_backend, settings.get_storage_path())
    deck = DeckStore.load(store, settings.deck_id)

    table = Table(title=f"Deck '{settings.deck_id}'")
    table.add_column("ID", justify="right")
    table.add_column("Front", style="cyan")
    table.add_column("Back", style="green")
    table.add_column("✓", justify="right")
    table.add_column("✗", justify="right")
    table.add_column("Last asked", style="dim")
    for card in deck:
        table.add_row(
            str(card.id),
            card.front,
            card.back,
            str(card.correct_count),
            str(card.incorrect_count),
            card.last_asked_at.strftime("%Y-%m-%d %H:%M") if card.last_asked_at else "-",
        )
    console.print(table)


@deck_app.command("add")
def deck_add(
    front: Annotated[str, typer.Argument(help="Front text (prompt)")],
    back: Annotated[str, typer.Argument(help="Back text (answer)")],
) -> None:
    """Add a card."""
    card = with_engine(lambda engine: engine.add_card(front, back))
    console.print(f"[green]Added card {card.id}[/green]")


@deck_app.command("edit")
def deck_edit(
    card_id: Annotated[int, typer.Argument(help="Card ID")],
    front: Annotated[str | None, typer.Option("--front", "-f", help="New front text")] = None,
    back: Annotated[str | None, typer.Option("--back", "-b", help="New back text")] = None,
) -> None:
    """Edit a card's text."""

    def _edit(engine: DrillEngine):
        card = engine.deck.get(card_id)
        return engine.edit_card(
            card_id,
            front if front is not None else card.front,
            back if back is not None else card.back,
        )

    try:
        card = with_engine(_edit)
    except DrillError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Updated card {card.id}[/green]")


@deck_app.command("delete")
def deck_delete(
    card_id: Annotated[int, typer.Argument(help="Card ID")],
) -> None:
    """Delete a card (the deck keeps at least one)."""
    try:
        card = with_engine(lambda engine: engine.delete_card(card_id))
    except DrillError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Deleted card {card.id}[/green]")


@deck_app.command("seed")
def deck_seed(
    force: Annotated[
        bool, typer.Option("--force", help="Replace the current deck without asking")
    ] = False,
) -> None:
    """Replace the deck with the default travel phrases."""
    if not force and not typer.confirm("Replace every card in the deck?"):
        raise typer.Exit()

    def _seed(engine: DrillEngine) -> int:
        engine.reset()
        engine.deck.replace_all(default_cards())
        return len(engine.deck)

    count = with_engine(_seed)
    console.print(f"[green]Deck reset to {count} default cards.[/green]")


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Verbose output")
    ] = False,
) -> None:
    """
    Phrase Drill - flashcard sessions with narration.

    \b
    Quick Start:
      drill study               # Study at your own pace
      drill listen              # Hands-free auto-play
      drill deck list           # See the cards
    """
    configure_logging(get_settings(), verbose=verbose)


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
