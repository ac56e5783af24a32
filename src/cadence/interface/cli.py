"""Cadence CLI: study, stats and maintenance commands over deck files."""

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError

from cadence.application.config import EngineConfig, resolve_config
from cadence.domain.errors import CadenceError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition study sessions from the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

GRADE_PROMPT = "Grade [0=again 1=hard 2=good 3=easy, u=undo, q=quit]"


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose


def _resolve(ctx: typer.Context, **overrides: Any) -> EngineConfig:
    overrides.setdefault("verbose", (ctx.obj or {}).get("verbose_bonus"))
    try:
        config = resolve_config(overrides)
    except ValidationError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red")
        raise typer.Exit(2) from e

    if config.verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    return config


def _load_deck(path: Path):
    from cadence.infrastructure.adapters.deck_file import load_deck

    try:
        return load_deck(path)
    except CadenceError as e:
        typer.secho(str(e), fg="red")
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def study(
    ctx: typer.Context,
    deck_path: Annotated[Path, typer.Argument(help="Deck file (JSON).")],
    scope: Annotated[
        str | None, typer.Option(help="Scope to study. Defaults to the deck's scope.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Backend: auto, http, file.")] = None,
    new_per_day: Annotated[int | None, typer.Option(help="New items per day.")] = None,
    reviews_per_day: Annotated[
        int | None, typer.Option(help="Max reviews per day (0 = unlimited).")
    ] = None,
    timezone: Annotated[str | None, typer.Option(help="IANA time zone for day rollover.")] = None,
):
    """[bold green]Study[/bold green] a deck interactively."""
    from cadence.application.factory import build_study_service

    deck = _load_deck(deck_path)
    config = _resolve(
        ctx,
        backend=backend,
        new_items_per_day=new_per_day,
        max_reviews_per_day=reviews_per_day,
        timezone=timezone,
    )

    async def run():
        service = await build_study_service(config, scope or deck.scope, deck_path.stem)
        await service.open(deck.item_ids, groups=deck.groups)
        try:
            while True:
                now = datetime.now(UTC)
                state = service.next_item(now)

                if state is None:
                    summary = service.summary(now)
                    if summary.is_complete or summary.next_poll_at is None:
                        break
                    wait = (summary.next_poll_at - now).total_seconds()
                    keep_going = await asyncio.to_thread(
                        typer.confirm,
                        f"Next learning item is due in {int(wait)}s. Wait for it?",
                        default=True,
                    )
                    if not keep_going:
                        break
                    await asyncio.sleep(max(0.0, wait))
                    continue

                content = deck.get(state.id)
                typer.secho(f"\n{content.front if content else state.id}", bold=True)
                await asyncio.to_thread(
                    typer.prompt, "Press Enter to show the answer", default="", show_default=False
                )
                if content and content.back:
                    typer.echo(content.back)

                response = (await asyncio.to_thread(typer.prompt, GRADE_PROMPT)).strip().lower()
                if response == "q":
                    break
                if response == "u":
                    result = service.undo()
                    if result is None:
                        typer.secho("Nothing to undo.", fg="yellow")
                    else:
                        typer.echo(f"Undid {result.entry.grade.name.lower()} on {result.entry.item_id}")
                    continue

                try:
                    outcome = service.grade(state.id, response, datetime.now(UTC))
                except ValueError as e:
                    typer.secho(f"{e}. Enter 0, 1, 2 or 3.", fg="red")
                    continue

                if outcome.leech_flagged:
                    typer.secho(f"{state.id} is a leech.", fg="yellow")
        finally:
            if not await service.close():
                typer.secho("Some progress could not be saved.", fg="red")
            await service.repository.close()

        daily = service.daily_stats()
        typer.echo(
            f"\nDone. New: {daily.new_items_graded}  Reviews: {daily.reviews_completed}  "
            f"Accuracy: {daily.accuracy:.0f}%"
        )

    asyncio.run(run())


@app.command()
def stats(
    ctx: typer.Context,
    deck_path: Annotated[Path, typer.Argument(help="Deck file (JSON).")],
    scope: Annotated[
        str | None, typer.Option(help="Scope to report on. Defaults to the deck's scope.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Backend: auto, http, file.")] = None,
):
    """Print study statistics for a deck as JSON."""
    from cadence.application.factory import get_fallback_store, get_schedule_repository
    from cadence.application.stats import DeckStatsService

    deck = _load_deck(deck_path)
    config = _resolve(ctx, backend=backend)
    scope = scope or deck.scope

    async def run():
        repo = await get_schedule_repository(config, deck_path.stem)
        try:
            service = DeckStatsService(repo, get_fallback_store(config), params=config.params)
            now = datetime.now(UTC)
            report = await service.report(
                deck.item_ids,
                config.limits_for(scope),
                now,
                now.astimezone(_zone(config)).date(),
            )
        finally:
            await repo.close()
        typer.echo(json.dumps(asdict(report), indent=2, default=str))

    asyncio.run(run())


@app.command()
def promote(
    ctx: typer.Context,
    deck_path: Annotated[Path, typer.Argument(help="Deck file (JSON).")],
    scope: Annotated[str | None, typer.Option(help="Scope to sweep.")] = None,
    backend: Annotated[str | None, typer.Option(help="Backend: auto, http, file.")] = None,
):
    """Move learning items stuck far in the future to review."""
    from cadence.application.factory import get_schedule_repository
    from cadence.application.lifecycle import promote_stuck_learning

    deck = _load_deck(deck_path)
    config = _resolve(ctx, backend=backend)
    scope = scope or deck.scope

    async def run():
        repo = await get_schedule_repository(config, deck_path.stem)
        try:
            items = await repo.load_schedules(scope, deck.item_ids)
            updated, promoted = promote_stuck_learning(items, datetime.now(UTC))
            if promoted and not await repo.save_schedules(scope, [updated[i] for i in promoted]):
                typer.secho("Failed to save promoted items.", fg="red")
                raise typer.Exit(1)
        finally:
            await repo.close()

        if promoted:
            typer.secho(f"Promoted {len(promoted)} item(s) to review.", fg="green")
        else:
            typer.echo("No stuck learning items.")

    asyncio.run(run())


def _zone(config: EngineConfig):
    from zoneinfo import ZoneInfo

    return ZoneInfo(config.timezone)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve(ctx)
    d = config.model_dump(mode="json")
    if d.get("api_token"):
        d["api_token"] = "***"
    typer.echo(json.dumps(d, indent=2))


if __name__ == "__main__":
    app()
