"""Nucleus CLI — progress views, reviews, imports and collection maintenance."""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from nucleus.application.config import EngineConfig, resolve_config
from nucleus.application.merge_service import ImportMode
from nucleus.application.stats.service import ProgressService
from nucleus.application.study_service import StudyService
from nucleus.domain.errors import NucleusError
from nucleus.infrastructure.yaml_store import YamlStudyRepository, load_batch

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="nucleus: spaced-repetition scheduling and progress for study collections.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Inspect nucleus configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context) -> EngineConfig:
    obj = ctx.obj or {}
    # A verbosity of 0 means -v was not given, so env and TOML settings apply.
    overrides = {"store_path": obj.get("store"), "verbose": obj.get("verbose") or None}
    try:
        config = resolve_config(overrides)
    except ValidationError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red", err=True)
        raise typer.Exit(1) from e
    logging.getLogger().setLevel(_LOG_LEVELS.get(config.verbose, logging.DEBUG))
    return config


def _repo(config: EngineConfig) -> YamlStudyRepository:
    return YamlStudyRepository(config.store_path, config.default_stability_days)


def _fail(error: Exception) -> typer.Exit:
    typer.secho(f"Error: {error}", fg="red", err=True)
    return typer.Exit(1)


def _fmt_time(value) -> str:
    return value.isoformat(timespec="minutes") if value is not None else "-"


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    store: Annotated[
        Path | None, typer.Option("--store", help="Path to the YAML store. Defaults to config.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for nucleus."""
    ctx.ensure_object(dict)
    ctx.obj["store"] = store
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# Read commands
# ---------------------------------------------------------------------------


@app.command()
def status(
    ctx: typer.Context,
    unit: Annotated[
        str | None, typer.Argument(help="Content unit key. Omit for all units.")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Emit JSON instead of text.")] = False,
):
    """Show progress and the recommended activity per content unit."""
    service = ProgressService(_repo(_config(ctx)))
    try:
        summaries = [service.unit_activity(unit)] if unit else service.overview()
    except NucleusError as e:
        raise _fail(e) from e

    if as_json:
        payload = [
            {
                "unit": s.unit_key,
                "status": s.status_label.value,
                "pending": s.total_pending,
                "recommended": s.recommended_activity.value if s.recommended_activity else None,
                "domain": round(s.global_domain, 1),
                "mastery": round(s.global_mastery, 1),
                "next_review": s.next_review_label,
                "critical": s.is_critical,
                "activities": {
                    a.value: state.status.value for a, state in s.activities.items()
                },
            }
            for s in summaries
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not summaries:
        typer.secho("No content units found.", fg="yellow")
        return

    for s in summaries:
        flag = " [CRITICAL]" if s.is_critical else ""
        typer.echo(
            f"{s.unit_key}: {s.status_label.value}{flag}  pending={s.total_pending}  "
            f"domain={s.global_domain:.1f}  mastery={s.global_mastery:.1f}  "
            f"next={s.next_review_label}"
        )
        if s.recommended_activity:
            typer.echo(f"  Recommended: {s.recommended_activity.value}")
        if unit:
            for activity, state in s.activities.items():
                typer.echo(
                    f"  {activity.value:<12} {state.status.value:<10} "
                    f"items={state.total_items} new={state.new_count} due={state.due_count}"
                )


@app.command("queue")
def queue(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option(help="Maximum number of items to list.")] = 20,
):
    """List attempted items by reinforcement priority, most urgent first."""
    service = ProgressService(_repo(_config(ctx)))
    try:
        entries = service.reinforcement_queue(limit)
    except NucleusError as e:
        raise _fail(e) from e
    if not entries:
        typer.secho("Nothing to reinforce.", fg="yellow")
        return
    for e in entries:
        label = e.ref_code or e.item_id
        typer.echo(
            f"{label}  {e.urgency.value:<8} domain={e.domain:.1f} "
            f"mastery={e.mastery_score:.1f} R={e.retrievability:.2f}"
        )


# ---------------------------------------------------------------------------
# Write commands
# ---------------------------------------------------------------------------


@app.command()
def review(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Identifier of the reviewed item.")],
    correct: Annotated[
        bool, typer.Option("--correct/--wrong", help="Whether the answer was correct.")
    ] = True,
    rating: Annotated[
        int, typer.Option(help="Self-evaluation: 0=again 1=hard 2=good 3=easy.")
    ] = 2,
    seconds: Annotated[float, typer.Option(help="Seconds taken to answer.")] = 20.0,
):
    """Record one review and show the new schedule."""
    config = _config(ctx)
    try:
        item = StudyService(_repo(config), config).record_review(item_id, correct, rating, seconds)
    except (NucleusError, ValueError) as e:
        raise _fail(e) from e
    typer.secho(
        f"{item.id}: mastery={item.mastery_score:.1f} stability={item.stability:.2f}d "
        f"next review {_fmt_time(item.next_review_at)}",
        fg="green",
    )


@app.command("import")
def import_file(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="YAML or JSON file with study items.")],
    mode: Annotated[
        ImportMode, typer.Option(case_sensitive=False, help="How to treat matched records.")
    ] = ImportMode.SKIP,
):
    """Merge a batch of study items into the store."""
    config = _config(ctx)
    try:
        records = load_batch(file, config.default_stability_days)
        result = StudyService(_repo(config), config).import_batch(records, mode)
    except (NucleusError, OSError) as e:
        raise _fail(e) from e
    typer.echo(
        f"Imported: {result.imported}  Updated: {result.updated}  Blocked: {result.blocked}"
    )


@app.command()
def dedupe(ctx: typer.Context):
    """Remove later copies of items with identical content."""
    config = _config(ctx)
    try:
        removed = StudyService(_repo(config), config).remove_duplicates()
    except NucleusError as e:
        raise _fail(e) from e
    typer.echo(f"Removed {removed} duplicates.")


@app.command("delete-unit")
def delete_unit(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key of the content unit to delete.")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
):
    """Delete a content unit and move its items to the trash."""
    if not force:
        typer.confirm(f"Delete unit '{key}' and trash its items?", abort=True)
    config = _config(ctx)
    try:
        result = StudyService(_repo(config), config).delete_unit(key)
    except NucleusError as e:
        raise _fail(e) from e
    typer.echo(f"Deleted unit '{key}'; {len(result.deleted_item_ids)} items moved to trash.")


@app.command()
def reset(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Identifier of the item to reset.")],
):
    """Reset an item's progress to the new-item state."""
    config = _config(ctx)
    try:
        StudyService(_repo(config), config).reset_progress(item_id)
    except NucleusError as e:
        raise _fail(e) from e
    typer.echo(f"Progress of {item_id} reset.")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))
