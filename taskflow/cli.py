"""CLI entry point for taskflow."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click

from taskflow import __version__
from taskflow.config.settings import AppConfig, load_config
from taskflow.utils.logging import configure_logging, get_logger
from taskflow.utils.result import Err, ExitCode, InputError, Ok, Result

DEFAULT_CONFIG = "./config"


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, config_dir: Path, config: AppConfig) -> None:
        self.config_dir = config_dir
        self.config = config
        self.logger = get_logger("cli")


pass_context = click.make_pass_decorator(Context)


def output_json(data: Any) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


def read_records(path: Path) -> Result[list[dict[str, Any]], InputError]:
    """
    Read a JSON array or JSON-lines file of objects.

    Args:
        path: File to read

    Returns:
        Result with the records or the first problem found
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        return Err(InputError(path=str(path), message=str(e)))

    stripped = text.strip()
    if not stripped:
        return Ok([])

    if stripped.startswith("["):
        try:
            records = json.loads(stripped)
        except json.JSONDecodeError as e:
            return Err(InputError(path=str(path), message=f"Invalid JSON: {e}"))
        lines = list(enumerate(records, start=1))
    else:
        lines = []
        for number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                lines.append((number, json.loads(line)))
            except json.JSONDecodeError as e:
                return Err(InputError(path=str(path), message=f"Invalid JSON: {e}", line=number))

    for number, record in lines:
        if not isinstance(record, dict):
            return Err(InputError(path=str(path), message="Expected an object", line=number))

    return Ok([record for _, record in lines])


@click.group()
@click.option(
    "--config",
    type=click.Path(exists=False, path_type=Path),
    default=DEFAULT_CONFIG,
    help="Path to config directory",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level (overrides config)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format (overrides config)",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path,
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """
    taskflow - FSM-driven task management core.

    Inspect the taskManagement machine, replay event streams through the
    authoritative and mirror interpreters, and drive the request gateway
    from recorded requests.
    """
    result = load_config(config)
    if result.is_err():
        click.echo(str(result.unwrap_err()), err=True)
        ctx.exit(ExitCode.CONFIG_INVALID)
    app_config = result.unwrap()

    if log_level:
        app_config.logging.level = log_level.lower()
    if log_format:
        app_config.logging.format = log_format.lower()
    configure_logging(level=app_config.logging.level, format_type=app_config.logging.format)

    ctx.obj = Context(config_dir=config, config=app_config)


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format",
)
def describe(output_format: str) -> None:
    """Show states, events and transitions of the machine."""
    from taskflow.fsm import build_task_machine, describe_structure

    structure = describe_structure(build_task_machine())

    if output_format == "json":
        output_json(structure)
        return

    click.echo(f"Machine: {structure['id']} (initial: {structure['initial']})")
    click.echo("=" * 40)
    for name, info in structure["states"].items():
        nested = f" [{', '.join(info['nested'])}]" if info["nested"] else ""
        click.echo(f"{name}{nested}")
        for event_type in info["events"]:
            target = info["targets"].get(event_type)
            click.echo(f"  {event_type} -> {target}" if target else f"  {event_type}")


@cli.command()
@click.argument("events_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--mode",
    type=click.Choice(["replay", "snapshot"], case_sensitive=False),
    default=None,
    help="Mirror sync mode (overrides config)",
)
@click.option(
    "--skip-mirror",
    "skip_mirror",
    type=int,
    multiple=True,
    help="1-based index of an event the mirror never receives (can be repeated)",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit non-zero if the instances diverged",
)
@pass_context
def replay(
    ctx: Context,
    events_file: Path,
    mode: Optional[str],
    skip_mirror: tuple[int, ...],
    strict: bool,
) -> None:
    """Feed an event stream through the authoritative and mirror instances."""
    from taskflow.fsm import Event, ReplicatedMachine, build_task_machine

    records = read_records(events_file)
    if records.is_err():
        click.echo(str(records.unwrap_err()), err=True)
        sys.exit(ExitCode.INPUT_INVALID)

    try:
        events = [Event.from_dict(record) for record in records.unwrap()]
    except ValueError as e:
        click.echo(f"{events_file}: {e}", err=True)
        sys.exit(ExitCode.INPUT_INVALID)

    machine = ReplicatedMachine(
        build_task_machine,
        mode=mode or ctx.config.machine.sync_mode,
    )
    machine.start()

    skipped = set(skip_mirror)
    for index, event in enumerate(events, start=1):
        if index in skipped:
            machine.send_authoritative_only(event)
        else:
            machine.send(event)

    diverged = machine.diverged()
    ctx.logger.info("replay_completed", events=len(events), diverged=diverged)

    output_json({
        "events": len(events),
        "mode": machine.mode.value,
        "diverged": diverged,
        "authoritative": machine.snapshot().to_dict(),
        "mirror": machine.mirror_snapshot().to_dict(),
        "stats": machine.authoritative.stats.to_dict(),
    })
    machine.dispose()

    if strict and diverged:
        sys.exit(ExitCode.MIRROR_DIVERGED)


@cli.command()
@click.argument("requests_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--store",
    "store_path",
    type=click.Path(path_type=Path),
    default=None,
    help="JSON store file (in-memory store if omitted and not configured)",
)
@pass_context
def run(ctx: Context, requests_file: Path, store_path: Optional[Path]) -> None:
    """
    Drive the request gateway from a file of requests.

    Each record is either ``{"type": ..., "data": {...}}`` or
    ``{"refresh": "tasks" | "users"}``.
    """
    from taskflow.app import create_app

    records = read_records(requests_file)
    if records.is_err():
        click.echo(str(records.unwrap_err()), err=True)
        sys.exit(ExitCode.INPUT_INVALID)

    app = create_app(ctx.config, store_path=store_path)
    responses = []
    try:
        for record in records.unwrap():
            if "refresh" in record:
                entity = record["refresh"]
                response = app.gateway.refresh(entity if entity == "users" else None)
                request = f"refresh:{entity}"
            else:
                response = app.gateway.handle(record.get("type", ""), record.get("data"))
                request = record.get("type", "")
            responses.append({"request": request, **response.to_dict()})
    finally:
        app.close()

    output_json(responses)


@cli.command("check-config")
@pass_context
def check_config(ctx: Context) -> None:
    """Validate and print the effective configuration."""
    output_json({"status": "valid", "config": ctx.config.to_dict()})


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
