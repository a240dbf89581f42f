"""
CLI entry point for the time capsule store.

This module provides the Typer-based command-line interface. Every
command opens a CapsuleEngine, runs exactly one operation, and prints
the result.

Commands:
    create            Seal a new capsule
    retrieve          Reveal a capsule whose date has passed
    peek              Show a capsule's reveal state without revealing it
    update            Overwrite a capsule you own
    events            Show the lifecycle events recorded for a capsule
    community create  Create a community capsule from a YAML/JSON file
    doctor            Check environment and configuration

Caller identity comes from --as (or TIMECAPSULE_CALLER); --now pins
the clock, which is useful for scripting reveals.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from timecapsule import __version__
from timecapsule.engine import CapsuleEngine, OperationResult
from timecapsule.providers import ManualClock, StaticIdentity, SystemClock
from timecapsule.schema import (
    CapsuleSnapshot,
    CommunityTimeCapsule,
    EngineConfig,
    TimeCapsule,
    TimeCapsulePayload,
    load_community_payload,
    load_config,
)

app = typer.Typer(
    name="timecapsule",
    help="Seal messages that can only be revealed after a future date.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DbOption = Annotated[
    Optional[Path],
    typer.Option(
        "--db",
        help="Path to the SQLite database. Defaults to the configured db_path.",
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to an engine configuration YAML file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
CallerOption = Annotated[
    str,
    typer.Option(
        "--as",
        help="Identity of the caller.",
        envvar="TIMECAPSULE_CALLER",
    ),
]
NowOption = Annotated[
    Optional[str],
    typer.Option(
        "--now",
        help="Pin the clock to this ISO-8601 timestamp.",
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output results in JSON format.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]timecapsule[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Log engine activity to stderr.",
        ),
    ] = False,
) -> None:
    """
    Time capsule store.

    Seal a message until a future date, reveal it exactly once, and keep
    an audit trail of every lifecycle event.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# =============================================================================
# Helpers
# =============================================================================


def _parse_timestamp(value: str, option: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"not an ISO-8601 timestamp: {value}", param_hint=option) from e


def _open_engine(
    db: Optional[Path],
    config_path: Optional[Path],
    caller: str,
    now: Optional[str],
) -> CapsuleEngine:
    """Build an engine from the common command options."""
    try:
        config = load_config(config_path) if config_path else EngineConfig()
    except (ValidationError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading config: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    try:
        identity = StaticIdentity(caller)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    clock = ManualClock(_parse_timestamp(now, "--now")) if now else SystemClock()
    return CapsuleEngine(
        identity=identity,
        config=config,
        db_path=db,
        clock=clock,
    )


def _emit(result: OperationResult, json_output: bool) -> None:
    """Print a result and exit with 0 on success, 1 on failure."""
    if json_output:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    elif result.error is not None:
        console.print(f"[red]✗ {escape(result.error.message)}[/red]")
        if result.error.suggestion:
            console.print(f"[dim]Suggestion: {escape(result.error.suggestion)}[/dim]")
    else:
        _display_record(result.value)

    raise typer.Exit(code=0 if result.ok else 1)


def _display_record(
    record: TimeCapsule | CommunityTimeCapsule | CapsuleSnapshot,
) -> None:
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    for name, value in record.model_dump(exclude={"member_media", "members"}).items():
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        table.add_row(name, escape(str(value)))

    if isinstance(record, CommunityTimeCapsule):
        for index, entry in enumerate(record.entries):
            media = entry.media.model_dump(exclude_none=True) if entry.media else {}
            table.add_row(f"member[{index}]", escape(f"{entry.member or '-'} {media}"))
        if not record.is_aligned:
            table.add_row("warning", "[yellow]members and media differ in length[/yellow]")

    console.print(table)


# =============================================================================
# Individual Capsule Commands
# =============================================================================


@app.command()
def create(
    message: Annotated[
        str,
        typer.Option("--message", "-m", help="Message to seal."),
    ],
    reveal_at: Annotated[
        str,
        typer.Option("--reveal-at", help="ISO-8601 reveal timestamp (UTC if no offset)."),
    ],
    image_url: Annotated[
        Optional[str],
        typer.Option("--image-url", help="Optional image URL."),
    ] = None,
    video_url: Annotated[
        Optional[str],
        typer.Option("--video-url", help="Optional video URL."),
    ] = None,
    caller: CallerOption = "anonymous",
    db: DbOption = None,
    config: ConfigOption = None,
    now: NowOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Seal a new capsule.

    Example:
        $ timecapsule create -m "hello" --reveal-at 2030-01-01T00:00:00 --as alice
    """
    payload = TimeCapsulePayload(
        message=message,
        reveal_date=_parse_timestamp(reveal_at, "--reveal-at"),
        image_url=image_url,
        video_url=video_url,
    )
    with _open_engine(db, config, caller, now) as engine:
        result = engine.create_time_capsule(payload)
    _emit(result, json_output)


@app.command()
def retrieve(
    capsule_id: Annotated[str, typer.Argument(help="The capsule ID to reveal.")],
    caller: CallerOption = "anonymous",
    db: DbOption = None,
    config: ConfigOption = None,
    now: NowOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Reveal a capsule whose date has passed.

    A capsule can be revealed exactly once; later attempts fail.

    Example:
        $ timecapsule retrieve 3f1c... --db capsules.db
    """
    with _open_engine(db, config, caller, now) as engine:
        result = engine.retrieve_time_capsule(capsule_id)
    _emit(result, json_output)


@app.command()
def peek(
    capsule_id: Annotated[str, typer.Argument(help="The capsule ID to inspect.")],
    caller: CallerOption = "anonymous",
    db: DbOption = None,
    config: ConfigOption = None,
    now: NowOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show a capsule's reveal state without revealing it."""
    with _open_engine(db, config, caller, now) as engine:
        result = engine.peek_time_capsule(capsule_id)
    _emit(result, json_output)


@app.command()
def update(
    capsule_id: Annotated[str, typer.Argument(help="The capsule ID to update.")],
    message: Annotated[
        str,
        typer.Option("--message", "-m", help="New message."),
    ],
    reveal_at: Annotated[
        str,
        typer.Option("--reveal-at", help="New ISO-8601 reveal timestamp."),
    ],
    image_url: Annotated[
        Optional[str],
        typer.Option("--image-url", help="New image URL (omit to clear)."),
    ] = None,
    video_url: Annotated[
        Optional[str],
        typer.Option("--video-url", help="New video URL (omit to clear)."),
    ] = None,
    caller: CallerOption = "anonymous",
    db: DbOption = None,
    config: ConfigOption = None,
    now: NowOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Overwrite a capsule you own.

    Every payload field is replaced as given; id, owner and reveal state
    are kept.
    """
    payload = TimeCapsulePayload(
        message=message,
        reveal_date=_parse_timestamp(reveal_at, "--reveal-at"),
        image_url=image_url,
        video_url=video_url,
    )
    with _open_engine(db, config, caller, now) as engine:
        result = engine.update_time_capsule(capsule_id, payload)
    _emit(result, json_output)


@app.command()
def events(
    capsule_id: Annotated[str, typer.Argument(help="The capsule ID.")],
    db: DbOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the lifecycle events recorded for a capsule."""
    with _open_engine(db, config, "anonymous", None) as engine:
        recorded = engine.db.get_events(capsule_id)

    if json_output:
        print(json.dumps([e.model_dump(mode="json") for e in recorded], indent=2))
        raise typer.Exit(code=0)

    if not recorded:
        console.print("[dim]No events found.[/dim]")
        raise typer.Exit(code=0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Recorded")
    table.add_column("Event", style="cyan")
    table.add_column("Caller")
    table.add_column("Reveal date")
    for event in recorded:
        table.add_row(
            event.recorded_at.isoformat()[:19],
            event.kind.value,
            event.caller,
            event.reveal_date.isoformat()[:19],
        )
    console.print(table)


# =============================================================================
# Community Subcommand Group
# =============================================================================

community_app = typer.Typer(
    name="community",
    help="Manage community capsules.",
    no_args_is_help=True,
)
app.add_typer(community_app, name="community")


@community_app.command("create")
def community_create(
    payload_path: Annotated[
        Path,
        typer.Argument(
            help="YAML or JSON file with reveal_date, members and media.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    caller: CallerOption = "anonymous",
    db: DbOption = None,
    config: ConfigOption = None,
    now: NowOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Create a community capsule.

    Example payload:
        reveal_date: 2030-01-01T00:00:00Z
        members: [alice, bob]
        media:
          - {message: "hi", photo_url: "https://example.com/a.jpg"}
          - {video_url: "https://example.com/b.mp4"}
    """
    try:
        payload = load_community_payload(payload_path)
    except (ValidationError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading community payload: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    with _open_engine(db, config, caller, now) as engine:
        result = engine.create_community_time_capsule(payload)
    _emit(result, json_output)


# =============================================================================
# Doctor
# =============================================================================


@app.command()
def doctor(
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Check environment and configuration.

    Verifies:
    - Python version (3.11+)
    - Configuration file validity
    - Database accessibility
    """
    checks = []

    py_version = sys.version_info
    py_ok = py_version >= (3, 11)
    checks.append({
        "name": "Python version",
        "ok": py_ok,
        "value": f"{py_version.major}.{py_version.minor}.{py_version.micro}",
        "message": "OK" if py_ok else "Requires Python 3.11+",
    })

    engine_config = EngineConfig()
    config_ok = True
    config_message = "Using defaults"
    if config:
        try:
            engine_config = load_config(config)
            config_message = "Valid"
        except ValidationError as e:
            config_ok = False
            config_message = f"Invalid: {e.error_count()} error(s)"
        except yaml.YAMLError:
            config_ok = False
            config_message = "Invalid: not parseable as YAML"
    checks.append({
        "name": "Configuration",
        "ok": config_ok,
        "value": str(config) if config else "-",
        "message": config_message,
    })

    db_path = engine_config.db_path
    if db_path.exists():
        db_ok = True
        db_message = f"Exists ({db_path.stat().st_size} bytes)"
    else:
        parent = db_path.parent.resolve()
        db_ok = parent.exists() and parent.is_dir()
        db_message = (
            "Not found (will be created on first use)"
            if db_ok
            else f"Parent directory missing: {parent}"
        )
    checks.append({
        "name": "Database",
        "ok": db_ok,
        "value": str(db_path),
        "message": db_message,
    })

    all_ok = all(check["ok"] for check in checks)

    if json_output:
        print(json.dumps({"ok": all_ok, "version": __version__, "checks": checks}, indent=2))
    else:
        console.print(f"[bold]Time Capsule Doctor[/bold] v{__version__}")
        console.print()
        for check in checks:
            icon = "[green]✓[/green]" if check["ok"] else "[red]✗[/red]"
            console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim] - {check['message']}")

    raise typer.Exit(code=0 if all_ok else 1)
