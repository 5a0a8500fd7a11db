"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import pendulum
import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.json_store import JsonMeetingRepository, JsonParticipantRepository, JsonStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError
from ..domain.models import Weekday, format_time
from ..domain.template import MeetingTemplate
from ..services.booking_service import BookingService

app = typer.Typer(
    name="slotbooker",
    help="Publish weekly availability and book meeting slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
ActorOption = Annotated[
    Optional[str],
    typer.Option("--as", help="Acting creator id. Defaults to creator_id from the config."),
]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path]) -> tuple[AppConfig, BookingService]:
    """Load the config and wire a service over the JSON store."""
    try:
        config = AppConfig.load_from_yaml(config_file or get_default_config_path())
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    _configure_logging(config.log_level)

    store = JsonStore(config.data_file)
    service = BookingService(
        meetings=JsonMeetingRepository(store),
        participants=JsonParticipantRepository(store),
        timezone=config.timezone,
    )
    return config, service


def _actor(config: AppConfig, actor: Optional[str]) -> str:
    actor_id = actor or config.creator_id
    if not actor_id:
        console.print("[bold red]Error:[/bold red] No creator given. Use --as or set creator_id in the config.")
        raise typer.Exit(1)
    return actor_id


def _run(coro):
    """Run a service coroutine, rendering business errors for the user."""
    try:
        return asyncio.run(coro)
    except BookingError as e:
        console.print(f"[bold red]Error ({e.code}):[/bold red] {e.message}")
        raise typer.Exit(1)


def _read_payload(path: Path, config: AppConfig) -> Dict[str, Any]:
    """Read a template payload from YAML, filling in configured defaults."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error:[/bold red] Cannot read {path}: {e}")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        console.print("[bold red]Error:[/bold red] Template file must contain a mapping at the root level.")
        raise typer.Exit(1)

    if "duration" not in data and "duration_minutes" not in data:
        data["duration_minutes"] = config.defaults.duration_minutes
    if "type" not in data and "kind" not in data:
        data["kind"] = config.defaults.kind.value

    return data


def _render_template(template: MeetingTemplate) -> None:
    lines = [
        f"[bold]Share token:[/bold] {template.share_token}",
        f"[bold]Duration:[/bold] {template.duration_minutes} min ({template.kind.value})",
        f"[bold]Status:[/bold] {template.status.value}",
        "",
    ]
    for weekday in Weekday:
        day = template.availability.day(weekday)
        if day.enabled:
            windows = ", ".join(str(interval) for interval in day.intervals) or "no intervals"
            lines.append(f"  {weekday.label.capitalize():<10} {windows}")
        else:
            lines.append(f"  [dim]{weekday.label.capitalize():<10} closed[/dim]")

    console.print(Panel.fit("\n".join(lines), title=template.title))

    if len(template.ledger):
        table = Table(title="Booked slots", show_header=True, header_style="bold cyan")
        table.add_column("Slot ID", style="dim")
        table.add_column("Date")
        table.add_column("Time")
        table.add_column("Participant", style="dim")
        table.add_column("Status", style="bold")
        for slot in template.ledger:
            table.add_row(slot.id, slot.date.isoformat(), format_time(slot.time), slot.participant_id, slot.status.value)
        console.print(table)


@app.command()
def create(
    template_file: Annotated[Path, typer.Argument(help="YAML file with title, duration, type and availability")],
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Create a meeting template from a YAML file.
    """
    config, service = _load(config_file)
    payload = _read_payload(template_file, config)
    template = _run(service.create_template(_actor(config, actor), payload))

    console.print(f"\n[green]✓ Meeting created:[/green] {template.title}")
    console.print(f"  Share token: [bold]{template.share_token}[/bold]\n")


@app.command()
def update(
    meeting_id: Annotated[str, typer.Argument(help="Meeting id")],
    template_file: Annotated[Path, typer.Argument(help="YAML file with the full new schedule")],
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Replace a template's schedule and core fields.
    """
    config, service = _load(config_file)
    payload = _read_payload(template_file, config)
    template = _run(service.update_template(_actor(config, actor), meeting_id, payload))
    console.print(f"\n[green]✓ Meeting updated:[/green] {template.title}\n")


@app.command()
def delete(
    meeting_id: Annotated[str, typer.Argument(help="Meeting id")],
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Soft-delete a meeting template.
    """
    config, service = _load(config_file)
    _run(service.delete_template(_actor(config, actor), meeting_id))
    console.print("\n[green]✓ Meeting deleted.[/green]\n")


@app.command("template-status")
def template_status(
    meeting_id: Annotated[str, typer.Argument(help="Meeting id")],
    status: Annotated[str, typer.Argument(help="active or inactive")],
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Activate or deactivate a meeting template.
    """
    config, service = _load(config_file)
    template = _run(service.set_template_status(_actor(config, actor), meeting_id, status))
    console.print(f"\n[green]✓ Meeting is now {template.status.value}.[/green]\n")


@app.command("list")
def list_templates(
    config_file: ConfigOption = None,
    actor: ActorOption = None,
    all_templates: Annotated[bool, typer.Option("--all", help="Include deleted templates")] = False,
):
    """
    List the creator's meeting templates.
    """
    config, service = _load(config_file)
    templates = _run(service.list_templates(_actor(config, actor), include_deleted=all_templates))

    if not templates:
        console.print("[yellow]No meetings found.[/yellow]")
        return

    table = Table(title="Meetings", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold yellow")
    table.add_column("Duration")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Bookings", justify="right")

    for template in templates:
        table.add_row(
            template.id,
            template.title,
            f"{template.duration_minutes} min",
            template.kind.value,
            template.status.value,
            str(len(template.ledger.active_slots())),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def show(
    meeting_ref: Annotated[str, typer.Argument(help="Meeting id or share token")],
    config_file: ConfigOption = None,
):
    """
    Show a template's weekly availability and its bookings.
    """
    _, service = _load(config_file)
    template = _run(service.get_template(meeting_ref))
    console.print()
    _render_template(template)
    console.print()


@app.command()
def slots(
    meeting_ref: Annotated[str, typer.Argument(help="Meeting id or share token")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
):
    """
    List the slots that can still be booked on a day.
    """
    config, service = _load(config_file)
    day = date or pendulum.now(config.timezone).format("YYYY-MM-DD")
    open_slots = _run(service.available_slots(meeting_ref, day))

    if not open_slots:
        console.print(f"[yellow]⚠ No open slots on {day}.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(open_slots)} open slot(s) on {day}:[/bold green]\n")
    for slot_time in open_slots:
        console.print(f"  {format_time(slot_time)}")
    console.print()


@app.command("participant-add")
def participant_add(
    name: Annotated[str, typer.Argument(help="Full name")],
    email: Annotated[str, typer.Argument(help="Email address")],
    phone: Annotated[Optional[str], typer.Option("--phone", help="Phone number")] = None,
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Register a participant (or refresh an existing one with the same email).
    """
    config, service = _load(config_file)
    participant = _run(service.register_participant(
        {"full_name": name, "email": email, "phone": phone},
        creator_id=_actor(config, actor),
    ))
    console.print(f"\n[green]✓ Participant:[/green] {participant.full_name} ({participant.id})\n")


@app.command("participant-update")
def participant_update(
    participant_id: Annotated[str, typer.Argument(help="Participant id")],
    name: Annotated[Optional[str], typer.Option("--name", help="New full name")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="New email address")] = None,
    phone: Annotated[Optional[str], typer.Option("--phone", help="New phone number")] = None,
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Correct a participant's name, email or phone. Omitted fields are kept.
    """
    config, service = _load(config_file)
    participant = _run(service.update_participant(
        _actor(config, actor),
        participant_id,
        {"full_name": name, "email": email, "phone": phone},
    ))
    console.print(f"\n[green]✓ Participant updated:[/green] {participant.full_name} <{participant.email}>\n")


@app.command()
def participants(
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    List participants of the creator's meetings.
    """
    config, service = _load(config_file)
    found = _run(service.list_participants(_actor(config, actor)))

    if not found:
        console.print("[yellow]No participants found.[/yellow]")
        return

    table = Table(title="Participants", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("E-Mail", style="dim")
    table.add_column("Meetings", justify="right")
    table.add_column("Last meeting")

    for participant in found:
        last = participant.last_meeting.strftime("%Y-%m-%d %H:%M") if participant.last_meeting else "-"
        table.add_row(participant.id, participant.full_name, participant.email, str(len(participant.meeting_ids)), last)

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    meeting_ref: Annotated[str, typer.Argument(help="Meeting id or share token")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    participant: Annotated[Optional[str], typer.Option("--participant", "-p", help="Existing participant id")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Attendee name (registers the attendee)")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Attendee email (registers the attendee)")] = None,
    config_file: ConfigOption = None,
):
    """
    Book a slot for a participant.

    Examples:

        slotbooker book <meeting> 2024-11-25 10:30 --participant <id>
        slotbooker book <meeting> 2024-11-25 10:30 --name "Dana" --email dana@example.com
    """
    _, service = _load(config_file)

    if participant:
        slot = _run(service.book(meeting_ref, date, time, participant))
    elif name and email:
        _, slot = _run(service.book_as_attendee(meeting_ref, date, time, {"full_name": name, "email": email}))
    else:
        console.print("[bold red]Error:[/bold red] Pass --participant or both --name and --email.")
        raise typer.Exit(1)

    console.print(f"\n[green]✓ Booked:[/green] {slot.format_display()}")
    console.print(f"  Slot ID: [dim]{slot.id}[/dim]\n")


@app.command("set-status")
def set_status(
    meeting_id: Annotated[str, typer.Argument(help="Meeting id")],
    slot_id: Annotated[str, typer.Argument(help="Slot id")],
    status: Annotated[str, typer.Argument(help="completed, missed or deleted")],
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Change the status of a booked slot.
    """
    config, service = _load(config_file)
    slot = _run(service.change_slot_status(_actor(config, actor), meeting_id, slot_id, status))
    console.print(f"\n[green]✓ Slot updated:[/green] {slot.format_display()}\n")


@app.command()
def reschedule(
    meeting_id: Annotated[str, typer.Argument(help="Meeting id")],
    slot_id: Annotated[str, typer.Argument(help="Slot id")],
    date: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="New start time (HH:MM)")],
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Move a pending slot to another date and time.
    """
    config, service = _load(config_file)
    slot = _run(service.reschedule_slot(_actor(config, actor), meeting_id, slot_id, date, time))
    console.print(f"\n[green]✓ Slot moved:[/green] {slot.format_display()}\n")


@app.command("remove-slot")
def remove_slot(
    meeting_id: Annotated[str, typer.Argument(help="Meeting id")],
    slot_id: Annotated[str, typer.Argument(help="Slot id")],
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    Permanently remove a booked slot.
    """
    config, service = _load(config_file)
    _run(service.delete_slot(_actor(config, actor), meeting_id, slot_id))
    console.print("\n[green]✓ Slot removed.[/green]\n")


@app.command()
def review(
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    List past slots still pending a completed/missed decision.
    """
    config, service = _load(config_file)
    due = _run(service.slots_due_for_review(_actor(config, actor)))

    if not due:
        console.print("[green]✓ Nothing to review.[/green]")
        return

    for template, slot in due:
        console.print(f"  [bold]{template.title}[/bold]  {slot.format_display()}  [dim]{slot.id}[/dim]")


@app.command()
def upcoming(
    config_file: ConfigOption = None,
    actor: ActorOption = None,
):
    """
    List upcoming bookings across the creator's active meetings.
    """
    config, service = _load(config_file)
    found = _run(service.upcoming_bookings(_actor(config, actor)))

    if not found:
        console.print("[yellow]No upcoming bookings.[/yellow]")
        return

    table = Table(title="Upcoming bookings", show_header=True, header_style="bold cyan")
    table.add_column("Meeting", style="bold yellow")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Participant", style="dim")

    for template, slot in found:
        table.add_row(template.title, slot.date.isoformat(), format_time(slot.time), slot.participant_id)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
