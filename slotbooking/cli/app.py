"""
Main CLI application using Typer.
"""

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.database import SqlBookingStore
from ..bootstrap import BookingEngine, build_live_engine, build_mock_engine
from ..config import AppConfig, get_default_config_path
from ..domain.business_calendar import BusinessCalendar
from ..domain.models import BookingRequest

app = typer.Typer(
    name="slotbooking",
    help="Offer free half-hour meeting slots and book them",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use in-memory calendar, conference and store."),
]
BusyFileOption = Annotated[
    Optional[Path],
    typer.Option("--busy-file", help="JSON list of busy events for mock mode."),
]
DateOption = Annotated[
    Optional[str],
    typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to today."),
]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """
    Load the config file; a missing default file falls back to defaults.
    An explicitly given file must exist.
    """
    if config_file is not None:
        config = AppConfig.load_from_yaml(config_file)
    else:
        config_path = get_default_config_path()
        if config_path.exists():
            config = AppConfig.load_from_yaml(config_path)
        else:
            config = AppConfig()

    _configure_logging(config.log_level)
    return config


def _build_engine(config: AppConfig, mock: bool, busy_file: Optional[Path]) -> BookingEngine:
    if mock:
        console.print("[yellow]⚠  Mock mode: using in-memory collaborators[/yellow]\n")
        return build_mock_engine(config, busy_file=busy_file)
    return build_live_engine(config)


def _parse_date(value: Optional[str], tz: str) -> date:
    if not value:
        return pendulum.now(tz).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _slots_table(title: str, slots, tz: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Slot", style="bold")
    table.add_column("UTC", style="dim")
    table.add_column("Available")

    for slot in slots:
        table.add_row(
            slot.format_display(tz),
            slot.start.in_timezone("UTC").format("HH:mm"),
            "[green]✓[/green]" if slot.available else "[red]✗ busy[/red]",
        )
    return table


async def _book(engine: BookingEngine, request: BookingRequest):
    try:
        return await engine.orchestrator.create_booking(request)
    finally:
        await engine.orchestrator.wait_for_cleanup()


@app.command()
def slots(
    day: DateOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    busy_file: BusyFileOption = None,
):
    """
    Show the bookable slots of a date.

    Examples:

        slotbooking slots --date 2025-12-15

        slotbooking slots --mock --busy-file busy.json
    """
    try:
        config = _load_config(config_file)
        tz = config.business.timezone
        target = _parse_date(day, tz)
        engine = _build_engine(config, mock, busy_file)

        found = asyncio.run(engine.availability.get_slots(target))

        if not found:
            holiday = engine.calendar.holiday_name(target)
            reason = f" ({holiday})" if holiday else ""
            console.print(f"[yellow]⚠ No slots on {target.isoformat()}{reason}.[/yellow]")
            return

        console.print()
        console.print(_slots_table(f"Slots on {target.isoformat()} ({tz})", found, tz))
        free = sum(1 for slot in found if slot.available)
        console.print(f"\n[bold green]{free}[/bold green] of {len(found)} slot(s) available\n")

    except typer.Exit:
        raise

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def next_day(
    day: DateOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    busy_file: BusyFileOption = None,
    max_days: Annotated[int, typer.Option("--max-days", help="Business days to search.")] = 30,
):
    """
    Find the next business day with at least one free slot.
    """
    try:
        config = _load_config(config_file)
        tz = config.business.timezone
        engine = _build_engine(config, mock, busy_file)

        result = asyncio.run(
            engine.availability.next_available_day(_parse_date(day, tz), max_days=max_days)
        )

        if result is None:
            console.print(f"[yellow]⚠ Nothing free within {max_days} business days.[/yellow]")
            raise typer.Exit(1)

        found_day, found = result
        console.print()
        console.print(_slots_table(f"Next availability: {found_day.isoformat()}", found, tz))
        console.print()

    except typer.Exit:
        raise

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    email: Annotated[str, typer.Argument(help="Attendee email address")],
    when: Annotated[str, typer.Argument(help="Meeting start, ISO 8601 (local time if no offset)")],
    phone: Annotated[Optional[str], typer.Option("--phone", help="Attendee phone number")] = None,
    consent: Annotated[
        Optional[bool],
        typer.Option("--consent/--no-consent", help="Whether the attendee agrees to recording."),
    ] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    busy_file: BusyFileOption = None,
):
    """
    Book a meeting slot.

    Examples:

        slotbooking book visitor@example.com 2025-12-15T10:00 --consent

        slotbooking book visitor@example.com 2025-12-15T10:00 --no-consent --mock
    """
    try:
        config = _load_config(config_file)
        engine = _build_engine(config, mock, busy_file)

        request = BookingRequest(
            attendee_email=email,
            attendee_phone=phone,
            meeting_datetime=when,
            recording_consent=consent,
        )
        result = asyncio.run(_book(engine, request))

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not result.success:
        details = "".join(f"\n  • {message}" for message in result.errors)
        console.print(f"[bold red]✗ {result.error}[/bold red]{details}")
        raise typer.Exit(1)

    booking = result.booking
    tz = config.business.timezone
    lines = [
        "[bold green]✓ Meeting scheduled![/bold green]\n",
        f"[bold]Booking:[/bold] #{booking.id}",
        f"[bold]When:[/bold] {booking.meeting_datetime.in_timezone(tz).format('dddd, MMMM D YYYY, hh:mm A')} {tz}",
        f"[bold]Attendee:[/bold] {booking.attendee_email}",
    ]
    if booking.conference_ref is not None:
        lines.append(f"[bold]Join URL:[/bold] {booking.conference_ref.join_url}")
    if booking.calendar_event_ref is not None:
        lines.append(f"[bold]Calendar event:[/bold] {booking.calendar_event_ref}")
    for degraded in result.degradations:
        lines.append(f"[yellow]⚠ {degraded.service} {degraded.step}: {degraded.reason}[/yellow]")

    console.print(Panel.fit("\n".join(lines), title="Booking"))


@app.command()
def holidays(
    year: Annotated[Optional[int], typer.Argument(help="Year. Defaults to the current year.")] = None,
    config_file: ConfigOption = None,
):
    """
    List the public holidays on which no slots are offered.
    """
    try:
        config = _load_config(config_file)
        business = config.business
        calendar = BusinessCalendar(
            country=business.holiday_country,
            subdivision=business.holiday_subdivision,
        )
        target_year = year or pendulum.now(business.timezone).year

        table = Table(
            title=f"Holidays {target_year} ({business.holiday_country})",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Date", style="bold yellow")
        table.add_column("Holiday")

        for holiday in calendar.holidays_for_year(target_year):
            table.add_row(holiday.date.strftime("%a %Y-%m-%d"), holiday.name)

        console.print()
        console.print(table)
        console.print()

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def init_db(
    config_file: ConfigOption = None,
):
    """
    Create the bookings table and indexes.
    """
    try:
        config = _load_config(config_file)
        store = SqlBookingStore.from_url(config.database.url, echo=config.database.echo)
        store.create_schema()
        console.print(f"\n[green]✓ Schema ready at {config.database.url}[/green]\n")

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbooking[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
