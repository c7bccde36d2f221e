"""
Main CLI application using Typer.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.console_notifier import ConsoleNotifier
from ..adapters.memory_store import MemoryStore
from ..adapters.onesignal_notifier import OneSignalNotifier
from ..adapters.supabase_auth import SupabaseAuthenticator
from ..adapters.supabase_store import SupabaseStore
from ..config import AppConfig, load_config
from ..domain.booking import google_calendar_link
from ..domain.exceptions import (
    AuthenticationError,
    BeautyBookError,
    ConfigurationError,
    SubmissionError,
    ValidationError,
)
from ..domain.insights import appointments_by_date, client_roster, dashboard_stats
from ..domain.models import CandidateSlot, Professional, TimeRange, WeeklyAvailability
from ..domain.slot_calculator import SlotCalculator
from ..services.booking_service import BookingService

app = typer.Typer(
    name="beautybook",
    help="Agendamento online para profissionais de beleza",
    add_completion=False
)

console = Console()

WEEKDAY_NAMES = ["Domingo", "Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado"]


@dataclass
class CliState:
    config_file: Optional[Path] = None
    mock: bool = False
    user: Optional[str] = None
    _config: Optional[AppConfig] = None
    _mock_store: Optional[MemoryStore] = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = load_config(self.config_file)
        return self._config

    def authenticator(self) -> SupabaseAuthenticator:
        return SupabaseAuthenticator(
            self.config.require_backend(),
            cache_file=self.config.token_cache_file,
        )

    def store(self, authenticated: bool = False):
        if self.mock:
            if self._mock_store is None:
                self._mock_store = MemoryStore.from_json(self.config.mock_data, timezone=self.config.timezone)
            return self._mock_store

        backend = self.config.require_backend()
        token = self.authenticator().get_access_token() if authenticated else None
        return SupabaseStore(backend, timezone=self.config.timezone, access_token=token)

    def service(self, authenticated: bool = False) -> BookingService:
        config = self.config
        return BookingService(
            store=self.store(authenticated),
            slot_calculator=SlotCalculator(
                timezone=config.timezone,
                default_interval_minutes=config.defaults.slot_interval_minutes,
            ),
            notifier=self.notifier(),
            phone_prefix=config.defaults.phone_prefix,
        )

    def notifier(self):
        """Push to the signed-in user when OneSignal is set up, else print locally."""
        if self.mock or not self.config.onesignal.is_configured():
            return ConsoleNotifier(console)
        user_id = self.authenticator().current_user_id()
        if not user_id:
            return ConsoleNotifier(console)
        return OneSignalNotifier(self.config.onesignal, external_user_ids=[user_id])

    def current_user_id(self) -> str:
        if self.mock:
            if not self.user:
                raise AuthenticationError("No modo mock informe o usuário com --user (ex.: auth-user-1).")
            return self.user
        user_id = self.authenticator().current_user_id()
        if not user_id:
            raise AuthenticationError("Nenhuma sessão ativa. Execute 'beautybook login' primeiro.")
        return user_id


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _fail(message: str) -> None:
    console.print(f"[bold red]Erro:[/bold red] {message}")
    raise typer.Exit(1)


def _parse_date(value: Optional[str], tz: str):
    if not value:
        return pendulum.today(tz).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        _fail(f"Data inválida '{value}': {e}")


def _parse_range(value: str) -> TimeRange:
    """Parse '9-12', '09:30-18' or '13:00-18:30' into a TimeRange."""
    def hours(part: str) -> float:
        part = part.strip()
        if ":" in part:
            hour, minute = part.split(":", 1)
            return int(hour) + int(minute) / 60
        return float(part)

    try:
        start, end = value.split("-", 1)
        return TimeRange(start=hours(start), end=hours(end))
    except ValueError as e:
        raise typer.BadParameter(f"Intervalo inválido '{value}': {e}")


async def _load_professional(service: BookingService, state: CliState) -> Professional:
    return await service.professional_for_user(state.current_user_id())


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Usar dados de exemplo em memória em vez do Supabase.")] = False,
    user: Annotated[Optional[str], typer.Option("--user", help="Id do usuário profissional no modo mock.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Mostrar logs de diagnóstico.")] = False,
):
    """
    Agendamento online para profissionais de beleza.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.obj = CliState(config_file=config_file, mock=mock, user=user)


@app.command()
def professionals(ctx: typer.Context):
    """
    List all professionals.
    """
    state = _state(ctx)
    try:
        items = asyncio.run(state.store().list_professionals())
    except (BeautyBookError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    if not items:
        console.print("[yellow]Nenhum profissional cadastrado.[/yellow]")
        return

    table = Table(title="Profissionais", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Nome")
    table.add_column("Especialidade", style="dim")
    table.add_column("Dias", style="dim")

    for professional in items:
        days = ", ".join(WEEKDAY_NAMES[d][:3] for d in professional.availability.open_weekdays())
        table.add_row(str(professional.id), professional.name, professional.specialty, days or "-")

    console.print()
    console.print(table)
    console.print()


@app.command()
def services(
    ctx: typer.Context,
    professional_id: Annotated[int, typer.Argument(help="ID do profissional")],
):
    """
    List the services a professional offers.
    """
    state = _state(ctx)
    try:
        service = state.service()
        professional = asyncio.run(service.get_professional(professional_id))
        offered = asyncio.run(service.services_for(professional))
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    if not offered:
        console.print("[yellow]Nenhum serviço disponível no momento.[/yellow]")
        return

    table = Table(title=f"Serviços de {professional.name}", header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Serviço")
    table.add_column("Duração")
    table.add_column("Preço", justify="right")
    for item in offered:
        table.add_row(str(item.id), item.name, f"{item.duration_minutes} min", f"R$ {item.price:.2f}")

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    ctx: typer.Context,
    professional_id: Annotated[int, typer.Argument(help="ID do profissional")],
    service_id: Annotated[int, typer.Argument(help="ID do serviço")],
    day: Annotated[Optional[str], typer.Option("--date", "-d", help="Data (YYYY-MM-DD). Padrão: hoje")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Mostrar também horários ocupados.")] = False,
):
    """
    Show bookable times for one date.

    Examples:

        beautybook --mock slots 1 1 --date 2026-10-20
    """
    state = _state(ctx)
    try:
        tz = state.config.timezone
        target = _parse_date(day, tz)
        result = asyncio.run(
            state.service().find_slots(professional_id=professional_id, service_id=service_id, day=target)
        )
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    console.print(f"\n[bold cyan]🗓️  Horários em {target.format('DD/MM/YYYY')}[/bold cyan]\n")

    if not any(slot.is_available for slot in result):
        console.print("[yellow]⚠ Nenhum horário disponível para este dia. Tente outra data.[/yellow]\n")
        return

    for slot in result:
        if slot.is_available:
            console.print(f"  [green]{slot.format_display()}[/green]")
        elif show_all:
            console.print(f"  [dim strike]{slot.format_display()}[/dim strike]")
    console.print()


@app.command()
def month(
    ctx: typer.Context,
    professional_id: Annotated[int, typer.Argument(help="ID do profissional")],
    service_id: Annotated[int, typer.Argument(help="ID do serviço")],
    month_option: Annotated[Optional[str], typer.Option("--month", "-m", help="Mês (YYYY-MM). Padrão: mês atual")] = None,
):
    """
    Show a month calendar marking days with free times.
    """
    state = _state(ctx)
    try:
        tz = state.config.timezone
        if month_option:
            first = pendulum.from_format(month_option, "YYYY-MM", tz=tz).date()
        else:
            first = pendulum.today(tz).date().start_of("month")
        flags = asyncio.run(
            state.service().month_availability(
                professional_id=professional_id,
                service_id=service_id,
                year=first.year,
                month=first.month,
            )
        )
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    table = Table(title=first.format("MMMM YYYY", locale="pt_br").capitalize(), show_lines=True)
    for name in WEEKDAY_NAMES:
        table.add_column(name[:3], justify="center")

    week: List[str] = [""] * WeeklyAvailability.weekday_of(first)
    for current, available in flags.items():
        week.append(f"[bold green]{current.day}●[/bold green]" if available else f"[dim]{current.day}[/dim]")
        if len(week) == 7:
            table.add_row(*week)
            week = []
    if week:
        table.add_row(*(week + [""] * (7 - len(week))))

    console.print()
    console.print(table)
    console.print("[green]●[/green] dia com horário livre\n")


@app.command()
def book(
    ctx: typer.Context,
    professional_id: Annotated[int, typer.Argument(help="ID do profissional")],
    service_id: Annotated[int, typer.Argument(help="ID do serviço")],
    time: Annotated[str, typer.Argument(help="Horário (HH:MM)")],
    day: Annotated[Optional[str], typer.Option("--date", "-d", help="Data (YYYY-MM-DD). Padrão: hoje")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Nome do cliente")] = None,
    contact: Annotated[Optional[str], typer.Option("--contact", help="WhatsApp do cliente (+55...)")] = None,
):
    """
    Book an appointment at a free time.
    """
    state = _state(ctx)
    try:
        tz = state.config.timezone
        target = _parse_date(day, tz)
        service = state.service()
        professional = asyncio.run(service.get_professional(professional_id))
        chosen_service = asyncio.run(service.service_for(professional, service_id))
        available = asyncio.run(
            service.find_slots(professional_id=professional_id, service_id=service_id, day=target)
        )
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    slot: Optional[CandidateSlot] = next(
        (s for s in available if s.is_available and s.format_display() == time), None
    )
    if slot is None:
        _fail(f"O horário {time} não está disponível em {target.format('DD/MM/YYYY')}.")

    console.print(Panel.fit(
        f"Você está agendando [bold]{chosen_service.name}[/bold] com [bold]{professional.name}[/bold].\n"
        f"[bold]Data e Hora:[/bold] {slot.time.format('DD/MM/YYYY HH:mm')}\n"
        f"[bold]Preço:[/bold] R$ {chosen_service.price:.2f}",
        title="Confirmar Agendamento"
    ))

    client_name = name if name is not None else typer.prompt("→ Seu nome completo")
    client_contact = contact if contact is not None else typer.prompt(
        "→ Seu WhatsApp", default=state.config.defaults.phone_prefix
    )

    gate = service.open_booking()
    try:
        appointment = asyncio.run(service.book(
            gate,
            slot=slot,
            professional=professional,
            service=chosen_service,
            client_name=client_name,
            client_contact=client_contact,
        ))
    except ValidationError as e:
        _fail(str(e))
    except SubmissionError as e:
        # The client sees the retry prompt, the cause goes to the log.
        _fail(str(e))

    console.print(f"\n[bold green]✓ Agendamento Confirmado![/bold green] Olá, {appointment.client_name}! Seu horário está marcado.")
    console.print(f"  Adicionar ao Google Agenda: {google_calendar_link(appointment, chosen_service, professional.name)}\n")


@app.command()
def login(
    ctx: typer.Context,
    email: Annotated[str, typer.Option("--email", prompt="→ E-mail", help="E-mail do profissional")],
    password: Annotated[str, typer.Option("--password", prompt="→ Senha", hide_input=True, help="Senha")],
):
    """
    Sign in as a professional.
    """
    state = _state(ctx)
    try:
        authenticator = state.authenticator()
        authenticator.sign_in(email, password)
    except (BeautyBookError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    if authenticator.insecure_storage_warning:
        console.print(f"[yellow]⚠ {authenticator.insecure_storage_warning}[/yellow]")


@app.command()
def logout(ctx: typer.Context):
    """
    Clear the cached login session.
    """
    state = _state(ctx)
    try:
        state.authenticator().clear_cache()
    except (BeautyBookError, FileNotFoundError, ValueError) as e:
        _fail(str(e))


@app.command()
def availability(ctx: typer.Context):
    """
    Show the logged-in professional's weekly hours.
    """
    state = _state(ctx)
    try:
        professional = asyncio.run(_load_professional(state.service(authenticated=True), state))
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    table = Table(title=f"Disponibilidade de {professional.name}", header_style="bold cyan")
    table.add_column("Dia", style="bold")
    table.add_column("Intervalos")
    for weekday, label in enumerate(WEEKDAY_NAMES):
        ranges = professional.availability.ranges_for(weekday)
        table.add_row(label, ", ".join(r.label() for r in ranges) if ranges else "[dim]Fechado[/dim]")

    console.print()
    console.print(table)
    console.print(f"Intervalo entre horários: {professional.interval_or(state.config.defaults.slot_interval_minutes)} min\n")


@app.command("set-hours")
def set_hours(
    ctx: typer.Context,
    weekday: Annotated[int, typer.Argument(min=0, max=6, help="Dia da semana (0=Domingo .. 6=Sábado)")],
    ranges: Annotated[Optional[List[str]], typer.Argument(help="Intervalos, ex.: 9-12 13:30-18. Vazio fecha o dia.")] = None,
):
    """
    Replace the open hours of one weekday.
    """
    state = _state(ctx)
    parsed = [_parse_range(value) for value in ranges or []]
    try:
        service = state.service(authenticated=True)
        professional = asyncio.run(_load_professional(service, state))
        days = {d: professional.availability.ranges_for(d) for d in professional.availability.open_weekdays()}
        days[weekday] = parsed
        updated = asyncio.run(service.update_availability(professional.id, WeeklyAvailability(days)))
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    ranges_text = ", ".join(r.label() for r in updated.availability.ranges_for(weekday)) or "Fechado"
    console.print(f"[green]✓ {WEEKDAY_NAMES[weekday]}: {ranges_text}[/green]")


@app.command()
def clients(ctx: typer.Context):
    """
    List the logged-in professional's clients.
    """
    state = _state(ctx)
    try:
        service = state.service(authenticated=True)
        professional = asyncio.run(_load_professional(service, state))
        roster = client_roster(asyncio.run(service.appointments_for(professional.id)))
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    if not roster:
        console.print("[yellow]Nenhum cliente encontrado.[/yellow]")
        return

    table = Table(title="Meus Clientes", header_style="bold cyan")
    table.add_column("Nome", style="bold")
    table.add_column("WhatsApp")
    table.add_column("Agendamentos", justify="right")
    table.add_column("Última visita")
    for client in roster:
        table.add_row(client.name, client.contact, str(client.appointments), client.last_seen.format("DD/MM/YYYY"))

    console.print()
    console.print(table)
    console.print()


@app.command()
def dashboard(ctx: typer.Context):
    """
    Show today's numbers and upcoming appointments.
    """
    state = _state(ctx)
    try:
        service = state.service(authenticated=True)
        professional = asyncio.run(_load_professional(service, state))
        appointments = asyncio.run(service.appointments_for(professional.id))
        offered = asyncio.run(service.services_for(professional))
    except (BeautyBookError, LookupError, FileNotFoundError, ValueError) as e:
        _fail(str(e))

    today = service.today()
    stats = dashboard_stats(appointments, offered, professional, today)
    names = {s.id: s.name for s in offered}

    console.print(Panel.fit(
        f"[bold]Agendamentos hoje:[/bold] {stats.appointments_today}\n"
        f"[bold]Faturamento hoje:[/bold] R$ {stats.billing_today:.2f}\n"
        f"[bold]Faturamento no mês:[/bold] R$ {stats.billing_month:.2f}\n"
        f"[bold]Clientes:[/bold] {stats.clients}\n"
        f"[bold]Serviços ativos:[/bold] {stats.active_services}",
        title=f"Olá, {professional.name}"
    ))

    for day, items in appointments_by_date(appointments).items():
        if day < today:
            continue
        console.print(f"\n[bold cyan]{day.format('DD/MM/YYYY')}[/bold cyan]")
        for apt in items:
            console.print(f"  {apt.start_time.format('HH:mm')}  {names.get(apt.service_id, '?')} - {apt.client_name}")
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]beautybook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
