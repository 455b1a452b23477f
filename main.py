"""Schulungsplan — Integritätsprüfung für Unterrichtseinheiten (Haupt-CLI).

Verwendung:
  python main.py config init                       Standard-Konfiguration anlegen
  python main.py config show                       Konfiguration anzeigen
  python main.py generate                          Demo-Datenbestand erzeugen
  python main.py summary                           Übersicht über den Datenbestand
  python main.py session add ...                   Einheit prüfen und anlegen
  python main.py session edit <id> ...             Einheit prüfen und ändern
  python main.py duplicates scan                   Doppelte Erfassungen suchen
  python main.py duplicates delete                 Doppelte Erfassungen löschen
  python main.py reconcile <kurs> <von> <bis>      Anwesenheits-Abgleich
  python main.py hours                             Stundenübersicht
  python main.py week <datum>                      Wochenansicht
"""

import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich import box

console = Console()

DATE_FORMATS = ["%Y-%m-%d", "%d.%m.%Y"]
DATETIME_FORMATS = ["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%d.%m.%Y %H:%M"]

_json_path_option = click.option(
    "--json-path", default=None,
    help="Pfad des JSON-Datenbestands (Standard: data_path aus der Konfiguration).",
)


def _abort(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _load_config():
    """Lädt die Konfiguration; ohne Datei gilt die Standard-Konfiguration."""
    from config.manager import ConfigManager
    try:
        return ConfigManager().load_or_default()
    except ValueError as e:
        _abort(str(e))


def _service(json_path: Optional[str]):
    """Integritätsdienst über dem JSON-Datenbestand."""
    from analysis.integrity_service import IntegrityService
    from data.record_store import JsonRecordStore

    config = _load_config()
    store = JsonRecordStore(Path(json_path or config.data_path))
    return IntegrityService(store, config)


def _parse_day(value: str) -> date:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise click.BadParameter(f"Datum nicht lesbar: {value!r} (erwartet JJJJ-MM-TT oder TT.MM.JJJJ)")


def _parse_local(value: Optional[str]) -> Optional[str]:
    """Lokale Zeitangabe → ISO-String; Epoch-ms werden unverändert durchgereicht."""
    if value is None or value.strip().lstrip("-").isdigit():
        return value
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value, fmt).isoformat()
        except ValueError:
            continue
    return value


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anlegen oder anzeigen."""


@cmd_config.command("init")
@click.option("--force", is_flag=True, default=False, help="Bestehende Datei überschreiben.")
def config_init(force: bool):
    """Legt die Standard-Konfiguration an."""
    from config.defaults import default_integrity_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check() and not force:
        console.print("[yellow]Eine Konfiguration existiert bereits.[/yellow]")
        if not click.confirm("Mit Standardwerten überschreiben?", default=False):
            return
    mgr.save(default_integrity_config())


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    config = _load_config()

    console.print(Panel(
        f"[bold]{config.center_name}[/bold]  |  {config.timezone}",
        title="Konfiguration",
        border_style="cyan",
    ))
    table = Table(box=box.ROUNDED)
    table.add_column("Einstellung")
    table.add_column("Wert")
    table.add_row("Warnschwelle lange Einheit", f"{config.long_session_hours:g}h")
    table.add_row("Datenbestand", config.data_path)
    timeout = config.scan.timeout_seconds
    table.add_row("Zeitlimit Analysen", f"{timeout:g}s" if timeout else "keins")
    table.add_row("Abbruchprüfung", f"alle {config.scan.cancel_check_interval} Datensätze")
    console.print(table)


# ─── GENERATE / SUMMARY ───────────────────────────────────────────────────────

@click.command("generate")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@click.option("--courses", default=2, help="Anzahl Kurse.")
@click.option("--weeks", default=4, help="Kursdauer in Wochen.")
@_json_path_option
def cmd_generate(seed: int, courses: int, weeks: int, json_path: Optional[str]):
    """Erzeugt einen Demo-Datenbestand mit absichtlichen Auffälligkeiten."""
    from data.fake_data import FakeDataGenerator

    config = _load_config()
    console.print("[bold]Testdaten werden generiert...[/bold]")
    gen = FakeDataGenerator(config, seed=seed, num_courses=courses, weeks=weeks)
    data = gen.generate()
    gen.print_summary(data)

    out_path = Path(json_path or config.data_path)
    data.save_json(out_path)
    console.print(f"[green]✓[/green] JSON gespeichert: {out_path}")


@click.command("summary")
@_json_path_option
def cmd_summary(json_path: Optional[str]):
    """Zeigt eine Übersicht über den Datenbestand."""
    from data.record_store import DataAccessError

    service = _service(json_path)
    try:
        data = service.store.snapshot()
    except DataAccessError as e:
        _abort(str(e))
    console.print(Panel(data.summary(), title=service.config.center_name, border_style="cyan"))


# ─── SESSION ──────────────────────────────────────────────────────────────────

def _session_options(required: bool):
    """Gemeinsame Optionen für session add / session edit."""
    def decorate(f):
        options = [
            click.option("--course", "course_id", required=required, default=None, help="Kurs-ID."),
            click.option("--teacher", "teacher_id", required=required, default=None, help="Lehrkraft-ID."),
            click.option("--start", required=required, default=None,
                         help="Beginn (lokal, z.B. 2024-07-28T08:00, oder Epoch-ms)."),
            click.option("--end", required=required, default=None, help="Ende, Format wie --start."),
            click.option("--type", "session_type", type=click.Choice(["theory", "practice"]),
                         default=None, help="Art der Einheit."),
            click.option("--content", default=None, help="Inhalt."),
            click.option("--attendee", "attendees", multiple=True, help="Anwesende (mehrfach)."),
            click.option("--role", type=click.Choice(["teacher", "team_leader"]),
                         default=None, help="Rolle des Erfassers."),
            click.option("--creator-id", default=None, help="Person, die erfasst."),
            click.option("--vehicle", "vehicle_id", default=None, help="Fahrzeug (Praxis)."),
            click.option("--yes", "-y", "assume_yes", is_flag=True, default=False,
                         help="Warnungen ohne Rückfrage bestätigen."),
            _json_path_option,
        ]
        for option in reversed(options):
            f = option(f)
        return f
    return decorate


def _commit(service, candidate, assume_yes: bool, create: bool) -> None:
    """Prüfen, Warnungen bestätigen lassen, schreiben."""
    from analysis.schedule_validator import SessionRejected
    from data.record_store import DataAccessError

    try:
        result = service.validate_session(candidate)
    except DataAccessError as e:
        _abort(str(e))
    result.print_rich()
    if not result.ok:
        sys.exit(1)
    if result.warnings and not assume_yes:
        if not click.confirm("Trotzdem speichern?", default=False):
            console.print("[dim]Nicht gespeichert.[/dim]")
            return

    try:
        written = service.create_session(candidate) if create else service.update_session(candidate)
    except SessionRejected as e:
        # Bestand hat sich seit der Prüfung geändert
        _abort(f"Abgelehnt: {e.violation.message}")
    except DataAccessError as e:
        hint = " Bitte erneut versuchen." if e.retryable else ""
        _abort(f"{e}{hint}")
    console.print(f"[green]✓[/green] Einheit {written.session.id} gespeichert.")


@click.group("session")
def cmd_session():
    """Einheiten prüfen und speichern."""


@cmd_session.command("add")
@_session_options(required=True)
def session_add(course_id, teacher_id, start, end, session_type, content, attendees,
                role, creator_id, vehicle_id, assume_yes, json_path):
    """Prüft eine neue Einheit und legt sie an."""
    from models.session import SessionInput

    service = _service(json_path)
    candidate = SessionInput(
        course_id=course_id,
        teacher_id=teacher_id,
        start_timestamp=_parse_local(start),
        end_timestamp=_parse_local(end),
        type=session_type or "theory",
        content=content or "",
        attendee_ids=list(attendees),
        creator_id=creator_id,
        created_by=role,
        vehicle_id=vehicle_id,
    )
    _commit(service, candidate, assume_yes, create=True)


@cmd_session.command("edit")
@click.argument("session_id")
@_session_options(required=False)
def session_edit(session_id, course_id, teacher_id, start, end, session_type, content,
                 attendees, role, creator_id, vehicle_id, assume_yes, json_path):
    """Ändert eine bestehende Einheit; nur angegebene Felder werden ersetzt."""
    from data.record_store import DataAccessError
    from models.session import SessionInput

    service = _service(json_path)
    try:
        existing = service.store.get_session(session_id)
    except DataAccessError as e:
        _abort(str(e))

    changes = {
        "course_id": course_id,
        "teacher_id": teacher_id,
        "start_timestamp": _parse_local(start),
        "end_timestamp": _parse_local(end),
        "type": session_type,
        "content": content,
        "attendee_ids": list(attendees) if attendees else None,
        "created_by": role,
        "creator_id": creator_id,
        "vehicle_id": vehicle_id,
    }
    data = SessionInput.from_session(existing).model_dump()
    data.update({k: v for k, v in changes.items() if v is not None})
    _commit(service, SessionInput.model_validate(data), assume_yes, create=False)


# ─── DUPLICATES ───────────────────────────────────────────────────────────────

def _scan_or_abort(service):
    from analysis.cancellation import ScanCancelled
    from data.record_store import DataAccessError

    try:
        return service.scan_duplicates()
    except ScanCancelled as e:
        _abort(str(e))
    except DataAccessError as e:
        _abort(str(e))


@click.group("duplicates")
def cmd_duplicates():
    """Doppelte Erfassungen suchen und bereinigen."""


@cmd_duplicates.command("scan")
@_json_path_option
def duplicates_scan(json_path: Optional[str]):
    """Sucht doppelte Erfassungen (nur lesend)."""
    service = _service(json_path)
    result = _scan_or_abort(service)
    result.print_rich(service.config.tz)


@cmd_duplicates.command("delete")
@click.option("--yes", "-y", "assume_yes", is_flag=True, default=False,
              help="Ohne Rückfrage löschen.")
@_json_path_option
def duplicates_delete(assume_yes: bool, json_path: Optional[str]):
    """Sucht doppelte Erfassungen und löscht sie nach Bestätigung."""
    service = _service(json_path)
    result = _scan_or_abort(service)
    result.print_rich(service.config.tz)
    if not result.duplicates:
        return
    if not assume_yes and not click.confirm(
        f"{len(result.duplicates)} Duplikat(e) löschen?", default=False
    ):
        console.print("[dim]Nichts gelöscht.[/dim]")
        return

    report = service.delete_duplicates(result.duplicate_ids)
    if report.skipped_ids:
        console.print(f"[yellow]Übersprungen (kein Duplikat mehr):[/yellow] {', '.join(report.skipped_ids)}")
    if report.completed:
        console.print(f"[green]✓[/green] {report.deleted_count} Duplikat(e) gelöscht.")
        return
    _abort(
        f"Abgebrochen nach {report.deleted_count} gelöschten Einheiten "
        f"bei {', '.join(report.failed_ids) or '–'}: {report.error}\n"
        f"Nicht bearbeitet: {len(report.remaining_ids)}. Erneut ausführen, um fortzusetzen."
    )


# ─── RECONCILE ────────────────────────────────────────────────────────────────

@click.command("reconcile")
@click.argument("course_id")
@click.argument("start")
@click.argument("end")
@click.option("--details", is_flag=True, default=False,
              help="Betroffene Lernende je Abweichung anzeigen.")
@_json_path_option
def cmd_reconcile(course_id: str, start: str, end: str, details: bool, json_path: Optional[str]):
    """Gleicht die Anwesenheit von Lehrkraft und Gruppenleitung ab."""
    from analysis.cancellation import ScanCancelled
    from analysis.reconciliation import ReconciliationError
    from data.record_store import DataAccessError

    start_date, end_date = _parse_day(start), _parse_day(end)
    if start_date > end_date:
        raise click.BadParameter("Das Startdatum liegt nach dem Enddatum.")

    service = _service(json_path)
    try:
        report = service.reconcile(course_id, start_date, end_date)
    except ReconciliationError as e:
        _abort(f"{e}\nBitte erneut versuchen.")
    except ScanCancelled as e:
        _abort(str(e))

    students = None
    if details:
        try:
            students = service.store.list_students()
        except DataAccessError:
            # Namen sind nur Beiwerk; IDs werden dann als "Unbekannt" angezeigt
            students = []
    report.print_rich(students, service.config.tz, details)


# ─── HOURS / WEEK ─────────────────────────────────────────────────────────────

@click.command("hours")
@click.option("--from", "start", default=None, help="Erster Tag (Standard: frühester Kursbeginn).")
@click.option("--to", "end", default=None, help="Letzter Tag (Standard: spätestes Kursende).")
@click.option("--course", "course_id", default=None, help="Nur diesen Kurs auswerten.")
@_json_path_option
def cmd_hours(start: Optional[str], end: Optional[str], course_id: Optional[str],
              json_path: Optional[str]):
    """Stundenübersicht je Lehrkraft und Lernendem."""
    from data.record_store import DataAccessError

    service = _service(json_path)
    try:
        courses = service.store.list_courses()
        if start is None or end is None:
            if not courses:
                _abort("Keine Kurse vorhanden; bitte --from und --to angeben.")
        start_date = _parse_day(start) if start else min(c.start_date for c in courses)
        end_date = _parse_day(end) if end else max(c.end_date for c in courses)
        if start_date > end_date:
            raise click.BadParameter("Das Startdatum liegt nach dem Enddatum.")
        summary = service.hours_summary(start_date, end_date, course_id)
    except DataAccessError as e:
        _abort(str(e))
    summary.print_rich()


@click.command("week")
@click.argument("day")
@click.option("--course", "course_id", default=None, help="Nur diesen Kurs anzeigen.")
@click.option("--teacher", "teacher_id", default=None, help="Nur diese Lehrkraft anzeigen.")
@_json_path_option
def cmd_week(day: str, course_id: Optional[str], teacher_id: Optional[str],
             json_path: Optional[str]):
    """Wochenansicht (Mo–So) der Woche, die DAY enthält."""
    from data.record_store import DataAccessError
    from export.week_view import print_week

    target = _parse_day(day)
    service = _service(json_path)
    try:
        data = service.store.snapshot()
    except DataAccessError as e:
        _abort(str(e))
    print_week(
        data.sessions, target, service.config.tz,
        course_id=course_id, teacher_id=teacher_id, teacher_names=data.teacher_names(),
    )


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Ausführliche Log-Ausgabe.")
def cli(verbose: bool):
    """Integritätsprüfung für Unterrichtseinheiten eines Ausbildungszentrums.

    Starten Sie mit: python main.py generate
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def main():
    cli()


# Befehle registrieren
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_summary)
cli.add_command(cmd_session)
cli.add_command(cmd_duplicates)
cli.add_command(cmd_reconcile)
cli.add_command(cmd_hours)
cli.add_command(cmd_week)


if __name__ == "__main__":
    main()
