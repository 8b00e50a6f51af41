from taskdedup.domain.errors import (
    TaskNotFoundError,
    TaskValidationError,
    TenantMismatchError,
    StoreUnavailableError,
    DomainError,
)
from taskdedup.domain.task import Task, TaskId
from taskdedup.domain.enums import TaskStatus, TaskPriority
from taskdedup.services.task_service import TaskService
from taskdedup.adapters.memory.task_repo import InMemoryTaskRepository
from taskdedup.adapters.jsonl.task_repo import JsonlTaskRepository
from taskdedup.adapters.sql.task_repo import SqlTaskRepository
from taskdedup.adapters.system.runtime import SystemClock, UuidIdProvider
from taskdedup.adapters.system.activity_logger_logging import LoggingActivityLogger
from taskdedup.api.colors import TaskColor, PRIORITY_COLORS
from taskdedup.config import Settings, get_settings
from taskdedup.logger import get_logger
from typer import Argument, Option, Typer, Exit
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from math import ceil
from pathlib import Path
from typing import Optional
from functools import wraps
from pydantic import ValidationError


### COMMENTS
# ==========================================================
# CLI (Typer + Rich): interfejs dla deduplikacji zadań.
# ==========================================================
# Rola:
# - Mapuje komendy na metody TaskService (add/list/show/done/reopen/rm/check/scan/stats).
# - Wyświetla wyniki w czytelnej formie (tabele, panele, kolory).
# - Łapie DomainError i drukuje przyjazne komunikaty (kod wyjścia 1).
#
# Zasady:
# - Zero logiki biznesowej, deleguj do TaskService.
# - Jednorazowy bootstrap zależności (settings + repo + service) w callbacku.


app = Typer(help="Task dedup CLI")
console = Console()

service: TaskService | None = None  # ustawimy w callbacku
tenant: str = "default"


def build_repository(settings: Settings):
    """Tworzy adapter magazynu wg ustawień.
    - memory -> InMemory (bez trwałości)
    - jsonl  -> plik JSONL
    - sql    -> SQLAlchemy (z warunkowym wstawianiem pending)
    """
    if settings.backend == "jsonl":
        return JsonlTaskRepository(settings.jsonl_path)
    if settings.backend == "sql":
        return SqlTaskRepository(
            settings.database_url,
            enforce_unique_pending=settings.enforce_unique_pending,
            echo=settings.echo_sql,
        )
    return InMemoryTaskRepository()


def build_service(settings: Settings) -> TaskService:
    return TaskService(
        build_repository(settings),
        UuidIdProvider(),
        SystemClock(),
        LoggingActivityLogger(),
        batch_size=settings.scan_batch_size,
    )


@app.callback()
def main(
    backend: Optional[str] = Option(None, "--backend", "-b", help="memory | jsonl | sql"),
    file: Optional[Path] = Option(None, "--file", "-f", help="Ścieżka do pliku JSONL (włącza backend jsonl)"),
    db_url: Optional[str] = Option(None, "--db-url", help="URL bazy SQLAlchemy (włącza backend sql)"),
    tenant_id: Optional[str] = Option(None, "--tenant", "-t", help="Organizacja (tenant)"),
) -> None:
    """Bootstrap zależności na starcie procesu CLI."""
    global service, tenant
    if backend is None and file is not None:
        backend = "jsonl"
    if backend is None and db_url is not None:
        backend = "sql"
    try:
        settings = get_settings(backend=backend, jsonl_path=file, database_url=db_url, tenant_id=tenant_id)
        get_logger(settings.log_level, settings.log_file)
        service = build_service(settings)
    except StoreUnavailableError as e:
        error_panel(e, "Magazyn niedostępny")
        raise Exit(code=1)
    except ValidationError as e:
        error_panel(e, "Błędna konfiguracja")
        raise Exit(code=2)
    tenant = settings.tenant_id


def short_id(task_id: str, n: int = 8) -> str:
    """Zwraca skróconą wersję ID do wyświetlenia (np. pierwsze 8 znaków)."""
    return str(task_id)[:n]


def color_status(status: TaskStatus) -> str:
    """Zwraca status w Rich-markup z kolorem."""
    match status:
        case TaskStatus.PENDING:
            return f"{TaskColor.YELLOW}pending{TaskColor.RESET}"
        case TaskStatus.DONE:
            return f"{TaskColor.GREEN}done{TaskColor.RESET}"
        case _:
            return str(status)


def color_priority(priority: TaskPriority) -> str:
    color = PRIORITY_COLORS.get(str(priority))
    return f"{color}{priority}{TaskColor.RESET}" if color else str(priority)


def error_panel(e: Exception, title: str, hint: str | None = None) -> None:
    body = f"❌ {e}" + (f"\n[dim]{hint}[/]" if hint else "")
    console.print(Panel.fit(body, title=title, border_style="red"))


def handle_errors(fn):
    """Zamienia błędy domenowe na czerwony panel i kod wyjścia 1."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except TaskValidationError as e:
            error_panel(e, "Błąd walidacji")
        except (TaskNotFoundError, TenantMismatchError) as e:
            error_panel(e, "Nie znaleziono", "Użyj 'taskdedup list', żeby znaleźć poprawne ID")
        except StoreUnavailableError as e:
            error_panel(e, "Magazyn niedostępny")
        except DomainError as e:
            error_panel(e, "Błąd domenowy")
        raise Exit(code=1)
    return wrapper


def render_list(items: list[Task], total: int, page: int, page_size: int) -> None:
    """Renderuje tabelę Rich: ID, Opis, Przypisane, Klient, Termin, Priorytet, Status + stopka paginacji."""
    table = Table(show_lines=True, header_style="bold")
    table.add_column("ID", no_wrap=True, style="cyan")
    table.add_column("Description")
    table.add_column("Assigned To", no_wrap=True)
    table.add_column("Client")
    table.add_column("Deadline", no_wrap=True, style="dim")
    table.add_column("Priority", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Elapsed", no_wrap=True, style="dim")

    for t in items:
        table.add_row(
            short_id(t.task_id),
            t.description,
            t.assigned_to,
            t.client_name or "-",
            t.deadline or "-",
            color_priority(t.priority),
            color_status(t.status),
            t.elapsed or "",
        )

    pages = max(1, ceil(total / page_size)) if page_size > 0 else 1
    console.print(table)
    console.print(f"[dim]Strona {page}/{pages} • Razem: {total} • Page size: {page_size}[/dim]")


def render_task(task: Task, title: str, border_style: str = "cyan") -> None:
    lines = [
        f"ID: {task.task_id}",
        f"Description: {task.description}",
        f"Assigned to: {task.assigned_to} (by {task.given_by})",
        f"Client: {task.client_name or '[dim]brak[/]'}",
        f"Deadline: {task.deadline or '[dim]brak[/]'}",
        f"Priority: {color_priority(task.priority)}",
        f"Status: {color_status(task.status)}",
        f"Assigned at: {task.assigned_at.isoformat() if task.assigned_at else '[dim]brak[/]'}",
    ]
    if task.status == TaskStatus.DONE:
        lines.append(f"Completed at: {task.completed_at.isoformat() if task.completed_at else '-'}")
        lines.append(f"Elapsed: {task.elapsed}")
    console.print(Panel.fit("\n".join(lines), title=title, border_style=border_style))


@app.command("add")
@handle_errors
def add(
    description: str,
    assigned_to: str,
    given_by: str = Option(..., "--by", "-g", help="Kto zleca zadanie"),
    client: Optional[str] = Option(None, "--client", "-c"),
    deadline: Optional[str] = Option(None, "--deadline", "-d", help="YYYY-MM-DD"),
    priority: TaskPriority = Option(TaskPriority.MEDIUM, "--priority", "-p"),
) -> None:
    """
    Dodaje zadanie albo zwraca istniejące pending o tej samej tożsamości.
    """
    task, created = service.create_task(
        tenant, description, assigned_to, given_by,
        client_name=client, deadline=deadline, priority=priority,
    )
    if created:
        render_task(task, "✅ Dodano zadanie", "green")
    else:
        render_task(task, "🟡 Zadanie już istnieje", "yellow")


@app.command("list")
@handle_errors
def list_cmd(
    page: int = Option(1, "--page", "-p", min=1),
    page_size: int = Option(20, "--page-size", "-s", min=1),
    status: Optional[TaskStatus] = Option(None, "--status"),
) -> None:
    """Listuje zadania tenanta z paginacją."""
    items, total = service.list_tasks(tenant, page=page, page_size=page_size, status=status)
    render_list(items, total, page, page_size)


@app.command("show")
@handle_errors
def show(task_id: str) -> None:
    """Pokazuje szczegóły pojedynczego zadania."""
    task = service.get_task(tenant, TaskId(task_id))
    render_task(task, "Szczegóły zadania")


@app.command("done")
@handle_errors
def done(
    description: Optional[str] = Argument(None),
    assigned_to: Optional[str] = Argument(None),
    task_id: Optional[str] = Option(None, "--id", help="Adresowanie po ID zamiast tożsamości"),
) -> None:
    """
    Oznacza zadanie jako done, po tożsamości (opis + osoba) albo po --id.
    """
    if task_id:
        task = service.complete_task(tenant, TaskId(task_id))
    else:
        task = service.complete_by_identity(tenant, description or "", assigned_to or "")
    render_task(task, "✅ Zakończono", "green")


@app.command("reopen")
@handle_errors
def reopen(
    description: Optional[str] = Argument(None),
    assigned_to: Optional[str] = Argument(None),
    task_id: Optional[str] = Option(None, "--id", help="Adresowanie po ID zamiast tożsamości"),
) -> None:
    """Przywraca zadanie do pending po --id. Bez --id tylko pokazuje stan (nic nie zmienia)."""
    if task_id:
        before = service.get_task(tenant, TaskId(task_id))
        task = service.reopen_task(tenant, TaskId(task_id))
        if task.task_id != before.task_id:
            render_task(task, "🟡 Bez zmian: tożsamość ma już zadanie pending", "yellow")
            return
        render_task(task, "↩️ Przywrócono", "blue")
        return
    task = service.reopen_by_identity(tenant, description or "", assigned_to or "")
    render_task(task, "🟡 Bez zmian", "yellow")
    console.print(
        "[yellow]Ponowne otwarcie po tożsamości niczego nie zmienia; "
        "użyj 'taskdedup reopen --id <ID>'.[/]"
    )


@app.command("rm")
@handle_errors
def rm(task_id: str) -> None:
    """Usuwa zadanie."""
    service.remove_task(tenant, TaskId(task_id))
    console.print(Panel.fit(
        f"🟡 Zadanie usunięte\nID: {short_id(task_id)}",
        title="Usunięto",
        border_style="yellow",
    ))


@app.command("check")
@handle_errors
def check(
    description: str,
    assigned_to: str,
    given_by: str = Option(..., "--by", "-g"),
    client: Optional[str] = Option(None, "--client", "-c"),
    deadline: Optional[str] = Option(None, "--deadline", "-d"),
) -> None:
    """Pokazuje rekordy pending o podanej tożsamości (bez zmian w magazynie)."""
    matches = service.check_duplicates(tenant, description, assigned_to, given_by, client, deadline)
    render_list(matches, len(matches), 1, max(1, len(matches)))
    console.print(f"Dopasowania pending: {len(matches)}")


@app.command("scan")
@handle_errors
def scan(
    all_tenants: bool = Option(False, "--all", help="Globalny przegląd wszystkich tenantów"),
) -> None:
    """Znajduje i usuwa duplikaty (pending: zostaje najnowszy, done: najwcześniejszy)."""
    result = service.scan(None if all_tenants else tenant)
    console.print(Panel.fit(
        f"Grupy duplikatów: {result.found}\nUsunięte rekordy: {result.removed}",
        title="🧹 Przegląd spójności",
        border_style="green" if result.removed == 0 else "yellow",
    ))


@app.command("stats")
@handle_errors
def stats(
    all_tenants: bool = Option(False, "--all", help="Statystyki wszystkich tenantów"),
) -> None:
    """Raport grup duplikatów (tylko odczyt)."""
    report = service.stats(None if all_tenants else tenant)
    console.print(Panel.fit(
        f"Zadania: {report.total_tasks}\n"
        f"Unikalne tożsamości: {report.unique_identities}\n"
        f"Grupy duplikatów: {report.duplicate_groups}\n"
        f"Nadmiarowe rekordy: {report.total_duplicates}",
        title="📊 Duplikaty",
        border_style="cyan",
    ))
    if not report.groups:
        return
    table = Table(header_style="bold")
    table.add_column("Tenant", no_wrap=True)
    table.add_column("Description")
    table.add_column("Assigned To", no_wrap=True)
    table.add_column("Count", justify="right")
    table.add_column("Statuses")
    for g in report.groups:
        table.add_row(g.tenant_id, g.description, g.assigned_to, str(g.count), ", ".join(g.statuses))
    console.print(table)


if __name__ == "__main__":
    app()
