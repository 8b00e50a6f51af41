from typing import Protocol, Optional, Iterator, Mapping, Any, runtime_checkable
from taskdedup.domain.task import Task, TaskId
from taskdedup.domain.enums import TaskStatus


### COMMENTS
# ==========================================================
# Kontrakt magazynu zadań (ports/task_repository.py).
# ==========================================================
# Ten moduł definiuje interfejs (Protocol) dla warstwy trwałości Tasków.
# - Jest niezależny od technologii (pamięć, plik JSONL, baza SQL).
# - Nie zakładamy transakcji obejmujących wiele dokumentów ani ograniczeń UNIQUE.
# - Adaptery mapują błędy technologiczne na błędy domenowe
#   (kolizja ID → TaskAlreadyExistsError, brak rekordu → TaskNotFoundError,
#    I/O lub połączenie → StoreUnavailableError).
# - Repozytorium nie zawiera logiki biznesowej (walidacja i deduplikacja są w serwisach).
# - Każde zapytanie jest ograniczone do jednego tenanta, z wyjątkiem `iter_all(None)`
#   używanego przez globalny przegląd spójności.

DEFAULT_BATCH_SIZE = 500


class TaskRepository(Protocol):
    """Interfejs magazynu obiektów `Task` z zakresem tenanta."""

    def add(self, task: Task) -> Task:
        """Wstawia nowy rekord `Task`.

        Wyjątki domenowe:
            TaskAlreadyExistsError: Gdy istnieje wpis o tym samym `task_id`.
        """

    def get(self, task_id: TaskId) -> Optional[Task]:
        """Zwraca zadanie o podanym `task_id` albo `None`."""

    def query_by_fields(self, tenant_id: str, fields: Mapping[str, Any]) -> list[Task]:
        """Zwraca zadania tenanta, których pola są RÓWNE podanym wartościom.

        Kolejność wyników nie jest gwarantowana.
        """

    def update(self, task_id: TaskId, patch: Mapping[str, Any]) -> Task:
        """Nadpisuje wskazane pola rekordu i zwraca zaktualizowany obiekt.

        Wyjątki domenowe:
            TaskNotFoundError: Gdy rekord z `task_id` nie istnieje.
        """

    def remove(self, task_id: TaskId) -> None:
        """Usuwa (hard delete) rekord.

        Wyjątki domenowe:
            TaskNotFoundError: Gdy rekord z `task_id` nie istnieje.
        """

    def iter_all(
        self, tenant_id: Optional[str] = None, *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> Iterator[Task]:
        """Strumieniuje wszystkie zadania tenanta (lub wszystkie przy `None`) porcjami."""

    def count(self, tenant_id: Optional[str] = None, status: Optional[TaskStatus] = None) -> int:
        """Liczba rekordów w zakresie (do paginacji)."""

    def list_page(
        self,
        tenant_id: str,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
        status: Optional[TaskStatus] = None,
    ) -> list[Task]:
        """Strona zadań tenanta: sort po `assigned_at` ASC, tiebreaker po `task_id` ASC."""


@runtime_checkable
class ConditionalTaskRepository(TaskRepository, Protocol):
    """Magazyn potrafiący atomowo wstawić rekord pending, jeśli brak innego
    rekordu pending o tym samym `(tenant_id, identity_hash)`."""

    def add_if_absent(self, task: Task) -> tuple[Task, bool]:
        """Zwraca `(wstawiony, True)` albo `(istniejący pending, False)`."""
