from taskdedup.domain.task import Task, TaskId, IMMUTABLE_FIELDS
from taskdedup.domain.errors import (
    TaskAlreadyExistsError,
    TaskNotFoundError,
    TaskValidationError,
    StoreUnavailableError,
)
from taskdedup.domain.enums import TaskStatus
from taskdedup.adapters.codec import encode_task, decode_task
from taskdedup.domain.resolution import created_key
from taskdedup.ports.task_repository import DEFAULT_BATCH_SIZE
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Iterator, Optional, Mapping, Any
import os, json, threading


class JsonlTaskRepository:
    def __init__(self, path: Path) -> None:
        """Inicjalizuje magazyn JSONL (jedna linia = jedno zadanie).
        Tworzy katalog nadrzędny dla pliku, jeśli nie istnieje."""
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # odczyt-modyfikacja-zapis całego pliku; blokada tylko w obrębie procesu
        self._write_lock = threading.Lock()


    def _load_tasks(self) -> dict[str, Task]:
        tasks: dict[str, Task] = {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError as e:
                        raise TaskValidationError("record", f"{self.path.name}:{lineno}: invalid JSON: {e}")

                    try:
                        task = decode_task(record)
                    except (KeyError, ValueError) as e:
                        raise TaskValidationError("record", f"{self.path.name}:{lineno}: {e}")

                    key = str(task.task_id)
                    if key in tasks:
                        raise TaskValidationError("record", f"{self.path.name}:{lineno}: duplicate task_id '{key}'")
                    tasks[key] = task
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StoreUnavailableError(str(e))
        return tasks


    def _atomic_dump(self, tasks: Iterable[Task]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".swap")
        try:
            with tmp.open("w", encoding="utf-8", newline="\n") as f:
                for t in tasks:
                    f.write(json.dumps(encode_task(t), ensure_ascii=False))
                    f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            try:
                if tmp.exists():
                    tmp.unlink()
            except OSError:
                pass
            raise StoreUnavailableError(str(e))

    def add(self, task: Task) -> Task:
        """Dodaje nowy Task. Rzuca TaskAlreadyExistsError, jeśli task_id już istnieje.
        Zapisuje dane w sposób atomowy."""
        with self._write_lock:
            tasks = self._load_tasks()
            key = str(task.task_id)
            if key in tasks:
                raise TaskAlreadyExistsError(task.task_id)
            tasks[key] = task
            self._atomic_dump(tasks.values())
        return task


    def get(self, task_id: TaskId) -> Optional[Task]:
        return self._load_tasks().get(str(task_id))

    def query_by_fields(self, tenant_id: str, fields: Mapping[str, Any]) -> list[Task]:
        return [
            t for t in self._load_tasks().values()
            if t.tenant_id == tenant_id
            and all(getattr(t, name) == value for name, value in fields.items())
        ]

    def update(self, task_id: TaskId, patch: Mapping[str, Any]) -> Task:
        """Nadpisuje wskazane pola istniejącego Taska."""
        forbidden = IMMUTABLE_FIELDS.intersection(patch)
        if forbidden:
            raise TaskValidationError(sorted(forbidden)[0], "Pole jest niezmienne")
        with self._write_lock:
            tasks = self._load_tasks()
            key = str(task_id)
            if key not in tasks:
                raise TaskNotFoundError(task_id)
            updated = replace(tasks[key], **dict(patch))
            tasks[key] = updated
            self._atomic_dump(tasks.values())
        return updated


    def remove(self, task_id: TaskId) -> None:
        """Usuwa Task o podanym ID.
        Rzuca TaskNotFoundError, jeśli nie istnieje. Zapis wykonywany atomowo."""
        with self._write_lock:
            tasks = self._load_tasks()
            key = str(task_id)
            if key not in tasks:
                raise TaskNotFoundError(task_id)
            del tasks[key]
            self._atomic_dump(tasks.values())

    def iter_all(
        self, tenant_id: Optional[str] = None, *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> Iterator[Task]:
        # plik czytany raz; dalsze porcje pochodzą z tej samej migawki
        tasks = [t for t in self._load_tasks().values() if tenant_id is None or t.tenant_id == tenant_id]
        tasks.sort(key=lambda t: str(t.task_id))
        for start in range(0, len(tasks), max(1, batch_size)):
            yield from tasks[start : start + batch_size]

    def count(self, tenant_id: Optional[str] = None, status: Optional[TaskStatus] = None) -> int:
        return sum(
            1 for t in self._load_tasks().values()
            if (tenant_id is None or t.tenant_id == tenant_id)
            and (status is None or t.status == status)
        )

    def list_page(
        self,
        tenant_id: str,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
        status: Optional[TaskStatus] = None,
    ) -> list[Task]:
        """Zwraca listę Tasków tenanta posortowaną rosnąco po assigned_at,
        z tiebreakerem po task_id. Następnie stosuje paginację offset/limit."""
        tasks = [
            t for t in self._load_tasks().values()
            if t.tenant_id == tenant_id and (status is None or t.status == status)
        ]
        tasks.sort(key=created_key)

        start = max(0, int(offset or 0))
        if limit is None:
            return tasks[start:]
        if limit <= 0:
            return []
        return tasks[start : start + int(limit)]
