from typing import NewType, Any, Mapping
from datetime import datetime
from dataclasses import dataclass, field
from taskdedup.domain.enums import TaskStatus, TaskPriority

TaskId = NewType("TaskId", str)

@dataclass(frozen=True)
class Task():
    """
    Model domenowy pojedynczego zadania w organizacji (tenancie); niemutowalny.

    Krotka tożsamości: tenant_id, description, assigned_to, client_name, deadline, given_by.
    `identity_hash` to skrót znormalizowanej krotki, liczony przez IdentityHasher.
    `completed_at` i `elapsed` są ustawione wtedy i tylko wtedy, gdy status == done.
    """
    task_id: TaskId
    tenant_id: str
    description: str
    assigned_to: str
    given_by: str
    identity_hash: str
    assigned_at: datetime | None
    client_name: str = ""
    deadline: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    completed_at: datetime | None = None
    elapsed: str | None = None
    comments: tuple = ()
    notes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskDraft():
    """Dane wejściowe do utworzenia zadania (przed walidacją i nadaniem ID)."""
    tenant_id: str
    description: str
    assigned_to: str
    given_by: str
    client_name: str | None = None
    deadline: str | None = None
    priority: TaskPriority | str = TaskPriority.MEDIUM
    comments: tuple = ()
    notes: Mapping[str, Any] = field(default_factory=dict)


# Pola, których aktualizacja (patch) nie może zmienić.
IMMUTABLE_FIELDS = frozenset({"task_id", "tenant_id"})
