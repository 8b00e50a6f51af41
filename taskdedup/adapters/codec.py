import logging
from datetime import datetime, timezone
from typing import Any, Mapping
from taskdedup.domain.task import Task, TaskId
from taskdedup.domain.enums import TaskStatus, TaskPriority
from taskdedup.domain.duration import parse_timestamp

logger = logging.getLogger(__name__)


def encode_dt(dt: datetime | None) -> str | None:
    # ISO 8601 w UTC z sufiksem 'Z'; naive zapisujemy bez strefy
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.isoformat()
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def decode_dt(value: Any, *, field: str = "timestamp", task_id: str = "?") -> datetime | None:
    parsed = parse_timestamp(value)
    if parsed is None and value not in (None, ""):
        logger.warning("Nieczytelny znacznik czasu %s=%r w zadaniu %s", field, value, task_id)
    return parsed


def encode_value(name: str, value: Any) -> Any:
    """Koduje pojedyncze pole `Task` do postaci zapisywalnej (patch / wiersz)."""
    if name in ("assigned_at", "completed_at"):
        return encode_dt(value)
    if isinstance(value, (TaskStatus, TaskPriority)):
        return value.value
    if name == "comments":
        return list(value or ())
    if name == "notes":
        return dict(value or {})
    if name == "task_id":
        return str(value)
    return value


def encode_task(task: Task) -> dict:
    return {
        "task_id": str(task.task_id),
        "tenant_id": task.tenant_id,
        "description": task.description,
        "assigned_to": task.assigned_to,
        "given_by": task.given_by,
        "client_name": task.client_name,
        "deadline": task.deadline,
        "identity_hash": task.identity_hash,
        "status": task.status.value if isinstance(task.status, TaskStatus) else str(task.status),
        "priority": task.priority.value if isinstance(task.priority, TaskPriority) else str(task.priority),
        "assigned_at": encode_dt(task.assigned_at),
        "completed_at": encode_dt(task.completed_at),
        "elapsed": task.elapsed,
        "comments": list(task.comments),
        "notes": dict(task.notes),
    }


def decode_task(row: Mapping[str, Any]) -> Task:
    task_id = str(row["task_id"])
    raw_status = row.get("status") or "pending"
    try:
        status = TaskStatus(raw_status)
    except ValueError:
        status = TaskStatus.PENDING
    try:
        priority = TaskPriority(row.get("priority") or "Medium")
    except ValueError:
        priority = TaskPriority.MEDIUM

    return Task(
        task_id=TaskId(task_id),
        tenant_id=row["tenant_id"],
        description=row.get("description") or "",
        assigned_to=row.get("assigned_to") or "",
        given_by=row.get("given_by") or "",
        client_name=row.get("client_name") or "",
        deadline=row.get("deadline") or "",
        identity_hash=row.get("identity_hash") or "",
        status=status,
        priority=priority,
        assigned_at=decode_dt(row.get("assigned_at"), field="assigned_at", task_id=task_id),
        completed_at=decode_dt(row.get("completed_at"), field="completed_at", task_id=task_id),
        elapsed=row.get("elapsed"),
        comments=tuple(row.get("comments") or ()),
        notes=dict(row.get("notes") or {}),
    )
