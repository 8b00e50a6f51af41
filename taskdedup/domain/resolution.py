from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence
from taskdedup.domain.task import Task
from taskdedup.domain.enums import TaskStatus
from taskdedup.domain.duration import as_utc
from taskdedup.domain.errors import InternalInconsistencyError


### COMMENTS
# ==========================================================
# Polityka rozwiązywania duplikatów (domain/resolution.py).
# ==========================================================
# Wspólna dla DedupResolver (w locie) i ConsistencyScanner (przegląd wsadowy):
# - pending: zostaje NAJNOWSZY (assigned_at malejąco), reszta do usunięcia,
# - done:    zostaje NAJWCZEŚNIEJSZY (assigned_at rosnąco), reszta do usunięcia.
# Tiebreaker po `task_id`, więc wynik nie zależy od kolejności zwróconej przez magazyn.
# Brak `assigned_at` = początek epoki (taki rekord przegrywa w pending, wygrywa w done).

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Resolution:
    keep: Task
    discard: tuple[Task, ...]


def created_key(task: Task) -> tuple[datetime, str]:
    created = as_utc(task.assigned_at) if task.assigned_at is not None else _EPOCH
    return created, str(task.task_id)


def split_by_status(tasks: Sequence[Task]) -> tuple[list[Task], list[Task]]:
    pending = [t for t in tasks if t.status == TaskStatus.PENDING]
    done = [t for t in tasks if t.status == TaskStatus.DONE]
    return pending, done


def _settle(ordered: list[Task]) -> Resolution:
    keep, discard = ordered[0], tuple(ordered[1:])
    if any(t.task_id == keep.task_id for t in discard):
        raise InternalInconsistencyError(
            f"nie mozna wybrac jednego rekordu sposrod {[t.task_id for t in ordered]}"
        )
    return Resolution(keep=keep, discard=discard)


def resolve_pending(candidates: Sequence[Task]) -> Resolution:
    """Najnowszy rekord pending zostaje, pozostałe są do usunięcia."""
    if not candidates:
        raise InternalInconsistencyError("brak kandydatow pending do rozstrzygniecia")
    ordered = sorted(candidates, key=created_key, reverse=True)
    return _settle(ordered)


def resolve_done(candidates: Sequence[Task]) -> Resolution:
    """Najwcześniej utworzony rekord done zostaje, pozostałe są do usunięcia."""
    if not candidates:
        raise InternalInconsistencyError("brak kandydatow done do rozstrzygniecia")
    ordered = sorted(candidates, key=created_key)
    return _settle(ordered)
