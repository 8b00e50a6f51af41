import logging
from datetime import datetime, timedelta, timezone

import pytest

from taskdedup.adapters.memory.task_repo import InMemoryTaskRepository
from taskdedup.adapters.memory.activity_log import InMemoryActivityLog


class FakeIdProvider:
    def __init__(self):
        self.counter = 0
    def new_id(self) -> str:
        self.counter += 1
        return f"id-{self.counter:03d}"


class FakeClock:
    def __init__(self, fixed: datetime | None = None):
        # jeśli nie podamy fixed, zwróci zawsze ten sam „teraz”
        self.fixed = fixed or datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)
    def now(self) -> datetime:
        return self.fixed
    def advance(self, **kwargs) -> None:
        self.fixed = self.fixed + timedelta(**kwargs)


class BrokenActivityLog:
    """Dziennik, który zawsze rzuca: operacje główne mają to przeżyć."""
    def __init__(self):
        self.calls = 0
    def log(self, event) -> None:
        self.calls += 1
        raise RuntimeError("activity sink down")


@pytest.fixture
def repo():
    return InMemoryTaskRepository()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ids():
    return FakeIdProvider()


@pytest.fixture
def activity():
    return InMemoryActivityLog()


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset the package logger singleton between tests."""
    import taskdedup.logger as logger_mod

    original = logger_mod._logger
    logger_mod._logger = None
    logging.getLogger("taskdedup").handlers.clear()
    logging.getLogger("taskdedup").propagate = True

    yield

    logger_mod._logger = None
    logging.getLogger("taskdedup").handlers.clear()
    logging.getLogger("taskdedup").propagate = True
    logger_mod._logger = original


def make_task(
    task_id: str,
    assigned_at: datetime | None,
    *,
    tenant_id: str = "acme",
    description: str = "Prepare VAT report",
    assigned_to: str = "alice",
    given_by: str = "bob",
    client_name: str = "Globex",
    deadline: str = "2024-01-31",
    status=None,
    **extra,
):
    """Rekord jak z magazynu: z poprawnym `identity_hash`."""
    from taskdedup.domain.task import Task, TaskId
    from taskdedup.domain.enums import TaskStatus
    from taskdedup.domain.identity import IdentityHasher

    return Task(
        task_id=TaskId(task_id),
        tenant_id=tenant_id,
        description=description,
        assigned_to=assigned_to,
        given_by=given_by,
        client_name=client_name,
        deadline=deadline,
        identity_hash=IdentityHasher().hash(tenant_id, description, assigned_to, client_name, deadline, given_by),
        assigned_at=assigned_at,
        status=status or TaskStatus.PENDING,
        **extra,
    )
