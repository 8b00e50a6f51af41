from datetime import datetime, timedelta, timezone
import pytest

from taskdedup.adapters.memory.task_repo import InMemoryTaskRepository
from taskdedup.adapters.memory.activity_log import InMemoryActivityLog
from taskdedup.services.task_service import TaskService
from taskdedup.domain.enums import TaskStatus, ActivityAction
from taskdedup.domain.errors import TaskNotFoundError, TaskValidationError, TenantMismatchError

from conftest import FakeClock, FakeIdProvider, make_task


def new_service(repo=None, clock=None, activity=None):
    return TaskService(repo or InMemoryTaskRepository(), FakeIdProvider(), clock or FakeClock(), activity)


def format_task(task) -> str:
    return f"✅ {task.description} | {task.task_id} | {task.status} | {task.assigned_to}"


def test_create_task():
    # Arrange
    service = new_service()

    # Act
    task, created = service.create_task("acme", "Kup mleko", "alice", "bob")

    # Assert
    items, total = service.list_tasks("acme")
    assert created is True
    assert total == 1
    assert "Kup mleko" in format_task(items[0])
    assert task.task_id in format_task(items[0])


def test_create_twice_returns_same_task():
    service = new_service()

    first, _ = service.create_task("acme", "Kup mleko", "alice", "bob", client_name="Lidl")
    second, created = service.create_task("acme", "kup  MLEKO", "alice", "bob", client_name="lidl")

    assert created is False
    assert second.task_id == first.task_id
    assert service.list_tasks("acme")[1] == 1


def test_list_empty_returns_no_items():
    # Arrange
    service = new_service()

    # Act
    task, _ = service.create_task("acme", "Kup mleko", "alice", "bob")
    service.remove_task("acme", task.task_id)
    items, total = service.list_tasks("acme")

    # Assert
    assert items == []
    assert total == 0


def test_list_sorted_by_assigned_at_with_tiebreaker():
    # Arrange
    clock = FakeClock()
    service = new_service(clock=clock)

    # Act
    service.create_task("acme", "B", "alice", "bob")
    service.create_task("acme", "A", "alice", "bob")
    clock.advance(minutes=1)
    service.create_task("acme", "C", "alice", "bob")
    items, total = service.list_tasks("acme")

    # Assert
    assert [t.description for t in items] == ["B", "A", "C"]
    assert items[0].task_id < items[1].task_id


def test_list_paginates_and_filters_by_status():
    service = new_service()
    for i in range(5):
        service.create_task("acme", f"Zadanie {i}", "alice", "bob")
    service.complete_by_identity("acme", "Zadanie 0", "alice")

    page, total = service.list_tasks("acme", page=2, page_size=2)
    pending, pending_total = service.list_tasks("acme", status=TaskStatus.PENDING)

    assert total == 5
    assert [t.description for t in page] == ["Zadanie 2", "Zadanie 3"]
    assert pending_total == 4
    assert all(t.status == TaskStatus.PENDING for t in pending)


@pytest.mark.parametrize("page, page_size", [(0, 10), (1, 0), (-1, 5)])
def test_list_rejects_bad_pagination(page, page_size):
    service = new_service()
    with pytest.raises(TaskValidationError):
        service.list_tasks("acme", page=page, page_size=page_size)


def test_list_is_scoped_to_tenant():
    service = new_service()
    service.create_task("acme", "A", "alice", "bob")
    service.create_task("initech", "A", "alice", "bob")

    items, total = service.list_tasks("initech")

    assert total == 1
    assert items[0].tenant_id == "initech"


def test_get_returns_existing_task():
    # Arrange
    service = new_service()

    # Act
    t1, _ = service.create_task("acme", "A", "alice", "bob")
    got = service.get_task("acme", t1.task_id)

    # Assert
    assert got == t1
    assert got.status == TaskStatus.PENDING
    assert got.assigned_at is not None


def test_get_raises_on_missing():
    service = new_service()
    with pytest.raises(TaskNotFoundError):
        service.get_task("acme", "non-existent-id")


def test_get_from_other_tenant_is_rejected():
    service = new_service()
    task, _ = service.create_task("acme", "A", "alice", "bob")

    with pytest.raises(TenantMismatchError):
        service.get_task("initech", task.task_id)
    with pytest.raises(TenantMismatchError):
        service.remove_task("initech", task.task_id)


def test_complete_by_identity_marks_done_and_logs():
    # Arrange
    clock = FakeClock()
    activity = InMemoryActivityLog()
    service = new_service(clock=clock, activity=activity)
    service.create_task("acme", "Raport VAT", "alice", "bob")
    clock.advance(days=1, hours=2, minutes=15)

    # Act
    done = service.complete_by_identity("acme", "Raport VAT", "alice", actor="carol")

    # Assert
    assert done.status == TaskStatus.DONE
    assert done.elapsed == "1 days, 2:15:00"
    assert done.completed_at == clock.fixed
    events = activity.by_action(ActivityAction.TASK_STATUS_UPDATED)
    assert len(events) == 1
    assert events[0].actor == "carol"
    assert events[0].details["old_status"] == "pending"
    assert events[0].details["new_status"] == "done"


def test_complete_by_identity_is_idempotent():
    activity = InMemoryActivityLog()
    service = new_service(activity=activity)
    service.create_task("acme", "A", "alice", "bob")

    first = service.complete_by_identity("acme", "A", "alice")
    second = service.complete_by_identity("acme", "A", "alice")

    assert first == second
    assert len(activity.by_action(ActivityAction.TASK_STATUS_UPDATED)) == 1


def test_reopen_by_identity_only_done_is_noop():
    service = new_service()
    service.create_task("acme", "A", "alice", "bob")
    done = service.complete_by_identity("acme", "A", "alice")

    result = service.reopen_by_identity("acme", "A", "alice")

    # tylko rekordy done: nic nie jest zmieniane
    assert result == done
    assert service.get_task("acme", done.task_id).status == TaskStatus.DONE


def test_by_identity_raises_when_missing():
    service = new_service()
    with pytest.raises(TaskNotFoundError):
        service.complete_by_identity("acme", "Nieistniejace", "alice")


def test_complete_and_reopen_by_id():
    # Arrange
    clock = FakeClock()
    service = new_service(clock=clock)
    task, _ = service.create_task("acme", "A", "alice", "bob")
    clock.advance(minutes=45, seconds=30)

    # Act
    done = service.complete_task("acme", task.task_id)
    reopened = service.reopen_task("acme", task.task_id)

    # Assert
    assert done.elapsed == "0:46:00"
    assert reopened.status == TaskStatus.PENDING
    assert reopened.completed_at is None and reopened.elapsed is None
    assert service.get_task("acme", task.task_id) == task


def test_complete_by_id_on_done_writes_nothing():
    activity = InMemoryActivityLog()
    service = new_service(activity=activity)
    task, _ = service.create_task("acme", "A", "alice", "bob")
    done = service.complete_task("acme", task.task_id)

    again = service.complete_task("acme", task.task_id)

    assert again == done
    assert len(activity.by_action(ActivityAction.TASK_STATUS_UPDATED)) == 1


def test_remove_task_logs_deletion():
    activity = InMemoryActivityLog()
    service = new_service(activity=activity)
    task, _ = service.create_task("acme", "A", "alice", "bob")

    service.remove_task("acme", task.task_id, actor="bob")

    with pytest.raises(TaskNotFoundError):
        service.get_task("acme", task.task_id)
    deleted = activity.by_action(ActivityAction.TASK_DELETED)
    assert [e.task_id for e in deleted] == [task.task_id]
    assert deleted[0].actor == "bob"


def test_remove_raises_on_missing():
    service = new_service()
    with pytest.raises(TaskNotFoundError):
        service.remove_task("acme", "non-existent-id")


def test_bulk_create_deduplicates_within_batch():
    service = new_service()

    results = service.bulk_create("acme", [
        {"description": "A", "assigned_to": "alice", "given_by": "bob"},
        {"description": "B", "assigned_to": "alice", "given_by": "bob"},
        {"description": " a ", "assigned_to": "alice", "given_by": "bob"},
    ])

    assert [created for _, created in results] == [True, True, False]
    assert results[2][0].task_id == results[0][0].task_id
    assert service.list_tasks("acme")[1] == 2


def test_bulk_create_validates_everything_first():
    service = new_service()

    with pytest.raises(TaskValidationError):
        service.bulk_create("acme", [
            {"description": "A", "assigned_to": "alice", "given_by": "bob"},
            {"description": "", "assigned_to": "alice", "given_by": "bob"},
        ])

    assert service.list_tasks("acme")[1] == 0


def test_check_duplicates_reports_pending_matches():
    t0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    repo = InMemoryTaskRepository([
        make_task("p1", t0),
        make_task("p2", t0 + timedelta(hours=1)),
    ])
    service = new_service(repo=repo)

    found = service.check_duplicates("acme", "Prepare VAT report", "alice", "bob", "Globex", "2024-01-31")

    assert sorted(t.task_id for t in found) == ["p1", "p2"]
    assert repo.count() == 2


def test_scan_and_stats_through_service():
    t0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    repo = InMemoryTaskRepository([
        make_task("p1", t0),
        make_task("p2", t0 + timedelta(hours=1)),
    ])
    service = new_service(repo=repo)

    before = service.stats("acme")
    result = service.scan("acme")
    after = service.stats("acme")

    assert before.duplicate_groups == 1
    assert result.found == 1 and result.removed == 1
    assert after.duplicate_groups == 0
    assert after.total_tasks == 1


def test_reopen_by_id_keeps_done_when_identity_already_pending():
    # Arrange
    activity = InMemoryActivityLog()
    service = new_service(activity=activity)
    first, _ = service.create_task("acme", "A", "alice", "bob")
    service.complete_task("acme", first.task_id)
    second, created = service.create_task("acme", "A", "alice", "bob")

    # Act
    result = service.reopen_task("acme", first.task_id)

    # Assert
    assert created is True
    assert result.task_id == second.task_id
    assert service.get_task("acme", first.task_id).status == TaskStatus.DONE
    assert service.list_tasks("acme", status=TaskStatus.PENDING)[1] == 1
    assert len(activity.by_action(ActivityAction.TASK_STATUS_UPDATED)) == 1

    # przegląd nie ma czego usuwać, oba rekordy przeżywają
    scan = service.scan("acme")
    assert scan.found == 0 and scan.removed == 0
    assert service.get_task("acme", second.task_id) == second


def test_reopen_by_id_without_pending_twin_reopens():
    service = new_service()
    task, _ = service.create_task("acme", "A", "alice", "bob", client_name="Globex")
    service.create_task("acme", "A", "alice", "bob", client_name="Initech")
    service.complete_task("acme", task.task_id)

    reopened = service.reopen_task("acme", task.task_id)

    assert reopened.task_id == task.task_id
    assert reopened.status == TaskStatus.PENDING


def test_complete_by_identity_leaves_other_clients_alone():
    # Arrange: ten sam opis i osoba, ale inny klient to inna tożsamość
    clock = FakeClock()
    service = new_service(clock=clock)
    globex, _ = service.create_task("acme", "Prepare VAT report", "alice", "bob", client_name="Globex")
    clock.advance(hours=1)
    initech, _ = service.create_task("acme", "Prepare VAT report", "alice", "bob", client_name="Initech")

    # Act
    done = service.complete_by_identity("acme", "Prepare VAT report", "alice")

    # Assert
    assert done.task_id == initech.task_id
    assert done.status == TaskStatus.DONE
    assert service.get_task("acme", globex.task_id) == globex


def test_reopen_by_identity_changes_nothing():
    service = new_service()
    pending, _ = service.create_task("acme", "A", "alice", "bob")

    assert service.reopen_by_identity("acme", "A", "alice") == pending
    assert service.get_task("acme", pending.task_id) == pending
