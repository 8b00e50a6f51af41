import re
import pytest
from typer.testing import CliRunner

from taskdedup.api.cli import app
from taskdedup.adapters.jsonl.task_repo import JsonlTaskRepository
from taskdedup.domain.enums import TaskStatus


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def store(tmp_path):
    return tmp_path / "tasks.jsonl"


def invoke(runner, store, *args, tenant="acme"):
    return runner.invoke(app, ["--file", str(store), "--tenant", tenant, *args])


def task_id_from(output: str) -> str:
    match = re.search(r"ID: ([0-9a-f-]{36})", output)
    assert match, output
    return match.group(1)


def test_add_creates_then_reports_existing(runner, store):
    # Act
    first = invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob", "--client", "Globex")
    second = invoke(runner, store, "add", "raport  vat", "alice", "--by", "bob", "--client", "globex")

    # Assert
    assert first.exit_code == 0, first.output
    assert "Dodano zadanie" in first.output
    assert second.exit_code == 0, second.output
    assert "już istnieje" in second.output
    assert task_id_from(first.output) == task_id_from(second.output)
    assert JsonlTaskRepository(store).count("acme") == 1


def test_add_rejects_invalid_deadline(runner, store):
    result = invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob", "--deadline", "jutro")

    assert result.exit_code == 1
    assert "Błąd walidacji" in result.output
    assert JsonlTaskRepository(store).count() == 0


def test_done_by_identity_then_list(runner, store):
    invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob")

    done = invoke(runner, store, "done", "Raport VAT", "alice")
    listed = invoke(runner, store, "list", "--status", "done")

    assert done.exit_code == 0, done.output
    assert "Zakończono" in done.output
    assert listed.exit_code == 0, listed.output
    assert "Razem: 1" in listed.output
    assert JsonlTaskRepository(store).count("acme", TaskStatus.DONE) == 1


def test_done_and_reopen_by_id(runner, store):
    added = invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob")
    task_id = task_id_from(added.output)

    done = invoke(runner, store, "done", "--id", task_id)
    reopened = invoke(runner, store, "reopen", "--id", task_id)

    assert done.exit_code == 0, done.output
    assert reopened.exit_code == 0, reopened.output
    assert "pending" in reopened.output
    assert JsonlTaskRepository(store).count("acme", TaskStatus.PENDING) == 1


def test_done_unknown_identity_fails(runner, store):
    result = invoke(runner, store, "done", "Nic", "nikt")
    assert result.exit_code == 1
    assert "Nie znaleziono" in result.output


def test_show_from_other_tenant_fails(runner, store):
    added = invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob", tenant="acme")
    task_id = task_id_from(added.output)

    result = invoke(runner, store, "show", task_id, tenant="initech")

    assert result.exit_code == 1
    assert "Nie znaleziono" in result.output


def test_rm_removes_task(runner, store):
    added = invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob")
    task_id = task_id_from(added.output)

    result = invoke(runner, store, "rm", task_id)

    assert result.exit_code == 0, result.output
    assert JsonlTaskRepository(store).count() == 0


def test_check_scan_and_stats(runner, store):
    # Arrange: dwa pending o tej samej tożsamości (np. po wyścigu)
    from datetime import datetime, timedelta, timezone
    from conftest import make_task

    t0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    repo = JsonlTaskRepository(store)
    repo.add(make_task("p1", t0))
    repo.add(make_task("p2", t0 + timedelta(hours=1)))

    # Act
    check = invoke(runner, store, "check", "Prepare VAT report", "alice", "--by", "bob",
                   "--client", "Globex", "--deadline", "2024-01-31")
    stats = invoke(runner, store, "stats")
    scan = invoke(runner, store, "scan")
    rescan = invoke(runner, store, "scan")

    # Assert
    assert "Dopasowania pending: 2" in check.output
    assert "Grupy duplikatów: 1" in stats.output
    assert "Usunięte rekordy: 1" in scan.output
    assert "Grupy duplikatów: 0" in rescan.output
    assert [t.task_id for t in JsonlTaskRepository(store).iter_all()] == ["p2"]


def test_backend_from_environment(runner, store, monkeypatch):
    monkeypatch.setenv("TASKDEDUP_BACKEND", "jsonl")
    monkeypatch.setenv("TASKDEDUP_JSONL_PATH", str(store))
    monkeypatch.setenv("TASKDEDUP_TENANT_ID", "acme")

    result = runner.invoke(app, ["add", "Raport VAT", "alice", "--by", "bob"])

    assert result.exit_code == 0, result.output
    assert JsonlTaskRepository(store).count("acme") == 1


def test_invalid_backend_is_configuration_error(runner):
    result = runner.invoke(app, ["--backend", "mongo", "list"])
    assert result.exit_code == 2
    assert "Błędna konfiguracja" in result.output


def test_reopen_by_identity_reports_no_change(runner, store):
    invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob")
    invoke(runner, store, "done", "Raport VAT", "alice")

    result = invoke(runner, store, "reopen", "Raport VAT", "alice")

    assert result.exit_code == 0, result.output
    assert "Bez zmian" in result.output
    assert JsonlTaskRepository(store).count("acme", TaskStatus.DONE) == 1


def test_reopen_by_id_with_pending_twin_reports_no_change(runner, store):
    first = invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob")
    task_id = task_id_from(first.output)
    invoke(runner, store, "done", "--id", task_id)
    invoke(runner, store, "add", "Raport VAT", "alice", "--by", "bob")

    result = invoke(runner, store, "reopen", "--id", task_id)

    assert result.exit_code == 0, result.output
    assert "Bez zmian" in result.output
    assert JsonlTaskRepository(store).count("acme", TaskStatus.PENDING) == 1
