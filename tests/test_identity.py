from datetime import datetime, timezone
from taskdedup.domain.identity import IdentityHasher, group_by_identity
from dataclasses import replace

from conftest import make_task


def test_hash_is_deterministic():
    hasher = IdentityHasher()
    a = hasher.hash("acme", "Prepare report", "alice", "Globex", "2024-01-31", "bob")
    b = hasher.hash("acme", "Prepare report", "alice", "Globex", "2024-01-31", "bob")
    assert a == b


def test_description_and_client_ignore_case_and_spacing():
    hasher = IdentityHasher()
    a = hasher.hash("acme", "  Prepare   REPORT ", "alice", "globex", "2024-01-31", "bob")
    b = hasher.hash("acme", "prepare report", "alice", " GLOBEX", "2024-01-31", "bob")
    assert a == b


def test_missing_client_equals_empty_client():
    hasher = IdentityHasher()
    assert hasher.hash("acme", "x", "alice", None, "2024-01-31", "bob") == \
        hasher.hash("acme", "x", "alice", "", "2024-01-31", "bob")


def test_each_identity_field_distinguishes():
    hasher = IdentityHasher()
    base = ("acme", "x", "alice", "Globex", "2024-01-31", "bob")
    base_hash = hasher.hash(*base)
    for i, other in enumerate(["other", "y", "carol", "Initech", "2024-02-01", "dave"]):
        changed = list(base)
        changed[i] = other
        assert hasher.hash(*changed) != base_hash


def test_fields_cannot_bleed_into_each_other():
    # "a-b" + "c" i "a" + "b-c" nie mogą dać tej samej tożsamości
    hasher = IdentityHasher()
    assert hasher.hash("acme", "a-b", "c", "", "", "bob") != hasher.hash("acme", "a", "b-c", "", "", "bob")


def test_hash_task_recomputes_missing_hash():
    hasher = IdentityHasher()
    task = make_task("t1", None)
    legacy = replace(task, identity_hash="")
    assert hasher.hash_task(legacy) == task.identity_hash


def test_group_by_identity_separates_tenants():
    # Arrange
    t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    tasks = [
        make_task("a1", t, tenant_id="acme"),
        make_task("a2", t, tenant_id="acme"),
        make_task("b1", t, tenant_id="initech"),
        make_task("a3", t, tenant_id="acme", description="Something else"),
    ]

    # Act
    groups = group_by_identity(tasks)

    # Assert
    sizes = sorted(len(g) for g in groups.values())
    assert sizes == [1, 1, 2]
