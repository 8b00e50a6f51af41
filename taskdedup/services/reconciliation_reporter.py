from dataclasses import dataclass, field
from taskdedup.domain.identity import IdentityHasher, group_by_identity
from taskdedup.domain.resolution import created_key
from taskdedup.ports.task_repository import TaskRepository, DEFAULT_BATCH_SIZE


@dataclass(frozen=True)
class DuplicateGroup:
    tenant_id: str
    identity_hash: str
    description: str
    assigned_to: str
    count: int
    statuses: tuple[str, ...]
    task_ids: tuple[str, ...]


@dataclass(frozen=True)
class ReconciliationStats:
    total_tasks: int
    unique_identities: int
    duplicate_groups: int
    total_duplicates: int
    groups: list[DuplicateGroup] = field(default_factory=list)


class ReconciliationReporter:
    """Raport grup duplikatów dla dashboardów; tylko odczyt, nigdy na ścieżce zapisu."""

    def __init__(
        self,
        repo: TaskRepository,
        hasher: IdentityHasher | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.repo = repo
        self.hasher = hasher or IdentityHasher()
        self.batch_size = batch_size

    def stats(self, tenant_id: str | None = None) -> ReconciliationStats:
        total = 0

        def counted():
            nonlocal total
            for task in self.repo.iter_all(tenant_id, batch_size=self.batch_size):
                total += 1
                yield task

        groups = group_by_identity(counted(), self.hasher)
        details = []
        for (group_tenant, identity_hash), members in groups.items():
            if len(members) < 2:
                continue
            members = sorted(members, key=created_key)
            details.append(DuplicateGroup(
                tenant_id=group_tenant,
                identity_hash=identity_hash,
                description=members[0].description,
                assigned_to=members[0].assigned_to,
                count=len(members),
                statuses=tuple(str(t.status) for t in members),
                task_ids=tuple(str(t.task_id) for t in members),
            ))

        return ReconciliationStats(
            total_tasks=total,
            unique_identities=len(groups),
            duplicate_groups=len(details),
            total_duplicates=sum(g.count - 1 for g in details),
            groups=details,
        )
