import hashlib
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable
from taskdedup.domain.task import Task


### COMMENTS
# ==========================================================
# Tożsamość zadania (domain/identity.py).
# ==========================================================
# - Normalizacja krotki tożsamości odbywa się TYLKO tutaj; reszta kodu
#   nie interpretuje ponownie np. braku `client_name`.
# - Skrót to klucz wyszukiwania, nie prymityw bezpieczeństwa.
# - Brak losowości i zależności od czasu: te same dane → ten sam skrót.

_SEPARATOR = "\x1f"
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class IdentityKey:
    tenant_id: str
    description: str
    assigned_to: str
    client_name: str
    deadline: str
    given_by: str

    def parts(self) -> tuple[str, ...]:
        return (
            self.tenant_id,
            self.description,
            self.assigned_to,
            self.client_name,
            self.deadline,
            self.given_by,
        )


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _fold(value: str | None) -> str:
    # wielkość liter i wielokrotne spacje nie rozróżniają tożsamości
    return _WHITESPACE.sub(" ", _clean(value)).lower()


class IdentityHasher:
    """
    Wylicza kanoniczny klucz tożsamości zadania.

    - `description` i `client_name`: trim, zwinięcie białych znaków, lower-case.
    - `tenant_id`, `assigned_to`, `given_by`, `deadline`: tylko trim.
    - `client_name=None` traktowane jak pusty string.
    """

    def normalize(
        self,
        tenant_id: str,
        description: str,
        assigned_to: str,
        client_name: str | None,
        deadline: str | None,
        given_by: str,
    ) -> IdentityKey:
        return IdentityKey(
            tenant_id=_clean(tenant_id),
            description=_fold(description),
            assigned_to=_clean(assigned_to),
            client_name=_fold(client_name),
            deadline=_clean(deadline),
            given_by=_clean(given_by),
        )

    def hash(
        self,
        tenant_id: str,
        description: str,
        assigned_to: str,
        client_name: str | None,
        deadline: str | None,
        given_by: str,
    ) -> str:
        key = self.normalize(tenant_id, description, assigned_to, client_name, deadline, given_by)
        return self.hash_key(key)

    def hash_key(self, key: IdentityKey) -> str:
        payload = _SEPARATOR.join(key.parts()).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    def hash_task(self, task: Task) -> str:
        """Skrót dla zapisanego zadania; rekordy historyczne mogą nie mieć `identity_hash`."""
        if task.identity_hash:
            return task.identity_hash
        return self.hash(
            task.tenant_id,
            task.description,
            task.assigned_to,
            task.client_name,
            task.deadline,
            task.given_by,
        )


def group_by_identity(
    tasks: Iterable[Task], hasher: IdentityHasher | None = None
) -> dict[tuple[str, str], list[Task]]:
    """Grupuje już pobrane zadania po `(tenant_id, identity_hash)`; kolejność grup = kolejność wejścia."""
    hasher = hasher or IdentityHasher()
    groups: dict[tuple[str, str], list[Task]] = defaultdict(list)
    for task in tasks:
        groups[(task.tenant_id, hasher.hash_task(task))].append(task)
    return dict(groups)
