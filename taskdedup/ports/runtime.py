from typing import Protocol
from datetime import datetime


class Clock(Protocol):
    """Źródło czasu dla `assigned_at` i `completed_at`.

    Implementacje produkcyjne zwracają czas aware w UTC; testowe mogą
    zwracać stały moment, żeby `elapsed` był przewidywalny.
    """
    def now(self) -> datetime:
        ...


class IdProvider(Protocol):
    """Generator identyfikatorów nowych zadań.

    ID nadaje serwis, nie magazyn, więc `create_or_get_existing` zna je przed zapisem.
    Wartość jest nieprzezroczysta; kolizja kończy się `TaskAlreadyExistsError` z magazynu.
    """
    def new_id(self) -> str:
        ...
