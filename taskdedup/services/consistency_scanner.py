import logging
from dataclasses import dataclass
from taskdedup.domain.enums import ActivityAction, CleanupReason
from taskdedup.domain.identity import IdentityHasher, group_by_identity
from taskdedup.domain.resolution import resolve_pending, resolve_done, split_by_status
from taskdedup.ports.task_repository import TaskRepository, DEFAULT_BATCH_SIZE
from taskdedup.ports.activity_logger import ActivityLogger
from taskdedup.services.dedup_resolver import discard_duplicates

logger = logging.getLogger(__name__)


### COMMENTS
# ==========================================================
# ConsistencyScanner: wsadowa naprawa dryfu duplikatów.
# ==========================================================
# - Czyta cały zakres (tenant albo wszystko) porcjami i grupuje WYŁĄCZNIE w pamięci,
#   bez ponownych zapytań w trakcie przeglądu.
# - Dla każdej grupy > 1: pending → zostaje najnowszy, done → zostaje najwcześniejszy.
#   Polityka działa per grupa, więc ostatni rekord grupy nigdy nie jest usuwany.
# - Ponowne uruchomienie zaraz po udanym przebiegu daje found=0, removed=0.


@dataclass(frozen=True)
class ScanResult:
    found: int
    removed: int


class ConsistencyScanner:
    """
    Przegląd spójności: znajduje grupy duplikatów i sprowadza je do polityki DedupResolver.

    :param repo: Implementacja portu TaskRepository.
    :param activity: Dziennik aktywności (opcjonalny).
    :param batch_size: Rozmiar porcji przy strumieniowym odczycie.
    """

    def __init__(
        self,
        repo: TaskRepository,
        activity: ActivityLogger | None = None,
        hasher: IdentityHasher | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.repo = repo
        self.activity = activity
        self.hasher = hasher or IdentityHasher()
        self.batch_size = batch_size

    def scan(self, tenant_id: str | None = None) -> ScanResult:
        """
            Uruchamia przegląd jednego tenanta albo (przy `None`) wszystkich.

            Usunięcia są logowane z powodem `race_cleanup` (przegląd na żądanie dla tenanta)
            albo `scheduled_cleanup` (globalna konserwacja).

            :return: ScanResult(found=liczba grup duplikatów, removed=liczba usuniętych rekordów)
        """
        reason = CleanupReason.RACE_CLEANUP if tenant_id else CleanupReason.SCHEDULED_CLEANUP
        groups = group_by_identity(
            self.repo.iter_all(tenant_id, batch_size=self.batch_size), self.hasher
        )
        duplicate_groups = [g for g in groups.values() if len(g) > 1]

        found = 0
        removed = 0
        for group in duplicate_groups:
            pending, done = split_by_status(group)
            group_removed = 0
            if len(pending) > 1:
                resolution = resolve_pending(pending)
                group_removed += discard_duplicates(
                    self.repo, self.activity, resolution.discard,
                    kept=resolution.keep,
                    action=ActivityAction.DUPLICATE_CLEANUP,
                    reason=reason,
                    actor="system",
                )
            if len(done) > 1:
                resolution = resolve_done(done)
                group_removed += discard_duplicates(
                    self.repo, self.activity, resolution.discard,
                    kept=resolution.keep,
                    action=ActivityAction.DUPLICATE_CLEANUP,
                    reason=reason,
                    actor="system",
                )
            # jeden pending + jeden done to stan dozwolony, nie duplikat do naprawy
            if len(pending) > 1 or len(done) > 1:
                found += 1
            removed += group_removed

        logger.info(
            "Przeglad spojnosci (tenant=%s): grupy=%d, usuniete=%d",
            tenant_id or "*", found, removed,
        )
        return ScanResult(found=found, removed=removed)
