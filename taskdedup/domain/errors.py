

### COMMENTS
# ============================================
# Konwencja użycia błędów domenowych w projekcie
# ============================================
# - Repozytoria (adaptery):
#     * wykrywają kolizje ID lub brak rekordów
#     * mapują błędy techniczne (OSError, SQLAlchemyError) na StoreUnavailableError
#
# - Serwisy:
#     * walidują krotkę tożsamości przed jakimkolwiek wywołaniem repozytorium (TaskValidationError)
#     * brak dopasowania przy aktualizacji po tożsamości → TaskNotFoundError
#     * brak jednoznacznego „ocalałego” duplikatu → InternalInconsistencyError
#
# - UI (CLI):
#     * łapie DomainError (lub konkretne klasy) i wyświetla przyjazny komunikat
#     * wszystko inne traktuje jako błąd techniczny


class DomainError(Exception):
    """Bazowa klasa dla błędów domenowych.
    Umożliwia odróżnienie błędów domeny (logika aplikacji) od błędów technicznych.
    Nie powinna być rzucana bezpośrednio; używaj klas pochodnych.
    """

class TaskAlreadyExistsError(DomainError):
    """Rzucany przez `TaskRepository.add()`, gdy w repozytorium istnieje już wpis
    o tym samym `task_id`. Nie dotyczy duplikatów logicznych (ta sama tożsamość,
    inne ID), te rozwiązuje DedupResolver.
    """
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(self.__str__())
    def __str__(self):
        return f"Zadanie o ID {self.task_id} juz istnieje."

class TaskValidationError(DomainError):
    """Rzucany, gdy pola tożsamości zadania nie spełniają reguł, np.:
    - pusty opis (description),
    - brak osoby przypisanej lub zlecającej,
    - termin (deadline) nie jest datą ISO.
    Zgłaszany przez serwisy przed jakimkolwiek wywołaniem repozytorium.
    """
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(self.__str__())
    def __str__(self):
        return f"Błąd walidacji pola '{self.field}': {self.message}"


class TaskNotFoundError(DomainError):
    """Rzucany, gdy żądane zadanie nie istnieje w repozytorium.
    Przy aktualizacji po tożsamości `task_id` zawiera opis tożsamości (opis + osoba).
    """
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(self.__str__())
    def __str__(self):
        return f"Zadanie o ID {self.task_id} nie istnieje."


class TenantMismatchError(DomainError):
    """Rekord istnieje, ale należy do innej organizacji (tenanta)."""
    def __init__(self, task_id: str, tenant_id: str):
        self.task_id = task_id
        self.tenant_id = tenant_id
        super().__init__(self.__str__())
    def __str__(self):
        return f"Zadanie o ID {self.task_id} nie nalezy do organizacji {self.tenant_id}."


class StoreUnavailableError(DomainError):
    """Błąd techniczny magazynu (I/O, połączenie z bazą).
    Przekazywany dalej bez ponawiania, polityka retry należy do wywołującego.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.__str__())
    def __str__(self):
        return f"Magazyn zadan niedostepny: {self.message}"


class InternalInconsistencyError(DomainError):
    """Przebieg rozwiązywania duplikatów nie wyłonił dokładnie jednego rekordu do zachowania."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.__str__())
    def __str__(self):
        return f"Niespojnosc wewnetrzna: {self.message}"
