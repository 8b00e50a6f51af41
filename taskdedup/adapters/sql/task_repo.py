from __future__ import annotations
from typing import Iterator, Mapping, Any, Optional
import logging
import sqlalchemy as db
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from pathlib import Path
from taskdedup.domain.task import Task, TaskId, IMMUTABLE_FIELDS
from taskdedup.domain.enums import TaskStatus
from taskdedup.domain.errors import (
    TaskAlreadyExistsError,
    TaskNotFoundError,
    TaskValidationError,
    StoreUnavailableError,
)
from taskdedup.adapters.codec import encode_task, decode_task, encode_value
from taskdedup.ports.task_repository import DEFAULT_BATCH_SIZE

logger = logging.getLogger(__name__)


### COMMENTS
# ==========================================================
# Adapter SQL (SQLAlchemy Core) magazynu zadań.
# ==========================================================
# - Jedna tabela `tasks`; czasy jako ISO 8601 ('...Z'), comments/notes jako JSON.
# - Częściowy indeks UNIQUE na (tenant_id, identity_hash) WHERE status = 'pending'
#   (SQLite i PostgreSQL) zamyka wyścig tworzenia duplikatów u źródła:
#   `add_if_absent` wstawia rekord albo zwraca istniejący pending.
# - Indeks można wyłączyć (`enforce_unique_pending=False`) dla baz z historycznymi
#   duplikatami; wtedy ConsistencyScanner pozostaje jedyną siatką bezpieczeństwa.
# - Błędy SQLAlchemy/I-O → StoreUnavailableError.


def _to_url(url: str | Path) -> str:
    if isinstance(url, Path):
        # absolutna ścieżka -> sqlite:////abs/path.db
        return f"sqlite:///{url}"
    return url


class SqlTaskRepository:
    def __init__(self, url: str | Path, *, enforce_unique_pending: bool = True, echo: bool = False) -> None:
        """
        url: np. 'sqlite:///data/tasks.db' lub Path do pliku (zostanie zrobiony URL)
        """
        self.engine = db.create_engine(_to_url(url), future=True, echo=echo)
        self.meta = db.MetaData()
        self.enforce_unique_pending = enforce_unique_pending

        self.tasks = db.Table(
            "tasks",
            self.meta,
            db.Column("task_id", db.String, primary_key=True),
            db.Column("tenant_id", db.String, nullable=False, index=True),
            db.Column("description", db.String, nullable=False),
            db.Column("assigned_to", db.String, nullable=False),
            db.Column("given_by", db.String, nullable=False),
            db.Column("client_name", db.String, nullable=False, default=""),
            db.Column("deadline", db.String, nullable=False, default=""),
            db.Column("identity_hash", db.String, nullable=False),
            db.Column("status", db.String, nullable=False),       # 'pending'/'done'
            db.Column("priority", db.String, nullable=False),     # 'Low'/'Medium'/'High'
            db.Column("assigned_at", db.String, nullable=True),   # ISO8601 '...Z'
            db.Column("completed_at", db.String, nullable=True),
            db.Column("elapsed", db.String, nullable=True),
            db.Column("comments", db.JSON, nullable=False),
            db.Column("notes", db.JSON, nullable=False),
        )
        db.Index("ix_tasks_tenant_identity", self.tasks.c.tenant_id, self.tasks.c.identity_hash)
        if enforce_unique_pending:
            pending = self.tasks.c.status == TaskStatus.PENDING.value
            db.Index(
                "uq_tasks_pending_identity",
                self.tasks.c.tenant_id,
                self.tasks.c.identity_hash,
                unique=True,
                sqlite_where=pending,
                postgresql_where=pending,
            )

        # utwórz tabelę jeśli nie istnieje
        try:
            self.meta.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))

    def _column(self, name: str) -> db.Column:
        try:
            return self.tasks.c[name]
        except KeyError:
            raise TaskValidationError(name, "Nieznane pole zadania")

    def _where_fields(self, stmt, tenant_id: str, fields: Mapping[str, Any]):
        stmt = stmt.where(self.tasks.c.tenant_id == tenant_id)
        for name, value in fields.items():
            stmt = stmt.where(self._column(name) == encode_value(name, value))
        return stmt

    def add(self, task: Task) -> Task:
        stmt = db.insert(self.tasks).values(**encode_task(task))
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except IntegrityError:
            # konflikt PK
            raise TaskAlreadyExistsError(task.task_id)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))
        return task

    def add_if_absent(self, task: Task) -> tuple[Task, bool]:
        """Wstawia rekord pending albo zwraca istniejący pending o tej samej tożsamości."""
        lookup = self._where_fields(
            db.select(self.tasks),
            task.tenant_id,
            {"identity_hash": task.identity_hash, "status": TaskStatus.PENDING},
        ).order_by(self.tasks.c.assigned_at.desc(), self.tasks.c.task_id.desc())
        try:
            with self.engine.begin() as conn:
                row = conn.execute(lookup).mappings().first()
                if row is not None:
                    return decode_task(row), False
                conn.execute(db.insert(self.tasks).values(**encode_task(task)))
            return task, True
        except IntegrityError:
            # inny proces wstawił ten sam pending między SELECT a INSERT
            logger.debug("Konflikt indeksu pending dla %s, zwracam istniejący rekord", task.identity_hash)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))

        try:
            with self.engine.connect() as conn:
                row = conn.execute(lookup).mappings().first()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))
        if row is None:
            # konflikt wynikał z PK, nie z tożsamości
            raise TaskAlreadyExistsError(task.task_id)
        return decode_task(row), False

    def get(self, task_id: TaskId) -> Optional[Task]:
        stmt = db.select(self.tasks).where(self.tasks.c.task_id == str(task_id))
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))
        return decode_task(row) if row is not None else None

    def query_by_fields(self, tenant_id: str, fields: Mapping[str, Any]) -> list[Task]:
        stmt = self._where_fields(db.select(self.tasks), tenant_id, fields)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))
        return [decode_task(r) for r in rows]

    def update(self, task_id: TaskId, patch: Mapping[str, Any]) -> Task:
        forbidden = IMMUTABLE_FIELDS.intersection(patch)
        if forbidden:
            raise TaskValidationError(sorted(forbidden)[0], "Pole jest niezmienne")
        values = {name: encode_value(name, value) for name, value in patch.items()}
        for name in values:
            self._column(name)
        try:
            with self.engine.begin() as conn:
                if values:
                    stmt = (
                        db.update(self.tasks)
                        .where(self.tasks.c.task_id == str(task_id))
                        .values(**values)
                    )
                    result = conn.execute(stmt)
                    if result.rowcount == 0:
                        raise TaskNotFoundError(task_id)
                row = conn.execute(
                    db.select(self.tasks).where(self.tasks.c.task_id == str(task_id))
                ).mappings().first()
        except IntegrityError as e:
            raise TaskValidationError("status", f"Aktualizacja narusza unikalnosc pending: {e.orig}")
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))
        if row is None:
            raise TaskNotFoundError(task_id)
        return decode_task(row)

    def remove(self, task_id: TaskId) -> None:
        stmt = db.delete(self.tasks).where(self.tasks.c.task_id == str(task_id))
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))
        if result.rowcount == 0:
            raise TaskNotFoundError(task_id)

    def iter_all(
        self, tenant_id: Optional[str] = None, *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> Iterator[Task]:
        """Keyset pagination po task_id: każda porcja to osobne zapytanie."""
        last_id: str | None = None
        while True:
            stmt = db.select(self.tasks).order_by(self.tasks.c.task_id.asc()).limit(int(batch_size))
            if tenant_id is not None:
                stmt = stmt.where(self.tasks.c.tenant_id == tenant_id)
            if last_id is not None:
                stmt = stmt.where(self.tasks.c.task_id > last_id)
            try:
                with self.engine.connect() as conn:
                    rows = conn.execute(stmt).mappings().all()
            except SQLAlchemyError as e:
                raise StoreUnavailableError(str(e))
            if not rows:
                return
            for r in rows:
                yield decode_task(r)
            last_id = rows[-1]["task_id"]
            if len(rows) < batch_size:
                return

    def count(self, tenant_id: Optional[str] = None, status: Optional[TaskStatus] = None) -> int:
        stmt = db.select(db.func.count()).select_from(self.tasks)
        if tenant_id is not None:
            stmt = stmt.where(self.tasks.c.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(self.tasks.c.status == TaskStatus(status).value)
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))

    def list_page(
        self,
        tenant_id: str,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
        status: Optional[TaskStatus] = None,
    ) -> list[Task]:
        # sortowanie stabilne: ASC + tie-breaker po task_id
        stmt = (
            db.select(self.tasks)
            .where(self.tasks.c.tenant_id == tenant_id)
            .order_by(self.tasks.c.assigned_at.asc(), self.tasks.c.task_id.asc())
        )
        if status is not None:
            stmt = stmt.where(self.tasks.c.status == TaskStatus(status).value)
        if offset and offset > 0:
            stmt = stmt.offset(int(offset))
        if limit is not None:
            if limit <= 0:
                return []
            stmt = stmt.limit(int(limit))

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e))
        return [decode_task(r) for r in rows]
