"""Entity store: insert, get, update and query with storage constraint failures mapped to domain errors."""
import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from peertutor.errors import ConstraintViolation, NotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Query(Generic[T]):
    """Lazy, finite, restartable result: the statement runs on every iteration, never at construction."""

    def __init__(self, db: AsyncSession, statement):
        self._db = db
        self.statement = statement

    async def all(self) -> list[T]:
        result = await self._db.execute(self.statement)
        return list(result.scalars().all())

    async def first(self) -> T | None:
        result = await self._db.execute(self.statement.limit(1))
        return result.scalars().first()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for entity in await self.all():
            yield entity


async def _flush(db: AsyncSession, entity_name: str) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        reason = str(exc.orig)
        logger.warning("Constraint violation writing %s: %s", entity_name, reason)
        raise ConstraintViolation(
            f"{entity_name} violates a storage constraint",
            {"entity": entity_name, "reason": reason},
        ) from exc


def is_unique_violation(exc: ConstraintViolation, constraint_name: str, table: str) -> bool:
    """True if the failure came from the named unique constraint (PostgreSQL names it, SQLite lists columns)."""
    reason = (exc.details or {}).get("reason", "")
    return constraint_name in reason or f"UNIQUE constraint failed: {table}." in reason


async def insert(db: AsyncSession, entity: T) -> T:
    """Add and flush one entity. Uniqueness / FK / CHECK failures raise ConstraintViolation."""
    db.add(entity)
    await _flush(db, type(entity).__name__)
    await db.refresh(entity)
    return entity


async def get(
    db: AsyncSession,
    model: type[T],
    entity_id: int,
    *,
    options: Iterable[Any] = (),
    fresh: bool = False,
) -> T:
    """Load one entity by primary key or raise NotFound. fresh=True overwrites any cached identity-map state."""
    stmt = select(model).where(model.id == entity_id).options(*options)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    entity = result.scalar_one_or_none()
    if entity is None:
        raise NotFound(model.__name__, entity_id)
    return entity


async def update(db: AsyncSession, model: type[T], entity_id: int, patch: dict[str, Any]) -> T:
    """
    Apply a field patch to one entity and flush.
    Raises NotFound for an unknown id, ConstraintViolation for unknown fields,
    values outside an enumerated set, or a storage constraint failure.
    """
    entity = await get(db, model, entity_id)
    columns = inspect(model).columns
    for field, value in patch.items():
        column = columns.get(field)
        if column is None or column.primary_key:
            raise ConstraintViolation(
                f"{model.__name__} has no writable field '{field}'",
                {"entity": model.__name__, "field": field},
            )
        enum_cls = getattr(column.type, "enum_class", None)
        if enum_cls is not None and value is not None:
            try:
                value = enum_cls(value)
            except ValueError:
                raise ConstraintViolation(
                    f"'{value}' is not a valid {field}",
                    {"entity": model.__name__, "field": field, "allowed": [m.value for m in enum_cls]},
                )
        setattr(entity, field, value)
    await _flush(db, model.__name__)
    await db.refresh(entity)
    return entity


def query(
    db: AsyncSession,
    model: type[T],
    *criteria,
    order_by: Iterable[Any] = (),
    options: Iterable[Any] = (),
) -> Query[T]:
    """Build a lazy query over one model; nothing is executed until iterated."""
    stmt = select(model).where(*criteria).order_by(*order_by).options(*options)
    return Query(db, stmt)
