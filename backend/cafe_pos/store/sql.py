# Overview: Record store over the Flask-SQLAlchemy tables (embedded/local database).

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..identity import RecordId
from ..time_utils import utcnow
from ..validation import IntegrityViolation, StoreUnavailableError
from .base import SEQUENCES_COLLECTION, RecordStore, split_lookup, split_order


class SqlRecordStore(RecordStore):
    """
    Collections map 1:1 onto tables registered in ``db.metadata``.

    Each call runs in its own transaction: commit on success, rollback on
    any SQLAlchemy error so the session stays usable. An unreachable
    database raises StoreUnavailableError and a constraint violation raises
    IntegrityViolation. There is no retry here; callers decide what to do
    with a transient failure.
    """

    def __init__(self, db) -> None:
        self._db = db

    def _table(self, collection: str) -> Table:
        table = self._db.metadata.tables.get(collection)
        if table is None:
            raise ValueError(f"unknown collection: {collection}")
        return table

    @staticmethod
    def _column(table: Table, field: str):
        if field not in table.c:
            raise ValueError(f"unknown field {table.name}.{field}")
        return table.c[field]

    def _criteria(self, table: Table, where: dict) -> list:
        clauses = []
        for key, value in where.items():
            field, op = split_lookup(key)
            column = self._column(table, field)
            if op == "eq":
                clauses.append(column.is_(None) if value is None else column == value)
            elif op == "ne":
                clauses.append(column.is_not(None) if value is None else column != value)
            elif op == "in":
                clauses.append(column.in_(value))
            elif op == "lt":
                clauses.append(column < value)
            elif op == "lte":
                clauses.append(column <= value)
            elif op == "gt":
                clauses.append(column > value)
            elif op == "gte":
                clauses.append(column >= value)
        return clauses

    @contextmanager
    def _session(self):
        session = self._db.session
        try:
            yield session
        except OperationalError as exc:
            session.rollback()
            raise StoreUnavailableError("record store unavailable", details={"cause": str(exc.orig)}) from exc
        except IntegrityError as exc:
            session.rollback()
            raise IntegrityViolation("record conflicts with stored data", details={"cause": str(exc.orig)}) from exc
        except SQLAlchemyError:
            session.rollback()
            raise

    def _run(self, statement, *, write: bool):
        with self._session() as session:
            result = session.execute(statement)
            if write:
                session.commit()
            return result

    def _check_fields(self, table: Table, values: dict) -> None:
        for field in values:
            self._column(table, field)

    def _insert(self, collection: str, values: dict) -> None:
        table = self._table(collection)
        self._check_fields(table, values)
        self._run(insert(table).values(**values), write=True)

    def _query(self, collection: str, where: dict, order_by: tuple[str, ...], limit: int | None) -> list[dict]:
        table = self._table(collection)
        stmt = select(table).where(*self._criteria(table, where))
        for key in order_by:
            field, descending = split_order(key)
            column = self._column(table, field)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = self._run(stmt, write=False)
        return [dict(row) for row in result.mappings().all()]

    def _update(self, collection: str, values: dict, where: dict) -> int:
        table = self._table(collection)
        self._check_fields(table, values)
        stmt = update(table).where(*self._criteria(table, where)).values(**values)
        return self._run(stmt, write=True).rowcount

    def _delete(self, collection: str, where: dict) -> int:
        table = self._table(collection)
        stmt = delete(table).where(*self._criteria(table, where))
        return self._run(stmt, write=True).rowcount

    def _next_sequence(self, key: str) -> int:
        table = self._table(SEQUENCES_COLLECTION)
        bump = (
            update(table)
            .where(table.c.sequence_key == key)
            .values(next_number=table.c.next_number + 1, updated_at=utcnow())
        )
        current = select(table.c.next_number).where(table.c.sequence_key == key)

        with self._session() as session:
            if not session.execute(bump).rowcount:
                try:
                    session.execute(insert(table).values(
                        id=RecordId.new().value,
                        sequence_key=key,
                        next_number=2,
                        updated_at=utcnow(),
                    ))
                    session.commit()
                    return 1
                except IntegrityError:
                    # Another writer created the row first.
                    session.rollback()
                    if not session.execute(bump).rowcount:
                        raise
            number = session.execute(current).scalar_one() - 1
            session.commit()
            return number
