import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from storefront.core.exceptions import ConflictError, DatabaseError, ValidationError
from storefront.db import MAX_BIGINT, get_connection

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """
    Common raw-SQL helpers for the table repositories.

    Every ``execute_*`` method accepts an optional ``conn``. Without one the
    statement runs on its own connection and writes are committed right away;
    with one the caller owns the transaction (see ``storefront.db.transaction``).
    """

    @contextmanager
    def get_db_connection(self, conn: Optional[Connection] = None) -> Iterator[Connection]:
        if conn is not None:
            yield conn
            return
        with get_connection() as own:
            yield own

    @staticmethod
    def _statement(query: str, params: Optional[Dict[str, Any]]) -> TextClause:
        """Attach bind types the driver cannot infer: timestamps and IN lists."""
        stmt = text(query)
        binds = []
        for name, value in (params or {}).items():
            if isinstance(value, datetime):
                binds.append(bindparam(name, type_=DateTime()))
            elif isinstance(value, (list, tuple)):
                binds.append(bindparam(name, expanding=True))
        return stmt.bindparams(*binds) if binds else stmt

    @staticmethod
    def _to_dict(row) -> Dict[str, Any]:
        data = dict(row._mapping)
        for key, value in data.items():
            if isinstance(value, (datetime, date)):
                data[key] = value.isoformat(sep=" ") if isinstance(value, datetime) else value.isoformat()
        return data

    @staticmethod
    def _bounded(params: Optional[Dict[str, Any]]) -> Tuple[Dict[str, Any], bool]:
        """
        Drop integers no BIGINT column can hold.

        Out-of-range members are removed from IN lists; a scalar one means
        the statement cannot match any row, which is reported as the flag.
        """
        def in_range(value) -> bool:
            return not isinstance(value, int) or isinstance(value, bool) or -MAX_BIGINT - 1 <= value <= MAX_BIGINT

        bounded, impossible = {}, False
        for name, value in (params or {}).items():
            if isinstance(value, (list, tuple)):
                value = [v for v in value if in_range(v)]
            elif not in_range(value):
                impossible = True
            bounded[name] = value
        return bounded, impossible

    @contextmanager
    def _run(self, sql: str, operation: str, conn: Optional[Connection], write: bool = False) -> Iterator[Connection]:
        """
        Yield a connection and map driver errors onto the app's exceptions.

        Writes on a repository-owned connection are committed on success.
        Unique and foreign key violations become ``ConflictError``.
        """
        try:
            with self.get_db_connection(conn) as c:
                yield c
                if write and conn is None:
                    c.commit()
        except IntegrityError as e:
            logger.warning(f"Integrity violation in {operation}: {sql}, Error: {str(e)}")
            raise ConflictError("The record conflicts with existing data.")
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed: {sql}, Error: {str(e)}")
            raise DatabaseError(f"{operation} failed", operation)

    def execute_query(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None,
        conn: Optional[Connection] = None,
    ) -> List[Dict[str, Any]]:
        params, impossible = self._bounded(params)
        if impossible:
            return []
        with self._run(query, "SELECT", conn) as c:
            result = c.execute(self._statement(query, params), params)
            return [self._to_dict(row) for row in result]

    def execute_single_query(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None,
        conn: Optional[Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """First row as a dict, or None"""
        params, impossible = self._bounded(params)
        if impossible:
            return None
        with self._run(query, "SELECT", conn) as c:
            row = c.execute(self._statement(query, params), params).first()
            return self._to_dict(row) if row else None

    def execute_scalar(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None,
        conn: Optional[Connection] = None,
    ) -> Any:
        params, impossible = self._bounded(params)
        if impossible:
            return None
        with self._run(query, "SELECT", conn) as c:
            return c.execute(self._statement(query, params), params).scalar()

    def execute_command(
        self,
        command: str,
        params: Optional[Dict[str, Any]] = None,
        conn: Optional[Connection] = None,
    ) -> int:
        """INSERT/UPDATE/DELETE; returns the affected row count"""
        params, impossible = self._bounded(params)
        if impossible:
            return 0
        with self._run(command, "WRITE", conn, write=True) as c:
            return c.execute(self._statement(command, params), params).rowcount

    def execute_insert_returning_id(
        self,
        command: str,
        params: Optional[Dict[str, Any]] = None,
        conn: Optional[Connection] = None,
    ) -> int:
        params, impossible = self._bounded(params)
        if impossible:
            raise ValidationError("A number in the request is out of range.")
        command = f"{command} RETURNING {self.id_column}"
        with self._run(command, "INSERT", conn, write=True) as c:
            return int(c.execute(self._statement(command, params), params).scalar())

    def execute_batch_command(
        self,
        command: str,
        params_list: List[Dict[str, Any]],
        conn: Optional[Connection] = None,
    ) -> int:
        """Run one statement per parameter set; returns total affected rows"""
        bounded = [b for b, impossible in map(self._bounded, params_list) if not impossible]
        if not bounded:
            return 0
        with self._run(command, "BATCH", conn, write=True) as c:
            return sum(c.execute(self._statement(command, p), p).rowcount for p in bounded)

    def exists(self, entity_id: int, conn: Optional[Connection] = None) -> bool:
        query = f"SELECT 1 FROM {self.table_name} WHERE {self.id_column} = :id"
        return self.execute_scalar(query, {"id": entity_id}, conn=conn) is not None

    def count(self, conn: Optional[Connection] = None) -> int:
        return int(self.execute_scalar(f"SELECT COUNT(*) FROM {self.table_name}", conn=conn) or 0)

    @property
    @abstractmethod
    def table_name(self) -> str:
        """Table name for the entity"""

    @property
    @abstractmethod
    def id_column(self) -> str:
        """Primary key column"""
