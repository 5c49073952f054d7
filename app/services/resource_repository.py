"""
Parameter-bound CRUD queries over one resource table.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

import psycopg2
from psycopg2 import sql

from app.services.errors import RecordValidationError, ResourceNotFoundError, StorageError
from app.services.resource_schema import ResourceSchema

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def _rows_to_records(cursor) -> List[Record]:
    columns = [desc[0] for desc in cursor.description]  # type: ignore
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _row_to_record(cursor) -> Optional[Record]:
    row = cursor.fetchone()
    if row is None:
        return None
    columns = [desc[0] for desc in cursor.description]  # type: ignore
    return dict(zip(columns, row))


class ResourceRepository:
    """
    CRUD access to the table described by `schema`.

    Each public method borrows one connection from `db` and runs inside a
    single transaction. Values are always passed as query parameters; only
    identifiers from the descriptor are composed into the SQL text.
    """

    def __init__(self, db, schema: ResourceSchema):
        self.db = db
        self.schema = schema
        self._table = sql.Identifier(schema.table)
        self._pk = sql.Identifier(schema.primary_key)
        self._columns = sql.SQL(", ").join(sql.Identifier(c) for c in schema.columns)

    def _select(self, where: bool = False, for_update: bool = False) -> sql.Composed:
        query = sql.SQL("SELECT {columns} FROM {table}").format(
            columns=self._columns, table=self._table
        )
        if where:
            query += sql.SQL(" WHERE {pk} = %s").format(pk=self._pk)
        else:
            query += sql.SQL(" ORDER BY {pk}").format(pk=self._pk)
        if for_update:
            query += sql.SQL(" FOR UPDATE")
        return query

    def list_all(self) -> List[Record]:
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(self._select())
                    records = _rows_to_records(cursor)
        except psycopg2.Error as e:
            raise StorageError(str(e).strip()) from e

        logger.info(f"Listed {len(records)} rows from {self.schema.table}")
        return records

    def get(self, record_id: int) -> Record:
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(self._select(where=True), (record_id,))
                    record = _row_to_record(cursor)
        except psycopg2.Error as e:
            raise StorageError(str(e).strip()) from e

        if record is None:
            raise ResourceNotFoundError(self.schema, record_id)
        return record

    def create(self, payload: Mapping[str, Any]) -> Record:
        fields = self.schema.field_names
        missing = [name for name in self.schema.required_fields if payload.get(name) is None]
        if missing:
            raise RecordValidationError(f"Missing required fields: {', '.join(missing)}")

        query = sql.SQL("INSERT INTO {table} ({fields}) VALUES ({values}) RETURNING {columns}").format(
            table=self._table,
            fields=sql.SQL(", ").join(sql.Identifier(f) for f in fields),
            values=sql.SQL(", ").join(sql.Placeholder() * len(fields)),
            columns=self._columns,
        )
        params = tuple(payload.get(f) for f in fields)

        try:
            with self.db.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)
                    record = _row_to_record(cursor)
        except psycopg2.Error as e:
            raise StorageError(str(e).strip()) from e

        logger.info(f"Inserted row {record[self.schema.primary_key]} into {self.schema.table}")
        return record

    def update(self, record_id: int, changes: Mapping[str, Any]) -> Record:
        """
        Read-merge-write: lock the row, merge `changes` over it and write
        every field back. Concurrent updates serialize on the row lock, so
        one payload is applied whole; the last writer wins.
        """
        fields = self.schema.field_names
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(f)) for f in fields
        )
        update_query = sql.SQL("UPDATE {table} SET {assignments} WHERE {pk} = %s RETURNING {columns}").format(
            table=self._table,
            assignments=assignments,
            pk=self._pk,
            columns=self._columns,
        )

        try:
            with self.db.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(self._select(where=True, for_update=True), (record_id,))
                    existing = _row_to_record(cursor)
                    if existing is None:
                        raise ResourceNotFoundError(self.schema, record_id)

                    merged = {**existing, **{k: v for k, v in changes.items() if k in fields}}
                    nulled = [name for name in self.schema.required_fields if merged.get(name) is None]
                    if nulled:
                        raise RecordValidationError(f"Fields cannot be null: {', '.join(nulled)}")

                    params = tuple(merged[f] for f in fields) + (record_id,)
                    cursor.execute(update_query, params)
                    record = _row_to_record(cursor)
        except psycopg2.Error as e:
            raise StorageError(str(e).strip()) from e

        # The row vanished between the lock and the write
        if record is None:
            raise ResourceNotFoundError(self.schema, record_id)

        logger.info(f"Updated row {record_id} in {self.schema.table}")
        return record

    def delete(self, record_id: int) -> None:
        query = sql.SQL("DELETE FROM {table} WHERE {pk} = %s").format(table=self._table, pk=self._pk)
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (record_id,))
                    deleted = cursor.rowcount
        except psycopg2.Error as e:
            raise StorageError(str(e).strip()) from e

        if deleted == 0:
            logger.info(f"Delete of row {record_id} in {self.schema.table} matched nothing")
        else:
            logger.info(f"Deleted row {record_id} from {self.schema.table}")

    def create_table(self) -> None:
        """Create the backing table if it does not exist yet."""
        definitions = [sql.SQL("{} SERIAL PRIMARY KEY").format(self._pk)]
        for f in self.schema.fields:
            # sql_type comes from the descriptor, never from a request
            column = sql.SQL("{} {}").format(sql.Identifier(f.name), sql.SQL(f.sql_type))
            if f.required:
                column += sql.SQL(" NOT NULL")
            definitions.append(column)

        query = sql.SQL("CREATE TABLE IF NOT EXISTS {table} ({definitions})").format(
            table=self._table,
            definitions=sql.SQL(", ").join(definitions),
        )
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query)
        except psycopg2.Error as e:
            raise StorageError(str(e).strip()) from e

        logger.info(f"Table {self.schema.table} is ready")
