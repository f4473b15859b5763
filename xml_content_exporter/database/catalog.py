"""
Read-only access to the datastore catalog through SQLAlchemy's inspector.
"""

import logging

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import DatabaseConnectionError, MetadataAccessError


@contextmanager
def managed_connection(engine: Engine):
    """
    Context manager for a pooled connection, returned to the pool on every exit path.
    
    Args:
        engine: SQLAlchemy engine of the domain
        
    Yields:
        sqlalchemy.engine.Connection: Active database connection
        
    Raises:
        DatabaseConnectionError: If the connection cannot be established
    """
    try:
        connection = engine.connect()
    except SQLAlchemyError as e:
        raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e
    
    try:
        yield connection
    finally:
        try:
            connection.close()
        except SQLAlchemyError:
            pass  # connection is invalidated by the pool anyway


class DatabaseCatalog:
    """
    Table, foreign key, primary key and column metadata of one connection.
    
    Driver errors are raised as MetadataAccessError carrying the table name.
    """
    
    def __init__(self, connection, schema: Optional[str] = None):
        """
        Initialize the catalog.
        
        Args:
            connection: Open SQLAlchemy connection
            schema: Optional schema scoping every lookup
        """
        self.connection = connection
        self.schema = schema or None
        self.logger = logging.getLogger(__name__)
        self._inspector = None
    
    @contextmanager
    def _metadata(self, table_name: Optional[str] = None):
        try:
            if self._inspector is None:
                self._inspector = inspect(self.connection)
            yield self._inspector
        except SQLAlchemyError as e:
            target = f" for table {table_name}" if table_name else ""
            raise MetadataAccessError(f"Failed to read catalog metadata{target}: {e}", table_name) from e
    
    def list_tables(self) -> List[str]:
        """Names of all base tables in the schema."""
        with self._metadata() as inspector:
            return list(inspector.get_table_names(schema=self.schema))
    
    def imported_tables(self, table_name: str) -> List[str]:
        """
        Tables referenced by the foreign keys of ``table_name``.
        
        Each referenced table is listed once (ignoring case), in catalog order.
        """
        with self._metadata(table_name) as inspector:
            foreign_keys = inspector.get_foreign_keys(table_name, schema=self.schema)
        
        referenced: Dict[str, str] = {}
        for foreign_key in foreign_keys:
            referred_table = foreign_key.get('referred_table')
            if referred_table:
                referenced.setdefault(referred_table.lower(), referred_table)
        return list(referenced.values())
    
    def primary_key_columns(self, table_name: str) -> List[str]:
        """Primary key column names of ``table_name`` in key order."""
        with self._metadata(table_name) as inspector:
            constraint = inspector.get_pk_constraint(table_name, schema=self.schema)
        return [name for name in (constraint or {}).get('constrained_columns') or [] if name]
    
    def columns(self, table_name: str) -> List[Dict[str, Any]]:
        """Column declarations (``name``, ``type``...) of ``table_name`` in table order."""
        with self._metadata(table_name) as inspector:
            return list(inspector.get_columns(table_name, schema=self.schema))
