"""
Row extraction for a single table.

Each table is read on its own connection checked out of the domain engine's
pool, ordered by primary key when one exists and capped at the requested row
threshold. Columns are declared with their reflected types so the dialect's
result processing applies before the value codec sees them. Rows come back as
ordered ``name -> text`` dictionaries holding only the columns that have a value.
"""

import logging

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import column, select, table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import TableExportError
from ..mapping.column_mapper import resolve_column_name
from ..mapping.entity_index import EntityIndex
from ..mapping.value_codec import ValueCodec
from ..models import RelationColumns
from .catalog import DatabaseCatalog, managed_connection


def driver_errors(engine) -> Tuple[Type[BaseException], ...]:
    """DBAPI base exception of the engine's driver, if it exposes one."""
    dbapi = getattr(getattr(engine, 'dialect', None), 'dbapi', None)
    error = getattr(dbapi, 'Error', None)
    if isinstance(error, type) and issubclass(error, BaseException):
        return (error,)
    return ()


@dataclass
class ExtractedTable:
    """
    Rows of one table, ready to be serialized.
    
    Attributes:
        table_name: Physical table name
        exported_name: Element name used for every row
        rows: Ordered name -> value dictionaries
    """
    table_name: str
    exported_name: str
    rows: List[Dict[str, str]] = field(default_factory=list)


class TableRowExtractor:
    """
    Reads tables and maps their rows onto logical column names.
    
    The hierarchy table is special-cased: its rows are emitted in the order the
    hierarchy model lists the descendants of the root node, matched on the ``id``
    column; rows the hierarchy model does not know about are dropped.
    """
    
    def __init__(self, engine: Engine, schema: Optional[str] = None,
                 codec: Optional[ValueCodec] = None, hierarchy=None,
                 hierarchy_table: Optional[str] = None, hierarchy_root_key: str = "/"):
        """
        Initialize the extractor.
        
        Args:
            engine: SQLAlchemy engine of the domain
            schema: Optional schema qualifying table names
            codec: Value codec; a default ValueCodec when None
            hierarchy: Optional HierarchyModelInterface implementation
            hierarchy_table: Table whose rows follow the hierarchy order
            hierarchy_root_key: Root identifier handed to the hierarchy model
        """
        self.logger = logging.getLogger(__name__)
        self.engine = engine
        self.schema = schema or None
        self.codec = codec or ValueCodec(stream_errors=driver_errors(engine))
        self.hierarchy = hierarchy
        self.hierarchy_table = hierarchy_table
        self.hierarchy_root_key = hierarchy_root_key
    
    def build_query(self, table_name: str, columns: List[Dict[str, Any]],
                    primary_key_columns: List[str], threshold: int = 0):
        """
        SELECT of every column of a table, ordered by its primary key columns if any.
        
        Args:
            table_name: Physical table name
            columns: Reflected column declarations (``name`` and ``type``)
            primary_key_columns: Primary key column names in key order
            threshold: Row cap (<= 0 means no cap)
        """
        selected = [column(declared['name'], declared.get('type')) for declared in columns]
        source = table(table_name, *selected, schema=self.schema).alias('a')
        query = select(*source.c)
        if primary_key_columns:
            query = query.order_by(*[source.c[name] for name in primary_key_columns])
        if threshold > 0:
            query = query.limit(threshold)
        return query
    
    def extract(self, table_name: str, threshold: int, entities: EntityIndex,
                relation_tables: Dict[str, RelationColumns]) -> ExtractedTable:
        """
        Read up to ``threshold`` rows of a table.
        
        Args:
            table_name: Physical table name
            threshold: Maximum number of rows (<= 0 means no cap)
            entities: Entity index of the current export run
            relation_tables: Relation tables of the current export run
            
        Returns:
            ExtractedTable with mapped rows
            
        Raises:
            TableExportError: If the query or the row mapping fails
            MetadataAccessError: If the columns or the primary key cannot be read
            DatabaseConnectionError: If no connection can be acquired
        """
        self.logger.debug(f"Export table {table_name}")
        
        entity = entities.find_by_table(table_name)
        exported_name = entities.exported_table_name(table_name, relation_tables)
        relation_columns = relation_tables.get(exported_name)
        
        with managed_connection(self.engine) as connection:
            catalog = DatabaseCatalog(connection, self.schema)
            columns = catalog.columns(table_name)
            query = self.build_query(table_name, columns, catalog.primary_key_columns(table_name), threshold)
            
            try:
                records = connection.execute(query).fetchall()
            except SQLAlchemyError as e:
                raise TableExportError(f"Query failed for table {table_name}: {e}", table_name, e) from e
            except (TypeError, ValueError) as e:
                raise TableExportError(f"Unreadable value in table {table_name}: {e}", table_name, e) from e
        
        column_types = [(declared['name'], declared.get('type')) for declared in columns]
        try:
            rows = [self._map_record(exported_name, record, column_types, entity, relation_columns)
                    for record in records]
        except (TypeError, ValueError, AttributeError) as e:
            raise TableExportError(f"Failed to map rows of table {table_name}: {e}", table_name, e) from e
        
        if self.hierarchy_table and table_name.lower() == self.hierarchy_table.lower():
            rows = self._order_by_hierarchy(table_name, rows)
        
        self.logger.debug(f"Extracted {len(rows)} rows from {table_name} as {exported_name}")
        return ExtractedTable(table_name=table_name, exported_name=exported_name, rows=rows)
    
    def _map_record(self, exported_name: str, record, column_types, entity,
                    relation_columns: Optional[RelationColumns]) -> Dict[str, str]:
        row: Dict[str, str] = {}
        for index, (column_name, column_type) in enumerate(column_types):
            value = self.codec.encode(column_name, column_type, record[index])
            if value is None:
                continue
            
            name = resolve_column_name(entity.attributes, column_name) if entity else column_name
            if relation_columns is not None:
                name = relation_columns.normalize(name)
            
            row[name] = value
        
        self.logger.debug(f"Add for table {exported_name}: {row}")
        return row
    
    def _order_by_hierarchy(self, table_name: str, rows: List[Dict[str, str]]) -> List[Dict[str, str]]:
        if self.hierarchy is None:
            self.logger.warning(f"No hierarchy model available, {table_name} rows kept in primary key order")
            return rows
        
        rows_by_id: Dict[str, Dict[str, str]] = {}
        for row in rows:
            row_id = next((value for key, value in row.items() if key.lower() == 'id'), None)
            if row_id is not None:
                rows_by_id.setdefault(row_id, row)
        
        ordered = []
        for node in self.hierarchy.find_descendants(self.hierarchy_root_key):
            row = rows_by_id.get(str(node.key))
            if row is not None:
                ordered.append(row)
        
        if len(ordered) < len(rows):
            self.logger.warning(f"Dropped {len(rows) - len(ordered)} {table_name} rows unknown to the hierarchy model")
        return ordered
