"""
Core data models for the XML content exporter.

This module defines the plain data structures handed to the exporter by its
collaborators (entity model, datastore wiring) and the structures it produces
(relation descriptors, export results).
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Tuple


ROOT_ELEMENT = "dataset"
DEFAULT_TABLE_THRESHOLD = 100000
DEFAULT_EXCLUDED_TABLE_PREFIXES = ("QRTZ_", "AuditEntry")
DEFAULT_HIERARCHY_TABLE = "Realm"
DEFAULT_HIERARCHY_ROOT_KEY = "/"


@dataclass
class CollectionTableModel:
    """
    Backing table of an element collection.
    
    Attributes:
        name: Name of the collection table
        join_column: Column in the collection table pointing back at the owning entity
    """
    name: str
    join_column: str
    
    def __post_init__(self):
        """Validate collection table configuration."""
        if not self.name:
            raise ValueError("collection table name cannot be empty")
        if not self.join_column:
            raise ValueError("collection table join_column cannot be empty")


@dataclass
class JoinTableModel:
    """
    Join table of a many-to-many association.
    
    Attributes:
        join_column: Column referencing the owning entity
        inverse_join_column: Column referencing the target entity
        name: Join table name; blank means <owningEntityName>_<targetEntityName>
    """
    join_column: str
    inverse_join_column: str
    name: Optional[str] = None
    
    def __post_init__(self):
        """Validate join table configuration."""
        if not self.join_column or not self.inverse_join_column:
            raise ValueError("Both join_column and inverse_join_column must be specified")


@dataclass
class AttributeModel:
    """
    A declared attribute of a mapped entity.
    
    Attributes:
        name: Logical attribute name
        column: Optional explicit column name override
        basic: False for collections and associations
        collection_table: Backing table for element collections
        join_table: Join table for many-to-many associations
        target_entity: Logical name of the associated entity (used to synthesize join table names)
    """
    name: str
    column: Optional[str] = None
    basic: bool = True
    collection_table: Optional[CollectionTableModel] = None
    join_table: Optional[JoinTableModel] = None
    target_entity: Optional[str] = None
    
    def __post_init__(self):
        """Validate attribute configuration."""
        if not self.name:
            raise ValueError("attribute name cannot be empty")
    
    @property
    def column_name(self) -> str:
        """Explicit column override when declared, else the attribute name."""
        return self.column or self.name


@dataclass
class EntityModel:
    """
    A mapped entity as seen by the exporter.
    
    Attributes:
        name: Logical entity name, used as the exported element name
        table: Physical table name; None when the entity declares no table
        attributes: Ordered attribute declarations
    """
    name: str
    table: Optional[str] = None
    attributes: List[AttributeModel] = field(default_factory=list)
    
    def __post_init__(self):
        """Validate entity configuration."""
        if not self.name:
            raise ValueError("entity name cannot be empty")


@dataclass(frozen=True)
class RelationColumns:
    """Pair of join columns identifying both sides of a relation table."""
    left: str
    right: str
    
    def normalize(self, name: str) -> str:
        """Return the declared casing of ``name`` if it matches either side, else ``name``."""
        if name.lower() == self.left.lower():
            return self.left
        if name.lower() == self.right.lower():
            return self.right
        return name


@dataclass
class ExportSettings:
    """
    Parameters of one export run.
    
    Attributes:
        table_threshold: Maximum number of rows extracted per table (<= 0 means no cap)
        excluded_table_prefixes: Tables starting with any of these (case-insensitive) are skipped
        hierarchy_table: Physical table whose rows are re-ordered by the hierarchy model
        hierarchy_root_key: Root identifier handed to the hierarchy model
        root_element: Document root element name
    """
    table_threshold: int = DEFAULT_TABLE_THRESHOLD
    excluded_table_prefixes: Tuple[str, ...] = DEFAULT_EXCLUDED_TABLE_PREFIXES
    hierarchy_table: Optional[str] = DEFAULT_HIERARCHY_TABLE
    hierarchy_root_key: str = DEFAULT_HIERARCHY_ROOT_KEY
    root_element: str = ROOT_ELEMENT
    
    def __post_init__(self):
        """Validate export settings."""
        if not self.root_element:
            raise ValueError("root_element cannot be empty")
        self.excluded_table_prefixes = tuple(self.excluded_table_prefixes or ())
    
    def is_table_allowed(self, table_name: str) -> bool:
        """True unless the table name starts with an excluded prefix (case-insensitive)."""
        upper_name = table_name.upper()
        return all(not upper_name.startswith(prefix.upper()) for prefix in self.excluded_table_prefixes)


@dataclass
class DomainDataSource:
    """
    Everything the exporter needs for one logical domain, resolved by the caller.
    
    Attributes:
        engine: SQLAlchemy engine; its pool hands out the connections of an export run
        schema: Optional schema scoping table discovery and metadata lookups
        entity_models: Returns the mapped entities; invoked once per export run (None means no entity model)
        hierarchy: Optional hierarchy model used to order the hierarchy table
    """
    engine: Any
    schema: Optional[str] = None
    entity_models: Optional[Callable[[], Iterable[EntityModel]]] = None
    hierarchy: Optional[Any] = None


@dataclass
class ExportResult:
    """
    Results from an export run.
    
    Attributes:
        tables_discovered: Number of tables eligible for export after exclusion
        tables_exported: Names of tables that were exported
        tables_failed: Names of tables whose extraction failed
        rows_exported: Total number of elements written
        errors: Error messages for every recovered failure
        processing_time_seconds: Wall clock duration of the run
    """
    tables_discovered: int = 0
    tables_exported: List[str] = None
    tables_failed: List[str] = None
    rows_exported: int = 0
    errors: List[str] = None
    processing_time_seconds: float = 0.0
    
    def __post_init__(self):
        """Initialize default values for mutable fields."""
        if self.tables_exported is None:
            self.tables_exported = []
        if self.tables_failed is None:
            self.tables_failed = []
        if self.errors is None:
            self.errors = []
    
    @property
    def success(self) -> bool:
        """True when every discovered table was exported without error."""
        return not self.errors
