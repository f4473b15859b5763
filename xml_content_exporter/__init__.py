"""
XML Content Exporter

Exports the content of a live relational schema as a single, streamed XML
document: tables are discovered from the catalog, ordered by their foreign keys
and written row by row with values and column names translated through the
entity model.
"""

__version__ = "1.0.0"

# Import core models and interfaces for easy access
from .models import (
    AttributeModel,
    CollectionTableModel,
    JoinTableModel,
    EntityModel,
    RelationColumns,
    DomainDataSource,
    ExportSettings,
    ExportResult
)

from .interfaces import (
    HierarchyModelInterface,
    ContentExporterInterface
)

from .exceptions import (
    ContentExportError,
    ConfigurationError,
    DatabaseConnectionError,
    MetadataAccessError,
    TableExportError
)

from .processing.content_exporter import XMLContentExporter

__all__ = [
    # Core models
    "AttributeModel",
    "CollectionTableModel",
    "JoinTableModel",
    "EntityModel",
    "RelationColumns",
    "DomainDataSource",
    "ExportSettings",
    "ExportResult",
    
    # Interfaces
    "HierarchyModelInterface",
    "ContentExporterInterface",
    
    # Exceptions
    "ContentExportError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "MetadataAccessError",
    "TableExportError",
    
    # Exporter
    "XMLContentExporter"
]
