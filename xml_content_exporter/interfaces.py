"""
Abstract interfaces for the XML content exporter.

This module defines the contracts of the exporter and of the external
collaborators it relies on, so that they can be injected and mocked.
"""

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Iterable

from .models import ExportResult


class HierarchyModelInterface(ABC):
    """Abstract interface for the hierarchical model backing the hierarchy table."""
    
    @abstractmethod
    def find_descendants(self, root_key: str) -> Iterable[Any]:
        """
        List the descendants of a root node in hierarchical order.
        
        Args:
            root_key: Identifier of the root node
            
        Returns:
            Nodes in display order; each node exposes a ``key`` attribute
            matching the ``id`` column of the hierarchy table
        """
        pass


class ContentExporterInterface(ABC):
    """Abstract interface for database content exporters."""
    
    @abstractmethod
    def export(self, domain: str, table_threshold: int, output: BinaryIO) -> ExportResult:
        """
        Export the content of a domain's datastore as a single XML document.
        
        Args:
            domain: Logical domain identifier
            table_threshold: Maximum number of rows exported per table
            output: Binary sink receiving the UTF-8 encoded document
            
        Returns:
            ExportResult summarizing exported and failed tables
            
        Raises:
            ConfigurationError: If no datastore is registered for the domain
            DatabaseConnectionError: If no connection can be acquired
        """
        pass
