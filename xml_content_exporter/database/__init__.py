"""Datastore access components: catalog metadata, dependency ordering and row extraction."""

from .catalog import DatabaseCatalog, managed_connection
from .dependency_sorter import DependencyGraph, sort_by_foreign_keys
from .table_extractor import ExtractedTable, TableRowExtractor

__all__ = ['DatabaseCatalog', 'managed_connection', 'DependencyGraph', 'sort_by_foreign_keys', 'ExtractedTable', 'TableRowExtractor']
