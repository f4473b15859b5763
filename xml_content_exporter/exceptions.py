"""
Custom exceptions for the XML content exporter.

This module defines specific exception types for the error conditions that can
occur while discovering a schema, reading tables and serializing them as XML.
"""


class ContentExportError(Exception):
    """Base exception for all content export related errors."""
    
    def __init__(self, message: str, table_name: str = None):
        """
        Initialize content export error.
        
        Args:
            message: Error description
            table_name: Optional name of the table being processed when the error occurred
        """
        super().__init__(message)
        self.table_name = table_name


class ConfigurationError(ContentExportError):
    """Exception raised when configuration is invalid or missing (e.g. unknown domain)."""
    pass


class DatabaseConnectionError(ContentExportError):
    """Exception raised when a database connection cannot be acquired."""
    pass


class MetadataAccessError(ContentExportError):
    """Exception raised when schema, foreign key or primary key metadata cannot be read."""
    pass


class TableExportError(ContentExportError):
    """Exception raised when a single table cannot be queried or its rows cannot be mapped."""
    
    def __init__(self, message: str, table_name: str = None, cause: Exception = None):
        """
        Initialize table export error.
        
        Args:
            message: Error description
            table_name: Name of the table that failed
            cause: Underlying exception raised by the driver or the row mapping
        """
        super().__init__(message, table_name)
        self.cause = cause
