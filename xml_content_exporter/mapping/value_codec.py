"""
Type-driven conversion of raw column values into their exported text form.

The conversion is chosen from the Python type behind the column's declared
SQL type (a SQLAlchemy ``TypeEngine`` reflected from the catalog), falling back
to the type of the value itself for types SQLAlchemy cannot map:

- binary (``bytes``, ``bytearray``, ``memoryview``): uppercase hexadecimal
- ``bool``: ``"1"`` or ``"0"``; SQL NULL is exported as ``"0"``
- ``datetime``/``date``/``time``: ISO-8601 offset date-time in the local time zone
- anything else: ``str(value)``

``None`` is returned for "absent": the column contributes no attribute.
"""

import logging

from datetime import date, datetime, time
from typing import Any, Optional, Tuple, Type

from sqlalchemy.exc import DBAPIError
from sqlalchemy.types import NullType, TypeEngine


BINARY_TYPES = (bytes, bytearray, memoryview)
TEMPORAL_TYPES = (datetime, date, time)

_EPOCH_DATE = date(1970, 1, 1)


def python_type_of(column_type: Any, value: Any = None) -> type:
    """
    Python type behind a column type.
    
    Untyped and unmappable columns (``NullType``, or a type resolving to
    ``object``) are classified by the value read from them.
    
    Args:
        column_type: SQLAlchemy type (class or instance), a Python type, or None
        value: Value read from the column, used when the column type says nothing
    """
    if isinstance(column_type, type) and issubclass(column_type, TypeEngine):
        column_type = column_type()
    if isinstance(column_type, NullType):
        return type(value)
    if isinstance(column_type, TypeEngine):
        try:
            column_type = column_type.python_type
        except NotImplementedError:
            return type(value)
    if isinstance(column_type, type) and column_type is not object:
        return column_type
    return type(value)


class ValueCodec:
    """Converts single column values according to their declared type."""
    
    def __init__(self, stream_errors: Tuple[Type[BaseException], ...] = ()):
        """
        Initialize the codec.
        
        Args:
            stream_errors: Driver exception types raised while reading a LOB stream,
                recovered like OSError (the value becomes absent)
        """
        self.logger = logging.getLogger(__name__)
        self.stream_errors = (OSError, DBAPIError) + tuple(stream_errors)
    
    def encode(self, column_name: str, column_type: Any, value: Any) -> Optional[str]:
        """
        Convert a raw column value into its textual representation.
        
        Args:
            column_name: Column name, used for error reporting only
            column_type: Declared type of the column (see python_type_of)
            value: Raw value read from the current row (or a readable LOB/stream)
            
        Returns:
            Text value, or None when there is nothing to export
        """
        value_type = python_type_of(column_type, value)
        
        if issubclass(value_type, bool):
            return "1" if value else "0"
        if issubclass(value_type, BINARY_TYPES):
            return self._encode_binary(column_name, value)
        if issubclass(value_type, TEMPORAL_TYPES):
            return self._encode_temporal(value)
        
        if value is None:
            return None
        return str(value)
    
    def _encode_binary(self, column_name: str, value: Any) -> Optional[str]:
        if value is None:
            return None
        
        if hasattr(value, 'read'):
            try:
                value = value.read()
            except self.stream_errors as e:
                self.logger.error(f"Error fetching value from {column_name}: {e}", exc_info=True)
                return None
            if value is None:
                return None
        
        if isinstance(value, str):
            value = value.encode('utf-8')
        return bytes(value).hex().upper()
    
    def _encode_temporal(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        
        if isinstance(value, datetime):
            instant = value
        elif isinstance(value, date):
            instant = datetime.combine(value, time())
        elif isinstance(value, time):
            instant = datetime.combine(_EPOCH_DATE, value)
        else:
            return str(value)
        
        # naive values are wall-clock times of the local system zone
        return instant.astimezone().isoformat()
