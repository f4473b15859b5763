"""
Resolution of physical column names to the logical names declared by the entity model.

Foreign key columns are reported differently by each driver and dialect
(``MANAGER_ID``, ``manager_id``, ``Manager_Id``...). They are normalized to the
name of the logical association followed by a lowercase ``_id`` suffix, which
keeps the exported XML independent of the database that produced it.
"""

from typing import Iterable, Optional

from ..models import AttributeModel


FOREIGN_KEY_SUFFIX = "_id"


def _match_attribute(attributes: Iterable[AttributeModel], column_name: str) -> Optional[str]:
    lowered = column_name.lower()
    for attribute in attributes:
        if attribute.name.lower() == lowered:
            return attribute.name
        if attribute.column and attribute.column.lower() == lowered:
            return attribute.column
    return None


def resolve_column_name(attributes: Iterable[AttributeModel], column_name: str) -> str:
    """
    Return the logical name under which a column is exported.
    
    Args:
        attributes: Declared attributes of the mapped entity (any iterable, consumed once)
        column_name: Physical column name as reported by the driver
        
    Returns:
        Matching attribute name (or its explicit column override), else the raw
        column name; names ending in ``_ID`` are rewritten as ``<association>_id``
    """
    attributes = list(attributes)
    name = _match_attribute(attributes, column_name) or column_name
    
    if name.lower().endswith(FOREIGN_KEY_SUFFIX):
        left = name.split("_", 1)[0]
        prefix = next(
            (attribute.name for attribute in attributes if attribute.name.lower() == left.lower()),
            left)
        name = prefix + FOREIGN_KEY_SUFFIX
    
    return name
