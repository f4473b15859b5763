"""
Table -> entity index and relation table resolution.

The index is built once per export run from the entity models supplied by the
domain; it is never cached across runs since the schema may change while a
long-lived process keeps running.
"""

import logging

from typing import Dict, Iterable, List, Optional, Tuple

from ..models import EntityModel, RelationColumns


logger = logging.getLogger(__name__)


class EntityIndex:
    """
    Mapping from physical table names to mapped entities.
    
    The entity -> table direction is carried by ``EntityModel.table`` itself.
    
    Table lookups are case-insensitive; the declared table casing is kept for output.
    """
    
    def __init__(self, entities: Iterable[Tuple[str, EntityModel]] = ()):
        self._by_table: Dict[str, Tuple[str, EntityModel]] = {}
        
        for table_name, entity in entities:
            previous = self._by_table.get(table_name.lower())
            if previous is not None:
                logger.warning(f"Table {table_name} mapped by both {previous[1].name} and {entity.name}; keeping {entity.name}")
            self._by_table[table_name.lower()] = (table_name, entity)
    
    @classmethod
    def from_models(cls, models: Iterable[EntityModel]) -> 'EntityIndex':
        """
        Index entity models by their declared table.
        
        Entities without a table declaration are skipped.
        """
        pairs = []
        for entity in models or ():
            if not entity.table:
                logger.debug(f"Skipping entity {entity.name}: no table declared")
                continue
            pairs.append((entity.table, entity))
        return cls(pairs)
    
    def __len__(self) -> int:
        return len(self._by_table)
    
    @property
    def entities(self) -> List[EntityModel]:
        return [entity for _, entity in self._by_table.values()]
    
    def find_by_table(self, table_name: str) -> Optional[EntityModel]:
        """Return the entity mapped on a table, ignoring case, or None."""
        entry = self._by_table.get(table_name.lower())
        return entry[1] if entry else None
    
    def exported_table_name(self, table_name: str, relation_tables: Dict[str, RelationColumns]) -> str:
        """
        Element name used for the rows of a physical table.
        
        Entity name if the table is mapped, else the declared relation table
        name if it is a relation table, else the physical name unchanged.
        """
        entity = self.find_by_table(table_name)
        if entity is not None:
            return entity.name
        return find_relation_table(relation_tables, table_name) or table_name


def find_relation_table(relation_tables: Dict[str, RelationColumns], table_name: str) -> Optional[str]:
    """Return the declared name of the relation table matching ``table_name`` (ignoring case)."""
    lowered = table_name.lower()
    return next((name for name in relation_tables if name.lower() == lowered), None)


def resolve_relation_tables(index: EntityIndex) -> Dict[str, RelationColumns]:
    """
    Derive relation tables and their join column pairs from the entity models.
    
    Element collections pair the attribute column with the collection table's
    join column; many-to-many associations pair the join table's owning and
    inverse join columns. A blank join table name is synthesized as
    ``<owningEntityName>_<targetEntityName>``. Later attributes win when two
    resolve to the same relation table.
    
    Args:
        index: Entity index of the current export run
        
    Returns:
        Dictionary with relation table names as keys
    """
    relation_tables: Dict[str, RelationColumns] = {}
    
    for entity in index.entities:
        for attribute in entity.attributes:
            if attribute.basic:
                continue
            
            if attribute.collection_table is not None:
                relation_tables[attribute.collection_table.name] = RelationColumns(
                    attribute.column_name, attribute.collection_table.join_column)
            
            join_table = attribute.join_table
            if join_table is not None:
                table_name = (join_table.name or "").strip()
                if not table_name:
                    if not attribute.target_entity:
                        logger.warning(f"Cannot name join table of {entity.name}.{attribute.name}: no target entity declared")
                        continue
                    table_name = f"{entity.name}_{attribute.target_entity}"
                relation_tables[table_name] = RelationColumns(
                    join_table.join_column, join_table.inverse_join_column)
    
    logger.debug(f"Relation tables: {sorted(relation_tables)}")
    return relation_tables
