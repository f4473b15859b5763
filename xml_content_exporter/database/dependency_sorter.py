"""
Foreign key driven ordering of tables.

Tables are nodes of a multi-parent graph where every referenced table is a
parent of each table holding a foreign key into it. The export order is the
reverse post-order of a depth-first traversal starting from the roots, so a
referenced table always comes before the tables referencing it.
"""

import logging

from typing import Dict, Iterable, List


logger = logging.getLogger(__name__)

_UNVISITED = 0
_IN_PROGRESS = 1
_DONE = 2


class DependencyGraph:
    """
    Adjacency-list graph of table dependencies.
    
    Table names are matched ignoring case; the casing of the first occurrence is kept.
    """
    
    def __init__(self):
        self._ids: Dict[str, int] = {}
        self._names: List[str] = []
        self._children: List[Dict[int, None]] = []
        self._has_parent: List[bool] = []
    
    def __len__(self) -> int:
        return len(self._names)
    
    def __contains__(self, table_name: str) -> bool:
        return table_name.lower() in self._ids
    
    def add_table(self, table_name: str) -> int:
        """Materialize the node of a table (once) and return its id."""
        key = table_name.lower()
        node_id = self._ids.get(key)
        if node_id is None:
            node_id = len(self._names)
            self._ids[key] = node_id
            self._names.append(table_name)
            self._children.append({})
            self._has_parent.append(False)
        return node_id
    
    def add_dependency(self, referenced: str, referencing: str) -> None:
        """
        Record that ``referencing`` holds a foreign key into ``referenced``.
        
        Self references are ignored.
        """
        parent = self.add_table(referenced)
        child = self.add_table(referencing)
        if parent == child:
            return
        self._children[parent][child] = None
        self._has_parent[child] = True
    
    @property
    def roots(self) -> List[str]:
        """Tables no other table depends upon being defined first."""
        return [name for node_id, name in enumerate(self._names) if not self._has_parent[node_id]]
    
    def children(self, table_name: str) -> List[str]:
        node_id = self._ids[table_name.lower()]
        return [self._names[child] for child in self._children[node_id]]
    
    def topological_order(self) -> List[str]:
        """
        Every table once, referenced tables before referencing ones.
        
        Traversal starts from the roots; nodes only reachable through a cycle
        are traversed afterwards. Edges leading back to a node on the current
        path are skipped, so cycles and self references terminate.
        """
        state = [_UNVISITED] * len(self._names)
        post_order: List[int] = []
        
        start_nodes = [node_id for node_id in range(len(self._names)) if not self._has_parent[node_id]]
        start_nodes += [node_id for node_id in range(len(self._names)) if self._has_parent[node_id]]
        
        for start in start_nodes:
            if state[start] != _UNVISITED:
                continue
            
            state[start] = _IN_PROGRESS
            stack = [(start, iter(self._children[start]))]
            while stack:
                node_id, pending = stack[-1]
                for child in pending:
                    if state[child] == _UNVISITED:
                        state[child] = _IN_PROGRESS
                        stack.append((child, iter(self._children[child])))
                        break
                    if state[child] == _IN_PROGRESS:
                        logger.debug(f"Foreign key cycle between {self._names[node_id]} and {self._names[child]}")
                else:
                    stack.pop()
                    state[node_id] = _DONE
                    post_order.append(node_id)
        
        post_order.reverse()
        return [self._names[node_id] for node_id in post_order]


def sort_by_foreign_keys(catalog, table_names: Iterable[str]) -> List[str]:
    """
    Order tables so that referenced tables precede the tables referencing them.
    
    Args:
        catalog: Object exposing ``imported_tables(table_name)`` (see DatabaseCatalog)
        table_names: Candidate tables
        
    Returns:
        Exactly the candidate tables (with their original casing), each once
        
    Raises:
        MetadataAccessError: If the foreign keys of any table cannot be read;
            no partial order is returned
    """
    candidates: Dict[str, str] = {}
    for table_name in table_names:
        candidates.setdefault(table_name.lower(), table_name)
    
    graph = DependencyGraph()
    imports: Dict[str, List[str]] = {}
    
    # nodes first, edges second
    for table_name in candidates.values():
        graph.add_table(table_name)
        imports[table_name] = [
            referenced for referenced in catalog.imported_tables(table_name)
            if referenced.lower() != table_name.lower()
        ]
        for referenced in imports[table_name]:
            graph.add_table(referenced)
    
    for table_name, referenced_tables in imports.items():
        for referenced in referenced_tables:
            graph.add_dependency(referenced, table_name)
    
    sorted_names = [
        candidates[table_name.lower()]
        for table_name in graph.topological_order()
        if table_name.lower() in candidates
    ]
    
    logger.debug(f"Tables after sorting {sorted_names}")
    return sorted_names
