"""
XML Content Exporter - streams the content of a relational schema as one XML document.

Pipeline:
1. Resolve the domain's datastore (unknown domain is a ConfigurationError)
2. Discover base tables, dropping excluded prefixes (scheduler tables, audit log)
3. Index the mapped entities and derive the relation tables
4. Sort tables by foreign keys so referenced rows come first
5. Extract each table and write one attribute-only element per row

A failing table is logged and contributes no element; the document stays
well-formed. Output is written incrementally with lxml's ``xmlfile`` so at most
one table's rows are held in memory.
"""

import io
import logging
import time

from typing import BinaryIO, Dict, List, Optional, Tuple

from lxml import etree

from ..database.catalog import DatabaseCatalog, managed_connection
from ..database.dependency_sorter import sort_by_foreign_keys
from ..database.table_extractor import TableRowExtractor
from ..exceptions import ConfigurationError, DatabaseConnectionError, MetadataAccessError, TableExportError
from ..interfaces import ContentExporterInterface
from ..mapping.entity_index import EntityIndex, resolve_relation_tables
from ..mapping.value_codec import ValueCodec
from ..models import DomainDataSource, ExportResult, ExportSettings, RelationColumns


ROW_INDENT = "\n  "


class XMLContentExporter(ContentExporterInterface):
    """
    Exports every allowed table of a domain's schema as XML.
    
    The document root is ``settings.root_element``; each row becomes a child
    element named after its table's exported name, with one attribute per
    column value.
    """
    
    def __init__(self, domains: Dict[str, DomainDataSource], settings: Optional[ExportSettings] = None,
                 codec: Optional[ValueCodec] = None):
        """
        Initialize the exporter.
        
        Args:
            domains: Datastores by logical domain identifier
            settings: Export settings; defaults when None
            codec: Value codec shared by all tables; None lets each engine use its driver-aware default
        """
        self.logger = logging.getLogger(__name__)
        self.domains = domains
        self.settings = settings or ExportSettings()
        self.codec = codec
    
    def get_data_source(self, domain: str) -> DomainDataSource:
        """
        Return the datastore registered for a domain.
        
        Raises:
            ConfigurationError: If no datastore is registered for the domain
        """
        data_source = self.domains.get(domain)
        if data_source is None:
            raise ConfigurationError(f"Could not find DataSource for domain {domain}")
        return data_source
    
    def discover_tables(self, catalog: DatabaseCatalog) -> List[str]:
        """
        Base tables eligible for export, sorted and de-duplicated ignoring case.
        
        Raises:
            MetadataAccessError: If the table listing cannot be read
        """
        table_names: Dict[str, str] = {}
        for table_name in catalog.list_tables():
            self.logger.debug(f"Found table {table_name}")
            if self.settings.is_table_allowed(table_name):
                table_names.setdefault(table_name.lower(), table_name)
        
        discovered = [table_names[key] for key in sorted(table_names)]
        self.logger.debug(f"Tables to be exported {discovered}")
        return discovered
    
    def export(self, domain: str, table_threshold: Optional[int] = None,
               output: BinaryIO = None) -> ExportResult:
        """
        Export a domain's datastore content.
        
        Args:
            domain: Logical domain identifier
            table_threshold: Maximum rows per table; settings default when None
            output: Binary file object or path receiving the document
            
        Returns:
            ExportResult summarizing the run
            
        Raises:
            ConfigurationError: If the domain is unknown or its entity models cannot be loaded (nothing written)
            DatabaseConnectionError: If no connection can be acquired (nothing written)
        """
        if output is None:
            raise ValueError("output cannot be None")
        
        start_time = time.time()
        data_source = self.get_data_source(domain)
        threshold = self.settings.table_threshold if table_threshold is None else table_threshold
        entities, relation_tables = self._load_entities(domain, data_source)
        result = ExportResult()
        
        try:
            with managed_connection(data_source.engine) as connection:
                with etree.xmlfile(output, encoding='utf-8') as xf:
                    xf.write_declaration()
                    with xf.element(self.settings.root_element):
                        try:
                            self._export_tables(xf, connection, data_source, threshold,
                                                entities, relation_tables, result)
                        except MetadataAccessError as e:
                            self.logger.error(f"While exporting database content: {e}", exc_info=True)
                            result.errors.append(str(e))
                        xf.write("\n")
        except DatabaseConnectionError as e:
            self.logger.error(f"While exporting database content of domain {domain}: {e}")
            raise
        
        result.processing_time_seconds = time.time() - start_time
        self.logger.info(
            f"Exported {result.rows_exported} rows from {len(result.tables_exported)} tables "
            f"of domain {domain} ({len(result.tables_failed)} failed) "
            f"in {result.processing_time_seconds:.2f}s")
        return result
    
    def export_to_bytes(self, domain: str, table_threshold: Optional[int] = None) -> bytes:
        """Export a domain's datastore content and return the encoded document."""
        buffer = io.BytesIO()
        self.export(domain, table_threshold, buffer)
        return buffer.getvalue()
    
    def _load_entities(self, domain: str, data_source: DomainDataSource
                       ) -> Tuple[EntityIndex, Dict[str, RelationColumns]]:
        """
        Index the domain's entity models and derive its relation tables.
        
        Raises:
            ConfigurationError: If the entity models cannot be loaded or are invalid
        """
        try:
            entity_models = data_source.entity_models() if data_source.entity_models else []
            entities = EntityIndex.from_models(entity_models)
        except ConfigurationError as e:
            self.logger.error(f"Could not load entity models of domain {domain}: {e}")
            raise
        except (TypeError, ValueError, AttributeError) as e:
            self.logger.error(f"Invalid entity models for domain {domain}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid entity models for domain {domain}: {e}") from e
        
        return entities, resolve_relation_tables(entities)
    
    def _build_element(self, table_name: str, exported_name: str, row: Dict[str, str]):
        """
        One attribute-only element for a row.
        
        Raises:
            TableExportError: If the element name, a column name or a value is not valid XML
        """
        try:
            element = etree.Element(exported_name)
        except ValueError as e:
            raise TableExportError(f"Invalid element name {exported_name} for table {table_name}: {e}", table_name, e) from e
        
        for name, value in row.items():
            try:
                element.set(name, value)
            except ValueError as e:
                raise TableExportError(f"Cannot write column {name} of table {table_name}: {e}", table_name, e) from e
        return element
    
    def _export_tables(self, xf, connection, data_source: DomainDataSource, threshold: int,
                       entities: EntityIndex, relation_tables: Dict[str, RelationColumns],
                       result: ExportResult) -> None:
        catalog = DatabaseCatalog(connection, data_source.schema)
        table_names = self.discover_tables(catalog)
        result.tables_discovered = len(table_names)
        
        extractor = TableRowExtractor(
            data_source.engine,
            schema=data_source.schema,
            codec=self.codec,
            hierarchy=data_source.hierarchy,
            hierarchy_table=self.settings.hierarchy_table,
            hierarchy_root_key=self.settings.hierarchy_root_key)
        
        for table_name in sort_by_foreign_keys(catalog, table_names):
            try:
                extracted = extractor.extract(table_name, threshold, entities, relation_tables)
                elements = [self._build_element(table_name, extracted.exported_name, row)
                            for row in extracted.rows]
            except Exception as e:
                self.logger.error(f"Failure exporting table {table_name}: {e}", exc_info=True)
                result.tables_failed.append(table_name)
                result.errors.append(f"{table_name}: {e}")
                continue
            
            for element in elements:
                xf.write(ROW_INDENT)
                xf.write(element)
            xf.flush()
            
            result.tables_exported.append(table_name)
            result.rows_exported += len(elements)
