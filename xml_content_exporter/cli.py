"""
Command-line interface for the XML content exporter.

This module provides the main entry point for exporting a database's content
as XML from the command line with centralized configuration management.
"""

import argparse
import logging
import sys

from typing import Optional

from .config.config_manager import get_config_manager
from .exceptions import ConfigurationError, DatabaseConnectionError
from .processing.content_exporter import XMLContentExporter


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser of the ``xml_content_exporter`` command."""
    parser = argparse.ArgumentParser(
        prog="xml_content_exporter",
        description="Export the content of a relational schema as a single XML document."
    )
    parser.add_argument("--output", "-o", help="Output file (default: standard output)")
    parser.add_argument("--domain", help="Logical domain to export (default from configuration)")
    parser.add_argument("--threshold", type=int, help="Maximum number of rows exported per table")
    parser.add_argument("--database-url", help="SQLAlchemy database URL overriding the configuration")
    parser.add_argument("--schema", help="Database schema to export")
    parser.add_argument("--entity-model", help="Entity model file (JSON or YAML)")
    parser.add_argument("--config-path", help="Base path for configuration files")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
                        help="Logging level (default: WARNING)")
    return parser


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the CLI application.
    
    Args:
        args: Optional command line arguments (defaults to sys.argv)
        
    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args is None:
        args = sys.argv[1:]
    options = build_parser().parse_args(args)
    
    # Set up logging without reconfiguring root if already configured
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, options.log_level))
    logger = logging.getLogger(__name__)
    
    try:
        config_manager = get_config_manager(options.config_path)
        if options.schema:
            config_manager.database_config.schema = options.schema
        config_manager.validate_configuration()
        
        settings = config_manager.get_export_settings()
        domain = options.domain or config_manager.export_params.domain
        engine = config_manager.create_engine(options.database_url)
        data_source = config_manager.build_domain_data_source(engine, entity_model_path=options.entity_model)
        
        exporter = XMLContentExporter({domain: data_source}, settings)
        try:
            if options.output:
                with open(options.output, 'wb') as output:
                    result = exporter.export(domain, options.threshold, output)
            else:
                result = exporter.export(domain, options.threshold, sys.stdout.buffer)
                sys.stdout.buffer.flush()
        finally:
            engine.dispose()
        
        logger.info(f"Tables exported: {len(result.tables_exported)}/{result.tables_discovered}, rows: {result.rows_exported}")
        for error in result.errors:
            logger.warning(f"Not exported: {error}")
        return 0
        
    except (ConfigurationError, DatabaseConnectionError) as e:
        logger.error(f"Export failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
