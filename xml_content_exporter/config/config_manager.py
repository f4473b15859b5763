"""
Centralized configuration management for the XML content exporter.

This module provides the ConfigManager class that serves as the single source of truth
for all configuration management, including the database engine, export parameters,
entity model loading and environment variable handling.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, field

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError

from ..exceptions import ConfigurationError
from ..models import (
    AttributeModel,
    CollectionTableModel,
    DomainDataSource,
    EntityModel,
    ExportSettings,
    JoinTableModel,
    DEFAULT_EXCLUDED_TABLE_PREFIXES,
    DEFAULT_HIERARCHY_ROOT_KEY,
    DEFAULT_HIERARCHY_TABLE,
    DEFAULT_TABLE_THRESHOLD,
)


ENV_PREFIX = "CONTENT_EXPORTER_"


def _env(name: str, default: Any = None) -> Any:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_flag(name: str, default: bool) -> bool:
    return str(_env(name, 'true' if default else 'false')).lower() == 'true'


@dataclass
class DatabaseConfig:
    """Database configuration with environment variable support."""
    database_url: str
    driver: str = "ODBC Driver 17 for SQL Server"
    server: str = "localhost\\SQLEXPRESS"
    database: str = "SyncopeDB"
    trusted_connection: bool = True
    connection_timeout: int = 30
    schema: Optional[str] = None
    pool_size: int = 5
    
    @classmethod
    def from_environment(cls) -> 'DatabaseConfig':
        """Create database configuration from environment variables."""
        schema = _env('DB_SCHEMA') or None
        pool_size = int(_env('DB_POOL_SIZE', cls.pool_size))
        
        # Primary database URL from environment
        database_url = _env('DATABASE_URL')
        if database_url:
            return cls(database_url=database_url, schema=schema, pool_size=pool_size)
        
        # Build an ODBC connection string from individual components
        driver = _env('DB_DRIVER', cls.driver)
        server = _env('DB_SERVER', cls.server)
        database = _env('DB_DATABASE', cls.database)
        trusted_connection = _env_flag('DB_TRUSTED_CONNECTION', True)
        connection_timeout = int(_env('DB_CONNECTION_TIMEOUT', cls.connection_timeout))
        
        odbc_connect = (
            f"DRIVER={{{driver}}};"
            f"SERVER={server};"
            f"DATABASE={database};"
        )
        if trusted_connection:
            odbc_connect += "Trusted_Connection=yes;"
        else:
            odbc_connect += f"UID={_env('DB_USERNAME', '')};PWD={_env('DB_PASSWORD', '')};"
        odbc_connect += (
            f"Connection Timeout={connection_timeout};"
            f"Application Name=XML Content Exporter;"
            f"TrustServerCertificate=yes;"
        )
        
        database_url = URL.create("mssql+pyodbc", query={"odbc_connect": odbc_connect}).render_as_string(hide_password=False)
        
        return cls(
            database_url=database_url,
            driver=driver,
            server=server,
            database=database,
            trusted_connection=trusted_connection,
            connection_timeout=connection_timeout,
            schema=schema,
            pool_size=pool_size
        )


@dataclass
class ExportParameters:
    """Export parameters with environment variable support."""
    domain: str = "Master"
    table_threshold: int = DEFAULT_TABLE_THRESHOLD
    excluded_table_prefixes: Tuple[str, ...] = DEFAULT_EXCLUDED_TABLE_PREFIXES
    hierarchy_table: str = DEFAULT_HIERARCHY_TABLE
    hierarchy_root_key: str = DEFAULT_HIERARCHY_ROOT_KEY
    
    @classmethod
    def from_environment(cls) -> 'ExportParameters':
        """Create export parameters from environment variables."""
        prefixes = _env('EXCLUDED_PREFIXES')
        if prefixes is not None:
            excluded = tuple(prefix.strip() for prefix in prefixes.split(',') if prefix.strip())
        else:
            excluded = cls.excluded_table_prefixes
        
        return cls(
            domain=_env('DOMAIN', cls.domain),
            table_threshold=int(_env('TABLE_THRESHOLD', cls.table_threshold)),
            excluded_table_prefixes=excluded,
            hierarchy_table=_env('HIERARCHY_TABLE', cls.hierarchy_table),
            hierarchy_root_key=_env('HIERARCHY_ROOT', cls.hierarchy_root_key)
        )


@dataclass
class ConfigPaths:
    """Configuration file paths with environment variable support."""
    base_config_path: Path = field(default_factory=lambda: Path.cwd())
    entity_model_path: str = "config/entity_model.json"
    
    @classmethod
    def from_environment(cls, base_path: Optional[Union[str, Path]] = None) -> 'ConfigPaths':
        """Create configuration paths from environment variables."""
        if base_path:
            base_config_path = Path(base_path)
        else:
            base_config_path = Path(_env('CONFIG_PATH', Path.cwd()))
        
        return cls(
            base_config_path=base_config_path,
            entity_model_path=_env('ENTITY_MODEL_PATH', cls.entity_model_path)
        )


class ConfigManager:
    """
    Centralized configuration manager serving as single source of truth.
    
    This class consolidates all configuration management including:
    - Database engine configuration
    - Export parameters
    - Entity model loading
    - Environment variable handling
    """
    
    def __init__(self, base_config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the centralized configuration manager.
        
        Args:
            base_config_path: Base path for configuration files. If None, uses current directory.
        """
        self.logger = logging.getLogger(__name__)
        
        # Load configuration from environment variables
        self.paths = ConfigPaths.from_environment(base_config_path)
        self.database_config = DatabaseConfig.from_environment()
        self.export_params = ExportParameters.from_environment()
        
        self.logger.info(f"ConfigManager initialized with base path: {self.paths.base_config_path}")
        self.logger.debug(f"Export domain: {self.export_params.domain}, table threshold: {self.export_params.table_threshold}")
    
    def get_export_settings(self) -> ExportSettings:
        """
        Get export settings with all parameters.
        
        Returns:
            ExportSettings object with environment-configured values
        """
        try:
            return ExportSettings(
                table_threshold=self.export_params.table_threshold,
                excluded_table_prefixes=self.export_params.excluded_table_prefixes,
                hierarchy_table=self.export_params.hierarchy_table or None,
                hierarchy_root_key=self.export_params.hierarchy_root_key
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid export settings: {e}")
    
    def create_engine(self, database_url: Optional[str] = None) -> Engine:
        """
        Create the SQLAlchemy engine (and its connection pool) for the configured database.
        
        Args:
            database_url: Optional URL overriding the configured one
        """
        url = database_url or self.database_config.database_url
        try:
            parsed = make_url(url)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {e}")
        
        options = {'pool_pre_ping': True}
        if not parsed.drivername.startswith('sqlite'):
            options['pool_size'] = self.database_config.pool_size
        
        try:
            return create_engine(parsed, **options)
        except (ArgumentError, ImportError) as e:
            raise ConfigurationError(f"Cannot create database engine for {parsed.drivername}: {e}")
    
    def load_entity_models(self, entity_model_path: Optional[str] = None) -> List[EntityModel]:
        """
        Load entity models from a JSON or YAML file.
        
        The file is read on every call so a long-lived process picks up model changes.
        
        Args:
            entity_model_path: Optional path to the entity model file. If None, uses default from configuration.
            
        Returns:
            Parsed entity models
        """
        if entity_model_path is None:
            entity_model_path = self.paths.entity_model_path
        
        full_path = self.paths.base_config_path / entity_model_path
        
        if not full_path.exists():
            raise ConfigurationError(f"Entity model file not found: {full_path}")
        
        try:
            with open(full_path, 'r', encoding='utf-8') as file:
                if full_path.suffix.lower() in ['.yaml', '.yml']:
                    import yaml
                    model_data = yaml.safe_load(file)
                elif full_path.suffix.lower() == '.json':
                    model_data = json.load(file)
                else:
                    raise ConfigurationError(f"Unsupported file format: {full_path.suffix}")
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to read entity model file {full_path}: {e}")
        
        entities = self._parse_entity_models(model_data or {}, entity_model_path)
        self.logger.info(f"Loaded {len(entities)} entity models from {entity_model_path}")
        return entities
    
    def build_domain_data_source(self, engine: Optional[Engine] = None, hierarchy=None,
                                 entity_model_path: Optional[str] = None) -> DomainDataSource:
        """
        Wire engine, schema and entity model loader into a DomainDataSource.
        
        Without an entity model file the domain is exported with raw table and column names.
        
        Args:
            engine: Optional engine; created from configuration when None
            hierarchy: Optional hierarchy model for the hierarchy table
            entity_model_path: Optional entity model file overriding the configured one
        """
        path = entity_model_path or self.paths.entity_model_path
        if (self.paths.base_config_path / path).exists():
            entity_models = lambda: self.load_entity_models(path)
        else:
            self.logger.warning(f"No entity model file at {self.paths.base_config_path / path}, exporting physical names")
            entity_models = None
        
        return DomainDataSource(
            engine=engine or self.create_engine(),
            schema=self.database_config.schema,
            entity_models=entity_models,
            hierarchy=hierarchy
        )
    
    def validate_configuration(self) -> bool:
        """
        Validate all configuration settings.
        
        Returns:
            True if all configurations are valid
            
        Raises:
            ConfigurationError: If any configuration is invalid
        """
        errors = []
        
        if not self.database_config.database_url:
            errors.append("Database URL is empty")
        
        if not self.paths.base_config_path.exists():
            errors.append(f"Base configuration path does not exist: {self.paths.base_config_path}")
        
        if not self.export_params.domain:
            errors.append("Domain must be specified")
        
        if self.database_config.pool_size <= 0:
            errors.append("Pool size must be greater than 0")
        
        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")
        
        self.logger.info("Configuration validation passed")
        return True
    
    def get_configuration_summary(self) -> Dict[str, Any]:
        """
        Get a summary of all configuration settings.
        
        Returns:
            Dictionary containing configuration summary
        """
        return {
            'database': {
                'url': make_url(self.database_config.database_url).render_as_string(hide_password=True),
                'schema': self.database_config.schema,
                'pool_size': self.database_config.pool_size
            },
            'export': {
                'domain': self.export_params.domain,
                'table_threshold': self.export_params.table_threshold,
                'excluded_table_prefixes': list(self.export_params.excluded_table_prefixes),
                'hierarchy_table': self.export_params.hierarchy_table,
                'hierarchy_root_key': self.export_params.hierarchy_root_key
            },
            'paths': {
                'base_config_path': str(self.paths.base_config_path),
                'entity_model_path': self.paths.entity_model_path
            }
        }
    
    def reload_configuration(self) -> None:
        """Reload configuration from environment variables."""
        self.database_config = DatabaseConfig.from_environment()
        self.export_params = ExportParameters.from_environment()
        
        self.logger.info("Configuration reloaded from environment variables")
    
    def _parse_entity_models(self, model_data: Dict[str, Any], model_path: str) -> List[EntityModel]:
        """
        Parse entity model data into EntityModel objects.
        
        Args:
            model_data: Raw model data from JSON/YAML
            model_path: Path to model file (for error reporting)
            
        Raises:
            ConfigurationError: If the model structure is invalid
        """
        try:
            entities = []
            for entity_data in model_data.get('entities', []):
                attributes = []
                for attribute_data in entity_data.get('attributes', []):
                    collection_table = None
                    collection_data = attribute_data.get('collection_table')
                    if collection_data:
                        collection_table = CollectionTableModel(
                            name=collection_data.get('name', ''),
                            join_column=collection_data.get('join_column', '')
                        )
                    
                    join_table = None
                    join_data = attribute_data.get('join_table')
                    if join_data is not None:
                        join_table = JoinTableModel(
                            join_column=join_data.get('join_column', ''),
                            inverse_join_column=join_data.get('inverse_join_column', ''),
                            name=join_data.get('name')
                        )
                    
                    attributes.append(AttributeModel(
                        name=attribute_data.get('name', ''),
                        column=attribute_data.get('column'),
                        basic=attribute_data.get('basic', collection_table is None and join_table is None),
                        collection_table=collection_table,
                        join_table=join_table,
                        target_entity=attribute_data.get('target_entity')
                    ))
                
                entities.append(EntityModel(
                    name=entity_data.get('name', ''),
                    table=entity_data.get('table'),
                    attributes=attributes
                ))
            return entities
            
        except (ValueError, AttributeError, TypeError) as e:
            raise ConfigurationError(f"Failed to parse entity model from {model_path}: {e}")


# Global configuration manager instance
_global_config_manager: Optional[ConfigManager] = None


def get_config_manager(base_config_path: Optional[Union[str, Path]] = None) -> ConfigManager:
    """
    Get the global configuration manager instance.
    
    Args:
        base_config_path: Base path for configuration files. Only used on first call.
        
    Returns:
        Global ConfigManager instance
    """
    global _global_config_manager
    
    if _global_config_manager is None:
        _global_config_manager = ConfigManager(base_config_path)
    
    return _global_config_manager


def reset_config_manager() -> None:
    """Reset the global configuration manager instance."""
    global _global_config_manager
    _global_config_manager = None
