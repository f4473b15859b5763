"""
End-to-end export of a file-backed SQLite identity store.

Tests verify the complete document produced by XMLContentExporter:
- Scheduler and audit tables are never exported
- Referenced tables precede the tables referencing them
- Hierarchy table rows follow the hierarchy model
- Logical names for entities, foreign keys and relation tables
- Per-table row threshold
- Recovery from table and metadata failures
"""

import io

from datetime import datetime
from unittest.mock import patch

import pytest

from lxml import etree
from sqlalchemy import create_engine

from xml_content_exporter import XMLContentExporter
from xml_content_exporter.database.catalog import DatabaseCatalog
from xml_content_exporter.exceptions import ConfigurationError, DatabaseConnectionError, MetadataAccessError
from xml_content_exporter.models import DomainDataSource, ExportSettings


@pytest.fixture
def exporter(identity_data_source):
    return XMLContentExporter({"Master": identity_data_source})


def export_document(exporter, domain="Master", threshold=100):
    output = io.BytesIO()
    result = exporter.export(domain, threshold, output)
    return etree.fromstring(output.getvalue()), result


def first_index(root, tag):
    return next(index for index, child in enumerate(root) if child.tag == tag)


class TestIdentityStoreExport:
    """Test the exported identity store document."""
    
    def test_document_content(self, exporter):
        root, result = export_document(exporter)
        
        assert root.tag == "dataset"
        assert sorted(child.tag for child in root) == sorted([
            "Realm", "Realm", "Realm",
            "Role",
            "SyncopeRole_entitlements",
            "SyncopeUser_SyncopeRole",
            "User", "User",
        ])
        assert result.success
        assert result.tables_discovered == 5
        assert result.rows_exported == 8
    
    def test_excluded_tables_are_absent(self, exporter):
        root, result = export_document(exporter)
        
        tags = {child.tag for child in root}
        assert "QRTZ_TRIGGERS" not in tags
        assert "AuditEntry" not in tags
        assert "QRTZ_TRIGGERS" not in result.tables_exported
    
    def test_referenced_tables_come_first(self, exporter):
        root, _ = export_document(exporter)
        
        assert first_index(root, "Realm") < first_index(root, "User")
        assert first_index(root, "Role") < first_index(root, "SyncopeRole_entitlements")
        assert first_index(root, "User") < first_index(root, "SyncopeUser_SyncopeRole")
        assert first_index(root, "Role") < first_index(root, "SyncopeUser_SyncopeRole")
    
    def test_realms_follow_hierarchy(self, exporter, hierarchy):
        root, _ = export_document(exporter)
        
        assert [realm.get("id") for realm in root.iter("Realm")] == ["r3", "r1", "r2"]
        assert hierarchy.requested_roots == ["/"]
    
    def test_row_attributes(self, exporter):
        root, _ = export_document(exporter)
        
        users = {user.get("id"): dict(user.attrib) for user in root.iter("User")}
        assert users["u1"] == {
            "id": "u1",
            "username": "rossini",
            "realm_id": "r2",
            "suspended": "1",
            "creationDate": datetime(2024, 3, 1, 10, 15, 30).astimezone().isoformat(),
            "password_hash": "DEADBEEF",
        }
        assert users["u2"] == {"id": "u2", "username": "verdi", "realm_id": "r3", "suspended": "0"}
        
        root_realm = next(realm for realm in root.iter("Realm") if realm.get("id") == "r1")
        assert "parent_id" not in root_realm.attrib
    
    def test_relation_tables(self, exporter):
        root, _ = export_document(exporter)
        
        assert dict(root.find("SyncopeUser_SyncopeRole").attrib) == {"user_id": "u1", "role_id": "admin"}
        assert dict(root.find("SyncopeRole_entitlements").attrib) == {"role_id": "admin", "entitlements": "USER_READ"}
    
    def test_without_entity_models(self, identity_engine):
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=identity_engine)},
                                      ExportSettings(hierarchy_table=None))
        
        root, _ = export_document(exporter)
        
        user = root.find("SyncopeUser")
        assert user.get("USERNAME") == "rossini"
        assert user.get("REALM_ID") == "r2"
        assert [realm.get("id") for realm in root.iter("Realm")] == ["r1", "r2", "r3"]
    
    def test_schema_scoped_export(self, identity_engine, hierarchy):
        data_source = DomainDataSource(engine=identity_engine, schema="main", hierarchy=hierarchy)
        exporter = XMLContentExporter({"Master": data_source})
        
        root, result = export_document(exporter)
        
        assert result.success
        assert len(root) == 8
    
    def test_repeated_exports_are_identical(self, exporter):
        assert exporter.export_to_bytes("Master", 100) == exporter.export_to_bytes("Master", 100)


class TestThreshold:
    """Test the per-table row cap."""
    
    @pytest.fixture
    def item_engine(self, engine, run_sql):
        run_sql("CREATE TABLE Item (id INTEGER PRIMARY KEY, label VARCHAR(20))",
                *[f"INSERT INTO Item (id, label) VALUES ({n}, 'item {n}')" for n in range(150, 0, -1)])
        return engine
    
    def test_threshold_caps_each_table_in_key_order(self, item_engine):
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=item_engine)})
        
        root, result = export_document(exporter, threshold=100)
        
        assert len(root) == 100
        assert [int(item.get("id")) for item in root] == list(range(1, 101))
        assert result.rows_exported == 100
    
    def test_non_positive_threshold_exports_everything(self, item_engine):
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=item_engine)})
        
        root, _ = export_document(exporter, threshold=0)
        
        assert len(root) == 150


class TestFailures:
    """Test failure recovery on a real database."""
    
    def test_unserializable_table_is_skipped(self, engine, run_sql):
        run_sql('CREATE TABLE Broken ("bad column" VARCHAR(10))',
                "INSERT INTO Broken VALUES ('x')",
                "CREATE TABLE Healthy (id INTEGER PRIMARY KEY)",
                "INSERT INTO Healthy (id) VALUES (1)")
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=engine)})
        
        root, result = export_document(exporter)
        
        assert [child.tag for child in root] == ["Healthy"]
        assert result.tables_failed == ["Broken"]
        assert result.tables_exported == ["Healthy"]
    
    def test_connection_failure_writes_nothing(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'content.db'}")
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=engine)})
        output = io.BytesIO()
        
        try:
            with pytest.raises(DatabaseConnectionError):
                exporter.export("Master", 100, output)
        finally:
            engine.dispose()
        
        assert output.getvalue() == b""
    
    def test_foreign_key_metadata_failure(self, exporter):
        failure = MetadataAccessError("Failed to read catalog metadata for table Realm", "Realm")
        
        with patch.object(DatabaseCatalog, 'imported_tables', side_effect=failure):
            root, result = export_document(exporter)
        
        assert root.tag == "dataset"
        assert len(root) == 0
        assert result.tables_discovered == 5
        assert result.errors == [str(failure)]
    
    def test_control_character_fails_only_its_table(self, engine, run_sql):
        run_sql("CREATE TABLE Note (id INTEGER PRIMARY KEY, body VARCHAR(20))",
                "INSERT INTO Note (id, body) VALUES (1, 'ok')",
                "INSERT INTO Note (id, body) VALUES (2, 'bad' || char(1))",
                "CREATE TABLE Tag (id INTEGER PRIMARY KEY)",
                "INSERT INTO Tag (id) VALUES (1)")
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=engine)})
        
        root, result = export_document(exporter)
        
        assert [child.tag for child in root] == ["Tag"]
        assert result.tables_failed == ["Note"]
        assert "column body of table Note" in result.errors[0]
    
    def test_entity_model_failure_writes_nothing(self, identity_engine):
        def failing_models():
            raise ConfigurationError("Entity model file not found: config/entity_model.json")
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=identity_engine, entity_models=failing_models)})
        output = io.BytesIO()
        
        with pytest.raises(ConfigurationError):
            exporter.export("Master", 100, output)
        
        assert output.getvalue() == b""


class TestUntypedColumns:
    """Columns declared without a type are converted by their stored value."""
    
    def test_untyped_blob_is_exported_as_hex(self, engine, run_sql):
        run_sql("CREATE TABLE Attachment (id INTEGER PRIMARY KEY, payload)",
                "INSERT INTO Attachment (id, payload) VALUES (1, X'DEADBEEF')",
                "INSERT INTO Attachment (id, payload) VALUES (2, 'text')",
                "INSERT INTO Attachment (id, payload) VALUES (3, NULL)")
        exporter = XMLContentExporter({"Master": DomainDataSource(engine=engine)})
        
        root, _ = export_document(exporter)
        
        assert [dict(child.attrib) for child in root] == [
            {"id": "1", "payload": "DEADBEEF"},
            {"id": "2", "payload": "text"},
            {"id": "3"},
        ]
