"""
Shared fixtures: a file-backed SQLite database shaped like an identity store.

The schema covers every case the exporter special-cases: a self-referencing
hierarchy table, entity tables with foreign keys, a join table, a collection
table, and the scheduler/audit tables that must never be exported.
"""

from types import SimpleNamespace

import pytest

from sqlalchemy import create_engine

from xml_content_exporter.interfaces import HierarchyModelInterface
from xml_content_exporter.models import (
    AttributeModel,
    CollectionTableModel,
    DomainDataSource,
    EntityModel,
    JoinTableModel,
)


SCHEMA_STATEMENTS = [
    "CREATE TABLE Realm (id VARCHAR(36) PRIMARY KEY, name VARCHAR(255), PARENT_ID VARCHAR(36) REFERENCES Realm(id))",
    "CREATE TABLE SyncopeRole (id VARCHAR(36) PRIMARY KEY)",
    "CREATE TABLE SyncopeUser (id VARCHAR(36) PRIMARY KEY, USERNAME VARCHAR(255), "
    "REALM_ID VARCHAR(36) REFERENCES Realm(id), suspended BOOLEAN, creationDate DATETIME, password_hash BLOB)",
    "CREATE TABLE SyncopeUser_SyncopeRole (USER_ID VARCHAR(36) REFERENCES SyncopeUser(id), "
    "ROLE_ID VARCHAR(36) REFERENCES SyncopeRole(id), PRIMARY KEY (USER_ID, ROLE_ID))",
    "CREATE TABLE SyncopeRole_entitlements (ROLE_ID VARCHAR(36) REFERENCES SyncopeRole(id), ENTITLEMENTS VARCHAR(255))",
    "CREATE TABLE QRTZ_TRIGGERS (TRIGGER_NAME VARCHAR(200) PRIMARY KEY)",
    "CREATE TABLE AuditEntry (id INTEGER PRIMARY KEY, message VARCHAR(255))",
]

DATA_STATEMENTS = [
    "INSERT INTO Realm (id, name, PARENT_ID) VALUES ('r2', 'even', 'r1')",
    "INSERT INTO Realm (id, name, PARENT_ID) VALUES ('r1', '/', NULL)",
    "INSERT INTO Realm (id, name, PARENT_ID) VALUES ('r3', 'odd', 'r1')",
    "INSERT INTO SyncopeRole (id) VALUES ('admin')",
    "INSERT INTO SyncopeUser (id, USERNAME, REALM_ID, suspended, creationDate, password_hash) "
    "VALUES ('u1', 'rossini', 'r2', 1, '2024-03-01 10:15:30.000000', X'DEADBEEF')",
    "INSERT INTO SyncopeUser (id, USERNAME, REALM_ID, suspended, creationDate, password_hash) "
    "VALUES ('u2', 'verdi', 'r3', NULL, NULL, NULL)",
    "INSERT INTO SyncopeUser_SyncopeRole (USER_ID, ROLE_ID) VALUES ('u1', 'admin')",
    "INSERT INTO SyncopeRole_entitlements (ROLE_ID, ENTITLEMENTS) VALUES ('admin', 'USER_READ')",
    "INSERT INTO QRTZ_TRIGGERS (TRIGGER_NAME) VALUES ('cleanup')",
    "INSERT INTO AuditEntry (id, message) VALUES (1, 'login')",
]


class StaticHierarchy(HierarchyModelInterface):
    """Hierarchy model returning a fixed descendant order."""
    
    def __init__(self, keys):
        self.keys = list(keys)
        self.requested_roots = []
    
    def find_descendants(self, root_key):
        self.requested_roots.append(root_key)
        return [SimpleNamespace(key=key) for key in self.keys]


def run_statements(engine, statements):
    """Execute raw SQL statements in one transaction."""
    with engine.begin() as connection:
        for statement in statements:
            connection.exec_driver_sql(statement)


def identity_entity_models():
    """Entity models matching SCHEMA_STATEMENTS."""
    return [
        EntityModel(name="Realm", table="Realm", attributes=[
            AttributeModel("name"),
            AttributeModel("parent", basic=False),
        ]),
        EntityModel(name="Role", table="SyncopeRole", attributes=[
            AttributeModel("entitlements", basic=False,
                           collection_table=CollectionTableModel("SyncopeRole_entitlements", "role_id")),
        ]),
        EntityModel(name="User", table="SyncopeUser", attributes=[
            AttributeModel("username"),
            AttributeModel("realm", basic=False),
            AttributeModel("suspended"),
            AttributeModel("creationDate"),
            AttributeModel("password", column="password_hash"),
            AttributeModel("roles", basic=False, target_entity="Role",
                           join_table=JoinTableModel("user_id", "role_id", name="SyncopeUser_SyncopeRole")),
        ]),
        EntityModel(name="Notification"),
    ]


@pytest.fixture
def engine(tmp_path):
    """Empty file-backed SQLite engine."""
    engine = create_engine(f"sqlite:///{tmp_path / 'content.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def identity_engine(engine):
    """SQLite engine populated with the identity store schema and data."""
    run_statements(engine, SCHEMA_STATEMENTS + DATA_STATEMENTS)
    return engine


@pytest.fixture
def hierarchy():
    """Hierarchy listing realms in r3, r1, r2 order."""
    return StaticHierarchy(["r3", "r1", "r2"])


@pytest.fixture
def identity_data_source(identity_engine, hierarchy):
    """DomainDataSource over the identity store."""
    return DomainDataSource(
        engine=identity_engine,
        entity_models=identity_entity_models,
        hierarchy=hierarchy
    )


@pytest.fixture
def run_sql(engine):
    """Execute raw SQL statements against the ``engine`` fixture."""
    def run(*statements):
        run_statements(engine, statements)
    return run


@pytest.fixture
def entity_models():
    """Fresh entity models of the identity store."""
    return identity_entity_models()


@pytest.fixture
def hierarchy_factory():
    """Build a hierarchy model from an ordered list of keys."""
    return StaticHierarchy
