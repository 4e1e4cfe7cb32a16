"""
Pytest configuration and fixtures for backend tests.

Tables are created with raw DDL rather than models: the repositories
discover table shape at runtime, so each test builds exactly the shape it
needs (with or without deleted_at, alternative address tables, ...).
"""

import os

# Must be set before shared.config.settings is first imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


# =============================================================================
# DDL
# =============================================================================

CLIENTES = """
CREATE TABLE clientes (
    id INTEGER PRIMARY KEY,
    nome TEXT NOT NULL,
    documento TEXT UNIQUE,
    cod_cliente TEXT,
    cidade TEXT,
    uf TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    deleted_at TIMESTAMP
)
"""

ENDERECOS_CLIENTE = """
CREATE TABLE enderecos_cliente (
    id INTEGER PRIMARY KEY,
    cliente_id INTEGER NOT NULL,
    apelido TEXT,
    logradouro TEXT,
    numero TEXT,
    bairro TEXT,
    cidade TEXT,
    uf TEXT,
    cep TEXT,
    principal BOOLEAN DEFAULT 0,
    deleted_at TIMESTAMP
)
"""

# Older installs: different table, different FK name, no soft delete
ENDERECO_ENTREGA_LEGACY = """
CREATE TABLE endereco_entrega (
    id INTEGER PRIMARY KEY,
    id_cliente INTEGER NOT NULL,
    rua TEXT,
    municipio TEXT,
    estado TEXT,
    cep TEXT
)
"""

ENDERECO_ENTREGA = """
CREATE TABLE endereco_entrega (
    id INTEGER PRIMARY KEY,
    cliente_id INTEGER,
    endereco TEXT,
    bairro TEXT,
    cidade TEXT,
    uf TEXT,
    cep TEXT,
    latitude REAL,
    longitude REAL,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    deleted_at TIMESTAMP
)
"""

TRANSPORTADORAS = """
CREATE TABLE transportadoras (
    id INTEGER PRIMARY KEY,
    nome TEXT NOT NULL,
    cnpj TEXT,
    uf TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    deleted_at TIMESTAMP
)
"""

# No deleted_at: soft delete is not a capability of this table
MOTORISTAS = """
CREATE TABLE motoristas (
    id INTEGER PRIMARY KEY,
    nome TEXT NOT NULL,
    cpf TEXT,
    email TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

EMBARCADORES = """
CREATE TABLE embarcadores (
    id INTEGER PRIMARY KEY,
    nome TEXT NOT NULL,
    documento TEXT,
    cidade TEXT,
    uf TEXT,
    created_at TIMESTAMP,
    deleted_at TIMESTAMP
)
"""

DEPOSITO = """
CREATE TABLE deposito (
    id INTEGER PRIMARY KEY,
    embarcador_id INTEGER,
    nome TEXT,
    latitude REAL,
    longitude REAL
)
"""

NOTAS_FISCAIS = """
CREATE TABLE notas_fiscais (
    id INTEGER PRIMARY KEY,
    nro TEXT,
    chave_nf TEXT,
    valor REAL,
    cliente_id INTEGER,
    embarcador_id INTEGER,
    transportadora_id INTEGER,
    endereco_entrega_id INTEGER,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    deleted_at TIMESTAMP
)
"""


def create_tables(db: Session, *statements: str) -> None:
    for ddl in statements:
        db.execute(text(ddl))
    db.commit()


def insert_rows(db: Session, table: str, rows: list[dict]) -> None:
    """Seed rows with plain parameterized INSERTs (bypasses the repositories)."""
    for row in rows:
        columns = ", ".join(row)
        placeholders = ", ".join(f":{key}" for key in row)
        db.execute(text(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"), row)
    db.commit()


def compile_pg(stmt) -> str:
    """Render a statement with the PostgreSQL dialect, parameters left bound."""
    return str(stmt.compile(dialect=postgresql.dialect()))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses a private SQLite in-memory database for isolation.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def clientes_table(db_session):
    """clientes with three rows, the third soft-deleted."""
    create_tables(db_session, CLIENTES)
    insert_rows(db_session, "clientes", [
        {"id": 1, "nome": "Ana Silva", "documento": "111", "cod_cliente": "C1",
         "cidade": "Sao Paulo", "uf": "SP", "created_at": "2024-01-01 10:00:00"},
        {"id": 2, "nome": "Bruno Souza", "documento": "222", "cod_cliente": "C2",
         "cidade": "Campinas", "uf": "SP", "created_at": "2024-01-02 10:00:00"},
        {"id": 3, "nome": "Carla Silva", "documento": "333", "cod_cliente": "C3",
         "cidade": "Curitiba", "uf": "PR", "created_at": "2024-01-03 10:00:00",
         "deleted_at": "2024-02-01 10:00:00"},
    ])
    return db_session


@pytest.fixture
def motoristas_table(db_session):
    create_tables(db_session, MOTORISTAS)
    insert_rows(db_session, "motoristas", [
        {"id": 1, "nome": "Joao Lima", "cpf": "12345678900", "email": "joao@frete.com"},
        {"id": 2, "nome": "Maria Costa", "cpf": "98765432100", "email": "maria@frete.com"},
    ])
    return db_session


@pytest.fixture
def freight_schema(clientes_table):
    """Full schema: clientes, addresses, carriers, shippers and invoices."""
    db = clientes_table
    create_tables(
        db, ENDERECOS_CLIENTE, TRANSPORTADORAS, EMBARCADORES, DEPOSITO, NOTAS_FISCAIS
    )
    insert_rows(db, "enderecos_cliente", [
        {"id": 10, "cliente_id": 1, "apelido": "Filial", "logradouro": "Rua B",
         "cidade": "Sao Paulo", "uf": "SP", "cep": "01000000", "principal": 0},
        {"id": 11, "cliente_id": 1, "apelido": "Matriz", "logradouro": "Rua A",
         "cidade": "Sao Paulo", "uf": "SP", "cep": "01310100", "principal": 1},
        {"id": 12, "cliente_id": 1, "apelido": "Antigo", "logradouro": "Rua Z",
         "deleted_at": "2024-03-01 00:00:00"},
        {"id": 13, "cliente_id": 2, "apelido": "Unico", "logradouro": "Av C",
         "cidade": "Campinas", "uf": "SP", "principal": 1},
    ])
    insert_rows(db, "transportadoras", [
        {"id": 1, "nome": "Rapido Sul", "cnpj": "11222333000144", "uf": "SP",
         "created_at": "2024-01-01 00:00:00"},
        {"id": 2, "nome": "Norte Cargas", "cnpj": "55666777000188", "uf": "AM",
         "created_at": "2024-01-02 00:00:00"},
    ])
    insert_rows(db, "embarcadores", [
        {"id": 1, "nome": "Fabrica X", "documento": "999", "cidade": "Santos", "uf": "SP"},
    ])
    insert_rows(db, "deposito", [
        {"id": 2, "embarcador_id": 1, "nome": "CD Norte"},
        {"id": 1, "embarcador_id": 1, "nome": "CD Sul"},
    ])
    insert_rows(db, "notas_fiscais", [
        {"id": 1, "nro": "1001", "chave_nf": "K1", "valor": 100.0, "cliente_id": 1,
         "embarcador_id": 1, "transportadora_id": 1, "created_at": "2024-04-01 00:00:00"},
        {"id": 2, "nro": "1002", "chave_nf": "K2", "valor": 50.0, "cliente_id": 1,
         "embarcador_id": 1, "transportadora_id": 1, "created_at": "2024-04-02 00:00:00"},
        {"id": 3, "nro": "1003", "chave_nf": "K3", "valor": 75.0, "cliente_id": 2,
         "transportadora_id": 1, "created_at": "2024-04-03 00:00:00",
         "deleted_at": "2024-04-10 00:00:00"},
        {"id": 4, "nro": "1004", "chave_nf": "K4", "valor": 20.0, "cliente_id": 2,
         "transportadora_id": 2, "created_at": "2024-04-04 00:00:00"},
    ])
    return db
