import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from core_logic.data_models import ColumnInfo, SecurityPolicy, TableSchema


@pytest.fixture()
def users_schema():
    return TableSchema(
        name="users",
        columns=[
            ColumnInfo(name="id", data_type="INT", nullable=False),
            ColumnInfo(name="name", data_type="VARCHAR(50)", nullable=False),
            ColumnInfo(name="email", data_type="VARCHAR(100)"),
            ColumnInfo(name="created_at", data_type="DATETIME"),
        ],
        primary_keys=["id"],
    )


@pytest.fixture()
def orders_schema():
    return TableSchema(
        name="orders",
        columns=[
            ColumnInfo(name="id", data_type="INT", nullable=False),
            ColumnInfo(name="user_id", data_type="INT"),
            ColumnInfo(name="amount", data_type="DECIMAL(10,2)"),
            ColumnInfo(name="status", data_type="VARCHAR(20)"),
            ColumnInfo(name="created_at", data_type="DATETIME"),
        ],
        primary_keys=["id"],
        foreign_keys={"user_id": "users.id"},
    )


@pytest.fixture()
def products_schema():
    return TableSchema(
        name="products",
        columns=[
            ColumnInfo(name="id", data_type="INT", nullable=False),
            ColumnInfo(name="title", data_type="VARCHAR(100)"),
            ColumnInfo(name="price", data_type="DECIMAL(10,2)"),
            ColumnInfo(name="category", data_type="VARCHAR(50)"),
        ],
        primary_keys=["id"],
    )


@pytest.fixture()
def permissive_policy():
    return SecurityPolicy(allow_dml=True, allow_ddl=False)


@pytest.fixture()
def strict_policy():
    return SecurityPolicy(allow_dml=False, allow_ddl=False)


@pytest.fixture()
def sqlite_engine():
    """In-memory shop database; StaticPool keeps one connection so every caller sees the same data."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, name VARCHAR(50) NOT NULL, "
            "email VARCHAR(100), created_at DATETIME)"
        ))
        conn.execute(text(
            "CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id), "
            "amount DECIMAL(10, 2), status VARCHAR(20), created_at DATETIME)"
        ))
        conn.execute(text(
            "CREATE TABLE products (id INTEGER PRIMARY KEY, title VARCHAR(100), "
            "price DECIMAL(10, 2), category VARCHAR(50))"
        ))
        conn.execute(text(
            "INSERT INTO users (id, name, email, created_at) VALUES "
            "(1, 'Alice', 'alice@example.com', '2024-01-05'), (2, 'Bob', 'bob@example.com', '2024-02-10')"
        ))
        conn.execute(text(
            "INSERT INTO orders (id, user_id, amount, status, created_at) VALUES "
            "(1, 1, 500, 'paid', '2024-03-01'), (2, 1, 1500, 'paid', '2024-03-02'), "
            "(3, 2, 2500, 'pending', '2024-03-03')"
        ))
        conn.execute(text(
            "INSERT INTO products (id, title, price, category) VALUES "
            "(1, 'Keyboard', 49.9, 'hardware'), (2, 'Monitor', 199.0, 'hardware'), (3, 'Ebook', 9.5, 'media')"
        ))
    yield engine
    engine.dispose()
