# SQLPilot/ingestion/introspection.py
from typing import Dict, List, Optional, Sequence, Union

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine

from config.settings import DB_URI
from core_logic.data_models import ColumnInfo, TableSchema
import logging

ingestion_logger = logging.getLogger('SQLPilot.Introspection')


class SchemaCatalog:
    """
    Enumerates tables, columns, primary keys and foreign keys from the live
    database. Every call reads the database afresh; nothing is cached.
    """
    def __init__(self, db: Union[str, Engine] = DB_URI):
        self.engine = create_engine(db) if isinstance(db, str) else db

    def list_tables(self) -> List[str]:
        return inspect(self.engine).get_table_names()

    def _foreign_key_map(self, fks_data: List[Dict]) -> Dict[str, str]:
        """Flattens FK constraints into {local_column: 'table.column'}, one entry per column."""
        foreign_keys = {}
        for fk in fks_data:
            target_table = fk['referred_table']
            for source_column, target_column in zip(fk['constrained_columns'], fk['referred_columns']):
                foreign_keys[source_column] = f"{target_table}.{target_column}"
        return foreign_keys

    def describe_table(self, table_name: str) -> TableSchema:
        inspector = inspect(self.engine)

        columns = []
        for col in inspector.get_columns(table_name):
            default = col.get('default')
            columns.append(ColumnInfo(
                name=col['name'],
                data_type=str(col['type']),
                nullable=bool(col.get('nullable', True)),
                default_value=None if default is None else str(default),
                comment=col.get('comment'),
            ))

        pk_constraint = inspector.get_pk_constraint(table_name) or {}
        primary_keys = tuple(pk_constraint.get('constrained_columns') or ())
        foreign_keys = self._foreign_key_map(inspector.get_foreign_keys(table_name))

        ingestion_logger.debug(
            f"Table {table_name}: {len(columns)} columns, {len(primary_keys)} primary keys, "
            f"{len(foreign_keys)} foreign keys"
        )
        return TableSchema(name=table_name, columns=columns, primary_keys=primary_keys, foreign_keys=foreign_keys)

    def snapshot(self) -> List[TableSchema]:
        """A fresh, immutable view of the whole catalog for one request, in catalog order."""
        table_names = self.list_tables()
        ingestion_logger.info(f"Found {len(table_names)} tables for introspection.")
        return [self.describe_table(name) for name in table_names]


def build_schema_context(schemas: Sequence[TableSchema], fallback: Optional[str] = None) -> str:
    """Textual schema block handed to the AI generator."""
    if not schemas:
        return fallback or "No tables were found in the database."

    blocks = []
    for schema in schemas:
        lines = [f"Table: {schema.name}"]
        for column in schema.columns:
            line = f"  {column.name} ({column.data_type})"
            if column.name in schema.primary_keys:
                line += " [PK]"
            if column.nullable:
                line += " [NULL]"
            if column.comment:
                line += f" -- {column.comment}"
            lines.append(line)
        for column, target in schema.foreign_keys.items():
            lines.append(f"  FK: {column} -> {target}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
