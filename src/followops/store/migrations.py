"""
Declarative schema → SQLite DDL.

``resources/schema/canonical.yaml`` lists enums and tables; each table is
created with ``CREATE TABLE IF NOT EXISTS`` so re-applying is harmless.
Enum fields become CHECK constraints, ``ref`` fields become cascading
foreign keys.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

TYPE_MAP = {
    "uuid": "TEXT",
    "text": "TEXT",
    "integer": "INTEGER",
    "number": "REAL",
    "datetime": "TEXT",
    "date": "TEXT",
    "enum": "TEXT",
    "bool": "INTEGER",
    "list": "TEXT",
}

META_TABLE = "__schema_meta"


@dataclass(frozen=True)
class Schema:
    version: int
    enums: dict[str, list[str]]
    tables: dict[str, Any]


class SchemaError(RuntimeError):
    pass


def load_schema(schema_path: Path) -> Schema:
    if not schema_path.exists():
        raise SchemaError(f"Schema file not found: {schema_path}")
    data = yaml.safe_load(schema_path.read_text(encoding="utf-8")) or {}
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise SchemaError("Schema version must be an integer.")
    enums = data.get("enums") or {}
    tables = data.get("tables") or {}
    if not isinstance(enums, dict) or not isinstance(tables, dict):
        raise SchemaError("Schema enums and tables must be mappings.")
    return Schema(version=version, enums=enums, tables=tables)


def current_version(conn: sqlite3.Connection) -> int | None:
    exists = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (META_TABLE,)
    ).fetchone()
    if exists is None:
        return None
    row = conn.execute(f"SELECT MAX(version) FROM {META_TABLE}").fetchone()
    return row[0]


def apply_schema(conn: sqlite3.Connection, schema_path: Path) -> int:
    schema = load_schema(schema_path)
    applied = current_version(conn)
    if applied is not None and applied > schema.version:
        raise SchemaError(
            f"Database is at schema version {applied}; refusing to apply older version {schema.version}."
        )

    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {META_TABLE} (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
    )
    for table_name, table_def in schema.tables.items():
        conn.execute(_table_ddl(table_name, table_def, schema.enums))
        for ddl in _index_ddl(table_name, table_def):
            conn.execute(ddl)

    conn.execute(
        f"INSERT OR REPLACE INTO {META_TABLE} (version, applied_at) VALUES (?, datetime('now'))",
        (schema.version,),
    )
    conn.commit()
    logger.info("Applied schema version %s (%d tables)", schema.version, len(schema.tables))
    return schema.version


def _table_ddl(table_name: str, table_def: dict[str, Any], enums: dict[str, list[str]]) -> str:
    fields = table_def.get("fields") if isinstance(table_def, dict) else None
    if not isinstance(fields, dict) or not fields:
        raise SchemaError(f"Table {table_name} fields must be a non-empty mapping.")

    primary_key = table_def.get("primary_key")
    columns = [_column_sql(name, spec, primary_key, enums) for name, spec in fields.items()]
    if isinstance(primary_key, list):
        columns.append(f"PRIMARY KEY ({', '.join(primary_key)})")

    for name, spec in fields.items():
        ref = spec.get("ref")
        if not ref:
            continue
        ref_table, _, ref_field = ref.partition(".")
        if not ref_field:
            raise SchemaError(f"{table_name}.{name} ref must look like table.field.")
        columns.append(f"FOREIGN KEY ({name}) REFERENCES {ref_table}({ref_field}) ON DELETE CASCADE")

    return f"CREATE TABLE IF NOT EXISTS {table_name} ({', '.join(columns)});"


def _column_sql(
    name: str,
    spec: Any,
    primary_key: str | list[str] | None,
    enums: dict[str, list[str]],
) -> str:
    if not isinstance(spec, dict):
        raise SchemaError(f"Field {name} must be a mapping.")
    field_type = spec.get("type")
    if field_type not in TYPE_MAP:
        raise SchemaError(f"Unknown field type {field_type} for {name}.")

    parts = [name, TYPE_MAP[field_type]]
    if primary_key == name:
        parts.append("PRIMARY KEY")
    if spec.get("required", False):
        parts.append("NOT NULL")
    if spec.get("unique", False):
        parts.append("UNIQUE")
    if "default" in spec:
        parts.append(f"DEFAULT {_literal(spec['default'])}")
    if field_type == "enum":
        values = enums.get(spec.get("enum"))
        if not values:
            raise SchemaError(f"Field {name} references unknown enum {spec.get('enum')}.")
        allowed = ", ".join(_literal(value) for value in values)
        parts.append(f"CHECK ({name} IN ({allowed}))")
    return " ".join(parts)


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def _index_ddl(table_name: str, table_def: dict[str, Any]) -> list[str]:
    statements = []
    for index_fields in table_def.get("indexes") or []:
        if not isinstance(index_fields, list) or not index_fields:
            raise SchemaError(f"Indexes on {table_name} must be non-empty lists of fields.")
        idx_name = f"idx_{table_name}_{'_'.join(index_fields)}"
        statements.append(
            f"CREATE INDEX IF NOT EXISTS {idx_name} ON {table_name} ({', '.join(index_fields)});"
        )
    return statements
