"""SQLAlchemy Core table definitions for deployed dynamic domains.

Functions:
    table_name_for(domain_name): Storage table name for a normalised domain name.
    validate_schema_identifiers(schema): Enforce the identifier allow-list on a schema.
    build_domain_table(table_name, schema): Build the Table object used for DDL and CRUD.
"""

from __future__ import annotations

from sqlalchemy import Column, Float, Integer, MetaData, Table, Text, text

from domain_evolution.core.config import get_settings
from domain_evolution.schemas import ProposedSchema
from domain_evolution.services.errors import InvalidIdentifierError
from domain_evolution.utils.text import MAX_TABLE_NAME_LENGTH, is_safe_identifier

RESERVED_COLUMNS: frozenset[str] = frozenset({"id", "created_at", "updated_at"})

# string/date -> TEXT, number -> REAL, boolean -> INTEGER holding 0/1.
_COLUMN_TYPES = {
    "string": Text,
    "date": Text,
    "number": Float,
    "boolean": Integer,
}

_NOW = text("(datetime('now'))")


def table_name_for(domain_name: str) -> str:
    if not is_safe_identifier(domain_name):
        raise InvalidIdentifierError(f"Domain name '{domain_name}' is not a safe identifier")
    return f"{get_settings().dynamic_table_prefix}{domain_name}"


def validate_schema_identifiers(schema: ProposedSchema) -> None:
    if not is_safe_identifier(schema.domain_name):
        raise InvalidIdentifierError(
            f"Domain name '{schema.domain_name}' must contain only lowercase letters, digits, and underscores"
        )
    seen: set[str] = set()
    for field in schema.all_fields:
        if not is_safe_identifier(field.name):
            raise InvalidIdentifierError(
                f"Field name '{field.name}' must contain only lowercase letters, digits, and underscores"
            )
        if field.name in RESERVED_COLUMNS:
            raise InvalidIdentifierError(f"Field name '{field.name}' is reserved")
        if field.name in seen:
            raise InvalidIdentifierError(f"Field name '{field.name}' is declared more than once")
        seen.add(field.name)


def build_domain_table(table_name: str, schema: ProposedSchema) -> Table:
    validate_schema_identifiers(schema)
    if not is_safe_identifier(table_name, MAX_TABLE_NAME_LENGTH):
        raise InvalidIdentifierError(f"Table name '{table_name}' is not a safe identifier")

    columns: list[Column] = [Column("id", Integer, primary_key=True, autoincrement=True)]
    for field in schema.required_fields:
        columns.append(Column(field.name, _COLUMN_TYPES[field.type], nullable=False))
    for field in schema.optional_fields:
        columns.append(Column(field.name, _COLUMN_TYPES[field.type], nullable=True))
    columns.append(Column("created_at", Text, nullable=False, server_default=_NOW))
    columns.append(Column("updated_at", Text, nullable=False, server_default=_NOW))

    return Table(table_name, MetaData(), *columns, sqlite_autoincrement=True)
