"""Generic, schema-driven CRUD over deployed dynamic domains.

Classes:
    DynamicRecordService: Create/get/list/update/delete/count records of any registered domain.

Functions:
    validate_record(schema, data, partial): Drop unknown keys and collect every violation.
    matches_type(value, field_type): Type check for a single declared field type.

Every statement targets the table held by the domain registry; callers only ever
name a domain, never a table.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.schemas import ProposedSchema
from domain_evolution.services.errors import NotFoundError, RecordValidationError
from domain_evolution.services.registry import DomainRegistry, RegisteredDomain, get_domain_registry

_LOGGER = logging.getLogger(__name__)


def parse_date(value: str) -> date | None:
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def matches_type(value: Any, field_type: str) -> bool:
    if field_type == "string":
        return isinstance(value, str)
    if field_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)
    if field_type == "boolean":
        return isinstance(value, bool)
    if field_type == "date":
        if isinstance(value, (date, datetime)):
            return True
        return isinstance(value, str) and parse_date(value) is not None
    return False


def validate_record(
    schema: ProposedSchema,
    data: Mapping[str, Any],
    *,
    partial: bool,
) -> tuple[dict[str, Any], list[str]]:
    """Return (known fields only, violations). Unknown keys are dropped without error."""

    fields = schema.field_map()
    clean = {key: value for key, value in data.items() if key in fields}
    errors: list[str] = []

    if not partial:
        for field in schema.required_fields:
            if clean.get(field.name) is None:
                errors.append(f"Missing required field: {field.name}")

    for name, value in clean.items():
        field = fields[name]
        if value is None:
            if partial and field.required:
                errors.append(f"Required field cannot be cleared: {name}")
            continue
        if not matches_type(value, field.type):
            errors.append(f"Invalid type for {name}: expected {field.type}")

    return clean, errors


def _to_storage(value: Any, field_type: str) -> Any:
    if value is None:
        return None
    if field_type == "boolean":
        return 1 if value else 0
    if field_type == "number":
        return float(value)
    if field_type == "date":
        return value.isoformat() if isinstance(value, (date, datetime)) else value.strip()
    return value


def _from_storage(row: Mapping[str, Any], schema: ProposedSchema) -> dict[str, Any]:
    record = dict(row)
    for field in schema.all_fields:
        if field.type == "boolean" and record.get(field.name) is not None:
            record[field.name] = bool(record[field.name])
    return record


class DynamicRecordService:
    def __init__(self, session: AsyncSession, registry: DomainRegistry | None = None) -> None:
        self._session = session
        self._registry = registry or get_domain_registry()

    def _domain(self, domain_name: str) -> RegisteredDomain:
        domain = self._registry.get(domain_name)
        if domain is None:
            raise NotFoundError(f"Domain '{domain_name}' not found")
        return domain

    async def create(self, domain_name: str, data: Mapping[str, Any]) -> dict[str, Any]:
        domain = self._domain(domain_name)
        clean, errors = validate_record(domain.schema, data, partial=False)
        if errors:
            raise RecordValidationError(domain_name, errors)

        fields = domain.schema.field_map()
        values = {
            name: _to_storage(value, fields[name].type)
            for name, value in clean.items()
            if value is not None
        }
        try:
            result = await self._session.execute(domain.table.insert().values(**values))
            await self._session.commit()
        except SQLAlchemyError:
            await self._session.rollback()
            raise

        record_id = int(result.inserted_primary_key[0])
        _LOGGER.info("Created record %s in '%s'", record_id, domain_name)
        return await self.get(domain_name, record_id)

    async def get(self, domain_name: str, record_id: int) -> Optional[dict[str, Any]]:
        domain = self._domain(domain_name)
        table = domain.table
        result = await self._session.execute(select(table).where(table.c.id == record_id))
        row = result.mappings().first()
        return _from_storage(row, domain.schema) if row is not None else None

    async def list(self, domain_name: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
        domain = self._domain(domain_name)
        table = domain.table
        stmt = select(table).order_by(table.c.created_at.desc(), table.c.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return [_from_storage(row, domain.schema) for row in result.mappings().all()]

    async def update(
        self,
        domain_name: str,
        record_id: int,
        data: Mapping[str, Any],
    ) -> Optional[dict[str, Any]]:
        domain = self._domain(domain_name)
        clean, errors = validate_record(domain.schema, data, partial=True)
        if errors:
            raise RecordValidationError(domain_name, errors)
        if not clean:
            return await self.get(domain_name, record_id)

        fields = domain.schema.field_map()
        values: dict[str, Any] = {name: _to_storage(value, fields[name].type) for name, value in clean.items()}
        values["updated_at"] = func.datetime("now")
        table = domain.table
        try:
            result = await self._session.execute(table.update().where(table.c.id == record_id).values(**values))
            await self._session.commit()
        except SQLAlchemyError:
            await self._session.rollback()
            raise

        if not result.rowcount:
            return None
        _LOGGER.info("Updated record %s in '%s'", record_id, domain_name)
        return await self.get(domain_name, record_id)

    async def delete(self, domain_name: str, record_id: int) -> bool:
        table = self._domain(domain_name).table
        result = await self._session.execute(table.delete().where(table.c.id == record_id))
        await self._session.commit()
        deleted = bool(result.rowcount)
        if deleted:
            _LOGGER.info("Deleted record %s from '%s'", record_id, domain_name)
        return deleted

    async def count(self, domain_name: str) -> int:
        table = self._domain(domain_name).table
        result = await self._session.execute(select(func.count()).select_from(table))
        return int(result.scalar_one())
