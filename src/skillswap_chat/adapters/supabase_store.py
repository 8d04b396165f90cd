"""Supabase-backed data store."""

import logging
from dataclasses import dataclass

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from skillswap_chat.domain.errors import StoreUnavailableError, UniqueViolationError
from skillswap_chat.services.store import DataStore, Filter, Order, Row

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseDataStore(DataStore):
    """Supabase implementation of the data store port."""

    client: Client

    def query(
        self,
        table: str,
        filters: list[Filter],
        order: list[Order] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """Select rows matching every filter."""
        builder = _apply_filters(self.client.table(table).select("*"), filters)
        for entry in order or []:
            builder = builder.order(entry.column, desc=entry.desc)
        if limit is not None:
            builder = builder.limit(limit)
        response = _execute(builder, table, "select")
        return list(response.data or [])

    def insert(self, table: str, row: Row) -> Row:
        """Insert a row and return the stored representation."""
        response = _execute(self.client.table(table).insert(row), table, "insert")
        if not response.data:
            raise StoreUnavailableError(f"Insert into {table} returned no row")
        return response.data[0]

    def update(self, table: str, filters: list[Filter], patch: Row) -> list[Row]:
        """Update matching rows and return them."""
        builder = _apply_filters(self.client.table(table).update(patch), filters)
        response = _execute(builder, table, "update")
        return list(response.data or [])

    def delete(self, table: str, filters: list[Filter]) -> None:
        """Delete matching rows."""
        builder = _apply_filters(self.client.table(table).delete(), filters)
        _execute(builder, table, "delete")

    def call_aggregate(self, name: str, params: dict[str, object]) -> object:
        """Call a Postgres function through PostgREST RPC."""
        response = _execute(self.client.rpc(name, params), name, "rpc")
        return response.data


def _apply_filters(builder, filters: list[Filter]):  # type: ignore[no-untyped-def]
    for item in filters:
        value = _serialize(item.value)
        if item.op == "eq":
            builder = builder.eq(item.column, value)
        elif item.op == "neq":
            builder = builder.neq(item.column, value)
        elif item.op == "in":
            builder = builder.in_(item.column, value)
        else:
            raise ValueError(f"Unsupported filter operator: {item.op}")
    return builder


def _serialize(value: object) -> object:
    if isinstance(value, list):
        return [_serialize(entry) for entry in value]
    if isinstance(value, bool | int | float | str) or value is None:
        return value
    return str(value)


def _execute(builder, target: str, action: str):  # type: ignore[no-untyped-def]
    try:
        return builder.execute()
    except APIError as exc:
        if exc.code == _UNIQUE_VIOLATION:
            raise UniqueViolationError(exc.message or "duplicate key") from exc
        logger.warning(
            "Supabase request rejected",
            extra={"target": target, "action": action, "code": exc.code},
        )
        raise StoreUnavailableError(exc.message or str(exc)) from exc
    except httpx.HTTPError as exc:
        logger.warning(
            "Supabase request failed", extra={"target": target, "action": action}
        )
        raise StoreUnavailableError(str(exc)) from exc
