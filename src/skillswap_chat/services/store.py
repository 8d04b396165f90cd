"""Data store port shared by the chat services."""

from dataclasses import dataclass
from typing import Protocol

Row = dict[str, object]


@dataclass(frozen=True)
class Filter:
    """A single column predicate: ``eq``, ``neq`` or ``in``."""

    column: str
    op: str
    value: object


def eq(column: str, value: object) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: object) -> Filter:
    return Filter(column, "neq", value)


def in_(column: str, values: list[object]) -> Filter:
    return Filter(column, "in", list(values))


@dataclass(frozen=True)
class Order:
    """Sort instruction for a query."""

    column: str
    desc: bool = False


class DataStore(Protocol):
    """Interface to the remote relational store.

    Implementations raise ``StoreUnavailableError`` on transport failures and
    ``UniqueViolationError`` when an insert collides with a unique constraint.
    """

    def query(
        self,
        table: str,
        filters: list[Filter],
        order: list[Order] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching every filter."""

    def insert(self, table: str, row: Row) -> Row:
        """Insert a row and return it as stored."""

    def update(self, table: str, filters: list[Filter], patch: Row) -> list[Row]:
        """Apply ``patch`` to matching rows and return the updated rows."""

    def delete(self, table: str, filters: list[Filter]) -> None:
        """Delete matching rows."""

    def call_aggregate(self, name: str, params: dict[str, object]) -> object:
        """Invoke a server-side aggregate function."""
