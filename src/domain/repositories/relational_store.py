"""Relational record store protocol."""

from typing import Any, Protocol


class IRelationalStore(Protocol):
    """Table-oriented record store keyed by primary key.

    Implementations raise their own backend exceptions for failures; a missing
    row is not a failure and is reported as ``None``.
    """

    async def select_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Return the single row matching ``filters``, or None if there is none."""
        ...

    async def upsert(self, table: str, row: dict[str, Any], on_conflict: str = "id") -> None:
        """Insert ``row`` or update only the columns it carries.

        Columns absent from ``row`` are left untouched on an existing record.
        """
        ...
