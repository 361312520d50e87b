"""SQLAlchemy implementation of the relational record store."""

from typing import Any

from sqlalchemy import Table, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.models import Base


class SQLAlchemyRelationalStore:
    """SQLAlchemy implementation of IRelationalStore.

    Upserts compile to ``INSERT ... ON CONFLICT DO UPDATE`` naming only the
    columns present in the row, which gives column-level merge semantics in
    a single statement.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def select_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Return the single row matching ``filters``, or None.

        Raises MultipleResultsFound when more than one row matches.
        """
        model = self._table(table)
        stmt = select(model).filter_by(**filters)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.mappings().one_or_none()
        return dict(row) if row is not None else None

    async def upsert(self, table: str, row: dict[str, Any], on_conflict: str = "id") -> None:
        """Insert ``row``, or update only the columns it carries."""
        model = self._table(table)
        async with self._session_factory() as session:
            insert = self._insert_for(session, model)
            stmt = insert.values(**row)
            update_columns = {
                key: stmt.excluded[key] for key in row if key != on_conflict
            }
            if update_columns:
                stmt = stmt.on_conflict_do_update(
                    index_elements=[on_conflict],
                    set_=update_columns,
                )
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=[on_conflict])
            await session.execute(stmt)
            await session.commit()

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError:
            raise LookupError(f"Unknown table: {name}") from None

    @staticmethod
    def _insert_for(session: AsyncSession, table: Table) -> Any:
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table)
        if dialect == "sqlite":
            return sqlite.insert(table)
        raise NotImplementedError(f"Upsert is not supported on {dialect}")
