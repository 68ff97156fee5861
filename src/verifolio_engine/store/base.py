"""Storage interface the engine runs against."""

from typing import Any, Protocol

Row = dict[str, Any]
Filters = dict[str, Any]


class Store(Protocol):
    """Async row store.

    Filters are column equality tests; a ``None`` value matches SQL NULL.
    Every write returns the affected rows as stored (with generated ids).
    """

    async def select(
        self,
        table: str,
        *,
        filters: Filters | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]: ...

    async def search(
        self,
        table: str,
        *,
        column: str,
        term: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """Case-insensitive substring match of ``term`` on ``column``."""
        ...

    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]: ...

    async def update(self, table: str, values: Row, *, filters: Filters) -> list[Row]: ...

    async def delete(self, table: str, *, filters: Filters) -> list[Row]: ...

    async def next_sequence(self, owner_id: str, doc_type: str, period_key: str) -> int:
        """Atomically increment the counter row and return the new value.

        Creates the row at 1 when it does not exist yet. Must be a single
        indivisible operation on the storage side.
        """
        ...

    async def current_sequence(self, owner_id: str, doc_type: str, period_key: str) -> int:
        """Last issued value for the counter row, 0 when it does not exist."""
        ...


def is_unique_violation(details: Any) -> bool:
    """True when a storage error payload reports a unique-key conflict."""
    return isinstance(details, dict) and details.get("code") == "23505"
