"""Request context and helpers shared by the action handlers."""

import secrets
import string
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

import structlog

from verifolio_engine.config.settings import FlatSettings
from verifolio_engine.errors import StoreError, ValidationError
from verifolio_engine.models import CompanySettings, EntityKind, Ref, ToolResult
from verifolio_engine.numbering import DocumentNumberAllocator
from verifolio_engine.resolver import EntityResolver
from verifolio_engine.store import Row, Store

logger = structlog.get_logger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits
PUBLIC_TOKEN_LENGTH = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class HandlerContext:
    """Everything a handler needs for one request, bound to one owner."""

    store: Store
    owner_id: str
    resolver: EntityResolver
    allocator: DocumentNumberAllocator
    settings: FlatSettings
    clock: Callable[[], datetime] = utcnow
    _company: CompanySettings | None = field(default=None, repr=False)

    async def company(self) -> CompanySettings:
        """Company settings with fallbacks applied, read once per request."""
        if self._company is None:
            rows = await self.store.select(
                "companies", filters={"user_id": self.owner_id}, limit=1
            )
            self._company = CompanySettings.from_row(rows[0] if rows else None, self.settings)
        return self._company

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    def owned(self, **filters: Any) -> dict[str, Any]:
        """Equality filters scoped to the current owner."""
        return {"user_id": self.owner_id, **filters}

    async def resolve_arg(
        self,
        kind: EntityKind,
        args: dict[str, Any],
        prefix: str,
        label: str = "name",
    ) -> Ref:
        """Resolve ``<prefix>_id`` / ``<prefix>_<label>`` from the arguments."""
        return await self.resolver.resolve(
            kind, id=args.get(f"{prefix}_id"), name=args.get(f"{prefix}_{label}")
        )

    async def fetch_arg(
        self,
        kind: EntityKind,
        args: dict[str, Any],
        prefix: str,
        label: str = "name",
    ) -> Row:
        return await self.resolver.fetch(await self.resolve_arg(kind, args, prefix, label))


Handler = Callable[[HandlerContext, dict[str, Any]], Awaitable[ToolResult]]


def has_reference(args: dict[str, Any], prefix: str, label: str = "name") -> bool:
    return bool(args.get(f"{prefix}_id") or args.get(f"{prefix}_{label}"))


def require(args: dict[str, Any], key: str, message: str) -> Any:
    value = args.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message)
    return value


def pick(args: dict[str, Any], *keys: str) -> dict[str, Any]:
    """The subset of ``keys`` actually present in ``args``."""
    return {key: args[key] for key in keys if args.get(key) is not None}


def public_token() -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(PUBLIC_TOKEN_LENGTH))


async def insert_one(store: Store, table: str, row: Row) -> Row:
    rows = await store.insert(table, row)
    if not rows:
        raise StoreError(f"Insert into {table} returned no row")
    return rows[0]


async def update_one(store: Store, table: str, values: Row, filters: dict[str, Any]) -> Row:
    rows = await store.update(table, values, filters=filters)
    if not rows:
        raise StoreError(f"Update of {table} matched no row", details={"filters": filters})
    return rows[0]


def bullet_list(rows: list[Row], render: Callable[[Row], str]) -> str:
    return "\n".join(f"- {render(row)}" for row in rows)


async def discard(
    ctx: HandlerContext, table: str, row_id: str, *children: tuple[str, str]
) -> None:
    """Delete a row written earlier in a failed request.

    ``children`` are ``(table, foreign_key)`` pairs removed before the row.
    """
    for child_table, foreign_key in children:
        await ctx.store.delete(child_table, filters={foreign_key: row_id})
    await ctx.store.delete(table, filters=ctx.owned(id=row_id))
    logger.warning("write_rolled_back", table=table, row_id=row_id)
