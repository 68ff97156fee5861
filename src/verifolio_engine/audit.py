"""Activity log sinks for successful mutating actions."""

from typing import Protocol

import structlog

from verifolio_engine.models import ActivityEntry
from verifolio_engine.store import Store

logger = structlog.get_logger(__name__)


class AuditLogger(Protocol):
    async def log(self, entry: ActivityEntry) -> None: ...


class StoreAuditLogger:
    """Persists entries to the owner's ``activity_logs`` table."""

    table = "activity_logs"

    def __init__(self, store: Store, owner_id: str):
        self.store = store
        self.owner_id = owner_id

    async def log(self, entry: ActivityEntry) -> None:
        await self.store.insert(self.table, {"user_id": self.owner_id, **entry.to_dict()})
        logger.debug(
            "activity_logged",
            action=entry.action.value,
            entity_type=entry.entity_type.value,
            entity_id=entry.entity_id,
        )


class NullAuditLogger:
    """Emits entries to the structured log only."""

    async def log(self, entry: ActivityEntry) -> None:
        logger.info("activity", **entry.to_dict())
