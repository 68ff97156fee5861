"""Resolution of loose entity references into concrete records."""

import re
from dataclasses import dataclass
from typing import Any

import structlog

from verifolio_engine.errors import EntityNotFound, ValidationError
from verifolio_engine.models import EntityKind, Ref
from verifolio_engine.store import Row, Store

logger = structlog.get_logger(__name__)

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_identifier(value: Any) -> bool:
    """True when ``value`` has the shape of a record identifier."""
    return isinstance(value, str) and bool(UUID_RE.match(value.strip()))


@dataclass(frozen=True)
class EntitySpec:
    table: str
    label_column: str
    display: str
    list_action: str | None


ENTITY_SPECS: dict[EntityKind, EntitySpec] = {
    EntityKind.CLIENT: EntitySpec("clients", "nom", "Client", "list_clients"),
    EntityKind.CONTACT: EntitySpec("contacts", "nom", "Contact", "list_contacts"),
    EntityKind.DEAL: EntitySpec("deals", "title", "Deal", "list_deals"),
    EntityKind.MISSION: EntitySpec("missions", "title", "Mission", "list_missions"),
    EntityKind.QUOTE: EntitySpec("quotes", "numero", "Devis", "list_quotes"),
    EntityKind.INVOICE: EntitySpec("invoices", "numero", "Facture", "list_invoices"),
    EntityKind.DELIVERY_NOTE: EntitySpec(
        "delivery_notes", "numero", "Bon de livraison", "list_delivery_notes"
    ),
    EntityKind.PROPOSAL: EntitySpec("proposals", "title", "Proposition", "list_proposals"),
    EntityKind.PROPOSAL_TEMPLATE: EntitySpec(
        "proposal_templates", "name", "Template", "list_proposal_templates"
    ),
    EntityKind.BRIEF: EntitySpec("briefs", "title", "Brief", "list_briefs"),
    EntityKind.BRIEF_TEMPLATE: EntitySpec(
        "brief_templates", "name", "Template de brief", "list_brief_templates"
    ),
    EntityKind.REVIEW_REQUEST: EntitySpec(
        "review_requests", "title", "Demande d'avis", "list_review_requests"
    ),
}


class EntityResolver:
    """Turns an identifier or a free-text name into a ``Ref``, scoped to one owner.

    An identifier-shaped value is trusted as is and costs no storage call.
    Anything else is a name: one case-insensitive substring search ordered
    by the label column, first match wins. Several matches are not treated
    as an error.
    """

    def __init__(self, store: Store, owner_id: str):
        self.store = store
        self.owner_id = owner_id

    async def resolve(
        self,
        kind: EntityKind,
        id: str | None = None,
        name: str | None = None,
    ) -> Ref:
        spec = ENTITY_SPECS[kind]
        id = id.strip() if isinstance(id, str) else None
        name = name.strip() if isinstance(name, str) else None

        if id and is_identifier(id):
            return Ref(kind=kind, id=id)

        # Planners regularly put a name in an id slot.
        term = name or id
        if not term:
            raise ValidationError(
                f"{spec.display} requis (identifiant ou nom).", next_action=spec.list_action
            )

        rows = await self.store.search(
            spec.table,
            column=spec.label_column,
            term=term,
            filters={"user_id": self.owner_id},
            order_by=spec.label_column,
            limit=2,
        )
        if not rows:
            logger.info("entity_not_found", kind=kind.value, reference=term)
            raise EntityNotFound(
                kind.value,
                term,
                message=f'{spec.display} "{term}" introuvable.',
                next_action=spec.list_action,
            )
        if len(rows) > 1:
            logger.debug("entity_name_ambiguous", kind=kind.value, reference=term)

        row = rows[0]
        return Ref(kind=kind, id=row["id"], label=row.get(spec.label_column))

    async def fetch(self, ref: Ref) -> Row:
        """Load the record behind ``ref`` for the current owner."""
        spec = ENTITY_SPECS[ref.kind]
        rows = await self.store.select(
            spec.table, filters={"id": ref.id, "user_id": self.owner_id}, limit=1
        )
        if not rows:
            raise EntityNotFound(
                ref.kind.value,
                ref.id,
                message=f"{spec.display} introuvable (ID: {ref.id}).",
                next_action=spec.list_action,
            )
        return rows[0]

    async def resolve_record(
        self,
        kind: EntityKind,
        id: str | None = None,
        name: str | None = None,
    ) -> Row:
        return await self.fetch(await self.resolve(kind, id=id, name=name))
