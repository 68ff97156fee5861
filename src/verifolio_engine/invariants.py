"""Parent-link rules checked before any document is created.

Every commercial document hangs off a deal or a mission. The rules live in
one table so a new document family only needs a new row here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from verifolio_engine.errors import EntityNotFound, MissingRequiredLink, ValidationError
from verifolio_engine.models import EntityKind
from verifolio_engine.resolver import EntityResolver
from verifolio_engine.tools.catalog import Action

logger = structlog.get_logger(__name__)


class ActionFamily(str, Enum):
    QUOTE = "quote"
    PROPOSAL = "proposal"
    BRIEF = "brief"
    INVOICE = "invoice"
    DELIVERY_NOTE = "delivery_note"
    REVIEW_REQUEST = "review_request"


@dataclass(frozen=True)
class LinkRule:
    """A mandatory parent: the argument carrying it and how to discover one."""

    argument: str
    parent: EntityKind
    parent_label: str
    parent_phrase: str
    discover_with: Action
    document_label: str


def _deal_link(document_label: str) -> LinkRule:
    return LinkRule(
        argument="deal_id",
        parent=EntityKind.DEAL,
        parent_label="deal",
        parent_phrase="un deal",
        discover_with=Action.LIST_DEALS,
        document_label=document_label,
    )


def _mission_link(document_label: str) -> LinkRule:
    return LinkRule(
        argument="mission_id",
        parent=EntityKind.MISSION,
        parent_label="mission",
        parent_phrase="une mission",
        discover_with=Action.LIST_MISSIONS,
        document_label=document_label,
    )


LINK_RULES: dict[ActionFamily, LinkRule] = {
    ActionFamily.QUOTE: _deal_link("un devis"),
    ActionFamily.PROPOSAL: _deal_link("une proposition"),
    ActionFamily.BRIEF: _deal_link("un brief"),
    ActionFamily.INVOICE: _mission_link("une facture"),
    ActionFamily.DELIVERY_NOTE: _mission_link("un bon de livraison"),
    ActionFamily.REVIEW_REQUEST: _mission_link("une demande d'avis"),
}

ACTION_FAMILIES: dict[Action, ActionFamily] = {
    Action.CREATE_QUOTE: ActionFamily.QUOTE,
    Action.CREATE_PROPOSAL: ActionFamily.PROPOSAL,
    Action.CREATE_BRIEF: ActionFamily.BRIEF,
    Action.CREATE_INVOICE: ActionFamily.INVOICE,
    Action.CONVERT_QUOTE_TO_INVOICE: ActionFamily.INVOICE,
    Action.CREATE_DELIVERY_NOTE: ActionFamily.DELIVERY_NOTE,
    Action.CREATE_REVIEW_REQUEST: ActionFamily.REVIEW_REQUEST,
}


class InvariantEnforcer:
    """Rejects a creating action whose mandatory parent is absent or unknown.

    The check only reads: nothing is written when it fails, and the handler
    is never reached.
    """

    def __init__(self, resolver: EntityResolver):
        self.resolver = resolver

    async def enforce(self, family: ActionFamily, args: dict[str, Any]) -> dict[str, Any]:
        """Return ``args`` with the parent reference replaced by an existing id.

        Raises:
            MissingRequiredLink: when the parent argument is blank, cannot be
                resolved by name, or names an id the owner does not have.
        """
        rule = LINK_RULES[family]
        value = args.get(rule.argument)
        if not isinstance(value, str) or not value.strip():
            logger.warning("required_link_missing", family=family.value, link=rule.argument)
            raise MissingRequiredLink(
                rule.argument,
                f"{rule.parent_phrase.capitalize()} est obligatoire pour créer "
                f"{rule.document_label} ({rule.argument} required). Utilise "
                f"{rule.discover_with.value} pour voir les {rule.parent_label}s disponibles.",
                next_action=rule.discover_with.value,
            )

        try:
            ref = await self.resolver.resolve(rule.parent, id=value)
            await self.resolver.fetch(ref)
        except (EntityNotFound, ValidationError) as e:
            logger.warning(
                "required_link_unresolved",
                family=family.value,
                link=rule.argument,
                reference=value,
            )
            raise MissingRequiredLink(
                rule.argument,
                f"{rule.parent_label.capitalize()} \"{value}\" introuvable: "
                f"{rule.parent_phrase} existant(e) est obligatoire pour créer "
                f"{rule.document_label}. Utilise {rule.discover_with.value} pour "
                f"trouver le bon identifiant.",
                next_action=rule.discover_with.value,
            ) from e

        return {**args, rule.argument: ref.id}
