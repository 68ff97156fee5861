"""Tool executor that turns planner tool calls into checked store mutations."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from verifolio_engine.audit import AuditLogger, StoreAuditLogger
from verifolio_engine.config.settings import FlatSettings, get_settings
from verifolio_engine.errors import EngineError, StoreError, ValidationError
from verifolio_engine.handlers import (
    briefs,
    clients,
    contacts,
    custom_fields,
    deals,
    documents,
    finance,
    missions,
    proposals,
    reviews,
)
from verifolio_engine.handlers import settings as company_settings
from verifolio_engine.handlers.base import Handler, HandlerContext, utcnow
from verifolio_engine.invariants import ACTION_FAMILIES, InvariantEnforcer
from verifolio_engine.models import ActivityEntry, EntityKind, ToolResult
from verifolio_engine.numbering import DocumentNumberAllocator
from verifolio_engine.resolver import EntityResolver
from verifolio_engine.store import Row, Store
from verifolio_engine.tools.catalog import (
    MUTATING_ACTIONS,
    Action,
    get_tool,
    validate_arguments,
)

logger = structlog.get_logger(__name__)

DEFAULT_TITLE_FIELDS = ("nom", "name", "title", "numero")
UNTITLED = "Sans titre"

TITLE_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.CLIENT: ("nom",),
    EntityKind.CONTACT: ("nom",),
    EntityKind.DEAL: ("title",),
    EntityKind.MISSION: ("title",),
    EntityKind.QUOTE: ("numero",),
    EntityKind.INVOICE: ("numero",),
    EntityKind.DELIVERY_NOTE: ("numero",),
    EntityKind.PROPOSAL: ("title",),
    EntityKind.BRIEF: ("title",),
    EntityKind.REVIEW_REQUEST: ("title",),
}


def entity_title(kind: EntityKind, data: Row) -> str:
    """First non-empty title candidate of a row, or ``Sans titre``."""
    for key in TITLE_FIELDS.get(kind, ()) + DEFAULT_TITLE_FIELDS:
        value = data.get(key)
        if value:
            return str(value)
    return UNTITLED


class ToolExecutor:
    """Executes planner tool calls for one owner.

    Every call goes through the same pipeline: catalog lookup, argument
    validation, parent-link enforcement for creating actions, the handler,
    then an activity-log entry for successful mutations. Domain failures
    come back as a failure envelope; storage failures propagate.
    """

    def __init__(
        self,
        store: Store,
        owner_id: str,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] | None = None,
        settings: FlatSettings | None = None,
    ):
        self.store = store
        self.owner_id = owner_id
        self.audit_logger = audit_logger or StoreAuditLogger(store, owner_id)
        self.clock = clock or utcnow
        self.settings = settings or get_settings()
        self.resolver = EntityResolver(store, owner_id)
        self.allocator = DocumentNumberAllocator(store)
        self.enforcer = InvariantEnforcer(self.resolver)
        self._tool_handlers: dict[Action, Handler] = {
            # Clients
            Action.CREATE_CLIENT: clients.create_client,
            Action.LIST_CLIENTS: clients.list_clients,
            Action.UPDATE_CLIENT: clients.update_client,
            # Contacts
            Action.CREATE_CONTACT: contacts.create_contact,
            Action.LIST_CONTACTS: contacts.list_contacts,
            Action.UPDATE_CONTACT: contacts.update_contact,
            Action.LINK_CONTACT_TO_CLIENT: contacts.link_contact_to_client,
            Action.UNLINK_CONTACT_FROM_CLIENT: contacts.unlink_contact_from_client,
            Action.UPDATE_CLIENT_CONTACT: contacts.update_client_contact,
            Action.GET_CONTACT_FOR_CONTEXT: contacts.get_contact_for_context,
            # Deals
            Action.CREATE_DEAL: deals.create_deal,
            Action.LIST_DEALS: deals.list_deals,
            Action.GET_DEAL: deals.get_deal,
            Action.UPDATE_DEAL_STATUS: deals.update_deal_status,
            # Missions
            Action.CREATE_MISSION: missions.create_mission,
            Action.LIST_MISSIONS: missions.list_missions,
            Action.GET_MISSION: missions.get_mission,
            Action.UPDATE_MISSION_STATUS: missions.update_mission_status,
            # Quotes
            Action.CREATE_QUOTE: documents.create_quote,
            Action.LIST_QUOTES: documents.list_quotes,
            Action.UPDATE_QUOTE_STATUS: documents.update_quote_status,
            # Invoices
            Action.CREATE_INVOICE: documents.create_invoice,
            Action.LIST_INVOICES: documents.list_invoices,
            Action.UPDATE_INVOICE: documents.update_invoice,
            Action.UPDATE_INVOICE_STATUS: documents.update_invoice_status,
            Action.MARK_INVOICE_PAID: documents.mark_invoice_paid,
            Action.CONVERT_QUOTE_TO_INVOICE: documents.convert_quote_to_invoice,
            # Delivery notes
            Action.CREATE_DELIVERY_NOTE: documents.create_delivery_note,
            Action.LIST_DELIVERY_NOTES: documents.list_delivery_notes,
            # Sending, finance, settings
            Action.SEND_EMAIL: documents.send_email,
            Action.GET_FINANCIAL_SUMMARY: finance.get_financial_summary,
            Action.GET_COMPANY_SETTINGS: company_settings.get_company_settings,
            # Custom fields
            Action.LIST_CUSTOM_FIELDS: custom_fields.list_custom_fields,
            Action.CREATE_CUSTOM_FIELD: custom_fields.create_custom_field,
            Action.UPDATE_CUSTOM_FIELD_VALUE: custom_fields.update_custom_field_value,
            Action.DELETE_CUSTOM_FIELD: custom_fields.delete_custom_field,
            # Proposals
            Action.LIST_PROPOSAL_TEMPLATES: proposals.list_proposal_templates,
            Action.CREATE_PROPOSAL: proposals.create_proposal,
            Action.LIST_PROPOSALS: proposals.list_proposals,
            Action.SET_PROPOSAL_STATUS: proposals.set_proposal_status,
            Action.GET_CLIENT_CONTACTS_FOR_PROPOSAL: proposals.get_client_contacts_for_proposal,
            Action.SET_PROPOSAL_RECIPIENTS: proposals.set_proposal_recipients,
            Action.GET_PROPOSAL_PUBLIC_LINK: proposals.get_proposal_public_link,
            # Briefs
            Action.LIST_BRIEF_TEMPLATES: briefs.list_brief_templates,
            Action.CREATE_BRIEF: briefs.create_brief,
            Action.LIST_BRIEFS: briefs.list_briefs,
            Action.SEND_BRIEF: briefs.send_brief,
            # Reviews
            Action.CREATE_REVIEW_REQUEST: reviews.create_review_request,
            Action.LIST_REVIEW_REQUESTS: reviews.list_review_requests,
            Action.LIST_REVIEWS: reviews.list_reviews,
        }

    @property
    def actions(self) -> list[Action]:
        return list(self._tool_handlers)

    def context(self) -> HandlerContext:
        """A fresh per-request context; company settings are read lazily once."""
        return HandlerContext(
            store=self.store,
            owner_id=self.owner_id,
            resolver=self.resolver,
            allocator=self.allocator,
            settings=self.settings,
            clock=self.clock,
        )

    async def execute(self, tool_name: str, arguments: Any) -> dict[str, Any]:
        """Execute a tool call and return the result envelope as a dict.

        ``arguments`` is the decoded call payload; anything but an object (or
        ``None``) is refused with a validation failure.
        """
        with structlog.contextvars.bound_contextvars(tool=tool_name, owner=self.owner_id):
            result = await self._run(tool_name, arguments)
        return result.to_dict()

    async def _run(self, tool_name: str, arguments: Any) -> ToolResult:
        try:
            action = get_tool(tool_name)
            if arguments is None:
                arguments = {}
            if not isinstance(arguments, dict):
                raise ValidationError(
                    f"Arguments invalides pour {tool_name}: un objet JSON est attendu."
                )
            args = dict(arguments)
            logger.info("executing_tool", args=args)
            validate_arguments(action, args)

            family = ACTION_FAMILIES.get(action)
            if family is not None:
                args = await self.enforcer.enforce(family, args)

            result = await self._tool_handlers[action](self.context(), args)
        except EngineError as e:
            logger.warning("tool_rejected", error=e.code, reason=e.message)
            return ToolResult.fail(e)

        logger.info("tool_executed", success=result.success)
        if result.success and action in MUTATING_ACTIONS:
            await self._record_activity(action, result)
        return result

    async def _record_activity(self, action: Action, result: ToolResult) -> None:
        data = result.data if isinstance(result.data, dict) else {}
        entity_id = data.get("id")
        if not entity_id:
            logger.debug("activity_skipped", reason="no_entity_id")
            return

        kind, audit_action = MUTATING_ACTIONS[action]
        entry = ActivityEntry(
            action=audit_action,
            entity_type=kind,
            entity_id=str(entity_id),
            entity_title=entity_title(kind, data),
            timestamp=self.clock(),
        )
        try:
            await self.audit_logger.log(entry)
        except StoreError as e:
            # The mutation already happened; the envelope stays a success.
            logger.warning("audit_log_failed", status=e.status_code, details=e.details)
