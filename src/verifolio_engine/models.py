"""Domain types shared by the engine components.

Persisted records travel as plain ``dict`` rows (the shape PostgREST
returns). The dataclasses here cover the values the engine computes or
hands back to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from verifolio_engine.config.settings import FlatSettings
from verifolio_engine.errors import EngineError

CENT = Decimal("0.01")


class EntityKind(str, Enum):
    """Kinds of records the engine resolves, creates or audits."""

    CLIENT = "client"
    CONTACT = "contact"
    DEAL = "deal"
    MISSION = "mission"
    QUOTE = "quote"
    INVOICE = "invoice"
    DELIVERY_NOTE = "delivery_note"
    PROPOSAL = "proposal"
    PROPOSAL_TEMPLATE = "proposal_template"
    BRIEF = "brief"
    BRIEF_TEMPLATE = "brief_template"
    REVIEW_REQUEST = "review_request"


class DocType(str, Enum):
    """Numbered document types, each with its own counter."""

    QUOTE = "quote"
    INVOICE = "invoice"
    DELIVERY_NOTE = "delivery_note"


class ClientType(str, Enum):
    INDIVIDUAL = "particulier"
    ORGANIZATION = "entreprise"


class DealStatus(str, Enum):
    NEW = "new"
    DRAFT = "draft"
    SENT = "sent"
    WON = "won"
    LOST = "lost"
    ARCHIVED = "archived"


class MissionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    TO_INVOICE = "to_invoice"
    INVOICED = "invoiced"
    PAID = "paid"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class QuoteStatus(str, Enum):
    DRAFT = "brouillon"
    SENT = "envoye"
    ACCEPTED = "accepted"
    REFUSED = "refused"


class InvoiceStatus(str, Enum):
    DRAFT = "brouillon"
    SENT = "envoyee"
    PARTIALLY_PAID = "partielle"
    PAID = "payee"
    CANCELLED = "annulee"


class DeliveryNoteStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    CANCELLED = "CANCELLED"


class ProposalStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    COMMENTED = "commented"
    ACCEPTED = "accepted"
    REFUSED = "refused"


class BriefStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    RESPONDED = "RESPONDED"


class ContactContext(str, Enum):
    """Role context used to pick the right contact at a client."""

    BILLING = "FACTURATION"
    OPERATIONS = "OPERATIONNEL"
    MANAGEMENT = "DIRECTION"

    @property
    def flag_column(self) -> str:
        return {
            ContactContext.BILLING: "handles_billing",
            ContactContext.OPERATIONS: "handles_ops",
            ContactContext.MANAGEMENT: "handles_management",
        }[self]


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


def to_decimal(value: Any) -> Decimal:
    """Convert a stored amount (str, int, float or None) to Decimal."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal) -> str:
    """Serialize an amount the way it is persisted (two decimals)."""
    return str(value.quantize(CENT))


@dataclass
class LineItem:
    """A priced document line. Amounts are recomputed, never trusted."""

    description: str
    quantite: Decimal
    prix_unitaire: Decimal
    tva_rate: Decimal

    @property
    def montant_ht(self) -> Decimal:
        return (self.quantite * self.prix_unitaire).quantize(CENT)

    @property
    def montant_tva(self) -> Decimal:
        return (self.montant_ht * self.tva_rate / Decimal("100")).quantize(CENT)

    @property
    def montant_ttc(self) -> Decimal:
        return self.montant_ht + self.montant_tva

    def to_row(self, ordre: int) -> dict[str, Any]:
        return {
            "description": self.description,
            "quantite": str(self.quantite),
            "prix_unitaire": money(self.prix_unitaire),
            "tva_rate": str(self.tva_rate),
            "montant_ht": money(self.montant_ht),
            "montant_tva": money(self.montant_tva),
            "montant_ttc": money(self.montant_ttc),
            "ordre": ordre,
        }


@dataclass
class DocumentTotals:
    total_ht: Decimal = Decimal("0")
    total_tva: Decimal = Decimal("0")

    @property
    def total_ttc(self) -> Decimal:
        return self.total_ht + self.total_tva

    def to_row(self) -> dict[str, str]:
        return {
            "total_ht": money(self.total_ht),
            "total_tva": money(self.total_tva),
            "total_ttc": money(self.total_ttc),
        }


@dataclass
class CompanySettings:
    """Per-owner configuration with the documented fallbacks applied."""

    currency: str
    default_tax_rate: Decimal
    patterns: dict[DocType, str]
    display_name: str | None = None
    email: str | None = None
    currency_is_fallback: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any] | None, settings: FlatSettings) -> "CompanySettings":
        row = row or {}
        currency = row.get("default_currency")
        tax_rate = row.get("default_tax_rate")
        return cls(
            currency=currency or settings.fallback_currency,
            default_tax_rate=(
                to_decimal(tax_rate) if tax_rate is not None else settings.fallback_tax_rate
            ),
            patterns={
                DocType.QUOTE: row.get("quote_number_pattern")
                or settings.fallback_quote_pattern,
                DocType.INVOICE: row.get("invoice_number_pattern")
                or settings.fallback_invoice_pattern,
                DocType.DELIVERY_NOTE: row.get("delivery_note_number_pattern")
                or settings.fallback_delivery_note_pattern,
            },
            display_name=row.get("display_name"),
            email=row.get("email"),
            currency_is_fallback=not currency,
        )


@dataclass(frozen=True)
class Ref:
    """A resolved entity reference."""

    kind: EntityKind
    id: str
    label: str | None = None


@dataclass
class ToolResult:
    """Uniform result envelope returned for every dispatched action."""

    success: bool
    message: str
    data: Any = None
    error: str | None = None
    next_action: str | None = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ToolResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: EngineError) -> "ToolResult":
        return cls(
            success=False,
            message=error.message,
            error=error.code,
            next_action=error.next_action,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        if self.error:
            result["error"] = self.error
        if self.next_action:
            result["next_action"] = self.next_action
        return result


@dataclass
class ActivityEntry:
    """One audit-log record for a successful mutating action."""

    action: AuditAction
    entity_type: EntityKind
    entity_id: str
    entity_title: str
    source: str = "assistant"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "entity_title": self.entity_title,
            "source": self.source,
            "created_at": self.timestamp.isoformat(),
        }
