"""Document totals and invoice aggregation.

All arithmetic uses ``Decimal`` quantized to cents. Stored amounts come back
from PostgREST as strings or numbers and go through ``to_decimal``.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

import structlog

from verifolio_engine.errors import ValidationError
from verifolio_engine.models import (
    DocumentTotals,
    InvoiceStatus,
    LineItem,
    money,
    to_decimal,
)
from verifolio_engine.store import Row, Store

logger = structlog.get_logger(__name__)

UNKNOWN_CLIENT = "Inconnu"

# Largest accepted unit price, quantity or estimate. Keeps every product and
# sum inside the default 28-digit decimal context.
MAX_AMOUNT = Decimal("1e12")
MAX_TAX_RATE = Decimal("100")

CURRENCY_SYMBOLS: dict[str, str] = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "CHF": "CHF",
    "CAD": "$ CA",
    "MAD": "MAD",
    "XOF": "FCFA",
}


def currency_symbol(code: str) -> str:
    """Display symbol for an ISO currency code; unknown codes show as is."""
    return CURRENCY_SYMBOLS.get(code.upper(), code)


def parse_amount(raw: Any, label: str, maximum: Decimal = MAX_AMOUNT) -> Decimal:
    """Convert a planner-supplied amount, rejecting non-finite or oversized values."""
    try:
        value = to_decimal(raw)
    except InvalidOperation as e:
        raise ValidationError(f"{label} invalide ({raw!r}).") from e
    if not value.is_finite() or abs(value) > maximum:
        raise ValidationError(f"{label} hors limites ({raw!r}, maximum {maximum:f}).")
    return value


def _amount(item: dict[str, Any], key: str, default: Decimal | None, position: int) -> Decimal:
    raw = item.get(key)
    if raw is None or raw == "":
        if default is None:
            raise ValidationError(f"Ligne {position}: {key} est requis.")
        return default
    maximum = MAX_TAX_RATE if key == "tva_rate" else MAX_AMOUNT
    return parse_amount(raw, f"Ligne {position}: {key}", maximum)


def parse_line_items(
    items: list[dict[str, Any]],
    default_tax_rate: Decimal,
    require_price: bool = True,
) -> list[LineItem]:
    """Build ``LineItem`` values from planner-supplied dicts.

    Missing quantities default to 1 and missing tax rates to the company
    rate. Any amount fields sent by the caller are ignored.
    """
    lines: list[LineItem] = []
    for position, item in enumerate(items, start=1):
        description = str(item.get("description") or "").strip()
        if not description:
            raise ValidationError(f"Ligne {position}: description est requise.")
        lines.append(
            LineItem(
                description=description,
                quantite=_amount(item, "quantite", Decimal("1"), position),
                prix_unitaire=_amount(
                    item, "prix_unitaire", None if require_price else Decimal("0"), position
                ),
                tva_rate=_amount(item, "tva_rate", default_tax_rate, position),
            )
        )
    return lines


def compute_totals(
    items: list[dict[str, Any]],
    default_tax_rate: Decimal,
    require_price: bool = True,
) -> tuple[list[LineItem], DocumentTotals]:
    """Parse line items and compute document totals from them."""
    lines = parse_line_items(items, default_tax_rate, require_price=require_price)
    totals = DocumentTotals()
    try:
        for line in lines:
            totals.total_ht += line.montant_ht
            totals.total_tva += line.montant_tva
        totals.to_row()
    except InvalidOperation as e:
        raise ValidationError("Montants trop élevés pour être calculés.") from e
    return lines, totals


def mission_balance(mission: Row, invoices: list[Row]) -> tuple[Decimal, Decimal]:
    """Return ``(total_facture, reste_a_facturer)`` for a mission.

    Cancelled invoices do not count as invoiced.
    """
    total_mission = to_decimal(mission.get("final_amount") or mission.get("estimated_amount"))
    total_facture = sum(
        (
            to_decimal(inv.get("total_ttc"))
            for inv in invoices
            if inv.get("status") != InvoiceStatus.CANCELLED.value
        ),
        Decimal("0"),
    )
    return total_facture, total_mission - total_facture


class QueryType(str, Enum):
    UNPAID = "unpaid"
    REVENUE = "revenue"
    BY_CLIENT = "by_client"
    ALL = "all"


@dataclass
class ClientGroup:
    name: str
    total: Decimal = Decimal("0")
    unpaid: Decimal = Decimal("0")
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "client": self.name,
            "total": money(self.total),
            "unpaid": money(self.unpaid),
            "count": self.count,
        }


@dataclass
class FinancialSummary:
    """Result of one aggregation, with the currency fixed for its lifetime."""

    query_type: QueryType
    currency: str
    symbol: str
    total: Decimal = Decimal("0")
    total_unpaid: Decimal = Decimal("0")
    total_revenue: Decimal = Decimal("0")
    invoices: list[dict[str, Any]] = field(default_factory=list)
    groups: list[ClientGroup] = field(default_factory=list)

    def fmt(self, amount: Decimal) -> str:
        return f"{money(amount)} {self.symbol}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "query_type": self.query_type.value,
            "currency": self.currency,
            "total": money(self.total),
        }
        if self.query_type in (QueryType.UNPAID, QueryType.REVENUE):
            data["count"] = len(self.invoices)
            data["invoices"] = self.invoices
        else:
            data["count"] = sum(group.count for group in self.groups)
            data["clients"] = [group.to_dict() for group in self.groups]
            data["total_unpaid"] = money(self.total_unpaid)
            data["total_revenue"] = money(self.total_revenue)
        return data

    def render(self) -> str:
        """Human-readable summary, every amount in the same currency."""
        if self.query_type == QueryType.UNPAID:
            if not self.invoices:
                return "Aucune facture impayée. Toutes les factures sont réglées."
            details = "\n".join(
                f"• {inv['numero']} ({inv['client']}): {self.fmt(to_decimal(inv['total_ttc']))}"
                for inv in self.invoices
            )
            return (
                f"Montant total impayé: {self.fmt(self.total)}\n\n"
                f"{len(self.invoices)} facture(s) impayée(s):\n{details}"
            )

        if self.query_type == QueryType.REVENUE:
            return (
                f"Chiffre d'affaires encaissé: {self.fmt(self.total)} "
                f"({len(self.invoices)} facture(s) payée(s))"
            )

        if not self.groups:
            return "Aucune facture trouvée."
        lines = []
        for group in self.groups:
            unpaid_info = (
                f"dont {self.fmt(group.unpaid)} impayé" if group.unpaid > 0 else "tout payé"
            )
            lines.append(f"• {group.name}: {self.fmt(group.total)} ({unpaid_info})")
        return (
            "Résumé par client:\n"
            + "\n".join(lines)
            + f"\n\nTotal impayé: {self.fmt(self.total_unpaid)}"
            + f"\nTotal encaissé: {self.fmt(self.total_revenue)}"
        )


class FinancialAggregator:
    """Read-only totals over an owner's invoices."""

    def __init__(self, store: Store, owner_id: str):
        self.store = store
        self.owner_id = owner_id

    async def _load(self, client_name: str | None) -> list[tuple[Row, str]]:
        clients = await self.store.select(
            "clients", filters={"user_id": self.owner_id}, columns="id,nom"
        )
        names = {c["id"]: c.get("nom") or UNKNOWN_CLIENT for c in clients}
        invoices = await self.store.select(
            "invoices", filters={"user_id": self.owner_id}, order_by="created_at"
        )

        result = []
        needle = client_name.strip().lower() if client_name else None
        for invoice in invoices:
            name = names.get(invoice.get("client_id"), UNKNOWN_CLIENT)
            if needle and needle not in name.lower():
                continue
            result.append((invoice, name))
        return result

    async def summarize(
        self,
        query_type: QueryType,
        currency: str,
        client_name: str | None = None,
    ) -> FinancialSummary:
        rows = await self._load(client_name)
        summary = FinancialSummary(
            query_type=query_type, currency=currency, symbol=currency_symbol(currency)
        )

        groups: dict[str, ClientGroup] = {}
        for invoice, name in rows:
            amount = to_decimal(invoice.get("total_ttc"))
            paid = invoice.get("status") == InvoiceStatus.PAID.value

            if paid:
                summary.total_revenue += amount
            else:
                summary.total_unpaid += amount

            group = groups.setdefault(name, ClientGroup(name=name))
            group.total += amount
            group.count += 1
            if not paid:
                group.unpaid += amount

            if (query_type == QueryType.UNPAID and not paid) or (
                query_type == QueryType.REVENUE and paid
            ):
                summary.total += amount
                summary.invoices.append(
                    {
                        "id": invoice.get("id"),
                        "numero": invoice.get("numero"),
                        "client": name,
                        "status": invoice.get("status"),
                        "total_ttc": money(amount),
                    }
                )

        if query_type in (QueryType.BY_CLIENT, QueryType.ALL):
            summary.groups = list(groups.values())
            summary.total = summary.total_unpaid + summary.total_revenue

        logger.info(
            "financial_summary_computed",
            owner=self.owner_id,
            query_type=query_type.value,
            invoices=len(rows),
            total=money(summary.total),
        )
        return summary
