"""Quote, invoice and delivery note handlers.

Every numbered document follows the same sequence: validate and price the
lines, resolve the parent and the client, allocate the number, then write
the header and its lines. The number is allocated last so a refused request
never consumes one.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from verifolio_engine.errors import BusinessRuleError, EntityNotFound, ValidationError
from verifolio_engine.finance import compute_totals, currency_symbol
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    discard,
    has_reference,
    insert_one,
    pick,
    update_one,
)
from verifolio_engine.handlers.contacts import contact_for_context
from verifolio_engine.handlers.missions import refresh_mission_balance
from verifolio_engine.models import (
    ContactContext,
    DeliveryNoteStatus,
    DocType,
    DocumentTotals,
    EntityKind,
    InvoiceStatus,
    LineItem,
    QuoteStatus,
    Ref,
    ToolResult,
    money,
    to_decimal,
)
from verifolio_engine.store import Row

logger = structlog.get_logger(__name__)

QUOTE_STATUS_LABELS = {
    QuoteStatus.DRAFT: "Brouillon",
    QuoteStatus.SENT: "Envoyé",
    QuoteStatus.ACCEPTED: "Accepté",
    QuoteStatus.REFUSED: "Refusé",
}

INVOICE_STATUS_LABELS = {
    InvoiceStatus.DRAFT: "Brouillon",
    InvoiceStatus.SENT: "Envoyée",
    InvoiceStatus.PARTIALLY_PAID: "Partiellement payée",
    InvoiceStatus.PAID: "Payée",
    InvoiceStatus.CANCELLED: "Annulée",
}


@dataclass(frozen=True)
class DocumentTable:
    """Storage layout of one numbered document type."""

    doc_type: DocType
    table: str
    lines_table: str
    foreign_key: str


QUOTES = DocumentTable(DocType.QUOTE, "quotes", "quote_line_items", "quote_id")
INVOICES = DocumentTable(DocType.INVOICE, "invoices", "invoice_line_items", "invoice_id")
DELIVERY_NOTES = DocumentTable(
    DocType.DELIVERY_NOTE, "delivery_notes", "delivery_note_line_items", "delivery_note_id"
)


async def _create_document(
    ctx: HandlerContext, layout: DocumentTable, header: Row, lines: list[LineItem]
) -> Row:
    """Allocate the number, then insert the header and its lines.

    If the lines cannot be written the header is removed again; the number
    stays consumed.
    """
    company = await ctx.company()
    numero = await ctx.allocator.allocate(
        ctx.owner_id, layout.doc_type, company.patterns[layout.doc_type], ctx.today()
    )
    document = await insert_one(
        ctx.store,
        layout.table,
        {"user_id": ctx.owner_id, "numero": numero, **header},
    )

    rows = [{layout.foreign_key: document["id"], **line.to_row(i)} for i, line in enumerate(lines)]
    if rows:
        try:
            await ctx.store.insert(layout.lines_table, rows)
        except Exception:
            logger.warning(
                "document_lines_failed",
                table=layout.table,
                document_id=document["id"],
                numero=numero,
            )
            await discard(ctx, layout.table, document["id"])
            raise

    logger.info(
        "document_created",
        doc_type=layout.doc_type.value,
        document_id=document["id"],
        numero=numero,
        lines=len(rows),
    )
    return {**document, "items": rows}


async def _attach_to_mission(ctx: HandlerContext, invoice: Row, mission_id: str) -> Row:
    """Refresh the mission balance, removing the new invoice if that fails."""
    try:
        return await refresh_mission_balance(ctx, mission_id)
    except Exception:
        await discard(
            ctx, INVOICES.table, invoice["id"], (INVOICES.lines_table, INVOICES.foreign_key)
        )
        raise


async def _client_for(ctx: HandlerContext, args: dict[str, Any], parent: Row) -> Row:
    """The client named in the arguments, else the parent's client."""
    if has_reference(args, "client"):
        return await ctx.fetch_arg(EntityKind.CLIENT, args, "client")
    if parent.get("client_id"):
        return await ctx.resolver.fetch(Ref(EntityKind.CLIENT, parent["client_id"]))
    raise ValidationError("Veuillez spécifier un client.", next_action="list_clients")


def _total_line(totals: DocumentTotals, currency: str) -> str:
    return f"Total: {money(totals.total_ttc)} {currency_symbol(currency)} TTC"


def _describe_document(doc: Row, default_currency: str) -> str:
    symbol = currency_symbol(doc.get("devise") or default_currency)
    return (
        f"{doc.get('numero')} ({doc.get('status')}) - "
        f"{money(to_decimal(doc.get('total_ttc')))} {symbol} TTC (ID: {doc['id']})"
    )


# === Quotes ===


async def create_quote(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    company = await ctx.company()
    lines, totals = compute_totals(args.get("items") or [], company.default_tax_rate)
    if not lines:
        raise ValidationError("Au moins une ligne est requise.")

    deal = await ctx.resolver.fetch(Ref(EntityKind.DEAL, args["deal_id"]))
    client = await _client_for(ctx, args, deal)

    quote = await _create_document(
        ctx,
        QUOTES,
        {
            "client_id": client["id"],
            "deal_id": deal["id"],
            "date_emission": ctx.today().isoformat(),
            "status": QuoteStatus.DRAFT.value,
            "devise": company.currency,
            **totals.to_row(),
            **pick(args, "notes"),
        },
        lines,
    )
    return ToolResult.ok(
        f"Devis {quote['numero']} créé pour {client['nom']}.\nDeal: {deal['title']}\n"
        f"{_total_line(totals, company.currency)}\n(ID: {quote['id']})",
        quote,
    )


async def list_quotes(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    quotes = await ctx.store.select(
        "quotes",
        filters=ctx.owned(**pick(args, "status")),
        order_by="created_at",
        descending=True,
    )
    if not quotes:
        return ToolResult.ok("Aucun devis trouvé.", [])
    currency = (await ctx.company()).currency
    return ToolResult.ok(
        f"{len(quotes)} devis trouvé(s):\n"
        + bullet_list(quotes, lambda q: _describe_document(q, currency)),
        quotes,
    )


async def update_quote_status(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    status = QuoteStatus(args["status"])
    current = await ctx.fetch_arg(EntityKind.QUOTE, args, "quote", "numero")
    quote = await update_one(
        ctx.store, "quotes", {"status": status.value}, ctx.owned(id=current["id"])
    )

    message = f"Devis {quote['numero']} → {QUOTE_STATUS_LABELS[status]}."
    if status == QuoteStatus.ACCEPTED:
        message += " Prochaine étape: convertir en facture (convert_quote_to_invoice)."
    return ToolResult.ok(message, quote)


# === Invoices ===


async def create_invoice(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    company = await ctx.company()
    lines, totals = compute_totals(args.get("items") or [], company.default_tax_rate)
    if not lines:
        raise ValidationError("Au moins une ligne est requise.")

    mission = await ctx.resolver.fetch(Ref(EntityKind.MISSION, args["mission_id"]))
    client = await _client_for(ctx, args, mission)

    invoice = await _create_document(
        ctx,
        INVOICES,
        {
            "client_id": client["id"],
            "mission_id": mission["id"],
            "date_emission": ctx.today().isoformat(),
            "status": InvoiceStatus.DRAFT.value,
            "devise": company.currency,
            **totals.to_row(),
            **pick(args, "quote_id", "date_echeance", "notes"),
        },
        lines,
    )
    mission = await _attach_to_mission(ctx, invoice, mission["id"])

    return ToolResult.ok(
        f"Facture {invoice['numero']} créée pour {client['nom']}.\n"
        f"Mission: {mission['title']} (reste à facturer: {mission.get('reste_a_facturer')})\n"
        f"{_total_line(totals, company.currency)}\n(ID: {invoice['id']})",
        invoice,
    )


async def list_invoices(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned(**pick(args, "status"))
    if args.get("numero"):
        invoices = await ctx.store.search(
            "invoices", column="numero", term=args["numero"], filters=filters, order_by="numero"
        )
    else:
        invoices = await ctx.store.select(
            "invoices", filters=filters, order_by="created_at", descending=True
        )
    if not invoices:
        return ToolResult.ok("Aucune facture trouvée.", [])
    currency = (await ctx.company()).currency
    return ToolResult.ok(
        f"{len(invoices)} facture(s) trouvée(s):\n"
        + bullet_list(invoices, lambda inv: _describe_document(inv, currency)),
        invoices,
    )


async def update_invoice(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    current = await ctx.fetch_arg(EntityKind.INVOICE, args, "invoice", "numero")
    if current.get("status") != InvoiceStatus.DRAFT.value:
        raise BusinessRuleError(
            f"La facture {current['numero']} n'est plus en brouillon "
            "et ne peut pas être modifiée."
        )
    values = pick(args, "date_emission", "date_echeance", "notes")
    if not values:
        raise ValidationError("Aucun champ à modifier.")

    invoice = await update_one(ctx.store, "invoices", values, ctx.owned(id=current["id"]))
    return ToolResult.ok(
        f"Facture {invoice['numero']} mise à jour ({', '.join(values)}).\n(ID: {invoice['id']})",
        invoice,
    )


async def _set_invoice_status(ctx: HandlerContext, current: Row, status: InvoiceStatus) -> Row:
    values: Row = {"status": status.value}
    if status == InvoiceStatus.PAID:
        values["paid_at"] = ctx.now().isoformat()
    invoice = await update_one(ctx.store, "invoices", values, ctx.owned(id=current["id"]))
    if invoice.get("mission_id"):
        try:
            await refresh_mission_balance(ctx, invoice["mission_id"])
        except Exception:
            previous = {key: current.get(key) for key in values}
            await ctx.store.update("invoices", previous, filters=ctx.owned(id=current["id"]))
            logger.warning("invoice_status_reverted", invoice_id=current["id"], **previous)
            raise
    return invoice


async def update_invoice_status(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    status = InvoiceStatus(args["status"])
    current = await ctx.fetch_arg(EntityKind.INVOICE, args, "invoice", "numero")
    invoice = await _set_invoice_status(ctx, current, status)
    return ToolResult.ok(
        f"Facture {invoice['numero']} → {INVOICE_STATUS_LABELS[status]}.", invoice
    )


async def mark_invoice_paid(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    current = await ctx.fetch_arg(EntityKind.INVOICE, args, "invoice", "numero")
    if current.get("status") == InvoiceStatus.CANCELLED.value:
        raise BusinessRuleError(f"La facture {current['numero']} est annulée.")
    invoice = await _set_invoice_status(ctx, current, InvoiceStatus.PAID)
    return ToolResult.ok(f"Facture {invoice['numero']} marquée comme payée.", invoice)


async def _quote_to_convert(ctx: HandlerContext, args: dict[str, Any]) -> Row:
    if has_reference(args, "quote", "numero"):
        return await ctx.fetch_arg(EntityKind.QUOTE, args, "quote", "numero")
    if args.get("client_name"):
        client = await ctx.resolver.resolve(EntityKind.CLIENT, name=args["client_name"])
        quotes = await ctx.store.select(
            "quotes",
            filters=ctx.owned(client_id=client.id),
            order_by="created_at",
            descending=True,
            limit=1,
        )
        if not quotes:
            raise EntityNotFound(
                "quote",
                args["client_name"],
                message=f'Aucun devis trouvé pour le client "{client.label or client.id}".',
                next_action="list_quotes",
            )
        return quotes[0]
    raise ValidationError(
        "Veuillez préciser le devis à convertir (ID ou numéro).", next_action="list_quotes"
    )


async def convert_quote_to_invoice(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    quote = await _quote_to_convert(ctx, args)
    quote_lines = await ctx.store.select(
        "quote_line_items", filters={"quote_id": quote["id"]}, order_by="ordre"
    )
    company = await ctx.company()
    lines, totals = compute_totals(quote_lines, company.default_tax_rate)
    if not lines:
        raise BusinessRuleError(f"Le devis {quote['numero']} n'a aucune ligne à facturer.")

    mission = await ctx.resolver.fetch(Ref(EntityKind.MISSION, args["mission_id"]))
    currency = quote.get("devise") or company.currency
    invoice = await _create_document(
        ctx,
        INVOICES,
        {
            "client_id": quote.get("client_id") or mission.get("client_id"),
            "mission_id": mission["id"],
            "quote_id": quote["id"],
            "date_emission": ctx.today().isoformat(),
            "status": InvoiceStatus.DRAFT.value,
            "devise": currency,
            **totals.to_row(),
            **pick(quote, "notes"),
        },
        lines,
    )
    await _attach_to_mission(ctx, invoice, mission["id"])

    return ToolResult.ok(
        f"Facture {invoice['numero']} créée à partir du devis {quote['numero']}.\n"
        f"{_total_line(totals, currency)}\n(ID: {invoice['id']})",
        invoice,
    )


# === Delivery notes ===


async def create_delivery_note(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    company = await ctx.company()
    lines, _ = compute_totals(
        args.get("items") or [], company.default_tax_rate, require_price=False
    )
    if not lines:
        raise ValidationError("Au moins une ligne est requise.")

    mission = await ctx.resolver.fetch(Ref(EntityKind.MISSION, args["mission_id"]))
    note = await _create_document(
        ctx,
        DELIVERY_NOTES,
        {
            "client_id": mission.get("client_id"),
            "mission_id": mission["id"],
            "date_livraison": args.get("date_livraison") or ctx.today().isoformat(),
            "status": DeliveryNoteStatus.DRAFT.value,
            **pick(args, "notes"),
        },
        lines,
    )
    return ToolResult.ok(
        f"Bon de livraison {note['numero']} créé pour la mission \"{mission['title']}\" "
        f"({len(lines)} ligne(s)).\n(ID: {note['id']})",
        note,
    )


def _describe_delivery_note(note: Row) -> str:
    return f"{note['numero']} - {note.get('date_livraison')} (ID: {note['id']})"


async def list_delivery_notes(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned()
    if args.get("mission_id"):
        filters["mission_id"] = (
            await ctx.resolver.resolve(EntityKind.MISSION, id=args["mission_id"])
        ).id
    notes = await ctx.store.select(
        "delivery_notes", filters=filters, order_by="created_at", descending=True
    )
    if not notes:
        return ToolResult.ok("Aucun bon de livraison trouvé.", [])
    return ToolResult.ok(
        f"{len(notes)} bon(s) de livraison:\n"
        + bullet_list(notes, _describe_delivery_note),
        notes,
    )


# === Sending ===

SEND_TARGETS: dict[str, tuple[EntityKind, ContactContext, str]] = {
    "invoice": (EntityKind.INVOICE, ContactContext.BILLING, "la facture"),
    "quote": (EntityKind.QUOTE, ContactContext.MANAGEMENT, "le devis"),
    "delivery_note": (EntityKind.DELIVERY_NOTE, ContactContext.OPERATIONS, "le bon de livraison"),
}


async def send_email(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    """Prepare a document for sending. Delivery happens after user confirmation."""
    kind, context, label = SEND_TARGETS[args["entity_type"]]
    document = await ctx.resolver.resolve_record(kind, id=args.get("entity_id"))

    to_email = (args.get("to_email") or "").strip()
    if not to_email and document.get("client_id"):
        contact, _, _ = await contact_for_context(ctx, document["client_id"], context)
        to_email = (contact or {}).get("email") or ""
    if not to_email:
        raise ValidationError(
            f"Aucune adresse email pour envoyer {label} {document['numero']}. "
            "Précisez le destinataire (to_email).",
            next_action="get_contact_for_context",
        )

    return ToolResult.ok(
        f"Prêt à envoyer {label} {document['numero']} à {to_email}. Confirmez-vous l'envoi ?",
        {
            "type": args["entity_type"],
            "id": document["id"],
            "numero": document["numero"],
            "to": to_email,
        },
    )
