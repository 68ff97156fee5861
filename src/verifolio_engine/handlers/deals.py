"""Deal handlers."""

from typing import Any

from verifolio_engine.errors import ValidationError
from verifolio_engine.finance import parse_amount
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    has_reference,
    insert_one,
    pick,
    update_one,
)
from verifolio_engine.models import DealStatus, EntityKind, ToolResult, money, to_decimal
from verifolio_engine.store import Row

STATUS_LABELS = {
    DealStatus.NEW: "Nouveau",
    DealStatus.DRAFT: "Brouillon",
    DealStatus.SENT: "Envoyé",
    DealStatus.WON: "Gagné",
    DealStatus.LOST: "Perdu",
    DealStatus.ARCHIVED: "Archivé",
}


def _status_label(value: str | None) -> str:
    try:
        return STATUS_LABELS[DealStatus(value)]
    except ValueError:
        return str(value)


def _describe_deal(deal: Row) -> str:
    amount = deal.get("estimated_amount")
    suffix = f" - {money(to_decimal(amount))}" if amount is not None else ""
    return f"{deal['title']} ({_status_label(deal.get('status'))}){suffix} (ID: {deal['id']})"


async def create_deal(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    title = (args.get("title") or "").strip()
    if not title:
        raise ValidationError("Le titre du deal est requis.")
    if not has_reference(args, "client"):
        raise ValidationError(
            "Le client est requis pour créer un deal.", next_action="list_clients"
        )

    client = await ctx.fetch_arg(EntityKind.CLIENT, args, "client")
    row: Row = {
        "user_id": ctx.owner_id,
        "client_id": client["id"],
        "title": title,
        "status": DealStatus.NEW.value,
        **pick(args, "description"),
    }
    if args.get("estimated_amount") is not None:
        row["estimated_amount"] = money(parse_amount(args["estimated_amount"], "Montant estimé"))

    deal = await insert_one(ctx.store, "deals", row)
    return ToolResult.ok(
        f'Deal "{deal["title"]}" créé pour {client["nom"]}. Statut: Nouveau.\n(ID: {deal["id"]})',
        deal,
    )


async def list_deals(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned(**pick(args, "status"))
    if has_reference(args, "client"):
        filters["client_id"] = (await ctx.resolve_arg(EntityKind.CLIENT, args, "client")).id

    deals = await ctx.store.select("deals", filters=filters, order_by="created_at", descending=True)
    if not deals:
        return ToolResult.ok("Aucun deal trouvé.", [])
    return ToolResult.ok(
        f"{len(deals)} deal(s) trouvé(s):\n{bullet_list(deals, _describe_deal)}", deals
    )


async def get_deal(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    deal = await ctx.resolver.resolve_record(EntityKind.DEAL, id=args.get("deal_id"))
    scope = ctx.owned(deal_id=deal["id"])
    quotes = await ctx.store.select("quotes", filters=scope, columns="id,numero,status,total_ttc")
    proposals = await ctx.store.select("proposals", filters=scope, columns="id,title,status")
    briefs = await ctx.store.select("briefs", filters=scope, columns="id,title,status")

    data = {**deal, "quotes": quotes, "proposals": proposals, "briefs": briefs}
    return ToolResult.ok(
        f"Deal: {deal['title']}\nStatut: {_status_label(deal.get('status'))}\n"
        f"Devis: {len(quotes)} - Propositions: {len(proposals)} - Briefs: {len(briefs)}\n"
        f"(ID: {deal['id']})",
        data,
    )


async def update_deal_status(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    status = DealStatus(args["status"])
    current = await ctx.resolver.resolve_record(EntityKind.DEAL, id=args.get("deal_id"))

    values: Row = {"status": status.value}
    if status == DealStatus.WON:
        values["won_at"] = ctx.now().isoformat()
    elif status == DealStatus.LOST:
        values["lost_at"] = ctx.now().isoformat()
    deal = await update_one(ctx.store, "deals", values, ctx.owned(id=current["id"]))

    message = (
        f'Deal "{deal["title"]}" mis à jour: {_status_label(current.get("status"))} '
        f"→ {STATUS_LABELS[status]}."
    )
    if status == DealStatus.WON:
        message += " Prochaine étape: créer la mission (create_mission)."
    return ToolResult.ok(message, deal)
