"""Mission handlers and the mission balance kept in sync with its invoices."""

from typing import Any

import structlog

from verifolio_engine.errors import BusinessRuleError, ValidationError
from verifolio_engine.finance import mission_balance, parse_amount
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    discard,
    has_reference,
    insert_one,
    pick,
    update_one,
)
from verifolio_engine.models import (
    EntityKind,
    MissionStatus,
    Ref,
    ToolResult,
    money,
    to_decimal,
)
from verifolio_engine.store import Row

logger = structlog.get_logger(__name__)

STATUS_LABELS = {
    MissionStatus.IN_PROGRESS: "En cours",
    MissionStatus.DELIVERED: "Livrée",
    MissionStatus.TO_INVOICE: "À facturer",
    MissionStatus.INVOICED: "Facturée",
    MissionStatus.PAID: "Payée",
    MissionStatus.CLOSED: "Terminée",
    MissionStatus.CANCELLED: "Annulée",
}


def _status_label(value: str | None) -> str:
    try:
        return STATUS_LABELS[MissionStatus(value)]
    except ValueError:
        return str(value)


async def refresh_mission_balance(ctx: HandlerContext, mission_id: str) -> Row:
    """Recompute ``total_facture`` and ``reste_a_facturer`` from the invoices."""
    mission = await ctx.resolver.fetch(Ref(EntityKind.MISSION, mission_id))
    invoices = await ctx.store.select(
        "invoices", filters=ctx.owned(mission_id=mission_id), columns="id,status,total_ttc"
    )
    total_facture, reste = mission_balance(mission, invoices)
    logger.debug(
        "mission_balance_refreshed",
        mission_id=mission_id,
        total_facture=money(total_facture),
        reste_a_facturer=money(reste),
    )
    return await update_one(
        ctx.store,
        "missions",
        {"total_facture": money(total_facture), "reste_a_facturer": money(reste)},
        ctx.owned(id=mission_id),
    )


def _describe_mission(mission: Row) -> str:
    return f"{mission['title']} ({_status_label(mission.get('status'))}) (ID: {mission['id']})"


async def create_mission(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    title = (args.get("title") or "").strip()
    if not title:
        raise ValidationError("Le titre de la mission est requis.")
    deal = await ctx.resolver.resolve_record(EntityKind.DEAL, id=args.get("deal_id"))

    if await ctx.store.select("missions", filters=ctx.owned(deal_id=deal["id"]), limit=1):
        raise BusinessRuleError(
            f'Une mission existe déjà pour le deal "{deal["title"]}".',
            next_action="list_missions",
        )

    row: Row = {
        "user_id": ctx.owner_id,
        "deal_id": deal["id"],
        "client_id": deal.get("client_id"),
        "title": title,
        "status": MissionStatus.IN_PROGRESS.value,
        "started_at": ctx.now().isoformat(),
        **pick(args, "description"),
    }
    amount = args.get("estimated_amount", deal.get("estimated_amount"))
    if amount is not None:
        row["estimated_amount"] = money(parse_amount(amount, "Montant estimé"))
        row["total_facture"] = money(to_decimal(0))
        row["reste_a_facturer"] = row["estimated_amount"]

    mission = await insert_one(ctx.store, "missions", row)
    try:
        await ctx.store.update(
            "deals", {"mission_id": mission["id"]}, filters=ctx.owned(id=deal["id"])
        )
    except Exception:
        await discard(ctx, "missions", mission["id"])
        raise

    return ToolResult.ok(
        f'Mission "{mission["title"]}" créée avec succès. Statut: En cours.\n'
        f"(ID: {mission['id']})",
        mission,
    )


async def list_missions(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned(**pick(args, "status"))
    if has_reference(args, "client"):
        filters["client_id"] = (await ctx.resolve_arg(EntityKind.CLIENT, args, "client")).id

    missions = await ctx.store.select(
        "missions", filters=filters, order_by="created_at", descending=True
    )
    if not missions:
        return ToolResult.ok("Aucune mission trouvée.", [])
    return ToolResult.ok(
        f"{len(missions)} mission(s) trouvée(s):\n{bullet_list(missions, _describe_mission)}",
        missions,
    )


async def get_mission(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    mission = await ctx.resolver.resolve_record(EntityKind.MISSION, id=args.get("mission_id"))
    invoices = await ctx.store.select(
        "invoices",
        filters=ctx.owned(mission_id=mission["id"]),
        columns="id,numero,status,total_ttc",
        order_by="created_at",
    )
    total_facture, reste = mission_balance(mission, invoices)
    amount = mission.get("final_amount") or mission.get("estimated_amount")
    numbers = ", ".join(inv["numero"] for inv in invoices if inv.get("numero")) or "Aucune"

    data = {
        **mission,
        "invoices": invoices,
        "total_facture": money(total_facture),
        "reste_a_facturer": money(reste),
    }
    return ToolResult.ok(
        f"Mission: {mission['title']}\n"
        f"Statut: {_status_label(mission.get('status'))}\n"
        f"Montant: {money(to_decimal(amount)) if amount else 'Non défini'}\n"
        f"Factures: {numbers}\n"
        f"Reste à facturer: {money(reste)}\n(ID: {mission['id']})",
        data,
    )


async def update_mission_status(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    status = MissionStatus(args["status"])
    current = await ctx.resolver.resolve_record(EntityKind.MISSION, id=args.get("mission_id"))
    mission = await update_one(
        ctx.store, "missions", {"status": status.value}, ctx.owned(id=current["id"])
    )

    message = (
        f'Mission "{current["title"]}" mise à jour: {_status_label(current.get("status"))} '
        f"→ {STATUS_LABELS[status]}."
    )
    if status in (MissionStatus.DELIVERED, MissionStatus.TO_INVOICE):
        message += " Prochaine étape: créer une facture (create_invoice)."
    return ToolResult.ok(message, mission)
