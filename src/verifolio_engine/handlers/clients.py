"""Client handlers."""

from typing import Any

import structlog

from verifolio_engine.errors import ValidationError
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    discard,
    insert_one,
    pick,
    update_one,
)
from verifolio_engine.handlers.custom_fields import CLIENT, set_field_value
from verifolio_engine.models import EntityKind, ToolResult
from verifolio_engine.store import Row

logger = structlog.get_logger(__name__)

CLIENT_COLUMNS = ("email", "telephone", "adresse")


async def save_custom_fields(
    ctx: HandlerContext, client_id: str, values: dict[str, str]
) -> list[str]:
    """Store ``{label: value}`` pairs for the owner's active client fields.

    Labels match case-insensitively. Returns the labels that matched no field.
    """
    if not values:
        return []
    fields = await ctx.store.select(
        "custom_fields",
        filters=ctx.owned(scope=CLIENT, is_active=True),
        columns="id,label",
    )
    by_label = {f["label"].lower(): f["id"] for f in fields}

    unknown = []
    for label, value in values.items():
        field_id = by_label.get(label.lower())
        if field_id is None:
            unknown.append(label)
            continue
        if not value:
            continue
        await set_field_value(ctx, field_id, CLIENT, client_id, value)

    if unknown:
        logger.info("custom_fields_unknown", client_id=client_id, labels=unknown)
    return unknown


def _unknown_fields_note(unknown: list[str]) -> str:
    if not unknown:
        return ""
    return f"\nChamps personnalisés inconnus ignorés: {', '.join(unknown)}"


async def create_client(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    nom = (args.get("nom") or "").strip()
    if not nom or not args.get("type"):
        raise ValidationError("Le type et le nom sont requis.")

    client = await insert_one(
        ctx.store,
        "clients",
        {"user_id": ctx.owner_id, "type": args["type"], "nom": nom, **pick(args, *CLIENT_COLUMNS)},
    )
    try:
        unknown = await save_custom_fields(ctx, client["id"], args.get("custom_fields") or {})
    except Exception:
        await discard(ctx, "clients", client["id"], ("custom_field_values", "entity_id"))
        raise

    return ToolResult.ok(
        f'Client "{client["nom"]}" créé avec succès ({client["type"]}).'
        f"{_unknown_fields_note(unknown)}\n(ID: {client['id']})",
        client,
    )


def _describe_client(client: Row) -> str:
    email = f" - {client['email']}" if client.get("email") else ""
    return f"{client['nom']} ({client.get('type')}){email}"


async def list_clients(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    clients = await ctx.store.select("clients", filters=ctx.owned(), order_by="nom")
    if not clients:
        return ToolResult.ok("Aucun client trouvé.", [])
    return ToolResult.ok(
        f"{len(clients)} client(s) trouvé(s):\n{bullet_list(clients, _describe_client)}",
        clients,
    )


async def update_client(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    ref = await ctx.resolve_arg(EntityKind.CLIENT, args, "client")
    values = pick(args, "nom", *CLIENT_COLUMNS)
    custom = args.get("custom_fields") or {}
    if not values and not custom:
        raise ValidationError("Aucun champ à modifier.")

    client = await ctx.resolver.fetch(ref)
    if values:
        client = await update_one(ctx.store, "clients", values, ctx.owned(id=client["id"]))
    unknown = await save_custom_fields(ctx, client["id"], custom)

    changed = ", ".join([*values, *(k for k in custom if k not in unknown)])
    return ToolResult.ok(
        f'Client "{client["nom"]}" mis à jour ({changed}).'
        f"{_unknown_fields_note(unknown)}\n(ID: {client['id']})",
        client,
    )
