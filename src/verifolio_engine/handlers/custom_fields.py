"""Custom field definitions and their values for the company or a client.

A field is defined per scope (``company`` or ``client``) with a slug key
derived from its label. Values live in ``custom_field_values`` keyed by
field, entity type and entity id.
"""

import re
import unicodedata
from typing import Any

import structlog

from verifolio_engine.errors import BusinessRuleError, EntityNotFound, StoreError, ValidationError
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    discard,
    has_reference,
    insert_one,
    require,
)
from verifolio_engine.models import EntityKind, ToolResult
from verifolio_engine.store import Row, is_unique_violation

logger = structlog.get_logger(__name__)

COMPANY = "company"
CLIENT = "client"
SCOPE_LABELS = {COMPANY: "Entreprise", CLIENT: "Client"}
DEFAULT_COMPANY_NAME = "Mon entreprise"


def field_key(label: str) -> str:
    """Slug key of a label: ``TVA Intracommunautaire`` -> ``tva_intracommunautaire``."""
    decomposed = unicodedata.normalize("NFD", label.lower())
    bare = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[^a-z0-9]+", "_", bare).strip("_")


async def set_field_value(
    ctx: HandlerContext, field_id: str, entity_type: str, entity_id: str, value: str
) -> None:
    """Insert or replace the value of one field for one entity."""
    filters = ctx.owned(field_id=field_id, entity_type=entity_type, entity_id=entity_id)
    if await ctx.store.select("custom_field_values", filters=filters, limit=1):
        await ctx.store.update("custom_field_values", {"value_text": value}, filters=filters)
    else:
        await ctx.store.insert("custom_field_values", {**filters, "value_text": value})


async def _company_row(ctx: HandlerContext, create: bool = False) -> Row | None:
    rows = await ctx.store.select("companies", filters=ctx.owned(), limit=1)
    if rows:
        return rows[0]
    if not create:
        return None
    logger.info("company_created_for_custom_field")
    return await insert_one(
        ctx.store, "companies", {"user_id": ctx.owner_id, "display_name": DEFAULT_COMPANY_NAME}
    )


async def _insert_field(ctx: HandlerContext, scope: str, key: str, label: str) -> Row:
    return await insert_one(
        ctx.store,
        "custom_fields",
        {
            "user_id": ctx.owner_id,
            "scope": scope,
            "key": key,
            "label": label,
            "field_type": "text",
            "is_active": True,
            "is_visible_default": True,
        },
    )


async def list_custom_fields(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned(is_active=True)
    scope = args.get("scope") or "all"
    if scope != "all":
        filters["scope"] = scope

    fields = await ctx.store.select(
        "custom_fields", filters=filters, columns="id,key,label,scope,is_active", order_by="label"
    )
    if not fields:
        return ToolResult.ok(
            "Aucun champ personnalisé créé.\n\n"
            "Vous pouvez créer des champs comme ICE, SIRET, TVA Intracommunautaire, etc.",
            [],
        )

    values: dict[str, str] = {}
    if any(f.get("scope") == COMPANY for f in fields):
        company = await _company_row(ctx)
        if company:
            rows = await ctx.store.select(
                "custom_field_values",
                filters=ctx.owned(entity_type=COMPANY, entity_id=company["id"]),
                columns="field_id,value_text",
            )
            values = {row["field_id"]: row.get("value_text") or "" for row in rows}

    def describe(f: Row) -> str:
        value = values.get(f["id"]) if f.get("scope") == COMPANY else None
        value_info = f' = "{value}"' if value else ""
        return f"{f['label']} ({SCOPE_LABELS.get(f.get('scope'), f.get('scope'))}){value_info}"

    return ToolResult.ok(
        f"{len(fields)} champ(s) personnalisé(s):\n{bullet_list(fields, describe)}", fields
    )


async def create_custom_field(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    label = require(args, "label", "Le libellé est requis.").strip()
    for_client = bool(args.get("applies_to_client"))
    for_company = args.get("applies_to_company")
    if for_company is None:
        for_company = not for_client
    if not for_company and not for_client:
        raise ValidationError(
            "Le champ doit s'appliquer à au moins une cible (entreprise ou client)."
        )

    key = field_key(label)
    company_value = args.get("company_value")
    scopes: list[str] = []
    company_field: Row | None = None

    if for_company:
        try:
            company_field = await _insert_field(ctx, COMPANY, key, label)
        except StoreError as e:
            if is_unique_violation(e.details):
                raise BusinessRuleError(
                    f'Un champ "{label}" existe déjà pour l\'entreprise.',
                    next_action="list_custom_fields",
                ) from e
            raise
        scopes.append("Entreprise")
        if company_value:
            company = await _company_row(ctx, create=True)
            await set_field_value(ctx, company_field["id"], COMPANY, company["id"], company_value)

    if for_client:
        try:
            await _insert_field(ctx, CLIENT, key, label)
            scopes.append("Clients")
        except StoreError as e:
            if not is_unique_violation(e.details):
                if company_field:
                    await discard(
                        ctx,
                        "custom_fields",
                        company_field["id"],
                        ("custom_field_values", "field_id"),
                    )
                raise
            logger.info("custom_field_exists", scope=CLIENT, key=key)

    if not scopes:
        raise BusinessRuleError(
            f'Un champ "{label}" existe déjà pour les clients.', next_action="list_custom_fields"
        )

    value_info = f' avec valeur "{company_value}"' if for_company and company_value else ""
    return ToolResult.ok(
        f'Champ "{label}" créé pour: {", ".join(scopes)}{value_info}',
        {"label": label, "key": key, "scopes": scopes},
    )


async def update_custom_field_value(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    label = require(args, "field_label", "Le libellé du champ est requis.").strip()
    value = args.get("value") or ""
    scope = CLIENT if has_reference(args, "client") else COMPANY

    fields = await ctx.store.search(
        "custom_fields",
        column="label",
        term=label,
        filters=ctx.owned(scope=scope),
        order_by="label",
        limit=1,
    )
    if not fields:
        target = "les clients" if scope == CLIENT else "l'entreprise"
        raise EntityNotFound(
            "custom_field",
            label,
            message=f'Champ "{label}" non trouvé pour {target}.',
            next_action="list_custom_fields",
        )
    field = fields[0]

    if scope == CLIENT:
        client = await ctx.fetch_arg(EntityKind.CLIENT, args, "client")
        entity_id, entity_name = client["id"], client["nom"]
    else:
        company = await _company_row(ctx, create=True)
        entity_id = company["id"]
        entity_name = company.get("display_name") or DEFAULT_COMPANY_NAME

    await set_field_value(ctx, field["id"], scope, entity_id, value)
    return ToolResult.ok(
        f'{field["label"]} = "{value}" pour {entity_name}',
        {"field": field["label"], "value": value, "entity": entity_name},
    )


async def delete_custom_field(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    """Delete every field (company and client scope) whose label matches."""
    label = require(args, "field_label", "Le libellé du champ est requis.").strip()
    fields = await ctx.store.search(
        "custom_fields", column="label", term=label, filters=ctx.owned(), order_by="label"
    )
    if not fields:
        raise EntityNotFound(
            "custom_field",
            label,
            message=f'Champ "{label}" non trouvé.',
            next_action="list_custom_fields",
        )

    for f in fields:
        await ctx.store.delete("custom_field_values", filters=ctx.owned(field_id=f["id"]))
        await ctx.store.delete("custom_fields", filters=ctx.owned(id=f["id"]))
    logger.info("custom_fields_deleted", label=label, count=len(fields))

    scopes = sorted({"Entreprise" if f.get("scope") == COMPANY else "Clients" for f in fields})
    return ToolResult.ok(
        f'Champ "{fields[0]["label"]}" supprimé ({", ".join(scopes)})',
        {"deleted": len(fields)},
    )
