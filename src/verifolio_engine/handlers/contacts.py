"""Contact handlers and client-contact role links."""

from typing import Any

from verifolio_engine.errors import BusinessRuleError, StoreError, ValidationError
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    has_reference,
    insert_one,
    pick,
    update_one,
)
from verifolio_engine.models import ContactContext, EntityKind, ToolResult
from verifolio_engine.store import Row, is_unique_violation

CONTACT_COLUMNS = ("nom", "email", "telephone", "notes")
ROLE_COLUMNS = (
    "role",
    "handles_billing",
    "handles_ops",
    "handles_management",
    "is_primary",
    "preferred_channel",
)

CONTEXT_LABELS = {
    ContactContext.BILLING: "la facturation",
    ContactContext.OPERATIONS: "les opérations",
    ContactContext.MANAGEMENT: "la direction",
}


def _describe_contact(contact: Row) -> str:
    parts = [contact["nom"]]
    if contact.get("email"):
        parts.append(contact["email"])
    if contact.get("role"):
        parts.append(contact["role"])
    flags = [
        label
        for column, label in (
            ("handles_billing", "facturation"),
            ("handles_ops", "opérations"),
            ("handles_management", "direction"),
            ("is_primary", "principal"),
        )
        if contact.get(column)
    ]
    if flags:
        parts.append(f"[{', '.join(flags)}]")
    return " - ".join(parts)


async def create_contact(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    if not (args.get("nom") or "").strip():
        raise ValidationError("Le nom du contact est requis.")
    contact = await insert_one(
        ctx.store, "contacts", {"user_id": ctx.owner_id, **pick(args, *CONTACT_COLUMNS)}
    )
    return ToolResult.ok(
        f'Contact "{contact["nom"]}" créé. Utilisez link_contact_to_client pour le lier '
        f"à un client.\n(ID: {contact['id']})",
        contact,
    )


async def list_contacts(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    contacts = await ctx.store.select("contacts", filters=ctx.owned(), order_by="nom")

    if has_reference(args, "client"):
        client = await ctx.fetch_arg(EntityKind.CLIENT, args, "client")
        links = await ctx.store.select(
            "client_contacts", filters=ctx.owned(client_id=client["id"])
        )
        by_id = {c["id"]: c for c in contacts}
        contacts = [
            {**by_id[link["contact_id"]], **pick(link, *ROLE_COLUMNS)}
            for link in links
            if link["contact_id"] in by_id
        ]
        if not contacts:
            return ToolResult.ok(f'Aucun contact lié à {client["nom"]}.', [])
        header = f'{len(contacts)} contact(s) pour {client["nom"]}:'
    else:
        if not contacts:
            return ToolResult.ok("Aucun contact trouvé.", [])
        header = f"{len(contacts)} contact(s) trouvé(s):"

    return ToolResult.ok(f"{header}\n{bullet_list(contacts, _describe_contact)}", contacts)


async def update_contact(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    ref = await ctx.resolve_arg(EntityKind.CONTACT, args, "contact")
    values = pick(args, *CONTACT_COLUMNS)
    if not values:
        raise ValidationError("Aucun champ à modifier.")
    await ctx.resolver.fetch(ref)
    contact = await update_one(ctx.store, "contacts", values, ctx.owned(id=ref.id))
    return ToolResult.ok(
        f'Contact "{contact["nom"]}" mis à jour ({", ".join(values)}).\n(ID: {contact["id"]})',
        contact,
    )


async def _link_parties(ctx: HandlerContext, args: dict[str, Any]) -> tuple[Row, Row]:
    if not has_reference(args, "contact") or not has_reference(args, "client"):
        raise ValidationError("Le contact et le client sont requis.")
    contact = await ctx.fetch_arg(EntityKind.CONTACT, args, "contact")
    client = await ctx.fetch_arg(EntityKind.CLIENT, args, "client")
    return contact, client


async def link_contact_to_client(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    contact, client = await _link_parties(ctx, args)
    link_filters = ctx.owned(client_id=client["id"], contact_id=contact["id"])

    if await ctx.store.select("client_contacts", filters=link_filters, limit=1):
        raise BusinessRuleError(
            f'{contact["nom"]} est déjà lié à {client["nom"]}. '
            "Utilisez update_client_contact pour modifier ses rôles.",
            next_action="update_client_contact",
        )

    try:
        link = await insert_one(
            ctx.store, "client_contacts", {**link_filters, **pick(args, *ROLE_COLUMNS)}
        )
    except StoreError as e:
        if is_unique_violation(e.details):
            raise BusinessRuleError(f'{contact["nom"]} est déjà lié à {client["nom"]}.') from e
        raise

    return ToolResult.ok(f'{contact["nom"]} lié à {client["nom"]}.', link)


async def unlink_contact_from_client(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    contact, client = await _link_parties(ctx, args)
    removed = await ctx.store.delete(
        "client_contacts",
        filters=ctx.owned(client_id=client["id"], contact_id=contact["id"]),
    )
    if not removed:
        raise BusinessRuleError(f'{contact["nom"]} n\'est pas lié à {client["nom"]}.')
    return ToolResult.ok(
        f'{contact["nom"]} n\'est plus lié à {client["nom"]} (le contact est conservé).',
        {"client_id": client["id"], "contact_id": contact["id"]},
    )


async def update_client_contact(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    contact, client = await _link_parties(ctx, args)
    values = pick(args, *ROLE_COLUMNS)
    if not values:
        raise ValidationError("Aucun rôle à modifier.")
    links = await ctx.store.update(
        "client_contacts",
        values,
        filters=ctx.owned(client_id=client["id"], contact_id=contact["id"]),
    )
    if not links:
        raise BusinessRuleError(
            f'{contact["nom"]} n\'est pas lié à {client["nom"]}.',
            next_action="link_contact_to_client",
        )
    return ToolResult.ok(
        f'Rôles de {contact["nom"]} chez {client["nom"]} mis à jour ({", ".join(values)}).',
        links[0],
    )


async def contact_for_context(
    ctx: HandlerContext, client_id: str, context: ContactContext
) -> tuple[Row | None, Row | None, str | None]:
    """Pick the client's contact for a role context.

    Returns ``(contact, link, match_type)``. Contacts flagged for the context
    win, the primary one first; otherwise the client's primary contact; else
    nothing. Several flagged or primary contacts are tolerated.
    """
    links = await ctx.store.select("client_contacts", filters=ctx.owned(client_id=client_id))
    flagged = [link for link in links if link.get(context.flag_column)]
    primary = [link for link in links if link.get("is_primary")]

    if flagged:
        chosen = next((link for link in flagged if link.get("is_primary")), flagged[0])
        match_type = "exact"
    elif primary:
        chosen = primary[0]
        match_type = "primary_fallback"
    else:
        return None, None, None

    rows = await ctx.store.select(
        "contacts", filters=ctx.owned(id=chosen["contact_id"]), limit=1
    )
    if not rows:
        return None, None, None
    return rows[0], chosen, match_type


async def get_contact_for_context(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    context = ContactContext(args["context"])
    client = await ctx.fetch_arg(EntityKind.CLIENT, args, "client")
    contact, link, match_type = await contact_for_context(ctx, client["id"], context)
    label = CONTEXT_LABELS[context]

    if contact is None:
        return ToolResult.ok(
            f"Aucun contact trouvé pour {label}. Vous pouvez créer un contact et le lier "
            "à ce client.",
            {
                "found": False,
                "contact": None,
                "client_contact": None,
                "match_type": None,
                "suggestion": (
                    f'Créez un contact pour ce client et activez "{context.flag_column}" '
                    "ou marquez-le comme contact principal."
                ),
            },
        )

    email = f" ({contact['email']})" if contact.get("email") else ""
    if match_type == "exact":
        role = f" - {link['role']}" if link.get("role") else ""
        message = f"Contact pour {label}: {contact['nom']}{email}{role}"
    else:
        message = (
            f"Pas de contact spécifique pour {label}. "
            f"Contact principal: {contact['nom']}{email}"
        )
    return ToolResult.ok(
        message,
        {"found": True, "contact": contact, "client_contact": link, "match_type": match_type},
    )
