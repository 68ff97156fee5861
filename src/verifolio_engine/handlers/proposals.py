"""Commercial proposal handlers."""

from typing import Any

from verifolio_engine.errors import BusinessRuleError, EntityNotFound, ValidationError
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    has_reference,
    insert_one,
    pick,
    public_token,
    update_one,
)
from verifolio_engine.models import EntityKind, ProposalStatus, Ref, ToolResult
from verifolio_engine.store import Row


async def list_proposal_templates(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    templates = await ctx.store.select("proposal_templates", filters=ctx.owned(), order_by="name")
    if not templates:
        return ToolResult.ok("Aucun template de proposition.", [])
    return ToolResult.ok(
        f"{len(templates)} template(s):\n"
        + bullet_list(templates, lambda t: f"{t['name']} (ID: {t['id']})"),
        templates,
    )


async def _template_for(ctx: HandlerContext, args: dict[str, Any]) -> Row:
    if has_reference(args, "template"):
        return await ctx.fetch_arg(EntityKind.PROPOSAL_TEMPLATE, args, "template")

    templates = await ctx.store.select(
        "proposal_templates", filters=ctx.owned(), columns="id,name", order_by="name"
    )
    if not templates:
        raise BusinessRuleError("Aucun template disponible. Créez-en un d'abord.")
    names = "\n".join(f"• {t['name']}" for t in templates)
    raise BusinessRuleError(
        f"Template requis. Templates disponibles:\n{names}",
        next_action="list_proposal_templates",
    )


async def create_proposal(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    deal = await ctx.resolver.fetch(Ref(EntityKind.DEAL, args["deal_id"]))
    template = await _template_for(ctx, args)

    proposal = await insert_one(
        ctx.store,
        "proposals",
        {
            "user_id": ctx.owner_id,
            "deal_id": deal["id"],
            "client_id": deal.get("client_id"),
            "template_id": template["id"],
            "title": args.get("title") or f"Proposition - {deal['title']}",
            "variables": args.get("variables") or {},
            "linked_quote_id": args.get("linked_quote_id"),
            "public_token": public_token(),
            "status": ProposalStatus.DRAFT.value,
        },
    )
    return ToolResult.ok(
        f'Proposition "{proposal["title"]}" créée (deal: "{deal["title"]}", '
        f'template: "{template["name"]}"). Statut: Brouillon.\n(ID: {proposal["id"]})',
        proposal,
    )


async def list_proposals(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned()
    if args.get("status"):
        filters["status"] = args["status"]
    if has_reference(args, "client"):
        filters["client_id"] = (await ctx.resolve_arg(EntityKind.CLIENT, args, "client")).id

    proposals = await ctx.store.select(
        "proposals", filters=filters, order_by="created_at", descending=True
    )
    if not proposals:
        return ToolResult.ok("Aucune proposition trouvée.", [])
    return ToolResult.ok(
        f"{len(proposals)} proposition(s):\n"
        + bullet_list(proposals, lambda p: f"{p.get('title')} ({p['status']}) (ID: {p['id']})"),
        proposals,
    )


async def set_proposal_status(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    status = ProposalStatus(args["status"])
    if status not in (ProposalStatus.DRAFT, ProposalStatus.SENT):
        raise BusinessRuleError("Seuls les statuts draft et sent peuvent être posés ici.")
    current = await ctx.resolver.resolve_record(EntityKind.PROPOSAL, id=args.get("proposal_id"))

    values: Row = {"status": status.value}
    if status == ProposalStatus.SENT:
        values["sent_at"] = ctx.now().isoformat()
    proposal = await update_one(ctx.store, "proposals", values, ctx.owned(id=current["id"]))

    label = "envoyée" if status == ProposalStatus.SENT else "en brouillon"
    return ToolResult.ok(f'Proposition "{proposal.get("title")}" marquée comme {label}.', proposal)


async def get_client_contacts_for_proposal(
    ctx: HandlerContext, args: dict[str, Any]
) -> ToolResult:
    if not has_reference(args, "client"):
        raise ValidationError("Client requis.", next_action="list_clients")
    client = await ctx.fetch_arg(EntityKind.CLIENT, args, "client")

    links = await ctx.store.select("client_contacts", filters=ctx.owned(client_id=client["id"]))
    contacts = {c["id"]: c for c in await ctx.store.select("contacts", filters=ctx.owned())}
    rows = [
        {**contacts[link["contact_id"]], **pick(link, "role", "is_primary")}
        for link in links
        if link.get("contact_id") in contacts
    ]
    if not rows:
        return ToolResult.ok(f'Aucun contact lié au client "{client["nom"]}".', [])

    def describe(contact: Row) -> str:
        name = " ".join(filter(None, (contact.get("prenom"), contact["nom"])))
        role = f" ({contact['role']})" if contact.get("role") else ""
        primary = " [Principal]" if contact.get("is_primary") else ""
        return f"{name}{role}{primary} - ID: {contact['id']}"

    return ToolResult.ok(
        f'Contacts du client "{client["nom"]}":\n{bullet_list(rows, describe)}\n\n'
        "Utilisez les IDs pour set_proposal_recipients.",
        rows,
    )


async def set_proposal_recipients(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    """Replace the recipient list of a proposal with the given contacts."""
    proposal = await ctx.resolver.resolve_record(EntityKind.PROPOSAL, id=args.get("proposal_id"))
    contact_ids = list(dict.fromkeys(args.get("contact_ids") or []))

    owned = {c["id"] for c in await ctx.store.select("contacts", filters=ctx.owned(), columns="id")}
    for contact_id in contact_ids:
        if contact_id not in owned:
            raise EntityNotFound(
                "contact",
                contact_id,
                message=f'Contact "{contact_id}" introuvable.',
                next_action="get_client_contacts_for_proposal",
            )

    link = {"proposal_id": proposal["id"]}
    previous = await ctx.store.delete("proposal_recipients", filters=link)
    if contact_ids:
        try:
            await ctx.store.insert(
                "proposal_recipients", [{**link, "contact_id": cid} for cid in contact_ids]
            )
        except Exception:
            if previous:
                await ctx.store.insert("proposal_recipients", previous)
            raise

    return ToolResult.ok(
        f"{len(contact_ids)} destinataire(s) défini(s) pour la proposition.",
        {"proposal_id": proposal["id"], "recipient_count": len(contact_ids)},
    )


async def get_proposal_public_link(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    proposal = await ctx.resolver.resolve_record(EntityKind.PROPOSAL, id=args.get("proposal_id"))
    token = proposal.get("public_token")
    if not token:
        raise BusinessRuleError(
            f'La proposition "{proposal.get("title")}" n\'a pas de lien public.'
        )

    public_url = f"{ctx.settings.public_proposal_path}{token}"
    return ToolResult.ok(
        f'Lien public pour la proposition "{proposal.get("title")}":\n{public_url}\n\n'
        f"Statut: {proposal['status']}",
        {
            "proposal_id": proposal["id"],
            "public_token": token,
            "public_url": public_url,
            "status": proposal["status"],
        },
    )
