"""Brief handlers."""

from typing import Any

from verifolio_engine.errors import BusinessRuleError
from verifolio_engine.handlers.base import (
    HandlerContext,
    bullet_list,
    discard,
    has_reference,
    insert_one,
    public_token,
    update_one,
)
from verifolio_engine.models import BriefStatus, EntityKind, Ref, ToolResult
from verifolio_engine.store import Row

QUESTION_COLUMNS = ("type", "label", "position", "is_required", "config")


async def list_brief_templates(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    templates = await ctx.store.select("brief_templates", filters=ctx.owned(), order_by="name")
    if not templates:
        return ToolResult.ok("Aucun template de brief.", [])
    return ToolResult.ok(
        f"{len(templates)} template(s) de brief:\n"
        + bullet_list(templates, lambda t: f"{t['name']} (ID: {t['id']})"),
        templates,
    )


async def create_brief(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    deal = await ctx.resolver.fetch(Ref(EntityKind.DEAL, args["deal_id"]))
    template: Row | None = None
    if has_reference(args, "template"):
        template = await ctx.fetch_arg(EntityKind.BRIEF_TEMPLATE, args, "template")

    brief = await insert_one(
        ctx.store,
        "briefs",
        {
            "user_id": ctx.owner_id,
            "deal_id": deal["id"],
            "client_id": deal.get("client_id"),
            "template_id": template["id"] if template else None,
            "title": args["title"],
            "status": BriefStatus.DRAFT.value,
        },
    )

    copied = 0
    if template:
        questions = await ctx.store.select(
            "brief_template_questions",
            filters={"template_id": template["id"]},
            order_by="position",
        )
        if questions:
            try:
                await ctx.store.insert(
                    "brief_questions",
                    [
                        {"brief_id": brief["id"], **{k: q.get(k) for k in QUESTION_COLUMNS}}
                        for q in questions
                    ],
                )
            except Exception:
                await discard(ctx, "briefs", brief["id"], ("brief_questions", "brief_id"))
                raise
            copied = len(questions)

    questions_note = f" {copied} question(s) copiée(s) du template." if copied else ""
    return ToolResult.ok(
        f'Brief "{brief["title"]}" créé pour le deal "{deal["title"]}". Statut: Brouillon.'
        f"{questions_note}\n(ID: {brief['id']})",
        brief,
    )


async def list_briefs(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned()
    if args.get("status"):
        filters["status"] = args["status"]
    if args.get("deal_id"):
        filters["deal_id"] = (await ctx.resolver.resolve(EntityKind.DEAL, id=args["deal_id"])).id
    if has_reference(args, "client"):
        filters["client_id"] = (await ctx.resolve_arg(EntityKind.CLIENT, args, "client")).id

    briefs = await ctx.store.select(
        "briefs", filters=filters, order_by="created_at", descending=True
    )
    if not briefs:
        return ToolResult.ok("Aucun brief trouvé.", [])
    return ToolResult.ok(
        f"{len(briefs)} brief(s):\n"
        + bullet_list(briefs, lambda b: f"{b['title']} ({b['status']}) (ID: {b['id']})"),
        briefs,
    )


async def send_brief(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    current = await ctx.resolver.resolve_record(EntityKind.BRIEF, id=args.get("brief_id"))
    if current.get("status") != BriefStatus.DRAFT.value:
        raise BusinessRuleError(f'Le brief "{current["title"]}" a déjà été envoyé.')

    token = current.get("public_token") or public_token()
    brief = await update_one(
        ctx.store,
        "briefs",
        {"status": BriefStatus.SENT.value, "sent_at": ctx.now().isoformat(), "public_token": token},
        ctx.owned(id=current["id"]),
    )
    public_url = f"{ctx.settings.public_brief_path}{token}"
    return ToolResult.ok(
        f'Brief "{brief["title"]}" envoyé.\nLien public: {public_url}',
        {**brief, "public_url": public_url},
    )
