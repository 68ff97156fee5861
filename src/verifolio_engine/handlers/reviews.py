"""Client reviews and review request handlers."""

from typing import Any

from verifolio_engine.errors import BusinessRuleError, StoreError
from verifolio_engine.handlers.base import HandlerContext, bullet_list, insert_one, public_token
from verifolio_engine.models import EntityKind, Ref, ToolResult
from verifolio_engine.store import Row, is_unique_violation

REVIEWS_LIMIT = 20
EXCERPT_LENGTH = 50


async def create_review_request(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    mission = await ctx.resolver.fetch(Ref(EntityKind.MISSION, args["mission_id"]))

    invoice_id = args.get("invoice_id")
    if invoice_id:
        invoice_id = (await ctx.resolver.resolve(EntityKind.INVOICE, id=invoice_id)).id
    else:
        latest = await ctx.store.select(
            "invoices",
            filters=ctx.owned(mission_id=mission["id"]),
            columns="id",
            order_by="created_at",
            descending=True,
            limit=1,
        )
        invoice_id = latest[0]["id"] if latest else None

    token = public_token()
    try:
        request = await insert_one(
            ctx.store,
            "review_requests",
            {
                "user_id": ctx.owner_id,
                "mission_id": mission["id"],
                "invoice_id": invoice_id,
                "client_id": mission.get("client_id"),
                "title": args["title"],
                "context_text": args.get("context_text"),
                "status": "sent",
                "public_token": token,
            },
        )
    except StoreError as e:
        if is_unique_violation(e.details):
            raise BusinessRuleError(
                "Une demande d'avis existe déjà pour cette facture.",
                next_action="list_review_requests",
            ) from e
        raise

    public_url = f"{ctx.settings.public_review_path}{token}"
    return ToolResult.ok(
        f'Demande d\'avis "{request["title"]}" créée pour la mission "{mission["title"]}".\n'
        f"Lien public: {public_url}\n(ID: {request['id']})",
        {**request, "public_url": public_url},
    )


async def list_review_requests(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    filters = ctx.owned()
    if args.get("status"):
        filters["status"] = args["status"]
    if args.get("client_id"):
        filters["client_id"] = (
            await ctx.resolver.resolve(EntityKind.CLIENT, id=args["client_id"])
        ).id

    requests = await ctx.store.select(
        "review_requests", filters=filters, order_by="created_at", descending=True
    )
    if not requests:
        return ToolResult.ok("Aucune demande d'avis trouvée.", [])
    return ToolResult.ok(
        f"{len(requests)} demande(s) d'avis:\n"
        + bullet_list(requests, lambda r: f"{r['title']} ({r['status']}) (ID: {r['id']})"),
        requests,
    )


def _excerpt(comment: str) -> str:
    if len(comment) <= EXCERPT_LENGTH:
        return comment
    return comment[:EXCERPT_LENGTH] + "..."


async def list_reviews(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    """Reviews received from clients, newest first."""
    filters = ctx.owned()
    if args.get("client_id"):
        filters["client_id"] = (
            await ctx.resolver.resolve(EntityKind.CLIENT, id=args["client_id"])
        ).id
    if isinstance(args.get("is_published"), bool):
        filters["is_published"] = args["is_published"]

    reviews = await ctx.store.select(
        "reviews", filters=filters, order_by="created_at", descending=True, limit=REVIEWS_LIMIT
    )
    if not reviews:
        return ToolResult.ok("Aucun avis trouvé.", [])

    clients = await ctx.store.select("clients", filters=ctx.owned(), columns="id,nom")
    names = {c["id"]: c.get("nom") for c in clients}

    def describe(review: Row) -> str:
        stars = "★" * int(review.get("rating_overall") or 0)
        state = "publié" if review.get("is_published") else "non publié"
        line = (
            f"{review.get('reviewer_name') or 'Anonyme'} "
            f"({names.get(review.get('client_id')) or 'N/A'}) {stars} [{state}]"
        )
        if review.get("comment"):
            line += f'\n   "{_excerpt(review["comment"])}"'
        return line

    return ToolResult.ok(
        f"{len(reviews)} avis trouvé(s):\n{bullet_list(reviews, describe)}", reviews
    )
