"""Financial summary handler."""

from typing import Any

from verifolio_engine.finance import FinancialAggregator, QueryType
from verifolio_engine.handlers.base import HandlerContext
from verifolio_engine.models import ToolResult


async def get_financial_summary(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    company = await ctx.company()
    aggregator = FinancialAggregator(ctx.store, ctx.owner_id)
    summary = await aggregator.summarize(
        QueryType(args["query_type"]), company.currency, client_name=args.get("client_name")
    )
    return ToolResult.ok(summary.render(), summary.to_dict())
