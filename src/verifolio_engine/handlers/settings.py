"""Company settings handler."""

from typing import Any

from verifolio_engine.finance import currency_symbol
from verifolio_engine.handlers.base import HandlerContext
from verifolio_engine.models import DocType, ToolResult

DOC_LABELS = {
    DocType.QUOTE: "Devis",
    DocType.INVOICE: "Factures",
    DocType.DELIVERY_NOTE: "Bons de livraison",
}


async def get_company_settings(ctx: HandlerContext, args: dict[str, Any]) -> ToolResult:
    company = await ctx.company()
    today = ctx.today()

    next_numbers = {
        doc_type.value: await ctx.allocator.preview(
            ctx.owner_id, doc_type, company.patterns[doc_type], today
        )
        for doc_type in DocType
    }

    lines = [f"Entreprise: {company.display_name or 'Non renseigné'}"]
    if company.email:
        lines.append(f"Email: {company.email}")
    currency_note = " (par défaut)" if company.currency_is_fallback else ""
    lines.append(
        f"Devise: {company.currency} ({currency_symbol(company.currency)}){currency_note}"
    )
    lines.append(f"TVA par défaut: {company.default_tax_rate}%")
    for doc_type in DocType:
        lines.append(
            f"{DOC_LABELS[doc_type]}: {company.patterns[doc_type]} "
            f"(prochain: {next_numbers[doc_type.value]})"
        )

    return ToolResult.ok(
        "\n".join(lines),
        {
            "display_name": company.display_name,
            "email": company.email,
            "currency": company.currency,
            "default_tax_rate": str(company.default_tax_rate),
            "number_patterns": {t.value: p for t, p in company.patterns.items()},
            "next_numbers": next_numbers,
        },
    )
