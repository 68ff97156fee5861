"""Action handlers, one module per domain.

Each handler is ``async def handler(ctx, args) -> ToolResult`` and receives
arguments already validated against the catalog schema.
"""

from verifolio_engine.handlers.base import Handler, HandlerContext

__all__ = ["Handler", "HandlerContext"]
