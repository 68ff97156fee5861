"""Action catalog and executor."""

from verifolio_engine.tools.catalog import (
    ALL_TOOLS,
    CATALOG_VERSION,
    MUTATING_ACTIONS,
    READ_ONLY_TOOLS,
    WRITE_ACTIONS,
    Action,
    get_tool,
    to_anthropic_tools,
    to_openai_tools,
    validate_arguments,
)
from verifolio_engine.tools.executor import HandlerContext, ToolExecutor

__all__ = [
    # Catalog
    "Action",
    "ALL_TOOLS",
    "READ_ONLY_TOOLS",
    "MUTATING_ACTIONS",
    "WRITE_ACTIONS",
    "CATALOG_VERSION",
    "get_tool",
    "validate_arguments",
    "to_openai_tools",
    "to_anthropic_tools",
    # Executor
    "ToolExecutor",
    "HandlerContext",
]
