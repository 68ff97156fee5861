"""Verifolio engine - tool-call execution and business-rule enforcement."""

__version__ = "0.1.0"

from verifolio_engine.audit import AuditLogger, NullAuditLogger, StoreAuditLogger
from verifolio_engine.config import configure_logging, get_settings
from verifolio_engine.errors import EngineError, StoreError
from verifolio_engine.models import ToolResult
from verifolio_engine.store import PostgrestStore, Store
from verifolio_engine.tools import ALL_TOOLS, Action, ToolExecutor

__all__ = [
    # Version
    "__version__",
    # Executor & catalog
    "ToolExecutor",
    "Action",
    "ALL_TOOLS",
    "ToolResult",
    # Storage & audit
    "Store",
    "PostgrestStore",
    "AuditLogger",
    "StoreAuditLogger",
    "NullAuditLogger",
    # Errors
    "EngineError",
    "StoreError",
    # Config
    "get_settings",
    "configure_logging",
]
