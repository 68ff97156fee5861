"""Error taxonomy for the tool-call engine.

Subclasses of ``EngineError`` are expected domain outcomes: the dispatcher
turns them into a failure envelope. ``StoreError`` is an infrastructure
failure and is allowed to propagate.
"""

from typing import Any


class EngineError(Exception):
    """Expected failure reported back to the planner."""

    code = "engine_error"

    def __init__(self, message: str, next_action: str | None = None):
        super().__init__(message)
        self.message = message
        self.next_action = next_action


class ValidationError(EngineError):
    """A required argument is absent or malformed."""

    code = "validation_error"


class MissingRequiredLink(EngineError):
    """A document would be created without its mandatory parent."""

    code = "missing_required_link"

    def __init__(self, link: str, message: str, next_action: str | None = None):
        super().__init__(message, next_action=next_action)
        self.link = link


class EntityNotFound(EngineError):
    """A reference could not be resolved to a record."""

    code = "entity_not_found"

    def __init__(
        self,
        kind: str,
        reference: str,
        message: str | None = None,
        next_action: str | None = None,
    ):
        super().__init__(
            message or f'{kind} "{reference}" introuvable.',
            next_action=next_action,
        )
        self.kind = kind
        self.reference = reference


class NumberingError(EngineError):
    """A document number could not be allocated."""

    code = "numbering_error"


class UnknownTool(EngineError):
    """The action name is not part of the catalog."""

    code = "unknown_tool"

    def __init__(self, tool_name: str):
        super().__init__(f"Outil inconnu: {tool_name}")
        self.tool_name = tool_name


class BusinessRuleError(EngineError):
    """The request is well formed but refused by a business rule."""

    code = "business_rule"


class StoreError(Exception):
    """Storage backend failure."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
