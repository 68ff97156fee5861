"""Sequential document numbering.

A numbering pattern is literal text with brace tokens:

- ``{000}``: the counter, zero-padded to the length of the run (1 to 6).
  ``{SEQ:3}`` is accepted as a synonym.
- ``{YYYY}`` / ``{YY}``: year on four or two digits.
- ``{MM}``: month on two digits.
- ``{DD}``: day on two digits.

Examples::

    FAC-{0000}        => FAC-0042            (one counter forever)
    {YYYY}-{000}      => 2025-007            (counter resets every year)
    F{YY}{MM}-{000}   => F2501-003           (counter resets every month)

The counter scope follows the date tokens: no year token gives a single
``global`` counter, a year token gives one counter per year and year plus
month one per month. A day token never narrows the scope.
"""

import re
from dataclasses import dataclass
from datetime import date

import structlog

from verifolio_engine.errors import NumberingError, StoreError
from verifolio_engine.models import DocType
from verifolio_engine.store import Store

logger = structlog.get_logger(__name__)

TOKEN_RE = re.compile(r"\{(YYYY|YY|MM|DD|0+|SEQ:\d+)\}")
ALLOWED_LITERALS_RE = re.compile(r"[A-Za-z0-9\-/_. ]*")

MAX_COUNTER_WIDTH = 6
GLOBAL_SCOPE = "global"


@dataclass(frozen=True)
class NumberPattern:
    """A validated numbering pattern."""

    pattern: str
    width: int
    has_year: bool
    has_month: bool

    def scope_key(self, when: date) -> str:
        """Counter scope for a document issued on ``when``."""
        if not self.has_year:
            return GLOBAL_SCOPE
        if self.has_month:
            return f"{when.year:04d}-{when.month:02d}"
        return f"{when.year:04d}"

    def format(self, value: int, when: date) -> str:
        def substitute(match: re.Match[str]) -> str:
            token = match.group(1)
            if token == "YYYY":
                return f"{when.year:04d}"
            if token == "YY":
                return f"{when.year % 100:02d}"
            if token == "MM":
                return f"{when.month:02d}"
            if token == "DD":
                return f"{when.day:02d}"
            return str(value).zfill(self.width)

        return TOKEN_RE.sub(substitute, self.pattern)


def _counter_width(token: str) -> int:
    if token.startswith("SEQ:"):
        return int(token[4:])
    return len(token)


def parse_pattern(pattern: str) -> NumberPattern:
    """Validate a numbering pattern.

    Raises:
        NumberingError: when the pattern is empty, has no counter or more
            than one, has a counter width outside 1..6, or contains
            characters other than letters, digits and ``-/_.`` or spaces.
    """
    if not pattern or not pattern.strip():
        raise NumberingError("Le pattern de numérotation ne peut pas être vide.")

    tokens = TOKEN_RE.findall(pattern)
    counters = [t for t in tokens if t.startswith("SEQ:") or t.startswith("0")]
    if not counters:
        raise NumberingError(
            f'Le pattern "{pattern}" doit contenir un compteur (ex: {{000}}).'
        )
    if len(counters) > 1:
        raise NumberingError(f'Le pattern "{pattern}" ne peut contenir qu\'un seul compteur.')

    width = _counter_width(counters[0])
    if not 1 <= width <= MAX_COUNTER_WIDTH:
        raise NumberingError(
            f"La largeur du compteur doit être entre 1 et {MAX_COUNTER_WIDTH} (reçu {width})."
        )

    literals = TOKEN_RE.sub("", pattern)
    if not ALLOWED_LITERALS_RE.fullmatch(literals):
        invalid = sorted({c for c in literals if not ALLOWED_LITERALS_RE.fullmatch(c)})
        raise NumberingError(f"Caractères non autorisés dans le pattern: {', '.join(invalid)}")

    return NumberPattern(
        pattern=pattern,
        width=width,
        has_year="YYYY" in tokens or "YY" in tokens,
        has_month="MM" in tokens,
    )


class DocumentNumberAllocator:
    """Turns a pattern plus a counter scope into the next document number.

    The increment itself is delegated to ``Store.next_sequence``, which is
    atomic on the storage side. Nothing is cached or locked in process, so
    any number of concurrent callers can share the same counters. An
    allocated number is never handed back: a failed insert leaves a gap.
    """

    def __init__(self, store: Store):
        self.store = store

    async def allocate(self, owner_id: str, doc_type: DocType, pattern: str, when: date) -> str:
        parsed = parse_pattern(pattern)
        scope = parsed.scope_key(when)

        try:
            value = await self.store.next_sequence(owner_id, doc_type.value, scope)
        except StoreError as e:
            logger.warning(
                "number_allocation_failed",
                owner=owner_id,
                doc_type=doc_type.value,
                scope=scope,
                error=str(e),
            )
            raise NumberingError(f"Erreur lors de la génération du numéro: {e}") from e

        if value < 1:
            raise NumberingError(f"Compteur invalide pour {doc_type.value}/{scope}: {value}")

        number = parsed.format(value, when)
        logger.info(
            "number_allocated",
            owner=owner_id,
            doc_type=doc_type.value,
            scope=scope,
            value=value,
            number=number,
        )
        return number

    async def preview(self, owner_id: str, doc_type: DocType, pattern: str, when: date) -> str:
        """Next number for display, without consuming it."""
        parsed = parse_pattern(pattern)
        scope = parsed.scope_key(when)
        current = await self.store.current_sequence(owner_id, doc_type.value, scope)
        return parsed.format(current + 1, when)
