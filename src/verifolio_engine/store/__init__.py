"""Storage backends for the Verifolio engine."""

from verifolio_engine.store.base import Filters, Row, Store, is_unique_violation
from verifolio_engine.store.postgrest import PostgrestStore

__all__ = ["Store", "Row", "Filters", "PostgrestStore", "is_unique_violation"]
