"""Tests for entity reference resolution."""

import pytest

from verifolio_engine.errors import EntityNotFound, ValidationError
from verifolio_engine.models import EntityKind, Ref
from verifolio_engine.resolver import EntityResolver, is_identifier

SOME_UUID = "5f1c2d3e-4a5b-4c6d-8e7f-901234567890"


def test_is_identifier():
    assert is_identifier(SOME_UUID)
    assert is_identifier(SOME_UUID.upper())
    assert not is_identifier("Acme Studio")
    assert not is_identifier("5f1c2d3e")
    assert not is_identifier(None)


class TestResolve:
    """Tests for EntityResolver.resolve."""

    @pytest.mark.asyncio
    async def test_identifier_costs_no_lookup(self, store, owner_id):
        resolver = EntityResolver(store, owner_id)

        ref = await resolver.resolve(EntityKind.CLIENT, id=SOME_UUID)

        assert ref == Ref(kind=EntityKind.CLIENT, id=SOME_UUID)
        assert store.searches == []

    @pytest.mark.asyncio
    async def test_name_is_matched_case_insensitively(self, store, owner_id, seed):
        resolver = EntityResolver(store, owner_id)

        ref = await resolver.resolve(EntityKind.CLIENT, name="acme")

        assert ref.id == seed["client"]["id"]
        assert ref.label == "Acme Studio"
        assert store.searches == [("clients", "acme")]

    @pytest.mark.asyncio
    async def test_name_in_id_slot_is_searched(self, store, owner_id, seed):
        resolver = EntityResolver(store, owner_id)

        ref = await resolver.resolve(EntityKind.DEAL, id="refonte")

        assert ref.id == seed["deal"]["id"]

    @pytest.mark.asyncio
    async def test_first_match_wins_when_ambiguous(self, store, owner_id):
        resolver = EntityResolver(store, owner_id)
        beta = store.add("clients", user_id=owner_id, nom="Dupont Beta")
        store.add("clients", user_id=owner_id, nom="Dupont Gamma")

        ref = await resolver.resolve(EntityKind.CLIENT, name="dupont")

        assert ref.id == beta["id"]

    @pytest.mark.asyncio
    async def test_other_owner_records_are_invisible(self, store, owner_id):
        resolver = EntityResolver(store, owner_id)
        store.add("clients", user_id="someone-else", nom="Acme Studio")

        with pytest.raises(EntityNotFound) as exc_info:
            await resolver.resolve(EntityKind.CLIENT, name="Acme")

        assert exc_info.value.message == 'Client "Acme" introuvable.'
        assert exc_info.value.next_action == "list_clients"

    @pytest.mark.asyncio
    async def test_missing_reference_is_a_validation_error(self, store, owner_id):
        resolver = EntityResolver(store, owner_id)

        with pytest.raises(ValidationError):
            await resolver.resolve(EntityKind.MISSION, id="  ", name=None)


class TestFetch:
    """Tests for EntityResolver.fetch."""

    @pytest.mark.asyncio
    async def test_fetch_existing(self, store, owner_id, seed):
        resolver = EntityResolver(store, owner_id)

        row = await resolver.fetch(Ref(EntityKind.MISSION, seed["mission"]["id"]))

        assert row["title"] == "Développement site"

    @pytest.mark.asyncio
    async def test_fetch_unknown_id(self, store, owner_id):
        resolver = EntityResolver(store, owner_id)

        with pytest.raises(EntityNotFound, match="Mission introuvable"):
            await resolver.fetch(Ref(EntityKind.MISSION, SOME_UUID))
