"""Tests for mandatory parent links."""

import pytest

from verifolio_engine.errors import MissingRequiredLink
from verifolio_engine.invariants import (
    ACTION_FAMILIES,
    LINK_RULES,
    ActionFamily,
    InvariantEnforcer,
)
from verifolio_engine.resolver import EntityResolver
from verifolio_engine.tools.catalog import TOOLS, Action

UNKNOWN_UUID = "9a9a9a9a-0000-4000-8000-000000000000"


@pytest.fixture
def enforcer(store, owner_id):
    return InvariantEnforcer(EntityResolver(store, owner_id))


def test_every_family_has_a_rule():
    assert set(LINK_RULES) == set(ActionFamily)


@pytest.mark.parametrize("action,family", list(ACTION_FAMILIES.items()))
def test_parent_link_is_never_schema_required(action, family):
    """The link is checked by the enforcer, not rejected earlier by the schema."""
    rule = LINK_RULES[family]
    schema = TOOLS[action]["parameters"]

    assert rule.argument in schema["properties"]
    assert rule.argument not in schema["required"]


class TestEnforce:
    """Tests for InvariantEnforcer.enforce."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, "", "   "])
    async def test_blank_link_is_refused(self, enforcer, value):
        with pytest.raises(MissingRequiredLink) as exc_info:
            await enforcer.enforce(ActionFamily.INVOICE, {"mission_id": value})

        error = exc_info.value
        assert error.link == "mission_id"
        assert error.next_action == Action.LIST_MISSIONS.value
        assert error.message.startswith("Une mission est obligatoire pour créer une facture")

    @pytest.mark.asyncio
    async def test_deal_family_message(self, enforcer):
        with pytest.raises(MissingRequiredLink) as exc_info:
            await enforcer.enforce(ActionFamily.QUOTE, {})

        assert "Un deal est obligatoire pour créer un devis" in exc_info.value.message
        assert exc_info.value.next_action == "list_deals"

    @pytest.mark.asyncio
    async def test_unknown_id_is_refused(self, enforcer):
        with pytest.raises(MissingRequiredLink, match="introuvable"):
            await enforcer.enforce(ActionFamily.DELIVERY_NOTE, {"mission_id": UNKNOWN_UUID})

    @pytest.mark.asyncio
    async def test_unknown_name_is_refused(self, enforcer, seed):
        with pytest.raises(MissingRequiredLink, match="Mission \"Chantier\" introuvable"):
            await enforcer.enforce(ActionFamily.REVIEW_REQUEST, {"mission_id": "Chantier"})

    @pytest.mark.asyncio
    async def test_name_is_replaced_by_id(self, enforcer, seed):
        args = {"deal_id": "Refonte", "title": "Brief"}

        checked = await enforcer.enforce(ActionFamily.BRIEF, args)

        assert checked == {"deal_id": seed["deal"]["id"], "title": "Brief"}
        assert args["deal_id"] == "Refonte"

    @pytest.mark.asyncio
    async def test_existing_id_passes(self, enforcer, seed):
        mission_id = seed["mission"]["id"]

        checked = await enforcer.enforce(ActionFamily.INVOICE, {"mission_id": mission_id})

        assert checked["mission_id"] == mission_id
