"""Tests for the action catalog."""

import pytest
from jsonschema import Draft202012Validator

from verifolio_engine.errors import UnknownTool, ValidationError
from verifolio_engine.tools.catalog import (
    ALL_TOOLS,
    MUTATING_ACTIONS,
    READ_ONLY_TOOLS,
    TOOLS,
    WRITE_ACTIONS,
    Action,
    get_tool,
    to_anthropic_tools,
    to_openai_tools,
    validate_arguments,
)


def test_catalog_covers_every_action():
    assert set(TOOLS) == set(Action)
    assert len(ALL_TOOLS) == len(Action)


@pytest.mark.parametrize("tool", ALL_TOOLS, ids=lambda tool: tool["name"])
def test_tool_schemas_are_valid(tool):
    assert tool["description"]
    Draft202012Validator.check_schema(tool["parameters"])


def test_read_only_tools_exclude_mutations():
    read_only = {tool["name"] for tool in READ_ONLY_TOOLS}

    assert "list_invoices" in read_only
    assert "get_financial_summary" in read_only
    assert not read_only & {action.value for action in MUTATING_ACTIONS}
    assert "link_contact_to_client" not in read_only
    assert "set_proposal_recipients" not in read_only
    assert "list_custom_fields" in read_only
    assert len(read_only) + len(WRITE_ACTIONS) == len(Action)


def test_link_actions_are_not_audited():
    assert Action.LINK_CONTACT_TO_CLIENT not in MUTATING_ACTIONS
    assert Action.UNLINK_CONTACT_FROM_CLIENT not in MUTATING_ACTIONS


def test_get_tool():
    assert get_tool("create_invoice") is Action.CREATE_INVOICE

    with pytest.raises(UnknownTool, match="Outil inconnu: delete_everything"):
        get_tool("delete_everything")


class TestValidateArguments:
    """Tests for schema validation of planner arguments."""

    def test_valid_arguments(self):
        validate_arguments(
            Action.CREATE_QUOTE,
            {"deal_id": "d1", "items": [{"description": "A", "quantite": 1, "prix_unitaire": 10}]},
        )

    def test_missing_required_field(self):
        with pytest.raises(ValidationError, match="create_client"):
            validate_arguments(Action.CREATE_CLIENT, {"nom": "Acme"})

    def test_bad_enum_value(self):
        with pytest.raises(ValidationError, match=r"\(status\)"):
            validate_arguments(Action.UPDATE_DEAL_STATUS, {"deal_id": "d1", "status": "gagné"})

    def test_error_is_located_inside_items(self):
        with pytest.raises(ValidationError, match=r"items\.0"):
            validate_arguments(
                Action.CREATE_INVOICE,
                {"items": [{"description": "A", "quantite": "deux", "prix_unitaire": 10}]},
            )

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError):
            validate_arguments(Action.CREATE_QUOTE, {"deal_id": "d1", "items": []})

    def test_amounts_are_bounded(self):
        with pytest.raises(ValidationError, match="prix_unitaire"):
            validate_arguments(
                Action.CREATE_QUOTE,
                {"deal_id": "d1", "items": [{"description": "A", "prix_unitaire": 1e27}]},
            )

    def test_negative_tax_rate_rejected(self):
        with pytest.raises(ValidationError, match="tva_rate"):
            validate_arguments(
                Action.CREATE_QUOTE,
                {
                    "deal_id": "d1",
                    "items": [{"description": "A", "prix_unitaire": 1, "tva_rate": -5}],
                },
            )

    def test_delivery_note_lines_need_no_price(self):
        validate_arguments(
            Action.CREATE_DELIVERY_NOTE, {"mission_id": "m1", "items": [{"description": "Colis"}]}
        )


def test_provider_formats():
    openai_tools = to_openai_tools()
    anthropic_tools = to_anthropic_tools()

    assert openai_tools[0]["type"] == "function"
    assert openai_tools[0]["function"]["name"] == "create_client"
    assert anthropic_tools[0]["input_schema"] == ALL_TOOLS[0]["parameters"]
    assert len(openai_tools) == len(anthropic_tools) == len(Action)
