"""Tests for proposals, briefs, review requests and company settings."""

import pytest

from verifolio_engine.errors import StoreError
from verifolio_engine.handlers.base import PUBLIC_TOKEN_LENGTH


class TestProposals:
    """Tests for proposal handlers."""

    @pytest.mark.asyncio
    async def test_no_template_available(self, executor, seed):
        result = await executor.execute("create_proposal", {"deal_id": seed["deal"]["id"]})

        assert result["error"] == "business_rule"
        assert result["message"] == "Aucun template disponible. Créez-en un d'abord."

    @pytest.mark.asyncio
    async def test_template_required_lists_choices(self, executor, store, seed, owner_id):
        store.add("proposal_templates", user_id=owner_id, name="Standard")
        store.add("proposal_templates", user_id=owner_id, name="Agence")

        result = await executor.execute("create_proposal", {"deal_id": seed["deal"]["id"]})

        expected = "Template requis. Templates disponibles:\n• Agence\n• Standard"
        assert result["message"] == expected
        assert result["next_action"] == "list_proposal_templates"
        assert store.tables["proposals"] == []

    @pytest.mark.asyncio
    async def test_create_from_template_name(self, executor, store, seed, owner_id):
        template = store.add("proposal_templates", user_id=owner_id, name="Standard")

        result = await executor.execute(
            "create_proposal",
            {"deal_id": "Refonte", "template_name": "standard", "variables": {"delai": "6"}},
        )

        proposal = result["data"]
        assert proposal["title"] == "Proposition - Refonte site vitrine"
        assert proposal["template_id"] == template["id"]
        assert proposal["client_id"] == seed["client"]["id"]
        assert proposal["status"] == "draft"
        assert proposal["variables"] == {"delai": "6"}
        assert len(proposal["public_token"]) == PUBLIC_TOKEN_LENGTH

    @pytest.mark.asyncio
    async def test_deal_is_required(self, executor, store, owner_id):
        store.add("proposal_templates", user_id=owner_id, name="Standard")

        result = await executor.execute("create_proposal", {"template_name": "Standard"})

        assert result["error"] == "missing_required_link"
        assert result["next_action"] == "list_deals"

    @pytest.mark.asyncio
    async def test_set_status(self, executor, store, seed, owner_id):
        proposal = store.add(
            "proposals", user_id=owner_id, deal_id=seed["deal"]["id"], title="P1", status="draft"
        )

        sent = await executor.execute(
            "set_proposal_status", {"proposal_id": proposal["id"], "status": "sent"}
        )
        accepted = await executor.execute(
            "set_proposal_status", {"proposal_id": proposal["id"], "status": "accepted"}
        )

        assert sent["data"]["sent_at"] == "2025-03-14T10:30:00+00:00"
        assert accepted["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_client_contacts(self, executor, store, seed, owner_id):
        contact = store.add("contacts", user_id=owner_id, prenom="Nina", nom="Roux")
        store.add(
            "client_contacts",
            user_id=owner_id,
            client_id=seed["client"]["id"],
            contact_id=contact["id"],
            role="CTO",
            is_primary=True,
        )

        result = await executor.execute(
            "get_client_contacts_for_proposal", {"client_name": "acme"}
        )

        assert [c["id"] for c in result["data"]] == [contact["id"]]
        assert f"Nina Roux (CTO) [Principal] - ID: {contact['id']}" in result["message"]
        assert "set_proposal_recipients" in result["message"]

    @pytest.mark.asyncio
    async def test_recipients_are_replaced(self, executor, store, seed, owner_id):
        proposal = store.add("proposals", user_id=owner_id, title="P1", status="draft")
        first = store.add("contacts", user_id=owner_id, nom="Roux")
        second = store.add("contacts", user_id=owner_id, nom="Martin")
        store.add("proposal_recipients", proposal_id=proposal["id"], contact_id=first["id"])

        result = await executor.execute(
            "set_proposal_recipients",
            {"proposal_id": proposal["id"], "contact_ids": [second["id"], second["id"]]},
        )

        assert result["data"] == {"proposal_id": proposal["id"], "recipient_count": 1}
        assert [r["contact_id"] for r in store.tables["proposal_recipients"]] == [second["id"]]

    @pytest.mark.asyncio
    async def test_unknown_recipient_keeps_list(self, executor, store, owner_id):
        proposal = store.add("proposals", user_id=owner_id, title="P1", status="draft")
        contact = store.add("contacts", user_id=owner_id, nom="Roux")
        foreign = store.add("contacts", user_id="someone-else", nom="Autre")
        store.add("proposal_recipients", proposal_id=proposal["id"], contact_id=contact["id"])

        result = await executor.execute(
            "set_proposal_recipients",
            {"proposal_id": proposal["id"], "contact_ids": [foreign["id"]]},
        )

        assert result["success"] is False
        assert result["next_action"] == "get_client_contacts_for_proposal"
        assert [r["contact_id"] for r in store.tables["proposal_recipients"]] == [contact["id"]]

    @pytest.mark.asyncio
    async def test_public_link(self, executor, store, owner_id):
        proposal = store.add(
            "proposals", user_id=owner_id, title="P1", status="sent", public_token="abc123"
        )

        result = await executor.execute("get_proposal_public_link", {"proposal_id": proposal["id"]})

        assert result["data"]["public_url"] == "/p/abc123"
        assert result["data"]["status"] == "sent"

    @pytest.mark.asyncio
    async def test_public_link_requires_token(self, executor, store, owner_id):
        proposal = store.add("proposals", user_id=owner_id, title="P1", status="draft")

        result = await executor.execute("get_proposal_public_link", {"proposal_id": proposal["id"]})

        assert result["error"] == "business_rule"


class TestBriefs:
    """Tests for brief handlers."""

    @pytest.mark.asyncio
    async def test_create_copies_template_questions(self, executor, store, seed, owner_id):
        template = store.add("brief_templates", user_id=owner_id, name="Site web")
        for position, label in enumerate(["Objectifs", "Budget"]):
            store.add(
                "brief_template_questions",
                template_id=template["id"],
                type="text",
                label=label,
                position=position,
                is_required=True,
                config={},
            )

        result = await executor.execute(
            "create_brief",
            {"deal_id": seed["deal"]["id"], "template_name": "site", "title": "Cadrage"},
        )

        brief = result["data"]
        assert brief["status"] == "DRAFT"
        assert "2 question(s)" in result["message"]
        questions = store.tables["brief_questions"]
        assert [q["label"] for q in questions] == ["Objectifs", "Budget"]
        assert {q["brief_id"] for q in questions} == {brief["id"]}

    @pytest.mark.asyncio
    async def test_send_once(self, executor, seed):
        created = await executor.execute(
            "create_brief", {"deal_id": seed["deal"]["id"], "title": "Cadrage"}
        )

        sent = await executor.execute("send_brief", {"brief_id": created["data"]["id"]})
        again = await executor.execute("send_brief", {"brief_id": "Cadrage"})

        token = sent["data"]["public_token"]
        assert sent["data"]["status"] == "SENT"
        assert sent["data"]["public_url"] == f"/b/{token}"
        assert len(token) == PUBLIC_TOKEN_LENGTH
        assert again["error"] == "business_rule"
        assert "déjà été envoyé" in again["message"]

    @pytest.mark.asyncio
    async def test_list_by_deal_name(self, executor, seed):
        await executor.execute("create_brief", {"deal_id": seed["deal"]["id"], "title": "B1"})

        result = await executor.execute("list_briefs", {"deal_id": "Refonte"})

        assert [b["title"] for b in result["data"]] == ["B1"]

    @pytest.mark.asyncio
    async def test_failed_question_copy_removes_brief(self, executor, store, seed, owner_id):
        template = store.add("brief_templates", user_id=owner_id, name="Site web")
        store.add("brief_template_questions", template_id=template["id"], label="Budget")
        store.failures["brief_questions"] = StoreError("Store error: 500", status_code=500)

        with pytest.raises(StoreError):
            await executor.execute(
                "create_brief",
                {"deal_id": seed["deal"]["id"], "template_id": template["id"], "title": "B1"},
            )

        assert store.tables["briefs"] == []


class TestReviewRequests:
    """Tests for review requests."""

    @pytest.mark.asyncio
    async def test_latest_invoice_is_used(self, executor, store, seed, owner_id):
        for numero in ("FA-001-25", "FA-002-25"):
            store.add(
                "invoices", user_id=owner_id, mission_id=seed["mission"]["id"], numero=numero
            )

        result = await executor.execute(
            "create_review_request", {"mission_id": seed["mission"]["id"], "title": "Votre avis"}
        )

        request = result["data"]
        latest = store.tables["invoices"][-1]
        assert request["invoice_id"] == latest["id"]
        assert request["client_id"] == seed["client"]["id"]
        assert request["status"] == "sent"
        assert request["public_url"] == f"/r/{request['public_token']}"

    @pytest.mark.asyncio
    async def test_one_request_per_invoice(self, executor, store, seed, owner_id):
        store.unique["review_requests"] = ("invoice_id",)
        store.add("invoices", user_id=owner_id, mission_id=seed["mission"]["id"], numero="FA-1")
        args = {"mission_id": seed["mission"]["id"], "title": "Votre avis"}

        await executor.execute("create_review_request", args)
        duplicate = await executor.execute("create_review_request", args)

        assert duplicate["error"] == "business_rule"
        assert duplicate["message"] == "Une demande d'avis existe déjà pour cette facture."

    @pytest.mark.asyncio
    async def test_mission_is_required(self, executor):
        result = await executor.execute("create_review_request", {"title": "Votre avis"})

        assert result["error"] == "missing_required_link"


class TestCompanySettings:
    """Tests for get_company_settings."""

    @pytest.mark.asyncio
    async def test_fallbacks_and_next_numbers(self, executor, seed):
        await executor.execute(
            "create_quote",
            {
                "deal_id": seed["deal"]["id"],
                "items": [{"description": "Audit", "quantite": 1, "prix_unitaire": 100}],
            },
        )

        result = await executor.execute("get_company_settings", {})

        data = result["data"]
        assert data["currency"] == "EUR"
        assert data["default_tax_rate"] == "20"
        assert data["next_numbers"] == {
            "quote": "DEV-002-25",
            "invoice": "FA-001-25",
            "delivery_note": "BL-001-25",
        }
        assert "(par défaut)" in result["message"]


class TestReviews:
    """Tests for received client reviews."""

    @pytest.mark.asyncio
    async def test_filter_by_publication(self, executor, store, seed, owner_id):
        store.add(
            "reviews",
            user_id=owner_id,
            client_id=seed["client"]["id"],
            reviewer_name="Nina",
            rating_overall=5,
            is_published=True,
            comment="Équipe réactive, délais tenus et un résultat au-delà de nos attentes.",
        )
        store.add("reviews", user_id=owner_id, reviewer_name="Paul", is_published=False)

        result = await executor.execute("list_reviews", {"is_published": True})

        assert [r["reviewer_name"] for r in result["data"]] == ["Nina"]
        assert "Nina (Acme Studio) ★★★★★ [publié]" in result["message"]
        assert '"Équipe réactive, délais tenus et un résultat au-de..."' in result["message"]

    @pytest.mark.asyncio
    async def test_empty(self, executor):
        result = await executor.execute("list_reviews", {})

        assert result == {"success": True, "message": "Aucun avis trouvé.", "data": []}
