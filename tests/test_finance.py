"""Tests for document totals and the financial aggregator."""

from decimal import Decimal

import pytest

from verifolio_engine.errors import ValidationError
from verifolio_engine.finance import (
    MAX_AMOUNT,
    FinancialAggregator,
    QueryType,
    compute_totals,
    currency_symbol,
    mission_balance,
)

TVA_20 = Decimal("20")


class TestComputeTotals:
    """Tests for line pricing."""

    def test_totals_from_lines(self):
        lines, totals = compute_totals(
            [
                {"description": "Design", "quantite": 2, "prix_unitaire": 500},
                {
                    "description": "Hébergement",
                    "quantite": 1,
                    "prix_unitaire": 99.9,
                    "tva_rate": 0,
                },
            ],
            TVA_20,
        )

        assert [line.tva_rate for line in lines] == [Decimal("20"), Decimal("0")]
        assert totals.to_row() == {
            "total_ht": "1099.90",
            "total_tva": "200.00",
            "total_ttc": "1299.90",
        }

    def test_caller_totals_are_ignored(self):
        _, totals = compute_totals(
            [{"description": "Audit", "quantite": 1, "prix_unitaire": 100, "montant_ttc": 5}],
            TVA_20,
        )

        assert totals.total_ttc == Decimal("120.00")

    def test_quantity_defaults_to_one(self):
        lines, _ = compute_totals([{"description": "Forfait", "prix_unitaire": 300}], TVA_20)

        assert lines[0].quantite == Decimal("1")

    def test_price_is_required(self):
        with pytest.raises(ValidationError, match="Ligne 1: prix_unitaire est requis"):
            compute_totals([{"description": "Forfait"}], TVA_20)

    def test_price_optional_for_delivery_notes(self):
        lines, totals = compute_totals([{"description": "Carton"}], TVA_20, require_price=False)

        assert lines[0].prix_unitaire == Decimal("0")
        assert totals.total_ttc == Decimal("0")

    def test_invalid_amount(self):
        with pytest.raises(ValidationError, match="quantite invalide"):
            compute_totals(
                [{"description": "X", "quantite": "beaucoup", "prix_unitaire": 1}], TVA_20
            )

    @pytest.mark.parametrize("price", [1e27, "1e27", float("inf"), "Infinity", "NaN"])
    def test_out_of_range_price(self, price):
        with pytest.raises(ValidationError, match="prix_unitaire hors limites"):
            compute_totals([{"description": "X", "quantite": 1, "prix_unitaire": price}], TVA_20)

    def test_out_of_range_tax_rate(self):
        with pytest.raises(ValidationError, match="tva_rate hors limites"):
            compute_totals(
                [{"description": "X", "prix_unitaire": 1, "tva_rate": 1000}], TVA_20
            )

    def test_largest_amounts_still_priced(self):
        _, totals = compute_totals(
            [{"description": "X", "quantite": MAX_AMOUNT, "prix_unitaire": MAX_AMOUNT}], TVA_20
        )

        assert totals.total_ht == Decimal("1e24")
        assert totals.to_row()["total_ttc"] == f"{Decimal('1.2e24'):.2f}"

    def test_description_required(self):
        with pytest.raises(ValidationError, match="Ligne 2"):
            compute_totals(
                [
                    {"description": "A", "prix_unitaire": 1},
                    {"description": " ", "prix_unitaire": 1},
                ],
                TVA_20,
            )


def test_mission_balance_ignores_cancelled_invoices():
    mission = {"estimated_amount": "5000.00", "final_amount": "6000.00"}
    invoices = [
        {"status": "payee", "total_ttc": "1200.00"},
        {"status": "annulee", "total_ttc": "900.00"},
        {"status": "brouillon", "total_ttc": "300.00"},
    ]

    assert mission_balance(mission, invoices) == (Decimal("1500.00"), Decimal("4500.00"))


def test_currency_symbol():
    assert currency_symbol("EUR") == "€"
    assert currency_symbol("mad") == "MAD"
    assert currency_symbol("JPY") == "JPY"


@pytest.fixture
def ledger(store, owner_id):
    """Two clients with a mix of paid, sent and cancelled invoices."""
    acme = store.add("clients", user_id=owner_id, nom="Acme Studio")
    bistro = store.add("clients", user_id=owner_id, nom="Bistro Lumière")
    rows = [
        (acme, "FA-001-25", "payee", "1200.00"),
        (acme, "FA-002-25", "envoyee", "600.00"),
        (bistro, "FA-003-25", "brouillon", "250.50"),
        (bistro, "FA-004-25", "annulee", "100.00"),
        (bistro, "FA-005-25", "payee", "49.50"),
    ]
    for client, numero, status, total in rows:
        store.add(
            "invoices",
            user_id=owner_id,
            client_id=client["id"],
            numero=numero,
            status=status,
            total_ttc=total,
        )
    store.add("invoices", user_id="someone-else", numero="X-1", status="envoyee", total_ttc="999")
    return store


class TestFinancialAggregator:
    """Tests for FinancialAggregator.summarize."""

    @pytest.mark.asyncio
    async def test_unpaid_counts_every_non_paid_status(self, ledger, owner_id):
        summary = await FinancialAggregator(ledger, owner_id).summarize(QueryType.UNPAID, "EUR")

        assert summary.total == Decimal("950.50")
        assert [inv["numero"] for inv in summary.invoices] == [
            "FA-002-25",
            "FA-003-25",
            "FA-004-25",
        ]
        text = summary.render()
        assert text.startswith("Montant total impayé: 950.50 €")
        assert "• FA-002-25 (Acme Studio): 600.00 €" in text

    @pytest.mark.asyncio
    async def test_revenue(self, ledger, owner_id):
        summary = await FinancialAggregator(ledger, owner_id).summarize(QueryType.REVENUE, "EUR")

        data = summary.to_dict()
        assert data["total"] == "1249.50"
        assert data["count"] == 2
        expected = "Chiffre d'affaires encaissé: 1249.50 € (2 facture(s) payée(s))"
        assert summary.render() == expected

    @pytest.mark.asyncio
    async def test_by_client(self, ledger, owner_id):
        summary = await FinancialAggregator(ledger, owner_id).summarize(QueryType.BY_CLIENT, "USD")

        data = summary.to_dict()
        assert data["count"] == 5
        assert data["clients"][0] == {
            "client": "Acme Studio",
            "total": "1800.00",
            "unpaid": "600.00",
            "count": 2,
        }
        assert data["total_unpaid"] == "950.50"
        assert data["total_revenue"] == "1249.50"
        assert data["total"] == "2200.00"
        assert "• Acme Studio: 1800.00 $ (dont 600.00 $ impayé)" in summary.render()

    @pytest.mark.asyncio
    async def test_client_filter_is_substring(self, ledger, owner_id):
        summary = await FinancialAggregator(ledger, owner_id).summarize(
            QueryType.ALL, "EUR", client_name="lumi"
        )

        assert [group.name for group in summary.groups] == ["Bistro Lumière"]
        assert summary.total == Decimal("400.00")

    @pytest.mark.asyncio
    async def test_empty(self, store, owner_id):
        summary = await FinancialAggregator(store, owner_id).summarize(QueryType.UNPAID, "EUR")

        assert summary.total == Decimal("0")
        assert summary.render().startswith("Aucune facture impayée")

    @pytest.mark.asyncio
    async def test_partially_paid_counts_as_unpaid(self, store, owner_id):
        store.add(
            "invoices", user_id=owner_id, numero="FA-010-25", status="partielle", total_ttc="300"
        )

        summary = await FinancialAggregator(store, owner_id).summarize(QueryType.UNPAID, "EUR")

        assert summary.total == Decimal("300.00")
        assert summary.invoices[0]["client"] == "Inconnu"
