"""Tests for configuration settings."""

from decimal import Decimal

from verifolio_engine.models import CompanySettings, DocType


def test_settings_loads_from_env():
    """Test that settings loads from environment variables."""
    # Import after env vars are set in conftest
    from verifolio_engine.config.settings import get_settings

    # Clear the cache to force reload
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.supabase_url == "http://localhost:54321"
    assert settings.supabase_service_key.get_secret_value() == "service-key-test"


def test_settings_has_defaults():
    """Test that settings has sensible defaults."""
    from verifolio_engine.config.settings import get_settings

    get_settings.cache_clear()
    settings = get_settings()

    assert settings.store_timeout == 30.0
    assert settings.store_max_retries == 3
    assert settings.fallback_currency == "EUR"
    assert settings.fallback_tax_rate == Decimal("20")
    assert settings.fallback_quote_pattern == "DEV-{000}-{YY}"
    assert settings.fallback_invoice_pattern == "FA-{000}-{YY}"
    assert settings.public_brief_path == "/b/"
    assert settings.public_proposal_path == "/p/"


def test_settings_are_cached():
    """Test that get_settings returns cached instance."""
    from verifolio_engine.config.settings import get_settings

    get_settings.cache_clear()

    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2


def test_fallback_tax_rate_from_env(monkeypatch):
    """Test that a fallback can be overridden through the environment."""
    from verifolio_engine.config.settings import get_settings

    monkeypatch.setenv("FALLBACK_TAX_RATE", "8.5")
    get_settings.cache_clear()
    try:
        assert get_settings().fallback_tax_rate == Decimal("8.5")
    finally:
        get_settings.cache_clear()


class TestCompanySettings:
    """Tests for company settings with documented fallbacks."""

    def test_missing_company_uses_fallbacks(self):
        from verifolio_engine.config.settings import get_settings

        company = CompanySettings.from_row(None, get_settings())

        assert company.currency == "EUR"
        assert company.currency_is_fallback is True
        assert company.default_tax_rate == Decimal("20")
        assert company.patterns[DocType.DELIVERY_NOTE] == "BL-{000}-{YY}"

    def test_configured_values_win(self):
        from verifolio_engine.config.settings import get_settings

        company = CompanySettings.from_row(
            {
                "default_currency": "MAD",
                "default_tax_rate": "0",
                "invoice_number_pattern": "F{YYYY}-{0000}",
            },
            get_settings(),
        )

        assert company.currency == "MAD"
        assert company.currency_is_fallback is False
        # A zero rate is a configured value, not an absent one
        assert company.default_tax_rate == Decimal("0")
        assert company.patterns[DocType.INVOICE] == "F{YYYY}-{0000}"
        assert company.patterns[DocType.QUOTE] == "DEV-{000}-{YY}"
