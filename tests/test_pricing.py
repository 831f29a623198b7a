"""
Tests for intake pricing
"""
from decimal import Decimal

import pytest

from config import settings
from services.pricing import PricingConfig, compute_pricing


@pytest.fixture
def pricing_config():
    return PricingConfig.from_settings(settings)


def test_professional_plan_with_invoice(pricing_config):
    pricing = compute_pricing("profesional", True, pricing_config)

    assert pricing.base_price == Decimal("1000.00")
    assert pricing.tax_amount == Decimal("160.00")
    assert pricing.total == Decimal("1160.00")


def test_no_tax_without_invoice(pricing_config):
    pricing = compute_pricing("profesional", False, pricing_config)

    assert pricing.tax_amount == Decimal("0.00")
    assert pricing.total == Decimal("1000.00")


def test_amounts_round_to_cents():
    config = PricingConfig(plan_prices={"mini": Decimal("99.99")}, tax_rate=Decimal("0.16"))
    pricing = compute_pricing("mini", True, config)

    # 99.99 * 0.16 = 15.9984
    assert pricing.tax_amount == Decimal("16.00")
    assert pricing.total == Decimal("115.99")


def test_unknown_plan(pricing_config):
    with pytest.raises(ValueError):
        compute_pricing("gratis", False, pricing_config)


def test_config_is_an_explicit_value():
    cheap = PricingConfig(plan_prices={"profesional": Decimal("10")}, tax_rate=Decimal("0.5"))
    assert compute_pricing("profesional", True, cheap).total == Decimal("15.00")
