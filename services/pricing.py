"""
Pricing computation for lead intake.
Runs once when a subscription is created; the result is persisted and never recomputed.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PricingConfig:
    """Plan catalog and tax rate, read-only after startup"""
    plan_prices: Dict[str, Decimal] = field(default_factory=dict)
    tax_rate: Decimal = Decimal("0.16")

    @classmethod
    def from_settings(cls, settings) -> "PricingConfig":
        return cls(
            plan_prices={plan: Decimal(str(price)) for plan, price in settings.plan_prices.items()},
            tax_rate=Decimal(str(settings.tax_rate)),
        )


@dataclass(frozen=True)
class Pricing:
    plan: str
    base_price: Decimal
    requires_invoice: bool
    tax_amount: Decimal
    total: Decimal


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_pricing(plan: str, requires_invoice: bool, config: PricingConfig) -> Pricing:
    """
    Compute the amounts for a plan.

    total = base + (base * tax_rate if requires_invoice else 0)

    Args:
        plan: Plan tag; callers validate it against the catalog first
        requires_invoice: Whether tax is charged and an invoice is issued
        config: Plan catalog and tax rate

    Returns:
        Pricing with amounts rounded to cents

    Raises:
        ValueError: If the plan is not in the catalog
    """
    if plan not in config.plan_prices:
        raise ValueError(f"Unknown plan: {plan}")

    base_price = _money(config.plan_prices[plan])
    tax_amount = _money(base_price * config.tax_rate) if requires_invoice else _money(Decimal("0"))
    return Pricing(
        plan=plan,
        base_price=base_price,
        requires_invoice=requires_invoice,
        tax_amount=tax_amount,
        total=base_price + tax_amount,
    )
