"""
Profitability calculations for campaign invoices.

Derives tax-inclusive amounts from their tax-exclusive base, profit and
margin for a single invoice, and per-campaign / portfolio totals.
All money is handled as Decimal, rounded half-up to 2 places.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

TAX_RATE = Decimal("0.18")
CENTS = Decimal("0.01")
ZERO = Decimal("0")
# largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal("9999999999.99")

# base field -> tax-inclusive field derived from it
TAX_FIELDS = {
    "customer_amount_without_tax": "customer_amount_with_tax",
    "customer_received_amount_without_tax": "customer_received_amount_with_tax",
    "vendor_amount_without_tax": "vendor_amount_with_tax",
    "vendor_paid_amount_without_tax": "vendor_paid_amount_with_tax",
}
DERIVED_FIELDS = frozenset(TAX_FIELDS.values()) | {"profit", "margin"}


class InvalidAmount(ValueError):
    """Raised for negative, non-numeric or out-of-range money amounts."""

    def __init__(self, value: Any, reason: str = "must be a non-negative number"):
        self.value = value
        super().__init__(f"Invalid amount {value!r}: {reason}")


def to_amount(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmount(value)
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            # str() keeps floats at their shortest repr (0.1 -> "0.1")
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmount(value)
    else:
        raise InvalidAmount(value)
    if not amount.is_finite():
        raise InvalidAmount(value)
    if amount < 0:
        raise InvalidAmount(value, "must not be negative")
    if amount > MAX_AMOUNT:
        raise InvalidAmount(value, f"must not exceed {MAX_AMOUNT:,}")
    return amount


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def gross_up(base_amount: Any, tax_rate: Any = TAX_RATE) -> Decimal:
    """Tax-inclusive amount for a tax-exclusive base, rounded to cents."""
    base = to_amount(base_amount)
    rate = to_amount(tax_rate)
    return quantize(base * (1 + rate))


def compute_profit(received_without_tax: Any, paid_without_tax: Any) -> Decimal:
    """Received revenue minus paid expense. Negative means a loss."""
    return to_amount(received_without_tax) - to_amount(paid_without_tax)


def compute_margin(received_without_tax: Any, paid_without_tax: Any) -> Decimal:
    """Profit as a percentage of received revenue, 0 when nothing was received."""
    return _margin(to_amount(received_without_tax), to_amount(paid_without_tax))


def _margin(received: Decimal, paid: Decimal) -> Decimal:
    if received == 0:
        return ZERO
    return (received - paid) / received * 100


def derive_record(data: Mapping, tax_rate: Any = TAX_RATE) -> dict:
    """
    Return a copy of ``data`` with every derived field recomputed.

    Derived fields are always rebuilt from the ``*_without_tax`` bases, so
    whatever values they carried on input are discarded and the result is
    stable under repeated application.
    """
    record = dict(data)
    for base_field, tax_field in TAX_FIELDS.items():
        base = record.get(base_field)
        # stored at cents, so derive from the value the column will hold
        base = ZERO if base is None else quantize(to_amount(base))
        record[base_field] = base
        record[tax_field] = gross_up(base, tax_rate)

    received = record["customer_received_amount_without_tax"]
    paid = record["vendor_paid_amount_without_tax"]
    record["profit"] = quantize(compute_profit(received, paid))
    record["margin"] = quantize(compute_margin(received, paid))
    return record


# ─── Aggregation ─────────────────────────────────────────────────────

@dataclass
class PortfolioTotals:
    revenue: Decimal = ZERO
    expenses: Decimal = ZERO
    profit: Decimal = ZERO
    margin: Decimal = ZERO
    invoice_count: int = 0
    campaign_count: int = 0


@dataclass
class CampaignTotals:
    company: str
    campaign_name: str
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    invoices: list = field(default_factory=list)
    revenue: Decimal = ZERO
    expenses: Decimal = ZERO
    profit: Decimal = ZERO
    margin: Decimal = ZERO

    @property
    def invoice_count(self) -> int:
        return len(self.invoices)


@dataclass
class Totals:
    campaigns: list[CampaignTotals]
    portfolio: PortfolioTotals


def _value(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _amount_or_zero(record: Any, name: str) -> Decimal:
    value = _value(record, name)
    return ZERO if value is None else to_amount(value)


def _earliest(current: Optional[date], candidate: Optional[date]) -> Optional[date]:
    if candidate is None:
        return current
    return candidate if current is None or candidate < current else current


def _latest(current: Optional[date], candidate: Optional[date]) -> Optional[date]:
    if candidate is None:
        return current
    return candidate if current is None or candidate > current else current


def derive_totals(invoices: Iterable[Any]) -> Totals:
    """
    Aggregate invoices per campaign and across the whole portfolio.

    Campaigns are keyed on the exact (company, campaign_name) pair. Profit
    and margin of a group come from its summed revenue and expenses, never
    from averaging the margins of its members.
    """
    groups: dict[tuple, CampaignTotals] = {}
    portfolio = PortfolioTotals()

    for inv in invoices:
        key = (_value(inv, "company"), _value(inv, "campaign_name"))
        group = groups.get(key)
        if group is None:
            group = groups[key] = CampaignTotals(company=key[0], campaign_name=key[1])

        received = _amount_or_zero(inv, "customer_received_amount_without_tax")
        paid = _amount_or_zero(inv, "vendor_paid_amount_without_tax")

        group.invoices.append(inv)
        group.revenue += received
        group.expenses += paid
        group.date_from = _earliest(group.date_from, _value(inv, "date_from"))
        group.date_to = _latest(group.date_to, _value(inv, "date_to"))

        portfolio.revenue += received
        portfolio.expenses += paid
        portfolio.invoice_count += 1

    for group in groups.values():
        # sums may exceed a single amount's range, so skip to_amount here
        group.profit = group.revenue - group.expenses
        group.margin = quantize(_margin(group.revenue, group.expenses))

    portfolio.profit = portfolio.revenue - portfolio.expenses
    portfolio.margin = quantize(_margin(portfolio.revenue, portfolio.expenses))
    portfolio.campaign_count = len(groups)

    return Totals(campaigns=list(groups.values()), portfolio=portfolio)
