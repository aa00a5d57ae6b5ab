"""
Currency Normalization

Converts amounts recorded in transaction currencies into the configured base
currency using one point-in-time rate per currency. Unknown currencies never
raise: conversion returns None and callers count it as no contribution.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Mapping, Optional, Union

import structlog

from order_analytics.config import AnalyticsSettings

logger = structlog.get_logger(__name__)

Number = Union[Decimal, float, int, str]

CENTS = Decimal("0.01")


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Coerce a numeric value coming from the store into a Decimal."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def round_money(value: Optional[Number]) -> Decimal:
    """Round a monetary value to cents; None counts as zero."""
    amount = to_decimal(value)
    if amount is None:
        return Decimal("0.00")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_cents(value: Optional[Number]) -> int:
    """Whole cents of a monetary value, for exact integer accumulation."""
    return int(round_money(value) * 100)


class CurrencyConverter:
    """
    Base currency converter.

    Rates are expressed as units of base currency per one unit of the keyed
    currency, so with base CZK and {"EUR": 25} an amount of 100 EUR becomes
    2500 CZK.

    Example:
        converter = CurrencyConverter("CZK", {"EUR": "25"})
        converter.convert_to_base(Decimal("100"), "EUR")  # Decimal("2500.00")
    """

    def __init__(self, base_currency: str, rates: Optional[Mapping[str, Number]] = None):
        self._base_currency = base_currency.strip().upper()
        self._rates = self._normalize_rates(rates or {})

    @classmethod
    def from_settings(cls, settings: AnalyticsSettings) -> "CurrencyConverter":
        """Build a converter from the analytics configuration."""
        return cls(settings.base_currency, settings.currency_rates)

    @property
    def base_currency(self) -> str:
        """Configured base currency code"""
        return self._base_currency

    @property
    def rates(self) -> Dict[str, Decimal]:
        """Copy of the normalized rate table"""
        return dict(self._rates)

    def normalize_currency(self, currency: Optional[str]) -> Optional[str]:
        """Upper-case a currency code; blank codes become None."""
        if currency is None:
            return None
        code = currency.strip().upper()
        return code or None

    def is_base(self, currency: Optional[str]) -> bool:
        """Check whether a code denotes the base currency (missing codes do)."""
        code = self.normalize_currency(currency)
        return code is None or code == self._base_currency

    def rate(self, currency: Optional[str]) -> Optional[Decimal]:
        """Rate to the base currency, or None when unknown."""
        code = self.normalize_currency(currency) or self._base_currency
        return self._rates.get(code)

    def convert_to_base(self, amount: Optional[Number], currency: Optional[str]) -> Optional[Decimal]:
        """
        Convert an amount to the base currency.

        Args:
            amount: Amount in ``currency``
            currency: Currency code; missing codes are treated as base

        Returns:
            The amount unchanged for the base currency, the converted amount
            rounded to cents otherwise, or None when no usable rate exists
        """
        value = to_decimal(amount)
        if value is None:
            return None

        if self.is_base(currency):
            return value

        rate = self.rate(currency)
        if rate is None or rate <= 0:
            logger.debug("No conversion rate", currency=currency, base_currency=self._base_currency)
            return None

        return (value * rate).quantize(CENTS, rounding=ROUND_HALF_UP)

    def convert(
        self,
        amount: Optional[Number],
        from_currency: Optional[str],
        to_currency: Optional[str],
    ) -> Optional[Decimal]:
        """Convert between two currencies through the base currency."""
        value = to_decimal(amount)
        if value is None:
            return None

        source = self.normalize_currency(from_currency) or self._base_currency
        target = self.normalize_currency(to_currency) or self._base_currency

        if source == target:
            return value.quantize(CENTS, rounding=ROUND_HALF_UP)

        base_amount = self.convert_to_base(value, source)
        if base_amount is None:
            return None

        if target == self._base_currency:
            return base_amount.quantize(CENTS, rounding=ROUND_HALF_UP)

        target_rate = self._rates.get(target)
        if target_rate is None or target_rate <= 0:
            return None

        return (base_amount / target_rate).quantize(CENTS, rounding=ROUND_HALF_UP)

    def base_amount(
        self,
        base_sum: Optional[Number],
        unconverted_sum: Optional[Number],
        currency: Optional[str],
    ) -> Decimal:
        """
        Combine a precomputed base sum with a sum still in order currency.

        Precomputed base amounts are authoritative; only the part without a
        base amount is converted, and an unconvertible remainder adds zero.
        """
        total = to_decimal(base_sum) or Decimal("0")
        remainder = to_decimal(unconverted_sum)
        if remainder:
            total += self.convert_to_base(remainder, currency) or Decimal("0")
        return total

    def _normalize_rates(self, rates: Mapping[str, Number]) -> Dict[str, Decimal]:
        normalized: Dict[str, Decimal] = {}
        for code, rate in rates.items():
            if not isinstance(code, str) or not code.strip():
                continue
            value = to_decimal(rate)
            if value is None:
                logger.warning("Ignoring unparseable currency rate", currency=code, rate=rate)
                continue
            normalized[code.strip().upper()] = value
        normalized[self._base_currency] = Decimal("1")
        return normalized
