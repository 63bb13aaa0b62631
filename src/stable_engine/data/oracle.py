"""Price conversion between asset quantities and the common value unit.

All arithmetic is integer fixed point:

    value    = price * ADDITIONAL_FEED_PRECISION * quantity // PRECISION
    quantity = value * PRECISION // (price * ADDITIONAL_FEED_PRECISION)

Prices come from 8-decimal feeds and are scaled by 10**10 to the 18-decimal
common precision. Division truncates; operands are never negative.
Every read goes through a staleness check. A stale quote is a hard failure.
"""

from __future__ import annotations

import time
from typing import Callable

from stable_engine.core.errors import InvalidPrice, StalePrice
from stable_engine.data.constants import (
    ADDITIONAL_FEED_PRECISION,
    PRECISION,
    PRICE_FEED_TIMEOUT_SECONDS,
)
from stable_engine.data.interfaces import PriceFeed
from stable_engine.data.models import PriceQuote
from stable_engine.data.registry import AssetRegistry


def stale_checked_quote(
    feed: PriceFeed,
    timeout: int,
    now: int,
    asset: str = "",
) -> PriceQuote:
    """Read the latest quote and reject it if stale or unusable.

    Args:
        feed: Price feed to read.
        timeout: Maximum allowed age of the quote in seconds.
        now: Current unix time.
        asset: Asset identity, for error messages.

    Returns:
        The latest quote.

    Raises:
        StalePrice: If the quote was never updated, belongs to an unfinished
            round, or is older than timeout.
        InvalidPrice: If the answer is not positive.
    """
    quote = feed.latest_quote()

    if quote.updated_at == 0 or quote.answered_in_round < quote.round_id:
        raise StalePrice(asset, quote.updated_at, now, timeout)

    if now - quote.updated_at > timeout:
        raise StalePrice(asset, quote.updated_at, now, timeout)

    if quote.answer <= 0:
        raise InvalidPrice(asset, quote.answer)

    return quote


class PriceOracleAdapter:
    """Convert between collateral quantities and common value units.

    Usage:
        oracle = PriceOracleAdapter(registry)
        value = oracle.value_of("WETH", 15 * 10**18)
        amount = oracle.quantity_from_value("WETH", 100 * 10**18)
    """

    def __init__(
        self,
        registry: AssetRegistry,
        timeout_seconds: int = PRICE_FEED_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the adapter.

        Args:
            registry: Registered assets and their feeds.
            timeout_seconds: Freshness bound for quotes.
            clock: Source of the current unix time.
        """
        self.registry = registry
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    def price_of(self, asset: str) -> int:
        """Latest fresh price for an asset, in feed decimals."""
        feed = self.registry.price_feed(asset)
        quote = stale_checked_quote(
            feed, self.timeout_seconds, int(self._clock()), asset=asset
        )
        return quote.answer

    def value_of(self, asset: str, quantity: int) -> int:
        """Value of quantity units of asset, in common value units."""
        price = self.price_of(asset)
        return (price * ADDITIONAL_FEED_PRECISION * quantity) // PRECISION

    def quantity_from_value(self, asset: str, value: int) -> int:
        """Quantity of asset worth value common value units."""
        price = self.price_of(asset)
        return (value * PRECISION) // (price * ADDITIONAL_FEED_PRECISION)
