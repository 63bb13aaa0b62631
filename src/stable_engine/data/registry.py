"""Registry of collateral assets accepted by an engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from stable_engine.core.errors import (
    AssetListLengthMismatch,
    AssetNotSupported,
    DuplicateAsset,
    UnsupportedFeedDecimals,
)
from stable_engine.data.constants import FEED_DECIMALS
from stable_engine.data.interfaces import CollateralToken, PriceFeed


@dataclass(frozen=True)
class SupportedAsset:
    """A collateral asset with its price source and custody handle."""

    address: str
    price_feed: PriceFeed
    token: CollateralToken


class AssetRegistry:
    """Fixed, ordered set of supported collateral assets.

    Built once from two equal-length lists. Registration order is the
    traversal order for aggregate valuation; it never changes the result.

    Usage:
        registry = AssetRegistry([weth, wbtc], [eth_usd, btc_usd])
        for asset in registry:
            print(asset.address)
    """

    def __init__(
        self,
        tokens: Sequence[CollateralToken],
        price_feeds: Sequence[PriceFeed],
    ) -> None:
        """Register collateral assets.

        Args:
            tokens: Custody handles, one per collateral asset.
            price_feeds: Price feeds, index-aligned with tokens.

        Raises:
            AssetListLengthMismatch: If the two lists differ in length.
            DuplicateAsset: If an asset appears more than once.
            UnsupportedFeedDecimals: If a feed does not quote with 8 decimals.
        """
        if len(tokens) != len(price_feeds):
            raise AssetListLengthMismatch(len(tokens), len(price_feeds))

        assets: dict[str, SupportedAsset] = {}
        for token, feed in zip(tokens, price_feeds):
            if token.address in assets:
                raise DuplicateAsset(token.address)
            decimals = feed.decimals()
            if decimals != FEED_DECIMALS:
                raise UnsupportedFeedDecimals(token.address, decimals, FEED_DECIMALS)
            assets[token.address] = SupportedAsset(
                address=token.address, price_feed=feed, token=token
            )

        self._assets = assets
        self._order = tuple(assets)

    def __iter__(self) -> Iterator[SupportedAsset]:
        return (self._assets[address] for address in self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, asset: object) -> bool:
        return asset in self._assets

    @property
    def addresses(self) -> tuple[str, ...]:
        """Asset identities in registration order."""
        return self._order

    def get(self, asset: str) -> SupportedAsset:
        """Look up a registered asset.

        Raises:
            AssetNotSupported: If the asset was never registered.
        """
        try:
            return self._assets[asset]
        except KeyError:
            raise AssetNotSupported(asset) from None

    def price_feed(self, asset: str) -> PriceFeed:
        """Price feed for a registered asset."""
        return self.get(asset).price_feed

    def token(self, asset: str) -> CollateralToken:
        """Custody handle for a registered asset."""
        return self.get(asset).token
