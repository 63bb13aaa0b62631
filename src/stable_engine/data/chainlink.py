"""Chainlink AggregatorV3 price feed over web3.

Reads `latestRoundData()` and `decimals()` from an on-chain aggregator and
exposes them through the PriceFeed interface. Only view calls are made.
"""

from __future__ import annotations

from web3 import Web3
from web3.contract import Contract
from web3.types import BlockIdentifier

from stable_engine.data.constants import AGGREGATOR_V3_ABI
from stable_engine.data.models import PriceQuote


class ChainlinkPriceFeed:
    """PriceFeed backed by an AggregatorV3 contract.

    Usage:
        feed = ChainlinkPriceFeed(web3, "0x639Fe6ab55C921f74e7fac1ee960C0B6293ba612")
        quote = feed.latest_quote()
    """

    def __init__(
        self,
        web3: Web3,
        address: str,
        block_identifier: BlockIdentifier = "latest",
    ) -> None:
        """Bind to an aggregator contract.

        Args:
            web3: Connected Web3 instance.
            address: Aggregator address.
            block_identifier: Block to read at ('latest' or a number).
        """
        self.web3 = web3
        self.address = Web3.to_checksum_address(address)
        self.block_identifier = block_identifier
        self._aggregator: Contract = self.web3.eth.contract(
            address=self.address,
            abi=AGGREGATOR_V3_ABI,
        )
        self._decimals: int | None = None

    def latest_quote(self) -> PriceQuote:
        """Latest round data as a PriceQuote."""
        result = self._aggregator.functions.latestRoundData().call(
            block_identifier=self.block_identifier
        )
        return PriceQuote(
            round_id=result[0],
            answer=result[1],
            started_at=result[2],
            updated_at=result[3],
            answered_in_round=result[4],
        )

    def decimals(self) -> int:
        """Decimals of the aggregator's answer (cached after first read)."""
        if self._decimals is None:
            self._decimals = self._aggregator.functions.decimals().call(
                block_identifier=self.block_identifier
            )
        return self._decimals

    def description(self) -> str:
        """Human-readable pair name, e.g. 'ETH / USD'."""
        return self._aggregator.functions.description().call(
            block_identifier=self.block_identifier
        )
