"""Tests for the web3-backed Chainlink price feed."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from web3 import Web3

from conftest import START_TIME
from stable_engine.core.errors import StalePrice
from stable_engine.data.chainlink import ChainlinkPriceFeed
from stable_engine.data.constants import AGGREGATOR_V3_ABI
from stable_engine.data.oracle import stale_checked_quote

ETH_USD = "0x639fe6ab55c921f74e7fac1ee960c0b6293ba612"


@pytest.fixture
def mock_web3() -> MagicMock:
    """Web3 stand-in whose aggregator returns canned round data."""
    web3 = MagicMock()
    aggregator = web3.eth.contract.return_value
    aggregator.functions.latestRoundData.return_value.call.return_value = (
        110680464442257320247,
        2_000 * 10**8,
        START_TIME - 30,
        START_TIME - 30,
        110680464442257320247,
    )
    aggregator.functions.decimals.return_value.call.return_value = 8
    aggregator.functions.description.return_value.call.return_value = "ETH / USD"
    return web3


class TestChainlinkPriceFeed:
    """Tests for ChainlinkPriceFeed."""

    def test_binds_checksummed_contract(self, mock_web3: MagicMock) -> None:
        feed = ChainlinkPriceFeed(mock_web3, ETH_USD)

        assert Web3.is_checksum_address(feed.address)
        assert feed.address.lower() == ETH_USD
        mock_web3.eth.contract.assert_called_once_with(
            address=feed.address, abi=AGGREGATOR_V3_ABI
        )

    def test_latest_quote(self, mock_web3: MagicMock) -> None:
        quote = ChainlinkPriceFeed(mock_web3, ETH_USD).latest_quote()

        assert quote.answer == 2_000 * 10**8
        assert quote.updated_at == START_TIME - 30
        assert quote.answered_in_round == quote.round_id

    def test_reads_at_block(self, mock_web3: MagicMock) -> None:
        feed = ChainlinkPriceFeed(mock_web3, ETH_USD, block_identifier=12_345)
        feed.latest_quote()

        call = mock_web3.eth.contract.return_value.functions.latestRoundData.return_value.call
        call.assert_called_once_with(block_identifier=12_345)

    def test_decimals_cached(self, mock_web3: MagicMock) -> None:
        feed = ChainlinkPriceFeed(mock_web3, ETH_USD)
        assert feed.decimals() == 8
        assert feed.decimals() == 8

        call = mock_web3.eth.contract.return_value.functions.decimals.return_value.call
        assert call.call_count == 1

    def test_description(self, mock_web3: MagicMock) -> None:
        assert ChainlinkPriceFeed(mock_web3, ETH_USD).description() == "ETH / USD"

    def test_staleness_applies(self, mock_web3: MagicMock) -> None:
        feed = ChainlinkPriceFeed(mock_web3, ETH_USD)

        assert stale_checked_quote(feed, 10_800, START_TIME).answer == 2_000 * 10**8
        with pytest.raises(StalePrice):
            stale_checked_quote(feed, 10_800, START_TIME + 10_800)
