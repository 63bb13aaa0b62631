"""Protocol constants for the stable engine.

Fixed-point precisions, health factor parameters, and the minimal
AggregatorV3 ABI used by on-chain price feeds.
"""

from __future__ import annotations

# =============================================================================
# Fixed-point precision
# =============================================================================

# Common value unit and every ledger quantity carry 18 implied decimals
PRECISION = 10**18

# Price feeds quote with 8 decimals
FEED_DECIMALS = 8
FEED_PRECISION = 10**FEED_DECIMALS

# Scales an 8-decimal quote up to the 18-decimal common precision
ADDITIONAL_FEED_PRECISION = 10**10

# =============================================================================
# Health factor parameters
# =============================================================================

# Percentage of nominal collateral value that counts toward solvency (50%)
LIQUIDATION_THRESHOLD = 50

# Liquidator incentive paid in seized collateral (10%)
LIQUIDATION_BONUS = 10

# Denominator for the two percentages above
LIQUIDATION_PRECISION = 100

# Health factor of 1.0 in 18-decimal fixed point
MIN_HEALTH_FACTOR = 10**18

# Returned for users without debt (largest uint256)
MAX_HEALTH_FACTOR = 2**256 - 1

# Below this a position is reported as at risk (1.5)
AT_RISK_HEALTH_FACTOR = 15 * 10**17

# =============================================================================
# Price freshness
# =============================================================================

# Quotes older than this are rejected (3 hours)
PRICE_FEED_TIMEOUT_SECONDS = 3 * 60 * 60

# =============================================================================
# Minimal ABIs
# =============================================================================

AGGREGATOR_V3_ABI = [
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "description",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "latestRoundData",
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]
