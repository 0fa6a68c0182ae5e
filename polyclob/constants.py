"""CLOB constants — chains, contract addresses, URLs, EIP-712 types."""

# URLs
CLOB_BASE_URL = "https://clob.polymarket.com"

# Chains
POLYGON = 137
AMOY = 80002

# Per-chain contract addresses
CONTRACTS = {
    POLYGON: {
        "exchange": "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E",
        "neg_risk_exchange": "0xC5d563A36AE78145C45a50134d48A1215220f80a",
        "neg_risk_adapter": "0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
        "collateral": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        "conditional_tokens": "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045",
    },
    AMOY: {
        "exchange": "0xdFE02Eb6733538f8Ea35D585af8DE5958AD99E40",
        "neg_risk_exchange": "0xC5d563A36AE78145C45a50134d48A1215220f80a",
        "neg_risk_adapter": "0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
        "collateral": "0x9c4e1703476e875070ee25b56a58b008cfb8fa78",
        "conditional_tokens": "0x69308FB512518e39F9b16112fA8d994F4e2Bf8bB",
    },
}

# Token decimals (USDC collateral and CTF outcome shares)
COLLATERAL_DECIMALS = 6
SHARE_DECIMALS = 6

# Zero address used as default taker (anyone can fill)
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# EIP-712 order domain
ORDER_DOMAIN_NAME = "Polymarket CTF Exchange"
ORDER_DOMAIN_VERSION = "1"

# EIP-712 Order type (12 fields, order is part of the contract's ABI)
ORDER_TYPES = {
    "Order": [
        {"name": "salt", "type": "uint256"},
        {"name": "maker", "type": "address"},
        {"name": "signer", "type": "address"},
        {"name": "taker", "type": "address"},
        {"name": "tokenId", "type": "uint256"},
        {"name": "makerAmount", "type": "uint256"},
        {"name": "takerAmount", "type": "uint256"},
        {"name": "expiration", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "feeRateBps", "type": "uint256"},
        {"name": "side", "type": "uint8"},
        {"name": "signatureType", "type": "uint8"},
    ]
}

# EIP-712 L1 auth domain
AUTH_DOMAIN_NAME = "ClobAuthDomain"
AUTH_DOMAIN_VERSION = "1"
AUTH_MESSAGE = "This message attests that I control the given wallet"

AUTH_TYPES = {
    "ClobAuth": [
        {"name": "address", "type": "address"},
        {"name": "timestamp", "type": "string"},
        {"name": "nonce", "type": "uint256"},
        {"name": "message", "type": "string"},
    ]
}

# Auth header names
POLY_ADDRESS = "POLY_ADDRESS"
POLY_SIGNATURE = "POLY_SIGNATURE"
POLY_TIMESTAMP = "POLY_TIMESTAMP"
POLY_NONCE = "POLY_NONCE"
POLY_API_KEY = "POLY_API_KEY"
POLY_PASSPHRASE = "POLY_PASSPHRASE"
POLY_BUILDER_API_KEY = "POLY_BUILDER_API_KEY"
POLY_BUILDER_PASSPHRASE = "POLY_BUILDER_PASSPHRASE"
POLY_BUILDER_SIGNATURE = "POLY_BUILDER_SIGNATURE"
POLY_BUILDER_TIMESTAMP = "POLY_BUILDER_TIMESTAMP"

# Endpoints
TIME = "/time"
CREATE_API_KEY = "/auth/api-key"
DERIVE_API_KEY = "/auth/derive-api-key"
GET_API_KEYS = "/auth/api-keys"
DELETE_API_KEY = "/auth/api-key"
CLOSED_ONLY = "/auth/ban-status/closed-only"
BUILDER_API_KEY = "/auth/builder-api-key"
GET_ORDER_BOOK = "/book"
GET_TICK_SIZE = "/tick-size"
GET_NEG_RISK = "/neg-risk"
GET_FEE_RATE = "/fee-rate"
POST_ORDER = "/order"
POST_ORDERS = "/orders"
CANCEL_ORDER = "/order"
CANCEL_ORDERS = "/orders"
CANCEL_ALL = "/cancel-all"
CANCEL_MARKET_ORDERS = "/cancel-market-orders"
GET_ORDER = "/data/order/"
GET_OPEN_ORDERS = "/data/orders"
GET_TRADES = "/data/trades"
GET_BALANCE_ALLOWANCE = "/balance-allowance"
UPDATE_BALANCE_ALLOWANCE = "/balance-allowance/update"
GET_NOTIFICATIONS = "/notifications"
DROP_NOTIFICATIONS = "/notifications"
IS_ORDER_SCORING = "/order-scoring"
ARE_ORDERS_SCORING = "/orders-scoring"
GET_BUILDER_TRADES = "/builder/trades"

# Pagination cursors
INITIAL_CURSOR = "MA=="
END_CURSOR = "LTE="
