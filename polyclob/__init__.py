"""Polymarket CLOB order construction and authenticated REST client."""

from .client import ClobClient
from .config import Config
from .errors import (
    ClobError,
    InsufficientLiquidity,
    InvalidContractForChain,
    InvalidFeeRate,
    InvalidPrice,
    InvalidSize,
    InvalidTickSize,
    MissingCredentials,
    MissingSigner,
    SigningError,
    TransportError,
    UnknownToken,
    UnsupportedChain,
)
from .estimator import MarketPriceEstimate
from .models import (
    ApiKeyCreds,
    BuilderConfig,
    MarketOrderArgs,
    OrderArgs,
    OrderOptions,
    OrderType,
    Side,
    SignatureType,
    TickSize,
)
from .order import OrderBuilder, SignedOrder
from .signer import LocalSigner

__all__ = [
    "ClobClient",
    "Config",
    "OrderBuilder",
    "SignedOrder",
    "LocalSigner",
    "MarketPriceEstimate",
    "ApiKeyCreds",
    "BuilderConfig",
    "MarketOrderArgs",
    "OrderArgs",
    "OrderOptions",
    "OrderType",
    "Side",
    "SignatureType",
    "TickSize",
    "ClobError",
    "InsufficientLiquidity",
    "InvalidContractForChain",
    "InvalidFeeRate",
    "InvalidPrice",
    "InvalidSize",
    "InvalidTickSize",
    "MissingCredentials",
    "MissingSigner",
    "SigningError",
    "TransportError",
    "UnknownToken",
    "UnsupportedChain",
]
