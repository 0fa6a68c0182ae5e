"""Value types shared across the order, auth and client layers."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum, IntEnum

from .errors import InvalidTickSize


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def code(self) -> int:
        """uint8 value used in the signed Order struct."""
        return 0 if self is Side.BUY else 1

    @classmethod
    def coerce(cls, value: "Side | str") -> "Side":
        if isinstance(value, cls):
            return value
        return cls(str(value).upper())


class OrderType(str, Enum):
    GTC = "GTC"  # good till cancelled
    FOK = "FOK"  # fill or kill
    GTD = "GTD"  # good till date
    FAK = "FAK"  # fill and kill (partial fills allowed)


class SignatureType(IntEnum):
    """How the exchange validates an order's signature.

    EOA: maker and signer are the same wallet, ECDSA recovery.
    POLY_PROXY: maker is a proxy contract controlled by the signing wallet.
    EIP1271: maker is a smart-contract wallet; validity is checked on-chain
    via ``isValidSignature`` and cannot be verified by the client.
    """

    EOA = 0
    POLY_PROXY = 1
    EIP1271 = 2

    @property
    def locally_verifiable(self) -> bool:
        return self is not SignatureType.EIP1271

    def resolve_maker(self, signer: str, funder: str | None = None) -> str:
        """Return the address that plays the maker role for this variant."""
        if self is SignatureType.EOA:
            if funder and funder.lower() != signer.lower():
                raise ValueError("EOA orders must be made by the signing wallet")
            return signer
        if not funder:
            raise ValueError(f"{self.name} orders require a funder (maker) address")
        return funder


class TickSize(str, Enum):
    TENTH = "0.1"
    HUNDREDTH = "0.01"
    THOUSANDTH = "0.001"
    TEN_THOUSANDTH = "0.0001"

    @property
    def decimal(self) -> Decimal:
        return Decimal(self.value)

    @classmethod
    def parse(cls, value) -> "TickSize":
        """Parse a tick size from an API string, float or Decimal."""
        if isinstance(value, cls):
            return value
        try:
            normalized = format(Decimal(str(value)).normalize(), "f")
            return cls(normalized)
        except (InvalidOperation, ValueError) as exc:
            raise InvalidTickSize(f"Invalid tick size: {value!r}") from exc


@dataclass(frozen=True)
class ApiKeyCreds:
    """L2 API credentials. The secret is base64 HMAC key material."""

    key: str
    secret: str
    passphrase: str

    @classmethod
    def from_dict(cls, data: dict) -> "ApiKeyCreds":
        """Accepts both the server shape (apiKey) and the local shape (key)."""
        return cls(
            key=data.get("apiKey") or data["key"],
            secret=data["secret"],
            passphrase=data["passphrase"],
        )

    def to_dict(self) -> dict:
        return {"apiKey": self.key, "secret": self.secret, "passphrase": self.passphrase}

    def __repr__(self) -> str:
        return f"ApiKeyCreds(key={self.key!r})"


@dataclass(frozen=True)
class BuilderConfig:
    """Builder program credentials used to attribute orders."""

    key: str
    secret: str
    passphrase: str

    def is_valid(self) -> bool:
        return bool(self.key and self.secret and self.passphrase)

    def __repr__(self) -> str:
        return f"BuilderConfig(key={self.key!r})"


@dataclass(frozen=True)
class OrderArgs:
    """Limit order intent, expressed in human units."""

    token_id: str
    price: float | str | Decimal
    size: float | str | Decimal
    side: Side | str
    fee_rate_bps: int | None = None
    nonce: int = 0
    expiration: int = 0
    taker: str | None = None


@dataclass(frozen=True)
class MarketOrderArgs:
    """Market order intent.

    ``amount`` is a collateral notional for BUY and a share count for SELL.
    When ``price`` is None it is estimated from the live order book.
    """

    token_id: str
    amount: float | str | Decimal
    side: Side | str
    price: float | str | Decimal | None = None
    order_type: OrderType = OrderType.FOK
    fee_rate_bps: int | None = None
    nonce: int = 0
    taker: str | None = None


@dataclass(frozen=True)
class OrderOptions:
    """Per-call overrides for order creation.

    Attributes:
        tick_size: Use this tick size instead of the market's (must not be
            finer than the market minimum).
        neg_risk: Select the neg-risk exchange explicitly instead of asking
            the exchange.
    """

    tick_size: TickSize | str | None = None
    neg_risk: bool | None = None


@dataclass(frozen=True)
class BookLevel:
    price: Decimal
    size: Decimal


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Read-only view of one token's book: bids descending, asks ascending."""

    token_id: str = ""
    bids: tuple[BookLevel, ...] = field(default_factory=tuple)
    asks: tuple[BookLevel, ...] = field(default_factory=tuple)
    tick_size: TickSize | None = None
    neg_risk: bool | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "OrderBookSnapshot":
        """Build from a ``/book`` response; skips malformed levels."""

        def _levels(raw, reverse):
            levels = []
            for level in raw or []:
                try:
                    levels.append(BookLevel(Decimal(str(level["price"])), Decimal(str(level["size"]))))
                except (KeyError, InvalidOperation, TypeError):
                    continue
            return tuple(sorted(levels, key=lambda lv: lv.price, reverse=reverse))

        tick = data.get("tick_size")
        return cls(
            token_id=str(data.get("asset_id", "")),
            bids=_levels(data.get("bids"), reverse=True),
            asks=_levels(data.get("asks"), reverse=False),
            tick_size=TickSize.parse(tick) if tick is not None else None,
            neg_risk=data.get("neg_risk"),
        )
