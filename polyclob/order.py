"""CLOB order construction and EIP-712 signing."""

import logging
import secrets
from dataclasses import asdict, dataclass

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from . import registry
from .constants import COLLATERAL_DECIMALS, SHARE_DECIMALS, ZERO_ADDRESS
from .errors import InvalidContractForChain, SigningError, UnsupportedChain
from .models import MarketOrderArgs, OrderArgs, Side, SignatureType, TickSize
from .numeric import (
    amounts_for_limit_order,
    amounts_for_market_order,
    round_to_tick,
)
from .signer import recover_signer, sign_digest

logger = logging.getLogger(__name__)

# EIP-712 type hashes (precomputed keccak256 of type strings)
_DOMAIN_TYPE_HASH = keccak(
    b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
_ORDER_TYPE_HASH = keccak(
    b"Order(uint256 salt,address maker,address signer,address taker,"
    b"uint256 tokenId,uint256 makerAmount,uint256 takerAmount,"
    b"uint256 expiration,uint256 nonce,uint256 feeRateBps,"
    b"uint8 side,uint8 signatureType)"
)


@dataclass(frozen=True)
class Order:
    """The 12-field struct the exchange contract hashes, amounts in base units."""

    salt: int
    maker: str
    signer: str
    taker: str
    token_id: int
    maker_amount: int
    taker_amount: int
    expiration: int
    nonce: int
    fee_rate_bps: int
    side: Side
    signature_type: SignatureType

    def as_struct(self) -> dict:
        """camelCase field dict, as typed in the EIP-712 Order struct."""
        return {
            "salt": self.salt,
            "maker": self.maker,
            "signer": self.signer,
            "taker": self.taker,
            "tokenId": self.token_id,
            "makerAmount": self.maker_amount,
            "takerAmount": self.taker_amount,
            "expiration": self.expiration,
            "nonce": self.nonce,
            "feeRateBps": self.fee_rate_bps,
            "side": self.side.code,
            "signatureType": int(self.signature_type),
        }


@dataclass(frozen=True)
class SignedOrder:
    order: Order
    signature: str

    def to_payload(self) -> dict:
        """JSON shape accepted by POST /order (numeric fields as strings)."""
        o = self.order
        return {
            "salt": o.salt,
            "maker": o.maker,
            "signer": o.signer,
            "taker": o.taker,
            "tokenId": str(o.token_id),
            "makerAmount": str(o.maker_amount),
            "takerAmount": str(o.taker_amount),
            "expiration": str(o.expiration),
            "nonce": str(o.nonce),
            "feeRateBps": str(o.fee_rate_bps),
            "side": o.side.value,
            "signatureType": int(o.signature_type),
            "signature": self.signature,
        }

    def to_dict(self) -> dict:
        return {**asdict(self.order), "signature": self.signature}


def _generate_salt() -> int:
    """Generate a cryptographically random 256-bit salt."""
    return secrets.randbits(256)


def compute_domain_separator(chain_id: int, neg_risk: bool = False) -> bytes:
    """Compute the EIP-712 domain separator for the exchange on this chain."""
    try:
        info = registry.resolve(chain_id, neg_risk)
    except UnsupportedChain as exc:
        raise InvalidContractForChain(str(exc)) from exc
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                _DOMAIN_TYPE_HASH,
                keccak(text=info.domain_name),
                keccak(text=info.domain_version),
                info.chain_id,
                info.verifying_contract,
            ],
        )
    )


def compute_struct_hash(order: Order) -> bytes:
    """Compute the EIP-712 struct hash for an Order."""
    s = order.as_struct()
    return keccak(
        encode(
            [
                "bytes32",  # typeHash
                "uint256",  # salt
                "address",  # maker
                "address",  # signer
                "address",  # taker
                "uint256",  # tokenId
                "uint256",  # makerAmount
                "uint256",  # takerAmount
                "uint256",  # expiration
                "uint256",  # nonce
                "uint256",  # feeRateBps
                "uint8",    # side
                "uint8",    # signatureType
            ],
            [
                _ORDER_TYPE_HASH,
                s["salt"],
                s["maker"],
                s["signer"],
                s["taker"],
                s["tokenId"],
                s["makerAmount"],
                s["takerAmount"],
                s["expiration"],
                s["nonce"],
                s["feeRateBps"],
                s["side"],
                s["signatureType"],
            ],
        )
    )


def order_digest(order: Order, chain_id: int, neg_risk: bool = False) -> bytes:
    """keccak256("\\x19\\x01" || domainSeparator || structHash)."""
    return keccak(b"\x19\x01" + compute_domain_separator(chain_id, neg_risk) + compute_struct_hash(order))


def build_order(
    maker: str,
    token_id: str | int,
    side: Side | str,
    maker_amount: int,
    taker_amount: int,
    signer: str | None = None,
    taker: str | None = None,
    fee_rate_bps: int = 0,
    expiration: int = 0,
    nonce: int = 0,
    signature_type: SignatureType = SignatureType.EOA,
    salt: int | None = None,
) -> Order:
    """Assemble an Order from already-derived integer amounts.

    Args:
        maker: Address holding the funds (the proxy / smart wallet for
            non-EOA signature types).
        token_id: Conditional token ID.
        side: "BUY" or "SELL".
        maker_amount: Amount offered, in base units.
        taker_amount: Amount requested, in base units.
        signer: Signing wallet (defaults to maker).
        taker: Taker address (defaults to zero address = open order).
        fee_rate_bps: Fee rate in basis points.
        expiration: Unix timestamp expiration (0 = no expiry).
        nonce: Exchange nonce for on-chain cancellation.
        signature_type: How the exchange validates the signature.
        salt: Fixed salt; a random one is generated when omitted.
    """
    return Order(
        salt=_generate_salt() if salt is None else int(salt),
        maker=to_checksum_address(maker),
        signer=to_checksum_address(signer or maker),
        taker=to_checksum_address(taker or ZERO_ADDRESS),
        token_id=int(token_id),
        maker_amount=int(maker_amount),
        taker_amount=int(taker_amount),
        expiration=int(expiration),
        nonce=int(nonce),
        fee_rate_bps=int(fee_rate_bps),
        side=Side.coerce(side),
        signature_type=SignatureType(signature_type),
    )


async def sign_order(order: Order, signer, chain_id: int, neg_risk: bool = False) -> SignedOrder:
    """Sign an Order via EIP-712 and attach the 0x-prefixed hex signature.

    EOA and POLY_PROXY signatures are recovered locally and must match the
    order's signer. EIP1271 signatures are validated on-chain only.
    """
    digest = order_digest(order, chain_id, neg_risk)
    raw = await sign_digest(signer, digest)

    if order.signature_type.locally_verifiable:
        try:
            recovered = recover_signer(digest, raw)
        except Exception as exc:
            raise SigningError(f"Signature is not recoverable: {exc}") from exc
        if recovered.lower() != order.signer.lower():
            raise SigningError(
                f"Signature recovers to {recovered}, expected signer {order.signer}"
            )
    return SignedOrder(order=order, signature="0x" + raw.hex())


class OrderBuilder:
    """Builds and signs orders for one signer on one chain.

    Args:
        signer: Signing capability (``address`` + ``async sign_hash``).
        chain_id: 137 (Polygon) or 80002 (Amoy).
        signature_type: EOA, POLY_PROXY or EIP1271.
        funder: Maker address for POLY_PROXY / EIP1271 wallets.
        share_decimals: Decimals of the outcome token.
    """

    def __init__(
        self,
        signer,
        chain_id: int,
        signature_type: SignatureType = SignatureType.EOA,
        funder: str | None = None,
        share_decimals: int = SHARE_DECIMALS,
    ):
        registry.get_contract_config(chain_id)
        self.signer = signer
        self.chain_id = chain_id
        self.signature_type = SignatureType(signature_type)
        self.maker = self.signature_type.resolve_maker(signer.address, funder)
        self.share_decimals = share_decimals

    def __repr__(self) -> str:
        return (
            f"OrderBuilder(signer={self.signer.address}, maker={self.maker}, "
            f"chain_id={self.chain_id}, signature_type={self.signature_type.name})"
        )

    async def build_order(
        self,
        args: OrderArgs,
        tick_size: TickSize | str,
        neg_risk: bool = False,
        fee_rate_bps: int = 0,
        salt: int | None = None,
    ) -> SignedOrder:
        """Build and sign a limit order; price is snapped to the tick grid."""
        side = Side.coerce(args.side)
        price = round_to_tick(args.price, tick_size, side)
        maker_amount, taker_amount = amounts_for_limit_order(
            price, args.size, side,
            collateral_decimals=COLLATERAL_DECIMALS,
            share_decimals=self.share_decimals,
        )
        order = build_order(
            maker=self.maker,
            token_id=args.token_id,
            side=side,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            signer=self.signer.address,
            taker=args.taker,
            fee_rate_bps=fee_rate_bps,
            expiration=args.expiration,
            nonce=args.nonce,
            signature_type=self.signature_type,
            salt=salt,
        )
        logger.debug(
            "Built %s order token=%s price=%s maker=%d taker=%d",
            side.value, args.token_id, price, maker_amount, taker_amount,
        )
        return await sign_order(order, self.signer, self.chain_id, neg_risk)

    async def build_market_order(
        self,
        args: MarketOrderArgs,
        price,
        tick_size: TickSize | str,
        neg_risk: bool = False,
        fee_rate_bps: int = 0,
        salt: int | None = None,
    ) -> SignedOrder:
        """Build and sign a market order, snapping ``price`` onto the tick grid first."""
        side = Side.coerce(args.side)
        price = round_to_tick(price, tick_size, side)
        maker_amount, taker_amount = amounts_for_market_order(
            args.amount, price, side,
            collateral_decimals=COLLATERAL_DECIMALS,
            share_decimals=self.share_decimals,
        )
        order = build_order(
            maker=self.maker,
            token_id=args.token_id,
            side=side,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            signer=self.signer.address,
            taker=args.taker,
            fee_rate_bps=fee_rate_bps,
            nonce=args.nonce,
            signature_type=self.signature_type,
            salt=salt,
        )
        logger.debug(
            "Built %s market order token=%s price=%s maker=%d taker=%d",
            side.value, args.token_id, price, maker_amount, taker_amount,
        )
        return await sign_order(order, self.signer, self.chain_id, neg_risk)
