"""Numeric policy — tick snapping, integer amounts and fees.

All arithmetic is done in ``Decimal`` so the integer amounts that end up in
the signed order are exactly what the exchange contract recomputes.
"""

from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation

from .constants import COLLATERAL_DECIMALS, SHARE_DECIMALS
from .errors import InvalidFeeRate, InvalidPrice, InvalidSize, InvalidTickSize
from .models import Side, TickSize

BPS_DENOMINATOR = 10_000

_ONE = Decimal(1)
_ZERO = Decimal(0)


def to_decimal(value) -> Decimal:
    """Convert via str() so floats like 0.1 keep their printed value."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a number: {value!r}") from exc


def _to_units(value: Decimal, decimals: int) -> int:
    return int((value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_HALF_UP))


def price_valid(price, tick_size) -> bool:
    """True when price lies within [tick, 1 - tick]."""
    tick = TickSize.parse(tick_size).decimal
    p = to_decimal(price)
    return tick <= p <= _ONE - tick


def validate_price(price, tick_size) -> Decimal:
    p = to_decimal(price)
    if not price_valid(p, tick_size):
        tick = TickSize.parse(tick_size).decimal
        raise InvalidPrice(f"Invalid price ({p}), min: {tick} - max: {_ONE - tick}")
    return p


def round_to_tick(price, tick_size, side) -> Decimal:
    """Snap a price onto the tick grid.

    BUY rounds down (never overpay), SELL rounds up (never undersell).
    """
    p = to_decimal(price)
    if not _ZERO < p < _ONE:
        raise InvalidPrice(f"Invalid price ({p}), must be strictly between 0 and 1")
    tick = TickSize.parse(tick_size).decimal
    rounding = ROUND_FLOOR if Side.coerce(side) is Side.BUY else ROUND_CEILING
    rounded = ((p / tick).to_integral_value(rounding=rounding) * tick).quantize(tick)
    if not tick <= rounded <= _ONE - tick:
        raise InvalidPrice(
            f"Price {p} rounds to {rounded}, outside [{tick}, {_ONE - tick}]"
        )
    return rounded


def is_tick_size_smaller(a, b) -> bool:
    return TickSize.parse(a).decimal < TickSize.parse(b).decimal


def check_tick_size(requested, market_minimum) -> TickSize:
    """Reject a tick size override finer than the market accepts."""
    if is_tick_size_smaller(requested, market_minimum):
        raise InvalidTickSize(
            f"Invalid tick size ({TickSize.parse(requested).value}), "
            f"minimum for the market is {TickSize.parse(market_minimum).value}"
        )
    return TickSize.parse(requested)


def amounts_for_limit_order(
    price,
    size,
    side,
    collateral_decimals: int = COLLATERAL_DECIMALS,
    share_decimals: int = SHARE_DECIMALS,
) -> tuple[int, int]:
    """Return (maker_amount, taker_amount) in integer base units.

    BUY offers price*size collateral for size shares; SELL offers size shares
    for price*size collateral.
    """
    d_price = to_decimal(price)
    d_size = to_decimal(size)
    if d_size <= 0:
        raise InvalidSize(f"Invalid size ({d_size}), must be positive")

    collateral = _to_units(d_price * d_size, collateral_decimals)
    shares = _to_units(d_size, share_decimals)
    if collateral == 0 or shares == 0:
        raise InvalidSize(f"Order of {d_size} @ {d_price} rounds to a zero amount")

    if Side.coerce(side) is Side.BUY:
        return collateral, shares
    return shares, collateral


def amounts_for_market_order(
    amount,
    price,
    side,
    collateral_decimals: int = COLLATERAL_DECIMALS,
    share_decimals: int = SHARE_DECIMALS,
) -> tuple[int, int]:
    """Return (maker_amount, taker_amount) for a market order.

    BUY: ``amount`` is the collateral to spend; shares = amount / price.
    SELL: ``amount`` is the number of shares to sell.
    """
    d_amount = to_decimal(amount)
    d_price = to_decimal(price)
    if d_amount <= 0:
        raise InvalidSize(f"Invalid amount ({d_amount}), must be positive")
    if d_price <= 0:
        raise InvalidPrice(f"Invalid price ({d_price}), must be positive")

    if Side.coerce(side) is Side.BUY:
        maker = _to_units(d_amount, collateral_decimals)
        taker = _to_units(d_amount / d_price, share_decimals)
    else:
        maker = _to_units(d_amount, share_decimals)
        taker = _to_units(d_amount * d_price, collateral_decimals)

    if maker == 0 or taker == 0:
        raise InvalidSize(f"Market order of {d_amount} @ {d_price} rounds to a zero amount")
    return maker, taker


def apply_fee(amount: int, fee_rate_bps: int) -> int:
    """Net amount after a basis-point fee, truncated (never in the taker's favour)."""
    if not 0 <= fee_rate_bps <= BPS_DENOMINATOR:
        raise InvalidFeeRate(f"Fee rate {fee_rate_bps} bps outside [0, {BPS_DENOMINATOR}]")
    return int(amount) * (BPS_DENOMINATOR - int(fee_rate_bps)) // BPS_DENOMINATOR


def resolve_fee_rate(market_fee_bps: int, user_fee_bps: int | None = None) -> int:
    """The market's fee rate wins; a conflicting user rate is an error."""
    if user_fee_bps is not None and market_fee_bps > 0 and user_fee_bps != market_fee_bps:
        raise InvalidFeeRate(
            f"Invalid user provided fee rate: {user_fee_bps}, "
            f"fee rate for the market must be {market_fee_bps}"
        )
    return int(market_fee_bps)
