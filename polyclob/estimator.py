"""Market price estimation — walk the book to price a market order."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from .errors import InsufficientLiquidity, InvalidSize
from .models import OrderBookSnapshot, OrderType, Side, TickSize
from .numeric import round_to_tick, to_decimal

logger = logging.getLogger(__name__)

# Multiplicative safety margin against the taker: the average price is
# raised by this fraction for BUY and lowered for SELL before tick rounding.
MARKET_PRICE_BUFFER = Decimal("0.005")


def _opposing_levels(book: OrderBookSnapshot, side: Side):
    if side is Side.BUY:
        return sorted(book.asks, key=lambda lv: lv.price)
    return sorted(book.bids, key=lambda lv: lv.price, reverse=True)


def walk_book(book: OrderBookSnapshot, side, amount, by_notional: bool = False):
    """Consume the opposing side best-first.

    Returns (average_price, filled) where ``filled`` is in the same unit as
    ``amount`` (collateral when ``by_notional``, shares otherwise). The
    average is total collateral / total shares over consumed levels.
    """
    side = Side.coerce(side)
    remaining = to_decimal(amount)
    total_shares = Decimal(0)
    total_cost = Decimal(0)

    for level in _opposing_levels(book, side):
        if remaining <= 0:
            break
        if level.price <= 0 or level.size <= 0:
            continue
        if by_notional:
            take_cost = min(level.size * level.price, remaining)
            take_shares = take_cost / level.price
            remaining -= take_cost
        else:
            take_shares = min(level.size, remaining)
            take_cost = take_shares * level.price
            remaining -= take_shares
        total_shares += take_shares
        total_cost += take_cost

    if total_shares == 0:
        return None, Decimal(0)
    filled = total_cost if by_notional else total_shares
    return total_cost / total_shares, filled


@dataclass(frozen=True)
class MarketPriceEstimate:
    """Price for a market order, plus how much of it the book can take.

    ``filled`` and ``requested`` share a unit: collateral for notional
    BUY walks, shares otherwise. Only FAK estimates can be partial.
    """

    price: Decimal
    filled: Decimal
    requested: Decimal

    @property
    def partial(self) -> bool:
        return self.filled < self.requested


def estimate_market_order(
    book: OrderBookSnapshot,
    side,
    amount,
    order_type: OrderType = OrderType.FOK,
    tick_size: TickSize | str = TickSize.HUNDREDTH,
    *,
    by_notional: bool = False,
    buffer: Decimal = MARKET_PRICE_BUFFER,
) -> MarketPriceEstimate:
    """Achievable price for a market order of ``amount`` against ``book``.

    Args:
        book: Order book snapshot (not mutated).
        side: Taker side. BUY walks asks, SELL walks bids.
        amount: Shares, or collateral when ``by_notional`` is set.
        order_type: FAK prices whatever depth exists; every other type
            requires the book to cover the full amount.
        tick_size: Grid the final price is snapped to.
        by_notional: Treat ``amount`` as collateral (market BUY orders).
        buffer: Fractional widening against the taker.

    Raises:
        InsufficientLiquidity: Book empty, or too thin for a non-FAK order.
    """
    side = Side.coerce(side)
    tick = TickSize.parse(tick_size)
    requested = to_decimal(amount)
    if requested <= 0:
        raise InvalidSize(f"Invalid amount ({requested}), must be positive")

    average, filled = walk_book(book, side, requested, by_notional=by_notional)
    if average is None:
        raise InsufficientLiquidity(
            f"No {'asks' if side is Side.BUY else 'bids'} to match",
            requested=requested, fillable=Decimal(0),
        )
    if filled < requested:
        if OrderType(order_type) is not OrderType.FAK:
            raise InsufficientLiquidity(
                f"Book can fill {filled} of {requested}",
                requested=requested, fillable=filled,
            )
        logger.info("FAK partial: book covers %s of %s, pricing available depth", filled, requested)

    buffer = to_decimal(buffer)
    if side is Side.BUY:
        buffered = average * (1 + buffer)
    else:
        buffered = average * (1 - buffer)

    # Clamp onto [tick, 1 - tick] before snapping
    low, high = tick.decimal, 1 - tick.decimal
    buffered = min(max(buffered, low), high)
    price = round_to_tick(buffered, tick, side)
    logger.debug(
        "Estimated %s price %s (avg %s, filled %s/%s)", side.value, price, average, filled, requested,
    )
    return MarketPriceEstimate(price=price, filled=filled, requested=requested)


def estimate_execution_price(
    book: OrderBookSnapshot,
    side,
    amount,
    order_type: OrderType = OrderType.FOK,
    tick_size: TickSize | str = TickSize.HUNDREDTH,
    *,
    by_notional: bool = False,
    buffer: Decimal = MARKET_PRICE_BUFFER,
) -> Decimal:
    """Price-only form of :func:`estimate_market_order`."""
    return estimate_market_order(
        book, side, amount, order_type, tick_size, by_notional=by_notional, buffer=buffer,
    ).price
