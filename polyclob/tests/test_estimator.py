"""Tests for polyclob.estimator — book walking and market price estimation."""

from decimal import Decimal

import pytest

from polyclob.errors import InsufficientLiquidity, InvalidSize
from polyclob.estimator import (
    MarketPriceEstimate,
    estimate_execution_price,
    estimate_market_order,
    walk_book,
)
from polyclob.models import BookLevel, OrderBookSnapshot, OrderType, Side, TickSize


def _book(bids=(), asks=()):
    return OrderBookSnapshot(
        token_id="123",
        bids=tuple(BookLevel(Decimal(p), Decimal(s)) for p, s in bids),
        asks=tuple(BookLevel(Decimal(p), Decimal(s)) for p, s in asks),
    )


_ASKS = [("0.50", "5"), ("0.55", "10")]
_BIDS = [("0.48", "10"), ("0.45", "10")]


class TestWalkBook:
    def test_average_over_two_levels(self):
        average, filled = walk_book(_book(asks=_ASKS), Side.BUY, 8)
        assert average == Decimal("0.51875")
        assert filled == Decimal("8")

    def test_by_notional(self):
        average, filled = walk_book(_book(asks=_ASKS), Side.BUY, "4.15", by_notional=True)
        assert average == Decimal("0.51875")
        assert filled == Decimal("4.15")

    def test_sell_walks_bids_best_first(self):
        average, _ = walk_book(_book(bids=_BIDS), Side.SELL, 10)
        assert average == Decimal("0.48")

    def test_partial(self):
        _, filled = walk_book(_book(asks=_ASKS), Side.BUY, 100)
        assert filled == Decimal("15")

    def test_empty(self):
        assert walk_book(_book(), Side.BUY, 1) == (None, Decimal(0))


class TestEstimateExecutionPrice:
    def test_buy_scenario(self):
        """avg 0.51875 * 1.005 = 0.52134375, floored to 0.52."""
        price = estimate_execution_price(_book(asks=_ASKS), Side.BUY, 8, OrderType.FOK, "0.01")
        assert price == Decimal("0.52")

    def test_notional_buy_matches_share_buy(self):
        price = estimate_execution_price(
            _book(asks=_ASKS), Side.BUY, "4.15", OrderType.FOK, "0.01", by_notional=True,
        )
        assert price == Decimal("0.52")

    def test_sell_buffer_lowers_price(self):
        # 0.48 * 0.995 = 0.4776, ceiled for SELL
        price = estimate_execution_price(_book(bids=_BIDS), Side.SELL, 5, OrderType.FOK, "0.01")
        assert price == Decimal("0.48")

    def test_sell_fine_tick(self):
        price = estimate_execution_price(
            _book(bids=_BIDS), Side.SELL, 5, OrderType.FOK, TickSize.TEN_THOUSANDTH,
        )
        assert price == Decimal("0.4776")

    def test_zero_buffer(self):
        price = estimate_execution_price(
            _book(asks=_ASKS), Side.BUY, 8, OrderType.FOK, "0.0001", buffer=Decimal(0),
        )
        assert price == Decimal("0.5187")

    def test_fok_insufficient_depth(self):
        with pytest.raises(InsufficientLiquidity) as exc_info:
            estimate_execution_price(_book(asks=_ASKS), Side.BUY, 20, OrderType.FOK, "0.01")
        assert exc_info.value.requested == Decimal("20")
        assert exc_info.value.fillable == Decimal("15")

    def test_gtc_insufficient_depth(self):
        with pytest.raises(InsufficientLiquidity):
            estimate_execution_price(_book(asks=_ASKS), Side.BUY, 20, OrderType.GTC, "0.01")

    def test_fak_prices_available_depth(self):
        # 8 / 15 = 0.5333.. * 1.005 = 0.536 -> 0.53
        price = estimate_execution_price(_book(asks=_ASKS), Side.BUY, 20, OrderType.FAK, "0.01")
        assert price == Decimal("0.53")

    @pytest.mark.parametrize("order_type", list(OrderType))
    def test_empty_book(self, order_type):
        with pytest.raises(InsufficientLiquidity) as exc_info:
            estimate_execution_price(_book(), Side.BUY, 1, order_type, "0.01")
        assert exc_info.value.fillable == Decimal(0)

    def test_empty_bids_for_sell(self):
        with pytest.raises(InsufficientLiquidity):
            estimate_execution_price(_book(asks=_ASKS), Side.SELL, 1, OrderType.FAK, "0.01")

    def test_clamped_to_max_price(self):
        price = estimate_execution_price(_book(asks=[("0.99", "100")]), Side.BUY, 1, OrderType.FOK, "0.01")
        assert price == Decimal("0.99")

    def test_clamped_to_min_price(self):
        price = estimate_execution_price(_book(bids=[("0.01", "100")]), Side.SELL, 1, OrderType.FOK, "0.01")
        assert price == Decimal("0.01")

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidSize):
            estimate_execution_price(_book(asks=_ASKS), Side.BUY, amount)

    def test_buy_monotone_in_amount(self):
        book = _book(asks=[("0.40", "3"), ("0.45", "4"), ("0.52", "6"), ("0.60", "10")])
        prices = [
            estimate_execution_price(book, Side.BUY, n, OrderType.FOK, "0.001") for n in range(1, 24)
        ]
        assert prices == sorted(prices)

    def test_sell_monotone_in_amount(self):
        book = _book(bids=[("0.60", "3"), ("0.55", "4"), ("0.41", "6"), ("0.30", "10")])
        prices = [
            estimate_execution_price(book, Side.SELL, n, OrderType.FOK, "0.001") for n in range(1, 24)
        ]
        assert prices == sorted(prices, reverse=True)

    def test_book_not_mutated(self):
        book = _book(bids=_BIDS, asks=_ASKS)
        before = (book.bids, book.asks)
        estimate_execution_price(book, Side.BUY, 8)
        estimate_execution_price(book, Side.SELL, 8)
        assert (book.bids, book.asks) == before


class TestEstimateMarketOrder:
    def test_full_fill_not_partial(self):
        estimate = estimate_market_order(_book(asks=_ASKS), Side.BUY, 8, OrderType.FOK, "0.01")
        assert estimate == MarketPriceEstimate(
            price=Decimal("0.52"), filled=Decimal("8"), requested=Decimal("8"),
        )
        assert not estimate.partial

    def test_fak_reports_fillable_collateral(self):
        # 5 shares at 0.50 cost 2.5 of the 100 requested
        estimate = estimate_market_order(
            _book(asks=[("0.5", "5")]), Side.BUY, 100, OrderType.FAK, "0.01", by_notional=True,
        )
        assert estimate.partial
        assert estimate.filled == Decimal("2.5")
        assert estimate.requested == Decimal("100")
        assert estimate.price == Decimal("0.50")

    def test_fak_reports_fillable_shares(self):
        estimate = estimate_market_order(_book(asks=[("0.5", "5")]), Side.BUY, 100, OrderType.FAK, "0.01")
        assert estimate.filled == Decimal("5")
        assert estimate.partial

    def test_price_matches_price_only_form(self):
        book = _book(bids=_BIDS)
        estimate = estimate_market_order(book, Side.SELL, 15, OrderType.FOK, "0.001")
        assert estimate.price == estimate_execution_price(book, Side.SELL, 15, OrderType.FOK, "0.001")


class TestOrderBookSnapshot:
    def test_from_dict_sorts_and_parses(self):
        book = OrderBookSnapshot.from_dict({
            "asset_id": "999",
            "bids": [{"price": "0.45", "size": "10"}, {"price": "0.48", "size": "2"}],
            "asks": [{"price": "0.60", "size": "1"}, {"price": "0.55", "size": "3"}],
            "tick_size": "0.01",
            "neg_risk": True,
        })
        assert book.token_id == "999"
        assert [lv.price for lv in book.bids] == [Decimal("0.48"), Decimal("0.45")]
        assert [lv.price for lv in book.asks] == [Decimal("0.55"), Decimal("0.60")]
        assert book.tick_size is TickSize.HUNDREDTH
        assert book.neg_risk is True

    def test_skips_malformed_levels(self):
        book = OrderBookSnapshot.from_dict({
            "bids": [{"price": "abc", "size": "1"}, {"size": "1"}, {"price": "0.3", "size": "1"}],
            "asks": None,
        })
        assert len(book.bids) == 1
        assert book.asks == ()
        assert book.tick_size is None
