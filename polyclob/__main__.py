"""CLOB CLI — run with: python3 -m polyclob <command>"""

import argparse
import asyncio
import json
import logging
import sys

from .client import ClobClient
from .config import Config
from .errors import ClobError
from .models import MarketOrderArgs, OrderArgs, OrderOptions, OrderType

logger = logging.getLogger(__name__)


def _load_config(args) -> Config:
    config = Config.load(args.config_dir)
    if args.private_key:
        config.private_key = args.private_key
    if args.chain_id:
        config.chain_id = args.chain_id
    return config


def _get_client(args, need_key: bool = True) -> ClobClient:
    config = _load_config(args)
    if need_key and not config.private_key:
        print("Error: set POLY_PRIVATE_KEY env var or pass --private-key")
        sys.exit(1)
    return ClobClient.from_config(config, args.config_dir)


def _options(args) -> OrderOptions | None:
    tick = getattr(args, "tick_size", None)
    neg_risk = True if getattr(args, "neg_risk", False) else None  # None = ask the exchange
    if tick is None and neg_risk is None:
        return None
    return OrderOptions(tick_size=tick, neg_risk=neg_risk)


# -- Commands ----------------------------------------------------------------

async def cmd_book(args):
    """Show orderbook for a token (public, no auth needed)."""
    async with _get_client(args, need_key=False) as client:
        book = await client.get_order_book(args.token_id)
        print("=== ASKS ===")
        for ask in reversed(book.asks):
            print(f"  {ask.price:>8}  |  {ask.size}")
        print("------------")
        for bid in book.bids:
            print(f"  {bid.price:>8}  |  {bid.size}")
        print("=== BIDS ===")
        print(f"tick_size={book.tick_size.value if book.tick_size else '?'}  neg_risk={book.neg_risk}")


async def cmd_estimate(args):
    """Estimate the execution price of a market order."""
    async with _get_client(args, need_key=False) as client:
        estimate = await client.estimate_market_order(
            args.token_id, args.side, args.amount, OrderType(args.order_type.upper()),
        )
        print(estimate.price)
        if estimate.partial:
            print(f"partial fill: {estimate.filled} of {estimate.requested}")


async def cmd_derive(args):
    """Create or derive API credentials from the private key (L1 auth)."""
    async with _get_client(args) as client:
        creds = await client.create_or_derive_api_key(nonce=args.nonce)
        print(json.dumps(creds.to_dict(), indent=2))
        if args.save:
            with open(args.save, "w") as f:
                json.dump(creds.to_dict(), f, indent=2)
            print(f"\nSaved to {args.save}")


async def cmd_keys(args):
    """List API keys for the authenticated wallet."""
    async with _get_client(args) as client:
        print(json.dumps(await client.get_api_keys(), indent=2))


async def cmd_order(args):
    """Build, sign and submit a limit order."""
    order_args = OrderArgs(
        token_id=args.token_id,
        price=args.price,
        size=args.size,
        side=args.side.upper(),
        expiration=args.expiration,
    )
    async with _get_client(args) as client:
        signed = await client.create_order(order_args, _options(args))
        if args.dry_run:
            print(json.dumps(signed.to_payload(), indent=2))
            return
        result = await client.post_order(signed, OrderType(args.order_type.upper()))
        print(json.dumps(result, indent=2))


async def cmd_market_order(args):
    """Build, sign and submit a market order priced from the book."""
    order_args = MarketOrderArgs(
        token_id=args.token_id,
        amount=args.amount,
        side=args.side.upper(),
        order_type=OrderType(args.order_type.upper()),
    )
    async with _get_client(args) as client:
        signed = await client.create_market_order(order_args, _options(args))
        if args.dry_run:
            print(json.dumps(signed.to_payload(), indent=2))
            return
        result = await client.post_order(signed, order_args.order_type)
        print(json.dumps(result, indent=2))


async def cmd_orders(args):
    """List open orders."""
    async with _get_client(args) as client:
        orders = await client.get_open_orders()
        if not orders:
            print("No open orders.")
            return
        for o in orders:
            print(f"  {o.get('id', '?')}  {o.get('side', '?')}  "
                  f"price={o.get('price', '?')}  size={o.get('original_size', o.get('size', '?'))}")
        print(f"\n{len(orders)} open order(s)")


async def cmd_cancel(args):
    """Cancel an order or all orders."""
    async with _get_client(args) as client:
        if args.order_id == "all":
            result = await client.cancel_all()
        else:
            result = await client.cancel_order(args.order_id)
        print(json.dumps(result, indent=2))


async def cmd_trades(args):
    """Show trade history."""
    async with _get_client(args) as client:
        trades = await client.get_trades()
        if not trades:
            print("No trades.")
            return
        for t in trades:
            print(f"  {t.get('id', '?')}  {t.get('side', '?')}  "
                  f"price={t.get('price', '?')}  size={t.get('size', '?')}")
        print(f"\n{len(trades)} trade(s)")


# -- CLI setup ---------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python3 -m polyclob",
        description="Polymarket CLOB order signing and trading client",
    )
    parser.add_argument("--private-key", help="Ethereum private key (or set POLY_PRIVATE_KEY)")
    parser.add_argument("--chain-id", type=int, help="137 (Polygon) or 80002 (Amoy)")
    parser.add_argument("--config-dir", default=".", help="Directory holding config.json / creds.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # book
    p = sub.add_parser("book", help="Show orderbook")
    p.add_argument("token_id")
    p.set_defaults(func=cmd_book)

    # estimate
    p = sub.add_parser("estimate", help="Estimate a market order's price")
    p.add_argument("token_id")
    p.add_argument("side", choices=["buy", "sell", "BUY", "SELL"])
    p.add_argument("amount", help="Collateral for BUY, shares for SELL")
    p.add_argument("--order-type", default="FOK", choices=["FOK", "FAK", "fok", "fak"])
    p.set_defaults(func=cmd_estimate)

    # derive
    p = sub.add_parser("derive", help="Create or derive API creds from private key")
    p.add_argument("--nonce", type=int, default=0)
    p.add_argument("--save", metavar="FILE", help="Save creds to JSON file")
    p.set_defaults(func=cmd_derive)

    # keys
    p = sub.add_parser("keys", help="List API keys")
    p.set_defaults(func=cmd_keys)

    # order
    p = sub.add_parser("order", help="Place a limit order")
    p.add_argument("token_id")
    p.add_argument("side", choices=["buy", "sell", "BUY", "SELL"])
    p.add_argument("price")
    p.add_argument("size")
    p.add_argument("--order-type", default="GTC", choices=["GTC", "GTD", "gtc", "gtd"])
    p.add_argument("--expiration", type=int, default=0)
    p.add_argument("--tick-size", choices=["0.1", "0.01", "0.001", "0.0001"])
    p.add_argument("--neg-risk", action="store_true")
    p.add_argument("--dry-run", action="store_true", help="Sign and print, do not submit")
    p.set_defaults(func=cmd_order)

    # market-order
    p = sub.add_parser("market-order", help="Place a market order")
    p.add_argument("token_id")
    p.add_argument("side", choices=["buy", "sell", "BUY", "SELL"])
    p.add_argument("amount", help="Collateral for BUY, shares for SELL")
    p.add_argument("--order-type", default="FOK", choices=["FOK", "FAK", "fok", "fak"])
    p.add_argument("--tick-size", choices=["0.1", "0.01", "0.001", "0.0001"])
    p.add_argument("--neg-risk", action="store_true")
    p.add_argument("--dry-run", action="store_true", help="Sign and print, do not submit")
    p.set_defaults(func=cmd_market_order)

    # orders
    p = sub.add_parser("orders", help="List open orders")
    p.set_defaults(func=cmd_orders)

    # cancel
    p = sub.add_parser("cancel", help="Cancel order(s)")
    p.add_argument("order_id", help="Order ID or 'all'")
    p.set_defaults(func=cmd_cancel)

    # trades
    p = sub.add_parser("trades", help="Show trade history")
    p.set_defaults(func=cmd_trades)

    return parser


def main():
    args = build_parser().parse_args()
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(message)s",
        level=logging.DEBUG if args.verbose else _load_config(args).log_level.upper(),
    )
    try:
        asyncio.run(args.func(args))
    except ClobError as exc:
        logger.error("%s: %s", exc.kind, exc.message)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Stopped.")


if __name__ == "__main__":
    main()
