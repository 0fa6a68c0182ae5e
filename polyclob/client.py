"""CLOB REST client — async, with retry, circuit breaker and per-client metadata cache."""

import asyncio
import json
import logging
import random
import time
from decimal import Decimal

import httpx

from . import constants as c
from . import registry
from .auth import build_builder_headers, build_l1_headers, build_l2_headers, inject_builder_headers
from .breaker import CircuitBreaker
from .cache import TokenMetadataCache
from .config import Config
from .errors import (
    CircuitOpenError,
    InvalidPrice,
    InvalidSize,
    MissingCredentials,
    MissingSigner,
    TransportError,
    UnknownToken,
)
from .estimator import MARKET_PRICE_BUFFER, MarketPriceEstimate, estimate_market_order
from .models import (
    ApiKeyCreds,
    BuilderConfig,
    MarketOrderArgs,
    OrderArgs,
    OrderBookSnapshot,
    OrderOptions,
    OrderType,
    Side,
    SignatureType,
    TickSize,
)
from .numeric import check_tick_size, resolve_fee_rate, to_decimal
from .order import OrderBuilder, SignedOrder
from .signer import LocalSigner

logger = logging.getLogger(__name__)

_RETRYABLE_CODES = {429, 500, 502, 503, 504}

# Compact JSON: the HMAC covers exactly these bytes
_json_compact = lambda obj: json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def _parse_number(value, error: type, label: str) -> Decimal:
    try:
        number = to_decimal(value)
    except ValueError as exc:
        raise error(f"Invalid {label} ({value!r}), not a number") from exc
    if not number.is_finite():
        raise error(f"Invalid {label} ({value!r}), not a finite number")
    return number


class ClobClient:
    """Async client for the CLOB API.

    Three access tiers: public (no headers), L1 (wallet signature, key
    management only) and L2 (HMAC over API credentials, everything else).

    Args:
        host: CLOB API base URL.
        chain_id: 137 (Polygon) or 80002 (Amoy).
        signer: Signing capability, or a hex private key for a LocalSigner.
        creds: API credentials for L2 calls. Can be set later with
            ``set_api_creds`` after ``create_or_derive_api_key``.
        signature_type: EOA, POLY_PROXY or EIP1271.
        funder: Maker address for proxy / smart-contract wallets.
        builder: Optional builder attribution credentials.
        timeout: HTTP request timeout in seconds.
        max_retries: Number of retries on transient HTTP errors.
        base_delay: Initial backoff delay in seconds.
        use_server_time: Timestamp auth headers with the exchange's clock.
        market_price_buffer: Fractional safety margin for market orders.
    """

    def __init__(
        self,
        host: str = c.CLOB_BASE_URL,
        chain_id: int = c.POLYGON,
        signer=None,
        creds: ApiKeyCreds | None = None,
        signature_type: SignatureType = SignatureType.EOA,
        funder: str | None = None,
        builder: BuilderConfig | None = None,
        timeout: float = 15,
        max_retries: int = 3,
        base_delay: float = 1.0,
        use_server_time: bool = False,
        market_price_buffer=MARKET_PRICE_BUFFER,
    ):
        registry.get_contract_config(chain_id)
        self.base_url = host.rstrip("/")
        self.chain_id = chain_id
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.use_server_time = use_server_time
        self.market_price_buffer = to_decimal(market_price_buffer)

        if isinstance(signer, str):
            signer = LocalSigner(signer)
        self.signer = signer
        self.creds = creds
        self.builder = builder if builder is not None and builder.is_valid() else None
        self._order_builder = (
            OrderBuilder(signer, chain_id, signature_type, funder) if signer is not None else None
        )

        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._breaker = CircuitBreaker()
        self._cache = TokenMetadataCache(
            self._fetch_tick_size, self._fetch_neg_risk, self._fetch_fee_rate,
        )

    @classmethod
    def from_config(cls, config: Config, config_dir: str = ".") -> "ClobClient":
        return cls(
            host=config.host,
            chain_id=config.chain_id,
            signer=config.private_key or None,
            creds=config.load_api_creds(config_dir),
            signature_type=SignatureType(config.signature_type),
            funder=config.funder or None,
            builder=config.builder_config(),
            timeout=config.timeout,
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            use_server_time=config.use_server_time,
            market_price_buffer=config.market_price_buffer,
        )

    def __repr__(self) -> str:
        return f"ClobClient(address={self.address}, chain_id={self.chain_id})"

    @property
    def address(self) -> str | None:
        return self.signer.address if self.signer is not None else None

    def set_api_creds(self, creds: ApiKeyCreds) -> None:
        self.creds = creds

    # ------------------------------------------------------------------
    # Auth guards
    # ------------------------------------------------------------------

    def _require_l1(self) -> None:
        if self.signer is None:
            raise MissingSigner("A signer is needed to interact with this endpoint")

    def _require_l2(self) -> None:
        if self.creds is None:
            raise MissingCredentials("API credentials are needed to interact with this endpoint")
        self._require_l1()

    def _require_builder(self) -> None:
        if self.builder is None:
            raise MissingCredentials("Builder API credentials are needed to interact with this endpoint")

    async def _timestamp_ms(self) -> int:
        if not self.use_server_time:
            return int(time.time() * 1000)
        # Called from inside a request that already holds the breaker slot
        resp = await self._request("GET", c.TIME, guarded=False)
        return int(resp) * 1000

    async def _auth_headers(self, method: str, path: str, body_str: str, auth: bool, builder: bool) -> dict:
        """L2 headers, builder headers, or both, sharing one timestamp."""
        ts = await self._timestamp_ms()
        headers = build_l2_headers(self.creds, self.address, method, path, body_str, ts) if auth else {}
        if builder and self.builder is not None:
            headers = inject_builder_headers(
                headers,
                build_builder_headers(self.builder, method, path, body_str, ts),
            )
        return headers

    # ------------------------------------------------------------------
    # Low-level request
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        body: dict | list | None = None,
        auth: bool = False,
        headers: dict | None = None,
        builder: bool = False,
        guarded: bool = True,
    ):
        """Send one API request with retries.

        ``auth`` adds L2 headers. ``builder`` adds builder attribution
        headers; without ``auth`` they are the only credentials sent.
        ``guarded=False`` skips admission through the circuit breaker;
        the outcome is still recorded.
        """
        if auth:
            self._require_l2()
        elif builder:
            self._require_builder()
        if guarded and not self._breaker.allow_request():
            raise CircuitOpenError(
                f"Circuit breaker {self._breaker.state.upper()} — blocking {method} {path}. "
                f"Will retry after {self._breaker.recovery_timeout:.0f}s cooldown."
            )
        holds_trial = guarded and self._breaker.state == CircuitBreaker.HALF_OPEN
        try:
            return await self._send(method, path, params, body, auth, headers, builder)
        finally:
            if holds_trial:
                self._breaker.release()

    async def _send(self, method, path, params, body, auth, headers, builder):
        body_str = _json_compact(body) if body is not None else ""

        for attempt in range(self.max_retries + 1):
            # Build headers inside retry loop so HMAC timestamp is fresh
            req_headers = {
                "Content-Type": "application/json",
                "User-Agent": "polyclob",
                "Accept": "*/*",
            }
            if headers:
                req_headers.update(headers)
            if auth or builder:
                req_headers.update(await self._auth_headers(method, path, body_str, auth, builder))

            try:
                resp = await self._http.request(
                    method,
                    path,
                    params=params,
                    content=body_str.encode() if body_str else None,
                    headers=req_headers,
                )
            except httpx.TimeoutException as exc:
                if attempt < self.max_retries:
                    delay = self.base_delay * (2**attempt) * (0.5 + random.random())
                    logger.warning(
                        "CLOB timeout on %s %s — retry %d/%d in %.1fs",
                        method, path, attempt + 1, self.max_retries, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                self._breaker.record_failure()
                raise TransportError(f"Timeout on {method} {path}") from exc
            except httpx.HTTPError as exc:
                self._breaker.record_failure()
                raise TransportError(f"{method} {path} failed: {exc}") from exc

            if resp.status_code in _RETRYABLE_CODES and attempt < self.max_retries:
                delay = self.base_delay * (2**attempt) * (0.5 + random.random())
                logger.warning(
                    "CLOB %d on %s %s — retry %d/%d in %.1fs",
                    resp.status_code, method, path, attempt + 1, self.max_retries, delay,
                )
                await asyncio.sleep(delay)
                continue
            if resp.status_code >= 400:
                logger.error("CLOB %d %s %s: %s", resp.status_code, method, path, resp.text)
                if resp.status_code >= 500:
                    self._breaker.record_failure()
                raise TransportError(
                    f"CLOB {resp.status_code} on {method} {path}: {resp.text}",
                    status_code=resp.status_code,
                )
            self._breaker.record_success()
            try:
                return resp.json()
            except ValueError:
                return resp.text

        raise TransportError(f"Max retries exceeded for {method} {path}")

    async def _paginate(
        self, path: str, params: dict | None = None, auth: bool = True, builder: bool = False,
    ) -> list:
        """Follow next_cursor until the end marker."""
        results: list = []
        cursor = c.INITIAL_CURSOR
        while cursor != c.END_CURSOR:
            resp = await self._request(
                "GET", path, params={**(params or {}), "next_cursor": cursor},
                auth=auth, builder=builder,
            )
            if isinstance(resp, list):
                results.extend(resp)
                break
            results.extend(resp.get("data", []))
            cursor = resp.get("next_cursor") or c.END_CURSOR
        return results

    # ------------------------------------------------------------------
    # Public data
    # ------------------------------------------------------------------

    async def get_ok(self):
        return await self._request("GET", "/")

    async def get_server_time(self) -> int:
        """Exchange clock, unix seconds."""
        return int(await self._request("GET", c.TIME))

    async def get_order_book(self, token_id: str) -> OrderBookSnapshot:
        try:
            data = await self._request("GET", c.GET_ORDER_BOOK, params={"token_id": token_id})
        except TransportError as exc:
            if exc.status_code == 404:
                raise UnknownToken(f"No order book for token {token_id}") from exc
            raise
        book = OrderBookSnapshot.from_dict(data)
        self._cache.prime(token_id, tick_size=book.tick_size, neg_risk=book.neg_risk)
        return book

    async def _token_lookup(self, path: str, token_id: str) -> dict:
        try:
            return await self._request("GET", path, params={"token_id": token_id})
        except TransportError as exc:
            if exc.status_code == 404:
                raise UnknownToken(f"Token {token_id} not found") from exc
            raise

    async def _fetch_tick_size(self, token_id: str) -> TickSize:
        resp = await self._token_lookup(c.GET_TICK_SIZE, token_id)
        return TickSize.parse(resp["minimum_tick_size"])

    async def _fetch_neg_risk(self, token_id: str) -> bool:
        resp = await self._token_lookup(c.GET_NEG_RISK, token_id)
        return bool(resp.get("neg_risk", False))

    async def _fetch_fee_rate(self, token_id: str) -> int:
        resp = await self._token_lookup(c.GET_FEE_RATE, token_id)
        return int(resp.get("base_fee", resp.get("makerBaseFeeRateBps", 0)) or 0)

    async def get_tick_size(self, token_id: str) -> TickSize:
        """Minimum tick size for a token (cached per client)."""
        return await self._cache.get_tick_size(token_id)

    async def get_neg_risk(self, token_id: str) -> bool:
        """Whether a token trades on the neg-risk exchange (cached per client)."""
        return await self._cache.get_neg_risk(token_id)

    async def get_fee_rate_bps(self, token_id: str) -> int:
        """Market fee rate in basis points (cached per client)."""
        return await self._cache.get_fee_rate_bps(token_id)

    async def estimate_market_order(
        self,
        token_id: str,
        side: Side | str,
        amount,
        order_type: OrderType = OrderType.FOK,
        tick_size: TickSize | str | None = None,
    ) -> MarketPriceEstimate:
        """Price a market order of ``amount`` and report how much of it the book covers.

        BUY amounts are collateral, SELL amounts are shares. For FAK the
        estimate may be partial: ``filled`` < ``requested``.
        """
        side = Side.coerce(side)
        book = await self.get_order_book(token_id)
        tick = tick_size or await self.get_tick_size(token_id)
        return estimate_market_order(
            book, side, amount, order_type, tick,
            by_notional=side is Side.BUY,
            buffer=self.market_price_buffer,
        )

    async def calculate_market_price(
        self,
        token_id: str,
        side: Side | str,
        amount,
        order_type: OrderType = OrderType.FOK,
        tick_size: TickSize | str | None = None,
    ) -> Decimal:
        """Estimate the price a market order of ``amount`` would execute at."""
        estimate = await self.estimate_market_order(token_id, side, amount, order_type, tick_size)
        return estimate.price

    # ------------------------------------------------------------------
    # L1: API key lifecycle
    # ------------------------------------------------------------------

    async def _l1_headers(self, nonce: int) -> dict:
        self._require_l1()
        ts = await self.get_server_time() if self.use_server_time else None
        return await build_l1_headers(self.signer, self.chain_id, nonce, ts)

    async def create_api_key(self, nonce: int = 0) -> ApiKeyCreds:
        headers = await self._l1_headers(nonce)
        resp = await self._request("POST", c.CREATE_API_KEY, headers=headers)
        return ApiKeyCreds.from_dict(resp)

    async def derive_api_key(self, nonce: int = 0) -> ApiKeyCreds:
        headers = await self._l1_headers(nonce)
        resp = await self._request("GET", c.DERIVE_API_KEY, headers=headers)
        return ApiKeyCreds.from_dict(resp)

    async def create_or_derive_api_key(self, nonce: int = 0) -> ApiKeyCreds:
        """Create new credentials, falling back to deriving the existing ones."""
        try:
            return await self.create_api_key(nonce)
        except TransportError as exc:
            logger.info("API key creation failed (%s), deriving existing key", exc.status_code)
            return await self.derive_api_key(nonce)

    # ------------------------------------------------------------------
    # L2: key management
    # ------------------------------------------------------------------

    async def get_api_keys(self) -> dict:
        return await self._request("GET", c.GET_API_KEYS, auth=True)

    async def delete_api_key(self):
        return await self._request("DELETE", c.DELETE_API_KEY, auth=True)

    async def get_closed_only_mode(self) -> dict:
        return await self._request("GET", c.CLOSED_ONLY, auth=True)

    async def create_builder_api_key(self) -> BuilderConfig:
        resp = await self._request("POST", c.BUILDER_API_KEY, auth=True)
        return BuilderConfig(resp["key"], resp["secret"], resp["passphrase"])

    async def get_builder_api_keys(self) -> list[dict]:
        return await self._request("GET", c.BUILDER_API_KEY, auth=True)

    async def revoke_builder_api_key(self):
        if self.builder is None:
            raise MissingCredentials("Builder API credentials are needed to revoke a builder key")
        return await self._request("DELETE", c.BUILDER_API_KEY, auth=True, builder=True)

    # ------------------------------------------------------------------
    # Order creation (local signing)
    # ------------------------------------------------------------------

    def _require_order_builder(self) -> OrderBuilder:
        if self._order_builder is None:
            raise MissingSigner("A signer is needed to create orders")
        return self._order_builder

    async def _resolve_tick_size(self, token_id: str, options: OrderOptions | None) -> TickSize:
        market_tick = await self.get_tick_size(token_id)
        if options is not None and options.tick_size is not None:
            return check_tick_size(options.tick_size, market_tick)
        return market_tick

    async def _resolve_neg_risk(self, token_id: str, options: OrderOptions | None) -> bool:
        if options is not None and options.neg_risk is not None:
            return options.neg_risk
        return await self.get_neg_risk(token_id)

    async def create_order(
        self, args: OrderArgs, options: OrderOptions | None = None, salt: int | None = None,
    ) -> SignedOrder:
        """Build and sign a limit order. Nothing is sent to the exchange."""
        builder = self._require_order_builder()
        price = _parse_number(args.price, InvalidPrice, "price")
        if not 0 < price < 1:
            raise InvalidPrice(f"Invalid price ({price}), must be strictly between 0 and 1")
        if _parse_number(args.size, InvalidSize, "size") <= 0:
            raise InvalidSize(f"Invalid size ({args.size}), must be positive")

        tick_size = await self._resolve_tick_size(args.token_id, options)
        neg_risk = await self._resolve_neg_risk(args.token_id, options)
        fee_rate = resolve_fee_rate(await self.get_fee_rate_bps(args.token_id), args.fee_rate_bps)
        return await builder.build_order(args, tick_size, neg_risk, fee_rate, salt=salt)

    async def create_market_order(
        self, args: MarketOrderArgs, options: OrderOptions | None = None, salt: int | None = None,
    ) -> SignedOrder:
        """Build and sign a market order, pricing it from the book when needed."""
        builder = self._require_order_builder()
        if _parse_number(args.amount, InvalidSize, "amount") <= 0:
            raise InvalidSize(f"Invalid amount ({args.amount}), must be positive")
        if args.price is not None and not 0 < _parse_number(args.price, InvalidPrice, "price") < 1:
            raise InvalidPrice(f"Invalid price ({args.price}), must be strictly between 0 and 1")

        tick_size = await self._resolve_tick_size(args.token_id, options)
        neg_risk = await self._resolve_neg_risk(args.token_id, options)
        fee_rate = resolve_fee_rate(await self.get_fee_rate_bps(args.token_id), args.fee_rate_bps)

        price = args.price
        if price is None:
            estimate = await self.estimate_market_order(
                args.token_id, args.side, args.amount, args.order_type, tick_size,
            )
            price = estimate.price
            if estimate.partial:
                logger.warning(
                    "Market %s can only fill %s of %s at %s",
                    Side.coerce(args.side).value, estimate.filled, estimate.requested, price,
                )
            else:
                logger.info("Market %s priced at %s", Side.coerce(args.side).value, price)
        return await builder.build_market_order(args, price, tick_size, neg_risk, fee_rate, salt=salt)

    # ------------------------------------------------------------------
    # L2: orders
    # ------------------------------------------------------------------

    def _order_body(self, signed: SignedOrder, order_type: OrderType, post_only: bool = False) -> dict:
        body = {
            "order": signed.to_payload(),
            "owner": self.creds.key,
            "orderType": OrderType(order_type).value,
            "deferExec": False,
        }
        if post_only:
            body["postOnly"] = True
        return body

    async def post_order(
        self, signed: SignedOrder, order_type: OrderType = OrderType.GTC, post_only: bool = False,
    ) -> dict:
        """Submit a signed order."""
        self._require_l2()
        body = self._order_body(signed, order_type, post_only)
        logger.debug(
            "POST /order side=%s maker=%s taker=%s",
            signed.order.side.value, signed.order.maker_amount, signed.order.taker_amount,
        )
        return await self._request("POST", c.POST_ORDER, body=body, auth=True, builder=True)

    async def post_orders(self, orders: list[tuple[SignedOrder, OrderType]]) -> list[dict]:
        """Submit several signed orders in one request."""
        self._require_l2()
        body = [self._order_body(signed, order_type) for signed, order_type in orders]
        return await self._request("POST", c.POST_ORDERS, body=body, auth=True, builder=True)

    async def create_and_post_order(
        self,
        args: OrderArgs,
        options: OrderOptions | None = None,
        order_type: OrderType = OrderType.GTC,
    ) -> dict:
        self._require_l2()
        signed = await self.create_order(args, options)
        return await self.post_order(signed, order_type)

    async def create_and_post_market_order(
        self,
        args: MarketOrderArgs,
        options: OrderOptions | None = None,
    ) -> dict:
        self._require_l2()
        signed = await self.create_market_order(args, options)
        return await self.post_order(signed, args.order_type)

    async def get_order(self, order_id: str) -> dict:
        return await self._request("GET", f"{c.GET_ORDER}{order_id}", auth=True)

    async def get_open_orders(self, **filters) -> list[dict]:
        """Open orders for the authenticated user (filters: id, market, asset_id)."""
        return await self._paginate(c.GET_OPEN_ORDERS, filters)

    async def get_trades(self, **filters) -> list[dict]:
        """Trade history (filters: id, maker_address, market, asset_id, before, after)."""
        return await self._paginate(c.GET_TRADES, filters)

    async def cancel_order(self, order_id: str) -> dict:
        return await self._request("DELETE", c.CANCEL_ORDER, body={"orderID": order_id}, auth=True)

    async def cancel_orders(self, order_ids: list[str]) -> dict:
        return await self._request("DELETE", c.CANCEL_ORDERS, body=list(order_ids), auth=True)

    async def cancel_all(self) -> dict:
        return await self._request("DELETE", c.CANCEL_ALL, auth=True)

    async def cancel_market_orders(self, market: str = "", asset_id: str = "") -> dict:
        return await self._request(
            "DELETE", c.CANCEL_MARKET_ORDERS,
            body={"market": market, "asset_id": asset_id}, auth=True,
        )

    def _balance_params(self, asset_type: str, token_id: str | None) -> dict:
        params = {"asset_type": asset_type, "signature_type": int(self._require_order_builder().signature_type)}
        if token_id:
            params["token_id"] = token_id
        return params

    async def get_balance_allowance(self, asset_type: str = "COLLATERAL", token_id: str | None = None) -> dict:
        params = self._balance_params(asset_type, token_id)
        return await self._request("GET", c.GET_BALANCE_ALLOWANCE, params=params, auth=True)

    async def update_balance_allowance(self, asset_type: str = "COLLATERAL", token_id: str | None = None):
        """Ask the exchange to re-read on-chain balance and allowance."""
        params = self._balance_params(asset_type, token_id)
        return await self._request("POST", c.UPDATE_BALANCE_ALLOWANCE, params=params, auth=True)

    async def get_notifications(self) -> list[dict]:
        return await self._request("GET", c.GET_NOTIFICATIONS, auth=True)

    async def drop_notifications(self, ids: list[str]):
        """Mark notifications as read."""
        params = {"ids": ",".join(ids)} if ids else None
        return await self._request("DELETE", c.DROP_NOTIFICATIONS, params=params, auth=True)

    async def is_order_scoring(self, order_id: str) -> dict:
        """Whether a resting order currently earns liquidity rewards."""
        return await self._request("GET", c.IS_ORDER_SCORING, params={"order_id": order_id}, auth=True)

    async def are_orders_scoring(self, order_ids: list[str]) -> dict:
        return await self._request(
            "GET", c.ARE_ORDERS_SCORING, params={"order_ids": ",".join(order_ids)}, auth=True,
        )

    async def get_builder_trades(self, **filters) -> list[dict]:
        """Trades attributed to the configured builder (filters: id, market, asset_id).

        Authenticated with builder headers alone; no API credentials needed.
        """
        self._require_builder()
        return await self._paginate(c.GET_BUILDER_TRADES, filters, auth=False, builder=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP connection pool and drop cached token metadata."""
        await self._http.aclose()
        self._cache.clear()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
