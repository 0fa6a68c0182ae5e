"""Structured error taxonomy for the CLOB client.

Every error carries a stable ``kind`` string so callers can branch on it
without matching messages.
"""


class ClobError(Exception):
    """Base class for all client errors."""

    kind = "clob_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, message={self.message!r})"


class InvalidPrice(ClobError):
    """Price outside the valid range for the market's tick size."""

    kind = "invalid_price"


class InvalidSize(ClobError):
    """Size or amount that would produce a zero (or negative) integer amount."""

    kind = "invalid_size"


class InvalidTickSize(ClobError):
    """Requested tick size is finer than the market minimum."""

    kind = "invalid_tick_size"


class InvalidFeeRate(ClobError):
    """Fee rate outside [0, 10000] bps or disagreeing with the market."""

    kind = "invalid_fee_rate"


class UnknownToken(ClobError):
    """The exchange reports the token id does not exist."""

    kind = "unknown_token"


class UnsupportedChain(ClobError):
    """Chain id is not one of the supported networks."""

    kind = "unsupported_chain"


class InvalidContractForChain(ClobError):
    """No verifying contract can be resolved for the chain / risk class."""

    kind = "invalid_contract_for_chain"


class InsufficientLiquidity(ClobError):
    """The order book cannot fill the requested amount.

    Args:
        requested: Amount asked for (shares, or collateral for notional buys).
        fillable: Amount the book could actually absorb.
    """

    kind = "insufficient_liquidity"

    def __init__(self, message: str = "", requested=None, fillable=None):
        super().__init__(message)
        self.requested = requested
        self.fillable = fillable


class SigningError(ClobError):
    """The signing capability rejected or failed to produce a signature."""

    kind = "signing_error"


class MissingCredentials(ClobError):
    """An L2 call was attempted without API key credentials."""

    kind = "missing_credentials"


class MissingSigner(ClobError):
    """An L1 call or order signing was attempted without a signer."""

    kind = "missing_signer"


class TransportError(ClobError):
    """HTTP-level failure from the transport layer."""

    kind = "transport_error"

    def __init__(self, message: str = "", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CircuitOpenError(TransportError):
    """Raised when the circuit breaker is open and requests are blocked."""

    kind = "circuit_open"
