"""CLOB authentication — L1 wallet-signature headers + L2 HMAC request signing."""

import base64
import hashlib
import hmac
import time

from eth_account.messages import encode_typed_data
from eth_utils import keccak

from .constants import (
    AUTH_DOMAIN_NAME,
    AUTH_DOMAIN_VERSION,
    AUTH_MESSAGE,
    AUTH_TYPES,
    POLY_ADDRESS,
    POLY_API_KEY,
    POLY_BUILDER_API_KEY,
    POLY_BUILDER_PASSPHRASE,
    POLY_BUILDER_SIGNATURE,
    POLY_BUILDER_TIMESTAMP,
    POLY_NONCE,
    POLY_PASSPHRASE,
    POLY_SIGNATURE,
    POLY_TIMESTAMP,
)
from .errors import MissingCredentials, MissingSigner, SigningError
from .models import ApiKeyCreds, BuilderConfig
from .signer import sign_digest


def _now_seconds() -> int:
    return int(time.time())


def _now_millis() -> int:
    return int(time.time() * 1000)


def l1_auth_digest(address: str, chain_id: int, timestamp: int | str, nonce: int = 0) -> bytes:
    """EIP-712 digest of the ClobAuth attestation for ``address``."""
    signable = encode_typed_data(
        domain_data={
            "name": AUTH_DOMAIN_NAME,
            "version": AUTH_DOMAIN_VERSION,
            "chainId": chain_id,
        },
        message_types={"ClobAuth": AUTH_TYPES["ClobAuth"]},
        message_data={
            "address": address,
            "timestamp": str(timestamp),
            "nonce": nonce,
            "message": AUTH_MESSAGE,
        },
    )
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


async def build_l1_headers(
    signer, chain_id: int, nonce: int = 0, timestamp: int | None = None
) -> dict:
    """Sign a ClobAuth message and return the L1 headers for key management calls."""
    if signer is None:
        raise MissingSigner("A signer is needed to interact with this endpoint")
    ts = str(timestamp if timestamp is not None else _now_seconds())
    digest = l1_auth_digest(signer.address, chain_id, ts, nonce)
    signature = await sign_digest(signer, digest)
    return {
        POLY_ADDRESS: signer.address,
        POLY_SIGNATURE: "0x" + signature.hex(),
        POLY_TIMESTAMP: ts,
        POLY_NONCE: str(nonce),
    }


def build_hmac_signature(
    secret: str, timestamp: str, method: str, path: str, body: str = ""
) -> str:
    """Compute HMAC-SHA256 signature for L2 request authentication.

    The message is timestamp + method + path + body, with an empty string
    standing in for a missing body.
    """
    message = str(timestamp) + method + path + (body or "")
    try:
        key = base64.urlsafe_b64decode(secret)
    except (ValueError, TypeError) as exc:
        raise SigningError(f"API secret is not valid base64: {exc}") from exc
    sig = hmac.new(key, message.encode(), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(sig).decode()


def build_l2_headers(
    creds: ApiKeyCreds | None,
    address: str,
    method: str,
    path: str,
    body: str = "",
    timestamp: int | None = None,
) -> dict:
    """Build the full set of L2 authentication headers for a CLOB request.

    ``timestamp`` is unix milliseconds; the current time is used when omitted.
    """
    if creds is None:
        raise MissingCredentials("API credentials are needed to interact with this endpoint")
    ts = str(timestamp if timestamp is not None else _now_millis())
    sig = build_hmac_signature(creds.secret, ts, method, path, body)
    return {
        POLY_ADDRESS: address,
        POLY_SIGNATURE: sig,
        POLY_TIMESTAMP: ts,
        POLY_API_KEY: creds.key,
        POLY_PASSPHRASE: creds.passphrase,
    }


def build_builder_headers(
    builder: BuilderConfig,
    method: str,
    path: str,
    body: str = "",
    timestamp: int | None = None,
) -> dict:
    """Headers attributing a request to a builder program."""
    ts = str(timestamp if timestamp is not None else _now_millis())
    return {
        POLY_BUILDER_API_KEY: builder.key,
        POLY_BUILDER_PASSPHRASE: builder.passphrase,
        POLY_BUILDER_SIGNATURE: build_hmac_signature(builder.secret, ts, method, path, body),
        POLY_BUILDER_TIMESTAMP: ts,
    }


def inject_builder_headers(l2_headers: dict, builder_headers: dict) -> dict:
    return {**l2_headers, **builder_headers}
