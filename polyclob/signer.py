"""Signing capability — a local key by default, anything with the same shape otherwise.

An injectable signer exposes ``address`` and ``async sign_hash(digest) -> bytes``
returning a 65-byte r || s || v signature. Hardware or remote signers can
implement the same two members and may suspend while waiting on the wallet.
"""

from eth_account import Account
from eth_keys import keys

from .errors import SigningError


class LocalSigner:
    """Signs digests with an in-process private key.

    Args:
        private_key: Ethereum private key (hex string with 0x prefix).
    """

    def __init__(self, private_key: str):
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as exc:
            raise SigningError(f"Invalid private key: {exc}") from exc
        self.address = self._account.address

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"

    async def sign_hash(self, digest: bytes) -> bytes:
        signed = self._account.unsafe_sign_hash(digest)
        return bytes(signed.signature)


def recover_signer(digest: bytes, signature: bytes | str) -> str:
    """Recover the address that produced ``signature`` over ``digest``.

    Accepts v as 27/28 (Ethereum convention) or 0/1.
    """
    if isinstance(signature, str):
        signature = bytes.fromhex(signature.removeprefix("0x"))
    if len(signature) != 65:
        raise ValueError(f"Expected a 65-byte signature, got {len(signature)}")
    v = signature[64]
    if v >= 27:
        v -= 27
    sig = keys.Signature(signature_bytes=signature[:64] + bytes([v]))
    return sig.recover_public_key_from_msg_hash(digest).to_checksum_address()


async def sign_digest(signer, digest: bytes) -> bytes:
    """Ask ``signer`` for a signature, normalising failures to SigningError.

    Cancellation is not caught: a cancelled wallet prompt aborts the call.
    """
    if signer is None:
        raise SigningError("No signer configured")
    try:
        signature = await signer.sign_hash(digest)
    except SigningError:
        raise
    except Exception as exc:
        raise SigningError(f"Signer rejected request: {exc}") from exc
    if isinstance(signature, str):
        try:
            signature = bytes.fromhex(signature.removeprefix("0x"))
        except ValueError as exc:
            raise SigningError(f"Signer returned non-hex signature: {exc}") from exc
    if not signature or len(signature) != 65:
        raise SigningError(f"Signer returned a malformed signature ({len(signature or b'')} bytes)")
    return bytes(signature)
