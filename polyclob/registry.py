"""Contract registry — (chain id, risk class) to verifying contract and EIP-712 domain."""

from dataclasses import dataclass

from eth_utils import is_address, to_checksum_address

from .constants import CONTRACTS, ORDER_DOMAIN_NAME, ORDER_DOMAIN_VERSION
from .errors import InvalidContractForChain, UnsupportedChain


@dataclass(frozen=True)
class ContractInfo:
    verifying_contract: str
    domain_name: str
    domain_version: str
    chain_id: int


def get_contract_config(chain_id: int) -> dict:
    """Return all known contract addresses for a chain."""
    try:
        return CONTRACTS[int(chain_id)]
    except (KeyError, TypeError, ValueError):
        raise UnsupportedChain(f"Invalid network: chain ID {chain_id}") from None


def resolve(chain_id: int, neg_risk: bool = False) -> ContractInfo:
    """Resolve the exchange that verifies orders for this chain and risk class."""
    config = get_contract_config(chain_id)
    key = "neg_risk_exchange" if neg_risk else "exchange"
    address = config.get(key)
    if not address or not is_address(address):
        raise InvalidContractForChain(
            f"No valid {key} address configured for chain {chain_id}"
        )
    return ContractInfo(
        verifying_contract=to_checksum_address(address),
        domain_name=ORDER_DOMAIN_NAME,
        domain_version=ORDER_DOMAIN_VERSION,
        chain_id=int(chain_id),
    )
