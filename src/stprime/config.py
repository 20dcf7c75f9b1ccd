import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from dotenv import load_dotenv

from .constants import (
    DEFAULT_CACHE_KEY_PREFIX,
    DEFAULT_CONFIRMATION_BLOCKS,
    DEFAULT_CONFIRMATION_TIMEOUT,
)

__all__ = [
    "Network",
    "NetworkConfig",
    "NETWORKS",
    "get_network_config",
    "load_network_config",
]


class Network(str, Enum):
    LOCAL = "local"
    UTILITY_TESTNET = "utility-testnet"


@dataclass(frozen=True)
class NetworkConfig:
    name: Network
    chain_id: int
    chain_kind: str
    rpc_url: str
    st_prime_address: str
    gas_price: int
    gas_limit: int
    st_prime_total_supply: str  # in ether units
    cache_key_prefix: str = DEFAULT_CACHE_KEY_PREFIX
    notification_url: Optional[str] = None
    confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT
    confirmation_blocks: int = DEFAULT_CONFIRMATION_BLOCKS
    receipt_lookup_attempts: int = 3


NETWORKS: dict[Network, NetworkConfig] = {
    Network.LOCAL: NetworkConfig(
        name=Network.LOCAL,
        chain_id=2000,
        chain_kind="utility",
        rpc_url="http://127.0.0.1:9546",
        st_prime_address="0x0000000000000000000000000000000000000000",  # set after deployment
        gas_price=0,
        gas_limit=9_000_000,
        st_prime_total_supply="800000000",
    ),
    Network.UTILITY_TESTNET: NetworkConfig(
        name=Network.UTILITY_TESTNET,
        chain_id=1409,
        chain_kind="utility",
        rpc_url="http://127.0.0.1:9546",
        st_prime_address="0x0000000000000000000000000000000000000000",
        gas_price=1_000_000_000,
        gas_limit=9_000_000,
        st_prime_total_supply="800000000",
    ),
}


def get_network_config(
    network: Network,
    rpc_url: Optional[str] = None,
    **overrides: Any,
) -> NetworkConfig:
    cfg = NETWORKS[network]
    if rpc_url:
        overrides["rpc_url"] = rpc_url
    if overrides:
        return replace(cfg, **overrides)
    return cfg


# Environment variable -> (field, parser)
_ENV_FIELDS = {
    "STPRIME_RPC_URL": ("rpc_url", str),
    "STPRIME_CHAIN_ID": ("chain_id", int),
    "STPRIME_CHAIN_KIND": ("chain_kind", str),
    "STPRIME_CONTRACT_ADDRESS": ("st_prime_address", str),
    "STPRIME_GAS_PRICE": ("gas_price", int),
    "STPRIME_GAS_LIMIT": ("gas_limit", int),
    "STPRIME_TOTAL_SUPPLY": ("st_prime_total_supply", str),
    "STPRIME_CACHE_KEY_PREFIX": ("cache_key_prefix", str),
    "STPRIME_NOTIFICATION_URL": ("notification_url", str),
    "STPRIME_CONFIRMATION_TIMEOUT": ("confirmation_timeout", float),
    "STPRIME_CONFIRMATION_BLOCKS": ("confirmation_blocks", int),
    "STPRIME_RECEIPT_LOOKUP_ATTEMPTS": ("receipt_lookup_attempts", int),
}


def load_network_config(env_file: Optional[str] = None) -> NetworkConfig:
    """Build a NetworkConfig from ``STPRIME_*`` environment variables.

    ``STPRIME_NETWORK`` selects the base entry from NETWORKS (default
    ``local``); every other variable overrides a single field.

    Args:
        env_file: Optional path to a .env file loaded before reading

    Returns:
        Network configuration with environment overrides applied

    Raises:
        ValueError: If the network name or a numeric value is invalid
    """
    load_dotenv(env_file)
    network = Network(os.getenv("STPRIME_NETWORK", Network.LOCAL.value))

    overrides: dict[str, Any] = {}
    for var, (field_name, parse) in _ENV_FIELDS.items():
        raw = os.getenv(var)
        if raw is None or raw == "":
            continue
        try:
            overrides[field_name] = parse(raw)
        except ValueError:
            raise ValueError(f"{var} has invalid value: {raw!r}") from None

    return get_network_config(network, **overrides)
