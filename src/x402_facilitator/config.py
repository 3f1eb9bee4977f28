"""
X402 Facilitator Configuration
Centralized configuration for networks, RPC endpoints and facilitator policy
"""

import os
from dataclasses import dataclass
from typing import Dict

from x402_facilitator.address import ChainFamily
from x402_facilitator.exceptions import ConfigurationError

# Upper bound for the tolerated clock skew between client and facilitator
MAX_CLOCK_SKEW_SECONDS = 30


@dataclass(frozen=True)
class NetworkInfo:
    """Static description of one network"""

    name: str
    family: ChainFamily
    chain_id: int
    rpc_url: str | None = None


class NetworkConfig:
    """Network configuration for chain families, chain IDs and RPC endpoints"""

    NETWORKS: Dict[str, NetworkInfo] = {
        "base-sepolia": NetworkInfo(
            "base-sepolia", ChainFamily.EVM, 84532, "https://sepolia.base.org"
        ),
        "base": NetworkInfo("base", ChainFamily.EVM, 8453, "https://mainnet.base.org"),
        "avalanche-fuji": NetworkInfo(
            "avalanche-fuji",
            ChainFamily.EVM,
            43113,
            "https://api.avax-test.network/ext/bc/C/rpc",
        ),
        "avalanche": NetworkInfo(
            "avalanche", ChainFamily.EVM, 43114, "https://api.avax.network/ext/bc/C/rpc"
        ),
        # TRON chain IDs as used in the TIP-712 domain
        "tron-nile": NetworkInfo("tron-nile", ChainFamily.TRON, 3448148188),  # 0xcd8690dc
        "tron-shasta": NetworkInfo("tron-shasta", ChainFamily.TRON, 2494104990),  # 0x94a9059e
        "tron": NetworkInfo("tron", ChainFamily.TRON, 728126428),  # 0x2b6653dc
    }

    # tronpy network names
    TRON_NETWORK_NAMES: Dict[str, str] = {
        "tron-nile": "nile",
        "tron-shasta": "shasta",
        "tron": "mainnet",
    }

    @classmethod
    def get(cls, network: str) -> NetworkInfo | None:
        return cls.NETWORKS.get(network)

    @classmethod
    def require(cls, network: str) -> NetworkInfo:
        """Get network info

        Raises:
            ConfigurationError: If network is not known
        """
        info = cls.NETWORKS.get(network)
        if info is None:
            raise ConfigurationError(f"Unknown network: {network}")
        return info

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return cls.require(network).chain_id

    @classmethod
    def get_family(cls, network: str) -> ChainFamily:
        return cls.require(network).family

    @classmethod
    def get_rpc_url(cls, network: str) -> str | None:
        """Get RPC URL for a network.

        ``RPC_URL_<NETWORK>`` (upper-cased, dashes as underscores) overrides the
        built-in default, e.g. ``RPC_URL_AVALANCHE_FUJI``.
        """
        env_key = "RPC_URL_" + network.upper().replace("-", "_")
        override = os.getenv(env_key)
        if override:
            return override
        info = cls.NETWORKS.get(network)
        return info.rpc_url if info else None

    @classmethod
    def get_tron_network_name(cls, network: str) -> str:
        name = cls.TRON_NETWORK_NAMES.get(network)
        if name is None:
            raise ConfigurationError(f"Not a TRON network: {network}")
        return name


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str] | None:
    value = os.getenv(name)
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class FacilitatorSettings:
    """Process-level facilitator settings"""

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    evm_private_key: str | None = None
    tron_private_key: str | None = None
    networks: list[str] | None = None
    check_funds: bool = True
    clock_skew_seconds: int = 0
    settle_wait_seconds: float = 60.0
    receipt_timeout_seconds: float = 30.0
    settlement_retention_seconds: float = 3600.0
    settle_max_attempts: int = 3
    settle_backoff_seconds: float = 0.5

    def __post_init__(self) -> None:
        if not 0 <= self.clock_skew_seconds <= MAX_CLOCK_SKEW_SECONDS:
            raise ConfigurationError(
                f"clock_skew_seconds must be within [0, {MAX_CLOCK_SKEW_SECONDS}], "
                f"got {self.clock_skew_seconds}"
            )
        if self.settle_max_attempts < 1:
            raise ConfigurationError("settle_max_attempts must be at least 1")
        if self.networks is not None:
            unknown = [n for n in self.networks if n not in NetworkConfig.NETWORKS]
            if unknown:
                raise ConfigurationError(f"Unknown networks in configuration: {unknown}")

    @classmethod
    def from_env(cls) -> "FacilitatorSettings":
        """Build settings from environment variables"""
        try:
            return cls(
                host=os.getenv("HOST", "0.0.0.0"),
                port=int(os.getenv("PORT", "8080")),
                log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
                evm_private_key=os.getenv("EVM_PRIVATE_KEY") or None,
                tron_private_key=os.getenv("TRON_PRIVATE_KEY") or None,
                networks=_env_list("NETWORKS"),
                check_funds=_env_bool("CHECK_FUNDS", True),
                clock_skew_seconds=int(os.getenv("CLOCK_SKEW_SECONDS", "0")),
                settle_wait_seconds=float(os.getenv("SETTLE_WAIT_SECONDS", "60")),
                receipt_timeout_seconds=float(os.getenv("RECEIPT_TIMEOUT_SECONDS", "30")),
                settlement_retention_seconds=float(
                    os.getenv("SETTLEMENT_RETENTION_SECONDS", "3600")
                ),
                settle_max_attempts=int(os.getenv("SETTLE_MAX_ATTEMPTS", "3")),
                settle_backoff_seconds=float(os.getenv("SETTLE_BACKOFF_SECONDS", "0.5")),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid facilitator configuration: {e}") from e

    def enabled_networks(self) -> list[str]:
        """Networks served by this process: those with a configured signer key"""
        candidates = self.networks or list(NetworkConfig.NETWORKS)
        enabled = []
        for network in candidates:
            family = NetworkConfig.get_family(network)
            if family == ChainFamily.EVM and self.evm_private_key:
                enabled.append(network)
            elif family == ChainFamily.TRON and self.tron_private_key:
                enabled.append(network)
        return enabled
