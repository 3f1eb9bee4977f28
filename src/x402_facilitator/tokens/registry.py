"""
Token registry - EIP-712 domain metadata of known EIP-3009 assets
"""

from dataclasses import dataclass

from x402_facilitator.address import AddressRef
from x402_facilitator.config import NetworkConfig
from x402_facilitator.exceptions import InvalidAddressError


@dataclass
class TokenInfo:
    """Token information"""

    address: str
    decimals: int
    name: str
    symbol: str
    version: str = "2"


class TokenRegistry:
    """Token registry"""

    _tokens: dict[str, dict[str, TokenInfo]] = {
        "base-sepolia": {
            "USDC": TokenInfo(
                address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
                decimals=6,
                name="USDC",
                symbol="USDC",
            ),
        },
        "base": {
            "USDC": TokenInfo(
                address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
            ),
        },
        "avalanche-fuji": {
            "USDC": TokenInfo(
                address="0x5425890298aed601595a70AB815c96711a31Bc65",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
            ),
        },
        "avalanche": {
            "USDC": TokenInfo(
                address="0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
            ),
        },
        "tron-nile": {
            "USDT": TokenInfo(
                address="TXYZopYRdj2D9XRtbG411XZZ3kM5VkAeBf",
                decimals=6,
                name="Tether USD",
                symbol="USDT",
                version="1",
            ),
        },
        "tron": {
            "USDT": TokenInfo(
                address="TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t",
                decimals=6,
                name="Tether USD",
                symbol="USDT",
                version="1",
            ),
        },
    }

    @classmethod
    def find_by_address(cls, network: str, address: AddressRef) -> TokenInfo | None:
        """Find token information by canonical address"""
        info = NetworkConfig.get(network)
        if info is None:
            return None
        for token in cls._tokens.get(network, {}).values():
            try:
                if AddressRef.parse(token.address, info.family) == address:
                    return token
            except InvalidAddressError:
                continue
        return None

