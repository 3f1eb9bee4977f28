"""
Supported (scheme, network) catalog
"""

from dataclasses import dataclass
from typing import Iterable

from x402_facilitator.types import SupportedKind, SupportedResponse

# The EIP-3009 transferWithAuthorization scheme, under its x402 name and the
# name advertised by the original facilitator.
SCHEME_EXACT = "exact"
SCHEME_ERC3009 = "x402/erc-3009"
DEFAULT_SCHEMES = (SCHEME_EXACT, SCHEME_ERC3009)


@dataclass(frozen=True)
class SupportedEntry:
    """A (scheme, network) pair accepted by the facilitator"""

    scheme: str
    network: str


class SupportedRegistry:
    """Read-only catalog of supported (scheme, network) pairs.

    Built once at startup; its contents never change for the life of the
    process.
    """

    def __init__(self, entries: Iterable[SupportedEntry]) -> None:
        unique: dict[SupportedEntry, None] = dict.fromkeys(entries)
        self._entries: tuple[SupportedEntry, ...] = tuple(unique)
        self._index = frozenset(self._entries)
        self._networks = frozenset(entry.network for entry in self._entries)

    @classmethod
    def for_networks(
        cls,
        networks: Iterable[str],
        schemes: Iterable[str] = DEFAULT_SCHEMES,
    ) -> "SupportedRegistry":
        """Registry accepting every scheme in *schemes* on every network in *networks*"""
        scheme_list = list(schemes)
        return cls(
            SupportedEntry(scheme, network) for network in networks for scheme in scheme_list
        )

    def list_supported(self) -> list[SupportedEntry]:
        return list(self._entries)

    def is_supported(self, scheme: str, network: str) -> bool:
        return SupportedEntry(scheme, network) in self._index

    def supports_network(self, network: str) -> bool:
        return network in self._networks

    def networks(self) -> list[str]:
        return sorted(self._networks)

    def to_response(self) -> SupportedResponse:
        return SupportedResponse(
            kinds=[
                SupportedKind(scheme=entry.scheme, network=entry.network)
                for entry in self._entries
            ]
        )

    def __len__(self) -> int:
        return len(self._entries)
