"""
Chain-agnostic account addresses
"""

from dataclasses import dataclass
from enum import Enum

from x402_facilitator.address.converter import (
    ADDRESS_LENGTH,
    AddressConverter,
    EvmAddressConverter,
    TronAddressConverter,
)
from x402_facilitator.exceptions import InvalidAddressError


class ChainFamily(str, Enum):
    """Address family of a network"""

    EVM = "evm"
    TRON = "tron"


_CONVERTERS: dict[ChainFamily, AddressConverter] = {
    ChainFamily.EVM: EvmAddressConverter(),
    ChainFamily.TRON: TronAddressConverter(),
}


def get_converter(family: ChainFamily) -> AddressConverter:
    return _CONVERTERS[family]


@dataclass(frozen=True)
class AddressRef:
    """An account of a given chain family, stored as its canonical 20 bytes.

    Two references are equal iff family and bytes are equal, so hex case,
    EIP-55 checksums and TRON encodings never affect comparisons.
    """

    family: ChainFamily
    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != ADDRESS_LENGTH:
            raise InvalidAddressError(self.raw.hex(), "address must be exactly 20 bytes")

    @classmethod
    def parse(cls, address: str, family: ChainFamily) -> "AddressRef":
        """Canonicalize *address* for *family*.

        Raises:
            InvalidAddressError: If the address fails format validation
        """
        try:
            raw = get_converter(family).parse(address)
        except ValueError as e:
            raise InvalidAddressError(str(address), str(e)) from e
        return cls(family, raw)

    @classmethod
    def from_evm_hex(cls, address: str, family: ChainFamily) -> "AddressRef":
        """Build a reference of *family* from a 0x-hex account (e.g. a recovered signer)."""
        try:
            raw = get_converter(ChainFamily.EVM).parse(address)
        except ValueError as e:
            raise InvalidAddressError(str(address), str(e)) from e
        return cls(family, raw)

    def to_evm_format(self) -> str:
        return get_converter(self.family).to_evm_format(self.raw)

    def __str__(self) -> str:
        return get_converter(self.family).render(self.raw)


__all__ = [
    "AddressConverter",
    "AddressRef",
    "ChainFamily",
    "EvmAddressConverter",
    "TronAddressConverter",
    "get_converter",
]
