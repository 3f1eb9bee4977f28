"""
Address converter interface and implementations
"""

from abc import ABC, abstractmethod

import base58
from eth_utils import is_hex_address, to_checksum_address

ADDRESS_LENGTH = 20
TRON_ADDRESS_PREFIX = b"\x41"


class AddressConverter(ABC):
    """Parses and renders the 20-byte accounts of one chain family"""

    @abstractmethod
    def parse(self, address: str) -> bytes:
        """Parse *address* into its canonical 20 raw bytes.

        Raises:
            ValueError: If the address is malformed
        """
        pass

    @abstractmethod
    def render(self, raw: bytes) -> str:
        """Render canonical bytes in the family's display format"""
        pass

    def to_evm_format(self, raw: bytes) -> str:
        """Render as 0x-hex with EIP-55 checksum (the format used in EIP-712 signing)"""
        return to_checksum_address(raw)


class EvmAddressConverter(AddressConverter):
    """EVM address converter (case-insensitive, checksum-agnostic)"""

    def parse(self, address: str) -> bytes:
        if not isinstance(address, str) or not is_hex_address(address):
            raise ValueError(f"not a 20-byte hex address: {address!r}")
        return bytes.fromhex(address[2:] if address.lower().startswith("0x") else address)

    def render(self, raw: bytes) -> str:
        return to_checksum_address(raw)


class TronAddressConverter(AddressConverter):
    """TRON address converter.

    Accepts Base58Check (T...), TRON hex (41...) and EVM hex (0x...) input.
    """

    def parse(self, address: str) -> bytes:
        if not isinstance(address, str) or not address:
            raise ValueError(f"empty TRON address: {address!r}")

        if address.startswith("0x") and len(address) == 42:
            return bytes.fromhex(address[2:])

        if address.startswith("41") and len(address) == 42:
            return bytes.fromhex(address[2:])

        try:
            decoded = base58.b58decode_check(address)
        except ValueError as e:
            raise ValueError(f"invalid Base58Check address {address!r}: {e}") from e

        if len(decoded) != ADDRESS_LENGTH + 1 or decoded[:1] != TRON_ADDRESS_PREFIX:
            raise ValueError(f"not a TRON account address: {address!r}")
        return decoded[1:]

    def render(self, raw: bytes) -> str:
        return base58.b58encode_check(TRON_ADDRESS_PREFIX + raw).decode()
