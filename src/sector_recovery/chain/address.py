"""Filecoin address parsing and binary encoding for provider identities."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from enum import IntEnum

from sector_recovery.errors import InvalidIdentity

MAINNET_PREFIX = "f"
TESTNET_PREFIX = "t"
NETWORK_PREFIXES: tuple[str, ...] = (MAINNET_PREFIX, TESTNET_PREFIX)

CHECKSUM_LENGTH = 4
PAYLOAD_HASH_LENGTH = 20
BLS_PUBLIC_KEY_LENGTH = 48
MAX_SUBADDRESS_LENGTH = 54
MAX_ACTOR_ID = (1 << 63) - 1
MAX_ADDRESS_STRING_LENGTH = 2 + 84

_BASE32_ALPHABET = set("abcdefghijklmnopqrstuvwxyz234567")


class AddressProtocol(IntEnum):
    """Address protocol indicator, the digit after the network prefix."""

    ID = 0
    SECP256K1 = 1
    ACTOR = 2
    BLS = 3
    DELEGATED = 4


_FIXED_PAYLOAD_LENGTHS: dict[AddressProtocol, int] = {
    AddressProtocol.SECP256K1: PAYLOAD_HASH_LENGTH,
    AddressProtocol.ACTOR: PAYLOAD_HASH_LENGTH,
    AddressProtocol.BLS: BLS_PUBLIC_KEY_LENGTH,
}


def encode_uvarint(value: int) -> bytes:
    """Encode a non-negative integer as an unsigned LEB128 varint."""

    if value < 0:
        raise ValueError("uvarint value must be non-negative")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_uvarint(data: bytes) -> tuple[int, int]:
    """Decode an unsigned LEB128 varint, returning ``(value, bytes_consumed)``."""

    value = 0
    shift = 0
    for index, byte in enumerate(data):
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, index + 1
        shift += 7
        if shift > 63:
            break
    raise ValueError("malformed uvarint")


def address_checksum(data: bytes) -> bytes:
    """Return the 4-byte blake2b checksum used by Filecoin address strings."""

    return hashlib.blake2b(data, digest_size=CHECKSUM_LENGTH).digest()


def _b32encode(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").rstrip("=").lower()


def _b32decode(text: str) -> bytes:
    if not text or not set(text) <= _BASE32_ALPHABET:
        raise ValueError("invalid base32 payload")
    padded = text.upper() + "=" * (-len(text) % 8)
    return base64.b32decode(padded)


def cbor_byte_string(data: bytes) -> bytes:
    """Wrap bytes in a CBOR major-type-2 (byte string) header."""

    length = len(data)
    if length < 24:
        header = bytes([0x40 | length])
    elif length < 0x100:
        header = bytes([0x58, length])
    elif length < 0x10000:
        header = bytes([0x59]) + length.to_bytes(2, "big")
    else:
        header = bytes([0x5A]) + length.to_bytes(4, "big")
    return header + data


@dataclass(frozen=True, slots=True)
class ProviderIdentity:
    """Validated storage-provider chain address.

    ``payload`` holds the protocol-specific bytes: the uvarint actor id for ID
    addresses, the hash or public key for key/actor addresses, and
    ``uvarint(namespace) + subaddress`` for delegated addresses.
    """

    network: str
    protocol: AddressProtocol
    payload: bytes

    def to_bytes(self) -> bytes:
        """Binary address form: protocol byte followed by the payload."""

        return bytes([int(self.protocol)]) + self.payload

    def to_cbor(self) -> bytes:
        """CBOR encoding of the binary address, used as randomness entropy."""

        return cbor_byte_string(self.to_bytes())

    @property
    def actor_id(self) -> int | None:
        if self.protocol != AddressProtocol.ID:
            return None
        value, _ = decode_uvarint(self.payload)
        return value

    def __str__(self) -> str:
        prefix = f"{self.network}{int(self.protocol)}"
        if self.protocol == AddressProtocol.ID:
            return f"{prefix}{self.actor_id}"
        if self.protocol == AddressProtocol.DELEGATED:
            namespace, consumed = decode_uvarint(self.payload)
            subaddress = self.payload[consumed:]
            checksum = address_checksum(self.to_bytes())
            return f"{prefix}{namespace}f{_b32encode(subaddress + checksum)}"
        checksum = address_checksum(self.to_bytes())
        return f"{prefix}{_b32encode(self.payload + checksum)}"


def _parse_decimal(raw: str, label: str) -> int:
    if not raw or not raw.isascii() or not raw.isdigit():
        raise InvalidIdentity(f"{label} must be a decimal number, got {raw!r}")
    if len(raw) > 1 and raw[0] == "0":
        raise InvalidIdentity(f"{label} {raw!r} has leading zeros")
    value = int(raw)
    if value > MAX_ACTOR_ID:
        raise InvalidIdentity(f"{label} {raw} exceeds the maximum actor id")
    return value


def _split_checksum(protocol: AddressProtocol, encoded: str, payload_prefix: bytes = b"") -> bytes:
    try:
        decoded = _b32decode(encoded)
    except ValueError as exc:
        raise InvalidIdentity(f"invalid base32 payload {encoded!r}") from exc
    if len(decoded) <= CHECKSUM_LENGTH:
        raise InvalidIdentity("address payload is too short")
    body, checksum = decoded[:-CHECKSUM_LENGTH], decoded[-CHECKSUM_LENGTH:]
    if address_checksum(bytes([int(protocol)]) + payload_prefix + body) != checksum:
        raise InvalidIdentity("address checksum mismatch")
    # Reject non-canonical encodings that decode to the same bytes.
    if _b32encode(decoded) != encoded:
        raise InvalidIdentity("address payload is not canonically encoded")
    return body


def resolve_provider(text: str) -> ProviderIdentity:
    """Parse a human-readable provider address such as ``f01000``.

    Raises ``InvalidIdentity`` when the string does not follow the address
    grammar or its checksum does not match. No chain queries are made.
    """

    raw = text or ""
    if len(raw) < 3 or len(raw) > MAX_ADDRESS_STRING_LENGTH:
        raise InvalidIdentity(f"invalid address length: {text!r}")

    network = raw[0]
    if network not in NETWORK_PREFIXES:
        raise InvalidIdentity(f"unknown address network {network!r} in {text!r}")

    try:
        protocol = AddressProtocol(int(raw[1]))
    except ValueError as exc:
        raise InvalidIdentity(f"unknown address protocol {raw[1]!r} in {text!r}") from exc

    rest = raw[2:]
    if protocol == AddressProtocol.ID:
        actor_id = _parse_decimal(rest, "actor id")
        return ProviderIdentity(network=network, protocol=protocol, payload=encode_uvarint(actor_id))

    if protocol == AddressProtocol.DELEGATED:
        namespace_text, separator, encoded = rest.partition("f")
        if not separator:
            raise InvalidIdentity(f"delegated address {text!r} is missing its namespace separator")
        namespace = _parse_decimal(namespace_text, "delegated namespace")
        prefix = encode_uvarint(namespace)
        subaddress = _split_checksum(protocol, encoded, payload_prefix=prefix)
        if len(subaddress) > MAX_SUBADDRESS_LENGTH:
            raise InvalidIdentity("delegated subaddress is too long")
        return ProviderIdentity(network=network, protocol=protocol, payload=prefix + subaddress)

    payload = _split_checksum(protocol, rest)
    expected = _FIXED_PAYLOAD_LENGTHS[protocol]
    if len(payload) != expected:
        raise InvalidIdentity(
            f"{protocol.name.lower()} address payload must be {expected} bytes, got {len(payload)}"
        )
    return ProviderIdentity(network=network, protocol=protocol, payload=payload)
