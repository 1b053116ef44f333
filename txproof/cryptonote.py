"""CryptoNote (Monero) address decoding.

Monero uses its own base58 flavour: the payload is cut into 8-byte blocks and
each block is encoded on its own into 11 characters, the last block being
shorter. An address decodes to::

    varint(network prefix) | public spend key (32) | public view key (32) | [payment id (8)] | checksum (4)

The proof service echoes the address back as the hex of the two public keys,
so that is what ``raw_spend_and_view_key`` returns. The keccak checksum is not
verified here.
"""

from typing import List, Tuple

from .models import CryptoNoteError

ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
FULL_BLOCK_SIZE = 8
FULL_ENCODED_BLOCK_SIZE = 11
# index = decoded size, value = encoded size
ENCODED_BLOCK_SIZES: List[int] = [0, 2, 3, 5, 6, 7, 9, 10, 11]

KEY_SIZE = 32
CHECKSUM_SIZE = 4


def _decode_block(chunk: str) -> bytes:
    try:
        size = ENCODED_BLOCK_SIZES.index(len(chunk))
    except ValueError:
        raise CryptoNoteError(f"Invalid block length {len(chunk)}") from None

    num = 0
    for ch in chunk:
        digit = ALPHABET.find(ch)
        if digit < 0:
            raise CryptoNoteError(f"Invalid base58 character {ch!r}")
        num = num * 58 + digit

    if num >= 1 << (8 * size):
        raise CryptoNoteError("Block overflow")
    return num.to_bytes(size, "big")


def decode(encoded: str) -> bytes:
    """Decode a Monero base58 string into raw bytes."""
    if not encoded:
        raise CryptoNoteError("Empty address")

    full_blocks, last_size = divmod(len(encoded), FULL_ENCODED_BLOCK_SIZE)
    out = bytearray()
    for i in range(full_blocks):
        start = i * FULL_ENCODED_BLOCK_SIZE
        out += _decode_block(encoded[start:start + FULL_ENCODED_BLOCK_SIZE])
    if last_size:
        out += _decode_block(encoded[full_blocks * FULL_ENCODED_BLOCK_SIZE:])
    return bytes(out)


def _read_varint(data: bytes) -> Tuple[int, int]:
    """Return (value, bytes consumed)."""
    value = 0
    shift = 0
    for i, byte in enumerate(data):
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, i + 1
        shift += 7
    raise CryptoNoteError("Truncated varint prefix")


def raw_spend_and_view_key(address: str) -> str:
    """Hex of the public spend key followed by the public view key."""
    data = decode(address.strip())
    _prefix, offset = _read_varint(data)
    payload = data[offset:]
    if len(payload) < 2 * KEY_SIZE + CHECKSUM_SIZE:
        raise CryptoNoteError("Address too short")
    return payload[: 2 * KEY_SIZE].hex()
