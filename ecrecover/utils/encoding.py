"""
Byte encoding utilities.

This module provides the small set of encoding helpers shared by the key,
signature and message code:

- Hex/bytes conversions (used for key fingerprints and ``from_hex`` helpers)
- Fixed-width big-endian integer encoding (every scalar and coordinate on
  secp256k1 is serialized as exactly 32 big-endian bytes)
- Bitcoin's compact-size integer encoding (used to length-prefix messages
  before they are hashed for signing)

Big-endian is the byte order of SEC 1 point encodings and of the ``r || s``
signature layout; compact-size integers are little-endian.
"""


# ---------------------------------------------------------------------------
# Hex / bytes conversions
# ---------------------------------------------------------------------------

def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to a lowercase hex string.

    Example:
        >>> bytes_to_hex(b'\\x04\\xab')
        '04ab'
    """
    return data.hex()


def hex_to_bytes(hex_string: str) -> bytes:
    """
    Convert a hex string to bytes.

    Accepts an optional ``0x`` prefix and surrounding whitespace, which is
    how public keys are usually pasted from block explorers and logs.

    Args:
        hex_string: Hexadecimal string.

    Returns:
        The decoded bytes.

    Raises:
        ValueError: If the string is not valid hex.
    """
    hex_string = hex_string.strip()
    if hex_string.startswith('0x') or hex_string.startswith('0X'):
        hex_string = hex_string[2:]
    return bytes.fromhex(hex_string)


# ---------------------------------------------------------------------------
# Big-endian integers
# ---------------------------------------------------------------------------

def int_to_big_endian(value: int, length: int) -> bytes:
    """
    Encode a non-negative integer as exactly ``length`` big-endian bytes.

    Shorter values are left-padded with zeros, so a scalar such as ``r``
    always occupies its full 32-byte slot in a signature.

    Args:
        value: Non-negative integer to encode.
        length: Number of bytes in the output.

    Returns:
        Big-endian encoded bytes.

    Raises:
        ValueError: If the value is negative or does not fit in ``length`` bytes.

    Example:
        >>> int_to_big_endian(256, 4)
        b'\\x00\\x00\\x01\\x00'
    """
    if value < 0:
        raise ValueError(f"Cannot encode negative integer {value}")
    if value.bit_length() > 8 * length:
        raise ValueError(
            f"Integer of {value.bit_length()} bits does not fit in {length} bytes"
        )
    return value.to_bytes(length, byteorder='big')


def big_endian_to_int(data: bytes) -> int:
    """Decode big-endian bytes as an unsigned integer."""
    return int.from_bytes(data, byteorder='big')


def int_to_little_endian(value: int, length: int) -> bytes:
    """Encode an integer as little-endian bytes of the specified length."""
    return value.to_bytes(length, byteorder='little')


# ---------------------------------------------------------------------------
# Compact-size integers
# ---------------------------------------------------------------------------

def encode_compact_size(value: int) -> bytes:
    """
    Encode an integer using Bitcoin's compact-size (varint) format.

    Encoding rules:
    - 0x00-0xfc:          1 byte  (the value itself)
    - 0xfd-0xffff:        3 bytes (0xfd prefix + 2-byte little-endian)
    - 0x10000-0xffffffff: 5 bytes (0xfe prefix + 4-byte little-endian)
    - Larger:             9 bytes (0xff prefix + 8-byte little-endian)

    Args:
        value: Non-negative integer to encode.

    Returns:
        Compact-size encoded bytes.

    Raises:
        ValueError: If value is negative.

    Example:
        >>> encode_compact_size(11).hex()
        '0b'
        >>> encode_compact_size(253).hex()
        'fdfd00'
    """
    if value < 0:
        raise ValueError(f"Compact size must be non-negative, got {value}")

    if value < 0xfd:
        return bytes([value])
    elif value <= 0xffff:
        return b'\xfd' + int_to_little_endian(value, 2)
    elif value <= 0xffffffff:
        return b'\xfe' + int_to_little_endian(value, 4)
    else:
        return b'\xff' + int_to_little_endian(value, 8)
