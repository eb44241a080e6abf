"""
Message Digests
===============

ECDSA signs a fixed-size digest, never the message itself. This module
provides the digests used by the message-signing helpers:

- **SHA-256**: the 32-byte hash most secp256k1 signatures are made over.
- **double SHA-256**: SHA-256 applied twice, Bitcoin's standard digest.
- **signed-message digest**: double SHA-256 over the message prefixed with
  the ``"\\x18Bitcoin Signed Message:\\n"`` magic and a compact-size length.
  The magic makes it impossible to trick a signer into signing something
  that is also a valid transaction digest.

The signing, verification and recovery code itself accepts any digest and
does not depend on this module.
"""

import hashlib
from typing import Union

from ecrecover.utils.encoding import encode_compact_size

MESSAGE_MAGIC = b"\x18Bitcoin Signed Message:\n"


def sha256(data: bytes) -> bytes:
    """
    Compute the SHA-256 hash of the input data.

    Example:
        >>> sha256(b"hello").hex()
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(data).digest()


def double_sha256(data: bytes) -> bytes:
    """
    Compute the double SHA-256 hash: SHA-256(SHA-256(data)).

    Example:
        >>> double_sha256(b"hello").hex()
        '9595c9df90075148eb06860365df33584b75bff782a510c6cd4883a419833d50'
    """
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def message_hash(message: Union[str, bytes]) -> bytes:
    """
    Compute the digest signed for a text message.

    The message is UTF-8 encoded if given as ``str``, prefixed with the
    signed-message magic and its compact-size length, and double-SHA-256
    hashed.

    Args:
        message: The message text or raw bytes.

    Returns:
        The 32-byte digest.
    """
    if isinstance(message, str):
        message = message.encode('utf-8')
    return double_sha256(MESSAGE_MAGIC + encode_compact_size(len(message)) + message)
