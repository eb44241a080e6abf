"""
secp256k1 Key Management
========================

This module holds the key types used by the signing and recovery code:

- **Private keys**: 256-bit random numbers ``d`` in ``[1, n-1]``, where n is
  the order of the secp256k1 group. Whoever knows ``d`` can sign on behalf
  of the key, so it must be generated from a cryptographically secure random
  source and never shared.

- **Public keys**: curve points ``Q = d * G``. Computing Q from d is cheap;
  computing d from Q is the elliptic-curve discrete logarithm problem, which
  is what makes it safe to publish Q.

- **Key pairs**: a matched private and public key.

Serialization
-------------
Only raw byte formats are supported:

- Private key: 32-byte big-endian scalar.
- Public key: SEC 1 uncompressed ``0x04 || x || y`` (65 bytes) or compressed
  ``0x02/0x03 || x`` (33 bytes).

Secret Handling
---------------
Python cannot reliably wipe memory, but a :class:`PrivateKey` can at least
drop its scalar when it is no longer needed, either explicitly with
:meth:`PrivateKey.clear` or with a ``with`` block::

    with PrivateKey.generate() as key:
        envelope = key.sign_recoverable(digest)
    # the scalar is gone here; further signing raises ValueError
"""

import logging
from typing import Callable, Optional, Union

from ecdsa.util import randrange

from ecrecover.utils.encoding import big_endian_to_int, bytes_to_hex, hex_to_bytes, int_to_big_endian

from .curve import SECP256K1, Point
from .signing import Signature, sign, verify_signature

logger = logging.getLogger(__name__)


# =============================================================================
# PublicKey Class
# =============================================================================

class PublicKey:
    """
    A secp256k1 public key: a curve point other than infinity.

    Public keys can be serialized in two formats:
    - **Uncompressed** (65 bytes): 0x04 || x (32 bytes) || y (32 bytes)
    - **Compressed** (33 bytes): (0x02 if y is even, 0x03 if y is odd) || x (32 bytes)
    """

    def __init__(self, point: Point):
        """
        Wrap a curve point.

        Raises:
            ValueError: If the point is the point at infinity.
        """
        if point.is_infinity:
            raise ValueError("The point at infinity is not a valid public key")
        self._point = point

    @property
    def point(self) -> Point:
        return self._point

    def verify(self, digest: bytes, signature: Union[Signature, bytes]) -> bool:
        """
        Verify an ECDSA signature over a message digest.

        Args:
            digest: The message hash that was signed.
            signature: A :class:`Signature` or its 64-byte ``r || s`` encoding.

        Returns:
            True if the signature is valid for this key, False otherwise.
        """
        return verify_signature(digest, self._point, signature)

    def to_bytes(self, compressed: bool = True) -> bytes:
        """
        Serialize the public key to bytes.

        Args:
            compressed: If True (default), return the 33-byte compressed format.
                       If False, return the 65-byte uncompressed format.
        """
        return self._point.encode(compressed=compressed)

    def to_hex(self, compressed: bool = True) -> str:
        return bytes_to_hex(self.to_bytes(compressed))

    @classmethod
    def from_bytes(cls, data: bytes) -> 'PublicKey':
        """
        Deserialize a public key from compressed or uncompressed bytes.

        Handles three formats:
        - 65 bytes starting with 0x04: uncompressed
        - 33 bytes starting with 0x02: compressed (even y)
        - 33 bytes starting with 0x03: compressed (odd y)

        For compressed keys, the y coordinate is recovered from the curve
        equation y^2 = x^3 + 7 (mod p).

        Raises:
            PointDecodeError: If the data is not a valid point encoding.
        """
        return cls(Point.decode(data))

    @classmethod
    def from_hex(cls, hex_string: str) -> 'PublicKey':
        return cls.from_bytes(hex_to_bytes(hex_string))

    def __repr__(self) -> str:
        return f"PublicKey({self.to_hex(compressed=True)})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._point == other._point

    def __hash__(self) -> int:
        return hash(self._point)


# =============================================================================
# PrivateKey Class
# =============================================================================

class PrivateKey:
    """
    A secp256k1 private key: a scalar ``d`` in ``[1, n-1]``.

    Usable as a context manager; leaving the ``with`` block clears the
    scalar.
    """

    def __init__(self, key_bytes: bytes = None, entropy: Optional[Callable[[int], bytes]] = None):
        """
        Create a PrivateKey from raw bytes or generate a new random one.

        Args:
            key_bytes: Optional 32-byte big-endian private key. If None, a new
                      random key is drawn from ``entropy``.
            entropy: Random source with the ``os.urandom`` signature, used only
                     when generating. Defaults to ``os.urandom``.

        Raises:
            ValueError: If key_bytes is not exactly 32 bytes or encodes a
                scalar outside ``[1, n-1]``.
        """
        if key_bytes is not None:
            if len(key_bytes) != SECP256K1.byte_length:
                raise ValueError(
                    f"Private key must be exactly {SECP256K1.byte_length} bytes, "
                    f"got {len(key_bytes)}"
                )
            secret = big_endian_to_int(key_bytes)
            if not 0 < secret < SECP256K1.n:
                raise ValueError("Private key scalar is outside [1, n-1]")
        else:
            secret = randrange(SECP256K1.n, entropy)
        self._secret = secret
        self._public_key = None

    @classmethod
    def from_int(cls, secret: int) -> 'PrivateKey':
        """
        Create a PrivateKey from an integer scalar.

        Raises:
            ValueError: If the scalar is outside ``[1, n-1]``.
        """
        if not 0 < secret < SECP256K1.n:
            raise ValueError("Private key scalar is outside [1, n-1]")
        return cls(int_to_big_endian(secret, SECP256K1.byte_length))

    @classmethod
    def from_hex(cls, hex_string: str) -> 'PrivateKey':
        return cls(hex_to_bytes(hex_string))

    @classmethod
    def generate(cls, entropy: Optional[Callable[[int], bytes]] = None) -> 'PrivateKey':
        """
        Generate a new random private key.

        The scalar is drawn uniformly from ``[1, n-1]`` by
        ``ecdsa.util.randrange``, which reads ``entropy`` (``os.urandom`` by
        default).
        """
        return cls(entropy=entropy)

    @property
    def secret(self) -> int:
        """
        The private scalar ``d``.

        Raises:
            ValueError: If the key has been cleared.
        """
        if self._secret == 0:
            raise ValueError("Private key has been cleared")
        return self._secret

    @property
    def public_key(self) -> PublicKey:
        """
        The corresponding public key ``Q = d * G``, computed on first access.
        """
        if self._public_key is None:
            self._public_key = PublicKey(Point.generator().multiply(self.secret))
        return self._public_key

    def sign(self, digest: bytes, entropy: Optional[Callable[[int], bytes]] = None) -> Signature:
        """
        Sign a message digest with a fresh random nonce.

        Args:
            digest: The message hash to sign (normally 32 bytes).
            entropy: Optional random source for the nonce.

        Returns:
            The ECDSA signature.
        """
        return sign(digest, self.secret, entropy=entropy)

    def sign_recoverable(
        self,
        digest: bytes,
        compressed: bool = False,
        entropy: Optional[Callable[[int], bytes]] = None,
    ):
        """
        Sign a digest and attach the recovery id for this key.

        Returns:
            A :class:`~ecrecover.crypto.recovery.RecoverableSignature`.
        """
        from .recovery import sign_with_recovery
        return sign_with_recovery(
            digest, self, compressed=compressed, entropy=entropy
        )

    def to_bytes(self) -> bytes:
        """Return the raw 32-byte big-endian private key."""
        return int_to_big_endian(self.secret, SECP256K1.byte_length)

    def to_hex(self) -> str:
        return bytes_to_hex(self.to_bytes())

    def clear(self) -> None:
        """Drop the private scalar (best effort; Python may keep copies)."""
        self._secret = 0

    def __enter__(self) -> 'PrivateKey':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def __repr__(self) -> str:
        if self._secret == 0:
            return "PrivateKey(<cleared>)"
        # Only show the public key to avoid accidental exposure
        return f"PrivateKey(public_key={self.public_key.to_hex()[:16]}...)"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self._secret == other._secret

    def __hash__(self) -> int:
        return hash(self.public_key) if self._secret else 0


# =============================================================================
# KeyPair Class
# =============================================================================

class KeyPair:
    """
    A matched private key and public key.

    The private key signs; the public key is handed to verifiers, or left
    out entirely when signatures carry a recovery id.
    """

    def __init__(self, private_key: PrivateKey, public_key: PublicKey):
        self.private_key = private_key
        self.public_key = public_key

    @classmethod
    def generate(cls, entropy: Optional[Callable[[int], bytes]] = None) -> 'KeyPair':
        """
        Generate a new random key pair.

        Draws ``d`` uniformly from ``[1, n-1]`` and computes ``Q = d * G``.
        Fails only if the random source fails.
        """
        private_key = PrivateKey.generate(entropy)
        public_key = private_key.public_key
        logger.debug("Generated key pair %s", public_key.to_hex()[:16])
        return cls(private_key, public_key)

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key.to_hex()})"
