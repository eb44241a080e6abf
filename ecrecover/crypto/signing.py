"""
ECDSA Signing and Verification
==============================

This module implements the Elliptic Curve Digital Signature Algorithm on
secp256k1, working directly on scalars and curve points.

Signing
-------
Given a message digest ``e`` and a private scalar ``d``:

1. Draw a fresh random nonce ``k`` in ``[1, n-1]``.
2. Compute ``R = k * G`` and ``r = R.x mod n``.
3. Compute ``s = k^-1 * (e + r * d) mod n``.
4. The signature is the pair ``(r, s)``.

If ``r`` or ``s`` comes out as zero the nonce is discarded and a new one is
drawn. A nonce must never be reused with the same private key: two
signatures sharing ``k`` reveal ``d`` with a little algebra.

Verification
------------
Given ``(r, s)``, a digest ``e`` and a public point ``Q``:

1. Reject unless ``1 <= r, s <= n-1``.
2. ``w = s^-1 mod n``, ``u1 = e * w mod n``, ``u2 = r * w mod n``.
3. ``P = u1 * G + u2 * Q``.
4. The signature is valid iff ``P`` is not infinity and ``P.x mod n == r``.

Malformed signatures make :func:`verify` return False; it never raises for
them.

Digest Handling
---------------
The digest is interpreted as an unsigned big-endian integer. When it is
longer than the curve's coordinate size (32 bytes), it is shifted right by
``8 - (nbits & 7)`` bits, where ``nbits`` is the byte length of ``p`` times
8. Signing, verification and public key recovery all share this rule so
that signatures round-trip between them.

The random source is injectable: every function that draws randomness
takes an ``entropy`` callable with the ``os.urandom`` signature, passed on
to ``ecdsa.util.randrange``.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ecdsa.der import UnexpectedDER
from ecdsa.util import randrange, sigencode_string, sigencode_der, sigdecode_der

from ecrecover.utils.encoding import big_endian_to_int

from .curve import SECP256K1, CurveParameters, Point
from .errors import InvalidSignatureRange, SigningError

logger = logging.getLogger(__name__)


MAX_NONCE_ATTEMPTS = 64
"""Number of random nonces tried before signing gives up with SigningError.
A single retry is already astronomically unlikely; the bound only exists so
that a broken entropy source produces an error instead of an endless loop."""

SIGNATURE_LENGTH = 64
"""Size of a plain ``r || s`` signature in bytes."""


# =============================================================================
# Range Checks
# =============================================================================

def check_signature_range(r: int, s: int, curve: CurveParameters = SECP256K1) -> None:
    """
    Check that both signature values are in ``[1, n-1]``.

    Raises:
        InvalidSignatureRange: If either value is out of range.
    """
    if not 0 < r < curve.n:
        raise InvalidSignatureRange(f"r is outside [1, n-1]: {r:#x}")
    if not 0 < s < curve.n:
        raise InvalidSignatureRange(f"s is outside [1, n-1]: {s:#x}")


# =============================================================================
# Signature Class
# =============================================================================

@dataclass(frozen=True)
class Signature:
    """
    An ECDSA signature ``(r, s)``.

    Both values are checked to be in ``[1, n-1]`` on construction.

    Two wire formats are supported:
    - **Plain** (64 bytes): ``r`` and ``s`` as 32-byte big-endian integers.
    - **DER**: the ASN.1 ``SEQUENCE { INTEGER r, INTEGER s }`` encoding used
      in Bitcoin transactions.
    """

    r: int
    s: int

    def __post_init__(self):
        check_signature_range(self.r, self.s)

    def to_bytes(self) -> bytes:
        """Return the 64-byte ``r || s`` encoding."""
        return sigencode_string(self.r, self.s, SECP256K1.n)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Signature':
        """
        Parse a 64-byte ``r || s`` signature.

        Raises:
            ValueError: If the length is wrong.
            InvalidSignatureRange: If ``r`` or ``s`` is zero or not below ``n``.
        """
        if len(data) != SIGNATURE_LENGTH:
            raise ValueError(
                f"Signature must be exactly {SIGNATURE_LENGTH} bytes, got {len(data)}"
            )
        half = SIGNATURE_LENGTH // 2
        return cls(big_endian_to_int(data[:half]), big_endian_to_int(data[half:]))

    def to_der(self) -> bytes:
        return sigencode_der(self.r, self.s, SECP256K1.n)

    @classmethod
    def from_der(cls, data: bytes) -> 'Signature':
        """
        Parse a DER-encoded signature.

        Raises:
            ValueError: If the DER structure is malformed.
            InvalidSignatureRange: If ``r`` or ``s`` is out of range.
        """
        try:
            r, s = sigdecode_der(data, SECP256K1.n)
        except UnexpectedDER as e:
            raise ValueError(f"Malformed DER signature: {e}") from e
        return cls(r, s)

    def __repr__(self) -> str:
        return f"Signature(r={self.r:#x}, s={self.s:#x})"


# =============================================================================
# Digest Conversion
# =============================================================================

def digest_to_int(digest: bytes, curve: CurveParameters = SECP256K1) -> int:
    """
    Convert a message digest into the integer ``e`` used by ECDSA.

    Digests up to the coordinate size are used as-is. Longer digests are
    shifted right by ``8 - (nbits & 7)`` bits, ``nbits`` being the coordinate
    size in bits. For secp256k1 that is a shift by 8 bits.

    Args:
        digest: The message hash (normally 32 bytes).
        curve: Curve parameters.

    Returns:
        The digest integer (not reduced modulo n).
    """
    nbits = curve.field.bit_length
    e = big_endian_to_int(digest)
    if 8 * len(digest) > nbits:
        e >>= 8 - (nbits & 7)
    return e


# =============================================================================
# Signing and Verification
# =============================================================================

def sign(
    digest: bytes,
    secret: int,
    entropy: Optional[Callable[[int], bytes]] = None,
    k: Optional[int] = None,
    curve: CurveParameters = SECP256K1,
) -> Signature:
    """
    Sign a message digest with a private scalar.

    Args:
        digest: The message hash to sign.
        secret: The private scalar ``d`` in ``[1, n-1]``.
        entropy: Optional random source with the ``os.urandom`` signature.
        k: Optional explicit nonce. It is tried exactly once; use only for
            known-answer tests.
        curve: Curve parameters.

    Returns:
        The signature ``(r, s)``.

    Raises:
        ValueError: If ``secret`` or an explicit ``k`` is outside ``[1, n-1]``.
        SigningError: If no usable nonce was found.
    """
    n = curve.n
    scalars = curve.scalars
    if not 0 < secret < n:
        raise ValueError("Private scalar is outside [1, n-1]")
    if k is not None and not 0 < k < n:
        raise ValueError("Nonce is outside [1, n-1]")

    e = digest_to_int(digest, curve)
    generator = Point.generator(curve)
    attempts = 1 if k is not None else MAX_NONCE_ATTEMPTS

    for attempt in range(1, attempts + 1):
        nonce = k if k is not None else randrange(n, entropy)
        r = scalars.reduce(generator.multiply(nonce).x)
        if r == 0:
            logger.warning("Nonce gave r = 0 (attempt %d of %d)", attempt, attempts)
            del nonce
            continue

        s = scalars.mul(scalars.inverse(nonce), scalars.add(e, scalars.mul(r, secret)))
        del nonce
        if s == 0:
            logger.warning("Nonce gave s = 0 (attempt %d of %d)", attempt, attempts)
            continue

        return Signature(r, s)

    raise SigningError(f"No usable nonce found after {attempts} attempt(s)")


def verify(
    digest: bytes,
    public_key,
    r: int,
    s: int,
    curve: CurveParameters = SECP256K1,
) -> bool:
    """
    Verify an ECDSA signature.

    Args:
        digest: The message hash that was signed.
        public_key: The signer's public key, as a ``Point`` or ``PublicKey``.
        r: Signature value r.
        s: Signature value s.
        curve: Curve parameters.

    Returns:
        True if the signature is valid. False for an invalid signature, for
        ``r``/``s`` outside ``[1, n-1]`` and for the point at infinity as key.
    """
    try:
        check_signature_range(r, s, curve)
    except InvalidSignatureRange as e:
        logger.debug("Rejecting signature: %s", e)
        return False

    point = getattr(public_key, 'point', public_key)
    if point.is_infinity:
        return False

    scalars = curve.scalars
    w = scalars.inverse(s)
    u1 = scalars.mul(digest_to_int(digest, curve), w)
    u2 = scalars.mul(r, w)
    candidate = Point.generator(curve).multiply(u1) + point.multiply(u2)
    if candidate.is_infinity:
        return False
    return scalars.reduce(candidate.x) == r


def verify_signature(digest: bytes, public_key, signature) -> bool:
    """
    Verify a :class:`Signature` or a 64-byte ``r || s`` value.

    Returns False rather than raising when ``signature`` cannot be parsed.
    """
    if isinstance(signature, Signature):
        return verify(digest, public_key, signature.r, signature.s)
    if len(signature) != SIGNATURE_LENGTH:
        return False
    half = SIGNATURE_LENGTH // 2
    return verify(
        digest,
        public_key,
        big_endian_to_int(signature[:half]),
        big_endian_to_int(signature[half:]),
    )
