"""
ECDSA Public Key Recovery
=========================

An ECDSA signature ``(r, s)`` over a digest ``e`` does not just *verify*
against a public key: with one extra hint it is enough to *reconstruct*
that key. This lets a message carry a 65-byte recoverable signature instead
of a signature plus a separate 33- or 65-byte public key.

How It Works (SEC 1 v2, section 4.1.6)
--------------------------------------
During signing, ``r`` is the x coordinate of ``R = k * G`` reduced modulo n.
The verifier does not know R, but it can rebuild it:

1. The true x coordinate was ``r + i * n`` for some small ``i``. Because
   n is only slightly below p on secp256k1, ``i`` is almost always 0, and
   ``x = r + n`` only fits below p for a tiny range of ``r``.
2. Each x gives two points, ``(x, y)`` and ``(x, p - y)``; the parity of y
   picks one of them.

The **recovery id** (0-3) encodes both choices: ``i = recovery_id // 2`` and
``y parity = recovery_id % 2``. With R known, the signing equation
``s * k = e + r * d`` rearranges to

    Q = r^-1 * (s * R - e * G)

which this module evaluates as ``eor * G + sor * R`` with
``eor = -e * r^-1`` and ``sor = s * r^-1`` (all modulo n).

Finding the Recovery Id
-----------------------
The signer knows its own public key, so it simply tries ids 0..3 and keeps
the first one whose recovered point matches. Some ids fail outright (the
candidate x is not below p, or it is not the x of any curve point); those
failures are expected and simply move the search to the next id. Only when
no id reproduces the key is that an error.

Envelope Format
---------------
A recoverable signature is serialized as 65 bytes::

    header (1) || r (32, big-endian) || s (32, big-endian)

with ``header = 27 + recovery_id``, plus 4 when the signer's public key is
meant to be used in compressed form. Headers 27-34 are accepted on input.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, NamedTuple, Optional

from ecrecover.utils.encoding import bytes_to_hex

from .curve import SECP256K1, COMPRESSED_EVEN_PREFIX, CurveParameters, Point
from .errors import (
    CofactorCheckError,
    ECDSAError,
    RecoveryError,
    RecoveryIdNotFoundError,
    XTooLargeError,
)
from .keys import PrivateKey, PublicKey
from .signing import Signature, check_signature_range, digest_to_int, sign

logger = logging.getLogger(__name__)


RECOVERY_HEADER_BASE = 27
"""Header byte of a recoverable signature with recovery id 0 (legacy
Bitcoin signed-message convention)."""

COMPRESSED_HEADER_OFFSET = 4
"""Added to the header when the signer's key is used in compressed form."""

ENVELOPE_LENGTH = 65
"""Size of a serialized recoverable signature: header + r + s."""

RECOVERY_IDS = range(4)
"""All recovery ids for a curve with cofactor 1."""


# =============================================================================
# Recoverable Signature
# =============================================================================

@dataclass(frozen=True)
class RecoverableSignature:
    """
    An ECDSA signature together with the recovery id of its signer's key.

    Attributes:
        recovery_id: 0-3, see the module documentation.
        r: Signature value r.
        s: Signature value s.
        compressed: Whether the signer's public key is meant to be used in
            compressed form. Does not affect recovery itself.
    """

    recovery_id: int
    r: int
    s: int
    compressed: bool = False

    def __post_init__(self):
        if self.recovery_id not in RECOVERY_IDS:
            raise ValueError(f"Recovery id must be 0-3, got {self.recovery_id}")
        check_signature_range(self.r, self.s)

    @property
    def header(self) -> int:
        """The envelope header byte: ``27 + recovery_id`` (+4 if compressed)."""
        header = RECOVERY_HEADER_BASE + self.recovery_id
        if self.compressed:
            header += COMPRESSED_HEADER_OFFSET
        return header

    @property
    def signature(self) -> Signature:
        """The plain ``(r, s)`` signature without the recovery id."""
        return Signature(self.r, self.s)

    def to_bytes(self) -> bytes:
        """Serialize as the 65-byte ``header || r || s`` envelope."""
        return bytes([self.header]) + self.signature.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> 'RecoverableSignature':
        """
        Parse a 65-byte recoverable signature envelope.

        Raises:
            ValueError: If the length or header byte is invalid.
            InvalidSignatureRange: If ``r`` or ``s`` is out of range.
        """
        if len(data) != ENVELOPE_LENGTH:
            raise ValueError(
                f"Recoverable signature must be exactly {ENVELOPE_LENGTH} bytes, "
                f"got {len(data)}"
            )
        header = data[0]
        last_header = RECOVERY_HEADER_BASE + COMPRESSED_HEADER_OFFSET + len(RECOVERY_IDS) - 1
        if not RECOVERY_HEADER_BASE <= header <= last_header:
            raise ValueError(f"Invalid recoverable signature header {header}")

        signature = Signature.from_bytes(data[1:])
        return cls(
            recovery_id=(header - RECOVERY_HEADER_BASE) & ~COMPRESSED_HEADER_OFFSET,
            r=signature.r,
            s=signature.s,
            compressed=header >= RECOVERY_HEADER_BASE + COMPRESSED_HEADER_OFFSET,
        )

    def recover(self, digest: bytes, verify_cofactor: bool = True) -> PublicKey:
        """
        Recover the signer's public key.

        Raises:
            RecoveryError: If recovery fails for this signature and digest.
            PointDecodeError: If ``r`` does not lead to a curve point.
        """
        point = recover_public_key(
            digest, self.r, self.s, self.recovery_id, verify_cofactor=verify_cofactor
        )
        if point.is_infinity:
            raise RecoveryError("Recovered point is the point at infinity")
        return PublicKey(point)

    def __repr__(self) -> str:
        return (
            f"RecoverableSignature(recovery_id={self.recovery_id}, "
            f"r={self.r:#x}, s={self.s:#x}, compressed={self.compressed})"
        )


# =============================================================================
# Recovery
# =============================================================================

def recover_public_key(
    digest: bytes,
    r: int,
    s: int,
    recovery_id: int,
    verify_cofactor: bool = True,
    curve: CurveParameters = SECP256K1,
) -> Point:
    """
    Reconstruct the candidate public point for a signature and recovery id.

    Args:
        digest: The message hash that was signed.
        r: Signature value r.
        s: Signature value s.
        recovery_id: 0-3.
        verify_cofactor: Check that ``n * R`` is the point at infinity.
        curve: Curve parameters.

    Returns:
        The candidate point ``Q = r^-1 * (s * R - e * G)``.

    Raises:
        ValueError: If ``recovery_id`` is not 0-3.
        XTooLargeError: If ``r + (recovery_id // 2) * n >= p``.
        PointDecodeError: If that x coordinate is not on the curve.
        CofactorCheckError: If the cofactor check is requested and fails.
        NotInvertibleError: If ``r ≡ 0 (mod n)``.
    """
    if recovery_id not in RECOVERY_IDS:
        raise ValueError(f"Recovery id must be 0-3, got {recovery_id}")

    scalars = curve.scalars
    x = r + (recovery_id // 2) * curve.n
    if x >= curve.p:
        raise XTooLargeError(f"Candidate x {x:#x} is not below the field prime")

    big_r = Point.decompress(COMPRESSED_EVEN_PREFIX + recovery_id % 2, x, curve)
    if verify_cofactor and not big_r.has_group_order():
        raise CofactorCheckError("n * R is not the point at infinity")

    e = digest_to_int(digest, curve)
    r_inv = scalars.inverse(r)
    sor = scalars.mul(s, r_inv)
    eor = scalars.mul(scalars.neg(e), r_inv)
    return Point.generator(curve).multiply(eor) + big_r.multiply(sor)


class RecoveryAttempt(NamedTuple):
    """Outcome of recovering with one id: either ``point`` or ``error`` is set."""

    recovery_id: int
    point: Optional[Point]
    error: Optional[ECDSAError]


def recovery_attempts(
    digest: bytes,
    r: int,
    s: int,
    curve: CurveParameters = SECP256K1,
) -> Iterator[RecoveryAttempt]:
    """
    Try every recovery id in turn, yielding one :class:`RecoveryAttempt` each.

    Per-id failures are captured in the attempt instead of being raised.
    """
    for recovery_id in RECOVERY_IDS:
        try:
            point = recover_public_key(digest, r, s, recovery_id, True, curve)
        except ECDSAError as e:
            yield RecoveryAttempt(recovery_id, None, e)
        else:
            yield RecoveryAttempt(recovery_id, point, None)


def recover_candidates(
    digest: bytes,
    r: int,
    s: int,
    curve: CurveParameters = SECP256K1,
) -> Dict[int, Point]:
    """Map each recovery id that succeeds to the point it recovers."""
    return {
        attempt.recovery_id: attempt.point
        for attempt in recovery_attempts(digest, r, s, curve)
        if attempt.error is None
    }


def find_recovery_id(
    digest: bytes,
    r: int,
    s: int,
    public_key,
    curve: CurveParameters = SECP256K1,
) -> int:
    """
    Find the recovery id under which ``(r, s)`` recovers ``public_key``.

    Candidates are compared by their uncompressed SEC 1 encoding.

    Args:
        digest: The message hash that was signed.
        r: Signature value r.
        s: Signature value s.
        public_key: The expected key, as a ``PublicKey`` or ``Point``.
        curve: Curve parameters.

    Returns:
        The first matching recovery id.

    Raises:
        RecoveryIdNotFoundError: If no recovery id reproduces the key, or the
            key is the point at infinity.
    """
    point = getattr(public_key, 'point', public_key)
    if point.is_infinity:
        raise RecoveryIdNotFoundError("The point at infinity is never recovered")
    expected = point.encode(compressed=False)

    for attempt in recovery_attempts(digest, r, s, curve):
        if attempt.error is not None:
            logger.debug("Recovery id %d rejected: %s", attempt.recovery_id, attempt.error)
            continue
        if attempt.point.is_infinity:
            logger.debug("Recovery id %d gave the point at infinity", attempt.recovery_id)
            continue
        if attempt.point.encode(compressed=False) == expected:
            return attempt.recovery_id

    logger.warning(
        "No recovery id reproduces public key %s for r=%s",
        bytes_to_hex(expected)[:16], f"{r:064x}"[:16],
    )
    raise RecoveryIdNotFoundError(
        f"No recovery id reproduces public key {bytes_to_hex(expected)}"
    )


def sign_with_recovery(
    digest: bytes,
    private_key,
    public_key=None,
    compressed: bool = False,
    entropy: Optional[Callable[[int], bytes]] = None,
    curve: CurveParameters = SECP256K1,
) -> RecoverableSignature:
    """
    Sign a digest and determine the recovery id for the signer's key.

    Args:
        digest: The message hash to sign.
        private_key: A :class:`PrivateKey` or the private scalar as int.
        public_key: The known public key to match. Derived from the private
            key when omitted.
        compressed: Value of the compressed flag in the result.
        entropy: Optional random source for the nonce.
        curve: Curve parameters.

    Returns:
        The recoverable signature; ``to_bytes()`` gives the 65-byte envelope.

    Raises:
        SigningError: If no usable nonce was found.
        RecoveryIdNotFoundError: If no recovery id reproduces the key.
    """
    if isinstance(private_key, PrivateKey):
        secret = private_key.secret
        if public_key is None:
            public_key = private_key.public_key
    else:
        secret = private_key
        if public_key is None:
            public_key = Point.generator(curve).multiply(secret)

    signature = sign(digest, secret, entropy=entropy, curve=curve)
    del secret
    recovery_id = find_recovery_id(digest, signature.r, signature.s, public_key, curve)
    logger.debug("Signature r=%s uses recovery id %d", f"{signature.r:064x}"[:16], recovery_id)
    return RecoverableSignature(recovery_id, signature.r, signature.s, compressed)


def recover_from_envelope(digest: bytes, envelope: bytes) -> PublicKey:
    """
    Recover the signer's public key from a 65-byte recoverable signature.

    Raises:
        ValueError: If the envelope is malformed.
        RecoveryError: If recovery fails.
        PointDecodeError: If ``r`` does not lead to a curve point.
    """
    return RecoverableSignature.from_bytes(envelope).recover(digest)
