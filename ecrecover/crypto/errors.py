"""
Error types raised by the ECDSA and key recovery code.

Every failure the library can report is a subclass of :class:`ECDSAError`,
so callers can catch the whole family at once. Several classes also derive
from a built-in exception (``ValueError``, ``ZeroDivisionError``) so that code
which already handles those keeps working.

The one deliberate exception to "errors propagate" is signature
verification: ``verify`` turns malformed ``(r, s)`` values into a plain
``False`` result instead of raising :class:`InvalidSignatureRange`.
"""


class ECDSAError(Exception):
    """Base class for all errors raised by this package."""
    pass


class NotInvertibleError(ECDSAError, ZeroDivisionError):
    """
    Raised when a modular inverse does not exist.

    This happens for zero (and, for a composite modulus, for any value not
    coprime with it). Since ``ZeroDivisionError`` is an ``ArithmeticError``,
    ``except ArithmeticError`` catches it too.
    """
    pass


class PointDecodeError(ECDSAError, ValueError):
    """
    Raised when bytes or an x-coordinate do not describe a point on the curve.

    Covers unknown prefix bytes, wrong encoding lengths, coordinates outside
    the field, and x-coordinates for which ``x^3 + 7`` has no square root.
    """
    pass


class InvalidSignatureRange(ECDSAError, ValueError):
    """Raised when ``r`` or ``s`` is outside ``[1, n-1]``."""
    pass


class SigningError(ECDSAError):
    """
    Raised when no usable nonce could be found while signing.

    A nonce is unusable when it yields ``r = 0`` or ``s = 0``. With a
    uniformly random nonce this has probability about 2^-256 per attempt, so
    in practice this error only appears with a broken entropy source or an
    explicitly supplied bad nonce.
    """
    pass


class RecoveryError(ECDSAError):
    """Base class for failures while recovering a public key from a signature."""
    pass


class XTooLargeError(RecoveryError):
    """Raised when the candidate x-coordinate ``r + i*n`` is not below ``p``."""
    pass


class CofactorCheckError(RecoveryError):
    """Raised when the candidate point ``R`` does not satisfy ``n*R = infinity``."""
    pass


class RecoveryIdNotFoundError(RecoveryError):
    """
    Raised when none of the four recovery ids reproduces the expected key.

    For a signature that was just produced with the matching private key,
    this means the signature or the key material is inconsistent. It is
    always a hard failure.
    """
    pass
