"""
Modular Arithmetic over Prime Fields
====================================

Everything on secp256k1 reduces to arithmetic modulo one of two primes:

- **p**, the field prime: point coordinates live in GF(p).
- **n**, the group order: private keys, nonces and the signature values
  ``r`` and ``s`` are integers modulo n.

This module provides :class:`PrimeField`, a tiny helper bound to one
modulus that keeps every value it returns normalized into ``[0, modulus)``,
and :func:`inverse_mod`, the extended Euclidean algorithm that both ECDSA
(``k^-1``, ``s^-1``, ``r^-1``) and affine point addition (the slope
denominator) depend on.

Values are plain Python integers. Python integers are arbitrary precision,
so the only thing to get right is the reduction: a value outside its modulus
must never leave this module.
"""

from ecdsa.numbertheory import square_root_mod_prime

from .errors import NotInvertibleError


def inverse_mod(a: int, m: int) -> int:
    """
    Compute the inverse of ``a`` modulo ``m`` with the extended Euclidean algorithm.

    The algorithm maintains the invariant ``old_s * a ≡ old_r (mod m)`` while
    running Euclid's algorithm on ``(a, m)``. When the remainder reaches zero,
    ``old_r`` is ``gcd(a, m)``; if that is 1, ``old_s`` is the inverse.

    Args:
        a: The value to invert. Reduced modulo ``m`` first.
        m: The modulus (greater than 1).

    Returns:
        The unique ``x`` in ``[1, m)`` with ``a * x ≡ 1 (mod m)``.

    Raises:
        NotInvertibleError: If ``a ≡ 0 (mod m)`` or ``gcd(a, m) != 1``.
    """
    a %= m
    if a == 0:
        raise NotInvertibleError(f"0 has no inverse modulo {m:#x}")

    old_r, r = a, m
    old_s, s = 1, 0
    while r != 0:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_s, s = s, old_s - quotient * s

    if old_r != 1:
        raise NotInvertibleError(f"{a:#x} is not invertible modulo {m:#x}")
    return old_s % m


class PrimeField:
    """
    Arithmetic modulo a fixed prime.

    Instances are stateless apart from the modulus and may be shared freely
    between threads. Every method accepts arbitrary integers and returns a
    value in ``[0, modulus)``.
    """

    __slots__ = ('modulus', 'byte_length')

    def __init__(self, modulus: int):
        if modulus < 2:
            raise ValueError(f"Modulus must be at least 2, got {modulus}")
        self.modulus = modulus
        self.byte_length = (modulus.bit_length() + 7) // 8

    @property
    def bit_length(self) -> int:
        """Width of the modulus in whole bytes, expressed in bits."""
        return self.byte_length * 8

    # -- normalization -------------------------------------------------------

    def reduce(self, value: int) -> int:
        return value % self.modulus

    def contains(self, value: int) -> bool:
        """Whether ``value`` is already a normalized element, i.e. ``0 <= value < modulus``."""
        return 0 <= value < self.modulus

    # -- arithmetic ----------------------------------------------------------

    def add(self, a: int, b: int) -> int:
        return (a + b) % self.modulus

    def sub(self, a: int, b: int) -> int:
        return (a - b) % self.modulus

    def neg(self, a: int) -> int:
        return (-a) % self.modulus

    def mul(self, a: int, b: int) -> int:
        return (a * b) % self.modulus

    def inverse(self, a: int) -> int:
        """
        Multiplicative inverse of ``a``.

        Raises:
            NotInvertibleError: If ``a ≡ 0``.
        """
        return inverse_mod(a, self.modulus)

    def div(self, a: int, b: int) -> int:
        return self.mul(a, self.inverse(b))

    def sqrt(self, a: int) -> int:
        """
        One square root of ``a``; the other is ``modulus - root``.

        Raises:
            ecdsa.numbertheory.SquareRootError: If ``a`` is a quadratic non-residue.
        """
        return square_root_mod_prime(a % self.modulus, self.modulus)

    # -- serialization -------------------------------------------------------

    def to_bytes(self, value: int) -> bytes:
        """Fixed-width big-endian encoding of a normalized element."""
        if not self.contains(value):
            raise ValueError(f"{value:#x} is not reduced modulo {self.modulus:#x}")
        return value.to_bytes(self.byte_length, 'big')

    def from_bytes(self, data: bytes) -> int:
        """
        Decode a big-endian element, rejecting values that are not reduced.

        Raises:
            ValueError: If ``data`` has the wrong length or encodes a value
                ``>= modulus``.
        """
        if len(data) != self.byte_length:
            raise ValueError(
                f"Expected {self.byte_length} bytes, got {len(data)}"
            )
        value = int.from_bytes(data, 'big')
        if not self.contains(value):
            raise ValueError(f"{value:#x} is not reduced modulo {self.modulus:#x}")
        return value

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrimeField):
            return NotImplemented
        return self.modulus == other.modulus

    def __hash__(self) -> int:
        return hash(self.modulus)

    def __repr__(self) -> str:
        return f"PrimeField({self.modulus:#x})"
