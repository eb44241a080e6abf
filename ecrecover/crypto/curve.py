"""
secp256k1 Curve Parameters and Point Arithmetic
================================================

This module implements the elliptic-curve group that ECDSA signing,
verification and public key recovery are built on.

The secp256k1 Curve
--------------------
secp256k1 is the short-Weierstrass curve

    y^2 = x^3 + 7  (mod p)

over the prime field GF(p), with ``p = 2^256 - 2^32 - 977``. Its points,
together with a "point at infinity" that acts as the identity element, form
a cyclic group of prime order ``n`` generated by the base point ``G``. The
cofactor is 1: every point on the curve other than infinity has order n.

The numeric parameters are taken from the ``ecdsa`` library's ``SECP256k1``
definition rather than being retyped here; the group law itself is
implemented below with plain affine formulas.

Group Law
---------
For points P = (x1, y1) and Q = (x2, y2):

- **Addition** (P != ±Q): slope = (y2 - y1) / (x2 - x1)
- **Doubling** (P == Q):  slope = (3 * x1^2 + a) / (2 * y1)

and in both cases

    x3 = slope^2 - x1 - x2
    y3 = slope * (x1 - x3) - y1

P + (-P) is the point at infinity, and infinity is the identity for
addition. Scalar multiplication ``k * P`` is computed with the classic
double-and-add method over the bits of k.

Point Compression
-----------------
Because every x has at most two matching y values (y and p - y, one even and
one odd), a point can be stored as its x coordinate plus one parity bit:
``0x02 || x`` for even y, ``0x03 || x`` for odd y. Decompression solves the
curve equation for y and picks the root with the requested parity; this is
exactly the step public key recovery uses to turn the signature value ``r``
back into a curve point.
"""

from dataclasses import dataclass, field as dataclass_field
from typing import Optional

from ecdsa import SECP256k1
from ecdsa.numbertheory import SquareRootError

from .errors import PointDecodeError
from .field import PrimeField


# =============================================================================
# Curve Parameters
# =============================================================================

@dataclass(frozen=True)
class CurveParameters:
    """
    Domain parameters of a short-Weierstrass curve ``y^2 = x^3 + a*x + b``.

    Instances are immutable and shared by every point and every signing,
    verification and recovery call.
    """

    name: str
    p: int
    a: int
    b: int
    gx: int
    gy: int
    n: int
    h: int = 1
    field: PrimeField = dataclass_field(init=False, repr=False, compare=False)
    scalars: PrimeField = dataclass_field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'field', PrimeField(self.p))
        object.__setattr__(self, 'scalars', PrimeField(self.n))
        if not self.contains(self.gx, self.gy):
            raise ValueError(f"Generator of {self.name} is not on the curve")

    @classmethod
    def from_ecdsa_curve(cls, curve, cofactor: int = 1) -> 'CurveParameters':
        """
        Build parameters from an ``ecdsa.curves.Curve`` definition.

        Args:
            curve: An ``ecdsa`` named curve such as ``ecdsa.SECP256k1``.
            cofactor: The curve's cofactor (1 for secp256k1).
        """
        generator = curve.generator
        return cls(
            name=curve.name,
            p=int(curve.curve.p()),
            a=int(curve.curve.a()),
            b=int(curve.curve.b()),
            gx=int(generator.x()),
            gy=int(generator.y()),
            n=int(curve.order),
            h=cofactor,
        )

    @property
    def byte_length(self) -> int:
        """Size in bytes of one encoded coordinate."""
        return self.field.byte_length

    def contains(self, x: int, y: int) -> bool:
        """Whether ``(x, y)`` is a reduced solution of the curve equation."""
        fp = self.field
        if not (fp.contains(x) and fp.contains(y)):
            return False
        return fp.mul(y, y) == self.y_squared(x)

    def y_squared(self, x: int) -> int:
        """Right-hand side of the curve equation, ``x^3 + a*x + b mod p``."""
        fp = self.field
        return fp.add(fp.add(pow(x, 3, self.p), fp.mul(self.a, x)), self.b)


SECP256K1 = CurveParameters.from_ecdsa_curve(SECP256k1)
"""The only curve supported by this package."""

COMPRESSED_EVEN_PREFIX = 0x02
COMPRESSED_ODD_PREFIX = 0x03
UNCOMPRESSED_PREFIX = 0x04


# =============================================================================
# Point Class
# =============================================================================

class Point:
    """
    A point on an elliptic curve, or the point at infinity.

    Points are immutable value objects: arithmetic always returns a new
    point, and two points compare equal when they have the same coordinates
    on the same curve. Constructing a point from coordinates checks that it
    lies on the curve.

    Operators:
        ``P + Q``, ``P - Q``, ``-P``, ``k * P`` and ``P * k`` (for int k).
    """

    __slots__ = ('_x', '_y', '_curve')

    def __init__(self, x: int, y: int, curve: CurveParameters = SECP256K1):
        """
        Create an affine point and check that it lies on ``curve``.

        Raises:
            PointDecodeError: If ``(x, y)`` does not satisfy the curve equation
                or a coordinate is outside ``[0, p)``.
        """
        if not curve.contains(x, y):
            raise PointDecodeError(f"Point ({x:#x}, {y:#x}) is not on {curve.name}")
        self._x = x
        self._y = y
        self._curve = curve

    @classmethod
    def _make(cls, x: Optional[int], y: Optional[int], curve: CurveParameters) -> 'Point':
        # Results of the group law are on the curve by construction.
        point = cls.__new__(cls)
        point._x = x
        point._y = y
        point._curve = curve
        return point

    @classmethod
    def infinity(cls, curve: CurveParameters = SECP256K1) -> 'Point':
        """The point at infinity (the group identity)."""
        return cls._make(None, None, curve)

    @classmethod
    def generator(cls, curve: CurveParameters = SECP256K1) -> 'Point':
        """The base point G."""
        return cls._make(curve.gx, curve.gy, curve)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def x(self) -> Optional[int]:
        """Affine x coordinate, or None for the point at infinity."""
        return self._x

    @property
    def y(self) -> Optional[int]:
        """Affine y coordinate, or None for the point at infinity."""
        return self._y

    @property
    def curve(self) -> CurveParameters:
        return self._curve

    @property
    def is_infinity(self) -> bool:
        return self._x is None

    def is_on_curve(self) -> bool:
        """Infinity counts as on the curve; affine points must satisfy the equation."""
        if self.is_infinity:
            return True
        return self._curve.contains(self._x, self._y)

    # -------------------------------------------------------------------------
    # Group law
    # -------------------------------------------------------------------------

    def __neg__(self) -> 'Point':
        if self.is_infinity:
            return self
        return Point._make(self._x, self._curve.field.neg(self._y), self._curve)

    def __add__(self, other: 'Point') -> 'Point':
        if not isinstance(other, Point):
            return NotImplemented
        if self._curve != other._curve:
            raise ValueError("Cannot add points on different curves")
        if self.is_infinity:
            return other
        if other.is_infinity:
            return self

        fp = self._curve.field
        if self._x == other._x:
            # Same x: either P + P or P + (-P).
            if fp.add(self._y, other._y) == 0:
                return Point.infinity(self._curve)
            return self.double()

        slope = fp.div(fp.sub(other._y, self._y), fp.sub(other._x, self._x))
        return self._chord(slope, other._x)

    def __sub__(self, other: 'Point') -> 'Point':
        if not isinstance(other, Point):
            return NotImplemented
        return self + (-other)

    def double(self) -> 'Point':
        """Return ``2 * self``."""
        if self.is_infinity or self._y == 0:
            return Point.infinity(self._curve)

        fp = self._curve.field
        numerator = fp.add(fp.mul(3, fp.mul(self._x, self._x)), self._curve.a)
        slope = fp.div(numerator, fp.mul(2, self._y))
        return self._chord(slope, self._x)

    def _chord(self, slope: int, other_x: int) -> 'Point':
        fp = self._curve.field
        x3 = fp.sub(fp.sub(fp.mul(slope, slope), self._x), other_x)
        y3 = fp.sub(fp.mul(slope, fp.sub(self._x, x3)), self._y)
        return Point._make(x3, y3, self._curve)

    def _double_and_add(self, k: int) -> 'Point':
        result = Point.infinity(self._curve)
        if self.is_infinity:
            return result
        for bit in bin(k)[2:]:
            result = result.double()
            if bit == '1':
                result = result + self
        return result

    def multiply(self, k: int) -> 'Point':
        """
        Scalar multiplication ``k * self``.

        ``k`` is first reduced modulo the group order ``n``, so any ``k ≡ 0``
        (including 0 and n) gives the point at infinity, and negative
        scalars are handled as ``n - |k|``.
        """
        k %= self._curve.n
        if k == 0:
            return Point.infinity(self._curve)
        return self._double_and_add(k)

    def has_group_order(self) -> bool:
        """
        Whether ``n * self`` is the point at infinity.

        Unlike :meth:`multiply`, the scalar ``n`` is *not* reduced first, so
        this really computes the group element and checks it.
        """
        return self._double_and_add(self._curve.n).is_infinity

    def __mul__(self, k: int) -> 'Point':
        if not isinstance(k, int):
            return NotImplemented
        return self.multiply(k)

    def __rmul__(self, k: int) -> 'Point':
        if not isinstance(k, int):
            return NotImplemented
        return self.multiply(k)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def compress(self) -> bytes:
        """Return the 33-byte SEC 1 compressed encoding."""
        return self.encode(compressed=True)

    def encode(self, compressed: bool = False) -> bytes:
        """
        Serialize the point in SEC 1 format.

        - Uncompressed (65 bytes): 0x04 || x || y
        - Compressed (33 bytes):   (0x02 if y is even, 0x03 if odd) || x

        Raises:
            ValueError: For the point at infinity, which has no encoding here.
        """
        if self.is_infinity:
            raise ValueError("The point at infinity cannot be encoded")
        fp = self._curve.field
        x_bytes = fp.to_bytes(self._x)
        if compressed:
            prefix = COMPRESSED_ODD_PREFIX if self._y & 1 else COMPRESSED_EVEN_PREFIX
            return bytes([prefix]) + x_bytes
        return bytes([UNCOMPRESSED_PREFIX]) + x_bytes + fp.to_bytes(self._y)

    @classmethod
    def decompress(cls, prefix: int, x: int, curve: CurveParameters = SECP256K1) -> 'Point':
        """
        Recover the full point from an x coordinate and a parity prefix.

        Computes ``y^2 = x^3 + a*x + b (mod p)``, takes a modular square root
        and keeps the root whose lowest bit matches ``prefix & 1``.

        Args:
            prefix: 0x02 (even y) or 0x03 (odd y).
            x: The x coordinate.
            curve: Curve parameters.

        Returns:
            The matching point.

        Raises:
            PointDecodeError: If the prefix is not 0x02/0x03, ``x`` is outside
                ``[0, p)``, or no point with this x exists on the curve.
        """
        if prefix not in (COMPRESSED_EVEN_PREFIX, COMPRESSED_ODD_PREFIX):
            raise PointDecodeError(f"Invalid compression prefix 0x{prefix:02x}")
        if not curve.field.contains(x):
            raise PointDecodeError(f"x coordinate {x:#x} is not below the field prime")

        try:
            y = curve.field.sqrt(curve.y_squared(x))
        except SquareRootError as e:
            raise PointDecodeError(f"No point on {curve.name} has x = {x:#x}") from e

        if (y & 1) != (prefix & 1):
            y = curve.field.neg(y)
        return cls._make(x, y, curve)

    @classmethod
    def decode(cls, data: bytes, curve: CurveParameters = SECP256K1) -> 'Point':
        """
        Deserialize a SEC 1 compressed (33 bytes) or uncompressed (65 bytes) point.

        Raises:
            PointDecodeError: If the length/prefix combination is unknown or
                the encoded point is not on the curve.
        """
        size = curve.byte_length
        if len(data) == size + 1 and data[0] in (COMPRESSED_EVEN_PREFIX, COMPRESSED_ODD_PREFIX):
            return cls.decompress(data[0], int.from_bytes(data[1:], 'big'), curve)
        if len(data) == 2 * size + 1 and data[0] == UNCOMPRESSED_PREFIX:
            x = int.from_bytes(data[1:size + 1], 'big')
            y = int.from_bytes(data[size + 1:], 'big')
            return cls(x, y, curve)
        raise PointDecodeError(
            f"Invalid point encoding: {len(data)} bytes"
            + (f" with prefix 0x{data[0]:02x}" if data else "")
        )

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    def __eq__(self, other) -> bool:
        if not isinstance(other, Point):
            return NotImplemented
        return (
            self._x == other._x
            and self._y == other._y
            and self._curve == other._curve
        )

    def __hash__(self) -> int:
        return hash((self._x, self._y, self._curve.name))

    def __repr__(self) -> str:
        if self.is_infinity:
            return "Point(infinity)"
        return f"Point(x={self._x:#066x}, y={self._y:#066x})"


G = Point.generator()
"""The secp256k1 base point."""
