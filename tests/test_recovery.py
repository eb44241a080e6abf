"""
Tests for ECDSA Public Key Recovery
===================================

Tests cover:
- Recovering the signer's key for each recovery id
- Finding the recovery id while signing
- Per-id failures (x too large, x off the curve, cofactor check)
- The 65-byte recoverable signature envelope
- A known-answer vector from a Bitcoin signed message
"""

import base64
import hashlib

import pytest

from ecrecover.crypto.curve import G, SECP256K1, Point
from ecrecover.crypto.errors import (
    CofactorCheckError,
    InvalidSignatureRange,
    NotInvertibleError,
    PointDecodeError,
    RecoveryError,
    RecoveryIdNotFoundError,
    XTooLargeError,
)
from ecrecover.crypto.hash import message_hash
from ecrecover.crypto.keys import PrivateKey, PublicKey
from ecrecover.crypto.recovery import (
    ENVELOPE_LENGTH,
    RecoverableSignature,
    find_recovery_id,
    recover_candidates,
    recover_from_envelope,
    recover_public_key,
    recovery_attempts,
    sign_with_recovery,
)
from ecrecover.crypto.signing import sign, verify


N = SECP256K1.n
P = SECP256K1.p

# "Hello world" signed with the private key b"1" * 32 (compressed key).
KAT_MESSAGE = "Hello world"
KAT_ENVELOPE = base64.b64decode(
    "IKe84tb3CO7KPw7laQsh6Bjk0qNp5s1lId/iLcRBWmE1Nn8t6drArd1oiEkuPushNuDqQs8WB0kqxZ+MDmXBruQ="
)
KAT_PUBLIC_KEY_HEX = (
    "046930f46dd0b16d866d59d1054aa63298b357499cd1862ef16f3f55f1cafceb82"
    "f8fcdfbfe88d36edf9cd2d3c99c8d451b3b4a14091da40d00e9333c3d37fe6ab"
)


def smallest_overflowing_r() -> int:
    """The smallest r for which r + n is the x coordinate of a curve point."""
    x = N + 1
    while True:
        try:
            Point.decompress(0x02, x)
        except PointDecodeError:
            x += 1
        else:
            return x - N


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def private_key():
    return PrivateKey.generate()


@pytest.fixture
def digest():
    return hashlib.sha256(b"recover me").digest()


@pytest.fixture
def rejecting_cofactor_check(monkeypatch):
    """Make every candidate R fail the n * R = infinity check."""
    monkeypatch.setattr(Point, "has_group_order", lambda self: False)


# ---------------------------------------------------------------------------
# recover_public_key Tests
# ---------------------------------------------------------------------------

class TestRecoverPublicKey:
    """Tests for recovering a key under a single recovery id."""

    def test_generator_key_with_zero_digest(self):
        """d = 1 signs as G, and one of the ids must give G back."""
        digest = b"\x00" * 32
        sig = sign(digest, 1)
        recovery_id = find_recovery_id(digest, sig.r, sig.s, G)
        assert recover_public_key(digest, sig.r, sig.s, recovery_id) == G

    def test_roundtrip(self, private_key, digest):
        sig = sign(digest, private_key.secret)
        recovery_id = find_recovery_id(digest, sig.r, sig.s, private_key.public_key)
        recovered = recover_public_key(digest, sig.r, sig.s, recovery_id)
        assert recovered == private_key.public_key.point

    def test_recovered_key_verifies(self, private_key, digest):
        sig = sign(digest, private_key.secret)
        for point in recover_candidates(digest, sig.r, sig.s).values():
            if not point.is_infinity:
                assert PublicKey(point).verify(digest, sig)

    def test_exactly_one_id_matches(self, private_key, digest):
        sig = sign(digest, private_key.secret)
        candidates = recover_candidates(digest, sig.r, sig.s)
        matches = [i for i, point in candidates.items() if point == private_key.public_key.point]
        assert len(matches) == 1

    def test_without_cofactor_check_same_result(self, private_key, digest):
        sig = sign(digest, private_key.secret)
        recovery_id = find_recovery_id(digest, sig.r, sig.s, private_key.public_key)
        checked = recover_public_key(digest, sig.r, sig.s, recovery_id)
        unchecked = recover_public_key(digest, sig.r, sig.s, recovery_id, verify_cofactor=False)
        assert checked == unchecked

    def test_x_too_large(self):
        """r + n is far beyond p for r = n - 1."""
        with pytest.raises(XTooLargeError):
            recover_public_key(b"\x01" * 32, N - 1, 1, 2)
        with pytest.raises(XTooLargeError):
            recover_public_key(b"\x01" * 32, N - 1, 1, 3)

    def test_x_equal_to_p_is_too_large(self):
        with pytest.raises(XTooLargeError):
            recover_public_key(b"\x01" * 32, P - N, 1, 2)

    def test_x_too_large_is_recovery_error(self):
        with pytest.raises(RecoveryError):
            recover_public_key(b"\x01" * 32, N - 1, 1, 2)

    @pytest.mark.parametrize("recovery_id", [2, 3])
    def test_x_above_order_recovers(self, digest, recovery_id):
        """Ids 2 and 3 use x = r + n, which fits below p for small r."""
        r = smallest_overflowing_r()
        s = 0x1234567

        point = recover_public_key(digest, r, s, recovery_id)

        assert point.is_on_curve()
        assert verify(digest, point, r, s) is True
        assert find_recovery_id(digest, r, s, point) == recovery_id

    def test_x_not_on_curve(self):
        """There is no curve point with x = 0."""
        with pytest.raises(PointDecodeError):
            recover_public_key(b"\x01" * 32, 0, 1, 0)

    def test_zero_r_has_no_inverse(self):
        """x = n is on the curve, so r = 0 gets as far as inverting r."""
        with pytest.raises(ArithmeticError):
            recover_public_key(b"\x01" * 32, 0, 1, 2)
        with pytest.raises(NotInvertibleError):
            recover_public_key(b"\x01" * 32, 0, 1, 2)

    @pytest.mark.parametrize("recovery_id", [-1, 4, 27])
    def test_invalid_recovery_id(self, recovery_id):
        with pytest.raises(ValueError):
            recover_public_key(b"\x01" * 32, G.x, 1, recovery_id)

    def test_cofactor_check_failure(self, rejecting_cofactor_check):
        with pytest.raises(CofactorCheckError):
            recover_public_key(b"\x01" * 32, G.x, 1, 0)

    def test_cofactor_check_can_be_skipped(self, rejecting_cofactor_check):
        point = recover_public_key(b"\x01" * 32, G.x, 1, 0, verify_cofactor=False)
        assert point.is_on_curve()


# ---------------------------------------------------------------------------
# Recovery id search Tests
# ---------------------------------------------------------------------------

class TestFindRecoveryId:
    """Tests for trying recovery ids 0..3."""

    def test_attempts_cover_all_ids(self, private_key, digest):
        sig = sign(digest, private_key.secret)
        attempts = list(recovery_attempts(digest, sig.r, sig.s))
        assert [a.recovery_id for a in attempts] == [0, 1, 2, 3]
        for attempt in attempts:
            assert (attempt.point is None) != (attempt.error is None)

    def test_high_ids_usually_fail(self, private_key, digest):
        """For almost every r, r + n is not below p."""
        sig = sign(digest, private_key.secret)
        if sig.r + N < P:
            pytest.skip("r + n happens to be below p")
        attempts = list(recovery_attempts(digest, sig.r, sig.s))
        assert isinstance(attempts[2].error, XTooLargeError)
        assert isinstance(attempts[3].error, XTooLargeError)

    def test_accepts_point_or_public_key(self, private_key, digest):
        sig = sign(digest, private_key.secret)
        from_key = find_recovery_id(digest, sig.r, sig.s, private_key.public_key)
        from_point = find_recovery_id(digest, sig.r, sig.s, private_key.public_key.point)
        assert from_key == from_point

    def test_unrelated_key_not_found(self, private_key, digest, caplog):
        sig = sign(digest, private_key.secret)
        other = PrivateKey.generate().public_key
        assert other.point not in recover_candidates(digest, sig.r, sig.s).values()
        with pytest.raises(RecoveryIdNotFoundError):
            find_recovery_id(digest, sig.r, sig.s, other)
        assert "No recovery id reproduces" in caplog.text

    def test_infinity_key_not_found(self, private_key, digest):
        sig = sign(digest, private_key.secret)
        with pytest.raises(RecoveryIdNotFoundError):
            find_recovery_id(digest, sig.r, sig.s, Point.infinity())

    def test_all_ids_rejected(self, private_key, digest, rejecting_cofactor_check):
        sig = sign(digest, private_key.secret)
        assert recover_candidates(digest, sig.r, sig.s) == {}
        with pytest.raises(RecoveryIdNotFoundError):
            find_recovery_id(digest, sig.r, sig.s, private_key.public_key)


# ---------------------------------------------------------------------------
# sign_with_recovery Tests
# ---------------------------------------------------------------------------

class TestSignWithRecovery:
    """Tests for producing recoverable signatures."""

    def test_roundtrip(self, private_key, digest):
        recoverable = sign_with_recovery(digest, private_key)
        assert recoverable.recover(digest) == private_key.public_key

    def test_accepts_integer_secret(self, digest):
        recoverable = sign_with_recovery(digest, 1)
        assert recoverable.recover(digest).point == G

    def test_signature_verifies(self, private_key, digest):
        recoverable = sign_with_recovery(digest, private_key)
        assert private_key.public_key.verify(digest, recoverable.signature)

    def test_compressed_flag(self, private_key, digest):
        assert sign_with_recovery(digest, private_key).compressed is False
        assert sign_with_recovery(digest, private_key, compressed=True).compressed is True

    def test_private_key_method(self, private_key, digest):
        recoverable = private_key.sign_recoverable(digest, compressed=True)
        assert recoverable.compressed
        assert recover_from_envelope(digest, recoverable.to_bytes()) == private_key.public_key

    def test_wrong_public_key(self, private_key, digest):
        other = PrivateKey.generate().public_key
        with pytest.raises(RecoveryIdNotFoundError):
            sign_with_recovery(digest, private_key, public_key=other)

    def test_failing_cofactor_check_is_hard_error(self, private_key, digest, rejecting_cofactor_check):
        with pytest.raises(RecoveryIdNotFoundError):
            sign_with_recovery(digest, private_key)

    def test_different_digest_recovers_different_key(self, private_key, digest):
        recoverable = sign_with_recovery(digest, private_key)
        other_digest = hashlib.sha256(b"something else").digest()
        try:
            recovered = recoverable.recover(other_digest)
        except RecoveryError:
            return
        assert recovered != private_key.public_key


# ---------------------------------------------------------------------------
# Envelope Tests
# ---------------------------------------------------------------------------

class TestRecoverableSignature:
    """Tests for the 65-byte header || r || s envelope."""

    @pytest.mark.parametrize("recovery_id, compressed, header", [
        (0, False, 27),
        (1, False, 28),
        (2, False, 29),
        (3, False, 30),
        (0, True, 31),
        (1, True, 32),
        (3, True, 34),
    ])
    def test_header(self, recovery_id, compressed, header):
        recoverable = RecoverableSignature(recovery_id, 1, 2, compressed)
        assert recoverable.header == header
        assert recoverable.to_bytes()[0] == header

    @pytest.mark.parametrize("header", range(27, 35))
    def test_parse_all_valid_headers(self, header):
        data = bytes([header]) + (5).to_bytes(32, "big") + (6).to_bytes(32, "big")
        recoverable = RecoverableSignature.from_bytes(data)
        assert recoverable.recovery_id == (header - 27) % 4
        assert recoverable.compressed == (header >= 31)
        assert (recoverable.r, recoverable.s) == (5, 6)
        assert recoverable.to_bytes() == data

    @pytest.mark.parametrize("header", [0, 26, 35, 255])
    def test_parse_invalid_header(self, header):
        data = bytes([header]) + b"\x01" * 64
        with pytest.raises(ValueError):
            RecoverableSignature.from_bytes(data)

    @pytest.mark.parametrize("length", [0, 64, 66])
    def test_parse_wrong_length(self, length):
        with pytest.raises(ValueError):
            RecoverableSignature.from_bytes(b"\x1b" * length)

    def test_parse_zero_s(self):
        data = b"\x1b" + b"\x01" * 32 + b"\x00" * 32
        with pytest.raises(InvalidSignatureRange):
            RecoverableSignature.from_bytes(data)

    def test_invalid_recovery_id(self):
        with pytest.raises(ValueError):
            RecoverableSignature(4, 1, 1)

    def test_layout(self, private_key, digest):
        recoverable = sign_with_recovery(digest, private_key)
        data = recoverable.to_bytes()
        assert len(data) == ENVELOPE_LENGTH
        assert data[1:33] == recoverable.r.to_bytes(32, "big")
        assert data[33:] == recoverable.s.to_bytes(32, "big")

    def test_envelope_roundtrip(self, private_key, digest):
        data = sign_with_recovery(digest, private_key, compressed=True).to_bytes()
        assert RecoverableSignature.from_bytes(data).to_bytes() == data
        assert recover_from_envelope(digest, data) == private_key.public_key

    def test_recover_uncompressed_header(self, private_key, digest):
        data = sign_with_recovery(digest, private_key).to_bytes()
        assert 27 <= data[0] <= 30
        assert recover_from_envelope(digest, data) == private_key.public_key

    def test_repr(self):
        assert "recovery_id=2" in repr(RecoverableSignature(2, 1, 1))


# ---------------------------------------------------------------------------
# Known-answer Tests
# ---------------------------------------------------------------------------

class TestKnownAnswer:
    """A signed message produced by an independent wallet implementation."""

    def test_envelope_fields(self):
        recoverable = RecoverableSignature.from_bytes(KAT_ENVELOPE)
        assert recoverable.recovery_id == 1
        assert recoverable.compressed is True
        assert recoverable.r == 0xA7BCE2D6F708EECA3F0EE5690B21E818E4D2A369E6CD6521DFE22DC4415A6135

    def test_recover(self):
        public_key = recover_from_envelope(message_hash(KAT_MESSAGE), KAT_ENVELOPE)
        assert public_key.to_hex(compressed=False) == KAT_PUBLIC_KEY_HEX

    def test_matches_private_key(self):
        public_key = recover_from_envelope(message_hash(KAT_MESSAGE), KAT_ENVELOPE)
        assert public_key == PrivateKey(b"1" * 32).public_key

    def test_find_recovery_id(self):
        recoverable = RecoverableSignature.from_bytes(KAT_ENVELOPE)
        expected = PublicKey.from_hex(KAT_PUBLIC_KEY_HEX)
        digest = message_hash(KAT_MESSAGE)
        assert find_recovery_id(digest, recoverable.r, recoverable.s, expected) == 1
